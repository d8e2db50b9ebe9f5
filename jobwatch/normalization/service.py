"""Posting normalizer converting RawPosting into NormalizedPosting.

Normalization degrades instead of failing: an unparsable salary leaves
``salary`` unset, an unknown contract type falls back to permanent, and a
missing posting date falls back to the time the posting was found.
"""

import logging
import re
from datetime import datetime
from typing import Callable, List, Optional

from jobwatch.domain.models import ContractType, NormalizedPosting, RawPosting
from jobwatch.logging import get_logger
from jobwatch.utils.hashing import compute_fuzzy_hashes, compute_primary_hash, normalize_url
from jobwatch.utils.text import clean_text
from jobwatch.utils.timestamps import ensure_utc, utc_now

from .salary import parse_salary

logger = get_logger(__name__, component="normalization")

REMOTE_INDICATORS = ("remote", "work from home", "wfh", "anywhere")

# Checked in order; the first rule with a hit wins.
_CONTRACT_RULES = (
    (re.compile(r"\b(contract\w*|freelanc\w*|temps?|temporary)\b"), ContractType.CONTRACT),
    (re.compile(r"\b(permanent|perm|full[- ]?time)\b"), ContractType.PERMANENT),
    (re.compile(r"\bpart[- ]?time\b"), ContractType.PART_TIME),
    (re.compile(r"\bintern(ship)?s?\b"), ContractType.INTERNSHIP),
)

_SPAM_PATTERNS = (
    re.compile(r"make \$\d+ from home"),
    re.compile(r"work from home.*\$\d+"),
    re.compile(r"earn money fast"),
    re.compile(r"no experience required.*high pay"),
)


def has_remote_indicator(text: Optional[str]) -> bool:
    """True when ``text`` mentions remote work."""
    lowered = (text or "").lower()
    return any(indicator in lowered for indicator in REMOTE_INDICATORS)


def normalize_location(location: Optional[str]) -> str:
    """Clean a location; anything mentioning remote work becomes ``Remote``."""
    cleaned = clean_text(location)
    if has_remote_indicator(cleaned):
        return "Remote"
    return cleaned


def infer_contract_type(*texts: Optional[str]) -> ContractType:
    """Infer the contract type from free text.

    Rules, in priority order: contract and freelance word forms or temp, then
    permanent/full-time, then part-time, then intern. Without a hit the
    posting is treated as permanent.
    """
    combined = " ".join(t for t in texts if t).lower()
    for pattern, contract_type in _CONTRACT_RULES:
        if pattern.search(combined):
            return contract_type
    return ContractType.PERMANENT


def validate_posting(posting: NormalizedPosting) -> List[str]:
    """Quality problems that make a posting unusable.

    Returns:
        List of issue codes; empty when the posting is fine
    """
    issues = []
    if len(posting.title) < 3:
        issues.append("title_too_short")
    if not posting.normalized_url:
        issues.append("missing_url")
    combined = f"{posting.title} {posting.description}".lower()
    if any(pattern.search(combined) for pattern in _SPAM_PATTERNS):
        issues.append("spam")
    return issues


class PostingNormalizer:
    """Turns scraper output into canonical postings with identity hashes."""

    def __init__(
        self,
        default_currency: str = "USD",
        clock: Callable[[], datetime] = utc_now,
        logger_instance: Optional[logging.Logger] = None,
    ):
        """Initialize PostingNormalizer.

        Args:
            default_currency: Currency assumed when salary text names none
            clock: Source of the ``found_at`` timestamp
            logger_instance: Logger override (defaults to module logger)
        """
        self.default_currency = default_currency
        self.clock = clock
        self.logger = logger_instance or logger

    def normalize(self, raw: RawPosting, found_at: Optional[datetime] = None) -> NormalizedPosting:
        """Normalize one raw posting.

        Args:
            raw: Posting as produced by a scraper
            found_at: When the posting was seen; defaults to the clock

        Returns:
            NormalizedPosting with cleaned fields, canonical salary and hashes
        """
        seen_at = ensure_utc(found_at) or self.clock()
        title = clean_text(raw.title)
        company = clean_text(raw.company)
        description = clean_text(raw.description)
        salary_text = clean_text(raw.salary_text) or None

        salary = parse_salary(salary_text, self.default_currency)
        if salary_text and salary is None:
            self.logger.debug(
                "Salary text not parsable, leaving salary unset",
                extra={"event": "normalization.salary.unparsed", "salary_text": salary_text},
            )

        if raw.contract_type_text:
            contract_type = infer_contract_type(raw.contract_type_text)
        else:
            contract_type = infer_contract_type(title, description)

        return NormalizedPosting(
            title=title,
            company=company,
            location=normalize_location(raw.location),
            description=description,
            url=raw.url.strip(),
            normalized_url=normalize_url(raw.url),
            source_site=raw.source_site,
            external_id=raw.external_id,
            contract_type=contract_type,
            salary=salary,
            salary_text=salary_text,
            posted_at=raw.posted_at or seen_at,
            found_at=seen_at,
            primary_hash=compute_primary_hash(raw.url, title, company),
            fuzzy_hashes=compute_fuzzy_hashes(raw.url, title, company),
        )
