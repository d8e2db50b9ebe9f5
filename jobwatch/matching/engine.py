"""Match evaluator deciding whether a posting satisfies a search profile.

A posting matches only if every criterion the profile specifies passes.
Unset criteria pass vacuously. Two criteria keep a deliberate permissive
default: a posting whose salary could not be parsed, and a posting whose
contract type is unknown, are not rejected on that criterion.
"""

import logging
import math
import re
from typing import Optional, Set

from jobwatch.domain.models import NormalizedPosting, SearchProfile
from jobwatch.logging import get_logger
from jobwatch.normalization.service import has_remote_indicator
from jobwatch.utils.text import significant_words

from .models import CriterionResult, MatchEvaluation

logger = get_logger(__name__, component="matching")

TITLE_WORD_RATIO = 0.6
KEYWORD_TOKEN_MIN_LENGTH = 5

# Each group lists interchangeable spellings of one place.
LOCATION_ALIASES = (
    ("new york", "ny", "nyc", "new york city"),
    ("california", "ca", "calif"),
    ("united kingdom", "uk", "britain", "great britain"),
    ("united states", "usa", "us", "america"),
    ("san francisco", "sf", "san fran"),
    ("los angeles", "la", "los ang"),
)


def location_variants(place: str) -> Set[str]:
    """All known spellings of ``place`` (lower-cased), excluding itself."""
    lowered = place.lower()
    for group in LOCATION_ALIASES:
        if lowered in group:
            return {alias for alias in group if alias != lowered}
    return set()


def _mentions(text: str, term: str) -> bool:
    return re.search(rf"\b{re.escape(term)}\b", text) is not None


def keyword_hit(keyword: str, text: str) -> bool:
    """Whether a lower-cased keyword is found in lower-cased ``text``.

    A keyword matches as a plain substring. Keywords of five or more
    characters also match when each of their words appears somewhere.
    """
    if keyword in text:
        return True
    if len(keyword) >= KEYWORD_TOKEN_MIN_LENGTH:
        return all(token in text for token in keyword.split())
    return False


class MatchEvaluator:
    """Evaluates postings against profiles with AND semantics."""

    def __init__(self, logger_instance: Optional[logging.Logger] = None):
        self.logger = logger_instance or logger

    def matches(self, posting: NormalizedPosting, profile: SearchProfile) -> bool:
        """True when every specified criterion of ``profile`` passes."""
        return self.evaluate(posting, profile).is_match

    def evaluate(self, posting: NormalizedPosting, profile: SearchProfile) -> MatchEvaluation:
        """Evaluate each criterion and return the full breakdown.

        Args:
            posting: Normalized posting
            profile: Search profile

        Returns:
            MatchEvaluation; ``is_match`` is the AND of all criteria
        """
        evaluation = MatchEvaluation()
        for result in (
            self._check_title(posting, profile),
            self._check_keywords(posting, profile),
            self._check_location(posting, profile),
            self._check_contract_type(posting, profile),
            self._check_salary(posting, profile),
        ):
            evaluation.criteria[result.name] = result

        self.logger.debug(
            "Posting evaluated against profile",
            extra={
                "event": "matching.evaluated",
                "profile_id": profile.id,
                "posting_hash": posting.primary_hash[:12],
                "is_match": evaluation.is_match,
                "failed_criteria": evaluation.failed_criteria,
            },
        )
        return evaluation

    def _check_title(self, posting: NormalizedPosting, profile: SearchProfile) -> CriterionResult:
        if not profile.title:
            return CriterionResult("title", specified=False, passed=True, reason="unset")

        wanted = profile.title.lower()
        title = posting.title.lower()
        if wanted in title:
            return CriterionResult("title", specified=True, passed=True, reason="verbatim")

        words = significant_words(wanted)
        if not words:
            return CriterionResult(
                "title", specified=True, passed=False, reason="no_overlap", fraction=0.0
            )

        found = sum(1 for word in words if word in title)
        fraction = found / len(words)
        passed = found >= math.ceil(len(words) * TITLE_WORD_RATIO)
        return CriterionResult(
            "title",
            specified=True,
            passed=passed,
            reason="word_overlap" if passed else "no_overlap",
            fraction=fraction,
        )

    def _check_keywords(self, posting: NormalizedPosting, profile: SearchProfile) -> CriterionResult:
        if not profile.keywords:
            return CriterionResult("keywords", specified=False, passed=True, reason="unset")

        text = f"{posting.title} {posting.description}".lower()
        found = [keyword for keyword in profile.keywords if keyword_hit(keyword, text)]
        return CriterionResult(
            "keywords",
            specified=True,
            passed=bool(found),
            reason="found" if found else "none_found",
            fraction=len(found) / len(profile.keywords),
        )

    def _check_location(self, posting: NormalizedPosting, profile: SearchProfile) -> CriterionResult:
        criteria = profile.location
        if criteria.remote:
            return CriterionResult("location", specified=True, passed=True, reason="remote")

        places = criteria.places
        if not places:
            return CriterionResult("location", specified=False, passed=True, reason="unset")

        location = posting.location.lower()
        if not location:
            return CriterionResult("location", specified=True, passed=False, reason="missing")

        for place in places:
            if place.lower() in location:
                return CriterionResult("location", specified=True, passed=True, reason="place")
            if any(_mentions(location, alias) for alias in location_variants(place)):
                return CriterionResult("location", specified=True, passed=True, reason="alias")

        reason = "remote_not_accepted" if has_remote_indicator(location) else "elsewhere"
        return CriterionResult("location", specified=True, passed=False, reason=reason)

    def _check_contract_type(
        self, posting: NormalizedPosting, profile: SearchProfile
    ) -> CriterionResult:
        if not profile.contract_types:
            return CriterionResult("contract_type", specified=False, passed=True, reason="unset")

        if posting.contract_type is None:
            # Permissive default: an unknown type is never held against a posting
            return CriterionResult(
                "contract_type", specified=True, passed=True, reason="unknown_posting_type"
            )

        passed = posting.contract_type in profile.contract_types
        return CriterionResult(
            "contract_type",
            specified=True,
            passed=passed,
            reason="accepted" if passed else "not_accepted",
        )

    def _check_salary(self, posting: NormalizedPosting, profile: SearchProfile) -> CriterionResult:
        if profile.salary_range is None and profile.day_rate_range is None:
            return CriterionResult("salary", specified=False, passed=True, reason="unset")

        salary = posting.salary
        if salary is None:
            # Permissive default: unparsable or missing salary text
            return CriterionResult("salary", specified=True, passed=True, reason="unparsable")

        if salary.is_day_rate and profile.day_rate_range is not None:
            wanted = profile.day_rate_range
            low, high, reason = salary.period_min, salary.period_max, "day_rate"
        elif profile.salary_range is not None:
            wanted = profile.salary_range
            low, high, reason = salary.min, salary.max, "overlap"
        else:
            return CriterionResult("salary", specified=True, passed=True, reason="not_comparable")

        if wanted.currency != salary.currency:
            return CriterionResult(
                "salary", specified=True, passed=True, reason="currency_mismatch"
            )

        passed = wanted.overlaps(low, high)
        return CriterionResult(
            "salary", specified=True, passed=passed, reason=reason if passed else "out_of_range"
        )
