"""Scraper interface and the shared HTTP base for job board scrapers.

The workflow core only depends on ``Scraper``. ``BaseScraper`` provides the
plumbing the concrete boards share: one requests session, error mapping,
HTML cleaning, timestamp parsing and a per-site request interval.
"""

import html
import re
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

import requests

from jobwatch.config.models import SiteConfig
from jobwatch.domain.models import RawPosting, SearchProfile
from jobwatch.logging import get_logger
from jobwatch.matching.engine import keyword_hit
from jobwatch.utils.text import significant_words
from jobwatch.utils.timestamps import parse_epoch_millis, parse_iso_datetime

from .exceptions import PermanentSiteError, ScraperConfigurationError, TransientSiteError

logger = get_logger(__name__, component="scraper")


@dataclass(frozen=True)
class SearchParams:
    """Search terms derived from a profile and handed to a scraper."""

    job_title: Optional[str] = None
    location: Optional[str] = None
    keywords: List[str] = field(default_factory=list)
    contract_types: List[str] = field(default_factory=list)
    remote: bool = False
    salary_min: Optional[float] = None
    salary_max: Optional[float] = None

    @classmethod
    def from_profile(cls, profile: SearchProfile) -> "SearchParams":
        place = profile.location
        salary = profile.salary_range
        return cls(
            job_title=profile.title,
            location=place.city or place.state or place.country,
            keywords=list(profile.keywords),
            contract_types=[str(getattr(c, "value", c)) for c in profile.contract_types],
            remote=place.remote,
            salary_min=salary.min if salary else None,
            salary_max=salary.max if salary else None,
        )

    @property
    def has_terms(self) -> bool:
        return bool(self.job_title or self.keywords)

    def mentioned_in(self, title: str, description: Optional[str] = None) -> bool:
        """Coarse pre-filter: does the posting mention the title or a keyword?

        Returns True when there are no terms to look for.
        """
        if not self.has_terms:
            return True

        text = f"{title} {description or ''}".lower()
        if self.job_title:
            wanted = self.job_title.lower()
            if wanted in text or any(word in text for word in significant_words(wanted)):
                return True
        return any(keyword_hit(keyword, text) for keyword in self.keywords)


@dataclass
class ScrapeResult:
    """Outcome of one scrape call."""

    success: bool
    postings: List[RawPosting] = field(default_factory=list)
    error: Optional[str] = None

    @classmethod
    def failed(cls, error: str) -> "ScrapeResult":
        return cls(success=False, error=error)


class Scraper(ABC):
    """Interface every job board scraper implements."""

    @abstractmethod
    def scrape(self, site: SiteConfig, search_params: SearchParams) -> ScrapeResult:
        """Fetch postings from ``site`` relevant to ``search_params``.

        Must be safe to call again after a failure.

        Raises:
            TransientSiteError: The call may succeed if retried
            PermanentSiteError: Retrying will not help
        """


class BaseScraper(Scraper):
    """Shared HTTP handling for JSON board APIs.

    Subclasses implement ``fetch_postings`` and return every posting on the
    board; ``scrape`` applies truncation and the search pre-filter.

    Attributes:
        timeout: HTTP request timeout in seconds
        user_agent: User-Agent header for requests
        max_postings: Maximum postings kept per response (0 = unlimited)
        min_request_interval: Minimum seconds between two requests
    """

    SCRAPER_NAME = "base"

    def __init__(
        self,
        timeout: int = 30,
        user_agent: str = "jobwatch/0.1",
        max_postings: int = 1000,
        min_request_interval: float = 0.0,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize scraper with HTTP settings.

        Raises:
            ScraperConfigurationError: If timeout is outside 5-300 seconds or user_agent is empty
        """
        if not 5 <= timeout <= 300:
            raise ScraperConfigurationError(
                f"Timeout must be between 5 and 300 seconds, got: {timeout}"
            )
        if not user_agent or not user_agent.strip():
            raise ScraperConfigurationError("user_agent cannot be empty")

        self.timeout = timeout
        self.user_agent = user_agent.strip()
        self.max_postings = max_postings
        self.min_request_interval = min_request_interval
        self._sleep = sleep
        self._clock = clock
        self._throttle_lock = threading.Lock()
        self._last_request_at: Optional[float] = None

        self._session = session or requests.Session()
        self._session.headers.update({"User-Agent": self.user_agent})

    def scrape(self, site: SiteConfig, search_params: SearchParams) -> ScrapeResult:
        postings = self._truncate(self.fetch_postings(site), site.identifier)
        relevant = [p for p in postings if search_params.mentioned_in(p.title, p.description)]

        logger.info(
            f"Fetched {len(relevant)} relevant postings from {site.name}",
            extra={
                "event": "scraper.fetch.completed",
                "scraper": self.SCRAPER_NAME,
                "site": site.name,
                "fetched": len(postings),
                "relevant": len(relevant),
            },
        )
        return ScrapeResult(success=True, postings=relevant)

    @abstractmethod
    def fetch_postings(self, site: SiteConfig) -> List[RawPosting]:
        """Fetch and transform every posting on the board."""

    def _throttle(self) -> None:
        if self.min_request_interval <= 0:
            return
        with self._throttle_lock:
            if self._last_request_at is not None:
                wait = self.min_request_interval - (self._clock() - self._last_request_at)
                if wait > 0:
                    self._sleep(wait)
            self._last_request_at = self._clock()

    def _make_request(self, url: str, params: Optional[Dict[str, str]] = None) -> Any:
        """GET ``url`` and return the decoded JSON body.

        Raises:
            TransientSiteError: Timeout, connection failure, 5xx, 429 or invalid JSON
            PermanentSiteError: Any other 4xx
        """
        self._throttle()
        logger.debug(
            f"HTTP GET {url}",
            extra={"event": "scraper.fetch.request", "url": url, "timeout": self.timeout},
        )

        try:
            response = self._session.request(
                method="GET", url=url, params=params, timeout=self.timeout
            )
        except requests.exceptions.Timeout as e:
            logger.warning(
                f"Request to {url} timed out after {self.timeout} seconds",
                extra={"event": "scraper.fetch.retryable_error", "error_type": "Timeout", "url": url},
            )
            raise TransientSiteError(
                f"Request to {url} timed out after {self.timeout} seconds", url=url
            ) from e
        except requests.exceptions.RequestException as e:
            logger.warning(
                f"Request to {url} failed: {e}",
                extra={
                    "event": "scraper.fetch.retryable_error",
                    "error_type": type(e).__name__,
                    "url": url,
                },
            )
            raise TransientSiteError(f"Request to {url} failed: {e}", url=url) from e

        status = response.status_code
        if status >= 500 or status == 429:
            logger.warning(
                f"HTTP {status} from {url}",
                extra={"event": "scraper.fetch.retryable_error", "status_code": status, "url": url},
            )
            raise TransientSiteError(f"HTTP {status}: {response.reason}", url=url, status_code=status)
        if status >= 400:
            logger.error(
                f"HTTP {status} from {url}",
                extra={"event": "scraper.fetch.error", "status_code": status, "url": url},
            )
            raise PermanentSiteError(f"HTTP {status}: {response.reason}", status_code=status, url=url)

        try:
            return response.json()
        except ValueError as e:
            logger.warning(
                f"Failed to parse JSON response from {url}",
                extra={"event": "scraper.fetch.retryable_error", "error_type": "JSONDecodeError", "url": url},
            )
            raise TransientSiteError(
                f"Malformed JSON response from {url}: {e}", url=url, status_code=status
            ) from e

    def _clean_html(self, html_text: Optional[str]) -> str:
        """Decode entities, turn breaks and paragraphs into newlines, drop tags."""
        if not html_text:
            return ""

        text = html.unescape(html_text)
        text = re.sub(r"<br\s*/?>", "\n", text, flags=re.IGNORECASE)
        text = re.sub(r"</p>", "\n\n", text, flags=re.IGNORECASE)
        text = re.sub(r"<[^>]+>", " ", text)
        text = re.sub(r"[ \t]+", " ", text)
        text = re.sub(r"\n{3,}", "\n\n", text)
        return text.strip()

    def _parse_timestamp(self, value: Any) -> Optional[datetime]:
        """Parse an ISO 8601 string or epoch milliseconds; None when unparsable."""
        if value is None or value == "":
            return None
        if isinstance(value, (int, float)):
            return parse_epoch_millis(value)
        parsed = parse_iso_datetime(str(value))
        if parsed is None:
            logger.warning(
                "Failed to parse timestamp",
                extra={"event": "scraper.timestamp.invalid", "timestamp": str(value)},
            )
        return parsed

    def _truncate(self, postings: List[RawPosting], identifier: str) -> List[RawPosting]:
        if self.max_postings > 0 and len(postings) > self.max_postings:
            logger.warning(
                "Truncating postings to max_postings limit",
                extra={
                    "event": "scraper.fetch.truncated",
                    "scraper": self.SCRAPER_NAME,
                    "source": identifier,
                    "total": len(postings),
                    "max": self.max_postings,
                },
            )
            return postings[: self.max_postings]
        return postings
