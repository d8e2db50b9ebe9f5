"""Custom exceptions for job board scrapers.

The retry handler reads the ``retryable`` class attribute to decide whether
another attempt is worthwhile.
"""

from typing import Optional


class ScraperError(Exception):
    """Base exception for all scraper errors."""

    pass


class TransientSiteError(ScraperError):
    """The site failed in a way that may clear up on its own.

    Raised for timeouts, connection failures, HTTP 5xx and 429 responses,
    and responses that could not be parsed.
    """

    retryable = True

    def __init__(
        self, message: str, url: Optional[str] = None, status_code: Optional[int] = None
    ) -> None:
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class PermanentSiteError(ScraperError):
    """The site rejected the request (HTTP 4xx other than 429).

    Attributes:
        status_code: HTTP status code, 0 when not HTTP related
        url: URL that failed
    """

    retryable = False

    def __init__(self, message: str, status_code: int = 0, url: Optional[str] = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.url = url


class ScraperConfigurationError(PermanentSiteError):
    """Unknown site type or invalid scraper settings."""

    pass
