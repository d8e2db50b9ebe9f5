"""Job board scrapers.

The workflow depends only on the ``Scraper`` interface. Use the factory to
build the concrete scraper for a configured site:

    from jobwatch.scrapers import get_scraper
    scraper = get_scraper(site, advanced_config)
    result = scraper.scrape(site, SearchParams.from_profile(profile))
"""

from .base import BaseScraper, Scraper, ScrapeResult, SearchParams
from .exceptions import (
    PermanentSiteError,
    ScraperConfigurationError,
    ScraperError,
    TransientSiteError,
)
from .factory import SCRAPER_TYPES, get_scraper
from .greenhouse import GreenhouseScraper
from .lever import LeverScraper

__all__ = [
    "BaseScraper",
    "Scraper",
    "ScrapeResult",
    "SearchParams",
    "get_scraper",
    "SCRAPER_TYPES",
    "GreenhouseScraper",
    "LeverScraper",
    "ScraperError",
    "TransientSiteError",
    "PermanentSiteError",
    "ScraperConfigurationError",
]
