"""Factory function for instantiating job board scrapers."""

from typing import Dict, Type

from jobwatch.config.models import AdvancedConfig, SiteConfig
from jobwatch.logging import get_logger

from .base import BaseScraper
from .exceptions import ScraperConfigurationError
from .greenhouse import GreenhouseScraper
from .lever import LeverScraper

logger = get_logger(__name__, component="scraper")

SCRAPER_TYPES: Dict[str, Type[BaseScraper]] = {
    "greenhouse": GreenhouseScraper,
    "lever": LeverScraper,
}


def get_scraper(site: SiteConfig, advanced: AdvancedConfig) -> BaseScraper:
    """Instantiate the scraper for ``site.type``.

    Args:
        site: Site configuration with board type and identifier
        advanced: HTTP timeout, user agent and posting limit

    Returns:
        Scraper instance for the site

    Raises:
        ScraperConfigurationError: If the type is unknown or the settings are invalid

    Example:
        >>> site = SiteConfig(name="Acme", type="greenhouse", identifier="acme")
        >>> scraper = get_scraper(site, AdvancedConfig())
    """
    site_type = str(getattr(site.type, "value", site.type)).lower()
    scraper_class = SCRAPER_TYPES.get(site_type)
    if scraper_class is None:
        supported = ", ".join(sorted(SCRAPER_TYPES))
        raise ScraperConfigurationError(
            f"Unknown site type: {site.type}. Supported types: {supported}"
        )

    logger.debug(
        "Creating scraper instance",
        extra={
            "event": "scraper.created",
            "site_type": site_type,
            "site": site.name,
            "scraper_class": scraper_class.__name__,
        },
    )
    return scraper_class(
        timeout=advanced.http_request_timeout,
        user_agent=advanced.user_agent,
        max_postings=advanced.max_postings_per_site,
        min_request_interval=site.min_request_interval,
    )
