"""Lever job board scraper."""

from typing import Dict, List, Optional

from jobwatch.config.models import SiteConfig
from jobwatch.domain.models import RawPosting
from jobwatch.logging import get_logger

from .base import BaseScraper
from .exceptions import TransientSiteError

logger = get_logger(__name__, component="scraper")

# Lever salary intervals mapped to words the salary parser understands
_INTERVAL_WORDS = {
    "per-year-salary": "per year",
    "per-day-wage": "per day",
    "per-hour-wage": "per hour",
}


class LeverScraper(BaseScraper):
    """Scraper for Lever public job boards.

    API Details:
        Endpoint: https://api.lever.co/v0/postings/{identifier}?mode=json
        Method: GET
        Authentication: None (public)
        Response: JSON array of posting objects
    """

    SCRAPER_NAME = "lever"
    API_BASE_URL = "https://api.lever.co/v0/postings"

    def fetch_postings(self, site: SiteConfig) -> List[RawPosting]:
        url = f"{self.API_BASE_URL}/{site.identifier}"
        response = self._make_request(url, params={"mode": "json"})

        if isinstance(response, list):
            jobs_data = response
        elif isinstance(response, dict):
            jobs_data = response.get("postings", [])
        else:
            raise TransientSiteError(
                f"Expected JSON array or object, got {type(response).__name__}", url=url
            )

        postings = []
        for job in jobs_data:
            try:
                postings.append(self._transform_job(job, site))
            except (KeyError, ValueError, TypeError) as e:
                logger.warning(
                    "Failed to transform Lever posting",
                    extra={
                        "event": "scraper.transform.failed",
                        "scraper": self.SCRAPER_NAME,
                        "site": site.name,
                        "job_id": job.get("id") if isinstance(job, dict) else None,
                        "error": str(e),
                    },
                )
        return postings

    def _transform_job(self, job: Dict, site: SiteConfig) -> RawPosting:
        """Transform a Lever posting object.

        Field mapping:
            id -> external_id
            text -> title
            hostedUrl -> url
            categories.location -> location ("Remote" when workplaceType is remote)
            categories.commitment -> contract_type_text
            salaryRange -> salary_text
            descriptionPlain + additionalPlain -> description
            createdAt -> posted_at (Unix milliseconds)
        """
        categories = job.get("categories") if isinstance(job.get("categories"), dict) else {}
        location = categories.get("location")
        if job.get("workplaceType") == "remote" and not location:
            location = "Remote"

        return RawPosting(
            external_id=str(job["id"]),
            title=job["text"],
            url=job["hostedUrl"],
            source_site=site.name,
            company=site.name,
            location=location,
            salary_text=self._salary_text(job.get("salaryRange")),
            contract_type_text=categories.get("commitment"),
            description=self._get_description(job) or None,
            posted_at=self._parse_timestamp(job.get("createdAt")),
        )

    @staticmethod
    def _salary_text(salary: Optional[Dict]) -> Optional[str]:
        if not isinstance(salary, dict) or salary.get("min") is None:
            return None
        low = salary["min"]
        high = salary.get("max", low)
        currency = salary.get("currency") or ""
        interval = salary.get("interval")
        if interval and interval not in _INTERVAL_WORDS:
            return None
        interval = _INTERVAL_WORDS.get(interval, "")
        return " ".join(part for part in (currency, f"{low} - {high}", interval) if part)

    def _get_description(self, job: Dict) -> str:
        """Plain-text description, falling back to cleaned HTML."""
        plain = [
            (job.get(key) or "").strip() for key in ("descriptionPlain", "additionalPlain")
        ]
        plain = [part for part in plain if part]
        if plain:
            return "\n\n".join(plain)

        markup = [(job.get(key) or "").strip() for key in ("description", "additional")]
        markup = [part for part in markup if part]
        return self._clean_html("\n\n".join(markup)) if markup else ""
