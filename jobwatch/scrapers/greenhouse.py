"""Greenhouse job board scraper."""

from typing import Dict, List, Optional

from jobwatch.config.models import SiteConfig
from jobwatch.domain.models import RawPosting
from jobwatch.logging import get_logger

from .base import BaseScraper
from .exceptions import TransientSiteError

logger = get_logger(__name__, component="scraper")


class GreenhouseScraper(BaseScraper):
    """Scraper for Greenhouse public job boards.

    API Details:
        Endpoint: https://boards-api.greenhouse.io/v1/boards/{identifier}/jobs
        Method: GET
        Authentication: None (public)
        Response: JSON object with 'jobs' array
    """

    SCRAPER_NAME = "greenhouse"
    API_BASE_URL = "https://boards-api.greenhouse.io/v1/boards"

    # Metadata names worth folding into the description
    METADATA_FIELDS = {
        "Career Site Department": "Department",
        "Department": "Department",
        "Employment Type": "Employment Type",
    }
    SALARY_METADATA = ("Salary", "Salary Range", "Compensation", "Pay Range")

    def fetch_postings(self, site: SiteConfig) -> List[RawPosting]:
        url = f"{self.API_BASE_URL}/{site.identifier}/jobs"
        response = self._make_request(url, params={"content": "true"})

        if not isinstance(response, dict):
            raise TransientSiteError(
                f"Expected JSON object response, got {type(response).__name__}", url=url
            )
        jobs_data = response.get("jobs", [])
        if not isinstance(jobs_data, list):
            raise TransientSiteError(
                f"Expected 'jobs' field to be array, got {type(jobs_data).__name__}", url=url
            )

        postings = []
        for job in jobs_data:
            try:
                postings.append(self._transform_job(job, site))
            except (KeyError, ValueError, TypeError) as e:
                logger.warning(
                    "Failed to transform Greenhouse job",
                    extra={
                        "event": "scraper.transform.failed",
                        "scraper": self.SCRAPER_NAME,
                        "site": site.name,
                        "job_id": job.get("id") if isinstance(job, dict) else None,
                        "error": str(e),
                    },
                )
        return postings

    @staticmethod
    def _metadata_value(item: Dict) -> str:
        value = item.get("value")
        if isinstance(value, list):
            return ", ".join(str(v) for v in value if v)
        if isinstance(value, dict):
            # Currency-range metadata: {"min_value": ..., "max_value": ..., "unit": ...}
            parts = [value.get("min_value"), value.get("max_value")]
            text = " - ".join(str(p) for p in parts if p)
            unit = value.get("unit")
            return f"{unit} {text}".strip() if text and unit else text
        return str(value) if value else ""

    def _metadata(self, job: Dict) -> Dict[str, str]:
        values = {}
        for item in job.get("metadata") or []:
            name = item.get("name")
            text = self._metadata_value(item)
            if name and text:
                values[name] = text
        return values

    def _get_location(self, job: Dict, metadata: Dict[str, str]) -> Optional[str]:
        top_level = (job.get("location") or {}).get("name")
        from_metadata = metadata.get("Job Posting Location")
        if top_level and from_metadata and top_level.lower() != from_metadata.lower():
            return f"{top_level} ({from_metadata})"
        return top_level or from_metadata

    def _transform_job(self, job: Dict, site: SiteConfig) -> RawPosting:
        metadata = self._metadata(job)
        extra_lines = [
            f"{label}: {metadata[name]}"
            for name, label in self.METADATA_FIELDS.items()
            if name in metadata
        ]
        description = self._clean_html(job.get("content") or job.get("description"))
        if extra_lines:
            description = f"{description}\n\n" + "\n".join(extra_lines)

        salary_text = next(
            (metadata[name] for name in self.SALARY_METADATA if name in metadata), None
        )

        return RawPosting(
            external_id=str(job["id"]),
            title=job["title"],
            url=job["absolute_url"],
            source_site=site.name,
            company=site.name,
            location=self._get_location(job, metadata),
            salary_text=salary_text,
            contract_type_text=metadata.get("Employment Type"),
            description=description.strip() or None,
            posted_at=self._parse_timestamp(job.get("first_published") or job.get("updated_at")),
        )
