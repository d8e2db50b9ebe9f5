"""Unit tests for job board scrapers."""

import json
from datetime import datetime, timezone
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest
import requests

from jobwatch.config.models import AdvancedConfig, SiteConfig
from jobwatch.scrapers import (
    GreenhouseScraper,
    LeverScraper,
    PermanentSiteError,
    ScraperConfigurationError,
    ScrapeResult,
    SearchParams,
    TransientSiteError,
    get_scraper,
)
from jobwatch.scrapers.base import BaseScraper
from tests.helpers import make_profile

RESPONSES_DIR = Path(__file__).parent / "fixtures" / "board_responses"


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def greenhouse_site():
    """Create Greenhouse site config."""
    return SiteConfig(name="Acme", type="greenhouse", identifier="acme")


@pytest.fixture
def lever_site():
    """Create Lever site config."""
    return SiteConfig(name="Globex", type="lever", identifier="globex")


@pytest.fixture
def greenhouse_response():
    """Load recorded Greenhouse API response."""
    with open(RESPONSES_DIR / "greenhouse_jobs.json") as f:
        return json.load(f)


@pytest.fixture
def lever_response():
    """Load recorded Lever API response."""
    with open(RESPONSES_DIR / "lever_postings.json") as f:
        return json.load(f)


def http_response(status_code=200, payload=None, reason="OK"):
    response = MagicMock()
    response.status_code = status_code
    response.reason = reason
    if isinstance(payload, Exception):
        response.json.side_effect = payload
    else:
        response.json.return_value = payload
    return response


def scraper_with_session(session, **kwargs):
    return GreenhouseScraper(session=session, **kwargs)


# ============================================================================
# Base Scraper Tests
# ============================================================================


class TestBaseScraper:
    """Tests for BaseScraper helpers."""

    def test_cannot_instantiate_abstract_class(self):
        """Test that BaseScraper cannot be instantiated directly."""
        with pytest.raises(TypeError):
            BaseScraper()

    def test_init_with_invalid_timeout(self):
        """Test that timeouts outside 5-300 seconds are rejected."""
        with pytest.raises(ScraperConfigurationError, match="Timeout"):
            GreenhouseScraper(timeout=2)

    def test_init_with_empty_user_agent(self):
        """Test that a blank user agent is rejected."""
        with pytest.raises(ScraperConfigurationError, match="user_agent"):
            GreenhouseScraper(user_agent="   ")

    def test_session_carries_user_agent(self):
        """Test that the User-Agent header is set on the session."""
        session = MagicMock()
        scraper_with_session(session, user_agent="jobwatch-test/1.0")
        session.headers.update.assert_called_once_with({"User-Agent": "jobwatch-test/1.0"})

    def test_clean_html(self):
        """Test entity decoding, tag stripping and paragraph breaks."""
        scraper = GreenhouseScraper()
        text = scraper._clean_html("<p>Hello &amp; welcome</p><p>Line<br/>break</p>")

        assert "<" not in text
        assert "Hello & welcome" in text
        assert "Line\nbreak" in text

    def test_clean_html_empty_input(self):
        """Test that empty input gives an empty string."""
        assert GreenhouseScraper()._clean_html(None) == ""

    def test_parse_timestamp_formats(self):
        """Test ISO strings, epoch milliseconds and invalid values."""
        scraper = GreenhouseScraper()

        assert scraper._parse_timestamp("2025-03-01T10:00:00Z") == datetime(
            2025, 3, 1, 10, 0, tzinfo=timezone.utc
        )
        assert scraper._parse_timestamp(1740823200000) == datetime(
            2025, 3, 1, 10, 0, tzinfo=timezone.utc
        )
        assert scraper._parse_timestamp("not-a-date") is None
        assert scraper._parse_timestamp("") is None

    def test_throttle_waits_between_requests(self):
        """Test that min_request_interval spaces out requests."""
        sleeps = []
        session = MagicMock()
        session.request.return_value = http_response(payload={"jobs": []})
        scraper = scraper_with_session(
            session, min_request_interval=2.0, sleep=sleeps.append, clock=lambda: 100.0
        )

        scraper._make_request("https://example.test/a")
        scraper._make_request("https://example.test/b")

        assert sleeps == [2.0]


class TestErrorMapping:
    """Tests for mapping HTTP failures onto transient and permanent errors."""

    @pytest.mark.parametrize("status_code", [500, 502, 503, 429])
    def test_retryable_statuses(self, status_code):
        """Test that 5xx and 429 raise TransientSiteError."""
        session = MagicMock()
        session.request.return_value = http_response(status_code, reason="Unavailable")

        with pytest.raises(TransientSiteError) as exc_info:
            scraper_with_session(session)._make_request("https://example.test")

        assert exc_info.value.status_code == status_code
        assert exc_info.value.retryable

    @pytest.mark.parametrize("status_code", [400, 401, 403, 404])
    def test_client_errors_are_permanent(self, status_code):
        """Test that other 4xx responses raise PermanentSiteError."""
        session = MagicMock()
        session.request.return_value = http_response(status_code, reason="Client Error")

        with pytest.raises(PermanentSiteError) as exc_info:
            scraper_with_session(session)._make_request("https://example.test")

        assert exc_info.value.status_code == status_code
        assert not exc_info.value.retryable

    def test_timeout(self):
        """Test that a request timeout is transient."""
        session = MagicMock()
        session.request.side_effect = requests.exceptions.Timeout("slow")

        with pytest.raises(TransientSiteError, match="timed out"):
            scraper_with_session(session)._make_request("https://example.test")

    def test_connection_error(self):
        """Test that connection failures are transient."""
        session = MagicMock()
        session.request.side_effect = requests.exceptions.ConnectionError("refused")

        with pytest.raises(TransientSiteError):
            scraper_with_session(session)._make_request("https://example.test")

    def test_malformed_json(self):
        """Test that an unparsable body is transient."""
        session = MagicMock()
        session.request.return_value = http_response(payload=ValueError("Expecting value"))

        with pytest.raises(TransientSiteError, match="Malformed JSON"):
            scraper_with_session(session)._make_request("https://example.test")


# ============================================================================
# Greenhouse Scraper Tests
# ============================================================================


class TestGreenhouseScraper:
    """Tests for GreenhouseScraper."""

    def test_fetch_postings(self, greenhouse_site, greenhouse_response):
        """Test transforming a recorded Greenhouse response."""
        scraper = GreenhouseScraper()

        with patch.object(scraper, "_make_request", return_value=greenhouse_response) as request:
            postings = scraper.fetch_postings(greenhouse_site)

        request.assert_called_once_with(
            "https://boards-api.greenhouse.io/v1/boards/acme/jobs", params={"content": "true"}
        )
        # The posting without absolute_url is skipped
        assert len(postings) == 2

        first = postings[0]
        assert first.external_id == "4001"
        assert first.title == "Senior Software Engineer"
        assert first.company == "Acme"
        assert first.source_site == "Acme"
        assert first.location == "Remote"
        assert first.salary_text == "USD 120000 - 150000"
        assert first.contract_type_text == "Full-time"
        assert first.posted_at == datetime(2025, 3, 1, 14, 0, tzinfo=timezone.utc)
        assert first.description == (
            "We build Python services.\n\nDepartment: Engineering\nEmployment Type: Full-time"
        )

    def test_location_combines_metadata(self, greenhouse_site, greenhouse_response):
        """Test that a differing Job Posting Location is appended."""
        scraper = GreenhouseScraper()

        with patch.object(scraper, "_make_request", return_value=greenhouse_response):
            second = scraper.fetch_postings(greenhouse_site)[1]

        assert second.location == "New York, NY (Hybrid)"
        assert second.description is None
        assert second.posted_at == datetime(2025, 3, 2, 11, 0, tzinfo=timezone.utc)

    def test_malformed_response(self, greenhouse_site):
        """Test that a non-object body is transient."""
        scraper = GreenhouseScraper()

        with patch.object(scraper, "_make_request", return_value="invalid"):
            with pytest.raises(TransientSiteError):
                scraper.fetch_postings(greenhouse_site)

    def test_scrape_applies_search_prefilter(self, greenhouse_site, greenhouse_response):
        """Test that scrape keeps only postings mentioning the search terms."""
        scraper = GreenhouseScraper()

        with patch.object(scraper, "_make_request", return_value=greenhouse_response):
            result = scraper.scrape(greenhouse_site, SearchParams(job_title="Software Engineer"))

        assert result.success
        assert [p.external_id for p in result.postings] == ["4001"]

    def test_scrape_truncates_to_max(self, greenhouse_site, greenhouse_response):
        """Test that max_postings limits the postings kept."""
        scraper = GreenhouseScraper(max_postings=1)

        with patch.object(scraper, "_make_request", return_value=greenhouse_response):
            result = scraper.scrape(greenhouse_site, SearchParams())

        assert len(result.postings) == 1

    def test_scrape_propagates_errors(self, greenhouse_site):
        """Test that scrape lets typed errors reach the caller."""
        scraper = GreenhouseScraper()
        error = PermanentSiteError("HTTP 404: Not Found", status_code=404)

        with patch.object(scraper, "_make_request", side_effect=error):
            with pytest.raises(PermanentSiteError):
                scraper.scrape(greenhouse_site, SearchParams())


# ============================================================================
# Lever Scraper Tests
# ============================================================================


class TestLeverScraper:
    """Tests for LeverScraper."""

    def test_fetch_postings(self, lever_site, lever_response):
        """Test transforming a recorded Lever response."""
        scraper = LeverScraper()

        with patch.object(scraper, "_make_request", return_value=lever_response) as request:
            postings = scraper.fetch_postings(lever_site)

        request.assert_called_once_with(
            "https://api.lever.co/v0/postings/globex", params={"mode": "json"}
        )
        assert len(postings) == 2

        first = postings[0]
        assert first.external_id == "a1b2c3"
        assert first.title == "Backend Engineer"
        assert first.location == "Remote"
        assert first.contract_type_text == "Contract"
        assert first.salary_text == "GBP 500 - 650 per day"
        assert first.description == "Python APIs.\n\nBenefits included."
        assert first.posted_at == datetime(2025, 3, 1, 10, 0, tzinfo=timezone.utc)

    def test_html_fallback_and_unknown_interval(self, lever_site, lever_response):
        """Test HTML description fallback and unsupported salary intervals."""
        scraper = LeverScraper()

        with patch.object(scraper, "_make_request", return_value=lever_response):
            second = scraper.fetch_postings(lever_site)[1]

        assert second.location == "London"
        assert second.description == "Run the office."
        assert second.salary_text is None
        assert second.posted_at is None

    def test_dict_response_fallback(self, lever_site, lever_response):
        """Test that an object with a postings array is accepted."""
        scraper = LeverScraper()

        with patch.object(scraper, "_make_request", return_value={"postings": lever_response}):
            postings = scraper.fetch_postings(lever_site)

        assert len(postings) == 2

    def test_empty_response(self, lever_site):
        """Test that an empty array gives no postings."""
        scraper = LeverScraper()

        with patch.object(scraper, "_make_request", return_value=[]):
            assert scraper.fetch_postings(lever_site) == []


# ============================================================================
# Factory and Search Parameter Tests
# ============================================================================


class TestFactory:
    """Tests for get_scraper."""

    def test_builds_scraper_for_type(self, lever_site):
        """Test that the site type selects the scraper class."""
        advanced = AdvancedConfig(http_request_timeout=20, max_postings_per_site=50)
        scraper = get_scraper(lever_site, advanced)

        assert isinstance(scraper, LeverScraper)
        assert scraper.timeout == 20
        assert scraper.max_postings == 50
        assert scraper.min_request_interval == 1.0

    def test_unknown_type(self):
        """Test that an unsupported type raises ScraperConfigurationError."""
        site = SimpleNamespace(name="Initech", type="workday", identifier="initech")

        with pytest.raises(ScraperConfigurationError, match="Unknown site type"):
            get_scraper(site, AdvancedConfig())


class TestSearchParams:
    """Tests for SearchParams."""

    def test_from_profile(self):
        """Test deriving search terms from a profile."""
        profile = make_profile(
            keywords=["Python"],
            location={"city": "Boston", "remote": True},
            contract_types=["full-time"],
        )

        params = SearchParams.from_profile(profile)

        assert params.job_title == "Software Engineer"
        assert params.location == "Boston"
        assert params.keywords == ["python"]
        assert params.contract_types == ["permanent"]
        assert params.remote is True
        assert params.salary_min == 80000
        assert params.salary_max == 120000

    def test_mentioned_in(self):
        """Test the coarse title-or-keyword pre-filter."""
        params = SearchParams(job_title="Platform Engineer", keywords=["kubernetes"])

        assert params.mentioned_in("Site Reliability", "Run Kubernetes clusters")
        assert params.mentioned_in("Staff Engineer")
        assert not params.mentioned_in("Office Manager", "Run the office")

    def test_no_terms_accepts_everything(self):
        """Test that empty search params do not filter."""
        assert SearchParams().mentioned_in("Anything")

    def test_failed_result(self):
        """Test the failed ScrapeResult constructor."""
        result = ScrapeResult.failed("boom")
        assert not result.success
        assert result.postings == []
        assert result.error == "boom"
