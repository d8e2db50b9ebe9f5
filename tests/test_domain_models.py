"""Unit tests for domain models."""

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from jobwatch.domain.models import (
    ApplicationStatus,
    ContractType,
    ExecutionRunRecord,
    JobMatchRecord,
    LocationCriteria,
    MoneyRange,
    RawPosting,
    SearchProfile,
)
from tests.helpers import make_posting


class TestContractType:
    """Tests for contract type label folding."""

    @pytest.mark.parametrize(
        "label,expected",
        [
            ("Full-Time", ContractType.PERMANENT),
            ("full_time", ContractType.PERMANENT),
            ("Freelance", ContractType.CONTRACT),
            ("  part time ", ContractType.PART_TIME),
            ("intern", ContractType.INTERNSHIP),
        ],
    )
    def test_from_label(self, label, expected):
        """Test that synonyms fold to the canonical type."""
        assert ContractType.from_label(label) == expected

    def test_unknown_label(self):
        """Test that unknown labels raise ValueError."""
        with pytest.raises(ValueError, match="Unknown contract type"):
            ContractType.from_label("gig")


class TestMoneyRange:
    """Tests for MoneyRange model."""

    def test_currency_upper_cased(self):
        """Test that the currency code is normalized."""
        assert MoneyRange(min=1, currency=" gbp ").currency == "GBP"

    def test_requires_a_bound(self):
        """Test that an empty range is rejected."""
        with pytest.raises(ValidationError, match="at least one of min or max"):
            MoneyRange()

    def test_min_above_max(self):
        """Test that inverted bounds are rejected."""
        with pytest.raises(ValidationError, match="greater than max"):
            MoneyRange(min=200, max=100)

    def test_overlaps(self):
        """Test interval overlap including open ends."""
        bounded = MoneyRange(min=80000, max=120000)
        assert bounded.overlaps(100000, 130000)
        assert bounded.overlaps(120000, 150000)
        assert not bounded.overlaps(121000, 150000)
        assert not bounded.overlaps(50000, 79999)
        assert MoneyRange(max=50000).overlaps(0, 10)


class TestSearchProfile:
    """Tests for SearchProfile model."""

    def test_minimal_profile(self):
        """Test a profile with only identifiers has no criteria."""
        profile = SearchProfile(id="p1", owner_id="u1")

        assert profile.keywords == []
        assert profile.contract_types == []
        assert profile.location == LocationCriteria()
        assert not profile.has_criteria

    def test_identifiers_stripped(self):
        """Test that ids are trimmed and blank ids rejected."""
        assert SearchProfile(id="  p1 ", owner_id="u1").id == "p1"
        with pytest.raises(ValidationError):
            SearchProfile(id="   ", owner_id="u1")

    def test_keywords_normalized(self):
        """Test that keywords are lower-cased and de-duplicated in order."""
        profile = SearchProfile(
            id="p1", owner_id="u1", keywords=["Python", " python ", "Machine  Learning", ""]
        )
        assert profile.keywords == ["python", "machine learning"]

    def test_contract_types_folded(self):
        """Test that contract type labels fold and de-duplicate."""
        profile = SearchProfile(
            id="p1", owner_id="u1", contract_types=["full-time", "permanent", "contract"]
        )
        assert profile.contract_types == [ContractType.PERMANENT, ContractType.CONTRACT]

    def test_unknown_contract_type_rejected(self):
        """Test that an unknown label fails validation."""
        with pytest.raises(ValidationError, match="Unknown contract type"):
            SearchProfile(id="p1", owner_id="u1", contract_types=["gig"])

    def test_invalid_notification_email(self):
        """Test that notification_email is validated."""
        with pytest.raises(ValidationError):
            SearchProfile(id="p1", owner_id="u1", notification_email="not-an-email")

    def test_profile_is_immutable(self):
        """Test that profiles are frozen for the duration of a run."""
        profile = SearchProfile(id="p1", owner_id="u1", title="Engineer")
        with pytest.raises(ValidationError):
            profile.title = "Manager"

    def test_location_places(self):
        """Test that blank place names are dropped."""
        location = LocationCriteria(city=" ", state="CA", country="USA")
        assert location.city is None
        assert location.places == ["CA", "USA"]


class TestPostings:
    """Tests for RawPosting and NormalizedPosting."""

    def test_raw_posting_converts_to_utc(self):
        """Test that aware timestamps are converted to UTC."""
        eastern = timezone(timedelta(hours=-5))
        raw = RawPosting(
            title="Engineer",
            url="https://example.com/1",
            source_site="acme",
            posted_at=datetime(2025, 3, 1, 9, 0, tzinfo=eastern),
        )
        assert raw.posted_at == datetime(2025, 3, 1, 14, 0, tzinfo=timezone.utc)

    def test_naive_timestamp_treated_as_utc(self):
        """Test that naive timestamps are assumed to be UTC."""
        raw = RawPosting(
            title="Engineer",
            url="https://example.com/1",
            source_site="acme",
            posted_at=datetime(2025, 3, 1, 9, 0),
        )
        assert raw.posted_at.tzinfo == timezone.utc

    def test_all_hashes_primary_first(self):
        """Test that all_hashes starts with the primary hash and has no repeats."""
        posting = make_posting()

        assert posting.all_hashes[0] == posting.primary_hash
        assert len(posting.all_hashes) == len(set(posting.all_hashes))

    def test_is_remote(self):
        """Test the remote flag for normalized locations."""
        assert make_posting(location="Work from home").is_remote
        assert not make_posting(location="Boston, MA").is_remote


class TestRecords:
    """Tests for persisted record models."""

    def test_match_record_defaults(self):
        """Test default flags on a new match record."""
        record = JobMatchRecord(
            profile_id="p1",
            title="Engineer",
            url="https://example.com/1",
            normalized_url="https://example.com/1",
            source_site="acme",
            found_at=datetime(2025, 3, 3, 12, 0),
            primary_hash="a" * 64,
        )

        assert record.application_status == ApplicationStatus.NOT_APPLIED
        assert record.alert_sent is False
        assert record.found_at.tzinfo == timezone.utc

    def test_match_record_score_bounds(self):
        """Test that scores outside 0-100 are rejected."""
        with pytest.raises(ValidationError):
            JobMatchRecord(
                profile_id="p1",
                title="Engineer",
                url="https://example.com/1",
                normalized_url="https://example.com/1",
                source_site="acme",
                found_at=datetime(2025, 3, 3, 12, 0),
                primary_hash="a" * 64,
                score=101,
            )

    def test_execution_run_record(self):
        """Test an execution history record with an open finish time."""
        record = ExecutionRunRecord(
            execution_id="exec_1", status="running", started_at=datetime(2025, 3, 3, 12, 0)
        )
        assert record.finished_at is None
        assert record.started_at.tzinfo == timezone.utc
