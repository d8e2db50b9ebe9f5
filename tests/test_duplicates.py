"""Tests for duplicate detection, similarity and consolidation."""

from datetime import timedelta
from unittest.mock import Mock

import pytest

from jobwatch.config.models import DuplicateConfig
from jobwatch.domain.models import ApplicationStatus
from jobwatch.duplicates import (
    CONFIDENCE_FUZZY_HASH,
    CONFIDENCE_PRIMARY_HASH,
    CONFIDENCE_SIMILAR,
    CONFIDENCE_URL,
    DuplicateConsolidator,
    DuplicateDetector,
    duplicate_statistics,
    merge_flags,
    posting_similarity,
    select_posting_to_keep,
    url_domain,
)
from tests.helpers import make_match, make_posting, make_profile, make_record
from tests.helpers.builders import FOUND_AT

TRACKED_URL = "https://jobs.acme.example/postings/101?utm_source=newsletter&ref=abc"


class TestPostingSimilarity:
    """Tests for weighted posting similarity."""

    def test_identical_postings(self):
        """Test that identical postings have similarity 1.0."""
        posting = make_posting()
        assert posting_similarity(posting, posting) == pytest.approx(1.0)

    def test_missing_fields_are_not_counted(self):
        """Test that fields missing on one side are dropped from the weight."""
        left = make_posting(company=None, location=None)
        right = make_posting(company="Globex", location="Berlin")

        # Only title and url domain are compared
        assert posting_similarity(left, right) == pytest.approx(1.0)

    def test_partial_title_overlap(self):
        """Test the weighted score for a half-overlapping title."""
        left = make_posting(title="Senior Software Engineer")
        right = make_posting(title="Software Engineer Platform")

        assert posting_similarity(left, right) == pytest.approx(0.4 * 0.5 + 0.3 + 0.2 + 0.1)

    def test_url_domain(self):
        """Test host extraction."""
        assert url_domain("https://Jobs.Acme.example/x?y=1") == "jobs.acme.example"
        assert url_domain(None) == ""


class TestDuplicateDetector:
    """Tiered duplicate detection against the SQL store."""

    def test_new_posting_is_not_duplicate(self, store):
        """Test that nothing stored means no duplicate."""
        result = DuplicateDetector(store).is_duplicate(make_posting(), profile_id="profile-1")

        assert not result.is_duplicate
        assert result.confidence == 0.0
        assert result.matched_existing is None

    def test_tracking_parameters_detected_by_url(self, store):
        """Test that a re-listing with tracking parameters is a URL duplicate."""
        first = make_posting(url="https://jobs.acme.example/postings/101")
        second = make_posting(url=TRACKED_URL)
        assert first.primary_hash == second.primary_hash

        saved_id = store.save(make_match(first))
        result = DuplicateDetector(store).is_duplicate(second, profile_id="profile-1")

        assert result.is_duplicate
        assert result.confidence == CONFIDENCE_URL == 1.0
        assert result.match_type == "url"
        assert result.matched_existing.id == saved_id

    def test_primary_hash_on_other_site(self, store):
        """Test that the same posting seen through another site hits the hash tier."""
        store.save(make_match(make_posting()))
        result = DuplicateDetector(store).is_duplicate(
            make_posting(source_site="globex"), profile_id="profile-1"
        )

        assert result.match_type == "primary_hash"
        assert result.confidence == CONFIDENCE_PRIMARY_HASH

    def test_fuzzy_hash_for_seniority_relisting(self, store):
        """Test that dropping the seniority word is caught by a fuzzy hash."""
        store.save(make_match(make_posting(title="Senior Software Engineer")))
        relisted = make_posting(title="Software Engineer", source_site="globex")

        result = DuplicateDetector(store).is_duplicate(relisted, profile_id="profile-1")

        assert result.match_type == "fuzzy_hash"
        assert result.confidence == CONFIDENCE_FUZZY_HASH

    def test_fuzzy_hash_for_missing_company(self, store):
        """Test that a re-listing without company shares the no-company hash."""
        store.save(make_match(make_posting()))
        relisted = make_posting(company=None, source_site="globex")

        result = DuplicateDetector(store).is_duplicate(relisted, profile_id="profile-1")
        assert result.match_type == "fuzzy_hash"

    def test_similarity_tier(self, store):
        """Test that a near-identical posting at another URL is a duplicate."""
        store.save(make_match(make_posting()))
        moved = make_posting(url="https://jobs.acme.example/postings/999")

        result = DuplicateDetector(store).is_duplicate(moved, profile_id="profile-1")

        assert result.match_type == "similarity"
        assert result.confidence == CONFIDENCE_SIMILAR

    def test_similar_but_below_strict_threshold(self, store):
        """Test that merely similar postings are reported but not skipped."""
        store.save(make_match(make_posting()))
        other = make_posting(
            title="Software Engineer Platform", url="https://jobs.acme.example/postings/555"
        )
        config = DuplicateConfig(similarity_threshold=0.5, strict_similarity_threshold=0.95)

        result = DuplicateDetector(store, config).is_duplicate(other, profile_id="profile-1")

        assert not result.is_duplicate
        assert len(result.similar_jobs) == 1

    def test_checks_are_scoped_to_profile(self, store):
        """Test that another profile's match does not make a posting duplicate."""
        store.save(make_match(make_posting()))
        other_profile = make_profile(id="profile-2")

        detector = DuplicateDetector(store)
        assert not detector.is_duplicate(make_posting(), profile_id=other_profile.id).is_duplicate
        assert detector.is_duplicate(make_posting()).is_duplicate

    def test_tiers_checked_in_order(self):
        """Test that the first tier with a hit wins and later tiers are skipped."""
        existing = make_record(id=7)
        mock_store = Mock()
        mock_store.find_by_url.return_value = None
        mock_store.find_by_hash.return_value = existing

        result = DuplicateDetector(mock_store).is_duplicate(make_posting(), "profile-1")

        assert result.match_type == "primary_hash"
        mock_store.find_by_any_hash.assert_not_called()
        mock_store.find_similar.assert_not_called()

    def test_detect_batch_flags_repeats_within_batch(self):
        """Test that repeats inside one batch are caught before anything is stored."""
        mock_store = Mock()
        mock_store.find_by_url.return_value = None
        mock_store.find_by_hash.return_value = None
        mock_store.find_by_any_hash.return_value = None
        mock_store.find_similar.return_value = []

        postings = [
            make_posting(),
            make_posting(url=TRACKED_URL),
            make_posting(title="Designer", url="https://jobs.acme.example/postings/202"),
        ]
        results = DuplicateDetector(mock_store).detect_batch(postings, "profile-1")

        assert [r.is_duplicate for r in results] == [False, True, False]
        assert results[1].match_type == "batch"
        assert results[1].confidence == CONFIDENCE_URL


class TestConsolidation:
    """Tests for keep selection, flag merging and consolidation."""

    def _group(self):
        return [
            make_record(id=1, found_at=FOUND_AT - timedelta(days=3),
                        application_status=ApplicationStatus.APPLIED),
            make_record(id=2, found_at=FOUND_AT - timedelta(days=1), alert_sent=True),
            make_record(id=3, found_at=FOUND_AT),
        ]

    def test_keeps_applied_record_regardless_of_recency(self):
        """Test that the record with an application status is retained."""
        assert select_posting_to_keep(self._group()).id == 1

    def test_keeps_alerted_record_when_no_status(self):
        """Test the alert_sent precedence."""
        group = [make_record(id=1, found_at=FOUND_AT - timedelta(days=1), alert_sent=True),
                 make_record(id=2, found_at=FOUND_AT)]
        assert select_posting_to_keep(group).id == 1

    def test_keeps_newest_otherwise(self):
        """Test the recency fallback."""
        group = [make_record(id=1, found_at=FOUND_AT - timedelta(days=1)),
                 make_record(id=2, found_at=FOUND_AT)]
        assert select_posting_to_keep(group).id == 2

    def test_empty_group_raises(self):
        """Test that an empty group is rejected."""
        with pytest.raises(ValueError):
            select_posting_to_keep([])

    def test_merge_flags(self):
        """Test OR of alert_sent and status carry-over."""
        group = self._group()
        assert merge_flags(group[0], group) == (True, ApplicationStatus.APPLIED)
        assert merge_flags(group[2], group) == (True, ApplicationStatus.APPLIED)

    def test_consolidate_profile_calls_store(self):
        """Test that each group is consolidated into its kept record."""
        mock_store = Mock()
        mock_store.find_duplicate_groups.return_value = [self._group()]

        summary = DuplicateConsolidator(mock_store).consolidate_profile("profile-1")

        mock_store.consolidate.assert_called_once_with(
            1, [2, 3], True, ApplicationStatus.APPLIED
        )
        assert (summary.groups, summary.kept, summary.removed) == (1, 1, 2)

    def test_consolidate_profile_against_store(self, store):
        """Test consolidation end to end on the SQL store."""
        posting = make_posting()
        ids = [
            store.save(make_match(posting.model_copy(update={"found_at": FOUND_AT + timedelta(hours=h)})))
            for h in range(3)
        ]
        store.update_application_status(ids[0], ApplicationStatus.INTERVIEWED)
        store.mark_alert_sent([ids[2]])

        summary = DuplicateConsolidator(store).consolidate_profile("profile-1")
        remaining = store.list_matches("profile-1")

        assert summary.removed == 2
        assert [record.id for record in remaining] == [ids[0]]
        assert remaining[0].application_status == ApplicationStatus.INTERVIEWED
        assert remaining[0].alert_sent is True

    def test_duplicate_statistics(self):
        """Test totals over stored records."""
        records = [make_record(id=1), make_record(id=2), make_record(id=3, primary_hash="f" * 64)]
        stats = duplicate_statistics(records)

        assert stats["total"] == 3
        assert stats["unique"] == 2
        assert stats["duplicates"] == 1
        assert stats["by_site"]["acme"] == {"total": 3, "duplicates": 1}
