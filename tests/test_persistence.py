"""Unit tests for persistence layer."""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import text

from jobwatch.domain.models import ApplicationStatus, ExecutionRunRecord
from jobwatch.persistence import (
    DatabaseConnectionError,
    PersistenceError,
    RecordNotFoundError,
    SqlPersistenceStore,
    close_database,
    get_session,
    init_database,
)
from jobwatch.persistence.database import _redact_url
from jobwatch.persistence.schema import JobMatchHashModel
from tests.helpers import make_match, make_posting, make_profile

RUN_STARTED = datetime(2025, 3, 3, 12, 0, tzinfo=timezone.utc)


def make_run(execution_id, started_at=RUN_STARTED, **overrides):
    data = {
        "execution_id": execution_id,
        "status": "completed",
        "started_at": started_at,
        "finished_at": started_at + timedelta(seconds=4),
        "duration_seconds": 4.0,
        "processed_jobs": 5,
        "matched_jobs": 2,
        "successful_operations": 2,
    }
    data.update(overrides)
    return ExecutionRunRecord(**data)


class TestDatabaseInitialization:
    """Tests for database initialization."""

    def test_init_database_creates_file_and_parents(self, tmp_path):
        """Test initialization creates the file and missing directories."""
        db_file = tmp_path / "subdir" / "nested" / "jobwatch.db"

        init_database(f"sqlite:///{db_file}")

        try:
            assert db_file.exists()
            with get_session() as session:
                assert session.execute(text("SELECT 1")).scalar() == 1
        finally:
            close_database()

    def test_schema_creation_is_idempotent(self, tmp_path):
        """Test that initializing an existing database keeps its data."""
        url = f"sqlite:///{tmp_path / 'jobwatch.db'}"
        store = SqlPersistenceStore(url)
        match_id = store.save(make_match())

        reopened = SqlPersistenceStore(url)
        try:
            assert reopened.get_match(match_id) is not None
        finally:
            close_database()

    def test_init_database_invalid_url_raises_error(self):
        """Test initialization with invalid URL raises DatabaseConnectionError."""
        with pytest.raises(DatabaseConnectionError):
            init_database("")

        with pytest.raises(DatabaseConnectionError):
            init_database(None)

    def test_session_without_init_raises(self):
        """Test that get_session requires init_database."""
        close_database()

        with pytest.raises(DatabaseConnectionError, match="not initialized"):
            with get_session():
                pass

    def test_redact_url(self):
        """Test that passwords are hidden in logged URLs."""
        assert _redact_url("postgresql://app:secret@db:5432/jobs") == "postgresql://app:***@db:5432/jobs"
        assert _redact_url("sqlite:///./data/jobwatch.db") == "sqlite:///./data/jobwatch.db"


class TestMatchStorage:
    """Tests for saving and looking up matches."""

    def test_save_and_get(self, store):
        """Test that a saved match round-trips with its score and criteria."""
        match = make_match()

        match_id = store.save(match)
        record = store.get_match(match_id)

        assert record.id == match_id
        assert record.profile_id == "profile-1"
        assert record.title == "Senior Software Engineer"
        assert record.normalized_url == "https://jobs.acme.example/postings/101"
        assert record.score == match.score
        assert record.criteria == match.criteria_summary()
        assert record.application_status == ApplicationStatus.NOT_APPLIED
        assert record.alert_sent is False
        assert record.found_at == match.posting.found_at
        assert record.posted_at == match.posting.posted_at

    def test_fuzzy_hashes_exclude_primary(self, store):
        """Test that the primary hash is stored once, as the primary kind."""
        posting = make_posting()
        record = store.get_match(store.save(make_match(posting)))

        assert record.primary_hash == posting.primary_hash
        assert record.primary_hash not in record.fuzzy_hashes
        assert set(record.fuzzy_hashes) == set(posting.fuzzy_hashes) - {posting.primary_hash}

        with get_session() as session:
            count = session.query(JobMatchHashModel).count()
        assert count == len(posting.fuzzy_hashes)

    def test_find_by_url_is_site_and_profile_scoped(self, store):
        """Test URL lookup filters on site and optional profile."""
        store.save(make_match())
        url = "https://jobs.acme.example/postings/101"

        assert store.find_by_url(url, "acme") is not None
        assert store.find_by_url(url, "acme", profile_id="profile-1") is not None
        assert store.find_by_url(url, "acme", profile_id="profile-2") is None
        assert store.find_by_url(url, "globex") is None

    def test_find_by_hash(self, store):
        """Test primary hash lookup."""
        posting = make_posting()
        store.save(make_match(posting))

        assert store.find_by_hash(posting.primary_hash).title == posting.title
        assert store.find_by_hash("0" * 64) is None

    def test_find_by_any_hash(self, store):
        """Test that any primary or fuzzy hash finds the stored match."""
        posting = make_posting()
        match_id = store.save(make_match(posting))

        for value in posting.fuzzy_hashes:
            assert store.find_by_any_hash([value]).id == match_id
        assert store.find_by_any_hash(["0" * 64, posting.fuzzy_hashes[-1]]).id == match_id
        assert store.find_by_any_hash([]) is None
        assert store.find_by_any_hash(posting.fuzzy_hashes, profile_id="profile-2") is None

    def test_lookups_return_oldest_match(self, store):
        """Test that the earliest stored match wins when several qualify."""
        first_id = store.save(make_match())
        store.save(make_match(profile=make_profile(id="profile-2")))

        assert store.find_by_hash(make_posting().primary_hash).id == first_id

    def test_find_similar(self, store):
        """Test that similar postings on the same site are returned."""
        store.save(make_match())
        relisted = make_posting(url="https://jobs.acme.example/postings/999")

        similar = store.find_similar(relisted, threshold=0.5)
        assert [r.title for r in similar] == ["Senior Software Engineer"]

        other_site = make_posting(url="https://jobs.acme.example/postings/999", source_site="globex")
        assert store.find_similar(other_site, threshold=0.5) == []

    def test_list_matches(self, store):
        """Test listing all matches or those of one profile."""
        store.save(make_match())
        store.save(make_match(profile=make_profile(id="profile-2")))

        assert len(store.list_matches()) == 2
        assert [r.profile_id for r in store.list_matches("profile-2")] == ["profile-2"]


class TestMatchFlags:
    """Tests for application status and alert flags."""

    def test_update_application_status(self, store):
        """Test setting the application status."""
        match_id = store.save(make_match())

        record = store.update_application_status(match_id, ApplicationStatus.INTERVIEWED)

        assert record.application_status == ApplicationStatus.INTERVIEWED
        assert store.get_match(match_id).application_status == ApplicationStatus.INTERVIEWED

    def test_update_missing_match_raises(self, store):
        """Test that updating an unknown id raises RecordNotFoundError."""
        with pytest.raises(RecordNotFoundError, match="Match 42 not found"):
            store.update_application_status(42, ApplicationStatus.APPLIED)

    def test_mark_alert_sent(self, store):
        """Test flagging notified matches."""
        first = store.save(make_match())
        second = store.save(make_match(profile=make_profile(id="profile-2")))

        assert store.mark_alert_sent([first]) == 1
        assert store.mark_alert_sent([]) == 0

        assert store.get_match(first).alert_sent is True
        assert store.get_match(second).alert_sent is False


class TestWorkflowState:
    """Tests for the run watermark and execution history."""

    def test_watermark_round_trip(self, store):
        """Test saving and loading the last run timestamp."""
        assert store.load_last_run_timestamp() is None

        store.save_last_run_timestamp(RUN_STARTED, execution_id="run-1")
        later = RUN_STARTED + timedelta(minutes=15)
        store.save_last_run_timestamp(later, execution_id="run-2")

        assert store.load_last_run_timestamp() == later

    def test_record_and_load_last_execution(self, store):
        """Test that the most recently started run is returned."""
        assert store.last_execution() is None

        store.record_execution(make_run("run-1"))
        store.record_execution(make_run("run-2", started_at=RUN_STARTED + timedelta(hours=1)))

        latest = store.last_execution()
        assert latest.execution_id == "run-2"
        assert latest.processed_jobs == 5
        assert latest.finished_at == RUN_STARTED + timedelta(hours=1, seconds=4)

    def test_record_execution_replaces_same_id(self, store):
        """Test that recording a run twice keeps the latest values."""
        store.record_execution(make_run("run-1", status="running", finished_at=None))
        store.record_execution(make_run("run-1", status="failed", error_count=1))

        latest = store.last_execution()
        assert latest.status == "failed"
        assert latest.error_count == 1


class TestRetention:
    """Tests for purging expired matches and execution history."""

    def test_purge_older_than(self, store):
        """Test that only rows before the cutoff are deleted, hash rows included."""
        expired = store.save(
            make_match(
                make_posting(
                    found_at=RUN_STARTED - timedelta(days=100),
                    posted_at=RUN_STARTED - timedelta(days=101),
                    url="https://jobs.acme.example/postings/1",
                )
            )
        )
        recent = store.save(
            make_match(make_posting(url="https://jobs.acme.example/postings/2"))
        )
        store.record_execution(make_run("run-1", started_at=RUN_STARTED - timedelta(days=100)))
        store.record_execution(make_run("run-2"))

        assert store.purge_older_than(RUN_STARTED - timedelta(days=90)) == (1, 1)

        assert store.get_match(expired) is None
        assert [record.id for record in store.list_matches()] == [recent]
        assert store.last_execution().execution_id == "run-2"
        with get_session() as session:
            orphaned = session.query(JobMatchHashModel).filter_by(match_id=expired).count()
        assert orphaned == 0

    def test_purge_with_nothing_expired(self, store):
        """Test that a purge over fresh data deletes nothing."""
        store.save(make_match())
        store.record_execution(make_run("run-1"))

        assert store.purge_older_than(RUN_STARTED - timedelta(days=1)) == (0, 0)
        assert len(store.list_matches()) == 1


class TestStoreHealth:
    """Tests for ping."""

    def test_ping(self, store):
        """Test that ping succeeds on a live database."""
        store.ping()

    def test_ping_after_close_raises(self, store):
        """Test that ping raises PersistenceError once the database is closed."""
        close_database()

        with pytest.raises(PersistenceError):
            store.ping()
