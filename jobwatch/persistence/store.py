"""Persistence store used by the workflow.

``PersistenceStore`` is the interface the workflow, duplicate detector and
notification service depend on. ``SqlPersistenceStore`` implements it with
the SQLAlchemy repositories, one session per call.
"""

import threading
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Callable, Iterable, List, Optional, Sequence, Tuple, TypeVar

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from jobwatch.domain.models import (
    ApplicationStatus,
    ExecutionRunRecord,
    JobMatchRecord,
    NormalizedPosting,
)
from jobwatch.duplicates.similarity import posting_similarity
from jobwatch.logging import get_logger
from jobwatch.matching.models import MatchResult
from jobwatch.utils.timestamps import format_timestamp

from .database import get_session, init_database
from .exceptions import PersistenceError
from .repositories import ExecutionRunRepository, JobMatchRepository, WorkflowStateRepository

logger = get_logger(__name__, component="database")

T = TypeVar("T")


class PersistenceStore(ABC):
    """Storage operations the workflow depends on.

    Lookups taking ``profile_id`` are limited to that profile's matches when
    it is given, and search every profile otherwise.
    """

    @abstractmethod
    def ping(self) -> None:
        """Raise PersistenceError when the store is unreachable."""

    @abstractmethod
    def find_by_url(
        self, normalized_url: str, source_site: str, profile_id: Optional[str] = None
    ) -> Optional[JobMatchRecord]:
        ...

    @abstractmethod
    def find_by_hash(
        self, primary_hash: str, profile_id: Optional[str] = None
    ) -> Optional[JobMatchRecord]:
        ...

    @abstractmethod
    def find_by_any_hash(
        self, hashes: Sequence[str], profile_id: Optional[str] = None
    ) -> Optional[JobMatchRecord]:
        ...

    @abstractmethod
    def find_similar(
        self,
        posting: NormalizedPosting,
        threshold: float,
        profile_id: Optional[str] = None,
        limit: int = 10,
    ) -> List[JobMatchRecord]:
        """Stored matches from the same site scoring above ``threshold``, best first."""

    @abstractmethod
    def save(self, match: MatchResult) -> int:
        """Store a match and return its id."""

    @abstractmethod
    def load_last_run_timestamp(self) -> Optional[datetime]:
        ...

    @abstractmethod
    def save_last_run_timestamp(
        self, timestamp: datetime, execution_id: Optional[str] = None
    ) -> None:
        ...

    @abstractmethod
    def list_matches(self, profile_id: Optional[str] = None) -> List[JobMatchRecord]:
        ...

    @abstractmethod
    def find_duplicate_groups(self, profile_id: str) -> List[List[JobMatchRecord]]:
        ...

    @abstractmethod
    def consolidate(
        self,
        keep_id: int,
        remove_ids: Iterable[int],
        alert_sent: bool,
        application_status: ApplicationStatus,
    ) -> None:
        """Delete ``remove_ids`` and apply merged flags to ``keep_id`` atomically."""

    @abstractmethod
    def update_application_status(
        self, match_id: int, status: ApplicationStatus
    ) -> JobMatchRecord:
        ...

    @abstractmethod
    def mark_alert_sent(self, match_ids: Iterable[int]) -> int:
        ...

    @abstractmethod
    def record_execution(self, run: ExecutionRunRecord) -> None:
        ...

    @abstractmethod
    def last_execution(self) -> Optional[ExecutionRunRecord]:
        ...

    @abstractmethod
    def purge_older_than(self, cutoff: datetime) -> Tuple[int, int]:
        """Delete matches found and executions started before ``cutoff``.

        Returns:
            (matches deleted, execution rows deleted)
        """


class SqlPersistenceStore(PersistenceStore):
    """PersistenceStore over the module-level SQLAlchemy engine.

    Calls are serialized with a re-entrant lock, which keeps SQLite writes
    from worker threads in order.
    """

    def __init__(self, database_url: Optional[str] = None):
        """Create the store, initializing the database when a URL is given.

        Args:
            database_url: SQLAlchemy URL; omit when init_database() was already called

        Raises:
            DatabaseConnectionError: If initialization fails
        """
        if database_url is not None:
            init_database(database_url)
        self._lock = threading.RLock()

    def _run(self, operation: Callable[..., T]) -> T:
        with self._lock:
            try:
                with get_session() as session:
                    return operation(session)
            except SQLAlchemyError as e:
                raise PersistenceError(f"Database operation failed: {e}") from e

    def ping(self) -> None:
        self._run(lambda session: session.execute(text("SELECT 1")).fetchone())

    def find_by_url(self, normalized_url, source_site, profile_id=None):
        return self._run(
            lambda s: JobMatchRepository(s).find_by_url(normalized_url, source_site, profile_id)
        )

    def find_by_hash(self, primary_hash, profile_id=None):
        return self._run(lambda s: JobMatchRepository(s).find_by_hash(primary_hash, profile_id))

    def find_by_any_hash(self, hashes, profile_id=None):
        return self._run(lambda s: JobMatchRepository(s).find_by_any_hash(hashes, profile_id))

    def find_similar(self, posting, threshold, profile_id=None, limit=10):
        candidates = self._run(
            lambda s: JobMatchRepository(s).list_matches(profile_id, source_site=posting.source_site)
        )
        scored = []
        for record in candidates:
            similarity = posting_similarity(posting, record)
            if similarity > threshold:
                scored.append((similarity, record))
        scored.sort(key=lambda pair: pair[0], reverse=True)
        return [record for _, record in scored[:limit]]

    def save(self, match: MatchResult) -> int:
        posting = match.posting
        record = JobMatchRecord(
            profile_id=match.profile_id,
            title=posting.title,
            company=posting.company,
            location=posting.location,
            description=posting.description,
            url=posting.url,
            normalized_url=posting.normalized_url,
            source_site=posting.source_site,
            salary_text=posting.salary_text,
            contract_type=posting.contract_type,
            posted_at=posting.posted_at,
            found_at=posting.found_at,
            primary_hash=posting.primary_hash,
            fuzzy_hashes=posting.fuzzy_hashes,
            score=match.score,
            criteria=match.criteria_summary(),
        )
        saved = self._run(lambda s: JobMatchRepository(s).add(record))
        logger.debug(
            "Match saved",
            extra={"event": "database.match.saved", "match_id": saved.id, "profile_id": saved.profile_id},
        )
        return saved.id

    def load_last_run_timestamp(self):
        return self._run(lambda s: WorkflowStateRepository(s).load_last_run_at())

    def save_last_run_timestamp(self, timestamp, execution_id=None):
        self._run(lambda s: WorkflowStateRepository(s).save_last_run_at(timestamp, execution_id))

    def list_matches(self, profile_id=None):
        return self._run(lambda s: JobMatchRepository(s).list_matches(profile_id))

    def get_match(self, match_id: int) -> Optional[JobMatchRecord]:
        return self._run(lambda s: JobMatchRepository(s).get(match_id))

    def find_duplicate_groups(self, profile_id):
        return self._run(lambda s: JobMatchRepository(s).find_duplicate_groups(profile_id))

    def consolidate(self, keep_id, remove_ids, alert_sent, application_status):
        remove = [match_id for match_id in remove_ids if match_id != keep_id]

        def _consolidate(session):
            repository = JobMatchRepository(session)
            repository.update_flags(
                keep_id, alert_sent=alert_sent, application_status=application_status
            )
            repository.delete(remove)

        self._run(_consolidate)

    def update_application_status(self, match_id, status):
        return self._run(
            lambda s: JobMatchRepository(s).update_flags(match_id, application_status=status)
        )

    def mark_alert_sent(self, match_ids):
        ids = list(match_ids)
        return self._run(lambda s: JobMatchRepository(s).mark_alert_sent(ids))

    def record_execution(self, run):
        self._run(lambda s: ExecutionRunRepository(s).add(run))

    def last_execution(self):
        return self._run(lambda s: ExecutionRunRepository(s).latest())

    def purge_older_than(self, cutoff):
        def _purge(session):
            matches = JobMatchRepository(session).delete_found_before(cutoff)
            runs = ExecutionRunRepository(session).delete_started_before(cutoff)
            return matches, runs

        matches, runs = self._run(_purge)
        logger.info(
            f"Purged {matches} match(es) and {runs} execution(s) older than {format_timestamp(cutoff)}",
            extra={"event": "database.retention.purged", "matches": matches, "executions": runs},
        )
        return matches, runs
