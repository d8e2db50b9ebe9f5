"""Repositories for matches, the run watermark and execution history.

Repositories take an open Session and return domain models. SQLAlchemy
errors are wrapped into persistence exceptions here.
"""

from collections import defaultdict
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from jobwatch.domain.models import ApplicationStatus, ExecutionRunRecord, JobMatchRecord
from jobwatch.logging import get_logger
from jobwatch.utils.timestamps import format_timestamp, parse_iso_datetime, utc_now

from .exceptions import DataIntegrityError, PersistenceError, RecordNotFoundError
from .schema import (
    WORKFLOW_STATE_ID,
    ExecutionRunModel,
    JobMatchHashModel,
    JobMatchModel,
    WorkflowStateModel,
)

logger = get_logger(__name__, component="database")


class JobMatchRepository:
    """Queries and updates on stored matches."""

    def __init__(self, session: Session):
        self.session = session

    def get(self, match_id: int) -> Optional[JobMatchRecord]:
        try:
            model = self.session.get(JobMatchModel, match_id)
            return model.to_domain() if model is not None else None
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to retrieve match {match_id}: {e}") from e

    def find_by_url(
        self, normalized_url: str, source_site: str, profile_id: Optional[str] = None
    ) -> Optional[JobMatchRecord]:
        """Oldest stored match with this normalized URL on this site."""
        stmt = select(JobMatchModel).where(
            JobMatchModel.normalized_url == normalized_url,
            JobMatchModel.source_site == source_site,
        )
        return self._first(self._scoped(stmt, profile_id), "find match by url")

    def find_by_hash(
        self, primary_hash: str, profile_id: Optional[str] = None
    ) -> Optional[JobMatchRecord]:
        stmt = select(JobMatchModel).where(JobMatchModel.primary_hash == primary_hash)
        return self._first(self._scoped(stmt, profile_id), "find match by hash")

    def find_by_any_hash(
        self, hashes: Sequence[str], profile_id: Optional[str] = None
    ) -> Optional[JobMatchRecord]:
        """Oldest stored match having any of ``hashes`` as its primary or fuzzy hash."""
        if not hashes:
            return None
        matching_ids = select(JobMatchHashModel.match_id).where(
            JobMatchHashModel.hash_value.in_(list(hashes))
        )
        if profile_id is not None:
            matching_ids = matching_ids.where(JobMatchHashModel.profile_id == profile_id)
        stmt = select(JobMatchModel).where(JobMatchModel.id.in_(matching_ids))
        return self._first(stmt, "find match by any hash")

    def list_matches(
        self, profile_id: Optional[str] = None, source_site: Optional[str] = None
    ) -> List[JobMatchRecord]:
        """Stored matches, optionally filtered, oldest first."""
        stmt = select(JobMatchModel)
        if source_site is not None:
            stmt = stmt.where(JobMatchModel.source_site == source_site)
        stmt = self._scoped(stmt, profile_id).order_by(JobMatchModel.id)
        try:
            return [model.to_domain() for model in self.session.execute(stmt).scalars()]
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to list matches: {e}") from e

    def add(self, record: JobMatchRecord) -> JobMatchRecord:
        """Insert a match with its hash rows and return it with its id."""
        try:
            model = JobMatchModel.from_domain(record)
            self.session.add(model)
            self.session.flush()
            return model.to_domain()
        except IntegrityError as e:
            raise DataIntegrityError(f"Failed to save match due to constraint violation: {e}") from e
        except SQLAlchemyError as e:
            logger.error(
                f"Error saving match for profile {record.profile_id}: {e}",
                exc_info=True,
                extra={"event": "database.match.save_failed"},
            )
            raise PersistenceError(f"Failed to save match: {e}") from e

    def find_duplicate_groups(self, profile_id: str) -> List[List[JobMatchRecord]]:
        """Groups of two or more matches of a profile sharing a primary hash."""
        try:
            repeated = (
                select(JobMatchModel.primary_hash)
                .where(JobMatchModel.profile_id == profile_id)
                .group_by(JobMatchModel.primary_hash)
                .having(func.count(JobMatchModel.id) > 1)
            )
            stmt = (
                select(JobMatchModel)
                .where(
                    JobMatchModel.profile_id == profile_id,
                    JobMatchModel.primary_hash.in_(repeated),
                )
                .order_by(JobMatchModel.primary_hash, JobMatchModel.id)
            )
            groups: Dict[str, List[JobMatchRecord]] = defaultdict(list)
            for model in self.session.execute(stmt).scalars():
                groups[model.primary_hash].append(model.to_domain())
            return list(groups.values())
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to load duplicate groups: {e}") from e

    def update_flags(
        self,
        match_id: int,
        alert_sent: Optional[bool] = None,
        application_status: Optional[ApplicationStatus] = None,
    ) -> JobMatchRecord:
        """Set alert_sent and/or application_status on one match.

        Raises:
            RecordNotFoundError: If no match has this id
        """
        try:
            model = self.session.get(JobMatchModel, match_id)
            if model is None:
                raise RecordNotFoundError(f"Match {match_id} not found")
            if alert_sent is not None:
                model.alert_sent = alert_sent
            if application_status is not None:
                model.application_status = ApplicationStatus(application_status).value
            self.session.flush()
            return model.to_domain()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to update match {match_id}: {e}") from e

    def delete(self, match_ids: Iterable[int]) -> int:
        ids = list(match_ids)
        if not ids:
            return 0
        try:
            # Hash rows first; the FK cascade is not guaranteed on every backend
            self.session.execute(
                delete(JobMatchHashModel).where(JobMatchHashModel.match_id.in_(ids))
            )
            result = self.session.execute(delete(JobMatchModel).where(JobMatchModel.id.in_(ids)))
            return result.rowcount or 0
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to delete matches: {e}") from e

    def delete_found_before(self, cutoff: datetime) -> int:
        """Delete matches found before ``cutoff`` along with their hash rows."""
        try:
            old_ids = select(JobMatchModel.id).where(JobMatchModel.found_at < format_timestamp(cutoff))
            ids = list(self.session.execute(old_ids).scalars())
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to find expired matches: {e}") from e
        return self.delete(ids)

    def mark_alert_sent(self, match_ids: Iterable[int]) -> int:
        ids = list(match_ids)
        if not ids:
            return 0
        try:
            result = self.session.execute(
                update(JobMatchModel).where(JobMatchModel.id.in_(ids)).values(alert_sent=True)
            )
            return result.rowcount or 0
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to mark alerts sent: {e}") from e

    @staticmethod
    def _scoped(stmt, profile_id: Optional[str]):
        if profile_id is not None:
            stmt = stmt.where(JobMatchModel.profile_id == profile_id)
        return stmt

    def _first(self, stmt, action: str) -> Optional[JobMatchRecord]:
        try:
            model = self.session.execute(stmt.order_by(JobMatchModel.id).limit(1)).scalar_one_or_none()
            return model.to_domain() if model is not None else None
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to {action}: {e}") from e


class WorkflowStateRepository:
    """Reads and writes the single-row run watermark."""

    def __init__(self, session: Session):
        self.session = session

    def load_last_run_at(self) -> Optional[datetime]:
        try:
            model = self.session.get(WorkflowStateModel, WORKFLOW_STATE_ID)
            return parse_iso_datetime(model.last_run_at) if model is not None else None
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to load workflow state: {e}") from e

    def save_last_run_at(self, last_run_at: datetime, execution_id: Optional[str] = None) -> None:
        try:
            model = self.session.get(WorkflowStateModel, WORKFLOW_STATE_ID)
            if model is None:
                model = WorkflowStateModel(id=WORKFLOW_STATE_ID)
                self.session.add(model)
            model.last_run_at = format_timestamp(last_run_at)
            model.execution_id = execution_id
            model.updated_at = format_timestamp(utc_now())
            self.session.flush()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to save workflow state: {e}") from e


class ExecutionRunRepository:
    """Execution history rows."""

    def __init__(self, session: Session):
        self.session = session

    def add(self, run: ExecutionRunRecord) -> None:
        try:
            self.session.merge(ExecutionRunModel.from_domain(run))
            self.session.flush()
        except IntegrityError as e:
            raise DataIntegrityError(f"Failed to record execution {run.execution_id}: {e}") from e
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to record execution {run.execution_id}: {e}") from e

    def latest(self) -> Optional[ExecutionRunRecord]:
        try:
            stmt = (
                select(ExecutionRunModel)
                .order_by(ExecutionRunModel.started_at.desc())
                .limit(1)
            )
            model = self.session.execute(stmt).scalar_one_or_none()
            return model.to_domain() if model is not None else None
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to load last execution: {e}") from e

    def delete_started_before(self, cutoff: datetime) -> int:
        try:
            result = self.session.execute(
                delete(ExecutionRunModel).where(
                    ExecutionRunModel.started_at < format_timestamp(cutoff)
                )
            )
            return result.rowcount or 0
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to delete execution history: {e}") from e
