"""ORM models and conversions to domain models.

Timestamps are stored as ``YYYY-MM-DDTHH:MM:SS.ffffffZ`` strings, which sort
chronologically as text.
"""

from typing import Optional

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    inspect,
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, relationship

from jobwatch.domain.models import (
    ApplicationStatus,
    ContractType,
    ExecutionRunRecord,
    JobMatchRecord,
)
from jobwatch.logging import get_logger
from jobwatch.utils.timestamps import format_timestamp, parse_iso_datetime

logger = get_logger(__name__, component="database")

Base = declarative_base()

HASH_KIND_PRIMARY = "primary"
HASH_KIND_FUZZY = "fuzzy"
WORKFLOW_STATE_ID = 1


class JobMatchModel(Base):
    """One stored (posting, profile) match."""

    __tablename__ = "job_matches"

    id = Column(Integer, primary_key=True, autoincrement=True)
    profile_id = Column(String(255), nullable=False)

    title = Column(Text, nullable=False)
    company = Column(String(255), nullable=False, default="")
    location = Column(String(255), nullable=False, default="")
    description = Column(Text, nullable=False, default="")
    url = Column(Text, nullable=False)
    normalized_url = Column(Text, nullable=False)
    source_site = Column(String(255), nullable=False)
    salary_text = Column(Text, nullable=True)
    contract_type = Column(String(32), nullable=True)

    posted_at = Column(String(50), nullable=True)
    found_at = Column(String(50), nullable=False)

    primary_hash = Column(String(64), nullable=False)
    score = Column(Integer, nullable=False, default=0)
    criteria = Column(JSON, nullable=False, default=dict)
    application_status = Column(
        String(32), nullable=False, default=ApplicationStatus.NOT_APPLIED.value
    )
    alert_sent = Column(Boolean, nullable=False, default=False)

    hashes = relationship(
        "JobMatchHashModel",
        back_populates="match",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __table_args__ = (
        Index("idx_matches_profile_hash", "profile_id", "primary_hash"),
        Index("idx_matches_profile_url", "profile_id", "source_site", "normalized_url"),
    )

    @property
    def fuzzy_hashes(self):
        return [h.hash_value for h in self.hashes if h.kind == HASH_KIND_FUZZY]

    def to_domain(self) -> JobMatchRecord:
        return JobMatchRecord(
            id=self.id,
            profile_id=self.profile_id,
            title=self.title,
            company=self.company or "",
            location=self.location or "",
            description=self.description or "",
            url=self.url,
            normalized_url=self.normalized_url,
            source_site=self.source_site,
            salary_text=self.salary_text,
            contract_type=ContractType(self.contract_type) if self.contract_type else None,
            posted_at=parse_iso_datetime(self.posted_at),
            found_at=parse_iso_datetime(self.found_at),
            primary_hash=self.primary_hash,
            fuzzy_hashes=self.fuzzy_hashes,
            score=self.score,
            criteria=dict(self.criteria or {}),
            application_status=ApplicationStatus(self.application_status),
            alert_sent=bool(self.alert_sent),
        )

    @classmethod
    def from_domain(cls, record: JobMatchRecord) -> "JobMatchModel":
        """Build a row plus one hash row per distinct primary/fuzzy hash."""
        model = cls(
            profile_id=record.profile_id,
            title=record.title,
            company=record.company,
            location=record.location,
            description=record.description,
            url=record.url,
            normalized_url=record.normalized_url,
            source_site=record.source_site,
            salary_text=record.salary_text,
            contract_type=_enum_value(record.contract_type),
            posted_at=format_timestamp(record.posted_at),
            found_at=format_timestamp(record.found_at),
            primary_hash=record.primary_hash,
            score=record.score,
            criteria=dict(record.criteria),
            application_status=_enum_value(record.application_status),
            alert_sent=record.alert_sent,
        )
        model.hashes.append(
            JobMatchHashModel(
                profile_id=record.profile_id,
                hash_value=record.primary_hash,
                kind=HASH_KIND_PRIMARY,
            )
        )
        for value in dict.fromkeys(record.fuzzy_hashes):
            if value != record.primary_hash:
                model.hashes.append(
                    JobMatchHashModel(
                        profile_id=record.profile_id, hash_value=value, kind=HASH_KIND_FUZZY
                    )
                )
        return model


class JobMatchHashModel(Base):
    """Hash index over stored matches, used by the fuzzy-hash lookup."""

    __tablename__ = "job_match_hashes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    match_id = Column(
        Integer, ForeignKey("job_matches.id", ondelete="CASCADE"), nullable=False
    )
    profile_id = Column(String(255), nullable=False)
    hash_value = Column(String(64), nullable=False)
    kind = Column(String(16), nullable=False)

    match = relationship("JobMatchModel", back_populates="hashes")

    __table_args__ = (Index("idx_match_hashes_profile_value", "profile_id", "hash_value"),)


class WorkflowStateModel(Base):
    """Single-row watermark of the last completed run."""

    __tablename__ = "workflow_state"

    id = Column(Integer, primary_key=True, default=WORKFLOW_STATE_ID)
    last_run_at = Column(String(50), nullable=False)
    execution_id = Column(String(64), nullable=True)
    updated_at = Column(String(50), nullable=False)


class ExecutionRunModel(Base):
    """Execution history, one row per run."""

    __tablename__ = "execution_runs"

    execution_id = Column(String(64), primary_key=True)
    status = Column(String(16), nullable=False)
    started_at = Column(String(50), nullable=False)
    finished_at = Column(String(50), nullable=True)
    duration_seconds = Column(Float, nullable=False, default=0.0)
    processed_jobs = Column(Integer, nullable=False, default=0)
    matched_jobs = Column(Integer, nullable=False, default=0)
    duplicate_jobs = Column(Integer, nullable=False, default=0)
    stale_jobs = Column(Integer, nullable=False, default=0)
    rejected_jobs = Column(Integer, nullable=False, default=0)
    successful_operations = Column(Integer, nullable=False, default=0)
    failed_operations = Column(Integer, nullable=False, default=0)
    error_count = Column(Integer, nullable=False, default=0)

    __table_args__ = (Index("idx_execution_runs_started", "started_at"),)

    _COUNTERS = (
        "duration_seconds",
        "processed_jobs",
        "matched_jobs",
        "duplicate_jobs",
        "stale_jobs",
        "rejected_jobs",
        "successful_operations",
        "failed_operations",
        "error_count",
    )

    def to_domain(self) -> ExecutionRunRecord:
        return ExecutionRunRecord(
            execution_id=self.execution_id,
            status=self.status,
            started_at=parse_iso_datetime(self.started_at),
            finished_at=parse_iso_datetime(self.finished_at),
            **{name: getattr(self, name) for name in self._COUNTERS},
        )

    @classmethod
    def from_domain(cls, run: ExecutionRunRecord) -> "ExecutionRunModel":
        return cls(
            execution_id=run.execution_id,
            status=run.status,
            started_at=format_timestamp(run.started_at),
            finished_at=format_timestamp(run.finished_at),
            **{name: getattr(run, name) for name in cls._COUNTERS},
        )


def _enum_value(value) -> Optional[str]:
    if value is None:
        return None
    return getattr(value, "value", value)


def create_schema(engine: Engine) -> None:
    """Create missing tables and indexes (idempotent)."""
    Base.metadata.create_all(engine, checkfirst=True)
    tables = inspect(engine).get_table_names()
    logger.info(
        f"Database schema ready. Tables: {', '.join(tables)}",
        extra={"event": "database.schema.ready"},
    )
