"""Data models for workflow execution tracking and reporting."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from jobwatch.domain.models import ExecutionRunRecord
from jobwatch.matching.models import MatchResult
from jobwatch.utils.timestamps import format_timestamp


class RunStatus(str, Enum):
    """Workflow execution states.

    IDLE -> RUNNING -> COMPLETED | FAILED | CANCELLED
    """

    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (RunStatus.COMPLETED, RunStatus.FAILED, RunStatus.CANCELLED)


@dataclass
class ErrorLogEntry:
    """One error recorded during a run, with enough context to diagnose it."""

    timestamp: datetime
    error_type: str
    message: str
    site: Optional[str] = None
    profile_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": format_timestamp(self.timestamp),
            "site": self.site,
            "profile_id": self.profile_id,
            "error_type": self.error_type,
            "message": self.message,
        }


@dataclass
class UnitResult:
    """
    Outcome of one (profile, site) unit.

    Attributes:
        profile_id: Profile processed
        site: Site name scraped
        success: False when the scrape itself failed
        fetched_count: Raw postings returned by the scraper
        normalized_count: Postings normalized
        rejected_count: Postings flagged by the quality checks
        stale_count: Postings not newer than the watermark
        processed_count: Postings checked for duplicates and matched
        duplicate_count: Postings skipped as duplicates
        matched_count: Matches stored
        error_count: Errors recorded for this unit
        duration_seconds: Wall time of the unit
        matches: Stored matches, in processing order
        errors: Errors recorded for this unit
    """

    profile_id: str
    site: str
    success: bool = True
    fetched_count: int = 0
    normalized_count: int = 0
    rejected_count: int = 0
    stale_count: int = 0
    processed_count: int = 0
    duplicate_count: int = 0
    matched_count: int = 0
    error_count: int = 0
    duration_seconds: float = 0.0
    matches: List[MatchResult] = field(default_factory=list)
    errors: List[ErrorLogEntry] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "profile_id": self.profile_id,
            "site": self.site,
            "success": self.success,
            "fetched": self.fetched_count,
            "normalized": self.normalized_count,
            "rejected": self.rejected_count,
            "stale": self.stale_count,
            "processed": self.processed_count,
            "duplicates": self.duplicate_count,
            "matched": self.matched_count,
            "errors": self.error_count,
            "duration_seconds": round(self.duration_seconds, 3),
        }


@dataclass
class ExecutionReport:
    """
    Aggregate results of one workflow run.

    Totals are computed from ``unit_results`` when they are not set.
    ``errors`` holds at most ``max_reported_errors`` entries while
    ``error_count`` counts every error.
    """

    execution_id: str
    status: RunStatus
    started_at: datetime
    finished_at: datetime
    duration_seconds: float = 0.0
    last_run_timestamp: Optional[datetime] = None
    skipped: bool = False
    processed_jobs: int = 0
    matched_jobs: int = 0
    duplicate_jobs: int = 0
    stale_jobs: int = 0
    rejected_jobs: int = 0
    successful_operations: int = 0
    failed_operations: int = 0
    error_count: int = 0
    errors: List[ErrorLogEntry] = field(default_factory=list)
    unit_results: List[UnitResult] = field(default_factory=list)

    def __post_init__(self):
        if self.unit_results and self.processed_jobs == 0 and self.successful_operations == 0:
            units = self.unit_results
            self.processed_jobs = sum(u.processed_count for u in units)
            self.matched_jobs = sum(u.matched_count for u in units)
            self.duplicate_jobs = sum(u.duplicate_count for u in units)
            self.stale_jobs = sum(u.stale_count for u in units)
            self.rejected_jobs = sum(u.rejected_count for u in units)
            self.successful_operations = sum(1 for u in units if u.success)
            self.failed_operations = sum(1 for u in units if not u.success)

        if self.duration_seconds == 0.0:
            self.duration_seconds = (self.finished_at - self.started_at).total_seconds()

    @property
    def total_operations(self) -> int:
        return self.successful_operations + self.failed_operations

    @property
    def performance(self) -> Dict[str, float]:
        """Throughput and rates; rates are percentages."""
        units = self.unit_results
        return {
            "jobs_per_second": round(self.processed_jobs / self.duration_seconds, 3)
            if self.duration_seconds > 0
            else 0.0,
            "match_rate": round(self.matched_jobs / self.processed_jobs * 100, 2)
            if self.processed_jobs
            else 0.0,
            "error_rate": round(self.failed_operations / self.total_operations * 100, 2)
            if self.total_operations
            else 0.0,
            "average_unit_seconds": round(sum(u.duration_seconds for u in units) / len(units), 3)
            if units
            else 0.0,
        }

    def ranked_matches(self) -> Dict[str, List[MatchResult]]:
        """Matches per profile, best score first, then newest, then title."""
        ranked: Dict[str, List[MatchResult]] = {}
        for unit in self.unit_results:
            for match in unit.matches:
                ranked.setdefault(match.profile_id, []).append(match)
        for matches in ranked.values():
            matches.sort(key=lambda match: match.sort_key())
        return ranked

    def to_run_record(self) -> ExecutionRunRecord:
        return ExecutionRunRecord(
            execution_id=self.execution_id,
            status=self.status.value,
            started_at=self.started_at,
            finished_at=self.finished_at,
            duration_seconds=self.duration_seconds,
            processed_jobs=self.processed_jobs,
            matched_jobs=self.matched_jobs,
            duplicate_jobs=self.duplicate_jobs,
            stale_jobs=self.stale_jobs,
            rejected_jobs=self.rejected_jobs,
            successful_operations=self.successful_operations,
            failed_operations=self.failed_operations,
            error_count=self.error_count,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "execution_id": self.execution_id,
            "status": self.status.value,
            "started_at": format_timestamp(self.started_at),
            "finished_at": format_timestamp(self.finished_at),
            "duration_seconds": round(self.duration_seconds, 3),
            "last_run_timestamp": format_timestamp(self.last_run_timestamp),
            "skipped": self.skipped,
            "processed_jobs": self.processed_jobs,
            "matched_jobs": self.matched_jobs,
            "duplicate_jobs": self.duplicate_jobs,
            "stale_jobs": self.stale_jobs,
            "rejected_jobs": self.rejected_jobs,
            "successful_operations": self.successful_operations,
            "failed_operations": self.failed_operations,
            "error_count": self.error_count,
            "errors": [entry.to_dict() for entry in self.errors],
            "performance": self.performance,
            "units": [unit.to_dict() for unit in self.unit_results],
        }
