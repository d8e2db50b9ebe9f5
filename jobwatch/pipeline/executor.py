"""Workflow executor: one incremental run over every (profile, site) unit.

A run loads the watermark, fans out over the units in profile batches,
scrapes through the retry handler, filters postings newer than the
watermark, drops duplicates, evaluates and scores matches and stores them.
The watermark advances to the run's start time only when the run completes.
"""

import logging
import secrets
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Sequence

from jobwatch.config.models import AdvancedConfig, DuplicateConfig, ExecutorConfig, SiteConfig
from jobwatch.domain.models import RawPosting, SearchProfile
from jobwatch.duplicates.detector import DuplicateDetector
from jobwatch.logging import get_logger
from jobwatch.logging.context import log_context
from jobwatch.matching.engine import MatchEvaluator
from jobwatch.matching.scoring import ScoringEngine
from jobwatch.normalization.service import PostingNormalizer, validate_posting
from jobwatch.persistence.exceptions import PersistenceError
from jobwatch.persistence.store import PersistenceStore
from jobwatch.retry.exceptions import CircuitOpenError, RetryExhaustedError
from jobwatch.retry.handler import RetryHandler
from jobwatch.scrapers.base import Scraper, SearchParams
from jobwatch.scrapers.exceptions import TransientSiteError
from jobwatch.scrapers.factory import get_scraper
from jobwatch.utils.timestamps import format_timestamp, utc_now

from .models import ErrorLogEntry, ExecutionReport, RunStatus, UnitResult

logger = get_logger(__name__, component="executor")

HEALTHY = "healthy"
DEGRADED = "degraded"
UNHEALTHY = "unhealthy"


def new_execution_id(started_at: datetime) -> str:
    """``exec_<epoch-ms>_<6 hex>``"""
    return f"exec_{int(started_at.timestamp() * 1000)}_{secrets.token_hex(3)}"


def _batches(items: Sequence, size: int):
    for start in range(0, len(items), size):
        yield items[start : start + size]


class WorkflowExecutor:
    """
    Runs the matching workflow and reports on it.

    Only one run executes at a time; a call made while a run is in progress
    returns immediately with a skipped report.
    """

    def __init__(
        self,
        store: PersistenceStore,
        scraper_factory: Optional[Callable[[SiteConfig], Scraper]] = None,
        retry_handler: Optional[RetryHandler] = None,
        normalizer: Optional[PostingNormalizer] = None,
        duplicate_detector: Optional[DuplicateDetector] = None,
        evaluator: Optional[MatchEvaluator] = None,
        scoring_engine: Optional[ScoringEngine] = None,
        config: Optional[ExecutorConfig] = None,
        duplicate_config: Optional[DuplicateConfig] = None,
        clock: Callable[[], datetime] = utc_now,
        logger_instance: Optional[logging.Logger] = None,
        stale_after: Optional[timedelta] = None,
    ):
        """
        Initialize the executor.

        Args:
            store: Persistence store for matches, watermark and history
            scraper_factory: Builds the scraper for a site (one instance per site is kept)
            retry_handler: Retry handler shared by all units, keyed by site name
            normalizer: Posting normalizer
            duplicate_detector: Duplicate detector (built over ``store`` if omitted)
            evaluator: Match evaluator
            scoring_engine: Scoring engine
            config: Batch size, worker count and error list limit
            duplicate_config: Thresholds for a detector built here
            clock: UTC time source
            logger_instance: Logger override
            stale_after: Watermark age past which health reports degraded (None disables)
        """
        advanced = AdvancedConfig()
        self.store = store
        self.scraper_factory = scraper_factory or (lambda site: get_scraper(site, advanced))
        self.retry_handler = retry_handler or RetryHandler()
        self.normalizer = normalizer or PostingNormalizer(clock=clock)
        self.duplicate_detector = duplicate_detector or DuplicateDetector(
            store, duplicate_config or DuplicateConfig()
        )
        self.evaluator = evaluator or MatchEvaluator()
        self.scoring_engine = scoring_engine or ScoringEngine(self.evaluator)
        self.config = config or ExecutorConfig()
        self.clock = clock
        self.logger = logger_instance or logger
        self.stale_after = stale_after

        self.state = RunStatus.IDLE
        self.last_report: Optional[ExecutionReport] = None
        self._run_lock = threading.Lock()
        self._scrapers: Dict[str, Scraper] = {}
        self._scrapers_lock = threading.Lock()
        self._profile_locks: Dict[str, threading.Lock] = {}

    def run_workflow(
        self,
        profiles: Sequence[SearchProfile],
        sites: Sequence[SiteConfig],
        cancel_event: Optional[threading.Event] = None,
    ) -> ExecutionReport:
        """
        Execute one run over every profile and enabled site.

        Args:
            profiles: Search profiles to process
            sites: Configured sites; disabled ones are ignored
            cancel_event: When set, no further profile batches are started

        Returns:
            ExecutionReport; unit failures and unexpected run errors are
            recorded in it and never raised
        """
        started_at = self.clock()
        execution_id = new_execution_id(started_at)

        if not self._run_lock.acquire(blocking=False):
            with log_context(execution_id=execution_id):
                self.logger.warning(
                    "Workflow run skipped: previous run still in progress",
                    extra={"event": "workflow.run.skipped", "reason": "lock_held"},
                )
            return ExecutionReport(
                execution_id=execution_id,
                status=self.state,
                started_at=started_at,
                finished_at=self.clock(),
                skipped=True,
            )

        try:
            with log_context(execution_id=execution_id):
                self.state = RunStatus.RUNNING
                try:
                    report = self._execute(execution_id, started_at, profiles, sites, cancel_event)
                except Exception as e:
                    self.state = RunStatus.FAILED
                    self.logger.error(
                        f"Workflow run aborted: {e}",
                        exc_info=True,
                        extra={"event": "workflow.run.aborted", "error_type": type(e).__name__},
                    )
                    report = self._finish(
                        execution_id, started_at, RunStatus.FAILED, None, [], [self._error_entry(e)]
                    )
                self.state = report.status
                self.last_report = report
                return report
        finally:
            self._run_lock.release()

    def _execute(
        self,
        execution_id: str,
        started_at: datetime,
        profiles: Sequence[SearchProfile],
        sites: Sequence[SiteConfig],
        cancel_event: Optional[threading.Event],
    ) -> ExecutionReport:
        enabled_sites = [site for site in sites if site.enabled]
        run_errors: List[ErrorLogEntry] = []
        unit_results: List[UnitResult] = []

        self.logger.info(
            "Workflow run started",
            extra={
                "event": "workflow.run.started",
                "profile_count": len(profiles),
                "enabled_site_count": len(enabled_sites),
            },
        )

        try:
            self.store.ping()
            last_run = self.store.load_last_run_timestamp()
        except PersistenceError as e:
            self.logger.error(
                f"Workflow setup failed: {e}",
                extra={"event": "workflow.setup.failed", "error_type": type(e).__name__},
            )
            run_errors.append(self._error_entry(e))
            return self._finish(
                execution_id, started_at, RunStatus.FAILED, None, unit_results, run_errors
            )

        self.logger.info(
            "Loaded watermark",
            extra={
                "event": "workflow.watermark.loaded",
                "last_run_timestamp": format_timestamp(last_run),
            },
        )

        for batch in _batches(list(profiles), self.config.profile_batch_size):
            if cancel_event is not None and cancel_event.is_set():
                break
            unit_results.extend(self._run_batch(execution_id, batch, enabled_sites, last_run))

        if cancel_event is not None and cancel_event.is_set():
            self.logger.warning(
                "Workflow run cancelled",
                extra={"event": "workflow.run.cancelled", "units_run": len(unit_results)},
            )
            status = RunStatus.CANCELLED
        else:
            status = RunStatus.COMPLETED
            try:
                self.store.save_last_run_timestamp(started_at, execution_id)
            except PersistenceError as e:
                self.logger.error(
                    f"Failed to save watermark: {e}",
                    extra={"event": "workflow.watermark.save_failed"},
                )
                run_errors.append(self._error_entry(e))
                status = RunStatus.FAILED

        return self._finish(execution_id, started_at, status, last_run, unit_results, run_errors)

    def _run_batch(
        self,
        execution_id: str,
        profiles: Sequence[SearchProfile],
        sites: Sequence[SiteConfig],
        last_run: Optional[datetime],
    ) -> List[UnitResult]:
        units = [(profile, site) for profile in profiles for site in sites]
        if not units:
            return []

        workers = min(self.config.max_workers, len(units))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="jobwatch-unit") as pool:
            futures = [
                (profile, site, pool.submit(self._run_unit, execution_id, profile, site, last_run))
                for profile, site in units
            ]
            results = []
            for profile, site, future in futures:
                try:
                    results.append(future.result())
                except Exception as e:
                    # _run_unit records its own errors; this only guards the pool itself
                    unit = UnitResult(profile_id=profile.id, site=site.name, success=False)
                    self._unit_error(unit, e)
                    results.append(unit)
            return results

    def _run_unit(
        self,
        execution_id: str,
        profile: SearchProfile,
        site: SiteConfig,
        last_run: Optional[datetime],
    ) -> UnitResult:
        unit = UnitResult(profile_id=profile.id, site=site.name)
        unit_start = time.monotonic()

        with log_context(execution_id=execution_id, profile_id=profile.id, site=site.name):
            try:
                postings = self._scrape(profile, site)
                unit.fetched_count = len(postings)
                for raw in postings:
                    try:
                        self._process_posting(raw, profile, last_run, unit)
                    except Exception as e:
                        self._unit_error(unit, e)
            except CircuitOpenError as e:
                unit.success = False
                self._unit_error(unit, e, level=logging.WARNING)
            except Exception as e:
                unit.success = False
                self._unit_error(unit, e)
            finally:
                unit.duration_seconds = time.monotonic() - unit_start

            self.logger.info(
                f"Unit finished: {profile.id} on {site.name}",
                extra={"event": "workflow.unit.completed", **unit.to_dict()},
            )
        return unit

    def _scraper_for(self, site: SiteConfig) -> Scraper:
        with self._scrapers_lock:
            scraper = self._scrapers.get(site.name)
            if scraper is None:
                scraper = self.scraper_factory(site)
                self._scrapers[site.name] = scraper
            return scraper

    def _scrape(self, profile: SearchProfile, site: SiteConfig) -> List[RawPosting]:
        scraper = self._scraper_for(site)
        params = SearchParams.from_profile(profile)

        def operation() -> List[RawPosting]:
            result = scraper.scrape(site, params)
            if not result.success:
                raise TransientSiteError(result.error or f"Scrape of {site.name} failed")
            return result.postings

        return self.retry_handler.execute_with_retry(operation, site.name)

    def _profile_lock(self, profile_id: str) -> threading.Lock:
        with self._scrapers_lock:
            return self._profile_locks.setdefault(profile_id, threading.Lock())

    def _process_posting(
        self,
        raw: RawPosting,
        profile: SearchProfile,
        last_run: Optional[datetime],
        unit: UnitResult,
    ) -> None:
        posting = self.normalizer.normalize(raw)
        unit.normalized_count += 1

        issues = validate_posting(posting)
        if issues:
            unit.rejected_count += 1
            self.logger.debug(
                "Posting rejected",
                extra={"event": "workflow.posting.rejected", "issues": issues, "url": posting.url},
            )
            return

        if last_run is not None and not posting.posted_at > last_run:
            unit.stale_count += 1
            return

        unit.processed_count += 1

        # Check-then-save must not interleave between units of one profile
        with self._profile_lock(profile.id):
            check = self.duplicate_detector.is_duplicate(posting, profile_id=profile.id)
            if check.is_duplicate:
                unit.duplicate_count += 1
                return

            evaluation = self.evaluator.evaluate(posting, profile)
            if not evaluation.is_match:
                return

            match = self.scoring_engine.build_result(posting, profile, evaluation)
            match.match_id = self.store.save(match)

        unit.matched_count += 1
        unit.matches.append(match)

    def _error_entry(
        self, error: BaseException, site: Optional[str] = None, profile_id: Optional[str] = None
    ) -> ErrorLogEntry:
        message = str(error)
        if isinstance(error, RetryExhaustedError) and error.last_error is not None:
            error_type = type(error.last_error).__name__
        else:
            error_type = type(error).__name__
        return ErrorLogEntry(
            timestamp=self.clock(),
            error_type=error_type,
            message=message,
            site=site,
            profile_id=profile_id,
        )

    def _unit_error(self, unit: UnitResult, error: BaseException, level: int = logging.ERROR) -> None:
        entry = self._error_entry(error, site=unit.site, profile_id=unit.profile_id)
        unit.errors.append(entry)
        unit.error_count += 1
        self.logger.log(
            level,
            f"Unit error for {unit.profile_id} on {unit.site}: {error}",
            extra={"event": "workflow.unit.failed", "error_type": entry.error_type},
        )

    def _finish(
        self,
        execution_id: str,
        started_at: datetime,
        status: RunStatus,
        last_run: Optional[datetime],
        unit_results: List[UnitResult],
        run_errors: List[ErrorLogEntry],
    ) -> ExecutionReport:
        all_errors = list(run_errors)
        for unit in unit_results:
            all_errors.extend(unit.errors)

        report = ExecutionReport(
            execution_id=execution_id,
            status=status,
            started_at=started_at,
            finished_at=self.clock(),
            last_run_timestamp=last_run,
            error_count=len(all_errors),
            errors=all_errors[: self.config.max_reported_errors],
            unit_results=unit_results,
        )

        try:
            self.store.record_execution(report.to_run_record())
        except PersistenceError as e:
            self.logger.error(
                f"Failed to record execution history: {e}",
                extra={"event": "workflow.history.save_failed"},
            )
            report.error_count += 1
            if len(report.errors) < self.config.max_reported_errors:
                report.errors.append(self._error_entry(e))

        self.logger.info(
            "Workflow run finished",
            extra={
                "event": f"workflow.run.{status.value}",
                "status": status.value,
                "duration_ms": int(report.duration_seconds * 1000),
                "processed_jobs": report.processed_jobs,
                "matched_jobs": report.matched_jobs,
                "duplicate_jobs": report.duplicate_jobs,
                "stale_jobs": report.stale_jobs,
                "successful_operations": report.successful_operations,
                "failed_operations": report.failed_operations,
                "error_count": report.error_count,
            },
        )
        return report

    def health_check(self) -> Dict[str, Any]:
        """
        Report whether the workflow can run.

        Returns:
            Dict with ``status`` (healthy, degraded or unhealthy),
            ``last_execution_timestamp``, ``timestamp``, ``run_state`` and
            ``checks`` (persistence, last_execution, circuits, watermark_age_seconds)
        """
        status = HEALTHY
        checks: Dict[str, Any] = {}
        watermark = None

        try:
            self.store.ping()
            watermark = self.store.load_last_run_timestamp()
            last = self.store.last_execution()
            checks["persistence"] = {"status": "ok"}
            checks["last_execution"] = (
                {
                    "execution_id": last.execution_id,
                    "status": last.status,
                    "finished_at": format_timestamp(last.finished_at),
                    "error_count": last.error_count,
                }
                if last is not None
                else None
            )
            if last is not None and last.status == RunStatus.FAILED.value:
                status = DEGRADED
            if watermark is not None:
                age = (self.clock() - watermark).total_seconds()
                checks["watermark_age_seconds"] = int(age)
                if self.stale_after is not None and age > self.stale_after.total_seconds():
                    status = DEGRADED
        except PersistenceError as e:
            checks["persistence"] = {"status": "error", "message": str(e)}
            checks["last_execution"] = None
            status = UNHEALTHY

        open_circuits = self.retry_handler.circuit_breakers.open_keys()
        checks["circuits"] = open_circuits
        if open_circuits and status == HEALTHY:
            status = DEGRADED

        return {
            "status": status,
            "last_execution_timestamp": format_timestamp(watermark),
            "timestamp": format_timestamp(self.clock()),
            "run_state": self.state.value,
            "checks": checks,
        }
