"""Workflow service: one run, then digest delivery.

Composes the executor with notification dispatch and owns the wiring from
configuration to collaborators.
"""

import threading
from datetime import timedelta
from typing import Any, Dict, List, Optional, Tuple

from jobwatch.config.environment import EnvironmentConfig
from jobwatch.config.models import AppConfig
from jobwatch.duplicates.consolidation import (
    ConsolidationSummary,
    DuplicateConsolidator,
    duplicate_statistics,
)
from jobwatch.duplicates.detector import DuplicateDetector
from jobwatch.logging import get_logger
from jobwatch.notifications.digest import build_digests
from jobwatch.notifications.dispatcher import NotificationDispatcher, get_dispatcher
from jobwatch.notifications.models import DispatchResult, NotificationError
from jobwatch.persistence.exceptions import PersistenceError
from jobwatch.persistence.store import PersistenceStore, SqlPersistenceStore
from jobwatch.retry.handler import RetryHandler
from jobwatch.scrapers.factory import get_scraper

from .executor import WorkflowExecutor
from .models import ExecutionReport

logger = get_logger(__name__, component="workflow")

# Health degrades once this many scan intervals pass without a completed run
STALE_RUN_INTERVALS = 3


class WorkflowService:
    """Runs the workflow and delivers per-profile digests."""

    def __init__(
        self,
        app_config: AppConfig,
        store: PersistenceStore,
        executor: WorkflowExecutor,
        dispatcher: Optional[NotificationDispatcher] = None,
    ):
        """
        Initialize the service.

        Args:
            app_config: Application configuration (profiles, sites, notifications)
            store: Persistence store, used to mark delivered matches
            executor: Workflow executor
            dispatcher: Digest dispatcher; digests are not sent when omitted
        """
        self.app_config = app_config
        self.store = store
        self.executor = executor
        self.dispatcher = dispatcher

    @classmethod
    def from_config(
        cls,
        app_config: AppConfig,
        env_config: EnvironmentConfig,
        store: Optional[PersistenceStore] = None,
    ) -> "WorkflowService":
        """Wire the production collaborators from configuration.

        Raises:
            DatabaseConnectionError: If the database cannot be initialized
        """
        store = store or SqlPersistenceStore(env_config.database_url)
        executor = WorkflowExecutor(
            store=store,
            scraper_factory=lambda site: get_scraper(site, app_config.advanced),
            retry_handler=RetryHandler(app_config.retry),
            duplicate_detector=DuplicateDetector(store, app_config.duplicates),
            config=app_config.executor,
            stale_after=timedelta(seconds=app_config.scan_interval_seconds * STALE_RUN_INTERVALS),
        )
        dispatcher = None
        if app_config.notifications.enabled:
            dispatcher = get_dispatcher(app_config.notifications, env_config)
        return cls(app_config, store, executor, dispatcher)

    def run_once(self, cancel_event: Optional[threading.Event] = None) -> ExecutionReport:
        """Run the workflow once and deliver digests for its matches."""
        report = self.executor.run_workflow(
            self.app_config.profiles, self.app_config.sites, cancel_event=cancel_event
        )
        if report.skipped or self.dispatcher is None:
            return report

        self.deliver(report)
        return report

    def deliver(self, report: ExecutionReport) -> List[DispatchResult]:
        """Dispatch one digest per profile with matches and mark them alerted.

        A failure for one digest is logged and does not affect the others.
        """
        notifications = self.app_config.notifications
        digests = build_digests(
            report,
            self.app_config.profiles,
            max_matches=notifications.max_matches_per_digest,
            channel=self.dispatcher.channel,
        )

        results = []
        for digest in digests:
            try:
                result = self.dispatcher.dispatch(digest)
            except NotificationError as e:
                logger.error(
                    f"Digest for {digest.profile_id} failed: {e}",
                    extra={"event": "notification.digest.failed", "profile_id": digest.profile_id},
                )
                result = DispatchResult(
                    profile_id=digest.profile_id,
                    channel=self.dispatcher.channel,
                    status="failed",
                    error=str(e),
                )
            results.append(result)

            if result.is_success() and result.delivered_match_ids:
                try:
                    self.store.mark_alert_sent(result.delivered_match_ids)
                except PersistenceError as e:
                    logger.error(
                        f"Failed to mark alerts sent for {digest.profile_id}: {e}",
                        extra={"event": "notification.mark_sent.failed"},
                    )

        logger.info(
            "Digest delivery finished",
            extra={
                "event": "notification.delivery.completed",
                "digests": len(digests),
                "sent": sum(1 for r in results if r.is_success()),
                "failed": sum(1 for r in results if r.status == "failed"),
            },
        )
        return results

    def consolidate(self) -> List[ConsolidationSummary]:
        """Collapse stored duplicate groups for every configured profile."""
        consolidator = DuplicateConsolidator(self.store)
        return [
            consolidator.consolidate_profile(profile.id) for profile in self.app_config.profiles
        ]

    def duplicate_statistics(self) -> Dict[str, Any]:
        """Stored-match duplicate totals across all profiles."""
        return duplicate_statistics(self.store.list_matches())

    def cleanup(self) -> Tuple[int, int]:
        """Delete matches and execution history older than the retention period.

        Returns:
            (matches deleted, execution rows deleted)
        """
        days = self.app_config.retention.retention_days
        cutoff = self.executor.clock() - timedelta(days=days)
        logger.info(
            f"Removing data older than {days} day(s)",
            extra={"event": "workflow.cleanup.started", "retention_days": days},
        )
        return self.store.purge_older_than(cutoff)

    def health_check(self) -> Dict[str, Any]:
        return self.executor.health_check()
