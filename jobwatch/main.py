"""Command line entry point for jobwatch."""

import argparse
import json
import signal
import sys
import threading
import time
from pathlib import Path
from typing import List, Optional, Tuple

from dotenv import load_dotenv

from jobwatch.config.environment import EnvironmentConfig
from jobwatch.config.exceptions import ConfigurationError
from jobwatch.config.loader import load_config
from jobwatch.config.models import AppConfig
from jobwatch.logging import get_logger
from jobwatch.logging.config import configure_logging
from jobwatch.persistence.database import close_database
from jobwatch.persistence.exceptions import PersistenceError
from jobwatch.pipeline.models import RunStatus
from jobwatch.pipeline.service import WorkflowService
from jobwatch.scheduler import SchedulerService

logger = get_logger(__name__, component="cli")

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="jobwatch",
        description="jobwatch - incremental job posting matching and alerting",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to configuration file (default: config.yaml or config/config.yaml)",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=LOG_LEVELS,
        help="Log level (overrides environment and config)",
    )
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--manual-run",
        action="store_true",
        help="Run the workflow once and exit",
    )
    mode.add_argument(
        "--health-check",
        action="store_true",
        help="Print the health report as JSON and exit (0 when healthy)",
    )
    mode.add_argument(
        "--consolidate",
        action="store_true",
        help="Collapse stored duplicate matches for every profile and exit",
    )
    mode.add_argument(
        "--cleanup",
        action="store_true",
        help="Delete matches and run history older than retention.retention_days and exit",
    )
    return parser


def load_runtime_config(
    config_path: Optional[Path], log_level_override: Optional[str]
) -> Tuple[AppConfig, EnvironmentConfig]:
    """
    Load configuration and resolve the effective log level.

    Log level precedence: CLI flag, then LOG_LEVEL, then config, then INFO.

    Raises:
        ConfigurationError: If configuration is invalid
    """
    app_config, env_config = load_config(config_path)

    if log_level_override:
        env_config.log_level = log_level_override
    elif env_config.log_level:
        pass
    elif app_config.logging and app_config.logging.level:
        env_config.log_level = app_config.logging.level
    else:
        env_config.log_level = "INFO"

    return app_config, env_config


def run_manual(service: WorkflowService) -> int:
    """One run; exit code 1 when it failed or had unit errors."""
    report = service.run_once()
    logger.info(
        f"Manual run {report.status.value}: "
        f"{report.processed_jobs} processed, "
        f"{report.matched_jobs} matched, "
        f"{report.duplicate_jobs} duplicates, "
        f"{report.failed_operations} failed units",
        extra={
            "event": "service.manual_run.completed",
            "execution_id": report.execution_id,
            "status": report.status.value,
            "error_count": report.error_count,
        },
    )
    if report.status != RunStatus.COMPLETED or report.failed_operations > 0:
        return 1
    return 0


def run_health_check(service: WorkflowService) -> int:
    health = service.health_check()
    print(json.dumps(health, indent=2))
    return 0 if health["status"] == "healthy" else 1


def run_consolidation(service: WorkflowService) -> int:
    stats = service.duplicate_statistics()
    logger.info(
        f"{stats['duplicates']} duplicate(s) among {stats['total']} stored matches",
        extra={"event": "service.consolidation.starting", "duplicate_rate": stats["duplicate_rate"]},
    )
    summaries = service.consolidate()
    for summary in summaries:
        logger.info(
            f"Profile {summary.profile_id}: {summary.groups} group(s), {summary.removed} removed",
            extra={
                "event": "service.consolidation.profile",
                "profile_id": summary.profile_id,
                "groups": summary.groups,
                "removed": summary.removed,
            },
        )
    return 0


def run_cleanup(service: WorkflowService) -> int:
    matches, runs = service.cleanup()
    logger.info(
        f"Cleanup removed {matches} match(es) and {runs} execution record(s)",
        extra={"event": "service.cleanup.completed", "matches": matches, "executions": runs},
    )
    return 0


def run_daemon(service: WorkflowService, interval_seconds: int) -> int:
    shutdown_event = threading.Event()
    scheduler_service = SchedulerService(
        run_callable=service.run_once,
        interval_seconds=interval_seconds,
        shutdown_event=shutdown_event,
    )

    def signal_handler(signum, frame):
        logger.info(
            f"Received signal {signum}, shutting down",
            extra={"event": "service.signal_received", "signal": signum},
        )
        scheduler_service.shutdown(wait=False)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    scheduler_service.start()
    logger.info(
        "Scheduler started. Press Ctrl+C to stop",
        extra={"event": "service.daemon_mode.started"},
    )
    shutdown_event.wait()
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """
    Entry point for the jobwatch CLI.

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    load_dotenv()
    start_time = time.time()
    args = build_parser().parse_args(argv)

    try:
        app_config, env_config = load_runtime_config(args.config, args.log_level)
        configure_logging(
            level=env_config.log_level,
            format_type=app_config.logging.format,
            environment=env_config.environment,
        )

        logger.info(
            "jobwatch starting",
            extra={
                "event": "service.starting",
                "config_path": str(args.config) if args.config else None,
                "log_level": env_config.log_level,
                "site_count": len(app_config.sites),
                "enabled_site_count": len(app_config.get_enabled_sites()),
                "profile_count": len(app_config.profiles),
                "scan_interval_seconds": app_config.scan_interval_seconds,
            },
        )

        service = WorkflowService.from_config(app_config, env_config)

        try:
            if args.health_check:
                return run_health_check(service)
            if args.consolidate:
                return run_consolidation(service)
            if args.cleanup:
                return run_cleanup(service)
            if args.manual_run:
                return run_manual(service)
            return run_daemon(service, app_config.scan_interval_seconds)
        finally:
            close_database()
            logger.info(
                "jobwatch stopped",
                extra={
                    "event": "service.stopping",
                    "uptime_seconds": round(time.time() - start_time, 2),
                },
            )

    except ConfigurationError as e:
        print(f"Configuration Error: {e}", file=sys.stderr)
        return 1
    except PersistenceError as e:
        print(f"Database Error: {e}", file=sys.stderr)
        logger.error(
            f"Database error: {e}",
            extra={"event": "service.startup.failed", "error_type": type(e).__name__},
        )
        return 1
    except KeyboardInterrupt:
        print("\nShutdown requested by user", file=sys.stderr)
        return 0


if __name__ == "__main__":
    sys.exit(main())
