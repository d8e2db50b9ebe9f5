"""Periodic scheduling of workflow runs."""

from .service import SchedulerService

__all__ = [
    "SchedulerService",
]
