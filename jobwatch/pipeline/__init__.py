"""Workflow execution: the executor, its run state and the execution report.

The composing service lives in ``jobwatch.pipeline.service``.
"""

from .executor import WorkflowExecutor, new_execution_id
from .models import ErrorLogEntry, ExecutionReport, RunStatus, UnitResult

__all__ = [
    "WorkflowExecutor",
    "new_execution_id",
    "ExecutionReport",
    "ErrorLogEntry",
    "RunStatus",
    "UnitResult",
]
