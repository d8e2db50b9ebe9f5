"""Persistence layer: SQLAlchemy schema, repositories and the store."""

from .database import close_database, get_engine, get_session, init_database
from .exceptions import (
    DataIntegrityError,
    DatabaseConnectionError,
    PersistenceError,
    RecordNotFoundError,
)
from .repositories import ExecutionRunRepository, JobMatchRepository, WorkflowStateRepository
from .store import PersistenceStore, SqlPersistenceStore

__all__ = [
    "init_database",
    "get_session",
    "get_engine",
    "close_database",
    "PersistenceError",
    "DatabaseConnectionError",
    "RecordNotFoundError",
    "DataIntegrityError",
    "JobMatchRepository",
    "WorkflowStateRepository",
    "ExecutionRunRepository",
    "PersistenceStore",
    "SqlPersistenceStore",
]
