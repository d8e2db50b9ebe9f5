"""Shared pytest fixtures."""

import pytest

from jobwatch.logging.context import clear_log_context
from jobwatch.persistence import SqlPersistenceStore, close_database


@pytest.fixture
def store():
    """SqlPersistenceStore over a fresh in-memory SQLite database."""
    sql_store = SqlPersistenceStore("sqlite:///:memory:")
    yield sql_store
    close_database()


@pytest.fixture(autouse=True)
def _reset_log_context():
    yield
    clear_log_context()
