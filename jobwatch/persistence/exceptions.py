"""Persistence layer exceptions.

Every SQLAlchemy error raised inside the persistence layer is wrapped into
one of these, so callers only need to catch PersistenceError.
"""


class PersistenceError(Exception):
    """Base exception for all persistence layer errors."""

    pass


class DatabaseConnectionError(PersistenceError):
    """The database could not be reached or was never initialized.

    Examples:
    - Invalid database URL
    - Database file not accessible
    - init_database() not called before use
    """

    pass


class RecordNotFoundError(PersistenceError):
    """An operation required a record that does not exist.

    Optional lookups return None instead of raising this.
    """

    pass


class DataIntegrityError(PersistenceError):
    """A constraint was violated (primary key, unique or foreign key)."""

    pass
