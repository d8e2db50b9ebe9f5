"""Scoped logging context.

Fields pushed here (``execution_id``, ``profile_id``, ``site``...) are copied
onto every record emitted in the same context by ``ContextualFilter``. The
storage is a ``ContextVar``. Pool threads do not inherit it, so the
executor binds run and unit fields inside each worker.
"""

from contextvars import ContextVar, Token
from typing import Any, Dict, Optional

_log_context: ContextVar[Dict[str, Any]] = ContextVar("jobwatch_log_context", default={})


def get_log_context() -> Dict[str, Any]:
    """Return a copy of the active context fields."""
    return dict(_log_context.get())


def push_log_context(**fields: Any) -> Token:
    """Merge ``fields`` into the active context.

    Args:
        **fields: Context fields to add or override

    Returns:
        Token to hand back to pop_log_context()
    """
    merged = {**_log_context.get(), **fields}
    return _log_context.set(merged)


def pop_log_context(token: Token) -> None:
    """Restore the context that was active before the matching push."""
    _log_context.reset(token)


def clear_log_context() -> None:
    """Drop every context field. Mostly useful in tests."""
    _log_context.set({})


class log_context:
    """Context manager pushing fields for the duration of a block.

    Example:
        >>> with log_context(execution_id="exec_1", site="acme"):
        ...     logger.info("Scraping site")
    """

    def __init__(self, **fields: Any):
        self.fields = fields
        self.token: Optional[Token] = None

    def __enter__(self):
        self.token = push_log_context(**self.fields)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.token is not None:
            pop_log_context(self.token)
            self.token = None
        return False
