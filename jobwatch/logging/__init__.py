"""Structured logging helpers shared by every jobwatch component."""

import logging
from typing import Optional, Union


class ComponentLoggerAdapter(logging.LoggerAdapter):
    """LoggerAdapter that tags records with a component name.

    Fields passed through ``extra`` on the individual call win over the
    adapter defaults, so a call site can still override ``component``.
    """

    def process(self, msg, kwargs):
        call_extra = kwargs.get("extra") or {}
        kwargs["extra"] = {**self.extra, **call_extra}
        return msg, kwargs


def get_logger(
    name: str, component: Optional[str] = None
) -> Union[logging.Logger, ComponentLoggerAdapter]:
    """Return a logger for ``name``, optionally bound to a component.

    Args:
        name: Logger name (normally ``__name__``)
        component: Component label added to every record (e.g. "executor")

    Returns:
        Plain logger when no component is given, otherwise a ComponentLoggerAdapter

    Example:
        >>> logger = get_logger(__name__, component="retry")
        >>> logger.warning("Attempt failed", extra={"event": "retry.attempt.failed"})
    """
    logger = logging.getLogger(name)
    if component:
        return ComponentLoggerAdapter(logger, {"component": component})
    return logger
