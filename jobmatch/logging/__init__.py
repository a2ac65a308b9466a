"""Structured logging: component loggers, context propagation and formatters."""

import logging
from typing import Optional, Union

from .context import clear_log_context, current_run_id, get_log_context, log_context


class ComponentLoggerAdapter(logging.LoggerAdapter):
    """LoggerAdapter that stamps a component name and keeps per-call extras."""

    def process(self, msg, kwargs):
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return msg, kwargs


def get_logger(
    name: str, component: Optional[str] = None
) -> Union[logging.Logger, ComponentLoggerAdapter]:
    """Get a logger, optionally tagging every record with ``component``.

    Args:
        name: Logger name (typically __name__)
        component: Component identifier injected into all records

    Example:
        >>> logger = get_logger(__name__, component="distribution")
        >>> logger.info("Distributed matches", extra={"event": "distribution.completed"})
    """
    logger = logging.getLogger(name)
    if component:
        return ComponentLoggerAdapter(logger, {"component": component})
    return logger


__all__ = [
    "ComponentLoggerAdapter",
    "get_logger",
    "log_context",
    "get_log_context",
    "clear_log_context",
    "current_run_id",
]
