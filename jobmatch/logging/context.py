"""Context propagation for structured logging.

Fields pushed here (run_id, user_email, tier, ...) are attached to every log
record emitted inside the scope. Uses contextvars, so context is isolated per
thread and per task.
"""

from contextlib import contextmanager
from contextvars import ContextVar, Token
from typing import Any, Dict, Iterator, Optional

LogContextVar: ContextVar[Dict[str, Any]] = ContextVar("jobmatch_log_context", default={})


def get_log_context() -> Dict[str, Any]:
    """Return a copy of the active context fields."""
    return dict(LogContextVar.get())


def push_log_context(**fields: Any) -> Token:
    """Merge ``fields`` into the active context.

    Args:
        **fields: Key-value pairs to add; None values are ignored

    Returns:
        Token for ``pop_log_context``
    """
    merged = {**LogContextVar.get()}
    merged.update({key: value for key, value in fields.items() if value is not None})
    return LogContextVar.set(merged)


def pop_log_context(token: Token) -> None:
    """Restore the context captured by ``push_log_context``."""
    LogContextVar.reset(token)


def clear_log_context() -> None:
    """Drop all context fields (used by tests)."""
    LogContextVar.set({})


def current_run_id() -> Optional[str]:
    """The run_id of the enclosing matching run, if any."""
    return LogContextVar.get().get("run_id")


@contextmanager
def log_context(**fields: Any) -> Iterator[Dict[str, Any]]:
    """Scope log context fields to a ``with`` block.

    Example:
        >>> with log_context(run_id="r-1", user_email="ana@example.com"):
        ...     logger.info("Scoring candidates")
    """
    token = push_log_context(**fields)
    try:
        yield get_log_context()
    finally:
        pop_log_context(token)
