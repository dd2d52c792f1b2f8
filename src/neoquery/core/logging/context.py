"""Request-scoped logging context.

Values stored here (a ``ContextVar``) are bound onto every record emitted
through :func:`log_with_context` and the level helpers below, so a caller can
tag all queries of one request with e.g. a request id.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from functools import partial
from typing import Any

from .setup import get_logger

logger = get_logger(__name__)

_log_context: ContextVar[dict[str, Any] | None] = ContextVar("log_context", default=None)


def get_log_context() -> dict[str, Any]:
    """Return a copy of the current context."""
    return dict(_log_context.get() or {})


def set_log_context(context: dict[str, Any]) -> None:
    _log_context.set(dict(context))


def update_log_context(key: str, value: Any) -> None:
    _log_context.set({**get_log_context(), key: value})


def clear_log_context() -> None:
    _log_context.set({})


@contextmanager
def scoped_log_context(**values: Any) -> Iterator[dict[str, Any]]:
    """Add ``values`` to the context for the duration of the block.

    Yields:
        The merged context
    """
    merged = {**get_log_context(), **values}
    token = _log_context.set(merged)
    try:
        yield dict(merged)
    finally:
        _log_context.reset(token)


def log_with_context(
    level: str,
    message: str,
    extra: dict[str, Any] | None = None,
    logger_name: str | None = None,
) -> None:
    """Log ``message`` at ``level`` with the current context and ``extra`` bound.

    Args:
        level: Level name (debug, info, warning, error, critical)
        message: Event text
        extra: Fields for this record only; they win over context values
        logger_name: Logger to emit on instead of this module's
    """
    target = get_logger(logger_name) if logger_name else logger
    fields = {**get_log_context(), **(extra or {})}
    getattr(target.bind(**fields), level.lower())(message)


debug = partial(log_with_context, "debug")
info = partial(log_with_context, "info")
warning = partial(log_with_context, "warning")
error = partial(log_with_context, "error")
