"""structlog loggers routed through logfire.

Call ``setup_logging()`` once at startup; library code only calls
``get_logger(__name__)`` or the context-aware helpers.
"""

from .context import (
    clear_log_context,
    debug,
    error,
    get_log_context,
    info,
    log_with_context,
    scoped_log_context,
    set_log_context,
    update_log_context,
    warning,
)
from .setup import add_query_context, get_logger, setup_logging

__all__ = [
    "add_query_context",
    "clear_log_context",
    "debug",
    "error",
    "get_log_context",
    "get_logger",
    "info",
    "log_with_context",
    "scoped_log_context",
    "set_log_context",
    "setup_logging",
    "update_log_context",
    "warning",
]
