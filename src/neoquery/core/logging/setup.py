"""structlog + logfire configuration.

Logfire reads its own settings (LOGFIRE_TOKEN, LOGFIRE_SERVICE_NAME,
LOGFIRE_ENVIRONMENT) or is configured by the host application with
``logfire.configure()``; this module only wires the processor chain.
"""

import logging
import sys

import logfire
import structlog
from structlog.processors import CallsiteParameter, CallsiteParameterAdder
from structlog.types import EventDict, Processor, WrappedLogger
from structlog.typing import FilteringBoundLogger

from neoquery.core.config import settings


def add_query_context(
    _logger: WrappedLogger,
    _method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Name the error type and redact query parameter values.

    Parameter values are replaced by their sorted keys unless
    ``settings.log_query_params`` is enabled.
    """
    if "error" in event_dict:
        event_dict["error_type"] = type(event_dict["error"]).__name__

    extra = event_dict.get("extra")
    if not settings.log_query_params and isinstance(extra, dict) and "params" in extra:
        params = extra["params"]
        event_dict["extra"] = {**extra, "params": sorted(params) if isinstance(params, dict) else "<redacted>"}

    return event_dict


def _shared_processors() -> list[Processor]:
    """Processors applied to both structlog and stdlib records."""
    return [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        CallsiteParameterAdder(
            parameters=[
                CallsiteParameter.FILENAME,
                CallsiteParameter.LINENO,
                CallsiteParameter.FUNC_NAME,
            ]
        ),
        add_query_context,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
    ]


def setup_logging(level: str | None = None, *, colors: bool | None = None) -> None:
    """Configure structlog, logfire and the stdlib root logger.

    Args:
        level: Level name; defaults to ``settings.log_level``
        colors: Colored console output; defaults to whether stdout is a TTY
    """
    log_level = logging.getLevelNamesMapping()[(level or settings.log_level).upper()]
    use_colors = sys.stdout.isatty() if colors is None else colors

    structlog.configure(
        processors=[
            *_shared_processors(),
            # Must run before the renderer turns the event into a string
            logfire.StructlogProcessor(),
            structlog.dev.ConsoleRenderer(colors=use_colors),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        # PrintLogger avoids double output through the stdlib handler
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # The neo4j driver logs through the stdlib
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=structlog.dev.ConsoleRenderer(colors=use_colors),
            foreign_pre_chain=_shared_processors(),
        )
    )
    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(log_level)


def get_logger(name: str | None = None) -> FilteringBoundLogger:
    """Return a structlog logger; configuration is applied lazily on first use."""
    return structlog.get_logger(name)
