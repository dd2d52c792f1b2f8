"""Error context captured when a query fails.

The executor and the error-handling decorator use this to attach a trace id,
the structured error details and any call-site values (query kind, database)
to a single log record.
"""

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from types import TracebackType
from typing import Any
from uuid import uuid4

from .base import ApplicationError

logger = logging.getLogger(__name__)


@dataclass
class ErrorContext:
    """One failure and the values recorded around it."""

    error: Exception
    trace_id: str = field(default_factory=lambda: str(uuid4()))
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
    context: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def capture(cls, error: Exception, trace_id: str | None = None, **context: Any) -> "ErrorContext":
        if trace_id is None:
            return cls(error, context=context)
        return cls(error, trace_id=trace_id, context=context)

    @property
    def neo4j_code(self) -> str | None:
        """Server status code of a driver error, e.g. ``Neo.ClientError.Statement.SyntaxError``."""
        if isinstance(self.error, ApplicationError):
            return None
        code = getattr(self.error, "code", None)
        return None if code is None else str(code)

    def to_dict(self) -> dict[str, Any]:
        """Flatten into log fields; details and context keys are prefixed."""
        fields: dict[str, Any] = {
            "error_type": type(self.error).__name__,
            "error_message": str(self.error),
            "trace_id": self.trace_id,
            "timestamp": self.timestamp.isoformat(),
        }
        if isinstance(self.error, ApplicationError):
            fields["error_code"] = self.error.code.value
            fields["error_level"] = self.error.level.value
            fields.update({f"details.{key}": value for key, value in self.error.details.model_dump().items()})
        elif self.neo4j_code is not None:
            fields["neo4j_code"] = self.neo4j_code

        fields.update({f"context.{key}": value for key, value in self.context.items()})
        return fields


class ErrorContextManager:
    """Captures the context of one error for the duration of a ``with`` block.

    Usable with both ``with`` and ``async with``. A failure raised while the
    block handles the error is logged, never suppressed.
    """

    def __init__(self, error: Exception | None = None, **context: Any) -> None:
        self._error = error
        self._context = context
        self._captured: dict[str, ErrorContext] = {}

    def _enter(self) -> ErrorContext:
        if self._error is None:
            raise ValueError("No error provided for context")
        captured = ErrorContext.capture(self._error, **self._context)
        self._captured[captured.trace_id] = captured
        return captured

    @staticmethod
    def _exit(exc_val: BaseException | None, exc_tb: TracebackType | None) -> None:
        if exc_val is not None:
            logger.error(
                "Exception during error context handling: %s: %s",
                type(exc_val).__name__,
                exc_val,
                exc_info=(type(exc_val), exc_val, exc_tb),
            )

    def __enter__(self) -> ErrorContext:
        return self._enter()

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self._exit(exc_val, exc_tb)

    async def __aenter__(self) -> ErrorContext:
        return self._enter()

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self._exit(exc_val, exc_tb)

    def get_context(self, trace_id: str) -> ErrorContext | None:
        return self._captured.get(trace_id)
