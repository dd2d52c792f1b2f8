"""Error base classes, codes and structured details"""

import logging
from datetime import datetime
from enum import Enum
from typing import Any, ClassVar, Self

from logfire.integrations.pydantic import PluginSettings
from pydantic import BaseModel, Field, field_serializer


class ErrorLevel(str, Enum):
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"

    def to_logging_level(self) -> int:
        return logging.getLevelNamesMapping()[self.name]


class ErrorCode(str, Enum):
    """Error codes for the query builder."""

    # General (1xxx)
    UNKNOWN = "1000"
    INVALID_INPUT = "1002"
    PROCESSING_FAILED = "1004"

    # Query construction (7xxx)
    QUERY_STATE = "7001"
    UNKNOWN_ALIAS = "7002"
    PARAM_COLLISION = "7003"
    CONDITION_SYNTAX = "7004"


class ErrorDetails(BaseModel, plugin_settings=PluginSettings(logfire={"record": "all"})):
    """Structured details attached to every ApplicationError"""

    source: str = Field(description="Component where the error occurred")
    operation: str = Field(description="Operation being performed when the error occurred")
    timestamp: datetime = Field(default_factory=datetime.now, description="When the error occurred")

    @field_serializer("timestamp")
    def serialize_timestamp(self, timestamp: datetime) -> str:
        return timestamp.isoformat()


class QueryBuilderErrorDetails(ErrorDetails):
    """Details for errors raised while a query is being assembled"""

    state: str | None = Field(None, description="Builder, statement or condition state at the time of the call")
    valid_next: list[str] = Field(default_factory=list, description="Operations that were legal instead")
    alias: str | None = Field(None, description="Alias involved in the failure")
    key: str | None = Field(None, description="Parameter key involved in the failure")


class ApplicationError(Exception):
    """Base class for all neoquery errors.

    ``details`` may be given as a model or as a plain dict; a dict is
    validated into ``details_model`` with ``default_source`` filling in a
    missing ``source``.
    """

    details_model: ClassVar[type[ErrorDetails]] = ErrorDetails
    default_source: ClassVar[str] = "unknown"

    def __init__(
        self,
        message: str,
        code: ErrorCode,
        level: ErrorLevel = ErrorLevel.ERROR,
        details: ErrorDetails | dict[str, Any] | None = None,
    ):
        self.message = message
        self.code = code
        self.level = level
        self.details = self._coerce_details(details)
        super().__init__(message)

    @classmethod
    def _coerce_details(cls, details: ErrorDetails | dict[str, Any] | None) -> ErrorDetails:
        if isinstance(details, ErrorDetails):
            return details
        fields = {"source": cls.default_source, "operation": "unknown", **(details or {})}
        return cls.details_model(**fields)

    @classmethod
    def with_details(cls, message: str, details: ErrorDetails, **kwargs: Any) -> Self:
        """Create an error with a specific details model"""
        return cls(message=message, details=details, **kwargs)
