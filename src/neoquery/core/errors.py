"""Errors raised while assembling a query.

All of these are programmer errors: they are raised at the offending call and
are never retried or swallowed. Errors from the database driver are not
wrapped; they reach the caller as the driver raised them.
"""

from .base import ApplicationError, ErrorCode, ErrorDetails, ErrorLevel, QueryBuilderErrorDetails


class QueryConstructionError(ApplicationError):
    """Base class for query construction errors."""

    code: ErrorCode = ErrorCode.PROCESSING_FAILED
    details_model = QueryBuilderErrorDetails
    default_source = "query_builder"

    def __init__(self, message: str, details: ErrorDetails | dict | None = None):
        super().__init__(message=message, code=self.code, level=ErrorLevel.ERROR, details=details)


class StateError(QueryConstructionError):
    """An operation is illegal for the current builder or statement state."""

    code = ErrorCode.QUERY_STATE


class UnknownAliasError(QueryConstructionError):
    """A reference names an alias that was never registered, or is out of scope."""

    code = ErrorCode.UNKNOWN_ALIAS


class ParamCollisionError(QueryConstructionError):
    """Two values were written under the same parameter key."""

    code = ErrorCode.PARAM_COLLISION


class ConditionSyntaxError(QueryConstructionError):
    """A condition tree was misused: a dangling joiner, two joiners in a row, or an empty tree."""

    code = ErrorCode.CONDITION_SYNTAX
