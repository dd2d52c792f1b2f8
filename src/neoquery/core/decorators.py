"""Error handling decorators"""

import inspect
from collections.abc import Awaitable, Callable
from functools import wraps
from typing import Any, ParamSpec, Protocol, TypeVar, cast

from .base import ApplicationError, ErrorLevel
from .error_context import ErrorContext, ErrorContextManager
from .logging import get_logger

logger = get_logger(__name__)
P = ParamSpec("P")
T = TypeVar("T")


class ErrorHandlerProtocol(Protocol):
    """Receives errors instead of the default log call"""

    async def handle_async(self, error: Exception, level: ErrorLevel, context: dict[str, Any]) -> None: ...

    def handle_sync(self, error: Exception, level: ErrorLevel, context: dict[str, Any]) -> None: ...


def _level_for(error: Exception, default: ErrorLevel) -> ErrorLevel:
    return error.level if isinstance(error, ApplicationError) else default


def _payload(func: Callable[..., Any], ctx: ErrorContext) -> dict[str, Any]:
    return {"function": func.__name__, "error_context": ctx.to_dict()}


def _log(func: Callable[..., Any], error: Exception, level: ErrorLevel, payload: dict[str, Any]) -> None:
    logger.log(level.to_logging_level(), f"Error in {func.__name__}: {error!s}", extra=payload, exc_info=True)


def with_error_handling(
    error_level: ErrorLevel = ErrorLevel.ERROR,
    reraise: bool = True,
    error_handler: ErrorHandlerProtocol | None = None,
) -> Callable[[Callable[P, T]], Callable[P, T]]:
    """Log failures of the decorated function with their error context.

    The exception that reaches the caller is always the original one.

    Args:
        error_level: Level for errors that are not ApplicationErrors
        reraise: Re-raise after logging; when False the call returns None
        error_handler: Receives the error instead of the default log call

    Returns:
        Decorated function with the original signature
    """

    def decorator(func: Callable[P, T]) -> Callable[P, T]:
        signature = inspect.signature(func)

        if inspect.iscoroutinefunction(func):

            @wraps(func)
            async def async_wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
                try:
                    return await cast("Callable[P, Awaitable[T]]", func)(*args, **kwargs)
                except Exception as e:
                    level = _level_for(e, error_level)
                    async with ErrorContextManager(e) as ctx:
                        payload = _payload(func, ctx)
                        if error_handler:
                            await error_handler.handle_async(e, level, payload)
                        else:
                            _log(func, e, level, payload)
                    if reraise:
                        raise
                    return cast("T", None)

            async_wrapper.__signature__ = signature  # type: ignore[attr-defined]
            return cast("Callable[P, T]", async_wrapper)

        @wraps(func)
        def sync_wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            try:
                return func(*args, **kwargs)
            except Exception as e:
                level = _level_for(e, error_level)
                with ErrorContextManager(e) as ctx:
                    payload = _payload(func, ctx)
                    if error_handler:
                        error_handler.handle_sync(e, level, payload)
                    else:
                        _log(func, e, level, payload)
                if reraise:
                    raise
                return cast("T", None)

        sync_wrapper.__signature__ = signature  # type: ignore[attr-defined]
        return cast("Callable[P, T]", sync_wrapper)

    return decorator
