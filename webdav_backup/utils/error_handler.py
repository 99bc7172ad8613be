"""Shared error-handling helpers.

Failures in best-effort persistence (config save, sync-log append) are logged
and turned into a default return value instead of propagating to callers.
"""

import functools
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import structlog

logger = structlog.get_logger()

T = TypeVar("T")


class ErrorHandler:
    """Standard log-and-continue patterns"""

    @staticmethod
    def log_and_return_default(
        operation_name: str, exception: Exception, default_value: T, **kwargs: Any
    ) -> T:
        logger.error(f"Failed to {operation_name}", error=str(exception), **kwargs)
        return default_value


def handle_errors(
    operation_name: str,
    default_return: Any = None,
    **log_kwargs: Any,
):
    """
    Decorator that logs exceptions raised by the wrapped coroutine function.

    Args:
        operation_name: operation name used in the log event
        default_return: value returned when an exception is swallowed
        **log_kwargs: extra fields added to the log event
    """

    def decorator(func: Callable[..., Awaitable[Any]]) -> Callable[..., Awaitable[Any]]:
        @functools.wraps(func)
        async def async_wrapper(*args, **kwargs):
            try:
                return await func(*args, **kwargs)
            except Exception as e:
                return ErrorHandler.log_and_return_default(
                    operation_name, e, default_return, **log_kwargs
                )

        return async_wrapper

    return decorator


def safe_with_default(operation_name: str, default_value: Any, **log_kwargs: Any):
    """Log failures and return ``default_value``"""
    return handle_errors(operation_name, default_return=default_value, **log_kwargs)
