"""Repository decorator for standardizing DB operations.

Wraps repository methods with trace logging, timing and classified error
logging. Errors are always re-raised; the decorator only adds context.
Operations slower than ``SLOW_OPERATION_MS`` are logged at warning level,
which is usually the first sign of SQLite lock contention.
"""

import asyncio
from collections.abc import Callable, Coroutine
import functools
import time
from typing import Any, ParamSpec, TypeVar

from sqlalchemy.exc import (
    DatabaseError,
    IntegrityError,
    MultipleResultsFound,
    NoResultFound,
    OperationalError,
    SQLAlchemyError,
)

from labelsync.config import get_logger

P = ParamSpec("P")
T = TypeVar("T")

logger = get_logger(__name__)

SLOW_OPERATION_MS = 1000.0

# (exception type, log level, message prefix), checked in order
_ERROR_LEVELS: tuple[tuple[type[BaseException], str, str], ...] = (
    (NoResultFound, "DEBUG", "DB record not found"),
    (MultipleResultsFound, "WARNING", "Multiple results found"),
    (IntegrityError, "WARNING", "DB integrity error"),
    (OperationalError, "ERROR", "DB operational error"),
    (DatabaseError, "ERROR", "DB error"),
    (SQLAlchemyError, "ERROR", "SQLAlchemy error"),
)


def db_operation(operation_name: str | None = None):
    """Decorate repository methods with consistent logging and error handling.

    Args:
        operation_name: Optional name for the operation (defaults to function name)

    Example:
        @db_operation("find_release_by_external_id")
        async def find_by_external_id(self, external_id: str) -> Release | None:
            ...
    """

    def decorator(
        func: Callable[P, Coroutine[Any, Any, T]],
    ) -> Callable[P, Coroutine[Any, Any, T]]:
        func_name = operation_name or func.__name__

        if not asyncio.iscoroutinefunction(func):
            raise TypeError(
                f"db_operation can only be used with async functions, but {func_name} is not async",
            )

        @functools.wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            repo_name = args[0].__class__.__name__ if args else "Repository"
            qualified = f"{repo_name}.{func_name}"
            context = _build_log_context(args[1:], kwargs)
            start_time = time.perf_counter()

            try:
                result = await func(*args, **kwargs)
            except SQLAlchemyError as e:
                level, prefix = _classify(e)
                logger.log(
                    level,
                    f"{prefix}: {qualified}",
                    operation=func_name,
                    error=str(e),
                    exec_time_ms=_elapsed_ms(start_time),
                    **context,
                )
                raise

            exec_time = _elapsed_ms(start_time)
            if exec_time > SLOW_OPERATION_MS:
                logger.warning(
                    f"Slow DB operation: {qualified}",
                    operation=func_name,
                    exec_time_ms=exec_time,
                    **context,
                )
            else:
                logger.trace(
                    f"DB operation completed: {qualified}",
                    operation=func_name,
                    exec_time_ms=exec_time,
                    **context,
                )
            return result

        return wrapper

    return decorator


def _classify(error: SQLAlchemyError) -> tuple[str, str]:
    return next(
        (level, prefix)
        for exc_type, level, prefix in _ERROR_LEVELS
        if isinstance(error, exc_type)
    )


def _elapsed_ms(start_time: float) -> float:
    return (time.perf_counter() - start_time) * 1000


def _build_log_context(args: tuple[Any, ...], kwargs: dict[str, Any]) -> dict[str, Any]:
    """Loggable scalars from the call: leading row IDs plus simple kwargs."""
    context: dict[str, Any] = {}
    row_ids = [a for a in args if isinstance(a, int) and not isinstance(a, bool)]
    if row_ids:
        context["row_ids"] = row_ids
    context.update(
        (k, v)
        for k, v in kwargs.items()
        if not k.startswith("_")
        and k not in {"operation", "message"}
        and isinstance(v, int | str | float | bool)
    )
    return context
