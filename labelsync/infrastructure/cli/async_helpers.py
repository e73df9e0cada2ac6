"""Async helpers for CLI commands."""

import asyncio
from collections.abc import Awaitable, Callable, Coroutine, Iterator
from contextlib import contextmanager
from functools import wraps
import signal
from typing import Any, cast

from labelsync.config import get_logger
from labelsync.domain.entities import CancellationToken
from labelsync.infrastructure.cli.ui import command_error_handler

logger = get_logger(__name__)


def interactive_async_operation() -> Callable[
    [Callable[..., Awaitable[Any]]], Callable[..., Any]
]:
    """Decorator running an async command body under ``asyncio.run``.

    Errors go through ``command_error_handler`` so every command exits the
    same way.
    """

    def decorator(func: Callable[..., Awaitable[Any]]) -> Callable[..., Any]:
        @command_error_handler
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            coro = func(*args, **kwargs)
            return asyncio.run(cast("Coroutine[Any, Any, Any]", coro))

        return wrapper

    return decorator


@contextmanager
def cancel_on_sigint(token: CancellationToken) -> Iterator[CancellationToken]:
    """Trip ``token`` on Ctrl+C instead of killing the run mid-album.

    Must be entered inside a running event loop.
    """
    loop = asyncio.get_running_loop()
    installed = False
    try:
        loop.add_signal_handler(
            signal.SIGINT, token.cancel, "interrupted by operator (SIGINT)"
        )
        installed = True
    except (NotImplementedError, RuntimeError, ValueError):
        logger.debug("SIGINT handler unavailable; Ctrl+C will abort immediately")

    try:
        yield token
    finally:
        if installed:
            loop.remove_signal_handler(signal.SIGINT)
