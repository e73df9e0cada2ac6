"""Loguru setup for labelsync.

Public API:
----------
setup_loguru_logger(verbose: bool = False) -> None
    Console handler on stderr, JSON file handler, stdlib bridge

get_logger(name: str) -> Logger
    Module logger bound with service context
    Usage: logger = get_logger(__name__)

run_context(label: str, dry_run: bool) -> ContextManager
    Tag every record emitted during one sync or reconcile run

log_startup_info() -> None
    Dump the active configuration, secrets masked

@resilient_operation(operation_name: str)
    Log and re-raise failures at a service boundary
    Usage: @resilient_operation("spotify_search_albums_by_label")
"""

from collections.abc import Iterator
from contextlib import contextmanager
import functools
import logging
from pathlib import Path
import sys
from typing import Any
import uuid

from loguru import logger

from .settings import settings

SERVICE_NAME = "labelsync"

# stdlib loggers of the libraries we drive, forwarded into loguru
BRIDGED_LOGGERS = ("spotipy", "urllib3", "aiosqlite")

CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{extra[module]}</cyan> - "
    "<level>{message}</level>"
)
VERBOSE_CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<magenta>{extra[run_id]}</magenta> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)


class _LoguruBridge(logging.Handler):
    """Forward stdlib log records to loguru, keeping the original logger name."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno
        logger.bind(module=record.name).opt(exception=record.exc_info).log(
            level, record.getMessage()
        )


def _bridge_library_logging(verbose: bool) -> None:
    handler = _LoguruBridge()
    for name in BRIDGED_LOGGERS:
        library_logger = logging.getLogger(name)
        library_logger.handlers = [handler]
        library_logger.propagate = False
        library_logger.setLevel(logging.DEBUG if verbose else logging.WARNING)


def setup_loguru_logger(verbose: bool = False) -> None:
    """Configure Loguru logger for the application.

    Console output goes to stderr so ``--format json`` stays pipeable.

    Args:
        verbose: Debug level, run IDs and full tracebacks on the console
    """
    logger.remove()
    logger.configure(extra={"service": SERVICE_NAME, "module": "root", "run_id": "-"})

    logger.add(
        sink=sys.stderr,
        level="DEBUG" if verbose else settings.logging.console_level,
        format=VERBOSE_CONSOLE_FORMAT if verbose else CONSOLE_FORMAT,
        colorize=True,
        backtrace=verbose,
        diagnose=verbose,
    )

    log_file_path = Path(settings.logging.log_file)
    log_file_path.parent.mkdir(parents=True, exist_ok=True)
    logger.add(
        sink=str(log_file_path),
        level=settings.logging.file_level,
        rotation="10 MB",
        retention="1 week",
        compression="zip",
        backtrace=True,
        diagnose=True,
        enqueue=not settings.logging.real_time_debug,
        catch=True,
        serialize=True,  # one JSON object per line
    )

    _bridge_library_logging(verbose)


def get_logger(name: str) -> Any:  # Use Any for Loguru logger type
    """Get a logger bound with module and service context.

    Args:
        name: Module name (typically __name__)
    """
    return logger.bind(module=name, service=SERVICE_NAME)


@contextmanager
def run_context(label: str, dry_run: bool = False) -> Iterator[str]:
    """Tag records from one run with its label and a short run ID.

    Example:
        >>> with run_context("Build It Deep") as run_id:
        ...     logger.info("Paginating")  # carries label and run_id
    """
    run_id = uuid.uuid4().hex[:8]
    with logger.contextualize(run_id=run_id, label=label, dry_run=dry_run):
        yield run_id


def log_startup_info() -> None:
    """Log the active configuration at debug level, credentials masked."""
    local_logger = get_logger(__name__)
    local_logger.info(f"{SERVICE_NAME} starting")

    for section_name, section_values in settings.model_dump().items():
        if not isinstance(section_values, dict):
            local_logger.debug("  {}: {}", section_name.upper(), section_values)
            continue
        local_logger.debug("  {}:", section_name.upper())
        for key, value in section_values.items():
            if "secret" in key and value:
                value = "********"
            local_logger.debug("    {}: {}", key.upper(), value)


def resilient_operation(operation_name=None):
    """Log a failed boundary call with its operation name, then re-raise.

    Callers keep control of the error policy; this only guarantees that
    every failure at the catalog or database edge leaves one log line.

    Example:
        >>> @resilient_operation("spotify_get_album_detail")
        >>> async def get_album_detail(self, external_id):
        >>>     ...
    """

    def decorator(func):
        op_name = operation_name or func.__name__

        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            try:
                return await func(*args, **kwargs)
            except Exception as e:
                logger.bind(service=SERVICE_NAME, module=func.__module__).warning(
                    f"Error in {op_name}: {e!s}",
                    operation=op_name,
                    error_type=type(e).__name__,
                )
                raise

        return wrapper

    return decorator
