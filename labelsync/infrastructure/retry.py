"""Shared retry policy built on ``backoff``.

One policy object is configured from settings and injected into the catalog
connector (transient HTTP failures) and the album writer (transient database
failures), so retry behaviour is the same everywhere.
"""

from collections.abc import Awaitable, Callable
from typing import Any

from attrs import define, field
import backoff

from labelsync.config import get_logger, settings

logger = get_logger(__name__)


@define(frozen=True, slots=True)
class RetryPolicy:
    """Exponential backoff with optional full jitter.

    Attributes:
        max_attempts: Total tries including the first one
        base_delay: Multiplier for the exponential wait (seconds)
        max_delay: Upper bound for a single wait (seconds)
        jitter: Apply full jitter to each wait
    """

    max_attempts: int = 3
    base_delay: float = 0.5
    max_delay: float = 30.0
    jitter: bool = True
    logger_instance: Any = field(
        factory=lambda: logger, eq=False, repr=False
    )

    @classmethod
    def from_settings(cls) -> "RetryPolicy":
        """Build the policy from ``settings.retry``."""
        return cls(
            max_attempts=settings.retry.max_attempts,
            base_delay=settings.retry.base_delay,
            max_delay=settings.retry.max_delay,
            jitter=settings.retry.jitter,
        )

    def _on_backoff(self, details):
        """Log backoff event."""
        self.logger_instance.warning(
            f"Backing off {details['target'].__name__} (attempt {details['tries']})",
            retry_delay=f"{details['wait']:.2f}s",
            error=str(details.get("exception", "")),
        )

    def _on_giveup(self, details):
        """Log when we give up retrying."""
        self.logger_instance.error(
            f"Giving up on {details['target'].__name__} after {details['tries']} attempts",
            elapsed=f"{details['elapsed']:.2f}s",
            error=str(details.get("exception", "")),
        )

    def decorate[**P, R](
        self,
        *exceptions: type[BaseException],
    ) -> Callable[[Callable[P, Awaitable[R]]], Callable[P, Awaitable[R]]]:
        """Return a backoff decorator retrying on ``exceptions``."""
        return backoff.on_exception(
            backoff.expo,
            exceptions,
            max_tries=self.max_attempts,
            max_time=None,
            factor=self.base_delay,
            max_value=self.max_delay,
            jitter=backoff.full_jitter if self.jitter else None,
            on_backoff=self._on_backoff,
            on_giveup=self._on_giveup,
        )

    async def run[**P, R](
        self,
        retry_on: tuple[type[BaseException], ...],
        func: Callable[P, Awaitable[R]],
        *args: P.args,
        **kwargs: P.kwargs,
    ) -> R:
        """Call ``func`` under this policy."""
        return await self.decorate(*retry_on)(func)(*args, **kwargs)
