"""Shared retry policy for outbound HTTP calls.

One parameterized policy replaces per-caller retry loops: a maximum
number of additional attempts, a linear backoff schedule and a
predicate deciding which failures are transient.  Non-transient errors
are re-raised immediately.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from hoho.protocol.errors import BackendError, BackendTimeout

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Upstream statuses worth another attempt
TRANSIENT_STATUS_CODES: frozenset[int] = frozenset({502, 503, 504})


def is_transient(exc: Exception) -> bool:
    """Default retry predicate.

    Transient: timeouts, gateway/unavailable statuses, and failures that
    never produced a response (connection refused, reset).
    """
    if isinstance(exc, BackendTimeout):
        return True
    if isinstance(exc, BackendError):
        if exc.permanent:
            return False
        return exc.status_code is None or exc.status_code in TRANSIENT_STATUS_CODES
    return False


@dataclass(frozen=True)
class RetryPolicy:
    """Retry with linear backoff: the *n*-th retry waits ``n * base_delay``."""

    max_retries: int = 2
    base_delay: float = 1.0

    def delay_for(self, retry: int) -> float:
        """Seconds to wait before retry number *retry* (1-based)."""
        return retry * self.base_delay

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        *,
        is_retryable: Callable[[Exception], bool] = is_transient,
        name: str = "operation",
    ) -> T:
        """Await *operation* until it succeeds or the policy gives up.

        Raises:
            Exception: The last error from *operation*.
        """
        attempt = 1
        while True:
            try:
                return await operation()
            except Exception as exc:
                if not is_retryable(exc):
                    raise
                if attempt >= self.max_attempts:
                    logger.warning(
                        "%s failed after %d attempts: %s", name, attempt, exc
                    )
                    raise
                delay = self.delay_for(attempt)
                logger.debug(
                    "%s attempt %d/%d failed (%s), retrying in %.2fs",
                    name,
                    attempt,
                    self.max_attempts,
                    exc,
                    delay,
                )
                await asyncio.sleep(delay)
                attempt += 1
