"""Retry policy for GitHub calls.

Only transport failures and rate limits are ever retried.  Non-idempotent
calls (creating a review, submitting it, posting a comment) are retried only
when the failure proves the request never reached GitHub; otherwise a retry
could create a duplicate review or double-submit a pending one.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable, Coroutine
from dataclasses import dataclass
from typing import Any, TypeVar

from pinpoint.core.config import Settings
from pinpoint.core.exceptions import GitHubRateLimitError, GitHubTransportError
from pinpoint.core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

RETRYABLE: tuple[type[Exception], ...] = (GitHubTransportError, GitHubRateLimitError)


def never_landed(exc: Exception) -> bool:
    """True when a failed request provably had no effect on the server."""
    if isinstance(exc, GitHubRateLimitError):
        return True
    return isinstance(exc, GitHubTransportError) and not exc.may_have_landed


@dataclass(frozen=True)
class RetryPolicy:
    """Exponential backoff bounded by ``max_retries`` and ``max_delay``."""

    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0

    @classmethod
    def from_settings(cls, settings: Settings) -> RetryPolicy:
        return cls(
            max_retries=settings.max_retries,
            base_delay=settings.retry_base_delay,
            max_delay=settings.retry_max_delay,
        )

    def delay_for(self, attempt: int, exc: Exception, now: float | None = None) -> float | None:
        """Seconds to wait before the next attempt, or None to give up.

        A rate limit with a known reset time waits until the reset; when the
        reset is further away than ``max_delay`` the error is raised as is.
        """
        backoff = min(self.base_delay * (2**attempt), self.max_delay)
        if isinstance(exc, GitHubRateLimitError) and exc.reset_at is not None:
            wait = exc.reset_at - (time.time() if now is None else now)
            if wait > self.max_delay:
                return None
            return max(wait, backoff)
        return backoff

    async def call(
        self,
        func: Callable[..., Coroutine[Any, Any, T]],
        *args: Any,
        idempotent: bool = True,
        **kwargs: Any,
    ) -> T:
        """Await ``func(*args, **kwargs)``, retrying retryable GitHub failures.

        Raises:
            The last error once retries are exhausted, or immediately for a
            non-idempotent call whose request may have reached GitHub.
        """
        attempt = 0
        while True:
            try:
                return await func(*args, **kwargs)
            except RETRYABLE as e:
                if not idempotent and not never_landed(e):
                    logger.warning("retry_refused", function=func.__name__, attempt=attempt + 1, error=str(e))
                    raise

                delay = self.delay_for(attempt, e) if attempt < self.max_retries else None
                if delay is None:
                    logger.error("retry_exhausted", function=func.__name__, attempts=attempt + 1, error=str(e))
                    raise

                logger.warning(
                    "retrying",
                    function=func.__name__,
                    attempt=attempt + 1,
                    max_retries=self.max_retries,
                    delay=delay,
                    error=str(e),
                )
                await asyncio.sleep(delay)
                attempt += 1
