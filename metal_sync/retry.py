"""Retry with exponential backoff for async fetch operations."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, TypeVar

from .errors import classify, is_retryable

logger = logging.getLogger(__name__)

T = TypeVar("T")

SleepFn = Callable[[float], Awaitable[Any]]


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    base_delay_s: float = 1.0

    def __post_init__(self) -> None:
        if self.max_attempts < 0:
            raise ValueError("max_attempts must be >= 0")
        if self.base_delay_s < 0:
            raise ValueError("base_delay_s must be >= 0")


class RetryExecutor:
    """Run an operation up to ``max_attempts + 1`` times.

    Auth and rate-limit failures are raised on first occurrence; everything
    else is retried after ``base_delay_s * 2**attempt``. The executor holds
    only its policy, so one instance can serve concurrent calls.
    """

    def __init__(self, policy: RetryPolicy | None = None, sleep: SleepFn = asyncio.sleep) -> None:
        self.policy = policy or RetryPolicy()
        self._sleep = sleep

    def delay_for(self, attempt: int) -> float:
        return self.policy.base_delay_s * (2**attempt)

    async def execute_with_retry(
        self, operation: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any
    ) -> T:
        max_attempts = self.policy.max_attempts
        for attempt in range(max_attempts + 1):
            try:
                return await operation(*args, **kwargs)
            except Exception as exc:
                kind = classify(exc)
                if not is_retryable(exc):
                    logger.warning("Not retrying %s: %s", kind.value, exc)
                    raise
                if attempt == max_attempts:
                    logger.warning(
                        "Giving up after %d attempt(s) (%s): %s",
                        attempt + 1,
                        kind.value,
                        exc,
                    )
                    raise
                delay = self.delay_for(attempt)
                logger.warning(
                    "Attempt %d/%d failed (%s), retrying in %.1fs: %s",
                    attempt + 1,
                    max_attempts + 1,
                    kind.value,
                    delay,
                    exc,
                )
                await self._sleep(delay)
        raise RuntimeError("Retry loop exited without a result")


__all__ = ["RetryExecutor", "RetryPolicy"]
