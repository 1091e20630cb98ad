"""Refresh orchestration: fetch with retry, cache on success, fall back on failure."""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Iterable

from .cache import CacheStore
from .clock import Clock, SystemClock
from .errors import classify, get_error_info
from .models.results import Failed, Fresh, Stale, SyncBatch, SyncResult
from .retry import RetryExecutor
from .scheduler import DEFAULT_FREQUENCY_S, AdaptiveScheduler, PollingScheduler

logger = logging.getLogger(__name__)

DEFAULT_FALLBACK_MAX_AGE_S = 10 * 60
DEFAULT_KEY_PREFIX = "metal_prices:"

FetchFn = Callable[[str], Awaitable[Any]]
ResultCallback = Callable[[SyncBatch], object]


class SyncOrchestrator:
    """Ties the scheduler, retry executor and cache together.

    Each refresh fetches every item independently; one item failing never
    discards data for the others. Ticks that arrive while a refresh is still
    running are dropped. After `stop()`, a refresh that was already running
    neither writes to the cache nor reaches the callback.
    """

    def __init__(
        self,
        fetch: FetchFn,
        items: Iterable[str],
        *,
        cache: CacheStore,
        scheduler: PollingScheduler,
        retry: RetryExecutor | None = None,
        clock: Clock | None = None,
        max_age_s: float = DEFAULT_FALLBACK_MAX_AGE_S,
        key_prefix: str = DEFAULT_KEY_PREFIX,
    ) -> None:
        self.fetch = fetch
        self.items = list(dict.fromkeys(items))
        self.cache = cache
        self.scheduler = scheduler
        self.retry = retry or RetryExecutor()
        self.clock = clock or SystemClock()
        self.max_age_s = max_age_s
        self.key_prefix = key_prefix
        self.last_batch: SyncBatch | None = None
        self._callback: ResultCallback | None = None
        self._in_flight = False
        self._generation = 0
        self._tasks: set[asyncio.Task] = set()
        self.cache.manage(self.cache_key(item) for item in self.items)

    def cache_key(self, item: str) -> str:
        return f"{self.key_prefix}{item}"

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    # ── engine surface ────────────────────────────────────────────────────

    def start(self, callback: ResultCallback, frequency_s: float = DEFAULT_FREQUENCY_S) -> None:
        self._generation += 1
        self._callback = callback
        self.scheduler.start(self.tick, frequency_s)

    def stop(self) -> None:
        self._generation += 1
        self._callback = None
        self.scheduler.stop()

    def trigger(self) -> None:
        self.scheduler.trigger()

    def set_frequency(self, frequency_s: float) -> None:
        self.scheduler.set_frequency(frequency_s)

    def record_interaction(self) -> None:
        if isinstance(self.scheduler, AdaptiveScheduler):
            self.scheduler.record_interaction()

    def is_updating(self) -> bool:
        return self.scheduler.is_updating()

    async def clear_cache(self) -> None:
        await self.cache.clear()

    # ── refresh ───────────────────────────────────────────────────────────

    def tick(self) -> None:
        """Scheduler entry point: start a background refresh unless one is running."""
        if self._in_flight:
            logger.debug("Refresh already in flight; dropping tick")
            return
        task = asyncio.create_task(self.refresh())
        self._tasks.add(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Refresh task failed", exc_info=exc)

    async def wait_idle(self) -> None:
        """Wait for any refresh started by `tick` to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def refresh(self) -> SyncBatch | None:
        """Run one refresh cycle.

        Returns the batch, or ``None`` if the tick was dropped because another
        refresh was running or the engine was stopped meanwhile.
        """
        if self._in_flight:
            logger.debug("Refresh already in flight; skipping")
            return None
        self._in_flight = True
        generation = self._generation
        try:
            results = await asyncio.gather(
                *(self._refresh_item(item, generation) for item in self.items)
            )
        finally:
            self._in_flight = False

        if generation != self._generation:
            logger.info("Discarding refresh result from a stopped session")
            return None

        batch = SyncBatch(
            results={item: result for item, result in zip(self.items, results)},
            completed_at=self.clock.now(),
        )
        self.last_batch = batch
        logger.info(
            "Refresh complete: fresh=%d stale=%d failed=%d",
            len(batch.fresh),
            len(batch.stale),
            len(batch.failed),
        )
        await self._deliver(batch)
        return batch

    async def _refresh_item(self, item: str, generation: int) -> SyncResult:
        key = self.cache_key(item)
        try:
            payload = await self.retry.execute_with_retry(self.fetch, item)
        except Exception as exc:
            return await self._fallback(item, key, exc)

        if generation == self._generation:
            await self.cache.write(key, payload)
        return Fresh(key=item, payload=payload, timestamp=self.clock.now())

    async def _fallback(self, item: str, key: str, exc: Exception) -> SyncResult:
        kind = classify(exc)
        entry = await self.cache.read_entry(key, self.max_age_s)
        if entry is not None:
            age_s = entry.age_s(self.clock.now())
            logger.warning(
                "Serving cached %s (age=%.0fs) after %s: %s", item, age_s, kind.value, exc
            )
            return Stale(key=item, payload=entry.payload, age_s=age_s, reason=kind)
        logger.error("No cached %s available after %s: %s", item, kind.value, exc)
        message = str(exc) or get_error_info(exc).message
        return Failed(key=item, kind=kind, message=message)

    async def _deliver(self, batch: SyncBatch) -> None:
        callback = self._callback
        if callback is None:
            return
        try:
            result = callback(batch)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("Result callback failed")


__all__ = ["DEFAULT_KEY_PREFIX", "DEFAULT_FALLBACK_MAX_AGE_S", "SyncOrchestrator"]
