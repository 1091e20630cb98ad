"""Shared test fixtures and dummy classes."""

from __future__ import annotations

import heapq
from typing import Any, Callable, Iterable


class DummyTimerHandle:
    def __init__(self) -> None:
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class VirtualClock:
    """Deterministic clock; timers fire only from `advance`."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self._now = start
        self._seq = 0
        self._queue: list[tuple[float, int, Callable[[], None], DummyTimerHandle]] = []

    def now(self) -> float:
        return self._now

    def call_later(self, delay_s: float, callback: Callable[[], None]) -> DummyTimerHandle:
        handle = DummyTimerHandle()
        self._seq += 1
        heapq.heappush(self._queue, (self._now + max(0.0, delay_s), self._seq, callback, handle))
        return handle

    @property
    def pending(self) -> int:
        return sum(1 for *_, h in self._queue if not h.cancelled)

    def advance(self, seconds: float) -> None:
        target = self._now + seconds
        while self._queue and self._queue[0][0] <= target:
            when, _, callback, handle = heapq.heappop(self._queue)
            if handle.cancelled:
                continue
            self._now = when
            callback()
        self._now = target


class RecordingSleep:
    """Stand-in for asyncio.sleep that records requested delays."""

    def __init__(self, clock: VirtualClock | None = None) -> None:
        self.delays: list[float] = []
        self._clock = clock

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        if self._clock is not None:
            self._clock.advance(delay)


class FailingStorage:
    """Key/value storage whose every operation raises."""

    async def get(self, key: str) -> str | None:
        raise OSError("disk unavailable")

    async def set(self, key: str, value: str) -> None:
        raise OSError("disk full")

    async def remove(self, key: str) -> None:
        raise OSError("disk unavailable")

    async def remove_many(self, keys: Iterable[str]) -> None:
        raise OSError("disk unavailable")


class FlakyOperation:
    """Async operation that raises the given errors in order, then returns `value`."""

    def __init__(self, errors: list[BaseException], value: Any = "ok") -> None:
        self.errors = list(errors)
        self.value = value
        self.calls: list[tuple[Any, ...]] = []

    async def __call__(self, *args: Any) -> Any:
        self.calls.append(args)
        if self.errors:
            raise self.errors.pop(0)
        return self.value


class DummyResponse:
    """Dummy HTTP response for testing."""

    def __init__(self, data: object, status: int = 200, text: str = "") -> None:
        self._data = data
        self.status_code = status
        self.text = text or str(data)
        self.ok = 200 <= status < 300

    def json(self) -> object:
        if isinstance(self._data, Exception):
            raise self._data
        return self._data
