"""Time-bounded cache used as offline fallback for fetched prices.

Entries are stored as JSON text ``{"payload": ..., "stored_at": ...}`` in an
async key/value storage. Writes are best-effort: storage failures are logged
and swallowed. Concurrent writers are last-writer-wins, and a `clear()` that
races with an in-flight write may be followed by that write re-creating the
entry; the next refresh reconciles it.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Iterable, Protocol

from .clock import Clock, SystemClock
from .models.cache import CacheEntry

logger = logging.getLogger(__name__)

DEFAULT_MAX_AGE_S = 5 * 60


class KeyValueStorage(Protocol):
    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str) -> None: ...

    async def remove(self, key: str) -> None: ...

    async def remove_many(self, keys: Iterable[str]) -> None: ...


class MemoryStorage:
    """Dict-backed storage; lives as long as the process."""

    def __init__(self) -> None:
        self.data: dict[str, str] = {}

    async def get(self, key: str) -> str | None:
        return self.data.get(key)

    async def set(self, key: str, value: str) -> None:
        self.data[key] = value

    async def remove(self, key: str) -> None:
        self.data.pop(key, None)

    async def remove_many(self, keys: Iterable[str]) -> None:
        for key in keys:
            self.data.pop(key, None)


class JsonFileStorage:
    """Storage persisted as a single JSON object on disk.

    The file is rewritten atomically on every change. Blocking file I/O runs
    in a worker thread. An unreadable file is treated as empty, so the next
    write replaces it.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._lock = asyncio.Lock()

    def _load(self) -> dict[str, str]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        try:
            data = json.loads(raw) if raw.strip() else {}
        except ValueError as exc:
            logger.warning("Ignoring unreadable cache file %s: %s", self.path, exc)
            return {}
        if not isinstance(data, dict):
            logger.warning("Ignoring cache file %s: not a JSON object", self.path)
            return {}
        return {str(k): str(v) for k, v in data.items()}

    def _dump(self, data: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix=".", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(data, fh, indent=2, sort_keys=True)
            os.replace(tmp, self.path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise

    def _update(self, changes: dict[str, str | None]) -> None:
        data = self._load()
        for key, value in changes.items():
            if value is None:
                data.pop(key, None)
            else:
                data[key] = value
        self._dump(data)

    async def get(self, key: str) -> str | None:
        data = await asyncio.to_thread(self._load)
        return data.get(key)

    async def set(self, key: str, value: str) -> None:
        async with self._lock:
            await asyncio.to_thread(self._update, {key: value})

    async def remove(self, key: str) -> None:
        async with self._lock:
            await asyncio.to_thread(self._update, {key: None})

    async def remove_many(self, keys: Iterable[str]) -> None:
        changes: dict[str, str | None] = {k: None for k in keys}
        if not changes:
            return
        async with self._lock:
            await asyncio.to_thread(self._update, changes)


class CacheStore:
    def __init__(
        self,
        storage: KeyValueStorage,
        clock: Clock | None = None,
        managed_keys: Iterable[str] = (),
    ) -> None:
        self.storage = storage
        self.clock = clock or SystemClock()
        self._managed: set[str] = set(managed_keys)
        # Keys whose eviction failed in storage; hidden until rewritten.
        self._evicted: set[str] = set()

    @property
    def managed_keys(self) -> frozenset[str]:
        return frozenset(self._managed)

    def manage(self, keys: Iterable[str]) -> None:
        """Add keys that `clear()` should remove even if never written here."""
        self._managed.update(keys)

    async def write(self, key: str, payload: Any) -> None:
        self._managed.add(key)
        try:
            record = json.dumps({"payload": payload, "stored_at": self.clock.now()})
            await self.storage.set(key, record)
        except Exception as exc:
            logger.warning("Failed to cache %s: %s", key, exc)
            return
        self._evicted.discard(key)

    async def read_entry(self, key: str, max_age_s: float = DEFAULT_MAX_AGE_S) -> CacheEntry | None:
        """Return the entry for `key` if it is at most `max_age_s` old.

        Expired or unreadable entries are removed from storage.
        """
        if key in self._evicted:
            return None
        try:
            raw = await self.storage.get(key)
        except Exception as exc:
            logger.warning("Failed to read cached %s: %s", key, exc)
            return None
        if raw is None:
            return None

        try:
            record = json.loads(raw)
            entry = CacheEntry(
                key=key,
                payload=record["payload"],
                stored_at=float(record["stored_at"]),
            )
        except (ValueError, TypeError, KeyError) as exc:
            logger.warning("Discarding corrupt cache entry %s: %s", key, exc)
            await self._evict(key)
            return None

        age = self.clock.now() - entry.stored_at
        if age > max_age_s:
            logger.debug("Cache entry %s expired (age=%.1fs > %.1fs)", key, age, max_age_s)
            await self._evict(key)
            return None
        return entry

    async def read(self, key: str, max_age_s: float = DEFAULT_MAX_AGE_S) -> Any | None:
        entry = await self.read_entry(key, max_age_s)
        return entry.payload if entry else None

    async def clear(self) -> None:
        keys = sorted(self._managed)
        try:
            await self.storage.remove_many(keys)
        except Exception as exc:
            logger.warning("Failed to clear cache: %s", exc)
            return
        self._evicted.difference_update(keys)
        logger.info("Cleared %d cache key(s)", len(keys))

    async def _evict(self, key: str) -> None:
        try:
            await self.storage.remove(key)
        except Exception as exc:
            logger.warning("Failed to evict cached %s: %s", key, exc)
            self._evicted.add(key)
            return
        self._evicted.discard(key)


__all__ = [
    "CacheStore",
    "DEFAULT_MAX_AGE_S",
    "JsonFileStorage",
    "KeyValueStorage",
    "MemoryStorage",
]
