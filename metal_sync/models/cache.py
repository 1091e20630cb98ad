"""Cache-related dataclasses."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class CacheEntry:
    """Cached payload with the epoch time it was written."""

    key: str
    payload: Any
    stored_at: float

    def age_s(self, now: float) -> float:
        return max(0.0, now - self.stored_at)
