"""Per-cycle refresh results handed to the UI layer."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Union

from ..errors import ErrorKind


@dataclass(frozen=True)
class Fresh:
    key: str
    payload: Any
    timestamp: float


@dataclass(frozen=True)
class Stale:
    """Cached payload served after a failed fetch; may be outdated."""

    key: str
    payload: Any
    age_s: float
    reason: ErrorKind


@dataclass(frozen=True)
class Failed:
    key: str
    kind: ErrorKind
    message: str


SyncResult = Union[Fresh, Stale, Failed]


@dataclass
class SyncBatch:
    results: dict[str, SyncResult] = field(default_factory=dict)
    completed_at: float = 0.0

    @property
    def fresh(self) -> dict[str, Fresh]:
        return {k: r for k, r in self.results.items() if isinstance(r, Fresh)}

    @property
    def stale(self) -> dict[str, Stale]:
        return {k: r for k, r in self.results.items() if isinstance(r, Stale)}

    @property
    def failed(self) -> dict[str, Failed]:
        return {k: r for k, r in self.results.items() if isinstance(r, Failed)}

    @property
    def is_degraded(self) -> bool:
        return any(not isinstance(r, Fresh) for r in self.results.values())

    def payloads(self) -> dict[str, Any]:
        """Every usable payload, fresh or stale, keyed by item."""
        return {
            k: r.payload for k, r in self.results.items() if isinstance(r, (Fresh, Stale))
        }
