"""Foreground/background lifecycle events.

Schedulers depend on the `Lifecycle` protocol; `AppLifecycle` is the in-process
implementation driven by whoever owns the application (signal handlers in
`main`, tests, or a UI host).
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Callable, Protocol

logger = logging.getLogger(__name__)


class AppPhase(str, Enum):
    FOREGROUND = "foreground"
    BACKGROUND = "background"


Listener = Callable[[AppPhase], None]


class Subscription(Protocol):
    def remove(self) -> None: ...


class Lifecycle(Protocol):
    def is_foreground(self) -> bool: ...

    def subscribe(self, listener: Listener) -> Subscription: ...


class _ListenerSubscription:
    def __init__(self, owner: "AppLifecycle", listener: Listener) -> None:
        self._owner = owner
        self._listener: Listener | None = listener

    def remove(self) -> None:
        if self._listener is None:
            return
        self._owner._listeners.remove(self._listener)
        self._listener = None


class AppLifecycle:
    def __init__(self, phase: AppPhase = AppPhase.FOREGROUND) -> None:
        self.phase = phase
        self._listeners: list[Listener] = []

    def is_foreground(self) -> bool:
        return self.phase is AppPhase.FOREGROUND

    def subscribe(self, listener: Listener) -> Subscription:
        self._listeners.append(listener)
        return _ListenerSubscription(self, listener)

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def set_phase(self, phase: AppPhase) -> None:
        """Move to `phase` and notify listeners. Repeated phases are ignored."""
        if phase is self.phase:
            return
        logger.info("App moved to %s", phase.value)
        self.phase = phase
        for listener in list(self._listeners):
            try:
                listener(phase)
            except Exception:
                logger.exception("Lifecycle listener failed for %s", phase.value)

    def to_foreground(self) -> None:
        self.set_phase(AppPhase.FOREGROUND)

    def to_background(self) -> None:
        self.set_phase(AppPhase.BACKGROUND)


__all__ = ["AppLifecycle", "AppPhase", "Lifecycle", "Listener", "Subscription"]
