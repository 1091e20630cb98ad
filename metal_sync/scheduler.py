"""Foreground-gated polling schedulers.

`PollingScheduler` runs a callback periodically while the app is in the
foreground and pauses while it is in the background. `AdaptiveScheduler`
stretches the period while the user is idle.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Callable

from .clock import Clock, SystemClock, TimerHandle
from .lifecycle import AppPhase, Lifecycle, Subscription

logger = logging.getLogger(__name__)

DEFAULT_FREQUENCY_S = 60.0
MAX_FREQUENCY_S = 5 * 60.0
INTERACTION_WINDOW_S = 2 * 60.0
ADJUST_INTERVAL_S = 30.0


class SchedulerPhase(str, Enum):
    STOPPED = "stopped"
    ACTIVE_FOREGROUND = "active_foreground"
    PAUSED_BACKGROUND = "paused_background"


class PollingScheduler:
    def __init__(self, lifecycle: Lifecycle, clock: Clock | None = None) -> None:
        self.lifecycle = lifecycle
        self.clock = clock or SystemClock()
        self.frequency_s = DEFAULT_FREQUENCY_S
        self.is_active = False
        self.is_foreground = False
        self._callback: Callable[[], object] | None = None
        self._subscription: Subscription | None = None
        self._timer: TimerHandle | None = None
        self._last_tick_at = 0.0

    @property
    def phase(self) -> SchedulerPhase:
        if not self.is_active:
            return SchedulerPhase.STOPPED
        if self.is_foreground:
            return SchedulerPhase.ACTIVE_FOREGROUND
        return SchedulerPhase.PAUSED_BACKGROUND

    def start(self, callback: Callable[[], object], frequency_s: float = DEFAULT_FREQUENCY_S) -> None:
        _check_frequency(frequency_s)
        if self.is_active:
            self.stop()
        self._callback = callback
        self.frequency_s = frequency_s
        self.is_active = True
        self.is_foreground = self.lifecycle.is_foreground()
        self._subscription = self.lifecycle.subscribe(self._on_phase_change)
        logger.info(
            "Scheduler started (frequency=%.0fs, phase=%s)",
            frequency_s,
            self.phase.value,
        )
        if self.is_foreground:
            self._resume()

    def stop(self) -> None:
        was_active = self.is_active
        self.is_active = False
        self._pause()
        if self._subscription is not None:
            self._subscription.remove()
            self._subscription = None
        self._callback = None
        if was_active:
            logger.info("Scheduler stopped")

    def set_frequency(self, frequency_s: float) -> None:
        _check_frequency(frequency_s)
        if frequency_s == self.frequency_s:
            return
        logger.debug("Frequency %.0fs -> %.0fs", self.frequency_s, frequency_s)
        self.frequency_s = frequency_s
        if self._timer is not None:
            self._cancel_timer()
            # Keep the current phase: next tick is due one new period after
            # the last one, or right away if that moment has already passed.
            elapsed = self.clock.now() - self._last_tick_at
            self._arm(max(0.0, frequency_s - elapsed))

    def trigger(self) -> None:
        if not self.is_active:
            return
        self._invoke()

    def is_updating(self) -> bool:
        return self.is_active and self._timer is not None

    # ── lifecycle ─────────────────────────────────────────────────────────

    def _on_phase_change(self, phase: AppPhase) -> None:
        if not self.is_active:
            return
        if phase is AppPhase.FOREGROUND:
            if self.is_foreground:
                return
            self.is_foreground = True
            self._resume()
            # Catch up on whatever was missed while in the background.
            self._invoke()
        else:
            if not self.is_foreground:
                return
            self.is_foreground = False
            self._pause()

    def _resume(self) -> None:
        self._last_tick_at = self.clock.now()
        self._arm(self.frequency_s)

    def _pause(self) -> None:
        self._cancel_timer()

    # ── timer ─────────────────────────────────────────────────────────────

    def _arm(self, delay_s: float) -> None:
        self._cancel_timer()
        self._timer = self.clock.call_later(delay_s, self._on_timer)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _on_timer(self) -> None:
        self._timer = None
        if not (self.is_active and self.is_foreground):
            return
        self._last_tick_at = self.clock.now()
        self._arm(self.frequency_s)
        self._invoke()

    def _invoke(self) -> None:
        callback = self._callback
        if callback is None:
            return
        try:
            callback()
        except Exception:
            logger.exception("Scheduled callback failed")


class AdaptiveScheduler(PollingScheduler):
    """Polling scheduler that slows down while the user is idle.

    Within `interaction_window_s` of the last interaction the base frequency
    is used; after that the period grows as ``base + idle / 2`` up to
    `max_frequency_s`. The frequency is re-evaluated on every interaction
    and every `adjust_interval_s` while in the foreground.
    """

    def __init__(
        self,
        lifecycle: Lifecycle,
        clock: Clock | None = None,
        *,
        max_frequency_s: float = MAX_FREQUENCY_S,
        interaction_window_s: float = INTERACTION_WINDOW_S,
        adjust_interval_s: float = ADJUST_INTERVAL_S,
    ) -> None:
        super().__init__(lifecycle, clock)
        self.base_frequency_s = DEFAULT_FREQUENCY_S
        self.max_frequency_s = max_frequency_s
        self.interaction_window_s = interaction_window_s
        self.adjust_interval_s = adjust_interval_s
        self.last_interaction_at = self.clock.now()
        self._adjust_timer: TimerHandle | None = None

    def start(self, callback: Callable[[], object], frequency_s: float = DEFAULT_FREQUENCY_S) -> None:
        _check_frequency(frequency_s)
        if self.is_active:
            self.stop()
        self.base_frequency_s = frequency_s
        self.last_interaction_at = self.clock.now()
        super().start(callback, frequency_s)

    def record_interaction(self) -> None:
        self.last_interaction_at = self.clock.now()
        self.adjust_frequency()

    def compute_frequency(self) -> float:
        idle_s = self.clock.now() - self.last_interaction_at
        if idle_s < self.interaction_window_s:
            return self.base_frequency_s
        return min(self.max_frequency_s, self.base_frequency_s + idle_s / 2)

    def adjust_frequency(self) -> None:
        frequency_s = self.compute_frequency()
        if frequency_s != self.frequency_s:
            self.set_frequency(frequency_s)

    def _resume(self) -> None:
        super()._resume()
        self._arm_adjust()

    def _pause(self) -> None:
        super()._pause()
        if self._adjust_timer is not None:
            self._adjust_timer.cancel()
            self._adjust_timer = None

    def _arm_adjust(self) -> None:
        if self._adjust_timer is not None:
            self._adjust_timer.cancel()
        self._adjust_timer = self.clock.call_later(self.adjust_interval_s, self._on_adjust)

    def _on_adjust(self) -> None:
        self._adjust_timer = None
        if not (self.is_active and self.is_foreground):
            return
        self._arm_adjust()
        self.adjust_frequency()


def _check_frequency(frequency_s: float) -> None:
    if frequency_s <= 0:
        raise ValueError(f"frequency must be positive, got {frequency_s}")


__all__ = [
    "ADJUST_INTERVAL_S",
    "AdaptiveScheduler",
    "DEFAULT_FREQUENCY_S",
    "INTERACTION_WINDOW_S",
    "MAX_FREQUENCY_S",
    "PollingScheduler",
    "SchedulerPhase",
]
