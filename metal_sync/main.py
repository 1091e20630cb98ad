"""Entrypoint for running the price sync engine as a standalone process.

The process owns the engine lifetime. Lifecycle transitions come from
signals: SIGUSR1 moves the app to the background, SIGUSR2 back to the
foreground, SIGHUP forces a refresh and SIGINT/SIGTERM stop the engine.
"""

from __future__ import annotations

import asyncio
import logging
import signal

from . import config, metalprice
from .cache import CacheStore, JsonFileStorage, KeyValueStorage
from .clock import SystemClock
from .lifecycle import AppLifecycle
from .logger import setup_logging
from .models.results import Fresh, Stale, SyncBatch
from .retry import RetryExecutor, RetryPolicy
from .scheduler import AdaptiveScheduler
from .sync import SyncOrchestrator

logger = logging.getLogger(__name__)


def build_engine(
    settings: config.Settings,
    lifecycle: AppLifecycle,
    storage: KeyValueStorage | None = None,
) -> SyncOrchestrator:
    clock = SystemClock()
    orchestrator = SyncOrchestrator(
        metalprice.fetch_metal_price,
        settings.SYMBOLS,
        cache=CacheStore(storage or JsonFileStorage(settings.CACHE_PATH), clock),
        scheduler=AdaptiveScheduler(
            lifecycle, clock, max_frequency_s=settings.MAX_REFRESH_S
        ),
        retry=RetryExecutor(
            RetryPolicy(
                max_attempts=settings.MAX_RETRIES,
                base_delay_s=settings.RETRY_BASE_DELAY_S,
            )
        ),
        clock=clock,
        max_age_s=settings.CACHE_MAX_AGE_S,
    )
    return orchestrator


def log_batch(batch: SyncBatch) -> None:
    for item, result in batch.results.items():
        if isinstance(result, Fresh):
            logger.info("%s %s", item, result.payload.get("price"))
        elif isinstance(result, Stale):
            logger.warning(
                "%s %s (may be outdated: %.0fs old, %s)",
                item,
                result.payload.get("price"),
                result.age_s,
                result.reason.value,
            )
        else:
            logger.error("%s unavailable (%s): %s", item, result.kind.value, result.message)


async def run_async(settings: config.Settings | None = None) -> None:
    settings = settings or config.settings
    lifecycle = AppLifecycle()
    engine = build_engine(settings, lifecycle)
    done = asyncio.Event()

    loop = asyncio.get_running_loop()
    loop.add_signal_handler(signal.SIGUSR1, lifecycle.to_background)
    loop.add_signal_handler(signal.SIGUSR2, lifecycle.to_foreground)
    loop.add_signal_handler(signal.SIGHUP, engine.trigger)
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, done.set)

    engine.start(log_batch, settings.REFRESH_S)
    # Initial load; the timer only fires after the first period.
    engine.trigger()
    try:
        await done.wait()
    finally:
        engine.stop()
        await engine.wait_idle()
        logger.info("Stopped metal_sync")


def run() -> None:
    setup_logging(config.settings.LOG_LEVEL)
    config.validate_settings()
    logger.info(
        "Starting metal_sync for %s (refresh=%.0fs)",
        ",".join(config.settings.SYMBOLS),
        config.settings.REFRESH_S,
    )
    asyncio.run(run_async())


if __name__ == "__main__":
    run()
