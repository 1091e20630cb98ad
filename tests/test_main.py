import logging
import os
from unittest import mock

import pytest

from metal_sync import config, main
from metal_sync.cache import MemoryStorage
from metal_sync.errors import ErrorKind
from metal_sync.lifecycle import AppLifecycle
from metal_sync.models.results import Failed, Fresh, Stale, SyncBatch
from metal_sync.scheduler import AdaptiveScheduler


def _settings(**env: str) -> config.Settings:
    with mock.patch.dict(os.environ, env, clear=True):
        return config._read_settings()


def test_build_engine_from_settings() -> None:
    settings = _settings(METAL_SYMBOLS="XAU,XAG", MAX_RETRIES="2", MAX_REFRESH_S="240")

    engine = main.build_engine(settings, AppLifecycle(), storage=MemoryStorage())

    assert engine.items == ["XAU", "XAG"]
    assert engine.retry.policy.max_attempts == 2
    assert isinstance(engine.scheduler, AdaptiveScheduler)
    assert engine.scheduler.max_frequency_s == 240.0
    assert engine.max_age_s == settings.CACHE_MAX_AGE_S
    assert engine.cache.managed_keys == frozenset({"metal_prices:XAU", "metal_prices:XAG"})


@pytest.mark.asyncio
async def test_engine_refresh_uses_metalprice_fetch(monkeypatch) -> None:
    async def fake_fetch(symbol: str):
        return {"metal": symbol, "price": 1.0}

    monkeypatch.setattr(main.metalprice, "fetch_metal_price", fake_fetch)
    engine = main.build_engine(_settings(METAL_SYMBOLS="XAU"), AppLifecycle(), storage=MemoryStorage())

    batch = await engine.refresh()

    assert batch.payloads() == {"XAU": {"metal": "XAU", "price": 1.0}}


def test_log_batch(caplog) -> None:
    batch = SyncBatch(
        results={
            "XAU": Fresh(key="XAU", payload={"price": 2000.0}, timestamp=0.0),
            "XAG": Stale(key="XAG", payload={"price": 24.0}, age_s=90.0, reason=ErrorKind.SERVER_ERROR),
            "XPT": Failed(key="XPT", kind=ErrorKind.NETWORK_ERROR, message="Network Error"),
        }
    )

    with caplog.at_level(logging.INFO, logger="metal_sync.main"):
        main.log_batch(batch)

    text = caplog.text
    assert "XAU 2000.0" in text
    assert "may be outdated" in text
    assert "SERVER_ERROR" in text
    assert "XPT unavailable (NETWORK_ERROR)" in text
