"""Central configuration for metal_sync."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import List

logger = logging.getLogger(__name__)

DEFAULT_SYMBOLS = "XAU,XAG,XPT,XPD,XCU,ZNC"


def _split_symbols(s: str) -> List[str]:
    """Parse a comma-separated symbol list, upper-cased and de-duplicated.

    Example:
        >>> _split_symbols("xau, XAG,,xau")
        ['XAU', 'XAG']
    """
    out: List[str] = []
    for part in (s or DEFAULT_SYMBOLS).split(","):
        p = part.strip().upper()
        if p and p not in out:
            out.append(p)
    return out


def _float_env(name: str, default: float, minimum: float = 0.0) -> float:
    try:
        value = float(os.environ.get(name, "") or default)
    except ValueError:
        logger.warning("Invalid %s; using %s", name, default)
        return default
    return value if value >= minimum else default


def _int_env(name: str, default: int) -> int:
    try:
        value = int((os.environ.get(name) or str(default)).strip())
    except ValueError:
        logger.warning("Invalid %s; using %s", name, default)
        return default
    return value if value >= 0 else default


@dataclass
class Settings:
    """Configuration settings for metal_sync.

    All settings are loaded from environment variables with sensible defaults.
    """

    API_KEY: str | None
    BASE_URL: str
    SYMBOLS: List[str]
    BASE_CURRENCY: str
    REQUEST_TIMEOUT_S: float
    REFRESH_S: float
    MAX_REFRESH_S: float
    MAX_RETRIES: int
    RETRY_BASE_DELAY_S: float
    CACHE_MAX_AGE_S: float
    CACHE_PATH: str
    LOG_LEVEL: str


def _read_settings() -> Settings:
    """Read all configuration from environment variables.

    Note:
        Invalid or negative numeric values fall back to the defaults.
    """
    api_key = os.environ.get("METALPRICE_API_KEY") or None
    base_url = (
        os.environ.get("METALPRICE_BASE_URL") or "https://api.metalpriceapi.com/v1"
    ).rstrip("/")
    symbols = _split_symbols(os.environ.get("METAL_SYMBOLS", DEFAULT_SYMBOLS))
    base_currency = (os.environ.get("BASE_CURRENCY") or "USD").strip().upper()

    refresh_s = _float_env("REFRESH_S", 60.0, minimum=1.0)
    max_refresh_s = max(refresh_s, _float_env("MAX_REFRESH_S", 300.0, minimum=1.0))

    return Settings(
        API_KEY=api_key,
        BASE_URL=base_url,
        SYMBOLS=symbols,
        BASE_CURRENCY=base_currency,
        REQUEST_TIMEOUT_S=_float_env("REQUEST_TIMEOUT_S", 10.0, minimum=0.1),
        REFRESH_S=refresh_s,
        MAX_REFRESH_S=max_refresh_s,
        MAX_RETRIES=_int_env("MAX_RETRIES", 3),
        RETRY_BASE_DELAY_S=_float_env("RETRY_BASE_DELAY_S", 1.0),
        CACHE_MAX_AGE_S=_float_env("CACHE_MAX_AGE_S", 300.0),
        CACHE_PATH=os.environ.get("CACHE_PATH") or "/app/data/metal_cache.json",
        LOG_LEVEL=(os.environ.get("LOG_LEVEL") or "INFO").upper(),
    )


settings = _read_settings()


def validate_settings(s: Settings | None = None) -> None:
    """Log warnings for configuration that will degrade the engine."""
    s = s or settings
    if s.API_KEY is None:
        logger.warning("METALPRICE_API_KEY is not set; requests will likely be rejected.")
    if not s.SYMBOLS:
        logger.warning("METAL_SYMBOLS is empty; nothing will be refreshed.")
    if s.CACHE_MAX_AGE_S < s.REFRESH_S:
        logger.warning(
            "CACHE_MAX_AGE_S (%.0fs) is shorter than REFRESH_S (%.0fs); "
            "offline fallback will rarely have data.",
            s.CACHE_MAX_AGE_S,
            s.REFRESH_S,
        )


__all__ = ["DEFAULT_SYMBOLS", "Settings", "settings", "validate_settings"]
