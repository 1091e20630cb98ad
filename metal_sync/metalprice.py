"""MetalpriceAPI client.

Blocking calls use `requests` and are meant to be run in a worker thread;
`fetch_metal_price` is the async fetch operation handed to the orchestrator.
Every failure is raised as `ApiError` with a message and, for HTTP errors,
the status code, so that `errors.classify` can bucket it.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import date, datetime, timedelta, timezone
from typing import Any

import httpx
import requests

from . import config
from .errors import ApiError, DeviceOfflineError, ErrorKind, classify

logger = logging.getLogger(__name__)

METAL_SYMBOLS: dict[str, str] = {
    "GOLD": "XAU",
    "SILVER": "XAG",
    "PLATINUM": "XPT",
    "PALLADIUM": "XPD",
    "COPPER": "XCU",
    "ZINC": "ZNC",
}

METAL_NAMES: dict[str, str] = {
    "XAU": "Gold",
    "XAG": "Silver",
    "XPT": "Platinum",
    "XPD": "Palladium",
    "XCU": "Copper",
    "ZNC": "Zinc",
}

_CONNECTIVITY_URL = "https://www.google.com"
_CONNECTIVITY_TIMEOUT_S = 5.0


def _error_message(resp: requests.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return "Unknown error"
    if isinstance(body, dict):
        err = body.get("error")
        if isinstance(err, dict):
            return str(err.get("message") or err.get("info") or "Unknown error")
        if body.get("message"):
            return str(body["message"])
    return "Unknown error"


def _request(path: str, params: dict[str, Any]) -> dict[str, Any]:
    """GET ``{BASE_URL}/{path}`` and return the decoded, successful body."""
    s = config.settings
    url = f"{s.BASE_URL}/{path.lstrip('/')}"
    query = dict(params)
    if s.API_KEY:
        query["api_key"] = s.API_KEY

    try:
        resp = requests.get(
            url,
            params=query,
            headers={"Content-Type": "application/json"},
            timeout=s.REQUEST_TIMEOUT_S,
        )
    except requests.exceptions.Timeout as exc:
        raise ApiError(f"Request timeout after {s.REQUEST_TIMEOUT_S:.0f}s") from exc
    except requests.exceptions.ConnectionError as exc:
        raise ApiError("Network Error: Unable to connect to the server") from exc
    except requests.RequestException as exc:
        raise ApiError(f"Request Error: {exc}") from exc

    if resp.status_code >= 400:
        raise ApiError(
            f"API Error: {resp.status_code} - {_error_message(resp)}",
            status=resp.status_code,
        )

    try:
        data = resp.json()
    except ValueError as exc:
        raise ApiError("Failed to parse response JSON") from exc

    if not isinstance(data, dict) or not data.get("success"):
        err = data.get("error") if isinstance(data, dict) else None
        status = err.get("statusCode") if isinstance(err, dict) else None
        raise ApiError("API returned unsuccessful response", status=status)
    return data


def _rate_for(rates: dict[str, Any], symbol: str, base: str) -> float:
    """Price of one unit of `symbol` in `base`.

    The API quotes both ``USDXAU`` (USD per ounce) and ``XAU`` (ounces per
    USD); the former is preferred.
    """
    direct = rates.get(f"{base}{symbol}")
    if direct is not None:
        return float(direct)
    inverse = rates.get(symbol)
    if inverse:
        return 1.0 / float(inverse)
    raise ApiError(f"Failed to parse rate for {symbol}")


def _fmt_ts(ts: int | float | None) -> str | None:
    if ts is None:
        return None
    return datetime.fromtimestamp(float(ts), tz=timezone.utc).isoformat()


def get_latest_prices(symbols: list[str] | None = None) -> dict[str, Any]:
    s = config.settings
    wanted = symbols or list(METAL_NAMES)
    data = _request(
        "latest",
        {"base": s.BASE_CURRENCY, "currencies": ",".join(wanted)},
    )
    rates = data.get("rates") or {}
    prices: dict[str, float] = {}
    for symbol in wanted:
        try:
            prices[symbol] = _rate_for(rates, symbol, s.BASE_CURRENCY)
        except ApiError:
            logger.warning("Latest prices missing %s", symbol)
    return {
        "success": True,
        "base": data.get("base", s.BASE_CURRENCY),
        "timestamp": data.get("timestamp"),
        "rates": rates,
        "prices": prices,
        "last_updated": _fmt_ts(data.get("timestamp")),
    }


def get_metal_price(symbol: str) -> dict[str, Any]:
    """Latest price for one metal as a JSON-serialisable quote."""
    s = config.settings
    data = _request("latest", {"base": s.BASE_CURRENCY, "currencies": symbol})
    price = _rate_for(data.get("rates") or {}, symbol, s.BASE_CURRENCY)
    return {
        "metal": symbol,
        "name": METAL_NAMES.get(symbol, symbol),
        "price": price,
        "currency": s.BASE_CURRENCY,
        "timestamp": data.get("timestamp"),
        "last_updated": _fmt_ts(data.get("timestamp")),
    }


def get_historical_prices(symbol: str, start_date: str, end_date: str) -> dict[str, Any]:
    """Daily prices for `symbol` between two ``YYYY-MM-DD`` dates."""
    s = config.settings
    data = _request(
        "timeframe",
        {
            "start_date": start_date,
            "end_date": end_date,
            "base": s.BASE_CURRENCY,
            "currencies": symbol,
        },
    )
    daily: dict[str, float] = {}
    for day, day_rates in sorted((data.get("rates") or {}).items()):
        if isinstance(day_rates, dict):
            try:
                daily[day] = _rate_for(day_rates, symbol, s.BASE_CURRENCY)
            except ApiError:
                logger.debug("No %s rate for %s", symbol, day)
    return {
        "metal": symbol,
        "name": METAL_NAMES.get(symbol, symbol),
        "rates": daily,
        "start_date": start_date,
        "end_date": end_date,
    }


def convert_metal_price(symbol: str, target_currency: str = "EUR") -> dict[str, Any]:
    s = config.settings
    target = target_currency.upper()
    data = _request(
        "latest",
        {"base": s.BASE_CURRENCY, "currencies": f"{symbol},{target}"},
    )
    rates = data.get("rates") or {}
    price = _rate_for(rates, symbol, s.BASE_CURRENCY)
    try:
        per_base = float(rates[target])
    except (KeyError, TypeError, ValueError) as exc:
        raise ApiError(f"Failed to parse rate for {target}") from exc
    return {
        "metal": symbol,
        "name": METAL_NAMES.get(symbol, symbol),
        "price_base": price,
        "price_converted": price * per_base,
        "base_currency": s.BASE_CURRENCY,
        "target_currency": target,
        "timestamp": data.get("timestamp"),
        "last_updated": _fmt_ts(data.get("timestamp")),
    }


def get_price_change(symbol: str, today: date | None = None) -> dict[str, Any]:
    """Latest price plus change against the previous day's close.

    If the previous day's price cannot be fetched the plain quote is returned.
    """
    current = get_metal_price(symbol)
    yesterday = (today or datetime.now(timezone.utc).date()) - timedelta(days=1)
    try:
        data = _request(
            yesterday.isoformat(),
            {"base": config.settings.BASE_CURRENCY, "currencies": symbol},
        )
        previous = _rate_for(data.get("rates") or {}, symbol, config.settings.BASE_CURRENCY)
    except ApiError as exc:
        logger.warning("Price change for %s unavailable: %s", symbol, exc)
        return current

    change = current["price"] - previous
    return {
        **current,
        "previous_price": previous,
        "change": change,
        "change_percent": (change / previous) * 100 if previous else 0.0,
    }


async def check_network_status(url: str = _CONNECTIVITY_URL) -> bool:
    try:
        async with httpx.AsyncClient(
            timeout=_CONNECTIVITY_TIMEOUT_S, follow_redirects=True
        ) as client:
            resp = await client.head(url)
    except httpx.HTTPError as exc:
        logger.debug("Connectivity probe failed: %s", exc)
        return False
    return resp.is_success


async def ensure_online() -> None:
    if not await check_network_status():
        raise DeviceOfflineError("Device is offline")


async def fetch_metal_price(symbol: str) -> dict[str, Any]:
    """Async fetch operation for `SyncOrchestrator`.

    A connection failure is re-raised as `DeviceOfflineError` when the
    connectivity probe shows the host itself is offline.
    """
    try:
        return await asyncio.to_thread(get_metal_price, symbol)
    except ApiError as exc:
        if classify(exc) is ErrorKind.NETWORK_ERROR:
            await ensure_online()
        raise


__all__ = [
    "METAL_NAMES",
    "METAL_SYMBOLS",
    "check_network_status",
    "convert_metal_price",
    "ensure_online",
    "fetch_metal_price",
    "get_historical_prices",
    "get_latest_prices",
    "get_metal_price",
    "get_price_change",
]
