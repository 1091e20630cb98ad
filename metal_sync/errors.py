"""Error taxonomy and classification for price refreshes.

`classify` maps any raised exception into an `ErrorKind`; `get_error_info`
adds the user-facing metadata the UI layer shows for that kind.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ErrorKind(str, Enum):
    NETWORK_ERROR = "NETWORK_ERROR"
    TIMEOUT_ERROR = "TIMEOUT_ERROR"
    RATE_LIMIT_ERROR = "RATE_LIMIT_ERROR"
    AUTH_ERROR = "AUTH_ERROR"
    SERVER_ERROR = "SERVER_ERROR"
    DATA_PARSING_ERROR = "DATA_PARSING_ERROR"
    OFFLINE_ERROR = "OFFLINE_ERROR"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


class MetalSyncError(Exception):
    """Base class for errors raised by metal_sync."""


class ApiError(MetalSyncError):
    """Failure talking to the price API. `status` is the HTTP status if any."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class DeviceOfflineError(MetalSyncError):
    """The host has no network connectivity at all."""


@dataclass(frozen=True)
class ErrorInfo:
    kind: ErrorKind
    title: str
    message: str
    action: str
    original_error: BaseException | None = None


# kind -> (title, message, action)
ERROR_MESSAGES: dict[ErrorKind, tuple[str, str, str]] = {
    ErrorKind.NETWORK_ERROR: (
        "Connection Problem",
        "Please check your internet connection and try again.",
        "Retry",
    ),
    ErrorKind.SERVER_ERROR: (
        "Service Unavailable",
        "The metal prices service is temporarily unavailable.",
        "Try Again",
    ),
    ErrorKind.TIMEOUT_ERROR: (
        "Request Timeout",
        "The request took too long to complete. Please try again.",
        "Retry",
    ),
    ErrorKind.RATE_LIMIT_ERROR: (
        "Too Many Requests",
        "You have made too many requests. Please wait a moment and try again.",
        "Wait & Retry",
    ),
    ErrorKind.AUTH_ERROR: (
        "Authentication Failed",
        "There was a problem with the API authentication.",
        "Contact Support",
    ),
    ErrorKind.DATA_PARSING_ERROR: (
        "Data Error",
        "There was a problem processing the metal price data.",
        "Retry",
    ),
    ErrorKind.OFFLINE_ERROR: (
        "You're Offline",
        "Please check your internet connection to get live prices.",
        "Check Connection",
    ),
    ErrorKind.UNKNOWN_ERROR: (
        "Something Went Wrong",
        "An unexpected error occurred. Please try again.",
        "Retry",
    ),
}

NON_RETRYABLE: frozenset[ErrorKind] = frozenset(
    {ErrorKind.AUTH_ERROR, ErrorKind.RATE_LIMIT_ERROR}
)


def _status_of(error: object) -> int | None:
    status = getattr(error, "status", None)
    if status is None:
        response = getattr(error, "response", None)
        status = getattr(response, "status_code", None)
    try:
        return int(status) if status is not None else None
    except (TypeError, ValueError):
        return None


def _text_of(error: object) -> str:
    # The class name is included so that e.g. TimeoutError() with an empty
    # message still reads as a timeout.
    return f"{type(error).__name__} {error}".lower()


def classify(error: object | None) -> ErrorKind:
    """Return the `ErrorKind` for `error`. First matching rule wins."""
    if error is None:
        return ErrorKind.UNKNOWN_ERROR
    if isinstance(error, DeviceOfflineError):
        return ErrorKind.OFFLINE_ERROR

    text = _text_of(error)
    status = _status_of(error)

    if "network" in text or "connection" in text:
        return ErrorKind.NETWORK_ERROR
    if "timeout" in text:
        return ErrorKind.TIMEOUT_ERROR
    if status == 429:
        return ErrorKind.RATE_LIMIT_ERROR
    if status in (401, 403):
        return ErrorKind.AUTH_ERROR
    if status is not None and status >= 500:
        return ErrorKind.SERVER_ERROR
    if "json" in text or "parse" in text:
        return ErrorKind.DATA_PARSING_ERROR
    return ErrorKind.UNKNOWN_ERROR


def is_retryable(error: object | None) -> bool:
    return classify(error) not in NON_RETRYABLE


def get_error_info(error: object | None) -> ErrorInfo:
    kind = classify(error)
    title, message, action = ERROR_MESSAGES[kind]
    return ErrorInfo(
        kind=kind,
        title=title,
        message=message,
        action=action,
        original_error=error if isinstance(error, BaseException) else None,
    )


__all__ = [
    "ApiError",
    "DeviceOfflineError",
    "ERROR_MESSAGES",
    "ErrorInfo",
    "ErrorKind",
    "MetalSyncError",
    "NON_RETRYABLE",
    "classify",
    "get_error_info",
    "is_retryable",
]
