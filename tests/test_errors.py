import json

import pytest
import requests

from metal_sync.errors import (
    ApiError,
    DeviceOfflineError,
    ErrorKind,
    classify,
    get_error_info,
    is_retryable,
)


class StatusError(Exception):
    def __init__(self, message: str, status: int) -> None:
        super().__init__(message)
        self.status = status


def test_classify_none_is_unknown() -> None:
    assert classify(None) is ErrorKind.UNKNOWN_ERROR


@pytest.mark.parametrize(
    "error, expected",
    [
        (RuntimeError("Network Error: unreachable"), ErrorKind.NETWORK_ERROR),
        (RuntimeError("connection reset by peer"), ErrorKind.NETWORK_ERROR),
        (RuntimeError("Request timeout after 10s"), ErrorKind.TIMEOUT_ERROR),
        (StatusError("slow down", 429), ErrorKind.RATE_LIMIT_ERROR),
        (StatusError("nope", 401), ErrorKind.AUTH_ERROR),
        (StatusError("nope", 403), ErrorKind.AUTH_ERROR),
        (StatusError("boom", 503), ErrorKind.SERVER_ERROR),
        (RuntimeError("Unexpected token in JSON"), ErrorKind.DATA_PARSING_ERROR),
        (RuntimeError("could not parse body"), ErrorKind.DATA_PARSING_ERROR),
        (RuntimeError("something odd"), ErrorKind.UNKNOWN_ERROR),
        (StatusError("missing", 404), ErrorKind.UNKNOWN_ERROR),
    ],
)
def test_classify_rules(error: Exception, expected: ErrorKind) -> None:
    assert classify(error) is expected


def test_message_rules_take_precedence_over_status() -> None:
    assert classify(StatusError("network down", 500)) is ErrorKind.NETWORK_ERROR
    assert classify(StatusError("gateway timeout", 429)) is ErrorKind.TIMEOUT_ERROR


def test_status_rules_take_precedence_over_parse_message() -> None:
    assert classify(StatusError("json body rejected", 401)) is ErrorKind.AUTH_ERROR


def test_classify_reads_status_from_response() -> None:
    resp = requests.Response()
    resp.status_code = 429
    err = requests.HTTPError("429 Client Error", response=resp)
    assert classify(err) is ErrorKind.RATE_LIMIT_ERROR


def test_classify_uses_exception_type_names() -> None:
    assert classify(TimeoutError()) is ErrorKind.TIMEOUT_ERROR
    assert classify(ConnectionRefusedError()) is ErrorKind.NETWORK_ERROR
    with pytest.raises(json.JSONDecodeError) as excinfo:
        json.loads("{not json")
    assert classify(excinfo.value) is ErrorKind.DATA_PARSING_ERROR


def test_device_offline_is_offline_error() -> None:
    assert classify(DeviceOfflineError("no connection")) is ErrorKind.OFFLINE_ERROR


def test_api_error_carries_status() -> None:
    assert classify(ApiError("API Error: 500 - oops", status=500)) is ErrorKind.SERVER_ERROR


def test_is_retryable() -> None:
    assert is_retryable(ApiError("API Error: 500", status=500))
    assert not is_retryable(ApiError("API Error: 401", status=401))
    assert not is_retryable(ApiError("API Error: 429", status=429))


def test_get_error_info_uses_static_table() -> None:
    err = ApiError("API Error: 429 - Too many", status=429)
    info = get_error_info(err)
    assert info.kind is ErrorKind.RATE_LIMIT_ERROR
    assert info.title == "Too Many Requests"
    assert info.action == "Wait & Retry"
    assert info.original_error is err


def test_get_error_info_for_every_kind() -> None:
    info = get_error_info(None)
    assert info.kind is ErrorKind.UNKNOWN_ERROR
    assert info.title == "Something Went Wrong"
    assert info.original_error is None
    offline = get_error_info(DeviceOfflineError("offline"))
    assert offline.title == "You're Offline"
