import io
import logging

import pytest

from metal_sync import logger as log_setup


@pytest.fixture
def bare_root():
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    root.handlers = []
    yield root
    root.handlers = saved_handlers
    root.setLevel(saved_level)


def test_resolve_level() -> None:
    assert log_setup.resolve_level("debug") == logging.DEBUG
    assert log_setup.resolve_level(None) == logging.INFO
    assert log_setup.resolve_level("nonsense") == logging.INFO


def test_setup_logging_installs_one_handler(bare_root) -> None:
    stream = io.StringIO()

    log_setup.setup_logging("debug", stream=stream)
    log_setup.setup_logging("warning", stream=stream)

    assert len(bare_root.handlers) == 1
    assert bare_root.level == logging.WARNING
    logging.getLogger("metal_sync.test").warning("XAU unavailable")
    assert "WARNING metal_sync.test: XAU unavailable" in stream.getvalue()


def test_http_client_loggers_are_quieted(bare_root) -> None:
    log_setup.setup_logging("debug", stream=io.StringIO())

    assert logging.getLogger("httpx").level == logging.WARNING
    assert logging.getLogger("urllib3").level == logging.WARNING
