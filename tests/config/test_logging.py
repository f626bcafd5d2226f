import json
import logging

import pytest
import structlog

from tiered_search.config.logging import (
    clear_request_id,
    configure_logging,
    get_request_id,
    set_request_id,
)


@pytest.fixture(autouse=True)
def restore_logging():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
    structlog.reset_defaults()


def test_request_id_lifecycle():
    clear_request_id()
    assert get_request_id() is None
    assert set_request_id("abc") == "abc"
    assert get_request_id() == "abc"
    generated = set_request_id()
    assert len(generated) == 12 and generated != "abc"
    clear_request_id()
    assert get_request_id() is None


def test_json_lines_carry_request_id(capsys):
    configure_logging(level="debug", json_format=True)
    try:
        set_request_id("req-1")
        structlog.get_logger().info("search_completed", results=3)
        line = capsys.readouterr().err.strip().splitlines()[-1]
        event = json.loads(line)
        assert event["event"] == "search_completed"
        assert event["results"] == 3
        assert event["request_id"] == "req-1"
        assert event["level"] == "info"
    finally:
        clear_request_id()


def test_level_filtering(capsys):
    configure_logging(level="WARNING", json_format=True)
    structlog.get_logger().info("hidden")
    structlog.get_logger().warning("shown")
    err = capsys.readouterr().err
    assert "hidden" not in err
    assert "shown" in err
    assert logging.getLogger("urllib3").level == logging.WARNING
