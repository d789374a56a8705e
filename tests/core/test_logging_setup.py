import json
import logging
import sys
from datetime import datetime
from io import StringIO

import pytest

from src.krishi.core.logging_setup import JSONFormatter, configure_logging


@pytest.fixture
def capture_logs():
    buffer = StringIO()
    handler = logging.StreamHandler(buffer)
    handler.setFormatter(JSONFormatter())

    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    root.handlers = [handler]
    root.setLevel(logging.DEBUG)

    yield buffer

    root.handlers = saved_handlers
    root.setLevel(saved_level)


def test_json_formatter_includes_extras(capture_logs):
    logging.getLogger("src.krishi.core.turn_orchestrator").info("turn started", extra={"user_id": "u1"})

    entry = json.loads(capture_logs.getvalue().strip())
    assert entry["severity"] == "info"
    assert entry["logger"] == "src.krishi.core.turn_orchestrator"
    assert entry["message"] == "turn started"
    assert entry["user_id"] == "u1"
    assert datetime.fromisoformat(entry["timestamp"]) is not None


def test_json_formatter_includes_exception(capture_logs):
    try:
        raise ValueError("boom")
    except ValueError:
        logging.getLogger("x").error("failed", exc_info=True)

    entry = json.loads(capture_logs.getvalue().strip())
    assert entry["severity"] == "error"
    assert "ValueError: boom" in entry["exception"]


def test_configure_logging_sets_level_and_formatter():
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    try:
        configure_logging("warning")
        assert root.level == logging.WARNING
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, JSONFormatter)
        assert root.handlers[0].stream is sys.stdout

        configure_logging("debug", use_json=False)
        assert root.level == logging.DEBUG
        assert not isinstance(root.handlers[0].formatter, JSONFormatter)
    finally:
        root.handlers = saved_handlers
        root.setLevel(saved_level)
