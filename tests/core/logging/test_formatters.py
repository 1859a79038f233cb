"""Tests for JSON and console log formatters."""

import json
import logging
import sys

import pytest

from core.logging.context import clear_log_context, set_log_context
from core.logging.formatters import ConsoleFormatter, JSONFormatter


def _make_record(
    msg="test message",
    level=logging.INFO,
    name="test.logger",
    exc_info=None,
    **extras,
):
    record = logging.LogRecord(
        name=name,
        level=level,
        pathname="test.py",
        lineno=42,
        msg=msg,
        args=(),
        exc_info=exc_info,
    )
    for key, value in extras.items():
        setattr(record, key, value)
    return record


class TestJSONFormatter:

    @pytest.fixture(autouse=True)
    def clear_context(self):
        clear_log_context()
        yield
        clear_log_context()

    def test_formats_basic_json_with_required_fields(self):
        output = json.loads(JSONFormatter().format(_make_record()))

        assert output["level"] == "INFO"
        assert output["logger"] == "test.logger"
        assert output["message"] == "test message"
        assert output["ts"].endswith("Z")

    def test_includes_context(self):
        set_log_context(subscriber_id="OrderSubscriber", source="orders", topic="orders.created")
        output = json.loads(JSONFormatter().format(_make_record()))

        assert output["subscriber_id"] == "OrderSubscriber"
        assert output["source"] == "orders"
        assert output["topic"] == "orders.created"
        assert "batch_id" not in output

    def test_includes_known_extra_fields(self):
        record = _make_record(subscriber_module="OrderSubscriber", ignored_keys=["module"], unknown="x")
        output = json.loads(JSONFormatter().format(record))

        assert output["subscriber_module"] == "OrderSubscriber"
        assert output["ignored_keys"] == ["module"]
        assert "unknown" not in output

    def test_coerces_numeric_fields(self):
        record = _make_record(batch_size="3", message_offset="not a number")
        output = json.loads(JSONFormatter().format(record))

        assert output["batch_size"] == 3
        assert output["message_offset"] is None

    def test_source_location_only_for_debug_and_errors(self):
        info = json.loads(JSONFormatter().format(_make_record()))
        debug = json.loads(JSONFormatter().format(_make_record(level=logging.DEBUG)))

        assert "file" not in info
        assert debug["file"] == "test.py:42"

    def test_includes_exception(self):
        try:
            raise ValueError("boom")
        except ValueError:
            record = _make_record(level=logging.ERROR, exc_info=sys.exc_info())

        output = json.loads(JSONFormatter().format(record))
        assert output["exception"]["type"] == "ValueError"
        assert output["exception"]["message"] == "boom"
        assert "Traceback" in output["exception"]["stacktrace"]

    def test_serializes_classes_as_dotted_paths(self):
        record = _make_record(resolved_keys=[JSONFormatter])
        output = json.loads(JSONFormatter().format(record))

        assert output["resolved_keys"] == ["core.logging.formatters.JSONFormatter"]


class TestConsoleFormatter:

    @pytest.fixture(autouse=True)
    def clear_context(self):
        clear_log_context()
        yield
        clear_log_context()

    def test_formats_level_and_message(self):
        formatter = ConsoleFormatter()
        formatter._use_colors = False
        output = formatter.format(_make_record(level=logging.WARNING))

        assert " - WARNING - test message" in output

    def test_includes_subscriber_and_topic(self):
        set_log_context(subscriber_id="OrderSubscriber", topic="orders.created")
        formatter = ConsoleFormatter()
        formatter._use_colors = False
        output = formatter.format(_make_record())

        assert "[OrderSubscriber] - [orders.created] - test message" in output

    def test_colors_when_enabled(self):
        formatter = ConsoleFormatter()
        formatter._use_colors = True
        output = formatter.format(_make_record(level=logging.ERROR))

        assert "\033[31mERROR\033[0m" in output

    def test_appends_batch_details(self):
        formatter = ConsoleFormatter()
        formatter._use_colors = False
        output = formatter.format(_make_record(batch_size=3, error_category="handler", group_id="g"))

        assert output.endswith("test message (batch_size=3, error_category=handler)")
