"""Tests for event models and text formatting."""

import io
from datetime import datetime, timezone

import pytest
from loguru import logger

from batchmail.core.events import Batch, LogEvent, LogLevel
from batchmail.formatting import TemplateTextFormatter


def test_render_message_substitutes_known_properties():
    event = LogEvent("User {user} paid {amount:.2f} via {method}", properties={"user": "ana", "amount": 3.5})

    assert event.render_message() == "User ana paid 3.50 via {method}"


def test_event_is_immutable_and_detached_from_caller():
    properties = {"user": "ana"}
    event = LogEvent("hello {user}", properties=properties)
    properties["user"] = "bob"

    assert event.properties["user"] == "ana"
    with pytest.raises(TypeError):
        event.properties["user"] = "eve"
    with pytest.raises(AttributeError):
        event.level = LogLevel.ERROR


def test_level_names_map_from_other_frameworks():
    assert LogLevel.from_name("info") is LogLevel.INFORMATION
    assert LogLevel.from_name("CRITICAL") is LogLevel.FATAL
    assert LogLevel.from_name("trace") is LogLevel.VERBOSE
    assert LogLevel.from_name("Warning") is LogLevel.WARNING
    with pytest.raises(ValueError):
        LogLevel.from_name("LOUD")


def test_from_loguru_record_keeps_exception_text():
    records = []
    handler_id = logger.add(lambda message: records.append(message.record), level="DEBUG")
    try:
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            logger.exception("Payment failed")
    finally:
        logger.remove(handler_id)

    event = LogEvent.from_loguru_record(records[0])

    assert event.level is LogLevel.ERROR
    assert event.message_template == "Payment failed"
    assert "RuntimeError: boom" in event.exception
    assert event.properties["SourceContext"] == records[0]["name"]


def test_template_formatter_default_layout():
    event = LogEvent(
        "Disk {disk} almost full",
        level=LogLevel.WARNING,
        timestamp=datetime(2024, 5, 1, 12, 30, 45, 123000, tzinfo=timezone.utc),
        properties={"disk": "/var"},
        exception="Traceback...\n",
    )
    output = io.StringIO()

    TemplateTextFormatter().format(event, output)

    assert output.getvalue() == "2024-05-01 12:30:45.123000 +0000 [Warning] Disk /var almost full\nTraceback...\n"


def test_format_all_keeps_batch_order():
    formatter = TemplateTextFormatter("{message};")
    batch = Batch.of([LogEvent("one"), LogEvent("two"), LogEvent("three")])

    assert formatter.format_all(batch) == "one;two;three;"
    assert batch.to_dict()["event_count"] == 3


def test_loguru_message_braces_are_not_substituted_again():
    records = []
    handler_id = logger.add(lambda message: records.append(message.record), level="DEBUG")
    try:
        logger.bind(user="bob").info("Template {user} stays literal")
    finally:
        logger.remove(handler_id)

    event = LogEvent.from_loguru_record(records[0])

    assert event.properties["user"] == "bob"
    assert event.render_message() == "Template {user} stays literal"


def test_doubled_braces_render_as_literal_braces():
    event = LogEvent("{{raw}} and {name}", properties={"name": "value", "raw": "x"})

    assert event.render_message() == "{raw} and value"
