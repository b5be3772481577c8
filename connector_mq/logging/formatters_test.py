"""Tests for the JSON log formatter and context logger."""

import json
import logging
import sys

import pytest

from connector_mq.logging.context import LogContext, clear_context, update_context
from connector_mq.logging.factory import ContextLogger, get_logger
from connector_mq.logging.formatters import StructuredFormatter


@pytest.fixture(autouse=True)
def reset_context():
    clear_context()
    yield
    clear_context()


def make_record(msg="Message published", exc_info=None, **extra):
    record = logging.LogRecord("connector_mq.rmq", logging.INFO, __file__, 10, msg, (), exc_info)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_format_base_fields():
    formatter = StructuredFormatter(LogContext(app_name="connector-mq"), include_source=False)

    data = json.loads(formatter.format(make_record()))

    assert data["severity"] == "INFO"
    assert data["logger"] == "connector_mq.rmq"
    assert data["message"] == "Message published"
    assert data["app_name"] == "connector-mq"
    assert "source" not in data


def test_format_includes_current_context_and_extras():
    update_context(connector_id="conn-1")
    formatter = StructuredFormatter()

    data = json.loads(formatter.format(make_record(queue="listen_conn-1")))

    assert data["connector_id"] == "conn-1"
    assert data["queue"] == "listen_conn-1"
    assert data["source"]["line"] == 10


def test_format_exception():
    formatter = StructuredFormatter()
    try:
        raise ValueError("cannot process")
    except ValueError:
        record = make_record("Message callback failed", exc_info=sys.exc_info())

    data = json.loads(formatter.format(record))

    assert data["exception"]["type"] == "ValueError"
    assert data["exception"]["message"] == "cannot process"
    assert "Traceback" in data["exception"]["stacktrace"]


def test_get_logger_injects_context(caplog):
    update_context(connector_id="conn-1", operation="consume")
    logger = get_logger("connector_mq.test")

    with caplog.at_level(logging.INFO, logger="connector_mq.test"):
        logger.info("Consuming", extra={"operation": "override"})

    assert isinstance(logger, ContextLogger)
    record = caplog.records[0]
    assert record.connector_id == "conn-1"
    assert record.operation == "override"
