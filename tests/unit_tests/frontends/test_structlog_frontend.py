"""
structlog front end and configure_logging.
"""

from __future__ import annotations

import logging

import pytest
import structlog

from stacklog import core
from stacklog.config import LoggingSettings
from stacklog.core import StackdriverProcessor, configure_logging, get_layer, get_logger
from stacklog.levels import Level


@pytest.fixture
def restore_logging():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    previous_layer = core._layer
    yield
    structlog.reset_defaults()
    root.handlers = handlers
    root.setLevel(level)
    core._layer = previous_layer


@pytest.fixture
def configured(restore_logging, registry, writer):
    settings = LoggingSettings(level="DEBUG", log_span=True)
    return configure_logging(settings, registry=registry, make_writer=writer)


class TestToEvent:
    """event_dict -> Event conversion"""

    def test_envelope_keys_are_consumed(self) -> None:
        event = StackdriverProcessor.to_event(
            "warning",
            {
                "event": "pool exhausted",
                "level": "warning",
                "_name": "db",
                "pathname": "/srv/pool.py",
                "lineno": 42,
                "retries": 3,
            },
        )
        assert event.metadata.level is Level.WARN
        assert event.metadata.target == "db"
        assert event.metadata.file == "/srv/pool.py"
        assert event.metadata.line == 42
        assert list(event.fields) == ["message", "retries"]

    def test_defaults(self) -> None:
        event = StackdriverProcessor.to_event("info", {})
        assert event.metadata.level is Level.INFO
        assert event.metadata.target == "root"
        assert event.metadata.file is None
        assert event.metadata.line is None
        assert event.fields == {}

    def test_exc_info_becomes_error_field(self) -> None:
        error = ValueError("bad")
        event = StackdriverProcessor.to_event("error", {"event": "failed", "exc_info": (ValueError, error, None)})
        assert list(event.fields) == ["message", "exception"]
        assert event.fields["exception"].value is error


class TestProcessor:
    """The processor writes through the layer and drops the event"""

    def test_drop_event_after_writing(self, layer, writer, registry) -> None:
        processor = StackdriverProcessor(layer, registry)
        with pytest.raises(structlog.DropEvent):
            processor(None, "info", {"event": "hello", "level": "info"})
        assert writer.documents[0]["message"] == "hello"

    def test_unconvertible_event_dict_is_reported(self, layer, writer, diagnostics, registry) -> None:
        class BadLevel:
            def __str__(self) -> str:
                raise RuntimeError("level has no name")

        processor = StackdriverProcessor(layer, registry)
        with pytest.raises(structlog.DropEvent):
            processor(None, "info", {"event": "hello", "level": BadLevel()})
        assert writer.writes == []
        assert "stacklog: dropped event: RuntimeError: level has no name" in diagnostics.getvalue()


class TestConfigureLogging:
    """End to end through structlog"""

    def test_structlog_event(self, configured, writer) -> None:
        get_logger("payments").warning("card declined", attempt=2, amount=9.5)

        (doc,) = writer.documents
        assert doc["severity"] == "WARNING"
        assert doc["logger"] == "payments"
        assert doc["message"] == "card declined"
        assert doc["attempt"] == 2
        assert doc["amount"] == 9.5
        assert doc["sourceLocation"]["file"].endswith("test_structlog_frontend.py")
        assert isinstance(doc["sourceLocation"]["line"], int)

    def test_exception_chain(self, configured, writer) -> None:
        try:
            try:
                raise KeyError("missing")
            except KeyError as exc:
                raise RuntimeError("lookup failed") from exc
        except RuntimeError:
            get_logger("svc").exception("request failed")

        (doc,) = writer.documents
        assert doc["severity"] == "ERROR"
        assert doc["exception"] == "lookup failed"
        assert doc["exception.sources"] == ["'missing'"]

    def test_span_attached(self, configured, writer, registry) -> None:
        with registry.span("handler", route="/pay"):
            get_logger("web").info("ok")
        assert writer.documents[0]["span"] == {"route": "/pay", "name": "handler"}

    def test_level_filtering(self, restore_logging, registry, writer) -> None:
        configure_logging(LoggingSettings(level="WARNING"), registry=registry, make_writer=writer)
        get_logger("app").info("hidden")
        get_logger("app").error("shown")
        assert [doc["message"] for doc in writer.documents] == ["shown"]

    def test_reconfigure_replaces_layer(self, restore_logging, registry, writer) -> None:
        first = configure_logging(LoggingSettings(), registry=registry, make_writer=writer)
        second = configure_logging(LoggingSettings(), registry=registry, make_writer=writer)
        assert get_layer() is second
        assert registry.layers == (second,)
        assert first is not second

    def test_stdlib_records_reach_the_layer(self, configured, writer) -> None:
        logging.getLogger("legacy.module").info("from %s", "stdlib", extra={"job": 7})
        (doc,) = writer.documents
        assert doc["logger"] == "legacy.module"
        assert doc["message"] == "from stdlib"
        assert doc["job"] == 7
