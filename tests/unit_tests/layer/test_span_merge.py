"""
Span field caching and merging into event documents.
"""

from __future__ import annotations

import os

from stacklog.event import Event
from stacklog.layer import SpanFieldCache, Stackdriver
from stacklog.levels import Level
from stacklog.registry import SpanId


class TestSpanFieldCache:
    """Owned span id -> rendered fields mapping"""

    def test_insert_once(self) -> None:
        cache = SpanFieldCache()
        assert cache.insert(SpanId(1), '{"a":1}') is True
        assert cache.insert(SpanId(1), '{"a":2}') is False
        assert cache.get(SpanId(1)) == '{"a":1}'

    def test_remove(self) -> None:
        cache = SpanFieldCache()
        cache.insert(SpanId(1), "{}")
        cache.remove(SpanId(1))
        cache.remove(SpanId(1))
        assert SpanId(1) not in cache
        assert len(cache) == 0


class TestSpanLogging:
    """The ``span`` entry"""

    def test_span_entry_has_name_and_fields(self, span_layer, writer, registry) -> None:
        with registry.span("checkout", order_id=17, region="eu"):
            registry.event(Level.INFO, "shop", {"step": "pay"})

        (doc,) = writer.documents
        assert doc["span"] == {"order_id": 17, "region": "eu", "name": "checkout"}
        assert list(doc) == ["time", "severity", "logger", "sourceLocation", "span", "step"]

    def test_innermost_span_is_used(self, span_layer, writer, registry) -> None:
        with registry.span("outer", depth=1):
            with registry.span("inner", depth=2):
                registry.event(Level.INFO, "app")
            registry.event(Level.INFO, "app")

        inner, outer = writer.documents
        assert inner["span"] == {"depth": 2, "name": "inner"}
        assert outer["span"] == {"depth": 1, "name": "outer"}

    def test_span_name_overrides_name_field(self, span_layer, writer, registry) -> None:
        with registry.span("real", name="field"):
            registry.event(Level.INFO, "app")
        assert writer.documents[0]["span"] == {"name": "real"}

    def test_no_current_span(self, span_layer, writer, registry) -> None:
        registry.event(Level.INFO, "app")
        assert "span" not in writer.documents[0]

    def test_disabled_span_logging_never_emits_span(self, layer, writer, registry) -> None:
        registry.register_layer(layer)
        with registry.span("work", n=1):
            registry.event(Level.INFO, "app")
        (doc,) = writer.documents
        assert "span" not in doc

    def test_cache_evicted_on_close(self, span_layer, registry) -> None:
        with registry.span("work") as span_id:
            assert span_id in span_layer.cache
        assert span_id not in span_layer.cache

    def test_span_error_fields_are_cached(self, span_layer, writer, registry) -> None:
        try:
            raise ValueError("outer") from KeyError("inner")
        except ValueError as exc:
            error = exc

        with registry.span("job", failure=error):
            registry.event(Level.ERROR, "app")

        assert writer.documents[0]["span"] == {
            "failure": "outer",
            "failure.sources": ["'inner'"],
            "name": "job",
        }

    def test_undecodable_span_field_is_escaped(self, span_layer, writer, diagnostics, registry) -> None:
        with registry.span("upload", path=os.fsdecode(b"report-\xff.csv")) as span_id:
            assert span_id in span_layer.cache
            registry.event(Level.INFO, "app")

        assert writer.documents[0]["span"] == {"path": "report-\\udcff.csv", "name": "upload"}
        assert diagnostics.getvalue() == ""


class TestSpanFailures:
    """Missing or malformed cache entries drop the event"""

    def test_missing_cache_entry(self, writer, diagnostics, registry) -> None:
        span_id = registry.new_span("never-cached")
        layer = Stackdriver(writer, log_span=True, diagnostics=diagnostics)
        registry.register_layer(layer)
        registry.enter(span_id)
        try:
            registry.event(Level.INFO, "app")
        finally:
            registry.exit(span_id)

        assert writer.writes == []
        assert "SerializationError" in diagnostics.getvalue()
        assert "never-cached" in diagnostics.getvalue()

    def test_malformed_cache_entry(self, span_layer, writer, diagnostics, registry) -> None:
        span_id = registry.new_span("broken")
        span_layer.cache.remove(span_id)
        span_layer.cache.insert(span_id, "{not json")
        registry.enter(span_id)
        registry.dispatch(Event.create(Level.INFO, "app"))
        registry.exit(span_id)

        assert writer.writes == []
        assert "dropped event: SerializationError" in diagnostics.getvalue()

    def test_non_object_cache_entry(self, span_layer, writer, diagnostics, registry) -> None:
        span_id = registry.new_span("list")
        span_layer.cache.remove(span_id)
        span_layer.cache.insert(span_id, "[1, 2]")
        registry.enter(span_id)
        registry.event(Level.INFO, "app")
        registry.exit(span_id)

        assert writer.writes == []
        assert "not a JSON object" in diagnostics.getvalue()
