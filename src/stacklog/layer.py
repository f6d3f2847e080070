"""
Stackdriver layer: assembles one Cloud Logging JSON document per event.

Document layout, in key order::

    {"time": ..., "severity": ..., "logger": ...,
     "sourceLocation": {"file": ..., "line": ...},
     "span": {...},            # only with span logging and a current span
     <event fields>...}

Each span's own fields are rendered once, when the span is created, into an
owned ``SpanFieldCache``. At event time the cached text is parsed back, the span
``name`` is injected and the result is written as the ``span`` entry.
"""

from __future__ import annotations

import sys
import threading
from datetime import datetime, timezone
from typing import Any, Callable

import orjson

from .errors import IoError, SerializationError, StackdriverError, TimeError
from .event import Event
from .registry import Attributes, Context, SpanId, SpanRef
from .visitor import EventVisitor, MapWriter, format_fields
from .writers import MakeWriter, stdout

SOURCE_LOCATION_KEY = "sourceLocation"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class UtcTime:
    """RFC3339 UTC timestamps, e.g. ``2026-10-17T12:00:00.123456Z``."""

    def __init__(self, clock: Callable[[], datetime] = _utc_now):
        self._clock = clock

    def format_time(self) -> str:
        try:
            now = self._clock()
            if now.tzinfo is None:
                now = now.replace(tzinfo=timezone.utc)
            return now.astimezone(timezone.utc).isoformat(timespec="microseconds").replace("+00:00", "Z")
        except Exception as exc:
            raise TimeError(str(exc)) from exc


class SpanFieldCache:
    """Pre-rendered span fields keyed by span id.

    Written once per span, read-only afterwards, evicted when the span closes.
    """

    def __init__(self) -> None:
        self._fields: dict[SpanId, str] = {}
        self._lock = threading.Lock()

    def insert(self, span_id: SpanId, text: str) -> bool:
        """Store ``text`` unless the span already has an entry. Returns whether it was stored."""
        with self._lock:
            if span_id in self._fields:
                return False
            self._fields[span_id] = text
            return True

    def get(self, span_id: SpanId) -> str | None:
        return self._fields.get(span_id)

    def remove(self, span_id: SpanId) -> None:
        with self._lock:
            self._fields.pop(span_id, None)

    def __contains__(self, span_id: object) -> bool:
        return span_id in self._fields

    def __len__(self) -> int:
        return len(self._fields)


class Stackdriver:
    """Formats events as Cloud Logging JSON lines and writes them to a sink.

    Args:
        make_writer: Zero-argument callable returning the destination for one line
        log_span: Attach the current span (name and fields) to every line
        time: Timestamp source
        diagnostics: Stream that receives a note for every dropped event (default: stderr)
    """

    def __init__(
        self,
        make_writer: MakeWriter = stdout,
        *,
        log_span: bool = False,
        time: UtcTime | None = None,
        diagnostics: Any = None,
    ):
        self._make_writer = make_writer
        self._log_span = log_span
        self._time = time or UtcTime()
        self._diagnostics = diagnostics
        self._cache = SpanFieldCache()

    def with_writer(self, make_writer: MakeWriter) -> Stackdriver:
        return Stackdriver(make_writer, log_span=self._log_span, time=self._time, diagnostics=self._diagnostics)

    def with_span_logging(self, enabled: bool = True) -> Stackdriver:
        return Stackdriver(self._make_writer, log_span=enabled, time=self._time, diagnostics=self._diagnostics)

    @property
    def log_span(self) -> bool:
        return self._log_span

    @property
    def cache(self) -> SpanFieldCache:
        return self._cache

    # ------------------------------------------------------------------
    # Assembly
    # ------------------------------------------------------------------

    def visit(self, event: Event, ctx: Context) -> bytes:
        """Assemble and write the line for ``event``. Returns the bytes written."""
        buffer = bytearray()
        meta = event.metadata

        try:
            time = self._time.format_time()
        except TimeError as exc:
            self.report(exc, "timestamp omitted")
            time = ""

        map_writer = MapWriter(buffer)
        map_writer.serialize_entry("time", time)
        map_writer.serialize_entry("severity", meta.level.severity)
        map_writer.serialize_entry("logger", meta.target)
        map_writer.serialize_entry(SOURCE_LOCATION_KEY, {"file": meta.file, "line": meta.line})

        if self._log_span:
            span = ctx.lookup_current()
            if span is not None:
                map_writer.serialize_entry("span", self._span_entry(span))

        visitor = EventVisitor(map_writer)
        event.record(visitor)
        visitor.finish()

        buffer += b"\n"
        line = bytes(buffer)
        try:
            self._make_writer().write(line)
        except (OSError, ValueError) as exc:
            raise IoError(str(exc)) from exc
        return line

    def _span_entry(self, span: SpanRef) -> dict[str, Any]:
        cached = self._cache.get(span.id)
        if cached is None:
            # on_new_span never ran (or failed) for this span
            raise SerializationError(f"no cached fields for span {span.name!r}")
        try:
            fields = orjson.loads(cached)
        except orjson.JSONDecodeError as exc:
            raise SerializationError(f"malformed cached fields for span {span.name!r}: {exc}") from exc
        if not isinstance(fields, dict):
            raise SerializationError(f"cached fields for span {span.name!r} are not a JSON object")
        fields["name"] = span.name
        return fields

    # ------------------------------------------------------------------
    # Layer hooks
    # ------------------------------------------------------------------

    def on_event(self, event: Event, ctx: Context) -> None:
        try:
            self.visit(event, ctx)
        except Exception as exc:
            self.report(exc, "dropped event")

    def on_new_span(self, attrs: Attributes, span_id: SpanId, ctx: Context) -> None:
        try:
            text = format_fields(attrs.fields)
        except StackdriverError as exc:
            self.report(exc, f"fields of span {attrs.name!r} not cached")
            return
        self._cache.insert(span_id, text)

    def on_close(self, span_id: SpanId, ctx: Context) -> None:
        self._cache.remove(span_id)

    def report(self, error: Exception, action: str) -> None:
        stream = self._diagnostics if self._diagnostics is not None else sys.stderr
        try:
            stream.write(f"stacklog: {action}: {type(error).__name__}: {error}\n")
            stream.flush()
        except Exception:
            pass  # nowhere left to report to
