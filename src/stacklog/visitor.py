"""
Field visitors that turn typed field callbacks into JSON object entries.

``EventVisitor`` appends an event's fields to the map the assembler already opened.
``SpanFieldsVisitor`` renders a span's own fields into a standalone JSON object
string, which is what gets cached per span.
"""

from __future__ import annotations

import math
from typing import Any, Mapping

import orjson

from .errors import FormattingError, SerializationError
from .event import FieldValue

SOURCES_SUFFIX = ".sources"


class MapWriter:
    """In-progress JSON object.

    Values are encoded with orjson as soon as they are written, so an entry that
    cannot be serialized fails at the call site. ``end`` appends the finished
    object to ``buffer``. Rewriting a key replaces its value but keeps the
    position of the first write.
    """

    def __init__(self, buffer: bytearray | None = None):
        self.buffer = buffer if buffer is not None else bytearray()
        self._entries: dict[str, orjson.Fragment] = {}
        self._closed = False

    def serialize_entry(self, key: str, value: Any) -> None:
        if self._closed:
            raise FormattingError(f"entry {key!r} written after the map was closed")
        try:
            encoded = orjson.dumps(value)
        except (orjson.JSONEncodeError, TypeError) as exc:
            # lone surrogates (e.g. from os.fsdecode) are not valid UTF-8
            try:
                encoded = orjson.dumps(_clean(value))
            except (orjson.JSONEncodeError, TypeError):
                raise SerializationError(f"cannot serialize field {key!r}: {exc}") from exc
        self._entries[_clean_text(str(key))] = orjson.Fragment(encoded)

    def end(self) -> None:
        if self._closed:
            raise FormattingError("map already closed")
        self._closed = True
        try:
            self.buffer += orjson.dumps(self._entries)
        except orjson.JSONEncodeError as exc:
            raise SerializationError(str(exc)) from exc

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def closed(self) -> bool:
        return self._closed


def _clean_text(text: str) -> str:
    try:
        text.encode("utf-8")
    except UnicodeEncodeError:
        return text.encode("utf-8", "backslashreplace").decode("utf-8")
    return text


def _clean(value: Any) -> Any:
    if isinstance(value, str):
        return _clean_text(value)
    if isinstance(value, dict):
        return {_clean_text(str(k)): _clean(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_clean(v) for v in value]
    return value


def _display(value: Any) -> str:
    try:
        return str(value)
    except Exception:
        try:
            return repr(value)
        except Exception:
            return f"<unprintable {type(value).__name__}>"


def error_message(error: BaseException) -> str:
    return _display(error) or type(error).__name__


def error_sources(error: BaseException) -> list[BaseException]:
    """Causal chain of ``error``, outermost cause first."""
    chain: list[BaseException] = []
    seen = {id(error)}
    current: BaseException | None = error
    while current is not None:
        if current.__cause__ is not None:
            nxt = current.__cause__
        elif not current.__suppress_context__:
            nxt = current.__context__
        else:
            nxt = None
        if nxt is None or id(nxt) in seen:
            break
        seen.add(id(nxt))
        chain.append(nxt)
        current = nxt
    return chain


class _JsonVisitor:
    """Shared typed callbacks. Subclasses decide what ``finish`` yields."""

    def __init__(self, writer: MapWriter):
        self._map = writer
        self._finished = False

    def _write(self, key: str, value: Any) -> None:
        if self._finished:
            raise FormattingError(f"field {key!r} recorded after finish()")
        self._map.serialize_entry(key, value)

    # int/float subclasses (numpy scalars, IntEnum, ...) are not accepted by orjson
    def record_i64(self, key: str, value: int) -> None:
        self._write(key, int(value))

    def record_u64(self, key: str, value: int) -> None:
        self._write(key, int(value))

    def record_f64(self, key: str, value: float) -> None:
        value = float(value)
        # JSON has no NaN/Infinity
        if not math.isfinite(value):
            self._write(key, str(value))
            return
        self._write(key, value)

    def record_bool(self, key: str, value: bool) -> None:
        self._write(key, bool(value))

    def record_str(self, key: str, value: str) -> None:
        self._write(key, str(value))

    def record_debug(self, key: str, value: Any) -> None:
        self._write(key, _display(value))

    def record_error(self, key: str, value: BaseException) -> None:
        self._write(key, error_message(value))
        sources = error_sources(value)
        if sources:
            self._write(f"{key}{SOURCES_SUFFIX}", [error_message(source) for source in sources])

    def _close(self) -> None:
        if self._finished:
            raise FormattingError("visitor already finished")
        self._finished = True
        self._map.end()


class EventVisitor(_JsonVisitor):
    """Writes an event's fields into the map opened by the assembler.

    Single use: ``finish`` closes the shared map and must be the last call.
    """

    def finish(self) -> None:
        self._close()


class SpanFieldsVisitor(_JsonVisitor):
    """Renders fields into a JSON object of their own."""

    def __init__(self) -> None:
        super().__init__(MapWriter())

    def finish(self) -> str:
        self._close()
        return self._map.buffer.decode("utf-8")


def format_fields(fields: Mapping[str, FieldValue]) -> str:
    """Render tagged fields as JSON object text."""
    visitor = SpanFieldsVisitor()
    for key, value in fields.items():
        value.record(key, visitor)
    return visitor.finish()
