"""
Span registry.

Tracks span identity, names and parent links, and the current span of each
execution context (thread or asyncio task) via ``contextvars``. Layers subscribe
with ``register_layer`` and are told when spans are created and closed and when
events are raised.
"""

from __future__ import annotations

import itertools
import threading
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import Any, Iterator, Mapping, NewType, Protocol

from .event import Event, FieldValue, to_fields
from .levels import Level

SpanId = NewType("SpanId", int)


@dataclass(frozen=True)
class SpanRef:
    id: SpanId
    name: str
    parent: SpanId | None = None


@dataclass(frozen=True)
class Attributes:
    """What a span was created with."""

    name: str
    fields: dict[str, FieldValue] = field(default_factory=dict)
    parent: SpanId | None = None


class Layer(Protocol):
    def on_new_span(self, attrs: Attributes, span_id: SpanId, ctx: Context) -> None: ...

    def on_event(self, event: Event, ctx: Context) -> None: ...

    def on_close(self, span_id: SpanId, ctx: Context) -> None: ...


class Context:
    """Read-only view of the registry handed to layers."""

    def __init__(self, registry: Registry):
        self._registry = registry

    def lookup_current(self) -> SpanRef | None:
        return self._registry.current()


class Registry:
    def __init__(self) -> None:
        self._ids = itertools.count(1)
        self._spans: dict[SpanId, SpanRef] = {}
        self._layers: list[Layer] = []
        self._lock = threading.Lock()
        self._stack: ContextVar[tuple[SpanId, ...]] = ContextVar(f"stacklog_spans_{id(self)}", default=())

    # ------------------------------------------------------------------
    # Layers
    # ------------------------------------------------------------------

    def register_layer(self, layer: Layer) -> None:
        with self._lock:
            if layer not in self._layers:
                self._layers.append(layer)

    def unregister_layer(self, layer: Layer) -> None:
        with self._lock:
            if layer in self._layers:
                self._layers.remove(layer)

    @property
    def layers(self) -> tuple[Layer, ...]:
        return tuple(self._layers)

    def context(self) -> Context:
        return Context(self)

    # ------------------------------------------------------------------
    # Spans
    # ------------------------------------------------------------------

    def new_span(
        self,
        name: str,
        fields: Mapping[str, Any] | None = None,
        parent: SpanId | None = None,
    ) -> SpanId:
        if parent is None:
            current = self.current()
            parent = current.id if current is not None else None
        with self._lock:
            span_id = SpanId(next(self._ids))
            self._spans[span_id] = SpanRef(span_id, name, parent)
        attrs = Attributes(name, to_fields(fields), parent)
        ctx = self.context()
        for layer in self.layers:
            layer.on_new_span(attrs, span_id, ctx)
        return span_id

    def enter(self, span_id: SpanId) -> None:
        if span_id not in self._spans:
            raise KeyError(f"unknown span {span_id}")
        self._stack.set(self._stack.get() + (span_id,))

    def exit(self, span_id: SpanId) -> None:
        stack = self._stack.get()
        if span_id not in stack:
            return
        # remove the innermost occurrence only
        index = len(stack) - 1 - stack[::-1].index(span_id)
        self._stack.set(stack[:index] + stack[index + 1 :])

    def close(self, span_id: SpanId) -> None:
        if span_id not in self._spans:
            return
        ctx = self.context()
        for layer in self.layers:
            layer.on_close(span_id, ctx)
        with self._lock:
            self._spans.pop(span_id, None)

    def get(self, span_id: SpanId) -> SpanRef | None:
        return self._spans.get(span_id)

    def current(self) -> SpanRef | None:
        for span_id in reversed(self._stack.get()):
            span = self._spans.get(span_id)
            if span is not None:
                return span
        return None

    @contextmanager
    def span(self, name: str, /, **fields: Any) -> Iterator[SpanId]:
        """Create, enter, and on exit close a span."""
        span_id = self.new_span(name, fields)
        self.enter(span_id)
        try:
            yield span_id
        finally:
            self.exit(span_id)
            self.close(span_id)

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def dispatch(self, event: Event) -> None:
        ctx = self.context()
        for layer in self.layers:
            layer.on_event(event, ctx)

    def event(
        self,
        level: Level,
        target: str,
        fields: Mapping[str, Any] | None = None,
        *,
        file: str | None = None,
        line: int | None = None,
    ) -> None:
        self.dispatch(Event.create(level, target, fields, file=file, line=line))


_default_registry = Registry()


def get_registry() -> Registry:
    """Process-wide default registry."""
    return _default_registry
