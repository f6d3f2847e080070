import io
from datetime import datetime, timezone

import orjson
import pytest

from stacklog.layer import Stackdriver, UtcTime
from stacklog.registry import Registry
from stacklog.writers import StreamWriter

FIXED_NOW = datetime(2026, 10, 17, 12, 30, 45, 123456, tzinfo=timezone.utc)


class MemoryWriter(StreamWriter):
    """Collects written lines in memory."""

    def __init__(self):
        super().__init__(io.BytesIO())
        self.writes: list[bytes] = []

    def write(self, data: bytes) -> None:
        self.writes.append(data)
        super().write(data)

    @property
    def documents(self) -> list[dict]:
        return [orjson.loads(line) for line in self.writes]


@pytest.fixture
def writer() -> MemoryWriter:
    return MemoryWriter()


@pytest.fixture
def diagnostics() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def registry() -> Registry:
    return Registry()


@pytest.fixture
def layer(writer, diagnostics) -> Stackdriver:
    return Stackdriver(writer, time=UtcTime(lambda: FIXED_NOW), diagnostics=diagnostics)


@pytest.fixture
def span_layer(writer, diagnostics, registry) -> Stackdriver:
    layer = Stackdriver(writer, log_span=True, time=UtcTime(lambda: FIXED_NOW), diagnostics=diagnostics)
    registry.register_layer(layer)
    return layer
