"""
Event model: metadata plus an ordered set of typed fields.

Field values form a closed union (``FieldKind``). Anything that is not one of the
primitive kinds is carried as ``DEBUG`` and rendered as text, so a field is never
dropped.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Protocol

from .levels import Level

I64_MIN = -(2**63)
I64_MAX = 2**63 - 1
U64_MAX = 2**64 - 1


class Visit(Protocol):
    """Typed field callbacks, one per ``FieldKind``."""

    def record_i64(self, key: str, value: int) -> None: ...

    def record_u64(self, key: str, value: int) -> None: ...

    def record_f64(self, key: str, value: float) -> None: ...

    def record_bool(self, key: str, value: bool) -> None: ...

    def record_str(self, key: str, value: str) -> None: ...

    def record_debug(self, key: str, value: Any) -> None: ...

    def record_error(self, key: str, value: BaseException) -> None: ...


class FieldKind(str, Enum):
    I64 = "i64"
    U64 = "u64"
    F64 = "f64"
    BOOL = "bool"
    STR = "str"
    DEBUG = "debug"
    ERROR = "error"


@dataclass(frozen=True)
class FieldValue:
    """A field value tagged with the callback that must receive it."""

    kind: FieldKind
    value: Any

    @classmethod
    def of(cls, value: Any) -> FieldValue:
        if isinstance(value, FieldValue):
            return value
        # bool is an int subclass, so it must be checked first
        if isinstance(value, bool):
            return cls(FieldKind.BOOL, value)
        if isinstance(value, int):
            if I64_MIN <= value <= I64_MAX:
                return cls(FieldKind.I64, value)
            if 0 <= value <= U64_MAX:
                return cls(FieldKind.U64, value)
            return cls(FieldKind.DEBUG, value)
        if isinstance(value, float):
            return cls(FieldKind.F64, value)
        if isinstance(value, str):
            return cls(FieldKind.STR, value)
        if isinstance(value, BaseException):
            return cls(FieldKind.ERROR, value)
        return cls(FieldKind.DEBUG, value)

    @classmethod
    def unsigned(cls, value: int) -> FieldValue:
        """Tag a non-negative int explicitly as ``U64``."""
        if not 0 <= value <= U64_MAX:
            raise ValueError(f"{value} does not fit an unsigned 64-bit field")
        return cls(FieldKind.U64, value)

    def record(self, key: str, visitor: Visit) -> None:
        kind = self.kind
        if kind is FieldKind.I64:
            visitor.record_i64(key, self.value)
        elif kind is FieldKind.U64:
            visitor.record_u64(key, self.value)
        elif kind is FieldKind.F64:
            visitor.record_f64(key, self.value)
        elif kind is FieldKind.BOOL:
            visitor.record_bool(key, self.value)
        elif kind is FieldKind.STR:
            visitor.record_str(key, self.value)
        elif kind is FieldKind.ERROR:
            visitor.record_error(key, self.value)
        else:
            visitor.record_debug(key, self.value)


def to_fields(values: Mapping[str, Any] | None) -> dict[str, FieldValue]:
    """Classify a plain mapping into tagged fields, keeping insertion order."""
    if not values:
        return {}
    return {str(key): FieldValue.of(value) for key, value in values.items()}


@dataclass(frozen=True)
class Metadata:
    """Static description of where an event came from."""

    level: Level
    target: str
    file: str | None = None
    line: int | None = None


@dataclass
class Event:
    """One log record: metadata plus its attached fields."""

    metadata: Metadata
    fields: dict[str, FieldValue] = field(default_factory=dict)

    @classmethod
    def create(
        cls,
        level: Level,
        target: str,
        fields: Mapping[str, Any] | None = None,
        *,
        file: str | None = None,
        line: int | None = None,
    ) -> Event:
        return cls(Metadata(level, target, file, line), to_fields(fields))

    def record(self, visitor: Visit) -> None:
        """Deliver every field to ``visitor`` in insertion order."""
        for key, value in self.fields.items():
            value.record(key, visitor)
