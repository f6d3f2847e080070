"""
Error taxonomy for the event-to-document pipeline.

Every failure inside the pipeline is raised as one of these and caught at the
single entry point (``Stackdriver.on_event``), so nothing escapes into caller code.
"""

from __future__ import annotations


class StackdriverError(Exception):
    """Base class for all pipeline failures."""

    label = "Stackdriver error"

    def __str__(self) -> str:
        detail = super().__str__()
        return f"{self.label}: {detail}" if detail else self.label


class FormattingError(StackdriverError):
    """Writing into the in-progress document failed."""

    label = "Formatting error"


class SerializationError(StackdriverError):
    """JSON encode/decode failed, including malformed cached span fragments."""

    label = "Serialization error"


class TimeError(StackdriverError):
    """Timestamp formatting failed."""

    label = "Time error"


class IoError(StackdriverError):
    """The sink rejected the write."""

    label = "IO error"
