"""
Stackdriver-format structured logging.

Turns log events into single-line JSON documents in the Google Cloud Logging
ingestion schema (severity, source location, free-form fields and the current
span), fed from structlog, standard library logging or the span registry.

Library: structlog front end, orjson serialization, pydantic-settings configuration.
"""

from .config import LoggingSettings
from .core import StackdriverProcessor, configure_logging, get_layer, get_logger
from .errors import FormattingError, IoError, SerializationError, StackdriverError, TimeError
from .event import Event, FieldKind, FieldValue, Metadata
from .interceptors import StackdriverHandler
from .layer import SpanFieldCache, Stackdriver, UtcTime
from .levels import Level
from .registry import Registry, get_registry
from .writers import FileWriter, StreamWriter, stderr, stdout

__version__ = "0.1.0"

__all__ = [
    "configure_logging",
    "get_logger",
    "get_layer",
    "get_registry",
    "LoggingSettings",
    "Stackdriver",
    "StackdriverProcessor",
    "StackdriverHandler",
    "SpanFieldCache",
    "UtcTime",
    "Registry",
    "Event",
    "Metadata",
    "FieldKind",
    "FieldValue",
    "Level",
    "StreamWriter",
    "FileWriter",
    "stdout",
    "stderr",
    "StackdriverError",
    "FormattingError",
    "SerializationError",
    "TimeError",
    "IoError",
]
