"""
Core logging configuration and the structlog front end.
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog
from structlog.typing import EventDict, WrappedLogger

from .config import LoggingSettings
from .event import Event
from .interceptors import StackdriverHandler, intercept_loggers
from .layer import Stackdriver
from .levels import Level
from .registry import Registry, get_registry
from .writers import MakeWriter

# =============================================================================
# Global State
# =============================================================================

_layer: Stackdriver | None = None

# Keys consumed by the envelope rather than emitted as fields
_ENVELOPE_KEYS = ("level", "logger", "_name", "pathname", "filename", "lineno")


def get_logger(name: str | None = None) -> structlog.typing.FilteringBoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(_name=name or "root")


def get_layer() -> Stackdriver | None:
    """The layer installed by the last ``configure_logging`` call."""
    return _layer


# =============================================================================
# Structlog Processors
# =============================================================================


def _exception_value(exc_info: Any) -> BaseException | None:
    if isinstance(exc_info, BaseException):
        return exc_info
    if isinstance(exc_info, tuple):
        return exc_info[1] if len(exc_info) > 1 else None
    if exc_info:
        return sys.exc_info()[1]
    return None


class StackdriverProcessor:
    """Final structlog processor: hands the event to a Stackdriver layer.

    Always raises ``structlog.DropEvent`` afterwards, so nothing else renders the
    event. An event dict that cannot be converted is reported like a failed
    write and dropped.
    """

    def __init__(self, layer: Stackdriver, registry: Registry | None = None):
        self._layer = layer
        self._registry = registry or get_registry()

    def __call__(self, logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
        try:
            event = self.to_event(method_name, event_dict)
        except Exception as exc:
            self._layer.report(exc, "dropped event")
        else:
            self._layer.on_event(event, self._registry.context())
        raise structlog.DropEvent

    @staticmethod
    def to_event(method_name: str, event_dict: EventDict) -> Event:
        data = dict(event_dict)
        level = Level.from_name(str(data.get("level") or method_name))
        target = str(data.get("logger") or data.get("_name") or "root")
        file = data.get("pathname") or data.get("filename")
        line = data.get("lineno")
        for key in _ENVELOPE_KEYS:
            data.pop(key, None)

        fields: dict[str, Any] = {}
        if "event" in data:
            fields["message"] = data.pop("event")
        exception = _exception_value(data.pop("exc_info", None))
        fields.update(data)
        if exception is not None:
            fields["exception"] = exception

        return Event.create(
            level,
            target,
            fields,
            file=str(file) if file else None,
            line=line if isinstance(line, int) else None,
        )


# =============================================================================
# Configuration Logic
# =============================================================================


def _configure_structlog(layer: Stackdriver, registry: Registry, level: int) -> None:
    """Configure structlog processors and factory."""
    shared_processors = [
        structlog.stdlib.add_log_level,
        structlog.processors.CallsiteParameterAdder(
            [
                structlog.processors.CallsiteParameter.PATHNAME,
                structlog.processors.CallsiteParameter.LINENO,
            ]
        ),
    ]

    structlog.configure(
        processors=shared_processors + [StackdriverProcessor(layer, registry)],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.ReturnLoggerFactory(),
        cache_logger_on_first_use=False,
    )


def configure_logging(
    settings: LoggingSettings | None = None,
    *,
    registry: Registry | None = None,
    make_writer: MakeWriter | None = None,
) -> Stackdriver:
    """
    Configure Stackdriver logging for structlog and the standard library.

    Args:
        settings: Logging settings (default: loaded from ``STACKLOG_*`` environment)
        registry: Span registry the layer subscribes to (default: process registry)
        make_writer: Overrides the writer chosen by ``settings``

    Returns:
        The installed layer.
    """
    global _layer

    settings = settings or LoggingSettings()
    registry = registry or get_registry()
    level = Level.from_name(settings.level.value)

    # 1. Build the layer and subscribe it to span lifecycle
    layer = Stackdriver(make_writer or settings.make_writer(), log_span=settings.log_span)
    if _layer is not None:
        registry.unregister_layer(_layer)
    registry.register_layer(layer)
    _layer = layer

    # 2. Configure Structlog
    # structlog has no level below DEBUG
    _configure_structlog(layer, registry, max(int(level), logging.DEBUG))

    # 3. Configure Stdlib Logging (Root)
    root_logger = logging.getLogger()
    root_logger.handlers = []
    root_logger.setLevel(int(level))
    root_logger.addHandler(StackdriverHandler(layer, registry))

    # 4. Intercept Third-Party Loggers
    intercept_loggers(settings.intercepted_loggers)

    return layer
