"""
Interceptors for routing standard library logging through the Stackdriver layer.
"""

from __future__ import annotations

import logging
from typing import Iterable

from .event import Event
from .layer import Stackdriver
from .levels import Level
from .registry import Registry, get_registry

# Attributes every LogRecord carries; anything else arrived through ``extra=``.
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "asctime", "taskName"}


class StackdriverHandler(logging.Handler):
    """
    Convert standard library log records into events for a Stackdriver layer.

    The record's logger name becomes the ``logger`` entry and its path/line the
    source location. Fields are the formatted message, any ``extra=`` values and
    the active exception, in that order.
    """

    def __init__(self, layer: Stackdriver, registry: Registry | None = None, level: int = logging.NOTSET):
        super().__init__(level)
        self._layer = layer
        self._registry = registry or get_registry()

    def emit(self, record: logging.LogRecord) -> None:
        try:
            self._layer.on_event(self.to_event(record), self._registry.context())
        except Exception:
            self.handleError(record)

    @staticmethod
    def to_event(record: logging.LogRecord) -> Event:
        fields: dict[str, object] = {"message": record.getMessage()}
        for key, value in record.__dict__.items():
            if key not in _RECORD_ATTRS and not key.startswith("_"):
                fields[key] = value
        if record.exc_info and record.exc_info[1] is not None:
            fields["exception"] = record.exc_info[1]
        return Event.create(
            Level.from_stdlib(record.levelno),
            record.name,
            fields,
            file=record.pathname or None,
            line=record.lineno,
        )


def intercept_loggers(names: Iterable[str]) -> None:
    """Strip handlers from the named loggers (and their children) so records reach the root handler."""
    roots = list(names)
    if not roots:
        return

    for logger_name in roots:
        lg = logging.getLogger(logger_name)
        lg.handlers = []
        lg.propagate = True

    # Catch child loggers that were created with their own handlers
    for name, logger in logging.Logger.manager.loggerDict.items():
        if isinstance(logger, logging.PlaceHolder):
            continue
        if any(name == root or name.startswith(f"{root}.") for root in roots):
            logger.handlers = []
            logger.propagate = True
