"""
Log levels and their Cloud Logging severity names.
"""

from __future__ import annotations

import logging
from enum import IntEnum

TRACE_LEVEL = 5


class Level(IntEnum):
    """Event levels, ordered by verbosity (numbers follow stdlib logging)."""

    TRACE = TRACE_LEVEL
    DEBUG = logging.DEBUG
    INFO = logging.INFO
    WARN = logging.WARNING
    ERROR = logging.ERROR
    CRITICAL = logging.CRITICAL

    @property
    def severity(self) -> str:
        return SEVERITY[self]

    @classmethod
    def from_stdlib(cls, levelno: int) -> Level:
        """Map a stdlib logging number onto the nearest level at or above it."""
        for level in cls:
            if levelno <= level:
                return level
        return cls.CRITICAL

    @classmethod
    def from_name(cls, name: str) -> Level:
        """Resolve a level name as used by structlog/stdlib ("warning", "exception", ...)."""
        key = name.strip().upper()
        if key in _ALIASES:
            return _ALIASES[key]
        try:
            return cls[key]
        except KeyError:
            numeric = logging.getLevelName(key)
            if isinstance(numeric, int):
                return cls.from_stdlib(numeric)
            return cls.INFO


# Total over Level; test_levels guards that every member is present.
SEVERITY: dict[Level, str] = {
    Level.TRACE: "DEFAULT",
    Level.DEBUG: "DEBUG",
    Level.INFO: "INFO",
    Level.WARN: "WARNING",
    Level.ERROR: "ERROR",
    Level.CRITICAL: "CRITICAL",
}

_ALIASES: dict[str, Level] = {
    "WARNING": Level.WARN,
    "EXCEPTION": Level.ERROR,
    "FATAL": Level.CRITICAL,
    "NOTSET": Level.TRACE,
}
