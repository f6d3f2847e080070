"""
Writer factories (sinks) that receive finished log lines.

A ``MakeWriter`` is any zero-argument callable returning an object with a
``write(bytes)`` method. The assembler obtains one writer per event and performs
exactly one write on it.
"""

from __future__ import annotations

import io
import sys
import threading
from pathlib import Path
from typing import Any, Callable, Protocol


class Writer(Protocol):
    def write(self, data: bytes) -> Any: ...


MakeWriter = Callable[[], Writer]

_STDIO_LOCK = threading.Lock()


def _is_binary(stream: Any) -> bool:
    if isinstance(stream, (io.RawIOBase, io.BufferedIOBase)):
        return True
    if isinstance(stream, io.TextIOBase):
        return False
    return "b" in str(getattr(stream, "mode", ""))


class StreamWriter:
    """Writes to a binary or text stream.

    Text streams receive the line decoded as UTF-8. The instance is its own
    ``MakeWriter``.
    """

    def __init__(self, stream: Any, *, lock: threading.Lock | None = None):
        self._stream = stream
        self._lock = lock or threading.Lock()

    def __call__(self) -> StreamWriter:
        return self

    @property
    def stream(self) -> Any:
        return self._stream

    def write(self, data: bytes) -> None:
        stream = self._stream
        with self._lock:
            if _is_binary(stream):
                stream.write(data)
            else:
                stream.write(data.decode("utf-8"))
            flush = getattr(stream, "flush", None)
            if flush is not None:
                flush()


def stdout() -> StreamWriter:
    """Default writer. ``sys.stdout`` is looked up per call so redirection is honoured."""
    return StreamWriter(sys.stdout, lock=_STDIO_LOCK)


def stderr() -> StreamWriter:
    return StreamWriter(sys.stderr, lock=_STDIO_LOCK)


class FileWriter:
    """Appends lines to a local file and rotates it by size.

    Rotated files are named ``<stem>.1<suffix>`` (newest) up to
    ``<stem>.<backup_count><suffix>`` (oldest). A failed rotation keeps the
    written line, leaves the file open and is exposed as ``rotation_error``.
    """

    def __init__(self, path: str | Path, max_bytes: int = 10 * 1024 * 1024, backup_count: int = 5):
        self._path = Path(path)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._max_bytes = max_bytes
        self._backup_count = backup_count
        self._lock = threading.Lock()
        self._file = open(self._path, "ab")
        self.rotation_error: OSError | None = None

    def __call__(self) -> FileWriter:
        return self

    @property
    def path(self) -> Path:
        return self._path

    def backup_path(self, index: int) -> Path:
        return self._path.with_name(f"{self._path.stem}.{index}{self._path.suffix}")

    def write(self, data: bytes) -> None:
        with self._lock:
            self._file.write(data)
            self._file.flush()
            try:
                self._maybe_rotate()
            except OSError as exc:
                # the line is already on disk; rotation is retried on the next write
                self.rotation_error = exc
            else:
                self.rotation_error = None

    def _maybe_rotate(self) -> None:
        if self._max_bytes <= 0 or self._file.tell() < self._max_bytes:
            return
        self._file.close()
        try:
            if self._backup_count > 0:
                oldest = self.backup_path(self._backup_count)
                if oldest.exists():
                    oldest.unlink()
                for i in range(self._backup_count - 1, 0, -1):
                    src = self.backup_path(i)
                    if src.exists():
                        src.rename(self.backup_path(i + 1))
                self._path.rename(self.backup_path(1))
            else:
                self._path.unlink()
        finally:
            self._file = open(self._path, "ab")

    def close(self) -> None:
        with self._lock:
            self._file.close()
