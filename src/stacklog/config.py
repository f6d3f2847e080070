"""
Logging Configuration.
"""

from enum import Enum

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .writers import FileWriter, MakeWriter, stderr, stdout


class LogLevel(str, Enum):
    TRACE = "TRACE"
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class WriterKind(str, Enum):
    STDOUT = "stdout"
    STDERR = "stderr"
    FILE = "file"


class LoggingSettings(BaseSettings):
    """Stackdriver logging configuration."""

    model_config = SettingsConfigDict(
        env_prefix="STACKLOG_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    level: LogLevel = Field(default=LogLevel.INFO, description="Minimum level emitted")
    log_span: bool = Field(default=False, description="Attach the current span to every line")
    writer: WriterKind = Field(default=WriterKind.STDOUT, description="Destination (stdout, stderr, file)")
    file_path: str = Field(default="logs/stacklog.log", description="Path for the file writer")
    max_bytes: int = Field(default=10 * 1024 * 1024, ge=0, description="Rotate the file once it exceeds this size")
    backup_count: int = Field(default=5, ge=0, description="Rotated files to keep")
    intercept: str = Field(default="", description="Comma-separated stdlib logger names to route through the root logger")

    @property
    def intercepted_loggers(self) -> list[str]:
        return [name.strip() for name in self.intercept.split(",") if name.strip()]

    def make_writer(self) -> MakeWriter:
        if self.writer is WriterKind.FILE:
            return FileWriter(self.file_path, max_bytes=self.max_bytes, backup_count=self.backup_count)
        if self.writer is WriterKind.STDERR:
            return stderr
        return stdout
