"""
Logging configuration.
"""

from __future__ import annotations

from dataclasses import dataclass

from ..logging import configure_logging
from .base import LogFormat, LogLevel


@dataclass
class LoggingConfig:
    """Configuration for logging."""

    level: LogLevel = "INFO"
    format: LogFormat = "text"

    def __post_init__(self):
        """Validate configuration after initialization."""
        valid_levels = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
        if self.level not in valid_levels:
            raise ValueError(f"Invalid log level: {self.level}. Must be one of {valid_levels}")
        valid_formats = ("text", "json")
        if self.format not in valid_formats:
            raise ValueError(f"Invalid log format: {self.format}. Must be one of {valid_formats}")

    def apply(self) -> None:
        """Make this the default for the structured logger registry."""
        configure_logging(level=self.level, json_output=self.format == "json")


__all__ = ["LoggingConfig"]
