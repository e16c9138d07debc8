"""
Durable session storage configuration.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from .base import StorageBackendType


@dataclass
class StorageConfig:
    """Configuration for the session store backend."""

    backend: StorageBackendType = "memory"

    # Filesystem backend
    dir: Path | None = None

    # Redis backend
    redis_url: str = "redis://localhost:6379/0"

    # Namespace for all keys
    key_prefix: str = ""

    # Session lifetime; persisted state expires with the session
    ttl_seconds: int | None = 8 * 3600

    def __post_init__(self):
        """Validate configuration after initialization."""
        if self.backend not in ("memory", "fs", "redis"):
            raise ValueError(f"Invalid storage backend: {self.backend}")
        if isinstance(self.dir, str):
            self.dir = Path(self.dir)
        if self.backend == "fs" and self.dir is None:
            raise ValueError("dir is required for the fs storage backend")
        if self.ttl_seconds is not None and self.ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")


__all__ = ["StorageConfig"]
