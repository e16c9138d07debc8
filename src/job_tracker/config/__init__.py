"""
Configuration system for job-tracker.

This package provides typed configuration classes with:
- Dataclass-based settings with validation
- Environment variable loading
- YAML/TOML file loading
- Sensible defaults with override capability
"""

from .base import LogFormat, LogLevel, StorageBackendType
from .logging import LoggingConfig
from .polling import PollingConfig
from .service import JobServiceConfig
from .settings import Settings, configure, get_settings, load_env
from .storage import StorageConfig
from .transport import TransportConfig

__all__ = [
    # Types
    "StorageBackendType",
    "LogLevel",
    "LogFormat",
    # Section configs
    "JobServiceConfig",
    "PollingConfig",
    "TransportConfig",
    "StorageConfig",
    "LoggingConfig",
    # Master config
    "Settings",
    # Global functions
    "get_settings",
    "configure",
    "load_env",
]
