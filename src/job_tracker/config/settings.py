"""
Settings master configuration and global helpers.
"""

from __future__ import annotations

import dataclasses
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import jsonschema
from dotenv import find_dotenv, load_dotenv

from ..config_schema import CONFIG_SCHEMA
from ..errors import InvalidConfigError
from .logging import LoggingConfig
from .polling import PollingConfig
from .service import JobServiceConfig
from .storage import StorageConfig
from .transport import TransportConfig


@dataclass
class Settings:
    """
    Master configuration for the job tracker.

    This aggregates all configuration sections into a single object
    that can be loaded from environment variables, files, or constructed
    programmatically.
    """

    polling: PollingConfig = field(default_factory=PollingConfig)
    transport: TransportConfig = field(default_factory=TransportConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    # Job types known at startup; more can be registered at runtime
    services: list[JobServiceConfig] = field(default_factory=list)

    @classmethod
    def from_env(cls, prefix: str = "JOBS_") -> Settings:
        """
        Load settings from environment variables.

        Example:
            JOBS_BASE_URL=https://backend.example/api
            JOBS_RUNNING_INTERVAL=15
            JOBS_STORAGE_BACKEND=redis
        """
        settings = cls()

        # Polling settings
        if value := os.getenv(f"{prefix}OVERVIEW_INTERVAL"):
            settings.polling.overview_interval = float(value)
        if value := os.getenv(f"{prefix}RUNNING_INTERVAL"):
            settings.polling.running_interval = float(value)
        if value := os.getenv(f"{prefix}NAVIGATION_GRACE"):
            settings.polling.navigation_grace = float(value)

        # Transport settings
        if value := os.getenv(f"{prefix}BASE_URL"):
            settings.transport = TransportConfig(base_url=value)
        if value := os.getenv(f"{prefix}TIMEOUT"):
            settings.transport.timeout = float(value)

        # Storage settings
        if value := os.getenv(f"{prefix}STORAGE_BACKEND"):
            settings.storage = StorageConfig(
                backend=value.lower(),  # type: ignore[arg-type]
                dir=os.getenv(f"{prefix}STORAGE_DIR"),  # type: ignore[arg-type]
                redis_url=os.getenv(f"{prefix}REDIS_URL", settings.storage.redis_url),
            )
        if value := os.getenv(f"{prefix}STORAGE_PREFIX"):
            settings.storage.key_prefix = value

        # Logging settings
        if level := os.getenv(f"{prefix}LOG_LEVEL"):
            settings.logging = LoggingConfig(level=level.upper(), format=settings.logging.format)  # type: ignore[arg-type]
        if log_format := os.getenv(f"{prefix}LOG_FORMAT"):
            settings.logging = LoggingConfig(level=settings.logging.level, format=log_format.lower())  # type: ignore[arg-type]

        return settings

    @classmethod
    def from_file(cls, path: str | Path) -> Settings:
        """
        Load settings from a YAML or TOML file.

        Args:
            path: Path to configuration file (.yaml, .yml, or .toml)

        Returns:
            Settings object with values from file
        """
        path = Path(path)

        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        suffix = path.suffix.lower()

        if suffix in (".yaml", ".yml"):
            try:
                import yaml  # type: ignore[import-untyped]
            except ImportError as exc:
                raise ImportError("PyYAML is required for YAML config files: pip install pyyaml") from exc
            with open(path) as f:
                data = yaml.safe_load(f) or {}
        elif suffix == ".toml":
            try:
                import tomllib
            except ImportError:
                try:
                    import tomli as tomllib
                except ImportError as exc:
                    raise ImportError("tomli is required for TOML config files: pip install tomli") from exc
            with open(path, "rb") as f:
                data = tomllib.load(f)
        else:
            raise ValueError(f"Unsupported config file format: {suffix}")

        return cls._from_dict(data)

    @classmethod
    def _from_dict(cls, data: dict[str, Any]) -> Settings:
        """
        Create Settings from a dictionary.

        The dictionary is validated against the configuration schema first.
        """
        try:
            jsonschema.validate(instance=data, schema=CONFIG_SCHEMA)
        except jsonschema.ValidationError as e:
            raise InvalidConfigError(f"Configuration validation failed: {e.message}", cause=e) from e

        settings = cls()
        if "polling" in data:
            settings.polling = PollingConfig(**data["polling"])
        if "transport" in data:
            settings.transport = TransportConfig(**data["transport"])
        if "storage" in data:
            settings.storage = StorageConfig(**data["storage"])
        if "logging" in data:
            settings.logging = LoggingConfig(**data["logging"])
        if "services" in data:
            settings.services = [JobServiceConfig(**svc) for svc in data["services"]]

        return settings

    def to_dict(self) -> dict[str, Any]:
        """Convert settings to dictionary."""

        def convert(obj):
            if dataclasses.is_dataclass(obj):
                return {f.name: convert(getattr(obj, f.name)) for f in dataclasses.fields(obj)}
            if isinstance(obj, list):
                return [convert(v) for v in obj]
            if isinstance(obj, Path):
                return str(obj)
            return obj

        return convert(self)


# =============================================================================
# Global Settings & Helpers
# =============================================================================

_global_settings: Settings | None = None


def get_settings() -> Settings:
    """Get the global settings instance, creating with defaults if needed."""
    global _global_settings
    if _global_settings is None:
        _global_settings = Settings.from_env()
    return _global_settings


def configure(settings: Settings | None = None, **kwargs) -> Settings:
    """
    Configure global settings.

    Args:
        settings: Settings object to use globally
        **kwargs: Override specific settings sections

    Returns:
        The configured Settings object
    """
    global _global_settings

    if settings is not None:
        _global_settings = settings
    elif _global_settings is None:
        _global_settings = Settings.from_env()

    for key, value in kwargs.items():
        if hasattr(_global_settings, key):
            setattr(_global_settings, key, value)

    return _global_settings


def load_env(path: str | None = None, *, override: bool = False) -> bool:
    """
    Load environment variables from a .env file.

    Args:
        path: Optional path to a .env file. If not provided, uses find_dotenv().
        override: Whether to override existing environment variables.

    Returns:
        True if a .env file was found and loaded, False otherwise.
    """
    env_path = path or find_dotenv(usecwd=True)
    if not env_path:
        return False
    return load_dotenv(env_path, override=override)


__all__ = ["Settings", "get_settings", "configure", "load_env"]
