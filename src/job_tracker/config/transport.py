"""
HTTP transport configuration.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class TransportConfig:
    """Configuration for the aiohttp transport."""

    base_url: str = "http://localhost:8080/api"
    upload_path: str = "/uploadfile"
    timeout: float = 60.0

    # Background polling must not pop error toasts in the UI
    suppress_error_toast: bool = True

    headers: dict[str, str] = field(default_factory=dict)

    def __post_init__(self):
        """Validate configuration after initialization."""
        if not self.base_url.startswith(("http://", "https://")):
            raise ValueError("base_url must be a valid HTTP(S) URL")
        self.base_url = self.base_url.rstrip("/")
        if not self.upload_path.startswith("/"):
            self.upload_path = "/" + self.upload_path
        if self.timeout <= 0:
            raise ValueError("timeout must be positive")


__all__ = ["TransportConfig"]
