"""
Polling configuration.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class PollingConfig:
    """Intervals (seconds) for the two polling loops and the navigation grace delay."""

    # Completed-jobs overview (10 minutes)
    overview_interval: float = 600.0

    # Running-job status (30 seconds)
    running_interval: float = 30.0

    # Delay before polling resumes after a navigation started
    navigation_grace: float = 1.0

    def __post_init__(self):
        """Validate configuration after initialization."""
        if self.overview_interval <= 0:
            raise ValueError("overview_interval must be positive")
        if self.running_interval <= 0:
            raise ValueError("running_interval must be positive")
        if self.navigation_grace < 0:
            raise ValueError("navigation_grace cannot be negative")


__all__ = ["PollingConfig"]
