"""
Navigation signals.

The host application reports route changes through NavigationEvents. The
polling coordinator listens for ``STARTED`` events; RoutePollingGuard
listens for ``ENDED`` events and pauses polling while the user is inside a
configured route prefix.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from .logging import JobLogger, get_logger
from .streams import Subscription

if TYPE_CHECKING:
    from .polling import PollingCoordinator


class NavigationKind(str, Enum):
    STARTED = "started"
    ENDED = "ended"


@dataclass(frozen=True)
class NavigationEvent:
    kind: NavigationKind
    url: str = ""


class NavigationEvents:
    """Synchronous fan-out of navigation events to subscribers."""

    def __init__(self, logger: JobLogger | None = None) -> None:
        self._subscribers: list[Callable[[NavigationEvent], None]] = []
        self.logger = logger or get_logger("job_tracker.navigation")

    def subscribe(self, callback: Callable[[NavigationEvent], None]) -> Subscription:
        self._subscribers.append(callback)

        def _remove() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return Subscription(_remove)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def emit(self, event: NavigationEvent) -> None:
        for callback in list(self._subscribers):
            try:
                callback(event)
            except Exception as exc:
                self.logger.error("Navigation subscriber raised", url=event.url, error=str(exc))

    def navigation_started(self, url: str = "") -> None:
        self.emit(NavigationEvent(NavigationKind.STARTED, url))

    def navigation_ended(self, url: str = "") -> None:
        self.emit(NavigationEvent(NavigationKind.ENDED, url))


class RoutePollingGuard:
    """
    Stop all polling while the current route is under one of ``prefixes``.

    Polling resumes when the user leaves the guarded routes, provided the
    guard was the one that stopped it.
    """

    def __init__(
        self,
        coordinator: PollingCoordinator,
        events: NavigationEvents,
        prefixes: Sequence[str],
        *,
        current_url: str = "",
        logger: JobLogger | None = None,
    ) -> None:
        self.coordinator = coordinator
        self.prefixes = [p.rstrip("/") for p in prefixes]
        self.logger = logger or get_logger("RoutePollingGuard")
        self.in_guarded_route = False
        self._was_polling_active = False

        self.check_route(current_url)
        self._subscription = events.subscribe(self._on_navigation)

    def is_guarded(self, url: str) -> bool:
        path = url.split("?", 1)[0].split("#", 1)[0]
        return any(path == prefix or path.startswith(prefix + "/") for prefix in self.prefixes)

    def _on_navigation(self, event: NavigationEvent) -> None:
        if event.kind is NavigationKind.ENDED:
            self.check_route(event.url)

    def check_route(self, url: str) -> None:
        guarded = self.is_guarded(url)
        if guarded and not self.in_guarded_route:
            self.logger.debug(f"Entering guarded route ({url}), stopping job polling")
            self.coordinator.stop_all_polling()
            self._was_polling_active = True
            self.in_guarded_route = True
        elif not guarded and self.in_guarded_route:
            self.logger.debug(f"Leaving guarded route ({url}), resuming job polling")
            if self._was_polling_active:
                self.coordinator.resume_polling()
            self.in_guarded_route = False

    def close(self) -> None:
        """Stop listening; polling this guard stopped is resumed."""
        self._subscription.unsubscribe()
        if self.in_guarded_route and self._was_polling_active:
            self.logger.debug("Guard closed inside guarded route, resuming job polling")
            self.coordinator.resume_polling()
        self.in_guarded_route = False
        self._was_polling_active = False


__all__ = ["NavigationKind", "NavigationEvent", "NavigationEvents", "RoutePollingGuard"]
