"""
Polling coordinator.

Owns the registered job categories and runs two loops per category through
its engine: the completed-jobs overview and the running-jobs status poll.
On a navigation start every loop stops at once; after a short grace delay
polling restarts if it is still globally active.

    coordinator = PollingCoordinator(navigation=events, authorizer=user.has_any_role)
    coordinator.register_job_service(JobCategory("einladung", "Einladung", engine=engine))
    await coordinator.initialize_polling()
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

from .config.polling import PollingConfig
from .config.settings import get_settings
from .engine import JobLifecycleEngine
from .logging import JobLogger, get_logger
from .navigation import NavigationEvent, NavigationEvents, NavigationKind

Authorizer = Callable[[Sequence[str]], bool]


@dataclass
class JobCategory:
    """A job type registered for polling; the engine is built lazily from ``factory`` if not given."""

    name: str
    display_name: str = ""
    engine: JobLifecycleEngine | None = None
    factory: Callable[[], JobLifecycleEngine] | None = None
    required_roles: list[str] = field(default_factory=list)

    def __post_init__(self):
        if not self.name:
            raise ValueError("name is required")
        if self.engine is None and self.factory is None:
            raise ValueError(f"Job category {self.name!r} needs an engine or a factory")
        if not self.display_name:
            self.display_name = self.name


class PollingCoordinator:
    def __init__(
        self,
        *,
        polling: PollingConfig | None = None,
        navigation: NavigationEvents | None = None,
        authorizer: Authorizer | None = None,
        logger: JobLogger | None = None,
    ) -> None:
        self.polling = polling or get_settings().polling
        self.authorizer = authorizer
        self.logger = logger or get_logger("JobPollingService")

        self._categories: list[JobCategory] = []
        self._engines: dict[str, JobLifecycleEngine] = {}
        self._overview_interval: float | None = None
        self._resume_task: asyncio.Task | None = None
        self.is_polling_started = False

        self._navigation_subscription = navigation.subscribe(self._on_navigation) if navigation else None

    @property
    def categories(self) -> list[JobCategory]:
        return list(self._categories)

    @property
    def engines(self) -> dict[str, JobLifecycleEngine]:
        return dict(self._engines)

    def engine_for(self, category: JobCategory) -> JobLifecycleEngine:
        engine = self._engines.get(category.name)
        if engine is None:
            engine = category.engine if category.engine is not None else category.factory()
            self._engines[category.name] = engine
        return engine

    def is_authorized(self, category: JobCategory) -> bool:
        if not category.required_roles or self.authorizer is None:
            return True
        return bool(self.authorizer(category.required_roles))

    def register_job_service(self, category: JobCategory) -> None:
        """Add a category; starts its loops right away if polling is already running."""
        self.logger.debug(f"Registering job service: {category.display_name}")
        self._categories.append(category)
        if self.is_polling_started and self.is_authorized(category):
            self._start_category(category, self._overview_interval)

    async def initialize_polling(self) -> None:
        if self.is_polling_started:
            self.logger.debug("Polling already started, skipping initialization")
            return
        self.logger.debug("Initializing job polling service...")
        self.start_polling_for_authorized_services()

    def start_polling_for_authorized_services(self, interval: float | None = None) -> None:
        """Start both loops of every authorized category. Needs a running event loop."""
        started = []
        for category in self._categories:
            if not self.is_authorized(category):
                self.logger.debug(f"Skipping {category.display_name}: not authorized")
                continue
            self._start_category(category, interval)
            started.append(category.name)
        self._overview_interval = interval
        self.is_polling_started = True
        self.logger.debug(f"Polling started for {len(started)} services", services=started)

    def _start_category(self, category: JobCategory, interval: float | None) -> None:
        self.logger.debug(f"Starting polling for {category.display_name}")
        engine = self.engine_for(category)
        engine.start_polling(interval or self.polling.overview_interval)
        engine.start_running_jobs_polling(self.polling.running_interval)

    def _stop_loops(self) -> None:
        for engine in self._engines.values():
            engine.stop_polling()
            engine.stop_running_jobs_polling()

    def _cancel_resume(self) -> None:
        if self._resume_task is not None:
            self._resume_task.cancel()
            self._resume_task = None

    def stop_all_polling(self) -> None:
        self.logger.debug("Stopping all job polling")
        self._cancel_resume()
        self._stop_loops()
        self.is_polling_started = False

    def resume_polling(self, interval: float | None = None) -> None:
        if self.is_polling_started:
            self.logger.debug("Polling already started, skipping resume")
            return
        self.logger.debug("Resuming job polling")
        self.start_polling_for_authorized_services(interval)

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    def _on_navigation(self, event: NavigationEvent) -> None:
        if event.kind is NavigationKind.STARTED:
            self.logger.debug("Navigation detected, cancelling pending requests", url=event.url)
            self.cancel_all_pending_requests()

    def cancel_all_pending_requests(self) -> None:
        """Stop every loop now and restart after the grace delay if polling is still active."""
        self._stop_loops()
        self._cancel_resume()
        self._resume_task = asyncio.get_running_loop().create_task(
            self._resume_after_grace(),
            name="polling-navigation-resume",
        )

    async def _resume_after_grace(self) -> None:
        await asyncio.sleep(self.polling.navigation_grace)
        self._resume_task = None
        if self.is_polling_started:
            self.logger.debug("Restarting polling after navigation")
            self.start_polling_for_authorized_services(self._overview_interval)

    @property
    def is_resume_pending(self) -> bool:
        return self._resume_task is not None

    def close(self) -> None:
        self.logger.debug("Polling coordinator closed, cleaning up")
        self.stop_all_polling()
        if self._navigation_subscription is not None:
            self._navigation_subscription.unsubscribe()
            self._navigation_subscription = None


__all__ = ["Authorizer", "JobCategory", "PollingCoordinator"]
