"""
Shared test fixtures for job-tracker tests.

This module provides:
- A scriptable fake transport (see tests/_testkit.py)
- Fresh in-memory session and job stores per test
- An engine factory wired to those stores
- Fast polling intervals for loop tests
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from typing import Any

import pytest

from job_tracker.config import JobServiceConfig, PollingConfig
from job_tracker.engine import JobLifecycleEngine
from job_tracker.persistence import InMemorySessionStore
from job_tracker.store import JobStore
from job_tracker.transport import UploadFile
from tests._testkit import FakeTransport


@pytest.fixture
def service_config() -> JobServiceConfig:
    return JobServiceConfig(
        service_name="Einladung",
        api_base_path="/bb/aktualisierung",
        endpoint_name="einladung",
        search_endpoint_name="searchBBAktualisierungEinladung",
        translation_prefix="VT.BB.EINLADUNG",
        required_columns=["partnernr"],
        task_name="invite",
    )


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def session_store() -> InMemorySessionStore:
    return InMemorySessionStore()


@pytest.fixture
def store(session_store) -> JobStore:
    return JobStore(session_store)


@pytest.fixture
def fast_polling() -> PollingConfig:
    return PollingConfig(overview_interval=0.05, running_interval=0.05, navigation_grace=0.1)


@pytest.fixture
async def make_engine(service_config, transport, store, session_store) -> AsyncIterator[Callable[..., JobLifecycleEngine]]:
    """Build engines sharing this test's transport and stores; closed on teardown."""
    engines: list[JobLifecycleEngine] = []

    def _make(config: JobServiceConfig | None = None, **kwargs: Any) -> JobLifecycleEngine:
        kwargs.setdefault("store", store)
        kwargs.setdefault("session_store", session_store)
        engine = JobLifecycleEngine(config or service_config, transport, **kwargs)
        engines.append(engine)
        return engine

    yield _make

    for engine in engines:
        engine.close()


@pytest.fixture
def engine(make_engine) -> JobLifecycleEngine:
    return make_engine()


@pytest.fixture
def upload_file() -> UploadFile:
    return UploadFile(name="A.xlsx", content=b"PK\x03\x04")


@pytest.fixture
def parsed_rows() -> list[dict[str, Any]]:
    return [{"partnernr": "1001"}, {"partnernr": "1002"}, {"partnernr": "1003"}]
