"""
Factories and fakes shared by the job-tracker tests.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any

from job_tracker.config import JobServiceConfig
from job_tracker.persistence import InMemorySessionStore
from job_tracker.transport import UploadFile
from job_tracker.types import Job, JobStatus, RawRow

BASE_TIME = datetime(2024, 3, 1, 8, 0, tzinfo=timezone.utc)


# =============================================================================
# Factories
# =============================================================================


def make_row(
    file_identifier: str = "A.xlsx",
    status: str = "new",
    *,
    row: int = 1,
    error: str | None = None,
    message: str | None = None,
    created: datetime | None = None,
    updated: datetime | None = None,
    **extra: Any,
) -> RawRow:
    """Create a RawRow."""
    return RawRow(
        file_identifier=file_identifier,
        status=status,
        created=created or BASE_TIME,
        updated=updated or created or BASE_TIME,
        id=row,
        row=row,
        error=error,
        message=message,
        extra=dict(extra),
    )


def make_rows(
    count: int = 3,
    file_identifier: str = "A.xlsx",
    status: str = "new",
    *,
    error: str | None = None,
    updated: datetime | None = None,
) -> list[RawRow]:
    """Create ``count`` rows for one file, numbered from 1."""
    return [
        make_row(file_identifier, status, row=i + 1, error=error, updated=updated)
        for i in range(count)
    ]


def make_job(
    id: str = "job-1",
    name: str = "A.xlsx",
    status: JobStatus = JobStatus.RUNNING,
    *,
    total: int = 3,
    processed: int = 0,
    start_time: datetime | None = None,
    end_time: datetime | None = None,
) -> Job:
    """Create a Job."""
    return Job(
        id=id,
        name=name,
        status=status,
        total=total,
        processed=processed,
        successful=processed,
        progress=round(processed / total * 100) if total else 0,
        start_time=start_time or BASE_TIME,
        end_time=end_time,
    )


def minutes(n: int) -> datetime:
    return BASE_TIME + timedelta(minutes=n)


# =============================================================================
# Fakes
# =============================================================================


class FakeTransport:
    """
    Scriptable Transport.

    Rows per file live in ``files``; ``overview`` is returned for the
    unfiltered query. Setting one of the ``*_error`` attributes makes the
    matching call raise it.
    """

    def __init__(self) -> None:
        self.files: dict[str, list[RawRow]] = {}
        self.overview: list[RawRow] = []
        self.uploaded_name: str | None = None

        self.upload_error: Exception | None = None
        self.trigger_error: Exception | None = None
        self.query_errors: dict[str | None, Exception] = {}
        # When set, per-file queries wait on it
        self.gate: asyncio.Event | None = None

        self.calls: list[tuple[str, Any]] = []

    async def upload(self, file: UploadFile) -> str:
        self.calls.append(("upload", file.name))
        if self.upload_error:
            raise self.upload_error
        return self.uploaded_name or file.name

    async def trigger_processing(self, config: JobServiceConfig, file_identifier: str) -> list[RawRow]:
        self.calls.append(("trigger_processing", file_identifier))
        if self.trigger_error:
            raise self.trigger_error
        return list(self.files.get(file_identifier, []))

    async def query_rows(self, config: JobServiceConfig, file_identifier: str | None = None) -> list[RawRow]:
        if self.gate is not None and file_identifier is not None:
            await self.gate.wait()
        self.calls.append(("query_rows", file_identifier))
        if file_identifier in self.query_errors:
            raise self.query_errors[file_identifier]
        if file_identifier is None:
            return list(self.overview)
        return list(self.files.get(file_identifier, []))

    def call_count(self, name: str) -> int:
        return sum(1 for call, _ in self.calls if call == name)


class FailingSessionStore(InMemorySessionStore):
    """Session store whose writes (and optionally reads) raise."""

    def __init__(self, fail_reads: bool = False) -> None:
        super().__init__()
        self.fail_reads = fail_reads
        self.failed_writes = 0

    def get(self, key: str) -> str | None:
        if self.fail_reads:
            raise OSError("storage unavailable")
        return super().get(key)

    def set(self, key: str, value: str) -> None:
        self.failed_writes += 1
        raise OSError("QuotaExceededError: session storage is full")

