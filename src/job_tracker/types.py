"""
Job types for the job tracker.

This module defines the status enums, the raw backend row, the Job record
and the per-job-type state aggregate.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

JobType = str
ActiveJobRegistration = dict[str, str]  # job_id -> file identifier


class JobStatus(str, Enum):
    """Job lifecycle states.

    State transitions:
    - RUNNING -> COMPLETED (every row processed, at least one without error)
    - RUNNING -> FAILED (every row processed, every row with an error)
    """

    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        """Check if this is a terminal state."""
        return self in {JobStatus.COMPLETED, JobStatus.FAILED}


class RowStatus(str, Enum):
    """Backend-reported status of one raw row."""

    NEW = "new"
    PROCESSED = "processed"

    @classmethod
    def _missing_(cls, value: object) -> RowStatus | None:
        aliases = {"neu": cls.NEW, "verarbeitet": cls.PROCESSED}
        if isinstance(value, str):
            return aliases.get(value.lower())
        return None


def parse_timestamp(value: Any) -> datetime | None:
    """
    Parse an ISO-8601 timestamp (``Z`` suffix accepted) or pass a datetime through.

    Timestamps without an offset are taken as UTC, so every parsed value is
    timezone-aware and comparable.
    """
    if value is None or value == "":
        return None
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_timestamp(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


_FILE_KEYS = ("file_identifier", "fileIdentifier", "excelfile")
_ROW_KEYS = {"id", "created", "updated", "updatedby", "updated_by", "status", "row", "error", "message", *_FILE_KEYS}


@dataclass
class RawRow:
    """One backend-reported unit of work."""

    file_identifier: str
    status: str
    created: datetime | None = None
    updated: datetime | None = None
    id: int | str | None = None
    row: int = 0
    error: str | None = None
    message: str | None = None
    updated_by: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def row_status(self) -> RowStatus | None:
        try:
            return RowStatus(self.status)
        except ValueError:
            return None

    @property
    def is_processed(self) -> bool:
        return self.row_status is RowStatus.PROCESSED

    @property
    def has_error(self) -> bool:
        return bool(self.error)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RawRow:
        """Build a row from backend JSON."""
        file_identifier = next((data[k] for k in _FILE_KEYS if data.get(k)), "")
        return cls(
            file_identifier=str(file_identifier),
            status=str(data.get("status", RowStatus.NEW.value)),
            created=parse_timestamp(data.get("created")),
            updated=parse_timestamp(data.get("updated")),
            id=data.get("id"),
            row=int(data.get("row") or 0),
            error=data.get("error"),
            message=data.get("message"),
            updated_by=data.get("updatedby", data.get("updated_by")),
            extra={k: v for k, v in data.items() if k not in _ROW_KEYS},
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "file_identifier": self.file_identifier,
            "status": self.status,
            "row": self.row,
            "created": format_timestamp(self.created),
            "updated": format_timestamp(self.updated),
            "error": self.error,
            "message": self.message,
            "updated_by": self.updated_by,
            **self.extra,
        }


@dataclass
class Job:
    """One tracked backend processing run bound to an uploaded file."""

    id: str
    name: str
    status: JobStatus = JobStatus.RUNNING
    total: int = 0
    processed: int = 0
    successful: int = 0
    failed: int = 0
    errors: int = 0
    progress: int = 0
    start_time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    end_time: datetime | None = None
    message: str | None = None

    @property
    def sort_time(self) -> datetime:
        return self.end_time or self.start_time

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dictionary."""
        return {
            "id": self.id,
            "name": self.name,
            "status": self.status.value,
            "total": self.total,
            "processed": self.processed,
            "successful": self.successful,
            "failed": self.failed,
            "errors": self.errors,
            "progress": self.progress,
            "start_time": format_timestamp(self.start_time),
            "end_time": format_timestamp(self.end_time),
            "message": self.message,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Job:
        """Deserialize from dictionary, reviving timestamps."""
        return cls(
            id=data["id"],
            name=data["name"],
            status=JobStatus(data.get("status", "running")),
            total=data.get("total", 0),
            processed=data.get("processed", 0),
            successful=data.get("successful", 0),
            failed=data.get("failed", 0),
            errors=data.get("errors", 0),
            progress=data.get("progress", 0),
            start_time=parse_timestamp(data.get("start_time")) or datetime.now(timezone.utc),
            end_time=parse_timestamp(data.get("end_time")),
            message=data.get("message"),
        )


@dataclass
class JobTypeState:
    """Running and completed jobs of one job type."""

    running: list[Job] = field(default_factory=list)
    completed: list[Job] = field(default_factory=list)
    loading: bool = False
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Persisted shape: only the job lists survive a reload."""
        return {
            "running": [job.to_dict() for job in self.running],
            "completed": [job.to_dict() for job in self.completed],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> JobTypeState:
        return cls(
            running=[Job.from_dict(j) for j in data.get("running", [])],
            completed=[Job.from_dict(j) for j in data.get("completed", [])],
        )


@dataclass
class JobDetailEntry:
    """Detail view of one raw row."""

    id: str
    item_name: str
    status: str  # Success | Failed | Pending
    row: int
    details: str = ""
    error_message: str | None = None
    fields: dict[str, Any] = field(default_factory=dict)


@dataclass
class JobDetails:
    """Detail view of one job and its rows."""

    job_id: str
    job_name: str
    status: str  # pending | running | completed
    progress: int
    total: int
    total_count: int
    success_count: int
    failed_count: int
    running_count: int
    pending_count: int
    entries: list[JobDetailEntry] = field(default_factory=list)


__all__ = [
    "JobType",
    "ActiveJobRegistration",
    "JobStatus",
    "RowStatus",
    "RawRow",
    "Job",
    "JobTypeState",
    "JobDetailEntry",
    "JobDetails",
    "parse_timestamp",
    "format_timestamp",
]
