"""
Progress and status computation from raw backend rows.

Pure functions; the lifecycle engine feeds them rows fetched from the
backend and publishes the resulting jobs.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from datetime import datetime, timezone

from .types import Job, JobDetailEntry, JobDetails, JobStatus, RawRow

_NON_ALNUM = re.compile(r"[^a-zA-Z0-9]")


def classify(total: int, processed: int, failed: int) -> JobStatus:
    """Status rule: terminal once every row is processed, failed only if every row failed."""
    if total > 0 and processed == total:
        return JobStatus.FAILED if failed == total else JobStatus.COMPLETED
    return JobStatus.RUNNING


def percent(processed: int, total: int) -> int:
    """Whole percent, halves rounded up (1/8 -> 13)."""
    if total <= 0:
        return 0
    return min(100, max(0, (processed * 200 + total) // (2 * total)))


def compute_job_progress(rows: Sequence[RawRow], job_id: str, file_identifier: str) -> Job:
    """Compute a Job snapshot from the rows the backend reported for one file."""
    total = len(rows)
    processed = sum(1 for r in rows if r.is_processed)
    failed = sum(1 for r in rows if r.is_processed and r.has_error)
    status = classify(total, processed, failed)

    start_time = rows[0].created if rows and rows[0].created else datetime.now(timezone.utc)
    end_time = None
    if status.is_terminal:
        updates = [r.updated for r in rows if r.updated is not None]
        end_time = max(updates) if updates else start_time

    return Job(
        id=job_id,
        name=file_identifier,
        status=status,
        total=total,
        processed=processed,
        successful=processed - failed,
        failed=failed,
        errors=failed,
        progress=percent(processed, total),
        start_time=start_time,
        end_time=end_time,
        message=f"{failed} error(s) occurred during processing" if status is JobStatus.FAILED else None,
    )


def group_rows_by_file(rows: Iterable[RawRow]) -> dict[str, list[RawRow]]:
    """Group rows by file identifier, keeping first-seen order."""
    groups: dict[str, list[RawRow]] = {}
    for row in rows:
        groups.setdefault(row.file_identifier, []).append(row)
    return groups


def sanitize_job_id(file_identifier: str) -> str:
    """Stable job id for jobs discovered through the overview query."""
    return _NON_ALNUM.sub("_", file_identifier)


def sort_most_recent_first(jobs: Iterable[Job]) -> list[Job]:
    return sorted(jobs, key=lambda j: j.sort_time, reverse=True)


def map_entry_status(row: RawRow) -> str:
    if not row.is_processed:
        return "Pending"
    return "Failed" if row.has_error else "Success"


def build_job_details(
    rows: Sequence[RawRow],
    job_id: str,
    file_identifier: str,
    *,
    row_label: str = "Row",
    detail_fields: Sequence[str] = (),
) -> JobDetails:
    """Per-row detail view. Row 0 is the metadata row; negative rows are hidden."""
    total = len(rows)
    processed = sum(1 for r in rows if r.is_processed)
    errors = sum(1 for r in rows if r.is_processed and r.has_error)

    entries = []
    for row in rows:
        if row.row < 0:
            continue
        label = row.extra.get(detail_fields[0], "") if detail_fields else ""
        if row.row == 0:
            item_name = "Metadata"
        elif label:
            item_name = f"{row_label} {row.row}: {label}"
        else:
            item_name = f"{row_label} {row.row}"
        entries.append(
            JobDetailEntry(
                id=str(row.id),
                item_name=item_name,
                status=map_entry_status(row),
                row=row.row,
                details=row.message or row.error or "",
                error_message=row.error or None,
                fields={name: row.extra.get(name, "") for name in detail_fields},
            )
        )

    if total > 0 and processed == total:
        status = "completed"
    elif processed > 0:
        status = "running"
    else:
        status = "pending"

    return JobDetails(
        job_id=job_id,
        job_name=file_identifier,
        status=status,
        progress=percent(processed, total),
        total=total,
        # the metadata row is not a work item
        total_count=max(0, total - 1),
        success_count=max(0, processed - errors),
        failed_count=errors,
        running_count=1 if 0 < processed < total else 0,
        pending_count=max(0, total - processed),
        entries=entries,
    )


__all__ = [
    "classify",
    "percent",
    "compute_job_progress",
    "group_rows_by_file",
    "sanitize_job_id",
    "sort_most_recent_first",
    "map_entry_status",
    "build_job_details",
]
