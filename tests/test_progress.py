"""
Tests for progress and status computation.
"""

from datetime import datetime, timedelta

import pytest

from job_tracker.progress import (
    build_job_details,
    classify,
    compute_job_progress,
    group_rows_by_file,
    map_entry_status,
    percent,
    sanitize_job_id,
    sort_most_recent_first,
)
from job_tracker.types import JobStatus, RawRow, parse_timestamp

from tests._testkit import BASE_TIME, make_job, make_row, make_rows, minutes


class TestClassify:
    """Test the status rule."""

    def test_no_rows_is_running(self):
        assert classify(0, 0, 0) is JobStatus.RUNNING

    def test_partially_processed_is_running(self):
        assert classify(3, 2, 0) is JobStatus.RUNNING

    def test_all_processed_is_completed(self):
        assert classify(3, 3, 0) is JobStatus.COMPLETED

    def test_partial_failure_is_still_completed(self):
        """Some failed rows do not make the job failed."""
        assert classify(3, 3, 2) is JobStatus.COMPLETED

    def test_all_failed_is_failed(self):
        assert classify(3, 3, 3) is JobStatus.FAILED


class TestPercent:
    """Test progress percentage."""

    @pytest.mark.parametrize(
        "processed,total,expected",
        [(0, 0, 0), (0, 3, 0), (1, 3, 33), (2, 3, 67), (3, 3, 100), (1, 8, 13), (5, 8, 63), (1, 200, 1)],
    )
    def test_rounding(self, processed, total, expected):
        assert percent(processed, total) == expected

    def test_bounded(self):
        assert percent(5, 3) == 100
        assert percent(-1, 3) == 0


class TestComputeJobProgress:
    """Test Job snapshots computed from raw rows."""

    def test_new_rows(self):
        job = compute_job_progress(make_rows(3), "job-1", "A.xlsx")

        assert job.id == "job-1"
        assert job.name == "A.xlsx"
        assert job.status is JobStatus.RUNNING
        assert job.total == 3
        assert job.processed == 0
        assert job.progress == 0
        assert job.end_time is None
        assert job.message is None

    def test_all_processed_without_errors(self):
        job = compute_job_progress(make_rows(3, status="processed"), "job-1", "A.xlsx")

        assert job.status is JobStatus.COMPLETED
        assert job.progress == 100
        assert job.successful == 3
        assert job.failed == 0
        assert job.errors == 0
        assert job.message is None

    def test_all_processed_with_errors(self):
        job = compute_job_progress(make_rows(3, status="processed", error="invalid partner"), "job-1", "A.xlsx")

        assert job.status is JobStatus.FAILED
        assert job.failed == 3
        assert job.successful == 0
        assert job.message == "3 error(s) occurred during processing"

    def test_partial_failure_exposes_errors(self):
        rows = [
            make_row(status="processed", row=1),
            make_row(status="processed", row=2, error="boom"),
            make_row(status="processed", row=3),
        ]
        job = compute_job_progress(rows, "job-1", "A.xlsx")

        assert job.status is JobStatus.COMPLETED
        assert job.errors == 1
        assert job.successful == 2
        assert job.message is None

    def test_error_on_unprocessed_row_does_not_count(self):
        rows = [make_row(status="new", error="pending error"), make_row(status="processed", row=2)]
        job = compute_job_progress(rows, "job-1", "A.xlsx")

        assert job.failed == 0
        assert job.processed == 1

    def test_legacy_status_values(self):
        rows = [make_row(status="verarbeitet", row=1), make_row(status="neu", row=2)]
        job = compute_job_progress(rows, "job-1", "A.xlsx")

        assert job.processed == 1
        assert job.progress == 50

    def test_times(self):
        rows = [
            make_row(status="processed", row=1, created=BASE_TIME, updated=minutes(5)),
            make_row(status="processed", row=2, created=BASE_TIME, updated=minutes(9)),
        ]
        job = compute_job_progress(rows, "job-1", "A.xlsx")

        assert job.start_time == BASE_TIME
        assert job.end_time == minutes(9)

    def test_empty_rows(self):
        job = compute_job_progress([], "job-1", "A.xlsx")

        assert job.status is JobStatus.RUNNING
        assert job.total == 0
        assert job.progress == 0


class TestHelpers:
    """Test grouping, ids and sorting."""

    def test_group_rows_by_file_keeps_order(self):
        rows = [make_row("B.xlsx"), make_row("A.xlsx"), make_row("B.xlsx", row=2)]
        groups = group_rows_by_file(rows)

        assert list(groups) == ["B.xlsx", "A.xlsx"]
        assert len(groups["B.xlsx"]) == 2

    def test_sanitize_job_id(self):
        assert sanitize_job_id("Einladung 2024-03.xlsx") == "Einladung_2024_03_xlsx"

    def test_sort_most_recent_first_uses_end_then_start(self):
        older = make_job("a", start_time=BASE_TIME, end_time=minutes(10))
        newer = make_job("b", start_time=minutes(20))
        oldest = make_job("c", start_time=BASE_TIME - timedelta(days=1))

        assert [j.id for j in sort_most_recent_first([older, oldest, newer])] == ["b", "a", "c"]

    def test_map_entry_status(self):
        assert map_entry_status(make_row(status="new")) == "Pending"
        assert map_entry_status(make_row(status="processed")) == "Success"
        assert map_entry_status(make_row(status="processed", error="x")) == "Failed"


class TestBuildJobDetails:
    """Test the per-row detail view."""

    def test_metadata_and_hidden_rows(self):
        rows = [
            make_row(status="processed", row=0),
            make_row(status="processed", row=1, partnername="Muster AG"),
            make_row(status="processed", row=2, error="unknown partner"),
            make_row(status="new", row=-1),
        ]
        details = build_job_details(rows, "job-1", "A.xlsx", row_label="Zeile", detail_fields=["partnername"])

        assert [e.item_name for e in details.entries] == ["Metadata", "Zeile 1: Muster AG", "Zeile 2"]
        assert details.entries[1].fields == {"partnername": "Muster AG"}
        assert details.entries[2].status == "Failed"
        assert details.entries[2].error_message == "unknown partner"

    def test_counts(self):
        rows = [make_row(status="processed", row=i) for i in range(3)] + [make_row(status="new", row=3)]
        details = build_job_details(rows, "job-1", "A.xlsx")

        assert details.status == "running"
        assert details.total == 4
        assert details.total_count == 3
        assert details.success_count == 3
        assert details.pending_count == 1
        assert details.running_count == 1
        assert details.progress == 75

    def test_status_values(self):
        assert build_job_details(make_rows(2), "j", "A.xlsx").status == "pending"
        assert build_job_details(make_rows(2, status="processed"), "j", "A.xlsx").status == "completed"


class TestParseTimestamp:
    """Test that every parsed timestamp is timezone-aware."""

    @pytest.mark.parametrize("value", ["2024-03-01T08:00:00", "2024-03-01T08:00:00Z", "2024-03-01T09:00:00+01:00"])
    def test_strings(self, value):
        assert parse_timestamp(value) == BASE_TIME

    def test_naive_datetime_is_utc(self):
        assert parse_timestamp(datetime(2024, 3, 1, 8, 0)) == BASE_TIME

    def test_empty(self):
        assert parse_timestamp(None) is None
        assert parse_timestamp("") is None

    def test_backend_rows_sort_against_fallback_start(self):
        dated = compute_job_progress(
            [RawRow.from_dict({"excelfile": "A.xlsx", "status": "verarbeitet", "created": "2024-03-01T08:00:00"})],
            "a",
            "A.xlsx",
        )
        undated = compute_job_progress([RawRow.from_dict({"excelfile": "B.xlsx", "status": "verarbeitet"})], "b", "B.xlsx")

        assert [j.id for j in sort_most_recent_first([dated, undated])] == ["b", "a"]
