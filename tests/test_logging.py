"""
Tests for the structured logging module.
"""

import json
import logging

from job_tracker.errors import ErrorContext, FileUploadError
from job_tracker.logging import (
    JobLogger,
    JSONFormatter,
    LogContext,
    PollLog,
    StructuredLogger,
    Timer,
    configure_logging,
    generate_trace_id,
    get_logger,
    timed,
    truncate_for_log,
)


def last_payload(caplog) -> dict:
    return json.loads(caplog.records[-1].getMessage())


class TestLogContext:
    """Test LogContext dataclass."""

    def test_to_dict_skips_unset_fields(self):
        ctx = LogContext(job_type="einladung", extra={"attempt": 1})

        assert ctx.to_dict() == {"job_type": "einladung", "attempt": 1}

    def test_with_update(self):
        ctx = LogContext(trace_id="t1", job_type="einladung")
        updated = ctx.with_update(job_id="job-1", extra={"new": "value"})

        assert updated.trace_id == "t1"
        assert updated.job_type == "einladung"
        assert updated.job_id == "job-1"
        assert updated.extra == {"new": "value"}
        assert ctx.job_id is None


class TestPollLog:
    def test_to_dict_drops_missing_duration(self):
        poll = PollLog(job_type="einladung", operation="running", requested=3, published=2)

        data = poll.to_dict()

        assert "duration_ms" not in data
        assert data["requested"] == 3
        assert data["published"] == 2


class TestStructuredLogger:
    """Test StructuredLogger."""

    def test_satisfies_job_logger(self):
        assert isinstance(StructuredLogger("test.protocol"), JobLogger)

    def test_json_records_carry_context(self, caplog):
        logger = StructuredLogger("test.json", level="DEBUG", json_output=True)
        logger.set_context(job_type="einladung")

        with caplog.at_level(logging.DEBUG, logger="test.json"):
            logger.debug("Polling running jobs", active=3)

        payload = last_payload(caplog)
        assert payload["message"] == "Polling running jobs"
        assert payload["job_type"] == "einladung"
        assert payload["active"] == 3

    def test_trace_context_is_scoped(self, caplog):
        logger = StructuredLogger("test.trace", level="DEBUG", json_output=True)

        with caplog.at_level(logging.DEBUG, logger="test.trace"):
            with logger.trace_context(job_id="job-1") as trace_id:
                logger.info("inside")
                assert last_payload(caplog)["trace_id"] == trace_id
                assert last_payload(caplog)["job_id"] == "job-1"
            logger.info("outside")

        assert "trace_id" not in last_payload(caplog)

    def test_text_output(self, caplog):
        logger = StructuredLogger("test.text", level="DEBUG", json_output=False)

        with caplog.at_level(logging.DEBUG, logger="test.text"):
            logger.warning("Slow poll", duration_ms=1200)

        assert caplog.records[-1].getMessage() == "[test.text] Slow poll duration_ms=1200"
        assert caplog.records[-1].levelno == logging.WARNING

    def test_log_poll(self, caplog):
        logger = StructuredLogger("test.poll", level="DEBUG", json_output=True)

        with caplog.at_level(logging.DEBUG, logger="test.poll"):
            logger.log_poll(PollLog(job_type="einladung", operation="running", duration_ms=12.0, finished=1))

        payload = last_payload(caplog)
        assert payload["event_type"] == "poll"
        assert payload["message"] == "Poll running for einladung (12ms)"
        assert payload["finished"] == 1

    def test_log_error_includes_job_tracker_fields(self, caplog):
        logger = StructuredLogger("test.error", level="DEBUG", json_output=True)
        error = FileUploadError("upload failed", context=ErrorContext(job_type="einladung"))

        with caplog.at_level(logging.DEBUG, logger="test.error"):
            logger.log_error(error, "Setup failed", file_identifier="A.xlsx")

        payload = last_payload(caplog)
        assert payload["message"] == "Setup failed"
        assert payload["error_type"] == "FileUploadError"
        assert payload["error_code"] == "JOB_2001"
        assert payload["retryable"] is False
        assert payload["error_context"]["job_type"] == "einladung"
        assert payload["file_identifier"] == "A.xlsx"

    def test_log_error_plain_exception(self, caplog):
        logger = StructuredLogger("test.plain", level="DEBUG", json_output=True)

        with caplog.at_level(logging.DEBUG, logger="test.plain"):
            logger.log_error(ValueError("bad"))

        payload = last_payload(caplog)
        assert payload["message"] == "Error: bad"
        assert "error_code" not in payload


class TestJSONFormatter:
    def test_merges_json_message(self):
        record = logging.LogRecord("x", logging.INFO, __file__, 1, json.dumps({"message": "hi", "a": 1}), None, None)

        data = json.loads(JSONFormatter().format(record))

        assert data["level"] == "INFO"
        assert data["message"] == "hi"
        assert data["a"] == 1

    def test_plain_message(self):
        record = logging.LogRecord("x", logging.INFO, __file__, 1, "plain text", None, None)

        assert json.loads(JSONFormatter().format(record))["message"] == "plain text"


class TestRegistry:
    """Test get_logger and configure_logging."""

    def test_get_logger_is_cached(self):
        assert get_logger("test.registry") is get_logger("test.registry")

    def test_configure_logging_relevels_existing(self):
        logger = get_logger("test.relevel")

        configure_logging(level="DEBUG")
        try:
            assert logger._logger.level == logging.DEBUG
        finally:
            configure_logging(level="INFO")

        assert logger._logger.level == logging.INFO


class TestUtilities:
    def test_timer(self):
        timer = Timer()
        elapsed = timer.stop()

        assert elapsed >= 0
        assert timer.elapsed_ms == elapsed

    def test_timed(self):
        with timed() as timer:
            pass

        assert timer.end_time is not None

    def test_generate_trace_id(self):
        first, second = generate_trace_id(), generate_trace_id()

        assert first.startswith("trace_")
        assert first != second

    def test_truncate_for_log(self):
        assert truncate_for_log("short") == "short"
        assert truncate_for_log("x" * 300, max_length=10) == "x" * 10 + "... (300 chars total)"
