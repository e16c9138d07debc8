"""
Job lifecycle engine.

One engine per job type. It drives the backend protocol for that type
(upload -> trigger -> poll), turns raw rows into Job snapshots and publishes
them to the shared JobStore:

    engine = JobLifecycleEngine(config, transport, store, session_store)
    job = await engine.process_file_and_create_job(file, rows)
    engine.start_running_jobs_polling()

Only the setup calls (validation, upload, trigger, creation) raise. Polling
reads degrade: a failed fetch is logged and treated as an empty result.
"""

from __future__ import annotations

import asyncio
import time
import uuid
from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from .cache import EntryCache
from .cancellation import CancellationSource
from .config.polling import PollingConfig
from .config.service import JobServiceConfig
from .config.settings import get_settings
from .errors import (
    EmptyFileError,
    ErrorContext,
    FetchDegradation,
    FileUploadError,
    JobCreationError,
    JobTrackerError,
    MissingColumnsError,
    OperationCancelled,
    ProcessingTriggerError,
)
from .logging import JobLogger, PollLog, StructuredLogger, get_logger, timed
from .messages import (
    EMPTY_FILE,
    FILE_UPLOAD_FAILED,
    JOB_CREATION_FAILED,
    PROCESSING_TRIGGER_FAILED,
    REQUIRED_COLUMNS,
    STATUS_FETCH_FAILED,
    DefaultTranslator,
    Translator,
    prefixed,
)
from .persistence import InMemorySessionStore, SafeStorage, SessionStore
from .progress import (
    build_job_details,
    compute_job_progress,
    group_rows_by_file,
    sanitize_job_id,
    sort_most_recent_first,
)
from .store import JobStore
from .streams import DerivedStream, StateStream
from .transport import Transport, UploadFile
from .types import Job, JobDetails, JobStatus, RawRow

ACTIVE_JOBS_KEY_SUFFIX = "_active_jobs"


@dataclass
class TriggerResult:
    """Outcome of triggering backend processing for an uploaded file."""

    file_identifier: str
    rows: list[RawRow] = field(default_factory=list)


@dataclass
class ValidationResult:
    valid: bool
    error: str | None = None
    missing_columns: list[str] = field(default_factory=list)


class JobLifecycleEngine:
    """
    Upload, trigger and poll jobs of one job type.

    Owns the active-job registration (job id -> file identifier) and the
    entry cache of its type. The registration is persisted under
    ``"<job_type>_active_jobs"`` as a list of ``[job_id, file_identifier]``
    pairs and restored, together with the store slice, on construction.
    """

    def __init__(
        self,
        config: JobServiceConfig,
        transport: Transport,
        store: JobStore | None = None,
        session_store: SessionStore | None = None,
        *,
        logger: JobLogger | None = None,
        translator: Translator | None = None,
        cache: EntryCache | None = None,
        polling: PollingConfig | None = None,
    ) -> None:
        self.config = config
        self.job_type = config.job_type
        self.transport = transport
        if logger is None:
            logger = get_logger(config.logger_name)
            logger.set_context(job_type=self.job_type)
        self.logger = logger
        self.translator = translator or DefaultTranslator()
        self.polling = polling or get_settings().polling

        session_store = session_store or InMemorySessionStore()
        self.store = store or JobStore(session_store, self.logger)
        if cache is None:
            cache = EntryCache(self.logger if isinstance(self.logger, StructuredLogger) else None)
        self.cache = cache
        self._storage = SafeStorage(session_store, self.logger)

        self._active_jobs: dict[str, str] = {}
        self._cancellation = CancellationSource()
        self._overview_task: asyncio.Task | None = None
        self._running_task: asyncio.Task | None = None

        self._loading_overview: StateStream[bool] = StateStream(False)
        self.running_jobs: DerivedStream[list[Job]] = self.store.running_jobs_stream(self.job_type)
        self.completed_jobs: DerivedStream[list[Job]] = self.store.completed_jobs_stream(self.job_type)

        self._load_state_from_storage()

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def is_loading_overview(self) -> StateStream[bool]:
        return self._loading_overview

    @property
    def active_jobs(self) -> dict[str, str]:
        return dict(self._active_jobs)

    @property
    def active_jobs_key(self) -> str:
        return f"{self.job_type}{ACTIVE_JOBS_KEY_SUFFIX}"

    @property
    def is_polling(self) -> bool:
        return self._overview_task is not None

    @property
    def is_running_jobs_polling(self) -> bool:
        return self._running_task is not None

    def _load_state_from_storage(self) -> None:
        result = self._storage.read_json(self.active_jobs_key)
        if result.ok and result.value is not None:
            try:
                self._active_jobs = {str(job_id): str(file_identifier) for job_id, file_identifier in result.value}
            except (TypeError, ValueError) as exc:
                self.logger.error("Failed to load state from storage", key=self.active_jobs_key, error=str(exc))
        self.store.restore(self.job_type)
        self.store.ensure_job_type(self.job_type)

    def _save_active_jobs(self) -> None:
        self._storage.write_json(self.active_jobs_key, [[job_id, f] for job_id, f in self._active_jobs.items()])

    def _register(self, job_id: str, file_identifier: str) -> None:
        self._active_jobs[job_id] = file_identifier
        self._save_active_jobs()

    def _unregister(self, *job_ids: str) -> None:
        removed = [job_id for job_id in job_ids if self._active_jobs.pop(job_id, None) is not None]
        if removed:
            self._save_active_jobs()

    def _mint_job_id(self) -> str:
        return f"{self.config.service_name.lower()}-{int(time.time() * 1000)}-{uuid.uuid4().hex[:6]}"

    def _message(self, key: str, **params: Any) -> str:
        return self.translator.instant(prefixed(self.config.translation_prefix, key), **params)

    def _context(self, operation: str, **kwargs: Any) -> ErrorContext:
        return ErrorContext(job_type=self.job_type, operation=operation, **kwargs)

    # ------------------------------------------------------------------
    # Setup phase
    # ------------------------------------------------------------------

    def validate_rows(self, rows: Sequence[Mapping[str, Any]] | None) -> ValidationResult:
        """Check parsed file rows: non-empty, required columns present on the first row."""
        if not rows:
            return ValidationResult(valid=False, error=self.translator.instant(EMPTY_FILE))
        first_row = rows[0]
        missing = [column for column in self.config.required_columns if column not in first_row]
        if missing:
            return ValidationResult(
                valid=False,
                error=self.translator.instant(REQUIRED_COLUMNS, columns=", ".join(missing)),
                missing_columns=missing,
            )
        return ValidationResult(valid=True)

    def _raise_if_invalid(self, rows: Sequence[Mapping[str, Any]] | None) -> None:
        result = self.validate_rows(rows)
        if result.valid:
            return
        self.logger.error("Validation failed", error=result.error)
        context = self._context("validate")
        if result.missing_columns:
            raise MissingColumnsError(result.error, missing_columns=result.missing_columns, context=context)
        raise EmptyFileError(result.error or "Validation failed", context=context)

    async def upload_file(self, file: UploadFile) -> str:
        try:
            file_identifier = await self.transport.upload(file)
        except Exception as exc:
            self.logger.error("File upload failed", file=file.name, error=str(exc))
            raise FileUploadError(
                self._message(FILE_UPLOAD_FAILED),
                context=self._context("upload", file_identifier=file.name),
                cause=exc,
            ) from exc
        return file_identifier or file.name

    async def trigger_processing(self, file_identifier: str) -> TriggerResult:
        try:
            rows = await self.transport.trigger_processing(self.config, file_identifier)
        except Exception as exc:
            self.logger.error("Processing trigger failed", file_identifier=file_identifier, error=str(exc))
            raise ProcessingTriggerError(
                self._message(PROCESSING_TRIGGER_FAILED),
                context=self._context("trigger_processing", file_identifier=file_identifier),
                cause=exc,
            ) from exc
        resolved = rows[0].file_identifier if rows and rows[0].file_identifier else file_identifier
        self.logger.debug(f"Processing triggered. File: {resolved}, Entries: {len(rows)}")
        self.cache.set(resolved, rows)
        return TriggerResult(file_identifier=resolved, rows=rows)

    async def process_file_and_create_job(
        self,
        file: UploadFile,
        rows: Sequence[Mapping[str, Any]] | None,
    ) -> Job:
        """Validate, upload, trigger and register a new job; returns its first snapshot."""
        self._raise_if_invalid(rows)
        try:
            file_identifier = await self.upload_file(file)
            trigger = await self.trigger_processing(file_identifier)
            return await self._create_job(trigger.file_identifier)
        except JobTrackerError as exc:
            self.logger.error(f"Error in {self.config.service_name} workflow", error=str(exc))
            raise
        except Exception as exc:
            self.logger.error(f"Error in {self.config.service_name} workflow", error=str(exc))
            raise JobCreationError(
                self._message(JOB_CREATION_FAILED),
                context=self._context("create_job", file_identifier=file.name),
                cause=exc,
            ) from exc

    async def create_job_from_uploaded_file(
        self,
        file_identifier: str,
        rows: Sequence[Mapping[str, Any]] | None,
    ) -> Job:
        """Same as process_file_and_create_job for a file that is already uploaded."""
        self._raise_if_invalid(rows)
        try:
            trigger = await self.trigger_processing(file_identifier)
            return await self._create_job(trigger.file_identifier)
        except JobTrackerError as exc:
            self.logger.error("Error creating job from uploaded file", error=str(exc))
            raise
        except Exception as exc:
            self.logger.error("Error creating job from uploaded file", error=str(exc))
            raise JobCreationError(
                self._message(JOB_CREATION_FAILED),
                context=self._context("create_job", file_identifier=file_identifier),
                cause=exc,
            ) from exc

    async def _create_job(self, file_identifier: str) -> Job:
        job_id = self._mint_job_id()
        self._register(job_id, file_identifier)
        job = await self.poll_job_status(file_identifier, job_id)
        if job.status.is_terminal:
            self._unregister(job_id)
            self.store.move_job_to_completed(self.job_type, job_id, job)
        else:
            self.store.add_running_job(self.job_type, job)
        return job

    async def poll_job_status(self, file_identifier: str, job_id: str) -> Job:
        """Compute a job snapshot from the cached (or freshly fetched) rows of one file."""
        rows = self.cache.get(file_identifier)
        if rows is None:
            try:
                rows = await self.transport.query_rows(self.config, file_identifier)
            except Exception as exc:
                self.logger.error("Error polling job status", file_identifier=file_identifier, error=str(exc))
                raise JobCreationError(
                    self._message(STATUS_FETCH_FAILED),
                    context=self._context("poll_job_status", job_id=job_id, file_identifier=file_identifier),
                    cause=exc,
                ) from exc
            self.cache.set(file_identifier, rows)
        return compute_job_progress(rows, job_id, file_identifier)

    # ------------------------------------------------------------------
    # Polling reads
    # ------------------------------------------------------------------

    def _degrade(self, message: str, exc: Exception, **kwargs: Any) -> None:
        degradation = FetchDegradation(message, context=self._context("fetch", **kwargs), cause=exc)
        self.logger.error(degradation.message, error=str(exc), error_code=degradation.code.value)

    async def get_job_entries(self, file_identifier: str, use_cache: bool = True) -> list[RawRow]:
        """Rows of one file. A failed fetch is logged and returns []."""
        if use_cache:
            cached = self.cache.get(file_identifier)
            if cached is not None:
                return cached
        token = self._cancellation.token
        try:
            rows = await self.transport.query_rows(self.config, file_identifier)
        except Exception as exc:
            self._degrade(f"Error getting job entries for {file_identifier}", exc, file_identifier=file_identifier)
            return []
        token.raise_if_cancelled()
        self.cache.set(file_identifier, rows)
        return rows

    async def get_all_recent_jobs(self) -> list[RawRow]:
        """Every recent row of this job type (overview query). A failed fetch returns []."""
        token = self._cancellation.token
        try:
            rows = await self.transport.query_rows(self.config, None)
        except Exception as exc:
            self._degrade("Error getting all recent jobs", exc)
            return []
        token.raise_if_cancelled()
        return rows

    async def _poll_registration(self, job_id: str, file_identifier: str) -> Job | None:
        rows = await self.get_job_entries(file_identifier, use_cache=False)
        if not rows:
            return None
        return compute_job_progress(rows, job_id, file_identifier)

    async def get_running_jobs(self) -> list[Job]:
        """
        Poll every registered job in parallel and publish the running subset.

        Results are joined before anything is written. Jobs whose file reports
        zero rows are dropped and unregistered; terminal jobs are unregistered
        and moved to ``completed``.
        """
        if not self._active_jobs:
            self.store.set_running_jobs(self.job_type, [])
            return []

        token = self._cancellation.token
        registrations = list(self._active_jobs.items())
        with timed() as timer:
            try:
                results = await asyncio.gather(
                    *(self._poll_registration(job_id, file_identifier) for job_id, file_identifier in registrations)
                )
                token.raise_if_cancelled()
            except OperationCancelled:
                self.logger.debug("Running jobs poll cancelled")
                return []

        running: list[Job] = []
        finished: list[Job] = []
        dropped: list[str] = []
        for (job_id, _), job in zip(registrations, results):
            if job is None:
                dropped.append(job_id)
            elif job.status.is_terminal:
                finished.append(job)
            else:
                running.append(job)

        self._unregister(*dropped, *(job.id for job in finished))
        if finished:
            self.store.settle_jobs(self.job_type, running, finished)
        else:
            self.store.set_running_jobs(self.job_type, running)

        if isinstance(self.logger, StructuredLogger):
            self.logger.log_poll(
                PollLog(
                    job_type=self.job_type,
                    operation="running_jobs",
                    duration_ms=timer.elapsed_ms,
                    requested=len(registrations),
                    published=len(running),
                    finished=len(finished),
                    dropped=len(dropped),
                )
            )
        return running

    def _completed_jobs_from_rows(self, rows: Sequence[RawRow]) -> list[Job]:
        completed = []
        for file_identifier, group in group_rows_by_file(rows).items():
            job = compute_job_progress(group, sanitize_job_id(file_identifier), file_identifier)
            if job.status is JobStatus.COMPLETED:
                completed.append(job)
        return sort_most_recent_first(completed)

    async def load_completed_jobs(self) -> list[Job]:
        """Rebuild the completed list from the overview query."""
        self._loading_overview.set(True)
        try:
            with timed() as timer:
                rows = await self.get_all_recent_jobs()
            jobs = self._completed_jobs_from_rows(rows)
            self.store.set_completed_jobs(self.job_type, jobs)
            self.logger.debug(
                f"Loaded {len(jobs)} completed jobs from {len(rows)} entries",
                duration_ms=round(timer.elapsed_ms, 1),
            )
            return jobs
        except OperationCancelled:
            self.logger.debug("Completed jobs overview cancelled")
            return []
        except Exception as exc:
            # the previous completed list stays published
            self._degrade("Error building completed jobs overview", exc)
            return []
        finally:
            self._loading_overview.set(False)

    def _resolve_file_identifier(self, job_id_or_file: str) -> str:
        if job_id_or_file in self._active_jobs:
            return self._active_jobs[job_id_or_file]
        for job in self.store.all_jobs(self.job_type):
            if job.id == job_id_or_file:
                return job.name
        return job_id_or_file

    async def load_job_details(self, job_id_or_file: str) -> list[RawRow]:
        """Refresh the cached rows of one job, bypassing the cache."""
        file_identifier = self._resolve_file_identifier(job_id_or_file)
        rows = await self.get_job_entries(file_identifier, use_cache=False)
        self.logger.debug(f"Loaded {len(rows)} entries for {file_identifier}")
        return rows

    async def load_job_details_by_id(self, job_id: str) -> JobDetails:
        file_identifier = self._resolve_file_identifier(job_id)
        rows = await self.get_job_entries(file_identifier)
        return build_job_details(
            rows,
            job_id,
            file_identifier,
            row_label=self.config.row_label,
            detail_fields=self.config.detail_fields,
        )

    # ------------------------------------------------------------------
    # Polling loops
    # ------------------------------------------------------------------

    async def _run_loop(self, name: str, tick: Callable[[], Awaitable[Any]], interval: float) -> None:
        while True:
            try:
                await tick()
            except Exception as exc:
                self.logger.error(f"{name} polling error", error=str(exc))
            await asyncio.sleep(interval)

    def start_polling(self, interval: float | None = None) -> None:
        """Start the overview loop. Must be called from a running event loop."""
        self.stop_polling()
        interval = interval or self.polling.overview_interval
        self.logger.debug(f"Starting polling (interval: {interval}s)")
        self._overview_task = asyncio.get_running_loop().create_task(
            self._run_loop("Overview", self.load_completed_jobs, interval),
            name=f"{self.job_type}-overview-polling",
        )

    def stop_polling(self) -> None:
        if self._overview_task is not None:
            self.logger.debug("Stopping job polling")
            self._cancellation.cancel_pending()
            self._overview_task.cancel()
            self._overview_task = None

    def start_running_jobs_polling(self, interval: float | None = None) -> None:
        """Start the running-job loop. Must be called from a running event loop."""
        self.stop_running_jobs_polling()
        interval = interval or self.polling.running_interval
        self.logger.debug(f"Starting running jobs polling (interval: {interval}s)")
        self._running_task = asyncio.get_running_loop().create_task(
            self._run_loop("Running jobs", self.get_running_jobs, interval),
            name=f"{self.job_type}-running-polling",
        )

    def stop_running_jobs_polling(self) -> None:
        if self._running_task is not None:
            self.logger.debug("Stopping running jobs polling")
            self._cancellation.cancel_pending()
            self._running_task.cancel()
            self._running_task = None

    # ------------------------------------------------------------------
    # Cleanup
    # ------------------------------------------------------------------

    def clear_entries_cache(self) -> None:
        self.cache.clear()

    def clear_cache_for_file(self, file_identifier: str) -> None:
        self.cache.delete(file_identifier)

    def clear_persisted_state(self) -> None:
        """Forget active registrations and stored jobs of this type (e.g. on logout)."""
        self._active_jobs.clear()
        self._storage.remove(self.active_jobs_key)
        self.store.clear_persisted_state(self.job_type)

    def close(self) -> None:
        self.stop_polling()
        self.stop_running_jobs_polling()
        self.running_jobs.close()
        self.completed_jobs.close()


__all__ = [
    "JobLifecycleEngine",
    "TriggerResult",
    "ValidationResult",
    "ACTIVE_JOBS_KEY_SUFFIX",
]
