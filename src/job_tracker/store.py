"""
Job store.

A reactive, keyed container of per-job-type state. Every mutation is a pure
transform over the whole map followed by a best-effort persistence write of
the touched job type. Reads right after a write observe the new state.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import replace
from typing import TypeVar

from .logging import JobLogger, get_logger
from .persistence import InMemorySessionStore, SafeStorage, SessionStore
from .streams import DerivedStream, StateStream
from .types import Job, JobType, JobTypeState

T = TypeVar("T")

JobState = dict[JobType, JobTypeState]

STATE_KEY_SUFFIX = "_job_state"


def state_key(job_type: JobType) -> str:
    return f"{job_type}{STATE_KEY_SUFFIX}"


class JobStore:
    """
    Per-job-type running/completed lists with loading and error flags.

    Persisted layout: ``"<job_type>_job_state"`` holds
    ``{"running": [...], "completed": [...]}``.
    """

    def __init__(
        self,
        storage: SessionStore | SafeStorage | None = None,
        logger: JobLogger | None = None,
    ) -> None:
        self.logger = logger or get_logger("JobStore")
        if isinstance(storage, SafeStorage):
            self._storage = storage
        else:
            self._storage = SafeStorage(storage or InMemorySessionStore(), self.logger)
        self._state: StateStream[JobState] = StateStream({})

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @property
    def stream(self) -> StateStream[JobState]:
        return self._state

    def snapshot(self) -> JobState:
        return dict(self._state.value)

    def job_types(self) -> list[JobType]:
        return list(self._state.value)

    def state(self, job_type: JobType) -> JobTypeState:
        return self._state.value.get(job_type) or JobTypeState()

    def running_jobs(self, job_type: JobType) -> list[Job]:
        return list(self.state(job_type).running)

    def completed_jobs(self, job_type: JobType) -> list[Job]:
        return list(self.state(job_type).completed)

    def all_jobs(self, job_type: JobType) -> list[Job]:
        state = self.state(job_type)
        return [*state.running, *state.completed]

    def loading(self, job_type: JobType) -> bool:
        return self.state(job_type).loading

    def error(self, job_type: JobType) -> str | None:
        return self.state(job_type).error

    def running_jobs_count(self, job_type: JobType) -> int:
        return len(self.state(job_type).running)

    def completed_jobs_count(self, job_type: JobType) -> int:
        return len(self.state(job_type).completed)

    def all_running_jobs(self) -> dict[JobType, list[Job]]:
        return {t: list(s.running) for t, s in self._state.value.items()}

    def all_completed_jobs(self) -> dict[JobType, list[Job]]:
        return {t: list(s.completed) for t, s in self._state.value.items()}

    def total_running_jobs_count(self) -> int:
        return sum(len(s.running) for s in self._state.value.values())

    def total_completed_jobs_count(self) -> int:
        return sum(len(s.completed) for s in self._state.value.values())

    # Derived streams

    def select(self, selector: Callable[[JobState], T]) -> DerivedStream[T]:
        return self._state.select(selector)

    def running_jobs_stream(self, job_type: JobType) -> DerivedStream[list[Job]]:
        return self.select(lambda s: list(s[job_type].running) if job_type in s else [])

    def completed_jobs_stream(self, job_type: JobType) -> DerivedStream[list[Job]]:
        return self.select(lambda s: list(s[job_type].completed) if job_type in s else [])

    def loading_stream(self, job_type: JobType) -> DerivedStream[bool]:
        return self.select(lambda s: s[job_type].loading if job_type in s else False)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def _apply(self, job_type: JobType, transform: Callable[[JobTypeState], JobTypeState]) -> None:
        current = self._state.value
        updated = dict(current)
        updated[job_type] = transform(current.get(job_type) or JobTypeState())
        self._state.set(updated)
        self._persist(job_type)

    def _persist(self, job_type: JobType) -> None:
        state = self._state.value.get(job_type)
        if state is None:
            self._storage.remove(state_key(job_type))
        else:
            self._storage.write_json(state_key(job_type), state.to_dict())

    def ensure_job_type(self, job_type: JobType) -> None:
        if job_type not in self._state.value:
            self._apply(job_type, lambda s: s)

    def set_running_jobs(self, job_type: JobType, jobs: Iterable[Job]) -> None:
        jobs = list(jobs)
        self._apply(job_type, lambda s: replace(s, running=jobs, loading=False, error=None))

    def set_completed_jobs(self, job_type: JobType, jobs: Iterable[Job]) -> None:
        jobs = list(jobs)
        self._apply(job_type, lambda s: replace(s, completed=jobs, loading=False, error=None))

    def add_running_job(self, job_type: JobType, job: Job) -> None:
        self._apply(job_type, lambda s: replace(s, running=[*s.running, job]))

    def update_job(self, job_type: JobType, job: Job) -> None:
        """Replace a job in place by id. Unknown ids are ignored."""

        def transform(s: JobTypeState) -> JobTypeState:
            for field_name in ("running", "completed"):
                jobs = getattr(s, field_name)
                for index, existing in enumerate(jobs):
                    if existing.id == job.id:
                        updated = list(jobs)
                        updated[index] = job
                        return replace(s, **{field_name: updated})
            return s

        self._apply(job_type, transform)

    def move_job_to_completed(self, job_type: JobType, job_id: str, job: Job | None = None) -> None:
        """Move a running job to the head of ``completed``, optionally with its final snapshot."""

        def transform(s: JobTypeState) -> JobTypeState:
            moving = next((j for j in s.running if j.id == job_id), None)
            final = job or moving
            if final is None:
                return s
            return replace(
                s,
                running=[j for j in s.running if j.id != job_id],
                completed=[final, *(j for j in s.completed if j.id != job_id)],
            )

        self._apply(job_type, transform)

    def settle_jobs(self, job_type: JobType, running: Iterable[Job], finished: Iterable[Job]) -> None:
        """Publish a running-poll result: new running list plus finished jobs moved to completed."""
        running = list(running)
        finished = list(finished)
        finished_ids = {j.id for j in finished}
        finished_names = {j.name for j in finished}

        def transform(s: JobTypeState) -> JobTypeState:
            kept = [j for j in s.completed if j.id not in finished_ids and j.name not in finished_names]
            return replace(
                s,
                running=[j for j in running if j.id not in finished_ids],
                completed=[*finished, *kept],
                loading=False,
                error=None,
            )

        self._apply(job_type, transform)

    def remove_running_job(self, job_type: JobType, job_id: str) -> None:
        self._apply(job_type, lambda s: replace(s, running=[j for j in s.running if j.id != job_id]))

    def clear_jobs(self, job_type: JobType) -> None:
        self._apply(job_type, lambda s: JobTypeState())

    def clear_all_jobs(self) -> None:
        job_types = list(self._state.value)
        self._state.set({})
        for job_type in job_types:
            self._persist(job_type)

    def set_loading(self, job_type: JobType, loading: bool) -> None:
        self._apply(job_type, lambda s: replace(s, loading=loading))

    def set_error(self, job_type: JobType, error: str | None) -> None:
        self._apply(job_type, lambda s: replace(s, error=error, loading=False))

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def restore(self, job_type: JobType) -> bool:
        """Reload one job type from storage. Returns True if prior state was found."""
        result = self._storage.read_json(state_key(job_type))
        if not result.ok or result.value is None:
            return False
        try:
            restored = JobTypeState.from_dict(result.value)
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            self.logger.error("Failed to load state from storage", job_type=job_type, error=str(exc))
            return False
        updated = dict(self._state.value)
        updated[job_type] = restored
        self._state.set(updated)
        return True

    def clear_persisted_state(self, job_type: JobType | None = None) -> None:
        """Drop persisted state (all job types when ``job_type`` is None) and reset memory."""
        job_types = [job_type] if job_type is not None else list(self._state.value)
        for t in job_types:
            self._storage.remove(state_key(t))
        if job_type is None:
            self._state.set({})
        else:
            updated = dict(self._state.value)
            updated.pop(job_type, None)
            self._state.set(updated)


__all__ = ["JobStore", "JobState", "state_key"]
