import itertools
import threading
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime, timedelta, timezone

from docpipe.domain.status import Stage
from docpipe.queue.base import BaseStageQueue, empty_job_stats
from docpipe.queue.exceptions import JobNotFoundError, NoActiveJobsError
from docpipe.queue.models import (
    FINISHED_STATES,
    PENDING_STATES,
    CancelSummary,
    JobOptions,
    JobRecord,
    JobState,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryStageQueue(BaseStageQueue):
    """Process-local queue with the same delivery rules as the PostgreSQL one.

    ``clock`` is injectable so tests can step over backoff delays without
    sleeping.
    """

    def __init__(
        self,
        stage_options: dict[Stage, JobOptions] | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        super().__init__(stage_options)
        self._clock = clock
        self._jobs: dict[int, JobRecord] = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def _insert(
        self,
        stage: Stage,
        document_id: str,
        file_path: str,
        options: JobOptions,
    ) -> JobRecord:
        now = self._clock()
        with self._lock:
            job = JobRecord(
                id=next(self._ids),
                document_id=document_id,
                file_path=file_path,
                stage=stage,
                state=JobState.WAITING,
                attempts=0,
                max_attempts=options.attempts,
                backoff_delay_ms=options.backoff_delay_ms,
                available_at=now,
                created_at=now,
                updated_at=now,
            )
            self._jobs[job.id] = job
            return replace(job)

    def claim_next(self, stage: Stage) -> JobRecord | None:
        now = self._clock()
        with self._lock:
            due = [
                job
                for job in self._jobs.values()
                if job.stage == stage
                and job.state in PENDING_STATES
                and job.available_at is not None
                and job.available_at <= now
            ]
            if not due:
                return None
            job = min(due, key=lambda j: (j.available_at, j.id))
            job.state = JobState.ACTIVE
            job.locked_at = now
            job.updated_at = now
            return replace(job)

    def complete(self, job_id: int) -> None:
        self._update(job_id, state=JobState.COMPLETED, locked_at=None)

    def _schedule_retry(self, job: JobRecord, error: str, delay_seconds: float) -> None:
        with self._lock:
            stored = self._get(job.id)
            now = self._clock()
            stored.state = JobState.DELAYED
            stored.attempts += 1
            stored.error_message = error
            stored.available_at = now + timedelta(seconds=delay_seconds)
            stored.locked_at = None
            stored.updated_at = now

    def _mark_exhausted(self, job: JobRecord, error: str) -> None:
        with self._lock:
            stored = self._get(job.id)
            stored.state = JobState.FAILED
            stored.attempts += 1
            stored.error_message = error
            stored.locked_at = None
            stored.updated_at = self._clock()

    def discard(self, job_id: int, reason: str) -> None:
        self._update(job_id, state=JobState.FAILED, error_message=reason, locked_at=None)

    def defer(self, job_id: int, delay_seconds: float) -> None:
        available_at = self._clock() + timedelta(seconds=delay_seconds)
        self._update(job_id, state=JobState.WAITING, available_at=available_at, locked_at=None)

    def acknowledge_cancelled(self, job_id: int) -> None:
        self._update(job_id, state=JobState.CANCELLED, locked_at=None)

    def cancel(self, document_id: str) -> CancelSummary:
        removed = flagged = 0
        with self._lock:
            now = self._clock()
            for job in self._jobs.values():
                if job.document_id != document_id:
                    continue
                if job.state in PENDING_STATES:
                    job.state = JobState.CANCELLED
                    job.cancelled = True
                    job.updated_at = now
                    removed += 1
                elif job.state is JobState.ACTIVE:
                    job.cancelled = True
                    job.updated_at = now
                    flagged += 1
        if removed == 0 and flagged == 0:
            raise NoActiveJobsError(document_id)
        return CancelSummary(removed=removed, flagged=flagged)

    def drop_pending(self, document_id: str) -> int:
        dropped = 0
        with self._lock:
            now = self._clock()
            for job in self._jobs.values():
                if job.document_id == document_id and job.state in PENDING_STATES:
                    job.state = JobState.CANCELLED
                    job.updated_at = now
                    dropped += 1
        return dropped

    def is_cancelled(self, job_id: int) -> bool:
        with self._lock:
            job = self._jobs.get(job_id)
            return bool(job and job.cancelled)

    def find_by_id(self, job_id: int) -> JobRecord | None:
        with self._lock:
            job = self._jobs.get(job_id)
            return replace(job) if job else None

    def find_by_document(self, document_id: str) -> list[JobRecord]:
        with self._lock:
            return [replace(j) for j in self._jobs.values() if j.document_id == document_id]

    def release_stale(self, timeout_seconds: float) -> int:
        cutoff = self._clock() - timedelta(seconds=timeout_seconds)
        released = 0
        with self._lock:
            for job in self._jobs.values():
                if job.state is JobState.ACTIVE and job.locked_at and job.locked_at < cutoff:
                    job.state = JobState.WAITING
                    job.locked_at = None
                    job.updated_at = self._clock()
                    released += 1
        return released

    def clean(self, grace_seconds: float, failed_grace_seconds: float) -> int:
        now = self._clock()
        cutoff = now - timedelta(seconds=grace_seconds)
        failed_cutoff = now - timedelta(seconds=failed_grace_seconds)
        with self._lock:
            expired = [
                job.id
                for job in self._jobs.values()
                if job.updated_at is not None
                and (
                    (job.state in FINISHED_STATES and job.updated_at < cutoff)
                    or (job.state is JobState.FAILED and job.updated_at < failed_cutoff)
                )
            ]
            for job_id in expired:
                del self._jobs[job_id]
        return len(expired)

    def find_exhausted(self) -> list[JobRecord]:
        with self._lock:
            failed = [replace(j) for j in self._jobs.values() if j.state is JobState.FAILED]
        failed.sort(key=lambda j: (j.updated_at, j.id), reverse=True)
        return failed

    def stats(self) -> dict[Stage, dict[JobState, int]]:
        result = empty_job_stats()
        with self._lock:
            for job in self._jobs.values():
                result[job.stage][job.state] += 1
        return result

    def ping(self) -> bool:
        return True

    def _get(self, job_id: int) -> JobRecord:
        job = self._jobs.get(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return job

    def _update(self, job_id: int, **changes: object) -> None:
        with self._lock:
            job = self._get(job_id)
            for name, value in changes.items():
                setattr(job, name, value)
            job.updated_at = self._clock()
