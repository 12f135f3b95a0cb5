from abc import ABC, abstractmethod

from docpipe.domain.status import PIPELINE_STAGES, Stage
from docpipe.logging.logger import Log
from docpipe.queue.models import (
    CancelSummary,
    FailureOutcome,
    JobOptions,
    JobRecord,
    JobState,
    compute_backoff,
)

DEFAULT_STAGE_OPTIONS: dict[Stage, JobOptions] = {
    Stage.OCR: JobOptions(attempts=5, backoff_delay_ms=2000),
    Stage.VALIDATION: JobOptions(attempts=3, backoff_delay_ms=1000),
    Stage.PERSISTENCE: JobOptions(attempts=4, backoff_delay_ms=1500),
}


class BaseStageQueue(ABC):
    """Durable at-least-once job queue with one lane per pipeline stage.

    A claimed job stays ``active`` until it is completed, failed, discarded,
    deferred or acknowledged as cancelled. Failed deliveries are retried with
    exponential backoff until the job's attempt budget is spent.
    """

    def __init__(self, stage_options: dict[Stage, JobOptions] | None = None) -> None:
        self._stage_options = dict(DEFAULT_STAGE_OPTIONS)
        if stage_options:
            self._stage_options.update(stage_options)

    def options_for(self, stage: Stage) -> JobOptions:
        return self._stage_options[stage]

    def enqueue(
        self,
        stage: Stage,
        document_id: str,
        file_path: str,
        options: JobOptions | None = None,
    ) -> JobRecord:
        """Add a job for ``document_id`` to the ``stage`` lane, ready immediately."""
        if stage not in PIPELINE_STAGES:
            raise ValueError(f"Cannot enqueue a job for stage '{stage}'")
        options = options or self.options_for(stage)
        job = self._insert(stage, document_id, file_path, options)
        Log.info(
            f"Enqueued {stage.value} job {job.id} for document {document_id} "
            f"(max {options.attempts} attempts)"
        )
        return job

    def fail(self, job: JobRecord, error: str) -> FailureOutcome:
        """Record a failed delivery and either schedule a retry or give up."""
        if job.attempt_number >= job.max_attempts:
            self._mark_exhausted(job, error)
            Log.error(
                f"Job {job.id} ({job.stage.value}) for document {job.document_id} "
                f"permanently failed after {job.attempt_number} attempts: {error}"
            )
            return FailureOutcome.EXHAUSTED

        delay = compute_backoff(job.backoff_delay_ms, job.attempts)
        self._schedule_retry(job, error, delay)
        Log.warning(
            f"Job {job.id} ({job.stage.value}) will be retried in {delay:.1f}s "
            f"(attempt {job.attempt_number + 1} of {job.max_attempts})"
        )
        return FailureOutcome.RETRY_SCHEDULED

    @abstractmethod
    def _insert(
        self,
        stage: Stage,
        document_id: str,
        file_path: str,
        options: JobOptions,
    ) -> JobRecord: ...

    @abstractmethod
    def _schedule_retry(self, job: JobRecord, error: str, delay_seconds: float) -> None: ...

    @abstractmethod
    def _mark_exhausted(self, job: JobRecord, error: str) -> None: ...

    @abstractmethod
    def claim_next(self, stage: Stage) -> JobRecord | None:
        """Claim the oldest job of ``stage`` that is due, marking it active."""

    @abstractmethod
    def complete(self, job_id: int) -> None: ...

    @abstractmethod
    def discard(self, job_id: int, reason: str) -> None:
        """Fail a job permanently without further retries."""

    @abstractmethod
    def defer(self, job_id: int, delay_seconds: float) -> None:
        """Return an active job to the lane without consuming an attempt."""

    @abstractmethod
    def acknowledge_cancelled(self, job_id: int) -> None: ...

    @abstractmethod
    def cancel(self, document_id: str) -> CancelSummary:
        """Remove pending jobs for a document and flag its active ones.

        Raises:
            NoActiveJobsError: if the document has no pending or active job.
        """

    @abstractmethod
    def drop_pending(self, document_id: str) -> int:
        """Mark a document's waiting and delayed jobs cancelled; active jobs are left alone."""

    @abstractmethod
    def is_cancelled(self, job_id: int) -> bool: ...

    @abstractmethod
    def find_by_id(self, job_id: int) -> JobRecord | None: ...

    @abstractmethod
    def find_by_document(self, document_id: str) -> list[JobRecord]:
        """Return every job recorded for a document, oldest first."""

    @abstractmethod
    def release_stale(self, timeout_seconds: float) -> int:
        """Return active jobs locked longer than ``timeout_seconds`` to the lane."""

    @abstractmethod
    def clean(self, grace_seconds: float, failed_grace_seconds: float) -> int:
        """Delete finished jobs last touched before the grace period.

        Completed and cancelled jobs go after ``grace_seconds``; failed jobs are
        kept for ``failed_grace_seconds`` so exhausted documents can still be
        escalated. Returns the number of jobs deleted.
        """

    @abstractmethod
    def find_exhausted(self) -> list[JobRecord]:
        """Return permanently failed jobs, most recently failed first."""

    @abstractmethod
    def stats(self) -> dict[Stage, dict[JobState, int]]: ...

    @abstractmethod
    def ping(self) -> bool: ...


def empty_job_stats() -> dict[Stage, dict[JobState, int]]:
    return {stage: {state: 0 for state in JobState} for stage in PIPELINE_STAGES}
