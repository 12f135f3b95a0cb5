import threading
from pathlib import Path

import pytest

from docpipe.bootstrap import build_container
from docpipe.config.settings import Settings
from docpipe.database.locks import AdvisoryDocumentLock
from docpipe.domain.status import PIPELINE_STAGES, DocumentStatus, Stage
from docpipe.queue.exceptions import NoActiveJobsError
from docpipe.queue.models import FailureOutcome, JobOptions, JobState
from docpipe.queue.postgres_queue import PostgresStageQueue

pytestmark = [pytest.mark.integration, pytest.mark.usefixtures("clean_tables")]

FILE = "tmp/doc-1/invoice.pdf"


def _queue(attempts: int = 3) -> PostgresStageQueue:
    options = {stage: JobOptions(attempts, 0) for stage in PIPELINE_STAGES}
    return PostgresStageQueue(options)


class TestClaim:
    def test_claims_and_locks_job(self) -> None:
        queue = _queue()
        enqueued = queue.enqueue(Stage.OCR, "doc-1", FILE)

        job = queue.claim_next(Stage.OCR)

        assert job is not None
        assert job.id == enqueued.id
        assert job.state is JobState.ACTIVE
        stored = queue.find_by_id(job.id)
        assert stored is not None
        assert stored.state is JobState.ACTIVE
        assert stored.locked_at is not None

    def test_returns_none_when_lane_empty(self) -> None:
        queue = _queue()
        queue.enqueue(Stage.VALIDATION, "doc-1", FILE)

        assert queue.claim_next(Stage.OCR) is None

    def test_each_job_claimed_once(self) -> None:
        queue = _queue()
        queue.enqueue(Stage.OCR, "doc-1", FILE)
        claimed = []

        def claim() -> None:
            claimed.append(queue.claim_next(Stage.OCR))

        threads = [threading.Thread(target=claim) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len([job for job in claimed if job is not None]) == 1

    def test_deferred_job_not_due(self) -> None:
        queue = _queue()
        queue.enqueue(Stage.OCR, "doc-1", FILE)
        job = queue.claim_next(Stage.OCR)
        assert job is not None

        queue.defer(job.id, 60)

        assert queue.claim_next(Stage.OCR) is None
        stored = queue.find_by_id(job.id)
        assert stored is not None
        assert stored.state is JobState.WAITING
        assert stored.attempts == 0


class TestFailure:
    def test_retry_then_exhaust(self) -> None:
        queue = _queue(attempts=2)
        queue.enqueue(Stage.OCR, "doc-1", FILE)

        first = queue.claim_next(Stage.OCR)
        assert first is not None
        assert queue.fail(first, "boom") is FailureOutcome.RETRY_SCHEDULED
        second = queue.claim_next(Stage.OCR)
        assert second is not None
        assert second.attempts == 1
        assert queue.fail(second, "boom again") is FailureOutcome.EXHAUSTED

        [exhausted] = queue.find_exhausted()
        assert exhausted.id == first.id
        assert exhausted.attempts == 2
        assert exhausted.error_message == "boom again"

    def test_backoff_delays_retry(self) -> None:
        queue = PostgresStageQueue({Stage.OCR: JobOptions(3, 60_000)})
        queue.enqueue(Stage.OCR, "doc-1", FILE)
        job = queue.claim_next(Stage.OCR)
        assert job is not None

        queue.fail(job, "boom")

        assert queue.claim_next(Stage.OCR) is None
        stored = queue.find_by_id(job.id)
        assert stored is not None
        assert stored.state is JobState.DELAYED


class TestCancel:
    def test_removes_pending_and_flags_active(self) -> None:
        queue = _queue()
        queue.enqueue(Stage.OCR, "doc-1", FILE)
        active = queue.claim_next(Stage.OCR)
        assert active is not None
        pending = queue.enqueue(Stage.VALIDATION, "doc-1", FILE)

        summary = queue.cancel("doc-1")

        assert (summary.removed, summary.flagged) == (1, 1)
        assert queue.is_cancelled(active.id)
        stored = queue.find_by_id(pending.id)
        assert stored is not None
        assert stored.state is JobState.CANCELLED
        assert queue.claim_next(Stage.VALIDATION) is None

    def test_no_jobs_raises(self) -> None:
        with pytest.raises(NoActiveJobsError):
            _queue().cancel("doc-1")

    def test_drop_pending_leaves_active_job(self) -> None:
        queue = _queue()
        queue.enqueue(Stage.OCR, "doc-1", FILE)
        active = queue.claim_next(Stage.OCR)
        assert active is not None
        pending = queue.enqueue(Stage.OCR, "doc-1", FILE)

        assert queue.drop_pending("doc-1") == 1

        assert not queue.is_cancelled(active.id)
        stored = queue.find_by_id(pending.id)
        assert stored is not None
        assert stored.state is JobState.CANCELLED


class TestMaintenance:
    def test_release_stale(self) -> None:
        queue = _queue()
        queue.enqueue(Stage.OCR, "doc-1", FILE)
        job = queue.claim_next(Stage.OCR)
        assert job is not None

        assert queue.release_stale(3600) == 0
        assert queue.release_stale(-1) == 1
        assert queue.claim_next(Stage.OCR) is not None

    def test_clean_deletes_finished_jobs(self) -> None:
        queue = _queue(attempts=1)
        done = queue.enqueue(Stage.OCR, "doc-1", FILE)
        queue.claim_next(Stage.OCR)
        queue.complete(done.id)
        failed = queue.enqueue(Stage.VALIDATION, "doc-2", FILE)
        claimed = queue.claim_next(Stage.VALIDATION)
        assert claimed is not None
        queue.fail(claimed, "boom")
        waiting = queue.enqueue(Stage.PERSISTENCE, "doc-3", FILE)

        assert queue.clean(3600, 3600) == 0
        assert queue.clean(-1, 3600) == 1

        assert queue.find_by_id(done.id) is None
        assert queue.find_by_id(failed.id) is not None
        assert queue.find_by_id(waiting.id) is not None
        assert queue.clean(-1, -1) == 1

    def test_stats_and_history(self) -> None:
        queue = _queue()
        queue.enqueue(Stage.OCR, "doc-1", FILE)
        queue.enqueue(Stage.OCR, "doc-2", FILE)
        job = queue.claim_next(Stage.OCR)
        assert job is not None
        queue.complete(job.id)

        stats = queue.stats()

        assert stats[Stage.OCR][JobState.COMPLETED] == 1
        assert stats[Stage.OCR][JobState.WAITING] == 1
        assert [j.stage for j in queue.find_by_document("doc-1")] == [Stage.OCR]
        assert queue.ping()


class TestAdvisoryLock:
    def test_second_holder_is_refused(self) -> None:
        lock = AdvisoryDocumentLock()

        with lock.acquire("doc-1") as first, lock.acquire("doc-1") as second:
            assert first
            assert not second

        with lock.acquire("doc-1") as again:
            assert again


class TestPipeline:
    def test_document_completes_on_postgres(self, test_settings: Settings, tmp_path: Path) -> None:
        settings = test_settings.model_copy(
            update={
                "backend": "postgres",
                "storage_root": str(tmp_path),
                "ocr_backoff_delay_ms": 0,
                "validation_backoff_delay_ms": 0,
                "persistence_backoff_delay_ms": 0,
            }
        )
        container = build_container(settings)
        runners = container.build_runners()
        result = container.service.accept_upload(b"hello world", "note.txt", "text/plain")

        for stage in (Stage.OCR, Stage.VALIDATION, Stage.PERSISTENCE):
            job = container.queue.claim_next(stage)
            assert job is not None
            runners[stage].run(job)

        snapshot = container.service.status(result.document_id)
        assert snapshot.status is DocumentStatus.COMPLETED
        assert snapshot.file_path == f"documents/{result.document_id}/note.txt"
