import threading
import time
from pathlib import Path
from unittest.mock import MagicMock

from docpipe.bootstrap import build_container
from docpipe.domain.status import DocumentStatus, Stage
from docpipe.worker.pool import WorkerPool
from tests.helpers import memory_settings


def _wait_for(predicate, timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return False


class TestConcurrency:
    def test_reads_per_stage_setting(self) -> None:
        settings = MagicMock(ocr_concurrency=4, validation_concurrency=2, persistence_concurrency=1)
        pool = WorkerPool(MagicMock(), {}, settings)

        assert pool.concurrency_for(Stage.OCR) == 4
        assert pool.concurrency_for(Stage.VALIDATION) == 2
        assert pool.concurrency_for(Stage.PERSISTENCE) == 1


class TestStaleJobs:
    def test_releases_with_lock_timeout(self) -> None:
        mock_queue = MagicMock()
        mock_queue.release_stale.return_value = 2
        pool = WorkerPool(mock_queue, {}, MagicMock(job_lock_timeout_seconds=300))

        assert pool.release_stale_jobs() == 2
        mock_queue.release_stale.assert_called_once_with(300)


class TestRetention:
    def test_cleans_with_retention_settings(self) -> None:
        mock_queue = MagicMock()
        mock_queue.clean.return_value = 5
        settings = MagicMock(job_retention_seconds=60, failed_job_retention_seconds=600)
        pool = WorkerPool(mock_queue, {}, settings)

        assert pool.clean_finished_jobs() == 5
        mock_queue.clean.assert_called_once_with(60, 600)


class TestLifecycle:
    def test_starts_named_threads_and_stops(self, tmp_path: Path) -> None:
        settings = memory_settings(
            tmp_path / "storage",
            ocr_concurrency=2,
            validation_concurrency=1,
            persistence_concurrency=1,
        )
        pool = build_container(settings).build_worker_pool()

        pool.start()
        names = {t.name for t in threading.enumerate()}
        pool.stop(timeout=5)

        assert {"ocr-worker-1", "ocr-worker-2", "validation-worker-1"} <= names
        assert {"persistence-worker-1", "maintenance"} <= names
        assert not any(t.name == "ocr-worker-1" and t.is_alive() for t in threading.enumerate())

    def test_processes_upload_end_to_end(self, tmp_path: Path) -> None:
        settings = memory_settings(
            tmp_path / "storage",
            ocr_concurrency=1,
            validation_concurrency=1,
            persistence_concurrency=1,
        )
        container = build_container(settings)
        pool = container.build_worker_pool()
        result = container.service.accept_upload(
            b"Invoice total $12.50 due on receipt", "invoice.txt", "text/plain"
        )

        pool.start()
        try:
            done = _wait_for(
                lambda: container.service.status(result.document_id).status
                is DocumentStatus.COMPLETED
            )
        finally:
            pool.stop(timeout=5)

        assert done
