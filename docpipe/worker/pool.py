import threading
from collections.abc import Callable

from docpipe.config.settings import Settings
from docpipe.domain.status import Stage
from docpipe.logging.logger import Log
from docpipe.queue.base import BaseStageQueue
from docpipe.worker.stage_runner import StageRunner
from docpipe.worker.worker import Worker


class WorkerPool:
    """Runs ``concurrency`` worker threads per stage plus a maintenance thread.

    The maintenance thread returns jobs whose worker died mid-delivery to
    their lane once ``job_lock_timeout_seconds`` has passed, and deletes
    finished jobs older than the retention settings.
    """

    def __init__(
        self,
        queue: BaseStageQueue,
        runners: dict[Stage, StageRunner],
        settings: Settings,
    ) -> None:
        self._queue = queue
        self._runners = runners
        self._settings = settings
        self._stop_event = threading.Event()
        self._threads: list[threading.Thread] = []

    def concurrency_for(self, stage: Stage) -> int:
        return int(getattr(self._settings, f"{stage.value}_concurrency"))

    def start(self) -> None:
        if self._threads:
            return
        self._stop_event.clear()
        for stage, runner in self._runners.items():
            for index in range(self.concurrency_for(stage)):
                worker = Worker(self._queue, runner, self._settings, self._stop_event)
                self._spawn(worker.run, f"{stage.value}-worker-{index + 1}")
        self._spawn(self._maintain, "maintenance")
        Log.info(f"Worker pool started with {len(self._threads)} threads")

    def stop(self, timeout: float | None = None) -> None:
        self._stop_event.set()
        for thread in self._threads:
            thread.join(timeout)
        self._threads = []
        Log.info("Worker pool stopped")

    def run_forever(self) -> None:
        """Start the pool and block until interrupted."""
        self.start()
        try:
            while not self._stop_event.wait(1.0):
                pass
        except KeyboardInterrupt:
            Log.info("Worker pool shutting down gracefully")
        finally:
            self.stop()

    def release_stale_jobs(self) -> int:
        released = self._queue.release_stale(self._settings.job_lock_timeout_seconds)
        if released:
            Log.warning(f"Released {released} stale jobs for redelivery")
        return released

    def clean_finished_jobs(self) -> int:
        deleted = self._queue.clean(
            self._settings.job_retention_seconds,
            self._settings.failed_job_retention_seconds,
        )
        if deleted:
            Log.info(f"Deleted {deleted} finished jobs past retention")
        return deleted

    def _maintain(self) -> None:
        interval = max(1.0, self._settings.job_lock_timeout_seconds / 2)
        while not self._stop_event.wait(interval):
            try:
                self.release_stale_jobs()
                self.clean_finished_jobs()
            except Exception as exc:
                Log.warning(f"Queue maintenance failed, will retry: {exc}")

    def _spawn(self, target: Callable[[], None], name: str) -> None:
        thread = threading.Thread(target=target, name=name, daemon=True)
        thread.start()
        self._threads.append(thread)
