import threading

from docpipe.config.settings import Settings
from docpipe.logging.logger import Log
from docpipe.queue.base import BaseStageQueue
from docpipe.queue.models import JobRecord
from docpipe.worker.stage_runner import StageRunner


class Worker:
    """Poll loop for one stage: claim -> dispatch, or wait when the lane is empty."""

    def __init__(
        self,
        queue: BaseStageQueue,
        runner: StageRunner,
        settings: Settings,
        stop_event: threading.Event | None = None,
    ) -> None:
        self._queue = queue
        self._runner = runner
        self._settings = settings
        self._stop_event = stop_event or threading.Event()

    def run(self, max_jobs: int | None = None) -> None:
        """Main poll loop. Runs until the stop event is set or interrupted.

        If max_jobs is set, stop after processing that many jobs (for testing).
        """
        stage = self._runner.stage.stage
        Log.info(f"{stage.value} worker started, polling for jobs")
        jobs_done = 0
        try:
            while not self._stop_event.is_set():
                if max_jobs is not None and jobs_done >= max_jobs:
                    break
                job = self._try_claim_job()
                if job:
                    self._dispatch(job)
                    jobs_done += 1
                else:
                    Log.debug(f"No {stage.value} jobs available, sleeping")
                    self._stop_event.wait(self._settings.job_poll_interval_seconds)
        except KeyboardInterrupt:
            Log.info(f"{stage.value} worker shutting down gracefully")

    def stop(self) -> None:
        self._stop_event.set()

    def _try_claim_job(self) -> JobRecord | None:
        """Attempt to claim the next due job. Gracefully handle queue errors."""
        try:
            return self._queue.claim_next(self._runner.stage.stage)
        except Exception as exc:
            Log.warning(f"Queue error, will retry: {exc}")
            return None

    def _dispatch(self, job: JobRecord) -> None:
        """Run a job; an unexpected error leaves it active for stale-job redelivery."""
        try:
            self._runner.run(job)
        except Exception:
            Log.exception(f"Job {job.id} crashed, it will be redelivered after the lock timeout")
