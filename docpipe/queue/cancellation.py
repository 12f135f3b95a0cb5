from docpipe.queue.base import BaseStageQueue
from docpipe.queue.exceptions import JobCancelledError


class CancellationToken:
    """Cooperative cancellation handle for one job delivery.

    Capabilities call ``raise_if_cancelled`` between units of work. Nothing is
    preempted: a capability call that never checks runs to completion.
    """

    def __init__(self, queue: BaseStageQueue, job_id: int) -> None:
        self._queue = queue
        self._job_id = job_id
        self._cancelled = False

    @property
    def job_id(self) -> int:
        return self._job_id

    def is_cancelled(self) -> bool:
        if not self._cancelled:
            self._cancelled = self._queue.is_cancelled(self._job_id)
        return self._cancelled

    def raise_if_cancelled(self) -> None:
        if self.is_cancelled():
            raise JobCancelledError(self._job_id)
