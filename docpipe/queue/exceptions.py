class QueueError(Exception):
    """Base exception for stage queue errors."""


class NoActiveJobsError(QueueError):
    """Raised when cancelling a document that has no waiting, delayed or active jobs."""

    def __init__(self, document_id: str) -> None:
        self.document_id = document_id
        super().__init__(f"No active jobs found for document {document_id}")


class JobNotFoundError(QueueError):
    def __init__(self, job_id: int) -> None:
        self.job_id = job_id
        super().__init__(f"Job {job_id} not found")


class JobCancelledError(QueueError):
    """Raised at a checkpoint once the job's document has been cancelled."""

    def __init__(self, job_id: int) -> None:
        self.job_id = job_id
        super().__init__(f"Job {job_id} was cancelled")
