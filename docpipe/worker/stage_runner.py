from docpipe.config.settings import Settings
from docpipe.database.exceptions import StaleDocumentError
from docpipe.database.locks import BaseDocumentLock
from docpipe.database.repositories.document_repository import BaseDocumentRepository
from docpipe.domain.document import Document
from docpipe.domain.exceptions import InvalidTransitionError
from docpipe.domain.publisher import BaseEventPublisher
from docpipe.domain.status import (
    DocumentStatus,
    Stage,
    is_cancellable,
    is_success,
    next_stage,
    stage_of,
)
from docpipe.logging.logger import Log
from docpipe.queue.base import BaseStageQueue
from docpipe.queue.cancellation import CancellationToken
from docpipe.queue.exceptions import JobCancelledError
from docpipe.queue.models import PENDING_STATES, FailureOutcome, JobRecord, JobState
from docpipe.worker.stages import PipelineStage


class StageRunner:
    """Run one delivered job of a stage against its document.

    The document is locked for the whole job and every status write is
    conditional on the status read before it, so a redelivered or duplicate
    job can never advance a document twice. The next stage is enqueued only
    after the completed stage has been persisted.
    """

    def __init__(
        self,
        stage: PipelineStage,
        repository: BaseDocumentRepository,
        queue: BaseStageQueue,
        lock: BaseDocumentLock,
        publisher: BaseEventPublisher,
        settings: Settings,
    ) -> None:
        self._stage = stage
        self._repository = repository
        self._queue = queue
        self._lock = lock
        self._publisher = publisher
        self._settings = settings

    @property
    def stage(self) -> PipelineStage:
        return self._stage

    def run(self, job: JobRecord) -> None:
        Log.info(
            f"Running {job.stage.value} job {job.id} for document {job.document_id} "
            f"(attempt {job.attempt_number})"
        )
        with self._lock.acquire(job.document_id) as acquired:
            if not acquired:
                Log.info(f"Document {job.document_id} is busy, deferring job {job.id}")
                self._queue.defer(job.id, self._settings.lock_retry_delay_seconds)
                return
            self._process(job)

    def _process(self, job: JobRecord) -> None:
        token = CancellationToken(self._queue, job.id)

        document = self._repository.find_by_id(job.document_id)
        if document is None:
            Log.error(f"Document {job.document_id} not found, discarding job {job.id}")
            self._queue.discard(job.id, f"Document {job.document_id} not found")
            return

        if token.is_cancelled():
            self._cancel(job, document)
            return

        if stage_of(document.status) is self._stage.stage and is_success(document.status):
            self._hand_over(job, document)
            return

        if document.status is self._stage.processing_status:
            Log.warning(
                f"Document {document.document_id} already in {document.status.value}, "
                f"resuming job {job.id}"
            )
        else:
            loaded_status = document.status
            try:
                self._stage.start(document)
            except InvalidTransitionError as exc:
                Log.warning(f"Skipping job {job.id}: {exc}")
                self._queue.complete(job.id)
                return
            if not self._persist(job, document, loaded_status, token):
                return

        try:
            token.raise_if_cancelled()
            result = self._stage.execute(document, token)
        except JobCancelledError:
            self._cancel(job, document)
            return
        except Exception as exc:
            self._fail(job, document, exc, token)
            return

        self._stage.complete(document, result)
        if not self._persist(job, document, self._stage.processing_status, token):
            return

        if token.is_cancelled():
            self._cancel(job, document)
            return

        following = next_stage(self._stage.stage)
        if following is not None:
            self._queue.enqueue(following, document.document_id, document.file_path)
        self._queue.complete(job.id)
        Log.info(f"Job {job.id} completed, document {document.document_id} is {document.status.value}")

    def _hand_over(self, job: JobRecord, document: Document) -> None:
        """Settle a redelivered job whose result is already persisted.

        The earlier delivery may have stopped between persisting and enqueuing
        the next stage, so that job is enqueued again unless one is open.
        """
        following = next_stage(self._stage.stage)
        if following is not None and not self._has_open_job(document.document_id, following):
            Log.warning(
                f"Document {document.document_id} is {document.status.value} with no "
                f"{following.value} job, enqueuing it from job {job.id}"
            )
            self._queue.enqueue(following, document.document_id, document.file_path)
        self._queue.complete(job.id)

    def _has_open_job(self, document_id: str, stage: Stage) -> bool:
        return any(
            j.stage is stage and (j.state in PENDING_STATES or j.state is JobState.ACTIVE)
            for j in self._queue.find_by_document(document_id)
        )

    def _fail(
        self,
        job: JobRecord,
        document: Document,
        exc: Exception,
        token: CancellationToken,
    ) -> None:
        reason = str(exc) or type(exc).__name__
        Log.error(f"Job {job.id} ({job.stage.value}) failed for document {document.document_id}: {reason}")
        self._stage.fail(document, reason)
        if not self._persist(job, document, self._stage.processing_status, token):
            return
        outcome = self._queue.fail(job, reason)
        if outcome is FailureOutcome.EXHAUSTED:
            Log.error(
                f"Document {document.document_id} left in {document.status.value} "
                f"after {job.attempt_number} attempts"
            )

    def _cancel(self, job: JobRecord, document: Document) -> None:
        status = document.status
        if is_cancellable(status):
            document.mark_cancelled()
            try:
                self._repository.update(document, expected_status=status)
            except StaleDocumentError as exc:
                Log.warning(f"Cancel of document {document.document_id} lost a race: {exc}")
                document.pull_events()
            else:
                self._publisher.publish(document.pull_events())
        self._queue.acknowledge_cancelled(job.id)
        Log.info(f"Job {job.id} acknowledged cancellation of document {document.document_id}")

    def _persist(
        self,
        job: JobRecord,
        document: Document,
        expected_status: DocumentStatus,
        token: CancellationToken,
    ) -> bool:
        """Write the document if nobody changed it meanwhile; settle the job otherwise."""
        try:
            self._repository.update(document, expected_status=expected_status)
        except StaleDocumentError as exc:
            document.pull_events()
            Log.warning(f"Job {job.id} dropped its result: {exc}")
            if token.is_cancelled():
                self._queue.acknowledge_cancelled(job.id)
            else:
                self._queue.complete(job.id)
            return False
        self._publisher.publish(document.pull_events())
        return True
