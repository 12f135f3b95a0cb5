import uuid
from collections.abc import Generator
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone

from docpipe.config.settings import Settings
from docpipe.database.exceptions import DocumentNotFoundError, StaleDocumentError
from docpipe.database.repositories.document_repository import BaseDocumentRepository
from docpipe.domain.document import Document
from docpipe.domain.exceptions import DocumentError
from docpipe.domain.models import DocumentMetadata, OcrResult, ValidationResult
from docpipe.domain.publisher import BaseEventPublisher
from docpipe.domain.status import (
    STAGE_FAILED_STATUSES,
    DocumentStatus,
    Stage,
    is_cancellable,
    is_retryable,
    is_terminal,
)
from docpipe.logging.logger import Log
from docpipe.queue.base import BaseStageQueue
from docpipe.queue.exceptions import NoActiveJobsError
from docpipe.queue.models import JobState
from docpipe.service.exceptions import (
    AlreadyTerminalError,
    DocumentServiceError,
    InvalidUploadError,
    NotRetryableError,
    UploadFailedError,
)
from docpipe.storage.base import BaseStorage
from docpipe.storage.local_storage import temp_file_path

CONFLICT_RETRIES = 3


@dataclass(frozen=True)
class UploadResult:
    document_id: str
    status: DocumentStatus
    file_path: str


@dataclass(frozen=True)
class RetryResult:
    document_id: str
    status: DocumentStatus
    stage: Stage


@dataclass(frozen=True)
class DocumentSnapshot:
    """Read-only view of a document for callers outside the pipeline."""

    document_id: str
    file_name: str
    file_size: int
    mime_type: str
    file_path: str
    status: DocumentStatus
    stage: Stage | None
    is_terminal: bool
    created_at: datetime
    updated_at: datetime
    ocr_result: OcrResult | None = None
    validation_result: ValidationResult | None = None

    @classmethod
    def from_document(cls, document: Document) -> "DocumentSnapshot":
        metadata = document.metadata
        return cls(
            document_id=document.document_id,
            file_name=metadata.file_name,
            file_size=metadata.file_size,
            mime_type=metadata.mime_type,
            file_path=document.file_path,
            status=document.status,
            stage=document.stage,
            is_terminal=document.is_terminal(),
            created_at=document.created_at,
            updated_at=document.updated_at,
            ocr_result=document.ocr_result,
            validation_result=document.validation_result,
        )


@dataclass(frozen=True)
class PipelineStatistics:
    total: int
    by_status: dict[DocumentStatus, int]
    jobs: dict[Stage, dict[JobState, int]] = field(default_factory=dict)


class DocumentService:
    """Entry point for everything outside the workers: uploads, queries and admin actions."""

    def __init__(
        self,
        repository: BaseDocumentRepository,
        queue: BaseStageQueue,
        storage: BaseStorage,
        publisher: BaseEventPublisher,
        settings: Settings,
    ) -> None:
        self._repository = repository
        self._queue = queue
        self._storage = storage
        self._publisher = publisher
        self._settings = settings

    def accept_upload(self, data: bytes, file_name: str, mime_type: str) -> UploadResult:
        """Check and store an uploaded file, then register it with ``upload``.

        Raises:
            InvalidUploadError: empty file, file too large or refused MIME type.
            UploadFailedError: the file could not be stored or queued.
        """
        if not data:
            raise InvalidUploadError("Uploaded file is empty")
        if len(data) > self._settings.max_upload_size_bytes:
            raise InvalidUploadError(
                f"File exceeds maximum size of {self._settings.max_upload_size_bytes} bytes"
            )
        if mime_type not in self._settings.allowed_mime_types:
            raise InvalidUploadError(f"File type '{mime_type}' is not allowed")

        document_id = str(uuid.uuid4())
        path = temp_file_path(document_id, file_name)
        try:
            self._storage.upload(data, path)
        except Exception as exc:
            raise UploadFailedError(
                f"Failed to store upload: {exc}", action="upload", document_id=document_id
            ) from exc

        metadata = DocumentMetadata(
            file_name=file_name,
            file_size=len(data),
            mime_type=mime_type,
            uploaded_at=datetime.now(timezone.utc),
        )
        return self.upload(path, metadata, document_id=document_id)

    def upload(
        self,
        file_path: str,
        metadata: DocumentMetadata,
        document_id: str | None = None,
    ) -> UploadResult:
        """Register a stored file and queue its OCR stage.

        Raises:
            UploadFailedError: the document could not be saved or queued. When the
                enqueue fails after the save, the document is marked failed.
        """
        document_id = document_id or str(uuid.uuid4())
        document = Document.create(document_id, file_path, metadata)
        try:
            self._repository.save(document)
        except Exception as exc:
            raise UploadFailedError(
                f"Failed to save document: {exc}", action="upload", document_id=document_id
            ) from exc
        self._publisher.publish(document.pull_events())

        try:
            self._queue.enqueue(Stage.OCR, document_id, file_path)
        except Exception as exc:
            Log.error(f"Failed to queue document {document_id}: {exc}")
            self._mark_upload_failed(document)
            raise UploadFailedError(
                f"Failed to queue document: {exc}", action="upload", document_id=document_id
            ) from exc

        Log.info(f"Document {document_id} uploaded and queued for OCR")
        return UploadResult(document_id=document_id, status=document.status, file_path=file_path)

    def status(self, document_id: str) -> DocumentSnapshot:
        with self._wrap_errors("status", document_id):
            return DocumentSnapshot.from_document(self._require(document_id))

    def cancel(self, document_id: str) -> DocumentSnapshot:
        """Stop a document's processing.

        Pending jobs are removed and active ones flagged; the worker holding an
        active job acknowledges the flag at its next checkpoint.

        Raises:
            DocumentNotFoundError: unknown id.
            AlreadyTerminalError: the document completed, failed or was parked.
        """
        with self._wrap_errors("cancel", document_id):
            document = self._require(document_id)
            if not is_cancellable(document.status):
                raise AlreadyTerminalError(document_id, document.status)

            try:
                summary = self._queue.cancel(document_id)
                Log.info(
                    f"Cancelled jobs for document {document_id}: "
                    f"{summary.removed} removed, {summary.flagged} flagged"
                )
            except NoActiveJobsError:
                Log.warning(f"Document {document_id} had no queued jobs to cancel")

            for _ in range(CONFLICT_RETRIES):
                status = document.status
                document.mark_cancelled()
                try:
                    self._repository.update(document, expected_status=status)
                except StaleDocumentError:
                    document = self._require(document_id)
                    if not is_cancellable(document.status):
                        raise AlreadyTerminalError(document_id, document.status) from None
                    continue
                self._publisher.publish(document.pull_events())
                return DocumentSnapshot.from_document(document)

        raise DocumentServiceError(
            f"Document {document_id} kept changing while cancelling",
            action="cancel",
            document_id=document_id,
        )

    def retry(self, document_id: str) -> RetryResult:
        """Send a failed, parked or cancelled document back through the pipeline.

        A document that failed only at persistence, with a valid validation
        result, resumes at persistence. Everything else starts over at OCR.
        Jobs still waiting from the earlier run, such as a scheduled backoff
        retry, are dropped so only the new job delivers the stage.

        Raises:
            DocumentNotFoundError: unknown id.
            NotRetryableError: the document is not in a retryable status.
        """
        with self._wrap_errors("retry", document_id):
            document = self._require(document_id)
            if not is_retryable(document.status):
                raise NotRetryableError(document_id, document.status)

            dropped = self._queue.drop_pending(document_id)
            if dropped:
                Log.info(f"Dropped {dropped} pending jobs of document {document_id} before retry")

            validation = document.validation_result
            if (
                document.status is DocumentStatus.PERSISTENCE_FAILED
                and document.has_ocr_result()
                and validation is not None
                and validation.is_valid
            ):
                self._queue.enqueue(Stage.PERSISTENCE, document_id, document.file_path)
                Log.info(f"Document {document_id} re-queued for persistence")
                return RetryResult(document_id, document.status, Stage.PERSISTENCE)

            status = document.status
            document.reset_for_retry()
            self._save_conditionally(document, status)
            self._queue.enqueue(Stage.OCR, document_id, document.file_path)
            Log.info(f"Document {document_id} reset from {status.value} and re-queued for OCR")
            return RetryResult(document_id, document.status, Stage.OCR)

    def dead_letter(self, document_id: str) -> DocumentSnapshot:
        """Park a document that failed a stage.

        Raises:
            DocumentNotFoundError: unknown id.
            InvalidTransitionError: the document is not in a stage-failed status.
        """
        with self._wrap_errors("dead_letter", document_id):
            document = self._require(document_id)
            status = document.status
            document.move_to_dead_letter()
            self._save_conditionally(document, status)
            return DocumentSnapshot.from_document(document)

    def fail(self, document_id: str) -> DocumentSnapshot:
        """Force a document to FAILED and drop its pending jobs.

        Raises:
            DocumentNotFoundError: unknown id.
            AlreadyTerminalError: the document is already terminal.
        """
        with self._wrap_errors("fail", document_id):
            document = self._require(document_id)
            if is_terminal(document.status):
                raise AlreadyTerminalError(document_id, document.status)
            try:
                self._queue.cancel(document_id)
            except NoActiveJobsError:
                Log.debug(f"Document {document_id} had no queued jobs")
            status = document.status
            document.mark_failed()
            self._save_conditionally(document, status)
            return DocumentSnapshot.from_document(document)

    def escalate_exhausted(self) -> list[str]:
        """Park every document whose latest job ran out of attempts.

        Only documents still sitting in a stage-failed status move; documents
        that were retried, cancelled or failed meanwhile are left alone.
        Returns the ids that were moved to DEAD_LETTER.
        """
        moved: list[str] = []
        seen: set[str] = set()
        with self._wrap_errors("escalate_exhausted"):
            for job in self._queue.find_exhausted():
                if job.document_id in seen:
                    continue
                seen.add(job.document_id)

                jobs = self._queue.find_by_document(job.document_id)
                if not jobs or jobs[-1].state is not JobState.FAILED:
                    continue
                document = self._repository.find_by_id(job.document_id)
                if document is None or document.status not in STAGE_FAILED_STATUSES:
                    continue

                status = document.status
                document.move_to_dead_letter()
                try:
                    self._save_conditionally(document, status)
                except StaleDocumentError:
                    Log.warning(f"Document {job.document_id} changed during escalation, skipped")
                    continue
                moved.append(job.document_id)

        if moved:
            Log.warning(f"Moved {len(moved)} exhausted documents to dead letter")
        return moved

    def statistics(self) -> PipelineStatistics:
        with self._wrap_errors("statistics"):
            stats = self._repository.statistics()
            jobs = self._queue.stats()
        return PipelineStatistics(total=stats.total, by_status=stats.by_status, jobs=jobs)

    def _require(self, document_id: str) -> Document:
        document = self._repository.find_by_id(document_id)
        if document is None:
            raise DocumentNotFoundError(document_id)
        return document

    def _save_conditionally(self, document: Document, expected_status: DocumentStatus) -> None:
        self._repository.update(document, expected_status=expected_status)
        self._publisher.publish(document.pull_events())

    def _mark_upload_failed(self, document: Document) -> None:
        try:
            document.mark_failed()
            self._repository.update(document)
        except Exception:
            Log.exception(f"Could not mark document {document.document_id} failed after upload")
            return
        self._publisher.publish(document.pull_events())

    def list(
        self,
        status: DocumentStatus | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[DocumentSnapshot]:
        with self._wrap_errors("list"):
            if status is None:
                documents = self._repository.find_all(limit=limit, offset=offset)
            else:
                end = None if limit is None else offset + limit
                documents = self._repository.find_by_status(status)[offset:end]
        return [DocumentSnapshot.from_document(d) for d in documents]

    @contextmanager
    def _wrap_errors(
        self, action: str, document_id: str | None = None
    ) -> Generator[None, None, None]:
        """Let domain errors through; wrap anything else with the action context."""
        try:
            yield
        except (
            DocumentServiceError,
            DocumentError,
            DocumentNotFoundError,
            StaleDocumentError,
        ):
            raise
        except Exception as exc:
            Log.exception(f"Unexpected error during {action} of document {document_id}")
            raise DocumentServiceError(
                f"Failed to {action.replace('_', ' ')}: {exc}",
                action=action,
                document_id=document_id,
            ) from exc
