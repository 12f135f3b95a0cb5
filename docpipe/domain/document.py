"""Document aggregate: the only code allowed to change a document's status."""

import copy
from datetime import datetime, timezone

from docpipe.domain.events import (
    DocumentCancelled,
    DocumentDeadLettered,
    DocumentEvent,
    DocumentFailed,
    DocumentReset,
    DocumentUploaded,
    StageCompleted,
    StageFailed,
    StageStarted,
    StatusChanged,
)
from docpipe.domain.exceptions import InvalidTransitionError
from docpipe.domain.models import DocumentMetadata, DocumentState, OcrResult, ValidationResult
from docpipe.domain.status import (
    DocumentStatus,
    Stage,
    is_cancellable,
    is_processing,
    is_retryable,
    is_terminal,
    is_valid_transition,
    stage_of,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Document:
    """A single uploaded document moving through OCR, validation and persistence.

    Build instances with ``create`` (new upload) or ``from_persisted_state``
    (loaded from a repository). Every mutating method checks the current
    status first and raises ``InvalidTransitionError`` without touching any
    field when the move is not allowed.
    """

    def __init__(self, state: DocumentState) -> None:
        self._document_id = state.document_id
        self._file_path = state.file_path
        self._metadata = state.metadata
        self._status = state.status
        self._ocr_result = state.ocr_result
        self._validation_result = copy.deepcopy(state.validation_result)
        self._created_at = state.created_at
        self._updated_at = state.updated_at
        self._events: list[DocumentEvent] = []

    @classmethod
    def create(
        cls,
        document_id: str,
        file_path: str,
        metadata: DocumentMetadata,
    ) -> "Document":
        now = _utcnow()
        document = cls(
            DocumentState(
                document_id=document_id,
                file_path=file_path,
                metadata=metadata,
                status=DocumentStatus.UPLOADED,
                created_at=now,
                updated_at=now,
            )
        )
        document._events.append(
            DocumentUploaded(
                document_id=document_id,
                file_name=metadata.file_name,
                file_path=file_path,
                mime_type=metadata.mime_type,
                file_size=metadata.file_size,
            )
        )
        return document

    @classmethod
    def from_persisted_state(cls, state: DocumentState) -> "Document":
        return cls(state)

    def to_state(self) -> DocumentState:
        return DocumentState(
            document_id=self._document_id,
            file_path=self._file_path,
            metadata=self._metadata,
            status=self._status,
            created_at=self._created_at,
            updated_at=self._updated_at,
            ocr_result=self._ocr_result,
            validation_result=copy.deepcopy(self._validation_result),
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Document):
            return NotImplemented
        return self.to_state() == other.to_state()

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"Document(id={self._document_id!r}, status={self._status.value!r})"

    @property
    def document_id(self) -> str:
        return self._document_id

    @property
    def file_path(self) -> str:
        return self._file_path

    @property
    def metadata(self) -> DocumentMetadata:
        return copy.deepcopy(self._metadata)

    @property
    def status(self) -> DocumentStatus:
        return self._status

    @property
    def stage(self) -> Stage | None:
        return stage_of(self._status)

    @property
    def ocr_result(self) -> OcrResult | None:
        return copy.deepcopy(self._ocr_result)

    @property
    def validation_result(self) -> ValidationResult | None:
        return copy.deepcopy(self._validation_result)

    @property
    def created_at(self) -> datetime:
        return self._created_at

    @property
    def updated_at(self) -> datetime:
        return self._updated_at

    def is_processing(self) -> bool:
        return is_processing(self._status)

    def is_terminal(self) -> bool:
        return is_terminal(self._status)

    def has_ocr_result(self) -> bool:
        return self._ocr_result is not None

    def has_validation_result(self) -> bool:
        return self._validation_result is not None

    def pull_events(self) -> list[DocumentEvent]:
        """Return and clear the events raised since the last call."""
        events, self._events = self._events, []
        return events

    # Pipeline transitions

    def queue(self) -> None:
        self._transition(DocumentStatus.QUEUED)

    def start_ocr(self) -> None:
        """Enter PROCESSING_OCR from UPLOADED, QUEUED or OCR_FAILED.

        A freshly uploaded document passes through QUEUED on the way, so both
        table edges are recorded.
        """
        via = (DocumentStatus.QUEUED,) if self._status is DocumentStatus.UPLOADED else ()
        self._start_stage(Stage.OCR, DocumentStatus.PROCESSING_OCR, via=via)

    def complete_ocr(self, result: OcrResult) -> None:
        self._require(DocumentStatus.OCR_COMPLETED)
        self._ocr_result = result
        self._transition(DocumentStatus.OCR_COMPLETED)
        self._events.append(StageCompleted(document_id=self._document_id, stage=Stage.OCR))

    def fail_ocr(self, reason: str = "") -> None:
        self._fail_stage(Stage.OCR, DocumentStatus.OCR_FAILED, reason)

    def start_validation(self) -> None:
        self._start_stage(Stage.VALIDATION, DocumentStatus.PROCESSING_VALIDATION)

    def complete_validation(self, result: ValidationResult) -> None:
        self._require(DocumentStatus.VALIDATION_COMPLETED)
        self._validation_result = copy.deepcopy(result)
        self._transition(DocumentStatus.VALIDATION_COMPLETED)
        self._events.append(
            StageCompleted(document_id=self._document_id, stage=Stage.VALIDATION)
        )

    def fail_validation(self, reason: str = "") -> None:
        self._fail_stage(Stage.VALIDATION, DocumentStatus.VALIDATION_FAILED, reason)

    def start_persistence(self) -> None:
        self._start_stage(Stage.PERSISTENCE, DocumentStatus.PROCESSING_PERSISTENCE)

    def complete_persistence(self, file_path: str | None = None) -> None:
        """Finish the pipeline, optionally recording the file's permanent location."""
        self._require(DocumentStatus.COMPLETED)
        if file_path is not None:
            self._file_path = file_path
        self._transition(DocumentStatus.COMPLETED)
        self._events.append(
            StageCompleted(document_id=self._document_id, stage=Stage.PERSISTENCE)
        )

    def fail_persistence(self, reason: str = "") -> None:
        self._fail_stage(Stage.PERSISTENCE, DocumentStatus.PERSISTENCE_FAILED, reason)

    # Administrative transitions

    def mark_cancelled(self) -> None:
        """Cancel processing. Refused once the document completed, failed or was parked."""
        if not is_cancellable(self._status):
            raise InvalidTransitionError(self._status, DocumentStatus.CANCELLED)
        previous = self._status
        self._set_status(DocumentStatus.CANCELLED)
        self._events.append(
            DocumentCancelled(document_id=self._document_id, previous_status=previous)
        )

    def mark_failed(self) -> None:
        """Force FAILED from any non-terminal status, bypassing the transition table."""
        if is_terminal(self._status):
            raise InvalidTransitionError(self._status, DocumentStatus.FAILED)
        previous = self._status
        self._set_status(DocumentStatus.FAILED)
        self._events.append(DocumentFailed(document_id=self._document_id, previous_status=previous))

    def move_to_dead_letter(self) -> None:
        """Park a document whose stage retries are exhausted."""
        previous = self._status
        self._transition(DocumentStatus.DEAD_LETTER)
        self._events.append(
            DocumentDeadLettered(
                document_id=self._document_id,
                stage=stage_of(previous),
                previous_status=previous,
            )
        )

    def reset_for_retry(self) -> None:
        """Return a failed, parked or cancelled document to UPLOADED with no stage results."""
        if not is_retryable(self._status):
            raise InvalidTransitionError(self._status, DocumentStatus.UPLOADED)
        previous = self._status
        self._ocr_result = None
        self._validation_result = None
        self._set_status(DocumentStatus.UPLOADED)
        self._events.append(DocumentReset(document_id=self._document_id, previous_status=previous))

    # Internals

    def _start_stage(
        self,
        stage: Stage,
        target: DocumentStatus,
        via: tuple[DocumentStatus, ...] = (),
    ) -> None:
        previous = self._status
        self._transition(target, via=via)
        self._events.append(
            StageStarted(document_id=self._document_id, stage=stage, previous_status=previous)
        )

    def _fail_stage(self, stage: Stage, target: DocumentStatus, reason: str) -> None:
        self._transition(target)
        self._events.append(StageFailed(document_id=self._document_id, stage=stage, reason=reason))

    def _require(self, target: DocumentStatus, via: tuple[DocumentStatus, ...] = ()) -> None:
        current = self._status
        for step in (*via, target):
            if not is_valid_transition(current, step):
                raise InvalidTransitionError(self._status, target)
            current = step

    def _transition(self, target: DocumentStatus, via: tuple[DocumentStatus, ...] = ()) -> None:
        self._require(target, via=via)
        for step in (*via, target):
            self._set_status(step)

    def _set_status(self, status: DocumentStatus) -> None:
        previous = self._status
        self._status = status
        self._updated_at = _utcnow()
        self._events.append(
            StatusChanged(
                document_id=self._document_id,
                from_status=previous,
                to_status=status,
                stage=stage_of(status),
            )
        )
