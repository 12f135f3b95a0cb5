"""The three pipeline stages, each binding a capability to its document transitions."""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any

from docpipe.archiving.base import BaseArchiver
from docpipe.domain.document import Document
from docpipe.domain.models import OcrResult, ValidationResult
from docpipe.domain.status import DocumentStatus, Stage
from docpipe.ocr.base import BaseOcrEngine
from docpipe.queue.cancellation import CancellationToken
from docpipe.validation.base import BaseValidator
from docpipe.worker.exceptions import StageFailureError


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PipelineStage(ABC):
    stage: Stage
    processing_status: DocumentStatus

    @abstractmethod
    def start(self, document: Document) -> None: ...

    @abstractmethod
    def execute(self, document: Document, token: CancellationToken) -> Any:
        """Run the capability and return what ``complete`` needs."""

    @abstractmethod
    def complete(self, document: Document, result: Any) -> None: ...

    @abstractmethod
    def fail(self, document: Document, reason: str) -> None: ...


class OcrStage(PipelineStage):
    stage = Stage.OCR
    processing_status = DocumentStatus.PROCESSING_OCR

    def __init__(self, engine: BaseOcrEngine) -> None:
        self._engine = engine

    def start(self, document: Document) -> None:
        document.start_ocr()

    def execute(self, document: Document, token: CancellationToken) -> OcrResult:
        output = self._engine.run(document.file_path, document.metadata.mime_type, token)
        return OcrResult(
            extracted_text=output.text,
            confidence=output.confidence,
            extracted_at=_utcnow(),
        )

    def complete(self, document: Document, result: OcrResult) -> None:
        document.complete_ocr(result)

    def fail(self, document: Document, reason: str) -> None:
        document.fail_ocr(reason)


class ValidationStage(PipelineStage):
    stage = Stage.VALIDATION
    processing_status = DocumentStatus.PROCESSING_VALIDATION

    def __init__(self, validator: BaseValidator) -> None:
        self._validator = validator

    def start(self, document: Document) -> None:
        document.start_validation()

    def execute(self, document: Document, token: CancellationToken) -> ValidationResult:
        ocr_result = document.ocr_result
        if ocr_result is None:
            raise StageFailureError(self.stage, document.document_id, "no OCR result to validate")
        output = self._validator.run(ocr_result, token)
        return ValidationResult(
            is_valid=output.is_valid,
            errors=list(output.errors),
            warnings=list(output.warnings),
            validated_at=_utcnow(),
        )

    def complete(self, document: Document, result: ValidationResult) -> None:
        document.complete_validation(result)

    def fail(self, document: Document, reason: str) -> None:
        document.fail_validation(reason)


class PersistenceStage(PipelineStage):
    stage = Stage.PERSISTENCE
    processing_status = DocumentStatus.PROCESSING_PERSISTENCE

    def __init__(self, archiver: BaseArchiver) -> None:
        self._archiver = archiver

    def start(self, document: Document) -> None:
        document.start_persistence()

    def execute(self, document: Document, token: CancellationToken) -> str:
        return self._archiver.run(document, token)

    def complete(self, document: Document, result: str) -> None:
        document.complete_persistence(file_path=result)

    def fail(self, document: Document, reason: str) -> None:
        document.fail_persistence(reason)
