from datetime import datetime, timezone
from pathlib import Path

from docpipe.config.settings import Settings
from docpipe.domain.document import Document
from docpipe.domain.models import DocumentMetadata, DocumentState, OcrResult, ValidationResult
from docpipe.domain.status import DocumentStatus

T0 = datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)


def make_metadata(
    file_name: str = "invoice.pdf",
    mime_type: str = "application/pdf",
    file_size: int = 1024,
) -> DocumentMetadata:
    return DocumentMetadata(
        file_name=file_name,
        file_size=file_size,
        mime_type=mime_type,
        uploaded_at=T0,
    )


def make_document(
    document_id: str = "doc-1",
    file_path: str = "tmp/doc-1/invoice.pdf",
) -> Document:
    """A freshly uploaded document with its creation events already drained."""
    document = Document.create(document_id, file_path, make_metadata())
    document.pull_events()
    return document


def make_ocr_result(text: str = "Invoice total $12.50", confidence: float = 0.9) -> OcrResult:
    return OcrResult(extracted_text=text, confidence=confidence, extracted_at=T0)


def make_validation_result(is_valid: bool = True) -> ValidationResult:
    errors = [] if is_valid else ["Document content too short"]
    return ValidationResult(is_valid=is_valid, errors=errors, validated_at=T0)


def document_in(
    status: DocumentStatus,
    document_id: str = "doc-1",
    created_at: datetime = T0,
    with_results: bool = True,
) -> Document:
    """Rebuild a document directly in ``status`` with results matching that status."""
    passed_ocr = status in {
        DocumentStatus.OCR_COMPLETED,
        DocumentStatus.PROCESSING_VALIDATION,
        DocumentStatus.VALIDATION_COMPLETED,
        DocumentStatus.VALIDATION_FAILED,
        DocumentStatus.PROCESSING_PERSISTENCE,
        DocumentStatus.PERSISTENCE_FAILED,
        DocumentStatus.COMPLETED,
    }
    passed_validation = status in {
        DocumentStatus.VALIDATION_COMPLETED,
        DocumentStatus.PROCESSING_PERSISTENCE,
        DocumentStatus.PERSISTENCE_FAILED,
        DocumentStatus.COMPLETED,
    }
    return Document.from_persisted_state(
        DocumentState(
            document_id=document_id,
            file_path=f"tmp/{document_id}/invoice.pdf",
            metadata=make_metadata(),
            status=status,
            created_at=created_at,
            updated_at=created_at,
            ocr_result=make_ocr_result() if with_results and passed_ocr else None,
            validation_result=(
                make_validation_result() if with_results and passed_validation else None
            ),
        )
    )


def memory_settings(storage_root: Path, **overrides: object) -> Settings:
    values: dict[str, object] = {
        "backend": "memory",
        "storage_root": str(storage_root),
        "ocr_backoff_delay_ms": 0,
        "validation_backoff_delay_ms": 0,
        "persistence_backoff_delay_ms": 0,
        "job_poll_interval_seconds": 0.01,
        "lock_retry_delay_seconds": 0,
    }
    values.update(overrides)
    return Settings(**values)  # type: ignore[arg-type]
