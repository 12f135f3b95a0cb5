from dataclasses import dataclass, field
from datetime import datetime

from docpipe.domain.status import DocumentStatus


@dataclass(frozen=True)
class DocumentMetadata:
    """Upload-time facts about the file. Never changes after creation."""

    file_name: str
    file_size: int
    mime_type: str
    uploaded_at: datetime


@dataclass(frozen=True)
class OcrResult:
    """Text extracted by the OCR stage."""

    extracted_text: str
    confidence: float
    extracted_at: datetime


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of the validation stage."""

    is_valid: bool
    validated_at: datetime
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class DocumentState:
    """Complete persisted form of a document aggregate."""

    document_id: str
    file_path: str
    metadata: DocumentMetadata
    status: DocumentStatus
    created_at: datetime
    updated_at: datetime
    ocr_result: OcrResult | None = None
    validation_result: ValidationResult | None = None
