"""Conversions between domain value objects and JSONB-ready dicts."""

from datetime import datetime
from typing import Any

from docpipe.domain.models import DocumentMetadata, OcrResult, ValidationResult


def _parse_datetime(raw: Any) -> datetime:
    if isinstance(raw, datetime):
        return raw
    return datetime.fromisoformat(str(raw))


def metadata_to_json(metadata: DocumentMetadata) -> dict[str, Any]:
    return {
        "file_name": metadata.file_name,
        "file_size": metadata.file_size,
        "mime_type": metadata.mime_type,
        "uploaded_at": metadata.uploaded_at.isoformat(),
    }


def metadata_from_json(data: dict[str, Any]) -> DocumentMetadata:
    return DocumentMetadata(
        file_name=data["file_name"],
        file_size=int(data["file_size"]),
        mime_type=data["mime_type"],
        uploaded_at=_parse_datetime(data["uploaded_at"]),
    )


def ocr_result_to_json(result: OcrResult | None) -> dict[str, Any] | None:
    if result is None:
        return None
    return {
        "extracted_text": result.extracted_text,
        "confidence": result.confidence,
        "extracted_at": result.extracted_at.isoformat(),
    }


def ocr_result_from_json(data: dict[str, Any] | None) -> OcrResult | None:
    if data is None:
        return None
    return OcrResult(
        extracted_text=data["extracted_text"],
        confidence=float(data["confidence"]),
        extracted_at=_parse_datetime(data["extracted_at"]),
    )


def validation_result_to_json(result: ValidationResult | None) -> dict[str, Any] | None:
    if result is None:
        return None
    return {
        "is_valid": result.is_valid,
        "errors": list(result.errors),
        "warnings": list(result.warnings),
        "validated_at": result.validated_at.isoformat(),
    }


def validation_result_from_json(data: dict[str, Any] | None) -> ValidationResult | None:
    if data is None:
        return None
    return ValidationResult(
        is_valid=bool(data["is_valid"]),
        errors=list(data.get("errors", [])),
        warnings=list(data.get("warnings", [])),
        validated_at=_parse_datetime(data["validated_at"]),
    )
