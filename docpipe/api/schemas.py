from datetime import datetime
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, Field

from docpipe.service.document_service import (
    DocumentSnapshot,
    PipelineStatistics,
    RetryResult,
    UploadResult,
)

T = TypeVar("T")


class Envelope(BaseModel, Generic[T]):
    success: bool = True
    data: T


class ErrorResponse(BaseModel):
    error: str = Field(..., description="Short error label")
    message: str = Field(..., description="Human-readable error message")


class OcrResultResponse(BaseModel):
    extracted_text: str
    confidence: float
    extracted_at: datetime


class ValidationResultResponse(BaseModel):
    is_valid: bool
    errors: list[str]
    warnings: list[str]
    validated_at: datetime


class DocumentResponse(BaseModel):
    document_id: str
    file_name: str
    file_size: int
    mime_type: str
    file_path: str
    status: str
    stage: str | None
    is_terminal: bool
    created_at: datetime
    updated_at: datetime
    ocr_result: OcrResultResponse | None = None
    validation_result: ValidationResultResponse | None = None

    @classmethod
    def from_snapshot(cls, snapshot: DocumentSnapshot) -> "DocumentResponse":
        ocr = snapshot.ocr_result
        validation = snapshot.validation_result
        return cls(
            document_id=snapshot.document_id,
            file_name=snapshot.file_name,
            file_size=snapshot.file_size,
            mime_type=snapshot.mime_type,
            file_path=snapshot.file_path,
            status=snapshot.status.value,
            stage=snapshot.stage.value if snapshot.stage else None,
            is_terminal=snapshot.is_terminal,
            created_at=snapshot.created_at,
            updated_at=snapshot.updated_at,
            ocr_result=(
                OcrResultResponse(
                    extracted_text=ocr.extracted_text,
                    confidence=ocr.confidence,
                    extracted_at=ocr.extracted_at,
                )
                if ocr
                else None
            ),
            validation_result=(
                ValidationResultResponse(
                    is_valid=validation.is_valid,
                    errors=list(validation.errors),
                    warnings=list(validation.warnings),
                    validated_at=validation.validated_at,
                )
                if validation
                else None
            ),
        )


class DocumentListResponse(BaseModel):
    documents: list[DocumentResponse]
    count: int


class UploadResponse(BaseModel):
    document_id: str
    status: str
    file_path: str
    message: str = "Document uploaded successfully and queued for processing"

    @classmethod
    def from_result(cls, result: UploadResult) -> "UploadResponse":
        return cls(
            document_id=result.document_id,
            status=result.status.value,
            file_path=result.file_path,
        )


class RetryResponse(BaseModel):
    document_id: str
    status: str
    stage: str

    @classmethod
    def from_result(cls, result: RetryResult) -> "RetryResponse":
        return cls(
            document_id=result.document_id,
            status=result.status.value,
            stage=result.stage.value,
        )


class StatisticsResponse(BaseModel):
    total: int
    by_status: dict[str, int]
    jobs: dict[str, dict[str, int]]

    @classmethod
    def from_statistics(cls, stats: PipelineStatistics) -> "StatisticsResponse":
        return cls(
            total=stats.total,
            by_status={status.value: count for status, count in stats.by_status.items()},
            jobs={
                stage.value: {state.value: count for state, count in states.items()}
                for stage, states in stats.jobs.items()
            },
        )


class ServiceHealth(BaseModel):
    status: str
    error: str | None = None


class HealthResponse(BaseModel):
    status: str
    timestamp: datetime
    uptime: int
    version: str
    services: dict[str, ServiceHealth]


class ReadinessResponse(BaseModel):
    ready: bool
    timestamp: datetime
    services: dict[str, ServiceHealth]


def error_body(error: str, message: str) -> dict[str, Any]:
    return ErrorResponse(error=error, message=message).model_dump()
