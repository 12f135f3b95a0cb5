from typing import Annotated

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile, status
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from docpipe.api.dependencies import get_health_checker, get_service
from docpipe.api.health import HealthChecker
from docpipe.api.schemas import (
    DocumentListResponse,
    DocumentResponse,
    Envelope,
    HealthResponse,
    RetryResponse,
    StatisticsResponse,
    UploadResponse,
)
from docpipe.domain.status import DocumentStatus
from docpipe.service.document_service import DocumentService

documents_router = APIRouter(prefix="/api/documents", tags=["Documents"])
health_router = APIRouter(tags=["Health"])

ServiceDep = Annotated[DocumentService, Depends(get_service)]


@documents_router.post(
    "",
    response_model=Envelope[UploadResponse],
    status_code=status.HTTP_201_CREATED,
)
async def upload_document(
    service: ServiceDep,
    file: Annotated[UploadFile | None, File()] = None,
) -> Envelope[UploadResponse]:
    """Store an uploaded file and queue it for OCR."""
    if file is None or not file.filename:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "Please provide a file to upload")
    data = await file.read()
    mime_type = file.content_type or "application/octet-stream"
    result = await run_in_threadpool(service.accept_upload, data, file.filename, mime_type)
    return Envelope(data=UploadResponse.from_result(result))


@documents_router.get("", response_model=Envelope[DocumentListResponse])
def list_documents(
    service: ServiceDep,
    status_filter: Annotated[str | None, Query(alias="status")] = None,
    limit: Annotated[int | None, Query(ge=1, le=500)] = None,
    offset: Annotated[int, Query(ge=0)] = 0,
) -> Envelope[DocumentListResponse]:
    document_status = None
    if status_filter:
        try:
            document_status = DocumentStatus(status_filter)
        except ValueError:
            allowed = ", ".join(s.value for s in DocumentStatus)
            raise HTTPException(
                status.HTTP_400_BAD_REQUEST, f"Status must be one of: {allowed}"
            ) from None
    snapshots = service.list(status=document_status, limit=limit, offset=offset)
    documents = [DocumentResponse.from_snapshot(s) for s in snapshots]
    return Envelope(data=DocumentListResponse(documents=documents, count=len(documents)))


@documents_router.get("/stats", response_model=Envelope[StatisticsResponse])
def get_statistics(service: ServiceDep) -> Envelope[StatisticsResponse]:
    return Envelope(data=StatisticsResponse.from_statistics(service.statistics()))


@documents_router.get("/{document_id}", response_model=Envelope[DocumentResponse])
def get_document(document_id: str, service: ServiceDep) -> Envelope[DocumentResponse]:
    return Envelope(data=DocumentResponse.from_snapshot(service.status(document_id)))


@documents_router.post("/{document_id}/cancel", response_model=Envelope[DocumentResponse])
def cancel_document(document_id: str, service: ServiceDep) -> Envelope[DocumentResponse]:
    return Envelope(data=DocumentResponse.from_snapshot(service.cancel(document_id)))


@documents_router.post("/{document_id}/retry", response_model=Envelope[RetryResponse])
def retry_document(document_id: str, service: ServiceDep) -> Envelope[RetryResponse]:
    return Envelope(data=RetryResponse.from_result(service.retry(document_id)))


@documents_router.post("/{document_id}/dead-letter", response_model=Envelope[DocumentResponse])
def dead_letter_document(document_id: str, service: ServiceDep) -> Envelope[DocumentResponse]:
    return Envelope(data=DocumentResponse.from_snapshot(service.dead_letter(document_id)))


@health_router.get("/health", response_model=HealthResponse)
def health(
    checker: Annotated[HealthChecker, Depends(get_health_checker)],
) -> HealthResponse:
    return checker.check_health()


@health_router.get("/health/ready")
def readiness(
    checker: Annotated[HealthChecker, Depends(get_health_checker)],
) -> JSONResponse:
    result = checker.check_readiness()
    code = status.HTTP_200_OK if result.ready else status.HTTP_503_SERVICE_UNAVAILABLE
    return JSONResponse(status_code=code, content=result.model_dump(mode="json"))


@health_router.get("/ping")
def ping() -> dict[str, str]:
    return {"message": "pong"}
