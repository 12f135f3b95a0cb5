from collections.abc import Awaitable, Callable

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from docpipe.api.schemas import error_body
from docpipe.database.exceptions import DocumentNotFoundError, StaleDocumentError
from docpipe.domain.exceptions import InvalidTransitionError
from docpipe.logging.logger import Log
from docpipe.service.exceptions import (
    AlreadyTerminalError,
    DocumentServiceError,
    InvalidUploadError,
    NotRetryableError,
)

Handler = Callable[[Request, Exception], Awaitable[JSONResponse]]

# Handlers are looked up along the exception's MRO, so these win over
# the DocumentServiceError fallback below.
_ERROR_STATUS: tuple[tuple[type[Exception], int, str], ...] = (
    (InvalidUploadError, status.HTTP_400_BAD_REQUEST, "Invalid upload"),
    (AlreadyTerminalError, status.HTTP_400_BAD_REQUEST, "Document already terminal"),
    (NotRetryableError, status.HTTP_400_BAD_REQUEST, "Document not retryable"),
    (InvalidTransitionError, status.HTTP_400_BAD_REQUEST, "Invalid status transition"),
    (DocumentNotFoundError, status.HTTP_404_NOT_FOUND, "Document not found"),
    (StaleDocumentError, status.HTTP_409_CONFLICT, "Document changed concurrently"),
    (DocumentServiceError, status.HTTP_500_INTERNAL_SERVER_ERROR, "Document service error"),
)


def register_exception_handlers(app: FastAPI) -> None:
    """Map pipeline errors onto HTTP status codes."""
    for exc_type, status_code, label in _ERROR_STATUS:
        app.add_exception_handler(exc_type, _json_error(status_code, label))

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        Log.warning(f"Validation error on {request.method} {request.url.path}: {exc.errors()}")
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=error_body("Bad request", "Request validation failed"),
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body("Bad request", str(exc.detail)),
        )


def _json_error(status_code: int, label: str) -> Handler:
    async def handler(request: Request, exc: Exception) -> JSONResponse:
        if status_code >= 500:
            Log.error(f"{label} on {request.method} {request.url.path}: {exc}")
        return JSONResponse(status_code=status_code, content=error_body(label, str(exc)))

    return handler
