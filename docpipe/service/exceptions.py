from docpipe.domain.status import DocumentStatus


class DocumentServiceError(Exception):
    """Base exception for orchestrator errors.

    Also raised directly when an unexpected infrastructure error interrupts
    an action; ``action`` and ``document_id`` say where.
    """

    def __init__(
        self,
        message: str,
        action: str | None = None,
        document_id: str | None = None,
    ) -> None:
        self.action = action
        self.document_id = document_id
        super().__init__(message)


class AlreadyTerminalError(DocumentServiceError):
    """Raised when cancelling or failing a document that can no longer be stopped."""

    def __init__(self, document_id: str, status: DocumentStatus) -> None:
        self.status = status
        super().__init__(
            f"Document {document_id} cannot be stopped in status '{status.value}'",
            document_id=document_id,
        )


class NotRetryableError(DocumentServiceError):
    """Raised when retrying a document that is neither failed, parked nor cancelled."""

    def __init__(self, document_id: str, status: DocumentStatus) -> None:
        self.status = status
        super().__init__(
            f"Document {document_id} cannot be retried in status '{status.value}'",
            document_id=document_id,
        )


class InvalidUploadError(DocumentServiceError):
    """Raised when an uploaded file is empty, too large or of a refused type."""


class UploadFailedError(DocumentServiceError):
    """Raised when an upload could not be stored or queued."""
