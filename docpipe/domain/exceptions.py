from docpipe.domain.status import DocumentStatus, valid_transitions_for


class DocumentError(Exception):
    """Base exception for document aggregate errors."""


class InvalidTransitionError(DocumentError):
    """Raised when a document is asked to move along an edge it does not allow."""

    def __init__(self, current_status: DocumentStatus, target_status: DocumentStatus) -> None:
        self.current_status = current_status
        self.target_status = target_status
        allowed = ", ".join(sorted(s.value for s in valid_transitions_for(current_status)))
        super().__init__(
            f"Invalid status transition from '{current_status.value}' to "
            f"'{target_status.value}'. Allowed: {allowed or 'none'}"
        )
