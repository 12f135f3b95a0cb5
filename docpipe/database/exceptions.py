class RepositoryError(Exception):
    """Base exception for document store errors."""


class DocumentNotFoundError(RepositoryError):
    """Raised when a document id does not exist in the store."""

    def __init__(self, document_id: str) -> None:
        self.document_id = document_id
        super().__init__(f"Document {document_id} not found")


class DuplicateDocumentError(RepositoryError):
    """Raised when saving a document whose id is already stored."""

    def __init__(self, document_id: str) -> None:
        self.document_id = document_id
        super().__init__(f"Document {document_id} already exists")


class StaleDocumentError(RepositoryError):
    """Raised when a conditional update finds a different status than expected."""

    def __init__(self, document_id: str, expected: str, actual: str) -> None:
        self.document_id = document_id
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Document {document_id} changed concurrently: expected status "
            f"'{expected}', found '{actual}'"
        )
