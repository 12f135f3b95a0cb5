from docpipe.domain.status import Stage


class StageFailureError(Exception):
    """Raised when a stage capability cannot produce a result for a document."""

    def __init__(self, stage: Stage, document_id: str, reason: str) -> None:
        self.stage = stage
        self.document_id = document_id
        self.reason = reason
        super().__init__(f"{stage.value} failed for document {document_id}: {reason}")
