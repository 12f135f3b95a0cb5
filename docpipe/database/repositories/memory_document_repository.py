import threading
from collections.abc import Iterable

from docpipe.database.exceptions import (
    DocumentNotFoundError,
    DuplicateDocumentError,
    StaleDocumentError,
)
from docpipe.database.repositories.document_repository import (
    BaseDocumentRepository,
    DocumentStatistics,
    empty_status_counts,
)
from docpipe.domain.document import Document
from docpipe.domain.models import DocumentState
from docpipe.domain.status import DocumentStatus


class InMemoryDocumentRepository(BaseDocumentRepository):
    """Thread-safe document store for tests and the ``memory`` backend.

    Stores frozen ``DocumentState`` snapshots, so callers never share a live
    aggregate with the store.
    """

    def __init__(self) -> None:
        self._states: dict[str, DocumentState] = {}
        self._lock = threading.Lock()

    def save(self, document: Document) -> None:
        state = document.to_state()
        with self._lock:
            if state.document_id in self._states:
                raise DuplicateDocumentError(state.document_id)
            self._states[state.document_id] = state

    def find_by_id(self, document_id: str) -> Document | None:
        with self._lock:
            state = self._states.get(document_id)
        if state is None:
            return None
        return Document.from_persisted_state(state)

    def find_by_statuses(self, statuses: Iterable[DocumentStatus]) -> list[Document]:
        wanted = {DocumentStatus(status) for status in statuses}
        with self._lock:
            states = [s for s in self._states.values() if s.status in wanted]
        return self._newest_first(states)

    def find_all(self, limit: int | None = None, offset: int = 0) -> list[Document]:
        with self._lock:
            states = list(self._states.values())
        documents = self._newest_first(states)
        end = None if limit is None else offset + limit
        return documents[offset:end]

    def update(
        self,
        document: Document,
        expected_status: DocumentStatus | None = None,
    ) -> None:
        state = document.to_state()
        with self._lock:
            stored = self._states.get(state.document_id)
            if stored is None:
                raise DocumentNotFoundError(state.document_id)
            if expected_status is not None and stored.status != expected_status:
                raise StaleDocumentError(
                    state.document_id,
                    expected=DocumentStatus(expected_status).value,
                    actual=stored.status.value,
                )
            self._states[state.document_id] = state

    def statistics(self) -> DocumentStatistics:
        by_status = empty_status_counts()
        with self._lock:
            for state in self._states.values():
                by_status[state.status] += 1
        return DocumentStatistics(total=sum(by_status.values()), by_status=by_status)

    def ping(self) -> bool:
        return True

    @staticmethod
    def _newest_first(states: list[DocumentState]) -> list[Document]:
        states.sort(key=lambda s: s.created_at, reverse=True)
        return [Document.from_persisted_state(s) for s in states]
