from abc import ABC, abstractmethod
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

import psycopg
from psycopg.rows import dict_row
from psycopg.types.json import Jsonb

from docpipe.database.connection import get_connection
from docpipe.database.exceptions import (
    DocumentNotFoundError,
    DuplicateDocumentError,
    StaleDocumentError,
)
from docpipe.database.serialization import (
    metadata_from_json,
    metadata_to_json,
    ocr_result_from_json,
    ocr_result_to_json,
    validation_result_from_json,
    validation_result_to_json,
)
from docpipe.domain.document import Document
from docpipe.domain.models import DocumentState
from docpipe.domain.status import DocumentStatus


@dataclass(frozen=True)
class DocumentStatistics:
    """Document counts. ``by_status`` holds a key for every status."""

    total: int
    by_status: dict[DocumentStatus, int] = field(default_factory=dict)


def empty_status_counts() -> dict[DocumentStatus, int]:
    return {status: 0 for status in DocumentStatus}


class BaseDocumentRepository(ABC):
    """Durable store of document aggregates keyed by document id."""

    @abstractmethod
    def save(self, document: Document) -> None:
        """Store a new document.

        Raises:
            DuplicateDocumentError: if the id is already stored.
        """

    @abstractmethod
    def find_by_id(self, document_id: str) -> Document | None: ...

    @abstractmethod
    def find_by_statuses(self, statuses: Iterable[DocumentStatus]) -> list[Document]:
        """Return documents in any of ``statuses``, newest first."""

    def find_by_status(self, status: DocumentStatus) -> list[Document]:
        return self.find_by_statuses([status])

    @abstractmethod
    def find_all(self, limit: int | None = None, offset: int = 0) -> list[Document]:
        """Return documents newest first, optionally paged."""

    @abstractmethod
    def update(
        self,
        document: Document,
        expected_status: DocumentStatus | None = None,
    ) -> None:
        """Overwrite the stored state of an existing document.

        When ``expected_status`` is given the write only happens if the stored
        status still equals it.

        Raises:
            DocumentNotFoundError: if the id is not stored.
            StaleDocumentError: if the stored status differs from ``expected_status``.
        """

    @abstractmethod
    def statistics(self) -> DocumentStatistics: ...

    @abstractmethod
    def ping(self) -> bool:
        """Return True when the store is reachable."""


_COLUMNS = (
    "document_id, file_path, metadata, status, ocr_result, "
    "validation_result, created_at, updated_at"
)


class DocumentRepository(BaseDocumentRepository):
    """Database operations for the documents table."""

    def save(self, document: Document) -> None:
        state = document.to_state()
        try:
            with get_connection() as conn:
                conn.execute(
                    f"""
                    INSERT INTO documents ({_COLUMNS})
                    VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
                    """,
                    (
                        state.document_id,
                        state.file_path,
                        Jsonb(metadata_to_json(state.metadata)),
                        state.status.value,
                        self._jsonb(ocr_result_to_json(state.ocr_result)),
                        self._jsonb(validation_result_to_json(state.validation_result)),
                        state.created_at,
                        state.updated_at,
                    ),
                )
                conn.commit()
        except psycopg.errors.UniqueViolation as exc:
            raise DuplicateDocumentError(state.document_id) from exc

    def find_by_id(self, document_id: str) -> Document | None:
        with get_connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    f"SELECT {_COLUMNS} FROM documents WHERE document_id = %s",
                    (document_id,),
                )
                row = cur.fetchone()

        if row is None:
            return None
        return self._to_document(row)

    def find_by_statuses(self, statuses: Iterable[DocumentStatus]) -> list[Document]:
        values = [DocumentStatus(status).value for status in statuses]
        if not values:
            return []
        with get_connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    f"""
                    SELECT {_COLUMNS}
                    FROM documents
                    WHERE status = ANY(%s)
                    ORDER BY created_at DESC
                    """,
                    (values,),
                )
                rows = cur.fetchall()
        return [self._to_document(row) for row in rows]

    def find_all(self, limit: int | None = None, offset: int = 0) -> list[Document]:
        with get_connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    f"""
                    SELECT {_COLUMNS}
                    FROM documents
                    ORDER BY created_at DESC
                    LIMIT %s OFFSET %s
                    """,
                    (limit, offset),
                )
                rows = cur.fetchall()
        return [self._to_document(row) for row in rows]

    def update(
        self,
        document: Document,
        expected_status: DocumentStatus | None = None,
    ) -> None:
        state = document.to_state()
        params: list[Any] = [
            state.file_path,
            state.status.value,
            self._jsonb(ocr_result_to_json(state.ocr_result)),
            self._jsonb(validation_result_to_json(state.validation_result)),
            state.updated_at,
            state.document_id,
        ]
        condition = ""
        if expected_status is not None:
            condition = " AND status = %s"
            params.append(DocumentStatus(expected_status).value)

        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"""
                    UPDATE documents
                    SET file_path = %s,
                        status = %s,
                        ocr_result = %s,
                        validation_result = %s,
                        updated_at = %s
                    WHERE document_id = %s{condition}
                    """,
                    params,
                )
                if cur.rowcount == 0:
                    cur.execute(
                        "SELECT status FROM documents WHERE document_id = %s",
                        (state.document_id,),
                    )
                    row = cur.fetchone()
                    conn.rollback()
                    if row is None:
                        raise DocumentNotFoundError(state.document_id)
                    raise StaleDocumentError(
                        state.document_id,
                        expected=DocumentStatus(expected_status).value,
                        actual=row[0],
                    )
            conn.commit()

    def statistics(self) -> DocumentStatistics:
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT status, COUNT(*) FROM documents GROUP BY status")
                rows = cur.fetchall()

        by_status = empty_status_counts()
        for status, count in rows:
            by_status[DocumentStatus(status)] = count
        return DocumentStatistics(total=sum(by_status.values()), by_status=by_status)

    def ping(self) -> bool:
        try:
            with get_connection() as conn:
                conn.execute("SELECT 1")
        except psycopg.Error:
            return False
        return True

    @staticmethod
    def _jsonb(value: dict[str, Any] | None) -> Jsonb | None:
        return Jsonb(value) if value is not None else None

    @staticmethod
    def _to_document(row: dict[str, Any]) -> Document:
        return Document.from_persisted_state(
            DocumentState(
                document_id=row["document_id"],
                file_path=row["file_path"],
                metadata=metadata_from_json(row["metadata"]),
                status=DocumentStatus(row["status"]),
                ocr_result=ocr_result_from_json(row["ocr_result"]),
                validation_result=validation_result_from_json(row["validation_result"]),
                created_at=row["created_at"],
                updated_at=row["updated_at"],
            )
        )
