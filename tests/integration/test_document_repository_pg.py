from datetime import timedelta

import pytest

from docpipe.database.exceptions import (
    DocumentNotFoundError,
    DuplicateDocumentError,
    StaleDocumentError,
)
from docpipe.database.repositories.document_repository import DocumentRepository
from docpipe.domain.status import DocumentStatus
from tests.helpers import T0, document_in, make_document, make_ocr_result

S = DocumentStatus

pytestmark = [pytest.mark.integration, pytest.mark.usefixtures("clean_tables")]


class TestSaveAndFind:
    def test_round_trips_document(self) -> None:
        repo = DocumentRepository()
        document = document_in(S.VALIDATION_COMPLETED)

        repo.save(document)
        found = repo.find_by_id("doc-1")

        assert found is not None
        assert found.to_state() == document.to_state()

    def test_missing_document(self) -> None:
        assert DocumentRepository().find_by_id("missing") is None

    def test_duplicate_id(self) -> None:
        repo = DocumentRepository()
        repo.save(make_document())

        with pytest.raises(DuplicateDocumentError):
            repo.save(make_document())

    def test_find_by_statuses_newest_first(self) -> None:
        repo = DocumentRepository()
        repo.save(document_in(S.UPLOADED, "doc-1", created_at=T0))
        repo.save(document_in(S.OCR_FAILED, "doc-2", created_at=T0 + timedelta(minutes=1)))
        repo.save(document_in(S.COMPLETED, "doc-3", created_at=T0 + timedelta(minutes=2)))

        found = repo.find_by_statuses([S.UPLOADED, S.OCR_FAILED])

        assert [d.document_id for d in found] == ["doc-2", "doc-1"]

    def test_find_all_paged(self) -> None:
        repo = DocumentRepository()
        for index in range(3):
            repo.save(
                document_in(S.UPLOADED, f"doc-{index}", created_at=T0 + timedelta(minutes=index))
            )

        page = repo.find_all(limit=2, offset=1)

        assert [d.document_id for d in page] == ["doc-1", "doc-0"]


class TestUpdate:
    def test_overwrites_state(self) -> None:
        repo = DocumentRepository()
        document = make_document()
        repo.save(document)
        document.start_ocr()
        document.complete_ocr(make_ocr_result())

        repo.update(document, expected_status=S.UPLOADED)

        found = repo.find_by_id("doc-1")
        assert found is not None
        assert found.status is S.OCR_COMPLETED
        assert found.ocr_result == make_ocr_result()

    def test_stale_expected_status(self) -> None:
        repo = DocumentRepository()
        document = make_document()
        repo.save(document)
        document.start_ocr()

        with pytest.raises(StaleDocumentError) as exc_info:
            repo.update(document, expected_status=S.OCR_FAILED)

        assert exc_info.value.actual == "uploaded"
        stored = repo.find_by_id("doc-1")
        assert stored is not None
        assert stored.status is S.UPLOADED

    def test_missing_document(self) -> None:
        with pytest.raises(DocumentNotFoundError):
            DocumentRepository().update(make_document())


class TestStatistics:
    def test_counts_every_status(self) -> None:
        repo = DocumentRepository()
        repo.save(document_in(S.UPLOADED, "doc-1"))
        repo.save(document_in(S.UPLOADED, "doc-2"))
        repo.save(document_in(S.DEAD_LETTER, "doc-3"))

        stats = repo.statistics()

        assert stats.total == 3
        assert stats.by_status[S.UPLOADED] == 2
        assert stats.by_status[S.DEAD_LETTER] == 1
        assert stats.by_status[S.COMPLETED] == 0

    def test_ping(self) -> None:
        assert DocumentRepository().ping()
