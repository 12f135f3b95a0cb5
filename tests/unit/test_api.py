from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from docpipe.api.app import create_app
from docpipe.bootstrap import Container
from docpipe.database.exceptions import StaleDocumentError
from docpipe.domain.status import DocumentStatus, Stage
from tests.helpers import document_in

S = DocumentStatus


@pytest.fixture()
def client(container: Container) -> TestClient:
    return TestClient(create_app(container))


def _seed(container: Container, status: DocumentStatus, document_id: str = "doc-1") -> None:
    container.repository.save(document_in(status, document_id))


def _upload(client: TestClient, content: bytes = b"%PDF-1.4", mime: str = "application/pdf"):
    return client.post("/api/documents", files={"file": ("invoice.pdf", content, mime)})


class TestUpload:
    def test_upload_returns_created(self, client: TestClient, container: Container) -> None:
        response = _upload(client)

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        data = body["data"]
        assert data["status"] == "uploaded"
        assert data["file_path"] == f"tmp/{data['document_id']}/invoice.pdf"
        assert container.storage.exists(data["file_path"])

    def test_missing_file(self, client: TestClient) -> None:
        response = client.post("/api/documents")

        assert response.status_code == 400
        assert response.json() == {
            "error": "Bad request",
            "message": "Please provide a file to upload",
        }

    def test_refused_mime_type(self, client: TestClient) -> None:
        response = _upload(client, mime="application/zip")

        assert response.status_code == 400
        assert response.json()["error"] == "Invalid upload"

    def test_empty_file(self, client: TestClient) -> None:
        response = _upload(client, content=b"")

        assert response.status_code == 400
        assert "empty" in response.json()["message"]


class TestQueries:
    def test_get_document(self, client: TestClient, container: Container) -> None:
        _seed(container, S.VALIDATION_COMPLETED)

        response = client.get("/api/documents/doc-1")

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["status"] == "validation_completed"
        assert data["stage"] == "validation"
        assert data["ocr_result"]["extracted_text"] == "Invoice total $12.50"
        assert data["validation_result"]["is_valid"] is True

    def test_unknown_document(self, client: TestClient) -> None:
        response = client.get("/api/documents/missing")

        assert response.status_code == 404
        assert response.json()["error"] == "Document not found"

    def test_list_documents(self, client: TestClient, container: Container) -> None:
        _seed(container, S.UPLOADED, "doc-1")
        _seed(container, S.COMPLETED, "doc-2")

        response = client.get("/api/documents", params={"status": "completed"})

        data = response.json()["data"]
        assert data["count"] == 1
        assert data["documents"][0]["document_id"] == "doc-2"

    def test_list_rejects_unknown_status(self, client: TestClient) -> None:
        response = client.get("/api/documents", params={"status": "bogus"})

        assert response.status_code == 400
        assert "Status must be one of" in response.json()["message"]

    def test_list_rejects_bad_limit(self, client: TestClient) -> None:
        response = client.get("/api/documents", params={"limit": 0})

        assert response.status_code == 400
        assert response.json()["message"] == "Request validation failed"

    def test_statistics(self, client: TestClient) -> None:
        _upload(client)

        response = client.get("/api/documents/stats")

        data = response.json()["data"]
        assert data["total"] == 1
        assert data["by_status"]["uploaded"] == 1
        assert data["jobs"][Stage.OCR.value]["waiting"] == 1


class TestAdminActions:
    def test_cancel(self, client: TestClient) -> None:
        document_id = _upload(client).json()["data"]["document_id"]

        response = client.post(f"/api/documents/{document_id}/cancel")

        assert response.status_code == 200
        assert response.json()["data"]["status"] == "cancelled"

    def test_cancel_completed(self, client: TestClient, container: Container) -> None:
        _seed(container, S.COMPLETED)

        response = client.post("/api/documents/doc-1/cancel")

        assert response.status_code == 400
        assert response.json()["error"] == "Document already terminal"

    def test_retry(self, client: TestClient, container: Container) -> None:
        _seed(container, S.PERSISTENCE_FAILED)

        response = client.post("/api/documents/doc-1/retry")

        assert response.status_code == 200
        assert response.json()["data"] == {
            "document_id": "doc-1",
            "status": "persistence_failed",
            "stage": "persistence",
        }

    def test_retry_not_retryable(self, client: TestClient, container: Container) -> None:
        _seed(container, S.UPLOADED)

        response = client.post("/api/documents/doc-1/retry")

        assert response.status_code == 400
        assert response.json()["error"] == "Document not retryable"

    def test_dead_letter(self, client: TestClient, container: Container) -> None:
        _seed(container, S.OCR_FAILED)

        response = client.post("/api/documents/doc-1/dead-letter")

        assert response.json()["data"]["status"] == "dead_letter"

    def test_dead_letter_invalid_transition(self, client: TestClient, container: Container) -> None:
        _seed(container, S.UPLOADED)

        response = client.post("/api/documents/doc-1/dead-letter")

        assert response.status_code == 400
        assert response.json()["error"] == "Invalid status transition"

    def test_concurrent_change_is_conflict(self, client: TestClient, container: Container) -> None:
        _seed(container, S.OCR_FAILED)
        stale = StaleDocumentError("doc-1", "ocr_failed", "uploaded")

        with patch.object(container.service, "dead_letter", side_effect=stale):
            response = client.post("/api/documents/doc-1/dead-letter")

        assert response.status_code == 409
        assert response.json()["error"] == "Document changed concurrently"


class TestHealth:
    def test_ping(self, client: TestClient) -> None:
        assert client.get("/ping").json() == {"message": "pong"}

    def test_health(self, client: TestClient) -> None:
        body = client.get("/health").json()

        assert body["status"] == "healthy"
        assert set(body["services"]) == {"database", "queue", "storage"}

    def test_ready(self, client: TestClient) -> None:
        response = client.get("/health/ready")

        assert response.status_code == 200
        assert response.json()["ready"] is True

    def test_not_ready_when_database_down(self, client: TestClient, container: Container) -> None:
        with patch.object(container.repository, "ping", side_effect=RuntimeError("refused")):
            response = client.get("/health/ready")

        assert response.status_code == 503
        body = response.json()
        assert body["ready"] is False
        assert body["services"]["database"] == {"status": "down", "error": "refused"}
