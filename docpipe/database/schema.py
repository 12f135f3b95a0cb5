from docpipe.database.connection import get_connection

DOCUMENTS_DDL = """
CREATE TABLE IF NOT EXISTS documents (
    document_id TEXT PRIMARY KEY,
    file_path TEXT NOT NULL,
    metadata JSONB NOT NULL,
    status TEXT NOT NULL,
    ocr_result JSONB,
    validation_result JSONB,
    created_at TIMESTAMPTZ NOT NULL,
    updated_at TIMESTAMPTZ NOT NULL
);
CREATE INDEX IF NOT EXISTS documents_status_created_at_idx
    ON documents (status, created_at DESC);
"""

DOCUMENT_JOBS_DDL = """
CREATE TABLE IF NOT EXISTS document_jobs (
    id BIGSERIAL PRIMARY KEY,
    document_id TEXT NOT NULL,
    file_path TEXT NOT NULL,
    stage TEXT NOT NULL,
    state TEXT NOT NULL DEFAULT 'waiting',
    attempts INTEGER NOT NULL DEFAULT 0,
    max_attempts INTEGER NOT NULL,
    backoff_delay_ms INTEGER NOT NULL,
    cancelled BOOLEAN NOT NULL DEFAULT FALSE,
    error_message TEXT,
    available_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    locked_at TIMESTAMPTZ,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
CREATE INDEX IF NOT EXISTS document_jobs_claim_idx
    ON document_jobs (stage, state, available_at);
CREATE INDEX IF NOT EXISTS document_jobs_document_idx
    ON document_jobs (document_id);
"""


def ensure_schema() -> None:
    """Create the documents and document_jobs tables if they are missing."""
    with get_connection() as conn:
        conn.execute(DOCUMENTS_DDL)
        conn.execute(DOCUMENT_JOBS_DDL)
        conn.commit()
