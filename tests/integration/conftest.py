import os
from collections.abc import Generator

import pytest

from docpipe.config.settings import Settings
from docpipe.database.connection import close_pool, get_connection, init_pool
from docpipe.database.schema import ensure_schema


def _test_settings() -> Settings:
    os.environ.setdefault("DB_DATABASE", "docpipe_test")
    return Settings()


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    return _test_settings()


@pytest.fixture(scope="session")
def integration_pool(test_settings: Settings) -> Generator[None, None, None]:
    try:
        init_pool(test_settings)
        ensure_schema()
    except Exception as e:
        close_pool()
        pytest.skip(
            f"PostgreSQL test DB not available: {e}. "
            "Set DB_* env to point at a disposable database"
        )
    try:
        yield
    finally:
        close_pool()


@pytest.fixture
def clean_tables(integration_pool: None) -> Generator[None, None, None]:
    """Empty both tables around a test.

    The claim query looks at the whole lane, so rows left by one test would be
    picked up by the next.
    """
    _truncate()
    yield
    _truncate()


def _truncate() -> None:
    with get_connection() as conn:
        conn.execute("TRUNCATE document_jobs, documents RESTART IDENTITY")
        conn.commit()
