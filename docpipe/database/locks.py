"""Per-document mutual exclusion for stage workers.

Only one worker may run a stage for a given document at a time. Acquisition
never blocks: a busy lock yields ``False`` and the caller defers its job.
"""

import threading
from abc import ABC, abstractmethod
from collections.abc import Generator
from contextlib import contextmanager

from docpipe.database.connection import get_connection


class BaseDocumentLock(ABC):
    @abstractmethod
    @contextmanager
    def acquire(self, document_id: str) -> Generator[bool, None, None]:
        """Try to take the lock for ``document_id``; yield whether it was taken."""


class AdvisoryDocumentLock(BaseDocumentLock):
    """PostgreSQL session advisory lock keyed by ``hashtext(document_id)``.

    The lock lives on a dedicated pooled connection for the whole job and is
    dropped by the server if the worker process dies.
    """

    @contextmanager
    def acquire(self, document_id: str) -> Generator[bool, None, None]:
        with get_connection() as conn:
            row = conn.execute(
                "SELECT pg_try_advisory_lock(hashtext(%s))", (document_id,)
            ).fetchone()
            conn.commit()
            acquired = bool(row and row[0])
            try:
                yield acquired
            finally:
                if acquired:
                    conn.execute("SELECT pg_advisory_unlock(hashtext(%s))", (document_id,))
                    conn.commit()


class ThreadDocumentLock(BaseDocumentLock):
    """In-process variant for the memory backend."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._held: set[str] = set()

    @contextmanager
    def acquire(self, document_id: str) -> Generator[bool, None, None]:
        with self._guard:
            acquired = document_id not in self._held
            if acquired:
                self._held.add(document_id)
        try:
            yield acquired
        finally:
            if acquired:
                with self._guard:
                    self._held.discard(document_id)

    def is_held(self, document_id: str) -> bool:
        with self._guard:
            return document_id in self._held
