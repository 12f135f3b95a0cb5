from typing import Any

import psycopg
from psycopg.rows import dict_row

from docpipe.database.connection import get_connection
from docpipe.domain.status import Stage
from docpipe.queue.base import BaseStageQueue, empty_job_stats
from docpipe.queue.exceptions import NoActiveJobsError
from docpipe.queue.models import CancelSummary, JobOptions, JobRecord, JobState

_JOB_COLUMNS = (
    "id, document_id, file_path, stage, state, attempts, max_attempts, "
    "backoff_delay_ms, cancelled, error_message, available_at, locked_at, "
    "created_at, updated_at"
)


class PostgresStageQueue(BaseStageQueue):
    """Database operations for the document_jobs table."""

    def _insert(
        self,
        stage: Stage,
        document_id: str,
        file_path: str,
        options: JobOptions,
    ) -> JobRecord:
        with get_connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    f"""
                    INSERT INTO document_jobs
                        (document_id, file_path, stage, state, max_attempts, backoff_delay_ms)
                    VALUES (%s, %s, %s, 'waiting', %s, %s)
                    RETURNING {_JOB_COLUMNS}
                    """,
                    (
                        document_id,
                        file_path,
                        stage.value,
                        options.attempts,
                        options.backoff_delay_ms,
                    ),
                )
                row = cur.fetchone()
            conn.commit()
        return self._to_job(row)

    def claim_next(self, stage: Stage) -> JobRecord | None:
        """Claim the next due job using SELECT FOR UPDATE SKIP LOCKED."""
        with get_connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    """
                    SELECT id
                    FROM document_jobs
                    WHERE stage = %s
                      AND state IN ('waiting', 'delayed')
                      AND available_at <= NOW()
                    ORDER BY available_at, id
                    LIMIT 1
                    FOR UPDATE SKIP LOCKED
                    """,
                    (stage.value,),
                )
                row = cur.fetchone()
                if row is None:
                    conn.commit()
                    return None

                cur.execute(
                    f"""
                    UPDATE document_jobs
                    SET state = 'active', locked_at = NOW(), updated_at = NOW()
                    WHERE id = %s
                    RETURNING {_JOB_COLUMNS}
                    """,
                    (row["id"],),
                )
                claimed = cur.fetchone()
            conn.commit()
        return self._to_job(claimed)

    def complete(self, job_id: int) -> None:
        self._execute(
            """
            UPDATE document_jobs
            SET state = 'completed', locked_at = NULL, updated_at = NOW()
            WHERE id = %s
            """,
            (job_id,),
        )

    def _schedule_retry(self, job: JobRecord, error: str, delay_seconds: float) -> None:
        self._execute(
            """
            UPDATE document_jobs
            SET state = 'delayed',
                attempts = attempts + 1,
                error_message = %s,
                available_at = NOW() + make_interval(secs => %s),
                locked_at = NULL,
                updated_at = NOW()
            WHERE id = %s
            """,
            (error, float(delay_seconds), job.id),
        )

    def _mark_exhausted(self, job: JobRecord, error: str) -> None:
        self._execute(
            """
            UPDATE document_jobs
            SET state = 'failed', attempts = attempts + 1, error_message = %s,
                locked_at = NULL, updated_at = NOW()
            WHERE id = %s
            """,
            (error, job.id),
        )

    def discard(self, job_id: int, reason: str) -> None:
        self._execute(
            """
            UPDATE document_jobs
            SET state = 'failed', error_message = %s, locked_at = NULL, updated_at = NOW()
            WHERE id = %s
            """,
            (reason, job_id),
        )

    def defer(self, job_id: int, delay_seconds: float) -> None:
        self._execute(
            """
            UPDATE document_jobs
            SET state = 'waiting',
                available_at = NOW() + make_interval(secs => %s),
                locked_at = NULL,
                updated_at = NOW()
            WHERE id = %s
            """,
            (float(delay_seconds), job_id),
        )

    def acknowledge_cancelled(self, job_id: int) -> None:
        self._execute(
            """
            UPDATE document_jobs
            SET state = 'cancelled', locked_at = NULL, updated_at = NOW()
            WHERE id = %s
            """,
            (job_id,),
        )

    def cancel(self, document_id: str) -> CancelSummary:
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    UPDATE document_jobs
                    SET state = 'cancelled', cancelled = TRUE, updated_at = NOW()
                    WHERE document_id = %s AND state IN ('waiting', 'delayed')
                    """,
                    (document_id,),
                )
                removed = cur.rowcount
                cur.execute(
                    """
                    UPDATE document_jobs
                    SET cancelled = TRUE, updated_at = NOW()
                    WHERE document_id = %s AND state = 'active'
                    """,
                    (document_id,),
                )
                flagged = cur.rowcount
            if removed == 0 and flagged == 0:
                conn.rollback()
                raise NoActiveJobsError(document_id)
            conn.commit()
        return CancelSummary(removed=removed, flagged=flagged)

    def drop_pending(self, document_id: str) -> int:
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    UPDATE document_jobs
                    SET state = 'cancelled', updated_at = NOW()
                    WHERE document_id = %s AND state IN ('waiting', 'delayed')
                    """,
                    (document_id,),
                )
                dropped = cur.rowcount
            conn.commit()
        return dropped

    def is_cancelled(self, job_id: int) -> bool:
        with get_connection() as conn:
            row = conn.execute(
                "SELECT cancelled FROM document_jobs WHERE id = %s", (job_id,)
            ).fetchone()
        return bool(row and row[0])

    def find_by_id(self, job_id: int) -> JobRecord | None:
        rows = self._select(f"SELECT {_JOB_COLUMNS} FROM document_jobs WHERE id = %s", (job_id,))
        return rows[0] if rows else None

    def find_by_document(self, document_id: str) -> list[JobRecord]:
        return self._select(
            f"""
            SELECT {_JOB_COLUMNS}
            FROM document_jobs
            WHERE document_id = %s
            ORDER BY created_at, id
            """,
            (document_id,),
        )

    def release_stale(self, timeout_seconds: float) -> int:
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    UPDATE document_jobs
                    SET state = 'waiting', locked_at = NULL, updated_at = NOW()
                    WHERE state = 'active'
                      AND locked_at < NOW() - make_interval(secs => %s)
                    """,
                    (float(timeout_seconds),),
                )
                released = cur.rowcount
            conn.commit()
        return released

    def clean(self, grace_seconds: float, failed_grace_seconds: float) -> int:
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    DELETE FROM document_jobs
                    WHERE (state IN ('completed', 'cancelled')
                           AND updated_at < NOW() - make_interval(secs => %s))
                       OR (state = 'failed'
                           AND updated_at < NOW() - make_interval(secs => %s))
                    """,
                    (float(grace_seconds), float(failed_grace_seconds)),
                )
                deleted = cur.rowcount
            conn.commit()
        return deleted

    def find_exhausted(self) -> list[JobRecord]:
        return self._select(
            f"""
            SELECT {_JOB_COLUMNS}
            FROM document_jobs
            WHERE state = 'failed'
            ORDER BY updated_at DESC, id DESC
            """,
            (),
        )

    def stats(self) -> dict[Stage, dict[JobState, int]]:
        with get_connection() as conn:
            rows = conn.execute(
                "SELECT stage, state, COUNT(*) FROM document_jobs GROUP BY stage, state"
            ).fetchall()
        result = empty_job_stats()
        for stage, state, count in rows:
            result[Stage(stage)][JobState(state)] = count
        return result

    def ping(self) -> bool:
        try:
            with get_connection() as conn:
                conn.execute("SELECT 1 FROM document_jobs LIMIT 1")
        except psycopg.Error:
            return False
        return True

    @staticmethod
    def _execute(query: str, params: tuple[Any, ...]) -> None:
        with get_connection() as conn:
            conn.execute(query, params)
            conn.commit()

    def _select(self, query: str, params: tuple[Any, ...]) -> list[JobRecord]:
        with get_connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(query, params)
                rows = cur.fetchall()
        return [self._to_job(row) for row in rows]

    @staticmethod
    def _to_job(row: dict[str, Any]) -> JobRecord:
        return JobRecord(
            id=row["id"],
            document_id=row["document_id"],
            file_path=row["file_path"],
            stage=Stage(row["stage"]),
            state=JobState(row["state"]),
            attempts=row["attempts"],
            max_attempts=row["max_attempts"],
            backoff_delay_ms=row["backoff_delay_ms"],
            cancelled=row["cancelled"],
            error_message=row["error_message"],
            available_at=row["available_at"],
            locked_at=row["locked_at"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )
