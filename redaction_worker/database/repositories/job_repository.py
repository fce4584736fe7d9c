from typing import Any

import psycopg
from psycopg.rows import dict_row

from redaction_worker.database.connection import get_connection
from redaction_worker.database.models import JobRecord

_JOB_COLUMNS = """
    id, document_id, dedup_key, payload, status, attempts,
    error_message, locked_at, created_at, updated_at
"""


class JobRepository:
    """Database operations for the redaction_jobs table.

    The table is the job transport: enqueue with deduplication, claim with
    SKIP LOCKED, redelivery after a visibility timeout, and a dead-letter
    state ('failed') for jobs that exhausted their attempts.
    """

    def __init__(self, max_attempts: int, visibility_timeout_seconds: int = 360) -> None:
        self._max_attempts = max_attempts
        self._visibility_timeout_seconds = visibility_timeout_seconds

    def enqueue(
        self,
        document_id: str,
        dedup_key: str,
        payload: str,
        dedup_window_seconds: int,
    ) -> tuple[int, bool]:
        """Insert a pending job unless one with the same dedup key is active.

        A job is active while pending/processing, or while it was created
        within the dedup window. Publishers for the same key are serialized
        with a transaction-scoped advisory lock.

        Returns:
            (job_id, deduplicated) where deduplicated is True when an existing
            job absorbed the request.
        """
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "SELECT pg_advisory_xact_lock(hashtext(%s))",
                    (dedup_key,),
                )
                cur.execute(
                    """
                    SELECT id
                    FROM redaction_jobs
                    WHERE dedup_key = %s
                      AND (status IN ('pending', 'processing')
                           OR created_at > NOW() - %s * INTERVAL '1 second')
                    ORDER BY created_at DESC
                    LIMIT 1
                    """,
                    (dedup_key, dedup_window_seconds),
                )
                existing = cur.fetchone()
                if existing is not None:
                    conn.commit()
                    return int(existing[0]), True

                cur.execute(
                    """
                    INSERT INTO redaction_jobs (document_id, dedup_key, payload, status, attempts)
                    VALUES (%s::uuid, %s, %s, 'pending', 0)
                    RETURNING id
                    """,
                    (document_id, dedup_key, payload),
                )
                row = cur.fetchone()
            conn.commit()

        if row is None:
            raise RuntimeError(f"Insert into redaction_jobs returned no id for {dedup_key}")
        return int(row[0]), False

    def claim_next_job(self, conn: psycopg.Connection[Any]) -> JobRecord | None:
        """Claim the next pending job using SELECT FOR UPDATE SKIP LOCKED.

        A job left in 'processing' longer than the visibility timeout is
        redelivered and its attempt count goes up.
        """
        with conn.cursor(row_factory=dict_row) as cur:
            cur.execute(
                """
                SELECT id, document_id, dedup_key, payload, status, attempts
                FROM redaction_jobs
                WHERE (status = 'pending' AND attempts < %s)
                   OR (status = 'processing'
                       AND locked_at < NOW() - %s * INTERVAL '1 second')
                ORDER BY created_at
                LIMIT 1
                FOR UPDATE SKIP LOCKED
                """,
                (self._max_attempts, self._visibility_timeout_seconds),
            )
            row = cur.fetchone()

        if row is None:
            return None

        redelivered = row["status"] == "processing"
        attempts = row["attempts"] + 1 if redelivered else row["attempts"]
        conn.execute(
            """
            UPDATE redaction_jobs
            SET status = 'processing', attempts = %s,
                locked_at = NOW(), updated_at = NOW()
            WHERE id = %s
            """,
            (attempts, row["id"]),
        )
        conn.commit()

        return JobRecord(
            id=row["id"],
            document_id=str(row["document_id"]),
            dedup_key=row["dedup_key"],
            payload=row["payload"],
            status="processing",
            attempts=attempts,
        )

    def mark_done(self, job_id: int) -> None:
        """Mark a job as done."""
        with get_connection() as conn:
            conn.execute(
                """
                UPDATE redaction_jobs
                SET status = 'done', locked_at = NULL, updated_at = NOW()
                WHERE id = %s
                """,
                (job_id,),
            )
            conn.commit()

    def mark_failed(self, job_id: int, error: str) -> None:
        """Mark a job as permanently failed (dead-lettered)."""
        with get_connection() as conn:
            conn.execute(
                """
                UPDATE redaction_jobs
                SET status = 'failed', error_message = %s,
                    locked_at = NULL, updated_at = NOW()
                WHERE id = %s
                """,
                (error, job_id),
            )
            conn.commit()

    def increment_attempts(self, job_id: int, error: str | None = None) -> None:
        """Increment attempt count and return job to pending."""
        with get_connection() as conn:
            conn.execute(
                """
                UPDATE redaction_jobs
                SET attempts = attempts + 1, status = 'pending', error_message = %s,
                    locked_at = NULL, updated_at = NOW()
                WHERE id = %s
                """,
                (error, job_id),
            )
            conn.commit()

    def find_by_id(self, job_id: int) -> JobRecord | None:
        """Find a job by ID. Useful for tests."""
        with get_connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    f"SELECT {_JOB_COLUMNS} FROM redaction_jobs WHERE id = %s",
                    (job_id,),
                )
                row = cur.fetchone()

        if row is None:
            return None

        return JobRecord(
            id=row["id"],
            document_id=str(row["document_id"]),
            dedup_key=row["dedup_key"],
            payload=row["payload"],
            status=row["status"],
            attempts=row["attempts"],
            error_message=row["error_message"],
            locked_at=row["locked_at"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )
