import os
import uuid
from collections.abc import Generator
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import psycopg
import pytest
from psycopg.rows import dict_row

from redaction_worker.config.settings import Settings
from redaction_worker.database.connection import close_pool, get_connection, init_pool
from redaction_worker.database.models import JobRecord
from redaction_worker.documents.models import Document
from redaction_worker.documents.status import DocumentStatus
from redaction_worker.jobs.payload import RedactionJobPayload, encode_payload
from redaction_worker.storage.local_adapter import LocalObjectStorage

SCHEMA_PATH = Path(__file__).resolve().parents[2] / "sql" / "schema.sql"


def _test_settings() -> Settings:
    os.environ.setdefault("DB_DATABASE", "redaction_test")
    return Settings()


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    return _test_settings()


@pytest.fixture(scope="session")
def integration_pool(test_settings: Settings) -> Generator[None, None, None]:
    try:
        init_pool(test_settings)
        with get_connection() as conn:
            conn.execute(SCHEMA_PATH.read_text())
            conn.commit()
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
def db_conn(integration_pool: None) -> Generator[psycopg.Connection[Any], None, None]:
    with get_connection() as conn:
        yield conn


@pytest.fixture
def integration_cleanup(
    integration_pool: None,
) -> Generator[list[tuple[str, Any]], None, None]:
    cleanup: list[tuple[str, Any]] = []
    yield cleanup
    if not cleanup:
        return
    with get_connection() as conn:
        with conn.cursor() as cur:
            for table, row_id in cleanup:
                if table == "redaction_jobs":
                    cur.execute("DELETE FROM redaction_jobs WHERE id = %s", (row_id,))
            for table, row_id in cleanup:
                if table == "documents":
                    cur.execute("DELETE FROM redaction_jobs WHERE document_id = %s::uuid", (row_id,))
                    cur.execute("DELETE FROM documents WHERE id = %s::uuid", (row_id,))
        conn.commit()


@pytest.fixture
def files_root(tmp_path: Path) -> Path:
    return tmp_path


@pytest.fixture
def local_storage(files_root: Path) -> LocalObjectStorage:
    return LocalObjectStorage(files_root=files_root)


@pytest.fixture
def seed_document(
    db_conn: psycopg.Connection[Any],
    integration_cleanup: list[tuple[str, Any]],
    local_storage: LocalObjectStorage,
) -> Document:
    document_id = str(uuid.uuid4())
    original_key = local_storage.upload(
        b"John Doe lives at 123 Main St", f"{document_id}/report.txt", "text/plain"
    )
    document = Document(
        id=document_id,
        original_file_name="report.txt",
        status=DocumentStatus.UPLOADED,
        created_at=datetime.now(UTC),
        original_key=original_key,
    )
    with db_conn.cursor() as cur:
        cur.execute(
            """
            INSERT INTO documents (id, original_file_name, status, created_at, original_key)
            VALUES (%s::uuid, %s, %s, %s, %s)
            """,
            (
                document.id,
                document.original_file_name,
                document.status.value,
                document.created_at,
                document.original_key,
            ),
        )
    db_conn.commit()
    integration_cleanup.append(("documents", document_id))
    return document


@pytest.fixture
def seed_job(
    db_conn: psycopg.Connection[Any],
    integration_cleanup: list[tuple[str, Any]],
    seed_document: Document,
) -> JobRecord:
    payload = encode_payload(
        RedactionJobPayload(seed_document.id, ("John Doe", "123 Main St"))
    )
    with db_conn.cursor(row_factory=dict_row) as cur:
        cur.execute(
            """
            INSERT INTO redaction_jobs (document_id, dedup_key, payload, status, attempts)
            VALUES (%s::uuid, %s, %s, 'pending', 0)
            RETURNING id
            """,
            (seed_document.id, seed_document.id, payload),
        )
        row = cur.fetchone()
        assert row is not None
        job_id = row["id"]
    db_conn.commit()
    integration_cleanup.append(("redaction_jobs", job_id))
    return JobRecord(
        id=job_id,
        document_id=seed_document.id,
        dedup_key=seed_document.id,
        payload=payload,
        status="pending",
        attempts=0,
    )
