from typing import Any

from psycopg.rows import dict_row

from redaction_worker.database.connection import get_connection
from redaction_worker.documents.exceptions import (
    DocumentAlreadyExistsError,
    DocumentNotFoundError,
)
from redaction_worker.documents.models import Document
from redaction_worker.documents.status import DocumentStatus


class DocumentRepository:
    """Database operations for the documents table (the metadata store)."""

    def get_document(self, document_id: str) -> Document | None:
        """Find a document by ID. Returns None if it does not exist."""
        with get_connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    """
                    SELECT id, original_file_name, status, created_at,
                           updated_at, original_key, redacted_key
                    FROM documents
                    WHERE id = %s::uuid
                    """,
                    (document_id,),
                )
                row = cur.fetchone()

        if row is None:
            return None
        return self._to_document(row)

    def list_documents(self, status: DocumentStatus | None = None) -> list[Document]:
        """Return documents oldest first, optionally only those in *status*."""
        with get_connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    """
                    SELECT id, original_file_name, status, created_at,
                           updated_at, original_key, redacted_key
                    FROM documents
                    WHERE %(status)s::text IS NULL OR status = %(status)s
                    ORDER BY created_at, id
                    """,
                    {"status": status.value if status is not None else None},
                )
                rows = cur.fetchall()

        return [self._to_document(row) for row in rows]

    def create_document(self, document: Document) -> None:
        """Insert a new document.

        Raises:
            DocumentAlreadyExistsError: if a document with this ID exists.
        """
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO documents
                    (id, original_file_name, status, created_at,
                     updated_at, original_key, redacted_key)
                    VALUES (%s::uuid, %s, %s, %s, %s, %s, %s)
                    ON CONFLICT (id) DO NOTHING
                    """,
                    (
                        document.id,
                        document.original_file_name,
                        document.status.value,
                        document.created_at,
                        document.updated_at,
                        document.original_key,
                        document.redacted_key,
                    ),
                )
                if cur.rowcount == 0:
                    raise DocumentAlreadyExistsError(
                        f"Document {document.id} already exists"
                    )
            conn.commit()

    def save_document(self, document: Document) -> None:
        """Overwrite the mutable fields of an existing document.

        Raises:
            DocumentNotFoundError: if no document with this ID exists.
        """
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    UPDATE documents
                    SET original_file_name = %s,
                        status = %s,
                        updated_at = %s,
                        original_key = %s,
                        redacted_key = %s
                    WHERE id = %s::uuid
                    """,
                    (
                        document.original_file_name,
                        document.status.value,
                        document.updated_at,
                        document.original_key,
                        document.redacted_key,
                        document.id,
                    ),
                )
                if cur.rowcount == 0:
                    raise DocumentNotFoundError(f"Document {document.id} not found")
            conn.commit()

    def delete_document(self, document_id: str) -> None:
        """Delete a document row.

        Raises:
            DocumentNotFoundError: if no document with this ID exists.
        """
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "DELETE FROM documents WHERE id = %s::uuid",
                    (document_id,),
                )
                if cur.rowcount == 0:
                    raise DocumentNotFoundError(f"Document {document_id} not found")
            conn.commit()

    @staticmethod
    def _to_document(row: dict[str, Any]) -> Document:
        return Document(
            id=str(row["id"]),
            original_file_name=row["original_file_name"],
            status=DocumentStatus(row["status"]),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            original_key=row["original_key"],
            redacted_key=row["redacted_key"],
        )
