import uuid
from collections.abc import Sequence
from datetime import UTC, datetime

from redaction_worker.database.repositories.document_repository import DocumentRepository
from redaction_worker.documents.exceptions import (
    DocumentNotFoundError,
    RedactedContentUnavailableError,
    RedactionInProgressError,
)
from redaction_worker.documents.models import Document
from redaction_worker.documents.status import DocumentStatus, is_redaction_requestable
from redaction_worker.jobs.payload import RedactionJobPayload
from redaction_worker.jobs.publisher import JobPublisher, JobReference
from redaction_worker.logging.logger import Log
from redaction_worker.storage.base import BaseObjectStorage
from redaction_worker.storage.exceptions import StorageError


class DocumentService:
    """Entry points an outer surface (HTTP, CLI) uses to drive redaction."""

    def __init__(
        self,
        doc_repo: DocumentRepository,
        storage: BaseObjectStorage,
        publisher: JobPublisher,
    ) -> None:
        self._doc_repo = doc_repo
        self._storage = storage
        self._publisher = publisher

    def upload_document(self, content: bytes, file_name: str, content_type: str) -> Document:
        """Store *content* and register it as a new Uploaded document."""
        document_id = str(uuid.uuid4())
        key = self._storage.upload(content, f"{document_id}/{file_name}", content_type)
        document = Document(
            id=document_id,
            original_file_name=file_name,
            status=DocumentStatus.UPLOADED,
            created_at=datetime.now(UTC),
            original_key=key,
        )
        try:
            self._doc_repo.create_document(document)
        except Exception:
            self._discard_object(key)
            raise
        Log.info(f"Uploaded document {document_id} ({file_name}, {len(content)} bytes)")
        return document

    def list_documents(self, status: DocumentStatus | None = None) -> list[Document]:
        """All documents, or only those currently in *status*."""
        return self._doc_repo.list_documents(status)

    def request_redaction(self, document_id: str, phrases: Sequence[str]) -> JobReference:
        """Queue a redaction job for an existing, idle document.

        Raises:
            DocumentNotFoundError: if the document does not exist.
            RedactionInProgressError: if the document is being processed.
            PublishError: if the job could not be queued.
        """
        document = self._doc_repo.get_document(document_id)
        if document is None:
            raise DocumentNotFoundError(f"Document {document_id} not found")
        if not is_redaction_requestable(document.status):
            raise RedactionInProgressError(
                f"Document {document_id} is already being processed"
            )
        payload = RedactionJobPayload(
            document_id=document_id,
            phrases_to_redact=tuple(phrases),
        )
        return self._publisher.publish(payload)

    def get_document(self, document_id: str) -> Document | None:
        return self._doc_repo.get_document(document_id)

    def download_original(self, document_id: str) -> bytes:
        """Return the content as it was uploaded.

        Raises:
            DocumentNotFoundError: if the document does not exist or has no
                stored original.
        """
        document = self._doc_repo.get_document(document_id)
        if document is None or not document.original_key:
            raise DocumentNotFoundError(f"Original content for document {document_id} not found")
        return self._storage.download(document.original_key)

    def download_redacted(self, document_id: str) -> bytes:
        """Return the redacted content of a Completed document.

        Raises:
            DocumentNotFoundError: if the document does not exist.
            RedactedContentUnavailableError: if no redaction has completed.
        """
        document = self._doc_repo.get_document(document_id)
        if document is None:
            raise DocumentNotFoundError(f"Document {document_id} not found")
        if document.status is not DocumentStatus.COMPLETED or not document.redacted_key:
            raise RedactedContentUnavailableError(
                f"Document {document_id} has no redacted content "
                f"(status {document.status.value})"
            )
        return self._storage.download(document.redacted_key)

    def delete_document(self, document_id: str) -> None:
        """Remove stored objects first, then the metadata row.

        Raises:
            DocumentNotFoundError: if the document does not exist.
            RedactionInProgressError: if the document is being processed.
        """
        document = self._doc_repo.get_document(document_id)
        if document is None:
            raise DocumentNotFoundError(f"Document {document_id} not found")
        if document.status is DocumentStatus.PROCESSING:
            raise RedactionInProgressError(
                f"Document {document_id} is being processed and cannot be deleted"
            )
        for key in (document.original_key, document.redacted_key):
            if key:
                self._storage.delete(key)
        self._doc_repo.delete_document(document_id)
        Log.info(f"Deleted document {document_id}")

    def _discard_object(self, key: str) -> None:
        try:
            self._storage.delete(key)
        except StorageError as exc:
            Log.error(f"Failed to remove orphaned object {key}: {exc}")
