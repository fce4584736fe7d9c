from redaction_worker.database.repositories.document_repository import DocumentRepository
from redaction_worker.documents.status import (
    DocumentStatus,
    can_transition,
    touch,
    transition,
)
from redaction_worker.logging.logger import Log
from redaction_worker.processor.exceptions import (
    ConcurrentProcessingError,
    PartialSuccessError,
)
from redaction_worker.processor.models import ProcessOutcome
from redaction_worker.processor.pipeline import PipelineContext, PipelineStep
from redaction_worker.redaction.redactor import Redactor
from redaction_worker.storage.base import BaseObjectStorage
from redaction_worker.storage.exceptions import StorageError

REDACTED_CONTENT_TYPE = "text/plain"


def redacted_object_name(document_id: str, original_file_name: str) -> str:
    """Storage name for a document's redacted copy. Stable across retries."""
    return f"{document_id}/redacted_{original_file_name}"


class LoadDocumentStep(PipelineStep):
    name = "load_document"

    def __init__(self, doc_repo: DocumentRepository) -> None:
        self._doc_repo = doc_repo

    def run(self, context: PipelineContext) -> PipelineContext:
        document = self._doc_repo.get_document(context.document_id)
        if document is None:
            Log.error(f"Document {context.document_id} not found, dropping job")
            context.outcome = ProcessOutcome.DOCUMENT_NOT_FOUND
            return context
        context.document = document
        Log.info(
            f"Loaded document {document.id} ({document.original_file_name}), "
            f"status {document.status.value}"
        )
        return context


class RequireOriginalContentStep(PipelineStep):
    name = "require_original_content"

    def __init__(self, doc_repo: DocumentRepository) -> None:
        self._doc_repo = doc_repo

    def run(self, context: PipelineContext) -> PipelineContext:
        document = context.require_document()
        if document.original_key:
            return context
        Log.error(f"Document {document.id} has no stored original content")
        transition(document, DocumentStatus.FAILED)
        self._doc_repo.save_document(document)
        context.outcome = ProcessOutcome.NO_ORIGINAL_CONTENT
        return context


class MarkProcessingStep(PipelineStep):
    name = "mark_processing"

    def __init__(self, doc_repo: DocumentRepository) -> None:
        self._doc_repo = doc_repo

    def run(self, context: PipelineContext) -> PipelineContext:
        document = context.require_document()
        if document.status is DocumentStatus.PROCESSING:
            if context.attempt == 0:
                raise ConcurrentProcessingError(
                    f"Document {document.id} is already being processed"
                )
            # Redelivered job resuming its own interrupted run.
            Log.warning(
                f"Document {document.id} still Processing on attempt "
                f"{context.attempt + 1}, resuming"
            )
            touch(document)
        else:
            transition(document, DocumentStatus.PROCESSING)
        self._doc_repo.save_document(document)
        Log.info(f"Document {document.id} marked as Processing")
        return context


class DownloadContentStep(PipelineStep):
    name = "download_content"

    def __init__(self, storage: BaseObjectStorage) -> None:
        self._storage = storage

    def run(self, context: PipelineContext) -> PipelineContext:
        document = context.require_document()
        if not document.original_key:
            raise ValueError(f"Document {document.id} has no original key")
        raw = self._storage.download(document.original_key)
        context.content = raw.decode("utf-8-sig", errors="replace")
        Log.info(
            f"Downloaded {len(raw)} bytes for document {document.id} "
            f"({len(context.content)} chars)"
        )
        return context


class RedactStep(PipelineStep):
    name = "redact"

    def __init__(self, redactor: Redactor) -> None:
        self._redactor = redactor

    def run(self, context: PipelineContext) -> PipelineContext:
        context.redacted_content = self._redactor.redact(
            context.content,
            context.payload.phrases_to_redact,
            deadline=context.deadline,
        )
        Log.info(
            f"Redacted document {context.document_id}: "
            f"{len(context.payload.phrases_to_redact)} phrases requested"
        )
        return context


class UploadRedactedStep(PipelineStep):
    name = "upload_redacted"

    def __init__(self, storage: BaseObjectStorage) -> None:
        self._storage = storage

    def run(self, context: PipelineContext) -> PipelineContext:
        document = context.require_document()
        data = context.redacted_content.encode("utf-8")
        name = redacted_object_name(document.id, document.original_file_name)
        try:
            context.redacted_key = self._storage.upload(data, name, REDACTED_CONTENT_TYPE)
        except StorageError:
            Log.error(f"Failed to upload redacted content for document {document.id}")
            raise
        except Exception as exc:
            raise StorageError(
                f"Upload of redacted content failed for document {document.id}: {exc}"
            ) from exc
        Log.info(f"Uploaded redacted document {document.id} as {context.redacted_key}")
        return context


class MarkCompletedStep(PipelineStep):
    name = "mark_completed"

    def __init__(self, doc_repo: DocumentRepository) -> None:
        self._doc_repo = doc_repo

    def run(self, context: PipelineContext) -> PipelineContext:
        document = context.require_document()
        if not context.redacted_key:
            raise ValueError("PipelineContext.redacted_key must be set before completion")
        document.redacted_key = context.redacted_key
        transition(document, DocumentStatus.COMPLETED)
        try:
            self._doc_repo.save_document(document)
        except Exception as exc:
            Log.error(
                f"Redacted content for document {document.id} is stored but the "
                f"status update failed: {exc}"
            )
            raise PartialSuccessError(
                f"Metadata update failed after storing {context.redacted_key}: {exc}"
            ) from exc
        context.outcome = ProcessOutcome.COMPLETED
        Log.info(f"Document {document.id} marked as Completed")
        return context


class MarkFailedStep(PipelineStep):
    """Best-effort Failed update. Reloads the document so stale in-memory state is ignored."""

    name = "mark_failed"

    def __init__(self, doc_repo: DocumentRepository) -> None:
        self._doc_repo = doc_repo

    def run(self, context: PipelineContext) -> PipelineContext:
        document = self._doc_repo.get_document(context.document_id)
        if document is None:
            return context
        if not can_transition(document.status, DocumentStatus.FAILED):
            Log.warning(
                f"Document {document.id} left as {document.status.value}, "
                "cannot be marked Failed"
            )
            return context
        transition(document, DocumentStatus.FAILED)
        self._doc_repo.save_document(document)
        context.document = document
        Log.error(f"Document {document.id} marked as Failed: {context.error_message}")
        return context
