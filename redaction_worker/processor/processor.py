import time

from redaction_worker.config.settings import Settings
from redaction_worker.database.repositories.document_repository import DocumentRepository
from redaction_worker.jobs.payload import RedactionJobPayload
from redaction_worker.logging.logger import Log
from redaction_worker.processor.deadline import Deadline
from redaction_worker.processor.exceptions import ConcurrentProcessingError
from redaction_worker.processor.models import ProcessOutcome
from redaction_worker.processor.pipeline import PipelineContext, PipelineStep
from redaction_worker.processor.steps import (
    DownloadContentStep,
    LoadDocumentStep,
    MarkCompletedStep,
    MarkFailedStep,
    MarkProcessingStep,
    RedactStep,
    RequireOriginalContentStep,
    UploadRedactedStep,
)
from redaction_worker.redaction.redactor import Redactor
from redaction_worker.storage.base import BaseObjectStorage
from redaction_worker.storage.factory import ObjectStorageFactory


class Processor:
    """Orchestrates one redaction job.

    Pipeline: load -> require content -> mark Processing -> download ->
    redact -> upload -> mark Completed. The deadline is checked before every
    step. Any escaping error triggers a best-effort Failed update and is
    re-raised so the job runner can apply retry policy.
    """

    def __init__(self, steps: list[PipelineStep], failed_step: PipelineStep) -> None:
        self._steps = steps
        self._failed_step = failed_step

    def process(
        self,
        payload: RedactionJobPayload,
        deadline: Deadline,
        attempt: int = 0,
    ) -> ProcessOutcome:
        """Run the pipeline for *payload*.

        Returns:
            The outcome for jobs that finished without raising.

        Raises:
            JobTimeoutError: if the deadline expired before a step.
            ConcurrentProcessingError: if another run owns the document.
            Exception: any step failure, after the document was marked Failed.
        """
        started = time.monotonic()
        context = PipelineContext(payload=payload, deadline=deadline, attempt=attempt)
        Log.info(
            f"Processing redaction job for document {payload.document_id} "
            f"with {len(payload.phrases_to_redact)} phrases (attempt {attempt + 1})"
        )

        try:
            for step in self._steps:
                deadline.check(step.name)
                context = step.run(context)
                if context.outcome is not None:
                    break
        except ConcurrentProcessingError:
            Log.error(f"Document {payload.document_id} is owned by another run, skipping")
            raise
        except Exception as exc:
            elapsed = time.monotonic() - started
            Log.error(
                f"Redaction job for document {payload.document_id} failed "
                f"after {elapsed:.1f}s: {exc}"
            )
            context.error_message = str(exc)
            self._mark_failed(context)
            raise

        outcome = context.outcome or ProcessOutcome.COMPLETED
        elapsed = time.monotonic() - started
        Log.info(
            f"Redaction job for document {payload.document_id} finished "
            f"with outcome {outcome.value} in {elapsed:.1f}s"
        )
        return outcome

    def _mark_failed(self, context: PipelineContext) -> None:
        try:
            self._failed_step.run(context)
        except Exception as secondary:
            Log.error(
                f"Failed to mark document {context.document_id} as Failed: {secondary}"
            )


def build_processor(
    settings: Settings,
    storage: BaseObjectStorage | None = None,
    doc_repo: DocumentRepository | None = None,
) -> Processor:
    """Build a Processor with all required adapters."""
    doc_repo = doc_repo if doc_repo is not None else DocumentRepository()
    storage = storage if storage is not None else ObjectStorageFactory.create(settings)
    redactor = Redactor(timeout_seconds=settings.redaction_timeout_seconds)
    steps: list[PipelineStep] = [
        LoadDocumentStep(doc_repo),
        RequireOriginalContentStep(doc_repo),
        MarkProcessingStep(doc_repo),
        DownloadContentStep(storage),
        RedactStep(redactor),
        UploadRedactedStep(storage),
        MarkCompletedStep(doc_repo),
    ]
    return Processor(steps=steps, failed_step=MarkFailedStep(doc_repo))
