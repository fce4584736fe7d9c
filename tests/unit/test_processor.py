from unittest.mock import MagicMock

import pytest

from redaction_worker.documents.status import DocumentStatus
from redaction_worker.jobs.payload import RedactionJobPayload
from redaction_worker.processor.deadline import Deadline
from redaction_worker.processor.exceptions import (
    ConcurrentProcessingError,
    JobTimeoutError,
    PartialSuccessError,
)
from redaction_worker.processor.models import ProcessOutcome
from redaction_worker.processor.processor import Processor, build_processor
from redaction_worker.storage.exceptions import ObjectNotFoundError, StorageError
from tests.factories import (
    DOCUMENT_ID,
    InMemoryDocumentRepository,
    InMemoryObjectStorage,
    make_document,
)

ORIGINAL_KEY = "documents/original.txt"
REDACTED_KEY = f"documents/{DOCUMENT_ID}/redacted_report.txt"
CONTENT = "John Doe lives at 123 Main St"
PAYLOAD = RedactionJobPayload(
    document_id=DOCUMENT_ID, phrases_to_redact=("John Doe", "123 Main St")
)


def _make_pipeline(
    status: DocumentStatus = DocumentStatus.UPLOADED,
    original_key: str | None = ORIGINAL_KEY,
    redacted_key: str | None = None,
    content: bytes = CONTENT.encode("utf-8"),
) -> tuple[Processor, InMemoryDocumentRepository, InMemoryObjectStorage]:
    doc_repo = InMemoryDocumentRepository(
        make_document(status, original_key=original_key, redacted_key=redacted_key)
    )
    storage = InMemoryObjectStorage({ORIGINAL_KEY: content})
    settings = MagicMock(redaction_timeout_seconds=1.0)
    processor = build_processor(settings, storage=storage, doc_repo=doc_repo)  # type: ignore[arg-type]
    return processor, doc_repo, storage


class TestSuccessfulRedaction:
    def test_completes_and_stores_redacted_content(self) -> None:
        processor, doc_repo, storage = _make_pipeline()

        outcome = processor.process(PAYLOAD, Deadline.never())

        assert outcome is ProcessOutcome.COMPLETED
        document = doc_repo.rows[DOCUMENT_ID]
        assert document.status is DocumentStatus.COMPLETED
        assert document.redacted_key == REDACTED_KEY
        assert document.updated_at is not None
        assert storage.objects[REDACTED_KEY] == (
            "******** lives at " + "*" * len("123 Main St")
        ).encode("utf-8")
        assert storage.uploads == [(REDACTED_KEY, "text/plain")]

    def test_moves_through_processing_to_completed(self) -> None:
        processor, doc_repo, _storage = _make_pipeline()

        processor.process(PAYLOAD, Deadline.never())

        assert [d.status for d in doc_repo.saves] == [
            DocumentStatus.PROCESSING,
            DocumentStatus.COMPLETED,
        ]
        assert doc_repo.saves[0].redacted_key is None

    def test_leaves_original_untouched(self) -> None:
        processor, _repo, storage = _make_pipeline()

        processor.process(PAYLOAD, Deadline.never())

        assert storage.objects[ORIGINAL_KEY] == CONTENT.encode("utf-8")

    def test_resubmitted_completed_document_is_redacted_again(self) -> None:
        processor, doc_repo, storage = _make_pipeline(
            status=DocumentStatus.COMPLETED, redacted_key=REDACTED_KEY
        )
        payload = RedactionJobPayload(DOCUMENT_ID, ("lives",))

        processor.process(payload, Deadline.never())

        assert doc_repo.rows[DOCUMENT_ID].status is DocumentStatus.COMPLETED
        assert storage.objects[REDACTED_KEY] == b"John Doe ***** at 123 Main St"

    def test_failed_document_can_be_retried(self) -> None:
        processor, doc_repo, _storage = _make_pipeline(status=DocumentStatus.FAILED)

        assert processor.process(PAYLOAD, Deadline.never()) is ProcessOutcome.COMPLETED
        assert doc_repo.rows[DOCUMENT_ID].status is DocumentStatus.COMPLETED

    def test_strips_utf8_byte_order_mark(self) -> None:
        processor, _repo, storage = _make_pipeline(
            content=b"\xef\xbb\xbf" + CONTENT.encode("utf-8")
        )

        processor.process(PAYLOAD, Deadline.never())

        assert storage.objects[REDACTED_KEY].startswith(b"********")


class TestAbandonedJobs:
    def test_missing_document_is_dropped(self) -> None:
        processor, doc_repo, storage = _make_pipeline()
        payload = RedactionJobPayload("9d1c7a52-0f6e-4b8e-a7c3-5e2d4f1b0a99", ("x",))

        outcome = processor.process(payload, Deadline.never())

        assert outcome is ProcessOutcome.DOCUMENT_NOT_FOUND
        assert doc_repo.saves == []
        assert storage.uploads == []

    def test_document_without_original_content_is_failed(self) -> None:
        processor, doc_repo, storage = _make_pipeline(original_key=None)

        outcome = processor.process(PAYLOAD, Deadline.never())

        assert outcome is ProcessOutcome.NO_ORIGINAL_CONTENT
        assert doc_repo.rows[DOCUMENT_ID].status is DocumentStatus.FAILED
        assert storage.uploads == []


class TestConcurrentProcessing:
    def test_first_attempt_on_processing_document_is_refused(self) -> None:
        processor, doc_repo, storage = _make_pipeline(status=DocumentStatus.PROCESSING)

        with pytest.raises(ConcurrentProcessingError):
            processor.process(PAYLOAD, Deadline.never(), attempt=0)

        assert doc_repo.rows[DOCUMENT_ID].status is DocumentStatus.PROCESSING
        assert doc_repo.saves == []
        assert storage.uploads == []

    def test_redelivered_job_resumes_its_own_run(self) -> None:
        processor, doc_repo, _storage = _make_pipeline(status=DocumentStatus.PROCESSING)

        outcome = processor.process(PAYLOAD, Deadline.never(), attempt=1)

        assert outcome is ProcessOutcome.COMPLETED
        assert doc_repo.rows[DOCUMENT_ID].status is DocumentStatus.COMPLETED


class TestFailures:
    def test_upload_failure_marks_document_failed(self) -> None:
        processor, doc_repo, storage = _make_pipeline()
        storage.fail_uploads = True

        with pytest.raises(StorageError, match="storage unavailable"):
            processor.process(PAYLOAD, Deadline.never())

        document = doc_repo.rows[DOCUMENT_ID]
        assert document.status is DocumentStatus.FAILED
        assert document.redacted_key is None

    def test_missing_original_object_marks_document_failed(self) -> None:
        processor, doc_repo, storage = _make_pipeline()
        storage.objects.clear()

        with pytest.raises(ObjectNotFoundError):
            processor.process(PAYLOAD, Deadline.never())

        assert doc_repo.rows[DOCUMENT_ID].status is DocumentStatus.FAILED

    def test_metadata_failure_after_upload_is_partial_success(self) -> None:
        processor, doc_repo, storage = _make_pipeline()
        doc_repo.fail_on_save_status = DocumentStatus.COMPLETED

        with pytest.raises(PartialSuccessError):
            processor.process(PAYLOAD, Deadline.never())

        assert REDACTED_KEY in storage.objects
        document = doc_repo.rows[DOCUMENT_ID]
        assert document.status is DocumentStatus.FAILED
        assert document.redacted_key is None

    def test_retry_after_partial_success_overwrites(self) -> None:
        processor, doc_repo, storage = _make_pipeline()
        doc_repo.fail_on_save_status = DocumentStatus.COMPLETED
        with pytest.raises(PartialSuccessError):
            processor.process(PAYLOAD, Deadline.never())

        doc_repo.fail_on_save_status = None
        outcome = processor.process(PAYLOAD, Deadline.never(), attempt=1)

        assert outcome is ProcessOutcome.COMPLETED
        assert doc_repo.rows[DOCUMENT_ID].redacted_key == REDACTED_KEY
        assert [key for key, _ in storage.uploads] == [REDACTED_KEY, REDACTED_KEY]
        assert sorted(storage.objects) == [ORIGINAL_KEY, REDACTED_KEY]

    def test_secondary_failure_is_swallowed(self) -> None:
        processor, doc_repo, storage = _make_pipeline()
        storage.fail_uploads = True
        doc_repo.fail_on_save_status = DocumentStatus.FAILED

        with pytest.raises(StorageError):
            processor.process(PAYLOAD, Deadline.never())

        assert doc_repo.rows[DOCUMENT_ID].status is DocumentStatus.PROCESSING


class TestDeadline:
    def test_expired_deadline_aborts_and_marks_failed(self) -> None:
        processor, doc_repo, storage = _make_pipeline()
        deadline = Deadline(60)
        deadline.cancel()

        with pytest.raises(JobTimeoutError, match="load_document"):
            processor.process(PAYLOAD, deadline)

        assert doc_repo.rows[DOCUMENT_ID].status is DocumentStatus.FAILED
        assert storage.uploads == []

    def test_resubmitted_completed_document_keeps_result_on_early_timeout(self) -> None:
        processor, doc_repo, storage = _make_pipeline(
            status=DocumentStatus.COMPLETED, redacted_key=REDACTED_KEY
        )
        deadline = Deadline(60)
        deadline.cancel()

        with pytest.raises(JobTimeoutError):
            processor.process(PAYLOAD, deadline)

        document = doc_repo.rows[DOCUMENT_ID]
        assert document.status is DocumentStatus.COMPLETED
        assert document.redacted_key == REDACTED_KEY
        assert doc_repo.saves == []
        assert storage.uploads == []

    def test_deadline_expiring_mid_job_stops_before_next_step(self) -> None:
        processor, doc_repo, storage = _make_pipeline()
        deadline = Deadline(60)
        original_download = storage.download

        def download_then_expire(key: str) -> bytes:
            data = original_download(key)
            deadline.cancel()
            return data

        storage.download = download_then_expire  # type: ignore[method-assign]

        with pytest.raises(JobTimeoutError, match="redact"):
            processor.process(PAYLOAD, deadline)

        assert doc_repo.rows[DOCUMENT_ID].status is DocumentStatus.FAILED
        assert storage.uploads == []


class TestStepOrchestration:
    def test_runs_steps_in_order_and_stops_on_outcome(self) -> None:
        first, second, third = MagicMock(), MagicMock(), MagicMock()
        first.name, second.name, third.name = "first", "second", "third"
        first.run.side_effect = lambda ctx: ctx

        def finish(ctx):  # type: ignore[no-untyped-def]
            ctx.outcome = ProcessOutcome.DOCUMENT_NOT_FOUND
            return ctx

        second.run.side_effect = finish
        processor = Processor(steps=[first, second, third], failed_step=MagicMock())

        outcome = processor.process(PAYLOAD, Deadline.never())

        assert outcome is ProcessOutcome.DOCUMENT_NOT_FOUND
        first.run.assert_called_once()
        second.run.assert_called_once()
        third.run.assert_not_called()

    def test_failure_runs_failed_step_and_reraises(self) -> None:
        step = MagicMock()
        step.name = "boom"
        step.run.side_effect = RuntimeError("boom")
        failed_step = MagicMock()
        processor = Processor(steps=[step], failed_step=failed_step)

        with pytest.raises(RuntimeError, match="boom"):
            processor.process(PAYLOAD, Deadline.never())

        failed_step.run.assert_called_once()
        context = failed_step.run.call_args.args[0]
        assert context.error_message == "boom"
