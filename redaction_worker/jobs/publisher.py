from dataclasses import dataclass

from redaction_worker.database.repositories.job_repository import JobRepository
from redaction_worker.jobs.exceptions import PublishError
from redaction_worker.jobs.payload import RedactionJobPayload, encode_payload
from redaction_worker.logging.logger import Log


@dataclass(frozen=True)
class JobReference:
    """Handle for a queued redaction job."""

    job_id: int
    dedup_key: str
    deduplicated: bool = False


class JobPublisher:
    """Enqueues redaction jobs, collapsing repeats for the same document."""

    def __init__(self, job_repo: JobRepository, dedup_window_seconds: int) -> None:
        self._job_repo = job_repo
        self._dedup_window_seconds = dedup_window_seconds

    def publish(self, payload: RedactionJobPayload) -> JobReference:
        """Enqueue *payload* with the document id as its deduplication key.

        Raises:
            PublishError: if the job could not be enqueued. The request was not
                recorded and the caller may retry.
        """
        if not payload.document_id:
            raise ValueError("Document ID cannot be empty")
        if not payload.phrases_to_redact:
            Log.warning(
                f"Publishing redaction job for document {payload.document_id} "
                "with no phrases to redact"
            )

        dedup_key = payload.document_id
        try:
            job_id, deduplicated = self._job_repo.enqueue(
                document_id=payload.document_id,
                dedup_key=dedup_key,
                payload=encode_payload(payload),
                dedup_window_seconds=self._dedup_window_seconds,
            )
        except Exception as exc:
            Log.error(
                f"Failed to publish redaction job for document {payload.document_id}: {exc}"
            )
            raise PublishError(
                f"Failed to publish redaction job for document {payload.document_id}: {exc}"
            ) from exc

        if deduplicated:
            Log.info(
                f"Redaction request for document {payload.document_id} "
                f"collapsed into existing job {job_id}"
            )
        else:
            Log.info(
                f"Published redaction job {job_id} for document {payload.document_id} "
                f"with {len(payload.phrases_to_redact)} phrases"
            )
        return JobReference(job_id=job_id, dedup_key=dedup_key, deduplicated=deduplicated)
