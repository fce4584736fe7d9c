from redaction_worker.config.settings import Settings
from redaction_worker.database.models import JobRecord
from redaction_worker.database.repositories.job_repository import JobRepository
from redaction_worker.jobs.exceptions import MalformedPayloadError
from redaction_worker.jobs.payload import decode_payload
from redaction_worker.logging.logger import Log
from redaction_worker.processor.deadline import Deadline
from redaction_worker.processor.exceptions import ConcurrentProcessingError
from redaction_worker.processor.processor import Processor


class JobRunner:
    """Run one job, catch exceptions, and apply retry logic.

    Malformed payloads and jobs racing another run are dead-lettered at once;
    every other failure is retried until max_job_attempts.
    """

    def __init__(
        self,
        processor: Processor,
        job_repo: JobRepository,
        settings: Settings,
    ) -> None:
        self._processor = processor
        self._job_repo = job_repo
        self._settings = settings

    def run(self, job: JobRecord) -> None:
        """Execute a single job with error handling."""
        Log.info(f"Running job {job.id} (attempt {job.attempts + 1})")
        if job.attempts >= self._settings.max_job_attempts:
            self._job_repo.mark_failed(job.id, "Exceeded max attempts")
            Log.error(f"Job {job.id} dead-lettered after {job.attempts} attempts")
            return

        try:
            payload = decode_payload(job.payload)
        except MalformedPayloadError as exc:
            Log.error(f"Job {job.id} has an unprocessable payload: {exc}")
            self._job_repo.mark_failed(job.id, f"Malformed payload: {exc}")
            return

        deadline = Deadline.for_job(
            self._settings.job_timeout_seconds,
            self._settings.job_cleanup_slack_seconds,
        )
        try:
            outcome = self._processor.process(payload, deadline, attempt=job.attempts)
            self._job_repo.mark_done(job.id)
            Log.info(f"Job {job.id} finished: {outcome.value}")
        except ConcurrentProcessingError as exc:
            self._job_repo.mark_failed(job.id, str(exc))
            Log.error(f"Job {job.id} dropped: {exc}")
        except Exception as exc:
            self._handle_failure(job, exc)

    def _handle_failure(self, job: JobRecord, exc: Exception) -> None:
        """Increment attempts; mark failed if at max, otherwise back to pending."""
        Log.exception(f"Job {job.id} failed: {exc}")
        if job.attempts + 1 >= self._settings.max_job_attempts:
            self._job_repo.mark_failed(job.id, str(exc))
            Log.error(f"Job {job.id} permanently failed after {job.attempts + 1} attempts")
        else:
            self._job_repo.increment_attempts(job.id, str(exc))
            Log.warning(f"Job {job.id} will be retried (attempt {job.attempts + 2})")
