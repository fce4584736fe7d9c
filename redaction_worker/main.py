from redaction_worker.config.settings import Settings
from redaction_worker.database.connection import close_pool, init_pool
from redaction_worker.database.repositories.document_repository import DocumentRepository
from redaction_worker.database.repositories.job_repository import JobRepository
from redaction_worker.logging.logger import Log
from redaction_worker.processor.processor import build_processor
from redaction_worker.storage.factory import ObjectStorageFactory
from redaction_worker.worker.job_runner import JobRunner
from redaction_worker.worker.worker import Worker


def main() -> None:
    """Entry point: initialize pool -> build dependencies -> start worker loop."""
    settings = Settings()
    Log.configure(settings.log_level)
    init_pool(settings)

    try:
        storage = ObjectStorageFactory.create(settings)
        processor = build_processor(settings, storage=storage, doc_repo=DocumentRepository())
        job_repo = JobRepository(
            settings.max_job_attempts,
            visibility_timeout_seconds=settings.job_visibility_timeout_seconds,
        )
        job_runner = JobRunner(processor, job_repo, settings)
        worker = Worker(job_repo, job_runner, settings)
        worker.run()
    finally:
        close_pool()


if __name__ == "__main__":
    main()
