from pathlib import Path

from redaction_worker.config.settings import Settings
from redaction_worker.storage.base import BaseObjectStorage
from redaction_worker.storage.local_adapter import LocalObjectStorage
from redaction_worker.storage.s3_adapter import S3ObjectStorage


class ObjectStorageFactory:
    """Creates the object storage adapter named by settings."""

    BACKENDS = ("local", "s3")

    @classmethod
    def create(cls, settings: Settings) -> BaseObjectStorage:
        backend = settings.storage_backend.lower()
        if backend == "local":
            return LocalObjectStorage(files_root=Path(settings.files_root))
        if backend == "s3":
            return S3ObjectStorage(
                bucket=settings.s3_bucket_name,
                region=settings.aws_region,
            )
        raise ValueError(
            f"Unknown storage backend '{backend}'. Choose from: {list(cls.BACKENDS)}"
        )
