from typing import Any

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from redaction_worker.logging.logger import Log
from redaction_worker.storage.base import BaseObjectStorage, object_key
from redaction_worker.storage.exceptions import ObjectNotFoundError, StorageError

_NOT_FOUND_CODES = frozenset({"NoSuchKey", "404", "NotFound"})


class S3ObjectStorage(BaseObjectStorage):
    """Stores objects in a single S3 bucket."""

    def __init__(
        self,
        bucket: str,
        region: str,
        client: Any | None = None,
    ) -> None:
        if not bucket:
            raise ValueError("S3 bucket name is required for storage_backend=s3")
        self._bucket = bucket
        self._client = client or boto3.client(
            "s3",
            region_name=region,
            config=Config(
                connect_timeout=10,
                read_timeout=30,
                retries={"max_attempts": 3, "mode": "standard"},
            ),
        )

    def upload(self, data: bytes, name: str, content_type: str) -> str:
        key = object_key(name)
        Log.info(f"Uploading {len(data)} bytes to s3://{self._bucket}/{key}")
        try:
            self._client.put_object(
                Bucket=self._bucket,
                Key=key,
                Body=data,
                ContentType=content_type,
                ServerSideEncryption="AES256",
            )
        except (ClientError, BotoCoreError) as exc:
            raise StorageError(f"Failed to upload {key}: {_describe(exc)}") from exc
        return key

    def download(self, key: str) -> bytes:
        Log.info(f"Downloading s3://{self._bucket}/{key}")
        try:
            response = self._client.get_object(Bucket=self._bucket, Key=key)
            return response["Body"].read()
        except ClientError as exc:
            if _error_code(exc) in _NOT_FOUND_CODES:
                raise ObjectNotFoundError(f"Object not found: {key}") from exc
            raise StorageError(f"Failed to download {key}: {_describe(exc)}") from exc
        except BotoCoreError as exc:
            raise StorageError(f"Failed to download {key}: {exc}") from exc

    def delete(self, key: str) -> None:
        try:
            self._client.delete_object(Bucket=self._bucket, Key=key)
        except (ClientError, BotoCoreError) as exc:
            raise StorageError(f"Failed to delete {key}: {_describe(exc)}") from exc
        Log.info(f"Deleted s3://{self._bucket}/{key}")


def _error_code(exc: ClientError) -> str:
    return str(exc.response.get("Error", {}).get("Code", "Unknown"))


def _describe(exc: Exception) -> str:
    if isinstance(exc, ClientError):
        return _error_code(exc)
    return str(exc)
