from pathlib import Path

from redaction_worker.logging.logger import Log
from redaction_worker.storage.base import BaseObjectStorage, object_key
from redaction_worker.storage.exceptions import ObjectNotFoundError, StorageError


class LocalObjectStorage(BaseObjectStorage):
    """Stores objects as files under a root directory, one file per key."""

    FILES_ROOT = Path("/app/files")

    def __init__(self, files_root: Path | None = None) -> None:
        self._files_root = files_root if files_root is not None else self.FILES_ROOT

    def upload(self, data: bytes, name: str, content_type: str) -> str:
        key = object_key(name)
        path = self._resolve_path(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except OSError as exc:
            raise StorageError(f"Failed to write {key}: {exc}") from exc
        Log.info(f"Stored {len(data)} bytes ({content_type}) under {key}")
        return key

    def download(self, key: str) -> bytes:
        path = self._resolve_path(key)
        if not path.is_file():
            raise ObjectNotFoundError(f"Object not found: {key}")
        try:
            return path.read_bytes()
        except OSError as exc:
            raise StorageError(f"Failed to read {key}: {exc}") from exc

    def delete(self, key: str) -> None:
        path = self._resolve_path(key)
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            raise StorageError(f"Failed to delete {key}: {exc}") from exc

    def _resolve_path(self, key: str) -> Path:
        root = self._files_root.resolve()
        path = (root / key).resolve()
        if not path.is_relative_to(root):
            raise StorageError(f"Key escapes storage root: {key}")
        return path
