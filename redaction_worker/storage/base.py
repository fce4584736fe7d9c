import re
from abc import ABC, abstractmethod

KEY_PREFIX = "documents"

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._/-]")


def object_key(name: str) -> str:
    """Build the storage key for *name*: documents/<sanitised name>.

    Keys are a pure function of the name, so uploading the same name twice
    overwrites the same object.
    """
    parts = [
        _UNSAFE_CHARS.sub("_", part)
        for part in name.replace("\\", "/").split("/")
        if part not in ("", ".", "..")
    ]
    if not parts:
        raise ValueError(f"Cannot build a storage key from name {name!r}")
    return "/".join([KEY_PREFIX, *parts])


class BaseObjectStorage(ABC):
    """Contract for all object storage adapters."""

    @abstractmethod
    def upload(self, data: bytes, name: str, content_type: str) -> str:
        """Store *data* and return its key.

        Raises:
            StorageError: on any failure.
        """

    @abstractmethod
    def download(self, key: str) -> bytes:
        """Return the bytes stored under *key*.

        Raises:
            ObjectNotFoundError: if nothing is stored under *key*.
            StorageError: on any other failure.
        """

    @abstractmethod
    def delete(self, key: str) -> None:
        """Delete the object under *key*. Deleting a missing key is not an error.

        Raises:
            StorageError: on any failure.
        """
