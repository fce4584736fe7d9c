from dataclasses import dataclass
from datetime import datetime

from redaction_worker.documents.status import DocumentStatus


@dataclass
class Document:
    """Metadata for an uploaded document. Owned by the metadata store."""

    id: str
    original_file_name: str
    status: DocumentStatus
    created_at: datetime
    updated_at: datetime | None = None
    original_key: str | None = None
    redacted_key: str | None = None
