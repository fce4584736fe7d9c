from dataclasses import dataclass
from datetime import datetime


@dataclass
class JobRecord:
    """Represents a row from the redaction_jobs table."""

    id: int
    document_id: str
    payload: str
    status: str
    attempts: int
    dedup_key: str = ""
    error_message: str | None = None
    locked_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
