"""Document status state machine.

    Uploaded ──> Processing ──> Completed
       │             │  ▲           │
       │             ▼  │           │
       └───────────> Failed <───────┘ (resubmit via Processing only)

Completed and Failed are terminal for one job attempt, but both may be
resubmitted and re-enter Processing. Processing is never re-entered from
itself: one document has at most one running pipeline.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING

from redaction_worker.documents.exceptions import InvalidStatusTransitionError

if TYPE_CHECKING:
    from redaction_worker.documents.models import Document


class DocumentStatus(str, Enum):
    UPLOADED = "Uploaded"
    PROCESSING = "Processing"
    COMPLETED = "Completed"
    FAILED = "Failed"


ALLOWED_TRANSITIONS: dict[DocumentStatus, frozenset[DocumentStatus]] = {
    DocumentStatus.UPLOADED: frozenset(
        {DocumentStatus.PROCESSING, DocumentStatus.FAILED}
    ),
    DocumentStatus.PROCESSING: frozenset(
        {DocumentStatus.COMPLETED, DocumentStatus.FAILED}
    ),
    DocumentStatus.COMPLETED: frozenset({DocumentStatus.PROCESSING}),
    DocumentStatus.FAILED: frozenset(
        {DocumentStatus.PROCESSING, DocumentStatus.FAILED}
    ),
}


def can_transition(current: DocumentStatus, target: DocumentStatus) -> bool:
    """Return True if *current* -> *target* is a legal move."""
    return target in ALLOWED_TRANSITIONS[current]


def is_redaction_requestable(status: DocumentStatus) -> bool:
    """A new redaction job may be requested unless one is already running."""
    return status is not DocumentStatus.PROCESSING


def transition(
    document: Document,
    target: DocumentStatus,
    now: datetime | None = None,
) -> Document:
    """Move *document* to *target*, stamping updated_at.

    The redacted key is only meaningful on a Completed document: it is
    cleared when leaving Completed and must already be set when entering it.

    Raises:
        InvalidStatusTransitionError: if the move is not allowed.
    """
    if not can_transition(document.status, target):
        raise InvalidStatusTransitionError(
            f"Document {document.id}: cannot move from "
            f"{document.status.value} to {target.value}"
        )
    if target is DocumentStatus.COMPLETED and not document.redacted_key:
        raise InvalidStatusTransitionError(
            f"Document {document.id}: cannot complete without a redacted key"
        )
    if target is not DocumentStatus.COMPLETED:
        document.redacted_key = None

    document.status = target
    document.updated_at = now if now is not None else datetime.now(UTC)
    return document


def touch(document: Document, now: datetime | None = None) -> Document:
    """Stamp updated_at without changing status."""
    document.updated_at = now if now is not None else datetime.now(UTC)
    return document
