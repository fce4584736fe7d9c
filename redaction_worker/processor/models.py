from enum import Enum


class ProcessOutcome(str, Enum):
    """How a redaction job ended when it did not raise."""

    COMPLETED = "completed"
    DOCUMENT_NOT_FOUND = "document_not_found"
    NO_ORIGINAL_CONTENT = "no_original_content"
