class DocumentError(Exception):
    """Base exception for document metadata errors."""


class DocumentNotFoundError(DocumentError):
    """Raised when a document cannot be found in the metadata store."""


class DocumentAlreadyExistsError(DocumentError):
    """Raised when creating a document whose id is already taken."""


class InvalidStatusTransitionError(DocumentError):
    """Raised when a status change is not allowed by the state machine."""


class RedactionInProgressError(DocumentError):
    """Raised when redaction is requested for a document already being processed."""


class RedactedContentUnavailableError(DocumentError):
    """Raised when redacted content is requested before a successful redaction."""
