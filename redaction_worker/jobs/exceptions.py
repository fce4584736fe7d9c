class JobError(Exception):
    """Base exception for redaction job handling."""


class MalformedPayloadError(JobError):
    """Raised when a job payload cannot be decoded. Never retried."""


class PublishError(JobError):
    """Raised when a redaction job could not be enqueued. Safe to retry."""
