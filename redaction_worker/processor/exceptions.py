class ProcessorError(Exception):
    """Base exception for all processor-related errors."""


class JobTimeoutError(ProcessorError):
    """Raised when a job's deadline expires before a step could start."""


class ConcurrentProcessingError(ProcessorError):
    """Raised when a fresh job finds its document already being processed."""


class PartialSuccessError(ProcessorError):
    """Raised when redacted content was stored but its metadata update failed."""
