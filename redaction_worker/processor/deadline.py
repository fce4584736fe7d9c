import threading
import time

from redaction_worker.processor.exceptions import JobTimeoutError


class Deadline:
    """Cancellation signal threaded through every step of a job.

    Expires when the monotonic clock passes the budget, or earlier if
    cancel() is called from another thread.
    """

    def __init__(self, seconds: float | None) -> None:
        self._expires_at = None if seconds is None else time.monotonic() + seconds
        self._cancelled = threading.Event()

    @classmethod
    def never(cls) -> "Deadline":
        return cls(None)

    @classmethod
    def for_job(cls, timeout_seconds: float, cleanup_slack_seconds: float) -> "Deadline":
        """Budget for one job, leaving slack for the best-effort failure update."""
        return cls(max(timeout_seconds - cleanup_slack_seconds, 0.0))

    def cancel(self) -> None:
        self._cancelled.set()

    def remaining(self) -> float | None:
        """Seconds left, 0.0 once expired, None if unbounded."""
        if self._cancelled.is_set():
            return 0.0
        if self._expires_at is None:
            return None
        return max(self._expires_at - time.monotonic(), 0.0)

    @property
    def expired(self) -> bool:
        remaining = self.remaining()
        return remaining is not None and remaining <= 0.0

    def check(self, step: str) -> None:
        """Raise JobTimeoutError if the deadline has passed.

        Args:
            step: Name of the step about to run, for the error message.
        """
        if self.expired:
            raise JobTimeoutError(f"Deadline expired before step '{step}'")
