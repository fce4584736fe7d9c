"""Literal phrase redaction.

Processing flow:
1. Trim phrases, drop blanks, deduplicate case-insensitively (first wins).
2. For each phrase in that order, replace every case-insensitive whole-word
   occurrence in the current buffer with '*' x len(phrase).
3. If the word-bounded match exceeds its time budget, replace literal
   case-insensitive occurrences instead (no word boundaries) and carry on.

Phrases run against the already-redacted buffer, so a later phrase never
sees text an earlier phrase turned into asterisks.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

import regex

from redaction_worker.logging.logger import Log
from redaction_worker.processor.deadline import Deadline

MASK_CHAR = "*"

_PROGRESS_EVERY = 25
_PROGRESS_MIN_PHRASES = 50


class Redactor:
    """Replaces phrases with asterisk runs of the same length."""

    def __init__(self, timeout_seconds: float = 1.0) -> None:
        if timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")
        self._timeout_seconds = timeout_seconds

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def redact(
        self,
        content: str,
        phrases: Sequence[str],
        deadline: Deadline | None = None,
    ) -> str:
        """Return *content* with every phrase masked.

        Args:
            content: Plain text to redact.
            phrases: Phrases in request order; duplicates and case variants allowed.
            deadline: Optional job deadline, checked before each phrase and
                used to cap the per-phrase match budget.

        Raises:
            JobTimeoutError: if the deadline expires between phrases.
        """
        if not content or not phrases:
            return content

        distinct = distinct_phrases(phrases)
        result = content
        for index, phrase in enumerate(distinct):
            if deadline is not None:
                deadline.check("redact")
            result = self._redact_phrase(result, phrase, self._budget(deadline))

            if len(phrases) > _PROGRESS_MIN_PHRASES and index % _PROGRESS_EVERY == 0:
                Log.info(f"Redaction progress: {index + 1}/{len(distinct)} phrases processed")

        return result

    # ------------------------------------------------------------------
    # Matching
    # ------------------------------------------------------------------

    def _redact_phrase(self, text: str, phrase: str, timeout: float) -> str:
        mask = MASK_CHAR * len(phrase)
        try:
            return self._replace_whole_words(text, phrase, mask, timeout)
        except TimeoutError:
            Log.warning(
                f"Pattern timeout for phrase of length {len(phrase)}; "
                "falling back to literal replacement"
            )
            return self._replace_literal(text, phrase, mask)

    def _replace_whole_words(
        self, text: str, phrase: str, mask: str, timeout: float
    ) -> str:
        pattern = rf"\b{regex.escape(phrase)}\b"
        return regex.sub(
            pattern,
            lambda _m: mask,
            text,
            flags=regex.IGNORECASE,
            timeout=timeout,
        )

    def _replace_literal(self, text: str, phrase: str, mask: str) -> str:
        return regex.sub(
            regex.escape(phrase),
            lambda _m: mask,
            text,
            flags=regex.IGNORECASE,
        )

    def _budget(self, deadline: Deadline | None) -> float:
        if deadline is None:
            return self._timeout_seconds
        remaining = deadline.remaining()
        if remaining is None:
            return self._timeout_seconds
        # regex rejects a zero timeout; an exhausted budget still gets one tick.
        return max(min(self._timeout_seconds, remaining), 0.001)


def distinct_phrases(phrases: Iterable[str | None]) -> list[str]:
    """Trim, drop blanks, and deduplicate case-insensitively keeping first order."""
    seen: set[str] = set()
    result: list[str] = []
    for raw in phrases:
        if raw is None:
            continue
        phrase = raw.strip()
        if not phrase:
            continue
        # Must agree with IGNORECASE simple case mapping; casefold() merges ß and SS.
        key = phrase.lower()
        if key in seen:
            continue
        seen.add(key)
        result.append(phrase)
    return result


def redact(content: str, phrases: Sequence[str]) -> str:
    """Redact with the default one-second per-phrase budget."""
    return Redactor().redact(content, phrases)
