"""Wire codec for redaction job payloads.

Encoded form is a flat JSON object::

    {"documentId": "<uuid>", "phrasesToRedact": ["...", "..."]}

Decoding matches field names case-insensitively and ignores unknown fields.
"""

import json
import uuid
from dataclasses import dataclass
from typing import Any

from redaction_worker.jobs.exceptions import MalformedPayloadError

DOCUMENT_ID_FIELD = "documentId"
PHRASES_FIELD = "phrasesToRedact"


@dataclass(frozen=True)
class RedactionJobPayload:
    """A request to redact phrases from one document. Immutable once published."""

    document_id: str
    phrases_to_redact: tuple[str, ...] = ()


def encode_payload(payload: RedactionJobPayload) -> str:
    """Serialize *payload* to compact JSON with lower-camel-case field names."""
    return json.dumps(
        {
            DOCUMENT_ID_FIELD: payload.document_id,
            PHRASES_FIELD: list(payload.phrases_to_redact),
        },
        separators=(",", ":"),
        ensure_ascii=False,
    )


def decode_payload(raw: str | bytes) -> RedactionJobPayload:
    """Parse a wire payload.

    Raises:
        MalformedPayloadError: if the text is not a JSON object, the document
            id is missing or not a UUID, or the phrases are not a list of strings.
    """
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise MalformedPayloadError(f"Payload is not valid JSON: {exc}") from exc

    if not isinstance(data, dict):
        raise MalformedPayloadError(
            f"Payload must be a JSON object, got {type(data).__name__}"
        )

    fields = _fold_keys(data)
    document_id = _read_document_id(fields.get(DOCUMENT_ID_FIELD.lower()))
    phrases = _read_phrases(fields.get(PHRASES_FIELD.lower()))
    return RedactionJobPayload(document_id=document_id, phrases_to_redact=phrases)


def _fold_keys(data: dict[str, Any]) -> dict[str, Any]:
    # First spelling wins when a field appears under several casings.
    folded: dict[str, Any] = {}
    for key, value in data.items():
        folded.setdefault(key.lower(), value)
    return folded


def _read_document_id(value: Any) -> str:
    if value is None or value == "":
        raise MalformedPayloadError("Payload is missing documentId")
    if not isinstance(value, str):
        raise MalformedPayloadError("documentId must be a string")
    try:
        parsed = uuid.UUID(value)
    except ValueError as exc:
        raise MalformedPayloadError(f"documentId is not a valid UUID: {value!r}") from exc
    if parsed.int == 0:
        raise MalformedPayloadError("documentId must not be the nil UUID")
    return value


def _read_phrases(value: Any) -> tuple[str, ...]:
    if value is None:
        return ()
    if not isinstance(value, list):
        raise MalformedPayloadError("phrasesToRedact must be an array")
    phrases: list[str] = []
    for item in value:
        if item is None:
            continue
        if not isinstance(item, str):
            raise MalformedPayloadError(
                f"phrasesToRedact entries must be strings, got {type(item).__name__}"
            )
        phrases.append(item)
    return tuple(phrases)
