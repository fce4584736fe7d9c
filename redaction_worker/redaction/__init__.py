from redaction_worker.redaction.redactor import Redactor, distinct_phrases, redact

__all__ = ["Redactor", "distinct_phrases", "redact"]
