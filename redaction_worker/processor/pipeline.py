from abc import ABC, abstractmethod
from dataclasses import dataclass

from redaction_worker.documents.models import Document
from redaction_worker.jobs.payload import RedactionJobPayload
from redaction_worker.processor.deadline import Deadline
from redaction_worker.processor.models import ProcessOutcome


@dataclass(slots=True)
class PipelineContext:
    payload: RedactionJobPayload
    deadline: Deadline
    attempt: int = 0
    document: Document | None = None
    content: str = ""
    redacted_content: str = ""
    redacted_key: str | None = None
    outcome: ProcessOutcome | None = None
    error_message: str = ""

    @property
    def document_id(self) -> str:
        return self.payload.document_id

    def require_document(self) -> Document:
        if self.document is None:
            raise ValueError("PipelineContext.document must be set before this step")
        return self.document


class PipelineStep(ABC):
    name: str = "step"

    @abstractmethod
    def run(self, context: PipelineContext) -> PipelineContext:
        raise NotImplementedError
