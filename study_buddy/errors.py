"""Typed failures raised by the note, quiz and study pack layers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional


class StudyBuddyError(Exception):
    """Base class for failures surfaced to the caller."""

    kind = "StudyBuddyError"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InputTooShortError(StudyBuddyError):
    kind = "InputTooShort"


class SummarizationFailedError(StudyBuddyError):
    kind = "SummarizationFailed"


class ExtractedTextTooShortError(StudyBuddyError):
    kind = "ExtractedTextTooShort"


class MissingPayloadError(StudyBuddyError):
    kind = "MissingPayload"


class NoConceptsAvailableError(StudyBuddyError):
    kind = "NoConceptsAvailable"


class NoQuestionsGeneratedError(StudyBuddyError):
    kind = "NoQuestionsGenerated"


class InvalidQuestionCountError(StudyBuddyError):
    kind = "InvalidQuestionCount"


class QuestionGenerationError(StudyBuddyError):
    """A single question could not be produced; the quiz skips that concept."""

    kind = "QuestionGenerationFailed"


class NoReadableTextError(StudyBuddyError):
    kind = "NoReadableText"


class NotFoundError(StudyBuddyError):
    kind = "NotFound"


class CapabilityUnavailableError(StudyBuddyError):
    """Raised only where an operation has no deterministic fallback."""

    kind = "CapabilityUnavailable"


@dataclass(slots=True)
class OperationResult:
    """Outcome of an orchestrator entry point, safe to hand to a UI layer."""

    ok: bool
    value: Any = None
    error_kind: Optional[str] = None
    message: str = ""

    @classmethod
    def success(cls, value: Any) -> "OperationResult":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: BaseException) -> "OperationResult":
        if isinstance(error, StudyBuddyError):
            return cls(ok=False, error_kind=error.kind, message=error.message)
        return cls(ok=False, error_kind="Unexpected", message=str(error) or type(error).__name__)
