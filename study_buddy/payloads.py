"""Pydantic models for the JSON the language model sends back.

Model output is only shaped by prompt text, so every payload goes through
one of these models before it reaches a dataclass. Question and concept
payloads are all-or-nothing. Study pack artifacts are repaired field by
field: unusable fields come back as ``None`` and are filled from the
locally derived artifacts.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

OPTION_LABELS = ("A", "B", "C", "D")

MAX_CONCEPTS = 6
MAX_HEADLINE_CHARS = 160
MAX_TAKEAWAYS = 5
MAX_STUDY_QUESTIONS = 6
MAX_FLASHCARDS = 6
MAX_ACTION_STEPS = 5
MAX_RED_FLAG_QUESTIONS = 3


def clean_text(value: Any) -> Optional[str]:
    """Stripped text, numbers stringified; ``None`` for blanks and other types."""

    if isinstance(value, (int, float)) and not isinstance(value, bool):
        value = str(value)
    if not isinstance(value, str) or not value.strip():
        return None
    return value.strip()


def clean_text_list(value: Any, limit: Optional[int] = None) -> Optional[List[str]]:
    if not isinstance(value, list):
        return None
    items: List[str] = []
    for entry in value:
        text = clean_text(entry)
        if text is not None and text not in items:
            items.append(text)
    return items[:limit] if limit is not None else items


def parse_flag(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in {"true", "false"}:
        return value.strip().lower() == "true"
    return None


def _required_text(value: Any) -> str:
    text = clean_text(value)
    if text is None:
        raise ValueError("expected non-empty text")
    return text


class ModelPayload(BaseModel):
    """Accepts the camelCase keys the prompts ask for, or field names."""

    model_config = ConfigDict(populate_by_name=True)


class InsightPayload(ModelPayload):
    concept: str
    key_fact: Optional[str] = Field(default=None, alias="keyFact")
    question_cue: Optional[str] = Field(default=None, alias="questionCue")

    @field_validator("concept", mode="before")
    @classmethod
    def validate_concept(cls, v: Any) -> str:
        return _required_text(v)

    @field_validator("key_fact", "question_cue", mode="before")
    @classmethod
    def blank_is_missing(cls, v: Any) -> Optional[str]:
        return clean_text(v)


class ConceptPayload(ModelPayload):
    concepts: List[str]
    insights: List[InsightPayload] = Field(default_factory=list)

    @field_validator("concepts", mode="before")
    @classmethod
    def validate_concepts(cls, v: Any) -> List[str]:
        concepts = clean_text_list(v, MAX_CONCEPTS)
        if not concepts:
            raise ValueError("at least one concept is required")
        return concepts

    @field_validator("insights", mode="before")
    @classmethod
    def drop_unnamed_insights(cls, v: Any) -> List[Any]:
        if not isinstance(v, list):
            return []
        return [item for item in v if isinstance(item, dict) and clean_text(item.get("concept"))]


class QuestionPayload(ModelPayload):
    question: str
    explanation: Optional[str] = None

    @field_validator("question", mode="before")
    @classmethod
    def validate_question(cls, v: Any) -> str:
        return _required_text(v)

    @field_validator("explanation", mode="before")
    @classmethod
    def blank_explanation(cls, v: Any) -> Optional[str]:
        return clean_text(v)


class MultipleChoicePayload(QuestionPayload):
    options: List[str]
    correct_answer: str = Field(alias="correctAnswer")

    @field_validator("options", mode="before")
    @classmethod
    def validate_options(cls, v: Any) -> List[str]:
        options = clean_text_list(v, len(OPTION_LABELS))
        if options is None or len(options) < len(OPTION_LABELS):
            raise ValueError(f"expected {len(OPTION_LABELS)} distinct options")
        return options

    @field_validator("correct_answer", mode="before")
    @classmethod
    def validate_label(cls, v: Any) -> str:
        label = _required_text(v).upper()[:1]
        if label not in OPTION_LABELS:
            raise ValueError(f"correct answer must be one of {', '.join(OPTION_LABELS)}")
        return label


class TrueFalsePayload(QuestionPayload):
    correct_answer: bool = Field(alias="correctAnswer")

    @field_validator("correct_answer", mode="before")
    @classmethod
    def validate_flag(cls, v: Any) -> bool:
        flag = parse_flag(v)
        if flag is None:
            raise ValueError("correct answer must be true or false")
        return flag


class ShortAnswerPayload(QuestionPayload):
    answer_key: str = Field(alias="answerKey")

    @field_validator("answer_key", mode="before")
    @classmethod
    def validate_answer_key(cls, v: Any) -> str:
        return _required_text(v)


class FlashcardPayload(ModelPayload):
    front: str
    back: str

    @field_validator("front", "back", mode="before")
    @classmethod
    def validate_side(cls, v: Any) -> str:
        return _required_text(v)


class BreakdownPayload(ModelPayload):
    warm_up: Optional[str] = Field(default=None, alias="warmUp")
    deep_dive: Optional[str] = Field(default=None, alias="deepDive")
    review: Optional[str] = None

    @field_validator("warm_up", "deep_dive", "review", mode="before")
    @classmethod
    def blank_is_missing(cls, v: Any) -> Optional[str]:
        return clean_text(v)


class StudyArtifactsPayload(ModelPayload):
    """Every field is optional; ``None`` means "keep the fallback value"."""

    headline: Optional[str] = None
    takeaways: Optional[List[str]] = None
    study_questions: Optional[List[str]] = Field(default=None, alias="studyQuestions")
    flashcards: Optional[List[FlashcardPayload]] = None
    action_steps: Optional[List[str]] = Field(default=None, alias="actionSteps")
    recommended_breakdown: Optional[BreakdownPayload] = Field(default=None, alias="recommendedBreakdown")

    @field_validator("headline", mode="before")
    @classmethod
    def truncate_headline(cls, v: Any) -> Optional[str]:
        text = clean_text(v)
        return text[:MAX_HEADLINE_CHARS] if text else None

    @field_validator("takeaways", "study_questions", "action_steps", mode="before")
    @classmethod
    def usable_list(cls, v: Any) -> Optional[List[str]]:
        return clean_text_list(v) or None

    @field_validator("flashcards", mode="before")
    @classmethod
    def complete_cards(cls, v: Any) -> Optional[List[Any]]:
        if not isinstance(v, list):
            return None
        cards = [
            card
            for card in v
            if isinstance(card, dict) and clean_text(card.get("front")) and clean_text(card.get("back"))
        ]
        return cards[:MAX_FLASHCARDS] or None

    @field_validator("recommended_breakdown", mode="before")
    @classmethod
    def breakdown_object(cls, v: Any) -> Optional[Any]:
        return v if isinstance(v, dict) else None

    @model_validator(mode="after")
    def cap_lists(self) -> "StudyArtifactsPayload":
        if self.takeaways is not None:
            self.takeaways = self.takeaways[:MAX_TAKEAWAYS]
        if self.study_questions is not None:
            self.study_questions = self.study_questions[:MAX_STUDY_QUESTIONS]
        if self.action_steps is not None:
            self.action_steps = self.action_steps[:MAX_ACTION_STEPS]
        return self

    def overlay(self, fallback: Dict[str, Any]) -> Dict[str, Any]:
        """Merge usable fields over a complete fallback, the breakdown key by key."""

        data = self.model_dump(exclude_none=True)
        breakdown = data.pop("recommended_breakdown", {})
        merged = {**fallback, **data}
        merged["recommended_breakdown"] = {**fallback["recommended_breakdown"], **breakdown}
        return merged


class RedFlagPayload(ModelPayload):
    has_red_flags: bool = Field(default=False, alias="hasRedFlags")
    questions: List[str] = Field(default_factory=list)

    @field_validator("has_red_flags", mode="before")
    @classmethod
    def lenient_flag(cls, v: Any) -> bool:
        return bool(parse_flag(v))

    @field_validator("questions", mode="before")
    @classmethod
    def lenient_questions(cls, v: Any) -> List[str]:
        return clean_text_list(v, MAX_RED_FLAG_QUESTIONS) or []
