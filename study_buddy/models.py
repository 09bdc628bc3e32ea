"""Data records produced by the note, quiz and study pack pipeline."""

from __future__ import annotations

import asyncio
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, Generic, List, Optional, TypeVar

T = TypeVar("T")


class CapabilityAvailability(str, Enum):
    UNAVAILABLE = "unavailable"
    DOWNLOADABLE = "downloadable"
    DOWNLOADING = "downloading"
    AVAILABLE = "available"

    @property
    def usable(self) -> bool:
        return self is not CapabilityAvailability.UNAVAILABLE


class QuestionType(str, Enum):
    MULTIPLE_CHOICE = "multiple_choice"
    TRUE_FALSE = "true_false"
    SHORT_ANSWER = "short_answer"


@dataclass(slots=True)
class ConceptInsight:
    concept: str
    key_fact: str
    question_cue: str

    @classmethod
    def generic(cls, concept: str) -> "ConceptInsight":
        return cls(
            concept=concept,
            key_fact=f"Understand the core idea behind {concept}.",
            question_cue=f"Explain why {concept} matters in the topic.",
        )


@dataclass(slots=True)
class ConceptExtraction:
    concepts: List[str]
    insights: Dict[str, ConceptInsight]


@dataclass(slots=True)
class LanguageDetection:
    language: str
    confidence: float
    candidates: List[Dict[str, Any]] = field(default_factory=list)


@dataclass(slots=True)
class TranslationInfo:
    source_language: str
    target_language: str
    translated_text: str


@dataclass(slots=True)
class Note:
    """Normalised result of processing raw text or image input."""

    id: str
    original_text: str
    summary: str
    concepts: List[str]
    concept_insights: Dict[str, ConceptInsight]
    source_language: str
    target_language: str
    processed_at: int
    type: str = "text"
    translation: Optional[TranslationInfo] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    image_data: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "Note":
        insights = {
            name: ConceptInsight(**value)
            for name, value in (payload.get("concept_insights") or {}).items()
        }
        translation = payload.get("translation")
        return cls(
            id=payload["id"],
            original_text=payload.get("original_text", ""),
            summary=payload.get("summary", ""),
            concepts=list(payload.get("concepts", [])),
            concept_insights=insights,
            source_language=payload.get("source_language", "en"),
            target_language=payload.get("target_language", "en"),
            processed_at=int(payload.get("processed_at", 0)),
            type=payload.get("type", "text"),
            translation=TranslationInfo(**translation) if translation else None,
            metadata=dict(payload.get("metadata") or {}),
            image_data=payload.get("image_data"),
        )


@dataclass(slots=True)
class Question:
    id: str
    type: str
    question: str
    concept: str
    explanation: str = ""
    options: Optional[List[str]] = None
    correct_answer: Optional[str] = None
    answer_key: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "Question":
        options = payload.get("options")
        return cls(
            id=payload["id"],
            type=payload["type"],
            question=payload["question"],
            concept=payload.get("concept", ""),
            explanation=payload.get("explanation", ""),
            options=list(options) if options is not None else None,
            correct_answer=payload.get("correct_answer"),
            answer_key=payload.get("answer_key"),
        )


@dataclass(slots=True)
class Quiz:
    id: str
    source_note_id: str
    title: str
    questions: List[Question]
    difficulty: str
    created_at: int
    is_local: bool = False
    completed_at: Optional[int] = None
    score: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "Quiz":
        return cls(
            id=payload["id"],
            source_note_id=payload.get("source_note_id", ""),
            title=payload.get("title", ""),
            questions=[Question.from_dict(item) for item in payload.get("questions", [])],
            difficulty=payload.get("difficulty", "medium"),
            created_at=int(payload.get("created_at", 0)),
            is_local=bool(payload.get("is_local", False)),
            completed_at=payload.get("completed_at"),
            score=payload.get("score"),
        )


@dataclass(slots=True)
class QuizProgress:
    """Running totals for one quiz; counters only ever grow."""

    quiz_id: str
    total_questions: int
    started_at: int
    correct_answers: int = 0
    total_time_spent: float = 0.0
    questions_answered: int = 0
    last_answered_at: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "QuizProgress":
        return cls(**payload)


@dataclass(slots=True)
class Flashcard:
    front: str
    back: str


@dataclass(slots=True)
class RecommendedBreakdown:
    warm_up: str
    deep_dive: str
    review: str


@dataclass(slots=True)
class StudyArtifacts:
    headline: str
    takeaways: List[str]
    study_questions: List[str]
    flashcards: List[Flashcard]
    action_steps: List[str]
    recommended_breakdown: RecommendedBreakdown

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "StudyArtifacts":
        return cls(
            headline=payload["headline"],
            takeaways=list(payload["takeaways"]),
            study_questions=list(payload["study_questions"]),
            flashcards=[Flashcard(**card) for card in payload["flashcards"]],
            action_steps=list(payload["action_steps"]),
            recommended_breakdown=RecommendedBreakdown(**payload["recommended_breakdown"]),
        )


@dataclass(slots=True)
class StudyMetrics:
    extracted_word_count: int
    estimated_reading_time_minutes: int


@dataclass(slots=True)
class PageSource:
    title: str
    url: str
    language: str
    meta_description: str = ""
    headings: List[str] = field(default_factory=list)
    selection_preview: str = ""


@dataclass(slots=True)
class StudyPack:
    id: str
    generated_at: int
    note_id: str
    summary: str
    concepts: List[str]
    metrics: StudyMetrics
    source: PageSource
    artifacts: StudyArtifacts
    micro_quiz: Optional[List[Question]] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "StudyPack":
        micro_quiz = payload.get("micro_quiz")
        return cls(
            id=payload["id"],
            generated_at=int(payload["generated_at"]),
            note_id=payload["note_id"],
            summary=payload.get("summary", ""),
            concepts=list(payload.get("concepts", [])),
            metrics=StudyMetrics(**payload["metrics"]),
            source=PageSource(**payload["source"]),
            artifacts=StudyArtifacts.from_dict(payload["artifacts"]),
            micro_quiz=[Question.from_dict(item) for item in micro_quiz] if micro_quiz is not None else None,
        )


@dataclass(slots=True)
class PageCapture:
    """Readable content handed over by the page capture collaborator."""

    title: str
    url: str
    text_content: str
    headings: List[str] = field(default_factory=list)
    meta_description: str = ""
    language: str = ""
    word_count: int = 0
    selection_preview: str = ""
    snippets: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "PageCapture":
        return cls(
            title=payload.get("title", "") or "",
            url=payload.get("url", "") or "",
            text_content=payload.get("textContent", payload.get("text_content", "")) or "",
            headings=list(payload.get("headings") or []),
            meta_description=payload.get("metaDescription", payload.get("meta_description", "")) or "",
            language=payload.get("language", "") or "",
            word_count=int(payload.get("wordCount", payload.get("word_count", 0)) or 0),
            selection_preview=payload.get("selectionPreview", payload.get("selection_preview", "")) or "",
            snippets=list(payload.get("snippets") or []),
        )


@dataclass(slots=True)
class PageAnalysis:
    has_red_flags: bool
    questions: List[str]


@dataclass
class Upgradable(Generic[T]):
    """Fast result plus an optional pending replacement.

    ``upgrade`` resolves to the better value, or ``None`` when nothing
    better turned up. Callers decide whether to await it.
    """

    immediate: T
    upgrade: Optional["asyncio.Future[Optional[T]]"] = None

    async def upgraded(self) -> T:
        if self.upgrade is None:
            return self.immediate
        better = await self.upgrade
        return better if better is not None else self.immediate
