"""Study packs: a note plus learning artifacts and a short preview quiz.

A pack is persisted right away with artifacts derived locally from the
note. A model-backed version of the artifacts is requested in the
background and, when it differs, replaces the stored artifacts under the
same pack id.
"""

from __future__ import annotations

import asyncio
import logging
import math
from dataclasses import asdict, replace
from typing import Any, List, Optional

from pydantic import ValidationError

from .config import StudyBuddyConfig
from .errors import NoReadableTextError, StudyBuddyError
from .library import StudyLibrary
from .manager import CapabilityManager
from .models import (
    ConceptInsight,
    Flashcard,
    Note,
    PageCapture,
    PageSource,
    Question,
    RecommendedBreakdown,
    StudyArtifacts,
    StudyMetrics,
    StudyPack,
    Upgradable,
)
from .notes import NoteProcessor
from .payloads import (
    MAX_ACTION_STEPS,
    MAX_FLASHCARDS,
    MAX_STUDY_QUESTIONS,
    MAX_TAKEAWAYS,
    StudyArtifactsPayload,
)
from .quiz import QuizGenerator
from .utils import generate_id, split_sentences, timestamp_ms, truncate

logger = logging.getLogger(__name__)

MICRO_QUIZ_SIZE = 3
WORDS_PER_MINUTE = 200

STUDY_PACK_PROMPT = """You are a study coach turning a web page into a study pack.
Title: {title}
Summary:
\"\"\"
{summary}
\"\"\"
Key concepts: {concepts}
Return JSON with this exact shape:
{{
  "headline": "one line hook",
  "takeaways": ["up to 5 concise takeaways"],
  "studyQuestions": ["up to 6 open study questions"],
  "flashcards": [{{"front": "prompt", "back": "answer"}}],
  "actionSteps": ["up to 5 concrete next steps"],
  "recommendedBreakdown": {{"warmUp": "...", "deepDive": "...", "review": "..."}}
}}"""


def build_metrics(capture: PageCapture, text: str) -> StudyMetrics:
    words = capture.word_count or len(text.split())
    return StudyMetrics(
        extracted_word_count=words,
        estimated_reading_time_minutes=max(1, math.ceil(words / WORDS_PER_MINUTE)),
    )


def fallback_artifacts(note: Note, source: PageSource, metrics: StudyMetrics) -> StudyArtifacts:
    """Artifacts derived only from the note's summary and concepts."""

    concepts = note.concepts
    insights = [note.concept_insights.get(concept) or ConceptInsight.generic(concept) for concept in concepts]
    sentences = [f"{sentence}." for sentence in split_sentences(note.summary)]

    headline = source.title.strip() or (sentences[0] if sentences else "") or "Study pack"
    takeaways = sentences[:MAX_TAKEAWAYS] or [insight.key_fact for insight in insights[:MAX_TAKEAWAYS]]
    if not takeaways:
        takeaways = [truncate(note.summary, 200) or headline]

    study_questions = [insight.question_cue for insight in insights[:MAX_STUDY_QUESTIONS]]
    if len(study_questions) < MAX_STUDY_QUESTIONS:
        study_questions.append(f"What is the main argument of \"{truncate(headline, 80)}\"?")

    flashcards = [Flashcard(front=insight.concept, back=insight.key_fact) for insight in insights[:MAX_FLASHCARDS]]
    if not flashcards:
        flashcards = [Flashcard(front="Main idea", back=truncate(note.summary, 200) or headline)]

    minutes = metrics.estimated_reading_time_minutes
    action_steps = [f"Skim the headline and takeaways (about {max(1, minutes // 4)} min)."]
    if concepts:
        action_steps.append(f"Write a one-sentence definition of {concepts[0]} from memory.")
    if len(concepts) > 1:
        action_steps.append(f"Explain how {concepts[0]} connects to {concepts[1]} in a short paragraph.")
    action_steps.append("Answer the micro quiz without looking back at the page.")
    action_steps.append("Review the flashcards again tomorrow.")

    focus = ", ".join(concepts[:3]) or "the main ideas"
    breakdown = RecommendedBreakdown(
        warm_up=f"{max(1, minutes // 4)} min: skim the summary and takeaways.",
        deep_dive=f"{max(1, minutes // 2)} min: read the page focusing on {focus}.",
        review=f"{max(1, minutes // 4)} min: flashcards and micro quiz.",
    )
    return StudyArtifacts(
        headline=headline,
        takeaways=takeaways[:MAX_TAKEAWAYS],
        study_questions=study_questions[:MAX_STUDY_QUESTIONS],
        flashcards=flashcards[:MAX_FLASHCARDS],
        action_steps=action_steps[:MAX_ACTION_STEPS],
        recommended_breakdown=breakdown,
    )


def normalize_study_pack_artifacts(raw: Any, fallback: StudyArtifacts) -> StudyArtifacts:
    """Overlay a possibly partial model payload on complete fallback artifacts."""

    fields = asdict(fallback)
    try:
        payload = StudyArtifactsPayload.model_validate(raw)
    except ValidationError as exc:
        logger.info("Study pack artifacts failed validation (%s errors), keeping local artifacts", exc.error_count())
        return StudyArtifacts.from_dict(fields)
    return StudyArtifacts.from_dict(payload.overlay(fields))


class StudyPackBuilder:
    def __init__(
        self,
        manager: CapabilityManager,
        notes: NoteProcessor,
        quizzes: QuizGenerator,
        library: StudyLibrary,
        config: StudyBuddyConfig | None = None,
    ) -> None:
        self.manager = manager
        self.notes = notes
        self.quizzes = quizzes
        self.library = library
        self.config = config or notes.config

    async def build(self, capture: PageCapture, *, difficulty: str = "medium") -> Upgradable[StudyPack]:
        text = (capture.text_content or "").strip()
        if len(text) < self.config.min_note_chars:
            raise NoReadableTextError("No readable text was captured from this page")

        note = await self.notes.process_text_notes(
            text,
            note_type="web",
            metadata={"title": capture.title, "url": capture.url, "language": capture.language},
        )
        await self.library.save_note(note)

        micro_quiz = await self._micro_quiz(note, difficulty)
        metrics = build_metrics(capture, text)
        source = PageSource(
            title=capture.title,
            url=capture.url,
            language=capture.language or note.source_language,
            meta_description=capture.meta_description,
            headings=list(capture.headings),
            selection_preview=capture.selection_preview,
        )
        pack = StudyPack(
            id=generate_id("pack"),
            generated_at=timestamp_ms(),
            note_id=note.id,
            summary=note.summary,
            concepts=list(note.concepts),
            metrics=metrics,
            source=source,
            artifacts=fallback_artifacts(note, source, metrics),
            micro_quiz=micro_quiz,
        )
        await self.library.save_study_pack(pack)
        logger.info("Saved study pack %s with local artifacts", pack.id)

        upgrade = asyncio.ensure_future(self._upgrade(pack))
        return Upgradable(immediate=pack, upgrade=upgrade)

    async def _micro_quiz(self, note: Note, difficulty: str) -> Optional[List[Question]]:
        options = {"question_count": MICRO_QUIZ_SIZE, "difficulty": difficulty}
        try:
            quiz = await self.quizzes.generate_quiz(note, **options)
        except StudyBuddyError as exc:
            logger.info("Model micro quiz unavailable (%s), trying local templates", exc)
            try:
                quiz = await self.quizzes.generate_quiz_local(note, **options)
            except StudyBuddyError as local_exc:
                logger.warning("Study pack will not include a micro quiz: %s", local_exc)
                return None
        return quiz.questions[:MICRO_QUIZ_SIZE]

    async def _upgrade(self, pack: StudyPack) -> Optional[StudyPack]:
        prompt = STUDY_PACK_PROMPT.format(
            title=pack.source.title or "Untitled page",
            summary=pack.summary,
            concepts=", ".join(pack.concepts) or "none",
        )
        try:
            raw = await self.manager.request_structured_json(prompt, None)
            if not isinstance(raw, dict):
                return None
            artifacts = normalize_study_pack_artifacts(raw, pack.artifacts)
            if artifacts == pack.artifacts:
                return None
            upgraded = replace(pack, artifacts=artifacts)
            current = await self.library.get_last_study_pack()
            if current is not None and current.id != pack.id:
                logger.info("Study pack %s was superseded, not persisting its upgrade", pack.id)
                return upgraded
            await self.library.save_study_pack(upgraded)
        except Exception:
            logger.exception("Study pack %s upgrade failed", pack.id)
            return None
        logger.info("Upgraded study pack %s with model artifacts", pack.id)
        return upgraded
