"""Turns raw study material into normalised notes."""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Dict, List, Optional

from .config import StudyBuddyConfig
from .errors import (
    ExtractedTextTooShortError,
    InputTooShortError,
    MissingPayloadError,
    SummarizationFailedError,
)
from .manager import CapabilityManager
from .models import Note, TranslationInfo
from .utils import generate_id, timestamp_ms

logger = logging.getLogger(__name__)


class NoteProcessor:
    """Summarises text, extracts concepts and keeps processed notes in memory."""

    def __init__(self, manager: CapabilityManager, config: StudyBuddyConfig | None = None) -> None:
        self.manager = manager
        self.config = config or StudyBuddyConfig()
        self._notes: Dict[str, Note] = {}

    async def process_text_notes(
        self,
        text: str,
        *,
        target_language: Optional[str] = None,
        note_type: str = "text",
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Note:
        stripped = text.strip() if isinstance(text, str) else ""
        if len(stripped) < self.config.min_note_chars:
            raise InputTooShortError(f"Notes are too short. Minimum {self.config.min_note_chars} characters.")

        truncated = stripped[: self.config.max_note_chars]
        target = target_language or self.manager.preferences.output or "en"
        logger.debug("Processing %s notes (%s chars)", note_type, len(truncated))

        detection = await self.manager.detect_language(truncated)
        source = detection.language if detection else target

        translation: Optional[TranslationInfo] = None
        working_text = truncated
        if source.lower() != target.lower():
            translated = await self.manager.translate_text(truncated, target, source)
            if translated:
                translation = TranslationInfo(
                    source_language=source, target_language=target, translated_text=translated
                )
                working_text = translated
            else:
                logger.info("No translator for %s->%s, keeping original text", source, target)

        summary = await self.manager.summarize(working_text)
        if not summary or not summary.strip():
            raise SummarizationFailedError("Could not generate a summary for these notes")

        extraction = await self.manager.extract_concepts(summary)

        note = Note(
            id=generate_id("note"),
            original_text=truncated,
            summary=summary,
            concepts=extraction.concepts,
            concept_insights=extraction.insights,
            source_language=source,
            target_language=target,
            processed_at=timestamp_ms(),
            type=note_type,
            translation=translation,
            metadata=dict(metadata or {}),
        )
        self._notes[note.id] = note
        logger.info("Processed note %s with %s concepts", note.id, len(note.concepts))
        return note

    async def process_image_notes(self, image_data: Any, **options: Any) -> Note:
        if not image_data:
            raise MissingPayloadError("No image was provided")

        extracted = await self.manager.extract_text_from_image(image_data)
        if not extracted or len(extracted.strip()) < self.config.min_note_chars:
            raise ExtractedTextTooShortError("Could not extract enough text from the image")

        note = await self.process_text_notes(extracted, **options)
        note = replace(note, type="image", image_data=image_data if isinstance(image_data, str) else None)
        self._notes[note.id] = note
        return note

    def validate_text_content(self, text: Any) -> Dict[str, Any]:
        if not isinstance(text, str):
            return {"valid": False, "error": "Text must be a string"}
        trimmed = text.strip()
        if len(trimmed) < self.config.min_note_chars:
            return {"valid": False, "error": f"Text must be at least {self.config.min_note_chars} characters"}
        if len(trimmed) > self.config.max_validation_chars:
            return {
                "valid": False,
                "error": f"Text is too long (maximum {self.config.max_validation_chars:,} characters)",
            }
        return {"valid": True}

    def get_note(self, note_id: str) -> Note | None:
        return self._notes.get(note_id)

    def all_notes(self) -> List[Note]:
        return list(self._notes.values())

    def clear_cache(self) -> None:
        self._notes.clear()

    def stats(self) -> Dict[str, Any]:
        notes = self.all_notes()
        return {
            "total_notes": len(notes),
            "text_notes": sum(1 for note in notes if note.type == "text"),
            "image_notes": sum(1 for note in notes if note.type == "image"),
            "average_concepts": (sum(len(note.concepts) for note in notes) / len(notes)) if notes else 0,
            "last_processed": max((note.processed_at for note in notes), default=None),
        }
