"""Runtime configuration for Study Buddy read from the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import List

_DEFAULT_MIN_NOTE_CHARS = int(os.getenv("STUDY_BUDDY_MIN_NOTE_CHARS", "50"))
_DEFAULT_MAX_NOTE_CHARS = int(os.getenv("STUDY_BUDDY_MAX_NOTE_CHARS", "10000"))


def _split_languages(raw: str) -> List[str]:
    return [part.strip() for part in raw.split(",") if part.strip()] or ["en"]


@dataclass(slots=True)
class StudyBuddyConfig:
    """Limits, defaults and language preferences shared by the pipeline."""

    min_note_chars: int = _DEFAULT_MIN_NOTE_CHARS
    max_note_chars: int = _DEFAULT_MAX_NOTE_CHARS
    max_validation_chars: int = 50000
    output_language: str = "en"
    input_languages: List[str] = field(default_factory=lambda: ["en"])
    question_count: int = 5
    difficulty: str = "medium"
    db_path: str = ":memory:"
    history_limit: int = 50
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "StudyBuddyConfig":
        return cls(
            min_note_chars=int(os.getenv("STUDY_BUDDY_MIN_NOTE_CHARS", str(_DEFAULT_MIN_NOTE_CHARS))),
            max_note_chars=int(os.getenv("STUDY_BUDDY_MAX_NOTE_CHARS", str(_DEFAULT_MAX_NOTE_CHARS))),
            max_validation_chars=int(os.getenv("STUDY_BUDDY_MAX_VALIDATION_CHARS", "50000")),
            output_language=os.getenv("STUDY_BUDDY_OUTPUT_LANGUAGE", "en"),
            input_languages=_split_languages(os.getenv("STUDY_BUDDY_INPUT_LANGUAGES", "en")),
            question_count=int(os.getenv("STUDY_BUDDY_QUESTION_COUNT", "5")),
            difficulty=os.getenv("STUDY_BUDDY_DIFFICULTY", "medium"),
            db_path=os.path.expanduser(os.getenv("STUDY_BUDDY_DB_PATH", ":memory:")),
            history_limit=int(os.getenv("STUDY_BUDDY_HISTORY_LIMIT", "50")),
            log_level=os.getenv("STUDY_BUDDY_LOG_LEVEL", "INFO").upper(),
        )
