"""Persisted study history: notes, quizzes, progress and the last study pack.

Every write replaces the whole value stored under a key. Two flows that
read-modify-write the same key concurrently can lose an update; this is a
single-user store and does not guard against that.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from .errors import NotFoundError
from .models import Note, Quiz, QuizProgress, StudyPack
from .storage import Storage
from .utils import timestamp_ms

logger = logging.getLogger(__name__)

NOTES_KEY = "notes_history"
QUIZZES_KEY = "quizzes"
PROGRESS_KEY = "quiz_progress"
LAST_STUDY_PACK_KEY = "last_study_pack"


class StudyLibrary:
    def __init__(self, storage: Storage, *, history_limit: int = 50) -> None:
        self.storage = storage
        self.history_limit = history_limit

    async def _read(self, key: str, default):
        stored = await self.storage.get([key])
        return stored.get(key, default)

    async def save_note(self, note: Note) -> None:
        history = [item for item in await self._read(NOTES_KEY, []) if item.get("id") != note.id]
        history.insert(0, note.to_dict())
        await self.storage.set({NOTES_KEY: history[: self.history_limit]})

    async def list_notes(self) -> List[Note]:
        return [Note.from_dict(item) for item in await self._read(NOTES_KEY, [])]

    async def get_note(self, note_id: str) -> Note:
        for item in await self._read(NOTES_KEY, []):
            if item.get("id") == note_id:
                return Note.from_dict(item)
        raise NotFoundError(f"Note {note_id} was not found")

    async def delete_note(self, note_id: str) -> None:
        history = await self._read(NOTES_KEY, [])
        remaining = [item for item in history if item.get("id") != note_id]
        if len(remaining) == len(history):
            raise NotFoundError(f"Note {note_id} was not found")
        await self.storage.set({NOTES_KEY: remaining})
        logger.info("Deleted note %s from history", note_id)

    async def save_quiz(self, quiz: Quiz) -> None:
        quizzes = await self._read(QUIZZES_KEY, {})
        quizzes[quiz.id] = quiz.to_dict()
        await self.storage.set({QUIZZES_KEY: quizzes})

    async def get_quiz(self, quiz_id: str) -> Quiz:
        quizzes = await self._read(QUIZZES_KEY, {})
        if quiz_id not in quizzes:
            raise NotFoundError(f"Quiz {quiz_id} was not found")
        return Quiz.from_dict(quizzes[quiz_id])

    async def update_quiz_progress(
        self,
        quiz_id: str,
        *,
        is_correct: bool,
        time_spent: float,
        total_questions: Optional[int] = None,
    ) -> QuizProgress:
        """Fold one answered question into the quiz's running totals."""

        records = await self._read(PROGRESS_KEY, {})
        now = timestamp_ms()
        if quiz_id in records:
            progress = QuizProgress.from_dict(records[quiz_id])
        else:
            progress = QuizProgress(quiz_id=quiz_id, total_questions=total_questions or 0, started_at=now)
        if total_questions is not None:
            progress.total_questions = max(progress.total_questions, total_questions)
        progress.questions_answered += 1
        progress.correct_answers += 1 if is_correct else 0
        progress.total_time_spent += max(0.0, float(time_spent))
        progress.last_answered_at = now
        records[quiz_id] = progress.to_dict()
        await self.storage.set({PROGRESS_KEY: records})
        return progress

    async def get_quiz_progress(self, quiz_id: str) -> Optional[QuizProgress]:
        record = (await self._read(PROGRESS_KEY, {})).get(quiz_id)
        return QuizProgress.from_dict(record) if record else None

    async def save_study_pack(self, pack: StudyPack) -> None:
        await self.storage.set({LAST_STUDY_PACK_KEY: pack.to_dict()})

    async def get_last_study_pack(self) -> Optional[StudyPack]:
        record = await self._read(LAST_STUDY_PACK_KEY, None)
        return StudyPack.from_dict(record) if record else None
