"""End-to-end orchestration for Study Buddy."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Dict, Optional, Sequence

from .config import StudyBuddyConfig
from .critical import CommunicationAssistant, PageAnalyzer
from .errors import NotFoundError, OperationResult
from .library import StudyLibrary
from .manager import CapabilityManager
from .models import PageCapture, Quiz, Upgradable
from .notes import NoteProcessor
from .options import LanguagePreferences
from .quiz import DEFAULT_QUESTION_TYPES, QuizGenerator
from .storage import SQLiteStorage, Storage
from .study_pack import StudyPackBuilder

logger = logging.getLogger(__name__)


class StudyBuddy:
    """Coordinates the modules behind each user-facing action.

    Every public coroutine returns an ``OperationResult`` instead of raising,
    so a UI layer only has to render ``message`` on failure.
    """

    def __init__(
        self,
        *,
        manager: CapabilityManager | None = None,
        storage: Storage | None = None,
        config: StudyBuddyConfig | None = None,
        quiz_generator: QuizGenerator | None = None,
    ) -> None:
        self.config = config or StudyBuddyConfig()
        self.manager = manager or CapabilityManager(
            preferences=LanguagePreferences(input=list(self.config.input_languages), output=self.config.output_language)
        )
        self.storage = storage or SQLiteStorage(self.config.db_path)
        self.library = StudyLibrary(self.storage, history_limit=self.config.history_limit)
        self.notes = NoteProcessor(self.manager, self.config)
        self.quizzes = quiz_generator or QuizGenerator(self.manager)
        self.packs = StudyPackBuilder(self.manager, self.notes, self.quizzes, self.library, self.config)
        self.page_analyzer = PageAnalyzer(self.manager)
        self.communication = CommunicationAssistant(self.manager)

    async def _guard(self, action: str, pending: Awaitable[Any]) -> OperationResult:
        try:
            return OperationResult.success(await pending)
        except Exception as exc:
            result = OperationResult.failure(exc)
            if result.error_kind == "Unexpected":
                logger.exception("%s failed unexpectedly", action)
            else:
                logger.warning("%s failed: %s", action, result.message)
            return result

    async def process_text(self, text: str, *, target_language: Optional[str] = None) -> OperationResult:
        async def run():
            note = await self.notes.process_text_notes(text, target_language=target_language)
            await self.library.save_note(note)
            return note

        return await self._guard("process_text", run())

    async def process_image(self, image_data: Any) -> OperationResult:
        async def run():
            note = await self.notes.process_image_notes(image_data)
            await self.library.save_note(note)
            return note

        return await self._guard("process_image", run())

    async def create_quiz(
        self,
        note_id: str,
        *,
        question_count: Optional[int] = None,
        difficulty: Optional[str] = None,
        question_types: Sequence[str] = DEFAULT_QUESTION_TYPES,
    ) -> OperationResult:
        """Return an ``Upgradable[Quiz]``; a model quiz replacing a local one is persisted too."""

        async def run() -> Upgradable[Quiz]:
            note = self.notes.get_note(note_id) or await self.library.get_note(note_id)
            result = await self.quizzes.create_quiz_with_fast_fallback(
                note,
                question_count=question_count or self.config.question_count,
                difficulty=difficulty or self.config.difficulty,
                question_types=question_types,
            )
            await self.library.save_quiz(result.immediate)
            if result.upgrade is not None:
                result.upgrade = asyncio.ensure_future(self._persist_quiz_upgrade(result.upgrade))
            return result

        return await self._guard("create_quiz", run())

    async def _persist_quiz_upgrade(self, pending: "asyncio.Future[Optional[Quiz]]") -> Optional[Quiz]:
        try:
            quiz = await pending
            if quiz is not None:
                await self.library.save_quiz(quiz)
        except Exception:
            logger.exception("Quiz upgrade failed")
            return None
        return quiz

    async def submit_answer(
        self, quiz_id: str, question_id: str, user_answer: Any, *, time_spent: float = 0.0
    ) -> OperationResult:
        async def run() -> Dict[str, Any]:
            quiz = self.quizzes.get_quiz(quiz_id) or await self.library.get_quiz(quiz_id)
            question = next((item for item in quiz.questions if item.id == question_id), None)
            if question is None:
                raise NotFoundError(f"Question {question_id} was not found in quiz {quiz_id}")
            correct = self.quizzes.evaluate_answer(question, user_answer)
            progress = await self.library.update_quiz_progress(
                quiz_id, is_correct=correct, time_spent=time_spent, total_questions=len(quiz.questions)
            )
            return {"correct": correct, "explanation": question.explanation, "progress": progress}

        return await self._guard("submit_answer", run())

    async def build_study_pack(self, capture: PageCapture | Dict[str, Any]) -> OperationResult:
        if isinstance(capture, dict):
            capture = PageCapture.from_dict(capture)
        return await self._guard("build_study_pack", self.packs.build(capture, difficulty=self.config.difficulty))

    async def analyze_page(self, page_text: str) -> OperationResult:
        return await self._guard("analyze_page", self.page_analyzer.analyze(page_text))

    async def suggest_rewrite(self, text: str) -> OperationResult:
        return await self._guard("suggest_rewrite", self.communication.suggest_rewrite(text))

    async def close(self) -> None:
        await self.manager.destroy()
        close = getattr(self.storage, "close", None)
        if callable(close):
            close()
