"""Quiz generation from note concepts, with answer evaluation."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional, Sequence

import numpy as np
from pydantic import ValidationError

from .errors import (
    InvalidQuestionCountError,
    NoConceptsAvailableError,
    NoQuestionsGeneratedError,
    QuestionGenerationError,
    StudyBuddyError,
)
from .manager import CapabilityManager
from .models import ConceptInsight, Note, Question, QuestionType, Quiz, Upgradable
from .payloads import OPTION_LABELS, MultipleChoicePayload, ShortAnswerPayload, TrueFalsePayload
from .utils import generate_id, timestamp_ms

logger = logging.getLogger(__name__)

DEFAULT_QUESTION_TYPES = ("multipleChoice", "trueFalse", "shortAnswer")

_TYPE_NAMES = {
    "multipleChoice": QuestionType.MULTIPLE_CHOICE,
    "trueFalse": QuestionType.TRUE_FALSE,
    "shortAnswer": QuestionType.SHORT_ANSWER,
}

DIFFICULTY_MODIFIERS = {
    "easy": "Make this question straightforward and basic. Use simple language.",
    "medium": "Make this question moderately challenging. Include some nuance.",
    "hard": "Make this question challenging and thought-provoking. Test deep understanding.",
}

_AI_PROMPTS = {
    QuestionType.MULTIPLE_CHOICE: (
        "Write one multiple choice question about the concept \"{concept}\".\n"
        "Key fact: {key_fact}\nQuestion cue: {question_cue}\n"
        "Return JSON: {{\"question\": string, \"options\": [4 distinct strings], "
        "\"correctAnswer\": \"A\" | \"B\" | \"C\" | \"D\", \"explanation\": string}}"
    ),
    QuestionType.TRUE_FALSE: (
        "Write one true/false statement about the concept \"{concept}\".\n"
        "Key fact: {key_fact}\nQuestion cue: {question_cue}\n"
        "Return JSON: {{\"question\": string, \"correctAnswer\": true | false, \"explanation\": string}}"
    ),
    QuestionType.SHORT_ANSWER: (
        "Write one short answer question about the concept \"{concept}\".\n"
        "Key fact: {key_fact}\nQuestion cue: {question_cue}\n"
        "Return JSON: {{\"question\": string, \"answerKey\": string, \"explanation\": string}}"
    ),
}

_AI_PAYLOADS = {
    QuestionType.MULTIPLE_CHOICE: MultipleChoicePayload,
    QuestionType.TRUE_FALSE: TrueFalsePayload,
    QuestionType.SHORT_ANSWER: ShortAnswerPayload,
}


def question_type_for(name: str) -> QuestionType:
    if name in _TYPE_NAMES:
        return _TYPE_NAMES[name]
    try:
        return QuestionType(name)
    except ValueError:
        logger.warning("Unknown question type %r, using short answer", name)
        return QuestionType.SHORT_ANSWER


def _sentence_case(text: str) -> str:
    return text[:1].lower() + text[1:] if text else text


def local_question_fields(
    concept: str, question_type: QuestionType, difficulty: str, insight: ConceptInsight
) -> Dict[str, Any]:
    """Fill the difficulty-tiered template for one concept.

    The correct option is always first and true/false statements are always
    true, since the only fact known locally is the insight's key fact.
    """

    fact = (insight.key_fact or "").strip() or ConceptInsight.generic(concept).key_fact
    templates: Dict[str, Dict[QuestionType, Dict[str, Any]]] = {
        "easy": {
            QuestionType.MULTIPLE_CHOICE: {
                "question": f"Which statement best describes {concept}?",
                "options": [
                    fact,
                    f"A process that has nothing to do with {concept}",
                    f"An unrelated example often confused with {concept}",
                    f"A historical footnote unrelated to {concept}",
                ],
            },
            QuestionType.TRUE_FALSE: {"question": f"True or false: {fact}"},
            QuestionType.SHORT_ANSWER: {"question": f"Briefly define {concept}.", "answer_key": fact},
        },
        "medium": {
            QuestionType.MULTIPLE_CHOICE: {
                "question": f"What is the most relevant point about {concept}?",
                "options": [
                    fact,
                    f"{concept} only matters in rare edge cases",
                    f"{concept} is a purely historical term",
                    f"{concept} has no link to the rest of the topic",
                ],
            },
            QuestionType.TRUE_FALSE: {"question": f"True or false, about {concept}: {_sentence_case(fact)}"},
            QuestionType.SHORT_ANSWER: {"question": f"Explain the importance of {concept}.", "answer_key": fact},
        },
        "hard": {
            QuestionType.MULTIPLE_CHOICE: {
                "question": f"Which statement captures the underlying mechanism of {concept}?",
                "options": [
                    fact,
                    f"{concept} works independently of every related idea",
                    f"{concept} contradicts the main argument of the material",
                    f"{concept} is just another name for the overall topic",
                ],
            },
            QuestionType.TRUE_FALSE: {"question": f"Evaluate this claim about {concept}: {_sentence_case(fact)}"},
            QuestionType.SHORT_ANSWER: {
                "question": f"Critically analyse {concept}. {insight.question_cue}",
                "answer_key": fact,
            },
        },
    }
    tier = templates.get(difficulty, templates["medium"])
    fields = dict(tier[question_type])
    fields["explanation"] = f"Concept: {concept} (difficulty: {difficulty}). {fact}"
    if question_type is QuestionType.MULTIPLE_CHOICE:
        fields["correct_answer"] = "A"
    elif question_type is QuestionType.TRUE_FALSE:
        fields["correct_answer"] = "true"
    return fields


def evaluate_answer(question: Question, user_answer: Any) -> bool:
    """Grade a single answer.

    Short answers use a bag-of-words overlap against the answer key, not
    semantic grading.
    """

    if user_answer is None:
        return False
    answer = str(user_answer)
    if question.type == QuestionType.MULTIPLE_CHOICE.value:
        return answer == question.correct_answer
    if question.type == QuestionType.TRUE_FALSE.value:
        return answer.strip().lower() == (question.correct_answer or "").strip().lower()
    if question.type == QuestionType.SHORT_ANSWER.value:
        key_tokens = set((question.answer_key or "").lower().split())
        if not key_tokens:
            return False
        answer_tokens = set(answer.lower().split())
        overlap = len(key_tokens & answer_tokens)
        return overlap >= min(2, 0.3 * len(key_tokens))
    return False


class QuizGenerator:
    """Builds quizzes from notes through the model or local templates."""

    def __init__(
        self,
        manager: CapabilityManager,
        *,
        rng: np.random.Generator | None = None,
        shuffle_choices: bool = False,
    ) -> None:
        self.manager = manager
        self.rng = rng or np.random.default_rng()
        self.shuffle_choices = shuffle_choices
        self._quizzes: Dict[str, Quiz] = {}

    async def generate_quiz(
        self,
        note: Note,
        *,
        question_count: int = 5,
        difficulty: str = "medium",
        question_types: Sequence[str] = DEFAULT_QUESTION_TYPES,
    ) -> Quiz:
        return await self._build(note, question_count, difficulty, question_types, use_ai=True)

    async def generate_quiz_local(
        self,
        note: Note,
        *,
        question_count: int = 5,
        difficulty: str = "medium",
        question_types: Sequence[str] = DEFAULT_QUESTION_TYPES,
    ) -> Quiz:
        return await self._build(note, question_count, difficulty, question_types, use_ai=False)

    async def create_quiz_with_fast_fallback(
        self,
        note: Note,
        *,
        question_count: int = 5,
        difficulty: str = "medium",
        question_types: Sequence[str] = DEFAULT_QUESTION_TYPES,
    ) -> Upgradable[Quiz]:
        """Race model and local generation; the first non-empty quiz wins.

        When the local quiz wins, ``upgrade`` resolves to the model quiz once
        it is ready (or ``None`` if it failed or matches the local one).
        """

        if question_count < 1:
            raise InvalidQuestionCountError(f"Question count must be at least 1, got {question_count}")
        options = {"question_count": question_count, "difficulty": difficulty, "question_types": question_types}
        ai_task = asyncio.ensure_future(self._attempt("ai", self.generate_quiz(note, **options)))
        local_task = asyncio.ensure_future(self._attempt("local", self.generate_quiz_local(note, **options)))

        done, _ = await asyncio.wait({ai_task, local_task}, return_when=asyncio.FIRST_COMPLETED)
        if ai_task in done and ai_task.result() is not None:
            if not local_task.done():
                local_task.cancel()
            return Upgradable(immediate=ai_task.result())

        if local_task in done and local_task.result() is not None:
            local_quiz = local_task.result()
            upgrade = asyncio.ensure_future(self._upgrade_from(ai_task, local_quiz))
            return Upgradable(immediate=local_quiz, upgrade=upgrade)

        other = local_task if ai_task in done else ai_task
        quiz = await other
        if quiz is None:
            raise NoQuestionsGeneratedError("Neither model nor local generation produced questions")
        return Upgradable(immediate=quiz)

    @staticmethod
    async def _attempt(label: str, pending) -> Optional[Quiz]:
        try:
            return await pending
        except StudyBuddyError as exc:
            logger.info("%s quiz attempt produced nothing: %s", label, exc)
            return None

    @staticmethod
    async def _upgrade_from(ai_task: "asyncio.Future[Optional[Quiz]]", local_quiz: Quiz) -> Optional[Quiz]:
        ai_quiz = await ai_task
        if ai_quiz is None or ai_quiz.questions == local_quiz.questions:
            return None
        logger.info("Model quiz %s is ready to replace local quiz %s", ai_quiz.id, local_quiz.id)
        return ai_quiz

    async def _build(
        self,
        note: Note,
        question_count: int,
        difficulty: str,
        question_types: Sequence[str],
        *,
        use_ai: bool,
    ) -> Quiz:
        if note is None or not note.concepts:
            raise NoConceptsAvailableError("There are no concepts to build a quiz from")
        if question_count < 1:
            raise InvalidQuestionCountError(f"Question count must be at least 1, got {question_count}")

        types = list(question_types) or list(DEFAULT_QUESTION_TYPES)
        concepts = self.select_concepts(note.concepts, question_count)
        logger.debug("Generating %s quiz over %s concepts", "model" if use_ai else "local", len(concepts))

        questions: List[Question] = []
        for index, concept in enumerate(concepts):
            question_type = question_type_for(types[index % len(types)])
            insight = note.concept_insights.get(concept) or ConceptInsight.generic(concept)
            try:
                if use_ai:
                    fields = await self._ai_question_fields(concept, question_type, difficulty, insight)
                else:
                    fields = self._local_question_fields(concept, question_type, difficulty, insight)
            except StudyBuddyError as exc:
                logger.warning("Skipping concept %r: %s", concept, exc)
                continue
            questions.append(Question(id=f"q_{index + 1}", type=question_type.value, concept=concept, **fields))

        if not questions:
            raise NoQuestionsGeneratedError("Could not generate any valid questions")

        prefix = "Quiz" if use_ai else "Local Quiz"
        quiz = Quiz(
            id=generate_id("quiz"),
            source_note_id=note.id,
            title=f"{prefix} - {note.summary[:50]}..." if note.summary else f"{prefix} - Study Session",
            questions=questions,
            difficulty=difficulty,
            created_at=timestamp_ms(),
            is_local=not use_ai,
        )
        self._quizzes[quiz.id] = quiz
        logger.info("Generated quiz %s with %s questions", quiz.id, len(questions))
        return quiz

    def select_concepts(self, concepts: Sequence[str], question_count: int) -> List[str]:
        """Use every concept, or a uniformly shuffled subset when there are too many."""

        if len(concepts) <= question_count:
            return list(concepts)
        order = self.rng.permutation(len(concepts))[:question_count]
        return [concepts[int(position)] for position in order]

    def _local_question_fields(
        self, concept: str, question_type: QuestionType, difficulty: str, insight: ConceptInsight
    ) -> Dict[str, Any]:
        fields = local_question_fields(concept, question_type, difficulty, insight)
        if self.shuffle_choices and question_type is QuestionType.MULTIPLE_CHOICE:
            options = list(fields["options"])
            slot = int(self.rng.integers(len(options)))
            options[0], options[slot] = options[slot], options[0]
            fields["options"] = options
            fields["correct_answer"] = OPTION_LABELS[slot]
        return fields

    async def _ai_question_fields(
        self, concept: str, question_type: QuestionType, difficulty: str, insight: ConceptInsight
    ) -> Dict[str, Any]:
        prompt = _AI_PROMPTS[question_type].format(
            concept=concept, key_fact=insight.key_fact, question_cue=insight.question_cue
        )
        prompt = f"{prompt}\n\nDifficulty level: {DIFFICULTY_MODIFIERS.get(difficulty, DIFFICULTY_MODIFIERS['medium'])}"
        payload = await self.manager.request_structured_json(prompt, None)
        if not isinstance(payload, dict):
            raise QuestionGenerationError(f"No structured question returned for {concept}")

        try:
            parsed = _AI_PAYLOADS[question_type].model_validate(payload)
        except ValidationError as exc:
            raise QuestionGenerationError(f"Malformed {question_type.value} question for {concept}") from exc
        fields = parsed.model_dump(exclude={"explanation"})
        if question_type is QuestionType.TRUE_FALSE:
            fields["correct_answer"] = "true" if fields["correct_answer"] else "false"
        fields["explanation"] = parsed.explanation or f"Concept: {concept}"
        return fields

    def evaluate_answer(self, question: Question, user_answer: Any) -> bool:
        return evaluate_answer(question, user_answer)

    def get_quiz(self, quiz_id: str) -> Quiz | None:
        return self._quizzes.get(quiz_id)

    def all_quizzes(self) -> List[Quiz]:
        return list(self._quizzes.values())

    def clear_cache(self) -> None:
        self._quizzes.clear()

    def stats(self) -> Dict[str, Any]:
        quizzes = self.all_quizzes()
        total_questions = sum(len(quiz.questions) for quiz in quizzes)
        return {
            "total_quizzes": len(quizzes),
            "total_questions": total_questions,
            "average_questions_per_quiz": total_questions / len(quizzes) if quizzes else 0,
            "completed_quizzes": sum(1 for quiz in quizzes if quiz.completed_at),
            "last_generated": max((quiz.created_at for quiz in quizzes), default=None),
        }
