"""Study Buddy core package: on-device capability access with heuristic fallbacks."""

from .capabilities import CapabilityRegistry, CapabilityResolver
from .config import StudyBuddyConfig
from .errors import OperationResult, StudyBuddyError
from .manager import CapabilityManager
from .models import Note, PageCapture, Question, Quiz, QuizProgress, StudyPack, Upgradable
from .notes import NoteProcessor
from .pipeline import StudyBuddy
from .quiz import QuizGenerator, evaluate_answer
from .sessions import SessionCache
from .storage import MemoryStorage, SQLiteStorage
from .study_pack import StudyPackBuilder

__all__ = [
    "StudyBuddy",
    "CapabilityManager",
    "CapabilityRegistry",
    "CapabilityResolver",
    "SessionCache",
    "NoteProcessor",
    "QuizGenerator",
    "StudyPackBuilder",
    "evaluate_answer",
    "StudyBuddyConfig",
    "StudyBuddyError",
    "OperationResult",
    "MemoryStorage",
    "SQLiteStorage",
    "Note",
    "Question",
    "Quiz",
    "QuizProgress",
    "StudyPack",
    "PageCapture",
    "Upgradable",
]
