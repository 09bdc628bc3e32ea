import pytest

from study_buddy.capabilities import CapabilityRegistry
from study_buddy.config import StudyBuddyConfig
from study_buddy.library import StudyLibrary
from study_buddy.manager import CapabilityManager
from study_buddy.models import ConceptInsight, Note
from study_buddy.storage import MemoryStorage

LONG_TEXT = (
    "Photosynthesis converts light energy into chemical energy inside chloroplasts. "
    "Cellular respiration releases that energy by breaking down glucose in mitochondria. "
    "Both processes are linked because the products of one are the inputs of the other. "
    "Plants rely on photosynthesis while animals rely on cellular respiration for energy."
)


class FakeSession:
    """Host session double; ``responses`` maps method name to a value, list or callable."""

    def __init__(self, **responses):
        self.responses = responses
        self.calls = []
        self.destroyed = 0

    def _answer(self, method, *args):
        self.calls.append((method, args))
        response = self.responses.get(method)
        if isinstance(response, Exception):
            raise response
        if isinstance(response, list):
            return response.pop(0) if response else None
        if callable(response):
            return response(*args)
        return response

    async def summarize(self, text, options=None):
        return self._answer("summarize", text, options)

    async def prompt(self, text, options=None):
        return self._answer("prompt", text, options)

    async def write(self, text, options=None):
        return self._answer("write", text, options)

    async def rewrite(self, text, options=None):
        return self._answer("rewrite", text, options)

    async def detect(self, text):
        return self._answer("detect", text)

    async def translate(self, text):
        return self._answer("translate", text)

    async def destroy(self):
        self.destroyed += 1


class FakeProvider:
    """Capability provider double counting availability checks and session creations."""

    def __init__(self, session=None, *, state="available", factory=None, create_error=None, availability_error=None):
        self.state = state
        self.factory = factory or (lambda: session if session is not None else FakeSession())
        self.create_error = create_error
        self.availability_error = availability_error
        self.availability_calls = []
        self.create_calls = []
        self.sessions = []

    async def availability(self, options=None):
        self.availability_calls.append(options)
        if self.availability_error:
            raise self.availability_error
        return self.state

    async def create(self, options):
        self.create_calls.append(options)
        if self.create_error:
            raise self.create_error
        session = self.factory()
        self.sessions.append(session)
        return session


@pytest.fixture
def registry():
    return CapabilityRegistry()


@pytest.fixture
def manager(registry):
    return CapabilityManager(registry)


@pytest.fixture
def library():
    return StudyLibrary(MemoryStorage())


@pytest.fixture
def config():
    return StudyBuddyConfig()


@pytest.fixture
def long_text():
    return LONG_TEXT


@pytest.fixture
def biology_note():
    concepts = ["Photosynthesis", "Cellular Respiration"]
    return Note(
        id="note_1_abc",
        original_text=LONG_TEXT,
        summary="Photosynthesis stores energy. Cellular respiration releases it.",
        concepts=concepts,
        concept_insights={
            "Photosynthesis": ConceptInsight(
                concept="Photosynthesis",
                key_fact="Photosynthesis converts light energy into chemical energy.",
                question_cue="Ask where the energy is stored.",
            ),
            "Cellular Respiration": ConceptInsight(
                concept="Cellular Respiration",
                key_fact="Cellular respiration breaks down glucose in mitochondria.",
                question_cue="Ask which organelle is involved.",
            ),
        },
        source_language="en",
        target_language="en",
        processed_at=1,
    )
