import pytest

from study_buddy.config import StudyBuddyConfig
from study_buddy.errors import ExtractedTextTooShortError, InputTooShortError, MissingPayloadError
from study_buddy.manager import CapabilityManager
from study_buddy.notes import NoteProcessor
from conftest import FakeProvider, FakeSession


@pytest.mark.asyncio
async def test_short_text_fails_before_any_capability_call(registry):
    provider = FakeProvider()
    for name in ("Summarizer", "LanguageModel", "LanguageDetector", "Translator", "Writer"):
        registry.register(name, provider)
    processor = NoteProcessor(CapabilityManager(registry))

    with pytest.raises(InputTooShortError):
        await processor.process_text_notes("   too short to study   ")

    assert provider.availability_calls == []
    assert provider.create_calls == []


@pytest.mark.asyncio
async def test_process_text_notes_with_fallbacks(manager, long_text):
    processor = NoteProcessor(manager)

    note = await processor.process_text_notes(long_text)

    assert note.id.startswith("note_")
    assert note.summary
    assert note.concepts
    assert set(note.concept_insights) == set(note.concepts)
    assert note.source_language == note.target_language == "en"
    assert note.translation is None
    assert processor.get_note(note.id) is note


@pytest.mark.asyncio
async def test_process_text_truncates_input(manager, long_text):
    processor = NoteProcessor(manager, StudyBuddyConfig(max_note_chars=60))
    note = await processor.process_text_notes(long_text)
    assert note.original_text == long_text[:60]


@pytest.mark.asyncio
async def test_foreign_text_is_translated_before_summarizing(registry, long_text):
    registry.register("LanguageDetector", FakeProvider(FakeSession(detect=[[{"detectedLanguage": "es", "confidence": 0.9}]])))
    registry.register("Translator", FakeProvider(FakeSession(translate=lambda text: long_text)))
    summarizer = FakeSession(summarize="Photosynthesis stores light energy as sugar in plants.")
    registry.register("Summarizer", FakeProvider(summarizer))
    processor = NoteProcessor(CapabilityManager(registry))
    spanish = "La fotosintesis convierte la energia de la luz en energia quimica dentro de los cloroplastos."

    note = await processor.process_text_notes(spanish)

    assert note.source_language == "es"
    assert note.target_language == "en"
    assert note.translation.translated_text == long_text
    assert note.original_text == spanish
    assert summarizer.calls[0][1][0] == long_text


@pytest.mark.asyncio
async def test_untranslatable_text_keeps_original(registry):
    registry.register("LanguageDetector", FakeProvider(FakeSession(detect=[[{"detectedLanguage": "de"}]])))
    processor = NoteProcessor(CapabilityManager(registry))
    german = "Die Photosynthese wandelt Lichtenergie in chemische Energie in den Chloroplasten um."

    note = await processor.process_text_notes(german)

    assert note.translation is None
    assert note.source_language == "de"


@pytest.mark.asyncio
async def test_process_image_notes(registry, long_text, monkeypatch):
    manager = CapabilityManager(registry)

    async def fake_extract(image_data, *, prompt=None):
        return long_text

    monkeypatch.setattr(manager, "extract_text_from_image", fake_extract)
    processor = NoteProcessor(manager)

    note = await processor.process_image_notes("data:image/png;base64,AAAA")

    assert note.type == "image"
    assert note.image_data == "data:image/png;base64,AAAA"
    assert processor.get_note(note.id).type == "image"


@pytest.mark.asyncio
async def test_process_image_notes_errors(manager, monkeypatch):
    processor = NoteProcessor(manager)
    with pytest.raises(MissingPayloadError):
        await processor.process_image_notes("")

    async def fake_extract(image_data, *, prompt=None):
        return "blurry"

    monkeypatch.setattr(manager, "extract_text_from_image", fake_extract)
    with pytest.raises(ExtractedTextTooShortError):
        await processor.process_image_notes("data:image/png;base64,AAAA")


def test_validate_text_content(manager):
    processor = NoteProcessor(manager, StudyBuddyConfig(max_validation_chars=100))
    assert processor.validate_text_content(42)["valid"] is False
    assert processor.validate_text_content("short")["valid"] is False
    assert processor.validate_text_content("x" * 101)["error"] == "Text is too long (maximum 100 characters)"
    assert processor.validate_text_content("x" * 60) == {"valid": True}


@pytest.mark.asyncio
async def test_stats_and_clear_cache(manager, long_text):
    processor = NoteProcessor(manager)
    await processor.process_text_notes(long_text)

    stats = processor.stats()
    assert stats["total_notes"] == 1
    assert stats["text_notes"] == 1

    processor.clear_cache()
    assert processor.all_notes() == []
