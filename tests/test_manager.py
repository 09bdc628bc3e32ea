import base64
import io
import json

import pytest
from PIL import Image

from study_buddy.errors import CapabilityUnavailableError, MissingPayloadError
from study_buddy.images import ImageBlob
from study_buddy.manager import CapabilityManager
from conftest import FakeProvider, FakeSession


def png_data_url():
    buffer = io.BytesIO()
    Image.new("RGB", (8, 4), color="white").save(buffer, format="PNG")
    return "data:image/png;base64," + base64.b64encode(buffer.getvalue()).decode("ascii")


@pytest.mark.asyncio
async def test_summarize_falls_back_without_capability(manager, long_text):
    summary = await manager.summarize(long_text)
    assert summary.startswith("Photosynthesis converts light energy")
    assert summary.endswith(".")


@pytest.mark.asyncio
async def test_summarize_fallback_never_empty_for_short_fragments(manager):
    assert await manager.summarize("tiny") == "tiny"
    assert await manager.summarize("ok. no. yes!") == "ok. no. yes!"


@pytest.mark.asyncio
async def test_summarize_uses_session_with_english_context(registry, long_text):
    session = FakeSession(summarize="* model summary")
    registry.register("Summarizer", FakeProvider(session))
    manager = CapabilityManager(registry)

    assert await manager.summarize(long_text) == "* model summary"
    context = session.calls[0][1][1]["context"]
    assert "Respond in English only" in context


@pytest.mark.asyncio
async def test_summarize_error_uses_simple_summary(registry, long_text):
    registry.register("Summarizer", FakeProvider(FakeSession(summarize=RuntimeError("boom"))))
    manager = CapabilityManager(registry)
    assert (await manager.summarize(long_text)).startswith("Photosynthesis")


@pytest.mark.asyncio
async def test_extract_concepts_parses_fenced_model_output(registry):
    payload = {
        "concepts": ["Photosynthesis", "Chlorophyll", "Photosynthesis"],
        "insights": [{"concept": "Photosynthesis", "keyFact": "Plants turn light into sugar.", "questionCue": "Ask about inputs."}],
    }
    registry.register("LanguageModel", FakeProvider(FakeSession(prompt=f"```json\n{json.dumps(payload)}\n```")))
    manager = CapabilityManager(registry)

    extraction = await manager.extract_concepts("Plants capture light with chlorophyll.")

    assert extraction.concepts == ["Photosynthesis", "Chlorophyll"]
    assert extraction.insights["Photosynthesis"].key_fact == "Plants turn light into sugar."
    assert extraction.insights["Chlorophyll"].key_fact == "Understand the role of Chlorophyll."


@pytest.mark.asyncio
async def test_extract_concepts_falls_back_to_keyword_frequency(registry):
    registry.register("LanguageModel", FakeProvider(FakeSession(prompt="I cannot help with that")))
    manager = CapabilityManager(registry)

    extraction = await manager.extract_concepts("Energy flows. Energy transforms. Plants store energy in glucose.")

    assert extraction.concepts[0] == "Energy"
    assert extraction.insights["Energy"].key_fact == "Understand the core idea behind Energy."


@pytest.mark.asyncio
async def test_request_structured_json_returns_fallback_when_unavailable(manager):
    fallback = {"questions": [{"q": 1}], "flag": False}
    assert await manager.request_structured_json("Give me JSON", fallback) == fallback


@pytest.mark.asyncio
async def test_request_structured_json_prefers_writer(registry):
    writer = FakeSession(write='{"source": "writer"}')
    model = FakeSession(prompt='{"source": "model"}')
    registry.register("Writer", FakeProvider(writer))
    registry.register("LanguageModel", FakeProvider(model))
    manager = CapabilityManager(registry)

    assert await manager.request_structured_json("prompt") == {"source": "writer"}
    assert model.calls == []
    assert writer.calls[0][1][0].endswith("Respond strictly in English.")


@pytest.mark.asyncio
async def test_request_structured_json_uses_model_when_writer_output_is_not_json(registry):
    registry.register("Writer", FakeProvider(FakeSession(write="Sure! Here you go")))
    model = FakeSession(prompt='```json\n{"source": "model"}\n```')
    registry.register("LanguageModel", FakeProvider(model))
    manager = CapabilityManager(registry)

    assert await manager.request_structured_json("prompt", {}) == {"source": "model"}
    assert model.calls[0][1][0].endswith("Respond strictly with valid JSON.")


@pytest.mark.asyncio
async def test_request_structured_json_bad_model_output_gives_fallback(registry):
    registry.register("LanguageModel", FakeProvider(FakeSession(prompt="no json here")))
    manager = CapabilityManager(registry)
    assert await manager.request_structured_json("prompt", lambda: ["fallback"]) == ["fallback"]


@pytest.mark.asyncio
async def test_generate_and_rewrite_degrade(manager):
    assert await manager.generate_content("Write a haiku") is None
    assert await manager.rewrite_content("keep this") == "keep this"
    assert await manager.prompt("anything") is None


@pytest.mark.asyncio
async def test_detect_language_requires_enough_text(registry):
    detector = FakeSession(detect=lambda text: [{"detectedLanguage": "fr", "confidence": 0.93}])
    registry.register("LanguageDetector", FakeProvider(detector))
    manager = CapabilityManager(registry)

    assert await manager.detect_language("trop court") is None
    detection = await manager.detect_language("La photosynthese convertit la lumiere en energie.")
    assert detection.language == "fr"
    assert detection.confidence == pytest.approx(0.93)
    assert len(detector.calls) == 1


@pytest.mark.asyncio
async def test_translator_sessions_are_cached_per_pair(registry):
    provider = FakeProvider(factory=lambda: FakeSession(translate=lambda text: f"[en] {text}"))
    registry.register("Translator", provider)
    manager = CapabilityManager(registry)

    assert await manager.translate_text("bonjour", "en", "fr") == "[en] bonjour"
    assert await manager.translate_text("salut", "en", "fr") == "[en] salut"
    assert await manager.translate_text("hola", "en", "es") == "[en] hola"
    assert [call["targetLanguage"] for call in provider.create_calls] == ["en", "en"]
    assert len(provider.sessions) == 2

    await manager.destroy()
    assert all(session.destroyed == 1 for session in provider.sessions)


@pytest.mark.asyncio
async def test_translate_without_translator_returns_none(manager):
    assert await manager.translate_text("bonjour", "en", "fr") is None


@pytest.mark.asyncio
async def test_extract_text_from_image_requires_language_model(manager):
    with pytest.raises(CapabilityUnavailableError):
        await manager.extract_text_from_image(png_data_url())


@pytest.mark.asyncio
async def test_extract_text_from_image_prompts_with_blob_and_destroys(registry):
    session = FakeSession(prompt="Mitochondria are the powerhouse of the cell.")
    provider = FakeProvider(session)
    registry.register("LanguageModel", provider)
    manager = CapabilityManager(registry)

    text = await manager.extract_text_from_image(png_data_url())

    assert text == "Mitochondria are the powerhouse of the cell."
    blob = session.calls[0][1][1]["image"]
    assert isinstance(blob, ImageBlob)
    assert (blob.mime_type, blob.width, blob.height) == ("image/png", 8, 4)
    assert provider.create_calls[0]["expectedInputs"] == [{"type": "image"}]
    assert session.destroyed == 1


@pytest.mark.asyncio
async def test_extract_text_from_image_rejects_bad_payload(registry):
    session = FakeSession(prompt="unused")
    registry.register("LanguageModel", FakeProvider(session))
    manager = CapabilityManager(registry)

    with pytest.raises(MissingPayloadError):
        await manager.extract_text_from_image("data:image/png;base64,bm90IGFuIGltYWdl")
    assert session.destroyed == 1
    assert session.calls == []


@pytest.mark.asyncio
async def test_initialize_warms_available_kinds(registry):
    summarizer = FakeProvider()
    registry.register("Summarizer", summarizer)
    registry.register("languageDetector", FakeProvider(), namespace="ai")
    manager = CapabilityManager(registry)

    await manager.initialize(languages={"input": ["en", "fr"]}, summarizer={"length": "short"})

    assert manager.preferences.input == ["en", "fr"]
    assert summarizer.create_calls[0]["expectedInputLanguages"] == ["en", "fr"]
    assert summarizer.create_calls[0]["length"] == "short"
    assert manager.capability_state("languageDetector").usable
    assert not manager.capability_state("writer").usable
    assert not manager.capability_state("rewriter").usable

    await manager.destroy()
    assert summarizer.sessions[0].destroyed == 1


@pytest.mark.asyncio
async def test_download_progress_is_forwarded(registry):
    events = []
    provider = FakeProvider()
    registry.register("Summarizer", provider)
    manager = CapabilityManager(registry, on_download_progress=lambda kind, event: events.append((kind, event)))

    await manager.ensure_summarizer()
    provider.create_calls[0]["monitor"]({"loaded": 0.5})

    assert events == [("summarizer", {"loaded": 0.5})]


@pytest.mark.asyncio
async def test_detect_language_tolerates_non_numeric_confidence(registry, long_text):
    detector = FakeSession(detect=lambda text: [{"detectedLanguage": "en", "confidence": "high"}])
    registry.register("LanguageDetector", FakeProvider(detector))
    manager = CapabilityManager(registry)

    detection = await manager.detect_language(long_text)

    assert detection.language == "en"
    assert detection.confidence == 0.0


@pytest.mark.asyncio
async def test_extract_concepts_fills_blank_insight_fields(registry):
    payload = {"concepts": ["Osmosis"], "insights": [{"concept": "Osmosis", "keyFact": " ", "questionCue": ""}]}
    registry.register("LanguageModel", FakeProvider(FakeSession(prompt=json.dumps(payload))))

    extraction = await CapabilityManager(registry).extract_concepts("Water crosses membranes by osmosis.")

    assert extraction.insights["Osmosis"].key_fact == "Key detail about Osmosis."
    assert extraction.insights["Osmosis"].question_cue == "Ask about the importance of Osmosis."
