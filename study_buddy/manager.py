"""Capability façade shared by the note, quiz and study pack builders.

Each public coroutine talks to one capability kind and degrades to a
deterministic heuristic (or ``None``) when the capability is missing or the
call fails. Only ``extract_text_from_image`` lets failures escape, because
text extraction from pixels has no reasonable local stand-in.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Iterable, Optional, Union

from pydantic import ValidationError

from . import capabilities
from .capabilities import CapabilityRegistry, CapabilityResolver
from .errors import CapabilityUnavailableError, MissingPayloadError
from .heuristics import frequency_concepts, simple_summary
from .images import data_url_to_blob
from .models import CapabilityAvailability, ConceptExtraction, ConceptInsight, LanguageDetection
from .options import (
    LanguageDetectorConfig,
    LanguageModelConfig,
    LanguagePreferences,
    RewriterConfig,
    SummarizerConfig,
    TranslatorConfig,
    WriterConfig,
    multimodal_config,
)
from .payloads import ConceptPayload
from .sanitizer import parse_json, sanitize
from .sessions import SessionCache, destroy_quietly
from .utils import maybe_await, unique

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, Any], None]

SUMMARY_CONTEXT = "Respond in English only with concise, high-signal key points. Avoid repetition."
MIN_DETECTION_CHARS = 20

CONCEPT_PROMPT = """You are an expert study coach.
Analyze the summary below and return the most exam-relevant ideas in English.
Respond ONLY with JSON using this schema:
{{
  "concepts": ["short English title", ...],
  "insights": [
    {{
      "concept": "matching concept name",
      "keyFact": "one precise fact or definition (max 20 words)",
      "questionCue": "hint for an assessment question"
    }}
  ]
}}
Ensure there are between 4 and 6 concepts. Keep text concise.
Summary:
\"\"\"
{summary}
\"\"\"
JSON:"""

IMAGE_PROMPT = """Describe the text in this study note image.
Return only English text exactly as written.
If there are diagrams, describe them succinctly."""


async def _invoke(session: Any, method: str, *args: Any) -> Any:
    """Call an optional session method; ``None`` when the session lacks it."""

    func = getattr(session, method, None) if session is not None else None
    if not callable(func):
        return None
    return await maybe_await(func(*args))


def _confidence(value: Any) -> float:
    try:
        return float(value or 0.0)
    except (TypeError, ValueError):
        logger.debug("Ignoring non-numeric detection confidence %r", value)
        return 0.0


class CapabilityManager:
    """Owns every capability session for one process."""

    def __init__(
        self,
        registry: CapabilityRegistry | None = None,
        *,
        preferences: LanguagePreferences | None = None,
        on_download_progress: ProgressCallback | None = None,
    ) -> None:
        self.registry = registry or CapabilityRegistry()
        self.resolver = CapabilityResolver(self.registry)
        self.sessions = SessionCache(self.resolver)
        self.preferences = preferences or LanguagePreferences()
        self.on_download_progress = on_download_progress
        self._translators: Dict[str, Any] = {}

    def set_language_preferences(
        self,
        *,
        input: Optional[Iterable[str]] = None,
        output: Optional[str] = None,
        context: Optional[Iterable[str]] = None,
    ) -> None:
        self.preferences.update(input=input, output=output, context=context)

    def capability_state(self, kind: str) -> Optional[CapabilityAvailability]:
        return self.sessions.state(kind)

    def create_monitor(self, kind: str) -> Optional[Callable[[Any], None]]:
        """Build a monitor forwarding download progress to the callback."""

        if self.on_download_progress is None:
            return None
        callback = self.on_download_progress

        def monitor(event: Any) -> None:
            try:
                callback(kind, event)
            except Exception as exc:
                logger.warning("Download progress callback failed for %s: %s", kind, exc)

        return monitor

    async def initialize(self, **options: Dict[str, Any]) -> None:
        """Warm up every kind; writer and rewriter may legitimately stay missing."""

        languages = options.get("languages") or {}
        self.set_language_preferences(**languages)
        await self.ensure_language_detector(options.get("language_detector"))
        await self.ensure_summarizer(options.get("summarizer"))
        await self.ensure_language_model(options.get("language_model"))
        await self.ensure_writer(options.get("writer"))
        await self.ensure_rewriter(options.get("rewriter"))

    async def destroy(self) -> None:
        await self.sessions.destroy_all()
        for key, session in list(self._translators.items()):
            if session is not None:
                await destroy_quietly(session, f"translator {key}")
        self._translators.clear()

    async def ensure_summarizer(self, options: Optional[Dict[str, Any]] = None) -> Any:
        config = SummarizerConfig.from_options(options, self.preferences, self.create_monitor(capabilities.SUMMARIZER))
        return await self.sessions.ensure_session(config)

    async def ensure_language_model(self, options: Optional[Dict[str, Any]] = None) -> Any:
        config = LanguageModelConfig.from_options(
            options, self.preferences, self.create_monitor(capabilities.LANGUAGE_MODEL)
        )
        return await self.sessions.ensure_session(config)

    async def ensure_writer(self, options: Optional[Dict[str, Any]] = None) -> Any:
        config = WriterConfig.from_options(options, self.preferences, self.create_monitor(capabilities.WRITER))
        return await self.sessions.ensure_session(config)

    async def ensure_rewriter(self, options: Optional[Dict[str, Any]] = None) -> Any:
        config = RewriterConfig.from_options(options, self.preferences, self.create_monitor(capabilities.REWRITER))
        return await self.sessions.ensure_session(config)

    async def ensure_language_detector(self, options: Optional[Dict[str, Any]] = None) -> Any:
        config = LanguageDetectorConfig.from_options(
            options, self.preferences, self.create_monitor(capabilities.LANGUAGE_DETECTOR)
        )
        return await self.sessions.ensure_session(config)

    async def summarize(self, text: str, *, context: str = "", **options: Any) -> str:
        if not isinstance(text, str) or not text:
            return ""
        try:
            session = await self.ensure_summarizer(options)
            summary = await _invoke(session, "summarize", text, {"context": f"{context}\n{SUMMARY_CONTEXT}".strip()})
            if isinstance(summary, str) and summary.strip():
                return summary
        except Exception as exc:
            logger.error("Summarizer failed, falling back to simple summary: %s", exc)
        return simple_summary(text)

    async def extract_concepts(self, summary: str, **language_model_options: Any) -> ConceptExtraction:
        if not summary:
            return frequency_concepts("")
        try:
            session = await self.ensure_language_model(language_model_options)
            response = await _invoke(session, "prompt", CONCEPT_PROMPT.format(summary=summary))
        except Exception as exc:
            logger.error("Language model concept extraction failed: %s", exc)
            return frequency_concepts(summary)
        if response is None:
            return frequency_concepts(summary)
        extraction = self._parse_concepts(response)
        if extraction is None:
            logger.warning("Concept extraction returned an unusable payload, using keyword frequency")
            return frequency_concepts(summary)
        return extraction

    @staticmethod
    def _parse_concepts(response: Any) -> Optional[ConceptExtraction]:
        parsed = parse_json(sanitize(response), None)
        if not isinstance(parsed, dict):
            return None
        try:
            payload = ConceptPayload.model_validate(parsed)
        except ValidationError as exc:
            logger.info("Concept payload failed validation: %s", exc.error_count())
            return None
        concepts = unique(payload.concepts)

        insights: Dict[str, ConceptInsight] = {}
        for item in payload.insights:
            insights[item.concept] = ConceptInsight(
                concept=item.concept,
                key_fact=item.key_fact or f"Key detail about {item.concept}.",
                question_cue=item.question_cue or f"Ask about the importance of {item.concept}.",
            )
        for concept in concepts:
            if concept not in insights:
                insights[concept] = ConceptInsight(
                    concept=concept,
                    key_fact=f"Understand the role of {concept}.",
                    question_cue=f"Explain why {concept} matters in the topic.",
                )
        return ConceptExtraction(concepts=concepts, insights=insights)

    async def extract_text_from_image(self, image_data: Union[str, bytes], *, prompt: Optional[str] = None) -> str:
        if not image_data:
            raise MissingPayloadError("Image data is required")
        session = await self.sessions.create_session(multimodal_config(self.create_monitor(capabilities.LANGUAGE_MODEL)))
        if session is None or not callable(getattr(session, "prompt", None)):
            if session is not None:
                await destroy_quietly(session, "multimodal")
            raise CapabilityUnavailableError("Language model not available for image processing")
        try:
            blob = data_url_to_blob(image_data)
            response = await maybe_await(session.prompt(prompt or IMAGE_PROMPT, {"image": blob}))
        finally:
            await destroy_quietly(session, "multimodal")
        return response if isinstance(response, str) else ""

    async def generate_content(self, prompt: str, *, context: Optional[str] = None, **writer_options: Any) -> Optional[str]:
        try:
            session = await self.ensure_writer(writer_options)
            result = await _invoke(
                session,
                "write",
                f"{prompt}\nRespond strictly in English.",
                {"context": context} if context else {},
            )
            if isinstance(result, str) and result:
                return result
        except Exception as exc:
            logger.warning("Writer not available or failed: %s", exc)
        return None

    async def rewrite_content(self, text: str, *, context: Optional[str] = None, **rewriter_options: Any) -> str:
        try:
            session = await self.ensure_rewriter(rewriter_options)
            result = await _invoke(session, "rewrite", text, {"context": context} if context else {})
            if isinstance(result, str) and result:
                return result
        except Exception as exc:
            logger.warning("Rewriter not available or failed: %s", exc)
        return text

    async def detect_language(self, text: str, **options: Any) -> Optional[LanguageDetection]:
        if not isinstance(text, str) or len(text) < MIN_DETECTION_CHARS:
            return None
        try:
            session = await self.ensure_language_detector(options)
            results = await _invoke(session, "detect", text)
        except Exception as exc:
            logger.warning("Language detection failed: %s", exc)
            return None
        if not isinstance(results, list) or not results or not isinstance(results[0], dict):
            return None
        top = results[0]
        language = top.get("detectedLanguage")
        if not isinstance(language, str) or not language:
            return None
        return LanguageDetection(
            language=language,
            confidence=_confidence(top.get("confidence")),
            candidates=[dict(item) for item in results if isinstance(item, dict)],
        )

    async def translate_text(
        self, text: str, target_language: str, source_language: Optional[str] = None
    ) -> Optional[str]:
        if not text or not target_language:
            return None
        config = TranslatorConfig(
            target_language=target_language,
            source_language=source_language,
            monitor=self.create_monitor(capabilities.TRANSLATOR),
        )
        key = config.pair_key
        if key not in self._translators:
            self._translators[key] = await self.sessions.create_session(config)
        translator = self._translators[key]
        try:
            result = await _invoke(translator, "translate", text)
        except Exception as exc:
            logger.warning("Translator failed for %s: %s", key, exc)
            return None
        return result if isinstance(result, str) and result else None

    async def prompt(self, text: str, **language_model_options: Any) -> Optional[str]:
        """Send a raw prompt to the language model; ``None`` when unavailable."""

        try:
            session = await self.ensure_language_model(language_model_options)
            result = await _invoke(session, "prompt", text)
        except Exception as exc:
            logger.warning("Language model prompt failed: %s", exc)
            return None
        return result if isinstance(result, str) else None

    async def request_structured_json(self, prompt: str, fallback: Any = None, **options: Any) -> Any:
        """Ask the writer, then the language model, for JSON matching ``prompt``."""

        writer_result = await self.generate_content(prompt, **(options.get("writer_options") or {}))
        if writer_result:
            parsed = parse_json(sanitize(writer_result), None)
            if parsed:
                return parsed
            logger.info("Writer returned no usable JSON, asking the language model")

        fallback_value = fallback() if callable(fallback) else fallback
        try:
            session = await self.ensure_language_model(options.get("language_model_options"))
            response = await _invoke(session, "prompt", f"{prompt}\nRespond strictly with valid JSON.")
        except Exception as exc:
            logger.error("Language model structured JSON failed: %s", exc)
            return fallback_value
        if response is None:
            return fallback_value
        return parse_json(sanitize(response), fallback_value)
