"""Session configuration value objects, one per capability kind.

Each config is built through ``from_options`` which applies defaults and the
manager's language preferences. ``create_options`` is what the host receives
on ``create``; ``availability_options`` drops callback fields so a progress
monitor never changes cache identity or gating.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, ClassVar, Dict, Iterable, List, Mapping, Optional, Tuple

from . import capabilities
from .utils import canonical_json, unique

Monitor = Callable[[Any], None]


@dataclass(slots=True)
class LanguagePreferences:
    input: List[str] = field(default_factory=lambda: ["en"])
    output: str = "en"
    context: List[str] = field(default_factory=lambda: ["en"])

    def update(
        self,
        *,
        input: Optional[Iterable[str]] = None,
        output: Optional[str] = None,
        context: Optional[Iterable[str]] = None,
    ) -> None:
        if input:
            self.input = unique(input)
        if output:
            self.output = output
        if context:
            self.context = unique(context)


def _languages(*groups: Iterable[str]) -> Tuple[str, ...]:
    merged: List[str] = []
    for group in groups:
        merged.extend(group or ())
    return tuple(unique(merged))


class SessionConfig:
    """Behaviour shared by the per-kind config dataclasses."""

    __slots__ = ()
    kind: ClassVar[str]

    def availability_options(self) -> Dict[str, Any]:
        raise NotImplementedError

    def create_options(self) -> Dict[str, Any]:
        options = dict(self.availability_options())
        monitor = getattr(self, "monitor", None)
        if monitor is not None:
            options["monitor"] = monitor
        return options

    def cache_key(self) -> str:
        return canonical_json({"kind": self.kind, "options": self.availability_options()})


@dataclass(frozen=True, slots=True)
class SummarizerConfig(SessionConfig):
    kind: ClassVar[str] = capabilities.SUMMARIZER

    type: str = "key-points"
    format: str = "markdown"
    length: str = "medium"
    expected_input_languages: Tuple[str, ...] = ("en",)
    expected_context_languages: Tuple[str, ...] = ("en",)
    output_language: str = "en"
    shared_context: Optional[str] = field(default=None, compare=False)
    monitor: Optional[Monitor] = field(default=None, compare=False, repr=False)

    @classmethod
    def from_options(
        cls, options: Optional[Mapping[str, Any]], preferences: LanguagePreferences, monitor: Optional[Monitor] = None
    ) -> "SummarizerConfig":
        options = options or {}
        return cls(
            type=options.get("type") or "key-points",
            format=options.get("format") or "markdown",
            length=options.get("length") or "medium",
            expected_input_languages=_languages(options.get("expected_input_languages"), preferences.input, ["en"]),
            expected_context_languages=tuple(options.get("expected_context_languages") or preferences.context),
            output_language=options.get("output_language") or "en",
            shared_context=options.get("shared_context"),
            monitor=monitor,
        )

    def availability_options(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "format": self.format,
            "length": self.length,
            "expectedInputLanguages": list(self.expected_input_languages),
            "expectedContextLanguages": list(self.expected_context_languages),
            "outputLanguage": self.output_language,
        }

    def create_options(self) -> Dict[str, Any]:
        options = SessionConfig.create_options(self)
        if self.shared_context:
            options["sharedContext"] = self.shared_context
        return options


@dataclass(frozen=True, slots=True)
class LanguageModelConfig(SessionConfig):
    kind: ClassVar[str] = capabilities.LANGUAGE_MODEL

    temperature: float = 0.7
    top_k: int = 3
    expected_inputs: Tuple[Tuple[str, Tuple[str, ...]], ...] = (("text", ("en",)),)
    expected_outputs: Tuple[Tuple[str, Tuple[str, ...]], ...] = (("text", ("en",)),)
    initial_prompts: Optional[Tuple[Tuple[str, str], ...]] = field(default=None, compare=False)
    monitor: Optional[Monitor] = field(default=None, compare=False, repr=False)

    @classmethod
    def from_options(
        cls, options: Optional[Mapping[str, Any]], preferences: LanguagePreferences, monitor: Optional[Monitor] = None
    ) -> "LanguageModelConfig":
        options = options or {}
        input_languages = _languages(options.get("expected_input_languages"), preferences.input, ["en"])
        output_languages = _languages(options.get("expected_output_languages"), [preferences.output or "en"], ["en"])
        temperature = options.get("temperature")
        top_k = options.get("top_k")
        return cls(
            temperature=temperature if isinstance(temperature, (int, float)) else 0.7,
            top_k=top_k if isinstance(top_k, int) else 3,
            expected_inputs=tuple(options.get("expected_inputs") or (("text", input_languages),)),
            expected_outputs=tuple(options.get("expected_outputs") or (("text", output_languages),)),
            initial_prompts=options.get("initial_prompts"),
            monitor=monitor,
        )

    @staticmethod
    def _io(entries: Tuple[Tuple[str, Tuple[str, ...]], ...]) -> List[Dict[str, Any]]:
        rendered = []
        for entry_type, languages in entries:
            item: Dict[str, Any] = {"type": entry_type}
            if languages:
                item["languages"] = list(languages)
            rendered.append(item)
        return rendered

    def availability_options(self) -> Dict[str, Any]:
        return {
            "temperature": self.temperature,
            "topK": self.top_k,
            "expectedInputs": self._io(self.expected_inputs),
            "expectedOutputs": self._io(self.expected_outputs),
        }

    def create_options(self) -> Dict[str, Any]:
        options = SessionConfig.create_options(self)
        if self.initial_prompts:
            options["initialPrompts"] = [
                {"role": role, "content": content} for role, content in self.initial_prompts
            ]
        return options


@dataclass(frozen=True, slots=True)
class WriterConfig(SessionConfig):
    kind: ClassVar[str] = capabilities.WRITER

    tone: str = "neutral"
    format: str = "plain-text"
    length: str = "medium"
    expected_input_languages: Tuple[str, ...] = ("en",)
    expected_context_languages: Tuple[str, ...] = ("en",)
    output_language: str = "en"
    shared_context: Optional[str] = field(default=None, compare=False)
    monitor: Optional[Monitor] = field(default=None, compare=False, repr=False)

    default_tone: ClassVar[str] = "neutral"
    default_length: ClassVar[str] = "medium"

    @classmethod
    def from_options(
        cls, options: Optional[Mapping[str, Any]], preferences: LanguagePreferences, monitor: Optional[Monitor] = None
    ):
        options = options or {}
        return cls(
            tone=options.get("tone") or cls.default_tone,
            format=options.get("format") or "plain-text",
            length=options.get("length") or cls.default_length,
            expected_input_languages=_languages(options.get("expected_input_languages"), preferences.input, ["en"]),
            expected_context_languages=_languages(
                options.get("expected_context_languages"), preferences.context, ["en"]
            ),
            output_language=options.get("output_language") or "en",
            shared_context=options.get("shared_context"),
            monitor=monitor,
        )

    def availability_options(self) -> Dict[str, Any]:
        return {
            "tone": self.tone,
            "format": self.format,
            "length": self.length,
            "expectedInputLanguages": list(self.expected_input_languages),
            "expectedContextLanguages": list(self.expected_context_languages),
            "outputLanguage": self.output_language,
        }

    def create_options(self) -> Dict[str, Any]:
        options = SessionConfig.create_options(self)
        if self.shared_context:
            options["sharedContext"] = self.shared_context
        return options


@dataclass(frozen=True, slots=True)
class RewriterConfig(WriterConfig):
    kind: ClassVar[str] = capabilities.REWRITER

    tone: str = "more-formal"
    length: str = "as-is"

    default_tone: ClassVar[str] = "more-formal"
    default_length: ClassVar[str] = "as-is"


@dataclass(frozen=True, slots=True)
class LanguageDetectorConfig(SessionConfig):
    kind: ClassVar[str] = capabilities.LANGUAGE_DETECTOR

    expected_input_languages: Optional[Tuple[str, ...]] = None
    monitor: Optional[Monitor] = field(default=None, compare=False, repr=False)

    @classmethod
    def from_options(
        cls, options: Optional[Mapping[str, Any]], preferences: LanguagePreferences, monitor: Optional[Monitor] = None
    ) -> "LanguageDetectorConfig":
        options = options or {}
        languages = options.get("expected_input_languages")
        return cls(expected_input_languages=tuple(languages) if languages else None, monitor=monitor)

    def availability_options(self) -> Dict[str, Any]:
        if not self.expected_input_languages:
            return {}
        return {"expectedInputLanguages": list(self.expected_input_languages)}


@dataclass(frozen=True, slots=True)
class TranslatorConfig(SessionConfig):
    kind: ClassVar[str] = capabilities.TRANSLATOR

    target_language: str = "en"
    source_language: Optional[str] = None
    monitor: Optional[Monitor] = field(default=None, compare=False, repr=False)

    @property
    def pair_key(self) -> str:
        return f"{(self.source_language or 'auto').lower()}->{self.target_language.lower()}"

    def availability_options(self) -> Dict[str, Any]:
        options: Dict[str, Any] = {"targetLanguage": self.target_language}
        if self.source_language:
            options["sourceLanguage"] = self.source_language
        return options


def multimodal_config(monitor: Optional[Monitor] = None) -> LanguageModelConfig:
    """Language model config accepting an image and answering in English text."""

    return LanguageModelConfig(
        temperature=0.3,
        top_k=1,
        expected_inputs=(("image", ()),),
        expected_outputs=(("text", ("en",)),),
        monitor=monitor,
    )
