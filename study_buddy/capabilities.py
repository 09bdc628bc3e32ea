"""Registry and lookup of on-device generative capabilities."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Protocol, Tuple

from .models import CapabilityAvailability

logger = logging.getLogger(__name__)

SUMMARIZER = "summarizer"
LANGUAGE_MODEL = "languageModel"
WRITER = "writer"
REWRITER = "rewriter"
LANGUAGE_DETECTOR = "languageDetector"
TRANSLATOR = "translator"

CAPABILITY_ALIASES: Dict[str, Tuple[str, ...]] = {
    SUMMARIZER: ("Summarizer", "summarizer"),
    LANGUAGE_MODEL: ("LanguageModel", "languageModel", "Prompt", "prompt"),
    WRITER: ("Writer", "writer"),
    REWRITER: ("Rewriter", "rewriter"),
    LANGUAGE_DETECTOR: ("LanguageDetector", "languageDetector"),
    TRANSLATOR: ("Translator", "translator"),
}

AI_NAMESPACE = "ai"

_STATE_ALIASES = {
    "available": CapabilityAvailability.AVAILABLE,
    "readily": CapabilityAvailability.AVAILABLE,
    "ready": CapabilityAvailability.AVAILABLE,
    "after-download": CapabilityAvailability.DOWNLOADABLE,
    "downloadable": CapabilityAvailability.DOWNLOADABLE,
    "downloading": CapabilityAvailability.DOWNLOADING,
}


class CapabilityProvider(Protocol):
    """What the host exposes for one capability kind.

    Both methods may be plain functions or coroutine functions.
    """

    def availability(self, options: Optional[Dict[str, Any]] = None) -> Any: ...

    def create(self, options: Dict[str, Any]) -> Any: ...


def normalize_availability(raw: Any) -> CapabilityAvailability:
    """Map a host availability answer onto ``CapabilityAvailability``."""

    state = raw
    if isinstance(raw, dict):
        state = raw.get("state") or raw.get("availability") or raw.get("status")
    if isinstance(state, CapabilityAvailability):
        return state
    if not isinstance(state, str):
        return CapabilityAvailability.UNAVAILABLE
    return _STATE_ALIASES.get(state.strip().lower(), CapabilityAvailability.UNAVAILABLE)


class CapabilityRegistry:
    """Providers installed at startup, in a global scope and an ``ai`` scope."""

    def __init__(self) -> None:
        self._scopes: Dict[Optional[str], Dict[str, Any]] = {None: {}, AI_NAMESPACE: {}}

    def register(self, name: str, provider: Any, *, namespace: Optional[str] = None) -> None:
        if namespace not in self._scopes:
            raise ValueError(f"Unknown capability namespace: {namespace}")
        self._scopes[namespace][name] = provider
        logger.debug("Registered capability %s (namespace=%s)", name, namespace or "global")

    def unregister(self, name: str, *, namespace: Optional[str] = None) -> None:
        self._scopes.get(namespace, {}).pop(name, None)

    def lookup(self, name: str, *, namespace: Optional[str] = None) -> Any:
        return self._scopes[namespace].get(name)


class CapabilityResolver:
    """Finds the provider for a capability kind by trying its aliases."""

    def __init__(self, registry: CapabilityRegistry) -> None:
        self.registry = registry

    def resolve(self, kind: str) -> Any:
        try:
            candidates = CAPABILITY_ALIASES.get(kind, ()) + (kind,)
            for candidate in candidates:
                for namespace in (None, AI_NAMESPACE):
                    provider = self.registry.lookup(candidate, namespace=namespace)
                    if provider is not None:
                        return provider
        except Exception as exc:  # pragma: no cover - runtime safeguard
            logger.warning("Capability lookup for %s failed: %s", kind, exc)
        return None
