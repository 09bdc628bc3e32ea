"""Creation and memoisation of capability sessions."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from .capabilities import CapabilityResolver, normalize_availability
from .models import CapabilityAvailability
from .options import SessionConfig
from .utils import maybe_await

logger = logging.getLogger(__name__)


async def destroy_quietly(session: Any, label: str) -> None:
    """Call ``session.destroy()`` if present, logging instead of raising."""

    destroy = getattr(session, "destroy", None)
    if not callable(destroy):
        return
    try:
        await maybe_await(destroy())
    except Exception as exc:
        logger.warning("Failed to destroy %s session: %s", label, exc)


class SessionCache:
    """Holds at most one live session per capability kind.

    A session is reused while requests keep arriving with the same config
    and is destroyed and replaced as soon as the config changes.
    """

    def __init__(self, resolver: CapabilityResolver) -> None:
        self.resolver = resolver
        self._sessions: Dict[str, Any] = {}
        self._cache_keys: Dict[str, str] = {}
        self._states: Dict[str, CapabilityAvailability] = {}

    def state(self, kind: str) -> Optional[CapabilityAvailability]:
        """Last checked availability for ``kind``, or ``None`` if never checked."""

        return self._states.get(kind)

    def session(self, kind: str) -> Any:
        return self._sessions.get(kind)

    async def ensure_session(self, config: SessionConfig) -> Any:
        kind = config.kind
        cache_key = config.cache_key()
        current = self._sessions.get(kind)
        if current is not None and self._cache_keys.get(kind) == cache_key:
            return current

        await self.destroy_session(kind)
        session = await self.create_session(config)
        if session is not None:
            self._sessions[kind] = session
            self._cache_keys[kind] = cache_key
            logger.debug("Created %s session", kind)
        return session

    async def create_session(self, config: SessionConfig) -> Any:
        """Check availability and create a session for ``config`` without caching it."""

        kind = config.kind
        provider = self.resolver.resolve(kind)
        if provider is None:
            logger.warning("%s capability is unavailable in this environment.", kind)
            self._states[kind] = CapabilityAvailability.UNAVAILABLE
            return None

        availability = getattr(provider, "availability", None)
        if not callable(availability):
            logger.warning("%s availability() is not exposed.", kind)
            self._states[kind] = CapabilityAvailability.UNAVAILABLE
            return None

        try:
            raw_state = await maybe_await(availability(config.availability_options()))
        except Exception as exc:
            logger.error("Error while checking availability for %s: %s", kind, exc)
            self._states[kind] = CapabilityAvailability.UNAVAILABLE
            return None

        state = normalize_availability(raw_state)
        self._states[kind] = state
        if not state.usable:
            logger.info("%s capability reported state %r", kind, raw_state)
            return None

        create = getattr(provider, "create", None)
        if not callable(create):
            logger.warning("%s create() is not available in this environment.", kind)
            return None

        try:
            session = await maybe_await(create(config.create_options()))
        except Exception as exc:
            logger.error("%s session creation failed: %s", kind, exc)
            return None
        return session or None

    async def destroy_session(self, kind: str) -> None:
        session = self._sessions.pop(kind, None)
        self._cache_keys.pop(kind, None)
        if session is not None:
            await destroy_quietly(session, kind)

    async def destroy_all(self) -> None:
        for kind in list(self._sessions):
            await self.destroy_session(kind)
