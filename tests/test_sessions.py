import pytest

from study_buddy.capabilities import CapabilityResolver
from study_buddy.models import CapabilityAvailability
from study_buddy.options import LanguagePreferences, SummarizerConfig, WriterConfig
from study_buddy.sessions import SessionCache
from conftest import FakeProvider, FakeSession


def summarizer_config(**options):
    return SummarizerConfig.from_options(options, LanguagePreferences())


@pytest.mark.asyncio
async def test_ensure_session_is_idempotent(registry):
    """Same options twice reuse the cached session without a second create."""
    provider = FakeProvider()
    registry.register("Summarizer", provider)
    cache = SessionCache(CapabilityResolver(registry))

    first = await cache.ensure_session(summarizer_config(length="short"))
    second = await cache.ensure_session(summarizer_config(length="short"))

    assert first is second
    assert len(provider.create_calls) == 1
    assert cache.state("summarizer") is CapabilityAvailability.AVAILABLE


@pytest.mark.asyncio
async def test_reconfiguration_destroys_previous_session(registry):
    provider = FakeProvider()
    registry.register("Summarizer", provider)
    cache = SessionCache(CapabilityResolver(registry))

    first = await cache.ensure_session(summarizer_config(length="short"))
    second = await cache.ensure_session(summarizer_config(length="long"))

    assert first is not second
    assert first.destroyed == 1
    assert cache.session("summarizer") is second


@pytest.mark.asyncio
async def test_monitor_does_not_change_cache_identity(registry):
    provider = FakeProvider()
    registry.register("Writer", provider)
    cache = SessionCache(CapabilityResolver(registry))
    preferences = LanguagePreferences()

    await cache.ensure_session(WriterConfig.from_options({}, preferences, monitor=None))
    await cache.ensure_session(WriterConfig.from_options({}, preferences, monitor=lambda event: None))

    assert len(provider.create_calls) == 1
    assert "monitor" not in provider.availability_calls[0]


@pytest.mark.asyncio
async def test_missing_provider_records_unavailable(registry):
    cache = SessionCache(CapabilityResolver(registry))
    assert cache.state("summarizer") is None
    assert await cache.ensure_session(summarizer_config()) is None
    assert cache.state("summarizer") is CapabilityAvailability.UNAVAILABLE


@pytest.mark.asyncio
async def test_unavailable_state_skips_create(registry):
    provider = FakeProvider(state="no")
    registry.register("Summarizer", provider)
    cache = SessionCache(CapabilityResolver(registry))

    assert await cache.ensure_session(summarizer_config()) is None
    assert provider.create_calls == []


@pytest.mark.asyncio
async def test_availability_and_create_failures_yield_none(registry):
    registry.register("Summarizer", FakeProvider(availability_error=RuntimeError("availability exploded")))
    registry.register("Writer", FakeProvider(create_error=RuntimeError("create exploded")))
    cache = SessionCache(CapabilityResolver(registry))
    preferences = LanguagePreferences()

    assert await cache.ensure_session(summarizer_config()) is None
    assert cache.state("summarizer") is CapabilityAvailability.UNAVAILABLE
    assert await cache.ensure_session(WriterConfig.from_options({}, preferences)) is None
    assert cache.state("writer") is CapabilityAvailability.AVAILABLE


@pytest.mark.asyncio
async def test_destroy_all_tolerates_failing_destroy(registry):
    class BrokenSession(FakeSession):
        async def destroy(self):
            raise RuntimeError("already gone")

    registry.register("Summarizer", FakeProvider(factory=BrokenSession))
    cache = SessionCache(CapabilityResolver(registry))
    await cache.ensure_session(summarizer_config())

    await cache.destroy_all()

    assert cache.session("summarizer") is None
