"""Pytest configuration and fixtures for hookvoice tests."""

import asyncio
import sys
from datetime import datetime, timedelta
from pathlib import Path

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from hookvoice.audio.player import PlayResult
from hookvoice.cache.keys import NormalizationConfig
from hookvoice.config import CacheConfig, DefaultCriteria, HookVoiceConfig
from hookvoice.providers import ProviderRegistry
from hookvoice.providers.base import (
    ProviderCriteria,
    ProviderDescriptor,
    SynthesisOptions,
    TTSProvider,
)
from hookvoice.tts.context import RequestContext


class FakeProvider(TTSProvider):
    """Provider double that records calls and returns canned audio."""

    def __init__(
        self,
        name: str = "fake",
        audio: bytes = b"fake-audio",
        error: Exception | None = None,
        delay: float = 0.0,
        available: bool = True,
        audio_format: str | None = None,
    ) -> None:
        self.name = name
        self.audio = audio
        self.error = error
        self.delay = delay
        self.available = available
        self.audio_format = audio_format
        self.calls: list[tuple[str, SynthesisOptions]] = []

    def is_available(self) -> bool:
        return self.available

    def output_format(self, options: SynthesisOptions) -> str:
        return self.audio_format or super().output_format(options)

    async def synthesize(self, text: str, options: SynthesisOptions) -> bytes:
        self.calls.append((text, options))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.audio


class FakeClock:
    """Manually advanced clock for cache timestamps."""

    def __init__(self, start: datetime | None = None) -> None:
        self.current = start or datetime(2025, 1, 1, 12, 0, 0)

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs: float) -> None:
        self.current += timedelta(**kwargs)


class FakePlayer:
    """Audio player double that records what it was asked to play."""

    def __init__(self, success: bool = True) -> None:
        self.success = success
        self.played: list[Path | bytes] = []

    async def play(self, file_path, options=None) -> PlayResult:
        self.played.append(Path(file_path))
        return PlayResult(success=self.success, error=None if self.success else "boom")

    async def play_bytes(self, audio_data, options=None) -> PlayResult:
        self.played.append(audio_data)
        return PlayResult(success=self.success, error=None if self.success else "boom")

    def save_to_file(self, audio_data: bytes, filepath) -> None:
        Path(filepath).write_bytes(audio_data)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def ctx() -> RequestContext:
    return RequestContext("test-cid")


@pytest.fixture
def make_provider():
    """Factory for FakeProvider instances."""
    return FakeProvider


@pytest.fixture
def make_descriptor():
    """Factory building descriptors around fake providers."""

    def _make(
        provider_id: str,
        priority: int,
        provider: TTSProvider | None = None,
        **criteria,
    ) -> ProviderDescriptor:
        return ProviderDescriptor(
            id=provider_id,
            priority=priority,
            provider=provider or FakeProvider(name=provider_id),
            criteria=ProviderCriteria(**criteria),
        )

    return _make


@pytest.fixture
def make_registry(make_descriptor):
    """Factory building a registry from (id, provider) pairs in priority order."""

    def _make(*providers: tuple[str, TTSProvider]) -> ProviderRegistry:
        registry = ProviderRegistry()
        for priority, (provider_id, provider) in enumerate(providers, start=1):
            registry.register(make_descriptor(provider_id, priority, provider))
        return registry

    return _make


@pytest.fixture
def make_config(tmp_path):
    """Factory for configs whose cache lives under tmp_path."""

    def _make(
        enabled: bool = True,
        max_size_bytes: int = 10 * 1024 * 1024,
        max_entries: int = 100,
        max_age_ms: int | None = None,
        allow_fallback: bool = True,
        max_response_time_ms: int = 2000,
    ) -> HookVoiceConfig:
        return HookVoiceConfig(
            cache=CacheConfig(
                enabled=enabled,
                max_size_bytes=max_size_bytes,
                max_entries=max_entries,
                max_age_ms=max_age_ms,
                cache_dir=tmp_path / "cache",
                normalization=NormalizationConfig(),
            ),
            providers=(),
            default_criteria=DefaultCriteria(
                allow_fallback=allow_fallback,
                max_response_time_ms=max_response_time_ms,
            ),
        )

    return _make


@pytest.fixture
def fake_player() -> FakePlayer:
    return FakePlayer()
