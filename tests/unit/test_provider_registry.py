"""Unit tests for provider registry functionality."""

import sys
from pathlib import Path

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))

from hookvoice.config import HookVoiceConfig, ProviderConfig
from hookvoice.providers import (
    ElevenLabsProvider,
    LocalTTSProvider,
    OpenAIProvider,
    ProviderRegistry,
    build_registry,
    create_provider,
)


class TestProviderRegistry:
    """Test ProviderRegistry functionality."""

    def test_registry_starts_empty(self) -> None:
        """Test that a new registry has no providers."""
        registry = ProviderRegistry()
        assert len(registry) == 0
        assert registry.ordered() == []

    def test_ordered_by_priority(self, make_descriptor) -> None:
        """Test descriptors are returned in ascending priority."""
        registry = ProviderRegistry()
        registry.register(make_descriptor("slow", 30))
        registry.register(make_descriptor("fast", 10))
        registry.register(make_descriptor("mid", 20))

        assert registry.ids() == ["fast", "mid", "slow"]

    def test_ties_keep_registration_order(self, make_descriptor) -> None:
        """Test equal priorities keep the order they were registered in."""
        registry = ProviderRegistry()
        registry.register(make_descriptor("first", 5))
        registry.register(make_descriptor("second", 5))

        assert registry.ids() == ["first", "second"]

    def test_duplicate_id_rejected(self, make_descriptor) -> None:
        """Test registering the same id twice raises."""
        registry = ProviderRegistry()
        registry.register(make_descriptor("openai", 1))

        with pytest.raises(ValueError, match="already registered"):
            registry.register(make_descriptor("openai", 2))

    def test_by_id(self, make_descriptor) -> None:
        """Test lookup by id."""
        registry = ProviderRegistry()
        descriptor = make_descriptor("openai", 1)
        registry.register(descriptor)

        assert registry.by_id("openai") is descriptor
        assert registry.by_id("nope") is None
        assert "openai" in registry

    def test_registries_are_independent(self, make_descriptor) -> None:
        """Test registries do not share state."""
        one = ProviderRegistry()
        one.register(make_descriptor("openai", 1))
        assert len(ProviderRegistry()) == 0


class TestBuildRegistry:
    """Test building a registry from configuration."""

    def test_local_appended_last(self) -> None:
        """Test the local provider is added after configured providers."""
        config = HookVoiceConfig(
            providers=(
                ProviderConfig(id="openai", type="openai", priority=10, api_key="k"),
                ProviderConfig(id="elevenlabs", type="elevenlabs", priority=20),
            )
        )
        registry = build_registry(config)

        assert registry.ids() == ["openai", "elevenlabs", "local"]
        assert isinstance(registry.by_id("openai").provider, OpenAIProvider)
        assert isinstance(registry.by_id("elevenlabs").provider, ElevenLabsProvider)
        assert isinstance(registry.by_id("local").provider, LocalTTSProvider)

    def test_only_local_without_config(self) -> None:
        """Test an empty provider list still yields the local provider."""
        assert build_registry(HookVoiceConfig()).ids() == ["local"]

    def test_disabled_provider_skipped(self) -> None:
        """Test disabled providers are not registered."""
        config = HookVoiceConfig(
            providers=(ProviderConfig(id="openai", type="openai", priority=1, enabled=False),)
        )
        assert build_registry(config).ids() == ["local"]

    def test_declared_local_not_duplicated(self) -> None:
        """Test an explicitly configured local provider keeps its priority."""
        config = HookVoiceConfig(
            providers=(
                ProviderConfig(id="say", type="local", priority=1),
                ProviderConfig(id="openai", type="openai", priority=2),
            )
        )
        assert build_registry(config).ids() == ["say", "openai"]

    def test_disabled_local_still_gets_terminal_provider(self) -> None:
        """Test disabling a declared local provider keeps the terminal fallback."""
        config = HookVoiceConfig(
            providers=(
                ProviderConfig(id="say", type="local", priority=1, enabled=False),
                ProviderConfig(id="openai", type="openai", priority=2),
            )
        )
        registry = build_registry(config)

        assert registry.ids() == ["openai", "local"]
        assert registry.by_id("local").priority == 3
        assert isinstance(registry.by_id("local").provider, LocalTTSProvider)

    def test_criteria_from_config(self) -> None:
        """Test per-provider criteria are carried into the descriptor."""
        config = HookVoiceConfig(
            providers=(
                ProviderConfig(
                    id="openai",
                    type="openai",
                    priority=1,
                    max_response_time_ms=500,
                    supported_formats=("mp3",),
                ),
            )
        )
        criteria = build_registry(config).by_id("openai").criteria
        assert criteria.max_response_time_ms == 500
        assert criteria.supported_formats == ("mp3",)

    def test_create_provider_unknown_type(self) -> None:
        """Test unknown provider types raise KeyError."""
        with pytest.raises(KeyError, match="not found"):
            create_provider(ProviderConfig(id="x", type="kokoro", priority=1))
