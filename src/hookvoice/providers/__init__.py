"""Provider abstraction for text-to-speech services.

This module provides a registry of configured TTS providers, ordered by
priority, that the fallback orchestrator walks on every cache miss.
"""

import logging
from typing import TYPE_CHECKING

from .base import ProviderCriteria, ProviderDescriptor, SynthesisOptions, TTSProvider
from .elevenlabs import ElevenLabsProvider
from .local import LocalTTSProvider
from .openai import OpenAIProvider

if TYPE_CHECKING:
    from ..config import HookVoiceConfig, ProviderConfig

logger = logging.getLogger(__name__)

__all__ = [
    "ElevenLabsProvider",
    "LocalTTSProvider",
    "OpenAIProvider",
    "ProviderCriteria",
    "ProviderDescriptor",
    "ProviderRegistry",
    "SynthesisOptions",
    "TTSProvider",
    "build_registry",
    "create_provider",
]

LOCAL_PROVIDER_ID = "local"


class ProviderRegistry:
    """Registry for managing TTS providers.

    Descriptors are immutable once registered. Iteration order is ascending
    priority, ties broken by registration order.
    """

    def __init__(self) -> None:
        self._descriptors: list[ProviderDescriptor] = []

    def register(self, descriptor: ProviderDescriptor) -> None:
        """Register a TTS provider.

        Args:
            descriptor: Provider descriptor to add

        Raises:
            ValueError: If a provider with the same id is already registered
        """
        if any(d.id == descriptor.id for d in self._descriptors):
            raise ValueError(f"Provider '{descriptor.id}' is already registered")
        self._descriptors.append(descriptor)
        logger.debug(
            f"Registered provider {descriptor.id} at priority {descriptor.priority}"
        )

    def ordered(self) -> list[ProviderDescriptor]:
        """Return descriptors in fallback order."""
        # sorted() is stable, so equal priorities keep registration order
        return sorted(self._descriptors, key=lambda d: d.priority)

    def by_id(self, provider_id: str) -> ProviderDescriptor | None:
        for descriptor in self._descriptors:
            if descriptor.id == provider_id:
                return descriptor
        return None

    def ids(self) -> list[str]:
        return [d.id for d in self.ordered()]

    def __len__(self) -> int:
        return len(self._descriptors)

    def __contains__(self, provider_id: object) -> bool:
        return any(d.id == provider_id for d in self._descriptors)


def create_provider(config: "ProviderConfig") -> TTSProvider:
    """Instantiate the provider implementation named by ``config.type``.

    Raises:
        KeyError: If the provider type is unknown
    """
    if config.type == "openai":
        return OpenAIProvider(
            api_key=config.api_key, voice=config.voice, model=config.model
        )
    if config.type == "elevenlabs":
        return ElevenLabsProvider(
            api_key=config.api_key, voice=config.voice, model=config.model
        )
    if config.type == "local":
        return LocalTTSProvider()
    raise KeyError(
        f"Provider type '{config.type}' not found. "
        "Available providers: openai, elevenlabs, local"
    )


def build_registry(config: "HookVoiceConfig") -> ProviderRegistry:
    """Build a registry from configuration.

    Disabled providers are skipped. A local provider is appended after
    every configured one unless the configuration declares an enabled one.
    """
    registry = ProviderRegistry()
    for provider_config in config.providers:
        if not provider_config.enabled:
            logger.debug(f"Skipping disabled provider {provider_config.id}")
            continue
        registry.register(
            ProviderDescriptor(
                id=provider_config.id,
                priority=provider_config.priority,
                provider=create_provider(provider_config),
                criteria=ProviderCriteria(
                    max_response_time_ms=provider_config.max_response_time_ms,
                    supported_voices=provider_config.supported_voices,
                    supported_formats=provider_config.supported_formats,
                ),
            )
        )

    declared_local = any(
        p.type == "local" and p.enabled for p in config.providers
    )
    if not declared_local and LOCAL_PROVIDER_ID not in registry:
        lowest = max((d.priority for d in registry.ordered()), default=0)
        registry.register(
            ProviderDescriptor(
                id=LOCAL_PROVIDER_ID,
                priority=lowest + 1,
                provider=LocalTTSProvider(),
            )
        )
    return registry
