"""Abstract base class and descriptors for text-to-speech providers.

This module defines the interface that all TTS providers must implement,
and the immutable descriptor the registry keeps for each of them.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SynthesisOptions:
    """Parameters passed to a provider's synthesize call."""

    voice: str | None = None
    speed: float | None = None
    format: str | None = None
    model: str | None = None


class TTSProvider(ABC):
    """Abstract base class for text-to-speech providers.

    All TTS providers must inherit from this class and implement
    the required methods for synthesizing speech and reporting availability.
    """

    name: str = "provider"

    @abstractmethod
    async def synthesize(self, text: str, options: SynthesisOptions) -> bytes:
        """Convert text to audio bytes.

        Args:
            text: The text to convert to speech
            options: Voice, speed, format and model to use

        Returns:
            Audio data as bytes

        Raises:
            TTSError: If synthesis fails
        """
        pass

    @abstractmethod
    def is_available(self) -> bool:
        """Return True if the provider can be attempted right now.

        This must be cheap: check credentials or binaries, never call the
        network.
        """
        pass

    def output_format(self, options: SynthesisOptions) -> str:
        """Format of the audio ``synthesize`` returns for ``options``."""
        return (options.format or "mp3").lower()


@dataclass(frozen=True)
class ProviderCriteria:
    """Selection criteria for a provider.

    Attributes:
        max_response_time_ms: Deadline for one synthesize call; None uses
            the configured default
        supported_voices: Voices the provider accepts (empty means any)
        supported_formats: Formats the provider produces (empty means any)
    """

    max_response_time_ms: int | None = None
    supported_voices: tuple[str, ...] = ()
    supported_formats: tuple[str, ...] = ()


@dataclass(frozen=True)
class ProviderDescriptor:
    """Registry entry for a provider. Immutable after registration."""

    id: str
    priority: int
    provider: TTSProvider = field(compare=False)
    criteria: ProviderCriteria = field(default_factory=ProviderCriteria)

    def __post_init__(self) -> None:
        """Validate descriptor."""
        if not self.id or not self.id.strip():
            raise ValueError("provider id cannot be empty")
        if (
            self.criteria.max_response_time_ms is not None
            and self.criteria.max_response_time_ms <= 0
        ):
            raise ValueError("max_response_time_ms must be positive")

    def is_available(self) -> bool:
        """Delegate availability to the provider; errors count as unavailable."""
        try:
            return bool(self.provider.is_available())
        except Exception as e:
            logger.debug(f"Availability check for {self.id} failed: {e}")
            return False

    def supports_format(self, audio_format: str | None) -> bool:
        if not audio_format or not self.criteria.supported_formats:
            return True
        return audio_format.lower() in (
            f.lower() for f in self.criteria.supported_formats
        )

    def supports_voice(self, voice: str | None) -> bool:
        if not voice or not self.criteria.supported_voices:
            return True
        return voice in self.criteria.supported_voices
