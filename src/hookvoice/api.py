"""High-level API for hookvoice library usage."""

from pathlib import Path

from .config import HookVoiceConfig, load_config
from .core import SpeechService
from .tts.models import SpeakOptions, SpeakResult


def create_service(
    config: HookVoiceConfig | None = None, config_path: str | Path | None = None
) -> SpeechService:
    """Create a speech service from a config object or file.

    Args:
        config: Resolved configuration; loaded from ``config_path`` if None
        config_path: Config file path (defaults to ~/.config/hookvoice/config.toml)

    Raises:
        ConfigurationError: If the configuration is invalid
    """
    if config is None:
        config = load_config(Path(config_path) if config_path else None)
    return SpeechService(config)


async def speak(
    text: str,
    voice: str | None = None,
    provider: str | None = None,
    play: bool = True,
    service: SpeechService | None = None,
) -> SpeakResult:
    """Synthesize speech from text.

    Args:
        text: Text to speak
        voice: Voice identifier (provider-specific)
        provider: Provider id to try first
        play: Whether to play the audio
        service: Service to use (created from the default config if None)

    Returns:
        SpeakResult with provider, cache and timing details

    Raises:
        ValueError: If text is empty
        ConfigurationError: If the configuration is invalid
    """
    service = service or create_service()
    return await service.speak(
        text, SpeakOptions(voice=voice, provider=provider), play=play
    )
