"""ElevenLabs text-to-speech provider implementation."""

import asyncio
import os

from elevenlabs.client import ElevenLabs

from ..tts.errors import ProviderAPIError, ProviderAuthError, ProviderUnavailable
from .base import SynthesisOptions, TTSProvider

DEFAULT_VOICE = "21m00Tcm4TlvDq8Ikwvz"
DEFAULT_MODEL = "eleven_turbo_v2_5"

# Request format -> ElevenLabs output_format
OUTPUT_FORMATS = {
    "mp3": "mp3_44100_128",
    "pcm": "pcm_24000",
    "ulaw": "ulaw_8000",
    "opus": "opus_48000_64",
}


class ElevenLabsProvider(TTSProvider):
    """ElevenLabs TTS provider implementation.

    The SDK client is created on first use so a missing key only makes the
    provider unavailable instead of failing registry construction.
    """

    name = "elevenlabs"

    def __init__(
        self,
        api_key: str | None = None,
        voice: str | None = None,
        model: str | None = None,
        stability: float = 0.65,
        similarity_boost: float = 0.75,
    ) -> None:
        """Initialize ElevenLabs provider.

        Args:
            api_key: ElevenLabs API key. If not provided, reads from
                    ELEVENLABS_API_KEY environment variable.
            voice: Default voice ID
            model: Default model ID
            stability: Voice stability (0.0-1.0)
            similarity_boost: Voice similarity boost (0.0-1.0)
        """
        self._api_key = api_key or os.getenv("ELEVENLABS_API_KEY")
        self.voice = voice or DEFAULT_VOICE
        self.model = model or DEFAULT_MODEL
        self.stability = stability
        self.similarity_boost = similarity_boost
        self._client: ElevenLabs | None = None

    def is_available(self) -> bool:
        return bool(self._api_key)

    def output_format(self, options: SynthesisOptions) -> str:
        requested = (options.format or "mp3").lower()
        return requested if requested in OUTPUT_FORMATS else "mp3"

    def _get_client(self) -> ElevenLabs:
        if self._client is None:
            if not self._api_key:
                raise ProviderUnavailable(
                    "ElevenLabs API key not found. Set ELEVENLABS_API_KEY environment "
                    "variable or configure api_key."
                )
            try:
                self._client = ElevenLabs(api_key=self._api_key)
            except Exception as e:
                raise ProviderAuthError(
                    f"Failed to initialize ElevenLabs client: {e}", e
                ) from e
        return self._client

    async def synthesize(self, text: str, options: SynthesisOptions) -> bytes:
        """Convert text to speech audio bytes.

        Args:
            text: Text to convert to speech
            options: Voice, model, speed and format to use

        Returns:
            Audio data as bytes

        Raises:
            ProviderAPIError: If API call fails
            ProviderAuthError: If authentication fails
            ProviderUnavailable: If no API key is configured
        """
        client = self._get_client()
        voice_settings = {
            "stability": self.stability,
            "similarity_boost": self.similarity_boost,
            "use_speaker_boost": True,
        }
        if options.speed is not None:
            voice_settings["speed"] = options.speed

        # Run synchronous ElevenLabs client in thread to avoid blocking event loop
        def _sync_convert() -> bytes:
            audio_generator = client.text_to_speech.convert(
                text=text.strip(),
                voice_id=options.voice or self.voice,
                model_id=options.model or self.model,
                output_format=OUTPUT_FORMATS[self.output_format(options)],
                voice_settings=voice_settings,
            )
            # Collect all audio chunks
            return b"".join(audio_generator)

        try:
            return await asyncio.to_thread(_sync_convert)
        except Exception as e:
            status = getattr(e, "status_code", None)
            if status == 401 or "unauthorized" in str(e).lower():
                raise ProviderAuthError(f"Authentication failed: {e}", e) from e
            elif status == 429:
                raise ProviderAPIError(f"Rate limit exceeded: {e}", 429, e) from e
            elif status is not None and status >= 500:
                raise ProviderAPIError(f"Server error: {e}", status, e) from e
            else:
                raise ProviderAPIError(f"API call failed: {e}", status, e) from e
