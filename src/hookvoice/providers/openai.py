"""OpenAI text-to-speech provider implementation."""

import os

import httpx

from ..tts.errors import (
    ProviderAPIError,
    ProviderAuthError,
    ProviderResponseInvalid,
    ProviderUnavailable,
)
from .base import SynthesisOptions, TTSProvider

API_URL = "https://api.openai.com/v1/audio/speech"
DEFAULT_VOICE = "alloy"
DEFAULT_MODEL = "tts-1"
MAX_INPUT_CHARS = 4096

VOICES = ("alloy", "echo", "fable", "onyx", "nova", "shimmer")
FORMATS = ("mp3", "opus", "aac", "flac", "wav", "pcm")


class OpenAIProvider(TTSProvider):
    """OpenAI TTS provider using the audio speech endpoint over HTTP."""

    name = "openai"

    def __init__(
        self,
        api_key: str | None = None,
        voice: str | None = None,
        model: str | None = None,
        api_url: str = API_URL,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize OpenAI provider.

        Args:
            api_key: OpenAI API key. If not provided, reads from
                    OPENAI_API_KEY environment variable.
            voice: Default voice
            model: Default model ("tts-1" or "tts-1-hd")
            api_url: Speech endpoint URL
            client: Optional pre-built HTTP client (tests inject a mock transport)
        """
        self._api_key = api_key or os.getenv("OPENAI_API_KEY")
        self.voice = voice or DEFAULT_VOICE
        self.model = model or DEFAULT_MODEL
        self.api_url = api_url
        self._client = client

    def is_available(self) -> bool:
        return bool(self._api_key)

    async def synthesize(self, text: str, options: SynthesisOptions) -> bytes:
        """Convert text to speech audio bytes.

        Args:
            text: Text to convert to speech (truncated to the API limit)
            options: Voice, model, speed and format to use

        Returns:
            Audio data as bytes

        Raises:
            ProviderUnavailable: If no API key is configured
            ProviderAuthError: If authentication fails
            ProviderAPIError: If the API call fails
            ProviderResponseInvalid: If the response body is empty
        """
        if not self._api_key:
            raise ProviderUnavailable(
                "OpenAI API key not found. Set OPENAI_API_KEY environment "
                "variable or configure api_key."
            )

        input_text = text.strip()
        if len(input_text) > MAX_INPUT_CHARS:
            input_text = f"{input_text[: MAX_INPUT_CHARS - 3]}..."

        payload: dict[str, object] = {
            "model": options.model or self.model,
            "input": input_text,
            "voice": options.voice or self.voice,
            "response_format": self.output_format(options),
        }
        if options.speed is not None:
            payload["speed"] = options.speed

        headers = {"Authorization": f"Bearer {self._api_key}"}

        try:
            if self._client is not None:
                response = await self._client.post(
                    self.api_url, json=payload, headers=headers
                )
            else:
                async with httpx.AsyncClient(timeout=30.0) as client:
                    response = await client.post(
                        self.api_url, json=payload, headers=headers
                    )
        except httpx.HTTPError as e:
            raise ProviderAPIError(f"API call failed: {e}", None, e) from e

        if response.status_code == 401:
            raise ProviderAuthError(f"Authentication failed: {response.text}")
        if response.status_code == 429:
            raise ProviderAPIError(f"Rate limit exceeded: {response.text}", 429)
        if response.status_code >= 400:
            raise ProviderAPIError(
                f"API call failed with status {response.status_code}: {response.text}",
                response.status_code,
            )

        if not response.content:
            raise ProviderResponseInvalid("No audio data received from API")
        return response.content
