"""Unit tests for the OpenAI provider over a mocked HTTP transport."""

import json
import sys
from pathlib import Path

import httpx
import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))

from hookvoice.providers.base import SynthesisOptions
from hookvoice.providers.openai import API_URL, MAX_INPUT_CHARS, OpenAIProvider
from hookvoice.tts.errors import (
    ProviderAPIError,
    ProviderAuthError,
    ProviderResponseInvalid,
    ProviderUnavailable,
)


def make_provider(handler, api_key: str | None = "sk-test", **kwargs) -> OpenAIProvider:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return OpenAIProvider(api_key=api_key, client=client, **kwargs)


class TestOpenAIProvider:
    """Test request construction and status handling."""

    @pytest.mark.asyncio
    async def test_successful_synthesis(self) -> None:
        """Test the request payload and returned bytes."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, content=b"mp3-bytes")

        provider = make_provider(handler)
        audio = await provider.synthesize(
            "  Build finished  ", SynthesisOptions(voice="nova", speed=1.5, format="WAV")
        )

        assert audio == b"mp3-bytes"
        request = seen[0]
        assert str(request.url) == API_URL
        assert request.headers["Authorization"] == "Bearer sk-test"
        payload = json.loads(request.content)
        assert payload == {
            "model": "tts-1",
            "input": "Build finished",
            "voice": "nova",
            "response_format": "wav",
            "speed": 1.5,
        }

    @pytest.mark.asyncio
    async def test_defaults_and_truncation(self) -> None:
        """Test default voice/model and input truncation."""
        payloads: list[dict] = []

        def handler(request: httpx.Request) -> httpx.Response:
            payloads.append(json.loads(request.content))
            return httpx.Response(200, content=b"x")

        provider = make_provider(handler, voice="echo", model="tts-1-hd")
        await provider.synthesize("a" * (MAX_INPUT_CHARS + 10), SynthesisOptions())

        payload = payloads[0]
        assert payload["voice"] == "echo"
        assert payload["model"] == "tts-1-hd"
        assert payload["response_format"] == "mp3"
        assert "speed" not in payload
        assert len(payload["input"]) == MAX_INPUT_CHARS
        assert payload["input"].endswith("...")

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status,error",
        [(401, ProviderAuthError), (429, ProviderAPIError), (500, ProviderAPIError), (400, ProviderAPIError)],
    )
    async def test_error_statuses(self, status: int, error: type) -> None:
        """Test HTTP error statuses map to provider errors."""
        provider = make_provider(lambda request: httpx.Response(status, text="nope"))
        with pytest.raises(error):
            await provider.synthesize("Hi", SynthesisOptions())

    @pytest.mark.asyncio
    async def test_status_code_recorded(self) -> None:
        """Test API errors keep the HTTP status."""
        provider = make_provider(lambda request: httpx.Response(503, text="down"))
        with pytest.raises(ProviderAPIError) as exc_info:
            await provider.synthesize("Hi", SynthesisOptions())
        assert exc_info.value.status_code == 503

    @pytest.mark.asyncio
    async def test_empty_body_invalid(self) -> None:
        """Test an empty 200 response is an invalid response."""
        provider = make_provider(lambda request: httpx.Response(200, content=b""))
        with pytest.raises(ProviderResponseInvalid):
            await provider.synthesize("Hi", SynthesisOptions())

    @pytest.mark.asyncio
    async def test_transport_error(self) -> None:
        """Test network failures become ProviderAPIError."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        provider = make_provider(handler)
        with pytest.raises(ProviderAPIError, match="refused"):
            await provider.synthesize("Hi", SynthesisOptions())

    @pytest.mark.asyncio
    async def test_missing_key(self, monkeypatch) -> None:
        """Test a provider without a key is unavailable."""
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        provider = make_provider(lambda request: httpx.Response(200, content=b"x"), api_key=None)

        assert provider.is_available() is False
        with pytest.raises(ProviderUnavailable):
            await provider.synthesize("Hi", SynthesisOptions())

    def test_key_from_environment(self, monkeypatch) -> None:
        """Test the key falls back to OPENAI_API_KEY."""
        monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
        assert OpenAIProvider().is_available() is True
