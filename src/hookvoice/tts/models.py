"""TTS data models with validation."""

from dataclasses import dataclass, field
from pathlib import Path

MIN_SPEED = 0.25
MAX_SPEED = 4.0


@dataclass(frozen=True)
class SpeakOptions:
    """Optional per-call synthesis parameters.

    Args:
        voice: Voice identifier (provider-specific)
        speed: Speaking rate (0.25-4.0)
        format: Audio format, e.g. "mp3" or "wav"
        model: Provider model identifier
        provider: Explicit provider id to try first
        allow_fallback: Whether other providers may be tried after the
            explicit one. None uses the configured default.
    """

    voice: str | None = None
    speed: float | None = None
    format: str | None = None
    model: str | None = None
    provider: str | None = None
    allow_fallback: bool | None = None


@dataclass(frozen=True)
class SpeakRequest:
    """A single synthesis request.

    Args:
        text: Text to convert to speech
        correlation_id: Identifier threading this request through the logs
        voice: Optional voice identifier
        speed: Optional speaking rate (0.25-4.0)
        format: Optional audio format
        model: Optional model identifier
        explicit_provider: Provider id to try first
        allow_fallback: Whether to continue with other providers when the
            explicit provider fails
    """

    text: str
    correlation_id: str
    voice: str | None = None
    speed: float | None = None
    format: str | None = None
    model: str | None = None
    explicit_provider: str | None = None
    allow_fallback: bool = True

    def __post_init__(self) -> None:
        """Validate request parameters."""
        if not self.text or not self.text.strip():
            raise ValueError("Text cannot be empty")
        if not self.correlation_id:
            raise ValueError("correlation_id cannot be empty")
        if self.speed is not None and not MIN_SPEED <= self.speed <= MAX_SPEED:
            raise ValueError(
                f"speed must be between {MIN_SPEED} and {MAX_SPEED}, got {self.speed}"
            )


@dataclass(frozen=True)
class ProviderFailure:
    """Why one provider attempt in the fallback chain failed."""

    provider: str
    kind: str
    message: str

    def __str__(self) -> str:
        return f"{self.provider}: {self.kind} ({self.message})"


@dataclass
class SynthesisOutcome:
    """Result of running the provider fallback chain.

    ``audio_path`` is set once the audio has been committed to the cache.
    ``coalesced`` marks outcomes a caller received by joining another
    caller's in-flight synthesis.
    """

    success: bool
    audio_data: bytes | None = field(default=None, repr=False)
    provider_name: str | None = None
    failures: list[ProviderFailure] = field(default_factory=list)
    elapsed_ms: float = 0.0
    error: Exception | None = None
    audio_path: Path | None = None
    audio_format: str | None = None
    coalesced: bool = False


@dataclass
class SpeakResult:
    """Outcome of a speak or preload call.

    ``duration_ms`` spans cache lookup to result and excludes playback.
    """

    success: bool
    from_cache: bool
    duration_ms: float
    provider_name: str | None = None
    error: str | None = None
    audio_path: Path | None = None
    cache_key: str | None = None
    failures: list[ProviderFailure] = field(default_factory=list)
    audio_data: bytes | None = field(default=None, repr=False)
    played: bool = False
