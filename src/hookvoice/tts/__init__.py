"""TTS (Text-to-Speech) request flow for hookvoice.

The pipeline and orchestrator live in ``hookvoice.tts.pipeline`` and
``hookvoice.tts.orchestrator``; they are not imported here because the
cache package depends on the models and errors below.
"""

from .context import RequestContext
from .errors import (
    CacheReadCorruption,
    CacheWriteError,
    ConfigurationError,
    NoProviderAvailable,
    ProviderAPIError,
    ProviderAuthError,
    ProviderChainExhausted,
    ProviderResponseInvalid,
    ProviderTimeout,
    ProviderUnavailable,
    TTSError,
)
from .models import (
    ProviderFailure,
    SpeakOptions,
    SpeakRequest,
    SpeakResult,
    SynthesisOutcome,
)

__all__ = [
    "CacheReadCorruption",
    "CacheWriteError",
    "ConfigurationError",
    "NoProviderAvailable",
    "ProviderAPIError",
    "ProviderAuthError",
    "ProviderChainExhausted",
    "ProviderFailure",
    "ProviderResponseInvalid",
    "ProviderTimeout",
    "ProviderUnavailable",
    "RequestContext",
    "SpeakOptions",
    "SpeakRequest",
    "SpeakResult",
    "SynthesisOutcome",
    "TTSError",
]
