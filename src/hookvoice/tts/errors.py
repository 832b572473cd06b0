"""Custom TTS exceptions."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import ProviderFailure


class TTSError(Exception):
    """Base exception for TTS-related errors."""

    def __init__(
        self, message: str, original_error: Exception | None = None
    ) -> None:
        super().__init__(message)
        self.original_error = original_error


class ProviderUnavailable(TTSError):
    """Exception raised when a provider cannot be attempted.

    This typically occurs when:
    - The provider is not registered
    - Required binaries or credentials are missing
    - The requested audio format is not supported by the provider
    """

    pass


class ProviderTimeout(TTSError):
    """Exception raised when a provider exceeds its response deadline."""

    def __init__(
        self,
        message: str,
        timeout_ms: int | None = None,
        original_error: Exception | None = None,
    ) -> None:
        super().__init__(message, original_error)
        self.timeout_ms = timeout_ms


class ProviderAuthError(TTSError):
    """Exception raised when a provider rejects its credentials (HTTP 401/403)."""

    pass


class ProviderAPIError(TTSError):
    """Exception raised for a failed provider request.

    ``status_code`` holds the HTTP status when the provider answered (429,
    5xx, other 4xx) and is None for transport failures.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        original_error: Exception | None = None,
    ) -> None:
        super().__init__(message, original_error)
        self.status_code = status_code


class ProviderResponseInvalid(TTSError):
    """Exception raised when a provider returns empty or corrupt audio."""

    pass


class CacheWriteError(TTSError):
    """Exception raised when audio or metadata cannot be persisted."""

    pass


class CacheReadCorruption(TTSError):
    """Exception raised when a cached artifact does not match its metadata."""

    pass


class NoProviderAvailable(TTSError):
    """Exception raised when the fallback chain has no candidates at all."""

    pass


class ProviderChainExhausted(TTSError):
    """Exception raised when every candidate provider failed.

    The message lists each attempted provider with its failure reason.
    """

    def __init__(
        self,
        message: str,
        failures: list[ProviderFailure] | None = None,
        original_error: Exception | None = None,
    ) -> None:
        super().__init__(message, original_error)
        self.failures = list(failures or [])


class ConfigurationError(TTSError):
    """Exception raised for invalid configuration at construction time."""

    pass
