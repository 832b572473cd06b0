"""Deterministic cache keys for synthesis requests.

The canonical string is::

    v1|<provider>|<normalized text>|<model>|<voice>|<speed>|<format>

hashed with SHA-256. Changing any part of this format invalidates every
existing cache entry, so bump ``KEY_VERSION`` when it has to change.
"""

import hashlib
import re
from dataclasses import dataclass

from ..tts.models import SpeakRequest

KEY_VERSION = "v1"
AUTO_PROVIDER = "auto"
DEFAULT_FORMAT = "mp3"
DEFAULT_SPEED = 1.0

_PRIORITY_PREFIX = re.compile(r"^(low|medium|high)\s+priority:\s*", re.IGNORECASE)


@dataclass(frozen=True)
class NormalizationConfig:
    """Text normalization options for cache keys."""

    case_sensitive: bool = False
    strip_priority_prefixes: bool = True
    normalize_whitespace: bool = True


class CacheKeyGenerator:
    """Derive cache keys from normalized request parameters."""

    def __init__(self, normalization: NormalizationConfig | None = None) -> None:
        self.normalization = normalization or NormalizationConfig()

    def normalize_text(self, text: str) -> str:
        """Normalize text according to the configured options.

        Args:
            text: Raw request text

        Returns:
            Normalized text used in the canonical key string
        """
        normalized = text
        if self.normalization.normalize_whitespace:
            normalized = " ".join(normalized.split())
        if self.normalization.strip_priority_prefixes:
            normalized = _PRIORITY_PREFIX.sub("", normalized)
        if not self.normalization.case_sensitive:
            normalized = normalized.casefold()
        return normalized

    def canonical_string(self, request: SpeakRequest) -> str:
        """Build the canonical string hashed into the cache key."""
        provider = request.explicit_provider or AUTO_PROVIDER
        speed = float(request.speed if request.speed is not None else DEFAULT_SPEED)
        # Requested format, not the stored one: a provider that only emits WAV
        # (local) still caches under the mp3 key of the request it served
        audio_format = (request.format or DEFAULT_FORMAT).lower()
        return "|".join(
            [
                KEY_VERSION,
                provider,
                self.normalize_text(request.text),
                request.model or "",
                request.voice or "",
                repr(speed),
                audio_format,
            ]
        )

    def compute_key(self, request: SpeakRequest) -> str:
        """Compute the cache key for a request.

        Args:
            request: Synthesis request

        Returns:
            64-character SHA-256 hex digest
        """
        canonical = self.canonical_string(request)
        return hashlib.sha256(canonical.encode("utf-8")).hexdigest()
