"""Audio cache for hookvoice TTS requests."""

from .eviction import EvictionPolicy
from .keys import CacheKeyGenerator, NormalizationConfig
from .models import CachedAudio, CacheEntry, CacheLimits, CacheMetadata, CacheStats
from .store import CacheStore

__all__ = [
    "CacheEntry",
    "CacheKeyGenerator",
    "CacheLimits",
    "CacheMetadata",
    "CacheStats",
    "CacheStore",
    "CachedAudio",
    "EvictionPolicy",
    "NormalizationConfig",
]
