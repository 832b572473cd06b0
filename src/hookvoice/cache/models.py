"""Data models for cache storage."""

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path


@dataclass
class CacheEntry:
    """Cache entry containing TTS metadata and audio file reference.

    Attributes:
        key: Cache key (SHA-256 hex) the entry is stored under
        size_bytes: Size of the backing audio file
        created_at: When this entry was written
        last_accessed_at: When this entry was last served or written
        hit_count: Number of times the entry was served
        provider: Provider that produced the audio
        voice: Voice identifier used for synthesis
        format: Audio format of the backing file
        file_path: Path to the cached audio file
    """

    key: str
    size_bytes: int
    created_at: datetime
    last_accessed_at: datetime
    hit_count: int
    provider: str
    voice: str
    format: str
    file_path: Path


@dataclass(frozen=True)
class CacheMetadata:
    """Metadata supplied by the caller when storing audio."""

    provider: str
    voice: str = ""
    format: str = "mp3"


@dataclass
class CachedAudio:
    """A cache hit: the entry plus its audio bytes."""

    entry: CacheEntry
    data: bytes = field(repr=False)


@dataclass(frozen=True)
class CacheLimits:
    """Bounds enforced by the eviction policy.

    Attributes:
        max_size_bytes: Maximum total size of all audio files
        max_entries: Maximum number of entries
        max_age_ms: Maximum entry age; None disables the TTL sweep
    """

    max_size_bytes: int = 100 * 1024 * 1024
    max_entries: int = 1000
    max_age_ms: int | None = 30 * 24 * 60 * 60 * 1000

    def __post_init__(self) -> None:
        """Validate limits."""
        if self.max_size_bytes < 0:
            raise ValueError("max_size_bytes cannot be negative")
        if self.max_entries < 0:
            raise ValueError("max_entries cannot be negative")
        if self.max_age_ms is not None and self.max_age_ms < 0:
            raise ValueError("max_age_ms cannot be negative")


@dataclass(frozen=True)
class CacheStats:
    """Snapshot of cache state, derived on demand."""

    entry_count: int = 0
    total_size_bytes: int = 0
    cache_hits: int = 0
    cache_misses: int = 0
    hit_rate: float = 0.0
    oldest_entry: datetime | None = None
    newest_entry: datetime | None = None
