"""On-disk audio cache with a SQLite metadata index.

Layout::

    <cache_dir>/cache.db          metadata index (key -> CacheEntry)
    <cache_dir>/audio/<key>.<ext> content-addressed audio files

Mutations (put, remove, clear, reconcile) are serialized by one writer
lock. Reads do not take the lock; a read racing a removal sees a missing
file and is treated as a miss.
"""

import asyncio
import contextlib
import logging
import os
import sqlite3
import uuid
from collections.abc import Callable
from datetime import datetime
from pathlib import Path

from ..tts.context import RequestContext
from ..tts.errors import CacheReadCorruption, CacheWriteError
from .eviction import EvictionPolicy
from .models import CachedAudio, CacheEntry, CacheLimits, CacheMetadata, CacheStats
from .storage import CacheStorage

logger = logging.getLogger(__name__)

KNOWN_EXTENSIONS = ("mp3", "opus", "aac", "flac", "wav", "pcm", "ulaw", "alaw")
TEMP_SUFFIX = ".tmp"


def file_extension(audio_format: str) -> str:
    """Map a provider format string to a file extension (default mp3)."""
    normalized = audio_format.lower()
    for ext in KNOWN_EXTENSIONS:
        if ext in normalized:
            return ext
    return "mp3"


class CacheStore:
    """Bounded, persistent store of synthesized audio keyed by cache key.

    Example:
        store = CacheStore(Path("/tmp/hookvoice"), CacheLimits(max_entries=50))

        cached = await store.get(key, ctx)
        if cached is None:
            audio = await provider.synthesize(text, options)
            await store.put(key, audio, CacheMetadata(provider="openai"), ctx)
    """

    def __init__(
        self,
        cache_dir: Path,
        limits: CacheLimits | None = None,
        eviction: EvictionPolicy | None = None,
        clock: Callable[[], datetime] | None = None,
        reconcile: bool = True,
    ) -> None:
        """Initialize the store and reconcile index and directory.

        Args:
            cache_dir: Directory for the index and audio files
            limits: Size, count and age bounds
            eviction: Eviction policy run after every put
            clock: Source of timestamps (defaults to datetime.now)
            reconcile: Whether to remove orphans and stale rows at startup

        Raises:
            RuntimeError: If the cache directory or index cannot be created
        """
        self.cache_dir = Path(cache_dir)
        self.audio_dir = self.cache_dir / "audio"
        self.limits = limits or CacheLimits()
        self.eviction = eviction or EvictionPolicy()
        self._clock = clock or datetime.now

        try:
            self.audio_dir.mkdir(parents=True, exist_ok=True)
            self.storage = CacheStorage(self.cache_dir)
        except (OSError, sqlite3.Error) as e:
            raise RuntimeError(f"Failed to initialize cache store: {e}") from e

        self._write_lock = asyncio.Lock()
        self._hits = 0
        self._misses = 0

        if reconcile:
            self.reconcile()

        logger.debug(f"CacheStore initialized at {self.cache_dir}")

    def now(self) -> datetime:
        """Current time according to the store's clock."""
        return self._clock()

    async def get(
        self, key: str, ctx: RequestContext | None = None
    ) -> CachedAudio | None:
        """Look up cached audio for ``key``.

        A known key whose file is missing, truncated or expired is removed
        and reported as a miss. A hit updates ``last_accessed_at`` and
        ``hit_count``.

        Args:
            key: Cache key
            ctx: Request context for log correlation

        Returns:
            Entry and audio bytes on hit, None on miss
        """
        log = self._log(ctx)

        try:
            entry = self.storage.get(key)
        except sqlite3.Error as e:
            log.error(f"Cache index lookup failed: {e}")
            self._misses += 1
            return None

        if entry is None:
            self._misses += 1
            return None

        if self._is_expired(entry, self.now()):
            log.debug(f"Cache entry {key[:12]} expired")
            await self.remove(key, ctx)
            self._misses += 1
            return None

        try:
            data = await asyncio.to_thread(entry.file_path.read_bytes)
        except FileNotFoundError:
            log.warning(
                f"Cache corruption: metadata exists but audio file missing: {entry.file_path}"
            )
            await self.remove(key, ctx)
            self._misses += 1
            return None
        except OSError as e:
            log.error(f"Failed to read cached audio {entry.file_path}: {e}")
            self._misses += 1
            return None

        if not data or len(data) != entry.size_bytes:
            error = CacheReadCorruption(
                f"Cached audio {entry.file_path} has {len(data)} bytes, "
                f"expected {entry.size_bytes}"
            )
            log.warning(f"{error}; removing entry")
            await self.remove(key, ctx)
            self._misses += 1
            return None

        self._hits += 1
        entry = await self.record_hit(key, ctx) or entry
        log.debug(f"Cache hit for {key[:12]} (hits: {entry.hit_count})")
        return CachedAudio(entry=entry, data=data)

    async def put(
        self,
        key: str,
        data: bytes,
        metadata: CacheMetadata,
        ctx: RequestContext | None = None,
    ) -> CacheEntry:
        """Store audio under ``key`` and run an eviction pass.

        The file is written to a temporary name and moved into place before
        the metadata row is committed. If the commit fails the file is
        removed again, so no file is left without an entry.

        Args:
            key: Cache key
            data: Audio bytes
            metadata: Provider, voice and format of the audio
            ctx: Request context for log correlation

        Returns:
            The committed cache entry

        Raises:
            CacheWriteError: If the file or the metadata cannot be written
        """
        log = self._log(ctx)
        if not data:
            raise CacheWriteError("Refusing to cache empty audio")

        ext = file_extension(metadata.format)
        audio_path = self.audio_dir / f"{key}.{ext}"
        temp_path = self.audio_dir / f".{key}.{uuid.uuid4().hex}{TEMP_SUFFIX}"

        async with self._write_lock:
            previous = self.storage.get(key)

            try:
                await asyncio.to_thread(self._write_file, temp_path, audio_path, data)
            except OSError as e:
                temp_path.unlink(missing_ok=True)
                raise CacheWriteError(
                    f"Failed to write audio file {audio_path}: {e}", e
                ) from e

            now = self.now()
            entry = CacheEntry(
                key=key,
                size_bytes=len(data),
                created_at=now,
                last_accessed_at=now,
                hit_count=0,
                provider=metadata.provider,
                voice=metadata.voice,
                format=metadata.format.lower(),
                file_path=audio_path,
            )

            try:
                self.storage.save(entry)
            except sqlite3.Error as e:
                audio_path.unlink(missing_ok=True)
                with contextlib.suppress(sqlite3.Error):
                    self.storage.delete(key)
                raise CacheWriteError(f"Failed to commit cache metadata: {e}", e) from e

            if previous is not None and previous.file_path != audio_path:
                previous.file_path.unlink(missing_ok=True)

        log.info(
            f"Cached {len(data)} bytes for {key[:12]} "
            f"({metadata.provider}/{metadata.voice or 'default'})"
        )

        await self.eviction.enforce(self, self.limits, protected_key=key, ctx=ctx)
        return entry

    async def record_hit(
        self, key: str, ctx: RequestContext | None = None
    ) -> CacheEntry | None:
        """Bump ``hit_count`` and ``last_accessed_at`` for ``key``.

        Returns:
            Updated entry, or None if the key is unknown
        """
        async with self._write_lock:
            try:
                if not self.storage.touch(key, self.now()):
                    return None
                return self.storage.get(key)
            except sqlite3.Error as e:
                self._log(ctx).error(f"Failed to record cache hit: {e}")
                return None

    async def remove(self, key: str, ctx: RequestContext | None = None) -> bool:
        """Remove the entry and its backing file.

        Returns:
            True if an entry was removed
        """
        async with self._write_lock:
            return await self._remove_unlocked(key, ctx)

    async def _remove_unlocked(self, key: str, ctx: RequestContext | None) -> bool:
        entry = self.storage.get(key)
        deleted = self.storage.delete(key)
        if entry is not None:
            try:
                await asyncio.to_thread(entry.file_path.unlink, missing_ok=True)
            except OSError as e:
                # Orphaned file is picked up by the next reconcile
                self._log(ctx).warning(f"Failed to delete {entry.file_path}: {e}")
        return deleted

    def list_entries(self) -> list[CacheEntry]:
        """Return all entries, least recently used first."""
        return self.storage.list_entries()

    def stats(self) -> CacheStats:
        """Compute cache statistics from the index and hit counters."""
        count, total, oldest, newest = self.storage.totals()
        lookups = self._hits + self._misses
        return CacheStats(
            entry_count=count,
            total_size_bytes=total,
            cache_hits=self._hits,
            cache_misses=self._misses,
            hit_rate=self._hits / lookups if lookups else 0.0,
            oldest_entry=oldest,
            newest_entry=newest,
        )

    async def clear(self, ctx: RequestContext | None = None) -> int:
        """Remove every entry and file and reset hit counters.

        Returns:
            Number of entries that existed before the clear
        """
        async with self._write_lock:
            entries = self.storage.list_entries()
            self.storage.clear()
            await asyncio.to_thread(self._delete_audio_files)
            self._hits = 0
            self._misses = 0

        self._log(ctx).info(f"Cleared {len(entries)} cache entries")
        return len(entries)

    def reconcile(self, ctx: RequestContext | None = None) -> int:
        """Make the index and the audio directory agree.

        Removes rows whose file is missing or has the wrong size, and files
        (including leftover temporary files) that have no row.

        Returns:
            Number of rows and files removed
        """
        log = self._log(ctx)
        removed = 0
        known: set[str] = set()

        for entry in self.storage.list_entries():
            path = entry.file_path
            if not path.exists():
                log.warning(f"Removing cache entry {entry.key[:12]}: file missing")
                self.storage.delete(entry.key)
                removed += 1
            elif path.stat().st_size != entry.size_bytes:
                log.warning(f"Removing cache entry {entry.key[:12]}: size mismatch")
                self.storage.delete(entry.key)
                path.unlink(missing_ok=True)
                removed += 1
            else:
                known.add(path.name)

        for path in self.audio_dir.iterdir():
            if path.is_file() and path.name not in known:
                log.debug(f"Removing orphaned cache file {path.name}")
                path.unlink(missing_ok=True)
                removed += 1

        if removed:
            log.info(f"Reconciled cache: removed {removed} stale rows or files")
        return removed

    async def reconcile_async(self, ctx: RequestContext | None = None) -> int:
        """Run ``reconcile`` under the writer lock in a worker thread."""
        async with self._write_lock:
            return await asyncio.to_thread(self.reconcile, ctx)

    def _is_expired(self, entry: CacheEntry, now: datetime) -> bool:
        if self.limits.max_age_ms is None:
            return False
        age_ms = (now - entry.created_at).total_seconds() * 1000
        return age_ms > self.limits.max_age_ms

    def _delete_audio_files(self) -> None:
        for path in self.audio_dir.iterdir():
            if path.is_file():
                path.unlink(missing_ok=True)

    @staticmethod
    def _write_file(temp_path: Path, audio_path: Path, data: bytes) -> None:
        temp_path.write_bytes(data)
        os.replace(temp_path, audio_path)

    @staticmethod
    def _log(ctx: RequestContext | None) -> logging.Logger | logging.LoggerAdapter:
        return ctx.logger(__name__) if ctx else logger
