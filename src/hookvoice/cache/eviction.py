"""LRU and TTL eviction for the audio cache."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import TYPE_CHECKING

from ..tts.context import RequestContext
from .models import CacheEntry, CacheLimits

if TYPE_CHECKING:
    from .store import CacheStore

logger = logging.getLogger(__name__)

REASON_EXPIRED = "expired"
REASON_LRU = "lru"


class EvictionPolicy:
    """Keep a CacheStore within its size, count and age bounds.

    A pass first removes every entry older than ``max_age_ms``, then removes
    least recently used entries (ties broken by oldest ``created_at``) until
    both the size and the count bound hold. The entry written by the put
    that triggered the pass is removed last, and only if the bounds cannot
    be met any other way (for example ``max_entries == 0``).
    """

    def __init__(self) -> None:
        self._lock = asyncio.Lock()

    def select_victims(
        self,
        entries: list[CacheEntry],
        limits: CacheLimits,
        now: datetime,
        protected_key: str | None = None,
    ) -> list[tuple[str, str]]:
        """Choose which entries a pass removes.

        Args:
            entries: Current cache entries
            limits: Bounds to enforce
            now: Reference time for the TTL sweep
            protected_key: Key of the entry that was just written

        Returns:
            List of (key, reason) pairs in removal order
        """
        victims: list[tuple[str, str]] = []
        survivors: list[CacheEntry] = []

        for entry in entries:
            age_ms = (now - entry.created_at).total_seconds() * 1000
            if limits.max_age_ms is not None and age_ms > limits.max_age_ms:
                victims.append((entry.key, REASON_EXPIRED))
            else:
                survivors.append(entry)

        count = len(survivors)
        size = sum(entry.size_bytes for entry in survivors)

        # Protected entry sorts last so it only goes when nothing else is left
        survivors.sort(
            key=lambda e: (e.key == protected_key, e.last_accessed_at, e.created_at)
        )
        for entry in survivors:
            if count <= limits.max_entries and size <= limits.max_size_bytes:
                break
            victims.append((entry.key, REASON_LRU))
            count -= 1
            size -= entry.size_bytes

        return victims

    async def enforce(
        self,
        store: CacheStore,
        limits: CacheLimits,
        protected_key: str | None = None,
        ctx: RequestContext | None = None,
    ) -> list[str]:
        """Run one eviction pass against ``store``.

        Passes are serialized; each removal goes through ``store.remove``.

        Returns:
            Keys that were removed
        """
        log = ctx.logger(__name__) if ctx else logger
        removed: list[str] = []

        async with self._lock:
            victims = self.select_victims(
                store.list_entries(), limits, store.now(), protected_key
            )
            for key, reason in victims:
                if await store.remove(key, ctx):
                    removed.append(key)
                    log.debug(f"Evicted cache entry {key[:12]} ({reason})")

        if removed:
            log.info(f"Eviction pass removed {len(removed)} entries")
        return removed
