"""Speak pipeline for hookvoice.

Coordinates CacheKeyGenerator, CacheStore and FallbackOrchestrator into the
request flow shared by speak and preload:

    IDLE -> CACHE_LOOKUP -> HIT -> DONE (from cache)
                         -> MISS -> PROVIDER_FALLBACK -> SUCCESS -> CACHE_PUT -> DONE
                                                      -> FAILURE -> DONE (error)

Playback is not part of the pipeline; callers play the result afterwards.
"""

import enum
import logging
import sqlite3
import time

from ..cache import CacheKeyGenerator, CachedAudio, CacheMetadata, CacheStore
from ..cache.keys import DEFAULT_FORMAT
from .context import RequestContext
from .errors import TTSError
from .models import SpeakRequest, SpeakResult, SynthesisOutcome
from .orchestrator import FallbackOrchestrator, PersistHook

logger = logging.getLogger(__name__)


class PipelineState(enum.Enum):
    IDLE = "idle"
    CACHE_LOOKUP = "cache_lookup"
    HIT = "hit"
    MISS = "miss"
    PROVIDER_FALLBACK = "provider_fallback"
    SUCCESS = "success"
    CACHE_PUT = "cache_put"
    FAILURE = "failure"
    DONE = "done"


class SpeakPipeline:
    """Run one request through cache lookup, fallback and cache write.

    The cache write happens inside the orchestrator's shared task through a
    persist hook, so requests coalesced onto the same synthesis are released
    only after the entry is committed. The CACHE_PUT state then reports what
    that write produced.

    Example:
        pipeline = SpeakPipeline(orchestrator, CacheKeyGenerator(), cache_store)
        ctx = RequestContext.new()
        result = await pipeline.process(
            SpeakRequest(text="Build finished", correlation_id=ctx.correlation_id),
            ctx,
        )
        # result.from_cache is True on the second identical request
    """

    def __init__(
        self,
        orchestrator: FallbackOrchestrator,
        key_generator: CacheKeyGenerator | None = None,
        cache_store: CacheStore | None = None,
    ) -> None:
        """Initialize the pipeline.

        Args:
            orchestrator: Provider fallback orchestrator
            key_generator: Cache key generator (default normalization if None)
            cache_store: Audio cache, or None when caching is disabled
        """
        self.orchestrator = orchestrator
        self.key_generator = key_generator or CacheKeyGenerator()
        self.cache_store = cache_store

    async def process(self, request: SpeakRequest, ctx: RequestContext) -> SpeakResult:
        """Serve ``request`` from cache or synthesize it.

        Never raises for provider or cache failures; those are reported in
        the returned result.
        """
        log = ctx.logger(__name__)
        start = time.perf_counter()
        key = self.key_generator.compute_key(request)

        cached: CachedAudio | None = None
        outcome: SynthesisOutcome | None = None
        result: SpeakResult | None = None
        state = PipelineState.IDLE

        while state is not PipelineState.DONE:
            if state is PipelineState.IDLE:
                next_state = (
                    PipelineState.CACHE_LOOKUP
                    if self.cache_store is not None
                    else PipelineState.MISS
                )

            elif state is PipelineState.CACHE_LOOKUP:
                cached = await self._lookup(key, ctx)
                next_state = PipelineState.HIT if cached else PipelineState.MISS

            elif state is PipelineState.HIT:
                assert cached is not None
                result = SpeakResult(
                    success=True,
                    from_cache=True,
                    duration_ms=0.0,
                    provider_name=cached.entry.provider,
                    audio_path=cached.entry.file_path,
                    cache_key=key,
                    audio_data=cached.data,
                )
                next_state = PipelineState.DONE

            elif state is PipelineState.MISS:
                next_state = PipelineState.PROVIDER_FALLBACK

            elif state is PipelineState.PROVIDER_FALLBACK:
                persist = self._persist_hook(key, request) if self.cache_store else None
                outcome = await self.orchestrator.synthesize(request, key, ctx, persist)
                next_state = (
                    PipelineState.SUCCESS if outcome.success else PipelineState.FAILURE
                )

            elif state is PipelineState.SUCCESS:
                assert outcome is not None
                result = SpeakResult(
                    success=True,
                    from_cache=False,
                    duration_ms=0.0,
                    provider_name=outcome.provider_name,
                    cache_key=key,
                    failures=outcome.failures,
                    audio_data=outcome.audio_data,
                )
                next_state = (
                    PipelineState.CACHE_PUT
                    if self.cache_store is not None
                    else PipelineState.DONE
                )

            elif state is PipelineState.CACHE_PUT:
                assert outcome is not None and result is not None
                result.audio_path = outcome.audio_path
                if outcome.audio_path is None:
                    log.warning("Audio synthesized but not cached")
                next_state = PipelineState.DONE

            elif state is PipelineState.FAILURE:
                assert outcome is not None
                result = SpeakResult(
                    success=False,
                    from_cache=False,
                    duration_ms=0.0,
                    error=str(outcome.error) if outcome.error else "Synthesis failed",
                    cache_key=key,
                    failures=outcome.failures,
                )
                next_state = PipelineState.DONE

            else:
                raise RuntimeError(f"Unhandled pipeline state {state}")

            log.debug(f"Pipeline {state.value} -> {next_state.value}")
            state = next_state

        assert result is not None
        result.duration_ms = (time.perf_counter() - start) * 1000
        return result

    async def _lookup(self, key: str, ctx: RequestContext) -> CachedAudio | None:
        """Cache lookup; read errors degrade to a miss."""
        assert self.cache_store is not None
        try:
            return await self.cache_store.get(key, ctx)
        except (TTSError, OSError, sqlite3.Error) as e:
            ctx.logger(__name__).error(f"Cache lookup failed, treating as miss: {e}")
            return None

    def _persist_hook(self, key: str, request: SpeakRequest) -> PersistHook:
        store = self.cache_store
        assert store is not None

        async def persist(outcome: SynthesisOutcome) -> None:
            ctx = RequestContext(request.correlation_id)
            metadata = CacheMetadata(
                provider=outcome.provider_name or "",
                voice=request.voice or "",
                format=outcome.audio_format or request.format or DEFAULT_FORMAT,
            )
            try:
                entry = await store.put(key, outcome.audio_data or b"", metadata, ctx)
            except (TTSError, OSError, sqlite3.Error) as e:
                ctx.logger(__name__).error(f"Cache write failed: {e}")
                return
            # The eviction pass inside put drops the new entry when the limits
            # cannot hold it (max_entries == 0 or audio over max_size_bytes)
            if not entry.file_path.exists():
                ctx.logger(__name__).debug(
                    f"Cache entry {key[:12]} evicted on write ({entry.size_bytes} bytes)"
                )
                return
            outcome.audio_path = entry.file_path

        return persist
