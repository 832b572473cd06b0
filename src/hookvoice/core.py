"""Core functionality for hookvoice - orchestrates cache, providers and playback."""

import logging
import sqlite3
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime

from .audio.player import AudioPlayer, PlayResult
from .cache import CacheEntry, CacheKeyGenerator, CacheLimits, CacheStats, CacheStore
from .config import HookVoiceConfig
from .providers import ProviderRegistry, build_registry
from .tts.context import RequestContext
from .tts.errors import ConfigurationError
from .tts.models import SpeakOptions, SpeakRequest, SpeakResult
from .tts.orchestrator import FallbackOrchestrator
from .tts.pipeline import SpeakPipeline

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProviderStatus:
    """Availability of one registered provider."""

    id: str
    priority: int
    available: bool


@dataclass(frozen=True)
class HealthStatus:
    """Snapshot of service health.

    ``healthy`` is True when at least one provider can be attempted.
    """

    healthy: bool
    cache_enabled: bool
    cache_stats: CacheStats
    providers: list[ProviderStatus] = field(default_factory=list)
    inflight_requests: int = 0


class SpeechService:
    """Speech service owning one cache, provider registry and pipeline.

    Construct once and pass the instance to every caller; nothing here is
    process-global.

    Example:
        service = SpeechService(load_config())
        result = await service.speak("Tests passed")
        if not result.success:
            print(result.error)
    """

    def __init__(
        self,
        config: HookVoiceConfig,
        registry: ProviderRegistry | None = None,
        player: AudioPlayer | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize the service.

        Args:
            config: Resolved configuration
            registry: Provider registry (built from config if None)
            player: Audio player (created on first playback if None)
            clock: Timestamp source for the cache (defaults to datetime.now)

        Raises:
            ConfigurationError: If the registry or cache cannot be built
        """
        self.config = config

        try:
            self.registry = registry if registry is not None else build_registry(config)
        except (KeyError, ValueError) as e:
            raise ConfigurationError(f"Invalid provider configuration: {e}", e) from e

        self.cache_store: CacheStore | None = None
        if config.cache.enabled:
            try:
                limits = CacheLimits(
                    max_size_bytes=config.cache.max_size_bytes,
                    max_entries=config.cache.max_entries,
                    max_age_ms=config.cache.max_age_ms,
                )
                self.cache_store = CacheStore(
                    config.cache.cache_dir, limits=limits, clock=clock
                )
            except (ValueError, RuntimeError) as e:
                raise ConfigurationError(f"Invalid cache configuration: {e}", e) from e
        else:
            logger.debug("Cache disabled by configuration")

        self.orchestrator = FallbackOrchestrator(
            self.registry, config.default_criteria.max_response_time_ms
        )
        self.pipeline = SpeakPipeline(
            self.orchestrator,
            CacheKeyGenerator(config.cache.normalization),
            self.cache_store,
        )
        self._player = player

        logger.debug(
            f"SpeechService initialized with providers {self.registry.ids()}, "
            f"cache={'on' if self.cache_store else 'off'}"
        )

    @property
    def player(self) -> AudioPlayer:
        if self._player is None:
            self._player = AudioPlayer()
        return self._player

    def build_request(
        self, text: str, options: SpeakOptions | None, ctx: RequestContext
    ) -> SpeakRequest:
        """Validate arguments into a request.

        Raises:
            ValueError: If text is empty or options are out of range
        """
        options = options or SpeakOptions()
        allow_fallback = (
            options.allow_fallback
            if options.allow_fallback is not None
            else self.config.default_criteria.allow_fallback
        )
        return SpeakRequest(
            text=text,
            correlation_id=ctx.correlation_id,
            voice=options.voice,
            speed=options.speed,
            format=options.format,
            model=options.model,
            explicit_provider=options.provider,
            allow_fallback=allow_fallback,
        )

    async def speak(
        self,
        text: str,
        options: SpeakOptions | None = None,
        play: bool = True,
        correlation_id: str | None = None,
    ) -> SpeakResult:
        """Synthesize (or fetch from cache) and optionally play ``text``.

        Provider and cache failures are reported in the result. Playback
        happens after the result is computed and is not part of
        ``duration_ms``.

        Raises:
            ValueError: If text is empty or options are out of range
        """
        ctx = RequestContext.new(correlation_id)
        request = self.build_request(text, options, ctx)
        log = ctx.logger(__name__)
        log.debug(f"speak: '{text[:50]}'")

        result = await self.pipeline.process(request, ctx)

        if play and result.success:
            play_result = await self._play(result)
            result.played = play_result.success
            if not play_result.success:
                log.warning(f"Playback failed: {play_result.error}")
        return result

    async def preload(
        self,
        text: str,
        options: SpeakOptions | None = None,
        correlation_id: str | None = None,
    ) -> SpeakResult:
        """Warm the cache for ``text`` without playing it.

        Raises:
            ValueError: If text is empty or options are out of range
        """
        ctx = RequestContext.new(correlation_id)
        request = self.build_request(text, options, ctx)
        ctx.logger(__name__).debug(f"preload: '{text[:50]}'")
        return await self.pipeline.process(request, ctx)

    async def _play(self, result: SpeakResult) -> PlayResult:
        if result.audio_path is not None and result.audio_path.exists():
            return await self.player.play(result.audio_path)
        if result.audio_data:
            return await self.player.play_bytes(result.audio_data)
        return PlayResult(success=False, error="No audio to play")

    def get_cache_stats(self, correlation_id: str | None = None) -> CacheStats:
        """Return cache statistics (all zeros when the cache is disabled)."""
        if self.cache_store is None:
            return CacheStats()
        try:
            return self.cache_store.stats()
        except sqlite3.Error as e:
            RequestContext.new(correlation_id).logger(__name__).error(
                f"Failed to read cache stats: {e}"
            )
            return CacheStats()

    def list_cache_entries(self) -> list[CacheEntry]:
        """Return cache entries, least recently used first."""
        if self.cache_store is None:
            return []
        return self.cache_store.list_entries()

    async def clear_cache(self, correlation_id: str | None = None) -> int:
        """Remove every cache entry.

        Returns:
            Number of entries that existed before the clear
        """
        if self.cache_store is None:
            return 0
        return await self.cache_store.clear(RequestContext.new(correlation_id))

    async def get_health_status(
        self, correlation_id: str | None = None
    ) -> HealthStatus:
        """Report cache state and provider availability."""
        ctx = RequestContext.new(correlation_id)
        providers = [
            ProviderStatus(id=d.id, priority=d.priority, available=d.is_available())
            for d in self.registry.ordered()
        ]
        status = HealthStatus(
            healthy=any(p.available for p in providers),
            cache_enabled=self.cache_store is not None,
            cache_stats=self.get_cache_stats(ctx.correlation_id),
            providers=providers,
            inflight_requests=self.orchestrator.inflight_count(),
        )
        ctx.logger(__name__).debug(
            f"Health: healthy={status.healthy}, "
            f"available={[p.id for p in providers if p.available]}"
        )
        return status

    async def cleanup(self, correlation_id: str | None = None) -> int:
        """Reconcile the cache with disk and run an eviction pass.

        Returns:
            Number of entries and files removed
        """
        if self.cache_store is None:
            return 0
        ctx = RequestContext.new(correlation_id)
        store = self.cache_store
        removed = await store.reconcile_async(ctx)
        evicted = await store.eviction.enforce(store, store.limits, ctx=ctx)
        total = removed + len(evicted)
        ctx.logger(__name__).info(f"Cleanup removed {total} cache items")
        return total
