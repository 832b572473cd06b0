"""Provider fallback with per-attempt deadlines and single-flight coalescing.

Walks the provider registry in priority order until one provider returns
audio. Each attempt races the provider call against a timer; a provider
that misses its deadline is abandoned (cancellation is requested but never
awaited) and the next candidate is tried.

Concurrent calls for the same cache key share one in-flight task, so N
identical misses cost exactly one provider invocation.
"""

import asyncio
import dataclasses
import logging
import time
from collections.abc import Awaitable, Callable

from ..providers import ProviderRegistry
from ..providers.base import ProviderDescriptor, SynthesisOptions
from .context import RequestContext
from .errors import (
    NoProviderAvailable,
    ProviderChainExhausted,
    ProviderResponseInvalid,
    ProviderTimeout,
    ProviderUnavailable,
    TTSError,
)
from .models import ProviderFailure, SpeakRequest, SynthesisOutcome

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_MS = 10000

# Called inside the shared task after a successful synthesis
PersistHook = Callable[[SynthesisOutcome], Awaitable[None]]


class FallbackOrchestrator:
    """Try providers in order until one succeeds."""

    def __init__(
        self, registry: ProviderRegistry, default_timeout_ms: int = DEFAULT_TIMEOUT_MS
    ) -> None:
        if default_timeout_ms <= 0:
            raise ValueError("default_timeout_ms must be positive")
        self.registry = registry
        self.default_timeout_ms = default_timeout_ms
        self._inflight: dict[str, asyncio.Task[SynthesisOutcome]] = {}

    def inflight_count(self) -> int:
        return len(self._inflight)

    async def synthesize(
        self,
        request: SpeakRequest,
        key: str,
        ctx: RequestContext,
        persist: PersistHook | None = None,
    ) -> SynthesisOutcome:
        """Synthesize ``request``, joining any in-flight call for ``key``.

        Args:
            request: Validated speak request
            key: Cache key identifying identical requests
            ctx: Request context for log correlation
            persist: Optional hook run inside the shared task after success,
                before waiters are released

        Returns:
            SynthesisOutcome. Provider failures are reported in the outcome,
            never raised.
        """
        log = ctx.logger(__name__)

        existing = self._inflight.get(key)
        if existing is not None:
            log.debug(f"Joining in-flight synthesis for key {key[:12]}")
            outcome = await asyncio.shield(existing)
            return dataclasses.replace(outcome, coalesced=True)

        task = asyncio.ensure_future(self._run_chain(request, ctx, persist))
        self._inflight[key] = task
        task.add_done_callback(lambda t: self._release(key, t))
        # Shield so one cancelled caller does not cancel the shared work
        return await asyncio.shield(task)

    def _release(self, key: str, task: asyncio.Task[SynthesisOutcome]) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]

    def candidates(
        self, request: SpeakRequest
    ) -> tuple[list[ProviderDescriptor], list[ProviderFailure]]:
        """Return providers to try, in order, plus failures known up front."""
        ordered = self.registry.ordered()
        failures: list[ProviderFailure] = []

        if not request.explicit_provider:
            return ordered, failures

        explicit = self.registry.by_id(request.explicit_provider)
        if explicit is None:
            failures.append(
                ProviderFailure(
                    provider=request.explicit_provider,
                    kind=ProviderUnavailable.__name__,
                    message="provider is not registered",
                )
            )
            if not request.allow_fallback:
                return [], failures
            return ordered, failures

        if not request.allow_fallback:
            return [explicit], failures
        return [explicit] + [d for d in ordered if d.id != explicit.id], failures

    async def _run_chain(
        self,
        request: SpeakRequest,
        ctx: RequestContext,
        persist: PersistHook | None,
    ) -> SynthesisOutcome:
        log = ctx.logger(__name__)
        start = time.perf_counter()

        candidates, failures = self.candidates(request)
        log.debug(f"Fallback chain: {[d.id for d in candidates] or 'empty'}")

        for descriptor in candidates:
            failure, audio, audio_format = await self._attempt(descriptor, request, ctx)
            if failure is not None:
                log.warning(f"Provider {failure}")
                failures.append(failure)
                continue

            elapsed = (time.perf_counter() - start) * 1000
            log.info(
                f"Synthesized {len(audio)} bytes with {descriptor.id} in {elapsed:.0f}ms"
            )
            outcome = SynthesisOutcome(
                success=True,
                audio_data=audio,
                provider_name=descriptor.id,
                failures=failures,
                elapsed_ms=elapsed,
                audio_format=audio_format,
            )
            if persist is not None:
                await persist(outcome)
            return outcome

        elapsed = (time.perf_counter() - start) * 1000
        error: TTSError
        if not candidates:
            message = "No provider available"
            if failures:
                message += ": " + "; ".join(str(f) for f in failures)
            error = NoProviderAvailable(message)
        else:
            error = ProviderChainExhausted(
                "All providers failed: " + "; ".join(str(f) for f in failures),
                failures,
            )
        log.error(str(error))
        return SynthesisOutcome(
            success=False, failures=failures, elapsed_ms=elapsed, error=error
        )

    async def _attempt(
        self,
        descriptor: ProviderDescriptor,
        request: SpeakRequest,
        ctx: RequestContext,
    ) -> tuple[ProviderFailure | None, bytes, str | None]:
        """Run one provider attempt, returning a failure or the audio."""
        log = ctx.logger(__name__)

        def failed(kind: str, message: str) -> tuple[ProviderFailure, bytes, None]:
            return ProviderFailure(descriptor.id, kind, message), b"", None

        if not descriptor.is_available():
            return failed(ProviderUnavailable.__name__, "provider is not available")

        if not descriptor.supports_format(request.format):
            return failed(
                ProviderUnavailable.__name__,
                f"format {request.format} is not supported",
            )

        voice = request.voice
        if not descriptor.supports_voice(voice):
            log.debug(f"Voice {voice} not supported by {descriptor.id}, using default")
            voice = None

        options = SynthesisOptions(
            voice=voice, speed=request.speed, format=request.format, model=request.model
        )
        timeout_ms = descriptor.criteria.max_response_time_ms or self.default_timeout_ms

        log.debug(f"Trying provider {descriptor.id} (deadline {timeout_ms}ms)")
        attempt = asyncio.ensure_future(
            descriptor.provider.synthesize(request.text, options)
        )
        done, _ = await asyncio.wait({attempt}, timeout=timeout_ms / 1000)

        if attempt not in done:
            # Abandon the call; consume its eventual exception so it is not
            # reported as never retrieved
            attempt.add_done_callback(_consume_result)
            attempt.cancel()
            timeout = ProviderTimeout(
                f"no response within {timeout_ms}ms", timeout_ms=timeout_ms
            )
            return failed(ProviderTimeout.__name__, str(timeout))

        try:
            audio = attempt.result()
        except asyncio.CancelledError:
            return failed("ProviderError", "attempt was cancelled")
        except TTSError as e:
            return failed(type(e).__name__, str(e))
        except Exception as e:
            log.debug(f"Unexpected error from {descriptor.id}: {e!r}")
            return failed("ProviderError", str(e) or type(e).__name__)

        if not audio:
            return failed(ProviderResponseInvalid.__name__, "empty audio response")

        return None, audio, descriptor.provider.output_format(options)


def _consume_result(task: asyncio.Future) -> None:
    if not task.cancelled():
        task.exception()
