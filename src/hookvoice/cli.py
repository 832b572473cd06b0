"""Typer CLI definition for hookvoice."""

import asyncio
import json
import logging
import sys
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

import typer

from .config import load_config
from .core import SpeechService
from .tts.errors import ConfigurationError
from .tts.models import SpeakOptions, SpeakResult

app = typer.Typer(help="Speak developer-tool events with cached, fallback-safe TTS")


@dataclass
class CLIState:
    debug: bool = False
    config_path: Path | None = None
    correlation_id: str | None = None


state = CLIState()


@app.callback()
def main(
    debug: bool = typer.Option(
        False, "--debug", help="Show verbose error messages and cache activity"
    ),
    config: Path | None = typer.Option(
        None, "--config", help="Config file (default ~/.config/hookvoice/config.toml)"
    ),
    correlation_id: str | None = typer.Option(
        None, "--correlation-id", help="Correlation id to tag log lines with"
    ),
) -> None:
    """Speak developer-tool events with cached, fallback-safe TTS."""
    # Configure logging for debug mode
    if debug:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        )
    state.debug = debug
    state.config_path = config
    state.correlation_id = correlation_id


def format_bytes(size: int) -> str:
    """Format a byte count for humans (e.g. ``1.5 MB``)."""
    if size < 1024:
        return f"{size} B"
    value = size / 1024
    for unit in ("KB", "MB"):
        if value < 1024:
            return f"{value:.1f} {unit}"
        value /= 1024
    return f"{value:.1f} GB"


def format_relative_time(moment: datetime | None, now: datetime | None = None) -> str:
    """Format a timestamp relative to ``now`` (e.g. ``5 minutes ago``)."""
    if moment is None:
        return "never"
    now = now or datetime.now()
    seconds = int((now - moment).total_seconds())
    if seconds < 60:
        return "just now"
    for unit, span in (("day", 86400), ("hour", 3600), ("minute", 60)):
        if seconds >= span:
            count = seconds // span
            return f"{count} {unit}{'s' if count != 1 else ''} ago"
    return "just now"


def process_text_input(text: str | None) -> str:
    """Process text input and return the text to speak.

    Raises:
        ValueError: If no text is provided
    """
    if text is None or not text.strip():
        raise ValueError("No text provided")
    return text


def fail(message: str, error: Exception | None = None) -> typer.Exit:
    """Print an error (verbose with --debug) and return an Exit to raise."""
    if state.debug and error is not None:
        typer.echo(f"Debug - {message}: {error!r}", err=True)
    else:
        typer.echo(f"Error: {message}", err=True)
    return typer.Exit(1)


def create_service() -> SpeechService:
    try:
        return SpeechService(load_config(state.config_path))
    except ConfigurationError as e:
        raise fail(str(e), e) from None


def read_text(text: str | None, file: Path | None) -> str:
    # Text from argument, file, or stdin (in priority order)
    if text is None:
        if file:
            try:
                text = file.read_text()
            except FileNotFoundError as e:
                raise fail(f"File not found: {file}", e) from None
            except PermissionError as e:
                raise fail(f"Permission denied reading file: {file}", e) from None
            except UnicodeDecodeError as e:
                raise fail(f"Unable to decode file as text: {file}", e) from None
        elif not sys.stdin.isatty():
            text = sys.stdin.read().strip()
    try:
        return process_text_input(text)
    except ValueError as e:
        raise fail(str(e), e) from None


def report(result: SpeakResult) -> None:
    if not result.success:
        for failure in result.failures:
            typer.echo(f"  {failure}", err=True)
        raise fail(result.error or "Synthesis failed")
    if state.debug:
        source = "cache" if result.from_cache else result.provider_name
        typer.echo(f"Debug - served by {source} in {result.duration_ms:.0f}ms", err=True)


@app.command()
def speak(
    text: str | None = typer.Argument(None, help="Text to convert to speech"),
    file: Path | None = typer.Option(None, "-f", "--file", help="Read text from file"),
    output: Path | None = typer.Option(
        None, "-o", "--output", help="Save output to file instead of playing"
    ),
    voice: str | None = typer.Option(None, "-v", "--voice", help="Voice identifier"),
    provider: str | None = typer.Option(
        None, "-p", "--provider", help="Provider id to try first"
    ),
    model: str | None = typer.Option(None, "-m", "--model", help="Model identifier"),
    speed: float | None = typer.Option(None, "--speed", help="Speaking rate (0.25-4.0)"),
    audio_format: str | None = typer.Option(
        None, "--format", help="Audio format (mp3, wav, ...)"
    ),
    no_fallback: bool = typer.Option(
        False, "--no-fallback", help="Only try the provider given with --provider"
    ),
) -> None:
    """Convert text to speech and play it."""
    content = read_text(text, file)
    options = SpeakOptions(
        voice=voice,
        speed=speed,
        format=audio_format,
        model=model,
        provider=provider,
        allow_fallback=False if no_fallback else None,
    )
    service = create_service()

    try:
        result = asyncio.run(
            service.speak(
                content,
                options,
                play=output is None,
                correlation_id=state.correlation_id,
            )
        )
    except ValueError as e:
        raise fail(str(e), e) from None

    report(result)

    if output is not None and result.audio_data:
        try:
            service.player.save_to_file(result.audio_data, output)
        except OSError as e:
            raise fail(f"Failed to save audio file: {e}", e) from None
        typer.echo(f"Audio saved to {output}")


@app.command()
def preload(
    texts: list[str] | None = typer.Argument(None, help="Phrases to synthesize and cache"),
    file: Path | None = typer.Option(
        None, "-f", "--file", help="Read phrases from file, one per line"
    ),
    voice: str | None = typer.Option(None, "-v", "--voice", help="Voice identifier"),
    provider: str | None = typer.Option(
        None, "-p", "--provider", help="Provider id to try first"
    ),
) -> None:
    """Warm the cache without playing anything."""
    phrases = list(texts or [])
    if file:
        try:
            phrases.extend(line.strip() for line in file.read_text().splitlines())
        except OSError as e:
            raise fail(f"Cannot read {file}", e) from None
    phrases = [p for p in phrases if p]
    if not phrases:
        raise fail("No text provided")

    service = create_service()
    options = SpeakOptions(voice=voice, provider=provider)

    async def run() -> list[SpeakResult]:
        return [
            await service.preload(p, options, correlation_id=state.correlation_id)
            for p in phrases
        ]

    failed = 0
    for phrase, result in zip(phrases, asyncio.run(run()), strict=True):
        if result.success:
            source = "cached" if result.from_cache else f"synthesized ({result.provider_name})"
            typer.echo(f"✓ {phrase[:50]}: {source}")
        else:
            failed += 1
            typer.echo(f"✗ {phrase[:50]}: {result.error}", err=True)
    if failed:
        raise typer.Exit(1)


@app.command()
def stats(
    as_json: bool = typer.Option(False, "--json", help="Print statistics as JSON"),
) -> None:
    """Show cache statistics."""
    service = create_service()
    cache_stats = service.get_cache_stats(state.correlation_id)

    if as_json:
        typer.echo(
            json.dumps(
                {
                    "enabled": service.cache_store is not None,
                    "entry_count": cache_stats.entry_count,
                    "total_size_bytes": cache_stats.total_size_bytes,
                    "cache_hits": cache_stats.cache_hits,
                    "cache_misses": cache_stats.cache_misses,
                    "hit_rate": cache_stats.hit_rate,
                    "oldest_entry": cache_stats.oldest_entry.isoformat()
                    if cache_stats.oldest_entry
                    else None,
                    "newest_entry": cache_stats.newest_entry.isoformat()
                    if cache_stats.newest_entry
                    else None,
                },
                indent=2,
            )
        )
        return

    typer.echo("=== Cache Statistics ===")
    if service.cache_store is None:
        typer.echo("Cache disabled")
    typer.echo(f"Entries: {cache_stats.entry_count}")
    typer.echo(f"Total size: {format_bytes(cache_stats.total_size_bytes)}")
    typer.echo(f"Oldest entry: {format_relative_time(cache_stats.oldest_entry)}")
    typer.echo(f"Newest entry: {format_relative_time(cache_stats.newest_entry)}")


@app.command()
def entries(
    limit: int = typer.Option(20, "-n", "--limit", help="Number of entries to show"),
) -> None:
    """List cache entries, most recently used first."""
    service = create_service()
    listed = list(reversed(service.list_cache_entries()))
    if not listed:
        typer.echo("Cache is empty")
        return
    for entry in listed[:limit]:
        typer.echo(
            f"{entry.key[:12]}  {format_bytes(entry.size_bytes):>9}  "
            f"{entry.provider:<10}  hits={entry.hit_count:<4} "
            f"last used {format_relative_time(entry.last_accessed_at)}"
        )
    if len(listed) > limit:
        typer.echo(f"... and {len(listed) - limit} more")


@app.command()
def clear(
    yes: bool = typer.Option(False, "-y", "--yes", help="Do not ask for confirmation"),
) -> None:
    """Remove every cached audio file."""
    if not yes:
        typer.confirm("Remove all cached audio?", abort=True)
    service = create_service()
    count = asyncio.run(service.clear_cache(state.correlation_id))
    typer.echo(f"Removed {count} cache entries")


@app.command()
def health() -> None:
    """Show provider availability and cache state."""
    service = create_service()
    status = asyncio.run(service.get_health_status(state.correlation_id))

    typer.echo("=== Providers ===")
    for provider in status.providers:
        mark = "✓" if provider.available else "✗"
        typer.echo(f"{mark} {provider.id} (priority {provider.priority})")
    typer.echo(f"\nCache: {'enabled' if status.cache_enabled else 'disabled'}")
    if status.cache_enabled:
        typer.echo(
            f"  {status.cache_stats.entry_count} entries, "
            f"{format_bytes(status.cache_stats.total_size_bytes)}"
        )
    typer.echo(f"\nStatus: {'healthy' if status.healthy else 'unhealthy'}")
    if not status.healthy:
        raise typer.Exit(1)


@app.command()
def cleanup() -> None:
    """Reconcile the cache with disk and enforce its bounds."""
    service = create_service()
    removed = asyncio.run(service.cleanup(state.correlation_id))
    typer.echo(f"Cleanup removed {removed} items")
