"""Audio player for cross-platform audio playback using pygame."""

# ruff: noqa: E402
import os

# Suppress pygame's annoying welcome message BEFORE any pygame import
os.environ["PYGAME_HIDE_SUPPORT_PROMPT"] = "1"

import warnings

# Suppress pygame's pkg_resources deprecation warning spam
warnings.filterwarnings("ignore", category=UserWarning, module="pygame.pkgdata")

import asyncio
import io
import logging
import time
from dataclasses import dataclass
from pathlib import Path

import pygame

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlayOptions:
    """Playback options.

    Args:
        volume: Mixer volume (0.0-1.0)
    """

    volume: float = 1.0

    def __post_init__(self) -> None:
        if not 0.0 <= self.volume <= 1.0:
            raise ValueError(f"volume must be between 0.0 and 1.0, got {self.volume}")


@dataclass(frozen=True)
class PlayResult:
    """Outcome of one playback."""

    success: bool
    duration_ms: float = 0.0
    error: str | None = None


class AudioPlayer:
    """Cross-platform audio player using pygame.

    The mixer is initialized on first playback so that constructing a
    player never touches the audio device.
    """

    def __init__(self) -> None:
        self._initialized = False

    def _ensure_mixer(self) -> None:
        """Initialize the pygame mixer once.

        Raises:
            RuntimeError: If pygame mixer fails to initialize.
        """
        if self._initialized:
            return
        try:
            pygame.mixer.init()
        except pygame.error as e:
            raise RuntimeError(f"Failed to initialize pygame audio mixer: {e}") from e
        self._initialized = True

    def _play_blocking(self, source: str | io.BytesIO, volume: float) -> None:
        self._ensure_mixer()
        try:
            pygame.mixer.music.load(source)
            pygame.mixer.music.set_volume(volume)
            pygame.mixer.music.play()

            # Wait for playback to complete
            while pygame.mixer.music.get_busy():
                pygame.time.Clock().tick(10)
        except pygame.error as e:
            raise RuntimeError(f"Failed to play audio: {e}") from e

    async def play(
        self, file_path: str | Path, options: PlayOptions | None = None
    ) -> PlayResult:
        """Play an audio file through system speakers.

        Args:
            file_path: Audio file in MP3 or WAV format
            options: Playback options

        Returns:
            PlayResult; playback errors are reported, not raised
        """
        path = Path(file_path)
        if not path.exists():
            return PlayResult(success=False, error=f"Audio file not found: {path}")
        return await self._play(str(path), options or PlayOptions())

    async def play_bytes(
        self, audio_data: bytes, options: PlayOptions | None = None
    ) -> PlayResult:
        """Play audio from bytes through system speakers.

        Args:
            audio_data: Audio data in MP3 or WAV format
            options: Playback options

        Returns:
            PlayResult; playback errors are reported, not raised

        Raises:
            ValueError: If no audio data provided
        """
        if not audio_data:
            raise ValueError("No audio data provided")
        return await self._play(io.BytesIO(audio_data), options or PlayOptions())

    async def _play(self, source: str | io.BytesIO, options: PlayOptions) -> PlayResult:
        start = time.perf_counter()
        try:
            # Run pygame operations in thread to avoid blocking event loop
            await asyncio.to_thread(self._play_blocking, source, options.volume)
        except RuntimeError as e:
            logger.error(str(e))
            return PlayResult(
                success=False,
                duration_ms=(time.perf_counter() - start) * 1000,
                error=str(e),
            )
        return PlayResult(success=True, duration_ms=(time.perf_counter() - start) * 1000)

    def save_to_file(self, audio_data: bytes, filepath: str | Path) -> None:
        """Save audio bytes to a file.

        Args:
            audio_data: Audio data to save.
            filepath: Path where the audio file should be saved.

        Raises:
            ValueError: If no audio data provided.
            OSError: If file cannot be written.
        """
        if not audio_data:
            raise ValueError("No audio data provided")

        # Convert to Path object if string
        filepath = Path(filepath)

        try:
            # Create parent directories if they don't exist
            filepath.parent.mkdir(parents=True, exist_ok=True)

            # Write audio data to file
            filepath.write_bytes(audio_data)

        except OSError as e:
            raise OSError(f"Failed to save audio to {filepath}: {e}") from e
