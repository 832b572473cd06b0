"""Audio playback package for hookvoice.

This package provides cross-platform audio playback functionality using pygame.
"""

from .player import AudioPlayer, PlayOptions, PlayResult

__all__ = ["AudioPlayer", "PlayOptions", "PlayResult"]
