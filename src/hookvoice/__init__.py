"""hookvoice - cached, fallback-safe text-to-speech for developer-tool hooks."""

__version__ = "0.1.0"
__all__ = ["SpeechService", "create_service", "speak"]


def __getattr__(name: str):  # type: ignore[no-untyped-def]
    if name == "speak":
        from .api import speak

        return speak
    if name == "create_service":
        from .api import create_service

        return create_service
    if name == "SpeechService":
        from .core import SpeechService

        return SpeechService
    raise AttributeError(f"module 'hookvoice' has no attribute {name!r}")
