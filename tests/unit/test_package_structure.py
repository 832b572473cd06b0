"""Test package structure and imports."""

import sys
from pathlib import Path

# Add src to path for testing
sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))


def test_package_imports() -> None:
    """Test that hookvoice package can be imported."""
    import hookvoice

    assert hookvoice.__version__ == "0.1.0"


def test_lazy_exports() -> None:
    """Test the top-level lazy attributes resolve."""
    import hookvoice
    from hookvoice.api import create_service, speak
    from hookvoice.core import SpeechService

    assert hookvoice.speak is speak
    assert hookvoice.create_service is create_service
    assert hookvoice.SpeechService is SpeechService


def test_main_module_imports() -> None:
    """Test that main module can be imported without error."""
    from hookvoice.__main__ import main

    # Should be able to import the main function
    assert callable(main)
