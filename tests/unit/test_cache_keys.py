"""Unit tests for cache key normalization and hashing."""

import sys
from pathlib import Path

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))

from hookvoice.cache.keys import CacheKeyGenerator, NormalizationConfig
from hookvoice.tts.models import SpeakRequest


def request(text: str = "Build finished", **kwargs) -> SpeakRequest:
    return SpeakRequest(text=text, correlation_id="cid", **kwargs)


class TestNormalizeText:
    """Test text normalization options."""

    def test_collapses_whitespace_and_casefolds(self) -> None:
        """Test default normalization trims, collapses and lowercases."""
        generator = CacheKeyGenerator()
        assert generator.normalize_text("  Build   FINISHED\n") == "build finished"

    @pytest.mark.parametrize("prefix", ["High priority: ", "low priority:", "MEDIUM Priority:  "])
    def test_strips_priority_prefix(self, prefix: str) -> None:
        """Test leading priority prefixes are removed."""
        generator = CacheKeyGenerator()
        assert generator.normalize_text(f"{prefix}Tests failed") == "tests failed"

    def test_priority_prefix_only_stripped_at_start(self) -> None:
        """Test a priority phrase in the middle of the text is kept."""
        generator = CacheKeyGenerator()
        assert (
            generator.normalize_text("Note high priority: later")
            == "note high priority: later"
        )

    def test_case_sensitive_option(self) -> None:
        """Test case is preserved when case_sensitive is set."""
        generator = CacheKeyGenerator(NormalizationConfig(case_sensitive=True))
        assert generator.normalize_text("Hello World") == "Hello World"

    def test_prefix_and_whitespace_options_disabled(self) -> None:
        """Test disabling prefix stripping and whitespace collapsing."""
        generator = CacheKeyGenerator(
            NormalizationConfig(strip_priority_prefixes=False, normalize_whitespace=False)
        )
        assert generator.normalize_text("High priority:  Done") == "high priority:  done"


class TestComputeKey:
    """Test key determinism and sensitivity."""

    def test_key_is_sha256_hex(self) -> None:
        """Test keys are 64 lowercase hex characters."""
        key = CacheKeyGenerator().compute_key(request())
        assert len(key) == 64
        assert all(c in "0123456789abcdef" for c in key)

    def test_normalized_equivalents_share_key(self) -> None:
        """Test texts that normalize identically produce the same key."""
        generator = CacheKeyGenerator()
        assert generator.compute_key(request("Build finished")) == generator.compute_key(
            request("  high priority:   BUILD   finished ")
        )

    def test_key_is_deterministic(self) -> None:
        """Test separate generators agree on the same request."""
        assert CacheKeyGenerator().compute_key(request()) == CacheKeyGenerator().compute_key(
            request()
        )

    @pytest.mark.parametrize(
        "change",
        [
            {"voice": "nova"},
            {"speed": 1.5},
            {"format": "wav"},
            {"model": "tts-1-hd"},
            {"explicit_provider": "openai"},
        ],
    )
    def test_each_parameter_changes_key(self, change: dict) -> None:
        """Test every key component participates in the hash."""
        generator = CacheKeyGenerator()
        assert generator.compute_key(request()) != generator.compute_key(request(**change))

    def test_defaults_match_explicit_defaults(self) -> None:
        """Test omitted speed and format equal the explicit defaults."""
        generator = CacheKeyGenerator()
        assert generator.compute_key(request()) == generator.compute_key(
            request(speed=1.0, format="MP3")
        )

    def test_canonical_string_layout(self) -> None:
        """Test the canonical string components and their order."""
        canonical = CacheKeyGenerator().canonical_string(
            request("Hi", voice="alloy", speed=2, model="tts-1")
        )
        assert canonical == "v1|auto|hi|tts-1|alloy|2.0|mp3"
