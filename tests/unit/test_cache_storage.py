"""Unit tests for the SQLite cache index."""

import sys
from datetime import datetime, timedelta
from pathlib import Path
from tempfile import TemporaryDirectory

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))

from hookvoice.cache.models import CacheEntry
from hookvoice.cache.storage import CacheStorage

BASE = datetime(2025, 1, 1, 12, 0, 0)


def make_entry(key: str, offset_s: int = 0, size: int = 10) -> CacheEntry:
    moment = BASE + timedelta(seconds=offset_s)
    return CacheEntry(
        key=key,
        size_bytes=size,
        created_at=moment,
        last_accessed_at=moment,
        hit_count=0,
        provider="openai",
        voice="alloy",
        format="mp3",
        file_path=Path(f"/tmp/{key}.mp3"),
    )


class TestCacheStorage:
    """Test CacheStorage CRUD and ordering."""

    def test_save_and_get_roundtrip(self) -> None:
        """Test every field survives a save/get roundtrip."""
        with TemporaryDirectory() as temp_dir:
            storage = CacheStorage(Path(temp_dir))
            entry = make_entry("a")
            entry.last_accessed_at = BASE + timedelta(microseconds=123456)
            storage.save(entry)

            assert storage.get("a") == entry
            assert storage.get("missing") is None

    def test_database_created_in_cache_dir(self) -> None:
        """Test the index lives at <cache_dir>/cache.db."""
        with TemporaryDirectory() as temp_dir:
            storage = CacheStorage(Path(temp_dir) / "nested")
            assert storage.db_path == Path(temp_dir) / "nested" / "cache.db"
            assert storage.db_path.exists()

    def test_touch_increments_hits(self) -> None:
        """Test touch bumps hit_count and last_accessed_at."""
        with TemporaryDirectory() as temp_dir:
            storage = CacheStorage(Path(temp_dir))
            storage.save(make_entry("a"))

            later = BASE + timedelta(minutes=5)
            assert storage.touch("a", later) is True
            assert storage.touch("missing", later) is False

            entry = storage.get("a")
            assert entry is not None
            assert entry.hit_count == 1
            assert entry.last_accessed_at == later

    def test_list_entries_is_lru_ordered(self) -> None:
        """Test entries come back least recently used first."""
        with TemporaryDirectory() as temp_dir:
            storage = CacheStorage(Path(temp_dir))
            storage.save(make_entry("b", offset_s=2))
            storage.save(make_entry("a", offset_s=1))
            storage.save(make_entry("c", offset_s=3))
            storage.touch("a", BASE + timedelta(seconds=10))

            assert [e.key for e in storage.list_entries()] == ["b", "c", "a"]

    def test_totals_and_clear(self) -> None:
        """Test aggregate totals and clearing."""
        with TemporaryDirectory() as temp_dir:
            storage = CacheStorage(Path(temp_dir))
            assert storage.totals() == (0, 0, None, None)

            storage.save(make_entry("a", offset_s=0, size=5))
            storage.save(make_entry("b", offset_s=60, size=7))

            count, total, oldest, newest = storage.totals()
            assert (count, total) == (2, 12)
            assert oldest == BASE
            assert newest == BASE + timedelta(seconds=60)

            assert storage.clear() == 2
            assert storage.list_entries() == []

    def test_delete(self) -> None:
        """Test delete reports whether a row existed."""
        with TemporaryDirectory() as temp_dir:
            storage = CacheStorage(Path(temp_dir))
            storage.save(make_entry("a"))
            assert storage.delete("a") is True
            assert storage.delete("a") is False
