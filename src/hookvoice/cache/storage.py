"""SQLite cache index implementation."""

import sqlite3
from datetime import datetime
from pathlib import Path

from .models import CacheEntry


class CacheStorage:
    """SQLite-based metadata index for cached audio.

    Stores one row per cache key while audio files are stored separately
    on the filesystem. Each operation opens its own connection so the
    index can be used from worker threads.
    """

    def __init__(self, cache_dir: Path):
        """Initialize cache storage with database in given directory.

        Args:
            cache_dir: Directory containing cache database
        """
        self.cache_dir = cache_dir

        # Create cache directory if it doesn't exist
        cache_dir.mkdir(parents=True, exist_ok=True)

        self.db_path = cache_dir / "cache.db"

        # Initialize DB with WAL mode for concurrency
        self._init_db_with_wal()

    def _get_connection(self) -> sqlite3.Connection:
        """Get a new database connection with WAL mode for concurrency."""
        conn = sqlite3.connect(
            str(self.db_path),
            timeout=30.0,  # 30 second timeout if locked
            check_same_thread=False,  # Allow use across threads
        )
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA busy_timeout=30000")
        conn.execute("PRAGMA synchronous=NORMAL")
        return conn

    def _init_db_with_wal(self) -> None:
        """Initialize database with WAL mode and schema."""
        conn = self._get_connection()
        try:
            self._init_db(conn)
        finally:
            conn.close()

    def _init_db(self, conn: sqlite3.Connection) -> None:
        """Initialize database schema with tables and indexes."""
        cursor = conn.cursor()

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS entries (
                key TEXT PRIMARY KEY,
                size_bytes INTEGER NOT NULL,
                created_at TEXT NOT NULL,
                last_accessed_at TEXT NOT NULL,
                hit_count INTEGER NOT NULL DEFAULT 0,
                provider TEXT NOT NULL,
                voice TEXT NOT NULL,
                format TEXT NOT NULL,
                file_path TEXT NOT NULL
            )
        """)

        # LRU ordering is read on every eviction pass
        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_last_accessed
            ON entries(last_accessed_at, created_at)
        """)

        conn.commit()

    def save(self, entry: CacheEntry) -> None:
        """Insert or replace the row for ``entry.key``.

        Args:
            entry: Cache entry to save
        """
        conn = self._get_connection()
        try:
            conn.execute(
                """
                INSERT OR REPLACE INTO entries
                    (key, size_bytes, created_at, last_accessed_at, hit_count,
                     provider, voice, format, file_path)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
                (
                    entry.key,
                    entry.size_bytes,
                    entry.created_at.isoformat(),
                    entry.last_accessed_at.isoformat(),
                    entry.hit_count,
                    entry.provider,
                    entry.voice,
                    entry.format,
                    str(entry.file_path),
                ),
            )
            conn.commit()
        finally:
            conn.close()

    def get(self, key: str) -> CacheEntry | None:
        """Retrieve cache entry by key.

        Args:
            key: Cache key to look up

        Returns:
            Cache entry if found, None otherwise
        """
        conn = self._get_connection()
        try:
            row = conn.execute(
                "SELECT * FROM entries WHERE key = ?", (key,)
            ).fetchone()
        finally:
            conn.close()

        if row is None:
            return None
        return self._row_to_entry(row)

    def touch(self, key: str, accessed_at: datetime) -> bool:
        """Record a hit: bump hit_count and last_accessed_at.

        Returns:
            True if a row was updated
        """
        conn = self._get_connection()
        try:
            cursor = conn.execute(
                """
                UPDATE entries
                SET hit_count = hit_count + 1, last_accessed_at = ?
                WHERE key = ?
            """,
                (accessed_at.isoformat(), key),
            )
            conn.commit()
            return cursor.rowcount > 0
        finally:
            conn.close()

    def delete(self, key: str) -> bool:
        """Delete the row for ``key``.

        Returns:
            True if a row was deleted
        """
        conn = self._get_connection()
        try:
            cursor = conn.execute("DELETE FROM entries WHERE key = ?", (key,))
            conn.commit()
            return cursor.rowcount > 0
        finally:
            conn.close()

    def list_entries(self) -> list[CacheEntry]:
        """Return all entries, least recently used first."""
        conn = self._get_connection()
        try:
            rows = conn.execute(
                "SELECT * FROM entries ORDER BY last_accessed_at, created_at"
            ).fetchall()
        finally:
            conn.close()
        return [self._row_to_entry(row) for row in rows]

    def totals(self) -> tuple[int, int, datetime | None, datetime | None]:
        """Return (entry_count, total_size_bytes, oldest, newest)."""
        conn = self._get_connection()
        try:
            row = conn.execute("""
                SELECT COUNT(*) AS n,
                       COALESCE(SUM(size_bytes), 0) AS total,
                       MIN(created_at) AS oldest,
                       MAX(created_at) AS newest
                FROM entries
            """).fetchone()
        finally:
            conn.close()

        oldest = datetime.fromisoformat(row["oldest"]) if row["oldest"] else None
        newest = datetime.fromisoformat(row["newest"]) if row["newest"] else None
        return int(row["n"]), int(row["total"]), oldest, newest

    def clear(self) -> int:
        """Delete every row.

        Returns:
            Number of rows deleted
        """
        conn = self._get_connection()
        try:
            cursor = conn.execute("DELETE FROM entries")
            conn.commit()
            return cursor.rowcount
        finally:
            conn.close()

    @staticmethod
    def _row_to_entry(row: sqlite3.Row) -> CacheEntry:
        # Convert stored strings back to proper types
        return CacheEntry(
            key=row["key"],
            size_bytes=row["size_bytes"],
            created_at=datetime.fromisoformat(row["created_at"]),
            last_accessed_at=datetime.fromisoformat(row["last_accessed_at"]),
            hit_count=row["hit_count"],
            provider=row["provider"],
            voice=row["voice"],
            format=row["format"],
            file_path=Path(row["file_path"]),
        )
