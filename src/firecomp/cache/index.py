"""Persistent render index backed by SQLite, with artifacts under a cache root."""

from __future__ import annotations

import contextlib
import logging
import shutil
import sqlite3
import threading
from collections.abc import Iterator
from pathlib import Path
from types import TracebackType

from firecomp.cache.stats import CacheEntry, IndexStats
from firecomp.errors.exceptions import StaleEntry, StorageError
from firecomp.types import CANONICAL_FORMAT, DeliveryFormat

logger = logging.getLogger(__name__)

_ARTIFACT_STEM = "result"


class RenderIndex:
    """Maps cache keys to canonical artifacts stored one directory per key.

    Layout: ``<cache_root>/<key>/result.<ext>``. Rows store the path relative
    to the cache root so the root can be relocated. A row whose file has
    vanished is deleted on sight and reported as a miss.

    The connection is shared across worker threads and serialized by a lock;
    each public operation runs as one transaction.
    """

    def __init__(
        self,
        db_path: Path,
        cache_root: Path,
        canonical_format: DeliveryFormat = CANONICAL_FORMAT,
    ) -> None:
        self._db_path = Path(db_path)
        self._cache_root = Path(cache_root)
        self._artifact_name = f"{_ARTIFACT_STEM}{canonical_format.extension}"
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.Lock()

    @property
    def cache_root(self) -> Path:
        return self._cache_root

    @property
    def db_path(self) -> Path:
        return self._db_path

    def initialize(self) -> None:
        """Open the database and run the schema migration. Idempotent."""
        if self._conn is not None:
            return
        with self._storage("initialize"):
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            self._cache_root.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(str(self._db_path), check_same_thread=False)
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA journal_mode = WAL")
            self._create_table(conn)
            self._conn = conn
        logger.debug("Render index opened at %s", self._db_path)

    def lookup(self, key: str) -> Path | None:
        """Return the absolute artifact path for ``key`` and count the hit.

        A row whose backing file is missing is deleted and reported as a miss.
        """
        with self._lock, self._storage("lookup"):
            conn = self._connection()
            with conn:
                row = conn.execute(
                    "SELECT file_path FROM cache_entries WHERE id = ?", (key,)
                ).fetchone()
                if row is None:
                    return None
                try:
                    path = self._resolve(key, row["file_path"])
                except StaleEntry as stale:
                    conn.execute("DELETE FROM cache_entries WHERE id = ?", (key,))
                    logger.info("Stale cache entry removed: %s (%s)", key, stale.file_path)
                    return None
                conn.execute(
                    "UPDATE cache_entries SET hit_count = hit_count + 1 WHERE id = ?",
                    (key,),
                )
        logger.info("Cache HIT: %s", key)
        return path

    def insert(
        self,
        key: str,
        image_hash: str,
        low_quality: bool,
        source_path: Path,
    ) -> Path:
        """Copy a rendered artifact into the cache root and record it.

        The copy lands under a temporary name and is renamed into place, so a
        partially written artifact is never visible under the canonical name.
        """
        entry_dir = self._cache_root / key
        dest = entry_dir / self._artifact_name
        partial = entry_dir / f".{self._artifact_name}.partial"
        entry = CacheEntry(
            id=key,
            image_hash=image_hash,
            low_quality=low_quality,
            file_path=dest.relative_to(self._cache_root).as_posix(),
        )

        with self._lock, self._storage("insert"):
            conn = self._connection()
            entry_dir.mkdir(parents=True, exist_ok=True)
            try:
                shutil.copyfile(source_path, partial)
                partial.replace(dest)
            except OSError:
                partial.unlink(missing_ok=True)
                # only succeeds when the directory is empty
                with contextlib.suppress(OSError):
                    entry_dir.rmdir()
                raise
            with conn:
                conn.execute(
                    """INSERT OR REPLACE INTO cache_entries
                       (id, image_hash, low_quality, file_path, created_at, hit_count)
                       VALUES (?, ?, ?, ?, ?, 0)""",
                    (
                        entry.id,
                        entry.image_hash,
                        int(entry.low_quality),
                        entry.file_path,
                        entry.created_at,
                    ),
                )
        logger.info("Cache SAVED: %s", key)
        return dest

    def remove_stale(self, key: str) -> bool:
        """Delete the row for ``key``. Returns whether a row was removed."""
        with self._lock, self._storage("remove_stale"):
            conn = self._connection()
            with conn:
                cursor = conn.execute("DELETE FROM cache_entries WHERE id = ?", (key,))
        return cursor.rowcount > 0

    def remove_by_path(self, file_path: str) -> bool:
        """Delete rows that reference ``file_path`` (relative to the cache root)."""
        with self._lock, self._storage("remove_by_path"):
            conn = self._connection()
            with conn:
                cursor = conn.execute(
                    "DELETE FROM cache_entries WHERE file_path = ?", (file_path,)
                )
        return cursor.rowcount > 0

    def get(self, key: str) -> CacheEntry | None:
        """Fetch a row without counting a hit or checking the file."""
        with self._lock, self._storage("get"):
            row = self._connection().execute(
                "SELECT * FROM cache_entries WHERE id = ?", (key,)
            ).fetchone()
        return self._row_to_entry(row) if row is not None else None

    def random_artifact(self) -> Path | None:
        """Pick a random cached artifact.

        If the chosen row's file is gone, the row is removed and ``None`` is
        returned; the caller may simply ask again.
        """
        with self._lock, self._storage("random_artifact"):
            conn = self._connection()
            with conn:
                row = conn.execute(
                    "SELECT id, file_path FROM cache_entries ORDER BY RANDOM() LIMIT 1"
                ).fetchone()
                if row is None:
                    return None
                try:
                    return self._resolve(row["id"], row["file_path"])
                except StaleEntry as stale:
                    conn.execute(
                        "DELETE FROM cache_entries WHERE file_path = ?", (stale.file_path,)
                    )
                    logger.info("Stale cache entry removed: %s", stale.file_path)
                    return None

    def stats(self) -> IndexStats:
        with self._lock, self._storage("stats"):
            conn = self._connection()
            totals = conn.execute(
                """SELECT COUNT(*),
                          COALESCE(SUM(low_quality), 0),
                          COALESCE(SUM(hit_count), 0)
                   FROM cache_entries"""
            ).fetchone()
            paths = [r["file_path"] for r in conn.execute("SELECT file_path FROM cache_entries")]
        size_bytes = 0
        for rel in paths:
            with contextlib.suppress(FileNotFoundError):
                size_bytes += (self._cache_root / rel).stat().st_size
        return IndexStats(
            entries=totals[0],
            low_quality_entries=totals[1],
            total_hits=totals[2],
            size_mb=size_bytes / (1024 * 1024),
        )

    @property
    def entry_count(self) -> int:
        with self._lock, self._storage("entry_count"):
            row = self._connection().execute("SELECT COUNT(*) FROM cache_entries").fetchone()
        return row[0]

    def close(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    def __enter__(self) -> RenderIndex:
        self.initialize()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def _connection(self) -> sqlite3.Connection:
        if self._conn is None:
            raise StorageError(
                "Render index is not initialized; call initialize() first",
                operation="connect",
            )
        return self._conn

    def _resolve(self, key: str, file_path: str) -> Path:
        path = self._cache_root / file_path
        if not path.is_file():
            raise StaleEntry(f"Backing file missing for {key}", key=key, file_path=file_path)
        return path

    @contextlib.contextmanager
    def _storage(self, operation: str) -> Iterator[None]:
        try:
            yield
        except (sqlite3.Error, OSError) as e:
            raise StorageError(
                f"Render index {operation} failed: {e}", operation=operation, original=e
            ) from e

    @staticmethod
    def _create_table(conn: sqlite3.Connection) -> None:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS cache_entries (
                id          TEXT PRIMARY KEY,
                image_hash  TEXT NOT NULL,
                low_quality INTEGER NOT NULL,
                file_path   TEXT NOT NULL,
                created_at  TEXT NOT NULL,
                hit_count   INTEGER DEFAULT 0
            )
        """)
        conn.commit()

    @staticmethod
    def _row_to_entry(row: sqlite3.Row) -> CacheEntry:
        return CacheEntry(
            id=row["id"],
            image_hash=row["image_hash"],
            low_quality=bool(row["low_quality"]),
            file_path=row["file_path"],
            created_at=row["created_at"],
            hit_count=row["hit_count"] or 0,
        )
