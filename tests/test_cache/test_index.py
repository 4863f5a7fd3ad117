"""Tests for the SQLite render index."""

import sqlite3
import threading

import pytest

from firecomp.cache.index import RenderIndex
from firecomp.errors.exceptions import StorageError


def _artifact(tmp_path, name="render.gif", data=b"GIF89a-frames"):
    path = tmp_path / name
    path.write_bytes(data)
    return path


class TestInitialize:
    def test_creates_directories_and_table(self, tmp_path):
        idx = RenderIndex(db_path=tmp_path / "run" / "cache.db", cache_root=tmp_path / "run" / ".cache")
        try:
            idx.initialize()
            assert (tmp_path / "run" / "cache.db").exists()
            assert (tmp_path / "run" / ".cache").is_dir()
            assert idx.entry_count == 0
        finally:
            idx.close()

    def test_wal_mode(self, index):
        conn = sqlite3.connect(str(index.db_path))
        try:
            mode = conn.execute("PRAGMA journal_mode").fetchone()[0]
            assert mode.lower() == "wal"
        finally:
            conn.close()

    def test_initialize_is_idempotent(self, index):
        index.initialize()
        assert index.entry_count == 0

    def test_operations_before_initialize_raise(self, tmp_path):
        idx = RenderIndex(db_path=tmp_path / "cache.db", cache_root=tmp_path / "c")
        with pytest.raises(StorageError):
            idx.lookup("k1")

    def test_context_manager(self, tmp_path):
        with RenderIndex(db_path=tmp_path / "cache.db", cache_root=tmp_path / "c") as idx:
            assert idx.entry_count == 0


class TestInsert:
    def test_insert_copies_into_per_key_directory(self, index, tmp_path):
        src = _artifact(tmp_path)
        stored = index.insert("k1", "hash1", False, src)
        assert stored == index.cache_root / "k1" / "result.gif"
        assert stored.read_bytes() == b"GIF89a-frames"
        assert src.exists()  # source left for the caller to clean up

    def test_row_has_relative_path_and_zero_hits(self, index, tmp_path):
        index.insert("k1", "hash1", True, _artifact(tmp_path))
        entry = index.get("k1")
        assert entry is not None
        assert entry.file_path == "k1/result.gif"
        assert entry.hit_count == 0
        assert entry.low_quality is True
        assert entry.image_hash == "hash1"

    def test_no_partial_file_left(self, index, tmp_path):
        index.insert("k1", "hash1", False, _artifact(tmp_path))
        assert [p.name for p in (index.cache_root / "k1").iterdir()] == ["result.gif"]

    def test_reinsert_is_last_write_wins(self, index, tmp_path):
        index.insert("k1", "hash1", False, _artifact(tmp_path, data=b"first"))
        index.lookup("k1")
        stored = index.insert("k1", "hash1", False, _artifact(tmp_path, data=b"second"))
        assert stored.read_bytes() == b"second"
        assert index.entry_count == 1
        assert index.get("k1").hit_count == 0

    def test_missing_source_raises_storage_error(self, index, tmp_path):
        with pytest.raises(StorageError) as exc_info:
            index.insert("k1", "hash1", False, tmp_path / "missing.gif")
        assert exc_info.value.operation == "insert"
        assert index.get("k1") is None
        assert list(index.cache_root.iterdir()) == []

    def test_failed_reinsert_keeps_existing_artifact(self, index, tmp_path):
        stored = index.insert("k1", "hash1", False, _artifact(tmp_path))
        with pytest.raises(StorageError):
            index.insert("k1", "hash1", False, tmp_path / "missing.gif")
        assert stored.read_bytes() == b"GIF89a-frames"
        assert [p.name for p in stored.parent.iterdir()] == ["result.gif"]


class TestLookup:
    def test_miss(self, index):
        assert index.lookup("nonexistent") is None

    def test_hit_returns_absolute_path(self, index, tmp_path):
        stored = index.insert("k1", "hash1", False, _artifact(tmp_path))
        result = index.lookup("k1")
        assert result == stored
        assert result.is_absolute()

    def test_each_lookup_increments_hit_count_once(self, index, tmp_path):
        index.insert("k1", "hash1", False, _artifact(tmp_path))
        first = index.lookup("k1")
        assert index.get("k1").hit_count == 1
        second = index.lookup("k1")
        assert index.get("k1").hit_count == 2
        assert first == second

    def test_stale_row_is_healed(self, index, tmp_path):
        stored = index.insert("k1", "hash1", False, _artifact(tmp_path))
        stored.unlink()
        assert index.lookup("k1") is None
        assert index.get("k1") is None
        assert index.entry_count == 0

    def test_relocated_cache_root(self, tmp_path):
        old_root = tmp_path / "old"
        db_path = tmp_path / "cache.db"
        with RenderIndex(db_path=db_path, cache_root=old_root) as idx:
            idx.insert("k1", "hash1", False, _artifact(tmp_path))
        new_root = tmp_path / "new"
        old_root.rename(new_root)
        with RenderIndex(db_path=db_path, cache_root=new_root) as idx:
            assert idx.lookup("k1") == new_root / "k1" / "result.gif"

    def test_persistence(self, tmp_path):
        db_path = tmp_path / "cache.db"
        root = tmp_path / "c"
        with RenderIndex(db_path=db_path, cache_root=root) as idx:
            idx.insert("k1", "hash1", False, _artifact(tmp_path))

        with RenderIndex(db_path=db_path, cache_root=root) as idx:
            assert idx.lookup("k1") is not None


class TestRemoval:
    def test_remove_stale(self, index, tmp_path):
        index.insert("k1", "hash1", False, _artifact(tmp_path))
        assert index.remove_stale("k1") is True
        assert index.remove_stale("k1") is False
        assert index.entry_count == 0

    def test_remove_by_path(self, index, tmp_path):
        index.insert("k1", "hash1", False, _artifact(tmp_path))
        index.insert("k2", "hash2", False, _artifact(tmp_path))
        assert index.remove_by_path("k1/result.gif") is True
        assert index.get("k1") is None
        assert index.get("k2") is not None


class TestRandomArtifact:
    def test_empty_index(self, index):
        assert index.random_artifact() is None

    def test_returns_existing_artifact(self, index, tmp_path):
        stored = index.insert("k1", "hash1", False, _artifact(tmp_path))
        assert index.random_artifact() == stored

    def test_does_not_count_hits(self, index, tmp_path):
        index.insert("k1", "hash1", False, _artifact(tmp_path))
        index.random_artifact()
        assert index.get("k1").hit_count == 0

    def test_stale_row_removed(self, index, tmp_path):
        stored = index.insert("k1", "hash1", False, _artifact(tmp_path))
        stored.unlink()
        assert index.random_artifact() is None
        assert index.entry_count == 0

    def test_reinsert_during_stale_check_is_kept(self, index, tmp_path, monkeypatch):
        stored = index.insert("k1", "hash1", False, _artifact(tmp_path))
        stored.unlink()
        fresh = _artifact(tmp_path, name="fresh.gif")
        resolve = index._resolve
        writers = []

        def resolve_with_concurrent_insert(key, file_path):
            writer = threading.Thread(target=index.insert, args=("k1", "hash1", False, fresh))
            writer.start()
            writer.join(timeout=0.2)  # blocked on the index lock
            writers.append(writer)
            return resolve(key, file_path)

        monkeypatch.setattr(index, "_resolve", resolve_with_concurrent_insert)
        assert index.random_artifact() is None
        writers[0].join()

        assert index.get("k1") is not None
        assert stored.exists()


class TestStats:
    def test_empty(self, index):
        stats = index.stats()
        assert stats.entries == 0
        assert stats.total_hits == 0
        assert stats.size_mb == 0.0

    def test_counts(self, index, tmp_path):
        index.insert("k1", "hash1", False, _artifact(tmp_path, data=b"x" * 1000))
        index.insert("k1_lq", "hash1", True, _artifact(tmp_path, data=b"y" * 1000))
        index.lookup("k1")
        index.lookup("k1")
        index.lookup("k1_lq")
        stats = index.stats()
        assert stats.entries == 2
        assert stats.low_quality_entries == 1
        assert stats.total_hits == 3
        assert stats.size_mb > 0
