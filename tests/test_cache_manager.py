import pytest

from fenrisd.cache_manager import CacheManager


def test_read_caches_file(tmp_path):
    path = tmp_path / "a.txt"
    path.write_bytes(b"hello")
    cache = CacheManager(4)
    assert cache.read_file(path) == b"hello"
    assert path in cache
    assert len(cache) == 1


def test_cache_hit_returns_cached_content(tmp_path):
    path = tmp_path / "a.txt"
    path.write_bytes(b"first")
    cache = CacheManager(4)
    cache.read_file(path)
    path.write_bytes(b"second")
    assert cache.read_file(path) == b"first"
    cache.invalidate(path)
    assert cache.read_file(path) == b"second"


def test_read_missing_file_raises(tmp_path):
    cache = CacheManager(4)
    missing = tmp_path / "missing.txt"
    with pytest.raises(FileNotFoundError):
        cache.read_file(missing)
    assert missing not in cache
    assert len(cache) == 0


def test_empty_file_is_not_cached(tmp_path):
    path = tmp_path / "empty"
    path.write_bytes(b"")
    cache = CacheManager(4)
    assert cache.read_file(path) == b""
    assert path not in cache


def test_write_updates_disk_and_cache(tmp_path):
    path = tmp_path / "w.txt"
    cache = CacheManager(4)
    cache.write_file(path, b"content")
    assert path.read_bytes() == b"content"
    assert path in cache
    cache.write_file(path, b"newer")
    assert cache.read_file(path) == b"newer"
    assert len(cache) == 1


def test_write_to_missing_directory_raises(tmp_path):
    cache = CacheManager(4)
    target = tmp_path / "nope" / "file.txt"
    with pytest.raises(OSError):
        cache.write_file(target, b"x")
    assert target not in cache


def test_least_recently_used_is_evicted(tmp_path):
    cache = CacheManager(2)
    a, b, c = (tmp_path / name for name in ("a", "b", "c"))
    cache.write_file(a, b"A")
    cache.write_file(b, b"B")
    cache.read_file(a)
    cache.write_file(c, b"C")
    assert a in cache
    assert c in cache
    assert b not in cache
    assert len(cache) == 2


def test_size_never_exceeds_limit(tmp_path):
    cache = CacheManager(3)
    for i in range(10):
        cache.write_file(tmp_path / f"f{i}", b"data")
        assert len(cache) <= 3
    assert tmp_path / "f9" in cache
    assert tmp_path / "f0" not in cache


def test_invalidate_and_clear(tmp_path):
    cache = CacheManager(4)
    cache.write_file(tmp_path / "x", b"1")
    cache.write_file(tmp_path / "y", b"2")
    cache.invalidate(tmp_path / "x")
    cache.invalidate(tmp_path / "unknown")
    assert tmp_path / "x" not in cache
    assert len(cache) == 1
    cache.clear_cache()
    assert len(cache) == 0