"""Least-recently-used cache of file contents."""

from __future__ import annotations

import logging
import threading
from collections import OrderedDict
from pathlib import Path
from typing import Union

__all__ = ["CacheManager"]

PathLike = Union[str, Path]


class CacheManager:
    """Caches file contents keyed by file name, evicting the least recently used."""

    def __init__(self, max_cache_size: int, logger_name: str = "fenrisd") -> None:
        self.max_cache_size = max_cache_size
        self._cache: OrderedDict[str, bytes] = OrderedDict()
        self._lock = threading.Lock()
        self._logger = logging.getLogger(logger_name)
        self._logger.info("cache manager initialized with max size: %d", max_cache_size)

    def read_file(self, filename: PathLike) -> bytes:
        """Return a file's contents, from the cache when present.

        Raises OSError if the file cannot be read.
        """
        key = str(filename)
        with self._lock:
            if key in self._cache:
                self._logger.debug("cache hit for file: %s", key)
                self._cache.move_to_end(key)
                return self._cache[key]

        self._logger.debug("cache miss for file: %s", key)
        try:
            data = Path(key).read_bytes()
        except OSError as exc:
            self._logger.warning("failed to read file: %s, error: %s", key, exc)
            raise

        if data:
            with self._lock:
                self._store(key, data)
            self._logger.debug("file cached: %s (%d bytes)", key, len(data))
        return data

    def write_file(self, filename: PathLike, content: bytes) -> None:
        """Write content to disk and cache it. Raises OSError on failure."""
        key = str(filename)
        content = bytes(content)
        try:
            Path(key).write_bytes(content)
        except OSError as exc:
            self._logger.warning("failed to write file: %s, error: %s", key, exc)
            raise

        self._logger.debug("updating cache for file: %s", key)
        with self._lock:
            self._store(key, content)

    def invalidate(self, filename: PathLike) -> None:
        """Drop a file from the cache if it is there."""
        key = str(filename)
        with self._lock:
            if self._cache.pop(key, None) is not None:
                self._logger.debug("invalidated cache entry: %s", key)

    def clear_cache(self) -> None:
        with self._lock:
            count = len(self._cache)
            self._cache.clear()
        self._logger.info("cache cleared, %d entries removed", count)

    def __len__(self) -> int:
        with self._lock:
            return len(self._cache)

    def __contains__(self, filename: object) -> bool:
        with self._lock:
            return str(filename) in self._cache

    def _store(self, key: str, data: bytes) -> None:
        if key not in self._cache and len(self._cache) >= self.max_cache_size and self._cache:
            evicted, _ = self._cache.popitem(last=False)
            self._logger.debug("removing LRU cache entry: %s", evicted)
        self._cache[key] = data
        self._cache.move_to_end(key)