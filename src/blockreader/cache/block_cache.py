"""
Disk-backed block cache.

BlockCache maps cache keys to CacheEntry metadata and keeps each block's bytes
in a backing file under one cache directory. Capacity is the sum of entry
lengths; when it is exceeded the least recently used entries are evicted.
Every removal (eviction, replacement, purge, clear) disposes the entry's
backing file. Disposal runs in a worker thread when an event loop is running
and never raises: failures are logged and recorded in the CacheEventLog.

One BlockCache is meant to be constructed per process and handed to every
reader that should share it.
"""

from __future__ import annotations

import asyncio
import hashlib
import os
import shutil
import tempfile
import weakref
from pathlib import Path
from typing import Callable

from cachetools import LRUCache

from blockreader.config import Settings, get_settings
from blockreader.logging import get_logger
from blockreader.observability.cache_events import CacheEventLog
from blockreader.types import CacheEntry, DisposalRecord, DisposalStatus

logger = get_logger(__name__)

BACKING_FILE_SUFFIX = ".blk"


def _entry_size(entry: CacheEntry) -> int:
    return entry.length


class _EvictingLRU(LRUCache):
    """LRUCache that reports entries it pops to make room."""

    def __init__(self, maxsize: int, on_evict: Callable[[CacheEntry], None]) -> None:
        super().__init__(maxsize=maxsize, getsizeof=_entry_size)
        self._on_evict = on_evict

    def popitem(self) -> tuple[str, CacheEntry]:
        key, entry = super().popitem()
        self._on_evict(entry)
        return key, entry


def _remove_backing_file(entry: CacheEntry) -> DisposalRecord:
    """Delete an entry's backing file if it still exists."""
    try:
        if not entry.path.exists():
            return DisposalRecord(entry.key, entry.path, DisposalStatus.MISSING)
        entry.path.unlink()
    except FileNotFoundError:
        return DisposalRecord(entry.key, entry.path, DisposalStatus.MISSING)
    except OSError as e:
        logger.warning(
            "Failed to delete backing file",
            key=entry.key,
            path=str(entry.path),
            error=str(e),
        )
        return DisposalRecord(entry.key, entry.path, DisposalStatus.FAILED, error=str(e))
    return DisposalRecord(entry.key, entry.path, DisposalStatus.DELETED)


def _cleanup_directory(directory: Path, live_paths: set[Path], remove_directory: bool) -> None:
    """Last-resort removal of backing files, run on cache close or interpreter exit."""
    for path in list(live_paths):
        try:
            path.unlink()
        except OSError:
            pass
    live_paths.clear()
    if remove_directory:
        shutil.rmtree(directory, ignore_errors=True)


class BlockCache:
    """Capacity-bounded, least-recently-used cache of blocks stored on disk."""

    def __init__(
        self,
        capacity: int,
        directory: Path | str | None = None,
        events: CacheEventLog | None = None,
    ) -> None:
        """Initialize the cache.

        Args:
            capacity: Maximum total ``length`` of all entries, in bytes.
            directory: Where backing files are created. A fresh temporary
                directory is created (and removed on close/exit) when omitted.
            events: Event log to record into; a new one is created when omitted.
        """
        if capacity < 1:
            raise ValueError("capacity must be positive")

        if directory is None:
            self._directory = Path(tempfile.mkdtemp(prefix="blockreader-"))
            owns_directory = True
        else:
            self._directory = Path(directory)
            self._directory.mkdir(parents=True, exist_ok=True)
            owns_directory = False

        self.events = events or CacheEventLog()
        self._entries = _EvictingLRU(capacity, self._evicted)
        self._pending: set[asyncio.Task[None]] = set()
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )
        self._live_paths: set[Path] = set()
        self._finalizer = weakref.finalize(
            self, _cleanup_directory, self._directory, self._live_paths, owns_directory
        )

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> BlockCache:
        """Build a cache from BLOCKREADER_* settings."""
        settings = settings or get_settings()
        return cls(capacity=settings.CACHE_MAX_BYTES, directory=settings.CACHE_DIR)

    @property
    def capacity(self) -> int:
        return int(self._entries.maxsize)

    @property
    def size(self) -> int:
        """Total length of all cached entries."""
        return int(self._entries.currsize)

    @property
    def directory(self) -> Path:
        return self._directory

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        # Membership must not refresh recency
        return key in self._entries

    def get(self, key: str) -> CacheEntry | None:
        """Look up an entry and mark it as recently used."""
        entry = self._entries.get(key)
        if entry is None:
            self.events.record_miss()
        else:
            self.events.record_hit()
        return entry

    def set(self, key: str, entry: CacheEntry) -> None:
        """Insert or replace an entry, evicting LRU entries to stay within capacity."""
        if entry.length > self.capacity:
            logger.warning(
                "Block larger than cache capacity, not caching",
                key=key,
                length=entry.length,
                capacity=self.capacity,
            )
            self._dispose(entry)
            return

        # Drop the old entry first so making room can never evict it
        previous = self._entries.pop(key, None)
        self._entries[key] = entry
        self._live_paths.add(entry.path)
        self.events.record_store()

        if previous is not None and previous.path != entry.path:
            self._dispose(previous)

    def delete(self, key: str) -> bool:
        """Remove an entry and dispose its backing file.

        Returns:
            True if the key was present.
        """
        entry = self._entries.pop(key, None)
        if entry is None:
            return False
        self.events.record_purge()
        self._dispose(entry)
        return True

    def clear(self) -> None:
        """Remove every entry, disposing all backing files."""
        for key in list(self._entries.keys()):
            self.delete(key)

    def lock_for(self, key: str) -> asyncio.Lock:
        """Lock serializing population of one key.

        The lock lives as long as somebody holds a reference to it.
        """
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    def write_backing_file(self, key: str, data: bytes) -> Path:
        """Create a new backing file for ``key`` holding ``data``.

        Blocking; run it in an executor from async code.
        """
        digest = hashlib.sha256(key.encode("utf-8")).hexdigest()
        fd, name = tempfile.mkstemp(
            prefix=f"{digest}-", suffix=BACKING_FILE_SUFFIX, dir=self._directory
        )
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        return Path(name)

    async def persist(self, key: str, data: bytes) -> CacheEntry:
        """Write ``data`` to a new backing file and cache it under ``key``."""
        loop = asyncio.get_running_loop()
        path = await loop.run_in_executor(None, self.write_backing_file, key, data)
        entry = CacheEntry(key=key, path=path, length=len(data))
        self.set(key, entry)
        logger.debug("Cached block", key=key, length=entry.length, cache_size=self.size)
        return entry

    async def drain(self) -> None:
        """Wait for all pending disposals to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending))

    async def aclose(self) -> None:
        """Drop every entry and remove the cache directory if this cache created it."""
        self.clear()
        await self.drain()
        self._finalizer()
        logger.debug("Block cache closed", directory=str(self._directory))

    def _evicted(self, entry: CacheEntry) -> None:
        self.events.record_eviction()
        logger.debug("Evicted block", key=entry.key, length=entry.length)
        self._dispose(entry)

    def _dispose(self, entry: CacheEntry) -> None:
        self._live_paths.discard(entry.path)
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self.events.record_disposal(_remove_backing_file(entry))
            return

        task = loop.create_task(self._dispose_async(entry))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _dispose_async(self, entry: CacheEntry) -> None:
        loop = asyncio.get_running_loop()
        record = await loop.run_in_executor(None, _remove_backing_file, entry)
        self.events.record_disposal(record)
