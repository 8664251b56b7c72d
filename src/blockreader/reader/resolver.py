"""
Block-level range resolution.

Translates a [start, end) range into block numbers and per-block slices, and
resolves one block's slice either from the block cache (disk read) or from the
block source (fetch, persist, slice in memory).
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable

from blockreader.cache.block_cache import BlockCache
from blockreader.exceptions import BlockFetchError, BlockReadError
from blockreader.logging import get_logger
from blockreader.sources.base import BlockSource
from blockreader.types import BlockExtent, CacheEntry

logger = get_logger(__name__)


def block_range(start: int, end: int, block_size: int) -> range:
    """Block numbers covering [start, end), ascending. Empty when start == end."""
    if end <= start:
        return range(0)
    return range(start // block_size, (end - 1) // block_size + 1)


def block_extent(
    start: int,
    end: int,
    block_number: int,
    block_size: int,
    size: int | None = None,
) -> BlockExtent:
    """Compute which part of ``block_number`` the range [start, end) needs.

    Args:
        start: First requested byte.
        end: One past the last requested byte.
        block_number: A block known to intersect the range.
        block_size: Nominal block size.
        size: Source length. When given, the last block's extent stops at
            ``size - 1`` instead of running to a full block.
    """
    block_start = block_number * block_size
    block_end = block_start + block_size - 1
    if size is not None:
        block_end = min(block_end, size - 1)

    if start <= block_start:
        position = 0
    else:
        position = start % block_size

    if end > block_end:
        length = (block_end - block_start + 1) - position
    else:
        length = (end % block_size) - position

    return BlockExtent(
        block_number=block_number,
        block_start=block_start,
        block_end=block_end,
        position=position,
        length=length,
    )


def _read_slice(entry: CacheEntry, position: int, length: int) -> bytes:
    with open(entry.path, "rb") as f:
        f.seek(position)
        return f.read(length)


class RangeResolver:
    """Resolves the bytes one block contributes to a range request.

    Misses on the same cache key are serialized through the cache's per-key
    lock, so a block is fetched once however many requests want it at once.
    """

    def __init__(
        self,
        source: BlockSource,
        cache: BlockCache,
        block_size: int,
        size: int | None = None,
        on_populate: Callable[[int, str], None] | None = None,
    ) -> None:
        """Initialize the resolver.

        Args:
            source: Supplies cache keys and block bytes.
            cache: Shared block cache.
            block_size: Nominal block size.
            size: Source length, if known.
            on_populate: Called with the block number and cache key whenever
                this resolver adds a block to the cache.
        """
        self.source = source
        self.cache = cache
        self.block_size = block_size
        self.size = size
        self._on_populate = on_populate

    def extent(self, start: int, end: int, block_number: int) -> BlockExtent:
        return block_extent(start, end, block_number, self.block_size, self.size)

    async def resolve_block(self, start: int, end: int, block_number: int) -> bytes:
        """Return the slice of ``block_number`` that falls inside [start, end)."""
        extent = self.extent(start, end, block_number)
        key = self.source.cache_key(block_number)

        data = await self._read_cached(key, extent)
        if data is not None:
            return data

        async with self.cache.lock_for(key):
            # Another request may have populated the key while we waited
            if key in self.cache:
                data = await self._read_cached(key, extent)
                if data is not None:
                    return data
            return await self._populate(key, extent)

    async def _read_cached(self, key: str, extent: BlockExtent) -> bytes | None:
        entry = self.cache.get(key)
        if entry is None:
            return None

        loop = asyncio.get_running_loop()
        try:
            data = await loop.run_in_executor(
                None, _read_slice, entry, extent.position, extent.length
            )
        except FileNotFoundError:
            self.cache.events.record_stale()
            logger.debug("Backing file missing, refetching", key=key, path=str(entry.path))
            return None
        except OSError as e:
            raise BlockReadError(
                "Failed to read cached block",
                context={"key": key, "path": str(entry.path), "error": str(e)},
            ) from e

        if len(data) != extent.length:
            raise BlockReadError(
                "Cached block shorter than expected",
                context={
                    "key": key,
                    "path": str(entry.path),
                    "expected": extent.length,
                    "received": len(data),
                },
            )
        return data

    async def _populate(self, key: str, extent: BlockExtent) -> bytes:
        block = await self.source.fetch_block(extent.block_start, extent.block_end)

        if len(block) < extent.position + extent.length:
            raise BlockFetchError(
                "Block source returned too few bytes",
                context={
                    "block_start": extent.block_start,
                    "block_end": extent.block_end,
                    "needed": extent.position + extent.length,
                    "received": len(block),
                },
            )

        await self.cache.persist(key, block)
        if self._on_populate is not None:
            self._on_populate(extent.block_number, key)

        return block[extent.position : extent.position + extent.length]
