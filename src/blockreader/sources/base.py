"""
Block source contract.

A block source is the capability a reader needs from the origin of the bytes:
a cache key per block and a way to fetch one block's bytes. Readers receive a
block source at construction time; nothing subclasses the reader to supply it.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class BlockSource(Protocol):
    """Supplies per-block cache keys and block bytes."""

    @property
    def size(self) -> int | None:
        """Total number of bytes in the source, or None if unknown."""
        ...

    def cache_key(self, block_number: int) -> str:
        """Return a key unique across the process for this source and block.

        Must be deterministic; the block cache is shared by every source.
        """
        ...

    async def fetch_block(self, block_start: int, block_end: int) -> bytes:
        """Return the bytes in the inclusive extent [block_start, block_end].

        May be called concurrently for different blocks.
        """
        ...

    async def open(self) -> None:
        """Prepare the source (learn its size, open handles). Safe to call twice."""
        ...

    async def aclose(self) -> None:
        """Release whatever handle the source holds."""
        ...
