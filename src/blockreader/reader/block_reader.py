"""
Block-caching random-access reader.

BlockReader serves arbitrary byte ranges of a block source through a shared
BlockCache. Each range request returns a stream straight away; the range is
assembled in a background task and pushed to the stream in one piece, or the
failure is set on the stream instead.

A reader remembers every block it added to the cache and purges them when it
is closed, whether or not other readers still use them.
"""

from __future__ import annotations

import asyncio

from blockreader.cache.block_cache import BlockCache
from blockreader.config import get_settings
from blockreader.exceptions import ConfigurationError
from blockreader.logging import get_logger, log_context
from blockreader.reader.assembler import RangeAssembler
from blockreader.reader.base import RandomAccessReader
from blockreader.reader.resolver import RangeResolver
from blockreader.sources.base import BlockSource
from blockreader.types import generate_id

logger = get_logger(__name__)


class BlockReader(RandomAccessReader):
    """Random-access reader over a block source with disk-backed block caching."""

    def __init__(
        self,
        source: BlockSource,
        cache: BlockCache,
        block_size: int | None = None,
        max_concurrency: int | None = None,
        size: int | None = None,
    ) -> None:
        """Initialize the reader.

        Args:
            source: Supplies cache keys and block bytes.
            cache: Block cache shared with other readers.
            block_size: Bytes per block. Defaults to the source's block size,
                then to BLOCKREADER_BLOCK_SIZE. Must match the block size the
                source computes its cache keys for.
            max_concurrency: Block resolutions in flight per request
                (default: BLOCKREADER_MAX_CONCURRENCY).
            size: Source length. Defaults to what the source reports; when
                known, the last block is truncated to it.

        Raises:
            ConfigurationError: If ``block_size`` differs from the source's.
        """
        super().__init__()
        source_block_size: int | None = getattr(source, "block_size", None)
        if block_size is None:
            block_size = source_block_size
        if block_size is None or max_concurrency is None:
            settings = get_settings()
            if block_size is None:
                block_size = settings.BLOCK_SIZE
            if max_concurrency is None:
                max_concurrency = settings.MAX_CONCURRENCY
        if block_size < 1:
            raise ValueError("block_size must be positive")
        if source_block_size is not None and source_block_size != block_size:
            # Keys name a block by number, so both sides must agree on its extent
            raise ConfigurationError(
                "Reader block size differs from the block source's",
                context={
                    "source": repr(source),
                    "block_size": block_size,
                    "source_block_size": source_block_size,
                },
            )

        self.reader_id = generate_id("rdr")
        self.source = source
        self.cache = cache
        self.block_size = block_size
        # block number -> the key it was cached under
        self._owned: dict[int, str] = {}
        self._size = size
        self._tasks: set[asyncio.Task[None]] = set()
        self._opened = False
        self._open_lock = asyncio.Lock()

        self.resolver = RangeResolver(
            source,
            cache,
            block_size,
            size=self.size,
            on_populate=self._record_owned,
        )
        self.assembler = RangeAssembler(self.resolver, max_concurrency=max_concurrency)

    @property
    def size(self) -> int | None:
        if self._size is not None:
            return self._size
        return self.source.size

    @property
    def owned_blocks(self) -> list[int]:
        """Blocks this reader added to the cache, in the order it added them."""
        return list(self._owned)

    async def open(self) -> None:
        """Open the block source and pick up the size it reports."""
        async with self._open_lock:
            if self._opened:
                return
            await self.source.open()
            self.resolver.size = self.size
            self._opened = True

    def read_stream_for_range(self, start: int, end: int) -> asyncio.StreamReader:
        """Return a stream for [start, end) and start assembling it.

        Must be called with an event loop running. Dropping the stream does
        not stop the fetches behind it. The source is opened first if the
        caller has not done so.
        """
        stream = asyncio.StreamReader()
        task = asyncio.get_running_loop().create_task(self._fetch_into(start, end, stream))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return stream

    async def _fetch_into(self, start: int, end: int, stream: asyncio.StreamReader) -> None:
        with log_context(reader_id=self.reader_id, request=f"{start}-{end}"):
            try:
                await self.open()
                data = await self.assembler.resolve_range(start, end)
            except Exception as e:
                logger.warning("Range request failed", start=start, end=end, error=str(e))
                stream.set_exception(e)
                return

            stream.feed_data(data)
            stream.feed_eof()

    def _record_owned(self, block_number: int, key: str) -> None:
        self._owned.setdefault(block_number, key)

    async def close(self) -> None:
        """Close the source and purge every block this reader cached.

        Never raises for cleanup failures; they are logged. Returns once the
        purged blocks' backing files have been disposed.
        """
        if self.closed:
            return
        await super().close()

        with log_context(reader_id=self.reader_id):
            if self._tasks:
                await asyncio.gather(*list(self._tasks), return_exceptions=True)

            try:
                await self.source.aclose()
            except Exception as e:
                logger.warning("Failed to close block source", error=str(e))

            purged = sum(1 for key in self._owned.values() if self.cache.delete(key))
            self._owned.clear()

            await self.cache.drain()
            logger.debug("Reader closed", purged=purged)

    def __repr__(self) -> str:
        return f"BlockReader({self.source!r}, block_size={self.block_size})"
