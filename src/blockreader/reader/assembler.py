"""
Range assembly.

Resolves every block a range request covers with bounded concurrency and
joins the slices in ascending block order, whatever order they complete in.
"""

from __future__ import annotations

import asyncio

from blockreader.config import DEFAULT_MAX_CONCURRENCY
from blockreader.exceptions import BlockReadError, BlockReaderError
from blockreader.logging import get_logger
from blockreader.reader.resolver import RangeResolver, block_range

logger = get_logger(__name__)


class RangeAssembler:
    """Turns a [start, end) request into one buffer.

    After the first failure no further blocks are started. Resolutions
    already in flight run to completion so that whatever they cache is
    registered with the block cache, then the first failure is raised.
    """

    def __init__(
        self,
        resolver: RangeResolver,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
    ) -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self.resolver = resolver
        self.max_concurrency = max_concurrency

    async def resolve_range(self, start: int, end: int) -> bytes:
        """Return exactly ``end - start`` bytes starting at ``start``.

        Raises:
            BlockReaderError: If any block fails; no partial buffer is returned.
                Exceptions from outside the library are wrapped in BlockReadError.
        """
        blocks = block_range(start, end, self.resolver.block_size)
        if not blocks:
            return b""

        semaphore = asyncio.Semaphore(self.max_concurrency)
        failed = asyncio.Event()

        async def resolve_with_semaphore(block_number: int) -> bytes | None:
            async with semaphore:
                if failed.is_set():
                    return None
                try:
                    return await self.resolver.resolve_block(start, end, block_number)
                except Exception:
                    failed.set()
                    raise

        # gather keeps results in argument order
        results = await asyncio.gather(
            *[resolve_with_semaphore(n) for n in blocks],
            return_exceptions=True,
        )

        for result in results:
            if isinstance(result, BlockReaderError):
                raise result
            if isinstance(result, BaseException):
                raise BlockReadError(
                    f"Failed to read range {start}-{end}",
                    context={"start": start, "end": end, "error": repr(result)},
                ) from result

        data = b"".join(results)  # type: ignore[arg-type]
        if len(data) != end - start:
            raise BlockReadError(
                "Assembled range has the wrong length",
                context={"start": start, "end": end, "received": len(data)},
            )

        logger.debug("Assembled range", start=start, end=end, blocks=len(blocks))
        return data
