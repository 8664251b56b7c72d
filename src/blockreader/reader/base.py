"""
Random-access reader contract.

Archive and container readers consume a source through this interface: open
and close hooks, plus an entry point that returns a readable byte stream for a
[start, end) range. Implementations provide read_stream_for_range; the
validation and convenience helpers live here.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from types import TracebackType

from blockreader.exceptions import InvalidRangeError, ReaderClosedError


class RandomAccessReader(ABC):
    """Abstract random-access byte reader.

    Usable as an async context manager: ``open()`` on enter, ``close()`` on exit.
    """

    def __init__(self) -> None:
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def size(self) -> int | None:
        """Total number of bytes, if known."""
        return None

    async def open(self) -> None:
        """Prepare the reader. The default does nothing."""
        return None

    async def close(self) -> None:
        """Release the reader. Subclasses extend this and call super()."""
        self._closed = True

    @abstractmethod
    def read_stream_for_range(self, start: int, end: int) -> asyncio.StreamReader:
        """Return a stream that will yield the bytes in [start, end)."""

    def create_read_stream(self, start: int = 0, end: int | None = None) -> asyncio.StreamReader:
        """Validate a range and return a stream for it.

        Args:
            start: First byte.
            end: One past the last byte; defaults to the reader's size.

        Raises:
            ReaderClosedError: If the reader has been closed.
            InvalidRangeError: If the range is malformed or runs past the end.
        """
        if self._closed:
            raise ReaderClosedError("Reader is closed")

        size = self.size
        if end is None:
            if size is None:
                raise InvalidRangeError(
                    "end is required when the size is unknown", context={"start": start}
                )
            end = size

        context = {"start": start, "end": end, "size": size}
        if start < 0 or end < start:
            raise InvalidRangeError("Invalid range", context=context)
        if size is not None and end > size:
            raise InvalidRangeError("Range runs past the end of the source", context=context)

        return self.read_stream_for_range(start, end)

    async def read(self, start: int = 0, end: int | None = None) -> bytes:
        """Read [start, end) and return the bytes."""
        stream = self.create_read_stream(start, end)
        return await stream.read()

    async def __aenter__(self) -> RandomAccessReader:
        await self.open()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()
