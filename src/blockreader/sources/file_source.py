"""
Local file block source.

Reads blocks from a file on disk in a worker thread. Useful when the file sits
on slow storage (network mounts, spinning disks) and for testing.
"""

from __future__ import annotations

import asyncio
import os
from pathlib import Path

from blockreader.config import DEFAULT_BLOCK_SIZE
from blockreader.exceptions import BlockFetchError


class FileBlockSource:
    """Block source backed by a local file.

    The cache key includes the file's mtime and size so a rewritten file never
    serves blocks cached from its previous contents.
    """

    def __init__(self, path: str | Path, block_size: int = DEFAULT_BLOCK_SIZE) -> None:
        self.path = Path(path).resolve()
        self.block_size = block_size
        try:
            stat = self.path.stat()
        except OSError as e:
            raise BlockFetchError(
                f"Cannot stat {self.path}", context={"error": str(e)}
            ) from e
        self._size = stat.st_size
        self._version = f"{stat.st_mtime_ns}:{stat.st_size}"

    @property
    def size(self) -> int | None:
        return self._size

    def cache_key(self, block_number: int) -> str:
        return f"file:{self.path}:{self._version}:{self.block_size}:{block_number}"

    def _read(self, block_start: int, block_end: int) -> bytes:
        with open(self.path, "rb") as f:
            f.seek(block_start)
            return f.read(block_end - block_start + 1)

    async def fetch_block(self, block_start: int, block_end: int) -> bytes:
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, self._read, block_start, block_end)
        except OSError as e:
            raise BlockFetchError(
                f"Failed to read {self.path}",
                context={
                    "block_start": block_start,
                    "block_end": block_end,
                    "error": str(e),
                },
            ) from e

    # Files are opened per fetch, so there is no handle to manage
    async def open(self) -> None:
        return None

    async def aclose(self) -> None:
        return None

    def __repr__(self) -> str:
        return f"FileBlockSource({os.fspath(self.path)!r}, block_size={self.block_size})"
