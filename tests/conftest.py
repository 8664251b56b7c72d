"""
Pytest configuration and fixtures for blockreader tests.
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import AsyncGenerator, Generator
from pathlib import Path
from unittest.mock import patch

import pytest

from blockreader.cache.block_cache import BlockCache
from blockreader.config import clear_settings_cache
from blockreader.exceptions import BlockFetchError
from blockreader.reader.block_reader import BlockReader


class MemoryBlockSource:
    """In-memory block source that records how it is used.

    Attributes:
        calls: Every (block_start, block_end) passed to fetch_block, in call order.
        max_in_flight: Highest number of fetch_block calls running at once.
    """

    def __init__(
        self,
        data: bytes,
        name: str = "mem",
        block_size: int = 10,
        delays: dict[int, float] | None = None,
        fail_blocks: set[int] | None = None,
        fail_with: type[Exception] = BlockFetchError,
        report_size: bool = True,
    ) -> None:
        self.data = data
        self.name = name
        self.block_size = block_size
        self.delays = delays or {}
        self.fail_blocks = fail_blocks or set()
        self.fail_with = fail_with
        self.report_size = report_size
        self.calls: list[tuple[int, int]] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.opened = False
        self.closed = False

    @property
    def size(self) -> int | None:
        return len(self.data) if self.report_size else None

    def cache_key(self, block_number: int) -> str:
        return f"mem:{self.name}:{self.block_size}:{block_number}"

    async def open(self) -> None:
        self.opened = True

    async def fetch_block(self, block_start: int, block_end: int) -> bytes:
        self.calls.append((block_start, block_end))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            block_number = block_start // self.block_size
            await asyncio.sleep(self.delays.get(block_number, 0))
            if block_number in self.fail_blocks:
                raise self.fail_with(f"block {block_number} unavailable")
            return self.data[block_start : block_end + 1]
        finally:
            self.in_flight -= 1

    async def aclose(self) -> None:
        self.closed = True

    def fetched_blocks(self) -> list[int]:
        return [start // self.block_size for start, _ in self.calls]


@pytest.fixture
def temp_dir(tmp_path: Path) -> Path:
    """Provide a temporary directory for test outputs."""
    return tmp_path


@pytest.fixture
def mock_env_vars(temp_dir: Path) -> Generator[dict[str, str], None, None]:
    """Provide BLOCKREADER_* environment variables for testing."""
    env_vars = {
        "BLOCKREADER_BLOCK_SIZE": "10",
        "BLOCKREADER_CACHE_MAX_BYTES": "1000",
        "BLOCKREADER_MAX_CONCURRENCY": "4",
        "BLOCKREADER_CACHE_DIR": str(temp_dir / "env_cache"),
        "BLOCKREADER_LOG_LEVEL": "DEBUG",
    }

    with patch.dict(os.environ, env_vars, clear=False):
        clear_settings_cache()
        yield env_vars
    clear_settings_cache()


@pytest.fixture
def source_bytes() -> bytes:
    """30 bytes whose values equal their offsets."""
    return bytes(range(30))


@pytest.fixture
def memory_source(source_bytes: bytes) -> MemoryBlockSource:
    """A 30-byte source split into 10-byte blocks."""
    return MemoryBlockSource(source_bytes)


@pytest.fixture
async def block_cache(temp_dir: Path) -> AsyncGenerator[BlockCache, None]:
    """Block cache with room for 100 ten-byte blocks."""
    cache = BlockCache(capacity=1000, directory=temp_dir / "blocks")
    yield cache
    await cache.aclose()


@pytest.fixture
async def reader(
    memory_source: MemoryBlockSource, block_cache: BlockCache
) -> AsyncGenerator[BlockReader, None]:
    """Open reader over memory_source with 10-byte blocks."""
    reader = BlockReader(memory_source, block_cache, block_size=10, max_concurrency=8)
    await reader.open()
    yield reader
    await reader.close()
