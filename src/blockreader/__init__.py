"""
blockreader: serve byte ranges of slow sources through a disk-backed block cache.
"""

from blockreader.cache import BlockCache
from blockreader.reader import BlockReader, RandomAccessReader
from blockreader.sources import BlockSource, FileBlockSource, HttpBlockSource

__version__ = "0.1.0"

__all__ = [
    "BlockCache",
    "BlockReader",
    "BlockSource",
    "FileBlockSource",
    "HttpBlockSource",
    "RandomAccessReader",
    "__version__",
]
