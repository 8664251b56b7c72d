"""
Readers.

- RandomAccessReader (base.py): open/close hooks and the range-stream entry point
- BlockReader (block_reader.py): block-cached implementation
- RangeResolver (resolver.py): block math and per-block cache resolution
- RangeAssembler (assembler.py): concurrent, order-preserving range assembly
"""

from blockreader.reader.assembler import RangeAssembler
from blockreader.reader.base import RandomAccessReader
from blockreader.reader.block_reader import BlockReader
from blockreader.reader.resolver import RangeResolver, block_extent, block_range

__all__ = [
    "BlockReader",
    "RandomAccessReader",
    "RangeAssembler",
    "RangeResolver",
    "block_extent",
    "block_range",
]
