"""
Cache package for block storage.

- BlockCache (block_cache.py): size-bounded LRU of blocks kept in backing files
"""

from blockreader.cache.block_cache import BlockCache

__all__ = ["BlockCache"]
