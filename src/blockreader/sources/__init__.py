"""
Block sources.

- BlockSource (base.py): the contract readers depend on
- FileBlockSource (file_source.py): local files
- HttpBlockSource (http_source.py): HTTP range requests
"""

from blockreader.sources.base import BlockSource
from blockreader.sources.file_source import FileBlockSource
from blockreader.sources.http_source import HttpBlockSource

__all__ = ["BlockSource", "FileBlockSource", "HttpBlockSource"]
