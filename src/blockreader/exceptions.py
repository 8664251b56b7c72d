"""
Custom exception hierarchy for blockreader.

All exceptions inherit from BlockReaderError, which provides optional context
for structured error handling and logging.
"""

from __future__ import annotations

from typing import Any


class BlockReaderError(Exception):
    """Base exception for all blockreader errors.

    Attributes:
        message: Human-readable error message.
        context: Optional structured context for logging/debugging.
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            ctx_str = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
            return f"{self.message} ({ctx_str})"
        return self.message

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, context={self.context!r})"


class ConfigurationError(BlockReaderError):
    """Raised when configuration is invalid.

    Examples:
        - Cache capacity smaller than one block
        - Unsupported source scheme on the command line
    """

    pass


class InvalidRangeError(BlockReaderError):
    """Raised when a range request is malformed.

    Context should include:
        - start: Requested start offset
        - end: Requested end offset (exclusive)
        - size: Known source size, if any
    """

    pass


class ReaderClosedError(BlockReaderError):
    """Raised when a range is requested from a reader that has been closed."""

    pass


class BlockFetchError(BlockReaderError):
    """Raised when a block source fails or returns malformed data.

    Context should include:
        - block_start: First byte of the block extent
        - block_end: Last byte of the block extent (inclusive)
        - received: Number of bytes received, if any
    """

    pass


class BlockReadError(BlockReaderError):
    """Raised when a cached block cannot be read back or a range cannot be assembled.

    Context should include:
        - key: Cache key of the block
        - path: Backing file path
    """

    pass
