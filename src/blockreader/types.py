"""
Core types for blockreader.

This module defines the data structures shared across the package:
- CacheEntry: metadata for one cached block and its backing file
- BlockExtent: the result of block math for one block of a range request
- DisposalRecord: outcome of deleting a backing file
- Helper functions for ID generation and timestamps
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path

from uuid6 import uuid7


def generate_id(prefix: str = "") -> str:
    """Generate a time-ordered unique ID using UUID7.

    Args:
        prefix: Optional prefix for the ID (e.g., "rdr").

    Returns:
        A unique ID string, optionally prefixed.
    """
    uid = str(uuid7())
    return f"{prefix}_{uid}" if prefix else uid


def utc_now() -> datetime:
    """Get current UTC time with timezone info."""
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class CacheEntry:
    """A cached block.

    Attributes:
        key: Cache key supplied by the block source.
        path: Backing file holding exactly the block's bytes.
        length: Number of bytes in the backing file; used for size accounting.
    """

    key: str
    path: Path
    length: int


@dataclass(frozen=True)
class BlockExtent:
    """Where one block sits in the source and which part of it a request needs.

    ``block_start``/``block_end`` are inclusive source offsets. ``position`` and
    ``length`` select the slice of the block that contributes to the request.
    """

    block_number: int
    block_start: int
    block_end: int
    position: int
    length: int

    @property
    def block_length(self) -> int:
        """Nominal number of bytes in the block."""
        return self.block_end - self.block_start + 1


class DisposalStatus(str, Enum):
    """Outcome of disposing a backing file."""

    DELETED = "deleted"
    MISSING = "missing"
    FAILED = "failed"


@dataclass(frozen=True)
class DisposalRecord:
    """Result of removing one cache entry's backing file."""

    key: str
    path: Path
    status: DisposalStatus
    error: str | None = None
    at: datetime = field(default_factory=utc_now)
