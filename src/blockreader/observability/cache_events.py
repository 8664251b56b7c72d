"""
Cache event log.

Collects what the block cache does so callers can inspect it after the fact:
- Hit/miss/store/eviction/purge counters
- The outcome of every backing-file disposal, including the failures that
  cleanup paths swallow
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import orjson

from blockreader.logging import get_logger
from blockreader.types import DisposalRecord, DisposalStatus

logger = get_logger(__name__)

MAX_DISPOSAL_RECORDS = 1000


@dataclass
class CacheEventLog:
    """Counters and disposal history for one BlockCache."""

    hits: int = 0
    misses: int = 0
    stores: int = 0
    evictions: int = 0
    purges: int = 0
    stale: int = 0
    disposals: deque[DisposalRecord] = field(
        default_factory=lambda: deque(maxlen=MAX_DISPOSAL_RECORDS)
    )

    def record_hit(self) -> None:
        self.hits += 1

    def record_miss(self) -> None:
        self.misses += 1

    def record_store(self) -> None:
        self.stores += 1

    def record_eviction(self) -> None:
        self.evictions += 1

    def record_purge(self) -> None:
        self.purges += 1

    def record_stale(self) -> None:
        """Metadata was present but its backing file was gone."""
        self.stale += 1

    def record_disposal(self, record: DisposalRecord) -> None:
        """Append a disposal outcome."""
        self.disposals.append(record)

    @property
    def failed_disposals(self) -> list[DisposalRecord]:
        """Disposals that could not delete their file."""
        return [r for r in self.disposals if r.status == DisposalStatus.FAILED]

    @property
    def hit_rate(self) -> float:
        lookups = self.hits + self.misses
        return self.hits / lookups if lookups else 0.0

    def summary(self) -> dict[str, Any]:
        """Counters only."""
        return {
            "hits": self.hits,
            "misses": self.misses,
            "hit_rate": round(self.hit_rate, 4),
            "stores": self.stores,
            "evictions": self.evictions,
            "purges": self.purges,
            "stale": self.stale,
            "disposals": len(self.disposals),
            "failed_disposals": len(self.failed_disposals),
        }

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dict."""
        return {
            **self.summary(),
            "disposal_records": [
                {
                    "key": r.key,
                    "path": str(r.path),
                    "status": r.status.value,
                    "error": r.error,
                    "at": r.at.isoformat(),
                }
                for r in self.disposals
            ],
        }

    def save(self, path: Path) -> None:
        """Write the event log as JSON."""
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(orjson.dumps(self.to_dict(), option=orjson.OPT_INDENT_2))
        logger.debug("Saved cache event log", path=str(path))
