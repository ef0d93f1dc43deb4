from __future__ import annotations
"""Data models representing S3 listings and bucket summaries."""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class ObjectRecord:
    """A single object entry from a bucket listing."""

    key: str
    size: int = 0
    last_modified: Optional[datetime] = None
    storage_class: str = "STANDARD"


@dataclass
class ObjectPage:
    """Represents a single page of S3 objects."""

    number: int
    objects: list[ObjectRecord] = field(default_factory=list)
    truncated: bool = False
    next_token: Optional[str] = None


@dataclass
class PageFold:
    """Running totals for one listing page.

    ``cost`` is summed over the page while ``size`` and ``last_modified`` keep
    the largest value seen, and ``storage_class`` is that of the last object.
    """

    cost: float = 0.0
    size: int = 0
    last_modified: Optional[datetime] = None
    storage_class: Optional[str] = None


@dataclass
class BucketSummary:
    """Aggregated size, cost and freshness for a bucket."""

    name: str
    size: float = 0
    size_unit: str = "Bytes"
    file_count: int = 0
    last_modified: Optional[datetime] = None
    cost: float = 0.0
    storage_class: Optional[str] = None
    region: Optional[str] = None

    def to_dict(self) -> dict[str, object]:
        return {
            "name": self.name,
            "size": self.size,
            "size_unit": self.size_unit,
            "file_count": self.file_count,
            "last_modified": self.last_modified.isoformat() if self.last_modified else None,
            "cost": self.cost,
            "storage_class": self.storage_class,
            "region": self.region,
        }


@dataclass(frozen=True)
class PriceTier:
    """One price band of a storage class.

    ``threshold_bytes`` is the capacity of the band; ``None`` marks the last,
    unbounded band.
    """

    storage_class: str
    tier_index: int
    threshold_bytes: Optional[int]
    price_per_gb: float
