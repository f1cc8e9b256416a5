"""
Data models for the drift scanner.

Records are created fresh for every scan. A ScanReport is immutable once the
reporter produces it and is the only artefact handed back to callers.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Mapping, Optional, Tuple

from .types import ScalarValue


class Origin(str, Enum):
    """Where a resource record was observed."""

    LIVE = "live"
    DECLARED = "declared"


class Classification(str, Enum):
    """Drift classification of a single resource identity."""

    COVERED = "covered"
    DRIFTED = "drifted"
    UNMANAGED = "unmanaged"
    MISSING = "missing"


@dataclass(frozen=True, order=True)
class ResourceIdentity:
    """Identifies a cloud resource within an account and region."""

    type: str
    id: str

    def __str__(self) -> str:
        return f"{self.type}.{self.id}"


@dataclass(frozen=True)
class ResourceRecord:
    """A normalised resource: identity plus flattened attribute paths."""

    identity: ResourceIdentity
    attributes: Mapping[str, ScalarValue]
    origin: Origin
    computed: Mapping[str, ScalarValue] = field(default_factory=dict)


@dataclass(frozen=True)
class AttributeDiff:
    """One differing attribute path. An absent side is reported as ``None``."""

    path: str
    live_value: Optional[ScalarValue]
    declared_value: Optional[ScalarValue]


@dataclass(frozen=True)
class DriftEntry:
    identity: ResourceIdentity
    classification: Classification
    attribute_diffs: Tuple[AttributeDiff, ...] = ()
    informational: Tuple[AttributeDiff, ...] = ()


@dataclass(frozen=True)
class DegradedEntry:
    """A raw resource that was skipped because it could not be normalised."""

    resource_type: Optional[str]
    resource_id: Optional[str]
    origin: Origin
    reason: str


@dataclass(frozen=True)
class ScanReport:
    """Aggregated result of one scan."""

    total_scanned: int
    entries: Tuple[DriftEntry, ...]
    coverage_percent: float
    timestamp: datetime
    counts: Mapping[Classification, int]
    degraded: Tuple[DegradedEntry, ...] = ()

    @property
    def coverage_display(self) -> int:
        """Coverage rounded half up to the nearest integer."""
        return int(math.floor(self.coverage_percent + 0.5))

    def count(self, classification: Classification) -> int:
        return self.counts.get(classification, 0)

    @property
    def covered_count(self) -> int:
        return self.count(Classification.COVERED)

    @property
    def drifted_count(self) -> int:
        return self.count(Classification.DRIFTED)

    @property
    def unmanaged_count(self) -> int:
        return self.count(Classification.UNMANAGED)

    @property
    def missing_count(self) -> int:
        return self.count(Classification.MISSING)

    def entries_for(self, classification: Classification) -> Tuple[DriftEntry, ...]:
        return tuple(entry for entry in self.entries if entry.classification is classification)
