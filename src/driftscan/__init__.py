"""
Infrastructure Drift Scanner Package.

This package detects drift between live cloud resources and a Terraform state
snapshot, and reports how much of the live estate the state covers.

The scan process:
1. Lists live resources per resource type and reads the declared state, concurrently
2. Normalises both sides into comparable records
3. Indexes the records by identity and diffs the two indexes
4. Summarises every identity as covered, drifted, unmanaged or missing
"""

from .errors import (
    DriftScanError,
    DuplicateResourceError,
    NormalizationError,
    ProviderError,
    ScanFailure,
    StateParseError,
)
from .models import (
    AttributeDiff,
    Classification,
    DegradedEntry,
    DriftEntry,
    Origin,
    ResourceIdentity,
    ResourceRecord,
    ScanReport,
)
from .orchestrator import Scanner, ScanPhase, exit_code, scan

__all__ = [
    "AttributeDiff",
    "Classification",
    "DegradedEntry",
    "DriftEntry",
    "DriftScanError",
    "DuplicateResourceError",
    "NormalizationError",
    "Origin",
    "ProviderError",
    "ResourceIdentity",
    "ResourceRecord",
    "ScanFailure",
    "ScanPhase",
    "ScanReport",
    "Scanner",
    "StateParseError",
    "exit_code",
    "scan",
]
