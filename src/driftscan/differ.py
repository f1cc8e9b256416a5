"""
Differ Module.

Classifies every identity seen on either side and computes attribute-level
differences for resources present on both sides.

Identity is compared at resource granularity. When AWS exposes what looks like
a single list (for example the ingress rules of a security group) and some of
those entries are also separate resources, each resource gets its own entry.
Entries are never merged into their parent.
"""

from typing import List, Mapping, Optional, Tuple

from .index import ResourceIndex
from .models import AttributeDiff, Classification, DriftEntry, ResourceIdentity, ResourceRecord
from .types import ScalarValue


def diff(live_index: ResourceIndex, declared_index: ResourceIndex) -> List[DriftEntry]:
    """
    Compares the live and declared indexes.

    Args:
        live_index: Index of records observed through the provider
        declared_index: Index of records read from the state snapshot

    Returns:
        One DriftEntry per distinct identity, sorted by (type, id)
    """
    identities = sorted(set(live_index.identities()) | set(declared_index.identities()))
    return [
        classify(identity, live_index.lookup(identity), declared_index.lookup(identity))
        for identity in identities
    ]


def classify(
    identity: ResourceIdentity,
    live: Optional[ResourceRecord],
    declared: Optional[ResourceRecord],
) -> DriftEntry:
    """Builds the DriftEntry for one identity from the records on each side."""
    if live is None and declared is None:
        raise ValueError(f"{identity} is absent from both indexes")
    if declared is None:
        return DriftEntry(identity=identity, classification=Classification.UNMANAGED)
    if live is None:
        return DriftEntry(identity=identity, classification=Classification.MISSING)

    differences = attribute_diff(live.attributes, declared.attributes)
    informational = attribute_diff(live.computed, declared.computed)
    classification = Classification.DRIFTED if differences else Classification.COVERED
    return DriftEntry(
        identity=identity,
        classification=classification,
        attribute_diffs=differences,
        informational=informational,
    )


def attribute_diff(
    live: Mapping[str, ScalarValue], declared: Mapping[str, ScalarValue]
) -> Tuple[AttributeDiff, ...]:
    """Symmetric difference of two flattened attribute mappings, sorted by path."""
    differences = []
    for path in sorted(set(live) | set(declared)):
        live_value = live.get(path)
        declared_value = declared.get(path)
        if path in live and path in declared and _same(live_value, declared_value):
            continue
        differences.append(AttributeDiff(path=path, live_value=live_value, declared_value=declared_value))
    return tuple(differences)


def _same(left: object, right: object) -> bool:
    if isinstance(left, bool) != isinstance(right, bool):
        return False
    return left == right


def coverage_fraction(entries: List[DriftEntry]) -> float:
    """
    Managed (covered or drifted) identities over all distinct identities.

    This is not the stricter "covered over live resources" ratio. A drifted
    resource is still under management and counts as covered here, and
    missing resources enlarge the denominator. The two ratios agree when
    nothing is drifted or missing. An empty scan is fully covered.
    """
    if not entries:
        return 1.0
    managed = sum(
        1 for entry in entries if entry.classification in (Classification.COVERED, Classification.DRIFTED)
    )
    return managed / len(entries)
