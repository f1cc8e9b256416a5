"""
Resource Index Module.

Lookup structure over the normalised records of one origin, keyed by
ResourceIdentity.
"""

from typing import Dict, Iterable, Iterator, List, Optional

from .errors import DuplicateResourceError
from .models import Origin, ResourceIdentity, ResourceRecord


class ResourceIndex:
    """Identity -> record mapping for a single origin."""

    def __init__(self, origin: Optional[Origin] = None) -> None:
        self.origin = origin
        self._records: Dict[ResourceIdentity, ResourceRecord] = {}

    @classmethod
    def build(cls, records: Iterable[ResourceRecord], origin: Optional[Origin] = None) -> "ResourceIndex":
        """
        Builds an index from normalised records.

        Args:
            records: Records that all share one origin
            origin: Expected origin; inferred from the first record when omitted

        Returns:
            Populated ResourceIndex

        Raises:
            DuplicateResourceError: If an identity occurs twice
            ValueError: If records of different origins are mixed
        """
        index = cls(origin)
        for record in records:
            index.add(record)
        return index

    def add(self, record: ResourceRecord) -> None:
        if self.origin is None:
            self.origin = record.origin
        elif record.origin is not self.origin:
            raise ValueError(
                f"Cannot add {record.origin.value} record {record.identity} "
                f"to a {self.origin.value} index"
            )
        if record.identity in self._records:
            raise DuplicateResourceError(record.identity, record.origin.value)
        self._records[record.identity] = record

    def lookup(self, identity: ResourceIdentity) -> Optional[ResourceRecord]:
        return self._records.get(identity)

    def identities(self) -> List[ResourceIdentity]:
        return list(self._records)

    def __contains__(self, identity: object) -> bool:
        return identity in self._records

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[ResourceRecord]:
        return iter(self._records.values())
