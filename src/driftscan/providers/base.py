"""
Provider collaborator interface.

A provider enumerates live resources of one type at a time. Implementations
translate their SDK's native shapes into raw mappings the normaliser accepts:
``{"type": ..., "id": ..., "attributes": {...}}``.
"""

import threading
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

from ..types import RawResource


class ProviderCollaborator(ABC):
    """Lists live resources of a given type for one account and region."""

    @abstractmethod
    def supported_types(self) -> List[str]:
        """Resource types this provider can enumerate."""

    @abstractmethod
    def list_resources(
        self, resource_type: str, cancelled: Optional[threading.Event] = None
    ) -> Sequence[RawResource]:
        """
        Lists every live resource of ``resource_type``.

        Implementations check ``cancelled`` between API calls and stop with
        ScanCancelled once it is set.

        Raises:
            ProviderError: rate_limited, unauthorized, not_found or transient
        """
