"""
State collaborator interface.
"""

from abc import ABC, abstractmethod
from typing import Sequence

from ..types import RawResource


class StateCollaborator(ABC):
    """Reads declared resources from a persisted state snapshot."""

    @abstractmethod
    def list_declared(self) -> Sequence[RawResource]:
        """
        Lists every declared resource instance.

        Raises:
            StateParseError: If the snapshot cannot be read or parsed
        """
