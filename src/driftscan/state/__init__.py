"""
State collaborators.
"""

from .base import StateCollaborator
from .terraform import TerraformStateReader

__all__ = [
    "StateCollaborator",
    "TerraformStateReader",
]
