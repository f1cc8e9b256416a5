"""
Provider collaborators.

This package contains the provider interface and the AWS implementation, with
one fetcher module per AWS service.
"""

from .aws import FETCHERS, AwsProvider
from .base import ProviderCollaborator

__all__ = [
    "AwsProvider",
    "FETCHERS",
    "ProviderCollaborator",
]
