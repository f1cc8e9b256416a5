"""
AWS provider collaborator.

Creates boto3 service clients on demand and routes each resource type to its
service-specific fetcher. Retries are owned by the scan orchestrator, so
botocore's own retry loop is switched off.
"""

import threading
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import boto3
from botocore.config import Config

from ..config import ScanConfig
from ..errors import ProviderError
from ..types import RawResource
from ..utils import setup_logging
from .base import ProviderCollaborator
from .ec2_fetchers import fetch_security_group_rules, fetch_security_groups, fetch_subnets, fetch_vpcs
from .iam_fetchers import fetch_iam_roles
from .s3_fetchers import fetch_s3_buckets

logger = setup_logging()

Fetcher = Callable[..., List[RawResource]]

# resource type -> (boto3 service name, fetcher)
FETCHERS: Dict[str, Tuple[str, Fetcher]] = {
    "aws_security_group": ("ec2", fetch_security_groups),
    "aws_security_group_rule": ("ec2", fetch_security_group_rules),
    "aws_vpc": ("ec2", fetch_vpcs),
    "aws_subnet": ("ec2", fetch_subnets),
    "aws_s3_bucket": ("s3", fetch_s3_buckets),
    "aws_iam_role": ("iam", fetch_iam_roles),
}

DEFAULT_CALL_TIMEOUT = 30


class AwsProvider(ProviderCollaborator):
    """
    Lists live AWS resources through boto3.

    Args:
        region_name: AWS region for the clients; boto3's default chain when None
        timeout_seconds: Connect and read timeout for each API call
    """

    def __init__(
        self, region_name: Optional[str] = None, timeout_seconds: float = DEFAULT_CALL_TIMEOUT
    ) -> None:
        self.region_name = region_name
        self.timeout_seconds = timeout_seconds
        self._client_config = Config(
            retries={"max_attempts": 1, "mode": "standard"},
            connect_timeout=timeout_seconds,
            read_timeout=timeout_seconds,
        )
        self._clients: Dict[str, object] = {}
        # boto3's default session is not safe to create clients from concurrently
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, config: ScanConfig) -> "AwsProvider":
        """Provider whose per-call timeout never exceeds the scan timeout."""
        return cls(
            region_name=config.aws_region,
            timeout_seconds=min(DEFAULT_CALL_TIMEOUT, config.timeout_seconds),
        )

    def supported_types(self) -> List[str]:
        return sorted(FETCHERS)

    def list_resources(
        self, resource_type: str, cancelled: Optional[threading.Event] = None
    ) -> Sequence[RawResource]:
        if resource_type not in FETCHERS:
            raise ProviderError(ProviderError.NOT_FOUND, "unsupported resource type", resource_type)
        service, fetcher = FETCHERS[resource_type]
        logger.info(f"Listing live {resource_type} resources")
        return fetcher(self._client(service), cancelled=cancelled)

    def _client(self, service: str) -> object:
        with self._lock:
            if service not in self._clients:
                self._clients[service] = boto3.client(
                    service, region_name=self.region_name, config=self._client_config
                )
            return self._clients[service]
