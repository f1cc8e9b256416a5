"""
S3 Resource Fetchers Module.

This module contains functions for listing S3 buckets.
"""

import threading
from typing import Dict, List, Optional

from botocore.exceptions import ClientError

from ..types import RawResource, S3Client
from ..utils import check_cancelled, provider_error_handler, setup_logging

logger = setup_logging()


def _bucket_tags(s3_client: S3Client, bucket_name: str) -> Dict[str, str]:
    """
    Returns the tags of one bucket. A bucket without tags raises NoSuchTagSet,
    which is the normal "no tags" answer rather than an error.
    """
    try:
        response = s3_client.get_bucket_tagging(Bucket=bucket_name)
    except ClientError as e:
        if e.response.get("Error", {}).get("Code") == "NoSuchTagSet":
            return {}
        raise
    return {tag["Key"]: tag["Value"] for tag in response.get("TagSet", [])}


@provider_error_handler("aws_s3_bucket")
def fetch_s3_buckets(s3_client: S3Client, cancelled: Optional[threading.Event] = None) -> List[RawResource]:
    """
    Lists S3 buckets and their tags.

    Args:
        s3_client: Boto3 S3 client
        cancelled: Set when the scan is abandoned; checked before each tagging call

    Returns:
        Raw aws_s3_bucket resources keyed by bucket name
    """
    response = s3_client.list_buckets()
    resources: List[RawResource] = []
    for bucket in response.get("Buckets", []):
        check_cancelled(cancelled, "aws_s3_bucket")
        name = bucket["Name"]
        resources.append(
            {
                "type": "aws_s3_bucket",
                "id": name,
                "attributes": {
                    "bucket": name,
                    "arn": f"arn:aws:s3:::{name}",
                    "tags": _bucket_tags(s3_client, name),
                },
            }
        )
    logger.debug(f"[S3] Fetched {len(resources)} buckets")
    return resources
