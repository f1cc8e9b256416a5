"""
IAM Resource Fetchers Module.

This module contains functions for listing IAM roles.
"""

import threading
from typing import Any, List, Optional
from urllib.parse import unquote

from ..types import IAMClient, RawResource
from ..utils import check_cancelled, provider_error_handler, setup_logging

logger = setup_logging()


def _policy_document(document: Any) -> Any:
    # IAM may return the trust policy URL-encoded rather than decoded
    if isinstance(document, str):
        return unquote(document)
    return document


@provider_error_handler("aws_iam_role")
def fetch_iam_roles(iam_client: IAMClient, cancelled: Optional[threading.Event] = None) -> List[RawResource]:
    """
    Lists IAM roles with their trust policy.

    Args:
        iam_client: Boto3 IAM client
        cancelled: Set when the scan is abandoned; checked between pages

    Returns:
        Raw aws_iam_role resources keyed by role name
    """
    resources: List[RawResource] = []
    paginator = iam_client.get_paginator("list_roles")
    for page in paginator.paginate():
        check_cancelled(cancelled, "aws_iam_role")
        for role in page.get("Roles", []):
            boundary = role.get("PermissionsBoundary", {}) or {}
            resources.append(
                {
                    "type": "aws_iam_role",
                    "id": role["RoleName"],
                    "attributes": {
                        "name": role["RoleName"],
                        "path": role.get("Path"),
                        "arn": role.get("Arn"),
                        "unique_id": role.get("RoleId"),
                        "create_date": str(role["CreateDate"]) if role.get("CreateDate") else None,
                        "description": role.get("Description"),
                        "max_session_duration": role.get("MaxSessionDuration"),
                        "assume_role_policy": _policy_document(role.get("AssumeRolePolicyDocument")),
                        "permissions_boundary": boundary.get("PermissionsBoundaryArn"),
                        "tags": {tag["Key"]: tag["Value"] for tag in role.get("Tags", [])},
                    },
                }
            )
    logger.debug(f"Fetched {len(resources)} IAM roles")
    return resources
