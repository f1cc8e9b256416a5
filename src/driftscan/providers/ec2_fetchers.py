"""
EC2 Resource Fetchers Module.

This module lists EC2 networking resources (security groups, security group
rules, VPCs and subnets) and translates the AWS response shapes into the
attribute names used by the Terraform AWS provider.

Security group rules are enumerated twice on purpose: once folded into the
``ingress``/``egress`` blocks of their group, exactly as AWS reports them, and
once as standalone ``aws_security_group_rule`` resources named the way
Terraform names them. Each standalone rule is its own resource and is diffed
on its own.
"""

import threading
from typing import Any, Dict, List, Optional

from ..sgrules import rule_resource, split_rule
from ..types import EC2Client, RawResource
from ..utils import check_cancelled, provider_error_handler, setup_logging

logger = setup_logging()


def _tags(items: List[Dict[str, str]]) -> Dict[str, str]:
    return {tag["Key"]: tag["Value"] for tag in items or [] if "Key" in tag}


def _associated(associations: List[Dict[str, Any]], state_key: str) -> List[str]:
    """IPv6 CIDRs whose association is in the ``associated`` state."""
    return [
        assoc.get("Ipv6CidrBlock")
        for assoc in associations or []
        if assoc.get(state_key, {}).get("State") == "associated"
    ]


def _permission_to_block(group_id: str, permission: Dict[str, Any]) -> Dict[str, Any]:
    """Converts one IpPermission into a Terraform ingress/egress block."""
    descriptions = [
        item.get("Description")
        for key in ("IpRanges", "Ipv6Ranges", "PrefixListIds", "UserIdGroupPairs")
        for item in permission.get(key, [])
        if item.get("Description")
    ]
    source_groups = [item["GroupId"] for item in permission.get("UserIdGroupPairs", [])]
    return {
        "protocol": permission.get("IpProtocol"),
        # AWS omits the ports for "all traffic"; Terraform records them as 0
        "from_port": permission.get("FromPort", 0),
        "to_port": permission.get("ToPort", 0),
        "cidr_blocks": [item["CidrIp"] for item in permission.get("IpRanges", [])],
        "ipv6_cidr_blocks": [item["CidrIpv6"] for item in permission.get("Ipv6Ranges", [])],
        "prefix_list_ids": [item["PrefixListId"] for item in permission.get("PrefixListIds", [])],
        # Terraform keeps a self reference in "self", not in security_groups
        "security_groups": [group for group in source_groups if group != group_id],
        "self": group_id in source_groups,
        "description": descriptions[0] if descriptions else "",
    }


@provider_error_handler("aws_security_group")
def fetch_security_groups(
    ec2_client: EC2Client, cancelled: Optional[threading.Event] = None
) -> List[RawResource]:
    """
    Lists security groups with their inline ingress and egress rules.

    Args:
        ec2_client: Boto3 EC2 client
        cancelled: Set when the scan is abandoned; checked between pages

    Returns:
        Raw aws_security_group resources
    """
    resources: List[RawResource] = []
    paginator = ec2_client.get_paginator("describe_security_groups")
    for page in paginator.paginate():
        check_cancelled(cancelled, "aws_security_group")
        for group in page.get("SecurityGroups", []):
            group_id = group["GroupId"]
            resources.append(
                {
                    "type": "aws_security_group",
                    "id": group_id,
                    "attributes": {
                        "name": group.get("GroupName"),
                        "description": group.get("Description"),
                        "vpc_id": group.get("VpcId"),
                        "owner_id": group.get("OwnerId"),
                        "ingress": [
                            _permission_to_block(group_id, p) for p in group.get("IpPermissions", [])
                        ],
                        "egress": [
                            _permission_to_block(group_id, p) for p in group.get("IpPermissionsEgress", [])
                        ],
                        "tags": _tags(group.get("Tags", [])),
                    },
                }
            )
    logger.debug(f"Fetched {len(resources)} security groups")
    return resources


@provider_error_handler("aws_security_group_rule")
def fetch_security_group_rules(
    ec2_client: EC2Client, cancelled: Optional[threading.Event] = None
) -> List[RawResource]:
    """
    Lists every security group rule as a standalone resource.

    AWS stores one source per rule. Each rule is identified by the id
    Terraform would give a standalone rule with that content; the AWS
    ``sgr-`` id is kept as the computed ``security_group_rule_id``.
    """
    resources: List[RawResource] = []
    paginator = ec2_client.get_paginator("describe_security_group_rules")
    for page in paginator.paginate():
        check_cancelled(cancelled, "aws_security_group_rule")
        for rule in page.get("SecurityGroupRules", []):
            referenced = rule.get("ReferencedGroupInfo", {}) or {}
            terraform_shape = {
                "protocol": rule.get("IpProtocol"),
                "from_port": rule.get("FromPort", 0),
                "to_port": rule.get("ToPort", 0),
                "cidr_blocks": [rule["CidrIpv4"]] if rule.get("CidrIpv4") else [],
                "ipv6_cidr_blocks": [rule["CidrIpv6"]] if rule.get("CidrIpv6") else [],
                "prefix_list_ids": [rule["PrefixListId"]] if rule.get("PrefixListId") else [],
                "source_security_group_id": referenced.get("GroupId"),
                "description": rule.get("Description"),
            }
            direction = "egress" if rule.get("IsEgress") else "ingress"
            for single in split_rule(rule.get("GroupId"), direction, terraform_shape):
                single["security_group_rule_id"] = rule["SecurityGroupRuleId"]
                resources.append(rule_resource(single))
    logger.debug(f"Fetched {len(resources)} security group rules")
    return resources


@provider_error_handler("aws_vpc")
def fetch_vpcs(ec2_client: EC2Client, cancelled: Optional[threading.Event] = None) -> List[RawResource]:
    """Lists VPCs, including their DNS attributes."""
    resources: List[RawResource] = []
    paginator = ec2_client.get_paginator("describe_vpcs")
    for page in paginator.paginate():
        for vpc in page.get("Vpcs", []):
            # Two extra calls per VPC; stop here rather than after the page
            check_cancelled(cancelled, "aws_vpc")
            vpc_id = vpc["VpcId"]
            dns_support = ec2_client.describe_vpc_attribute(VpcId=vpc_id, Attribute="enableDnsSupport")
            dns_hostnames = ec2_client.describe_vpc_attribute(VpcId=vpc_id, Attribute="enableDnsHostnames")
            ipv6 = _associated(vpc.get("Ipv6CidrBlockAssociationSet", []), "Ipv6CidrBlockState")
            resources.append(
                {
                    "type": "aws_vpc",
                    "id": vpc_id,
                    "attributes": {
                        "cidr_block": vpc.get("CidrBlock"),
                        "instance_tenancy": vpc.get("InstanceTenancy"),
                        "dhcp_options_id": vpc.get("DhcpOptionsId"),
                        "owner_id": vpc.get("OwnerId"),
                        "enable_dns_support": dns_support.get("EnableDnsSupport", {}).get("Value"),
                        "enable_dns_hostnames": dns_hostnames.get("EnableDnsHostnames", {}).get("Value"),
                        "ipv6_cidr_block": ipv6[0] if ipv6 else None,
                        "tags": _tags(vpc.get("Tags", [])),
                    },
                }
            )
    logger.debug(f"Fetched {len(resources)} VPCs")
    return resources


@provider_error_handler("aws_subnet")
def fetch_subnets(ec2_client: EC2Client, cancelled: Optional[threading.Event] = None) -> List[RawResource]:
    """Lists subnets."""
    resources: List[RawResource] = []
    paginator = ec2_client.get_paginator("describe_subnets")
    for page in paginator.paginate():
        check_cancelled(cancelled, "aws_subnet")
        for subnet in page.get("Subnets", []):
            ipv6 = _associated(subnet.get("Ipv6CidrBlockAssociationSet", []), "Ipv6CidrBlockState")
            resources.append(
                {
                    "type": "aws_subnet",
                    "id": subnet["SubnetId"],
                    "attributes": {
                        "vpc_id": subnet.get("VpcId"),
                        "cidr_block": subnet.get("CidrBlock"),
                        "availability_zone": subnet.get("AvailabilityZone"),
                        "availability_zone_id": subnet.get("AvailabilityZoneId"),
                        "map_public_ip_on_launch": subnet.get("MapPublicIpOnLaunch"),
                        "assign_ipv6_address_on_creation": subnet.get("AssignIpv6AddressOnCreation"),
                        "ipv6_cidr_block": ipv6[0] if ipv6 else None,
                        "arn": subnet.get("SubnetArn"),
                        "owner_id": subnet.get("OwnerId"),
                        "tags": _tags(subnet.get("Tags", [])),
                    },
                }
            )
    logger.debug(f"Fetched {len(resources)} subnets")
    return resources
