"""
Terraform state reader.

Reads a Terraform JSON state snapshot (format version 4) from a local file or
from S3 and yields one raw declared resource per managed resource instance.
Data sources (``mode == "data"``) such as ``aws_region`` or
``aws_caller_identity`` describe nothing that can drift and are skipped.

Security group rules are declared per source, matching how AWS lists them:
standalone rules are split by source and inline group rules are added as
rule resources of their own (see ``driftscan.sgrules``).
"""

from typing import Any, Dict, List, Mapping, Optional, Set

from ..errors import StateParseError
from ..sgrules import DIRECTIONS, GROUP_TYPE, RULE_TYPE, rule_resource, split_rule
from ..types import RawResource
from ..utils import download_s3_file, parse_terraform_state, setup_logging
from .base import StateCollaborator

logger = setup_logging()


def _address(resource: Mapping[str, Any], instance: Mapping[str, Any]) -> str:
    address = f"{resource.get('type')}.{resource.get('name')}"
    if resource.get("module"):
        address = f"{resource['module']}.{address}"
    index_key = instance.get("index_key")
    if isinstance(index_key, str):
        address = f'{address}["{index_key}"]'
    elif index_key is not None:
        address = f"{address}[{index_key}]"
    return address


class TerraformStateReader(StateCollaborator):
    """
    Declared resources from a Terraform state snapshot.

    Args:
        state_path: ``s3://bucket/key``, ``local://path`` or a plain filesystem path
    """

    def __init__(self, state_path: str) -> None:
        self.state_path = state_path

    def read_content(self) -> str:
        """Returns the raw snapshot text."""
        if self.state_path.startswith("s3://"):
            return download_s3_file(self.state_path)

        local_path = self.state_path
        if local_path.startswith("local://"):
            local_path = local_path[len("local://"):]
        try:
            with open(local_path, "r", encoding="utf-8") as f:
                return f.read()
        except OSError as e:
            raise StateParseError(f"Cannot read state file {local_path}: {e}") from e

    def list_declared(self) -> List[RawResource]:
        state_data = parse_terraform_state(self.read_content(), logger)
        declared: List[RawResource] = []
        for position, resource in enumerate(state_data["resources"]):
            if not isinstance(resource, dict):
                raise StateParseError(f"State resource #{position} is not an object")
            if resource.get("mode", "managed") != "managed":
                logger.debug(f"Skipping data source {resource.get('type')}.{resource.get('name')}")
                continue
            instances = resource.get("instances", [])
            if not isinstance(instances, list):
                raise StateParseError(
                    f"State resource {resource.get('type')}.{resource.get('name')} has malformed instances"
                )
            for instance in instances:
                declared.append(self._raw_instance(resource, instance))

        declared = self._expand_rules(declared)
        logger.info(f"Read {len(declared)} declared resource instances from {self.state_path}")
        return declared

    @staticmethod
    def _raw_instance(resource: Mapping[str, Any], instance: Any) -> Dict[str, Any]:
        if not isinstance(instance, dict):
            raise StateParseError(f"Instance of {resource.get('type')}.{resource.get('name')} is not an object")
        attributes: Optional[Mapping[str, Any]] = instance.get("attributes")
        return {
            "type": resource.get("type"),
            "id": (attributes or {}).get("id") if isinstance(attributes, Mapping) else None,
            "address": _address(resource, instance),
            "attributes": attributes,
        }

    @staticmethod
    def _expand_rules(declared: List[RawResource]) -> List[RawResource]:
        """
        Replaces standalone security group rules with their single-source
        rules and adds one declared rule per source of every inline
        ``ingress``/``egress`` block. Terraform refreshes a group's inline
        blocks to include its standalone rules, so an inline rule that is
        also declared standalone is kept once.
        """
        expanded: List[RawResource] = []
        inline: List[RawResource] = []
        seen: Set[str] = set()
        for raw in declared:
            attributes = raw.get("attributes")
            if not isinstance(attributes, Mapping) or not attributes.get("id"):
                expanded.append(raw)
                continue
            if raw["type"] == RULE_TYPE and attributes.get("security_group_id"):
                direction = attributes.get("type", "ingress")
                for rule in split_rule(attributes["security_group_id"], direction, attributes):
                    resource = rule_resource(rule, address=raw["address"])
                    if resource["id"] not in seen:
                        seen.add(resource["id"])
                        expanded.append(resource)
                continue
            expanded.append(raw)
            if raw["type"] == GROUP_TYPE:
                for direction in DIRECTIONS:
                    for block in attributes.get(direction) or []:
                        if isinstance(block, Mapping):
                            for rule in split_rule(attributes["id"], direction, block):
                                inline.append(rule_resource(rule, address=f"{raw['address']}.{direction}"))

        for resource in inline:
            if resource["id"] not in seen:
                seen.add(resource["id"])
                expanded.append(resource)
        return expanded
