"""
Resource Normalizer Module.

This module converts raw resources handed over by the provider and state
collaborators into canonical ResourceRecord objects that can be compared
path by path.

Key points:
- Nested blocks are flattened into dotted/indexed attribute paths such as
  ``ingress[0].cidr_blocks[0]``.
- Lists are sorted into a stable order first, so that the same set of blocks
  returned in a different order by AWS compares equal.
- Computed-only fields and fields left at their provider default are omitted,
  otherwise every resource would look drifted.
- Equivalent encodings (CIDR casing, string ports, protocol numbers, policy
  documents as JSON text or dict) are coerced into one form.
"""

import ipaddress
import json
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Mapping, Optional, Tuple

from .errors import NormalizationError
from .models import Origin, ResourceIdentity, ResourceRecord
from .types import FlatAttributes, RawResource

# Fields that are only known once a resource exists and never carry intent
COMMON_COMPUTED = frozenset({"arn", "owner_id", "tags_all", "timeouts"})

CIDR_KEYS = frozenset({"cidr_block", "cidr_blocks", "ipv6_cidr_block", "ipv6_cidr_blocks"})
NUMERIC_KEYS = frozenset({"from_port", "to_port", "port"})
POLICY_KEYS = frozenset({"policy", "assume_role_policy"})

PROTOCOL_ALIASES = {
    "all": "-1",
    "1": "icmp",
    "6": "tcp",
    "17": "udp",
    "58": "icmpv6",
}


@dataclass(frozen=True)
class ResourceSchema:
    """
    Per-type normalisation rules.

    Attributes:
        computed: Top-level attributes that never appear in declared intent
        defaults: Attribute name to provider default; matching values are omitted
        sort_keys: Block attribute name to the fields used to order its blocks
        ordered: Primitive lists whose order is significant
        numeric: Extra attribute names coerced to int
        compared: Top-level attributes observable on both sides; when set,
            every other non-computed attribute is dropped from both records
    """

    computed: FrozenSet[str] = COMMON_COMPUTED
    defaults: Mapping[str, Any] = field(default_factory=dict)
    sort_keys: Mapping[str, Tuple[str, ...]] = field(default_factory=dict)
    ordered: FrozenSet[str] = frozenset()
    numeric: FrozenSet[str] = frozenset()
    compared: FrozenSet[str] = frozenset()


@dataclass(frozen=True)
class NormalizerOptions:
    """
    Options for normalize().

    ``include_computed`` keeps computed-only fields in ``ResourceRecord.computed``
    instead of dropping them, so they can be shown as informational differences.
    """

    include_computed: bool = False


_RULE_SORT = ("protocol", "from_port", "to_port")

# Each allowlist below is exactly the attribute set the matching AWS fetcher
# reports. Terraform state carries many more fields that the provider APIs
# used here never return.
SCHEMAS: Dict[str, ResourceSchema] = {
    "aws_security_group": ResourceSchema(
        computed=COMMON_COMPUTED | {"name_prefix"},
        defaults={"self": False},
        sort_keys={"ingress": _RULE_SORT, "egress": _RULE_SORT},
        compared=frozenset({"name", "description", "vpc_id", "ingress", "egress", "tags"}),
    ),
    "aws_security_group_rule": ResourceSchema(
        computed=COMMON_COMPUTED | {"security_group_rule_id"},
        defaults={"self": False},
        compared=frozenset(
            {
                "type",
                "security_group_id",
                "protocol",
                "from_port",
                "to_port",
                "cidr_blocks",
                "ipv6_cidr_blocks",
                "prefix_list_ids",
                "source_security_group_id",
                "self",
                "description",
            }
        ),
    ),
    "aws_vpc": ResourceSchema(
        computed=COMMON_COMPUTED
        | {
            "default_network_acl_id",
            "default_route_table_id",
            "default_security_group_id",
            "main_route_table_id",
            "dhcp_options_id",
            "ipv6_association_id",
        },
        defaults={
            "instance_tenancy": "default",
            "enable_dns_support": True,
            "enable_dns_hostnames": False,
        },
        compared=frozenset(
            {
                "cidr_block",
                "instance_tenancy",
                "enable_dns_support",
                "enable_dns_hostnames",
                "ipv6_cidr_block",
                "tags",
            }
        ),
    ),
    "aws_subnet": ResourceSchema(
        computed=COMMON_COMPUTED | {"ipv6_cidr_block_association_id", "availability_zone_id"},
        defaults={
            "map_public_ip_on_launch": False,
            "assign_ipv6_address_on_creation": False,
        },
        compared=frozenset(
            {
                "vpc_id",
                "cidr_block",
                "availability_zone",
                "map_public_ip_on_launch",
                "assign_ipv6_address_on_creation",
                "ipv6_cidr_block",
                "tags",
            }
        ),
    ),
    "aws_s3_bucket": ResourceSchema(
        computed=COMMON_COMPUTED
        | {
            "bucket_domain_name",
            "bucket_regional_domain_name",
            "hosted_zone_id",
            "region",
            "bucket_prefix",
            "force_destroy",
        },
        compared=frozenset({"bucket", "tags"}),
    ),
    "aws_iam_role": ResourceSchema(
        computed=COMMON_COMPUTED
        | {"create_date", "unique_id", "managed_policy_arns", "inline_policy", "force_detach_policies"},
        defaults={"path": "/", "max_session_duration": 3600},
        numeric=frozenset({"max_session_duration"}),
        compared=frozenset(
            {
                "name",
                "path",
                "description",
                "max_session_duration",
                "assume_role_policy",
                "permissions_boundary",
                "tags",
            }
        ),
    ),
}

_OMIT = object()


def get_schema(resource_type: str) -> ResourceSchema:
    """Returns the schema registered for a type, or the generic one."""
    return SCHEMAS.get(resource_type, ResourceSchema())


def canonical_json(value: Any) -> str:
    return json.dumps(value, sort_keys=True, separators=(",", ":"), default=str)


def normalize(
    raw: RawResource, origin: Origin, options: Optional[NormalizerOptions] = None
) -> ResourceRecord:
    """
    Converts one raw resource into a canonical ResourceRecord.

    Args:
        raw: Mapping with ``type``, ``attributes`` and an ``id`` either at the
            top level or inside ``attributes``
        origin: Whether the resource was observed live or declared in state
        options: Normalisation options; defaults omit computed fields

    Returns:
        ResourceRecord with flattened, canonical attributes

    Raises:
        NormalizationError: If the raw resource is malformed or lacks identity fields
    """
    options = options or NormalizerOptions()
    if not isinstance(raw, Mapping):
        raise NormalizationError(f"Raw resource must be a mapping, got {type(raw).__name__}")

    resource_type = raw.get("type")
    attributes = raw.get("attributes", {})
    if attributes is None:
        attributes = {}
    if not isinstance(attributes, Mapping):
        raise NormalizationError(
            "Resource attributes must be a mapping", resource_type=resource_type
        )
    resource_id = raw.get("id") or attributes.get("id")

    if not resource_type or not isinstance(resource_type, str):
        raise NormalizationError("Resource is missing its type", resource_id=_as_str(resource_id))
    if resource_id is None or str(resource_id) == "":
        raise NormalizationError(f"{resource_type} resource is missing its id", resource_type=resource_type)

    schema = get_schema(resource_type)
    kept: Dict[str, Any] = {}
    computed: Dict[str, Any] = {}
    for key, value in attributes.items():
        if key == "id":
            continue
        if key in schema.computed:
            if options.include_computed:
                computed[key] = value
            continue
        if schema.compared and key not in schema.compared:
            continue
        kept[key] = value

    identity = ResourceIdentity(type=resource_type, id=str(resource_id))
    return ResourceRecord(
        identity=identity,
        attributes=flatten(_normalise_value(None, kept, schema)),
        origin=origin,
        computed=flatten(_normalise_value(None, computed, schema)),
    )


def flatten(value: Any, prefix: str = "") -> FlatAttributes:
    """
    Flattens an already normalised nested value into path -> scalar pairs.

    Mappings contribute ``.key`` segments and lists ``[index]`` segments.
    """
    flat: FlatAttributes = {}
    if value is _OMIT:
        return flat
    if isinstance(value, Mapping):
        for key, child in value.items():
            path = f"{prefix}.{key}" if prefix else str(key)
            flat.update(flatten(child, path))
    elif isinstance(value, list):
        for index, child in enumerate(value):
            flat.update(flatten(child, f"{prefix}[{index}]"))
    elif prefix:
        flat[prefix] = value
    return flat


def _normalise_value(key: Optional[str], value: Any, schema: ResourceSchema) -> Any:
    if value is None:
        return _OMIT

    if isinstance(value, Mapping):
        if key in POLICY_KEYS:
            return canonical_json(value)
        result = {}
        for child_key, child in value.items():
            normalised = _normalise_value(child_key, child, schema)
            if normalised is not _OMIT:
                result[child_key] = normalised
        return result or _OMIT

    if isinstance(value, (list, tuple)):
        items = [_normalise_value(key, item, schema) for item in value]
        items = [item for item in items if item is not _OMIT]
        if not items:
            return _OMIT
        return _sort_items(key, items, schema)

    value = _coerce_scalar(key, value, schema)
    if value == "":
        return _OMIT
    if key in schema.defaults and _equals_default(value, schema.defaults[key]):
        return _OMIT
    return value


def _sort_items(key: Optional[str], items: list, schema: ResourceSchema) -> list:
    if key in schema.ordered:
        return items
    if all(isinstance(item, Mapping) for item in items):
        fields = schema.sort_keys.get(key or "", ())
        return sorted(
            items,
            key=lambda block: (tuple(str(block.get(f, "")) for f in fields), canonical_json(block)),
        )
    return sorted(items, key=canonical_json)


def _coerce_scalar(key: Optional[str], value: Any, schema: ResourceSchema) -> Any:
    if key in POLICY_KEYS and isinstance(value, str):
        try:
            return canonical_json(json.loads(value))
        except ValueError:
            return value
    if key in CIDR_KEYS and isinstance(value, str):
        return canonical_cidr(value)
    if key == "protocol":
        return canonical_protocol(value)
    if key in NUMERIC_KEYS or key in schema.numeric:
        return _to_int(value)
    if key in schema.defaults and isinstance(schema.defaults[key], bool) and isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("true", "false"):
            return lowered == "true"
    return value


def canonical_protocol(value: Any) -> str:
    """Lower-cased protocol name, with IANA numbers and ``all`` mapped to aliases."""
    protocol = str(value).strip().lower()
    return PROTOCOL_ALIASES.get(protocol, protocol)


def canonical_cidr(value: str) -> str:
    try:
        return str(ipaddress.ip_network(value.strip(), strict=False))
    except ValueError:
        return value.strip().lower()


def _to_int(value: Any) -> Any:
    if isinstance(value, bool):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return value
    return value


def _equals_default(value: Any, default: Any) -> bool:
    # bool is an int subclass; keep False from matching a default of 0
    if isinstance(value, bool) != isinstance(default, bool):
        return False
    return value == default


def _as_str(value: Any) -> Optional[str]:
    return None if value is None else str(value)
