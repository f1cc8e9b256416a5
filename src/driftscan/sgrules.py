"""
Security Group Rule Identities.

A security group rule has no identity that both sides can see. AWS lists each
rule under an ``sgr-`` id that never appears in Terraform state, and Terraform
names a standalone ``aws_security_group_rule`` with an ``sgrule-<hash>`` id
derived from the rule's content. Rules declared inline in a group's
``ingress``/``egress`` blocks have no id at all.

Both sides are therefore reduced to single-source rules (one CIDR, prefix
list or source group per rule, which is how AWS stores them) and each one is
named with the Terraform AWS provider's content hash. A standalone rule with a
single source keeps exactly the id Terraform gave it.
"""

import zlib
from typing import Any, Dict, List, Mapping

from .normalizer import canonical_cidr, canonical_protocol

RULE_TYPE = "aws_security_group_rule"
GROUP_TYPE = "aws_security_group"
DIRECTIONS = ("ingress", "egress")

SOURCE_FIELDS = ("cidr_blocks", "ipv6_cidr_blocks", "prefix_list_ids")


def _port(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def _is_true(value: Any) -> bool:
    return value is True or str(value).strip().lower() == "true"


def split_rule(group_id: str, direction: str, rule: Mapping[str, Any]) -> List[Dict[str, Any]]:
    """
    Splits one Terraform-shaped rule into single-source rules.

    Accepts both inline blocks (``security_groups`` list) and standalone rules
    (``source_security_group_id``). A source group equal to ``group_id`` is
    recorded as ``self``.

    Args:
        group_id: Security group the rule belongs to
        direction: ``ingress`` or ``egress``
        rule: Rule attributes

    Returns:
        Rules in ``aws_security_group_rule`` attribute shape, one per source
    """
    protocol = canonical_protocol(rule.get("protocol", "-1"))
    from_port, to_port = _port(rule.get("from_port")), _port(rule.get("to_port"))
    if protocol == "-1":
        # AWS reports -1 for "all traffic"; Terraform records 0
        from_port = to_port = 0
    base: Dict[str, Any] = {
        "type": direction,
        "security_group_id": group_id,
        "protocol": protocol,
        "from_port": from_port,
        "to_port": to_port,
        "description": rule.get("description") or None,
    }

    sources: List[Dict[str, Any]] = []
    for source_field in SOURCE_FIELDS:
        for value in rule.get(source_field) or []:
            if value:
                canonical = canonical_cidr(value) if "cidr" in source_field else value
                sources.append({source_field: [canonical]})

    groups = list(rule.get("security_groups") or [])
    if rule.get("source_security_group_id"):
        groups.append(rule["source_security_group_id"])
    references_self = _is_true(rule.get("self"))
    for source_group in groups:
        if source_group == group_id:
            references_self = True
        else:
            sources.append({"source_security_group_id": source_group})
    if references_self:
        sources.append({"self": True})

    return [dict(base, **source) for source in sources] or [base]


def rule_id(rule: Mapping[str, Any]) -> str:
    """
    Terraform's ``sgrule-`` id for a rule produced by split_rule.

    Hashes group id, ports above zero, protocol, direction and each sorted
    source list with CRC-32, as the Terraform AWS provider does.
    """
    group_id = rule["security_group_id"]
    parts = [group_id]
    for port in (rule.get("from_port", 0), rule.get("to_port", 0)):
        if port > 0:
            parts.append(str(port))
    parts += [rule["protocol"], rule["type"]]
    for source_field in SOURCE_FIELDS:
        parts += sorted(rule.get(source_field) or [])

    source_group = group_id if rule.get("self") else rule.get("source_security_group_id")
    if source_group:
        # group id followed by an empty group name
        parts += [source_group, ""]

    text = "".join(f"{part}-" for part in parts)
    return f"sgrule-{zlib.crc32(text.encode('utf-8')) & 0xFFFFFFFF}"


def rule_resource(rule: Dict[str, Any], **extra: Any) -> Dict[str, Any]:
    """Raw aws_security_group_rule resource for a single-source rule."""
    resource = {"type": RULE_TYPE, "id": rule_id(rule), "attributes": rule}
    resource.update(extra)
    return resource
