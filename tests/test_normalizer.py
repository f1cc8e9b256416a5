"""
Unit tests for the resource normaliser.
"""

import json
import unittest

from driftscan.errors import NormalizationError
from driftscan.models import Origin, ResourceIdentity
from driftscan.normalizer import NormalizerOptions, flatten, normalize


class TestNormalizeIdentity(unittest.TestCase):
    """Identity extraction and malformed input."""

    def test_identity_from_top_level_id(self) -> None:
        record = normalize({"type": "aws_vpc", "id": "vpc-1", "attributes": {}}, Origin.LIVE)
        self.assertEqual(record.identity, ResourceIdentity("aws_vpc", "vpc-1"))
        self.assertEqual(record.origin, Origin.LIVE)

    def test_identity_from_attributes(self) -> None:
        raw = {"type": "aws_vpc", "attributes": {"id": "vpc-2", "cidr_block": "10.1.0.0/16"}}
        record = normalize(raw, Origin.DECLARED)
        self.assertEqual(record.identity.id, "vpc-2")
        self.assertNotIn("id", record.attributes)

    def test_missing_id_raises(self) -> None:
        with self.assertRaises(NormalizationError) as context:
            normalize({"type": "aws_vpc", "attributes": {"cidr_block": "10.0.0.0/16"}}, Origin.LIVE)
        self.assertEqual(context.exception.resource_type, "aws_vpc")

    def test_missing_type_raises(self) -> None:
        with self.assertRaises(NormalizationError):
            normalize({"id": "vpc-1", "attributes": {}}, Origin.LIVE)

    def test_non_mapping_raises(self) -> None:
        with self.assertRaises(NormalizationError):
            normalize(["aws_vpc", "vpc-1"], Origin.LIVE)  # type: ignore[arg-type]

    def test_non_mapping_attributes_raise(self) -> None:
        with self.assertRaises(NormalizationError):
            normalize({"type": "aws_vpc", "id": "vpc-1", "attributes": "broken"}, Origin.DECLARED)


class TestNormalizeAttributes(unittest.TestCase):
    """Flattening, ordering, omission and coercion."""

    def test_nested_blocks_flatten_to_indexed_paths(self) -> None:
        raw = {
            "type": "aws_security_group",
            "id": "sg-1",
            "attributes": {
                "ingress": [{"protocol": "tcp", "from_port": 5432, "to_port": 5432, "cidr_blocks": ["10.0.0.0/8"]}],
                "tags": {"Name": "db"},
            },
        }
        attributes = normalize(raw, Origin.LIVE).attributes
        self.assertEqual(attributes["ingress[0].cidr_blocks[0]"], "10.0.0.0/8")
        self.assertEqual(attributes["ingress[0].from_port"], 5432)
        self.assertEqual(attributes["tags.Name"], "db")

    def test_block_order_does_not_matter(self) -> None:
        first = {"protocol": "tcp", "from_port": 443, "to_port": 443, "cidr_blocks": ["0.0.0.0/0"]}
        second = {"protocol": "tcp", "from_port": 22, "to_port": 22, "cidr_blocks": ["10.0.0.0/8", "192.168.0.0/16"]}
        reordered = dict(second, cidr_blocks=["192.168.0.0/16", "10.0.0.0/8"])
        a = normalize({"type": "aws_security_group", "id": "sg-1", "attributes": {"ingress": [first, second]}}, Origin.LIVE)
        b = normalize(
            {"type": "aws_security_group", "id": "sg-1", "attributes": {"ingress": [reordered, first]}},
            Origin.DECLARED,
        )
        self.assertEqual(dict(a.attributes), dict(b.attributes))

    def test_ordered_list_keeps_order(self) -> None:
        from driftscan.normalizer import SCHEMAS, ResourceSchema

        SCHEMAS["test_ordered"] = ResourceSchema(ordered=frozenset({"servers"}))
        try:
            record = normalize(
                {"type": "test_ordered", "id": "x", "attributes": {"servers": ["b", "a"]}}, Origin.LIVE
            )
        finally:
            del SCHEMAS["test_ordered"]
        self.assertEqual(record.attributes["servers[0]"], "b")

    def test_computed_and_default_fields_omitted(self) -> None:
        raw = {
            "type": "aws_security_group",
            "id": "sg-1",
            "attributes": {
                "arn": "arn:aws:ec2:eu-west-2:123456789012:security-group/sg-1",
                "owner_id": "123456789012",
                "tags_all": {"Team": "x"},
                "revoke_rules_on_delete": False,
                "egress": [],
                "name_prefix": "",
                "timeouts": None,
                "ingress": [{"protocol": "tcp", "from_port": 80, "to_port": 80, "self": False}],
            },
        }
        attributes = normalize(raw, Origin.DECLARED).attributes
        self.assertEqual(
            set(attributes), {"ingress[0].protocol", "ingress[0].from_port", "ingress[0].to_port"}
        )

    def test_include_computed_keeps_them_apart(self) -> None:
        raw = {"type": "aws_vpc", "id": "vpc-1", "attributes": {"cidr_block": "10.0.0.0/16", "owner_id": "1234"}}
        record = normalize(raw, Origin.LIVE, NormalizerOptions(include_computed=True))
        self.assertNotIn("owner_id", record.attributes)
        self.assertEqual(record.computed, {"owner_id": "1234"})

    def test_equivalent_encodings_coerced(self) -> None:
        live = {
            "type": "aws_security_group_rule",
            "id": "sgr-1",
            "attributes": {"protocol": "6", "from_port": "5432", "to_port": 5432.0, "ipv6_cidr_blocks": ["2001:DB8::/32"]},
        }
        declared = {
            "type": "aws_security_group_rule",
            "id": "sgr-1",
            "attributes": {"protocol": "TCP", "from_port": 5432, "to_port": 5432, "ipv6_cidr_blocks": ["2001:db8::/32"]},
        }
        self.assertEqual(
            dict(normalize(live, Origin.LIVE).attributes), dict(normalize(declared, Origin.DECLARED).attributes)
        )

    def test_all_protocol_aliases(self) -> None:
        record = normalize(
            {"type": "aws_security_group_rule", "id": "sgr-1", "attributes": {"protocol": "all"}}, Origin.LIVE
        )
        self.assertEqual(record.attributes["protocol"], "-1")

    def test_cidr_host_bits_canonicalised(self) -> None:
        record = normalize({"type": "aws_vpc", "id": "vpc-1", "attributes": {"cidr_block": "10.0.0.1/8"}}, Origin.LIVE)
        self.assertEqual(record.attributes["cidr_block"], "10.0.0.0/8")

    def test_policy_document_string_and_dict_compare_equal(self) -> None:
        document = {"Version": "2012-10-17", "Statement": [{"Effect": "Allow", "Action": "sts:AssumeRole"}]}
        declared = normalize(
            {"type": "aws_iam_role", "id": "ci", "attributes": {"assume_role_policy": json.dumps(document, indent=2)}},
            Origin.DECLARED,
        )
        live = normalize(
            {"type": "aws_iam_role", "id": "ci", "attributes": {"assume_role_policy": document}}, Origin.LIVE
        )
        self.assertEqual(declared.attributes["assume_role_policy"], live.attributes["assume_role_policy"])

    def test_boolean_strings_for_boolean_defaults(self) -> None:
        record = normalize(
            {"type": "aws_vpc", "id": "vpc-1", "attributes": {"enable_dns_hostnames": "true", "enable_dns_support": "true"}},
            Origin.LIVE,
        )
        self.assertIs(record.attributes["enable_dns_hostnames"], True)
        self.assertNotIn("enable_dns_support", record.attributes)

    def test_numeric_schema_field_default(self) -> None:
        record = normalize(
            {"type": "aws_iam_role", "id": "ci", "attributes": {"max_session_duration": "3600", "path": "/"}},
            Origin.LIVE,
        )
        self.assertEqual(dict(record.attributes), {})

    def test_state_only_fields_are_not_compared(self) -> None:
        declared_subnet = {
            "type": "aws_subnet",
            "id": "subnet-1",
            "attributes": {
                "vpc_id": "vpc-1",
                "cidr_block": "10.0.1.0/24",
                "availability_zone": "eu-west-2a",
                "enable_dns64": False,
                "enable_resource_name_dns_a_record_on_launch": False,
                "map_customer_owned_ip_on_launch": False,
                "private_dns_hostname_type_on_launch": "ip-name",
                "ipv6_native": False,
            },
        }
        live_subnet = {
            "type": "aws_subnet",
            "id": "subnet-1",
            "attributes": {
                "vpc_id": "vpc-1",
                "cidr_block": "10.0.1.0/24",
                "availability_zone": "eu-west-2a",
                "availability_zone_id": "euw2-az2",
                "map_public_ip_on_launch": False,
            },
        }
        declared_vpc = {
            "type": "aws_vpc",
            "id": "vpc-1",
            "attributes": {
                "cidr_block": "10.0.0.0/16",
                "enable_network_address_usage_metrics": False,
                "assign_generated_ipv6_cidr_block": False,
                "ipv6_netmask_length": 0,
                "ipv4_ipam_pool_id": None,
            },
        }

        self.assertEqual(
            dict(normalize(declared_subnet, Origin.DECLARED).attributes),
            dict(normalize(live_subnet, Origin.LIVE).attributes),
        )
        self.assertEqual(dict(normalize(declared_vpc, Origin.DECLARED).attributes), {"cidr_block": "10.0.0.0/16"})

    def test_normalize_does_not_mutate_input(self) -> None:
        raw = {"type": "aws_security_group", "id": "sg-1", "attributes": {"ingress": [{"cidr_blocks": ["B", "A"]}]}}
        normalize(raw, Origin.LIVE)
        self.assertEqual(raw["attributes"]["ingress"][0]["cidr_blocks"], ["B", "A"])


class TestFlatten(unittest.TestCase):
    def test_flatten_mixed(self) -> None:
        self.assertEqual(
            flatten({"a": {"b": [1, {"c": "x"}]}}),
            {"a.b[0]": 1, "a.b[1].c": "x"},
        )


if __name__ == "__main__":
    unittest.main()
