"""
Unit tests for the Terraform state reader.
S3 downloads are mocked; local snapshots are read from temporary files.
"""

import json
import os
import tempfile
import unittest
from pathlib import Path
from unittest.mock import MagicMock, patch

from driftscan.errors import StateParseError
from driftscan.models import Origin
from driftscan.normalizer import normalize
from driftscan.state import TerraformStateReader

SAMPLE_STATE = Path(__file__).parent / "sample_state.json"


class TestTerraformStateReader(unittest.TestCase):
    def setUp(self) -> None:
        self.sample_text = SAMPLE_STATE.read_text(encoding="utf-8")

    def write_state(self, content: str) -> str:
        handle, path = tempfile.mkstemp(suffix=".tfstate")
        with os.fdopen(handle, "w", encoding="utf-8") as f:
            f.write(content)
        self.addCleanup(os.remove, path)
        return path

    def test_reads_managed_resources_only(self) -> None:
        declared = TerraformStateReader(str(SAMPLE_STATE)).list_declared()

        self.assertEqual(
            [item["type"] for item in declared],
            ["aws_security_group", "aws_security_group_rule", "aws_s3_bucket", "aws_security_group_rule"],
        )
        self.assertEqual(declared[0]["id"], "sg-0a1b2c3d")
        self.assertEqual(declared[1]["address"], "aws_security_group_rule.office_https")
        self.assertEqual(declared[2]["address"], "module.storage.aws_s3_bucket.logs")
        self.assertEqual(declared[3]["address"], "aws_security_group.db.ingress")

    def test_local_prefix(self) -> None:
        declared = TerraformStateReader(f"local://{SAMPLE_STATE}").list_declared()
        self.assertEqual(len(declared), 4)

    def test_declared_resources_normalise(self) -> None:
        declared = TerraformStateReader(str(SAMPLE_STATE)).list_declared()
        group = normalize(declared[0], Origin.DECLARED)
        self.assertEqual(
            dict(group.attributes),
            {
                "description": "Managed by Terraform",
                "ingress[0].cidr_blocks[0]": "192.168.0.0/16",
                "ingress[0].description": "https from office",
                "ingress[0].from_port": 443,
                "ingress[0].protocol": "tcp",
                "ingress[0].to_port": 443,
                "ingress[1].cidr_blocks[0]": "10.0.0.0/8",
                "ingress[1].from_port": 5432,
                "ingress[1].protocol": "tcp",
                "ingress[1].to_port": 5432,
                "name": "db",
                "vpc_id": "vpc-11112222",
            },
        )

    def test_state_only_bucket_fields_are_not_compared(self) -> None:
        declared = TerraformStateReader(str(SAMPLE_STATE)).list_declared()
        bucket = normalize(declared[2], Origin.DECLARED)
        self.assertEqual(dict(bucket.attributes), {"bucket": "acme-logs", "tags.Team": "platform"})

    def test_inline_rule_declared_standalone_is_kept_once(self) -> None:
        declared = TerraformStateReader(str(SAMPLE_STATE)).list_declared()
        rules = [item for item in declared if item["type"] == "aws_security_group_rule"]

        self.assertEqual(len({rule["id"] for rule in rules}), 2)
        standalone, inline = rules
        self.assertEqual(standalone["attributes"]["from_port"], 443)
        self.assertEqual(standalone["attributes"]["cidr_blocks"], ["192.168.0.0/16"])
        self.assertEqual(inline["attributes"]["from_port"], 5432)
        self.assertTrue(inline["id"].startswith("sgrule-"))

    def test_standalone_rule_is_split_per_source(self) -> None:
        state = {
            "version": 4,
            "resources": [
                {
                    "mode": "managed",
                    "type": "aws_security_group_rule",
                    "name": "bastion",
                    "instances": [
                        {
                            "attributes": {
                                "id": "sgrule-1",
                                "type": "ingress",
                                "security_group_id": "sg-1",
                                "protocol": "tcp",
                                "from_port": 22,
                                "to_port": 22,
                                "cidr_blocks": ["10.0.0.0/8", "172.16.0.0/12"],
                                "self": True,
                            }
                        }
                    ],
                }
            ],
        }

        declared = TerraformStateReader(self.write_state(json.dumps(state))).list_declared()

        self.assertEqual(len(declared), 3)
        self.assertEqual(len({item["id"] for item in declared}), 3)
        self.assertEqual({item["address"] for item in declared}, {"aws_security_group_rule.bastion"})
        self.assertEqual(declared[0]["attributes"]["cidr_blocks"], ["10.0.0.0/8"])
        self.assertEqual(declared[1]["attributes"]["cidr_blocks"], ["172.16.0.0/12"])
        self.assertTrue(declared[2]["attributes"]["self"])
        self.assertNotIn("cidr_blocks", declared[2]["attributes"])

    def test_index_keys_in_address(self) -> None:
        state = {
            "version": 4,
            "resources": [
                {
                    "mode": "managed",
                    "type": "aws_subnet",
                    "name": "private",
                    "instances": [
                        {"index_key": 0, "attributes": {"id": "subnet-1"}},
                        {"index_key": "b", "attributes": {"id": "subnet-2"}},
                    ],
                }
            ],
        }
        declared = TerraformStateReader(self.write_state(json.dumps(state))).list_declared()
        self.assertEqual(
            [item["address"] for item in declared],
            ["aws_subnet.private[0]", 'aws_subnet.private["b"]'],
        )

    def test_invalid_json(self) -> None:
        with self.assertRaises(StateParseError):
            TerraformStateReader(self.write_state("{not json")).list_declared()

    def test_missing_resources_list(self) -> None:
        with self.assertRaises(StateParseError):
            TerraformStateReader(self.write_state('{"version": 4}')).list_declared()

    def test_malformed_instances(self) -> None:
        state = {"resources": [{"mode": "managed", "type": "aws_vpc", "name": "main", "instances": "oops"}]}
        with self.assertRaises(StateParseError):
            TerraformStateReader(self.write_state(json.dumps(state))).list_declared()

    def test_missing_file(self) -> None:
        with self.assertRaises(StateParseError):
            TerraformStateReader("/nonexistent/terraform.tfstate").list_declared()

    @patch("driftscan.state.terraform.download_s3_file")
    def test_s3_snapshot(self, mock_download: MagicMock) -> None:
        mock_download.return_value = self.sample_text

        declared = TerraformStateReader("s3://test-bucket/state.tfstate").list_declared()

        mock_download.assert_called_once_with("s3://test-bucket/state.tfstate")
        self.assertEqual(len(declared), 4)

    @patch("driftscan.utils.boto3.client")
    def test_s3_download_failure(self, mock_boto3_client: MagicMock) -> None:
        from botocore.exceptions import ClientError

        mock_client = MagicMock()
        mock_client.get_object.side_effect = ClientError({"Error": {"Code": "NoSuchKey"}}, "GetObject")
        mock_boto3_client.return_value = mock_client

        with self.assertRaises(StateParseError):
            TerraformStateReader("s3://test-bucket/state.tfstate").list_declared()


if __name__ == "__main__":
    unittest.main()
