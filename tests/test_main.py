"""
Unit tests for the Lambda handler. All AWS interactions are mocked.
"""

import json
import unittest
from pathlib import Path
from unittest.mock import MagicMock, patch

from driftscan.errors import ScanFailure
from driftscan.main import lambda_handler

from aws_responses import mock_aws_client

SAMPLE_STATE = Path(__file__).parent / "sample_state.json"


class TestLambdaHandler(unittest.TestCase):
    # boto3.client is patched for the live side and download_s3_file for the state side.
    @patch.dict("os.environ", {"STATE_FILE_PATH": "s3://test-bucket/state.tfstate"}, clear=True)
    @patch("driftscan.providers.aws.boto3.client")
    @patch("driftscan.state.terraform.download_s3_file")
    def test_scan_success(self, mock_download: MagicMock, mock_boto3_client: MagicMock) -> None:
        mock_download.return_value = SAMPLE_STATE.read_text(encoding="utf-8")

        mock_boto3_client.return_value = mock_aws_client()

        result = lambda_handler({}, None)

        self.assertEqual(result["statusCode"], 200)
        body = json.loads(result["body"])
        self.assertEqual(body["total_scanned"], 4)
        self.assertEqual(body["summary"]["covered"], 4)
        self.assertEqual(body["coverage_display"], 100)
        self.assertEqual(body["exit_code"], 0)

    @patch.dict("os.environ", {}, clear=True)
    def test_missing_configuration(self) -> None:
        result = lambda_handler({}, None)
        self.assertEqual(result["statusCode"], 400)
        self.assertIn("STATE_FILE_PATH", json.loads(result["body"])["message"])

    @patch.dict("os.environ", {"STATE_FILE_PATH": "s3://test-bucket/state.tfstate"}, clear=True)
    @patch("driftscan.main.Scanner")
    def test_scan_failure(self, mock_scanner: MagicMock) -> None:
        mock_scanner.return_value.scan.side_effect = ScanFailure("enumerating", "timeout", "aws_iam_role")

        result = lambda_handler({}, None)

        self.assertEqual(result["statusCode"], 500)
        body = json.loads(result["body"])
        self.assertEqual(body["phase"], "enumerating")
        self.assertEqual(body["resource_type"], "aws_iam_role")


if __name__ == "__main__":
    unittest.main()
