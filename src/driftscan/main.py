"""
AWS Lambda entry point for the drift scanner.
"""

import json

from .config import load_config
from .errors import ScanFailure
from .orchestrator import Scanner, exit_code
from .providers import AwsProvider
from .reporter import report_to_dict
from .state import TerraformStateReader
from .utils import setup_logging

JSON_HEADERS = {"Content-Type": "application/json"}


def lambda_handler(event: dict, context: object) -> dict:
    """
    AWS Lambda handler function.

    Args:
        event: Lambda event data; an optional ``resource_types`` list narrows the scan
        context: Lambda context

    Returns:
        Dictionary with statusCode and body containing the scan report
    """
    logger = setup_logging()
    try:
        # Load and validate configuration
        config = load_config()
        logger = setup_logging(config.log_level)
        logger.info("Starting drift scan")

        resource_types = (event or {}).get("resource_types") or config.resource_types
        report = Scanner(config).scan(
            AwsProvider.from_config(config),
            TerraformStateReader(config.state_path),
            resource_types,
        )
        body = report_to_dict(report)
        body["exit_code"] = exit_code(report)

        logger.info(f"Drift scan completed. Coverage: {report.coverage_display}%")
        return {"statusCode": 200, "body": json.dumps(body, default=str), "headers": JSON_HEADERS}

    except ValueError as e:
        # Configuration or validation errors
        logger.error(f"Configuration error: {str(e)}")
        return {
            "statusCode": 400,
            "body": json.dumps({"error": "Configuration error", "message": str(e)}),
            "headers": JSON_HEADERS,
        }

    except ScanFailure as e:
        return {
            "statusCode": 500,
            "body": json.dumps(
                {
                    "error": "Scan failed",
                    "phase": e.phase,
                    "resource_type": e.resource_type,
                    "message": str(e),
                }
            ),
            "headers": JSON_HEADERS,
        }
