"""
Command-line interface for the drift scanner.

Requires AWS credentials to be configured (via AWS CLI, environment variables
or IAM roles). Flags override the environment configuration read by
``load_config``.

Usage:
    driftscan scan --state s3://your-bucket/path/to/terraform.tfstate
    driftscan scan --state ./terraform.tfstate --types aws_security_group,aws_security_group_rule
    driftscan scan --state ./terraform.tfstate --output json --concurrency 8 --timeout 120

Exit codes: 0 fully covered, 1 drift or unmanaged resources, 2 scan failure.
"""

import argparse
import sys
from typing import List, Optional

from .config import LOG_LEVELS, ScanConfig, load_config, parse_resource_types
from .errors import ScanFailure
from .orchestrator import EXIT_FAILURE, Scanner, exit_code
from .providers import AwsProvider
from .reporter import format_report, report_to_json
from .state import TerraformStateReader
from .utils import setup_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="driftscan",
        description="Detect drift between live AWS resources and a Terraform state snapshot",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  driftscan scan --state s3://my-terraform-bucket/terraform.tfstate
  driftscan scan --state ./terraform.tfstate --region us-west-2 --log-level DEBUG
        """,
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    scan_parser = subparsers.add_parser("scan", help="Scan live resources against the state snapshot")
    scan_parser.add_argument(
        "--state",
        help="Terraform state path: s3://bucket/key, local://path or a file path (default: $STATE_FILE_PATH)",
    )
    scan_parser.add_argument(
        "--types",
        action="append",
        help="Resource types to scan, comma separated or repeated (default: all supported)",
    )
    scan_parser.add_argument(
        "--output",
        choices=["human", "json"],
        default="human",
        help="Output format for the report (default: human)",
    )
    scan_parser.add_argument("--concurrency", type=int, help="Maximum concurrent enumeration calls")
    scan_parser.add_argument("--timeout", type=float, help="Global scan timeout in seconds")
    scan_parser.add_argument("--max-retries", type=int, help="Attempts per resource type for retryable errors")
    scan_parser.add_argument("--region", help="AWS region for API calls")
    scan_parser.add_argument("--log-level", choices=LOG_LEVELS, help="Logging level")
    scan_parser.add_argument(
        "--include-computed",
        action="store_true",
        help="Report differences in computed fields as informational",
    )
    return parser


def config_from_args(args: argparse.Namespace) -> ScanConfig:
    """Environment configuration overridden by explicit flags, validated."""
    config = load_config(require_state_path=False)
    if args.state:
        config.state_path = args.state
    if args.types:
        config.resource_types = [t for value in args.types for t in parse_resource_types(value)]
    if args.concurrency is not None:
        config.concurrency = args.concurrency
    if args.timeout is not None:
        config.timeout_seconds = args.timeout
    if args.max_retries is not None:
        config.max_retries = args.max_retries
    if args.region:
        config.aws_region = args.region
    if args.log_level:
        config.log_level = args.log_level
    if args.include_computed:
        config.include_computed = True
    return config.validate()


def run_scan(config: ScanConfig, output: str) -> int:
    logger = setup_logging(config.log_level)
    logger.info(f"Running drift scan against state: {config.state_path}")

    provider = AwsProvider.from_config(config)
    state = TerraformStateReader(config.state_path)
    try:
        report = Scanner(config).scan(provider, state, config.resource_types)
    except ScanFailure as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return EXIT_FAILURE

    if output == "json":
        print(report_to_json(report))
    else:
        print(format_report(report))

    code = exit_code(report)
    if code:
        logger.warning(f"Drift detected! Exiting with code {code}")
    else:
        logger.info("No drift detected. Exiting with code 0")
    return code


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the command-line drift scanner."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = config_from_args(args)
    except ValueError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return EXIT_FAILURE

    return run_scan(config, args.output)


if __name__ == "__main__":
    sys.exit(main())
