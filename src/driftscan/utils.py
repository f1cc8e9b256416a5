"""
Utility functions for the drift scanner.
"""

import functools
import json
import logging
import threading
from typing import Callable, Dict, Optional, TypeVar, cast
from urllib.parse import urlparse

import boto3
from botocore.exceptions import (
    ClientError,
    ConnectionClosedError,
    ConnectTimeoutError,
    EndpointConnectionError,
    NoCredentialsError,
    ReadTimeoutError,
)

from .errors import ProviderError, ScanCancelled, StateParseError

RATE_LIMIT_CODES = {
    "Throttling",
    "ThrottlingException",
    "RequestLimitExceeded",
    "RequestThrottled",
    "RequestThrottledException",
    "TooManyRequestsException",
    "SlowDown",
}

UNAUTHORIZED_CODES = {
    "AccessDenied",
    "AccessDeniedException",
    "AuthFailure",
    "UnauthorizedOperation",
    "InvalidClientTokenId",
    "ExpiredToken",
    "ExpiredTokenException",
    "UnrecognizedClientException",
    "SignatureDoesNotMatch",
}

NOT_FOUND_CODES = {"NoSuchEntity", "NoSuchBucket", "ResourceNotFoundException"}


def setup_logging(log_level: str = "INFO") -> logging.Logger:
    """
    Sets up logging configuration for the drift scanner.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger("driftscan")
    logger.setLevel(getattr(logging, log_level.upper()))

    # Prevent duplicate handlers
    if not logger.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger


def classify_client_error(error: ClientError) -> str:
    """
    Maps an AWS ClientError onto a ProviderError kind.

    Args:
        error: The botocore ClientError raised by a service call

    Returns:
        One of the ProviderError kinds
    """
    code = error.response.get("Error", {}).get("Code", "")
    if code in RATE_LIMIT_CODES:
        return ProviderError.RATE_LIMITED
    if code in UNAUTHORIZED_CODES:
        return ProviderError.UNAUTHORIZED
    if code in NOT_FOUND_CODES or code.endswith("NotFound") or code.endswith(".NotFound"):
        return ProviderError.NOT_FOUND
    return ProviderError.TRANSIENT


F = TypeVar("F", bound=Callable[..., list])


def provider_error_handler(resource_type: str) -> Callable[[F], F]:
    """
    Decorator for consistent error handling and logging in AWS resource fetchers.
    Translates botocore failures into ProviderError so the orchestrator can decide
    whether to retry, and logs them with the resource type being listed.
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args: object, **kwargs: object) -> list:
            logger = setup_logging()
            try:
                return func(*args, **kwargs)
            except ClientError as e:
                kind = classify_client_error(e)
                logger.warning(f"AWS ClientError in {func.__name__} ({kind}): {e}")
                raise ProviderError(kind, str(e), resource_type) from e
            except NoCredentialsError as e:
                logger.error(f"No AWS credentials available for {resource_type}")
                raise ProviderError(ProviderError.UNAUTHORIZED, str(e), resource_type) from e
            except (
                EndpointConnectionError,
                ConnectTimeoutError,
                ReadTimeoutError,
                ConnectionClosedError,
            ) as e:
                logger.warning(f"Connection error in {func.__name__}: {e}")
                raise ProviderError(ProviderError.TRANSIENT, str(e), resource_type) from e

        return cast(F, wrapper)

    return decorator


def check_cancelled(cancelled: Optional[threading.Event], resource_type: str) -> None:
    """
    Stops a fetcher between API calls once its scan has been cancelled.

    Raises:
        ScanCancelled: If ``cancelled`` is set
    """
    if cancelled is not None and cancelled.is_set():
        raise ScanCancelled(f"listing {resource_type} cancelled")


def download_s3_file(s3_path: str, logger: Optional[logging.Logger] = None) -> str:
    """
    Downloads a file from S3 and returns its content as a string.

    Args:
        s3_path: S3 path in format 's3://bucket/key'
        logger: Logger instance for error logging

    Returns:
        File content as string

    Raises:
        StateParseError: If the S3 path is invalid or the download fails
    """
    if logger is None:
        logger = setup_logging()

    parsed = urlparse(s3_path)
    bucket = parsed.netloc
    key = parsed.path.lstrip("/")
    if not bucket or not key:
        raise StateParseError(f"Invalid S3 path: {s3_path}")

    try:
        logger.info(f"Downloading S3 file: {s3_path}")
        s3_client = boto3.client("s3")
        response = s3_client.get_object(Bucket=bucket, Key=key)
        content_bytes = response["Body"].read()
        content = (
            content_bytes.decode("utf-8")
            if isinstance(content_bytes, bytes)
            else str(content_bytes)
        )
        logger.info(f"Successfully downloaded {len(content)} bytes from S3")
        return content
    except (ClientError, NoCredentialsError, EndpointConnectionError) as e:
        logger.error(f"Failed to download S3 file {s3_path}: {str(e)}")
        raise StateParseError(f"Failed to download state from {s3_path}: {e}") from e


def parse_terraform_state(
    state_content: str, logger: Optional[logging.Logger] = None
) -> Dict:
    """
    Parses Terraform state file content into a Python dict.

    Args:
        state_content: Raw state file content as string
        logger: Logger instance for error logging

    Returns:
        Parsed state data as dict

    Raises:
        StateParseError: If the content is not valid JSON or not a state document
    """
    if logger is None:
        logger = setup_logging()

    logger.info("Parsing Terraform state file")
    try:
        state_data = json.loads(state_content)
    except json.JSONDecodeError as e:
        logger.error(f"Invalid JSON in state file: {e}")
        raise StateParseError(f"Invalid JSON in state file: {e}") from e

    if not isinstance(state_data, dict):
        raise StateParseError("State file did not parse to a dictionary.")
    if not isinstance(state_data.get("resources"), list):
        raise StateParseError("State file has no 'resources' list.")

    logger.info(
        f"Successfully parsed state file with "
        f"{len(state_data['resources'])} resources"
    )
    return state_data
