"""
Configuration loader for the drift scanner.
"""

import os
from dataclasses import dataclass, field
from typing import List, Optional

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


@dataclass
class ScanConfig:
    """Configuration class for the drift scanner."""

    state_path: str
    aws_region: Optional[str] = None
    log_level: str = "INFO"
    max_retries: int = 3
    timeout_seconds: float = 300
    concurrency: int = 4
    resource_types: List[str] = field(default_factory=list)
    include_computed: bool = False
    backoff_base: float = 0.5
    backoff_max: float = 8.0

    def validate(self) -> "ScanConfig":
        """
        Checks field values and returns self.

        Raises:
            ValueError: If a value is missing or out of range
        """
        if not self.state_path:
            raise ValueError("A state file path is required")
        if self.state_path.startswith("s3://") and not _valid_s3_path(self.state_path):
            raise ValueError("STATE_FILE_PATH must be a valid S3 path like s3://bucket/key")
        if self.log_level.upper() not in LOG_LEVELS:
            raise ValueError(f"LOG_LEVEL must be one of {', '.join(LOG_LEVELS)}")
        if self.max_retries < 1:
            raise ValueError("MAX_RETRIES must be at least 1")
        if self.timeout_seconds <= 0:
            raise ValueError("TIMEOUT_SECONDS must be positive")
        if self.concurrency < 1:
            raise ValueError("SCAN_CONCURRENCY must be at least 1")
        if self.backoff_base < 0:
            raise ValueError("BACKOFF_BASE_SECONDS must not be negative")
        return self


def _valid_s3_path(path: str) -> bool:
    parts = path.split("/", 3)
    return len(parts) == 4 and bool(parts[2]) and bool(parts[3])


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def parse_resource_types(value: Optional[str]) -> List[str]:
    """Splits a comma separated resource type filter, dropping blanks."""
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


def load_config(require_state_path: bool = True) -> ScanConfig:
    """
    Loads and validates configuration from environment variables.

    Args:
        require_state_path: Whether STATE_FILE_PATH must be set

    Returns:
        ScanConfig object with validated settings

    Raises:
        ValueError: If required configuration is missing or invalid
    """
    # Required configuration
    state_path = os.environ.get("STATE_FILE_PATH", "")
    if require_state_path and not state_path:
        raise ValueError("STATE_FILE_PATH environment variable is required")

    try:
        config = ScanConfig(
            state_path=state_path,
            aws_region=os.environ.get("AWS_REGION"),
            log_level=os.environ.get("LOG_LEVEL", "INFO"),
            max_retries=int(os.environ.get("MAX_RETRIES", "3")),
            timeout_seconds=float(os.environ.get("TIMEOUT_SECONDS", "300")),
            concurrency=int(os.environ.get("SCAN_CONCURRENCY", "4")),
            resource_types=parse_resource_types(os.environ.get("RESOURCE_TYPES")),
            include_computed=_parse_bool(os.environ.get("INCLUDE_COMPUTED", "false")),
            backoff_base=float(os.environ.get("BACKOFF_BASE_SECONDS", "0.5")),
        )
    except ValueError as e:
        raise ValueError(f"Invalid numeric configuration value: {e}") from e

    if not require_state_path:
        return config
    return config.validate()
