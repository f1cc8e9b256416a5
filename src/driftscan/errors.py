"""
Exception taxonomy for the drift scanner.

Errors that concern a single resource (``NormalizationError``) are isolated by
the orchestrator and recorded as degraded entries. Structural errors
(``DuplicateResourceError``, non-retryable ``ProviderError``,
``StateParseError``) abort the scan and surface as ``ScanFailure``.
"""

from typing import Optional


class DriftScanError(Exception):
    """Base class for all drift scanner errors."""


class NormalizationError(DriftScanError):
    """A raw resource could not be converted into a ResourceRecord."""

    def __init__(self, message: str, resource_type: Optional[str] = None, resource_id: Optional[str] = None):
        super().__init__(message)
        self.resource_type = resource_type
        self.resource_id = resource_id


class DuplicateResourceError(DriftScanError):
    """The same identity was reported twice by one collaborator."""

    def __init__(self, identity: object, origin: object):
        super().__init__(f"Duplicate resource {identity} in {origin} results")
        self.identity = identity
        self.origin = origin
        self.resource_type = getattr(identity, "type", None)


class ProviderError(DriftScanError):
    """
    Failure reported by the provider collaborator.

    ``kind`` is one of ``rate_limited``, ``unauthorized``, ``not_found`` or
    ``transient``. Only ``rate_limited`` and ``transient`` are retried.
    """

    RATE_LIMITED = "rate_limited"
    UNAUTHORIZED = "unauthorized"
    NOT_FOUND = "not_found"
    TRANSIENT = "transient"

    KINDS = (RATE_LIMITED, UNAUTHORIZED, NOT_FOUND, TRANSIENT)
    RETRYABLE_KINDS = (RATE_LIMITED, TRANSIENT)

    def __init__(self, kind: str, message: str = "", resource_type: Optional[str] = None):
        if kind not in self.KINDS:
            raise ValueError(f"Unknown provider error kind: {kind}")
        self.kind = kind
        self.message = message
        self.resource_type = resource_type
        super().__init__(kind, message)

    def __str__(self) -> str:
        # resource_type may be filled in after construction
        detail = f": {self.message}" if self.message else ""
        return f"{self.kind} error listing {self.resource_type or 'resources'}{detail}"

    @property
    def retryable(self) -> bool:
        return self.kind in self.RETRYABLE_KINDS


class ScanCancelled(DriftScanError):
    """Raised inside a worker whose scan has been abandoned or has timed out."""


class StateParseError(DriftScanError):
    """The declared state snapshot could not be read or parsed."""


class ScanFailure(DriftScanError):
    """
    Top-level scan failure. No report is produced when this is raised.

    Args:
        phase: Orchestrator phase in which the failure happened
        reason: Short reason such as ``timeout`` or the underlying error text
        resource_type: Resource type being processed, when known
    """

    def __init__(self, phase: str, reason: str, resource_type: Optional[str] = None):
        self.phase = phase
        self.reason = reason
        self.resource_type = resource_type
        where = f" while processing {resource_type}" if resource_type else ""
        super().__init__(f"Scan failed during {phase}{where}: {reason}")
