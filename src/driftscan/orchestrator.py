"""
Scan orchestration logic.

This module contains the main entry point for drift scanning and coordinates
the whole pipeline:
- Enumerates live resources per resource type on a bounded worker pool, while
  the state snapshot is read on the same pool
- Normalises both sides, isolating malformed resources as degraded entries
- Builds one index per origin and diffs them
- Summarises the differ output into a ScanReport

Any collaborator failure aborts the scan with ScanFailure. No partial report
is ever returned.
"""

import threading
import time
from concurrent.futures import FIRST_EXCEPTION, Future, ThreadPoolExecutor, wait
from enum import Enum
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from .config import ScanConfig
from .differ import diff
from .errors import (
    DriftScanError,
    NormalizationError,
    ProviderError,
    ScanCancelled,
    ScanFailure,
    StateParseError,
)
from .index import ResourceIndex
from .models import Classification, DegradedEntry, Origin, ResourceRecord, ScanReport
from .normalizer import NormalizerOptions, normalize
from .providers.base import ProviderCollaborator
from .reporter import summarize
from .state.base import StateCollaborator
from .types import RawResource
from .utils import setup_logging

logger = setup_logging()

EXIT_OK = 0
EXIT_DRIFT = 1
EXIT_FAILURE = 2

STATE_TASK = "state"


class ScanPhase(str, Enum):
    IDLE = "idle"
    ENUMERATING = "enumerating"
    NORMALIZING = "normalizing"
    DIFFING = "diffing"
    REPORTING = "reporting"
    DONE = "done"
    FAILED = "failed"


class Scanner:
    """
    Runs drift scans.

    Args:
        config: Scan settings; only the engine fields are used here
        clock: Monotonic clock used for the global timeout
    """

    def __init__(
        self,
        config: Optional[ScanConfig] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config or ScanConfig(state_path="")
        self.phase = ScanPhase.IDLE
        self._clock = clock
        self._cancelled = threading.Event()

    def scan(
        self,
        provider: ProviderCollaborator,
        state: StateCollaborator,
        resource_types: Optional[Iterable[str]] = None,
    ) -> ScanReport:
        """
        Scans live resources against the declared state.

        Args:
            provider: Live resource collaborator
            state: Declared state collaborator
            resource_types: Types to scan; all provider-supported types when empty

        Returns:
            The immutable ScanReport

        Raises:
            ScanFailure: If any collaborator or structural error aborts the scan
        """
        self.phase = ScanPhase.IDLE
        self._cancelled = threading.Event()
        try:
            self._transition(ScanPhase.ENUMERATING)
            types = self._resolve_types(provider, resource_types)
            live_raw, declared_raw = self._enumerate(provider, state, types)

            self._transition(ScanPhase.NORMALIZING)
            degraded: List[DegradedEntry] = []
            live_records = self._normalize_all(live_raw, Origin.LIVE, degraded)
            declared_records = self._normalize_all(
                [raw for raw in declared_raw if _raw_type(raw) in types or _raw_type(raw) is None],
                Origin.DECLARED,
                degraded,
            )
            live_index = ResourceIndex.build(live_records, Origin.LIVE)
            declared_index = ResourceIndex.build(declared_records, Origin.DECLARED)

            self._transition(ScanPhase.DIFFING)
            entries = diff(live_index, declared_index)

            self._transition(ScanPhase.REPORTING)
            report = summarize(entries, degraded)

            self._transition(ScanPhase.DONE)
            logger.info(
                f"Scan complete: {report.total_scanned} resources, "
                f"{report.drifted_count} drifted, {report.unmanaged_count} unmanaged, "
                f"{report.missing_count} missing, coverage {report.coverage_display}%"
            )
            return report
        except ScanFailure as failure:
            self._fail(failure)
            raise
        except DriftScanError as e:
            failure = ScanFailure(self.phase.value, str(e), getattr(e, "resource_type", None))
            self._fail(failure)
            raise failure from e

    # ------------------------------------------------------------------
    def _transition(self, phase: ScanPhase) -> None:
        logger.debug(f"Scan phase {self.phase.value} -> {phase.value}")
        self.phase = phase

    def _fail(self, failure: ScanFailure) -> None:
        self._cancelled.set()
        logger.error(str(failure))
        self.phase = ScanPhase.FAILED

    def _resolve_types(
        self, provider: ProviderCollaborator, resource_types: Optional[Iterable[str]]
    ) -> List[str]:
        requested = list(resource_types or []) or list(self.config.resource_types) or provider.supported_types()
        # De-duplicate while keeping the caller's order
        return list(dict.fromkeys(requested))

    def _enumerate(
        self,
        provider: ProviderCollaborator,
        state: StateCollaborator,
        types: Sequence[str],
    ) -> Tuple[List[RawResource], List[RawResource]]:
        """
        Fans the state read and one listing per type out to the worker pool.

        Each worker returns its own result; nothing is shared between workers.
        Results are merged here once every task has finished.

        On timeout or failure the cancel event is set: queued tasks are
        dropped and running listings stop at their next API call, so no
        worker outlives the scan by more than one call timeout.
        """
        deadline = self._clock() + self.config.timeout_seconds
        executor = ThreadPoolExecutor(max_workers=self.config.concurrency, thread_name_prefix="driftscan")
        try:
            tasks: Dict[Future, str] = {executor.submit(self._read_state, state): STATE_TASK}
            for resource_type in types:
                tasks[executor.submit(self._list_with_retry, provider, resource_type)] = resource_type

            pending = set(tasks)
            while pending:
                remaining = deadline - self._clock()
                if remaining <= 0:
                    waiting = sorted(tasks[future] for future in pending)
                    raise ScanFailure(ScanPhase.ENUMERATING.value, "timeout", ", ".join(waiting))
                done, pending = wait(pending, timeout=remaining, return_when=FIRST_EXCEPTION)
                for future in done:
                    error = future.exception()
                    if error is not None:
                        raise self._collaborator_failure(error, tasks[future])

            results = {task: future.result() for future, task in tasks.items()}
        finally:
            self._cancelled.set()
            executor.shutdown(wait=False, cancel_futures=True)

        live_raw: List[RawResource] = []
        for resource_type in types:
            live_raw.extend(results[resource_type])
        return live_raw, results[STATE_TASK]

    def _collaborator_failure(self, error: BaseException, task: str) -> ScanFailure:
        if isinstance(error, ProviderError):
            return ScanFailure(ScanPhase.ENUMERATING.value, str(error), error.resource_type or task)
        if isinstance(error, StateParseError):
            return ScanFailure(ScanPhase.ENUMERATING.value, f"state snapshot unreadable: {error}", STATE_TASK)
        return ScanFailure(
            ScanPhase.ENUMERATING.value, f"{type(error).__name__}: {error}", task
        )

    def _read_state(self, state: StateCollaborator) -> List[RawResource]:
        return list(state.list_declared())

    def _list_with_retry(self, provider: ProviderCollaborator, resource_type: str) -> List[RawResource]:
        """
        Lists one resource type, retrying rate-limited and transient failures
        with exponential backoff. Backoff waits end early when the scan is
        cancelled.
        """
        attempts = self.config.max_retries
        for attempt in range(1, attempts + 1):
            if self._cancelled.is_set():
                raise ScanCancelled(f"listing {resource_type} cancelled")
            try:
                return list(provider.list_resources(resource_type, cancelled=self._cancelled))
            except ProviderError as e:
                if e.resource_type is None:
                    e.resource_type = resource_type
                if not e.retryable or attempt == attempts:
                    if e.retryable:
                        logger.error(f"Giving up on {resource_type} after {attempt} attempts: {e}")
                    raise
                delay = min(self.config.backoff_base * (2 ** (attempt - 1)), self.config.backoff_max)
                logger.warning(
                    f"Attempt {attempt}/{attempts} listing {resource_type} failed ({e.kind}); "
                    f"retrying in {delay:.2f}s"
                )
                if self._cancelled.wait(delay):
                    raise ScanCancelled(f"listing {resource_type} cancelled") from e
        raise ScanCancelled(f"listing {resource_type} not attempted")

    def _normalize_all(
        self, raws: Iterable[RawResource], origin: Origin, degraded: List[DegradedEntry]
    ) -> List[ResourceRecord]:
        options = NormalizerOptions(include_computed=self.config.include_computed)
        records: List[ResourceRecord] = []
        for raw in raws:
            try:
                records.append(normalize(raw, origin, options))
            except NormalizationError as e:
                logger.warning(f"Skipping malformed {origin.value} resource: {e}")
                degraded.append(
                    DegradedEntry(
                        resource_type=e.resource_type or _raw_type(raw),
                        resource_id=e.resource_id,
                        origin=origin,
                        reason=str(e),
                    )
                )
        return records


def _raw_type(raw: object) -> Optional[str]:
    if isinstance(raw, Mapping):
        value = raw.get("type")
        return value if isinstance(value, str) else None
    return None


def scan(
    provider: ProviderCollaborator,
    state: StateCollaborator,
    resource_types: Optional[Iterable[str]] = None,
    config: Optional[ScanConfig] = None,
) -> ScanReport:
    """Runs a single scan with a fresh Scanner."""
    return Scanner(config).scan(provider, state, resource_types)


def exit_code(report: ScanReport) -> int:
    """0 when nothing is unmanaged or drifted, 1 otherwise."""
    if report.count(Classification.UNMANAGED) or report.count(Classification.DRIFTED):
        return EXIT_DRIFT
    return EXIT_OK
