"""
Coverage Reporter Module.

Aggregates differ output into a ScanReport and renders it either as a JSON
document for downstream tooling or as a human-readable summary.
"""

import json
from collections import Counter
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Sequence

from .differ import coverage_fraction
from .models import AttributeDiff, Classification, DegradedEntry, DriftEntry, ScanReport
from .types import ReportDict

SYMBOLS = {
    Classification.COVERED: "✅",
    Classification.DRIFTED: "⚠️ ",
    Classification.UNMANAGED: "❓",
    Classification.MISSING: "❌",
}


def summarize(
    entries: Iterable[DriftEntry],
    degraded: Sequence[DegradedEntry] = (),
    timestamp: Optional[datetime] = None,
) -> ScanReport:
    """
    Aggregates drift entries into an immutable ScanReport.

    Args:
        entries: Differ output; kept in the given order
        degraded: Resources skipped during normalisation
        timestamp: Report time, defaults to now (UTC)

    Returns:
        ScanReport with per-classification counts and coverage percent
    """
    entry_tuple = tuple(entries)
    tally = Counter(entry.classification for entry in entry_tuple)
    counts = {classification: tally.get(classification, 0) for classification in Classification}
    return ScanReport(
        total_scanned=len(entry_tuple),
        entries=entry_tuple,
        coverage_percent=coverage_fraction(list(entry_tuple)) * 100.0,
        timestamp=timestamp or datetime.now(timezone.utc),
        counts=counts,
        degraded=tuple(degraded),
    )


def _diff_to_dict(difference: AttributeDiff) -> ReportDict:
    return {
        "path": difference.path,
        "live_value": difference.live_value,
        "declared_value": difference.declared_value,
    }


def report_to_dict(report: ScanReport) -> ReportDict:
    """Plain-dict form of a report, mirroring ScanReport fields."""
    return {
        "total_scanned": report.total_scanned,
        "coverage_percent": report.coverage_percent,
        "coverage_display": report.coverage_display,
        "timestamp": report.timestamp.isoformat(),
        "summary": {classification.value: report.count(classification) for classification in Classification},
        "entries": [
            {
                "type": entry.identity.type,
                "id": entry.identity.id,
                "classification": entry.classification.value,
                "attribute_diffs": [_diff_to_dict(d) for d in entry.attribute_diffs],
                "informational": [_diff_to_dict(d) for d in entry.informational],
            }
            for entry in report.entries
        ],
        "degraded": [
            {
                "type": item.resource_type,
                "id": item.resource_id,
                "origin": item.origin.value,
                "reason": item.reason,
            }
            for item in report.degraded
        ],
    }


def report_to_json(report: ScanReport, indent: Optional[int] = 2) -> str:
    return json.dumps(report_to_dict(report), indent=indent, default=str)


def format_report(report: ScanReport) -> str:
    """Human-readable drift report, grouped by classification."""
    lines: List[str] = ["", "=" * 60, "INFRASTRUCTURE DRIFT SCAN REPORT", "=" * 60]
    lines.append(f"\nScanned at: {report.timestamp.isoformat()}")
    lines.append(f"Total resources: {report.total_scanned}")
    for classification in Classification:
        lines.append(f"  {classification.value.capitalize():<10} {report.count(classification)}")

    for classification in (Classification.DRIFTED, Classification.UNMANAGED, Classification.MISSING):
        section = report.entries_for(classification)
        lines.append(f"\n=== {classification.value.capitalize()} Resources ({len(section)}) ===")
        if not section:
            lines.append(f"No {classification.value} resources detected.")
            continue
        for entry in section:
            lines.append(f"{SYMBOLS[classification]} {entry.identity.type} {entry.identity.id}")
            for difference in entry.attribute_diffs:
                lines.append(
                    f"     - {difference.path}: Declared='{_display(difference.declared_value)}' "
                    f"Live='{_display(difference.live_value)}'"
                )

    if report.degraded:
        lines.append(f"\n=== Skipped Resources ({len(report.degraded)}) ===")
        for item in report.degraded:
            lines.append(
                f"⚙️  {item.resource_type or '?'} {item.resource_id or '?'} ({item.origin.value}): {item.reason}"
            )

    lines.append(f"\nCoverage: {report.coverage_display}%")
    lines.append("=" * 60)
    return "\n".join(lines)


def _display(value: object) -> str:
    return "N/A" if value is None else str(value)
