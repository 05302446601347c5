"""
cmdsentry/analysis/export.py

Flat renderings of captured results for offline review: json, csv, markdown.
"""

from __future__ import annotations

import csv
import io
import json
from typing import Callable, Dict, Sequence

from cmdsentry.errors import CmdSentryError, ErrorCode
from .models import TestResult

CSV_HEADERS = [
    "ID",
    "Command ID",
    "Success",
    "Duration (ms)",
    "Risk Level",
    "Side Effects",
    "Timestamp",
    "Notes",
]


def to_json(results: Sequence[TestResult]) -> str:
    return json.dumps([r.to_dict() for r in results], indent=2, default=str)


def to_csv(results: Sequence[TestResult]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for r in results:
        writer.writerow([
            r.id,
            r.command_id,
            "true" if r.execution_result.success else "false",
            f"{r.execution_result.duration_ms:.1f}",
            r.analysis.risk_assessment.overall_risk.value,
            r.analysis.side_effect_analysis.total_effects,
            r.timestamp.isoformat(),
            r.notes or "",
        ])
    return buffer.getvalue()


def to_markdown(results: Sequence[TestResult]) -> str:
    lines = ["# Command Test Results", ""]
    for r in results:
        lines.append(f"## {r.command_id}")
        lines.append("")
        lines.append(f"- **Result ID**: {r.id}")
        lines.append(f"- **Success**: {'yes' if r.execution_result.success else 'no'}")
        lines.append(f"- **Duration**: {r.execution_result.duration_ms:.1f}ms")
        lines.append(f"- **Risk Level**: {r.analysis.risk_assessment.overall_risk.value}")
        lines.append(f"- **Automation Suitability**: {r.analysis.risk_assessment.automation_suitability.value}")
        lines.append(f"- **Side Effects**: {r.analysis.side_effect_analysis.total_effects}")
        lines.append(f"- **Timestamp**: {r.timestamp.isoformat()}")
        if r.execution_result.error is not None:
            lines.append(f"- **Error**: {r.execution_result.error.message}")
        if r.notes:
            lines.append(f"- **Notes**: {r.notes}")
        lines.append("")
    return "\n".join(lines)


EXPORTERS: Dict[str, Callable[[Sequence[TestResult]], str]] = {
    "json": to_json,
    "csv": to_csv,
    "markdown": to_markdown,
}


def export_results(results: Sequence[TestResult], fmt: str) -> str:
    exporter = EXPORTERS.get((fmt or "").lower())
    if exporter is None:
        raise CmdSentryError(
            ErrorCode.CAPTURE_EXPORT_FORMAT,
            f"Unsupported export format: {fmt}",
            details={"supported": sorted(EXPORTERS)},
        )
    return exporter(results)
