from __future__ import annotations

from typing import Any, Dict, List, Sequence

from vendortal_cli.exporters.base import export_timestamp, format_bullet
from vendortal_cli.formatters.markdown_formatter import MarkdownFormatter
from vendortal_cli.models.compliance import DimensionScore, NistComplianceReport
from vendortal_cli.nist_mapping import (
    NIST_CONTROLS,
    generate_compliance_report,
    get_implementation_guidance,
)

REPORT_TITLE = "NIST SP 800-161 Compliance Report"


def render_nist_report(
    dimension_scores: Sequence[DimensionScore],
    report: NistComplianceReport,
) -> str:
    frontmatter: Dict[str, Any] = {
        "generated": export_timestamp(),
        "compliance_score": report.compliance_score,
        "covered_controls": len(report.covered_controls),
        "gaps": len(report.gaps),
    }

    parts: List[str] = ["## Dimension Scores", ""]
    if dimension_scores:
        parts.extend(MarkdownFormatter.table(
            ("Dimension", "Score", "Notes"),
            [(d.dimension, f"{d.score:g}", d.notes or "-") for d in dimension_scores],
        ))
    else:
        parts.append("[//]: # (No dimension scores)")
    parts.append("")

    parts.append("## Covered Controls")
    parts.append("")
    if report.covered_controls:
        for control_id in report.covered_controls:
            control = NIST_CONTROLS[control_id]
            parts.append(format_bullet(f"**{control.id}:** {control.name} ({control.control_type})"))
    else:
        parts.append("[//]: # (No mapped controls)")
    parts.append("")

    parts.append("## Gaps")
    parts.append("")
    if report.gaps:
        for gap in report.gaps:
            parts.append(format_bullet(f"**{gap.control}:** {gap.reason}"))
    else:
        parts.append("[//]: # (No gaps)")

    seen: Dict[str, None] = {}
    for item in dimension_scores:
        seen.setdefault(item.dimension, None)
    if seen:
        parts.append("")
        parts.append("## Implementation Guidance")
        for dimension in seen:
            parts.append("")
            parts.append(f"### {dimension}")
            parts.append("")
            parts.append(get_implementation_guidance(dimension))

    return MarkdownFormatter.render(
        title=REPORT_TITLE,
        body="\n".join(parts),
        frontmatter=frontmatter,
    )


def build_nist_report(dimension_scores: Sequence[DimensionScore]) -> str:
    return render_nist_report(dimension_scores, generate_compliance_report(dimension_scores))
