from __future__ import annotations

from dataclasses import asdict
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from vendortal_cli.exceptions import ApiError
from vendortal_cli.exporters.base import MAX_LINE_LENGTH, BaseExporter, format_bullet
from vendortal_cli.formatters.markdown_formatter import MarkdownFormatter
from vendortal_cli.lifecycle import is_overdue, progress_for_status
from vendortal_cli.models.assessments import AssessmentResponse, VendorAssessment
from vendortal_cli.scoring import risk_level
from vendortal_cli.services.assessments import AssessmentService
from vendortal_cli.services.responses import group_by_section


def numbered_assessments(
    assessments: List[VendorAssessment],
) -> List[Tuple[str, VendorAssessment]]:
    ordered = sorted(assessments, key=lambda a: (a.created_at, a.id))
    return [(f"ASM-{index}", a) for index, a in enumerate(ordered, start=1)]


class AssessmentsExporter(BaseExporter):
    def export(self) -> None:
        self._ensure_output_dir()
        self._log("Exporting assessments...")

        service = AssessmentService(self.client, self.user_id)
        assessments = service.refresh()
        if service.error:
            raise ApiError(service.error)

        now = datetime.now(timezone.utc)
        codes: List[str] = []
        entries: List[List[str]] = []
        for code, assessment in numbered_assessments(assessments):
            responses = service.responses(assessment.id)
            raw: Dict[str, Any] = asdict(assessment)
            raw["responses"] = [asdict(r) for r in responses]
            self._write_markdown(
                code,
                title=_document_title(code, assessment),
                body=_build_body(assessment, responses),
                frontmatter=_build_frontmatter(code, assessment, now),
                raw=raw,
            )
            codes.append(code)
            entries.append(_index_entry(code, assessment))

        self._write_index("Vendor Assessments", "assessment", entries)
        self._log_done("assessments", codes)


def _vendor_name(assessment: VendorAssessment) -> str:
    return assessment.vendor.name if assessment.vendor else ""


def _framework_name(assessment: VendorAssessment) -> str:
    return assessment.framework.name if assessment.framework else ""


def _level(score: Optional[int]) -> str:
    return risk_level(score) if score is not None else ""


def _document_title(code: str, assessment: VendorAssessment) -> str:
    if assessment.assessment_name:
        title = f"{code} {assessment.assessment_name}"
        if len(f"# {title}") <= MAX_LINE_LENGTH:
            return title
    return code


def _build_frontmatter(
    code: str,
    assessment: VendorAssessment,
    now: datetime,
) -> Dict[str, Any]:
    fm: Dict[str, Any] = {
        "id": code,
        "assessment_id": assessment.id,
        "title": assessment.assessment_name,
        "vendor": _vendor_name(assessment),
        "framework": _framework_name(assessment),
        "status": assessment.status,
        "overall_score": assessment.overall_score,
        "risk_level": _level(assessment.overall_score),
    }
    for key in ("due_date", "sent_at", "completed_at"):
        value = getattr(assessment, key)
        if value:
            fm[key] = value
    if is_overdue(assessment, now):
        fm["overdue"] = True
    return fm


def _build_body(assessment: VendorAssessment, responses: List[AssessmentResponse]) -> str:
    parts: List[str] = ["## Scores", ""]
    overall = "-" if assessment.overall_score is None else str(assessment.overall_score)
    parts.extend(MarkdownFormatter.table(
        ("Metric", "Value"),
        [
            ("Overall Score", overall),
            ("Risk Level", _level(assessment.overall_score) or "-"),
            ("Status", assessment.status),
            ("Progress", f"{progress_for_status(assessment.status)}%"),
        ],
    ))
    parts.append("")

    parts.append("### Section Scores")
    parts.append("")
    if assessment.section_scores:
        parts.extend(MarkdownFormatter.table(
            ("Section", "Score"),
            sorted(assessment.section_scores.items()),
        ))
    else:
        parts.append("[//]: # (No section scores)")
    parts.append("")

    parts.append("## Responses")
    if not responses:
        parts.append("")
        parts.append("[//]: # (No responses)")
        return "\n".join(parts)

    for section, items in group_by_section(responses).items():
        parts.append("")
        parts.append(f"### {section}")
        parts.append("")
        for response in items:
            question = response.question.question_text if response.question else response.question_id
            answer = response.answer or "(no answer)"
            parts.append(format_bullet(f"**{question}** {answer}"))
            for url in response.evidence_urls:
                parts.append(f"  - <{url}>")

    return "\n".join(parts)


def _index_entry(code: str, assessment: VendorAssessment) -> List[str]:
    lines: List[str] = []
    heading = f"## [{code}]({code}.md) {assessment.assessment_name}"
    if assessment.assessment_name and len(heading) <= MAX_LINE_LENGTH:
        lines.append(heading)
    else:
        lines.append(f"## [{code}]({code}.md)")
    lines.append("")
    lines.append(format_bullet(f"**Vendor:** {_vendor_name(assessment) or '-'}"))
    lines.append(format_bullet(f"**Status:** {assessment.status}"))
    score = "-" if assessment.overall_score is None else str(assessment.overall_score)
    lines.append(format_bullet(f"**Score:** {score}"))
    return lines
