"""Parse backend rows into model dataclasses.

Rows come straight from the REST API, so every field is treated as
optional and possibly mistyped.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from vendortal_cli.models.assessments import (
    STATUS_PENDING,
    AssessmentFramework,
    AssessmentResponse,
    Question,
    QuestionSummary,
    VendorAssessment,
    VendorSummary,
)
from vendortal_cli.models.vendors import Vendor


def _as_int(value: Any) -> int:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            value = float(value)
        except ValueError:
            return 0
    if isinstance(value, float):
        try:
            return int(value)
        except (ValueError, OverflowError):
            return 0
    return 0


def _as_optional_int(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    return _as_int(value)


def _as_optional_float(value: Any) -> Optional[float]:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


def _as_str(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _as_bool(value: Any, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, str):
        return value.strip().lower() in ("true", "t", "1", "yes")
    return bool(value)


def _as_str_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [str(item) for item in value if item is not None and str(item)]


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def parse_vendor(row: Dict[str, Any]) -> Vendor:
    return Vendor(
        id=_as_str(row.get("id")),
        user_id=_as_str(row.get("user_id")),
        name=_as_str(row.get("name")),
        industry=_as_str(row.get("industry")),
        website=_as_str(row.get("website")),
        contact_email=_as_str(row.get("contact_email")),
        risk_score=_as_optional_float(row.get("risk_score")),
        risk_level=_as_str(row.get("risk_level")),
        compliance_status=_as_str(row.get("compliance_status")),
        last_assessment_date=_as_str(row.get("last_assessment_date")),
        notes=_as_str(row.get("notes")),
        created_at=_as_str(row.get("created_at")),
        updated_at=_as_str(row.get("updated_at")),
    )


def parse_question(row: Dict[str, Any]) -> Question:
    options = row.get("options")
    return Question(
        id=_as_str(row.get("id")),
        framework_id=_as_str(row.get("framework_id")),
        question_text=_as_str(row.get("question_text")),
        question_type=_as_str(row.get("question_type")) or "text",
        section=_as_str(row.get("section")),
        order_index=_as_int(row.get("order_index")),
        is_required=_as_bool(row.get("is_required")),
        options=_as_str_list(options),
    )


def parse_framework(row: Dict[str, Any]) -> AssessmentFramework:
    questions = [
        parse_question(q) for q in row.get("questions", []) or [] if isinstance(q, dict)
    ]
    questions.sort(key=lambda q: q.order_index)
    return AssessmentFramework(
        id=_as_str(row.get("id")),
        name=_as_str(row.get("name")),
        description=_as_str(row.get("description")),
        framework_type=_as_str(row.get("framework_type")),
        question_count=_as_optional_int(row.get("question_count")),
        estimated_time=_as_str(row.get("estimated_time")),
        is_active=_as_bool(row.get("is_active"), default=True),
        questions=questions,
    )


def _parse_section_scores(value: Any) -> Dict[str, int]:
    return {str(k): _as_int(v) for k, v in _as_dict(value).items()}


def parse_assessment(row: Dict[str, Any]) -> VendorAssessment:
    vendor_obj = row.get("vendor")
    vendor = None
    if isinstance(vendor_obj, dict):
        vendor = VendorSummary(
            id=_as_str(vendor_obj.get("id")),
            name=_as_str(vendor_obj.get("name")),
            contact_email=_as_str(vendor_obj.get("contact_email")),
        )

    framework_obj = row.get("framework")
    framework = parse_framework(framework_obj) if isinstance(framework_obj, dict) else None

    return VendorAssessment(
        id=_as_str(row.get("id")),
        user_id=_as_str(row.get("user_id")),
        vendor_id=_as_str(row.get("vendor_id")),
        framework_id=_as_str(row.get("framework_id")),
        assessment_name=_as_str(row.get("assessment_name")),
        status=_as_str(row.get("status")) or STATUS_PENDING,
        due_date=_as_str(row.get("due_date")),
        sent_at=_as_str(row.get("sent_at")),
        completed_at=_as_str(row.get("completed_at")),
        overall_score=_as_optional_int(row.get("overall_score")),
        section_scores=_parse_section_scores(row.get("section_scores")),
        contact_email=_as_str(row.get("contact_email")),
        custom_message=_as_str(row.get("custom_message")),
        send_reminders=_as_bool(row.get("send_reminders")),
        allow_save_progress=_as_bool(row.get("allow_save_progress"), default=True),
        created_at=_as_str(row.get("created_at")),
        updated_at=_as_str(row.get("updated_at")),
        vendor=vendor,
        framework=framework,
    )


def parse_response(row: Dict[str, Any]) -> AssessmentResponse:
    question_obj = row.get("question")
    question = None
    if isinstance(question_obj, dict):
        question = QuestionSummary(
            id=_as_str(question_obj.get("id")),
            question_text=_as_str(question_obj.get("question_text")),
            question_type=_as_str(question_obj.get("question_type")),
            section=_as_str(question_obj.get("section")),
            is_required=_as_bool(question_obj.get("is_required")),
        )
    return AssessmentResponse(
        id=_as_str(row.get("id")),
        assessment_id=_as_str(row.get("assessment_id")),
        question_id=_as_str(row.get("question_id")),
        answer=_as_str(row.get("answer")),
        answer_data=row.get("answer_data"),
        evidence_urls=_as_str_list(row.get("evidence_urls")),
        submitted_at=_as_str(row.get("submitted_at")),
        created_at=_as_str(row.get("created_at")),
        question=question,
    )
