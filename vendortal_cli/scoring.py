from __future__ import annotations

import math
from dataclasses import replace
from typing import Dict, List, Optional, Sequence, Tuple

from vendortal_cli.exceptions import ValidationError
from vendortal_cli.models.assessments import DEFAULT_SECTION, AssessmentResponse, Question
from vendortal_cli.models.risks import RiskFactor, RiskScoreResult
from vendortal_cli.models.vendors import Vendor

LEVEL_LOW = "Low"
LEVEL_MEDIUM = "Medium"
LEVEL_HIGH = "High"
LEVEL_CRITICAL = "Critical"

# Inclusive lower bounds, checked top down.
_LEVEL_CUT_POINTS: Tuple[Tuple[int, str], ...] = (
    (80, LEVEL_LOW),
    (60, LEVEL_MEDIUM),
    (40, LEVEL_HIGH),
)

_WEIGHT_TOLERANCE = 1e-6

_COMPLIANCE_STATUS_SCORES: Dict[str, int] = {
    "compliant": 90,
    "partial": 60,
}


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def weighted_score(factors: Sequence[RiskFactor]) -> int:
    """Weighted average of factor scores, rounded to the nearest integer.

    Divides by the actual weight total, so unnormalised weights still give a
    score within the range of the inputs. No factors, or a zero weight total,
    score 0.
    """
    total_weight = sum(f.weight for f in factors)
    if total_weight <= 0:
        return 0
    return round_half_up(sum(f.weight * f.score for f in factors) / total_weight)


def risk_level(score: float) -> str:
    for lower_bound, level in _LEVEL_CUT_POINTS:
        if score >= lower_bound:
            return level
    return LEVEL_CRITICAL


def severity_for_score(score: float) -> str:
    if score < 30:
        return "critical"
    if score < 50:
        return "high"
    if score < 70:
        return "medium"
    return "low"


def validate_factors(factors: Sequence[RiskFactor]) -> None:
    if not factors:
        return
    for factor in factors:
        if not 0 <= factor.weight <= 1:
            raise ValidationError(
                f"Risk factor '{factor.name}' has weight {factor.weight}; weights must be between 0 and 1."
            )
        if not 0 <= factor.score <= 100:
            raise ValidationError(
                f"Risk factor '{factor.name}' has score {factor.score}; scores must be between 0 and 100."
            )
    total = sum(f.weight for f in factors)
    if abs(total - 1) > _WEIGHT_TOLERANCE:
        raise ValidationError(
            f"Risk factor weights must sum to 1 (got {round(total, 6)})."
        )


def assess_factors(factors: Sequence[RiskFactor]) -> RiskScoreResult:
    validate_factors(factors)
    score = weighted_score(factors)
    return RiskScoreResult(
        overall_score=score,
        risk_level=risk_level(score),
        total_weight=sum(f.weight for f in factors),
        factors=list(factors),
    )


def default_risk_factors() -> List[RiskFactor]:
    return [
        RiskFactor(
            id="security_posture",
            name="Security Posture",
            category="security",
            weight=0.25,
            description="Overall security maturity and controls",
        ),
        RiskFactor(
            id="financial_stability",
            name="Financial Stability",
            category="financial",
            weight=0.20,
            description="Financial health and stability indicators",
        ),
        RiskFactor(
            id="operational_reliability",
            name="Operational Reliability",
            category="operational",
            weight=0.20,
            description="Service delivery and operational excellence",
        ),
        RiskFactor(
            id="compliance_status",
            name="Compliance Status",
            category="compliance",
            weight=0.15,
            description="Regulatory compliance and certifications",
        ),
        RiskFactor(
            id="data_protection",
            name="Data Protection",
            category="security",
            weight=0.10,
            description="Data handling and privacy controls",
        ),
        RiskFactor(
            id="incident_response",
            name="Incident Response",
            category="operational",
            weight=0.10,
            description="Incident response capabilities and procedures",
        ),
    ]


# factor id -> (default score, evidence, recommendations)
_PREFILL: Dict[str, Tuple[int, Tuple[str, ...], Tuple[str, ...]]] = {
    "security_posture": (
        50,
        ("Security assessment completed", "Vulnerability scan results"),
        ("Implement additional security controls", "Regular security training"),
    ),
    "compliance_status": (
        30,
        ("Compliance audit results", "Certification status"),
        ("Maintain compliance certifications", "Regular compliance reviews"),
    ),
    "financial_stability": (
        75,
        ("Financial statements", "Credit rating"),
        ("Monitor financial health", "Regular financial reviews"),
    ),
    "operational_reliability": (
        70,
        ("Service level agreements", "Performance metrics"),
        ("Improve service delivery", "Enhanced monitoring"),
    ),
    "data_protection": (
        65,
        ("Data protection policies", "Privacy controls"),
        ("Strengthen data protection", "Privacy impact assessments"),
    ),
    "incident_response": (
        60,
        ("Incident response plan", "Response procedures"),
        ("Test incident response", "Improve response times"),
    ),
}


def prefill_risk_factors(factors: Sequence[RiskFactor], vendor: Vendor) -> List[RiskFactor]:
    """Seed factor scores from what is already known about *vendor*.

    Factors without a known id keep their current values.
    """
    seeded: List[RiskFactor] = []
    for factor in factors:
        preset = _PREFILL.get(factor.id)
        if preset is None:
            seeded.append(factor)
            continue
        score, evidence, recommendations = preset
        if factor.id == "security_posture" and vendor.risk_score:
            score = vendor.risk_score
        elif factor.id == "compliance_status":
            score = _COMPLIANCE_STATUS_SCORES.get(vendor.compliance_status, score)
        seeded.append(replace(
            factor,
            score=score,
            evidence=list(evidence),
            recommendations=list(recommendations),
        ))
    return seeded


def is_answered(response: Optional[AssessmentResponse]) -> bool:
    if response is None:
        return False
    return bool(response.answer.strip() or response.evidence_urls)


def answer_coverage(
    questions: Sequence[Question],
    responses: Sequence[AssessmentResponse],
) -> Tuple[int, Dict[str, int]]:
    """Percentage of questions answered, overall and per section.

    Questions without a section count under ``General``. No questions
    scores 0.
    """
    by_question = {r.question_id: r for r in responses}
    totals: Dict[str, List[int]] = {}
    answered_count = 0
    for question in questions:
        answered = is_answered(by_question.get(question.id))
        answered_count += answered
        counts = totals.setdefault(question.section or DEFAULT_SECTION, [0, 0])
        counts[0] += answered
        counts[1] += 1

    if not questions:
        return 0, {}
    overall = round_half_up(answered_count / len(questions) * 100)
    sections = {
        section: round_half_up(done / total * 100)
        for section, (done, total) in totals.items()
    }
    return overall, sections
