from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

from vendortal_cli.models.compliance import (
    ComplianceGap,
    ComplianceRecommendation,
    ComplianceResult,
    WorkflowConditions,
)
from vendortal_cli.scoring import round_half_up, severity_for_score

GAP_THRESHOLD = 70
RECOMMENDATION_THRESHOLD = 90
TARGET_IMPLEMENTATION_LEVEL = 90
GAP_DUE_DAYS = 30
RECOMMENDATION_DUE_DAYS = 60

_IMPLEMENTATION_STEPS = (
    "Review current implementation",
    "Identify specific gaps",
    "Develop improvement plan",
    "Implement changes",
    "Test and validate",
)


def _due_date(now: Optional[datetime], days: int) -> str:
    base = now or datetime.now(timezone.utc)
    return (base + timedelta(days=days)).strftime("%Y-%m-%dT%H:%M:%SZ")


def build_gap(control_id: str, score: float, now: Optional[datetime] = None) -> ComplianceGap:
    shortfall = 100 - score
    return ComplianceGap(
        control_id=control_id,
        gap_type="implementation",
        severity=severity_for_score(score),
        description=f"Gap identified in control implementation. Current score: {score:g}",
        current_state=f"Current implementation level: {score:g}%",
        target_state=f"Target implementation level: {TARGET_IMPLEMENTATION_LEVEL}%",
        remediation_plan="Implement additional controls and documentation",
        estimated_effort=round_half_up(shortfall * 0.5),
        estimated_cost=round_half_up(shortfall * 100),
        due_date=_due_date(now, GAP_DUE_DAYS),
    )


def build_recommendation(
    assessment_id: str,
    control_id: str,
    score: float,
    now: Optional[datetime] = None,
) -> ComplianceRecommendation:
    shortfall = 100 - score
    return ComplianceRecommendation(
        assessment_id=assessment_id,
        control_id=control_id,
        priority=severity_for_score(score),
        title=f"Improve control implementation for {control_id}",
        description=f"Current score of {score:g}% indicates room for improvement",
        implementation_steps=list(_IMPLEMENTATION_STEPS),
        estimated_effort=round_half_up(shortfall * 0.3),
        estimated_cost=round_half_up(shortfall * 50),
        business_impact="Improved compliance posture and reduced risk",
        risk_if_not_implemented="Continued compliance gaps and potential regulatory issues",
        due_date=_due_date(now, RECOMMENDATION_DUE_DAYS),
    )


def calculate_compliance(
    assessment_id: str,
    control_scores: Dict[str, float],
    now: Optional[datetime] = None,
) -> ComplianceResult:
    """Score a compliance assessment from per-control scores (0-100).

    Controls under ``GAP_THRESHOLD`` produce a gap, controls under
    ``RECOMMENDATION_THRESHOLD`` a recommendation, both in control order.
    """
    gaps: List[ComplianceGap] = []
    recommendations: List[ComplianceRecommendation] = []
    for control_id, score in control_scores.items():
        if score < GAP_THRESHOLD:
            gaps.append(build_gap(control_id, score, now))
        if score < RECOMMENDATION_THRESHOLD:
            recommendations.append(build_recommendation(assessment_id, control_id, score, now))

    overall = 0
    if control_scores:
        overall = round_half_up(sum(control_scores.values()) / len(control_scores))

    return ComplianceResult(
        overall_score=overall,
        compliance_percentage=overall,
        control_scores=dict(control_scores),
        gaps=gaps,
        recommendations=recommendations,
    )


def should_trigger_workflow(conditions: WorkflowConditions, gap: ComplianceGap) -> bool:
    if conditions.gap_severity and gap.severity not in conditions.gap_severity:
        return False
    if conditions.gap_types and gap.gap_type not in conditions.gap_types:
        return False
    return True
