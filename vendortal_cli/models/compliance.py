from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Tuple

CONTROL_MANDATORY = "mandatory"
CONTROL_DISCRETIONARY = "discretionary"


@dataclass(frozen=True)
class NistControl:
    id: str
    name: str
    category: str
    family: str
    description: str
    control_type: str
    references: Tuple[str, ...] = ()


@dataclass(frozen=True)
class RiskDimensionMapping:
    risk_dimension: str
    nist_controls: Tuple[NistControl, ...]
    implementation_guidance: str
    examples: Tuple[str, ...] = ()


@dataclass
class DimensionScore:
    dimension: str
    score: float
    notes: str = ""


@dataclass
class NistGap:
    control: str
    reason: str


@dataclass
class NistComplianceReport:
    compliance_score: int
    covered_controls: List[str] = field(default_factory=list)
    gaps: List[NistGap] = field(default_factory=list)


@dataclass
class ComplianceGap:
    control_id: str
    gap_type: str
    severity: str
    description: str
    current_state: str
    target_state: str
    remediation_plan: str
    estimated_effort: int
    estimated_cost: int
    due_date: str
    status: str = "open"
    assigned_to: str = ""


@dataclass
class ComplianceRecommendation:
    assessment_id: str
    control_id: str
    priority: str
    title: str
    description: str
    implementation_steps: List[str]
    estimated_effort: int
    estimated_cost: int
    business_impact: str
    risk_if_not_implemented: str
    due_date: str
    status: str = "pending"


@dataclass
class ComplianceResult:
    overall_score: int
    compliance_percentage: int
    control_scores: Dict[str, float] = field(default_factory=dict)
    gaps: List[ComplianceGap] = field(default_factory=list)
    recommendations: List[ComplianceRecommendation] = field(default_factory=list)


@dataclass
class WorkflowConditions:
    gap_severity: List[str] = field(default_factory=list)
    gap_types: List[str] = field(default_factory=list)
