from __future__ import annotations

from dataclasses import dataclass, field
from typing import List

RISK_CATEGORIES = ("security", "financial", "operational", "compliance")


@dataclass
class RiskFactor:
    id: str
    name: str
    weight: float
    score: float = 0
    category: str = "security"
    description: str = ""
    evidence: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)


@dataclass
class RiskScoreResult:
    overall_score: int
    risk_level: str
    total_weight: float
    factors: List[RiskFactor] = field(default_factory=list)
