"""NIST SP 800-161 Rev. 1 C-SCRM control mapping.

Maps the named risk dimensions of a vendor assessment to the supply chain
risk management controls they evidence, and turns per-dimension scores into
a compliance report.
"""
from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Tuple

from vendortal_cli.models.compliance import (
    CONTROL_DISCRETIONARY,
    CONTROL_MANDATORY,
    DimensionScore,
    NistComplianceReport,
    NistControl,
    NistGap,
    RiskDimensionMapping,
)

GAP_THRESHOLD = 70
GAP_PENALTY = 10
NO_GUIDANCE = "No specific guidance available."


def _control(
    control_id: str,
    name: str,
    category: str,
    description: str,
    control_type: str,
    references: Tuple[str, ...],
) -> NistControl:
    return NistControl(
        id=control_id,
        name=name,
        category=category,
        family=control_id.split("-")[0],
        description=description,
        control_type=control_type,
        references=references,
    )


NIST_CONTROLS: Dict[str, NistControl] = {
    control.id: control
    for control in (
        # ID.SC Supply Chain Risk Identification
        _control(
            "ID.SC-1", "Supply Chain Risk Management Strategy", "Identify",
            "Organizations develop and implement supply chain risk management strategies, "
            "including organization-wide risk management priorities and determination of "
            "supply chain dependencies and criticality.",
            CONTROL_MANDATORY, ("NIST CSF 1.1", "ISO/IEC 27001"),
        ),
        _control(
            "ID.SC-2", "Supply Chain Risk Assessment", "Identify",
            "Organizations identify and assess risks within the supply chain and assess "
            "supplier/vendor risk.",
            CONTROL_MANDATORY, ("NIST CSF 1.1", "C-SCRM"),
        ),
        _control(
            "ID.SC-3", "Supply Chain Risk Monitoring", "Identify",
            "Organizations perform ongoing monitoring and assessment of supply chain "
            "security posture.",
            CONTROL_DISCRETIONARY, ("NIST CSF 1.1", "C-SCRM"),
        ),
        _control(
            "ID.SC-4", "Supplier/Service Provider Characterization", "Identify",
            "Organizations develop and maintain characterization of suppliers and service "
            "providers to support supply chain risk management.",
            CONTROL_MANDATORY, ("NIST CSF 1.1", "C-SCRM"),
        ),
        # PR.IP Information Protection
        _control(
            "PR.IP-1", "Access Control Policies", "Protect",
            "Organizations establish and maintain access control policies and procedures "
            "for logical and physical access.",
            CONTROL_MANDATORY, ("NIST CSF 1.1", "NIST 800-53 AC-1"),
        ),
        _control(
            "PR.IP-6", "Data Sanitization and Disposal", "Protect",
            "Organizations implement policies and procedures for secure handling and "
            "disposal of data and information systems.",
            CONTROL_MANDATORY, ("NIST CSF 1.1", "NIST 800-88"),
        ),
        _control(
            "PR.IP-12", "Compliance Management", "Protect",
            "Organizations establish and maintain compliance with legal, regulatory, and "
            "contractual requirements.",
            CONTROL_MANDATORY, ("NIST CSF 1.1", "GDPR", "SOC 2"),
        ),
        # PR.DS Data Security
        _control(
            "PR.DS-1", "Data-at-Rest Protection", "Protect",
            "Organizations protect data at rest through encryption and appropriate access "
            "controls.",
            CONTROL_MANDATORY, ("NIST CSF 1.1", "NIST 800-171"),
        ),
        _control(
            "PR.DS-2", "Data-in-Transit Protection", "Protect",
            "Organizations protect data in transit through encryption and secure "
            "communications.",
            CONTROL_MANDATORY, ("NIST CSF 1.1", "TLS 1.3"),
        ),
        _control(
            "PR.DS-5", "Data Encrypted", "Protect",
            "Organizations ensure sensitive data is encrypted at rest and in transit.",
            CONTROL_MANDATORY, ("NIST CSF 1.1", "AES-256"),
        ),
        # DE.CM Detection and Monitoring
        _control(
            "DE.CM-1", "Network Monitoring", "Detect",
            "Organizations monitor network activities to detect potential security events.",
            CONTROL_MANDATORY, ("NIST CSF 1.1",),
        ),
        _control(
            "DE.CM-5", "External Service Provider Monitoring", "Detect",
            "Organizations monitor activities of external service providers.",
            CONTROL_MANDATORY, ("NIST CSF 1.1", "C-SCRM"),
        ),
        # RS.MI Incident Response
        _control(
            "RS.MI-1", "Incident Response Plan", "Respond",
            "Organizations implement incident response plans and procedures.",
            CONTROL_MANDATORY, ("NIST CSF 1.1", "NIST 800-61"),
        ),
    )
}


def _controls(*control_ids: str) -> Tuple[NistControl, ...]:
    return tuple(NIST_CONTROLS[control_id] for control_id in control_ids)


RISK_DIMENSION_MAPPINGS: List[RiskDimensionMapping] = [
    RiskDimensionMapping(
        risk_dimension="Data Sensitivity",
        nist_controls=_controls("ID.SC-2", "PR.DS-1", "PR.DS-2"),
        implementation_guidance=(
            "Assess the sensitivity of data being processed by vendors, including PII, "
            "financial data, and health information. Implement encryption controls for data "
            "at rest and in transit."
        ),
        examples=(
            "Conduct data classification assessment",
            "Identify sensitive data types",
            "Document data processing activities",
        ),
    ),
    RiskDimensionMapping(
        risk_dimension="Access Control",
        nist_controls=_controls("PR.IP-1", "DE.CM-1"),
        implementation_guidance=(
            "Ensure vendors implement appropriate access control policies including logical "
            "and physical access management, user authentication, and privilege management."
        ),
        examples=(
            "Review vendor access control policies",
            "Assess authentication mechanisms",
            "Verify role-based access controls",
        ),
    ),
    RiskDimensionMapping(
        risk_dimension="Data Residency",
        nist_controls=_controls("ID.SC-4", "PR.DS-1"),
        implementation_guidance=(
            "Characterize vendor data residency and cross-border data flow. Ensure compliance "
            "with data protection regulations in relevant jurisdictions."
        ),
        examples=(
            "Map data storage locations",
            "Assess cross-border data transfers",
            "Verify compliance with local regulations",
        ),
    ),
    RiskDimensionMapping(
        risk_dimension="Retention Control",
        nist_controls=_controls("PR.IP-6", "RS.MI-1"),
        implementation_guidance=(
            "Ensure vendors implement data retention and deletion policies aligned with "
            "regulatory requirements. Verify data sanitization procedures."
        ),
        examples=(
            "Review data retention policies",
            "Assess data deletion procedures",
            "Verify secure deletion capabilities",
        ),
    ),
    RiskDimensionMapping(
        risk_dimension="Encryption Standards",
        nist_controls=_controls("PR.DS-1", "PR.DS-2", "PR.DS-5"),
        implementation_guidance=(
            "Verify that vendors implement strong encryption standards for data at rest and "
            "in transit. Assess key management practices."
        ),
        examples=(
            "Review encryption algorithms and key lengths",
            "Assess TLS/SSL configurations",
            "Verify key management practices",
        ),
    ),
    RiskDimensionMapping(
        risk_dimension="Compliance Framework",
        nist_controls=_controls("PR.IP-12", "ID.SC-1"),
        implementation_guidance=(
            "Assess vendor compliance with relevant frameworks including SOC 2, ISO 27001, "
            "GDPR, and industry-specific regulations. Review audit reports and certifications."
        ),
        examples=(
            "Request compliance certifications",
            "Review audit reports",
            "Assess regulatory compliance status",
        ),
    ),
]


def find_mapping(dimension: str) -> Optional[RiskDimensionMapping]:
    wanted = dimension.lower()
    for mapping in RISK_DIMENSION_MAPPINGS:
        if mapping.risk_dimension.lower() == wanted:
            return mapping
    return None


def get_controls_for_dimension(dimension: str) -> List[NistControl]:
    """Controls mapped to *dimension*; unknown dimensions map to no controls."""
    mapping = find_mapping(dimension)
    return list(mapping.nist_controls) if mapping else []


def get_implementation_guidance(dimension: str) -> str:
    mapping = find_mapping(dimension)
    return mapping.implementation_guidance if mapping else NO_GUIDANCE


def get_controls_by_family(family: str) -> List[NistControl]:
    return [control for control in NIST_CONTROLS.values() if control.family == family]


def generate_compliance_report(dimension_scores: Iterable[DimensionScore]) -> NistComplianceReport:
    """Build a NIST compliance report from per-dimension scores.

    Every control mapped to a scored dimension counts as covered. A mandatory
    control whose dimension scores below ``GAP_THRESHOLD`` becomes a gap, and
    each gap costs ``GAP_PENALTY`` points off a perfect score.
    """
    covered: Dict[str, None] = {}
    gaps: List[NistGap] = []

    for item in dimension_scores:
        for control in get_controls_for_dimension(item.dimension):
            covered.setdefault(control.id, None)
            if item.score < GAP_THRESHOLD and control.control_type == CONTROL_MANDATORY:
                reason = f"{item.dimension} score is below threshold ({_format_score(item.score)}/100)."
                if item.notes:
                    reason = f"{reason} {item.notes}"
                gaps.append(NistGap(control=control.id, reason=reason))

    return NistComplianceReport(
        compliance_score=max(0, 100 - GAP_PENALTY * len(gaps)),
        covered_controls=list(covered),
        gaps=gaps,
    )


def validate_control_implementation(
    control_id: str,
    evidence: Iterable[str],
) -> Tuple[bool, List[str]]:
    """Check *evidence* against the three evidence kinds every control needs.

    A requirement is met when any evidence item mentions the requirement's
    first word.
    """
    control = NIST_CONTROLS.get(control_id)
    if control is None:
        return False, ["Unknown control"]

    required = [
        f"{control.name} policy documentation",
        "Implementation evidence",
        "Ongoing monitoring or assessment records",
    ]
    lowered = [item.lower() for item in evidence]
    missing = [
        requirement for requirement in required
        if not any(requirement.lower().split(" ")[0] in item for item in lowered)
    ]
    return not missing, missing


def _format_score(score: float) -> str:
    return str(int(score)) if float(score).is_integer() else str(score)
