"""
Rule-based risk identification from a project profile.

Shared by the document profiler and the what-if simulator, which uses it to
build the default risk set for a new session.
"""

from typing import List, Sequence

from .models import ImpactLevel, ProjectFeatures, RiskFactor, RiskType

MAX_FEASIBILITY_RECOMMENDATIONS = 5
HIGH_COST_THRESHOLD = 50_000_000  # 5 crore


def identify_risk_factors(features: ProjectFeatures) -> List[RiskFactor]:
    """Risk factors implied by feature thresholds, in a fixed order"""
    factors: List[RiskFactor] = []

    if features.estimated_duration_months > 24:
        factors.append(RiskFactor(
            type=RiskType.TIMELINE,
            description="Extended project duration increases risk of delays",
            impact=ImpactLevel.HIGH if features.estimated_duration_months > 36 else ImpactLevel.MEDIUM,
            probability=0.6,
            mitigation="Break project into phases, implement milestone-based monitoring",
        ))

    if features.weather_risk_months > 0:
        factors.append(RiskFactor(
            type=RiskType.ENVIRONMENTAL,
            description="Monsoon season may cause construction delays",
            impact=ImpactLevel.MEDIUM,
            probability=0.7,
            mitigation="Plan construction activities around monsoon season, prepare weather contingencies",
        ))

    if features.resource_complexity_score > 2.0:
        factors.append(RiskFactor(
            type=RiskType.RESOURCE,
            description="Complex resource requirements may cause procurement delays",
            impact=ImpactLevel.MEDIUM,
            probability=0.5,
            mitigation="Early procurement planning, identify alternative suppliers",
        ))

    if features.technical_complexity_score > 2.0:
        factors.append(RiskFactor(
            type=RiskType.COMPLEXITY,
            description="High technical complexity increases implementation risk",
            impact=ImpactLevel.HIGH,
            probability=0.6,
            mitigation="Engage technical experts, conduct detailed feasibility studies",
        ))

    if features.regulatory_complexity_score > 2.0:
        factors.append(RiskFactor(
            type=RiskType.COMPLEXITY,
            description="Multiple regulatory approvals required",
            impact=ImpactLevel.HIGH,
            probability=0.8,
            mitigation="Start approval processes early, engage regulatory consultants",
        ))

    somewhat_complex = (
        features.technical_complexity_score > 1.5
        or features.environmental_complexity_score > 1.5
        or features.regulatory_complexity_score > 1.5
    )
    if somewhat_complex and not any(f.type == RiskType.COMPLEXITY for f in factors):
        factors.append(RiskFactor(
            type=RiskType.COMPLEXITY,
            description="Project complexity requires careful management and monitoring",
            impact=ImpactLevel.MEDIUM,
            probability=0.5,
            mitigation="Implement robust project management practices and regular monitoring",
        ))

    if features.accessibility_score < 2.0:
        factors.append(RiskFactor(
            type=RiskType.ENVIRONMENTAL,
            description="Poor site accessibility may increase costs and delays",
            impact=ImpactLevel.MEDIUM,
            probability=0.7,
            mitigation="Improve access roads, plan for higher transportation costs",
        ))

    if features.total_cost > HIGH_COST_THRESHOLD:
        factors.append(RiskFactor(
            type=RiskType.FINANCIAL,
            description="High project cost increases funding and cash flow risks",
            impact=ImpactLevel.MEDIUM,
            probability=0.4,
            mitigation="Secure funding commitments, implement phased funding approach",
        ))

    return factors


def feasibility_recommendations(
    risk_factors: Sequence[RiskFactor],
    features: ProjectFeatures,
) -> List[str]:
    """Mitigations of the given risks followed by profile-level advice, de-duplicated"""
    recommendations = [f.mitigation for f in risk_factors if f.mitigation]

    if features.estimated_duration_months > 18:
        recommendations.append("Consider breaking the project into smaller, manageable phases")
    if features.resource_complexity_score > 1.5:
        recommendations.append("Conduct detailed resource availability assessment before project start")
    if features.accessibility_score < 2.5:
        recommendations.append("Invest in improving site accessibility to reduce logistics costs")
    if features.region_success_rate < 0.7:
        recommendations.append("Study successful similar projects in the region for best practices")

    return list(dict.fromkeys(recommendations))[:MAX_FEASIBILITY_RECOMMENDATIONS]
