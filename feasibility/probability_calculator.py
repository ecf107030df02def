"""
DPR Assessor: Completion Probability Calculator

Weighted five-factor completion probability, category risk analysis and a
recommendation engine over a ProjectFeatures profile and its risk factors.

All three operations are pure functions of their inputs.
"""

import logging
from typing import Dict, List, Optional, Sequence

import numpy as np

from core.config import ProbabilityConfig, get_config

from .models import (
    CompletionRecommendation,
    ImpactLevel,
    PRIORITY_ORDER,
    Priority,
    ProbabilityBreakdown,
    ProbabilityCalculationResult,
    ProjectFeatures,
    RecommendationCategory,
    RecommendationResult,
    RiskAnalysisResult,
    RiskBreakdown,
    RiskFactor,
    RiskLevel,
    RiskType,
    clamp,
)

logger = logging.getLogger(__name__)

# Sub-scores above this value improve the probability, below it they hurt
NEUTRAL_SCORE = 0.7

RISK_IMPACT_WEIGHTS = {
    ImpactLevel.HIGH: 0.15,
    ImpactLevel.MEDIUM: 0.08,
    ImpactLevel.LOW: 0.03,
}

# Contribution of a matching risk factor to its category risk, per impact tier
CATEGORY_FACTOR_WEIGHTS = {
    RiskType.TIMELINE: (0.3, 0.2, 0.1),
    RiskType.RESOURCE: (0.3, 0.2, 0.1),
    RiskType.COMPLEXITY: (0.35, 0.25, 0.15),
    RiskType.ENVIRONMENTAL: (0.2, 0.12, 0.06),
    RiskType.FINANCIAL: (0.4, 0.25, 0.15),
}

CATEGORY_RISK_WEIGHTS = np.array([0.25, 0.20, 0.25, 0.15, 0.15])

RISK_LEVEL_THRESHOLDS = (
    (0.85, RiskLevel.CRITICAL),
    (0.70, RiskLevel.HIGH),
    (0.50, RiskLevel.MEDIUM),
)

POTENTIAL_IMPROVEMENT_WINDOW = 5
PRIORITIZED_ACTION_COUNT = 3


class ProbabilityCalculator:
    """
    Completion probability for a project profile.

    probability = clamp(sum(weight_i * subscore_i) - risk_adjustment, 0.05, 0.95)

    where each sub-score lies in [0.1, 1.0] and the risk adjustment sums
    impact weight times likelihood over the risk factors, capped at 0.4.
    """

    def __init__(self, config: Optional[ProbabilityConfig] = None):
        self.config = config or get_config().probability

    # ------------------------------------------------------------------
    # Completion probability
    # ------------------------------------------------------------------

    def calculate_completion_probability(
        self,
        features: ProjectFeatures,
        risk_factors: Sequence[RiskFactor] = (),
        dpr_id: str = "",
    ) -> ProbabilityCalculationResult:
        scores = self.sub_scores(features)
        weights = np.array(self.config.weights)
        values = np.array(list(scores.values()))

        base_score = float(np.dot(values, weights))
        risk_adjustment = self.risk_adjustment(risk_factors)
        final_score = clamp(
            base_score - risk_adjustment,
            self.config.min_probability,
            self.config.max_probability,
        )
        probability = int(round(final_score * 100))

        adjustments = [int(round((v - NEUTRAL_SCORE) * w * 100)) for v, w in zip(values, weights)]
        breakdown = ProbabilityBreakdown(
            base_score=int(round(base_score * 100)),
            timeline_adjustment=adjustments[0],
            resource_adjustment=adjustments[1],
            complexity_adjustment=adjustments[2],
            location_adjustment=adjustments[3],
            historical_adjustment=adjustments[4],
            risk_adjustment=int(round(risk_adjustment * 100)),
            final_score=probability,
        )

        logger.debug(
            f"Completion probability for '{dpr_id}': {probability}% "
            f"(base {base_score:.3f}, risk -{risk_adjustment:.3f})"
        )
        return ProbabilityCalculationResult(
            dpr_id=dpr_id,
            completion_probability=probability,
            confidence_level=self.confidence_level(features),
            breakdown=breakdown,
            sub_scores=scores,
        )

    def sub_scores(self, features: ProjectFeatures) -> Dict[str, float]:
        return {
            "timeline": self.timeline_score(features),
            "resource": self.resource_score(features),
            "complexity": self.complexity_score(features),
            "location": self.location_score(features),
            "historical": self.historical_score(features),
        }

    @staticmethod
    def timeline_score(features: ProjectFeatures) -> float:
        score = 0.8
        duration = features.estimated_duration_months
        if duration <= 12:
            score += 0.1
        elif duration <= 24:
            score += 0.05
        elif duration > 36:
            score -= 0.15
        score -= (features.seasonality_factor - 1) * 0.1
        score -= (features.weather_risk_months / 12) * 0.1
        return clamp(score, 0.1, 1.0)

    @staticmethod
    def resource_score(features: ProjectFeatures) -> float:
        score = 0.75
        score -= (features.resource_complexity_score - 1) * 0.1
        score -= (features.labor_intensity_score - 1) * 0.08
        # 50 lakh and 1 crore per month
        if features.cost_per_month > 5_000_000:
            score -= 0.1
        if features.cost_per_month > 10_000_000:
            score -= 0.1
        return clamp(score, 0.1, 1.0)

    @staticmethod
    def complexity_score(features: ProjectFeatures) -> float:
        score = 0.8
        score -= (features.technical_complexity_score - 1) * 0.12
        score -= (features.environmental_complexity_score - 1) * 0.08
        score -= (features.regulatory_complexity_score - 1) * 0.15
        return clamp(score, 0.1, 1.0)

    @staticmethod
    def location_score(features: ProjectFeatures) -> float:
        score = 0.7
        score += (features.accessibility_score - 2) * 0.1
        score += (features.infrastructure_score - 2) * 0.12
        score -= (features.remoteness_score - 1) * 0.08
        return clamp(score, 0.1, 1.0)

    @staticmethod
    def historical_score(features: ProjectFeatures) -> float:
        score = (
            NEUTRAL_SCORE * 0.3
            + features.region_success_rate * 0.4
            + features.category_success_rate * 0.3
        )
        if features.similar_projects_count > 20:
            score += 0.05
        elif features.similar_projects_count < 5:
            score -= 0.1
        return clamp(score, 0.1, 1.0)

    def risk_adjustment(self, risk_factors: Sequence[RiskFactor]) -> float:
        total = sum(RISK_IMPACT_WEIGHTS[f.impact] * f.probability for f in risk_factors)
        return min(total, self.config.max_risk_adjustment)

    @staticmethod
    def confidence_level(features: ProjectFeatures) -> float:
        confidence = 0.8

        if features.similar_projects_count > 20:
            confidence += 0.1
        elif features.similar_projects_count < 5:
            confidence -= 0.2

        if features.region_success_rate > 0.8:
            confidence += 0.05
        elif features.region_success_rate < 0.6:
            confidence -= 0.1

        if features.estimated_duration_months > 48:
            confidence -= 0.1
        if features.technical_complexity_score > 2.5:
            confidence -= 0.1
        if features.accessibility_score < 1.5:
            confidence -= 0.1

        return clamp(confidence, 0.3, 0.95)

    # ------------------------------------------------------------------
    # Risk analysis
    # ------------------------------------------------------------------

    def analyze_risks(
        self,
        features: ProjectFeatures,
        risk_factors: Sequence[RiskFactor] = (),
        dpr_id: str = "",
    ) -> RiskAnalysisResult:
        categories = np.array([
            self.timeline_risk(features, risk_factors),
            self.resource_risk(features, risk_factors),
            self.complexity_risk(features, risk_factors),
            self.environmental_risk(features, risk_factors),
            self.financial_risk(features, risk_factors),
        ])
        overall = float(np.dot(categories, CATEGORY_RISK_WEIGHTS))
        percent = [int(round(v * 100)) for v in categories]

        return RiskAnalysisResult(
            dpr_id=dpr_id,
            risk_level=self.risk_level(overall),
            risk_score=int(round(overall * 100)),
            category_risks=RiskBreakdown(
                timeline_risk=percent[0],
                resource_risk=percent[1],
                complexity_risk=percent[2],
                environmental_risk=percent[3],
                financial_risk=percent[4],
                overall_risk=int(round(overall * 100)),
            ),
            risk_factors=list(risk_factors),
        )

    @staticmethod
    def risk_level(overall_risk: float) -> RiskLevel:
        for threshold, level in RISK_LEVEL_THRESHOLDS:
            if overall_risk >= threshold:
                return level
        return RiskLevel.LOW

    @staticmethod
    def _factor_contribution(risk_type: RiskType, risk_factors: Sequence[RiskFactor]) -> float:
        high, medium, low = CATEGORY_FACTOR_WEIGHTS[risk_type]
        per_impact = {ImpactLevel.HIGH: high, ImpactLevel.MEDIUM: medium, ImpactLevel.LOW: low}
        return sum(f.probability * per_impact[f.impact] for f in risk_factors if f.type == risk_type)

    def timeline_risk(self, features: ProjectFeatures, risk_factors: Sequence[RiskFactor]) -> float:
        risk = 0.2
        if features.estimated_duration_months > 24:
            risk += 0.2
        if features.estimated_duration_months > 36:
            risk += 0.2
        if features.weather_risk_months > 0:
            risk += 0.15
        risk += self._factor_contribution(RiskType.TIMELINE, risk_factors)
        return clamp(risk, 0.0, 1.0)

    def resource_risk(self, features: ProjectFeatures, risk_factors: Sequence[RiskFactor]) -> float:
        risk = 0.15
        if features.resource_complexity_score > 2.0:
            risk += 0.2
        if features.labor_intensity_score > 2.0:
            risk += 0.15
        risk += self._factor_contribution(RiskType.RESOURCE, risk_factors)
        return clamp(risk, 0.0, 1.0)

    def complexity_risk(self, features: ProjectFeatures, risk_factors: Sequence[RiskFactor]) -> float:
        risk = 0.1
        risk += (features.technical_complexity_score - 1) * 0.15
        risk += (features.environmental_complexity_score - 1) * 0.1
        risk += (features.regulatory_complexity_score - 1) * 0.2
        risk += self._factor_contribution(RiskType.COMPLEXITY, risk_factors)
        return clamp(risk, 0.0, 1.0)

    def environmental_risk(self, features: ProjectFeatures, risk_factors: Sequence[RiskFactor]) -> float:
        risk = 0.1
        if features.remoteness_score > 2.0:
            risk += 0.15
        if features.accessibility_score < 2.0:
            risk += 0.1
        if features.weather_risk_months > 0:
            risk += 0.1
        risk += self._factor_contribution(RiskType.ENVIRONMENTAL, risk_factors)
        return clamp(risk, 0.0, 1.0)

    def financial_risk(self, features: ProjectFeatures, risk_factors: Sequence[RiskFactor]) -> float:
        risk = 0.1
        # 10 crore, 50 crore, 1 crore per month
        if features.total_cost > 100_000_000:
            risk += 0.2
        if features.total_cost > 500_000_000:
            risk += 0.2
        if features.cost_per_month > 10_000_000:
            risk += 0.15
        risk += self._factor_contribution(RiskType.FINANCIAL, risk_factors)
        return clamp(risk, 0.0, 1.0)

    # ------------------------------------------------------------------
    # Recommendations
    # ------------------------------------------------------------------

    def generate_recommendations(
        self,
        features: ProjectFeatures,
        risk_factors: Sequence[RiskFactor] = (),
        current_probability: Optional[int] = None,
        dpr_id: str = "",
    ) -> RecommendationResult:
        if current_probability is None:
            current_probability = self.calculate_completion_probability(
                features, risk_factors, dpr_id
            ).completion_probability

        recommendations = self._candidate_recommendations(features, risk_factors)
        # Stable sort keeps generation order among equal priority and impact
        recommendations.sort(key=lambda r: (-PRIORITY_ORDER[r.priority], -r.expected_impact))

        potential = sum(r.expected_impact for r in recommendations[:POTENTIAL_IMPROVEMENT_WINDOW])
        return RecommendationResult(
            dpr_id=dpr_id,
            current_probability=current_probability,
            potential_improvement=min(potential, self.config.max_potential_improvement),
            recommendations=recommendations[:self.config.max_recommendations],
            prioritized_actions=[r.recommendation for r in recommendations[:PRIORITIZED_ACTION_COUNT]],
        )

    @staticmethod
    def _candidate_recommendations(
        features: ProjectFeatures,
        risk_factors: Sequence[RiskFactor],
    ) -> List[CompletionRecommendation]:
        recs: List[CompletionRecommendation] = []

        def add(category, priority, text, impact, effort, timeframe):
            recs.append(CompletionRecommendation(category, priority, text, impact, effort, timeframe))

        if features.estimated_duration_months > 24:
            add(RecommendationCategory.TIMELINE, Priority.HIGH,
                "Break project into smaller phases to reduce timeline risk and enable early wins",
                15, Priority.MEDIUM, "2-4 weeks planning")

        if features.weather_risk_months > 0:
            add(RecommendationCategory.TIMELINE, Priority.MEDIUM,
                "Adjust project schedule to minimize weather-related delays during monsoon season",
                8, Priority.LOW, "1-2 weeks planning")

        if features.resource_complexity_score > 2.0:
            add(RecommendationCategory.RESOURCE, Priority.HIGH,
                "Secure specialized resources early and establish backup suppliers",
                12, Priority.HIGH, "4-8 weeks procurement")

        if features.total_cost > 50_000_000:
            add(RecommendationCategory.RESOURCE, Priority.MEDIUM,
                "Implement phased funding approach to reduce financial risk",
                10, Priority.MEDIUM, "2-3 weeks financial planning")

        if features.technical_complexity_score > 2.0:
            add(RecommendationCategory.COMPLEXITY, Priority.HIGH,
                "Engage technical experts and conduct detailed feasibility studies before implementation",
                18, Priority.HIGH, "6-12 weeks study period")

        if features.regulatory_complexity_score > 2.0:
            add(RecommendationCategory.COMPLEXITY, Priority.HIGH,
                "Start regulatory approval processes immediately and engage compliance consultants",
                20, Priority.MEDIUM, "8-16 weeks approval process")

        if features.accessibility_score < 2.0:
            add(RecommendationCategory.GENERAL, Priority.MEDIUM,
                "Improve site accessibility infrastructure before main construction begins",
                7, Priority.HIGH, "4-8 weeks infrastructure work")

        high_risks = [f for f in risk_factors if f.impact == ImpactLevel.HIGH]
        if len(high_risks) > 2:
            add(RecommendationCategory.RISK_MITIGATION, Priority.HIGH,
                "Implement comprehensive risk monitoring and early warning systems",
                15, Priority.MEDIUM, "2-4 weeks setup")

        if features.region_success_rate < 0.7:
            add(RecommendationCategory.GENERAL, Priority.MEDIUM,
                "Study successful similar projects in the region and adopt proven practices",
                8, Priority.LOW, "1-2 weeks research")

        return recs
