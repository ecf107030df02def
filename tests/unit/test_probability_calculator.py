"""
Unit tests for completion probability, risk analysis and recommendations

Expected values are worked by hand from the baseline Northeast road profile:
sub-scores timeline 0.797, resource 0.622, complexity 0.46, location 0.70,
historical 0.723, giving a weighted base of 0.652.
"""

import pytest
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))

from core.config import ProbabilityConfig
from feasibility.probability_calculator import ProbabilityCalculator
from feasibility.risk_factors import identify_risk_factors, feasibility_recommendations
from feasibility.models import (
    ImpactLevel,
    Priority,
    ProjectFeatures,
    RecommendationCategory,
    RiskFactor,
    RiskLevel,
    RiskType,
)


def _worst_features() -> ProjectFeatures:
    return ProjectFeatures(
        estimated_duration_months=60,
        seasonality_factor=2.0,
        weather_risk_months=12,
        total_cost=900_000_000,
        cost_per_month=20_000_000,
        resource_complexity_score=3.0,
        labor_intensity_score=2.5,
        technical_complexity_score=3.0,
        environmental_complexity_score=2.5,
        regulatory_complexity_score=3.0,
        accessibility_score=1.0,
        infrastructure_score=1.0,
        remoteness_score=3.0,
        similar_projects_count=0,
        region_success_rate=0.0,
        category_success_rate=0.0,
    )


@pytest.mark.unit
class TestSubScores:

    def setup_method(self):
        self.calculator = ProbabilityCalculator()

    def test_baseline_sub_scores(self, baseline_features):
        scores = self.calculator.sub_scores(baseline_features)

        assert scores["timeline"] == pytest.approx(0.8 + 0.05 - 0.02 - 0.1 / 3)
        assert scores["resource"] == pytest.approx(0.622)
        assert scores["complexity"] == pytest.approx(0.46)
        assert scores["location"] == pytest.approx(0.70)
        assert scores["historical"] == pytest.approx(0.723)

    def test_sub_scores_stay_in_range(self):
        scores = self.calculator.sub_scores(_worst_features())
        for value in scores.values():
            assert 0.1 <= value <= 1.0

    def test_expensive_months_reduce_resource_score(self, baseline_features):
        costly = baseline_features.model_copy(update={"cost_per_month": 12_000_000})
        assert self.calculator.resource_score(costly) == pytest.approx(0.622 - 0.2)


@pytest.mark.unit
class TestCompletionProbability:

    def setup_method(self):
        self.calculator = ProbabilityCalculator()

    def test_baseline_without_risks(self, baseline_features):
        result = self.calculator.calculate_completion_probability(baseline_features, [], "dpr-1")

        assert result.dpr_id == "dpr-1"
        assert result.completion_probability == 65
        assert result.breakdown.base_score == 65
        assert result.breakdown.risk_adjustment == 0
        assert result.breakdown.final_score == result.completion_probability
        assert result.confidence_level == pytest.approx(0.8)

    def test_baseline_with_identified_risks(self, baseline_features):
        factors = identify_risk_factors(baseline_features)
        result = self.calculator.calculate_completion_probability(baseline_features, factors)

        # 0.08*0.7 (monsoon) + 0.15*0.8 (regulatory) + 0.08*0.4 (cost)
        assert result.breakdown.risk_adjustment == 21
        assert result.completion_probability == 44

    def test_adjustments_are_relative_to_neutral(self, baseline_features):
        breakdown = self.calculator.calculate_completion_probability(baseline_features).breakdown
        assert breakdown.complexity_adjustment == -6      # (0.46 - 0.7) * 0.25
        assert breakdown.location_adjustment == 0

    def test_risk_adjustment_is_capped(self):
        factors = [RiskFactor(type=RiskType.COMPLEXITY, impact=ImpactLevel.HIGH, probability=1.0)] * 5
        assert self.calculator.risk_adjustment(factors) == pytest.approx(0.4)

    def test_more_high_risks_never_raise_probability(self, baseline_features):
        factor = RiskFactor(type=RiskType.TIMELINE, impact=ImpactLevel.HIGH, probability=0.9)
        probabilities = [
            self.calculator.calculate_completion_probability(baseline_features, [factor] * n).completion_probability
            for n in range(8)
        ]
        assert probabilities == [65, 52, 38, 25, 25, 25, 25, 25]

    def test_probability_is_non_increasing_in_risk_count(self, baseline_features):
        pool = [
            RiskFactor(type=RiskType.ENVIRONMENTAL, impact=ImpactLevel.LOW, probability=0.3),
            RiskFactor(type=RiskType.RESOURCE, impact=ImpactLevel.MEDIUM, probability=0.6),
            RiskFactor(type=RiskType.FINANCIAL, impact=ImpactLevel.HIGH, probability=0.2),
            RiskFactor(type=RiskType.COMPLEXITY, impact=ImpactLevel.MEDIUM, probability=0.0),
            RiskFactor(type=RiskType.TIMELINE, impact=ImpactLevel.HIGH, probability=1.0),
            RiskFactor(type=RiskType.RESOURCE, impact=ImpactLevel.LOW, probability=0.9),
        ]
        for features in (baseline_features, _worst_features()):
            probabilities = [
                self.calculator.calculate_completion_probability(features, pool[:n]).completion_probability
                for n in range(len(pool) + 1)
            ]
            assert all(later <= earlier for earlier, later in zip(probabilities, probabilities[1:]))

    def test_probability_floor(self):
        factors = [RiskFactor(type=RiskType.TIMELINE, impact=ImpactLevel.HIGH, probability=1.0)] * 5
        result = self.calculator.calculate_completion_probability(_worst_features(), factors)
        assert result.completion_probability == 5

    def test_probability_ceiling_follows_config(self, baseline_features):
        calculator = ProbabilityCalculator(ProbabilityConfig(max_probability=0.6))
        result = calculator.calculate_completion_probability(baseline_features)
        assert result.completion_probability == 60

    def test_confidence_drops_for_sparse_history(self, baseline_features):
        sparse = baseline_features.model_copy(update={"similar_projects_count": 2, "region_success_rate": 0.5})
        assert self.calculator.confidence_level(sparse) == pytest.approx(0.5)

    def test_confidence_is_bounded(self):
        assert self.calculator.confidence_level(_worst_features()) == pytest.approx(0.3)

    def test_to_dict(self, baseline_features):
        data = self.calculator.calculate_completion_probability(baseline_features, [], "dpr-1").to_dict()
        assert data["completion_probability"] == 65
        assert set(data["sub_scores"]) == {"timeline", "resource", "complexity", "location", "historical"}


@pytest.mark.unit
class TestRiskAnalysis:

    def setup_method(self):
        self.calculator = ProbabilityCalculator()

    def test_baseline_category_risks(self, baseline_features):
        factors = identify_risk_factors(baseline_features)
        result = self.calculator.analyze_risks(baseline_features, factors, "dpr-1")

        risks = result.category_risks
        assert risks.timeline_risk == 35
        assert risks.resource_risk == 15
        assert risks.complexity_risk == 82
        assert risks.environmental_risk == 28
        assert risks.financial_risk == 20
        assert result.risk_score == 40
        assert result.overall_risk == 40
        assert result.risk_level == RiskLevel.LOW
        assert result.risk_factors == factors

    @pytest.mark.parametrize("overall,level", [
        (0.9, RiskLevel.CRITICAL),
        (0.85, RiskLevel.CRITICAL),
        (0.7, RiskLevel.HIGH),
        (0.5, RiskLevel.MEDIUM),
        (0.49, RiskLevel.LOW),
    ])
    def test_risk_level_thresholds(self, overall, level):
        assert ProbabilityCalculator.risk_level(overall) == level

    def test_category_risks_are_clamped(self):
        factors = [RiskFactor(type=RiskType.FINANCIAL, impact=ImpactLevel.HIGH, probability=1.0)] * 4
        result = self.calculator.analyze_risks(_worst_features(), factors)
        assert result.category_risks.financial_risk == 100
        assert result.risk_level in (RiskLevel.HIGH, RiskLevel.CRITICAL)


@pytest.mark.unit
class TestRecommendations:

    def setup_method(self):
        self.calculator = ProbabilityCalculator()

    def test_baseline_recommendations(self, baseline_features):
        factors = identify_risk_factors(baseline_features)
        result = self.calculator.generate_recommendations(baseline_features, factors, dpr_id="dpr-1")

        assert result.current_probability == 44
        assert [r.expected_impact for r in result.recommendations] == [20, 10, 8]
        assert result.recommendations[0].category == RecommendationCategory.COMPLEXITY
        assert result.recommendations[0].priority == Priority.HIGH
        # 38 points available, capped
        assert result.potential_improvement == 25
        assert result.prioritized_actions[0].startswith("Start regulatory approval processes")
        assert len(result.prioritized_actions) == 3

    def test_given_probability_is_used(self, baseline_features):
        result = self.calculator.generate_recommendations(baseline_features, [], current_probability=70)
        assert result.current_probability == 70

    def test_many_high_risks_add_monitoring(self, baseline_features):
        factors = [RiskFactor(type=RiskType.TIMELINE, impact=ImpactLevel.HIGH, probability=0.5)] * 3
        result = self.calculator.generate_recommendations(baseline_features, factors)
        categories = [r.category for r in result.recommendations]
        assert RecommendationCategory.RISK_MITIGATION in categories

    def test_simple_project_has_no_recommendations(self):
        features = ProjectFeatures(estimated_duration_months=6, accessibility_score=3.0)
        result = self.calculator.generate_recommendations(features)
        assert result.recommendations == []
        assert result.potential_improvement == 0
        assert result.prioritized_actions == []


@pytest.mark.unit
class TestRiskFactorRules:

    def test_baseline_factors(self, baseline_features):
        factors = identify_risk_factors(baseline_features)
        assert [(f.type, f.impact) for f in factors] == [
            (RiskType.ENVIRONMENTAL, ImpactLevel.MEDIUM),
            (RiskType.COMPLEXITY, ImpactLevel.HIGH),
            (RiskType.FINANCIAL, ImpactLevel.MEDIUM),
        ]

    def test_long_project_is_high_timeline_risk(self, baseline_features):
        long_project = baseline_features.model_copy(update={"estimated_duration_months": 40})
        timeline = [f for f in identify_risk_factors(long_project) if f.type == RiskType.TIMELINE]
        assert timeline[0].impact == ImpactLevel.HIGH

    def test_generic_complexity_factor_when_moderately_complex(self):
        features = ProjectFeatures(technical_complexity_score=1.8)
        factors = identify_risk_factors(features)
        assert [f.description for f in factors] == [
            "Project complexity requires careful management and monitoring",
        ]

    def test_feasibility_recommendations_are_deduplicated_and_limited(self, baseline_features):
        factors = identify_risk_factors(baseline_features) * 2
        recommendations = feasibility_recommendations(factors, baseline_features)
        assert len(recommendations) == len(set(recommendations))
        assert len(recommendations) <= 5
        assert recommendations[0].startswith("Plan construction activities around monsoon")
