"""
Unit tests for the what-if simulator

Tests cover:
- Parameter normalization
- Feature and risk perturbation without touching the baseline
- Scenario comparison against the baseline
- Session lifecycle and the comprehensive standard-scenario run
"""

import pytest
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))

from core.config import SimulationConfig
from core.errors import SessionNotFoundError
from feasibility.models import (
    FeasibilityRating,
    ImpactLevel,
    RiskFactor,
    RiskType,
    SimulationParameters,
)
from feasibility.session_store import SessionStore
from feasibility.what_if_simulator import (
    BASELINE_SCENARIO_NAME,
    STANDARD_SCENARIOS,
    WhatIfSimulator,
    apply_parameters_to_features,
    apply_parameters_to_risks,
    feasibility_rating,
    scenario_name,
)


@pytest.mark.unit
class TestSimulationParameters:

    def test_non_positive_multipliers_are_ignored(self):
        params = SimulationParameters(timeline_multiplier=0, resource_multiplier=-1.0, complexity_multiplier=0.9)
        assert params.timeline_multiplier is None
        assert params.resource_multiplier is None
        assert params.complexity_multiplier == 0.9

    def test_accessibility_is_clamped(self):
        assert SimulationParameters(accessibility_improvement=5).accessibility_improvement == 2.0
        assert SimulationParameters(accessibility_improvement=-1).accessibility_improvement is None

    def test_risk_types_are_coerced(self):
        params = SimulationParameters(additional_risk_mitigation=["FINANCIAL"])
        assert params.additional_risk_mitigation == [RiskType.FINANCIAL]

    def test_is_empty(self):
        assert SimulationParameters().is_empty
        assert not SimulationParameters(timeline_multiplier=1.1).is_empty


@pytest.mark.unit
class TestPerturbation:

    def test_timeline_multiplier_rounds_duration(self, baseline_features):
        features = apply_parameters_to_features(baseline_features, SimulationParameters(timeline_multiplier=0.85))
        assert features.estimated_duration_months == 15
        assert features.cost_per_month == pytest.approx(55_000_000 / 15)
        assert baseline_features.estimated_duration_months == 18

    def test_resource_multiplier_eases_resource_scores(self, baseline_features):
        features = apply_parameters_to_features(baseline_features, SimulationParameters(resource_multiplier=1.5))
        assert features.total_cost == 82_500_000
        assert features.resource_complexity_score == pytest.approx(1.62)
        assert features.labor_intensity_score == pytest.approx(1.52)

    def test_complexity_multiplier_is_bounded(self, baseline_features):
        features = apply_parameters_to_features(baseline_features, SimulationParameters(complexity_multiplier=2.0))
        assert features.technical_complexity_score == 3.0
        assert features.environmental_complexity_score == 3.0
        assert features.regulatory_complexity_score == 3.0

    def test_accessibility_improvement(self, baseline_features):
        features = apply_parameters_to_features(baseline_features, SimulationParameters(accessibility_improvement=1.5))
        assert features.accessibility_score == 3.0
        assert features.infrastructure_score == pytest.approx(2.95)

    def test_mitigated_risks_are_downgraded(self):
        base = [RiskFactor(type=RiskType.COMPLEXITY, impact=ImpactLevel.HIGH, probability=0.8)]
        params = SimulationParameters(additional_risk_mitigation=[RiskType.COMPLEXITY])

        adjusted = apply_parameters_to_risks(base, params)

        assert adjusted[0].probability == pytest.approx(0.56)
        assert adjusted[0].impact == ImpactLevel.MEDIUM
        assert base[0].impact == ImpactLevel.HIGH

    def test_timeline_pressure_changes_timeline_risk(self):
        base = [RiskFactor(type=RiskType.TIMELINE, probability=0.5)]

        faster = apply_parameters_to_risks(base, SimulationParameters(timeline_multiplier=0.8))
        slower = apply_parameters_to_risks(base, SimulationParameters(timeline_multiplier=1.3))

        assert faster[0].probability == pytest.approx(0.65)
        assert slower[0].probability == pytest.approx(0.4)

    def test_extra_resources_reduce_resource_risk(self):
        base = [RiskFactor(type=RiskType.RESOURCE, probability=0.5)]
        adjusted = apply_parameters_to_risks(base, SimulationParameters(resource_multiplier=1.5))
        assert adjusted[0].probability == pytest.approx(0.4)

    @pytest.mark.parametrize("probability,risk,rating", [
        (90, 20, FeasibilityRating.EXCELLENT),
        (80, 20, FeasibilityRating.GOOD),
        (70, 20, FeasibilityRating.FAIR),
        (60, 20, FeasibilityRating.POOR),
    ])
    def test_feasibility_rating(self, probability, risk, rating):
        assert feasibility_rating(probability, risk) == rating

    def test_scenario_names(self):
        assert scenario_name(SimulationParameters()) == "Custom Scenario"
        assert scenario_name(SimulationParameters(timeline_multiplier=0.85)) == "Fast Scenario"
        assert scenario_name(
            SimulationParameters(resource_multiplier=1.5, accessibility_improvement=1.0)
        ) == "High-Resource Infrastructure-Enhanced Scenario"


@pytest.mark.unit
class TestWhatIfSimulator:

    def setup_method(self):
        self.simulator = WhatIfSimulator()

    def test_initialize_session_defaults_to_baseline(self):
        session = self.simulator.initialize_session("dpr-1")

        assert session.session_id.startswith("sim_")
        assert session.baseline.scenario.name == BASELINE_SCENARIO_NAME
        assert session.baseline.completion_probability == 44
        assert session.current is session.baseline
        assert len(session.history) == 1

    def test_fast_timeline_scenario(self):
        session = self.simulator.initialize_session("dpr-1")
        result = self.simulator.run_simulation(session.session_id, SimulationParameters(timeline_multiplier=0.85))

        assert result.scenario.name == "Fast Scenario"
        assert result.scenario.features.estimated_duration_months == 15
        assert result.comparison.time_impact == -3
        assert result.comparison.cost_impact == 0
        assert result.comparison.probability_change == (
            result.completion_probability - session.baseline.completion_probability
        )
        assert result.recommendations[0].startswith("Fast-track timeline")

    def test_cost_impact_includes_infrastructure_and_mitigation(self):
        session = self.simulator.initialize_session("dpr-1")
        params = SimulationParameters(
            resource_multiplier=1.5,
            accessibility_improvement=1.0,
            additional_risk_mitigation=[RiskType.COMPLEXITY],
        )
        result = self.simulator.run_simulation(session.session_id, params)

        # 27.5M extra resources + 5M access + 2M mitigation
        assert result.comparison.cost_impact == 34_500_000

    def test_simulation_leaves_baseline_untouched(self):
        session = self.simulator.initialize_session("dpr-1")
        before = session.baseline.to_dict()

        self.simulator.run_simulation(session.session_id, SimulationParameters(
            timeline_multiplier=1.3, resource_multiplier=1.5,
            additional_risk_mitigation=[RiskType.COMPLEXITY, RiskType.ENVIRONMENTAL],
        ))

        assert session.baseline.to_dict() == before
        assert session.baseline_features.total_cost == 55_000_000

    def test_empty_parameters_match_baseline(self):
        session = self.simulator.initialize_session("dpr-1")
        result = self.simulator.run_simulation(session.session_id, SimulationParameters())

        assert result.comparison.probability_change == 0
        assert result.comparison.risk_change == 0
        assert result.scenario.features == session.baseline_features

    def test_history_and_reset(self):
        session = self.simulator.initialize_session("dpr-1")
        self.simulator.run_simulation(session.session_id, SimulationParameters(timeline_multiplier=0.85))
        self.simulator.run_simulation(session.session_id, SimulationParameters(resource_multiplier=1.3))

        assert len(self.simulator.get_scenario_history(session.session_id)) == 3

        reset = self.simulator.reset_to_baseline(session.session_id)
        assert reset.current is reset.baseline
        assert len(reset.history) == 1

    def test_unknown_session(self):
        with pytest.raises(SessionNotFoundError):
            self.simulator.run_simulation("sim_missing", SimulationParameters())
        with pytest.raises(SessionNotFoundError):
            self.simulator.reset_to_baseline("sim_missing")

    def test_close_session(self):
        session = self.simulator.initialize_session("dpr-1")
        assert self.simulator.close_session(session.session_id) is True
        assert self.simulator.close_session(session.session_id) is False
        with pytest.raises(SessionNotFoundError):
            self.simulator.get_session(session.session_id)

    def test_store_capacity_evicts_old_sessions(self):
        simulator = WhatIfSimulator(store=SessionStore(capacity=1))
        first = simulator.initialize_session("dpr-1")
        second = simulator.initialize_session("dpr-2")

        assert simulator.get_session(second.session_id).dpr_id == "dpr-2"
        with pytest.raises(SessionNotFoundError):
            simulator.get_session(first.session_id)

    def test_recommendations_are_capped(self):
        session = self.simulator.initialize_session("dpr-1")
        result = self.simulator.run_simulation(session.session_id, SimulationParameters(
            timeline_multiplier=1.3,
            resource_multiplier=1.5,
            accessibility_improvement=1.0,
            additional_risk_mitigation=[RiskType.TIMELINE],
        ))
        assert len(result.recommendations) == 3


@pytest.mark.unit
class TestComprehensiveAnalysis:

    def setup_method(self):
        self.simulator = WhatIfSimulator()

    def test_runs_standard_scenarios(self):
        session = self.simulator.initialize_session("dpr-1")
        analysis = self.simulator.run_comprehensive_analysis(session.session_id)

        assert [s.scenario.name for s in analysis.scenarios] == [name for name, _ in STANDARD_SCENARIOS]
        assert analysis.total_scenarios_analyzed == 7
        assert len(analysis.summaries) == 7
        assert analysis.summaries[0]["scenario"] == BASELINE_SCENARIO_NAME

    def test_best_and_worst(self):
        session = self.simulator.initialize_session("dpr-1")
        analysis = self.simulator.run_comprehensive_analysis(session.session_id)

        probabilities = [session.baseline.completion_probability] + [
            s.completion_probability for s in analysis.scenarios
        ]
        assert analysis.best.completion_probability == max(probabilities)
        assert analysis.worst.completion_probability == min(probabilities)

    def test_battery_leaves_session_untouched(self):
        session = self.simulator.initialize_session("dpr-1")
        chosen = self.simulator.run_simulation(session.session_id, SimulationParameters(timeline_multiplier=0.85))

        for _ in range(3):
            self.simulator.run_comprehensive_analysis(session.session_id)

        history = self.simulator.get_scenario_history(session.session_id)
        assert len(history) == 2
        assert history[-1] is chosen
        assert self.simulator.get_session(session.session_id).current is chosen

    def test_history_is_capped(self):
        simulator = WhatIfSimulator(config=SimulationConfig(max_history=3))
        session = simulator.initialize_session("dpr-1")
        results = [
            simulator.run_simulation(session.session_id, SimulationParameters(timeline_multiplier=m))
            for m in (0.8, 0.9, 1.1, 1.2)
        ]

        history = simulator.get_scenario_history(session.session_id)
        assert len(history) == 3
        assert history[0] is session.baseline
        assert history[1:] == results[-2:]
        assert session.current is results[-1]

    def test_to_dict(self):
        session = self.simulator.initialize_session("dpr-1")
        data = self.simulator.run_comprehensive_analysis(session.session_id).to_dict()

        assert data["dpr_id"] == "dpr-1"
        assert data["total_scenarios_analyzed"] == 7
        assert len(data["scenarios"]) == 6
