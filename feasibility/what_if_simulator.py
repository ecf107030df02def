"""
DPR Assessor: What-If Simulator

Interactive scenario analysis over a project's baseline profile. A session
holds the baseline features and risk factors; each simulation perturbs a
copy of the baseline, re-runs the probability calculator and reports the
change against the baseline.
"""

import logging
import math
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple

from core.config import SimulationConfig, get_config

from .models import (
    FeasibilityRating,
    ImpactLevel,
    ProjectFeatures,
    RiskFactor,
    RiskType,
    Scenario,
    ScenarioComparison,
    SimulationParameters,
    SimulationResult,
    SimulationSession,
    WhatIfAnalysis,
)
from .probability_calculator import ProbabilityCalculator
from .risk_factors import identify_risk_factors
from .session_store import SessionStore

logger = logging.getLogger(__name__)

BASELINE_SCENARIO_NAME = "Baseline (Current Plan)"

INFRASTRUCTURE_COST_PER_POINT = 5_000_000   # 50 lakh per accessibility point
MITIGATION_COST_PER_RISK_TYPE = 2_000_000   # 20 lakh per mitigated risk type

STANDARD_SCENARIOS: List[Tuple[str, Dict[str, Any]]] = [
    ("Optimistic Timeline", {"timeline_multiplier": 0.85, "resource_multiplier": 1.1}),
    ("Conservative Timeline", {"timeline_multiplier": 1.3, "resource_multiplier": 1.2}),
    ("High Resource Investment", {"resource_multiplier": 1.5, "complexity_multiplier": 0.8}),
    ("Risk Mitigation Focus", {
        "resource_multiplier": 1.2,
        "timeline_multiplier": 1.1,
        "additional_risk_mitigation": [RiskType.COMPLEXITY, RiskType.ENVIRONMENTAL],
    }),
    ("Infrastructure Improvement", {
        "accessibility_improvement": 1.5,
        "resource_multiplier": 1.3,
        "timeline_multiplier": 1.1,
    }),
    ("Fast Track", {
        "timeline_multiplier": 0.7,
        "resource_multiplier": 1.8,
        "complexity_multiplier": 1.2,
    }),
]

DOWNGRADE = {ImpactLevel.HIGH: ImpactLevel.MEDIUM, ImpactLevel.MEDIUM: ImpactLevel.LOW, ImpactLevel.LOW: ImpactLevel.LOW}


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def apply_parameters_to_features(base: ProjectFeatures, params: SimulationParameters) -> ProjectFeatures:
    """Return a perturbed copy of base; base itself is never modified"""
    updates: Dict[str, float] = {}
    duration = base.estimated_duration_months
    total_cost = base.total_cost

    if params.timeline_multiplier:
        duration = max(1, _round_half_up(base.estimated_duration_months * params.timeline_multiplier))
        updates["estimated_duration_months"] = duration
        updates["cost_per_month"] = total_cost / duration

    if params.resource_multiplier:
        total_cost = _round_half_up(base.total_cost * params.resource_multiplier)
        updates["total_cost"] = total_cost
        updates["cost_per_month"] = total_cost / duration if duration else 0
        if params.resource_multiplier > 1.2:
            updates["resource_complexity_score"] = max(1.0, base.resource_complexity_score * 0.9)
            updates["labor_intensity_score"] = max(1.0, base.labor_intensity_score * 0.95)

    if params.complexity_multiplier:
        m = params.complexity_multiplier
        updates["technical_complexity_score"] = max(1.0, min(3.0, base.technical_complexity_score * m))
        updates["environmental_complexity_score"] = max(1.0, min(3.0, base.environmental_complexity_score * m))
        updates["regulatory_complexity_score"] = max(1.0, min(3.0, base.regulatory_complexity_score * m))

    if params.accessibility_improvement:
        improvement = params.accessibility_improvement
        updates["accessibility_score"] = min(3.0, base.accessibility_score + improvement)
        updates["infrastructure_score"] = min(3.0, base.infrastructure_score + improvement * 0.5)

    return base.model_copy(update=updates)


def apply_parameters_to_risks(base: Sequence[RiskFactor], params: SimulationParameters) -> List[RiskFactor]:
    """Return adjusted copies of the risk factors; the inputs are never modified"""
    adjusted = []
    mitigated = set(params.additional_risk_mitigation)

    for factor in base:
        probability = factor.probability
        impact = factor.impact

        if factor.type in mitigated:
            probability = max(0.1, probability * 0.7)
            impact = DOWNGRADE[impact]

        if params.timeline_multiplier and factor.type == RiskType.TIMELINE:
            if params.timeline_multiplier < 1:
                probability = min(0.95, probability * 1.3)
            elif params.timeline_multiplier > 1.2:
                probability = max(0.1, probability * 0.8)

        if params.resource_multiplier and params.resource_multiplier > 1.2 and factor.type == RiskType.RESOURCE:
            probability = max(0.1, probability * 0.8)

        adjusted.append(factor.model_copy(update={"probability": probability, "impact": impact}))

    return adjusted


def feasibility_rating(completion_probability: float, risk_score: float) -> FeasibilityRating:
    combined = completion_probability - risk_score * 0.5
    if combined >= 80:
        return FeasibilityRating.EXCELLENT
    if combined >= 70:
        return FeasibilityRating.GOOD
    if combined >= 60:
        return FeasibilityRating.FAIR
    return FeasibilityRating.POOR


def scenario_name(params: SimulationParameters) -> str:
    parts = []
    if params.timeline_multiplier:
        if params.timeline_multiplier < 0.9:
            parts.append("Fast")
        elif params.timeline_multiplier > 1.1:
            parts.append("Extended")
    if params.resource_multiplier and params.resource_multiplier > 1.2:
        parts.append("High-Resource")
    if params.complexity_multiplier and params.complexity_multiplier < 0.9:
        parts.append("Simplified")
    if params.accessibility_improvement:
        parts.append("Infrastructure-Enhanced")
    if params.additional_risk_mitigation:
        parts.append("Risk-Mitigated")
    return " ".join(parts) + " Scenario" if parts else "Custom Scenario"


class WhatIfSimulator:
    """
    Session-based what-if analysis.

    Sessions live in a bounded SessionStore; an unknown or expired session id
    raises SessionNotFoundError on every operation.
    """

    def __init__(
        self,
        calculator: Optional[ProbabilityCalculator] = None,
        config: Optional[SimulationConfig] = None,
        store: Optional[SessionStore] = None,
    ):
        self.config = config or get_config().simulation
        self.calculator = calculator or ProbabilityCalculator()
        self.sessions: SessionStore[SimulationSession] = store or SessionStore(
            capacity=self.config.session_capacity,
            ttl_seconds=self.config.session_ttl_seconds,
        )

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def initialize_session(
        self,
        dpr_id: str,
        features: Optional[ProjectFeatures] = None,
        risk_factors: Optional[Sequence[RiskFactor]] = None,
    ) -> SimulationSession:
        """Open a session; missing inputs default to the baseline profile and its implied risks"""
        if features is None:
            features = ProjectFeatures.baseline()
        if risk_factors is None:
            risk_factors = identify_risk_factors(features)

        baseline_features = features.model_copy()
        baseline_risks = [f.model_copy() for f in risk_factors]
        baseline = self._baseline_result(dpr_id, baseline_features, baseline_risks)

        session = SimulationSession(
            session_id=f"sim_{uuid.uuid4().hex[:12]}",
            dpr_id=dpr_id,
            baseline_features=baseline_features,
            baseline_risk_factors=baseline_risks,
            baseline=baseline,
            current=baseline,
            history=[baseline],
        )
        self.sessions.put(session.session_id, session)
        logger.info(
            f"Simulation session {session.session_id} opened for '{dpr_id}' "
            f"(baseline {baseline.completion_probability}%)"
        )
        return session

    def get_session(self, session_id: str) -> SimulationSession:
        return self.sessions.get(session_id)

    def get_scenario_history(self, session_id: str) -> List[SimulationResult]:
        return list(self.sessions.get(session_id).history)

    def reset_to_baseline(self, session_id: str) -> SimulationSession:
        session = self.sessions.get(session_id)
        session.current = session.baseline
        session.history = [session.baseline]
        session.last_updated = datetime.now()
        return session

    def close_session(self, session_id: str) -> bool:
        closed = self.sessions.close(session_id)
        if closed:
            logger.info(f"Simulation session {session_id} closed")
        return closed

    # ------------------------------------------------------------------
    # Simulation
    # ------------------------------------------------------------------

    def run_simulation(
        self,
        session_id: str,
        parameters: SimulationParameters,
        name: Optional[str] = None,
    ) -> SimulationResult:
        """Evaluate a scenario and make it the session's current one"""
        session = self.sessions.get(session_id)
        result = self.evaluate_scenario(session, parameters, name)

        session.current = result
        session.history.append(result)
        # baseline stays first; the oldest scenarios after it are dropped
        excess = len(session.history) - self.config.max_history
        if excess > 0:
            del session.history[1:1 + excess]
        session.last_updated = datetime.now()

        logger.debug(
            f"Scenario '{result.scenario.name}' for {session_id}: "
            f"{result.completion_probability}% ({result.comparison.probability_change:+d})"
        )
        return result

    def evaluate_scenario(
        self,
        session: SimulationSession,
        parameters: SimulationParameters,
        name: Optional[str] = None,
    ) -> SimulationResult:
        """Score a scenario against the session baseline without recording it"""
        features = apply_parameters_to_features(session.baseline_features, parameters)
        risks = apply_parameters_to_risks(session.baseline_risk_factors, parameters)

        probability = self.calculator.calculate_completion_probability(features, risks, session.dpr_id)
        risk = self.calculator.analyze_risks(features, risks, session.dpr_id)

        baseline = session.baseline.scenario
        comparison = ScenarioComparison(
            probability_change=probability.completion_probability - baseline.completion_probability,
            risk_change=risk.risk_score - baseline.risk_score,
            cost_impact=self.cost_impact(session.baseline_features, features, parameters),
            time_impact=features.estimated_duration_months - session.baseline_features.estimated_duration_months,
            feasibility_rating=feasibility_rating(probability.completion_probability, risk.risk_score),
        )
        return SimulationResult(
            scenario=Scenario(
                name=name or scenario_name(parameters),
                parameters=parameters,
                features=features,
                risk_factors=risks,
                completion_probability=probability.completion_probability,
                risk_score=risk.risk_score,
            ),
            comparison=comparison,
            recommendations=self.scenario_recommendations(parameters, probability.completion_probability),
        )

    def run_comprehensive_analysis(self, session_id: str) -> WhatIfAnalysis:
        """
        Score the six standard scenarios and report best and worst by completion
        probability. The session's current scenario and history are left untouched.
        """
        session = self.sessions.get(session_id)

        results = [
            self.evaluate_scenario(session, SimulationParameters(**params), name)
            for name, params in STANDARD_SCENARIOS
        ]
        candidates = [session.baseline] + results

        best = candidates[0]
        worst = candidates[0]
        for candidate in candidates[1:]:
            if candidate.completion_probability > best.completion_probability:
                best = candidate
            if candidate.completion_probability < worst.completion_probability:
                worst = candidate

        summaries = [
            {
                "scenario": r.scenario.name,
                "completion_probability": r.completion_probability,
                "probability_change": r.comparison.probability_change,
                "risk_score": r.scenario.risk_score,
                "risk_change": r.comparison.risk_change,
                "cost_impact": r.comparison.cost_impact,
                "time_impact": r.comparison.time_impact,
                "feasibility_rating": r.comparison.feasibility_rating.value,
            }
            for r in candidates
        ]

        logger.info(
            f"Comprehensive analysis for '{session.dpr_id}': best '{best.scenario.name}' "
            f"({best.completion_probability}%), worst '{worst.scenario.name}' ({worst.completion_probability}%)"
        )
        return WhatIfAnalysis(
            dpr_id=session.dpr_id,
            session_id=session_id,
            baseline=session.baseline,
            scenarios=results,
            best=best,
            worst=worst,
            summaries=summaries,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _baseline_result(
        self,
        dpr_id: str,
        features: ProjectFeatures,
        risks: List[RiskFactor],
    ) -> SimulationResult:
        probability = self.calculator.calculate_completion_probability(features, risks, dpr_id)
        risk = self.calculator.analyze_risks(features, risks, dpr_id)
        return SimulationResult(
            scenario=Scenario(
                name=BASELINE_SCENARIO_NAME,
                parameters=SimulationParameters(),
                features=features,
                risk_factors=risks,
                completion_probability=probability.completion_probability,
                risk_score=risk.risk_score,
            ),
            comparison=ScenarioComparison(
                feasibility_rating=feasibility_rating(probability.completion_probability, risk.risk_score),
            ),
            recommendations=["This is your current project plan"],
        )

    @staticmethod
    def cost_impact(
        base: ProjectFeatures,
        adjusted: ProjectFeatures,
        params: SimulationParameters,
    ) -> float:
        impact = adjusted.total_cost - base.total_cost
        if params.accessibility_improvement:
            impact += params.accessibility_improvement * INFRASTRUCTURE_COST_PER_POINT
        impact += len(params.additional_risk_mitigation) * MITIGATION_COST_PER_RISK_TYPE
        return float(_round_half_up(impact))

    def scenario_recommendations(self, params: SimulationParameters, completion_probability: int) -> List[str]:
        recs = []
        if params.timeline_multiplier and params.timeline_multiplier < 1:
            recs.append("Fast-track timeline requires careful resource planning and risk monitoring")
        if params.timeline_multiplier and params.timeline_multiplier > 1.2:
            recs.append("Extended timeline allows for better risk mitigation and quality control")
        if params.resource_multiplier and params.resource_multiplier > 1.3:
            recs.append("Higher resource allocation should focus on critical path activities")
        if params.accessibility_improvement:
            recs.append("Infrastructure improvements will have long-term benefits beyond this project")
        if params.additional_risk_mitigation:
            recs.append("Risk mitigation investments should be prioritized by impact and probability")

        if completion_probability > 80:
            recs.append("This scenario shows high success probability - consider implementation")
        elif completion_probability < 60:
            recs.append("This scenario has elevated risks - additional mitigation may be needed")

        return recs[:self.config.max_scenario_recommendations]
