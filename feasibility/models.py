"""
DPR Assessor: Feasibility - Data Models

Inputs supplied by risk, history and mitigation collaborators are pydantic
models so registry and request JSON is validated at the boundary. Out of
range numbers are clamped rather than rejected.

Results computed here are dataclasses with to_dict().
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator


# =============================================================================
# Enums
# =============================================================================

class RiskType(str, Enum):
    TIMELINE = "TIMELINE"
    RESOURCE = "RESOURCE"
    COMPLEXITY = "COMPLEXITY"
    ENVIRONMENTAL = "ENVIRONMENTAL"
    FINANCIAL = "FINANCIAL"


class ImpactLevel(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


IMPACT_ORDER = {ImpactLevel.LOW: 1, ImpactLevel.MEDIUM: 2, ImpactLevel.HIGH: 3}


class Priority(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


PRIORITY_ORDER = {Priority.HIGH: 3, Priority.MEDIUM: 2, Priority.LOW: 1}


class RiskLevel(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class RiskCategory(str, Enum):
    """Risk families scored by the heuristic classifier and mitigation store"""
    COST_OVERRUN = "COST_OVERRUN"
    DELAY = "DELAY"
    ENVIRONMENTAL = "ENVIRONMENTAL"
    RESOURCE = "RESOURCE"


class RecommendationCategory(str, Enum):
    TIMELINE = "TIMELINE"
    RESOURCE = "RESOURCE"
    COMPLEXITY = "COMPLEXITY"
    RISK_MITIGATION = "RISK_MITIGATION"
    GENERAL = "GENERAL"


class FeasibilityRating(str, Enum):
    POOR = "POOR"
    FAIR = "FAIR"
    GOOD = "GOOD"
    EXCELLENT = "EXCELLENT"


class CompletionStatus(str, Enum):
    COMPLETED = "COMPLETED"
    DELAYED = "DELAYED"
    CANCELLED = "CANCELLED"
    ONGOING = "ONGOING"


class PrecedentOutcome(str, Enum):
    SUCCESS = "SUCCESS"
    DELAYED = "DELAYED"
    COST_OVERRUN = "COST_OVERRUN"
    FAILED = "FAILED"


class TrendDirection(str, Enum):
    INCREASING = "INCREASING"
    DECREASING = "DECREASING"
    STABLE = "STABLE"


def clamp(value: float, low: float, high: float) -> float:
    return float(max(low, min(high, value)))


# =============================================================================
# Collaborator-supplied inputs
# =============================================================================

class ProjectFeatures(BaseModel):
    """Numeric project profile shared by the probability and simulation stages"""

    estimated_duration_months: float = Field(12, description="Planned duration in months")
    seasonality_factor: float = Field(1.0, description="1.0 = no seasonal effect")
    weather_risk_months: float = Field(0, description="Months exposed to monsoon or weather stoppage")
    total_cost: float = Field(0, description="Total project cost in INR")
    cost_per_month: float = Field(0, description="total_cost / duration")
    resource_complexity_score: float = Field(1.0, description="1 (simple) to 3 (specialized)")
    labor_intensity_score: float = Field(1.0, description="1 to 2.5")
    technical_complexity_score: float = Field(1.0, description="1 to 3")
    environmental_complexity_score: float = Field(1.0, description="1 to 2.5")
    regulatory_complexity_score: float = Field(1.0, description="1 to 3")
    accessibility_score: float = Field(2.0, description="1 (poor) to 3 (good)")
    infrastructure_score: float = Field(2.0, description="1 (poor) to 3 (good)")
    remoteness_score: float = Field(1.0, description="1 (connected) to 3 (remote)")
    similar_projects_count: int = Field(15, description="Historical projects comparable to this one")
    region_success_rate: float = Field(0.72, description="Completion rate of projects in the region")
    category_success_rate: float = Field(0.73, description="Completion rate of projects in the category")

    @field_validator(
        "estimated_duration_months", "weather_risk_months", "total_cost", "cost_per_month",
        "similar_projects_count",
    )
    @classmethod
    def non_negative(cls, v):
        return max(0, v)

    @field_validator("weather_risk_months")
    @classmethod
    def at_most_a_year(cls, v):
        return min(12, v)

    @field_validator("region_success_rate", "category_success_rate")
    @classmethod
    def rate_range(cls, v):
        return clamp(v, 0.0, 1.0)

    @field_validator(
        "seasonality_factor", "resource_complexity_score", "labor_intensity_score",
        "technical_complexity_score", "environmental_complexity_score",
        "regulatory_complexity_score", "accessibility_score", "infrastructure_score",
        "remoteness_score",
    )
    @classmethod
    def score_floor(cls, v):
        return max(0.0, v)

    @classmethod
    def baseline(cls) -> "ProjectFeatures":
        """Representative Northeast India road project used when nothing is known"""
        return cls(
            estimated_duration_months=18,
            seasonality_factor=1.2,
            weather_risk_months=4,
            total_cost=55_000_000,
            cost_per_month=3_055_556,
            resource_complexity_score=1.8,
            labor_intensity_score=1.6,
            technical_complexity_score=2.0,
            environmental_complexity_score=1.5,
            regulatory_complexity_score=2.2,
            accessibility_score=2.0,
            infrastructure_score=2.2,
            remoteness_score=1.3,
            similar_projects_count=15,
            region_success_rate=0.72,
            category_success_rate=0.75,
        )


class RiskFactor(BaseModel):
    type: RiskType = Field(..., description="Risk family")
    description: str = Field("", description="What could go wrong")
    impact: ImpactLevel = Field(ImpactLevel.MEDIUM, description="Impact tier if the risk materializes")
    probability: float = Field(0.5, description="Likelihood in [0, 1]")
    mitigation: str = Field("", description="Suggested mitigation")

    @field_validator("probability")
    @classmethod
    def probability_range(cls, v):
        return clamp(v, 0.0, 1.0)


class HistoricalProject(BaseModel):
    id: str = Field(..., description="Project identifier")
    project_name: str = Field("", description="Display name")
    estimated_cost: float = Field(..., description="Sanctioned cost in INR")
    actual_cost: Optional[float] = Field(None, description="Final cost in INR")
    estimated_duration_months: float = Field(..., description="Planned duration")
    actual_duration_months: Optional[float] = Field(None, description="Actual duration")
    completion_status: CompletionStatus = Field(CompletionStatus.COMPLETED, description="Outcome")
    location_state: str = Field("", description="State the project was built in")
    risk_factors: List[str] = Field(default_factory=list, description="Risk labels recorded for the project")

    @field_validator("estimated_cost", "estimated_duration_months")
    @classmethod
    def non_negative(cls, v):
        return max(0.0, v)

    @property
    def overran_cost(self) -> bool:
        return self.actual_cost is not None and self.actual_cost > self.estimated_cost * 1.1


# =============================================================================
# Probability and risk results
# =============================================================================

@dataclass
class ProbabilityBreakdown:
    """Percentage points; adjustments are relative to a neutral 0.7 sub-score"""
    base_score: int = 0
    timeline_adjustment: int = 0
    resource_adjustment: int = 0
    complexity_adjustment: int = 0
    location_adjustment: int = 0
    historical_adjustment: int = 0
    risk_adjustment: int = 0
    final_score: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return dict(self.__dict__)


@dataclass
class ProbabilityCalculationResult:
    dpr_id: str
    completion_probability: int               # 0-100
    confidence_level: float                   # 0-1
    breakdown: ProbabilityBreakdown
    sub_scores: Dict[str, float] = field(default_factory=dict)
    calculated_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "dpr_id": self.dpr_id,
            "completion_probability": self.completion_probability,
            "confidence_level": round(self.confidence_level, 4),
            "breakdown": self.breakdown.to_dict(),
            "sub_scores": {k: round(v, 4) for k, v in self.sub_scores.items()},
            "calculated_at": self.calculated_at.isoformat(),
        }


@dataclass
class RiskBreakdown:
    timeline_risk: int = 0
    resource_risk: int = 0
    complexity_risk: int = 0
    environmental_risk: int = 0
    financial_risk: int = 0
    overall_risk: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return dict(self.__dict__)


@dataclass
class RiskAnalysisResult:
    dpr_id: str
    risk_level: RiskLevel
    risk_score: int                           # 0-100
    category_risks: RiskBreakdown
    risk_factors: List[RiskFactor] = field(default_factory=list)

    @property
    def overall_risk(self) -> int:
        return self.category_risks.overall_risk

    def to_dict(self) -> Dict[str, Any]:
        return {
            "dpr_id": self.dpr_id,
            "risk_level": self.risk_level.value,
            "risk_score": self.risk_score,
            "category_risks": self.category_risks.to_dict(),
            "risk_factors": [rf.model_dump(mode="json") for rf in self.risk_factors],
        }


@dataclass
class CompletionRecommendation:
    category: RecommendationCategory
    priority: Priority
    recommendation: str
    expected_impact: float                    # percentage points of probability
    implementation_effort: Priority
    timeframe: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "category": self.category.value,
            "priority": self.priority.value,
            "recommendation": self.recommendation,
            "expected_impact": self.expected_impact,
            "implementation_effort": self.implementation_effort.value,
            "timeframe": self.timeframe,
        }


@dataclass
class RecommendationResult:
    dpr_id: str
    current_probability: int
    potential_improvement: float
    recommendations: List[CompletionRecommendation] = field(default_factory=list)
    prioritized_actions: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "dpr_id": self.dpr_id,
            "current_probability": self.current_probability,
            "potential_improvement": self.potential_improvement,
            "recommendations": [r.to_dict() for r in self.recommendations],
            "prioritized_actions": list(self.prioritized_actions),
        }


# =============================================================================
# Risk classification results
# =============================================================================

@dataclass
class HistoricalPrecedent:
    project_id: str
    project_name: str
    similarity: float
    outcome: PrecedentOutcome
    lessons_learned: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "project_id": self.project_id,
            "project_name": self.project_name,
            "similarity": round(self.similarity, 4),
            "outcome": self.outcome.value,
            "lessons_learned": list(self.lessons_learned),
        }


@dataclass
class CategoryRisk:
    category: RiskCategory
    risk_level: ImpactLevel
    risk_score: int                           # 0-100
    probability: float                        # 0-1
    confidence: float                         # 0-1
    contributing_factors: List[str] = field(default_factory=list)
    mitigation_strategies: List[str] = field(default_factory=list)
    historical_precedents: List[HistoricalPrecedent] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "category": self.category.value,
            "risk_level": self.risk_level.value,
            "risk_score": self.risk_score,
            "probability": round(self.probability, 4),
            "confidence": round(self.confidence, 4),
            "contributing_factors": list(self.contributing_factors),
            "mitigation_strategies": list(self.mitigation_strategies),
            "historical_precedents": [p.to_dict() for p in self.historical_precedents],
        }


@dataclass
class RiskPattern:
    pattern: str
    frequency: float                          # share of projects reporting it
    impact: ImpactLevel
    associated_risks: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pattern": self.pattern,
            "frequency": round(self.frequency, 4),
            "impact": self.impact.value,
            "associated_risks": list(self.associated_risks),
        }


@dataclass
class RegionalTrend:
    region: str
    risk_category: RiskCategory
    direction: TrendDirection
    impact_level: float                       # 0-100

    def to_dict(self) -> Dict[str, Any]:
        return {
            "region": self.region,
            "risk_category": self.risk_category.value,
            "direction": self.direction.value,
            "impact_level": round(self.impact_level, 2),
        }


@dataclass
class HistoricalAnalysis:
    similar_projects_count: int = 0
    success_rate: float = 0.7
    average_delay_months: float = 6.0
    average_cost_overrun_percent: float = 15.0
    risk_patterns: List[RiskPattern] = field(default_factory=list)
    regional_trends: List[RegionalTrend] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "similar_projects_count": self.similar_projects_count,
            "success_rate": round(self.success_rate, 4),
            "average_delay_months": round(self.average_delay_months, 2),
            "average_cost_overrun_percent": round(self.average_cost_overrun_percent, 2),
            "risk_patterns": [p.to_dict() for p in self.risk_patterns],
            "regional_trends": [t.to_dict() for t in self.regional_trends],
        }


@dataclass
class RiskClassificationResult:
    dpr_id: str
    overall_risk_level: ImpactLevel
    risk_score: int
    categories: List[CategoryRisk]
    historical_analysis: HistoricalAnalysis
    confidence: float

    def category(self, category: RiskCategory) -> Optional[CategoryRisk]:
        return next((c for c in self.categories if c.category == category), None)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "dpr_id": self.dpr_id,
            "overall_risk_level": self.overall_risk_level.value,
            "risk_score": self.risk_score,
            "categories": [c.to_dict() for c in self.categories],
            "historical_analysis": self.historical_analysis.to_dict(),
            "confidence": round(self.confidence, 4),
        }


# =============================================================================
# Mitigation
# =============================================================================

class ActionItem(BaseModel):
    id: str = Field(..., description="Action identifier")
    action: str = Field(..., description="What has to be done")
    responsible: str = Field("", description="Owning role")
    timeline: str = Field("", description="Duration, e.g. '2-3 weeks'")
    priority: Priority = Field(Priority.MEDIUM, description="Execution priority")
    resources: List[str] = Field(default_factory=list, description="Inputs needed")
    deliverables: List[str] = Field(default_factory=list, description="Outputs produced")


class MitigationStrategy(BaseModel):
    id: str = Field(..., description="Strategy identifier")
    risk_type: RiskCategory = Field(..., description="Risk family addressed")
    risk_severity: ImpactLevel = Field(..., description="Lowest risk impact the strategy targets")
    strategy_name: str = Field(..., description="Display name")
    description: str = Field("", description="What the strategy does")
    action_items: List[ActionItem] = Field(default_factory=list, description="Concrete steps")
    expected_impact: float = Field(0, description="Percent risk reduction, 0-100")
    implementation_cost: Priority = Field(Priority.MEDIUM, description="Cost tier")
    implementation_time: str = Field("4 weeks", description="Duration, e.g. '6-8 weeks'")
    prerequisites: List[str] = Field(default_factory=list, description="Conditions to start")
    success_metrics: List[str] = Field(default_factory=list, description="How success is measured")
    applicable_project_types: List[str] = Field(default_factory=list, description="Project kinds the strategy suits")
    effectiveness: float = Field(0.7, description="Historical effectiveness in [0, 1]")
    last_updated: datetime = Field(default_factory=datetime.now, description="Last modification time")

    @field_validator("expected_impact")
    @classmethod
    def impact_range(cls, v):
        return clamp(v, 0.0, 100.0)

    @field_validator("effectiveness")
    @classmethod
    def effectiveness_range(cls, v):
        return clamp(v, 0.0, 1.0)


@dataclass
class BudgetEstimate:
    low: float = 0.0
    medium: float = 0.0
    high: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {"low": self.low, "medium": self.medium, "high": self.high}


@dataclass
class RiskMitigationRecommendation:
    risk_factor: RiskFactor
    recommended_strategies: List[MitigationStrategy] = field(default_factory=list)
    prioritized_actions: List[ActionItem] = field(default_factory=list)
    estimated_risk_reduction: float = 0.0
    total_implementation_cost: Priority = Priority.LOW
    total_implementation_time: str = "0 weeks"
    success_probability: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "risk_factor": self.risk_factor.model_dump(mode="json"),
            "recommended_strategies": [s.id for s in self.recommended_strategies],
            "prioritized_actions": [a.model_dump(mode="json") for a in self.prioritized_actions],
            "estimated_risk_reduction": round(self.estimated_risk_reduction, 2),
            "total_implementation_cost": self.total_implementation_cost.value,
            "total_implementation_time": self.total_implementation_time,
            "success_probability": round(self.success_probability, 4),
        }


@dataclass
class RiskMitigationPlan:
    dpr_id: str
    overall_risk_level: ImpactLevel
    recommendations: List[RiskMitigationRecommendation] = field(default_factory=list)
    prioritized_strategies: List[MitigationStrategy] = field(default_factory=list)
    quick_wins: List[ActionItem] = field(default_factory=list)
    long_term_actions: List[ActionItem] = field(default_factory=list)
    estimated_budget: BudgetEstimate = field(default_factory=BudgetEstimate)
    implementation_timeline: str = "0 weeks"
    expected_risk_reduction: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "dpr_id": self.dpr_id,
            "overall_risk_level": self.overall_risk_level.value,
            "recommendations": [r.to_dict() for r in self.recommendations],
            "prioritized_strategies": [
                {"id": s.id, "strategy_name": s.strategy_name, "risk_type": s.risk_type.value}
                for s in self.prioritized_strategies
            ],
            "quick_wins": [a.model_dump(mode="json") for a in self.quick_wins],
            "long_term_actions": [a.model_dump(mode="json") for a in self.long_term_actions],
            "estimated_budget": self.estimated_budget.to_dict(),
            "implementation_timeline": self.implementation_timeline,
            "expected_risk_reduction": round(self.expected_risk_reduction, 2),
        }


# =============================================================================
# What-if simulation
# =============================================================================

@dataclass
class SimulationParameters:
    """
    Perturbation of the baseline plan.

    Multipliers scale the baseline value (0.85 = 15% faster); a missing or
    non-positive multiplier leaves the value unchanged.
    """
    timeline_multiplier: Optional[float] = None
    resource_multiplier: Optional[float] = None
    complexity_multiplier: Optional[float] = None
    accessibility_improvement: Optional[float] = None     # 0-2 points
    additional_risk_mitigation: List[RiskType] = field(default_factory=list)

    def __post_init__(self):
        for name in ("timeline_multiplier", "resource_multiplier", "complexity_multiplier"):
            value = getattr(self, name)
            if value is not None and value <= 0:
                setattr(self, name, None)
        if self.accessibility_improvement is not None:
            improvement = clamp(self.accessibility_improvement, 0.0, 2.0)
            self.accessibility_improvement = improvement or None
        self.additional_risk_mitigation = [RiskType(t) for t in self.additional_risk_mitigation]

    @property
    def is_empty(self) -> bool:
        return not any([
            self.timeline_multiplier, self.resource_multiplier, self.complexity_multiplier,
            self.accessibility_improvement, self.additional_risk_mitigation,
        ])

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timeline_multiplier": self.timeline_multiplier,
            "resource_multiplier": self.resource_multiplier,
            "complexity_multiplier": self.complexity_multiplier,
            "accessibility_improvement": self.accessibility_improvement,
            "additional_risk_mitigation": [t.value for t in self.additional_risk_mitigation],
        }


@dataclass
class Scenario:
    name: str
    parameters: SimulationParameters
    features: ProjectFeatures
    risk_factors: List[RiskFactor]
    completion_probability: int
    risk_score: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "parameters": self.parameters.to_dict(),
            "features": self.features.model_dump(),
            "risk_factors": [rf.model_dump(mode="json") for rf in self.risk_factors],
            "completion_probability": self.completion_probability,
            "risk_score": self.risk_score,
        }


@dataclass
class ScenarioComparison:
    probability_change: int = 0
    risk_change: int = 0
    cost_impact: float = 0.0                  # INR
    time_impact: float = 0.0                  # months
    feasibility_rating: FeasibilityRating = FeasibilityRating.FAIR

    def to_dict(self) -> Dict[str, Any]:
        return {
            "probability_change": self.probability_change,
            "risk_change": self.risk_change,
            "cost_impact": self.cost_impact,
            "time_impact": self.time_impact,
            "feasibility_rating": self.feasibility_rating.value,
        }


@dataclass
class SimulationResult:
    scenario: Scenario
    comparison: ScenarioComparison
    recommendations: List[str] = field(default_factory=list)

    @property
    def completion_probability(self) -> int:
        return self.scenario.completion_probability

    def to_dict(self) -> Dict[str, Any]:
        return {
            "scenario": self.scenario.to_dict(),
            "comparison": self.comparison.to_dict(),
            "recommendations": list(self.recommendations),
        }


@dataclass
class SimulationSession:
    session_id: str
    dpr_id: str
    baseline_features: ProjectFeatures
    baseline_risk_factors: List[RiskFactor]
    baseline: SimulationResult
    current: SimulationResult
    history: List[SimulationResult] = field(default_factory=list)
    created_at: datetime = field(default_factory=datetime.now)
    last_updated: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "dpr_id": self.dpr_id,
            "baseline": self.baseline.to_dict(),
            "current": self.current.to_dict(),
            "history": [h.scenario.name for h in self.history],
            "created_at": self.created_at.isoformat(),
            "last_updated": self.last_updated.isoformat(),
        }


@dataclass
class WhatIfAnalysis:
    dpr_id: str
    session_id: str
    baseline: SimulationResult
    scenarios: List[SimulationResult]
    best: SimulationResult
    worst: SimulationResult
    summaries: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def total_scenarios_analyzed(self) -> int:
        return len(self.scenarios) + 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "dpr_id": self.dpr_id,
            "session_id": self.session_id,
            "baseline": self.baseline.to_dict(),
            "scenarios": [s.to_dict() for s in self.scenarios],
            "best": self.best.scenario.name,
            "worst": self.worst.scenario.name,
            "summaries": list(self.summaries),
            "total_scenarios_analyzed": self.total_scenarios_analyzed,
        }
