"""
DPR Assessor: Risk Mitigation

MitigationStrategyStore is the owned registry of mitigation strategies,
seeded with three severities for each risk family. MitigationPlanner picks
strategies for each risk factor of a project and rolls them up into a plan
with quick wins, long-term actions, a budget range and a timeline.
"""

import logging
import math
import re
import threading
from collections import Counter
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from pydantic import ValidationError

from core.errors import DPRAnalysisError

from .models import (
    ActionItem,
    BudgetEstimate,
    IMPACT_ORDER,
    ImpactLevel,
    MitigationStrategy,
    PRIORITY_ORDER,
    Priority,
    ProjectFeatures,
    RiskCategory,
    RiskFactor,
    RiskMitigationPlan,
    RiskMitigationRecommendation,
    RiskType,
)

logger = logging.getLogger(__name__)

RISK_TYPE_TO_CATEGORY = {
    RiskType.FINANCIAL: RiskCategory.COST_OVERRUN,
    RiskType.TIMELINE: RiskCategory.DELAY,
    RiskType.ENVIRONMENTAL: RiskCategory.ENVIRONMENTAL,
    RiskType.RESOURCE: RiskCategory.RESOURCE,
    RiskType.COMPLEXITY: RiskCategory.DELAY,
}

COST_PENALTY = {Priority.LOW: 0, Priority.MEDIUM: -10, Priority.HIGH: -20}
COST_WEIGHT = {Priority.LOW: 1, Priority.MEDIUM: 2, Priority.HIGH: 3}

# INR per strategy by implementation cost tier: (low, medium, high) estimate
BUDGET_RANGES = {
    Priority.LOW: (10_000, 25_000, 50_000),
    Priority.MEDIUM: (50_000, 100_000, 200_000),
    Priority.HIGH: (200_000, 500_000, 1_000_000),
}

MAX_STRATEGIES_PER_RISK = 3
QUICK_WIN_WEEKS = 2
DEFAULT_TIMELINE_WEEKS = 4
LARGE_PROJECT_COST = 100_000_000  # 10 crore

_WEEKS_PATTERN = re.compile(r"(\d+)(?:-(\d+))?\s*weeks?", re.I)


class StrategyExistsError(DPRAnalysisError, ValueError):
    def __init__(self, strategy_id: str):
        self.strategy_id = strategy_id
        super().__init__(f"Strategy with ID {strategy_id} already exists")


def parse_timeline_weeks(timeline: str) -> int:
    """Upper bound in weeks of strings like '2 weeks' or '6-8 weeks'; 4 when unknown"""
    match = _WEEKS_PATTERN.search(timeline or "")
    if match:
        return int(match.group(2) or match.group(1))
    if "week" in (timeline or ""):
        number = re.search(r"\d+", timeline)
        return int(number.group(0)) if number else DEFAULT_TIMELINE_WEEKS
    return DEFAULT_TIMELINE_WEEKS


def format_weeks(weeks: float) -> str:
    weeks = math.ceil(weeks)
    if weeks <= 12:
        return f"{weeks} weeks"
    return f"{math.ceil(weeks / 4)} months"


def _action(action_id, action, responsible, timeline, priority, resources, deliverables) -> ActionItem:
    return ActionItem(
        id=action_id,
        action=action,
        responsible=responsible,
        timeline=timeline,
        priority=priority,
        resources=resources,
        deliverables=deliverables,
    )


def default_strategies() -> List[MitigationStrategy]:
    H, M, L = Priority.HIGH, Priority.MEDIUM, Priority.LOW
    return [
        MitigationStrategy(
            id="cost-001", risk_type=RiskCategory.COST_OVERRUN, risk_severity=ImpactLevel.LOW,
            strategy_name="Enhanced Cost Monitoring",
            description="Implement regular cost tracking and variance analysis to catch overruns early",
            action_items=[
                _action("cost-001-a1", "Set up weekly cost reporting system", "Project Manager", "1 week", H,
                        ["Cost tracking software", "Financial analyst"],
                        ["Weekly cost reports", "Variance analysis dashboard"]),
                _action("cost-001-a2", "Establish cost variance thresholds and alerts", "Finance Team", "2 weeks", M,
                        ["Alert system", "Threshold definitions"],
                        ["Alert configuration", "Escalation procedures"]),
            ],
            expected_impact=15, implementation_cost=L, implementation_time="2-3 weeks",
            prerequisites=["Project budget approved", "Cost tracking system available"],
            success_metrics=["Cost variance < 5%", "Early detection of overruns"],
            applicable_project_types=["Infrastructure", "Construction", "Development"],
            effectiveness=0.75,
        ),
        MitigationStrategy(
            id="cost-002", risk_type=RiskCategory.COST_OVERRUN, risk_severity=ImpactLevel.MEDIUM,
            strategy_name="Value Engineering Implementation",
            description="Systematic approach to optimize project value while maintaining functionality",
            action_items=[
                _action("cost-002-a1", "Conduct value engineering workshop", "Technical Team Lead", "1 week", H,
                        ["VE facilitator", "Cross-functional team", "Workshop venue"],
                        ["VE analysis report", "Cost optimization recommendations"]),
                _action("cost-002-a2", "Implement approved cost optimization measures", "Project Manager",
                        "4-6 weeks", H,
                        ["Implementation team", "Revised specifications"],
                        ["Updated project design", "Cost savings report"]),
            ],
            expected_impact=25, implementation_cost=M, implementation_time="6-8 weeks",
            prerequisites=["Design flexibility available", "Stakeholder buy-in"],
            success_metrics=["10-20% cost reduction", "Maintained functionality"],
            applicable_project_types=["Infrastructure", "Construction"],
            effectiveness=0.80,
        ),
        MitigationStrategy(
            id="cost-003", risk_type=RiskCategory.COST_OVERRUN, risk_severity=ImpactLevel.HIGH,
            strategy_name="Fixed-Price Contract with Penalties",
            description="Transfer cost overrun risk to contractors through fixed-price contracts",
            action_items=[
                _action("cost-003-a1", "Revise contract terms to fixed-price model", "Legal Team", "2-3 weeks", H,
                        ["Legal counsel", "Contract templates"],
                        ["Revised contract terms", "Penalty clauses"]),
                _action("cost-003-a2", "Negotiate with existing contractors or re-tender", "Procurement Team",
                        "4-6 weeks", H,
                        ["Negotiation team", "Market analysis"],
                        ["Signed fixed-price contracts", "Risk transfer documentation"]),
            ],
            expected_impact=40, implementation_cost=H, implementation_time="8-12 weeks",
            prerequisites=["Contract renegotiation possible", "Market competition available"],
            success_metrics=["Zero cost overrun liability", "Contractor performance bonds"],
            applicable_project_types=["Construction", "Infrastructure"],
            effectiveness=0.85,
        ),
        MitigationStrategy(
            id="delay-001", risk_type=RiskCategory.DELAY, risk_severity=ImpactLevel.LOW,
            strategy_name="Schedule Buffer Implementation",
            description="Add appropriate time buffers to critical path activities",
            action_items=[
                _action("delay-001-a1", "Analyze critical path and identify buffer requirements",
                        "Project Scheduler", "1 week", H,
                        ["Scheduling software", "Historical data"],
                        ["Critical path analysis", "Buffer recommendations"]),
                _action("delay-001-a2", "Update project schedule with buffers", "Project Manager", "1 week", M,
                        ["Updated schedule", "Stakeholder approval"],
                        ["Revised project timeline", "Buffer allocation plan"]),
            ],
            expected_impact=20, implementation_cost=L, implementation_time="2 weeks",
            prerequisites=["Schedule flexibility available", "Stakeholder agreement"],
            success_metrics=["On-time delivery", "Buffer utilization < 50%"],
            applicable_project_types=["All project types"],
            effectiveness=0.70,
        ),
        MitigationStrategy(
            id="delay-002", risk_type=RiskCategory.DELAY, risk_severity=ImpactLevel.MEDIUM,
            strategy_name="Parallel Processing Implementation",
            description="Execute non-dependent activities in parallel to reduce overall timeline",
            action_items=[
                _action("delay-002-a1", "Identify activities suitable for parallel execution", "Technical Lead",
                        "1 week", H,
                        ["Project schedule", "Dependency analysis"],
                        ["Parallel processing plan", "Resource allocation matrix"]),
                _action("delay-002-a2", "Reorganize teams and resources for parallel work", "Resource Manager",
                        "2 weeks", H,
                        ["Additional resources", "Team restructuring"],
                        ["Reorganized teams", "Parallel work streams"]),
            ],
            expected_impact=30, implementation_cost=M, implementation_time="3-4 weeks",
            prerequisites=["Resource availability", "Independent work streams"],
            success_metrics=["20-30% timeline reduction", "No quality compromise"],
            applicable_project_types=["Software", "Construction", "Infrastructure"],
            effectiveness=0.75,
        ),
        MitigationStrategy(
            id="delay-003", risk_type=RiskCategory.DELAY, risk_severity=ImpactLevel.HIGH,
            strategy_name="Fast-Track Construction Methods",
            description="Implement accelerated construction techniques and methodologies",
            action_items=[
                _action("delay-003-a1", "Evaluate fast-track construction options", "Construction Manager",
                        "2 weeks", H,
                        ["Construction experts", "Method analysis"],
                        ["Fast-track feasibility study", "Method recommendations"]),
                _action("delay-003-a2", "Implement prefabrication and modular construction", "Construction Team",
                        "8-12 weeks", H,
                        ["Prefab facilities", "Specialized equipment"],
                        ["Prefabricated components", "Accelerated construction"]),
            ],
            expected_impact=45, implementation_cost=H, implementation_time="12-16 weeks",
            prerequisites=["Design suitable for fast-track", "Specialized contractors available"],
            success_metrics=["30-50% timeline reduction", "Quality standards maintained"],
            applicable_project_types=["Construction", "Infrastructure"],
            effectiveness=0.80,
        ),
        MitigationStrategy(
            id="env-001", risk_type=RiskCategory.ENVIRONMENTAL, risk_severity=ImpactLevel.LOW,
            strategy_name="Environmental Management Plan",
            description="Develop comprehensive environmental management and monitoring plan",
            action_items=[
                _action("env-001-a1", "Conduct detailed environmental impact assessment",
                        "Environmental Consultant", "4 weeks", H,
                        ["Environmental experts", "Site surveys"],
                        ["EIA report", "Impact mitigation measures"]),
                _action("env-001-a2", "Develop environmental monitoring protocols", "Environmental Manager",
                        "2 weeks", M,
                        ["Monitoring equipment", "Protocol templates"],
                        ["Monitoring plan", "Compliance procedures"]),
            ],
            expected_impact=25, implementation_cost=M, implementation_time="6 weeks",
            prerequisites=["Environmental clearance pending", "Expert availability"],
            success_metrics=["Environmental compliance", "No regulatory violations"],
            applicable_project_types=["Infrastructure", "Industrial", "Construction"],
            effectiveness=0.75,
        ),
        MitigationStrategy(
            id="env-002", risk_type=RiskCategory.ENVIRONMENTAL, risk_severity=ImpactLevel.MEDIUM,
            strategy_name="Biodiversity Offset Program",
            description="Implement biodiversity conservation and offset measures",
            action_items=[
                _action("env-002-a1", "Design biodiversity offset program", "Conservation Specialist",
                        "3 weeks", H,
                        ["Biodiversity experts", "Offset site identification"],
                        ["Offset program design", "Conservation plan"]),
                _action("env-002-a2", "Implement habitat restoration activities", "Conservation Team",
                        "12-24 weeks", M,
                        ["Restoration materials", "Local communities"],
                        ["Restored habitats", "Monitoring reports"]),
            ],
            expected_impact=35, implementation_cost=H, implementation_time="24-30 weeks",
            prerequisites=["Offset sites available", "Regulatory approval"],
            success_metrics=["Net positive biodiversity impact", "Regulatory compliance"],
            applicable_project_types=["Infrastructure", "Mining", "Industrial"],
            effectiveness=0.80,
        ),
        MitigationStrategy(
            id="env-003", risk_type=RiskCategory.ENVIRONMENTAL, risk_severity=ImpactLevel.HIGH,
            strategy_name="Alternative Site Selection",
            description="Evaluate and relocate to environmentally less sensitive sites",
            action_items=[
                _action("env-003-a1", "Conduct alternative site assessment", "Site Selection Team", "6 weeks", H,
                        ["Site evaluation experts", "Environmental data"],
                        ["Alternative site options", "Comparative analysis"]),
                _action("env-003-a2", "Redesign project for alternative site", "Design Team", "8-12 weeks", H,
                        ["Design resources", "Site-specific data"],
                        ["Revised project design", "Updated permits"]),
            ],
            expected_impact=60, implementation_cost=H, implementation_time="16-20 weeks",
            prerequisites=["Alternative sites available", "Design flexibility"],
            success_metrics=["Reduced environmental impact", "Faster approvals"],
            applicable_project_types=["Infrastructure", "Industrial"],
            effectiveness=0.85,
        ),
        MitigationStrategy(
            id="resource-001", risk_type=RiskCategory.RESOURCE, risk_severity=ImpactLevel.LOW,
            strategy_name="Supplier Diversification",
            description="Establish relationships with multiple suppliers to reduce dependency",
            action_items=[
                _action("resource-001-a1", "Identify and qualify alternative suppliers", "Procurement Manager",
                        "3 weeks", H,
                        ["Supplier database", "Qualification criteria"],
                        ["Qualified supplier list", "Backup agreements"]),
                _action("resource-001-a2", "Establish framework agreements with multiple suppliers",
                        "Procurement Team", "4 weeks", M,
                        ["Legal support", "Contract templates"],
                        ["Framework agreements", "Supply chain redundancy"]),
            ],
            expected_impact=20, implementation_cost=L, implementation_time="6-8 weeks",
            prerequisites=["Multiple suppliers available", "Procurement flexibility"],
            success_metrics=["Supply chain resilience", "No single-source dependencies"],
            applicable_project_types=["All project types"],
            effectiveness=0.70,
        ),
        MitigationStrategy(
            id="resource-002", risk_type=RiskCategory.RESOURCE, risk_severity=ImpactLevel.MEDIUM,
            strategy_name="Local Capacity Building",
            description="Develop local workforce and supplier capabilities",
            action_items=[
                _action("resource-002-a1", "Assess local capacity and skill gaps", "HR Manager", "2 weeks", H,
                        ["Skills assessment tools", "Local surveys"],
                        ["Capacity assessment report", "Training needs analysis"]),
                _action("resource-002-a2", "Implement training and development programs", "Training Coordinator",
                        "8-12 weeks", H,
                        ["Training materials", "Local trainers"],
                        ["Trained workforce", "Certified suppliers"]),
            ],
            expected_impact=30, implementation_cost=M, implementation_time="12-16 weeks",
            prerequisites=["Local willingness to participate", "Training resources"],
            success_metrics=["Increased local capacity", "Reduced external dependency"],
            applicable_project_types=["Infrastructure", "Development", "Construction"],
            effectiveness=0.75,
        ),
        MitigationStrategy(
            id="resource-003", risk_type=RiskCategory.RESOURCE, risk_severity=ImpactLevel.HIGH,
            strategy_name="Strategic Resource Reserves",
            description="Establish strategic reserves of critical resources and materials",
            action_items=[
                _action("resource-003-a1", "Identify critical resources and calculate reserve requirements",
                        "Supply Chain Manager", "2 weeks", H,
                        ["Resource analysis", "Demand forecasting"],
                        ["Critical resource list", "Reserve requirements"]),
                _action("resource-003-a2", "Establish and maintain strategic reserves", "Logistics Manager",
                        "6-8 weeks", H,
                        ["Storage facilities", "Inventory management"],
                        ["Resource reserves", "Inventory management system"]),
            ],
            expected_impact=40, implementation_cost=H, implementation_time="8-12 weeks",
            prerequisites=["Storage capacity available", "Capital for reserves"],
            success_metrics=["Resource availability guarantee", "No resource-related delays"],
            applicable_project_types=["Large infrastructure", "Remote projects"],
            effectiveness=0.80,
        ),
    ]


class MitigationStrategyStore:
    """
    Owned, lock-guarded registry of mitigation strategies.

    Strategies are kept in insertion order so listings and planner ties are
    stable.
    """

    def __init__(self, strategies: Optional[Sequence[MitigationStrategy]] = None):
        self._lock = threading.Lock()
        self._strategies: Dict[str, MitigationStrategy] = {}
        for strategy in (default_strategies() if strategies is None else strategies):
            self.add(strategy)

    def get(self, strategy_id: str) -> Optional[MitigationStrategy]:
        with self._lock:
            return self._strategies.get(strategy_id)

    def list(
        self,
        risk_type: Optional[RiskCategory] = None,
        severity: Optional[ImpactLevel] = None,
    ) -> List[MitigationStrategy]:
        with self._lock:
            strategies = list(self._strategies.values())
        if risk_type is not None:
            strategies = [s for s in strategies if s.risk_type == risk_type]
        if severity is not None:
            strategies = [s for s in strategies if s.risk_severity == severity]
        return strategies

    def add(self, strategy: MitigationStrategy) -> None:
        with self._lock:
            if strategy.id in self._strategies:
                raise StrategyExistsError(strategy.id)
            self._strategies[strategy.id] = strategy

    def update(self, strategy_id: str, updates: Dict[str, Any]) -> bool:
        """Apply field updates; False when the strategy does not exist"""
        with self._lock:
            current = self._strategies.get(strategy_id)
            if current is None:
                return False
            merged = {**current.model_dump(), **updates, "id": strategy_id, "last_updated": datetime.now()}
            try:
                self._strategies[strategy_id] = MitigationStrategy.model_validate(merged)
            except ValidationError as e:
                logger.warning(f"Rejected update for strategy {strategy_id}: {e}")
                raise
        return True

    def remove(self, strategy_id: str) -> bool:
        with self._lock:
            return self._strategies.pop(strategy_id, None) is not None

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            strategies = list(self._strategies.values())
        return {
            "total_strategies": len(strategies),
            "strategies_by_type": dict(Counter(s.risk_type.value for s in strategies)),
            "strategies_by_severity": dict(Counter(s.risk_severity.value for s in strategies)),
            "last_updated": max((s.last_updated for s in strategies), default=None),
        }


class MitigationPlanner:
    """Builds a RiskMitigationPlan from risk factors and the strategy store"""

    def __init__(self, store: Optional[MitigationStrategyStore] = None):
        self.store = store or MitigationStrategyStore()

    def generate_plan(
        self,
        dpr_id: str,
        risk_factors: Sequence[RiskFactor],
        features: ProjectFeatures,
        overall_level: ImpactLevel = ImpactLevel.MEDIUM,
    ) -> RiskMitigationPlan:
        recommendations = [self.recommend_for(f, features) for f in risk_factors]

        strategies = [s for r in recommendations for s in r.recommended_strategies]
        prioritized = self.prioritize_strategies(strategies, overall_level)

        actions = [a for r in recommendations for a in r.prioritized_actions]
        quick_wins = [
            a for a in actions
            if a.priority == Priority.HIGH and parse_timeline_weeks(a.timeline) <= QUICK_WIN_WEEKS
        ]
        long_term = [a for a in actions if parse_timeline_weeks(a.timeline) > QUICK_WIN_WEEKS]

        if recommendations:
            reduction = min(100.0, sum(r.estimated_risk_reduction for r in recommendations) / len(recommendations))
        else:
            reduction = 0.0

        plan = RiskMitigationPlan(
            dpr_id=dpr_id,
            overall_risk_level=overall_level,
            recommendations=recommendations,
            prioritized_strategies=prioritized,
            quick_wins=quick_wins,
            long_term_actions=long_term,
            estimated_budget=self.estimate_budget(prioritized),
            implementation_timeline=self.estimate_timeline(prioritized),
            expected_risk_reduction=reduction,
        )
        logger.info(
            f"Mitigation plan for '{dpr_id}': {len(prioritized)} strategies, "
            f"{len(quick_wins)} quick wins, {reduction:.1f}% expected reduction"
        )
        return plan

    def recommend_for(self, factor: RiskFactor, features: ProjectFeatures) -> RiskMitigationRecommendation:
        category = RISK_TYPE_TO_CATEGORY.get(factor.type, RiskCategory.DELAY)
        applicable = [
            s for s in self.store.list(risk_type=category)
            if IMPACT_ORDER[s.risk_severity] <= IMPACT_ORDER[factor.impact]
        ]
        ranked = sorted(applicable, key=lambda s: self.score_strategy(s, features), reverse=True)
        chosen = ranked[:MAX_STRATEGIES_PER_RISK]

        if not chosen:
            return RiskMitigationRecommendation(risk_factor=factor)

        actions = [a for s in chosen for a in s.action_items]
        return RiskMitigationRecommendation(
            risk_factor=factor,
            recommended_strategies=chosen,
            prioritized_actions=self.prioritize_actions(actions, factor.impact),
            estimated_risk_reduction=sum(s.expected_impact * s.effectiveness for s in chosen) / len(chosen),
            total_implementation_cost=self.aggregate_cost([s.implementation_cost for s in chosen]),
            total_implementation_time=format_weeks(
                sum(parse_timeline_weeks(s.implementation_time) for s in chosen) / len(chosen)
            ),
            success_probability=sum(s.effectiveness for s in chosen) / len(chosen),
        )

    @staticmethod
    def score_strategy(strategy: MitigationStrategy, features: ProjectFeatures) -> float:
        score = strategy.effectiveness * 100
        score += strategy.expected_impact * 0.5
        score += COST_PENALTY[strategy.implementation_cost]

        if features.total_cost > LARGE_PROJECT_COST and strategy.implementation_cost == Priority.HIGH:
            score += 15
        if features.technical_complexity_score > 1.5 and "Engineering" in strategy.strategy_name:
            score += 10
        if features.remoteness_score > 1.5 and "Local" in strategy.strategy_name:
            score += 15

        return max(0.0, score)

    @staticmethod
    def prioritize_strategies(
        strategies: Sequence[MitigationStrategy],
        overall_level: ImpactLevel,
    ) -> List[MitigationStrategy]:
        unique: Dict[str, MitigationStrategy] = {}
        for strategy in strategies:
            unique.setdefault(strategy.id, strategy)

        if overall_level == ImpactLevel.HIGH:
            def value(s):
                return s.expected_impact * s.effectiveness
        else:
            def value(s):
                return s.expected_impact * s.effectiveness / COST_WEIGHT[s.implementation_cost]

        return sorted(unique.values(), key=value, reverse=True)

    @staticmethod
    def prioritize_actions(actions: Sequence[ActionItem], impact: ImpactLevel) -> List[ActionItem]:
        if impact == ImpactLevel.HIGH:
            return sorted(actions, key=lambda a: (-PRIORITY_ORDER[a.priority], parse_timeline_weeks(a.timeline)))
        return sorted(actions, key=lambda a: -PRIORITY_ORDER[a.priority])

    @staticmethod
    def aggregate_cost(costs: Sequence[Priority]) -> Priority:
        average = sum(COST_WEIGHT[c] for c in costs) / len(costs)
        if average <= 1.5:
            return Priority.LOW
        if average <= 2.5:
            return Priority.MEDIUM
        return Priority.HIGH

    @staticmethod
    def estimate_budget(strategies: Sequence[MitigationStrategy]) -> BudgetEstimate:
        budget = BudgetEstimate()
        for strategy in strategies:
            low, medium, high = BUDGET_RANGES[strategy.implementation_cost]
            budget.low += low
            budget.medium += medium
            budget.high += high
        return budget

    @staticmethod
    def estimate_timeline(strategies: Sequence[MitigationStrategy]) -> str:
        if not strategies:
            return "0 weeks"
        return format_weeks(max(parse_timeline_weeks(s.implementation_time) for s in strategies))
