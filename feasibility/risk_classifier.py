"""
DPR Assessor: Risk Classifier

Heuristic risk scorer for four risk families (cost overrun, delay,
environmental, resource). Every score is a documented linear function of
the project profile, so identical inputs always classify identically.

Historical project records, when supplied, contribute precedents and a
summary of outcomes, recurring risk patterns and regional trends.
"""

import logging
from collections import defaultdict
from typing import Dict, List, Optional, Sequence, Tuple

from .models import (
    CategoryRisk,
    CompletionStatus,
    HistoricalAnalysis,
    HistoricalPrecedent,
    HistoricalProject,
    ImpactLevel,
    PrecedentOutcome,
    ProjectFeatures,
    RegionalTrend,
    RiskCategory,
    RiskClassificationResult,
    RiskPattern,
    TrendDirection,
    clamp,
)

logger = logging.getLogger(__name__)

CATEGORY_WEIGHTS = {
    RiskCategory.COST_OVERRUN: 0.3,
    RiskCategory.DELAY: 0.3,
    RiskCategory.ENVIRONMENTAL: 0.2,
    RiskCategory.RESOURCE: 0.2,
}

# Calibration quality of each scorer, used as its confidence ceiling
SCORER_ACCURACY = {
    RiskCategory.COST_OVERRUN: 0.85,
    RiskCategory.DELAY: 0.82,
    RiskCategory.ENVIRONMENTAL: 0.78,
    RiskCategory.RESOURCE: 0.80,
}

DEFAULT_COST_VARIANCE = 0.15
MIN_PRECEDENT_SIMILARITY = 0.3
MAX_PRECEDENTS = 5
MAX_RISK_PATTERNS = 10
MIN_REGIONAL_SAMPLE = 5

PATTERN_ASSOCIATIONS = {
    "weather delays": ["DELAY", "COST_OVERRUN"],
    "resource shortage": ["RESOURCE", "DELAY"],
    "environmental clearance": ["ENVIRONMENTAL", "DELAY"],
    "cost escalation": ["COST_OVERRUN"],
    "technical complexity": ["DELAY", "COST_OVERRUN", "RESOURCE"],
    "regulatory approval": ["DELAY", "ENVIRONMENTAL"],
}

BASE_STRATEGIES = {
    RiskCategory.COST_OVERRUN: (
        ["Implement detailed cost monitoring and control systems",
         "Establish contingency reserves (10-20% of project cost)"],
        ["Conduct regular cost reviews and variance analysis",
         "Implement value engineering practices"],
        ["Consider fixed-price contracts with penalties",
         "Engage independent cost verification consultants"],
    ),
    RiskCategory.DELAY: (
        ["Develop detailed project schedule with critical path analysis",
         "Build weather contingency into timeline"],
        ["Implement parallel processing where possible",
         "Establish early warning systems for delays"],
        ["Consider fast-track construction methods",
         "Engage dedicated project management consultants"],
    ),
    RiskCategory.ENVIRONMENTAL: (
        ["Conduct comprehensive environmental impact assessment",
         "Engage with environmental regulatory authorities early"],
        ["Develop environmental management plan",
         "Implement biodiversity offset programs"],
        ["Consider alternative project locations or designs",
         "Engage environmental specialists and NGOs"],
    ),
    RiskCategory.RESOURCE: (
        ["Develop comprehensive resource procurement plan",
         "Establish relationships with multiple suppliers"],
        ["Implement resource monitoring and tracking systems",
         "Consider local capacity building programs"],
        ["Establish strategic resource reserves",
         "Consider alternative resource sources and technologies"],
    ),
}


def risk_level_for_score(score: float) -> ImpactLevel:
    """0-100 score to LOW (<=30), MEDIUM (<=70) or HIGH"""
    if score <= 30:
        return ImpactLevel.LOW
    if score <= 70:
        return ImpactLevel.MEDIUM
    return ImpactLevel.HIGH


def mitigation_strategies_for(category: RiskCategory, level: ImpactLevel) -> List[str]:
    base, elevated, severe = BASE_STRATEGIES[category]
    strategies = list(base)
    if level in (ImpactLevel.MEDIUM, ImpactLevel.HIGH):
        strategies.extend(elevated)
    if level == ImpactLevel.HIGH:
        strategies.extend(severe)
    return strategies


def project_similarity(features: ProjectFeatures, project: HistoricalProject) -> float:
    """Mean of relative cost closeness and relative duration closeness"""

    def closeness(a: float, b: float) -> float:
        largest = max(a, b)
        if largest <= 0:
            return 1.0
        return 1 - abs(a - b) / largest

    return (
        closeness(features.total_cost, project.estimated_cost)
        + closeness(features.estimated_duration_months, project.estimated_duration_months)
    ) / 2


def precedent_outcome(project: HistoricalProject) -> PrecedentOutcome:
    if project.completion_status == CompletionStatus.CANCELLED:
        return PrecedentOutcome.FAILED
    if project.completion_status == CompletionStatus.DELAYED:
        return PrecedentOutcome.DELAYED
    if project.overran_cost:
        return PrecedentOutcome.COST_OVERRUN
    return PrecedentOutcome.SUCCESS


def lessons_learned(project: HistoricalProject) -> List[str]:
    lessons = []
    if project.risk_factors:
        lessons.append(f"Risk factors identified: {', '.join(project.risk_factors)}")
    if project.overran_cost:
        lessons.append("Cost overrun occurred - ensure better cost estimation and contingency planning")
    if project.completion_status == CompletionStatus.DELAYED:
        lessons.append("Project experienced delays - consider timeline buffers and risk mitigation")
    return lessons or ["No specific lessons available"]


class RiskClassifier:
    """
    Deterministic four-family risk classifier.

    Each family's probability is a clamped linear function of normalized
    features, then reported as a 0-100 score. The confidence of a family is
    its scorer accuracy, discounted when few historical precedents back it.
    """

    def classify_risks(
        self,
        features: ProjectFeatures,
        historical_projects: Sequence[HistoricalProject] = (),
        dpr_id: str = "",
    ) -> RiskClassificationResult:
        history = list(historical_projects)
        precedents = self.find_precedents(features, history)
        cost_variance = self.historical_cost_variance(history)

        categories = [
            self._category(RiskCategory.COST_OVERRUN, *self.cost_overrun(features, cost_variance), precedents),
            self._category(RiskCategory.DELAY, *self.delay(features), precedents),
            self._category(RiskCategory.ENVIRONMENTAL, *self.environmental(features), precedents),
            self._category(RiskCategory.RESOURCE, *self.resource(features), precedents),
        ]

        weighted = sum(c.risk_score * CATEGORY_WEIGHTS[c.category] for c in categories)
        risk_score = int(round(weighted / sum(CATEGORY_WEIGHTS.values())))
        confidence = round(sum(c.confidence for c in categories) / len(categories), 2)

        result = RiskClassificationResult(
            dpr_id=dpr_id,
            overall_risk_level=risk_level_for_score(risk_score),
            risk_score=risk_score,
            categories=categories,
            historical_analysis=self.analyze_historical_data(history, features),
            confidence=confidence,
        )
        logger.info(f"Risk classification for '{dpr_id}': {risk_score} ({result.overall_risk_level.value})")
        return result

    def _category(
        self,
        category: RiskCategory,
        probability: float,
        factors: List[str],
        precedents: List[HistoricalPrecedent],
    ) -> CategoryRisk:
        score = int(round(probability * 100))
        level = risk_level_for_score(score)
        # Full confidence needs at least MAX_PRECEDENTS comparable projects
        support = 0.9 + 0.02 * min(len(precedents), MAX_PRECEDENTS)
        return CategoryRisk(
            category=category,
            risk_level=level,
            risk_score=score,
            probability=probability,
            confidence=SCORER_ACCURACY[category] * support,
            contributing_factors=factors,
            mitigation_strategies=mitigation_strategies_for(category, level),
            historical_precedents=[
                HistoricalPrecedent(
                    project_id=p.project_id,
                    project_name=p.project_name,
                    similarity=p.similarity,
                    outcome=p.outcome,
                    lessons_learned=list(p.lessons_learned),
                )
                for p in precedents
            ],
        )

    # ------------------------------------------------------------------
    # Family scorers: each returns (probability, contributing factors)
    # ------------------------------------------------------------------

    @staticmethod
    def cost_overrun(features: ProjectFeatures, cost_variance: float) -> Tuple[float, List[str]]:
        complexity = (features.technical_complexity_score + features.environmental_complexity_score) / 2
        probability = (
            0.15
            + 0.2 * min(1.0, features.total_cost / 500_000_000)
            + 0.15 * (complexity - 1) / 2
            + 0.5 * cost_variance
            + (0.1 if features.cost_per_month > 10_000_000 else 0.0)
        )

        factors = []
        if features.total_cost > 50_000_000:
            factors.append("High project cost increases overrun risk")
        if complexity >= 2.0:
            factors.append("High project complexity")
        if cost_variance > 0.2:
            factors.append("Historical cost variance in similar projects")
        return clamp(probability, 0.05, 0.95), factors

    @staticmethod
    def resource_availability(features: ProjectFeatures) -> float:
        """0.1 (scarce) to 1.0 (readily available)"""
        return clamp(
            1 - (features.remoteness_score - 1) * 0.3 - (3 - features.infrastructure_score) * 0.2,
            0.1, 1.0,
        )

    def delay(self, features: ProjectFeatures) -> Tuple[float, List[str]]:
        probability = (
            0.15
            + 0.2 * min(1.0, features.estimated_duration_months / 48)
            + 0.3 * features.weather_risk_months / 12
            + 0.2 * (features.seasonality_factor - 1)
            + 0.1 * (features.regulatory_complexity_score - 1)
            + 0.1 * (1 - self.resource_availability(features))
            + 0.05 * (3 - features.accessibility_score)
        )

        factors = []
        if features.estimated_duration_months > 36:
            factors.append("Long project duration increases delay risk")
        if features.weather_risk_months > 4:
            factors.append("Significant weather-related delays expected")
        if features.regulatory_complexity_score > 2.0:
            factors.append("Complex regulatory approval process")
        if features.accessibility_score < 1.5:
            factors.append("Poor site accessibility")
        return clamp(probability, 0.05, 0.95), factors

    @staticmethod
    def clearance_months(features: ProjectFeatures) -> float:
        return 12 + features.environmental_complexity_score * 18

    def environmental(self, features: ProjectFeatures) -> Tuple[float, List[str]]:
        clearance = self.clearance_months(features)
        probability = (
            0.1
            + 0.25 * (features.environmental_complexity_score - 1) / 1.5
            + 0.1 * features.weather_risk_months / 12
            + 0.1 * (features.remoteness_score - 1) / 2
            + (0.15 if clearance > 36 else 0.0)
        )

        factors = []
        if features.environmental_complexity_score > 2.0:
            factors.append("High environmental complexity")
        if clearance > 36:
            factors.append("Extended environmental clearance timeline")
        return clamp(probability, 0.05, 0.95), factors

    @staticmethod
    def transportation_challenge(features: ProjectFeatures) -> float:
        """0 (easy) to 1 (severe)"""
        return clamp(
            (features.remoteness_score - 1) / 2 * 0.7 + (3 - features.accessibility_score) / 2 * 0.3,
            0.0, 1.0,
        )

    def resource(self, features: ProjectFeatures) -> Tuple[float, List[str]]:
        transport = self.transportation_challenge(features)
        probability = (
            0.1
            + 0.2 * (features.labor_intensity_score - 1) / 1.5
            + 0.15 * (features.resource_complexity_score - 1) / 2
            + 0.15 * (features.technical_complexity_score - 1) / 2
            + 0.2 * transport
        )

        factors = []
        if features.labor_intensity_score > 2.0:
            factors.append("High labor intensity requirements")
        if features.technical_complexity_score > 2.5:
            factors.append("Specialized skills required")
        if transport > 0.6:
            factors.append("Significant transportation challenges")
        return clamp(probability, 0.05, 0.95), factors

    # ------------------------------------------------------------------
    # Historical records
    # ------------------------------------------------------------------

    @staticmethod
    def historical_cost_variance(projects: Sequence[HistoricalProject]) -> float:
        variances = [
            abs(p.actual_cost - p.estimated_cost) / p.estimated_cost
            for p in projects
            if p.actual_cost and p.estimated_cost
        ]
        if not variances:
            return DEFAULT_COST_VARIANCE
        return sum(variances) / len(variances)

    @staticmethod
    def find_precedents(
        features: ProjectFeatures,
        projects: Sequence[HistoricalProject],
    ) -> List[HistoricalPrecedent]:
        scored = [(project_similarity(features, p), p) for p in projects]
        scored = [(s, p) for s, p in scored if s > MIN_PRECEDENT_SIMILARITY]
        scored.sort(key=lambda sp: (-sp[0], sp[1].id))
        return [
            HistoricalPrecedent(
                project_id=p.id,
                project_name=p.project_name,
                similarity=s,
                outcome=precedent_outcome(p),
                lessons_learned=lessons_learned(p),
            )
            for s, p in scored[:MAX_PRECEDENTS]
        ]

    def analyze_historical_data(
        self,
        projects: Sequence[HistoricalProject],
        features: Optional[ProjectFeatures] = None,
    ) -> HistoricalAnalysis:
        """
        Outcome statistics over historical projects.

        With features given, statistics cover only projects similar to the
        profile; regional trends always use every record.
        """
        if not projects:
            return HistoricalAnalysis()

        if features is not None:
            similar = [p for p in projects if project_similarity(features, p) > MIN_PRECEDENT_SIMILARITY]
        else:
            similar = list(projects)

        successful = [
            p for p in similar
            if p.completion_status == CompletionStatus.COMPLETED
            and (not p.actual_cost or p.actual_cost <= p.estimated_cost * 1.1)
            and (not p.actual_duration_months or p.actual_duration_months <= p.estimated_duration_months * 1.2)
        ]
        success_rate = len(successful) / len(similar) if similar else 0.7

        delays = [
            p.actual_duration_months - p.estimated_duration_months
            for p in similar
            if p.actual_duration_months and p.actual_duration_months > p.estimated_duration_months
        ]
        overruns = [
            (p.actual_cost - p.estimated_cost) / p.estimated_cost * 100
            for p in similar
            if p.actual_cost and p.estimated_cost and p.actual_cost > p.estimated_cost
        ]

        return HistoricalAnalysis(
            similar_projects_count=len(similar),
            success_rate=round(success_rate, 2),
            average_delay_months=round(sum(delays) / len(delays), 1) if delays else 0.0,
            average_cost_overrun_percent=round(sum(overruns) / len(overruns), 1) if overruns else 0.0,
            risk_patterns=self.risk_patterns(similar),
            regional_trends=self.regional_trends(projects),
        )

    @staticmethod
    def risk_patterns(projects: Sequence[HistoricalProject]) -> List[RiskPattern]:
        counts: Dict[str, int] = defaultdict(int)
        impacts: Dict[str, List[ImpactLevel]] = defaultdict(list)

        for project in projects:
            if project.completion_status == CompletionStatus.CANCELLED:
                impact = ImpactLevel.HIGH
            elif (project.completion_status == CompletionStatus.DELAYED
                  or (project.actual_cost and project.actual_cost > project.estimated_cost * 1.2)):
                impact = ImpactLevel.MEDIUM
            else:
                impact = ImpactLevel.LOW
            for risk in project.risk_factors:
                counts[risk] += 1
                impacts[risk].append(impact)

        patterns = []
        for pattern, count in counts.items():
            seen = impacts[pattern]
            if seen.count(ImpactLevel.HIGH) > len(seen) * 0.3:
                impact = ImpactLevel.HIGH
            elif seen.count(ImpactLevel.MEDIUM) > len(seen) * 0.3:
                impact = ImpactLevel.MEDIUM
            else:
                impact = ImpactLevel.LOW
            patterns.append(RiskPattern(
                pattern=pattern,
                frequency=count / len(projects),
                impact=impact,
                associated_risks=PATTERN_ASSOCIATIONS.get(pattern.lower(), ["GENERAL"]),
            ))

        patterns.sort(key=lambda p: (-p.frequency, p.pattern))
        return patterns[:MAX_RISK_PATTERNS]

    @staticmethod
    def regional_trends(projects: Sequence[HistoricalProject]) -> List[RegionalTrend]:
        regions: Dict[str, Dict[str, list]] = {}
        for project in projects:
            data = regions.setdefault(project.location_state, {"delays": [], "overruns": [], "total": []})
            data["total"].append(project.id)
            if project.actual_duration_months and project.actual_duration_months > project.estimated_duration_months:
                data["delays"].append(project.actual_duration_months - project.estimated_duration_months)
            if project.actual_cost and project.estimated_cost and project.actual_cost > project.estimated_cost:
                data["overruns"].append((project.actual_cost - project.estimated_cost) / project.estimated_cost)

        trends = []
        for region, data in regions.items():
            if len(data["total"]) < MIN_REGIONAL_SAMPLE:
                continue

            if data["delays"]:
                avg_delay = sum(data["delays"]) / len(data["delays"])
                if avg_delay > 6:
                    direction = TrendDirection.INCREASING
                elif avg_delay < 3:
                    direction = TrendDirection.DECREASING
                else:
                    direction = TrendDirection.STABLE
                trends.append(RegionalTrend(region, RiskCategory.DELAY, direction, min(100.0, avg_delay * 10)))

            if data["overruns"]:
                avg_overrun = sum(data["overruns"]) / len(data["overruns"])
                if avg_overrun > 0.2:
                    direction = TrendDirection.INCREASING
                elif avg_overrun < 0.1:
                    direction = TrendDirection.DECREASING
                else:
                    direction = TrendDirection.STABLE
                trends.append(RegionalTrend(region, RiskCategory.COST_OVERRUN, direction, min(100.0, avg_overrun * 100)))

        return trends
