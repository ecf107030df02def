"""
DPR Assessor: Project Profiler

Derives the numeric ProjectFeatures profile and an initial risk factor list
from classified sections and extracted entities, so the probability and
simulation stages can run directly on a document.

All indicators are keyword counts over lower-cased section text; a keyword
counts once however often it appears.
"""

import re
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from core.config import ProfileConfig, get_config
from feasibility.models import HistoricalProject, ProjectFeatures, RiskFactor
from feasibility.risk_factors import identify_risk_factors

from .models import MonetaryEntity, Section, SectionType

logger = logging.getLogger(__name__)


DURATION_PATTERN = re.compile(r"(\d+)\s*(month|year)", re.IGNORECASE)
COST_PATTERN = re.compile(
    r"(?:total|cost|amount).*?(\d+(?:,\d+)*(?:\.\d+)?)\s*(lakh|crore|rupee)",
    re.IGNORECASE,
)

WEATHER_KEYWORDS = ["monsoon", "weather"]
MONSOON_MONTHS = 4
MONSOON_SEASONALITY = 1.2

COMPLEX_RESOURCE_KEYWORDS = ["specialized", "technical", "expert", "skilled", "imported", "custom"]
LABOR_KEYWORDS = ["manpower", "labor", "worker", "staff", "personnel"]
TECHNICAL_KEYWORDS = [
    "advanced", "complex", "sophisticated", "specialized",
    "innovative", "cutting-edge", "technical", "equipment",
]
ENVIRONMENTAL_KEYWORDS = [
    "environmental", "forest", "wildlife", "river",
    "mountain", "protected", "sensitive", "clearance",
]
REGULATORY_KEYWORDS = ["clearance", "approval", "permit", "license", "compliance", "regulation", "required"]
ACCESS_KEYWORDS = ["remote", "inaccessible", "difficult", "mountainous", "tribal"]
INFRASTRUCTURE_KEYWORDS = ["road", "railway", "airport", "connectivity", "power", "water"]
REMOTENESS_KEYWORDS = ["remote", "isolated", "far", "distant", "interior"]

# First match wins
CATEGORY_KEYWORDS = [
    ("road", ["road", "highway"]),
    ("water", ["water", "irrigation"]),
    ("building", ["building", "construction"]),
    ("energy", ["power", "energy"]),
]
DEFAULT_CATEGORY = "infrastructure"


def count_keywords(text: str, keywords: Sequence[str]) -> int:
    return sum(1 for k in keywords if k in text)


@dataclass
class ProjectProfile:
    features: ProjectFeatures
    risk_factors: List[RiskFactor] = field(default_factory=list)
    category: str = DEFAULT_CATEGORY

    def to_dict(self) -> Dict[str, Any]:
        return {
            "category": self.category,
            "features": self.features.model_dump(),
            "risk_factors": [rf.model_dump(mode="json") for rf in self.risk_factors],
        }


class ProjectProfiler:
    """Keyword and entity based feature derivation"""

    def __init__(self, config: Optional[ProfileConfig] = None):
        self.config = config or get_config().profile

    def profile(
        self,
        sections: Sequence[Section],
        monetary: Sequence[MonetaryEntity] = (),
        structured_total: Optional[float] = None,
        historical_projects: Optional[Sequence[HistoricalProject]] = None,
    ) -> ProjectProfile:
        """
        Build the project profile.

        Args:
            sections: Classified sections
            monetary: Monetary entities from extraction
            structured_total: Total cost supplied by the text-extraction collaborator, preferred when given
            historical_projects: Comparable projects; their count feeds similar_projects_count

        Returns:
            ProjectProfile with features, identified risk factors and project category
        """
        by_type = self._first_by_type(sections)
        all_text = " ".join(s.content for s in sections).lower()

        duration, seasonality, weather_months = self.timeline_features(by_type.get(SectionType.TIMELINE))
        total_cost = self.total_cost(by_type.get(SectionType.COST_ESTIMATE), monetary, structured_total)

        resource_text = by_type[SectionType.RESOURCES].content.lower() if SectionType.RESOURCES in by_type else ""
        resource_complexity = min(3.0, 1 + count_keywords(resource_text, COMPLEX_RESOURCE_KEYWORDS) * 0.2)
        labor_intensity = min(2.5, 1 + count_keywords(resource_text, LABOR_KEYWORDS) * 0.15)

        category = self.project_category(all_text)
        similar = (
            len(historical_projects) if historical_projects
            else self.config.default_similar_projects
        )

        features = ProjectFeatures(
            estimated_duration_months=duration,
            seasonality_factor=seasonality,
            weather_risk_months=weather_months,
            total_cost=total_cost,
            cost_per_month=total_cost / duration if total_cost > 0 and duration > 0 else 0,
            resource_complexity_score=resource_complexity,
            labor_intensity_score=labor_intensity,
            technical_complexity_score=min(3.0, 1 + count_keywords(all_text, TECHNICAL_KEYWORDS) * 0.25),
            environmental_complexity_score=min(2.5, 1 + count_keywords(all_text, ENVIRONMENTAL_KEYWORDS) * 0.2),
            regulatory_complexity_score=min(3.0, 1 + count_keywords(all_text, REGULATORY_KEYWORDS) * 0.3),
            accessibility_score=max(1.0, 3.0 - count_keywords(all_text, ACCESS_KEYWORDS) * 0.4),
            infrastructure_score=min(3.0, 1.0 + count_keywords(all_text, INFRASTRUCTURE_KEYWORDS) * 0.3),
            remoteness_score=min(3.0, 1 + count_keywords(all_text, REMOTENESS_KEYWORDS) * 0.3),
            similar_projects_count=similar,
            region_success_rate=self.config.region_success_rate,
            category_success_rate=self.config.category_success_rates.get(
                category, self.config.category_success_rates.get(DEFAULT_CATEGORY, 0.73)
            ),
        )
        risk_factors = identify_risk_factors(features)

        logger.info(
            f"Profiled {category} project: {duration:g} months, cost {total_cost:,.0f}, "
            f"{len(risk_factors)} risk factors"
        )
        return ProjectProfile(features=features, risk_factors=risk_factors, category=category)

    @staticmethod
    def _first_by_type(sections: Sequence[Section]) -> Dict[SectionType, Section]:
        by_type: Dict[SectionType, Section] = {}
        for section in sections:
            by_type.setdefault(section.type, section)
        return by_type

    def timeline_features(self, section: Optional[Section]):
        """(duration months, seasonality factor, weather risk months)"""
        duration = float(self.config.default_duration_months)
        seasonality = 1.0
        weather_months = 0

        if section is None:
            return duration, seasonality, weather_months

        match = DURATION_PATTERN.search(section.content)
        if match:
            value = int(match.group(1))
            duration = float(value * 12 if match.group(2).lower() == "year" else value)
            if duration <= 0:
                duration = float(self.config.default_duration_months)

        if count_keywords(section.content.lower(), WEATHER_KEYWORDS):
            weather_months = MONSOON_MONTHS
            seasonality = MONSOON_SEASONALITY

        return duration, seasonality, weather_months

    @staticmethod
    def total_cost(
        section: Optional[Section],
        monetary: Sequence[MonetaryEntity],
        structured_total: Optional[float] = None,
    ) -> float:
        if structured_total and structured_total > 0:
            return float(structured_total)

        inr_amounts = [m.numeric_value for m in monetary if m.currency == "INR" and m.numeric_value > 0]
        if inr_amounts:
            return float(max(inr_amounts))

        if section is None:
            return 0.0
        match = COST_PATTERN.search(section.content)
        if not match:
            return 0.0
        value = float(match.group(1).replace(",", ""))
        # unit words other than crore are read as lakh
        return value * 10_000_000 if match.group(2).lower() == "crore" else value * 100_000

    @staticmethod
    def project_category(text: str) -> str:
        for category, keywords in CATEGORY_KEYWORDS:
            if count_keywords(text, keywords):
                return category
        return DEFAULT_CATEGORY
