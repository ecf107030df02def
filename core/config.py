"""
DPR Assessor Configuration
Environment-overridable defaults for every analysis stage
"""

import os
from typing import Optional, Tuple
from dataclasses import dataclass, field
from enum import Enum


class Environment(str, Enum):
    """Deployment environment"""
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError:
        return default


@dataclass
class ClassifierConfig:
    """Defaults for section classification"""
    confidence_threshold: float = 0.6
    enable_overlap_detection: bool = True
    min_section_length: int = 50
    max_sections: int = 20

    def __post_init__(self):
        """Load from environment variables"""
        self.confidence_threshold = _env_float("DPR_CONFIDENCE_THRESHOLD", self.confidence_threshold)
        self.min_section_length = _env_int("DPR_MIN_SECTION_LENGTH", self.min_section_length)
        self.max_sections = _env_int("DPR_MAX_SECTIONS", self.max_sections)


@dataclass
class ExtractionConfig:
    """Entity extraction settings"""
    context_window: int = 50                     # chars either side of a match
    max_metadata_keywords: int = 50

    # Northeast India bounding box for the coordinate confidence bonus
    northeast_latitude: Tuple[float, float] = (22.0, 29.0)
    northeast_longitude: Tuple[float, float] = (88.0, 97.0)


@dataclass
class GapAnalysisConfig:
    """Checklist scoring settings"""
    total_weight: float = 100.0
    incomplete_confidence_threshold: float = 0.7
    critical_confidence_threshold: float = 0.5
    section_enhancement_threshold: float = 50.0  # percent
    max_feature_keywords: int = 100


@dataclass
class SchemeConfig:
    """Scheme verification and matching settings"""
    # Verification
    verification_confidence_threshold: float = 0.7
    max_suggestions: int = 10
    suggestions_per_mention: int = 5
    suggestion_floor: float = 0.3
    substring_similarity_threshold: float = 0.8
    opportunity_relevance_threshold: float = 0.4
    max_missing_opportunities: int = 8
    max_opportunity_analysis: int = 10

    # Matching
    similarity_threshold: float = 0.3
    max_results: int = 10
    min_confidence: float = 0.4
    funding_tolerance_low: float = 0.5
    funding_tolerance_high: float = 1.5

    def __post_init__(self):
        """Load from environment variables"""
        self.max_suggestions = _env_int("DPR_SCHEME_MAX_SUGGESTIONS", self.max_suggestions)
        self.max_results = _env_int("DPR_SCHEME_MAX_RESULTS", self.max_results)


@dataclass
class ProbabilityConfig:
    """Weights and bounds for completion probability"""
    timeline_weight: float = 0.25
    resource_weight: float = 0.20
    complexity_weight: float = 0.25
    location_weight: float = 0.15
    historical_weight: float = 0.15

    max_risk_adjustment: float = 0.4
    min_probability: float = 0.05
    max_probability: float = 0.95

    max_recommendations: int = 8
    max_potential_improvement: float = 25.0

    @property
    def weights(self) -> Tuple[float, float, float, float, float]:
        return (
            self.timeline_weight,
            self.resource_weight,
            self.complexity_weight,
            self.location_weight,
            self.historical_weight,
        )


@dataclass
class ProfileConfig:
    """Defaults used when deriving project features from a document"""
    default_duration_months: int = 12
    default_similar_projects: int = 15
    region_success_rate: float = 0.72
    category_success_rates: dict = field(default_factory=lambda: {
        "road": 0.75,
        "water": 0.68,
        "building": 0.82,
        "energy": 0.71,
        "infrastructure": 0.73,
    })


@dataclass
class SimulationConfig:
    """What-if session store limits"""
    session_ttl_seconds: float = 3600.0
    session_capacity: int = 256
    max_scenario_recommendations: int = 3
    max_history: int = 50

    def __post_init__(self):
        """Load from environment variables"""
        self.session_ttl_seconds = _env_float("DPR_SESSION_TTL_SECONDS", self.session_ttl_seconds)
        self.session_capacity = _env_int("DPR_SESSION_CAPACITY", self.session_capacity)
        self.max_history = _env_int("DPR_SESSION_MAX_HISTORY", self.max_history)


@dataclass
class AnalysisConfig:
    """Master configuration for the DPR analysis pipeline"""
    environment: Environment = Environment.DEVELOPMENT

    classifier: ClassifierConfig = field(default_factory=ClassifierConfig)
    extraction: ExtractionConfig = field(default_factory=ExtractionConfig)
    gap: GapAnalysisConfig = field(default_factory=GapAnalysisConfig)
    schemes: SchemeConfig = field(default_factory=SchemeConfig)
    probability: ProbabilityConfig = field(default_factory=ProbabilityConfig)
    profile: ProfileConfig = field(default_factory=ProfileConfig)
    simulation: SimulationConfig = field(default_factory=SimulationConfig)

    log_level: str = "INFO"

    def __post_init__(self):
        """Load environment from env var"""
        env_str = os.getenv("DPR_ENV", self.environment.value)
        try:
            self.environment = Environment(env_str.lower())
        except ValueError:
            self.environment = Environment.DEVELOPMENT

        self.log_level = os.getenv("DPR_LOG_LEVEL", self.log_level).upper()

    @classmethod
    def from_env(cls) -> "AnalysisConfig":
        """Create configuration from environment variables"""
        return cls(
            classifier=ClassifierConfig(),
            extraction=ExtractionConfig(),
            gap=GapAnalysisConfig(),
            schemes=SchemeConfig(),
            probability=ProbabilityConfig(),
            profile=ProfileConfig(),
            simulation=SimulationConfig(),
        )

    def validate(self) -> list:
        """Validate configuration and return list of issues"""
        issues = []

        if not 0.0 <= self.classifier.confidence_threshold <= 1.0:
            issues.append("classifier.confidence_threshold must be within [0, 1]")
        if self.classifier.max_sections < 1:
            issues.append("classifier.max_sections must be positive")

        weight_sum = sum(self.probability.weights)
        if abs(weight_sum - 1.0) > 1e-6:
            issues.append(f"probability weights sum to {weight_sum:.3f}, expected 1.0")
        if self.probability.min_probability >= self.probability.max_probability:
            issues.append("probability.min_probability must be below max_probability")

        if self.schemes.max_suggestions < 0:
            issues.append("schemes.max_suggestions must not be negative")

        if self.simulation.session_capacity < 1:
            issues.append("simulation.session_capacity must be positive")
        if self.simulation.session_ttl_seconds <= 0:
            issues.append("simulation.session_ttl_seconds must be positive")
        if self.simulation.max_history < 1:
            issues.append("simulation.max_history must be positive")

        return issues


# Global configuration instance
_config: Optional[AnalysisConfig] = None


def get_config() -> AnalysisConfig:
    """Get the global configuration instance"""
    global _config
    if _config is None:
        _config = AnalysisConfig.from_env()
    return _config


def set_config(config: Optional[AnalysisConfig]) -> None:
    """Set the global configuration instance (None resets to environment defaults)"""
    global _config
    _config = config
