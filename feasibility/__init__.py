"""DPR Assessor Feasibility - completion probability, risk and what-if simulation"""

from .models import (
    RiskType,
    ImpactLevel,
    RiskLevel,
    RiskCategory,
    FeasibilityRating,
    ProjectFeatures,
    RiskFactor,
    HistoricalProject,
    MitigationStrategy,
    ProbabilityCalculationResult,
    RiskAnalysisResult,
    RecommendationResult,
    RiskClassificationResult,
    RiskMitigationPlan,
    SimulationParameters,
    SimulationResult,
    SimulationSession,
    WhatIfAnalysis,
)
from .risk_factors import identify_risk_factors, feasibility_recommendations
from .probability_calculator import ProbabilityCalculator
from .risk_classifier import RiskClassifier
from .mitigation import MitigationStrategyStore, MitigationPlanner, StrategyExistsError
from .session_store import SessionStore
from .what_if_simulator import WhatIfSimulator, STANDARD_SCENARIOS

__all__ = [
    "RiskType",
    "ImpactLevel",
    "RiskLevel",
    "RiskCategory",
    "FeasibilityRating",
    "ProjectFeatures",
    "RiskFactor",
    "HistoricalProject",
    "MitigationStrategy",
    "ProbabilityCalculationResult",
    "RiskAnalysisResult",
    "RecommendationResult",
    "RiskClassificationResult",
    "RiskMitigationPlan",
    "SimulationParameters",
    "SimulationResult",
    "SimulationSession",
    "WhatIfAnalysis",
    "identify_risk_factors",
    "feasibility_recommendations",
    "ProbabilityCalculator",
    "RiskClassifier",
    "MitigationStrategyStore",
    "MitigationPlanner",
    "StrategyExistsError",
    "SessionStore",
    "WhatIfSimulator",
    "STANDARD_SCENARIOS",
]
