"""DPR Assessor Core - configuration, errors and pipeline orchestration"""

from .config import (
    AnalysisConfig,
    ClassifierConfig,
    ExtractionConfig,
    GapAnalysisConfig,
    SchemeConfig,
    ProbabilityConfig,
    ProfileConfig,
    SimulationConfig,
    get_config,
    set_config,
)
from .errors import (
    DPRAnalysisError,
    ServiceNotInitializedError,
    SessionNotFoundError,
    ChecklistValidationError,
    StageError,
)

__all__ = [
    "AnalysisConfig",
    "ClassifierConfig",
    "ExtractionConfig",
    "GapAnalysisConfig",
    "SchemeConfig",
    "ProbabilityConfig",
    "ProfileConfig",
    "SimulationConfig",
    "get_config",
    "set_config",
    "DPRAnalysisError",
    "ServiceNotInitializedError",
    "SessionNotFoundError",
    "ChecklistValidationError",
    "StageError",
]
