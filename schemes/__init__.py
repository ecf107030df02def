"""DPR Assessor Schemes - registry loading, reference verification and scheme matching"""

from .models import (
    GovernmentScheme,
    SchemeType,
    SchemeStatus,
    VerificationStatus,
    GapSeverity,
    ProjectContext,
    ProjectLocation,
    MatchingOptions,
    SchemeMatchingRequest,
    SchemeGapAnalysis,
    SchemeVerificationResult,
    SchemeMatchingResult,
)
from .registry import load_registry, parse_registry
from .verifier import SchemeVerifier
from .matcher import SchemeMatcher

__all__ = [
    "GovernmentScheme",
    "SchemeType",
    "SchemeStatus",
    "VerificationStatus",
    "GapSeverity",
    "ProjectContext",
    "ProjectLocation",
    "MatchingOptions",
    "SchemeMatchingRequest",
    "SchemeGapAnalysis",
    "SchemeVerificationResult",
    "SchemeMatchingResult",
    "load_registry",
    "parse_registry",
    "SchemeVerifier",
    "SchemeMatcher",
]
