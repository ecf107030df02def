"""
DPR Assessor: Schemes - Data Models

GovernmentScheme records come whole from the registry collaborator and are
validated with pydantic at load time. Verification and matching results are
dataclasses serialized through to_dict().
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from feasibility.models import Priority


NORTHEAST_STATES = [
    "arunachal pradesh", "assam", "manipur", "meghalaya",
    "mizoram", "nagaland", "sikkim", "tripura",
]

ALL_STATES = "ALL_STATES"
NORTHEAST_REGION = "NORTHEAST"


def is_northeast_state(state: str) -> bool:
    return state.strip().lower() in NORTHEAST_STATES


class SchemeType(str, Enum):
    CENTRAL = "CENTRAL"
    STATE = "STATE"
    CENTRALLY_SPONSORED = "CENTRALLY_SPONSORED"


class SchemeStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    SUSPENDED = "SUSPENDED"
    DISCONTINUED = "DISCONTINUED"


class VerificationStatus(str, Enum):
    VERIFIED = "VERIFIED"
    PENDING = "PENDING"
    OUTDATED = "OUTDATED"


class ComplexityTier(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class GapSeverity(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class RecommendationType(str, Enum):
    NEW_SCHEME = "NEW_SCHEME"
    SCHEME_VERIFICATION = "SCHEME_VERIFICATION"
    FUNDING_ALIGNMENT = "FUNDING_ALIGNMENT"
    SCHEME_OPTIMIZATION = "SCHEME_OPTIMIZATION"


class MatchType(str, Enum):
    SEMANTIC = "SEMANTIC"
    KEYWORD = "KEYWORD"
    CATEGORY = "CATEGORY"


class FundingAlignment(str, Enum):
    UNDER = "UNDER"
    WITHIN = "WITHIN"
    OVER = "OVER"
    UNKNOWN = "UNKNOWN"


# =============================================================================
# Registry and request inputs
# =============================================================================

class GovernmentScheme(BaseModel):
    """Funding program as supplied by the scheme registry"""

    id: str = Field(..., description="Registry identifier")
    scheme_name: str = Field(..., description="Official scheme name")
    scheme_code: Optional[str] = Field(None, description="Short code, e.g. PMGSY")
    ministry: str = Field("", description="Administering ministry")
    department: Optional[str] = Field(None, description="Administering department")
    description: str = Field("", description="What the scheme funds")
    objectives: List[str] = Field(default_factory=list, description="Stated objectives")
    eligibility_criteria: List[str] = Field(default_factory=list, description="Eligibility conditions")
    funding_range_min: Optional[float] = Field(None, description="Smallest fundable project cost in INR")
    funding_range_max: Optional[float] = Field(None, description="Largest fundable project cost in INR")
    applicable_regions: List[str] = Field(default_factory=list, description="States, ALL_STATES or NORTHEAST")
    applicable_sectors: List[str] = Field(default_factory=list, description="Sectors the scheme covers")
    target_beneficiaries: List[str] = Field(default_factory=list, description="Beneficiary groups")
    keywords: List[str] = Field(default_factory=list, description="Search keywords")
    scheme_type: SchemeType = Field(SchemeType.CENTRAL, description="Funding source")
    status: SchemeStatus = Field(SchemeStatus.ACTIVE, description="Lifecycle status")
    required_documents: List[str] = Field(default_factory=list, description="Documents needed to apply")
    processing_time_days: Optional[int] = Field(None, description="Typical approval time")
    application_process: Optional[str] = Field(None, description="How to apply")
    average_funding_amount: Optional[float] = Field(None, description="Typical sanctioned amount in INR")
    monitoring_mechanism: Optional[str] = Field(None, description="How funded projects are monitored")
    success_metrics: List[str] = Field(default_factory=list, description="Outcome measures")
    verification_status: VerificationStatus = Field(VerificationStatus.PENDING, description="Registry data quality")

    @field_validator("funding_range_min", "funding_range_max", "average_funding_amount")
    @classmethod
    def non_negative_amount(cls, v):
        if v is None:
            return v
        return max(0.0, v)

    @field_validator("processing_time_days")
    @classmethod
    def non_negative_days(cls, v):
        if v is None:
            return v
        return max(0, v)

    @property
    def is_active(self) -> bool:
        return self.status == SchemeStatus.ACTIVE

    def summary(self) -> Dict[str, Any]:
        return {"id": self.id, "scheme_name": self.scheme_name, "scheme_code": self.scheme_code}


class ProjectLocation(BaseModel):
    state: str = Field("", description="State the project is located in")
    district: Optional[str] = Field(None, description="District, when known")


class ProjectContext(BaseModel):
    """Project profile used to score missing scheme opportunities"""

    description: str = Field("", description="Free-text project description")
    sectors: List[str] = Field(default_factory=list, description="Project sectors")
    location: ProjectLocation = Field(default_factory=ProjectLocation, description="Project location")
    estimated_cost: float = Field(0, description="Estimated project cost in INR")
    target_beneficiaries: List[str] = Field(default_factory=list, description="Intended beneficiaries")

    @field_validator("estimated_cost")
    @classmethod
    def non_negative_cost(cls, v):
        return max(0.0, v)


class MatchingOptions(BaseModel):
    include_inactive: bool = Field(False, description="Consider schemes that are not ACTIVE")
    preferred_scheme_types: List[SchemeType] = Field(default_factory=list, description="Restrict to these types")
    min_relevance_score: Optional[float] = Field(None, description="Overrides the similarity threshold")
    max_results: Optional[int] = Field(None, description="Overrides the result cap")

    @field_validator("min_relevance_score")
    @classmethod
    def relevance_range(cls, v):
        if v is None:
            return v
        return max(0.0, min(1.0, v))

    @field_validator("max_results")
    @classmethod
    def positive_results(cls, v):
        if v is None:
            return v
        return max(1, v)


class SchemeMatchingRequest(BaseModel):
    document_id: str = Field(..., description="DPR identifier")
    project_description: str = Field("", description="Free-text project description")
    project_type: Optional[str] = Field(None, description="Project category")
    sectors: List[str] = Field(default_factory=list, description="Project sectors")
    target_beneficiaries: List[str] = Field(default_factory=list, description="Intended beneficiaries")
    location: Optional[ProjectLocation] = Field(None, description="Project location")
    estimated_cost: Optional[float] = Field(None, description="Estimated project cost in INR")
    existing_schemes: List[str] = Field(default_factory=list, description="Schemes the DPR already mentions")
    matching_options: MatchingOptions = Field(default_factory=MatchingOptions, description="Per-call overrides")

    @field_validator("estimated_cost")
    @classmethod
    def non_negative_cost(cls, v):
        if v is None:
            return v
        return max(0.0, v)


# =============================================================================
# Results
# =============================================================================

@dataclass
class SchemeSuggestion:
    reference: str
    scheme: GovernmentScheme
    confidence: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "reference": self.reference,
            "suggested_scheme": self.scheme.summary(),
            "confidence": round(self.confidence, 4),
        }


@dataclass
class OpportunityAnalysis:
    scheme: GovernmentScheme
    relevance_score: float
    potential_benefit: str
    implementation_complexity: ComplexityTier
    time_to_implement: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "scheme": self.scheme.summary(),
            "relevance_score": round(self.relevance_score, 4),
            "potential_benefit": self.potential_benefit,
            "implementation_complexity": self.implementation_complexity.value,
            "time_to_implement": self.time_to_implement,
        }


@dataclass
class SchemeGapAnalysis:
    mentioned_schemes: List[str] = field(default_factory=list)
    verified_schemes: List[str] = field(default_factory=list)
    missing_opportunities: List[str] = field(default_factory=list)
    incorrect_references: List[str] = field(default_factory=list)
    optimization_suggestions: List[str] = field(default_factory=list)
    completeness_score: float = 0.0            # 0-1
    severity: GapSeverity = GapSeverity.LOW

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mentioned_schemes": list(self.mentioned_schemes),
            "verified_schemes": list(self.verified_schemes),
            "missing_opportunities": list(self.missing_opportunities),
            "incorrect_references": list(self.incorrect_references),
            "optimization_suggestions": list(self.optimization_suggestions),
            "completeness_score": round(self.completeness_score, 4),
            "severity": self.severity.value,
        }


@dataclass
class SchemeRecommendation:
    type: RecommendationType
    priority: Priority
    recommendation: str
    expected_benefit: str
    implementation_steps: List[str] = field(default_factory=list)
    scheme: Optional[GovernmentScheme] = None
    potential_funding: Optional[float] = None
    timeframe: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "priority": self.priority.value,
            "recommendation": self.recommendation,
            "expected_benefit": self.expected_benefit,
            "implementation_steps": list(self.implementation_steps),
            "scheme": self.scheme.summary() if self.scheme else None,
            "potential_funding": self.potential_funding,
            "timeframe": self.timeframe,
        }


@dataclass
class SchemeVerificationResult:
    verified_schemes: List[GovernmentScheme] = field(default_factory=list)
    unverified_schemes: List[str] = field(default_factory=list)
    suggestions: List[SchemeSuggestion] = field(default_factory=list)
    opportunities: List[OpportunityAnalysis] = field(default_factory=list)
    gap_analysis: SchemeGapAnalysis = field(default_factory=SchemeGapAnalysis)
    recommendations: List[SchemeRecommendation] = field(default_factory=list)
    processing_time_ms: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "verified_schemes": [s.summary() for s in self.verified_schemes],
            "unverified_schemes": list(self.unverified_schemes),
            "suggestions": [s.to_dict() for s in self.suggestions],
            "opportunities": [o.to_dict() for o in self.opportunities],
            "gap_analysis": self.gap_analysis.to_dict(),
            "recommendations": [r.to_dict() for r in self.recommendations],
            "processing_time_ms": round(self.processing_time_ms, 2),
        }


@dataclass
class ApplicabilityAnalysis:
    eligibility_met: bool = True
    missing_criteria: List[str] = field(default_factory=list)
    funding_alignment: FundingAlignment = FundingAlignment.UNKNOWN
    regional_applicability: bool = True
    sector_alignment: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "eligibility_met": self.eligibility_met,
            "missing_criteria": list(self.missing_criteria),
            "funding_alignment": self.funding_alignment.value,
            "regional_applicability": self.regional_applicability,
            "sector_alignment": self.sector_alignment,
        }


@dataclass
class SchemeMatch:
    scheme: GovernmentScheme
    match_type: MatchType
    relevance_score: float                     # 0-1
    confidence_score: float                    # 0-1
    matching_keywords: List[str] = field(default_factory=list)
    matching_criteria: List[str] = field(default_factory=list)
    recommendation_reason: str = ""
    applicability: ApplicabilityAnalysis = field(default_factory=ApplicabilityAnalysis)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "scheme": self.scheme.summary(),
            "match_type": self.match_type.value,
            "relevance_score": round(self.relevance_score, 4),
            "confidence_score": round(self.confidence_score, 4),
            "matching_keywords": list(self.matching_keywords),
            "matching_criteria": list(self.matching_criteria),
            "recommendation_reason": self.recommendation_reason,
            "applicability": self.applicability.to_dict(),
        }


@dataclass
class SchemeMatchingResult:
    document_id: str
    matches: List[SchemeMatch] = field(default_factory=list)
    gap_analysis: SchemeGapAnalysis = field(default_factory=SchemeGapAnalysis)
    recommendations: List[SchemeRecommendation] = field(default_factory=list)
    total_schemes_evaluated: int = 0
    processing_time_ms: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "document_id": self.document_id,
            "matches": [m.to_dict() for m in self.matches],
            "gap_analysis": self.gap_analysis.to_dict(),
            "recommendations": [r.to_dict() for r in self.recommendations],
            "total_schemes_evaluated": self.total_schemes_evaluated,
            "processing_time_ms": round(self.processing_time_ms, 2),
        }
