"""
DPR Assessor: Document Analysis - Data Models
Sections, entities and gap analysis records

Records in this module are produced by the analysis stages and serialized
as-is by reporting collaborators through to_dict().
"""

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import List, Dict, Any, Optional


class SectionType(str, Enum):
    """Topical category of a contiguous span of a DPR"""
    EXECUTIVE_SUMMARY = "EXECUTIVE_SUMMARY"
    COST_ESTIMATE = "COST_ESTIMATE"
    TIMELINE = "TIMELINE"
    RESOURCES = "RESOURCES"
    TECHNICAL_SPECS = "TECHNICAL_SPECS"
    ENVIRONMENTAL = "ENVIRONMENTAL"          # checklist / caller supplied only
    RISK_ASSESSMENT = "RISK_ASSESSMENT"      # checklist / caller supplied only
    OTHER = "OTHER"


# Types the classifier can assign, in tie-break order
CLASSIFIABLE_SECTION_TYPES = [
    SectionType.EXECUTIVE_SUMMARY,
    SectionType.COST_ESTIMATE,
    SectionType.TIMELINE,
    SectionType.RESOURCES,
    SectionType.TECHNICAL_SPECS,
]


class EntityType(str, Enum):
    """Common entity families"""
    MONETARY = "MONETARY"
    DATE = "DATE"
    LOCATION = "LOCATION"
    RESOURCE = "RESOURCE"


ENTITY_TYPE_ORDER = {
    EntityType.MONETARY: 0,
    EntityType.DATE: 1,
    EntityType.LOCATION: 2,
    EntityType.RESOURCE: 3,
}


class MonetaryType(str, Enum):
    AMOUNT = "AMOUNT"
    BUDGET_ITEM = "BUDGET_ITEM"
    COST_ESTIMATE = "COST_ESTIMATE"


class DateType(str, Enum):
    START_DATE = "START_DATE"
    END_DATE = "END_DATE"
    DEADLINE = "DEADLINE"
    MILESTONE_DATE = "MILESTONE_DATE"


class LocationType(str, Enum):
    COORDINATES = "COORDINATES"
    STATE = "STATE"
    CITY = "CITY"
    DISTRICT = "DISTRICT"
    LOCALITY = "LOCALITY"


class ResourceType(str, Enum):
    HUMAN_RESOURCE = "HUMAN_RESOURCE"
    MATERIAL = "MATERIAL"
    EQUIPMENT = "EQUIPMENT"
    INFRASTRUCTURE = "INFRASTRUCTURE"


# =============================================================================
# Sections
# =============================================================================

@dataclass(frozen=True)
class Section:
    """A classified span of document text. Immutable once created."""
    type: SectionType
    content: str
    confidence: float
    start_position: int = 0
    end_position: int = 0
    id: str = ""

    @property
    def length(self) -> int:
        return self.end_position - self.start_position

    def overlaps(self, other: "Section") -> bool:
        return not (self.end_position <= other.start_position or
                    other.end_position <= self.start_position)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "content": self.content,
            "confidence": round(self.confidence, 4),
            "start_position": self.start_position,
            "end_position": self.end_position,
        }


@dataclass
class ClassificationResult:
    sections: List[Section] = field(default_factory=list)
    overall_confidence: float = 0.0
    processing_time_ms: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sections": [s.to_dict() for s in self.sections],
            "overall_confidence": round(self.overall_confidence, 4),
            "processing_time_ms": round(self.processing_time_ms, 2),
        }


# =============================================================================
# Entities
# =============================================================================

@dataclass
class ExtractedEntity:
    """Common flattened entity shape"""
    type: EntityType
    value: str
    confidence: float
    position: int
    metadata: Dict[str, Any] = field(default_factory=dict)

    def sort_key(self):
        return (self.position, ENTITY_TYPE_ORDER[self.type], self.value)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "value": self.value,
            "confidence": round(self.confidence, 4),
            "position": self.position,
            "metadata": dict(self.metadata),
        }


@dataclass
class MonetaryEntity:
    value: str                       # matched text
    numeric_value: float
    currency: str                    # INR / USD
    monetary_type: MonetaryType
    confidence: float
    position: int

    def to_entity(self) -> ExtractedEntity:
        return ExtractedEntity(
            type=EntityType.MONETARY,
            value=self.value,
            confidence=self.confidence,
            position=self.position,
            metadata={
                "numeric_value": self.numeric_value,
                "currency": self.currency,
                "sub_type": self.monetary_type.value,
            },
        )


@dataclass
class DateEntity:
    value: str
    parsed_date: date
    date_type: DateType
    confidence: float
    position: int

    def to_entity(self) -> ExtractedEntity:
        return ExtractedEntity(
            type=EntityType.DATE,
            value=self.value,
            confidence=self.confidence,
            position=self.position,
            metadata={
                "parsed_date": self.parsed_date.isoformat(),
                "sub_type": self.date_type.value,
            },
        )


@dataclass
class GeospatialEntity:
    value: str
    location_type: LocationType
    confidence: float
    position: int
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    def to_entity(self) -> ExtractedEntity:
        metadata: Dict[str, Any] = {"sub_type": self.location_type.value}
        if self.has_coordinates:
            metadata["latitude"] = self.latitude
            metadata["longitude"] = self.longitude
        return ExtractedEntity(
            type=EntityType.LOCATION,
            value=self.value,
            confidence=self.confidence,
            position=self.position,
            metadata=metadata,
        )


@dataclass
class ResourceEntity:
    value: str
    resource_type: ResourceType
    confidence: float
    position: int
    quantity: Optional[float] = None
    unit: Optional[str] = None

    def to_entity(self) -> ExtractedEntity:
        return ExtractedEntity(
            type=EntityType.RESOURCE,
            value=self.value,
            confidence=self.confidence,
            position=self.position,
            metadata={
                "sub_type": self.resource_type.value,
                "quantity": self.quantity,
                "unit": self.unit,
            },
        )


@dataclass
class ExtractionMetadata:
    total_entities: int = 0
    processing_time_ms: float = 0.0
    average_confidence: float = 0.0


@dataclass
class EntityExtractionResult:
    entities: List[ExtractedEntity] = field(default_factory=list)
    monetary: List[MonetaryEntity] = field(default_factory=list)
    dates: List[DateEntity] = field(default_factory=list)
    locations: List[GeospatialEntity] = field(default_factory=list)
    resources: List[ResourceEntity] = field(default_factory=list)
    metadata: ExtractionMetadata = field(default_factory=ExtractionMetadata)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entities": [e.to_dict() for e in self.entities],
            "metadata": {
                "total_entities": self.metadata.total_entities,
                "processing_time_ms": round(self.metadata.processing_time_ms, 2),
                "average_confidence": round(self.metadata.average_confidence, 4),
            },
        }


@dataclass
class DocumentMetadata:
    """Structured facts lifted from entity extraction"""
    total_cost: Optional[float] = None
    locations: List[str] = field(default_factory=list)
    dates: List[str] = field(default_factory=list)
    resources: List[str] = field(default_factory=list)
    keywords: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_cost": self.total_cost,
            "locations": list(self.locations),
            "dates": list(self.dates),
            "resources": list(self.resources),
            "keywords": list(self.keywords),
        }


# =============================================================================
# Gap analysis
# =============================================================================

@dataclass
class FieldScore:
    field_id: str
    field_name: str
    present: bool
    value: Optional[str]
    confidence: float
    score: float
    max_score: float
    required: bool = True
    validation_errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "field_id": self.field_id,
            "field_name": self.field_name,
            "present": self.present,
            "value": self.value,
            "confidence": round(self.confidence, 4),
            "score": round(self.score, 4),
            "max_score": self.max_score,
            "required": self.required,
            "validation_errors": list(self.validation_errors),
        }


@dataclass
class SectionScore:
    section_id: str
    section_name: str
    section_type: SectionType
    present: bool
    score: float
    max_score: float
    completeness_percentage: float
    required: bool = True
    field_scores: List[FieldScore] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "section_id": self.section_id,
            "section_name": self.section_name,
            "section_type": self.section_type.value,
            "present": self.present,
            "score": round(self.score, 4),
            "max_score": self.max_score,
            "completeness_percentage": round(self.completeness_percentage, 2),
            "required": self.required,
            "field_scores": [f.to_dict() for f in self.field_scores],
        }


@dataclass
class MissingField:
    section_id: str
    section_name: str
    field_id: str
    field_name: str
    description: str
    weight: float
    required: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "section_id": self.section_id,
            "section_name": self.section_name,
            "field_id": self.field_id,
            "field_name": self.field_name,
            "description": self.description,
            "weight": self.weight,
            "required": self.required,
        }


@dataclass
class IncompleteField:
    section_id: str
    section_name: str
    field_id: str
    field_name: str
    extracted_value: str
    confidence: float
    issues: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "section_id": self.section_id,
            "section_name": self.section_name,
            "field_id": self.field_id,
            "field_name": self.field_name,
            "extracted_value": self.extracted_value,
            "confidence": round(self.confidence, 4),
            "issues": list(self.issues),
        }


@dataclass
class GapSummary:
    total_sections: int = 0
    present_sections: int = 0
    missing_sections: int = 0
    total_fields: int = 0
    present_fields: int = 0
    missing_fields: int = 0
    incomplete_fields: int = 0
    critical_issues: int = 0


@dataclass
class GapAnalysisResult:
    checklist_id: str
    overall_score: float                       # 0-100
    completeness_percentage: float             # 0-100
    section_scores: List[SectionScore] = field(default_factory=list)
    missing_fields: List[MissingField] = field(default_factory=list)
    incomplete_fields: List[IncompleteField] = field(default_factory=list)
    missing_sections: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)
    summary: GapSummary = field(default_factory=GapSummary)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "checklist_id": self.checklist_id,
            "overall_score": round(self.overall_score, 2),
            "completeness_percentage": round(self.completeness_percentage, 2),
            "section_scores": [s.to_dict() for s in self.section_scores],
            "missing_fields": [m.to_dict() for m in self.missing_fields],
            "incomplete_fields": [i.to_dict() for i in self.incomplete_fields],
            "missing_sections": list(self.missing_sections),
            "recommendations": list(self.recommendations),
            "summary": {
                "total_sections": self.summary.total_sections,
                "present_sections": self.summary.present_sections,
                "missing_sections": self.summary.missing_sections,
                "total_fields": self.summary.total_fields,
                "present_fields": self.summary.present_fields,
                "missing_fields": self.summary.missing_fields,
                "incomplete_fields": self.summary.incomplete_fields,
                "critical_issues": self.summary.critical_issues,
            },
        }


# =============================================================================
# Feature aggregation
# =============================================================================

@dataclass
class ExtractedFeatureCounts:
    total_entities: int = 0
    monetary_entities: int = 0
    date_entities: int = 0
    location_entities: int = 0
    resource_entities: int = 0


@dataclass
class CompletenessMetrics:
    overall_score: float = 0.0
    completeness_percentage: float = 0.0
    critical_issues: int = 0
    missing_required_fields: int = 0


@dataclass
class FeatureMetadata:
    total_sections: int = 0
    confidence: float = 0.0
    section_types: List[str] = field(default_factory=list)
    extracted_features: ExtractedFeatureCounts = field(default_factory=ExtractedFeatureCounts)
    completeness: CompletenessMetrics = field(default_factory=CompletenessMetrics)

    def to_dict(self) -> Dict[str, Any]:
        counts = self.extracted_features
        return {
            "total_sections": self.total_sections,
            "confidence": round(self.confidence, 4),
            "section_types": list(self.section_types),
            "extracted_features": {
                "total_entities": counts.total_entities,
                "monetary_entities": counts.monetary_entities,
                "date_entities": counts.date_entities,
                "location_entities": counts.location_entities,
                "resource_entities": counts.resource_entities,
            },
            "completeness": {
                "overall_score": round(self.completeness.overall_score, 2),
                "completeness_percentage": round(self.completeness.completeness_percentage, 2),
                "critical_issues": self.completeness.critical_issues,
                "missing_required_fields": self.completeness.missing_required_fields,
            },
        }


@dataclass
class IndexableField:
    name: str                        # e.g. monetary_entity, cost_estimate_content
    value: str
    type: str                        # TEXT or an entity type
    confidence: float
    search_weight: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "value": self.value,
            "type": self.type,
            "confidence": round(self.confidence, 4),
            "search_weight": round(self.search_weight, 4),
        }


@dataclass
class SearchableContent:
    keywords: List[str] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)
    summary: str = ""
    indexable_fields: List[IndexableField] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "keywords": list(self.keywords),
            "tags": list(self.tags),
            "summary": self.summary,
            "indexable_fields": [f.to_dict() for f in self.indexable_fields],
        }


@dataclass
class FeatureExtractionResult:
    entities: EntityExtractionResult
    gap_analysis: GapAnalysisResult
    metadata: FeatureMetadata
    document_metadata: DocumentMetadata
    searchable_content: SearchableContent
    processing_time_ms: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entities": self.entities.to_dict(),
            "gap_analysis": self.gap_analysis.to_dict(),
            "metadata": self.metadata.to_dict(),
            "document_metadata": self.document_metadata.to_dict(),
            "searchable_content": self.searchable_content.to_dict(),
            "processing_time_ms": round(self.processing_time_ms, 2),
        }
