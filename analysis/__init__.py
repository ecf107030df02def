"""DPR Assessor Analysis - section classification, entity extraction and checklist scoring"""

from .models import (
    SectionType,
    EntityType,
    Section,
    ClassificationResult,
    ExtractedEntity,
    EntityExtractionResult,
    DocumentMetadata,
    GapAnalysisResult,
    FeatureExtractionResult,
)
from .section_classifier import SectionClassifier, ClassificationOptions
from .entity_extractor import EntityExtractor
from .checklist import Checklist, ChecklistStore, default_checklist, validate_checklist
from .gap_analyzer import GapAnalyzer
from .feature_aggregator import FeatureAggregator
from .project_profiler import ProjectProfiler, ProjectProfile

__all__ = [
    "SectionType",
    "EntityType",
    "Section",
    "ClassificationResult",
    "ExtractedEntity",
    "EntityExtractionResult",
    "DocumentMetadata",
    "GapAnalysisResult",
    "FeatureExtractionResult",
    "SectionClassifier",
    "ClassificationOptions",
    "EntityExtractor",
    "Checklist",
    "ChecklistStore",
    "default_checklist",
    "validate_checklist",
    "GapAnalyzer",
    "FeatureAggregator",
    "ProjectProfiler",
    "ProjectProfile",
]
