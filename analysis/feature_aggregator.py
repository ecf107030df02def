"""
DPR Assessor: Feature Aggregator

Combines entity extraction and gap analysis into one result, then derives
the searchable view of a DPR used by search and indexing collaborators:
keywords, tags, a one-line summary and weighted indexable fields.
"""

import re
import time
import logging
from dataclasses import replace
from typing import Dict, Iterable, List, Optional, Sequence

from core.config import GapAnalysisConfig, get_config

from .entity_extractor import EntityExtractor
from .gap_analyzer import GapAnalyzer
from .models import (
    CompletenessMetrics,
    EntityExtractionResult,
    EntityType,
    ExtractedEntity,
    ExtractedFeatureCounts,
    FeatureExtractionResult,
    FeatureMetadata,
    GapAnalysisResult,
    IndexableField,
    SearchableContent,
    Section,
    SectionType,
)
from .text_utils import STOP_WORDS, mean

logger = logging.getLogger(__name__)


SECTION_KEYWORDS: Dict[SectionType, List[str]] = {
    SectionType.EXECUTIVE_SUMMARY: ["project", "objective", "summary", "overview"],
    SectionType.COST_ESTIMATE: ["cost", "budget", "estimate", "financial", "funding"],
    SectionType.TIMELINE: ["timeline", "schedule", "duration", "milestone", "phase"],
    SectionType.RESOURCES: ["resource", "manpower", "material", "equipment", "infrastructure"],
    SectionType.TECHNICAL_SPECS: ["technical", "specification", "design", "standard", "quality"],
}

IMPORTANT_TERM_PATTERNS = [
    re.compile(r"\b(project|development|construction|infrastructure|highway|road|bridge|building)\b", re.I),
    re.compile(r"\b(government|ministry|department|authority|agency)\b", re.I),
    re.compile(r"\b(northeast|assam|manipur|meghalaya|mizoram|nagaland|tripura|sikkim)\b", re.I),
    re.compile(r"\b(rural|urban|district|state|region|area|zone)\b", re.I),
]

DOMAIN_VOCABULARIES = {
    "infrastructure": [
        "infrastructure", "development", "construction", "engineering",
        "highway", "road", "bridge", "building", "facility", "structure",
    ],
    "government": [
        "government", "ministry", "policy", "scheme", "program", "initiative",
        "funding", "allocation", "budget", "grant", "subsidy",
    ],
    "regional": [
        "northeast", "northeastern", "assam", "manipur", "meghalaya", "mizoram",
        "nagaland", "tripura", "sikkim", "guwahati", "shillong", "imphal",
    ],
    "technical": [
        "specification", "standard", "quality", "design", "technical",
        "engineering", "construction", "material", "equipment", "machinery",
    ],
}

ENTITY_SEARCH_WEIGHTS = {
    EntityType.MONETARY: 0.9,
    EntityType.DATE: 0.8,
    EntityType.LOCATION: 0.85,
    EntityType.RESOURCE: 0.7,
}

SECTION_SEARCH_WEIGHTS = {
    SectionType.EXECUTIVE_SUMMARY: 1.0,
    SectionType.COST_ESTIMATE: 0.9,
    SectionType.TIMELINE: 0.8,
    SectionType.RESOURCES: 0.7,
    SectionType.TECHNICAL_SPECS: 0.8,
}
DEFAULT_SECTION_SEARCH_WEIGHT = 0.6
INDEXED_CONTENT_LIMIT = 500


class FeatureAggregator:
    """Entity extraction + gap analysis + searchable metadata for one DPR"""

    def __init__(
        self,
        extractor: Optional[EntityExtractor] = None,
        gap_analyzer: Optional[GapAnalyzer] = None,
        config: Optional[GapAnalysisConfig] = None,
    ):
        self.extractor = extractor or EntityExtractor()
        self.gap_analyzer = gap_analyzer or GapAnalyzer()
        self.config = config or get_config().gap

    def extract_features(
        self,
        sections: Sequence[Section],
        raw_text: str,
        entity_result: Optional[EntityExtractionResult] = None,
        gap_result: Optional[GapAnalysisResult] = None,
    ) -> FeatureExtractionResult:
        """
        Run the document analysis for sections and raw_text.

        Results already computed by an earlier stage can be passed in and
        are reused instead of being recomputed.
        """
        started = time.perf_counter()
        raw_text = raw_text or ""

        if entity_result is None:
            entity_result = self.extractor.extract_entities(raw_text)
        if gap_result is None:
            gap_result = self.gap_analyzer.analyze_gaps(sections, entity_result.entities)

        document_metadata = self.extractor.generate_metadata(raw_text, entity_result)
        metadata = self.build_metadata(sections, entity_result.entities, gap_result)
        searchable = SearchableContent(
            keywords=self.search_keywords(sections, entity_result.entities, raw_text),
            tags=self.content_tags(gap_result, entity_result.entities),
            summary=self.content_summary(sections, gap_result, document_metadata.total_cost,
                                         document_metadata.locations),
            indexable_fields=self.indexable_fields(sections, entity_result.entities),
        )

        result = FeatureExtractionResult(
            entities=entity_result,
            gap_analysis=gap_result,
            metadata=metadata,
            document_metadata=document_metadata,
            searchable_content=searchable,
            processing_time_ms=(time.perf_counter() - started) * 1000,
        )
        logger.info(
            f"Aggregated features: {len(searchable.keywords)} keywords, "
            f"{len(searchable.tags)} tags, {len(searchable.indexable_fields)} indexable fields"
        )
        return result

    def extract_features_from_sections(
        self,
        sections: Sequence[Section],
        section_types: Iterable[SectionType],
    ) -> FeatureExtractionResult:
        """Same analysis restricted to sections of the chosen types"""
        wanted = set(section_types)
        chosen: List[Section] = []
        offset = 0
        for section in sections:
            if section.type not in wanted:
                continue
            # Offsets are rebased onto the joined text so entity positions line up
            chosen.append(replace(section, start_position=offset, end_position=offset + len(section.content)))
            offset += len(section.content) + 2
        combined = "\n\n".join(s.content for s in chosen)
        return self.extract_features(chosen, combined)

    # ------------------------------------------------------------------
    # Metadata
    # ------------------------------------------------------------------

    @staticmethod
    def build_metadata(
        sections: Sequence[Section],
        entities: Sequence[ExtractedEntity],
        gap_result: GapAnalysisResult,
    ) -> FeatureMetadata:
        counts = {t: 0 for t in EntityType}
        for entity in entities:
            counts[entity.type] += 1

        entity_confidence = mean(e.confidence for e in entities)
        section_types: List[str] = []
        for section in sections:
            if section.type.value not in section_types:
                section_types.append(section.type.value)

        return FeatureMetadata(
            total_sections=len(sections),
            confidence=(entity_confidence + gap_result.overall_score / 100) / 2,
            section_types=section_types,
            extracted_features=ExtractedFeatureCounts(
                total_entities=len(entities),
                monetary_entities=counts[EntityType.MONETARY],
                date_entities=counts[EntityType.DATE],
                location_entities=counts[EntityType.LOCATION],
                resource_entities=counts[EntityType.RESOURCE],
            ),
            completeness=CompletenessMetrics(
                overall_score=gap_result.overall_score,
                completeness_percentage=gap_result.completeness_percentage,
                critical_issues=gap_result.summary.critical_issues,
                missing_required_fields=sum(1 for f in gap_result.missing_fields if f.required),
            ),
        )

    # ------------------------------------------------------------------
    # Searchable content
    # ------------------------------------------------------------------

    def search_keywords(
        self,
        sections: Sequence[Section],
        entities: Sequence[ExtractedEntity],
        raw_text: str,
    ) -> List[str]:
        keywords: Dict[str, None] = {}

        def add(word: str) -> None:
            word = word.lower().strip(".,:;()[]\"'")
            if len(word) > 2 and word not in STOP_WORDS:
                keywords.setdefault(word, None)

        for entity in entities:
            for word in entity.value.split():
                add(word)

        for section in sections:
            for word in SECTION_KEYWORDS.get(section.type, []):
                add(word)
            for pattern in IMPORTANT_TERM_PATTERNS:
                for match in pattern.finditer(section.content):
                    add(match.group(0))

        lower = raw_text.lower()
        for vocabulary in DOMAIN_VOCABULARIES.values():
            for term in vocabulary:
                if term in lower:
                    add(term)

        return list(keywords)[:self.config.max_feature_keywords]

    @staticmethod
    def content_tags(gap_result: GapAnalysisResult, entities: Sequence[ExtractedEntity]) -> List[str]:
        tags = []

        completeness = gap_result.completeness_percentage
        if completeness >= 80:
            tags.append("complete")
        elif completeness >= 60:
            tags.append("mostly-complete")
        elif completeness >= 40:
            tags.append("partially-complete")
        else:
            tags.append("incomplete")

        if gap_result.overall_score >= 80:
            tags.append("high-quality")
        elif gap_result.overall_score >= 60:
            tags.append("good-quality")
        else:
            tags.append("needs-improvement")

        types = {e.type for e in entities}
        if EntityType.MONETARY in types:
            tags.append("has-cost-info")
        if EntityType.LOCATION in types:
            tags.append("has-location-info")
        if EntityType.DATE in types:
            tags.append("has-timeline-info")

        if gap_result.summary.critical_issues > 0:
            tags.append("has-critical-issues")
        if gap_result.missing_fields:
            tags.append("has-missing-fields")

        tags.extend(f"has-{s.section_id}" for s in gap_result.section_scores if s.present)
        return tags

    @staticmethod
    def content_summary(
        sections: Sequence[Section],
        gap_result: GapAnalysisResult,
        total_cost: Optional[float] = None,
        locations: Sequence[str] = (),
    ) -> str:
        parts = [
            f"DPR with {len(sections)} sections",
            f"{gap_result.completeness_percentage:.1f}% complete",
            f"Overall score: {gap_result.overall_score:.1f}/100",
        ]
        if gap_result.summary.critical_issues > 0:
            parts.append(f"{gap_result.summary.critical_issues} critical issues")
        if gap_result.missing_fields:
            parts.append(f"{len(gap_result.missing_fields)} missing fields")
        if total_cost:
            parts.append(f"Total cost: Rs. {total_cost:,.0f}")
        if locations:
            parts.append(f"Locations: {', '.join(list(dict.fromkeys(locations))[:3])}")

        present = [s.section_name for s in gap_result.section_scores if s.present]
        if present:
            parts.append(f"Includes: {', '.join(present)}")

        return ". ".join(parts) + "."

    @staticmethod
    def indexable_fields(sections: Sequence[Section], entities: Sequence[ExtractedEntity]) -> List[IndexableField]:
        fields = [
            IndexableField(
                name=f"{e.type.value.lower()}_entity",
                value=e.value,
                type=e.type.value,
                confidence=e.confidence,
                search_weight=ENTITY_SEARCH_WEIGHTS.get(e.type, 0.5) * e.confidence,
            )
            for e in entities
        ]
        fields.extend(
            IndexableField(
                name=f"{s.type.value.lower()}_content",
                value=s.content[:INDEXED_CONTENT_LIMIT],
                type="TEXT",
                confidence=s.confidence,
                search_weight=SECTION_SEARCH_WEIGHTS.get(s.type, DEFAULT_SECTION_SEARCH_WEIGHT) * s.confidence,
            )
            for s in sections
        )
        return fields
