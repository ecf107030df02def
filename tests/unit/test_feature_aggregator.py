"""
Unit tests for feature aggregation and searchable content
"""

import pytest
import sys
import os
from datetime import date

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))

from analysis.feature_aggregator import FeatureAggregator
from analysis.entity_extractor import EntityExtractor
from analysis.gap_analyzer import GapAnalyzer
from analysis.section_classifier import SectionClassifier
from analysis.models import EntityType, ExtractedEntity, Section, SectionType


@pytest.mark.unit
class TestEmptyDocument:

    def setup_method(self):
        self.aggregator = FeatureAggregator()

    def test_tags_for_empty_document(self):
        result = self.aggregator.extract_features([], "")
        assert result.searchable_content.tags == [
            "incomplete",
            "needs-improvement",
            "has-critical-issues",
            "has-missing-fields",
        ]

    def test_summary_for_empty_document(self):
        result = self.aggregator.extract_features([], "")
        assert result.searchable_content.summary == (
            "DPR with 0 sections. 0.0% complete. Overall score: 0.0/100. "
            "20 critical issues. 26 missing fields."
        )

    def test_metadata_counts_are_zero(self):
        metadata = self.aggregator.extract_features([], "").metadata
        assert metadata.total_sections == 0
        assert metadata.extracted_features.total_entities == 0
        assert metadata.completeness.missing_required_fields == 20
        assert metadata.confidence == 0.0


@pytest.mark.unit
class TestSampleDocument:

    def setup_method(self):
        classifier = SectionClassifier()
        classifier.initialize()
        self.classifier = classifier
        self.aggregator = FeatureAggregator(
            extractor=EntityExtractor(reference_date=date(2025, 1, 31)),
            gap_analyzer=GapAnalyzer(),
        )

    def _features(self, text):
        sections = self.classifier.classify_sections(text).sections
        return sections, self.aggregator.extract_features(sections, text)

    def test_section_and_entity_tags(self, sample_dpr_text):
        _, result = self._features(sample_dpr_text)
        tags = result.searchable_content.tags

        for tag in ("has-cost-info", "has-location-info", "has-timeline-info"):
            assert tag in tags
        for section_id in ("executive-summary", "cost-estimate", "timeline", "resources", "technical-specs"):
            assert f"has-{section_id}" in tags
        assert "has-environmental" not in tags

    def test_summary_mentions_cost_and_location(self, sample_dpr_text):
        _, result = self._features(sample_dpr_text)
        summary = result.searchable_content.summary

        assert summary.startswith("DPR with 5 sections.")
        assert "Total cost: Rs. 125,000,000" in summary
        assert "Meghalaya" in summary
        assert "Includes: Executive Summary, Cost Estimate" in summary

    def test_indexable_fields_cover_entities_and_sections(self, sample_dpr_text):
        sections, result = self._features(sample_dpr_text)
        fields = result.searchable_content.indexable_fields

        assert len(fields) == len(result.entities.entities) + len(sections)
        section_fields = [f for f in fields if f.type == "TEXT"]
        assert [f.name for f in section_fields] == [
            "executive_summary_content",
            "cost_estimate_content",
            "timeline_content",
            "resources_content",
            "technical_specs_content",
        ]

    def test_keywords_include_section_and_domain_terms(self, sample_dpr_text):
        _, result = self._features(sample_dpr_text)
        keywords = result.searchable_content.keywords

        assert "meghalaya" in keywords
        assert "budget" in keywords
        assert "road" in keywords
        assert len(keywords) == len(set(keywords))

    def test_precomputed_results_are_reused(self, sample_dpr_text):
        sections, first = self._features(sample_dpr_text)
        second = self.aggregator.extract_features(
            sections, sample_dpr_text,
            entity_result=first.entities,
            gap_result=first.gap_analysis,
        )
        assert second.entities is first.entities
        assert second.gap_analysis is first.gap_analysis

    def test_restricted_to_section_types(self, sample_dpr_text):
        sections = self.classifier.classify_sections(sample_dpr_text).sections
        result = self.aggregator.extract_features_from_sections(sections, [SectionType.COST_ESTIMATE])

        assert result.metadata.total_sections == 1
        assert result.metadata.section_types == ["COST_ESTIMATE"]
        assert result.document_metadata.total_cost == pytest.approx(125_000_000)
        assert result.gap_analysis.section_scores[1].present
        assert result.gap_analysis.section_scores[1].score > 0


@pytest.mark.unit
class TestIndexableFields:

    def test_search_weight_scales_with_confidence(self):
        entity = ExtractedEntity(EntityType.MONETARY, "Rs. 5 crore", 0.5, 0)
        section = Section(SectionType.EXECUTIVE_SUMMARY, "x" * 600, 0.8)

        fields = FeatureAggregator.indexable_fields([section], [entity])

        assert fields[0].name == "monetary_entity"
        assert fields[0].search_weight == pytest.approx(0.45)
        assert fields[1].search_weight == pytest.approx(0.8)
        assert len(fields[1].value) == 500
