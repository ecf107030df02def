"""
Unit tests for section classification

Tests cover:
- Lifecycle guard (initialize / cleanup)
- Structural splitting and typing of the five core sections
- Confidence threshold, minimum length and max_sections limits
- Overlap resolution keeping the more confident section
"""

import pytest
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))

from analysis.section_classifier import SectionClassifier, ClassificationOptions
from analysis.models import Section, SectionType
from core.errors import ServiceNotInitializedError


@pytest.mark.unit
class TestLifecycle:
    """Classifier refuses work until initialized"""

    def test_classify_before_initialize_raises(self):
        classifier = SectionClassifier()
        with pytest.raises(ServiceNotInitializedError):
            classifier.classify_sections("1. EXECUTIVE SUMMARY\nAnything")

    def test_cleanup_returns_to_uninitialized(self):
        classifier = SectionClassifier()
        classifier.initialize()
        assert classifier.is_initialized
        assert classifier.health_status()["status"] == "healthy"

        classifier.cleanup()
        assert not classifier.is_initialized
        with pytest.raises(ServiceNotInitializedError):
            classifier.classify_sections("text")

    def test_supported_types_are_the_five_core_sections(self):
        classifier = SectionClassifier()
        assert classifier.supported_section_types == [
            SectionType.EXECUTIVE_SUMMARY,
            SectionType.COST_ESTIMATE,
            SectionType.TIMELINE,
            SectionType.RESOURCES,
            SectionType.TECHNICAL_SPECS,
        ]


@pytest.mark.unit
class TestClassification:
    """Classification of a structured DPR"""

    def setup_method(self):
        self.classifier = SectionClassifier()
        self.classifier.initialize()

    def test_numbered_sections_are_typed(self, sample_dpr_text):
        result = self.classifier.classify_sections(sample_dpr_text)

        types = [s.type for s in result.sections]
        assert types == [
            SectionType.EXECUTIVE_SUMMARY,
            SectionType.COST_ESTIMATE,
            SectionType.TIMELINE,
            SectionType.RESOURCES,
            SectionType.TECHNICAL_SPECS,
        ]

    def test_section_ids_are_sequential(self, sample_dpr_text):
        result = self.classifier.classify_sections(sample_dpr_text)
        assert [s.id for s in result.sections] == [f"section-{i}" for i in range(1, 6)]

    def test_sections_are_ordered_and_disjoint(self, sample_dpr_text):
        result = self.classifier.classify_sections(sample_dpr_text)

        for earlier, later in zip(result.sections, result.sections[1:]):
            assert earlier.end_position <= later.start_position
        for section in result.sections:
            assert 0.6 <= section.confidence <= 1.0
            assert len(section.content) >= 50

    def test_cost_section_content_is_trimmed(self, sample_dpr_text):
        result = self.classifier.classify_sections(sample_dpr_text)
        cost = result.sections[1]
        assert cost.content.startswith("2. COST ESTIMATE")
        assert cost.content == cost.content.strip()

    def test_overall_confidence_includes_diversity_bonus(self, sample_dpr_text):
        result = self.classifier.classify_sections(sample_dpr_text)
        # mean confidence plus min(5 * 0.1, 0.3), clamped
        assert result.overall_confidence == pytest.approx(1.0)

    def test_empty_text_yields_no_sections(self):
        result = self.classifier.classify_sections("")
        assert result.sections == []
        assert result.overall_confidence == 0.0

    def test_unrelated_text_is_dropped(self):
        text = "The quick brown fox jumps over the lazy dog again and again and again until it is tired."
        result = self.classifier.classify_sections(text)
        assert result.sections == []

    def test_max_sections_truncates(self, sample_dpr_text):
        options = ClassificationOptions(max_sections=2)
        result = self.classifier.classify_sections(sample_dpr_text, options)
        assert len(result.sections) == 2
        assert [s.id for s in result.sections] == ["section-1", "section-2"]

    def test_high_min_length_filters_everything(self, sample_dpr_text):
        options = ClassificationOptions(min_section_length=5000)
        result = self.classifier.classify_sections(sample_dpr_text, options)
        assert result.sections == []

    def test_plain_paragraphs_are_split(self):
        summary = (
            "Executive summary of the project. This project overview describes the objective "
            "and scope of a new rural road in Meghalaya."
        )
        cost = (
            "The cost estimate and budget for the work is Rs. 4.50 crore including material "
            "and labor costs."
        )
        timeline = (
            "The implementation schedule spans 18 months with the first phase ending after "
            "six months of work."
        )
        text = summary + "\n\n" + cost + "\n \n\n  " + timeline + "\n"

        result = self.classifier.classify_sections(text)

        assert [s.type for s in result.sections] == [
            SectionType.EXECUTIVE_SUMMARY,
            SectionType.COST_ESTIMATE,
            SectionType.TIMELINE,
        ]
        for section, paragraph in zip(result.sections, (summary, cost, timeline)):
            assert section.content == paragraph
            assert section.start_position == text.index(paragraph)
            assert section.end_position == text.index(paragraph) + len(paragraph)
            assert text[section.start_position:section.end_position] == paragraph

    def test_to_dict_serializes_type_value(self, sample_dpr_text):
        result = self.classifier.classify_sections(sample_dpr_text)
        data = result.to_dict()
        assert data["sections"][0]["type"] == "EXECUTIVE_SUMMARY"
        assert data["sections"][0]["id"] == "section-1"


@pytest.mark.unit
class TestScoring:

    def setup_method(self):
        self.classifier = SectionClassifier()

    def test_cost_markers_boost_cost_score(self):
        scores = self.classifier.score_span("Budget: Rs. 50 lakh total amount")
        assert max(scores, key=scores.get) == SectionType.COST_ESTIMATE

    def test_span_without_signals_has_no_type(self):
        section_type, confidence = self.classifier.classify_span("zzz qqq " * 200)
        assert section_type is None
        assert confidence == 0.0


@pytest.mark.unit
class TestOverlapResolution:

    def test_more_confident_overlapping_section_wins(self):
        low = Section(SectionType.TIMELINE, "a" * 60, 0.65, 0, 100)
        high = Section(SectionType.COST_ESTIMATE, "b" * 60, 0.9, 50, 150)
        resolved = SectionClassifier._resolve_overlaps([low, high])
        assert resolved == [high]

    def test_less_confident_overlapping_section_is_dropped(self):
        first = Section(SectionType.TIMELINE, "a" * 60, 0.9, 0, 100)
        second = Section(SectionType.COST_ESTIMATE, "b" * 60, 0.7, 50, 150)
        resolved = SectionClassifier._resolve_overlaps([first, second])
        assert resolved == [first]

    def test_adjacent_sections_do_not_overlap(self):
        first = Section(SectionType.TIMELINE, "a" * 60, 0.9, 0, 100)
        second = Section(SectionType.COST_ESTIMATE, "b" * 60, 0.7, 100, 200)
        assert SectionClassifier._resolve_overlaps([second, first]) == [first, second]
