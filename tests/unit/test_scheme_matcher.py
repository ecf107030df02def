"""
Unit tests for scheme matching

Tests cover:
- Eligibility filtering by status, region, funding tolerance and scheme type
- Similarity, confidence and match type
- Ordering, thresholds and per-call options
- Gap analysis over the schemes a DPR already mentions
"""

import pytest
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))

from feasibility.models import Priority
from schemes.matcher import SchemeMatcher, overlap_ratio, regionally_applicable, unique_keywords
from schemes.registry import parse_registry
from schemes.models import (
    ApplicabilityAnalysis,
    FundingAlignment,
    GovernmentScheme,
    MatchingOptions,
    MatchType,
    ProjectLocation,
    RecommendationType,
    SchemeMatchingRequest,
    SchemeType,
)


def _road_request(**kwargs) -> SchemeMatchingRequest:
    values = {
        "document_id": "dpr-1",
        "project_description": (
            "All-weather road connectivity to eligible unconnected rural habitations. "
            "Provide rural road connectivity and upgrade existing rural roads."
        ),
        "sectors": ["Road Development", "Infrastructure", "Rural Development"],
        "target_beneficiaries": ["Rural habitations", "Villagers"],
        "location": ProjectLocation(state="Assam"),
        "estimated_cost": 150_000_000,
    }
    values.update(kwargs)
    return SchemeMatchingRequest(**values)


@pytest.mark.unit
class TestHelpers:

    def test_unique_keywords_keep_first_appearance(self):
        assert unique_keywords("Road and ROAD bridge, road") == ["road", "bridge"]

    def test_overlap_ratio(self):
        assert overlap_ratio([], ["x"], empty=0.5) == 0.5
        assert overlap_ratio(["Rural Development"], ["Rural Development", "Water"], empty=0.0) == 0.5

    def test_regional_applicability(self):
        assert regionally_applicable("", ["Kerala"])
        assert regionally_applicable("Assam", [])
        assert regionally_applicable("assam", ["Assam"])
        assert regionally_applicable("Tripura", ["NORTHEAST"])
        assert not regionally_applicable("Kerala", ["NORTHEAST"])

    def test_confidence_is_clamped(self, scheme_registry):
        applicability = ApplicabilityAnalysis(funding_alignment=FundingAlignment.WITHIN)
        assert SchemeMatcher.confidence_score(0.95, applicability, scheme_registry[0], 10) == 1.0

        poor = ApplicabilityAnalysis(
            funding_alignment=FundingAlignment.OVER, regional_applicability=False, sector_alignment=False,
        )
        pending = GovernmentScheme(id="x", scheme_name="X", status="INACTIVE")
        assert SchemeMatcher.confidence_score(0.0, poor, pending, 0) == 0.0

    @pytest.mark.parametrize("similarity,keywords,match_type", [
        (0.2, 4, MatchType.KEYWORD),
        (0.7, 2, MatchType.SEMANTIC),
        (0.5, 1, MatchType.CATEGORY),
    ])
    def test_match_type(self, similarity, keywords, match_type):
        assert SchemeMatcher.match_type(similarity, keywords) == match_type


@pytest.mark.unit
class TestEligibility:

    def setup_method(self):
        self.matcher = SchemeMatcher()

    def test_funding_tolerance_excludes_small_schemes(self, scheme_registry):
        eligible = self.matcher.filter_eligible(_road_request(), scheme_registry)
        assert [s.id for s in eligible] == ["scheme-pmgsy", "scheme-mgnrega"]

    def test_inactive_schemes_need_opt_in(self, scheme_records):
        scheme_records[1]["status"] = "SUSPENDED"
        registry = parse_registry(scheme_records)

        default = self.matcher.filter_eligible(_road_request(), registry)
        opted_in = self.matcher.filter_eligible(
            _road_request(matching_options=MatchingOptions(include_inactive=True)), registry,
        )
        assert "scheme-mgnrega" not in [s.id for s in default]
        assert "scheme-mgnrega" in [s.id for s in opted_in]

    def test_regional_schemes(self, scheme_records):
        scheme_records[0]["applicable_regions"] = ["NORTHEAST"]
        registry = parse_registry(scheme_records)

        in_region = self.matcher.filter_eligible(_road_request(), registry)
        out_of_region = self.matcher.filter_eligible(
            _road_request(location=ProjectLocation(state="Kerala")), registry,
        )
        assert "scheme-pmgsy" in [s.id for s in in_region]
        assert "scheme-pmgsy" not in [s.id for s in out_of_region]

    def test_preferred_scheme_types(self, scheme_registry):
        request = _road_request(matching_options=MatchingOptions(preferred_scheme_types=[SchemeType.CENTRAL]))
        assert [s.id for s in self.matcher.filter_eligible(request, scheme_registry)] == ["scheme-mgnrega"]


@pytest.mark.unit
class TestMatchSchemes:

    def setup_method(self):
        self.matcher = SchemeMatcher()

    def test_best_match_for_road_project(self, scheme_registry):
        result = self.matcher.match_schemes(_road_request(), scheme_registry)

        assert result.total_schemes_evaluated == 2
        best = result.matches[0]
        assert best.scheme.id == "scheme-pmgsy"
        assert best.relevance_score > 0.6
        assert best.confidence_score == 1.0
        assert best.match_type == MatchType.KEYWORD
        assert best.applicability.funding_alignment == FundingAlignment.WITHIN
        assert "Funding range compatibility" in best.matching_criteria
        assert "Sector alignment: Road Development, Infrastructure, Rural Development" in best.matching_criteria
        assert "road" in best.matching_keywords
        assert "assam" not in best.matching_keywords

    def test_recommendation_for_confident_match(self, scheme_registry):
        result = self.matcher.match_schemes(_road_request(), scheme_registry)

        first = result.recommendations[0]
        assert first.type == RecommendationType.NEW_SCHEME
        assert first.priority == Priority.HIGH
        assert first.recommendation == (
            "Consider applying for Pradhan Mantri Gram Sadak Yojana which shows "
            "100% compatibility with your project."
        )
        assert first.potential_funding == 150_000_000
        assert first.timeframe == "3 months for approval process"
        assert first.expected_benefit == "Potential funding coverage of up to 100% of project cost"

    def test_matches_are_sorted(self, scheme_registry):
        options = MatchingOptions(min_relevance_score=0.0)
        matches = self.matcher.match_schemes(_road_request(matching_options=options), scheme_registry).matches
        keys = [(-m.confidence_score, -m.relevance_score, m.scheme.id) for m in matches]
        assert keys == sorted(keys)

    def test_options_override_thresholds(self, scheme_registry):
        strict = _road_request(matching_options=MatchingOptions(min_relevance_score=0.99))
        assert self.matcher.match_schemes(strict, scheme_registry).matches == []

        capped = _road_request(matching_options=MatchingOptions(min_relevance_score=0.0, max_results=1))
        assert len(self.matcher.match_schemes(capped, scheme_registry).matches) == 1

    def test_matching_is_deterministic(self, scheme_registry):
        first = self.matcher.match_schemes(_road_request(), scheme_registry)
        second = self.matcher.match_schemes(_road_request(), scheme_registry)
        assert [m.to_dict() for m in first.matches] == [m.to_dict() for m in second.matches]

    def test_funding_alignment_labels(self, scheme_registry):
        pmgsy = scheme_registry[0]
        under = SchemeMatcher.analyze_applicability(_road_request(estimated_cost=5_000_000), pmgsy)
        over = SchemeMatcher.analyze_applicability(_road_request(estimated_cost=600_000_000), pmgsy)
        unknown = SchemeMatcher.analyze_applicability(_road_request(estimated_cost=None), pmgsy)

        assert under.funding_alignment == FundingAlignment.UNDER
        assert over.funding_alignment == FundingAlignment.OVER
        assert unknown.funding_alignment == FundingAlignment.UNKNOWN

    def test_empty_registry(self):
        result = self.matcher.match_schemes(_road_request(), [])
        assert result.matches == []
        assert result.total_schemes_evaluated == 0
        assert result.to_dict()["document_id"] == "dpr-1"


@pytest.mark.unit
class TestMatcherGapAnalysis:

    def setup_method(self):
        self.matcher = SchemeMatcher()

    def test_unmentioned_high_relevance_scheme_is_missing(self, scheme_registry):
        gap = self.matcher.match_schemes(_road_request(), scheme_registry).gap_analysis

        assert gap.mentioned_schemes == []
        assert gap.missing_opportunities == ["Pradhan Mantri Gram Sadak Yojana"]
        assert gap.completeness_score == 0.3
        assert gap.optimization_suggestions[0].startswith("Consider exploring 1 additional")

    def test_existing_references(self, scheme_registry):
        request = _road_request(existing_schemes=["PMGSY", "Old Scheme"])
        result = self.matcher.match_schemes(request, scheme_registry)
        gap = result.gap_analysis

        assert gap.verified_schemes == ["Pradhan Mantri Gram Sadak Yojana"]
        assert gap.missing_opportunities == []
        assert gap.incorrect_references == ["Old Scheme"]
        assert gap.completeness_score == pytest.approx(0.6)

        verification = [r for r in result.recommendations if r.type == RecommendationType.SCHEME_VERIFICATION]
        assert verification[0].recommendation.startswith("Verify the following scheme references: Old Scheme.")

    @pytest.mark.parametrize("existing,verified,missing,incorrect,score", [
        (0, 0, 0, 0, 0.8),
        (0, 0, 2, 0, 0.3),
        (2, 2, 0, 0, 1.0),
        (1, 0, 0, 1, 0.0),
    ])
    def test_completeness_score(self, existing, verified, missing, incorrect, score):
        assert SchemeMatcher.completeness_score(existing, verified, missing, incorrect) == pytest.approx(score)
