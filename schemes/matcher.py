"""
DPR Assessor: Scheme Matcher

Ranks registry schemes against a project description.

Pipeline:
1. Eligibility filter (status, region, funding tolerance, preferred types)
2. Similarity = keyword Jaccard*0.3 + word-count cosine*0.4
   + sector overlap*0.2 + beneficiary overlap*0.1
3. Confidence = similarity adjusted for verification, status, funding fit,
   regional and sector alignment and keyword matches, clamped to [0, 1]
4. Threshold on relevance and confidence, sort by
   (confidence, relevance, scheme id), truncate

Everything is deterministic: identical request and registry give identical
scores and ordering.
"""

import math
import time
import logging
from typing import List, Optional, Sequence

from core.config import SchemeConfig, get_config
from feasibility.models import PRIORITY_ORDER, Priority
from analysis.text_utils import cosine_similarity, jaccard, tokenize

from .models import (
    ALL_STATES,
    NORTHEAST_REGION,
    ApplicabilityAnalysis,
    FundingAlignment,
    GapSeverity,
    GovernmentScheme,
    MatchType,
    RecommendationType,
    SchemeGapAnalysis,
    SchemeMatch,
    SchemeMatchingRequest,
    SchemeMatchingResult,
    SchemeRecommendation,
    SchemeStatus,
    VerificationStatus,
    is_northeast_state,
)

logger = logging.getLogger(__name__)


MISSING_RELEVANCE_THRESHOLD = 0.6
MAX_MISSING_OPPORTUNITIES = 5
RECOMMENDED_MATCHES = 3


def unique_keywords(text: str) -> List[str]:
    """Distinct tokens in order of first appearance"""
    seen = set()
    keywords = []
    for word in tokenize(text):
        if word not in seen:
            seen.add(word)
            keywords.append(word)
    return keywords


def overlap_ratio(project_terms: Sequence[str], scheme_terms: Sequence[str], empty: float) -> float:
    """Share of project terms matching a scheme term by containment either way"""
    if not project_terms or not scheme_terms:
        return empty
    matches = [
        p for p in project_terms
        if any(s.lower() in p.lower() or p.lower() in s.lower() for s in scheme_terms)
    ]
    return len(matches) / max(len(project_terms), len(scheme_terms))


def project_text(request: SchemeMatchingRequest) -> str:
    parts = [
        request.project_description,
        request.project_type or "",
        " ".join(request.sectors),
        " ".join(request.target_beneficiaries),
    ]
    if request.location:
        parts.extend([request.location.state, request.location.district or ""])
    return " ".join(p for p in parts if p).lower()


def scheme_text(scheme: GovernmentScheme) -> str:
    return " ".join([
        scheme.scheme_name,
        scheme.description,
        " ".join(scheme.objectives),
        " ".join(scheme.keywords),
        " ".join(scheme.applicable_sectors),
        " ".join(scheme.target_beneficiaries),
    ]).lower()


def regionally_applicable(state: str, regions: Sequence[str]) -> bool:
    if not state or not regions:
        return True
    lowered = [r.lower() for r in regions]
    if state.lower() in lowered or ALL_STATES in regions:
        return True
    return NORTHEAST_REGION in regions and is_northeast_state(state)


class SchemeMatcher:
    """Similarity ranking of schemes for a project"""

    def __init__(self, config: Optional[SchemeConfig] = None):
        self.config = config or get_config().schemes

    def match_schemes(
        self,
        request: SchemeMatchingRequest,
        registry: Sequence[GovernmentScheme],
    ) -> SchemeMatchingResult:
        start = time.time()

        eligible = self.filter_eligible(request, registry)
        scored = [self.score_scheme(request, scheme) for scheme in eligible]
        matches = self.filter_and_sort(scored, request)

        gap = self.gap_analysis(request, matches, registry)
        recommendations = self.generate_recommendations(request, matches, gap)

        logger.info(
            f"Scheme matching for '{request.document_id}': {len(eligible)}/{len(registry)} eligible, "
            f"{len(matches)} matches"
        )
        return SchemeMatchingResult(
            document_id=request.document_id,
            matches=matches,
            gap_analysis=gap,
            recommendations=recommendations,
            total_schemes_evaluated=len(eligible),
            processing_time_ms=(time.time() - start) * 1000,
        )

    # ------------------------------------------------------------------
    # Filtering and scoring
    # ------------------------------------------------------------------

    def filter_eligible(
        self,
        request: SchemeMatchingRequest,
        registry: Sequence[GovernmentScheme],
    ) -> List[GovernmentScheme]:
        options = request.matching_options
        state = request.location.state if request.location else ""
        eligible = []

        for scheme in registry:
            if not options.include_inactive and scheme.status != SchemeStatus.ACTIVE:
                continue
            if not regionally_applicable(state, scheme.applicable_regions):
                continue
            if request.estimated_cost and scheme.funding_range_min and scheme.funding_range_max:
                low = scheme.funding_range_min * self.config.funding_tolerance_low
                high = scheme.funding_range_max * self.config.funding_tolerance_high
                if not low <= request.estimated_cost <= high:
                    continue
            if options.preferred_scheme_types and scheme.scheme_type not in options.preferred_scheme_types:
                continue
            eligible.append(scheme)

        return eligible

    def score_scheme(self, request: SchemeMatchingRequest, scheme: GovernmentScheme) -> SchemeMatch:
        p_text = project_text(request)
        s_text = scheme_text(scheme)
        p_keywords = unique_keywords(p_text)
        s_keywords = unique_keywords(s_text)

        similarity = self.similarity(request, scheme, p_text, s_text, p_keywords, s_keywords)
        s_keyword_set = set(s_keywords)
        matching_keywords = [k for k in p_keywords if k in s_keyword_set]

        applicability = self.analyze_applicability(request, scheme)
        confidence = self.confidence_score(similarity, applicability, scheme, len(matching_keywords))

        return SchemeMatch(
            scheme=scheme,
            match_type=self.match_type(similarity, len(matching_keywords)),
            relevance_score=similarity,
            confidence_score=confidence,
            matching_keywords=matching_keywords,
            matching_criteria=self.matching_criteria(request, scheme, matching_keywords),
            recommendation_reason=self.recommendation_reason(scheme, similarity, applicability),
            applicability=applicability,
        )

    @staticmethod
    def similarity(
        request: SchemeMatchingRequest,
        scheme: GovernmentScheme,
        p_text: str,
        s_text: str,
        p_keywords: Sequence[str],
        s_keywords: Sequence[str],
    ) -> float:
        keyword_similarity = jaccard(set(p_keywords), set(s_keywords))
        text_similarity = cosine_similarity(p_text, s_text)
        sector_similarity = overlap_ratio(request.sectors, scheme.applicable_sectors, empty=0.0)
        beneficiary_similarity = overlap_ratio(
            request.target_beneficiaries, scheme.target_beneficiaries, empty=0.5,
        )
        score = (
            keyword_similarity * 0.3
            + text_similarity * 0.4
            + sector_similarity * 0.2
            + beneficiary_similarity * 0.1
        )
        return max(0.0, min(1.0, score))

    @staticmethod
    def analyze_applicability(request: SchemeMatchingRequest, scheme: GovernmentScheme) -> ApplicabilityAnalysis:
        alignment = FundingAlignment.UNKNOWN
        cost = request.estimated_cost
        if cost and scheme.funding_range_min and scheme.funding_range_max:
            if cost < scheme.funding_range_min:
                alignment = FundingAlignment.UNDER
            elif cost > scheme.funding_range_max:
                alignment = FundingAlignment.OVER
            else:
                alignment = FundingAlignment.WITHIN

        state = request.location.state if request.location else ""
        sector_ok = (
            not request.sectors
            or not scheme.applicable_sectors
            or any(
                sector.lower() in s.lower()
                for sector in request.sectors
                for s in scheme.applicable_sectors
            )
        )

        return ApplicabilityAnalysis(
            eligibility_met=True,
            funding_alignment=alignment,
            regional_applicability=regionally_applicable(state, scheme.applicable_regions),
            sector_alignment=sector_ok,
        )

    @staticmethod
    def confidence_score(
        similarity: float,
        applicability: ApplicabilityAnalysis,
        scheme: GovernmentScheme,
        keyword_matches: int,
    ) -> float:
        confidence = similarity

        if scheme.verification_status == VerificationStatus.VERIFIED:
            confidence += 0.1
        if scheme.status == SchemeStatus.ACTIVE:
            confidence += 0.05

        if applicability.funding_alignment == FundingAlignment.WITHIN:
            confidence += 0.1
        elif applicability.funding_alignment in (FundingAlignment.OVER, FundingAlignment.UNDER):
            confidence -= 0.05

        if applicability.regional_applicability:
            confidence += 0.05
        if applicability.sector_alignment:
            confidence += 0.05

        confidence += min(keyword_matches * 0.02, 0.1)
        return max(0.0, min(1.0, confidence))

    @staticmethod
    def match_type(similarity: float, keyword_matches: int) -> MatchType:
        if keyword_matches > 3:
            return MatchType.KEYWORD
        if similarity > 0.6:
            return MatchType.SEMANTIC
        return MatchType.CATEGORY

    @staticmethod
    def matching_criteria(
        request: SchemeMatchingRequest,
        scheme: GovernmentScheme,
        matching_keywords: Sequence[str],
    ) -> List[str]:
        criteria = []
        if matching_keywords:
            criteria.append(f"Keyword matches: {', '.join(matching_keywords[:5])}")

        if request.location and request.location.state in scheme.applicable_regions:
            criteria.append(f"Regional alignment: {request.location.state}")

        sector_matches = [
            sector for sector in request.sectors
            if any(sector.lower() in s.lower() for s in scheme.applicable_sectors)
        ]
        if sector_matches:
            criteria.append(f"Sector alignment: {', '.join(sector_matches)}")

        cost = request.estimated_cost
        if (cost and scheme.funding_range_min and scheme.funding_range_max
                and scheme.funding_range_min <= cost <= scheme.funding_range_max):
            criteria.append("Funding range compatibility")
        return criteria

    @staticmethod
    def recommendation_reason(
        scheme: GovernmentScheme,
        similarity: float,
        applicability: ApplicabilityAnalysis,
    ) -> str:
        reasons = []
        if similarity > 0.7:
            reasons.append("High semantic similarity with project description")
        if applicability.funding_alignment == FundingAlignment.WITHIN:
            reasons.append("Project cost aligns with scheme funding range")
        if applicability.sector_alignment:
            reasons.append("Project sector matches scheme applicability")
        if applicability.regional_applicability:
            reasons.append("Scheme applicable to project location")
        if scheme.status == SchemeStatus.ACTIVE and scheme.verification_status == VerificationStatus.VERIFIED:
            reasons.append("Scheme is currently active and verified")
        return "; ".join(reasons) if reasons else "General compatibility with project requirements"

    def filter_and_sort(self, matches: Sequence[SchemeMatch], request: SchemeMatchingRequest) -> List[SchemeMatch]:
        options = request.matching_options
        min_relevance = (
            options.min_relevance_score if options.min_relevance_score is not None
            else self.config.similarity_threshold
        )
        max_results = options.max_results or self.config.max_results

        kept = [
            m for m in matches
            if m.relevance_score >= min_relevance and m.confidence_score >= self.config.min_confidence
        ]
        kept.sort(key=lambda m: (-m.confidence_score, -m.relevance_score, m.scheme.id))
        return kept[:max_results]

    # ------------------------------------------------------------------
    # Gap analysis and recommendations
    # ------------------------------------------------------------------

    def gap_analysis(
        self,
        request: SchemeMatchingRequest,
        matches: Sequence[SchemeMatch],
        registry: Sequence[GovernmentScheme],
    ) -> SchemeGapAnalysis:
        existing = list(request.existing_schemes)

        def refers_to(scheme: GovernmentScheme, reference: str) -> bool:
            reference = reference.strip()
            if not reference:
                return False
            return reference.lower() in scheme.scheme_name.lower() or scheme.scheme_code == reference

        verified = [s for s in registry if any(refers_to(s, e) for e in existing)]
        missing = [
            m.scheme for m in matches
            if m.relevance_score > MISSING_RELEVANCE_THRESHOLD
            and not any(refers_to(m.scheme, e) for e in existing)
        ][:MAX_MISSING_OPPORTUNITIES]
        incorrect = [e for e in existing if not any(refers_to(s, e) for s in verified)]

        completeness = self.completeness_score(len(existing), len(verified), len(missing), len(incorrect))
        return SchemeGapAnalysis(
            mentioned_schemes=existing,
            verified_schemes=[s.scheme_name for s in verified],
            missing_opportunities=[s.scheme_name for s in missing],
            incorrect_references=incorrect,
            optimization_suggestions=self._optimization_suggestions(matches, missing),
            completeness_score=completeness,
            severity=self.gap_severity(completeness, len(missing)),
        )

    @staticmethod
    def completeness_score(existing: int, verified: int, missing: int, incorrect: int) -> float:
        if existing == 0:
            return 0.3 if missing > 0 else 0.8
        accuracy = min(1.0, verified / existing)
        coverage = min(verified / max(verified + missing, 1), 1.0)
        penalty = incorrect * 0.1
        return max(0.0, min(1.0, accuracy * 0.6 + coverage * 0.4 - penalty))

    @staticmethod
    def gap_severity(completeness: float, missing: int) -> GapSeverity:
        if completeness > 0.8 and missing <= 1:
            return GapSeverity.LOW
        if completeness > 0.6 and missing <= 3:
            return GapSeverity.MEDIUM
        if completeness > 0.3 and missing <= 5:
            return GapSeverity.HIGH
        return GapSeverity.CRITICAL

    @staticmethod
    def _optimization_suggestions(
        matches: Sequence[SchemeMatch],
        missing: Sequence[GovernmentScheme],
    ) -> List[str]:
        suggestions = []
        if missing:
            suggestions.append(
                f"Consider exploring {len(missing)} additional high-relevance schemes that could benefit your project"
            )
        if any(m.confidence_score < 0.6 for m in matches):
            suggestions.append(
                "Review project description to better align with scheme requirements for improved matching"
            )
        if any(m.applicability.funding_alignment in (FundingAlignment.OVER, FundingAlignment.UNDER) for m in matches):
            suggestions.append("Consider adjusting project scope or exploring complementary funding sources")
        return suggestions

    def generate_recommendations(
        self,
        request: SchemeMatchingRequest,
        matches: Sequence[SchemeMatch],
        gap: SchemeGapAnalysis,
    ) -> List[SchemeRecommendation]:
        recommendations: List[SchemeRecommendation] = []
        cost = request.estimated_cost

        for match in matches[:RECOMMENDED_MATCHES]:
            if match.confidence_score <= 0.7:
                continue
            scheme = match.scheme
            recommendations.append(SchemeRecommendation(
                type=RecommendationType.NEW_SCHEME,
                priority=Priority.HIGH if match.confidence_score > 0.8 else Priority.MEDIUM,
                recommendation=(
                    f"Consider applying for {scheme.scheme_name} which shows "
                    f"{round(match.confidence_score * 100)}% compatibility with your project."
                ),
                expected_benefit=self.expected_benefit(scheme, cost),
                implementation_steps=self.implementation_steps(scheme),
                scheme=scheme,
                potential_funding=self.potential_funding(scheme, cost),
                timeframe=self.timeframe(scheme),
            ))

        if gap.incorrect_references:
            recommendations.append(SchemeRecommendation(
                type=RecommendationType.SCHEME_VERIFICATION,
                priority=Priority.HIGH,
                recommendation=(
                    f"Verify the following scheme references: {', '.join(gap.incorrect_references)}. "
                    f"These may be outdated or incorrectly named."
                ),
                expected_benefit="Ensures accurate scheme alignment and prevents application delays",
                implementation_steps=[
                    "Review current scheme names and codes",
                    "Update DPR with correct scheme references",
                    "Verify eligibility criteria for updated schemes",
                ],
            ))

        if any(m.applicability.funding_alignment in (FundingAlignment.OVER, FundingAlignment.UNDER) for m in matches):
            recommendations.append(SchemeRecommendation(
                type=RecommendationType.FUNDING_ALIGNMENT,
                priority=Priority.MEDIUM,
                recommendation=(
                    "Consider adjusting project scope or exploring additional funding sources "
                    "to better align with available schemes."
                ),
                expected_benefit="Improves funding approval chances and reduces financial gaps",
                implementation_steps=[
                    "Review project scope and cost breakdown",
                    "Identify components that can be funded separately",
                    "Explore complementary schemes for comprehensive coverage",
                ],
            ))

        recommendations.sort(key=lambda r: -PRIORITY_ORDER[r.priority])
        return recommendations

    @staticmethod
    def expected_benefit(scheme: GovernmentScheme, cost: Optional[float]) -> str:
        if scheme.average_funding_amount and cost:
            percentage = min(scheme.average_funding_amount / cost * 100, 100)
            return f"Potential funding coverage of up to {percentage:.0f}% of project cost"
        if scheme.funding_range_min and scheme.funding_range_max:
            return f"Funding range: ₹{scheme.funding_range_min:,.0f} - ₹{scheme.funding_range_max:,.0f}"
        return "Financial support and implementation assistance"

    @staticmethod
    def implementation_steps(scheme: GovernmentScheme) -> List[str]:
        steps = [
            "Review detailed scheme guidelines and eligibility criteria",
            "Prepare required documentation and project proposals",
        ]
        if scheme.application_process:
            steps.append("Follow the specified application process")
        else:
            steps.append("Contact scheme authorities for application procedures")
        if scheme.processing_time_days:
            steps.append(f"Allow {scheme.processing_time_days} days for application processing")
        steps.append("Monitor application status and respond to queries promptly")
        return steps

    @staticmethod
    def potential_funding(scheme: GovernmentScheme, cost: Optional[float]) -> Optional[float]:
        if scheme.average_funding_amount:
            return scheme.average_funding_amount
        if cost and scheme.funding_range_min and scheme.funding_range_max:
            return min(cost, scheme.funding_range_max)
        return scheme.funding_range_max

    @staticmethod
    def timeframe(scheme: GovernmentScheme) -> str:
        if scheme.processing_time_days:
            months = math.ceil(scheme.processing_time_days / 30)
            return f"{months} month{'s' if months > 1 else ''} for approval process"
        return "3-6 months (typical processing time)"
