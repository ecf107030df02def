"""
DPR Assessor: Scheme Verifier

Validates the scheme references a DPR makes against the registry, finds
relevant schemes the DPR does not mention, and turns both into a gap
analysis with prioritized recommendations.

Reference lookup order:
1. Exact scheme name (case-insensitive)
2. Exact scheme code
3. Name containment either way, accepted when Levenshtein similarity > 0.8

Opportunity relevance:
    0.4*sector + 0.2*region + 0.2*funding fit + 0.15*description Jaccard
    + 0.05*(status * verification)
"""

import math
import time
import logging
from typing import List, Optional, Sequence, Tuple

from core.config import SchemeConfig, get_config
from feasibility.models import PRIORITY_ORDER, Priority
from analysis.text_utils import jaccard, levenshtein_similarity, word_set

from .models import (
    ALL_STATES,
    NORTHEAST_REGION,
    ComplexityTier,
    GapSeverity,
    GovernmentScheme,
    OpportunityAnalysis,
    ProjectContext,
    ProjectLocation,
    RecommendationType,
    SchemeGapAnalysis,
    SchemeRecommendation,
    SchemeStatus,
    SchemeSuggestion,
    SchemeVerificationResult,
    VerificationStatus,
    is_northeast_state,
)

logger = logging.getLogger(__name__)


def keyword_overlap(text: str, keywords: Sequence[str]) -> float:
    """Share of keywords that contain, or are contained in, some word of text"""
    if not keywords:
        return 0.0
    words = text.lower().split()
    matching = [
        k for k in keywords
        if k and any(k.lower() in w or w in k.lower() for w in words)
    ]
    return len(matching) / len(keywords)


def sector_alignment(project_sectors: Sequence[str], scheme_sectors: Sequence[str]) -> float:
    if not project_sectors or not scheme_sectors:
        return 0.5
    matches = [
        p for p in project_sectors
        if any(s.lower() in p.lower() or p.lower() in s.lower() for s in scheme_sectors)
    ]
    return len(matches) / max(len(project_sectors), len(scheme_sectors))


def regional_alignment(location: ProjectLocation, scheme_regions: Sequence[str]) -> float:
    if not scheme_regions or ALL_STATES in scheme_regions:
        return 1.0
    state = location.state.strip().lower()
    if state and state in (r.lower() for r in scheme_regions):
        return 1.0
    if NORTHEAST_REGION in scheme_regions and is_northeast_state(state):
        return 1.0
    return 0.0


def funding_alignment(estimated_cost: float, scheme: GovernmentScheme) -> float:
    if not scheme.funding_range_min and not scheme.funding_range_max:
        return 0.5

    low = scheme.funding_range_min or 0.0
    high = scheme.funding_range_max or math.inf

    if low <= estimated_cost <= high:
        return 1.0
    if estimated_cost < low:
        return max(0.3, estimated_cost / low)
    return max(0.3, high / estimated_cost)


def description_similarity(description: str, scheme: GovernmentScheme) -> float:
    scheme_text = scheme.description + " " + " ".join(scheme.objectives)
    return jaccard(word_set(description), word_set(scheme_text))


def implementation_complexity(scheme: GovernmentScheme) -> ComplexityTier:
    points = 0

    documents = len(scheme.required_documents)
    if documents > 10:
        points += 2
    elif documents > 5:
        points += 1

    days = scheme.processing_time_days or 0
    if days > 180:
        points += 2
    elif days > 90:
        points += 1

    criteria = len(scheme.eligibility_criteria)
    if criteria > 8:
        points += 2
    elif criteria > 4:
        points += 1

    if scheme.application_process and len(scheme.application_process) > 500:
        points += 1

    if points >= 4:
        return ComplexityTier.HIGH
    if points >= 2:
        return ComplexityTier.MEDIUM
    return ComplexityTier.LOW


def implementation_time(scheme: GovernmentScheme) -> str:
    if scheme.processing_time_days:
        months = math.ceil(scheme.processing_time_days / 30)
        return f"{months} month{'s' if months > 1 else ''}"
    return {
        ComplexityTier.LOW: "2-3 months",
        ComplexityTier.MEDIUM: "4-6 months",
        ComplexityTier.HIGH: "6-12 months",
    }[implementation_complexity(scheme)]


def potential_benefit(scheme: GovernmentScheme, estimated_cost: float) -> str:
    benefits = []

    amount = scheme.average_funding_amount or scheme.funding_range_max
    if amount and estimated_cost > 0:
        percentage = min(amount / estimated_cost * 100, 100)
        benefits.append(f"Up to {percentage:.0f}% funding coverage")
    if scheme.success_metrics:
        benefits.append("Performance monitoring and evaluation support")
    if scheme.monitoring_mechanism:
        benefits.append("Implementation guidance and oversight")

    return ", ".join(benefits) if benefits else "Financial and implementation support"


def potential_funding(scheme: GovernmentScheme, estimated_cost: float) -> Optional[float]:
    amount = scheme.average_funding_amount or scheme.funding_range_max
    if amount is None:
        return None
    return min(amount, estimated_cost) if estimated_cost > 0 else amount


def gap_completeness(mentioned: int, verified: int, missing: int, incorrect: int) -> float:
    """accuracy*0.6 + coverage*0.4 - 0.3*incorrect share, floored at 0"""
    if mentioned == 0:
        return 0.2 if missing > 0 else 0.8

    accuracy = verified / mentioned
    coverage = verified / (verified + missing) if verified + missing > 0 else 0.0
    penalty = (incorrect / mentioned) * 0.3
    return max(0.0, min(1.0, accuracy * 0.6 + coverage * 0.4 - penalty))


def gap_severity(completeness: float, missing: int, incorrect: int) -> GapSeverity:
    if completeness > 0.8 and missing <= 2 and incorrect == 0:
        return GapSeverity.LOW
    if completeness > 0.6 and missing <= 4 and incorrect <= 1:
        return GapSeverity.MEDIUM
    if completeness > 0.3 and missing <= 6 and incorrect <= 3:
        return GapSeverity.HIGH
    return GapSeverity.CRITICAL


class SchemeVerifier:
    """Reference verification, opportunity discovery and scheme gap analysis"""

    def __init__(self, config: Optional[SchemeConfig] = None):
        self.config = config or get_config().schemes

    def verify_schemes(
        self,
        mentions: Sequence[str],
        registry: Sequence[GovernmentScheme],
        project_context: Optional[ProjectContext] = None,
    ) -> SchemeVerificationResult:
        """
        Verify mentioned schemes and analyze scheme coverage.

        Args:
            mentions: Scheme names or codes as written in the DPR
            registry: Full scheme registry
            project_context: Project profile for opportunity scoring; a neutral
                empty profile is used when omitted

        Returns:
            SchemeVerificationResult
        """
        start = time.time()
        context = project_context or ProjectContext()

        verified, unverified, suggestions = self.verify_references(mentions, registry)
        opportunities = self.identify_opportunities(context, verified, registry)
        missing = opportunities[:self.config.max_missing_opportunities]

        completeness = gap_completeness(len(mentions), len(verified), len(missing), len(unverified))
        gap = SchemeGapAnalysis(
            mentioned_schemes=list(mentions),
            verified_schemes=[s.scheme_name for s in verified],
            missing_opportunities=[o.scheme.scheme_name for o in missing],
            incorrect_references=list(unverified),
            optimization_suggestions=self._optimization_suggestions(
                unverified, missing, suggestions, opportunities[:self.config.max_opportunity_analysis],
            ),
            completeness_score=completeness,
            severity=gap_severity(completeness, len(missing), len(unverified)),
        )

        result = SchemeVerificationResult(
            verified_schemes=verified,
            unverified_schemes=unverified,
            suggestions=suggestions,
            opportunities=opportunities[:self.config.max_opportunity_analysis],
            gap_analysis=gap,
            recommendations=self.generate_recommendations(gap, verified, missing, context),
            processing_time_ms=(time.time() - start) * 1000,
        )

        logger.info(
            f"Scheme verification: {len(verified)} verified, {len(unverified)} unverified, "
            f"{len(missing)} missing opportunities, severity {gap.severity.value}"
        )
        return result

    # ------------------------------------------------------------------
    # Reference verification
    # ------------------------------------------------------------------

    def verify_references(
        self,
        mentions: Sequence[str],
        registry: Sequence[GovernmentScheme],
    ) -> Tuple[List[GovernmentScheme], List[str], List[SchemeSuggestion]]:
        verified: List[GovernmentScheme] = []
        unverified: List[str] = []
        suggestions: List[SchemeSuggestion] = []

        for mention in mentions:
            match = self.find_matching_scheme(mention, registry)
            if match is not None:
                verified.append(match)
                continue

            unverified.append(mention)
            for scheme, confidence in self.find_potential_matches(mention, registry):
                if confidence >= self.config.verification_confidence_threshold:
                    suggestions.append(SchemeSuggestion(reference=mention, scheme=scheme, confidence=confidence))

        return verified, unverified, suggestions[:self.config.max_suggestions]

    def find_matching_scheme(
        self,
        mention: str,
        registry: Sequence[GovernmentScheme],
    ) -> Optional[GovernmentScheme]:
        normalized = mention.lower().strip()
        if not normalized:
            return None

        for scheme in registry:
            if scheme.scheme_name.lower().strip() == normalized:
                return scheme

        for scheme in registry:
            if scheme.scheme_code and scheme.scheme_code.lower().strip() == normalized:
                return scheme

        for scheme in registry:
            name = scheme.scheme_name.lower().strip()
            if name and (normalized in name or name in normalized):
                similarity = levenshtein_similarity(normalized, name)
                if similarity > self.config.substring_similarity_threshold:
                    return scheme
                # only the first containing name is considered
                break

        return None

    def find_potential_matches(
        self,
        mention: str,
        registry: Sequence[GovernmentScheme],
    ) -> List[Tuple[GovernmentScheme, float]]:
        """Top candidates for an unverified mention, best first"""
        normalized = mention.lower().strip()
        candidates = []

        for scheme in registry:
            name_score = levenshtein_similarity(normalized, scheme.scheme_name.lower())
            keyword_score = keyword_overlap(normalized, scheme.keywords) * 0.8
            description_score = levenshtein_similarity(normalized, scheme.description.lower()) * 0.5

            confidence = max(name_score, keyword_score, description_score)
            if confidence > self.config.suggestion_floor:
                candidates.append((scheme, min(1.0, confidence)))

        candidates.sort(key=lambda c: (-c[1], c[0].id))
        return candidates[:self.config.suggestions_per_mention]

    # ------------------------------------------------------------------
    # Opportunity discovery
    # ------------------------------------------------------------------

    def identify_opportunities(
        self,
        context: ProjectContext,
        verified: Sequence[GovernmentScheme],
        registry: Sequence[GovernmentScheme],
    ) -> List[OpportunityAnalysis]:
        """Relevant active schemes the DPR does not already use, best first"""
        verified_ids = {s.id for s in verified}
        analyses = []

        for scheme in registry:
            if scheme.id in verified_ids or scheme.status != SchemeStatus.ACTIVE:
                continue

            relevance = self.opportunity_relevance(scheme, context)
            if relevance < self.config.opportunity_relevance_threshold:
                logger.debug(f"Scheme {scheme.id} below relevance threshold ({relevance:.2f})")
                continue

            analyses.append(OpportunityAnalysis(
                scheme=scheme,
                relevance_score=relevance,
                potential_benefit=potential_benefit(scheme, context.estimated_cost),
                implementation_complexity=implementation_complexity(scheme),
                time_to_implement=implementation_time(scheme),
            ))

        analyses.sort(key=lambda a: (-a.relevance_score, a.scheme.id))
        return analyses

    @staticmethod
    def opportunity_relevance(scheme: GovernmentScheme, context: ProjectContext) -> float:
        score = sector_alignment(context.sectors, scheme.applicable_sectors) * 0.4
        score += regional_alignment(context.location, scheme.applicable_regions) * 0.2
        score += funding_alignment(context.estimated_cost, scheme) * 0.2
        score += description_similarity(context.description, scheme) * 0.15

        status_score = 1.0 if scheme.status == SchemeStatus.ACTIVE else 0.5
        verification_score = 1.0 if scheme.verification_status == VerificationStatus.VERIFIED else 0.8
        score += status_score * verification_score * 0.05

        return max(0.0, min(1.0, score))

    # ------------------------------------------------------------------
    # Gap analysis and recommendations
    # ------------------------------------------------------------------

    @staticmethod
    def _optimization_suggestions(
        unverified: Sequence[str],
        missing: Sequence[OpportunityAnalysis],
        suggestions: Sequence[SchemeSuggestion],
        analyzed: Sequence[OpportunityAnalysis],
    ) -> List[str]:
        result = []
        if unverified:
            result.append(
                f"Update {len(unverified)} incorrect scheme references to ensure accurate funding alignment"
            )
        if len(missing) > 3:
            result.append(
                f"Explore {len(missing)} additional funding opportunities to maximize project support"
            )
        if suggestions:
            result.append("Consider suggested scheme alternatives for better alignment with project requirements")

        high_value = [a for a in analyzed if a.relevance_score > 0.7]
        if high_value:
            result.append(f"Prioritize {len(high_value)} high-relevance schemes for immediate application")
        return result

    def generate_recommendations(
        self,
        gap: SchemeGapAnalysis,
        verified: Sequence[GovernmentScheme],
        missing: Sequence[OpportunityAnalysis],
        context: ProjectContext,
    ) -> List[SchemeRecommendation]:
        recommendations: List[SchemeRecommendation] = []

        incorrect = gap.incorrect_references
        if incorrect:
            listed = ", ".join(incorrect[:3]) + ("..." if len(incorrect) > 3 else "")
            recommendations.append(SchemeRecommendation(
                type=RecommendationType.SCHEME_VERIFICATION,
                priority=Priority.HIGH,
                recommendation=f"Update or remove {len(incorrect)} incorrect scheme references: {listed}",
                expected_benefit="Prevents application delays and ensures accurate funding alignment",
                implementation_steps=[
                    "Review each incorrect reference against current scheme databases",
                    "Update DPR with correct scheme names and codes",
                    "Verify current status and eligibility criteria",
                    "Remove references to discontinued schemes",
                ],
                timeframe="1-2 weeks",
            ))

        for index, opportunity in enumerate(missing[:3]):
            scheme = opportunity.scheme
            funding = potential_funding(scheme, context.estimated_cost)
            recommendations.append(SchemeRecommendation(
                type=RecommendationType.NEW_SCHEME,
                priority=Priority.HIGH if index == 0 else Priority.MEDIUM,
                recommendation=(
                    f"Consider applying for {scheme.scheme_name} which aligns well with your project requirements"
                ),
                expected_benefit=(
                    f"Potential funding of ₹{funding:,.0f}" if funding
                    else "Additional funding support and implementation assistance"
                ),
                implementation_steps=[
                    "Review scheme guidelines and eligibility criteria",
                    "Prepare required documentation",
                    "Submit application through appropriate channels",
                    "Monitor application status",
                ],
                scheme=scheme,
                potential_funding=funding,
                timeframe=(
                    f"{math.ceil(scheme.processing_time_days / 30)} months"
                    if scheme.processing_time_days else "3-6 months"
                ),
            ))

        funding_gap = self.funding_gap(verified, context.estimated_cost)
        if funding_gap > 0:
            recommendations.append(SchemeRecommendation(
                type=RecommendationType.FUNDING_ALIGNMENT,
                priority=Priority.MEDIUM,
                recommendation=(
                    f"Address funding gap of ₹{funding_gap:,.0f} through complementary schemes "
                    f"or project restructuring"
                ),
                expected_benefit="Ensures complete project funding and reduces financial risks",
                implementation_steps=[
                    "Analyze project components for separate funding opportunities",
                    "Explore state-level and private sector partnerships",
                    "Consider phased implementation approach",
                    "Review project scope for cost optimization",
                ],
                timeframe="2-4 months",
            ))

        if gap.completeness_score < 0.7:
            recommendations.append(SchemeRecommendation(
                type=RecommendationType.SCHEME_OPTIMIZATION,
                priority=Priority.MEDIUM,
                recommendation="Improve overall scheme alignment through comprehensive review and strategic planning",
                expected_benefit="Enhanced funding success rate and reduced implementation risks",
                implementation_steps=[
                    "Conduct detailed scheme mapping exercise",
                    "Align project components with scheme objectives",
                    "Strengthen project documentation and justification",
                    "Establish monitoring and evaluation framework",
                ],
                timeframe="3-4 weeks",
            ))

        # stable: keeps generation order within a priority
        recommendations.sort(key=lambda r: -PRIORITY_ORDER[r.priority])
        return recommendations

    @staticmethod
    def funding_gap(verified: Sequence[GovernmentScheme], estimated_cost: float) -> float:
        """Project cost not covered by the typical funding of verified schemes"""
        if estimated_cost <= 0:
            return 0.0
        available = sum(s.average_funding_amount or s.funding_range_max or 0 for s in verified)
        return max(0.0, estimated_cost - min(available, estimated_cost))
