"""
DPR Assessor Pipeline
Wires the analysis, scheme and feasibility components into one run

Stages run sequentially over already-extracted document text:

    classification -> entity extraction -> gap analysis -> feature aggregation
    -> scheme verification / matching -> profiling -> probability and risk
    -> mitigation planning

A failure inside a stage is re-raised as StageError naming the stage, with
the original exception chained.
"""

import re
import time
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, TypeVar

from core.config import AnalysisConfig, get_config
from core.errors import StageError

from analysis.models import ClassificationResult, FeatureExtractionResult, LocationType, Section, SectionType
from analysis.section_classifier import SectionClassifier
from analysis.entity_extractor import EntityExtractor, NORTHEAST_STATES
from analysis.checklist import ChecklistStore
from analysis.gap_analyzer import GapAnalyzer
from analysis.feature_aggregator import FeatureAggregator
from analysis.project_profiler import ProjectProfile, ProjectProfiler

from schemes.models import (
    GovernmentScheme,
    ProjectContext,
    ProjectLocation,
    SchemeMatchingRequest,
    SchemeMatchingResult,
    SchemeVerificationResult,
)
from schemes.verifier import SchemeVerifier
from schemes.matcher import SchemeMatcher

from feasibility.models import (
    HistoricalProject,
    ProbabilityCalculationResult,
    RecommendationResult,
    RiskAnalysisResult,
    RiskClassificationResult,
    RiskMitigationPlan,
    SimulationSession,
)
from feasibility.probability_calculator import ProbabilityCalculator
from feasibility.risk_classifier import RiskClassifier
from feasibility.mitigation import MitigationPlanner, MitigationStrategyStore
from feasibility.what_if_simulator import WhatIfSimulator

logger = logging.getLogger(__name__)

T = TypeVar("T")


# Stage names used in StageError messages
STAGE_CLASSIFICATION = "Section classification"
STAGE_EXTRACTION = "Entity extraction"
STAGE_GAP_ANALYSIS = "Gap analysis"
STAGE_AGGREGATION = "Feature aggregation"
STAGE_SCHEME_MATCHING = "Scheme matching"
STAGE_PROFILING = "Project profiling"
STAGE_PROBABILITY = "Probability calculation"
STAGE_MITIGATION = "Mitigation planning"

SCHEME_PHRASE_PATTERN = re.compile(
    r"\b((?:[A-Z][A-Za-z\-]*\s+){1,6}(?:Yojana|Scheme|Mission|Programme|Program|Abhiyan))\b"
)

SECTORS_BY_CATEGORY = {
    "road": ["Road Development", "Infrastructure", "Transportation"],
    "water": ["Water Supply", "Irrigation", "Sanitation"],
    "building": ["Infrastructure", "Construction"],
    "energy": ["Energy", "Power"],
    "infrastructure": ["Infrastructure"],
}

DESCRIPTION_LIMIT = 1000


def detect_scheme_mentions(text: str, registry: Sequence[GovernmentScheme] = ()) -> List[str]:
    """
    Scheme references written in the text, in order of first appearance.

    Registry names and codes are found by whole-word search; other
    capitalized "... Yojana/Scheme/Mission" phrases are reported as written
    unless they contain a name or code already found.
    """
    found = []  # (position, mention)

    for scheme in registry:
        for candidate in (scheme.scheme_name, scheme.scheme_code):
            if not candidate:
                continue
            match = re.search(rf"(?<!\w){re.escape(candidate)}(?!\w)", text, re.IGNORECASE)
            if match:
                found.append((match.start(), candidate))
                break

    known = [m.lower() for _, m in found]
    for match in SCHEME_PHRASE_PATTERN.finditer(text):
        phrase = " ".join(match.group(1).split())
        lowered = phrase.lower()
        if any(k in lowered for k in known):
            continue
        found.append((match.start(1), phrase))

    mentions = []
    seen = set()
    for _, mention in sorted(found, key=lambda f: (f[0], f[1])):
        if mention.lower() not in seen:
            seen.add(mention.lower())
            mentions.append(mention)
    return mentions


@dataclass
class DPRAnalysisReport:
    dpr_id: str
    classification: ClassificationResult
    features: FeatureExtractionResult
    profile: ProjectProfile
    probability: ProbabilityCalculationResult
    risk_analysis: RiskAnalysisResult
    risk_classification: RiskClassificationResult
    recommendations: RecommendationResult
    mitigation_plan: RiskMitigationPlan
    scheme_mentions: List[str] = field(default_factory=list)
    scheme_verification: Optional[SchemeVerificationResult] = None
    scheme_matching: Optional[SchemeMatchingResult] = None
    processing_time_ms: float = 0.0

    @property
    def sections(self) -> List[Section]:
        return self.classification.sections

    def to_dict(self) -> Dict[str, Any]:
        return {
            "dpr_id": self.dpr_id,
            "classification": self.classification.to_dict(),
            "features": self.features.to_dict(),
            "profile": self.profile.to_dict(),
            "probability": self.probability.to_dict(),
            "risk_analysis": self.risk_analysis.to_dict(),
            "risk_classification": self.risk_classification.to_dict(),
            "recommendations": self.recommendations.to_dict(),
            "mitigation_plan": self.mitigation_plan.to_dict(),
            "scheme_mentions": list(self.scheme_mentions),
            "scheme_verification": self.scheme_verification.to_dict() if self.scheme_verification else None,
            "scheme_matching": self.scheme_matching.to_dict() if self.scheme_matching else None,
            "processing_time_ms": round(self.processing_time_ms, 2),
        }


class DPRAnalysisPipeline:
    """
    Runs the full DPR analysis with one shared configuration.

    Owned stores (checklist, mitigation strategies, simulation sessions) can
    be injected so several pipelines share them, or are created per pipeline.
    """

    def __init__(
        self,
        config: Optional[AnalysisConfig] = None,
        checklist_store: Optional[ChecklistStore] = None,
        strategy_store: Optional[MitigationStrategyStore] = None,
        reference_date=None,
    ):
        self.config = config or get_config()

        self.classifier = SectionClassifier(self.config.classifier)
        self.classifier.initialize()
        self.extractor = EntityExtractor(self.config.extraction, reference_date=reference_date)
        self.gap_analyzer = GapAnalyzer(checklist_store, self.config.gap)
        self.aggregator = FeatureAggregator(self.extractor, self.gap_analyzer, self.config.gap)

        self.verifier = SchemeVerifier(self.config.schemes)
        self.matcher = SchemeMatcher(self.config.schemes)

        self.profiler = ProjectProfiler(self.config.profile)
        self.calculator = ProbabilityCalculator(self.config.probability)
        self.risk_classifier = RiskClassifier()
        self.planner = MitigationPlanner(strategy_store)
        self.simulator = WhatIfSimulator(self.calculator, self.config.simulation)

    @staticmethod
    def _run_stage(stage: str, fn: Callable[..., T], *args, **kwargs) -> T:
        try:
            return fn(*args, **kwargs)
        except StageError:
            raise
        except Exception as e:
            logger.error(f"{stage} failed: {e}")
            raise StageError(stage, e) from e

    def analyze(
        self,
        dpr_id: str,
        raw_text: str,
        registry: Optional[Sequence[GovernmentScheme]] = None,
        state: Optional[str] = None,
        structured_total: Optional[float] = None,
        historical_projects: Optional[Sequence[HistoricalProject]] = None,
    ) -> DPRAnalysisReport:
        """
        Analyze one DPR.

        Args:
            dpr_id: Document identifier carried into every result
            raw_text: Already-extracted document text
            registry: Scheme registry; scheme stages are skipped when None
            state: Project state; detected from location entities when omitted
            structured_total: Total cost pre-extracted by the upstream collaborator
            historical_projects: Comparable projects for precedent lookup

        Returns:
            DPRAnalysisReport
        """
        started = time.time()
        raw_text = raw_text or ""
        history = list(historical_projects or [])

        classification = self._run_stage(STAGE_CLASSIFICATION, self.classifier.classify_sections, raw_text)
        sections = classification.sections

        entities = self._run_stage(STAGE_EXTRACTION, self.extractor.extract_entities, raw_text)
        gap = self._run_stage(STAGE_GAP_ANALYSIS, self.gap_analyzer.analyze_gaps, sections, entities.entities)
        features = self._run_stage(
            STAGE_AGGREGATION, self.aggregator.extract_features,
            sections, raw_text, entity_result=entities, gap_result=gap,
        )

        mentions: List[str] = []
        verification = None
        matching = None
        if registry is not None:
            mentions = self._run_stage(STAGE_SCHEME_MATCHING, detect_scheme_mentions, raw_text, registry)
            context = self.project_context(sections, features, state, structured_total)
            verification = self._run_stage(
                STAGE_SCHEME_MATCHING, self.verifier.verify_schemes, mentions, registry, context,
            )
            request = SchemeMatchingRequest(
                document_id=dpr_id,
                project_description=context.description,
                sectors=context.sectors,
                location=context.location if context.location.state else None,
                estimated_cost=context.estimated_cost or None,
                existing_schemes=mentions,
            )
            matching = self._run_stage(STAGE_SCHEME_MATCHING, self.matcher.match_schemes, request, registry)

        profile = self._run_stage(
            STAGE_PROFILING, self.profiler.profile,
            sections, entities.monetary, structured_total, history or None,
        )

        probability = self._run_stage(
            STAGE_PROBABILITY, self.calculator.calculate_completion_probability,
            profile.features, profile.risk_factors, dpr_id,
        )
        risk_analysis = self._run_stage(
            STAGE_PROBABILITY, self.calculator.analyze_risks,
            profile.features, profile.risk_factors, dpr_id,
        )
        recommendations = self._run_stage(
            STAGE_PROBABILITY, self.calculator.generate_recommendations,
            profile.features, profile.risk_factors, probability.completion_probability, dpr_id,
        )
        risk_classification = self._run_stage(
            STAGE_PROBABILITY, self.risk_classifier.classify_risks,
            profile.features, history, dpr_id,
        )
        plan = self._run_stage(
            STAGE_MITIGATION, self.planner.generate_plan,
            dpr_id, profile.risk_factors, profile.features, risk_classification.overall_risk_level,
        )

        report = DPRAnalysisReport(
            dpr_id=dpr_id,
            classification=classification,
            features=features,
            profile=profile,
            probability=probability,
            risk_analysis=risk_analysis,
            risk_classification=risk_classification,
            recommendations=recommendations,
            mitigation_plan=plan,
            scheme_mentions=mentions,
            scheme_verification=verification,
            scheme_matching=matching,
            processing_time_ms=(time.time() - started) * 1000,
        )
        logger.info(
            f"DPR '{dpr_id}' analyzed: {len(sections)} sections, "
            f"score {gap.overall_score:.1f}, completion {probability.completion_probability}%, "
            f"risk {risk_analysis.risk_level.value}"
        )
        return report

    def start_simulation(self, report: DPRAnalysisReport) -> SimulationSession:
        """Open a what-if session seeded with the report's project profile"""
        return self.simulator.initialize_session(
            report.dpr_id, report.profile.features, report.profile.risk_factors,
        )

    def project_context(
        self,
        sections: Sequence[Section],
        features: FeatureExtractionResult,
        state: Optional[str] = None,
        structured_total: Optional[float] = None,
    ) -> ProjectContext:
        """Project profile for scheme relevance scoring"""
        summary = next((s for s in sections if s.type == SectionType.EXECUTIVE_SUMMARY), None)
        if summary is not None:
            description = summary.content
        else:
            description = " ".join(s.content for s in sections)[:DESCRIPTION_LIMIT]

        all_text = " ".join(s.content for s in sections).lower()
        category = ProjectProfiler.project_category(all_text)
        if structured_total and structured_total > 0:
            cost = float(structured_total)
        else:
            cost = features.document_metadata.total_cost or 0

        return ProjectContext(
            description=description,
            sectors=SECTORS_BY_CATEGORY.get(category, SECTORS_BY_CATEGORY["infrastructure"]),
            location=ProjectLocation(state=state or self.detect_state(features) or ""),
            estimated_cost=cost,
        )

    @staticmethod
    def detect_state(features: FeatureExtractionResult) -> Optional[str]:
        """First Northeast state named in the document"""
        for location in features.entities.locations:
            if location.location_type != LocationType.STATE:
                continue
            for state in NORTHEAST_STATES:
                if location.value.lower() == state.lower():
                    return state
        return None


def create_pipeline(config: Optional[AnalysisConfig] = None, **kwargs) -> DPRAnalysisPipeline:
    """Factory function to create the analysis pipeline"""
    return DPRAnalysisPipeline(config=config, **kwargs)
