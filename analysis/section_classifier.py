"""
DPR Assessor: Section Classifier

Splits raw DPR text into candidate spans at structural delimiters and
classifies each span into one of the five core report sections using
keyword, pattern and context-keyword libraries plus a small positional
bonus.

Key principle: a span is only kept when its confidence clears the
threshold; overlapping spans keep the more confident classification.
"""

import re
import time
import logging
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from core.config import ClassifierConfig, get_config
from core.errors import ServiceNotInitializedError

from .models import (
    Section,
    SectionType,
    ClassificationResult,
    CLASSIFIABLE_SECTION_TYPES,
)
from .text_utils import clamp, mean

logger = logging.getLogger(__name__)


@dataclass
class ClassificationOptions:
    """Per-call overrides for classification"""
    confidence_threshold: float = 0.6
    enable_overlap_detection: bool = True
    min_section_length: int = 50
    max_sections: int = 20

    @classmethod
    def from_config(cls, config: ClassifierConfig) -> "ClassificationOptions":
        return cls(
            confidence_threshold=config.confidence_threshold,
            enable_overlap_detection=config.enable_overlap_detection,
            min_section_length=config.min_section_length,
            max_sections=config.max_sections,
        )


@dataclass
class _Candidate:
    content: str
    start: int
    end: int


class SectionClassifier:
    """
    Classifies DPR text spans into typed sections.

    Uses a multi-layer approach:
    1. Structural splitting (numbered, ALL-CAPS, Title-Case, markdown headers, rule lines)
    2. Paragraph fallback when no structure is found
    3. Per-type scoring (keywords +2, patterns +3, context keywords +1, positional bonus)
    4. Overlap resolution and truncation
    """

    SECTION_DELIMITERS = [
        re.compile(r'\n\s*\d+\.\s+'),            # Numbered sections (1. 2. 3.)
        re.compile(r'\n\s*[A-Z][A-Z\s]{5,}:'),   # ALL CAPS headers with colon
        re.compile(r'\n\s*[A-Z][a-z\s]{10,}:'),  # Title case headers with colon
        re.compile(r'\n\s*#{1,6}\s+'),           # Markdown headers
        re.compile(r'\n\s*\*{2,}\s*'),           # Asterisk separators
        re.compile(r'\n\s*={3,}\s*'),            # Equal sign separators
        re.compile(r'\n\s*-{3,}\s*'),            # Dash separators
    ]

    PARAGRAPH_SPLIT = re.compile(r'\n\s*\n')

    MIN_CANDIDATE_LENGTH = 20
    MIN_PARAGRAPH_LENGTH = 50

    SECTION_LIBRARIES: Dict[SectionType, Dict[str, list]] = {
        SectionType.EXECUTIVE_SUMMARY: {
            "keywords": [
                'executive summary', 'summary', 'overview', 'abstract', 'introduction',
                'project overview', 'brief', 'synopsis', 'outline', 'background',
            ],
            "patterns": [
                r'executive\s+summary',
                r'project\s+overview',
                r'summary',
                r'introduction',
                r'background',
                r'brief',
            ],
            "context": [
                'project', 'objective', 'goal', 'purpose', 'scope', 'overview',
                'initiative', 'development', 'implementation',
            ],
        },
        SectionType.COST_ESTIMATE: {
            "keywords": [
                'cost estimate', 'budget', 'financial', 'expenditure', 'cost analysis',
                'pricing', 'cost breakdown', 'budget allocation', 'financial plan',
                'cost summary', 'estimated cost', 'project cost',
            ],
            "patterns": [
                r'cost\s+estimate',
                r'budget',
                r'financial',
                r'expenditure',
                r'cost\s+analysis',
                r'cost\s+breakdown',
                r'estimated\s+cost',
                r'project\s+cost',
            ],
            "context": [
                'rupees', 'rs', '₹', 'lakh', 'crore', 'amount', 'total', 'price',
                'material', 'labor', 'equipment', 'overhead', 'contingency',
            ],
        },
        SectionType.TIMELINE: {
            "keywords": [
                'timeline', 'schedule', 'duration', 'time frame', 'project schedule',
                'implementation schedule', 'work plan', 'milestones', 'phases',
                'completion time', 'project duration', 'time plan',
            ],
            "patterns": [
                r'timeline',
                r'schedule',
                r'duration',
                r'time\s+frame',
                r'project\s+schedule',
                r'implementation\s+schedule',
                r'completion\s+time',
                r'project\s+duration',
            ],
            "context": [
                'months', 'years', 'weeks', 'days', 'phase', 'milestone', 'start',
                'end', 'completion', 'delivery', 'deadline', 'period',
            ],
        },
        SectionType.RESOURCES: {
            "keywords": [
                'resources', 'manpower', 'human resources', 'personnel', 'staff',
                'team', 'workforce', 'equipment', 'machinery', 'materials',
                'resource allocation', 'resource requirement',
            ],
            "patterns": [
                r'resources',
                r'manpower',
                r'human\s+resources',
                r'personnel',
                r'workforce',
                r'equipment',
                r'machinery',
                r'materials',
                r'resource\s+allocation',
                r'resource\s+requirement',
            ],
            "context": [
                'engineer', 'worker', 'supervisor', 'manager', 'technician',
                'skilled', 'unskilled', 'contractor', 'consultant', 'expert',
            ],
        },
        SectionType.TECHNICAL_SPECS: {
            "keywords": [
                'technical specifications', 'technical details', 'specifications',
                'technical requirements', 'design specifications', 'technical design',
                'engineering details', 'technical parameters', 'system specifications',
            ],
            "patterns": [
                r'technical\s+specifications',
                r'technical\s+details',
                r'specifications',
                r'technical\s+requirements',
                r'design\s+specifications',
                r'technical\s+design',
                r'engineering\s+details',
                r'technical\s+parameters',
            ],
            "context": [
                'design', 'engineering', 'technical', 'specification', 'parameter',
                'standard', 'requirement', 'capacity', 'performance', 'quality',
            ],
        },
    }

    HAS_DIGITS = re.compile(r'\d+')
    CURRENCY_MARKERS = re.compile(r'(?:rs|₹|rupees|lakh|crore)', re.IGNORECASE)
    TIME_TERMS = re.compile(r'(?:month|year|week|day|phase|milestone)', re.IGNORECASE)
    TIMELINE_CONFIDENCE_TERMS = re.compile(r'(?:month|year|phase)', re.IGNORECASE)

    def __init__(self, config: Optional[ClassifierConfig] = None):
        self.config = config or get_config().classifier
        self._initialized = False
        self._compiled: Dict[SectionType, List[re.Pattern]] = {
            section_type: [re.compile(p, re.IGNORECASE) for p in library["patterns"]]
            for section_type, library in self.SECTION_LIBRARIES.items()
        }

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def initialize(self) -> None:
        self._initialized = True
        logger.info("Section classification service initialized")

    def cleanup(self) -> None:
        self._initialized = False
        logger.info("Section classification service cleaned up")

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    def health_status(self) -> Dict[str, object]:
        return {
            "status": "healthy" if self._initialized else "not_initialized",
            "initialized": self._initialized,
            "timestamp": datetime.now().isoformat(),
        }

    @property
    def supported_section_types(self) -> List[SectionType]:
        return list(CLASSIFIABLE_SECTION_TYPES)

    # ------------------------------------------------------------------
    # Classification
    # ------------------------------------------------------------------

    def classify_sections(
        self,
        text: str,
        options: Optional[ClassificationOptions] = None,
    ) -> ClassificationResult:
        """Split text into spans and classify each one"""
        if not self._initialized:
            raise ServiceNotInitializedError("Section classification")

        opts = options or ClassificationOptions.from_config(self.config)
        started = time.perf_counter()
        text = text or ""

        classified: List[Section] = []
        for candidate in self._split_text(text):
            if len(candidate.content) < opts.min_section_length:
                continue

            section_type, confidence = self.classify_span(candidate.content)
            if section_type is None:
                continue
            if confidence < opts.confidence_threshold:
                logger.debug(
                    "Dropped %s span at %d (confidence %.2f)",
                    section_type.value, candidate.start, confidence,
                )
                continue

            classified.append(Section(
                type=section_type,
                content=candidate.content,
                confidence=confidence,
                start_position=candidate.start,
                end_position=candidate.end,
            ))

        if opts.enable_overlap_detection:
            classified = self._resolve_overlaps(classified)

        limited = classified[:max(0, opts.max_sections)]
        sections = [
            replace(section, id=f"section-{index + 1}")
            for index, section in enumerate(limited)
        ]

        overall = self._overall_confidence(sections)
        elapsed_ms = (time.perf_counter() - started) * 1000

        logger.info(
            "Section classification completed: %d sections, confidence %.2f",
            len(sections), overall,
        )

        return ClassificationResult(
            sections=sections,
            overall_confidence=overall,
            processing_time_ms=elapsed_ms,
        )

    def classify_span(self, content: str) -> Tuple[Optional[SectionType], float]:
        """Best section type and confidence for one span of text"""
        scores = self.score_span(content)
        best_type = None
        best_score = 0
        for section_type in CLASSIFIABLE_SECTION_TYPES:
            if scores[section_type] > best_score:
                best_type = section_type
                best_score = scores[section_type]

        if best_type is None:
            return None, 0.0
        return best_type, self._span_confidence(best_score, content, best_type)

    def score_span(self, content: str) -> Dict[SectionType, int]:
        lower = content.lower()
        scores: Dict[SectionType, int] = {}

        for section_type in CLASSIFIABLE_SECTION_TYPES:
            library = self.SECTION_LIBRARIES[section_type]
            score = 0
            score += 2 * sum(1 for kw in library["keywords"] if kw in lower)
            score += 3 * sum(1 for p in self._compiled[section_type] if p.search(content))
            score += sum(1 for kw in library["context"] if kw in lower)
            score += self._positional_score(section_type, content)
            scores[section_type] = score

        return scores

    def _positional_score(self, section_type: SectionType, content: str) -> int:
        if section_type == SectionType.EXECUTIVE_SUMMARY:
            return 1 if len(content) < 1000 else 0

        if section_type == SectionType.COST_ESTIMATE:
            bonus = 1 if self.HAS_DIGITS.search(content) else 0
            if self.CURRENCY_MARKERS.search(content):
                bonus += 2
            return bonus

        if section_type == SectionType.TIMELINE:
            return 1 if self.TIME_TERMS.search(content) else 0

        return 0

    def _span_confidence(self, score: int, content: str, section_type: SectionType) -> float:
        confidence = min(score / 10, 1.0)

        if len(content) > 100:
            confidence += 0.1
        if len(content) > 500:
            confidence += 0.1

        if section_type == SectionType.COST_ESTIMATE and self.HAS_DIGITS.search(content):
            confidence += 0.2
        if section_type == SectionType.TIMELINE and self.TIMELINE_CONFIDENCE_TERMS.search(content):
            confidence += 0.2

        return clamp(confidence)

    # ------------------------------------------------------------------
    # Splitting
    # ------------------------------------------------------------------

    def _split_text(self, text: str) -> List[_Candidate]:
        boundaries = {0, len(text)}
        for delimiter in self.SECTION_DELIMITERS:
            for match in delimiter.finditer(text):
                boundaries.add(match.start())

        if len(boundaries) == 2 and text:
            # No structure found: fall back to paragraphs
            return self._split_paragraphs(text)

        ordered = sorted(boundaries)
        candidates = []
        for start, end in zip(ordered, ordered[1:]):
            content = text[start:end].strip()
            if len(content) > self.MIN_CANDIDATE_LENGTH:
                candidates.append(_Candidate(content, start, end))
        return candidates

    def _split_paragraphs(self, text: str) -> List[_Candidate]:
        candidates = []
        start = 0
        separators = [(m.start(), m.end()) for m in self.PARAGRAPH_SPLIT.finditer(text)]
        for sep_start, sep_end in separators + [(len(text), len(text))]:
            chunk = text[start:sep_start]
            trimmed = chunk.strip()
            if len(trimmed) > self.MIN_PARAGRAPH_LENGTH:
                offset = start + len(chunk) - len(chunk.lstrip())
                candidates.append(_Candidate(trimmed, offset, offset + len(trimmed)))
            start = sep_end
        return candidates

    # ------------------------------------------------------------------
    # Post-processing
    # ------------------------------------------------------------------

    @staticmethod
    def _resolve_overlaps(sections: List[Section]) -> List[Section]:
        resolved: List[Section] = []
        for section in sorted(sections, key=lambda s: s.start_position):
            for index, existing in enumerate(resolved):
                if section.overlaps(existing):
                    if section.confidence > existing.confidence:
                        resolved[index] = section
                    break
            else:
                resolved.append(section)
        return resolved

    @staticmethod
    def _overall_confidence(sections: List[Section]) -> float:
        if not sections:
            return 0.0
        diversity_bonus = min(len({s.type for s in sections}) * 0.1, 0.3)
        return clamp(mean(s.confidence for s in sections) + diversity_bonus)
