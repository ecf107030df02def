"""
DPR Assessor: Gap Analyzer

Scores classified sections and extracted entities against the weighted
completeness checklist.

Field lookup order:
1. Relevant entity inside the section (same type, or value mentions a field keyword)
2. Type-specific regex over the section content
3. Keyword presence at a fixed low confidence

Field score = weight*0.5 (present) + weight*0.3*confidence + weight*0.2 (valid),
capped at the field weight.
"""

import re
import logging
from typing import Dict, List, Optional, Sequence, Tuple

from core.config import GapAnalysisConfig, get_config

from .checklist import (
    Checklist,
    ChecklistField,
    ChecklistSection,
    ChecklistStore,
    FieldType,
    RuleType,
)
from .models import (
    ExtractedEntity,
    FieldScore,
    GapAnalysisResult,
    GapSummary,
    IncompleteField,
    MissingField,
    Section,
    SectionScore,
)

logger = logging.getLogger(__name__)


KEYWORD_ONLY_VALUE = "Present (keywords found)"
KEYWORD_ONLY_CONFIDENCE = 0.5
PATTERN_CONFIDENCE_FACTOR = 0.8

SECTION_NOT_FOUND = "Section not found in document"
FIELD_NOT_FOUND = "Field content not found or extracted"

FIELD_TYPE_KEYWORDS: Dict[FieldType, List[str]] = {
    FieldType.MONETARY: ["cost", "budget", "amount", "price", "estimate", "fund"],
    FieldType.DATE: ["date", "timeline", "schedule", "deadline", "start", "end"],
    FieldType.LOCATION: ["location", "site", "address", "place", "area"],
    FieldType.RESOURCE: ["resource", "manpower", "equipment", "material", "staff"],
}

_AMOUNT = r"([\d,\.]+(?:\s*(?:lakh|crore|thousand))?)"
_RUPEE = r"(?:rs\.?\s*|₹\s*|inr\s*)"
_NUMBER = re.compile(r"-?\d+(?:\.\d+)?")


def field_keywords(checklist_field: ChecklistField) -> List[str]:
    """Field name plus the vocabulary of its type, lowercased"""
    keywords = [checklist_field.name.lower()]
    keywords.extend(FIELD_TYPE_KEYWORDS.get(checklist_field.type, []))
    return keywords


def field_search_patterns(checklist_field: ChecklistField) -> List[re.Pattern]:
    """Type-specific patterns run against lowercased section content"""
    name = re.escape(checklist_field.name.lower())
    field_type = checklist_field.type

    if field_type == FieldType.MONETARY:
        sources = [
            rf"{name}[:\s]*{_RUPEE}{_AMOUNT}",
            rf"(?:cost|budget|amount|estimate|price)[:\s]*{_RUPEE}{_AMOUNT}",
        ]
    elif field_type == FieldType.DATE:
        sources = [
            rf"{name}[:\s]*(\d{{1,2}}[/\-]\d{{1,2}}[/\-]\d{{2,4}})",
            rf"{name}[:\s]*([a-z]+\s+\d{{1,2}},?\s+\d{{4}})",
        ]
    elif field_type == FieldType.LOCATION:
        sources = [
            rf"{name}[:\s]*([a-z\s,]+(?:district|state|city|village))",
            r"(?:location|site|address)[:\s]*([a-z\s,]+)",
        ]
    elif field_type == FieldType.RESOURCE:
        sources = [
            rf"{name}[:\s]*(\d+\s*[a-z]+)",
            r"(?:resource|manpower|equipment)[:\s]*([a-z\d\s,]+)",
        ]
    elif field_type == FieldType.PERCENTAGE:
        sources = [rf"{name}[:\s]*([\d\.]+\s*%)"]
    else:
        sources = [rf"{name}[:\s]*([^\n\.]{{10,200}})"]

    return [re.compile(s, re.IGNORECASE) for s in sources]


def validate_field_value(checklist_field: ChecklistField, value: str) -> List[str]:
    """Apply the field's validation rules; returns the failure messages"""
    errors = []
    for rule in checklist_field.rules:
        if rule.type == RuleType.MIN_LENGTH:
            if len(value) < rule.value:
                errors.append(f"{rule.message or 'Content too short'} (minimum {rule.value} characters)")

        elif rule.type == RuleType.MAX_LENGTH:
            if len(value) > rule.value:
                errors.append(f"{rule.message or 'Content too long'} (maximum {rule.value} characters)")

        elif rule.type == RuleType.PATTERN:
            try:
                matched = re.search(rule.value, value) is not None
            except re.error as e:
                logger.warning(f"Invalid pattern on field {checklist_field.id}: {e}")
                matched = False
            if not matched:
                errors.append(rule.message or "Content does not match required pattern")

        elif rule.type == RuleType.REQUIRED_KEYWORDS:
            keywords = rule.value if isinstance(rule.value, (list, tuple)) else [rule.value]
            lower = value.lower()
            if not all(str(k).lower() in lower for k in keywords):
                errors.append(f"{rule.message or 'Missing required keywords'}: {', '.join(map(str, keywords))}")

        elif rule.type == RuleType.RANGE:
            low, high = rule.value
            number = _NUMBER.search(value.replace(",", ""))
            if number is None or not low <= float(number.group(0)) <= high:
                errors.append(f"{rule.message or 'Value out of range'} (expected {low} to {high})")

    return errors


class GapAnalyzer:
    """Weighted checklist scoring of a classified DPR"""

    def __init__(self, store: Optional[ChecklistStore] = None, config: Optional[GapAnalysisConfig] = None):
        self.store = store or ChecklistStore()
        self.config = config or get_config().gap

    def get_checklist(self) -> Checklist:
        return self.store.get()

    def update_checklist(self, checklist: Checklist) -> None:
        """Replace the checklist wholesale; raises ChecklistValidationError on bad weights"""
        self.store.replace(checklist)

    def analyze_gaps(
        self,
        sections: Sequence[Section],
        entities: Sequence[ExtractedEntity],
    ) -> GapAnalysisResult:
        checklist = self.store.get()

        section_scores = [
            self._score_section(checklist_section, sections, entities)
            for checklist_section in checklist.sections
        ]

        total_score = sum(s.score for s in section_scores)
        max_score = sum(s.max_score for s in section_scores)
        overall_score = (total_score / max_score) * 100 if max_score > 0 else 0.0

        all_fields = [f for s in section_scores for f in s.field_scores]
        present_fields = [f for f in all_fields if f.present]
        completeness = (len(present_fields) / len(all_fields)) * 100 if all_fields else 0.0

        missing_fields = self._missing_fields(checklist, section_scores)
        incomplete_fields = self._incomplete_fields(section_scores)
        missing_sections = [s.section_name for s in section_scores if not s.present]

        result = GapAnalysisResult(
            checklist_id=checklist.id,
            overall_score=min(100.0, overall_score),
            completeness_percentage=min(100.0, completeness),
            section_scores=section_scores,
            missing_fields=missing_fields,
            incomplete_fields=incomplete_fields,
            missing_sections=missing_sections,
            recommendations=self._recommendations(section_scores, missing_fields, incomplete_fields),
            summary=self._summary(section_scores, missing_fields, incomplete_fields),
        )

        logger.info(
            "Gap analysis: score %.1f, %.1f%% complete, %d missing fields, %d missing sections",
            result.overall_score, result.completeness_percentage,
            len(missing_fields), len(missing_sections),
        )
        return result

    # ------------------------------------------------------------------
    # Scoring
    # ------------------------------------------------------------------

    def _score_section(
        self,
        checklist_section: ChecklistSection,
        sections: Sequence[Section],
        entities: Sequence[ExtractedEntity],
    ) -> SectionScore:
        extracted = next((s for s in sections if s.type == checklist_section.type), None)

        score = SectionScore(
            section_id=checklist_section.id,
            section_name=checklist_section.name,
            section_type=checklist_section.type,
            present=extracted is not None,
            score=0.0,
            max_score=checklist_section.weight,
            completeness_percentage=0.0,
            required=checklist_section.required,
        )

        if extracted is None:
            score.field_scores = [
                FieldScore(
                    field_id=f.id,
                    field_name=f.name,
                    present=False,
                    value=None,
                    confidence=0.0,
                    score=0.0,
                    max_score=f.weight,
                    required=f.required,
                    validation_errors=[SECTION_NOT_FOUND],
                )
                for f in checklist_section.fields
            ]
            return score

        section_entities = self._entities_in_section(extracted, entities)
        score.field_scores = [
            self._score_field(f, extracted, section_entities) for f in checklist_section.fields
        ]
        score.score = min(sum(f.score for f in score.field_scores), score.max_score)
        if score.max_score > 0:
            score.completeness_percentage = (score.score / score.max_score) * 100
        return score

    def _score_field(
        self,
        checklist_field: ChecklistField,
        section: Section,
        entities: Sequence[ExtractedEntity],
    ) -> FieldScore:
        field_score = FieldScore(
            field_id=checklist_field.id,
            field_name=checklist_field.name,
            present=False,
            value=None,
            confidence=0.0,
            score=0.0,
            max_score=checklist_field.weight,
            required=checklist_field.required,
        )

        found = self.extract_field_content(checklist_field, section, entities)
        if found is None:
            field_score.validation_errors.append(FIELD_NOT_FOUND)
            return field_score

        value, confidence = found
        errors = validate_field_value(checklist_field, value)

        field_score.present = True
        field_score.value = value
        field_score.confidence = confidence
        field_score.validation_errors = errors
        field_score.score = self.field_score(checklist_field.weight, confidence, not errors)
        return field_score

    @staticmethod
    def field_score(weight: float, confidence: float, is_valid: bool) -> float:
        score = weight * 0.5
        score += weight * 0.3 * confidence
        if is_valid:
            score += weight * 0.2
        return min(score, weight)

    def extract_field_content(
        self,
        checklist_field: ChecklistField,
        section: Section,
        entities: Sequence[ExtractedEntity],
    ) -> Optional[Tuple[str, float]]:
        """(value, confidence) for a field, or None when nothing was found"""
        keywords = field_keywords(checklist_field)

        relevant = [e for e in entities if self._is_relevant(e, checklist_field, keywords)]
        if relevant:
            best = max(relevant, key=lambda e: e.confidence)
            return best.value, best.confidence

        content = section.content.lower()
        for pattern in field_search_patterns(checklist_field):
            match = pattern.search(content)
            if match:
                value = (match.group(1) or match.group(0)).strip()
                return value, section.confidence * PATTERN_CONFIDENCE_FACTOR

        if any(k in content for k in keywords):
            return KEYWORD_ONLY_VALUE, KEYWORD_ONLY_CONFIDENCE

        return None

    @staticmethod
    def _is_relevant(entity: ExtractedEntity, checklist_field: ChecklistField, keywords: List[str]) -> bool:
        if entity.type.value == checklist_field.type.value:
            return True
        value = entity.value.lower()
        return any(k in value for k in keywords)

    @staticmethod
    def _entities_in_section(section: Section, entities: Sequence[ExtractedEntity]) -> List[ExtractedEntity]:
        # Caller-built sections may carry no offsets; then every entity is a candidate
        if section.end_position <= section.start_position:
            return list(entities)
        return [e for e in entities if section.start_position <= e.position < section.end_position]

    # ------------------------------------------------------------------
    # Findings
    # ------------------------------------------------------------------

    @staticmethod
    def _missing_fields(checklist: Checklist, section_scores: List[SectionScore]) -> List[MissingField]:
        missing = []
        for section_score in section_scores:
            checklist_section = checklist.find_section(section_score.section_id)
            definitions = {f.id: f for f in checklist_section.fields} if checklist_section else {}
            for field_score in section_score.field_scores:
                if field_score.present:
                    continue
                definition = definitions.get(field_score.field_id)
                if definition is None:
                    continue
                missing.append(MissingField(
                    section_id=section_score.section_id,
                    section_name=section_score.section_name,
                    field_id=definition.id,
                    field_name=definition.name,
                    description=definition.description,
                    weight=definition.weight,
                    required=definition.required,
                ))
        return missing

    def _incomplete_fields(self, section_scores: List[SectionScore]) -> List[IncompleteField]:
        threshold = self.config.incomplete_confidence_threshold
        incomplete = []
        for section_score in section_scores:
            for field_score in section_score.field_scores:
                if not field_score.present:
                    continue
                if field_score.validation_errors or field_score.confidence < threshold:
                    incomplete.append(IncompleteField(
                        section_id=section_score.section_id,
                        section_name=section_score.section_name,
                        field_id=field_score.field_id,
                        field_name=field_score.field_name,
                        extracted_value=field_score.value or "",
                        confidence=field_score.confidence,
                        issues=list(field_score.validation_errors),
                    ))
        return incomplete

    def _recommendations(
        self,
        section_scores: List[SectionScore],
        missing_fields: List[MissingField],
        incomplete_fields: List[IncompleteField],
    ) -> List[str]:
        recommendations = []

        missing_sections = [s.section_name for s in section_scores if not s.present]
        if missing_sections:
            recommendations.append(f"Add missing sections: {', '.join(missing_sections)}")

        critical = [f.field_name for f in missing_fields if f.required]
        if critical:
            recommendations.append(f"Include critical missing information: {', '.join(critical[:5])}")

        if incomplete_fields:
            names = [f.field_name for f in incomplete_fields[:3]]
            recommendations.append(f"Improve quality of: {', '.join(names)}")

        for section_score in section_scores:
            if section_score.present and \
                    section_score.completeness_percentage < self.config.section_enhancement_threshold:
                recommendations.append(
                    f"Enhance {section_score.section_name} section - currently "
                    f"{section_score.completeness_percentage:.1f}% complete"
                )

        return recommendations

    def _summary(
        self,
        section_scores: List[SectionScore],
        missing_fields: List[MissingField],
        incomplete_fields: List[IncompleteField],
    ) -> GapSummary:
        total_sections = len(section_scores)
        present_sections = sum(1 for s in section_scores if s.present)
        total_fields = sum(len(s.field_scores) for s in section_scores)
        present_fields = sum(1 for s in section_scores for f in s.field_scores if f.present)

        critical_threshold = self.config.critical_confidence_threshold
        critical_issues = sum(1 for f in missing_fields if f.required)
        critical_issues += sum(1 for f in incomplete_fields if f.confidence < critical_threshold)

        return GapSummary(
            total_sections=total_sections,
            present_sections=present_sections,
            missing_sections=total_sections - present_sections,
            total_fields=total_fields,
            present_fields=present_fields,
            missing_fields=len(missing_fields),
            incomplete_fields=len(incomplete_fields),
            critical_issues=critical_issues,
        )
