"""
DPR Assessor: Completeness Checklist

The weighted rubric a complete DPR is scored against, and the owned store
that serves it to the gap analyzer. A checklist is replaced wholesale;
there is no partial patching.
"""

import copy
import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from core.errors import ChecklistValidationError

from .models import SectionType

logger = logging.getLogger(__name__)

WEIGHT_TOLERANCE = 1e-6


class FieldType(str, Enum):
    TEXT = "TEXT"
    MONETARY = "MONETARY"
    DATE = "DATE"
    LOCATION = "LOCATION"
    RESOURCE = "RESOURCE"
    PERCENTAGE = "PERCENTAGE"
    BOOLEAN = "BOOLEAN"


class RuleType(str, Enum):
    MIN_LENGTH = "MIN_LENGTH"
    MAX_LENGTH = "MAX_LENGTH"
    RANGE = "RANGE"
    PATTERN = "PATTERN"
    REQUIRED_KEYWORDS = "REQUIRED_KEYWORDS"


@dataclass
class ValidationRule:
    """
    A single check applied to an extracted field value.

    value depends on the rule type: an int for MIN_LENGTH/MAX_LENGTH,
    a (min, max) pair for RANGE, a regex for PATTERN and a list of terms
    for REQUIRED_KEYWORDS.
    """
    type: RuleType
    value: Any
    message: str = ""

    def to_dict(self) -> Dict[str, Any]:
        value = list(self.value) if isinstance(self.value, (list, tuple)) else self.value
        return {"type": self.type.value, "value": value, "message": self.message}


@dataclass
class ChecklistField:
    id: str
    name: str
    description: str
    type: FieldType
    weight: float
    required: bool = True
    rules: List[ValidationRule] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "type": self.type.value,
            "weight": self.weight,
            "required": self.required,
            "rules": [r.to_dict() for r in self.rules],
        }


@dataclass
class ChecklistSection:
    id: str
    name: str
    type: SectionType
    weight: float
    required: bool = True
    fields: List[ChecklistField] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type.value,
            "weight": self.weight,
            "required": self.required,
            "fields": [f.to_dict() for f in self.fields],
        }


@dataclass
class Checklist:
    id: str
    name: str
    version: str
    sections: List[ChecklistSection] = field(default_factory=list)
    total_weight: float = 100.0

    @property
    def field_count(self) -> int:
        return sum(len(s.fields) for s in self.sections)

    def find_section(self, section_id: str) -> Optional[ChecklistSection]:
        for section in self.sections:
            if section.id == section_id:
                return section
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "version": self.version,
            "total_weight": self.total_weight,
            "sections": [s.to_dict() for s in self.sections],
        }


def validate_checklist(checklist: Checklist) -> List[str]:
    """Return weight consistency issues; an empty list means the checklist is usable"""
    issues = []

    if not checklist.sections:
        issues.append("checklist has no sections")
        return issues

    section_total = sum(s.weight for s in checklist.sections)
    if abs(section_total - checklist.total_weight) > WEIGHT_TOLERANCE:
        issues.append(
            f"section weights sum to {section_total:g}, expected {checklist.total_weight:g}"
        )

    seen_ids = set()
    for section in checklist.sections:
        if section.id in seen_ids:
            issues.append(f"duplicate section id '{section.id}'")
        seen_ids.add(section.id)

        if section.weight < 0:
            issues.append(f"section '{section.id}' has a negative weight")
        if not section.fields:
            issues.append(f"section '{section.id}' has no fields")
            continue

        field_total = sum(f.weight for f in section.fields)
        if abs(field_total - section.weight) > WEIGHT_TOLERANCE:
            issues.append(
                f"field weights of section '{section.id}' sum to {field_total:g}, "
                f"expected {section.weight:g}"
            )

    return issues


def _text(field_id, name, description, weight, required=True, rules=None) -> ChecklistField:
    return ChecklistField(field_id, name, description, FieldType.TEXT, weight, required, rules or [])


def default_checklist() -> Checklist:
    """Northeast India DPR checklist (total weight 100)"""
    return Checklist(
        id="dpr-northeast-india-v1",
        name="Northeast India DPR Checklist",
        version="1.0",
        total_weight=100.0,
        sections=[
            ChecklistSection(
                id="executive-summary",
                name="Executive Summary",
                type=SectionType.EXECUTIVE_SUMMARY,
                weight=15,
                fields=[
                    _text("project-title", "Project Title", "Clear and descriptive project title", 3,
                          rules=[ValidationRule(RuleType.MIN_LENGTH, 10, "Project title should be descriptive")]),
                    _text("project-objective", "Project Objective",
                          "Clear statement of project objectives and goals", 4,
                          rules=[ValidationRule(RuleType.MIN_LENGTH, 50, "Objective should be detailed")]),
                    ChecklistField("total-cost", "Total Project Cost", "Overall project cost estimate",
                                   FieldType.MONETARY, 4),
                    _text("project-duration", "Project Duration", "Expected project timeline", 2),
                    _text("beneficiaries", "Target Beneficiaries", "Number and type of beneficiaries", 2),
                ],
            ),
            ChecklistSection(
                id="cost-estimate",
                name="Cost Estimate",
                type=SectionType.COST_ESTIMATE,
                weight=25,
                fields=[
                    ChecklistField(
                        "detailed-cost-breakdown", "Detailed Cost Breakdown",
                        "Item-wise cost breakdown with quantities", FieldType.MONETARY, 10,
                        rules=[ValidationRule(RuleType.REQUIRED_KEYWORDS, ["material", "labor", "equipment"],
                                              "Should include major cost categories")],
                    ),
                    ChecklistField("contingency-provision", "Contingency Provision",
                                   "Contingency amount and percentage", FieldType.MONETARY, 3),
                    ChecklistField("price-escalation", "Price Escalation",
                                   "Provision for price escalation", FieldType.PERCENTAGE, 3),
                    _text("funding-sources", "Funding Sources", "Sources of project funding", 5),
                    _text("cost-comparison", "Cost Comparison", "Comparison with similar projects", 4,
                          required=False),
                ],
            ),
            ChecklistSection(
                id="timeline",
                name="Project Timeline",
                type=SectionType.TIMELINE,
                weight=15,
                fields=[
                    ChecklistField("start-date", "Project Start Date", "Proposed project commencement date",
                                   FieldType.DATE, 3),
                    ChecklistField("completion-date", "Project Completion Date", "Expected project completion date",
                                   FieldType.DATE, 3),
                    _text("milestone-schedule", "Milestone Schedule", "Key project milestones with dates", 5,
                          rules=[ValidationRule(RuleType.REQUIRED_KEYWORDS, ["milestone", "phase"],
                                                "Should include project phases")]),
                    _text("critical-path", "Critical Path Activities", "Activities on the critical path", 4,
                          required=False),
                ],
            ),
            ChecklistSection(
                id="resources",
                name="Resource Requirements",
                type=SectionType.RESOURCES,
                weight=20,
                fields=[
                    ChecklistField("human-resources", "Human Resources", "Manpower requirements by category",
                                   FieldType.RESOURCE, 6),
                    ChecklistField("material-resources", "Material Resources", "Major materials and quantities",
                                   FieldType.RESOURCE, 6),
                    ChecklistField("equipment-machinery", "Equipment and Machinery",
                                   "Equipment and machinery requirements", FieldType.RESOURCE, 4),
                    _text("infrastructure-facilities", "Infrastructure Facilities",
                          "Required infrastructure and facilities", 4),
                ],
            ),
            ChecklistSection(
                id="technical-specs",
                name="Technical Specifications",
                type=SectionType.TECHNICAL_SPECS,
                weight=15,
                fields=[
                    _text("technical-standards", "Technical Standards",
                          "Applicable technical standards and codes", 4),
                    _text("design-parameters", "Design Parameters", "Key design parameters and specifications", 5),
                    _text("quality-specifications", "Quality Specifications",
                          "Quality requirements and testing procedures", 3),
                    ChecklistField("location-details", "Location Details",
                                   "Detailed project location with coordinates", FieldType.LOCATION, 3),
                ],
            ),
            ChecklistSection(
                id="environmental",
                name="Environmental Considerations",
                type=SectionType.ENVIRONMENTAL,
                weight=5,
                required=False,
                fields=[
                    _text("environmental-clearance", "Environmental Clearance",
                          "Environmental clearance requirements and status", 3, required=False),
                    _text("mitigation-measures", "Mitigation Measures",
                          "Environmental mitigation measures", 2, required=False),
                ],
            ),
            ChecklistSection(
                id="risk-assessment",
                name="Risk Assessment",
                type=SectionType.RISK_ASSESSMENT,
                weight=5,
                required=False,
                fields=[
                    _text("identified-risks", "Identified Risks",
                          "Major project risks and their assessment", 3, required=False),
                    _text("mitigation-strategies", "Risk Mitigation Strategies",
                          "Strategies to mitigate identified risks", 2, required=False),
                ],
            ),
        ],
    )


class ChecklistStore:
    """
    Owned holder of the active checklist.

    Readers get the current checklist object; writers swap in a validated
    copy under the lock, so a scoring run never sees a half-updated rubric.
    """

    def __init__(self, checklist: Optional[Checklist] = None):
        self._lock = threading.Lock()
        self._checklist = checklist if checklist is not None else default_checklist()
        issues = validate_checklist(self._checklist)
        if issues:
            raise ChecklistValidationError(self._checklist.id, issues)

    def get(self) -> Checklist:
        with self._lock:
            return self._checklist

    def replace(self, checklist: Checklist) -> None:
        issues = validate_checklist(checklist)
        if issues:
            raise ChecklistValidationError(checklist.id, issues)

        snapshot = copy.deepcopy(checklist)
        with self._lock:
            previous = self._checklist.id
            self._checklist = snapshot
        logger.info("Checklist replaced: %s -> %s", previous, snapshot.id)
