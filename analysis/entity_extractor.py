"""
DPR Assessor: Entity Extractor

Pattern-based extraction of monetary amounts, dates, locations and
resource quantities from DPR text.

Four independent pattern families are scanned. Every match is parsed into
a canonical value, typed from the surrounding context (±50 characters) and
given a heuristic confidence. Matches that cannot be parsed (impossible
calendar dates, coordinates outside the globe) are dropped individually.

Identical input always yields an identical, identically ordered entity list.
"""

import re
import time
import calendar
import logging
from datetime import date, timedelta
from typing import Dict, List, Optional, TypeVar

from core.config import ExtractionConfig, get_config

from .models import (
    ExtractedEntity,
    MonetaryEntity,
    MonetaryType,
    DateEntity,
    DateType,
    GeospatialEntity,
    LocationType,
    ResourceEntity,
    ResourceType,
    ExtractionMetadata,
    EntityExtractionResult,
    DocumentMetadata,
)
from .text_utils import STOP_WORDS, clamp, context_window, mean

logger = logging.getLogger(__name__)

T = TypeVar("T")

MONTHS = [
    "january", "february", "march", "april", "may", "june", "july",
    "august", "september", "october", "november", "december",
]
_MONTH_ALTERNATION = "|".join(m.capitalize() for m in MONTHS)

NORTHEAST_STATES = [
    "Assam", "Arunachal Pradesh", "Manipur", "Meghalaya",
    "Mizoram", "Nagaland", "Tripura", "Sikkim",
]
NORTHEAST_CITIES = [
    "Guwahati", "Shillong", "Imphal", "Aizawl",
    "Kohima", "Agartala", "Itanagar", "Gangtok",
]

MULTIPLIERS = [
    (re.compile(r'crore|\bcr\b', re.IGNORECASE), 10_000_000),
    (re.compile(r'lakh|\blac\b', re.IGNORECASE), 100_000),
    (re.compile(r'thousand|^\s*k\b', re.IGNORECASE), 1_000),
]

IMPORTANT_TERMS = [
    'project', 'development', 'construction', 'infrastructure', 'budget',
    'timeline', 'cost', 'estimate', 'resource', 'allocation', 'scheme',
    'government', 'ministry', 'northeast', 'assam', 'manipur', 'meghalaya',
]


def add_months(start: date, months: int) -> date:
    """Calendar month arithmetic, clamping the day to the target month"""
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def _dedupe(entities: List[T]) -> List[T]:
    """Drop entities repeating an earlier (position, value) pair"""
    seen = set()
    unique = []
    for entity in entities:
        key = (entity.position, entity.value)
        if key in seen:
            continue
        seen.add(key)
        unique.append(entity)
    return unique


class EntityExtractor:
    """
    Stateless scanner for DPR entities.

    The reference date anchors relative dates ("within 6 months") and the
    recency bonus of date confidence. It defaults to today.
    """

    MONETARY_PATTERNS = [
        # Rupees with various formats
        re.compile(
            r'(?:\bRs\.?\s*|\bINR\s*|₹\s*)(\d{1,3}(?:,\d{2,3})*(?:\.\d+)?)'
            r'\s*(?:crore|cr\.?|lakh|lac|thousand|k\b)?',
            re.IGNORECASE,
        ),
        # Lakhs and crores
        re.compile(r'(\d+(?:\.\d+)?)\s*(?:crore|cr\.?|lakh|lac)\s*(?:rupees?|rs\.?|₹)?', re.IGNORECASE),
        # International formats
        re.compile(r'\$\s*(\d{1,3}(?:,\d{3})*(?:\.\d+)?)', re.IGNORECASE),
        # Budget line items
        re.compile(
            r'(?:cost|amount|budget|estimate|price|value):\s*(?:Rs\.?\s*|INR\s*|₹\s*)?'
            r'(\d{1,3}(?:,\d{2,3})*(?:\.\d+)?)'
            r'\s*(?:crore|cr\.?|lakh|lac|thousand|k\b)?',
            re.IGNORECASE,
        ),
    ]

    NUMERIC_DATE_PATTERNS = [
        # DD/MM/YYYY, DD-MM-YYYY
        (re.compile(r'(?<!\d)(\d{1,2})[/\-](\d{1,2})[/\-](\d{4})(?!\d)'), False),
        # DD/MM/YY, DD-MM-YY
        (re.compile(r'(?<!\d)(\d{1,2})[/\-](\d{1,2})[/\-](\d{2})(?!\d)'), True),
    ]
    MONTH_FIRST_DATE = re.compile(
        r'\b(' + _MONTH_ALTERNATION + r')\s+(\d{1,2}),?\s+(\d{4})\b', re.IGNORECASE
    )
    DAY_FIRST_DATE = re.compile(
        r'\b(\d{1,2})\s+(' + _MONTH_ALTERNATION + r')\s+(\d{4})\b', re.IGNORECASE
    )
    ISO_DATE = re.compile(r'(?<!\d)(\d{4})-(\d{1,2})-(\d{1,2})(?!\d)')
    RELATIVE_DATE = re.compile(
        r'(?:within|by|before|after|until)\s+(\d{1,2})\s+(days?|weeks?|months?|years?)',
        re.IGNORECASE,
    )

    DECIMAL_COORDINATES = re.compile(r'(-?\d{1,3}\.\d+),\s*(-?\d{1,3}\.\d+)')
    DMS_COORDINATES = re.compile(
        r'(\d{1,3})°\s*(\d{1,2})\'\s*(\d{1,2}(?:\.\d+)?)"?\s*([NS]),?\s*'
        r'(\d{1,3})°\s*(\d{1,2})\'\s*(\d{1,2}(?:\.\d+)?)"?\s*([EW])',
        re.IGNORECASE,
    )
    LABELLED_COORDINATES = re.compile(
        r'(?:lat|latitude):\s*(-?\d{1,3}\.\d+).*?(?:lon|lng|longitude):\s*(-?\d{1,3}\.\d+)',
        re.IGNORECASE,
    )

    LOCATION_PATTERNS = [
        (re.compile(r'\b(' + '|'.join(NORTHEAST_STATES) + r')\b', re.IGNORECASE), LocationType.STATE),
        (re.compile(r'\b(' + '|'.join(NORTHEAST_CITIES) + r')\b', re.IGNORECASE), LocationType.CITY),
        (re.compile(r'\b(\w+)\s+district\b', re.IGNORECASE), LocationType.DISTRICT),
        (re.compile(r'\b(?:village|town|city|block|tehsil|subdivision)\s+(\w+)', re.IGNORECASE),
         LocationType.LOCALITY),
    ]
    KNOWN_LOCATIONS = re.compile(
        r'Assam|Arunachal|Manipur|Meghalaya|Mizoram|Nagaland|Tripura|Sikkim|'
        + '|'.join(NORTHEAST_CITIES),
        re.IGNORECASE,
    )

    RESOURCE_PATTERNS = [
        # Human resources
        re.compile(
            r'\b(\d+)\s*(?:engineers?|workers?|laborers?|labourers?|technicians?|'
            r'supervisors?|managers?|contractors?)\b',
            re.IGNORECASE,
        ),
        # Materials
        re.compile(
            r'\b(\d+(?:\.\d+)?)\s*(?:tons?|tonnes?|kg|quintals?|bags?|cubic\s*meters?|m³|'
            r'liters?|litres?|gallons?)\s*(?:of\s+)?(\w+)',
            re.IGNORECASE,
        ),
        # Equipment
        re.compile(
            r'\b(\d+)\s*(?:excavators?|bulldozers?|cranes?|trucks?|vehicles?|machines?|equipment)\b',
            re.IGNORECASE,
        ),
        # Infrastructure
        re.compile(
            r'\b(\d+(?:\.\d+)?)\s*(?:km|kilometers?|kilometres?|miles?|meters?|metres?|feet|'
            r'acres?|hectares?)\s*(?:of\s+)?(?:road|highway|pipeline|cable|fence)',
            re.IGNORECASE,
        ),
    ]
    UNIT_PATTERN = re.compile(
        r'\b(tons?|tonnes?|kg|quintals?|bags?|cubic\s*meters?|m³|liters?|litres?|gallons?|'
        r'km|kilometers?|kilometres?|miles?|meters?|metres?|feet|acres?|hectares?)(?!\w)',
        re.IGNORECASE,
    )

    HUMAN_TERMS = re.compile(
        r'engineer|worker|labor|labour|technician|supervisor|manager|contractor|person|people',
        re.IGNORECASE,
    )
    EQUIPMENT_TERMS = re.compile(r'excavator|bulldozer|crane|truck|vehicle|machine|equipment', re.IGNORECASE)
    INFRASTRUCTURE_TERMS = re.compile(r'road|highway|pipeline|cable|fence|building|bridge', re.IGNORECASE)

    def __init__(self, config: Optional[ExtractionConfig] = None, reference_date: Optional[date] = None):
        self.config = config or get_config().extraction
        self.reference_date = reference_date

    @property
    def today(self) -> date:
        return self.reference_date or date.today()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def extract_entities(self, text: str) -> EntityExtractionResult:
        """Run every pattern family over text and flatten the results"""
        started = time.perf_counter()
        text = text or ""

        monetary = self.extract_monetary(text)
        dates = self.extract_dates(text)
        locations = self.extract_locations(text)
        resources = self.extract_resources(text)

        entities: List[ExtractedEntity] = []
        entities.extend(e.to_entity() for e in monetary)
        entities.extend(e.to_entity() for e in dates)
        entities.extend(e.to_entity() for e in locations)
        entities.extend(e.to_entity() for e in resources)
        entities.sort(key=ExtractedEntity.sort_key)

        metadata = ExtractionMetadata(
            total_entities=len(entities),
            processing_time_ms=(time.perf_counter() - started) * 1000,
            average_confidence=mean(e.confidence for e in entities),
        )

        logger.info(
            "Extracted %d entities (%d monetary, %d dates, %d locations, %d resources)",
            len(entities), len(monetary), len(dates), len(locations), len(resources),
        )

        return EntityExtractionResult(
            entities=entities,
            monetary=monetary,
            dates=dates,
            locations=locations,
            resources=resources,
            metadata=metadata,
        )

    def generate_metadata(self, text: str, result: Optional[EntityExtractionResult] = None) -> DocumentMetadata:
        """Searchable metadata derived from extracted entities"""
        if result is None:
            result = self.extract_entities(text)

        total_cost = None
        if result.monetary:
            total_cost = max(e.numeric_value for e in result.monetary)

        keywords: Dict[str, None] = {}
        for entity in result.entities:
            for word in entity.value.lower().split():
                word = word.strip('.,:;()')
                if len(word) > 2:
                    keywords.setdefault(word, None)

        lower = text.lower()
        for term in IMPORTANT_TERMS:
            if term in lower:
                keywords.setdefault(term, None)

        return DocumentMetadata(
            total_cost=total_cost,
            locations=[e.value for e in result.locations],
            dates=[e.parsed_date.isoformat() for e in result.dates],
            resources=[e.value for e in result.resources],
            keywords=list(keywords)[:self.config.max_metadata_keywords],
        )

    # ------------------------------------------------------------------
    # Monetary
    # ------------------------------------------------------------------

    def extract_monetary(self, text: str) -> List[MonetaryEntity]:
        entities = []
        for pattern in self.MONETARY_PATTERNS:
            for match in pattern.finditer(text):
                numeric_value = self.parse_monetary_value(match.group(0), match.group(1))
                if numeric_value is None:
                    continue

                value = match.group(0).strip()
                context = self._context(text, match)
                entities.append(MonetaryEntity(
                    value=value,
                    numeric_value=numeric_value,
                    currency=self._detect_currency(value),
                    monetary_type=self._classify_monetary(context),
                    confidence=self._monetary_confidence(value, context),
                    position=match.start(),
                ))
        return _dedupe(entities)

    @staticmethod
    def parse_monetary_value(matched: str, number: str) -> Optional[float]:
        """Numeric value of an amount with Indian multipliers applied"""
        try:
            base = float(number.replace(",", ""))
        except (TypeError, ValueError):
            return None

        suffix = matched[matched.find(number) + len(number):]
        for unit, multiplier in MULTIPLIERS:
            if unit.search(suffix):
                return base * multiplier
        return base

    @staticmethod
    def _detect_currency(value: str) -> str:
        if re.search(r'₹|\bRs\.?|\bINR', value, re.IGNORECASE):
            return "INR"
        if "$" in value:
            return "USD"
        return "INR"

    @staticmethod
    def _classify_monetary(context: str) -> MonetaryType:
        if re.search(r'budget|allocation|fund', context):
            return MonetaryType.BUDGET_ITEM
        if re.search(r'estimate|cost|price|amount', context):
            return MonetaryType.COST_ESTIMATE
        return MonetaryType.AMOUNT

    @staticmethod
    def _monetary_confidence(value: str, context: str) -> float:
        confidence = 0.7
        if re.search(r'₹|\bRs\.?|\bINR', value, re.IGNORECASE):
            confidence += 0.2
        if re.search(r'cost|budget|amount|price|estimate|fund', context):
            confidence += 0.1
        return clamp(confidence)

    # ------------------------------------------------------------------
    # Dates
    # ------------------------------------------------------------------

    def extract_dates(self, text: str) -> List[DateEntity]:
        entities = []

        for pattern, two_digit_year in self.NUMERIC_DATE_PATTERNS:
            for match in pattern.finditer(text):
                day, month, year = (int(g) for g in match.groups())
                if two_digit_year:
                    year += 2000
                self._append_date(entities, text, match, year, month, day)

        for match in self.MONTH_FIRST_DATE.finditer(text):
            month = MONTHS.index(match.group(1).lower()) + 1
            self._append_date(entities, text, match, int(match.group(3)), month, int(match.group(2)))

        for match in self.DAY_FIRST_DATE.finditer(text):
            month = MONTHS.index(match.group(2).lower()) + 1
            self._append_date(entities, text, match, int(match.group(3)), month, int(match.group(1)))

        for match in self.ISO_DATE.finditer(text):
            year, month, day = (int(g) for g in match.groups())
            self._append_date(entities, text, match, year, month, day, iso=True)

        for match in self.RELATIVE_DATE.finditer(text):
            parsed = self._resolve_relative(int(match.group(1)), match.group(2).lower())
            if parsed is not None:
                self._append_parsed_date(entities, text, match, parsed)

        return _dedupe(entities)

    def _append_date(self, entities, text, match, year, month, day, iso=False) -> None:
        try:
            parsed = date(year, month, day)
        except ValueError:
            logger.debug("Discarded invalid date %r", match.group(0))
            return
        self._append_parsed_date(entities, text, match, parsed, iso=iso)

    def _append_parsed_date(self, entities, text, match, parsed: date, iso: bool = False) -> None:
        context = self._context(text, match)
        entities.append(DateEntity(
            value=match.group(0).strip(),
            parsed_date=parsed,
            date_type=self._classify_date(context),
            confidence=self._date_confidence(parsed, iso),
            position=match.start(),
        ))

    def _resolve_relative(self, amount: int, unit: str) -> Optional[date]:
        try:
            if unit.startswith("day"):
                return self.today + timedelta(days=amount)
            if unit.startswith("week"):
                return self.today + timedelta(weeks=amount)
            if unit.startswith("month"):
                return add_months(self.today, amount)
            return add_months(self.today, amount * 12)
        except (ValueError, OverflowError):
            return None

    @staticmethod
    def _classify_date(context: str) -> DateType:
        if re.search(r'start|begin|commence', context):
            return DateType.START_DATE
        if re.search(r'end|complete|finish', context):
            return DateType.END_DATE
        if re.search(r'deadline|due|before', context):
            return DateType.DEADLINE
        return DateType.MILESTONE_DATE

    def _date_confidence(self, parsed: date, iso: bool) -> float:
        confidence = 0.6
        year_diff = abs(parsed.year - self.today.year)
        if year_diff <= 10:
            confidence += 0.2
        if year_diff <= 5:
            confidence += 0.1
        if iso:
            confidence += 0.1
        return clamp(confidence)

    # ------------------------------------------------------------------
    # Locations
    # ------------------------------------------------------------------

    def extract_locations(self, text: str) -> List[GeospatialEntity]:
        entities = []

        for match in self.DECIMAL_COORDINATES.finditer(text):
            self._append_coordinates(entities, match, float(match.group(1)), float(match.group(2)))

        for match in self.DMS_COORDINATES.finditer(text):
            lat = int(match.group(1)) + int(match.group(2)) / 60 + float(match.group(3)) / 3600
            lon = int(match.group(5)) + int(match.group(6)) / 60 + float(match.group(7)) / 3600
            if match.group(4).upper() == "S":
                lat = -lat
            if match.group(8).upper() == "W":
                lon = -lon
            self._append_coordinates(entities, match, lat, lon)

        for match in self.LABELLED_COORDINATES.finditer(text):
            self._append_coordinates(entities, match, float(match.group(1)), float(match.group(2)))

        for pattern, location_type in self.LOCATION_PATTERNS:
            for match in pattern.finditer(text):
                name = match.group(1)
                if name.lower() in STOP_WORDS or name.isdigit():
                    continue
                value = match.group(0).strip()
                confidence = 0.6
                if self.KNOWN_LOCATIONS.search(value):
                    confidence += 0.3
                entities.append(GeospatialEntity(
                    value=value,
                    location_type=location_type,
                    confidence=clamp(confidence),
                    position=match.start(),
                ))

        return _dedupe(entities)

    def _append_coordinates(self, entities, match, lat: float, lon: float) -> None:
        if not (-90 <= lat <= 90 and -180 <= lon <= 180):
            logger.debug("Discarded out-of-range coordinates %r", match.group(0))
            return

        confidence = 0.8
        lat_min, lat_max = self.config.northeast_latitude
        lon_min, lon_max = self.config.northeast_longitude
        if lat_min <= lat <= lat_max and lon_min <= lon <= lon_max:
            confidence += 0.2

        entities.append(GeospatialEntity(
            value=match.group(0).strip(),
            location_type=LocationType.COORDINATES,
            confidence=clamp(confidence),
            position=match.start(),
            latitude=lat,
            longitude=lon,
        ))

    # ------------------------------------------------------------------
    # Resources
    # ------------------------------------------------------------------

    def extract_resources(self, text: str) -> List[ResourceEntity]:
        entities = []
        for pattern in self.RESOURCE_PATTERNS:
            for match in pattern.finditer(text):
                value = match.group(0).strip()
                context = self._context(text, match)
                unit_match = self.UNIT_PATTERN.search(value)

                confidence = 0.7
                if re.search(r'\d', value):
                    confidence += 0.1
                if re.search(r'resource|allocation|requirement|needed|required', context):
                    confidence += 0.1

                entities.append(ResourceEntity(
                    value=value,
                    resource_type=self._classify_resource(value, context),
                    confidence=clamp(confidence),
                    position=match.start(),
                    quantity=float(match.group(1)),
                    unit=unit_match.group(1) if unit_match else None,
                ))
        return _dedupe(entities)

    def _classify_resource(self, value: str, context: str) -> ResourceType:
        combined = f"{value} {context}"
        if self.HUMAN_TERMS.search(combined):
            return ResourceType.HUMAN_RESOURCE
        if self.EQUIPMENT_TERMS.search(combined):
            return ResourceType.EQUIPMENT
        if self.INFRASTRUCTURE_TERMS.search(combined):
            return ResourceType.INFRASTRUCTURE
        return ResourceType.MATERIAL

    # ------------------------------------------------------------------

    def _context(self, text: str, match: re.Match) -> str:
        return context_window(text, match.start(), match.end(), self.config.context_window)
