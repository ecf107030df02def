"""
Unit tests for entity extraction

Tests cover:
- Monetary amounts with Indian multipliers and currency detection
- Absolute, ISO and relative dates (invalid dates dropped)
- Coordinates, states, cities and districts
- Resource quantities and their types
- Deterministic ordering and document metadata
"""

import pytest
import sys
import os
from datetime import date

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))

from analysis.entity_extractor import EntityExtractor, add_months
from analysis.models import (
    EntityType,
    MonetaryType,
    DateType,
    LocationType,
    ResourceType,
)


@pytest.mark.unit
class TestMonetaryExtraction:

    def setup_method(self):
        self.extractor = EntityExtractor(reference_date=date(2025, 1, 31))

    def test_lakh_amount_matches_two_patterns(self):
        amounts = self.extractor.extract_monetary("The project cost is Rs. 50 lakh.")

        # "Rs. 50 lakh" and the bare "50 lakh" start at different positions
        assert len(amounts) == 2
        assert all(a.numeric_value == 5_000_000 for a in amounts)

        prefixed = amounts[0]
        assert prefixed.value == "Rs. 50 lakh"
        assert prefixed.currency == "INR"
        assert prefixed.monetary_type == MonetaryType.COST_ESTIMATE
        assert prefixed.confidence == pytest.approx(1.0)

    def test_crore_with_decimals(self):
        amounts = self.extractor.extract_monetary("Total of Rs. 12.50 crore sanctioned")
        assert amounts[0].numeric_value == pytest.approx(125_000_000)

    @pytest.mark.parametrize("text,prefixed,expected", [
        ("The total cost is Rs. 4.5 crore.", "Rs. 4.5 crore", 45_000_000),
        ("Contingency of Rs. 7.5 lakh is kept.", "Rs. 7.5 lakh", 750_000),
        ("Amount: ₹ 1.125 crore", "₹ 1.125 crore", 11_250_000),
    ])
    def test_single_digit_decimals_keep_multiplier(self, text, prefixed, expected):
        amounts = self.extractor.extract_monetary(text)

        assert amounts[0].value == prefixed
        assert all(a.numeric_value == pytest.approx(expected) for a in amounts)

    def test_budget_context_is_budget_item(self):
        amounts = self.extractor.extract_monetary("The budget allocation is Rs. 2 crore for phase one.")
        prefixed = [a for a in amounts if a.value.startswith("Rs")]
        assert prefixed[0].monetary_type == MonetaryType.BUDGET_ITEM
        assert prefixed[0].numeric_value == 20_000_000

    def test_dollar_amount(self):
        amounts = self.extractor.extract_monetary("Equipment import of $1,250.00 was made.")
        assert len(amounts) == 1
        assert amounts[0].currency == "USD"
        assert amounts[0].numeric_value == pytest.approx(1250.0)
        assert amounts[0].monetary_type == MonetaryType.AMOUNT
        assert amounts[0].confidence == pytest.approx(0.7)

    def test_indian_digit_grouping(self):
        assert EntityExtractor.parse_monetary_value("Rs. 1,50,000", "1,50,000") == 150_000.0

    def test_unparseable_number_returns_none(self):
        assert EntityExtractor.parse_monetary_value("Rs. x", "x") is None


@pytest.mark.unit
class TestDateExtraction:

    def setup_method(self):
        self.extractor = EntityExtractor(reference_date=date(2025, 1, 31))

    def test_day_first_numeric_date(self):
        dates = self.extractor.extract_dates("Work starts on 15/08/2025 at the site.")
        assert len(dates) == 1
        assert dates[0].parsed_date == date(2025, 8, 15)
        assert dates[0].date_type == DateType.START_DATE
        assert dates[0].confidence == pytest.approx(0.9)

    def test_iso_date_gets_confidence_bonus(self):
        dates = self.extractor.extract_dates("Handover is scheduled on 2025-12-31 for the bridge.")
        assert dates[0].parsed_date == date(2025, 12, 31)
        assert dates[0].confidence == pytest.approx(1.0)

    def test_month_name_dates(self):
        dates = self.extractor.extract_dates("Milestone review on March 5, 2026 and 10 June 2026.")
        parsed = sorted(d.parsed_date for d in dates)
        assert parsed == [date(2026, 3, 5), date(2026, 6, 10)]

    def test_impossible_date_is_dropped(self):
        assert self.extractor.extract_dates("Completion on 31/02/2025.") == []

    def test_relative_date_uses_reference_date(self):
        dates = self.extractor.extract_dates("Complete within 1 month of sanction.")
        assert len(dates) == 1
        assert dates[0].parsed_date == date(2025, 2, 28)

    def test_distant_year_has_lower_confidence(self):
        dates = self.extractor.extract_dates("Survey dated 01/01/1990 in the archive.")
        assert dates[0].confidence == pytest.approx(0.6)

    def test_add_months_clamps_day(self):
        assert add_months(date(2024, 1, 31), 1) == date(2024, 2, 29)
        assert add_months(date(2024, 11, 15), 3) == date(2025, 2, 15)


@pytest.mark.unit
class TestLocationExtraction:

    def setup_method(self):
        self.extractor = EntityExtractor()

    def test_decimal_coordinates_in_northeast(self):
        locations = self.extractor.extract_locations("Site at 25.5788, 91.8933 near the river.")
        coordinates = [l for l in locations if l.location_type == LocationType.COORDINATES]
        assert len(coordinates) == 1
        assert coordinates[0].latitude == pytest.approx(25.5788)
        assert coordinates[0].longitude == pytest.approx(91.8933)
        assert coordinates[0].confidence == pytest.approx(1.0)

    def test_coordinates_outside_northeast(self):
        locations = self.extractor.extract_locations("Depot at 12.9716, 77.5946 in the south.")
        assert locations[0].confidence == pytest.approx(0.8)

    def test_out_of_range_coordinates_dropped(self):
        locations = self.extractor.extract_locations("Bad point 95.1234, 200.5678 recorded.")
        assert [l for l in locations if l.location_type == LocationType.COORDINATES] == []

    def test_dms_coordinates(self):
        locations = self.extractor.extract_locations("Bridge at 25°34'44\"N, 91°53'36\"E over the stream.")
        assert len(locations) == 1
        assert locations[0].latitude == pytest.approx(25 + 34 / 60 + 44 / 3600)
        assert locations[0].longitude == pytest.approx(91 + 53 / 60 + 36 / 3600)

    def test_state_city_and_district(self):
        text = "Office in Shillong, Meghalaya serving West Garo Hills district."
        locations = self.extractor.extract_locations(text)
        by_type = {l.location_type: l for l in locations}

        assert by_type[LocationType.STATE].value == "Meghalaya"
        assert by_type[LocationType.STATE].confidence == pytest.approx(0.9)
        assert by_type[LocationType.CITY].value == "Shillong"
        assert by_type[LocationType.DISTRICT].value == "Hills district"
        assert by_type[LocationType.DISTRICT].confidence == pytest.approx(0.6)

    def test_stop_word_district_is_skipped(self):
        locations = self.extractor.extract_locations("Roads across the district were surveyed.")
        assert locations == []


@pytest.mark.unit
class TestResourceExtraction:

    def setup_method(self):
        self.extractor = EntityExtractor()

    def test_workers_are_human_resources(self):
        resources = self.extractor.extract_resources("The site needs 50 workers daily.")
        assert len(resources) == 1
        assert resources[0].resource_type == ResourceType.HUMAN_RESOURCE
        assert resources[0].quantity == 50
        assert resources[0].unit is None

    def test_material_with_unit(self):
        resources = self.extractor.extract_resources("Procure 4500 tonnes of aggregate for the base course.")
        assert resources[0].resource_type == ResourceType.MATERIAL
        assert resources[0].quantity == 4500
        assert resources[0].unit == "tonnes"

    def test_equipment(self):
        resources = self.extractor.extract_resources("Deploy 3 excavators on site.")
        assert resources[0].resource_type == ResourceType.EQUIPMENT
        assert resources[0].quantity == 3

    def test_infrastructure_length(self):
        resources = self.extractor.extract_resources("Build 12 km of road this season.")
        assert resources[0].resource_type == ResourceType.INFRASTRUCTURE
        assert resources[0].unit == "km"

    def test_requirement_context_raises_confidence(self):
        plain = self.extractor.extract_resources("Deploy 3 excavators on site.")[0]
        required = self.extractor.extract_resources("Deploy 3 excavators as required.")[0]
        assert plain.confidence == pytest.approx(0.8)
        assert required.confidence == pytest.approx(0.9)


@pytest.mark.unit
class TestExtractEntities:

    def setup_method(self):
        self.extractor = EntityExtractor(reference_date=date(2025, 1, 31))

    def test_entities_are_ordered_by_position(self, sample_dpr_text):
        result = self.extractor.extract_entities(sample_dpr_text)
        positions = [e.position for e in result.entities]
        assert positions == sorted(positions)
        assert result.metadata.total_entities == len(result.entities)

    def test_extraction_is_deterministic(self, sample_dpr_text):
        first = self.extractor.extract_entities(sample_dpr_text).to_dict()["entities"]
        second = self.extractor.extract_entities(sample_dpr_text).to_dict()["entities"]
        assert first == second

    def test_all_entity_families_found(self, sample_dpr_text):
        result = self.extractor.extract_entities(sample_dpr_text)
        families = {e.type for e in result.entities}
        assert families == {EntityType.MONETARY, EntityType.DATE, EntityType.LOCATION, EntityType.RESOURCE}

    def test_empty_text(self):
        result = self.extractor.extract_entities("")
        assert result.entities == []
        assert result.metadata.average_confidence == 0.0

    def test_generate_metadata(self, sample_dpr_text, sample_total_cost):
        metadata = self.extractor.generate_metadata(sample_dpr_text)

        assert metadata.total_cost == pytest.approx(sample_total_cost)
        assert "Meghalaya" in metadata.locations
        assert "2025-04-01" in metadata.dates
        assert "meghalaya" in metadata.keywords
        assert "project" in metadata.keywords

    def test_metadata_without_amounts_has_no_cost(self):
        metadata = self.extractor.generate_metadata("Nothing to see here.")
        assert metadata.total_cost is None
