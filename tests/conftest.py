"""
DPR Assessor Test Configuration
===============================

Fixtures:
- Realistic Northeast India road DPR text with the five core sections
- Three-scheme registry (PMGSY, MGNREGA, SBM-G) as raw records and models
- Fixed reference date for relative date resolution
- Baseline project features
"""

import pytest
import sys
import os
from datetime import date
from typing import Any, Dict, List

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.config import set_config
from schemes.registry import parse_registry
from feasibility.models import ProjectFeatures


# =============================================================================
# Pytest Configuration
# =============================================================================

def pytest_configure(config):
    """Configure pytest markers"""
    config.addinivalue_line("markers", "unit: Unit tests (fast, isolated)")
    config.addinivalue_line("markers", "integration: Integration tests (full pipeline)")
    config.addinivalue_line("markers", "e2e: End-to-end tests (CLI workflow)")
    config.addinivalue_line("markers", "slow: Slow tests (>5s)")


@pytest.fixture(autouse=True)
def fresh_config():
    """Every test starts from environment defaults"""
    set_config(None)
    yield
    set_config(None)


# =============================================================================
# Golden DPR Fixture - Realistic section content
# =============================================================================

SAMPLE_DPR_TEXT = """1. EXECUTIVE SUMMARY
This Detailed Project Report presents the construction of 12 km of road connecting Tura to Dalu in West Garo Hills district, Meghalaya. The project objective is to provide all-weather connectivity to 14 rural habitations under Pradhan Mantri Gram Sadak Yojana (PMGSY). The scope covers earthwork, bituminous surfacing and cross drainage works.

2. COST ESTIMATE
The total project cost is Rs. 12.50 crore. Material costs are Rs. 6.20 crore, labor costs Rs. 3.10 crore, equipment hire Rs. 2.40 crore and contingency Rs. 80 lakh. Unskilled labour will be sourced through convergence with MGNREGA.

3. PROJECT TIMELINE
The project duration is 18 months starting from 01/04/2025. Phase 1 covers earthwork over 6 months, phase 2 pavement works over 8 months and phase 3 drainage over 4 months. Work will pause during the monsoon from June to September.

4. RESOURCE REQUIREMENTS
Manpower: 2 engineers, 4 supervisors, 60 skilled workers and 120 unskilled workers. Equipment includes 3 excavators, 2 road rollers and 1 hot mix plant. Materials: 4500 tonnes of aggregate and 350 tonnes of bitumen.

5. TECHNICAL SPECIFICATIONS
The road design follows IRC:SP:20 standards for rural roads with a carriageway width of 3.75 m. Technical specifications include a design speed of 50 km/h, pavement thickness of 250 mm and cross drainage capacity for a 25 year flood.
"""

SAMPLE_TOTAL_COST = 125_000_000  # Rs. 12.50 crore


SCHEME_RECORDS: List[Dict[str, Any]] = [
    {
        "id": "scheme-pmgsy",
        "scheme_name": "Pradhan Mantri Gram Sadak Yojana",
        "scheme_code": "PMGSY",
        "ministry": "Ministry of Rural Development",
        "description": "All-weather road connectivity to eligible unconnected rural habitations",
        "objectives": ["Provide rural road connectivity", "Upgrade existing rural roads"],
        "eligibility_criteria": ["Unconnected habitation", "Population above 250 in hill states"],
        "funding_range_min": 10_000_000,
        "funding_range_max": 500_000_000,
        "applicable_regions": ["ALL_STATES"],
        "applicable_sectors": ["Road Development", "Infrastructure", "Rural Development"],
        "target_beneficiaries": ["Rural habitations", "Villagers"],
        "keywords": ["road", "rural", "connectivity", "habitation"],
        "scheme_type": "CENTRALLY_SPONSORED",
        "status": "ACTIVE",
        "processing_time_days": 90,
        "average_funding_amount": 150_000_000,
        "verification_status": "VERIFIED",
    },
    {
        "id": "scheme-mgnrega",
        "scheme_name": "Mahatma Gandhi National Rural Employment Guarantee Act",
        "scheme_code": "MGNREGA",
        "ministry": "Ministry of Rural Development",
        "description": "Wage employment guarantee for rural households through unskilled manual work on public assets",
        "objectives": ["Guarantee 100 days of wage employment", "Create durable rural assets"],
        "applicable_regions": ["ALL_STATES"],
        "applicable_sectors": ["Rural Employment", "Rural Development", "Water Conservation"],
        "target_beneficiaries": ["Rural households", "Unskilled workers"],
        "keywords": ["employment", "wage", "rural", "labour"],
        "scheme_type": "CENTRAL",
        "status": "ACTIVE",
        "processing_time_days": 30,
        "verification_status": "VERIFIED",
    },
    {
        "id": "scheme-sbm-g",
        "scheme_name": "Swachh Bharat Mission (Gramin)",
        "scheme_code": "SBM-G",
        "ministry": "Ministry of Jal Shakti",
        "description": "Sanitation coverage and open defecation free villages",
        "objectives": ["Universal sanitation coverage", "Solid and liquid waste management"],
        "funding_range_min": 1_000_000,
        "funding_range_max": 50_000_000,
        "applicable_regions": ["ALL_STATES"],
        "applicable_sectors": ["Sanitation", "Water Supply"],
        "target_beneficiaries": ["Rural households"],
        "keywords": ["sanitation", "toilet", "waste"],
        "scheme_type": "CENTRALLY_SPONSORED",
        "status": "ACTIVE",
        "processing_time_days": 60,
        "verification_status": "VERIFIED",
    },
]


@pytest.fixture
def sample_dpr_text() -> str:
    return SAMPLE_DPR_TEXT


@pytest.fixture
def sample_total_cost() -> float:
    return SAMPLE_TOTAL_COST


@pytest.fixture
def scheme_records() -> List[Dict[str, Any]]:
    return [dict(record) for record in SCHEME_RECORDS]


@pytest.fixture
def scheme_registry(scheme_records):
    """Validated PMGSY, MGNREGA and SBM-G schemes"""
    return parse_registry(scheme_records)


@pytest.fixture
def reference_date() -> date:
    return date(2025, 1, 31)


@pytest.fixture
def baseline_features() -> ProjectFeatures:
    return ProjectFeatures.baseline()
