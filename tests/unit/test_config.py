"""
Unit tests for configuration loading and the error taxonomy
"""

import pytest
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))

from core.config import (
    AnalysisConfig,
    ClassifierConfig,
    Environment,
    ProbabilityConfig,
    SimulationConfig,
    get_config,
    set_config,
)
from core.errors import (
    ChecklistValidationError,
    DPRAnalysisError,
    ServiceNotInitializedError,
    SessionNotFoundError,
    StageError,
)


@pytest.mark.unit
class TestConfig:

    def test_defaults_are_valid(self):
        config = AnalysisConfig.from_env()
        assert config.validate() == []
        assert config.environment == Environment.DEVELOPMENT
        assert config.probability.weights == (0.25, 0.20, 0.25, 0.15, 0.15)

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("DPR_CONFIDENCE_THRESHOLD", "0.75")
        monkeypatch.setenv("DPR_MAX_SECTIONS", "5")
        monkeypatch.setenv("DPR_SESSION_CAPACITY", "16")
        monkeypatch.setenv("DPR_ENV", "Production")
        monkeypatch.setenv("DPR_LOG_LEVEL", "debug")

        config = AnalysisConfig.from_env()

        assert config.classifier.confidence_threshold == 0.75
        assert config.classifier.max_sections == 5
        assert config.simulation.session_capacity == 16
        assert config.environment == Environment.PRODUCTION
        assert config.log_level == "DEBUG"

    def test_unparseable_values_fall_back(self, monkeypatch):
        monkeypatch.setenv("DPR_MAX_SECTIONS", "many")
        monkeypatch.setenv("DPR_ENV", "moon")

        config = AnalysisConfig.from_env()

        assert config.classifier.max_sections == 20
        assert config.environment == Environment.DEVELOPMENT

    def test_validate_reports_each_issue(self):
        config = AnalysisConfig(
            classifier=ClassifierConfig(confidence_threshold=1.5, max_sections=0),
            probability=ProbabilityConfig(timeline_weight=0.5, min_probability=0.9, max_probability=0.5),
            simulation=SimulationConfig(session_capacity=0, session_ttl_seconds=0),
        )
        assert config.validate() == [
            "classifier.confidence_threshold must be within [0, 1]",
            "classifier.max_sections must be positive",
            "probability weights sum to 1.250, expected 1.0",
            "probability.min_probability must be below max_probability",
            "simulation.session_capacity must be positive",
            "simulation.session_ttl_seconds must be positive",
        ]

    def test_global_config(self):
        custom = AnalysisConfig()
        set_config(custom)
        assert get_config() is custom

        set_config(None)
        assert get_config() is not custom


@pytest.mark.unit
class TestErrors:

    def test_all_errors_share_a_base(self):
        for error in (
            ServiceNotInitializedError("Section classifier"),
            SessionNotFoundError("sim_1"),
            ChecklistValidationError("c1", ["bad"]),
            StageError("Gap analysis"),
        ):
            assert isinstance(error, DPRAnalysisError)

    def test_messages(self):
        assert str(ServiceNotInitializedError("Section classifier")) == "Section classifier service not initialized"
        assert str(SessionNotFoundError("sim_1")) == "Simulation session not found: sim_1"
        assert str(StageError("Gap analysis")) == "Gap analysis failed: unknown error"

        error = ChecklistValidationError("c1", ["first", "second"])
        assert str(error) == "Invalid checklist 'c1': first; second"
        assert error.issues == ["first", "second"]
        assert isinstance(error, ValueError)

    def test_stage_error_keeps_original(self):
        original = RuntimeError("boom")
        error = StageError("Scheme matching", original)
        assert error.stage == "Scheme matching"
        assert error.original is original
        assert str(error) == "Scheme matching failed: boom"
