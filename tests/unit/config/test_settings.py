"""Tests for engine settings."""

import pytest
from pydantic import ValidationError

from ensemble_engine.config.settings import EngineSettings, get_settings
from ensemble_engine.learning.controller import LearningConfig
from ensemble_engine.services.prediction_service import PredictionServiceConfig


@pytest.fixture(autouse=True)
def clear_settings_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class TestEngineSettings:
    """Tests for EngineSettings."""

    def test_defaults(self):
        settings = EngineSettings()

        assert settings.learning_threshold == 0.6
        assert settings.performance_window == 50
        assert settings.min_weight == 0.1
        assert settings.cache_ttl_seconds == 3600.0
        assert settings.cache_max_size == 1000
        assert settings.min_models_required == 3
        assert settings.model_roles == ["lstm", "transformer", "random_forest", "xgboost"]
        assert settings.log_level == "INFO"
        assert settings.log_to_console is False

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("ENGINE_LEARNING_THRESHOLD", "0.7")
        monkeypatch.setenv("ENGINE_MODEL_ROLES", '["lstm", "xgboost"]')

        settings = EngineSettings()

        assert settings.learning_threshold == 0.7
        assert settings.model_roles == ["lstm", "xgboost"]

    def test_out_of_range_rejected(self):
        with pytest.raises(ValidationError):
            EngineSettings(learning_threshold=1.5)
        with pytest.raises(ValidationError):
            EngineSettings(cache_max_size=0)

    def test_to_service_config(self):
        config = EngineSettings(min_models_required=2, cache_ttl_seconds=60).to_service_config()

        assert isinstance(config, PredictionServiceConfig)
        assert config.min_models_required == 2
        assert config.cache_ttl_seconds == 60

    def test_to_learning_config(self):
        config = EngineSettings(performance_window=20, learning_threshold=0.55).to_learning_config()

        assert isinstance(config, LearningConfig)
        assert config.window_size == 20
        assert config.learning_threshold == 0.55

    def test_to_role_prior_config(self):
        config = EngineSettings(role_priors={"lstm": 0.7, "xgboost": 0.3}).to_role_prior_config()

        assert config.priors == {"lstm": 0.7, "xgboost": 0.3}
        assert config.min_weight == 0.1

    def test_get_settings_cached(self):
        assert get_settings() is get_settings()
