"""Engine settings and configuration."""

from functools import lru_cache
from typing import Dict, List

from pydantic import Field
from pydantic_settings import BaseSettings

from ..learning.controller import LearningConfig
from ..models.ensemble.weights import DEFAULT_ROLE_PRIORS, RolePriorConfig
from ..services.prediction_service import PredictionServiceConfig


class EngineSettings(BaseSettings):
    """Engine settings, read from ``ENGINE_*`` environment variables or ``.env``.

    List and mapping fields take JSON, e.g.
    ``ENGINE_MODEL_ROLES='["lstm", "xgboost"]'``.
    """

    # Logging
    log_level: str = "INFO"
    log_to_console: bool = False

    # Ensemble
    model_roles: List[str] = Field(default_factory=lambda: list(DEFAULT_ROLE_PRIORS))
    role_priors: Dict[str, float] = Field(default_factory=lambda: dict(DEFAULT_ROLE_PRIORS))
    min_models_required: int = Field(default=3, ge=1)

    # Prediction serving
    cache_ttl_seconds: float = Field(default=3600.0, gt=0)
    cache_max_size: int = Field(default=1000, ge=1)
    history_length: int = Field(default=1000, ge=1)
    freshness_horizon_seconds: float = Field(default=300.0, gt=0)
    validate_input: bool = True
    attach_features: bool = True

    # Adaptive learning
    learning_threshold: float = Field(default=0.6, ge=0.0, le=1.0)
    performance_window: int = Field(default=50, ge=1)
    min_weight: float = Field(default=0.1, ge=0.0, le=1.0)
    min_outcomes_before_learning: int = Field(default=1, ge=1)
    learning_interval_seconds: float = Field(default=300.0, gt=0)

    class Config:
        env_prefix = "ENGINE_"
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"

    def to_service_config(self) -> PredictionServiceConfig:
        return PredictionServiceConfig(
            model_roles=list(self.model_roles),
            cache_ttl_seconds=self.cache_ttl_seconds,
            cache_max_size=self.cache_max_size,
            history_length=self.history_length,
            freshness_horizon_seconds=self.freshness_horizon_seconds,
            min_models_required=self.min_models_required,
            validate_input=self.validate_input,
            attach_features=self.attach_features,
        )

    def to_learning_config(self) -> LearningConfig:
        return LearningConfig(
            learning_threshold=self.learning_threshold,
            window_size=self.performance_window,
            min_weight=self.min_weight,
            min_outcomes_before_learning=self.min_outcomes_before_learning,
        )

    def to_role_prior_config(self) -> RolePriorConfig:
        return RolePriorConfig(priors=dict(self.role_priors), min_weight=self.min_weight)


@lru_cache()
def get_settings() -> EngineSettings:
    """Get cached settings instance."""
    return EngineSettings()
