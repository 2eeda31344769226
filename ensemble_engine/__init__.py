"""
Adaptive Ensemble Engine.

Combines several independently trained models into one directional trading
signal, scores past signals against realized outcomes and adapts both the
blend weights and the models themselves.
"""

__version__ = "0.1.0"

from .collaborators import (
    EngineError,
    FeatureExtractionError,
    FeaturePipeline,
    InMemoryOutcomeStore,
    MarketDataValidationError,
    ModelRuntime,
    ModelUnavailableError,
    OutcomeStore,
    RuntimeUpdateError,
)
from .config import EngineSettings, get_settings
from .engine import AdaptiveEnsembleEngine
from .learning import AdaptiveLearningController, LearningConfig, ModelWeightRegistry
from .models import Direction, ModelOutput, Outcome, Prediction, Recommendation
from .monitoring import Notification, NotificationChannel, NotificationType
from .services import PredictionService, PredictionServiceConfig

__all__ = [
    "__version__",
    "AdaptiveEnsembleEngine",
    "AdaptiveLearningController",
    "LearningConfig",
    "ModelWeightRegistry",
    "PredictionService",
    "PredictionServiceConfig",
    "EngineSettings",
    "get_settings",
    "Direction",
    "ModelOutput",
    "Outcome",
    "Prediction",
    "Recommendation",
    "Notification",
    "NotificationChannel",
    "NotificationType",
    "EngineError",
    "FeatureExtractionError",
    "FeaturePipeline",
    "InMemoryOutcomeStore",
    "MarketDataValidationError",
    "ModelRuntime",
    "ModelUnavailableError",
    "OutcomeStore",
    "RuntimeUpdateError",
]
