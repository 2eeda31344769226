"""External collaborator interfaces and the engine error taxonomy."""

from .base import (
    EngineError,
    FeatureExtractionError,
    FeaturePipeline,
    MarketDataValidationError,
    ModelRuntime,
    ModelUnavailableError,
    OutcomeStore,
    RuntimeUpdateError,
)
from .memory import InMemoryOutcomeStore

__all__ = [
    "EngineError",
    "FeatureExtractionError",
    "FeaturePipeline",
    "MarketDataValidationError",
    "ModelRuntime",
    "ModelUnavailableError",
    "OutcomeStore",
    "RuntimeUpdateError",
    "InMemoryOutcomeStore",
]
