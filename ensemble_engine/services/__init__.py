"""Prediction serving: cache, history, data quality and the ensemble service."""

from .cache import PredictionCache
from .history import HistoryEntry, PredictionHistory
from .prediction_service import PredictionService, PredictionServiceConfig
from .quality import (
    DataQuality,
    ValidationResult,
    assess_quality,
    calculate_completeness,
    calculate_freshness,
    validate_market_data,
)

__all__ = [
    "PredictionCache",
    "HistoryEntry",
    "PredictionHistory",
    "PredictionService",
    "PredictionServiceConfig",
    "DataQuality",
    "ValidationResult",
    "assess_quality",
    "calculate_completeness",
    "calculate_freshness",
    "validate_market_data",
]
