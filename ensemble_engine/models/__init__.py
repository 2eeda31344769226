"""Prediction data types and the ensemble combiner.

Example:
    ```python
    from ensemble_engine.models import EnsembleCombiner, ModelOutput

    combiner = EnsembleCombiner()
    combined = combiner.combine({
        "lstm": ModelOutput(direction=1, strength=0.8, confidence=0.9),
        "xgboost": ModelOutput(direction=1, strength=0.6, confidence=0.7),
    })
    combined.recommendation  # Recommendation.STRONG_BUY
    ```
"""

from .base import (
    Direction,
    ModelOutput,
    Outcome,
    Prediction,
    Recommendation,
    TrainingBatch,
    field_of,
    model_id_of,
    model_key,
    parse_timestamp,
)
from .ensemble import (
    CombinedPrediction,
    EnsembleCombiner,
    RolePriorConfig,
    RolePriorWeights,
    generate_recommendation,
)

__all__ = [
    "Direction",
    "ModelOutput",
    "Outcome",
    "Prediction",
    "Recommendation",
    "TrainingBatch",
    "field_of",
    "model_id_of",
    "model_key",
    "parse_timestamp",
    "CombinedPrediction",
    "EnsembleCombiner",
    "RolePriorConfig",
    "RolePriorWeights",
    "generate_recommendation",
]
