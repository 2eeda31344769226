"""Ensemble combination of model outputs."""

from .combiner import CombinedPrediction, EnsembleCombiner, generate_recommendation
from .weights import DEFAULT_ROLE_PRIORS, RolePriorConfig, RolePriorWeights

__all__ = [
    "CombinedPrediction",
    "EnsembleCombiner",
    "generate_recommendation",
    "DEFAULT_ROLE_PRIORS",
    "RolePriorConfig",
    "RolePriorWeights",
]
