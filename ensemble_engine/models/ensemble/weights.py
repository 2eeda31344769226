"""Role-based prior weights for the ensemble combiner.

Each structural model role (sequence model, attention model, tree
ensembles) carries a static prior capturing its historical reliability.
Per call, the prior is scaled by the confidence the model reported and
the set is re-normalized, so a momentarily unsure model contributes less
without being de-weighted permanently.

These priors are per role. Performance-driven weights per deployed model
instance live in ``ensemble_engine.learning.registry.ModelWeightRegistry``.
"""

import logging
import threading
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, Mapping, Optional

from ...utils.numeric import floor_then_normalize, normalize_weights
from ..base import ModelOutput

logger = logging.getLogger(__name__)

DEFAULT_ROLE_PRIORS: Dict[str, float] = {
    "lstm": 0.30,
    "transformer": 0.27,
    "random_forest": 0.23,
    "xgboost": 0.20,
}


@dataclass
class RolePriorConfig:
    """Configuration for role prior weights.

    Attributes:
        priors: Static prior per model role.
        min_weight: Lower bound applied when priors are re-derived from performance.
    """

    priors: Dict[str, float] = field(default_factory=lambda: dict(DEFAULT_ROLE_PRIORS))
    min_weight: float = 0.1

    def __post_init__(self):
        if any(v < 0 for v in self.priors.values()):
            raise ValueError(f"Role priors must be non-negative, got {self.priors}")
        if not 0.0 <= self.min_weight <= 1.0:
            raise ValueError(f"min_weight must be between 0.0 and 1.0, got {self.min_weight}")


class RolePriorWeights:
    """Registry of static per-role priors.

    Example:
        ```python
        priors = RolePriorWeights()
        weights = priors.confidence_adjusted({
            "lstm": ModelOutput(direction=1, strength=0.8, confidence=0.9),
            "xgboost": ModelOutput(direction=-1, strength=0.5, confidence=0.4),
        })
        # weights = {"lstm": 0.77, "xgboost": 0.23}
        ```
    """

    def __init__(self, config: Optional[RolePriorConfig] = None):
        self.config = config or RolePriorConfig()
        self._priors: Dict[str, float] = normalize_weights(self.config.priors)
        self._lock = threading.RLock()

    @property
    def priors(self) -> Mapping[str, float]:
        """Read-only snapshot of the normalized priors."""
        with self._lock:
            return MappingProxyType(dict(self._priors))

    def prior_for(self, role: str) -> float:
        """Prior of ``role``; unknown roles get the smallest configured prior."""
        with self._lock:
            if role in self._priors:
                return self._priors[role]
            if not self._priors:
                return 1.0
            return min(self._priors.values())

    def confidence_adjusted(self, outputs: Mapping[str, ModelOutput]) -> Dict[str, float]:
        """Per-call weights: prior scaled by reported confidence, re-normalized.

        Args:
            outputs: Model output per role for this call.

        Returns:
            Dictionary of role to weight summing to 1, or empty for no outputs.
        """
        if not outputs:
            return {}

        raw = {role: self.prior_for(role) * out.confidence for role, out in outputs.items()}

        if sum(raw.values()) <= 0:
            # Every model reported zero confidence; fall back to the priors alone
            raw = {role: self.prior_for(role) for role in outputs}

        return normalize_weights(raw)

    def adjust_from_performance(self, performance: Mapping[str, float]) -> Dict[str, float]:
        """Replace priors with performance-proportional values.

        Roles absent from ``performance`` use their current prior as score.
        Every prior is floored at ``config.min_weight``.

        Returns:
            The new priors.
        """
        with self._lock:
            scores = dict(self._priors)
            scores.update({role: max(0.0, float(score)) for role, score in performance.items()})
            self._priors = floor_then_normalize(scores, self.config.min_weight)
            logger.info(f"Role priors updated: {self._priors}")
            return dict(self._priors)
