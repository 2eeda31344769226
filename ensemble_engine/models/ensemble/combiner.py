"""Ensemble combiner for multiple model outputs."""

from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional

from ...utils.numeric import clip_unit, normalize_weights, sign
from ..base import ModelOutput, Recommendation
from .weights import RolePriorWeights

# Below this confidence no direction is acted upon
MIN_ACTIONABLE_CONFIDENCE = 0.5
STRONG_SIGNAL_STRENGTH = 0.7
SIGNAL_STRENGTH = 0.5

NEUTRAL_STRENGTH = 0.5
NEUTRAL_CONFIDENCE = 0.5


@dataclass(frozen=True)
class CombinedPrediction:
    """Combined output of an ensemble call."""

    direction: int
    strength: float
    confidence: float
    recommendation: Recommendation
    weights: Dict[str, float] = field(default_factory=dict)
    contributions: Dict[str, float] = field(default_factory=dict)

    @property
    def is_neutral(self) -> bool:
        return not self.weights


def generate_recommendation(
    strength: float,
    confidence: float,
    direction: Optional[int] = None,
) -> Recommendation:
    """Map strength and confidence to a discrete recommendation.

    Confidence gates everything: under 0.5 the answer is HOLD whatever the
    strength. Otherwise the magnitude of ``strength`` picks between strong,
    plain and no signal, and the sign comes from ``direction`` (or from
    ``strength`` itself when no direction is given).
    """
    if confidence < MIN_ACTIONABLE_CONFIDENCE:
        return Recommendation.HOLD

    d = sign(direction if direction is not None else strength)
    s = abs(strength)

    if d == 0 or s < SIGNAL_STRENGTH:
        return Recommendation.HOLD
    if s >= STRONG_SIGNAL_STRENGTH:
        return Recommendation.STRONG_BUY if d > 0 else Recommendation.STRONG_SELL
    return Recommendation.BUY if d > 0 else Recommendation.SELL


class EnsembleCombiner:
    """Combines per-model outputs into one prediction.

    Stateless per call: the only state read is the role prior registry,
    used when the caller supplies no weights.
    """

    def __init__(self, role_priors: Optional[RolePriorWeights] = None):
        self.role_priors = role_priors or RolePriorWeights()

    def neutral(self) -> CombinedPrediction:
        """The documented 'unknown' result for an empty ensemble."""
        return CombinedPrediction(
            direction=0,
            strength=NEUTRAL_STRENGTH,
            confidence=NEUTRAL_CONFIDENCE,
            recommendation=generate_recommendation(0.0, NEUTRAL_CONFIDENCE, 0),
        )

    def combine(
        self,
        predictions_by_model: Mapping[str, ModelOutput],
        weights: Optional[Mapping[str, float]] = None,
    ) -> CombinedPrediction:
        """Combine model outputs using weighted averaging.

        Args:
            predictions_by_model: Output per model id.
            weights: Weight per model id. Models without a weight do not
                contribute. When None, weights are derived from the role
                priors scaled by each model's confidence.

        Returns:
            CombinedPrediction with direction, strength, confidence and label.
        """
        outputs = {
            name: ModelOutput.from_mapping(out) for name, out in predictions_by_model.items()
        }
        if not outputs:
            return self.neutral()

        if weights is None:
            call_weights = self.role_priors.confidence_adjusted(outputs)
        else:
            present = {name: max(0.0, float(weights.get(name, 0.0))) for name in outputs}
            if sum(present.values()) <= 0:
                return self.neutral()
            call_weights = normalize_weights(present)

        call_weights = {name: w for name, w in call_weights.items() if w > 0}
        if not call_weights:
            return self.neutral()

        total_weight = sum(call_weights.values())
        direction_score = 0.0
        strength_sum = 0.0
        confidence_sum = 0.0

        for name, weight in call_weights.items():
            out = outputs[name]
            direction_score += weight * out.confidence * out.direction * out.strength
            strength_sum += weight * out.strength
            confidence_sum += weight * out.confidence

        direction = sign(direction_score) if abs(direction_score) > 1e-12 else 0
        strength = clip_unit(strength_sum / total_weight)
        confidence = clip_unit(confidence_sum / total_weight)

        return CombinedPrediction(
            direction=direction,
            strength=strength,
            confidence=confidence,
            recommendation=generate_recommendation(strength, confidence, direction),
            weights=dict(call_weights),
            contributions=self._contributions(outputs, call_weights),
        )

    @staticmethod
    def _contributions(
        outputs: Mapping[str, ModelOutput],
        weights: Mapping[str, float],
    ) -> Dict[str, float]:
        """Normalized share of weight x confidence per model."""
        raw = {name: weights[name] * outputs[name].confidence for name in weights}
        total = sum(raw.values())
        if total <= 0:
            return {name: 0.0 for name in raw}
        return {name: value / total for name, value in raw.items()}
