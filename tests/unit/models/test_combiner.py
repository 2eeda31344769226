"""Tests for the ensemble combiner and role prior weights."""

import pytest

from ensemble_engine.models.base import ModelOutput, Recommendation
from ensemble_engine.models.ensemble.combiner import (
    EnsembleCombiner,
    generate_recommendation,
)
from ensemble_engine.models.ensemble.weights import (
    DEFAULT_ROLE_PRIORS,
    RolePriorConfig,
    RolePriorWeights,
)


@pytest.fixture
def combiner():
    """Combiner with default role priors."""
    return EnsembleCombiner()


@pytest.fixture
def agreeing_outputs():
    """Four models leaning long."""
    return {
        "lstm": ModelOutput(direction=1, strength=0.8, confidence=0.9),
        "transformer": ModelOutput(direction=1, strength=0.7, confidence=0.8),
        "random_forest": ModelOutput(direction=1, strength=0.6, confidence=0.7),
        "xgboost": ModelOutput(direction=-1, strength=0.5, confidence=0.6),
    }


class TestGenerateRecommendation:
    """Tests for the recommendation table."""

    @pytest.mark.parametrize(
        "strength,confidence,direction,expected",
        [
            (0.8, 0.4, 1, Recommendation.HOLD),
            (0.75, 0.8, 1, Recommendation.STRONG_BUY),
            (0.7, 0.5, -1, Recommendation.STRONG_SELL),
            (0.6, 0.9, 1, Recommendation.BUY),
            (0.5, 0.6, -1, Recommendation.SELL),
            (0.45, 0.9, 1, Recommendation.HOLD),
            (0.9, 0.9, 0, Recommendation.HOLD),
        ],
    )
    def test_table(self, strength, confidence, direction, expected):
        assert generate_recommendation(strength, confidence, direction) == expected

    def test_sign_of_strength_when_no_direction(self):
        assert generate_recommendation(-0.8, 0.9) == Recommendation.STRONG_SELL
        assert generate_recommendation(0.6, 0.9) == Recommendation.BUY


class TestCombine:
    """Tests for EnsembleCombiner.combine."""

    def test_empty_input_is_neutral(self, combiner):
        combined = combiner.combine({})

        assert combined.direction == 0
        assert combined.strength == 0.5
        assert combined.confidence == 0.5
        assert combined.recommendation == Recommendation.HOLD
        assert combined.is_neutral

    def test_zero_supplied_weights_are_neutral(self, combiner, agreeing_outputs):
        combined = combiner.combine(agreeing_outputs, weights={"lstm": 0.0})

        assert combined.is_neutral
        assert combined.direction == 0

    def test_weighted_direction(self, combiner, agreeing_outputs):
        combined = combiner.combine(agreeing_outputs)

        assert combined.direction == 1
        assert 0.0 <= combined.strength <= 1.0
        assert 0.0 <= combined.confidence <= 1.0
        assert sum(combined.weights.values()) == pytest.approx(1.0)

    def test_supplied_weights_override_priors(self, combiner, agreeing_outputs):
        combined = combiner.combine(
            agreeing_outputs,
            weights={"lstm": 0.1, "transformer": 0.1, "random_forest": 0.1, "xgboost": 0.7},
        )

        assert combined.direction == -1
        assert combined.weights["xgboost"] == pytest.approx(0.7)

    def test_missing_models_get_zero_weight(self, combiner, agreeing_outputs):
        combined = combiner.combine(agreeing_outputs, weights={"lstm": 2.0, "xgboost": 2.0})

        assert set(combined.weights) == {"lstm", "xgboost"}
        assert combined.weights["lstm"] == pytest.approx(0.5)

    def test_strength_and_confidence_are_weighted_means(self, combiner):
        outputs = {
            "lstm": ModelOutput(direction=1, strength=0.8, confidence=0.9),
            "xgboost": ModelOutput(direction=1, strength=0.4, confidence=0.5),
        }

        combined = combiner.combine(outputs, weights={"lstm": 0.5, "xgboost": 0.5})

        assert combined.strength == pytest.approx(0.6)
        assert combined.confidence == pytest.approx(0.7)
        assert combined.recommendation == Recommendation.BUY

    def test_opposing_models_cancel(self, combiner):
        outputs = {
            "lstm": ModelOutput(direction=1, strength=0.5, confidence=0.8),
            "xgboost": ModelOutput(direction=-1, strength=0.5, confidence=0.8),
        }

        combined = combiner.combine(outputs, weights={"lstm": 1.0, "xgboost": 1.0})

        assert combined.direction == 0
        assert combined.recommendation == Recommendation.HOLD

    def test_contributions_normalized(self, combiner, agreeing_outputs):
        combined = combiner.combine(agreeing_outputs)

        assert sum(combined.contributions.values()) == pytest.approx(1.0)
        assert combined.contributions["lstm"] > combined.contributions["xgboost"]

    def test_accepts_plain_mappings(self, combiner):
        combined = combiner.combine({"lstm": {"direction": 1, "strength": 0.9, "confidence": 0.9}})

        assert combined.direction == 1
        assert combined.recommendation == Recommendation.STRONG_BUY


class TestRolePriorWeights:
    """Tests for RolePriorWeights."""

    def test_default_priors_ordering(self):
        priors = RolePriorWeights().priors

        assert priors["lstm"] > priors["transformer"] > priors["random_forest"] > priors["xgboost"]
        assert sum(priors.values()) == pytest.approx(1.0)

    def test_unknown_role_gets_smallest_prior(self):
        priors = RolePriorWeights()

        assert priors.prior_for("gru") == pytest.approx(DEFAULT_ROLE_PRIORS["xgboost"])

    def test_confidence_adjusted(self):
        weights = RolePriorWeights().confidence_adjusted({
            "lstm": ModelOutput(direction=1, strength=0.8, confidence=0.9),
            "xgboost": ModelOutput(direction=-1, strength=0.5, confidence=0.4),
        })

        expected_lstm = 0.30 * 0.9 / (0.30 * 0.9 + 0.20 * 0.4)
        assert weights["lstm"] == pytest.approx(expected_lstm)

    def test_zero_confidence_falls_back_to_priors(self):
        weights = RolePriorWeights().confidence_adjusted({
            "lstm": ModelOutput(direction=1, strength=0.8, confidence=0.0),
            "xgboost": ModelOutput(direction=1, strength=0.5, confidence=0.0),
        })

        assert weights["lstm"] == pytest.approx(0.6)

    def test_adjust_from_performance_floors(self):
        priors = RolePriorWeights(RolePriorConfig(min_weight=0.1))

        updated = priors.adjust_from_performance({
            "lstm": 0.9,
            "transformer": 0.8,
            "random_forest": 0.7,
            "xgboost": 0.0,
        })

        assert updated["xgboost"] == pytest.approx(0.1)
        assert sum(updated.values()) == pytest.approx(1.0)
        assert priors.priors == updated

    def test_priors_snapshot_is_read_only(self):
        priors = RolePriorWeights().priors

        with pytest.raises(TypeError):
            priors["lstm"] = 1.0

    def test_invalid_config(self):
        with pytest.raises(ValueError):
            RolePriorConfig(priors={"lstm": -0.1})
