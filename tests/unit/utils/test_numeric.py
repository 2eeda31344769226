"""Tests for numeric helpers."""

import pytest

from ensemble_engine.utils.numeric import (
    accuracy,
    clip_unit,
    floor_then_normalize,
    normalize_weights,
    sign,
)


class TestClipAndSign:
    """Tests for clip_unit and sign."""

    def test_clip_unit(self):
        assert clip_unit(-0.5) == 0.0
        assert clip_unit(0.3) == 0.3
        assert clip_unit(1.7) == 1.0

    def test_sign(self):
        assert sign(-3.2) == -1
        assert sign(0) == 0
        assert sign(0.001) == 1


class TestNormalizeWeights:
    """Tests for normalize_weights."""

    def test_sums_to_one(self):
        weights = normalize_weights({"a": 2.0, "b": 1.0, "c": 1.0})

        assert sum(weights.values()) == pytest.approx(1.0)
        assert weights["a"] == pytest.approx(0.5)

    def test_negative_weights_treated_as_zero(self):
        weights = normalize_weights({"a": -1.0, "b": 1.0})

        assert weights == {"a": 0.0, "b": 1.0}

    def test_all_zero_gives_uniform(self):
        weights = normalize_weights({"a": 0.0, "b": 0.0})

        assert weights == {"a": 0.5, "b": 0.5}

    def test_empty(self):
        assert normalize_weights({}) == {}


class TestFloorThenNormalize:
    """Tests for floor_then_normalize."""

    def test_proportional_when_above_floor(self):
        weights = floor_then_normalize({"lstm": 0.8, "xgboost": 0.6}, floor=0.1)

        assert weights["lstm"] > weights["xgboost"]
        assert weights["lstm"] == pytest.approx(0.8 / 1.4)
        assert sum(weights.values()) == pytest.approx(1.0)

    def test_floor_holds_after_normalization(self):
        weights = floor_then_normalize({"a": 1.0, "b": 0.01, "c": 0.01}, floor=0.1)

        assert weights["b"] == pytest.approx(0.1)
        assert weights["c"] == pytest.approx(0.1)
        assert weights["a"] == pytest.approx(0.8)
        assert sum(weights.values()) == pytest.approx(1.0)

    def test_cascading_pins(self):
        """Pinning one entry can push another under the floor."""
        weights = floor_then_normalize(
            {"a": 5.0, "b": 3.0, "c": 0.0, "d": 0.0},
            floor=0.24,
        )

        assert weights["b"] == pytest.approx(0.24)
        assert weights["a"] == pytest.approx(0.28)
        assert all(w >= 0.24 - 1e-9 for w in weights.values())
        assert sum(weights.values()) == pytest.approx(1.0)

    def test_zero_scores_get_floor(self):
        weights = floor_then_normalize({"a": 0.9, "b": 0.0}, floor=0.1)

        assert weights["b"] == pytest.approx(0.1)
        assert weights["a"] == pytest.approx(0.9)

    def test_all_zero_scores_give_uniform(self):
        weights = floor_then_normalize({"a": 0.0, "b": 0.0, "c": 0.0}, floor=0.1)

        for w in weights.values():
            assert w == pytest.approx(1 / 3)

    def test_effective_floor_when_too_many_models(self):
        scores = {f"m{i}": float(i) for i in range(12)}

        weights = floor_then_normalize(scores, floor=0.1)

        for w in weights.values():
            assert w == pytest.approx(1 / 12)

    def test_empty(self):
        assert floor_then_normalize({}, floor=0.1) == {}


class TestAccuracy:
    """Tests for accuracy."""

    def test_fraction_correct(self):
        assert accuracy([True, True, False, True]) == 0.75

    def test_empty_uses_default(self):
        assert accuracy([]) == 0.5
        assert accuracy([], default=0.0) == 0.0
