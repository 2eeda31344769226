"""Tests for the core prediction data types."""

from dataclasses import FrozenInstanceError
from datetime import datetime, timezone

import numpy as np
import pytest

from ensemble_engine.models.base import (
    ModelOutput,
    Outcome,
    Prediction,
    Recommendation,
    TrainingBatch,
    model_id_of,
    model_key,
    parse_timestamp,
)


class TestParseTimestamp:
    """Tests for parse_timestamp."""

    def test_iso_string_with_z(self):
        parsed = parse_timestamp("2024-03-20T10:00:00Z")

        assert parsed == datetime(2024, 3, 20, 10, 0, tzinfo=timezone.utc)

    def test_naive_datetime_assumed_utc(self):
        parsed = parse_timestamp(datetime(2024, 3, 20, 10, 0))

        assert parsed.tzinfo == timezone.utc

    def test_epoch_seconds(self):
        parsed = parse_timestamp(0)

        assert parsed == datetime(1970, 1, 1, tzinfo=timezone.utc)

    def test_epoch_milliseconds(self):
        parsed = parse_timestamp(1710928800000)

        assert parsed == datetime(2024, 3, 20, 10, 0, tzinfo=timezone.utc)

    def test_epoch_seconds_and_milliseconds_agree(self):
        assert parse_timestamp(1710928800) == parse_timestamp(1710928800000.0)

    def test_numpy_epoch(self):
        assert parse_timestamp(np.int64(1710928800)) == datetime(2024, 3, 20, 10, 0, tzinfo=timezone.utc)

    @pytest.mark.parametrize("value", [None, "not a time", True, object()])
    def test_unparseable(self, value):
        assert parse_timestamp(value) is None


class TestModelOutput:
    """Tests for ModelOutput."""

    def test_values_clipped(self):
        output = ModelOutput(direction=5, strength=-1.4, confidence=1.3)

        assert output.direction == 1
        assert output.strength == 1.0
        assert output.confidence == 1.0

    def test_from_mapping(self):
        output = ModelOutput.from_mapping({"direction": -1, "strength": 0.4, "confidence": 0.7})

        assert output == ModelOutput(direction=-1, strength=0.4, confidence=0.7)

    def test_from_mapping_missing_field(self):
        with pytest.raises(ValueError, match="Malformed"):
            ModelOutput.from_mapping({"direction": 1, "strength": 0.4})

    def test_from_mapping_non_finite(self):
        with pytest.raises(ValueError, match="Non-finite"):
            ModelOutput.from_mapping({"direction": float("nan"), "strength": 0.4, "confidence": 0.5})


class TestPrediction:
    """Tests for Prediction and Outcome."""

    def test_prediction_is_immutable(self):
        prediction = Prediction(
            source_id="ES_ensemble",
            instrument="ES",
            timestamp=datetime.now(timezone.utc),
            direction=1,
            strength=0.8,
            confidence=0.75,
        )

        with pytest.raises(FrozenInstanceError):
            prediction.direction = -1

    def test_prediction_to_dict(self):
        prediction = Prediction(
            source_id="ES_ensemble",
            instrument="ES",
            timestamp=datetime(2024, 3, 20, 10, tzinfo=timezone.utc),
            direction=1,
            strength=0.8,
            confidence=0.75,
            recommendation=Recommendation.STRONG_BUY,
        )

        data = prediction.to_dict()

        assert data["recommendation"] == "STRONG_BUY"
        assert data["timestamp"] == "2024-03-20T10:00:00+00:00"

    def test_outcome_direction_reduced_to_sign(self):
        outcome = Outcome(direction=-3, pnl=-12.5, timestamp="2024-03-20T10:05:00Z")

        assert outcome.direction == -1
        assert outcome.timestamp == datetime(2024, 3, 20, 10, 5, tzinfo=timezone.utc)

    def test_model_ids(self):
        assert model_key("ES", "lstm") == "ES_lstm"
        assert model_id_of({"model": "ES_LSTM"}) == "ES_LSTM"
        assert model_id_of({"source_id": "ES_xgboost", "model": "ignored"}) == "ES_xgboost"


class TestTrainingBatch:
    """Tests for TrainingBatch."""

    def test_empty_batch(self):
        batch = TrainingBatch.coerce({"features": [], "labels": [], "timestamps": []})

        assert batch.is_empty
        assert len(batch) == 0

    def test_coerce_mapping(self):
        batch = TrainingBatch.coerce({
            "features": [{"price": 4500, "volume": 1000}],
            "labels": [1],
            "timestamps": ["2024-03-20T10:00:00Z"],
        })

        assert not batch.is_empty
        assert batch.is_consistent
        assert len(batch) == 1

    def test_coerce_none(self):
        assert TrainingBatch.coerce(None).is_empty

    def test_coerce_numpy_arrays(self):
        batch = TrainingBatch.coerce({
            "features": np.array([[1.0, 2.0], [3.0, 4.0]]),
            "labels": np.array([1, -1]),
            "timestamps": np.array([1, 2]),
        })

        assert not batch.is_empty
        assert batch.is_consistent
        assert len(batch) == 2
        assert batch.labels == [1, -1]

    def test_empty_numpy_arrays(self):
        batch = TrainingBatch.coerce({"features": np.empty((0, 2)), "labels": np.array([])})

        assert batch.is_empty

    def test_batch_of_arrays(self):
        batch = TrainingBatch(
            features=np.array([[1.0], [2.0]]),
            labels=np.array([1, 1]),
            timestamps=np.array([1, 2]),
        )

        assert not batch.is_empty
