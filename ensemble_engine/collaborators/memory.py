"""In-memory outcome store.

Keeps realized outcomes in a bounded buffer and assembles training batches
with pandas. Suitable for paper trading and tests; production deployments
plug in a persistent ``OutcomeStore``.
"""

import asyncio
import logging
from collections import deque
from datetime import datetime, timezone
from typing import Any, Deque, Dict, Optional

import pandas as pd

from ..models.base import Outcome, Prediction, TrainingBatch, field_of, model_id_of, parse_timestamp
from ..utils.numeric import sign
from .base import OutcomeStore

logger = logging.getLogger(__name__)

COLUMNS = [
    "model_id",
    "instrument",
    "predicted_direction",
    "features",
    "label",
    "pnl",
    "timestamp",
]


class InMemoryOutcomeStore(OutcomeStore):
    """Bounded in-memory implementation of ``OutcomeStore``.

    Training rows take their features from ``prediction.metadata["features"]``
    and their label from the outcome direction. Predictions without features
    are recorded but never used for training.

    Example:
        ```python
        store = InMemoryOutcomeStore(max_batch_size=256)
        await store.record_outcome(prediction, Outcome(direction=1, pnl=12.5))
        batch = await store.prepare_training_data("ES_lstm")
        ```
    """

    def __init__(
        self,
        max_records: int = 50000,
        max_batch_size: Optional[int] = None,
        min_samples: int = 1,
    ):
        """
        Initialize outcome store.

        Args:
            max_records: Oldest records are dropped beyond this size.
            max_batch_size: Keep only the most recent rows in a batch.
            min_samples: Fewer usable rows than this yields an empty batch.
        """
        if max_records < 1:
            raise ValueError(f"max_records must be positive, got {max_records}")
        self.max_batch_size = max_batch_size
        self.min_samples = min_samples
        self._records: Deque[Dict[str, Any]] = deque(maxlen=max_records)
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._records)

    async def record_outcome(self, prediction: Prediction, outcome: Outcome) -> None:
        metadata = field_of(prediction, "metadata") or {}
        timestamp = parse_timestamp(field_of(outcome, "timestamp")) or parse_timestamp(
            field_of(prediction, "timestamp")
        )
        async with self._lock:
            self._records.append({
                "model_id": model_id_of(prediction),
                "instrument": field_of(prediction, "instrument"),
                "predicted_direction": sign(float(field_of(prediction, "direction", 0) or 0)),
                "features": metadata.get("features"),
                "label": sign(float(field_of(outcome, "direction", 0) or 0)),
                "pnl": float(field_of(outcome, "pnl", 0.0) or 0.0),
                "timestamp": timestamp or datetime.now(timezone.utc),
            })

    async def prepare_training_data(self, model_id: str) -> TrainingBatch:
        async with self._lock:
            df = self.to_frame()

        if df.empty:
            return TrainingBatch()

        df = df[(df["model_id"] == model_id) & df["features"].notna()]
        if len(df) < max(self.min_samples, 1):
            logger.debug(f"Not enough samples for {model_id}: {len(df)} < {self.min_samples}")
            return TrainingBatch()

        df = df.sort_values("timestamp", kind="stable")
        if self.max_batch_size:
            df = df.tail(self.max_batch_size)

        return TrainingBatch(
            features=df["features"].tolist(),
            labels=df["label"].astype(int).tolist(),
            timestamps=df["timestamp"].tolist(),
        )

    def to_frame(self) -> pd.DataFrame:
        """All records as a DataFrame, oldest first."""
        return pd.DataFrame(list(self._records), columns=COLUMNS)

    def clear(self) -> None:
        self._records.clear()
