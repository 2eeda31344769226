"""
Model Weight Registry.

Holds per-model rolling correctness windows, performance scores and blend
weights. Owned explicitly by one engine; there is no module-level instance.
"""

import logging
import threading
from collections import deque
from types import MappingProxyType
from typing import Deque, Dict, Iterable, List, Mapping, Optional

from ..utils.numeric import accuracy, floor_then_normalize

logger = logging.getLogger(__name__)

DEFAULT_PERFORMANCE = 0.5


class RecentPerformanceWindow:
    """Bounded window of prediction correctness, newest evicts oldest."""

    def __init__(self, size: int = 50):
        if size < 1:
            raise ValueError(f"Window size must be positive, got {size}")
        self._values: Deque[bool] = deque(maxlen=size)

    @property
    def size(self) -> int:
        return self._values.maxlen

    def push(self, correct: bool) -> None:
        self._values.append(bool(correct))

    def accuracy(self) -> float:
        """Fraction correct; 0.5 for an empty window."""
        return accuracy(self._values, default=DEFAULT_PERFORMANCE)

    def values(self) -> List[bool]:
        return list(self._values)

    def clear(self) -> None:
        self._values.clear()

    def __len__(self) -> int:
        return len(self._values)


class ModelWeightRegistry:
    """Per-model performance, windows and blend weights.

    Reads return copies taken under the lock, so callers never observe a
    half-applied weight update.
    """

    def __init__(self, window_size: int = 50, min_weight: float = 0.1):
        if not 0.0 <= min_weight <= 1.0:
            raise ValueError(f"min_weight must be between 0.0 and 1.0, got {min_weight}")
        self.window_size = window_size
        self.min_weight = min_weight

        self._windows: Dict[str, RecentPerformanceWindow] = {}
        self._aggregate = RecentPerformanceWindow(window_size)
        self._performance: Dict[str, float] = {}
        self._weights: Dict[str, float] = {}

        self._lock = threading.RLock()

    @property
    def lock(self) -> threading.RLock:
        return self._lock

    def record(self, model_id: str, correct: bool) -> float:
        """Push a correctness value and refresh the model's performance.

        Returns:
            The model's new performance.
        """
        with self._lock:
            window = self._windows.get(model_id)
            if window is None:
                window = RecentPerformanceWindow(self.window_size)
                self._windows[model_id] = window
            window.push(correct)
            self._aggregate.push(correct)

            performance = window.accuracy()
            self._performance[model_id] = performance
            return performance

    def get_performance(self, model_id: str) -> float:
        with self._lock:
            return self._performance.get(model_id, DEFAULT_PERFORMANCE)

    def set_performance(self, model_id: str, performance: float) -> None:
        with self._lock:
            self._performance[model_id] = float(performance)

    def performance_snapshot(self) -> Dict[str, float]:
        with self._lock:
            return dict(self._performance)

    def window_length(self, model_id: str) -> int:
        with self._lock:
            window = self._windows.get(model_id)
            return len(window) if window is not None else 0

    def window_values(self, model_id: str) -> List[bool]:
        with self._lock:
            window = self._windows.get(model_id)
            return window.values() if window is not None else []

    def overall_performance(self) -> float:
        """Accuracy of the aggregate window across all models."""
        with self._lock:
            return self._aggregate.accuracy()

    def tracked_models(self) -> List[str]:
        with self._lock:
            return sorted(set(self._performance) | set(self._weights))

    def models_below(self, threshold: float) -> List[str]:
        with self._lock:
            return [m for m, p in self._performance.items() if p < threshold]

    def snapshot_weights(self) -> Mapping[str, float]:
        """Read-only copy of the current weights."""
        with self._lock:
            return MappingProxyType(dict(self._weights))

    def has_weights_for(self, model_ids: Iterable[str]) -> bool:
        with self._lock:
            ids = list(model_ids)
            return bool(ids) and all(m in self._weights for m in ids)

    def recompute_weights(self, model_ids: Optional[Iterable[str]] = None) -> Dict[str, float]:
        """Set weights proportional to performance with the configured floor.

        Args:
            model_ids: Models to weight. Defaults to every tracked model.

        Returns:
            The new weights, summing to 1 over the model set.
        """
        with self._lock:
            ids = list(model_ids) if model_ids is not None else self.tracked_models()
            scores = {m: max(0.0, self._performance.get(m, DEFAULT_PERFORMANCE)) for m in ids}
            self._weights = floor_then_normalize(scores, self.min_weight)
            logger.debug(f"Recomputed weights for {len(self._weights)} models")
            return dict(self._weights)

    def replace_weights(self, weights: Mapping[str, float]) -> None:
        with self._lock:
            self._weights = {m: float(w) for m, w in weights.items()}

    def reset(self) -> None:
        """Drop every window, score and weight."""
        with self._lock:
            self._windows.clear()
            self._aggregate.clear()
            self._performance.clear()
            self._weights.clear()
