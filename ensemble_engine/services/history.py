"""Per-instrument prediction timeline, newest first."""

import threading
from collections import deque
from dataclasses import dataclass
from datetime import datetime
from typing import Deque, Dict, List, Optional

from ..models.base import Prediction


@dataclass(frozen=True)
class HistoryEntry:
    """One produced prediction and the time it was recorded."""
    prediction: Prediction
    timestamp: datetime


class PredictionHistory:
    """Bounded per-instrument history of produced predictions."""

    def __init__(self, max_length: int = 1000):
        if max_length < 1:
            raise ValueError(f"max_length must be positive, got {max_length}")
        self.max_length = max_length
        self._entries: Dict[str, Deque[HistoryEntry]] = {}
        self._lock = threading.RLock()

    def append(self, prediction: Prediction, timestamp: Optional[datetime] = None) -> HistoryEntry:
        entry = HistoryEntry(prediction=prediction, timestamp=timestamp or prediction.timestamp)
        with self._lock:
            timeline = self._entries.get(prediction.instrument)
            if timeline is None:
                timeline = deque(maxlen=self.max_length)
                self._entries[prediction.instrument] = timeline
            # appendleft on a full deque drops the oldest entry from the right
            timeline.appendleft(entry)
        return entry

    def get(self, instrument: str, limit: Optional[int] = None) -> List[HistoryEntry]:
        """Entries for ``instrument``, newest first."""
        with self._lock:
            entries = list(self._entries.get(instrument, ()))
        return entries[:limit] if limit is not None else entries

    def latest(self, instrument: str) -> Optional[Prediction]:
        with self._lock:
            timeline = self._entries.get(instrument)
            return timeline[0].prediction if timeline else None

    def find_for_outcome(self, instrument: str, at: datetime) -> Optional[Prediction]:
        """Most recent prediction recorded at or before ``at``."""
        with self._lock:
            for entry in self._entries.get(instrument, ()):
                if entry.timestamp <= at:
                    return entry.prediction
        return None

    def instruments(self) -> List[str]:
        with self._lock:
            return list(self._entries)

    def clear(self, instrument: Optional[str] = None) -> None:
        with self._lock:
            if instrument is None:
                self._entries.clear()
            else:
                self._entries.pop(instrument, None)

    def __len__(self) -> int:
        with self._lock:
            return sum(len(t) for t in self._entries.values())
