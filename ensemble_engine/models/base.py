"""Core data types shared by the combiner, the prediction service and the learning loop."""

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum, IntEnum
from numbers import Real
from typing import Any, Dict, Mapping, Optional, Sequence, Union

from ..utils.numeric import clip_unit, sign

Timestamp = Union[datetime, str, int, float]

# Epoch values above this are milliseconds (1e11 s is the year 5138)
EPOCH_MILLIS_THRESHOLD = 1e11


class Direction(IntEnum):
    """Discrete trade bias."""

    SHORT = -1
    NEUTRAL = 0
    LONG = 1


class Recommendation(str, Enum):
    """Discretized trading action derived from strength and confidence."""

    STRONG_BUY = "STRONG_BUY"
    BUY = "BUY"
    HOLD = "HOLD"
    SELL = "SELL"
    STRONG_SELL = "STRONG_SELL"


def parse_timestamp(value: Optional[Timestamp]) -> Optional[datetime]:
    """Parse a timestamp into a timezone-aware UTC datetime.

    Accepts datetimes, ISO-8601 strings (including a trailing ``Z``) and
    epoch numbers. Epoch values above ``EPOCH_MILLIS_THRESHOLD`` are read as
    milliseconds, smaller ones as seconds. Returns None for missing or
    unparseable input.
    """
    if value is None:
        return None

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, bool):
        return None
    elif isinstance(value, Real):
        seconds = float(value)
        if abs(seconds) > EPOCH_MILLIS_THRESHOLD:
            seconds /= 1000.0
        try:
            parsed = datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def model_key(instrument: str, role: str) -> str:
    """Registry key of the model deployed for ``role`` on ``instrument``."""
    return f"{instrument}_{role}"


def field_of(obj: Any, name: str, default: Any = None) -> Any:
    """Read ``name`` from a mapping or an attribute-bearing object."""
    if isinstance(obj, Mapping):
        return obj.get(name, default)
    return getattr(obj, name, default)


def model_id_of(prediction: Any) -> Optional[str]:
    """Model id of a prediction: ``source_id``, or ``model`` for plain mappings."""
    return field_of(prediction, "source_id") or field_of(prediction, "model")


@dataclass(frozen=True)
class ModelOutput:
    """Raw output of one model for one request."""

    direction: int
    strength: float
    confidence: float

    def __post_init__(self):
        object.__setattr__(self, "direction", sign(self.direction))
        object.__setattr__(self, "strength", clip_unit(abs(self.strength)))
        object.__setattr__(self, "confidence", clip_unit(self.confidence))

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "ModelOutput":
        """Build from a runtime response.

        Raises:
            ValueError: If a field is missing or not numeric.
        """
        if isinstance(data, ModelOutput):
            return data
        try:
            values = [float(data[key]) for key in ("direction", "strength", "confidence")]
        except (KeyError, TypeError, ValueError) as e:
            raise ValueError(f"Malformed model output {data!r}: {e}") from e

        if not all(math.isfinite(v) for v in values):
            raise ValueError(f"Non-finite model output {data!r}")

        direction, strength, confidence = values
        return cls(direction=direction, strength=strength, confidence=confidence)

    def to_dict(self) -> Dict[str, float]:
        return {
            "direction": self.direction,
            "strength": self.strength,
            "confidence": self.confidence,
        }


@dataclass(frozen=True)
class Prediction:
    """A produced prediction. Immutable once created."""

    source_id: str
    instrument: str
    timestamp: datetime
    direction: int
    strength: float
    confidence: float
    metadata: Dict[str, Any] = field(default_factory=dict)
    recommendation: Recommendation = Recommendation.HOLD

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "source_id": self.source_id,
            "instrument": self.instrument,
            "timestamp": self.timestamp.isoformat(),
            "direction": self.direction,
            "strength": self.strength,
            "confidence": self.confidence,
            "metadata": dict(self.metadata),
            "recommendation": self.recommendation.value,
        }


@dataclass(frozen=True)
class Outcome:
    """Realized result of a trade, produced externally."""

    direction: int
    pnl: float = 0.0
    timestamp: Optional[datetime] = None

    def __post_init__(self):
        object.__setattr__(self, "direction", sign(self.direction))
        if self.timestamp is not None and not isinstance(self.timestamp, datetime):
            object.__setattr__(self, "timestamp", parse_timestamp(self.timestamp))


def _as_list(values: Any) -> list:
    if values is None:
        return []
    return list(values)


@dataclass(frozen=True)
class TrainingBatch:
    """Training data assembled by the outcome store for one model."""

    features: Sequence[Any] = ()
    labels: Sequence[Any] = ()
    timestamps: Sequence[Any] = ()

    @property
    def is_empty(self) -> bool:
        """True when there is nothing new to learn from."""
        return all(len(part) == 0 for part in (self.features, self.labels, self.timestamps))

    @property
    def is_consistent(self) -> bool:
        return len(self.features) == len(self.labels) == len(self.timestamps)

    def __len__(self) -> int:
        return len(self.features)

    @classmethod
    def coerce(cls, data: Union["TrainingBatch", Mapping[str, Any], None]) -> "TrainingBatch":
        """Accept either a batch or a ``{features, labels, timestamps}`` mapping."""
        if data is None:
            return cls()
        if isinstance(data, TrainingBatch):
            return data
        return cls(
            features=_as_list(data.get("features")),
            labels=_as_list(data.get("labels")),
            timestamps=_as_list(data.get("timestamps")),
        )
