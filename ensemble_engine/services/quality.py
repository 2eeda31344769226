"""
Market data validation and data-quality scoring.

Quality scores are attached to prediction metadata; they never block a
prediction. Validation errors do, before any collaborator is called.
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from numbers import Real
from typing import Any, Dict, List, Mapping, Optional

from ..models.base import parse_timestamp
from ..utils.numeric import clip_unit

logger = logging.getLogger(__name__)

DEFAULT_FRESHNESS_HORIZON_SECONDS = 300.0
COMPLETENESS_FIELDS = ("price", "volume", "timestamp")
FRESHNESS_WEIGHT = 0.6
COMPLETENESS_WEIGHT = 0.4


@dataclass(frozen=True)
class DataQuality:
    """Quality scores of one market observation, each in [0, 1]."""
    freshness: float
    completeness: float
    reliability: float

    def to_dict(self) -> Dict[str, float]:
        return {
            "freshness": self.freshness,
            "completeness": self.completeness,
            "reliability": self.reliability,
        }


@dataclass
class ValidationResult:
    """Result of market data validation."""
    is_valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


def get_price(market_data: Mapping[str, Any]) -> Any:
    """Price of an observation, with ``last`` accepted as an alias."""
    price = market_data.get("price")
    if price is None:
        price = market_data.get("last")
    return price


def _is_number(value: Any) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool) and math.isfinite(value)


def calculate_freshness(
    timestamp: Any,
    now: Optional[datetime] = None,
    horizon_seconds: float = DEFAULT_FRESHNESS_HORIZON_SECONDS,
) -> float:
    """``1 - age / horizon`` clipped to [0, 1].

    Future timestamps score 1; missing or unparseable ones score 0.
    """
    observed = parse_timestamp(timestamp)
    if observed is None:
        return 0.0

    now = now or datetime.now(timezone.utc)
    age = (now - observed).total_seconds()
    if age <= 0:
        return 1.0
    return clip_unit(1.0 - age / horizon_seconds)


def calculate_completeness(market_data: Mapping[str, Any]) -> float:
    """Fraction of price, volume and timestamp present."""
    present = [
        get_price(market_data) is not None,
        market_data.get("volume") is not None,
        market_data.get("timestamp") is not None,
    ]
    return sum(present) / len(COMPLETENESS_FIELDS)


def assess_quality(
    market_data: Mapping[str, Any],
    now: Optional[datetime] = None,
    horizon_seconds: float = DEFAULT_FRESHNESS_HORIZON_SECONDS,
) -> DataQuality:
    """Freshness, completeness and their weighted blend."""
    freshness = calculate_freshness(market_data.get("timestamp"), now, horizon_seconds)
    completeness = calculate_completeness(market_data)
    reliability = clip_unit(FRESHNESS_WEIGHT * freshness + COMPLETENESS_WEIGHT * completeness)
    return DataQuality(freshness=freshness, completeness=completeness, reliability=reliability)


def validate_market_data(market_data: Any) -> ValidationResult:
    """Check that an observation can be served.

    Errors: not a mapping, missing instrument, missing or non-positive price.
    Warnings: negative or non-numeric volume, unparseable timestamp, RSI out
    of range.
    """
    if not isinstance(market_data, Mapping):
        return ValidationResult(is_valid=False, errors=["Invalid data: must be a mapping"])

    errors: List[str] = []
    warnings: List[str] = []

    instrument = market_data.get("instrument")
    if not isinstance(instrument, str) or not instrument.strip():
        errors.append("Invalid instrument: must be a non-empty string")

    price = get_price(market_data)
    if not _is_number(price) or price <= 0:
        errors.append("Invalid price: must be a positive number")

    volume = market_data.get("volume")
    if volume is not None and (not _is_number(volume) or volume < 0):
        warnings.append(f"Invalid volume value ({volume!r})")

    timestamp = market_data.get("timestamp")
    if timestamp is not None and parse_timestamp(timestamp) is None:
        warnings.append(f"Unparseable timestamp ({timestamp!r})")

    rsi = market_data.get("rsi")
    if rsi is not None and (not _is_number(rsi) or not 0 <= rsi <= 100):
        warnings.append(f"RSI out of range ({rsi!r})")

    for warning in warnings:
        logger.warning(warning)

    return ValidationResult(is_valid=not errors, errors=errors, warnings=warnings)
