"""Numeric helpers shared by the combiner and the weight registries."""

from typing import Dict, Iterable, Mapping

import numpy as np

WEIGHT_TOLERANCE = 1e-12


def clip_unit(value: float) -> float:
    """Clip a value into the [0, 1] interval."""
    return float(np.clip(value, 0.0, 1.0))


def sign(value: float) -> int:
    """Return -1, 0 or 1 following the sign of ``value``."""
    return int(np.sign(value))


def normalize_weights(weights: Mapping[str, float]) -> Dict[str, float]:
    """Normalize weights to sum to 1.

    Negative entries are treated as zero. When every weight is zero the
    result is uniform.
    """
    if not weights:
        return {}

    names = list(weights)
    values = np.clip(np.array([weights[n] for n in names], dtype=float), 0.0, None)
    total = values.sum()

    if total > 0:
        values = values / total
    else:
        values = np.full(len(names), 1.0 / len(names))

    return {name: float(v) for name, v in zip(names, values)}


def floor_then_normalize(scores: Mapping[str, float], floor: float) -> Dict[str, float]:
    """Turn scores into weights proportional to score with a hard lower bound.

    Weights start proportional to ``scores``. Any weight under ``floor`` is
    pinned to it and the remaining mass is shared out proportionally among
    the free entries; this repeats until nothing new drops under the floor,
    so the floor still holds after normalization.

    When ``len(scores) * floor`` exceeds 1 the floor cannot be honoured and
    the effective floor becomes ``1 / len(scores)``.

    Args:
        scores: Non-negative score per name.
        floor: Minimum weight per name.

    Returns:
        Dictionary of name to weight summing to 1.
    """
    if not scores:
        return {}

    names = list(scores)
    n = len(names)
    values = np.clip(np.array([scores[name] for name in names], dtype=float), 0.0, None)
    floor = min(max(floor, 0.0), 1.0 / n)

    total = values.sum()
    if total > 0:
        weights = values / total
    else:
        weights = np.full(n, 1.0 / n)
        values = np.ones(n)

    pinned = np.zeros(n, dtype=bool)
    while True:
        below = (weights < floor - WEIGHT_TOLERANCE) & ~pinned
        if not below.any():
            break

        pinned |= below
        free = ~pinned
        remaining = 1.0 - floor * pinned.sum()
        weights[pinned] = floor

        free_total = values[free].sum()
        if free_total > 0:
            weights[free] = values[free] / free_total * remaining
        elif free.any():
            weights[free] = remaining / free.sum()

    return {name: float(w) for name, w in zip(names, weights)}


def accuracy(values: Iterable[bool], default: float = 0.5) -> float:
    """Share of ``True`` values, or ``default`` for an empty sequence."""
    values = list(values)
    if not values:
        return default
    return sum(1 for v in values if v) / len(values)
