"""Shared utilities."""

from .logging import (
    LoggingMixin,
    configure_logging,
    get_instrument,
    instrument_ctx,
    log_exception,
    set_instrument,
)
from .numeric import (
    accuracy,
    clip_unit,
    floor_then_normalize,
    normalize_weights,
    sign,
)

__all__ = [
    "LoggingMixin",
    "configure_logging",
    "get_instrument",
    "instrument_ctx",
    "log_exception",
    "set_instrument",
    "accuracy",
    "clip_unit",
    "floor_then_normalize",
    "normalize_weights",
    "sign",
]
