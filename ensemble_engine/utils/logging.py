"""Structured logging utilities for engine components.

This module provides:
- LoggingMixin: A mixin class that adds structured logging context
- Helper functions for consistent error logging with stack traces
- Instrument context tracking across async boundaries
"""

import logging
import sys
import traceback
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from contextvars import ContextVar

PACKAGE_LOGGER = "ensemble_engine"

# Context variable for tracking the instrument being served across async boundaries
instrument_ctx: ContextVar[Optional[str]] = ContextVar("instrument", default=None)


def _base_context() -> Dict[str, Any]:
    return {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "instrument": instrument_ctx.get(),
    }


class LoggingMixin:
    """Mixin class that provides structured logging with context.

    Usage:
        class MyService(LoggingMixin):
            def __init__(self):
                self.setup_logger(__name__)

            def do_something(self):
                self.log_info("Doing something", model_id="ES_lstm")
    """

    def setup_logger(self, name: str) -> None:
        """Set up the logger for this class.

        Args:
            name: Logger name (typically __name__)
        """
        self.logger = logging.getLogger(name)

    def _add_context(self, **kwargs) -> Dict[str, Any]:
        context = _base_context()
        context.update(kwargs)
        return context

    def log_info(self, message: str, **kwargs) -> None:
        """Log info message with context."""
        context = self._add_context(**kwargs)
        self.logger.info(f"{message} | Context: {context}")

    def log_warning(self, message: str, **kwargs) -> None:
        """Log warning message with context."""
        context = self._add_context(**kwargs)
        self.logger.warning(f"{message} | Context: {context}")

    def log_error(
        self,
        message: str,
        error: Optional[BaseException] = None,
        include_trace: bool = True,
        **kwargs,
    ) -> None:
        """Log error message with context and optional stack trace.

        Args:
            message: Log message
            error: Exception object if available
            include_trace: Whether to include full stack trace
            **kwargs: Additional context fields
        """
        context = self._add_context(**kwargs)

        if error:
            context["error_type"] = type(error).__name__
            context["error_message"] = str(error)

        error_msg = f"{message} | Context: {context}"

        if include_trace and error:
            trace = "".join(traceback.format_exception(type(error), error, error.__traceback__))
            error_msg += f"\nStack trace:\n{trace}"

        self.logger.error(error_msg)

    def log_debug(self, message: str, **kwargs) -> None:
        """Log debug message with context."""
        if not self.logger.isEnabledFor(logging.DEBUG):
            return
        context = self._add_context(**kwargs)
        self.logger.debug(f"{message} | Context: {context}")


def log_exception(
    logger: logging.Logger,
    message: str,
    error: BaseException,
    include_trace: bool = True,
    **context,
) -> None:
    """Log an exception with full context and stack trace.

    Args:
        logger: Logger instance to use
        message: Descriptive message about what failed
        error: The exception that occurred
        include_trace: Whether to include full stack trace
        **context: Additional context fields
    """
    context_dict = {
        **_base_context(),
        "error_type": type(error).__name__,
        "error_message": str(error),
        **context,
    }

    error_msg = f"{message} | Context: {context_dict}"

    if include_trace:
        trace = "".join(traceback.format_exception(type(error), error, error.__traceback__))
        error_msg += f"\nStack trace:\n{trace}"

    logger.error(error_msg)


def configure_logging(
    level: str = "INFO",
    stream: Optional[object] = None,
    console: bool = True,
) -> logging.Logger:
    """Set the package log level and install a console handler.

    With ``console=False`` only the level is applied and records keep
    propagating to the host application's handlers. Calling this more than
    once only updates the level.
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(level.upper())

    if not console or logger.handlers:
        return logger

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    logger.addHandler(handler)
    logger.propagate = False
    return logger


def set_instrument(instrument: Optional[str]):
    """Bind the instrument for the current context.

    Returns:
        Token usable with ``instrument_ctx.reset``.
    """
    return instrument_ctx.set(instrument)


def get_instrument() -> Optional[str]:
    """Get the instrument bound to the current context."""
    return instrument_ctx.get()
