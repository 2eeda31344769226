"""
Periodic online-learning scheduler.

Runs the controller's learning sweep on a fixed interval in a background
asyncio task.
"""

import asyncio
import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from ..utils.logging import log_exception
from .controller import AdaptiveLearningController, LearningReport

logger = logging.getLogger(__name__)


class SchedulerStatus(str, Enum):
    """Scheduler lifecycle status."""
    STOPPED = "stopped"
    RUNNING = "running"
    STOPPING = "stopping"


class OnlineLearningScheduler:
    """Runs ``perform_online_learning`` every ``interval_seconds``.

    A failing sweep is logged and the loop carries on with the next one.
    """

    def __init__(
        self,
        controller: AdaptiveLearningController,
        interval_seconds: float = 300.0,
        shutdown_timeout_seconds: float = 30.0,
    ):
        if interval_seconds <= 0:
            raise ValueError(f"interval_seconds must be positive, got {interval_seconds}")
        self.controller = controller
        self.interval_seconds = interval_seconds
        self.shutdown_timeout_seconds = shutdown_timeout_seconds

        self._status = SchedulerStatus.STOPPED
        self._task: Optional[asyncio.Task] = None
        self._stop_event: Optional[asyncio.Event] = None
        self._sweep_count = 0
        self._last_report: Optional[LearningReport] = None
        self._last_error: Optional[str] = None
        self._last_run_at: Optional[datetime] = None

    @property
    def status(self) -> SchedulerStatus:
        return self._status

    @property
    def is_running(self) -> bool:
        return self._status == SchedulerStatus.RUNNING

    @property
    def last_report(self) -> Optional[LearningReport]:
        return self._last_report

    async def start(self) -> bool:
        """Start the background loop.

        Returns:
            True if started, False if already running.
        """
        if self._task is not None and not self._task.done():
            logger.warning("Learning scheduler already running")
            return False

        self._stop_event = asyncio.Event()
        self._status = SchedulerStatus.RUNNING
        self._task = asyncio.create_task(self._main_loop())
        logger.info(f"Learning scheduler started (interval: {self.interval_seconds}s)")
        return True

    async def stop(self) -> bool:
        """Stop the loop, letting an in-progress sweep finish within the timeout.

        Returns:
            True if stopped, False if it was not running.
        """
        if self._task is None:
            logger.warning("Learning scheduler not running")
            return False

        self._status = SchedulerStatus.STOPPING
        self._stop_event.set()

        try:
            await asyncio.wait_for(asyncio.shield(self._task), timeout=self.shutdown_timeout_seconds)
        except asyncio.TimeoutError:
            logger.warning(
                f"Learning sweep still running after {self.shutdown_timeout_seconds}s, cancelling"
            )
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass

        self._task = None
        self._status = SchedulerStatus.STOPPED
        logger.info("Learning scheduler stopped")
        return True

    async def run_once(self) -> Optional[LearningReport]:
        """Run a single sweep, logging instead of raising on failure."""
        self._last_run_at = datetime.now(timezone.utc)
        try:
            report = await self.controller.perform_online_learning()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self._last_error = str(e)
            log_exception(logger, "Learning sweep failed", e, sweep=self._sweep_count + 1)
            return None

        self._sweep_count += 1
        self._last_report = report
        return report

    async def _main_loop(self) -> None:
        logger.debug("Learning loop started")
        try:
            while not self._stop_event.is_set():
                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=self.interval_seconds)
                except asyncio.TimeoutError:
                    await self.run_once()
        except asyncio.CancelledError:
            logger.info("Learning loop cancelled")
            raise

    def get_status(self) -> Dict[str, Any]:
        """Scheduler status as a dictionary."""
        return {
            "status": self._status.value,
            "interval_seconds": self.interval_seconds,
            "sweep_count": self._sweep_count,
            "last_run_at": self._last_run_at.isoformat() if self._last_run_at else None,
            "last_error": self._last_error,
        }
