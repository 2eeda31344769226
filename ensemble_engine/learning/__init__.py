"""Outcome-driven adaptive learning."""

from .controller import (
    AdaptiveLearningController,
    LearningConfig,
    LearningReport,
    ModelState,
    ModelUpdateResult,
    UpdateStatus,
)
from .registry import ModelWeightRegistry, RecentPerformanceWindow
from .scheduler import OnlineLearningScheduler, SchedulerStatus

__all__ = [
    "AdaptiveLearningController",
    "LearningConfig",
    "LearningReport",
    "ModelState",
    "ModelUpdateResult",
    "UpdateStatus",
    "ModelWeightRegistry",
    "RecentPerformanceWindow",
    "OnlineLearningScheduler",
    "SchedulerStatus",
]
