"""
Adaptive Learning Controller.

Consumes realized outcomes, keeps per-model rolling accuracy, retrains
models whose accuracy falls under the learning threshold and recomputes the
long-run blend weights in the Model Weight Registry.

Per-model lifecycle:

    NOMINAL --(accuracy < threshold)--> UNDERPERFORMING --> RETRAINING --> NOMINAL

The return to NOMINAL is optimistic: the next outcomes re-flag a model that
is still underperforming.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from ..collaborators.base import ModelRuntime, OutcomeStore, RuntimeUpdateError
from ..models.base import Outcome, Prediction, TrainingBatch, field_of, model_id_of
from ..monitoring.notifications import NotificationChannel, NotificationType
from ..utils.logging import LoggingMixin
from ..utils.numeric import accuracy, sign
from .registry import DEFAULT_PERFORMANCE, ModelWeightRegistry

PredictionLike = Union[Prediction, Mapping[str, Any]]
OutcomeLike = Union[Outcome, Mapping[str, Any]]


class ModelState(str, Enum):
    """Learning state of one model."""
    NOMINAL = "nominal"
    UNDERPERFORMING = "underperforming"
    RETRAINING = "retraining"


class UpdateStatus(str, Enum):
    """Result of one model's online update."""
    UPDATED = "updated"
    SKIPPED_NO_DATA = "skipped_no_data"
    SKIPPED_BUSY = "skipped_busy"
    FAILED = "failed"


@dataclass
class LearningConfig:
    """Configuration for the adaptive learning controller.

    Attributes:
        learning_threshold: Accuracy under which a model is retrained.
        window_size: Outcomes kept per rolling window.
        min_weight: Lower bound of every blend weight.
        min_outcomes_before_learning: Window length required before an
            outcome can trigger retraining.
    """

    learning_threshold: float = 0.6
    window_size: int = 50
    min_weight: float = 0.1
    min_outcomes_before_learning: int = 1

    def __post_init__(self):
        if not 0.0 <= self.learning_threshold <= 1.0:
            raise ValueError(
                f"learning_threshold must be between 0.0 and 1.0, got {self.learning_threshold}"
            )
        if self.window_size < 1:
            raise ValueError(f"window_size must be positive, got {self.window_size}")
        if not 0.0 <= self.min_weight <= 1.0:
            raise ValueError(f"min_weight must be between 0.0 and 1.0, got {self.min_weight}")
        if self.min_outcomes_before_learning < 1:
            raise ValueError(
                "min_outcomes_before_learning must be at least 1, "
                f"got {self.min_outcomes_before_learning}"
            )


@dataclass
class ModelUpdateResult:
    """Outcome of one model's update attempt."""
    model_id: str
    status: UpdateStatus
    performance: float
    samples: int = 0
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "model_id": self.model_id,
            "status": self.status.value,
            "performance": self.performance,
            "samples": self.samples,
            "error": self.error,
        }


@dataclass
class LearningReport:
    """Per-model report of an online-learning sweep."""
    results: Dict[str, ModelUpdateResult] = field(default_factory=dict)
    weights: Dict[str, float] = field(default_factory=dict)
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: Optional[datetime] = None

    def _with_status(self, status: UpdateStatus) -> List[str]:
        return [m for m, r in self.results.items() if r.status == status]

    @property
    def updated(self) -> List[str]:
        return self._with_status(UpdateStatus.UPDATED)

    @property
    def failed(self) -> List[str]:
        return self._with_status(UpdateStatus.FAILED)

    @property
    def skipped(self) -> List[str]:
        return [
            m for m, r in self.results.items()
            if r.status in (UpdateStatus.SKIPPED_NO_DATA, UpdateStatus.SKIPPED_BUSY)
        ]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "results": {m: r.to_dict() for m, r in self.results.items()},
            "weights": dict(self.weights),
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }


class AdaptiveLearningController(LoggingMixin):
    """Outcome-driven learning loop over a Model Weight Registry.

    Retraining of one model never overlaps: each model has its own
    ``asyncio.Lock`` and a model that is already retraining is skipped.

    Example:
        ```python
        controller = AdaptiveLearningController(runtime, store)
        correct = await controller.record_outcome(prediction, Outcome(direction=1))
        report = await controller.perform_online_learning()
        weights = controller.get_model_weights()
        ```
    """

    def __init__(
        self,
        runtime: ModelRuntime,
        outcome_store: OutcomeStore,
        registry: Optional[ModelWeightRegistry] = None,
        config: Optional[LearningConfig] = None,
        notifications: Optional[NotificationChannel] = None,
    ):
        """
        Initialize controller.

        Args:
            runtime: Model runtime receiving training batches.
            outcome_store: Store persisting outcomes and assembling batches.
            registry: Shared weight registry. A private one is created if omitted.
            config: Learning configuration.
            notifications: Channel for outcome, learning and weight notifications.
        """
        self.setup_logger(__name__)
        self.runtime = runtime
        self.outcome_store = outcome_store
        self.config = config or LearningConfig()
        self.registry = registry or ModelWeightRegistry(
            window_size=self.config.window_size,
            min_weight=self.config.min_weight,
        )
        self.notifications = notifications or NotificationChannel()

        self._states: Dict[str, ModelState] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    # ========================
    # Outcomes
    # ========================

    async def record_outcome(self, prediction: PredictionLike, outcome: OutcomeLike) -> bool:
        """Score a prediction against its realized outcome.

        Persists the pair, updates the model's window and the aggregate
        window, and retrains the model when its accuracy is under the
        threshold.

        Returns:
            Whether the prediction was correct.

        Raises:
            ValueError: If the prediction carries no model id.
        """
        model_id = model_id_of(prediction)
        if not model_id:
            raise ValueError("Prediction has no source_id/model to attribute the outcome to")

        try:
            await self.outcome_store.record_outcome(prediction, outcome)
        except Exception as e:
            self.log_error("Outcome store write failed", error=e, model_id=model_id)

        correct = self.evaluate_prediction(prediction, outcome)
        performance = self.registry.record(model_id, correct)
        overall = self.registry.overall_performance()

        self.notifications.publish(
            NotificationType.OUTCOME_PROCESSED,
            model_id=model_id,
            correct=correct,
            performance=performance,
            overall_performance=overall,
        )

        if (
            performance < self.config.learning_threshold
            and self.registry.window_length(model_id) >= self.config.min_outcomes_before_learning
        ):
            await self._retrain_underperforming(model_id, performance)

        return correct

    async def _retrain_underperforming(self, model_id: str, performance: float) -> None:
        if self._lock_for(model_id).locked():
            self.log_debug("Model already retraining, outcome-triggered update skipped", model_id=model_id)
            return

        self._states[model_id] = ModelState.UNDERPERFORMING
        self.log_info(
            "Model underperforming, starting online learning",
            model_id=model_id,
            performance=performance,
            threshold=self.config.learning_threshold,
        )

        result = await self._update_model(model_id)
        self.update_ensemble_weights()
        self._publish_learning_complete(result)

    @staticmethod
    def evaluate_prediction(prediction: PredictionLike, outcome: OutcomeLike) -> bool:
        """True when prediction and outcome share a sign class.

        Zero is its own class: a neutral prediction is only correct against
        a neutral outcome.
        """
        predicted = sign(float(field_of(prediction, "direction", 0) or 0))
        realized = sign(float(field_of(outcome, "direction", 0) or 0))
        return predicted == realized

    # ========================
    # Learning
    # ========================

    async def perform_online_learning(self, model_ids: Optional[Iterable[str]] = None) -> LearningReport:
        """Retrain every model whose accuracy is under the threshold.

        Models are updated concurrently and independently: a failing model
        is reported and retried on the next sweep without blocking others.

        Args:
            model_ids: Restrict the sweep to these models.

        Returns:
            LearningReport with one result per candidate model.
        """
        report = LearningReport()
        candidates = self.registry.models_below(self.config.learning_threshold)
        if model_ids is not None:
            wanted = set(model_ids)
            candidates = [m for m in candidates if m in wanted]

        if not candidates:
            self.log_debug("No model under learning threshold")
            report.weights = dict(self.registry.snapshot_weights())
            report.completed_at = datetime.now(timezone.utc)
            return report

        self.log_info("Starting online learning sweep", models=candidates)

        results = await asyncio.gather(*(self._update_model(m) for m in candidates))
        report.results = {r.model_id: r for r in results}
        report.weights = self.update_ensemble_weights()

        for result in results:
            if result.status != UpdateStatus.SKIPPED_BUSY:
                self._publish_learning_complete(result)

        report.completed_at = datetime.now(timezone.utc)
        self.log_info(
            "Online learning sweep complete",
            updated=report.updated,
            failed=report.failed,
            skipped=report.skipped,
        )
        return report

    async def _update_model(self, model_id: str) -> ModelUpdateResult:
        lock = self._lock_for(model_id)
        if lock.locked():
            return ModelUpdateResult(
                model_id, UpdateStatus.SKIPPED_BUSY, self.registry.get_performance(model_id)
            )

        async with lock:
            self._states[model_id] = ModelState.RETRAINING
            try:
                return await self._run_update(model_id)
            finally:
                self._states[model_id] = ModelState.NOMINAL

    async def _run_update(self, model_id: str) -> ModelUpdateResult:
        performance = self.registry.get_performance(model_id)

        try:
            batch = TrainingBatch.coerce(await self.outcome_store.prepare_training_data(model_id))
        except Exception as e:
            self.log_error("Training batch preparation failed", error=e, model_id=model_id)
            return ModelUpdateResult(model_id, UpdateStatus.FAILED, performance, error=str(e))

        if batch.is_empty:
            self.log_info("Not enough new data to retrain", model_id=model_id)
            return ModelUpdateResult(model_id, UpdateStatus.SKIPPED_NO_DATA, performance)

        try:
            succeeded = await self.runtime.update_model(model_id, batch)
        except Exception as e:
            error = RuntimeUpdateError(f"Update of {model_id} raised: {e}", model_id=model_id)
            self.log_error("Model update failed", error=e, model_id=model_id)
            return ModelUpdateResult(model_id, UpdateStatus.FAILED, performance, len(batch), str(error))

        if not succeeded:
            error = RuntimeUpdateError(f"Update of {model_id} was rejected by the runtime", model_id=model_id)
            self.log_warning(str(error), model_id=model_id)
            return ModelUpdateResult(model_id, UpdateStatus.FAILED, performance, len(batch), str(error))

        self.log_info("Model updated", model_id=model_id, samples=len(batch), performance=performance)
        return ModelUpdateResult(model_id, UpdateStatus.UPDATED, performance, len(batch))

    def _publish_learning_complete(self, result: ModelUpdateResult) -> None:
        self.notifications.publish(
            NotificationType.LEARNING_COMPLETE,
            model_id=result.model_id,
            status=result.status.value,
            performance=self.registry.get_performance(result.model_id),
        )

    def _lock_for(self, model_id: str) -> asyncio.Lock:
        lock = self._locks.get(model_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[model_id] = lock
        return lock

    # ========================
    # Weights and performance
    # ========================

    def update_ensemble_weights(self) -> Dict[str, float]:
        """Recompute weights proportional to performance, floored.

        Returns:
            The new weights.
        """
        with self.registry.lock:
            weights = self.registry.recompute_weights()
            self.notifications.publish(NotificationType.WEIGHTS_UPDATED, weights=dict(weights))

        self.log_info("Ensemble weights updated", weights=weights)
        return weights

    def get_model_weights(self) -> Mapping[str, float]:
        """Read-only snapshot of the current weights."""
        return self.registry.snapshot_weights()

    def get_model_performance(self) -> Dict[str, float]:
        return self.registry.performance_snapshot()

    def get_model_state(self, model_id: str) -> ModelState:
        return self._states.get(model_id, ModelState.NOMINAL)

    def calculate_current_performance(self) -> float:
        """Accuracy of the aggregate window, 0.5 when empty."""
        return self.registry.overall_performance()

    @staticmethod
    def calculate_performance(values: Iterable[bool]) -> float:
        """Fraction of correct values, 0.5 for an empty sequence."""
        return accuracy(values, default=DEFAULT_PERFORMANCE)

    def reset(self) -> None:
        """Forget every window, score, weight and state."""
        self.registry.reset()
        self._states.clear()
        self.log_info("Adaptive learning state reset")
