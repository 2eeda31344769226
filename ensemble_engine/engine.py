"""
Adaptive Ensemble Engine.

Facade owning one Model Weight Registry, one notification channel, the
prediction service and the adaptive learning controller, wired so that
weights learned from outcomes feed the next ensemble call.
"""

from typing import Any, Callable, Dict, List, Mapping, Optional

from .collaborators.base import FeaturePipeline, ModelRuntime, OutcomeStore
from .collaborators.memory import InMemoryOutcomeStore
from .config.settings import EngineSettings, get_settings
from .learning.controller import AdaptiveLearningController, LearningReport, ModelState
from .learning.registry import ModelWeightRegistry
from .learning.scheduler import OnlineLearningScheduler
from .models.base import Outcome, Prediction, field_of, model_key
from .models.ensemble.weights import RolePriorWeights
from .monitoring.notifications import Notification, NotificationChannel, NotificationType
from .services.history import HistoryEntry
from .services.prediction_service import PredictionService
from .utils.logging import LoggingMixin, configure_logging


class AdaptiveEnsembleEngine(LoggingMixin):
    """Ensemble prediction plus outcome-driven online learning.

    Example:
        ```python
        engine = AdaptiveEnsembleEngine(runtime, pipeline)
        engine.subscribe(NotificationType.WEIGHTS_UPDATED, on_weights)

        prediction = await engine.generate_prediction(market_data)
        # ... later, once the trade has resolved
        await engine.record_ensemble_outcome(prediction, Outcome(direction=1, pnl=42.0))
        ```
    """

    def __init__(
        self,
        runtime: ModelRuntime,
        feature_pipeline: FeaturePipeline,
        outcome_store: Optional[OutcomeStore] = None,
        settings: Optional[EngineSettings] = None,
    ):
        """
        Initialize engine.

        Args:
            runtime: Model runtime serving predictions and updates.
            feature_pipeline: Feature extraction for market observations.
            outcome_store: Outcome persistence. Defaults to an in-memory store.
            settings: Engine settings. Defaults to ``get_settings()``.
        """
        self.setup_logger(__name__)
        self.settings = settings or get_settings()
        configure_logging(self.settings.log_level, console=self.settings.log_to_console)
        learning_config = self.settings.to_learning_config()

        self.notifications = NotificationChannel()
        self.registry = ModelWeightRegistry(
            window_size=learning_config.window_size,
            min_weight=learning_config.min_weight,
        )
        self.role_priors = RolePriorWeights(self.settings.to_role_prior_config())
        self.outcome_store = outcome_store or InMemoryOutcomeStore()

        self.prediction_service = PredictionService(
            runtime,
            feature_pipeline,
            registry=self.registry,
            role_priors=self.role_priors,
            config=self.settings.to_service_config(),
            notifications=self.notifications,
        )
        self.controller = AdaptiveLearningController(
            runtime,
            self.outcome_store,
            registry=self.registry,
            config=learning_config,
            notifications=self.notifications,
        )
        self.scheduler = OnlineLearningScheduler(
            self.controller,
            interval_seconds=self.settings.learning_interval_seconds,
        )

    # Prediction

    async def generate_prediction(self, market_data: Mapping[str, Any]) -> Prediction:
        return await self.prediction_service.generate_prediction(market_data)

    def get_history(self, instrument: str, limit: Optional[int] = None) -> List[HistoryEntry]:
        return self.prediction_service.get_history(instrument, limit)

    def find_prediction_for_outcome(self, instrument: str, at: Any) -> Optional[Prediction]:
        return self.prediction_service.find_prediction_for_outcome(instrument, at)

    def adjust_role_priors(self, performance: Mapping[str, float]) -> Dict[str, float]:
        return self.prediction_service.adjust_role_priors(performance)

    # Outcomes and learning

    async def record_outcome(self, prediction: Any, outcome: Any) -> bool:
        """Score one model's prediction. See ``AdaptiveLearningController.record_outcome``."""
        return await self.controller.record_outcome(prediction, outcome)

    async def record_ensemble_outcome(self, prediction: Prediction, outcome: Any) -> Dict[str, bool]:
        """Score every model that took part in an ensemble prediction.

        Each surviving role's output is scored under its registry key
        ``{instrument}_{role}``, which is the key the prediction service
        reads weights from.

        Returns:
            Correctness per model id.
        """
        results: Dict[str, bool] = {}
        for component in self.component_predictions(prediction):
            results[component.source_id] = await self.controller.record_outcome(component, outcome)
        return results

    @staticmethod
    def component_predictions(prediction: Prediction) -> List[Prediction]:
        """Split an ensemble prediction into one prediction per model."""
        metadata = field_of(prediction, "metadata") or {}
        components = metadata.get("component_predictions") or {}
        instrument = field_of(prediction, "instrument")
        shared = {"ensemble_source_id": field_of(prediction, "source_id")}
        if "features" in metadata:
            shared["features"] = metadata["features"]

        return [
            Prediction(
                source_id=model_key(instrument, role),
                instrument=instrument,
                timestamp=field_of(prediction, "timestamp"),
                direction=int(output["direction"]),
                strength=float(output["strength"]),
                confidence=float(output["confidence"]),
                metadata=dict(shared),
            )
            for role, output in components.items()
        ]

    async def perform_online_learning(self) -> LearningReport:
        return await self.controller.perform_online_learning()

    def update_ensemble_weights(self) -> Dict[str, float]:
        return self.controller.update_ensemble_weights()

    def get_model_weights(self) -> Mapping[str, float]:
        return self.controller.get_model_weights()

    def get_model_state(self, model_id: str) -> ModelState:
        return self.controller.get_model_state(model_id)

    def calculate_current_performance(self) -> float:
        return self.controller.calculate_current_performance()

    async def start_learning_loop(self) -> bool:
        return await self.scheduler.start()

    async def stop_learning_loop(self) -> bool:
        return await self.scheduler.stop()

    # Notifications

    def subscribe(
        self,
        notification_type: Optional[NotificationType],
        listener: Callable[[Notification], None],
    ) -> Callable[[], None]:
        """Register a listener; returns a callable that removes it."""
        return self.notifications.subscribe(notification_type, listener)

    def reset(self) -> None:
        """Clear learned state, cached predictions and history."""
        self.controller.reset()
        self.prediction_service.reset()
        self.log_info("Engine reset")

    def get_status(self) -> Dict[str, Any]:
        return {
            "weights": dict(self.get_model_weights()),
            "performance": self.controller.get_model_performance(),
            "overall_performance": self.calculate_current_performance(),
            "role_priors": dict(self.role_priors.priors),
            "prediction_service": self.prediction_service.get_stats(),
            "learning_loop": self.scheduler.get_status(),
        }
