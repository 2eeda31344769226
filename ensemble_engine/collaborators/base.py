"""
Collaborator Base Classes and Interfaces.

Defines the abstract interfaces the engine calls out to, and the error
taxonomy shared by the prediction and learning paths.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from ..models.base import Outcome, Prediction, TrainingBatch


class EngineError(Exception):
    """Base exception for engine errors."""
    pass


class MarketDataValidationError(EngineError):
    """Market data failed validation before any collaborator was called."""
    def __init__(self, issues: Union[str, Sequence[str]]):
        self.issues: List[str] = [issues] if isinstance(issues, str) else list(issues)
        super().__init__("; ".join(self.issues))


class FeatureExtractionError(EngineError):
    """The feature pipeline produced no features."""
    def __init__(self, message: str = "Feature extraction failed", instrument: Optional[str] = None):
        super().__init__(message)
        self.instrument = instrument


class ModelUnavailableError(EngineError):
    """Too few models answered to form an ensemble."""
    def __init__(
        self,
        message: str,
        failed_models: Optional[Dict[str, str]] = None,
        required: int = 0,
        available: int = 0,
    ):
        super().__init__(message)
        self.failed_models = dict(failed_models or {})
        self.required = required
        self.available = available


class RuntimeUpdateError(EngineError):
    """The model runtime failed to apply a training batch. Recoverable."""
    def __init__(self, message: str, model_id: str = ""):
        super().__init__(message)
        self.model_id = model_id


class FeaturePipeline(ABC):
    """Turns raw market data into a feature vector."""

    @abstractmethod
    async def extract_features(self, market_data: Mapping[str, Any]) -> Optional[Any]:
        """Extract features, or return None when none can be produced."""
        pass


class ModelRuntime(ABC):
    """Owns the statistical models."""

    @abstractmethod
    async def predict(self, model_id: str, features: Any) -> Mapping[str, float]:
        """Return ``{direction, strength, confidence}`` for ``model_id``.

        Raises:
            Exception: Any failure marks the model unavailable for this call.
        """
        pass

    @abstractmethod
    async def update_model(self, model_id: str, batch: TrainingBatch) -> bool:
        """Incrementally train ``model_id``. Returns True on success."""
        pass


class OutcomeStore(ABC):
    """Persists realized outcomes and assembles training batches."""

    @abstractmethod
    async def record_outcome(self, prediction: Prediction, outcome: Outcome) -> None:
        """Persist a prediction together with its realized outcome."""
        pass

    @abstractmethod
    async def prepare_training_data(
        self, model_id: str
    ) -> Union[TrainingBatch, Mapping[str, Sequence[Any]]]:
        """Assemble ``{features, labels, timestamps}`` for ``model_id``."""
        pass
