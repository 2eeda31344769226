"""
Ensemble prediction service.

Serves one ensemble prediction per market observation:

1. validate the observation,
2. look it up in the TTL cache (concurrent duplicates share one computation),
3. extract features once and query every model role concurrently,
4. blend the answers with registry weights, or role priors when the
   registry has no weight for a surviving model,
5. attach data-quality metadata, cache, record in history and notify.
"""

import asyncio
import hashlib
import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Tuple

from ..collaborators.base import (
    FeatureExtractionError,
    FeaturePipeline,
    MarketDataValidationError,
    ModelRuntime,
    ModelUnavailableError,
)
from ..learning.registry import ModelWeightRegistry
from ..models.base import ModelOutput, Prediction, model_key, parse_timestamp
from ..models.ensemble.combiner import CombinedPrediction, EnsembleCombiner
from ..models.ensemble.weights import DEFAULT_ROLE_PRIORS, RolePriorWeights
from ..monitoring.notifications import NotificationChannel, NotificationType
from ..utils.logging import LoggingMixin, instrument_ctx, set_instrument
from .cache import PredictionCache
from .history import HistoryEntry, PredictionHistory
from .quality import (
    DEFAULT_FRESHNESS_HORIZON_SECONDS,
    assess_quality,
    validate_market_data,
)

WEIGHT_SOURCE_REGISTRY = "registry"
WEIGHT_SOURCE_ROLE_PRIORS = "role_priors"


@dataclass
class PredictionServiceConfig:
    """Configuration for the prediction service.

    Attributes:
        model_roles: Roles queried per request; ``{instrument}_{role}`` is
            the model id passed to the runtime.
        cache_ttl_seconds: Lifetime of a cached prediction.
        cache_max_size: Maximum cached predictions.
        history_length: Predictions kept per instrument.
        freshness_horizon_seconds: Age at which freshness reaches 0.
        min_models_required: Quorum of answering models, capped at the
            number of roles.
        validate_input: Reject invalid observations before any model call.
        attach_features: Keep the feature vector in prediction metadata.
    """

    model_roles: List[str] = field(default_factory=lambda: list(DEFAULT_ROLE_PRIORS))
    cache_ttl_seconds: float = 3600.0
    cache_max_size: int = 1000
    history_length: int = 1000
    freshness_horizon_seconds: float = DEFAULT_FRESHNESS_HORIZON_SECONDS
    min_models_required: int = 3
    validate_input: bool = True
    attach_features: bool = True

    def __post_init__(self):
        if not self.model_roles:
            raise ValueError("At least one model role is required")
        if len(set(self.model_roles)) != len(self.model_roles):
            raise ValueError(f"Duplicate model roles: {self.model_roles}")
        if self.freshness_horizon_seconds <= 0:
            raise ValueError(
                f"freshness_horizon_seconds must be positive, got {self.freshness_horizon_seconds}"
            )
        if self.min_models_required < 1:
            raise ValueError(f"min_models_required must be at least 1, got {self.min_models_required}")

    @property
    def quorum(self) -> int:
        return min(self.min_models_required, len(self.model_roles))


def _is_empty(features: Any) -> bool:
    if features is None:
        return True
    try:
        return len(features) == 0
    except TypeError:
        return False


class PredictionService(LoggingMixin):
    """Produces cached ensemble predictions from market observations.

    Example:
        ```python
        service = PredictionService(runtime, pipeline, registry=registry)
        prediction = await service.generate_prediction({
            "instrument": "ES",
            "price": 4500.25,
            "volume": 1200,
            "timestamp": "2024-03-20T10:00:00Z",
        })
        print(prediction.recommendation)
        ```
    """

    def __init__(
        self,
        runtime: ModelRuntime,
        feature_pipeline: FeaturePipeline,
        registry: Optional[ModelWeightRegistry] = None,
        role_priors: Optional[RolePriorWeights] = None,
        config: Optional[PredictionServiceConfig] = None,
        notifications: Optional[NotificationChannel] = None,
        cache: Optional[PredictionCache] = None,
    ):
        self.setup_logger(__name__)
        self.runtime = runtime
        self.feature_pipeline = feature_pipeline
        self.config = config or PredictionServiceConfig()
        self.registry = registry or ModelWeightRegistry()
        self.role_priors = role_priors or RolePriorWeights()
        self.notifications = notifications or NotificationChannel()

        self.combiner = EnsembleCombiner(self.role_priors)
        self.cache = cache or PredictionCache(
            ttl_seconds=self.config.cache_ttl_seconds,
            max_size=self.config.cache_max_size,
        )
        self.history = PredictionHistory(max_length=self.config.history_length)

    @staticmethod
    def cache_key(market_data: Mapping[str, Any]) -> str:
        """Instrument, observation timestamp and a digest of every other field."""
        rest = {k: v for k, v in market_data.items() if k not in ("instrument", "timestamp")}
        digest = hashlib.md5(
            json.dumps(rest, sort_keys=True, default=str).encode()
        ).hexdigest()
        return f"{market_data.get('instrument')}_{market_data.get('timestamp')}_{digest}"

    async def generate_prediction(self, market_data: Mapping[str, Any]) -> Prediction:
        """Produce, or return the cached, ensemble prediction for an observation.

        Raises:
            MarketDataValidationError: Observation rejected before any model call.
            FeatureExtractionError: The feature pipeline produced nothing.
            ModelUnavailableError: Fewer models answered than the quorum.
        """
        if self.config.validate_input:
            result = validate_market_data(market_data)
            if not result.is_valid:
                raise MarketDataValidationError(result.errors)
        elif not isinstance(market_data, Mapping):
            raise MarketDataValidationError("Invalid data: must be a mapping")

        token = set_instrument(market_data.get("instrument"))
        try:
            return await self.cache.get_or_compute(
                self.cache_key(market_data),
                lambda: self._compute(market_data),
                on_result=self._publish,
            )
        finally:
            instrument_ctx.reset(token)

    async def _compute(self, market_data: Mapping[str, Any]) -> Prediction:
        instrument = str(market_data.get("instrument") or "")

        features = await self._extract_features(market_data, instrument)
        outputs, failed = await self._query_models(instrument, features)

        quorum = self.config.quorum
        if len(outputs) < quorum:
            self.log_warning(
                "Model quorum not met",
                available=len(outputs),
                required=quorum,
                failed_models=failed,
            )
            raise ModelUnavailableError(
                f"Only {len(outputs)} of {len(self.config.model_roles)} models answered "
                f"for {instrument}, {quorum} required",
                failed_models=failed,
                required=quorum,
                available=len(outputs),
            )

        weights, weight_source = self._resolve_weights(instrument, outputs)
        combined = self.combiner.combine(outputs, weights)

        now = datetime.now(timezone.utc)
        metadata = self._build_metadata(market_data, now, combined, weight_source, outputs, failed)
        if self.config.attach_features:
            metadata["features"] = features

        prediction = Prediction(
            source_id=f"{instrument}_ensemble",
            instrument=instrument,
            timestamp=now,
            direction=combined.direction,
            strength=combined.strength,
            confidence=combined.confidence,
            metadata=metadata,
            recommendation=combined.recommendation,
        )

        self.log_debug(
            "Prediction generated",
            direction=prediction.direction,
            confidence=round(prediction.confidence, 4),
            recommendation=prediction.recommendation.value,
        )
        return prediction

    async def _extract_features(self, market_data: Mapping[str, Any], instrument: str) -> Any:
        try:
            features = await self.feature_pipeline.extract_features(market_data)
        except Exception as e:
            self.log_error("Feature extraction failed", error=e)
            raise FeatureExtractionError(f"Feature extraction failed: {e}", instrument=instrument) from e

        if _is_empty(features):
            raise FeatureExtractionError(f"No features extracted for {instrument}", instrument=instrument)
        return features

    async def _query_models(
        self, instrument: str, features: Any
    ) -> Tuple[Dict[str, ModelOutput], Dict[str, str]]:
        roles = list(self.config.model_roles)
        responses = await asyncio.gather(
            *(self.runtime.predict(model_key(instrument, role), features) for role in roles),
            return_exceptions=True,
        )

        outputs: Dict[str, ModelOutput] = {}
        failed: Dict[str, str] = {}
        for role, response in zip(roles, responses):
            if isinstance(response, asyncio.CancelledError):
                raise response
            if isinstance(response, Exception):
                failed[role] = f"{type(response).__name__}: {response}"
                self.log_warning("Model prediction failed", model_id=model_key(instrument, role), error=failed[role])
                continue
            try:
                outputs[role] = ModelOutput.from_mapping(response)
            except ValueError as e:
                failed[role] = str(e)
                self.log_warning("Malformed model output", model_id=model_key(instrument, role), error=str(e))

        return outputs, failed

    def _resolve_weights(
        self, instrument: str, outputs: Mapping[str, ModelOutput]
    ) -> Tuple[Optional[Dict[str, float]], str]:
        """Registry weights when every surviving model has one, else role priors."""
        keys = {role: model_key(instrument, role) for role in outputs}
        snapshot = self.registry.snapshot_weights()
        if keys and all(key in snapshot for key in keys.values()):
            return {role: snapshot[key] for role, key in keys.items()}, WEIGHT_SOURCE_REGISTRY
        return None, WEIGHT_SOURCE_ROLE_PRIORS

    def _build_metadata(
        self,
        market_data: Mapping[str, Any],
        now: datetime,
        combined: CombinedPrediction,
        weight_source: str,
        outputs: Mapping[str, ModelOutput],
        failed: Mapping[str, str],
    ) -> Dict[str, Any]:
        observed = parse_timestamp(market_data.get("timestamp"))
        quality = assess_quality(market_data, now, self.config.freshness_horizon_seconds)
        return {
            "observation_timestamp": observed.isoformat() if observed else None,
            "data_quality": quality.to_dict(),
            "weights": dict(combined.weights),
            "weight_source": weight_source,
            "model_contributions": dict(combined.contributions),
            "component_predictions": {role: out.to_dict() for role, out in outputs.items()},
            "failed_models": dict(failed),
            "models_used": list(outputs),
        }

    def _publish(self, prediction: Prediction) -> None:
        entry = self.history.append(prediction)
        self.notifications.publish(
            NotificationType.PREDICTION_PRODUCED,
            instrument=prediction.instrument,
            prediction=prediction,
            timestamp=entry.timestamp.isoformat(),
        )

    def get_history(self, instrument: str, limit: Optional[int] = None) -> List[HistoryEntry]:
        """Produced predictions for ``instrument``, newest first."""
        return self.history.get(instrument, limit)

    def find_prediction_for_outcome(self, instrument: str, at: Any) -> Optional[Prediction]:
        """Most recent prediction for ``instrument`` produced at or before ``at``."""
        moment = parse_timestamp(at)
        if moment is None:
            raise ValueError(f"Unparseable timestamp: {at!r}")
        return self.history.find_for_outcome(instrument, moment)

    def adjust_role_priors(self, performance: Mapping[str, float]) -> Dict[str, float]:
        """Re-derive role priors from per-role performance."""
        priors = self.role_priors.adjust_from_performance(performance)
        self.notifications.publish(NotificationType.ROLE_PRIORS_UPDATED, priors=dict(priors))
        return priors

    def clear_cache(self) -> None:
        self.cache.clear()

    def reset(self) -> None:
        """Drop cached predictions and history."""
        self.cache.clear()
        self.history.clear()
        self.log_info("Prediction cache and history cleared")

    def get_stats(self) -> Dict[str, Any]:
        return {
            "cache": self.cache.get_stats(),
            "history_size": len(self.history),
            "instruments": self.history.instruments(),
            "model_roles": list(self.config.model_roles),
            "quorum": self.config.quorum,
        }
