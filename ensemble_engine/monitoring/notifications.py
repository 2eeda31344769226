"""
Engine Notification Channel.

Typed observer channel owned by one engine instance. Delivery is
synchronous and in subscription order, so listeners see the notifications
of one emitter in the order they were published.
"""

import itertools
import logging
import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Deque, Dict, List, Optional, Tuple

from ..utils.logging import log_exception

logger = logging.getLogger(__name__)


class NotificationType(str, Enum):
    """Kinds of notifications emitted by the engine."""
    PREDICTION_PRODUCED = "prediction_produced"
    OUTCOME_PROCESSED = "outcome_processed"
    LEARNING_COMPLETE = "learning_complete"
    WEIGHTS_UPDATED = "weights_updated"
    ROLE_PRIORS_UPDATED = "role_priors_updated"


@dataclass(frozen=True)
class Notification:
    """Notification record."""
    type: NotificationType
    payload: Dict[str, Any]
    sequence: int
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "type": self.type.value,
            "payload": dict(self.payload),
            "sequence": self.sequence,
            "timestamp": self.timestamp.isoformat(),
        }


Listener = Callable[[Notification], None]


class NotificationChannel:
    """Publish/subscribe channel for engine notifications.

    Listener exceptions are logged and never reach the emitter.

    Example:
        ```python
        channel = NotificationChannel()
        unsubscribe = channel.subscribe(
            NotificationType.WEIGHTS_UPDATED,
            lambda n: print(n.payload["weights"]),
        )
        channel.publish(NotificationType.WEIGHTS_UPDATED, weights={"ES_lstm": 1.0})
        unsubscribe()
        ```
    """

    def __init__(self, history_size: int = 500):
        self._listeners: List[Tuple[int, Optional[NotificationType], Listener]] = []
        self._history: Deque[Notification] = deque(maxlen=history_size)
        self._sequence = itertools.count(1)
        self._ids = itertools.count(1)
        self._lock = threading.RLock()

    def subscribe(
        self,
        notification_type: Optional[NotificationType],
        listener: Listener,
    ) -> Callable[[], None]:
        """Register a listener.

        Args:
            notification_type: Type to listen to, or None for every type.
            listener: Called with each matching ``Notification``.

        Returns:
            Callable that removes the listener.
        """
        if notification_type is not None:
            notification_type = NotificationType(notification_type)

        with self._lock:
            listener_id = next(self._ids)
            self._listeners.append((listener_id, notification_type, listener))

        def unsubscribe() -> None:
            with self._lock:
                self._listeners = [entry for entry in self._listeners if entry[0] != listener_id]

        return unsubscribe

    def publish(self, notification_type: NotificationType, **payload) -> Notification:
        """Deliver a notification to every matching listener."""
        with self._lock:
            notification = Notification(
                type=NotificationType(notification_type),
                payload=payload,
                sequence=next(self._sequence),
            )
            self._history.append(notification)
            listeners = [
                listener for _, kind, listener in self._listeners
                if kind is None or kind == notification.type
            ]

        for listener in listeners:
            try:
                listener(notification)
            except Exception as e:
                log_exception(
                    logger,
                    "Notification listener error",
                    e,
                    include_trace=False,
                    notification_type=notification.type.value,
                )

        return notification

    def get_history(
        self,
        notification_type: Optional[NotificationType] = None,
        limit: Optional[int] = None,
    ) -> List[Notification]:
        """Published notifications, oldest first."""
        with self._lock:
            history = [
                n for n in self._history
                if notification_type is None or n.type == notification_type
            ]
        if limit is not None:
            history = history[-limit:]
        return history

    @property
    def listener_count(self) -> int:
        with self._lock:
            return len(self._listeners)

    def clear_history(self) -> None:
        with self._lock:
            self._history.clear()
