"""Engine notifications."""

from .notifications import Notification, NotificationChannel, NotificationType

__all__ = ["Notification", "NotificationChannel", "NotificationType"]
