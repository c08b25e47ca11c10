"""Notification sink package."""

from moneyx.notifications.sink import (
    InMemoryNotificationSink,
    NotificationSinkInterface,
    StructlogNotificationSink,
    configure_logging,
)

__all__ = [
    "InMemoryNotificationSink",
    "NotificationSinkInterface",
    "StructlogNotificationSink",
    "configure_logging",
]
