from chat_toolkit.notifications.base import DeliveryReport, Notification, NotificationSender, TokenResult
from chat_toolkit.notifications.fanout import (
    FanOutJob,
    FanOutQueue,
    FanOutReport,
    FanOutScheduler,
    InlineFanOutScheduler,
    NotificationFanOut,
)

__all__ = [
    "DeliveryReport",
    "FanOutJob",
    "FanOutQueue",
    "FanOutReport",
    "FanOutScheduler",
    "InlineFanOutScheduler",
    "Notification",
    "NotificationFanOut",
    "NotificationSender",
    "TokenResult",
]
