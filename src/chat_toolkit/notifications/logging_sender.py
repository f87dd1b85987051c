from loguru import logger

from chat_toolkit.notifications.base import DeliveryReport, Notification, NotificationSender, TokenResult


class LoggingNotificationSender(NotificationSender):
    """Sender used when no push transport is configured: logs the payload and reports success."""

    async def send(self, tokens: list[str], notification: Notification) -> DeliveryReport:
        for token in tokens:
            logger.info(f"Push to {token[:12]}…: {notification.title!r} (badge={notification.badge})")
        return DeliveryReport(results=[TokenResult(token=token, success=True) for token in tokens])
