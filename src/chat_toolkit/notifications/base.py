"""
Push notification payload models and sender interface.

'NotificationSender' is the port to the push transport. It accepts the device
tokens of one user together with a backend-agnostic 'Notification' and tries
every token. A failing token is recorded in the returned 'DeliveryReport' and
never raises, so one stale device cannot stop delivery to the others.

Concrete implementations: 'FCMNotificationSender', 'LoggingNotificationSender'.
"""

from abc import ABC, abstractmethod

from pydantic import BaseModel, Field


class Notification(BaseModel):
    """
    A single push payload.

    'collapse_key' groups notifications of the same conversation on the device
    (Android collapse key / APNs thread id). 'tag' identifies the message that
    triggered the push. 'data' is passed through opaquely to the client app.
    """

    title: str
    body: str = ""
    badge: int = 0
    collapse_key: str | None = None
    tag: str | None = None
    data: dict[str, str] = Field(default_factory=dict)


class TokenResult(BaseModel):
    token: str
    success: bool
    message_id: str | None = None
    error: str | None = None


class DeliveryReport(BaseModel):
    results: list[TokenResult] = Field(default_factory=list)

    @property
    def sent(self) -> int:
        return sum(1 for result in self.results if result.success)

    @property
    def failed(self) -> int:
        return sum(1 for result in self.results if not result.success)


class NotificationSender(ABC):
    """Abstract push transport."""

    @abstractmethod
    async def send(self, tokens: list[str], notification: Notification) -> DeliveryReport:
        """Attempt delivery to every token and report the outcome per token."""
        pass
