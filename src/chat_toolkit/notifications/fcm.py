"""
Firebase Cloud Messaging sender.

Posts one message per device token to the FCM HTTP v1 endpoint. The same
payload is rendered for every platform block FCM supports: the generic
'notification', 'android' (collapse key, tag, channel id), 'apns' (badge and
thread id, so iOS groups by conversation) and 'webpush'.

Obtaining the OAuth2 access token is left to the deployment; the sender only
needs the bearer token and the Firebase project id.
"""

from typing import Any

import aiohttp
from loguru import logger

from chat_toolkit.notifications.base import DeliveryReport, Notification, NotificationSender, TokenResult

FCM_URL = "https://fcm.googleapis.com/v1/projects/{project_id}/messages:send"


def build_fcm_message(token: str, notification: Notification) -> dict[str, Any]:
    """Render 'notification' as an FCM v1 request body addressed to 'token'."""
    alert = {"title": notification.title, "body": notification.body}
    android_notification: dict[str, Any] = {**alert}
    if notification.tag:
        android_notification["tag"] = notification.tag
    if notification.collapse_key:
        android_notification["channel_id"] = notification.collapse_key

    aps: dict[str, Any] = {"alert": alert, "badge": notification.badge}
    if notification.collapse_key:
        aps["thread-id"] = notification.collapse_key

    android: dict[str, Any] = {"notification": android_notification}
    if notification.collapse_key:
        android["collapse_key"] = notification.collapse_key

    return {
        "message": {
            "token": token,
            "notification": alert,
            "data": dict(notification.data),
            "android": android,
            "apns": {"payload": {"aps": aps}},
            "webpush": {"notification": alert, "data": dict(notification.data)},
        }
    }


class FCMNotificationSender(NotificationSender):
    """
    Push sender backed by the FCM HTTP v1 API.

    Attributes:
        project_id: Firebase project the messages are sent through.
        access_token: OAuth2 bearer token with the 'firebase.messaging' scope.
        timeout: Total timeout in seconds for each HTTP request.
        session: Optional shared 'aiohttp.ClientSession'. When omitted a
            short-lived session is opened for every 'send' call.
    """

    def __init__(
        self,
        project_id: str,
        access_token: str,
        timeout: float = 10.0,
        session: aiohttp.ClientSession | None = None,
    ):
        self.url = FCM_URL.format(project_id=project_id)
        self.access_token = access_token
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self.session = session

    async def send(self, tokens: list[str], notification: Notification) -> DeliveryReport:
        if not tokens:
            return DeliveryReport()
        if self.session is not None:
            return await self._send_all(self.session, tokens, notification)
        async with aiohttp.ClientSession(timeout=self.timeout) as session:
            return await self._send_all(session, tokens, notification)

    async def _send_all(
        self, session: aiohttp.ClientSession, tokens: list[str], notification: Notification
    ) -> DeliveryReport:
        report = DeliveryReport()
        for token in tokens:
            report.results.append(await self._send_one(session, token, notification))
        return report

    async def _send_one(self, session: aiohttp.ClientSession, token: str, notification: Notification) -> TokenResult:
        headers = {
            "Authorization": f"Bearer {self.access_token}",
            "Content-Type": "application/json",
        }
        try:
            async with session.post(
                self.url, headers=headers, json=build_fcm_message(token, notification), timeout=self.timeout
            ) as response:
                if response.status == 200:
                    body = await response.json()
                    return TokenResult(token=token, success=True, message_id=body.get("name"))
                text = await response.text()
                logger.warning(f"FCM push to {token[:12]}… failed: {response.status} {text[:200]}")
                return TokenResult(token=token, success=False, error=f"HTTP {response.status}")
        except (aiohttp.ClientError, TimeoutError, ValueError) as exc:
            logger.warning(f"FCM push to {token[:12]}… errored: {exc}")
            return TokenResult(token=token, success=False, error=str(exc))
