"""
Application wiring.

'build_controller' assembles a 'ChatController' from 'Settings': the in-memory
stores, the push sender (FCM when credentials are configured, logging
otherwise) and a 'FanOutQueue' sized from the settings. Production
deployments swap in their own store adapters by constructing
'ChatController' directly; nothing else changes.
"""

from functools import partial

from fastapi import FastAPI
from loguru import logger

from chat_toolkit.api.auth.id_token import IdentityVerifier, IdTokenAuthProvider
from chat_toolkit.api.server import create_app
from chat_toolkit.chat_database.controller import ChatController
from chat_toolkit.chat_database.in_memory import (
    InMemoryChannelDatabase,
    InMemoryMemberDatabase,
    InMemoryMessageDatabase,
    InMemoryUserDatabase,
)
from chat_toolkit.config import Settings, get_settings
from chat_toolkit.notifications.base import NotificationSender
from chat_toolkit.notifications.fanout import FanOutQueue
from chat_toolkit.notifications.fcm import FCMNotificationSender
from chat_toolkit.notifications.logging_sender import LoggingNotificationSender
from chat_toolkit.utils.logging import configure_logging


def build_sender(settings: Settings) -> NotificationSender:
    if settings.fcm_project_id and settings.fcm_access_token:
        logger.info(f"Push backend: FCM (project {settings.fcm_project_id})")
        return FCMNotificationSender(
            project_id=settings.fcm_project_id,
            access_token=settings.fcm_access_token,
            timeout=settings.fcm_timeout,
        )
    logger.info("Push backend: logging only (FCM credentials not configured)")
    return LoggingNotificationSender()


def build_controller(settings: Settings) -> ChatController:
    return ChatController(
        channel_db=InMemoryChannelDatabase(),
        member_db=InMemoryMemberDatabase(),
        message_db=InMemoryMessageDatabase(),
        user_db=InMemoryUserDatabase(),
        sender=build_sender(settings),
        scheduler_factory=partial(
            FanOutQueue, workers=settings.fanout_workers, queue_size=settings.fanout_queue_size
        ),
        error_policy=settings.error_policy,
    )


def create_default_app(verifier: IdentityVerifier, settings: Settings | None = None) -> FastAPI:
    """Build the HTTP application from settings, authenticating callers with 'verifier'."""
    settings = settings or get_settings()
    configure_logging(settings.log_level)
    logger.info(f"Starting {settings.app_name} (error policy: {settings.error_policy})")
    return create_app(
        build_controller(settings),
        IdTokenAuthProvider(verifier),
        default_channel_name=settings.default_channel_name or None,
    )
