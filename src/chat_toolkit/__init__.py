"""
Chat backend toolkit: channels, memberships, messages and threads, read
cursors with badge counts, and push notification fan-out over pluggable
document-store and push-transport adapters.

    from chat_toolkit import ChatController, Settings, build_controller
"""

from chat_toolkit.app import build_controller
from chat_toolkit.chat_database.controller import ChatController
from chat_toolkit.config import Settings, get_settings
from chat_toolkit.results import ErrorPolicy, OperationResult, ResultStatus

__all__ = [
    "ChatController",
    "ErrorPolicy",
    "OperationResult",
    "ResultStatus",
    "Settings",
    "build_controller",
    "get_settings",
]
