import pytest

from chat_toolkit.chat_database.controller import ChatController
from chat_toolkit.chat_database.in_memory import (
    InMemoryChannelDatabase,
    InMemoryMemberDatabase,
    InMemoryMessageDatabase,
    InMemoryUserDatabase,
)
from chat_toolkit.notifications.base import DeliveryReport, Notification, NotificationSender, TokenResult
from chat_toolkit.notifications.fanout import InlineFanOutScheduler


class StepClock:
    """Deterministic clock: every call advances time by 'step' milliseconds."""

    def __init__(self, start: int = 1_000, step: int = 10):
        self.now = start
        self.step = step

    def __call__(self) -> int:
        self.now += self.step
        return self.now


class RecordingSender(NotificationSender):
    def __init__(self, failing_tokens: set[str] | None = None):
        self.sent: list[tuple[list[str], Notification]] = []
        self.failing_tokens = failing_tokens or set()

    async def send(self, tokens: list[str], notification: Notification) -> DeliveryReport:
        self.sent.append((list(tokens), notification))
        return DeliveryReport(
            results=[
                TokenResult(token=token, success=token not in self.failing_tokens, error=None)
                for token in tokens
            ]
        )


@pytest.fixture
def clock():
    return StepClock()


@pytest.fixture
def user_db():
    return InMemoryUserDatabase()


@pytest.fixture
def channel_db():
    return InMemoryChannelDatabase()


@pytest.fixture
def member_db():
    return InMemoryMemberDatabase()


@pytest.fixture
def message_db(clock):
    return InMemoryMessageDatabase(clock=clock)


@pytest.fixture
def sender():
    return RecordingSender()


@pytest.fixture
def controller(channel_db, member_db, message_db, user_db, sender, clock):
    return ChatController(
        channel_db=channel_db,
        member_db=member_db,
        message_db=message_db,
        user_db=user_db,
        sender=sender,
        scheduler_factory=InlineFanOutScheduler,
        clock=clock,
    )
