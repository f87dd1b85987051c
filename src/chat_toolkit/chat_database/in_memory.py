"""
In-memory implementations of the storage interfaces.

These adapters mirror the semantics of a managed document store closely
enough for development and tests: updates to absent documents are silent
no-ops, array mutations have union / remove semantics, and message timestamps
are assigned by the store. Returned records are deep copies, so callers never
mutate stored state by accident.

Every mutation completes without awaiting in between, which makes each one
atomic with respect to other coroutines on the same event loop.
"""

from collections.abc import Callable

from chat_toolkit.chat_database.data_models.channel import Channel, ChannelDatabase, ChannelUpdate
from chat_toolkit.chat_database.data_models.member import Member, MemberDatabase, MemberUpdate
from chat_toolkit.chat_database.data_models.message import Message, MessageDatabase, Thread, ThreadMessage
from chat_toolkit.chat_database.data_models.user import User, UserDatabase
from chat_toolkit.utils.time import get_current_timestamp


def _union(values: list[str], value: str) -> None:
    if value not in values:
        values.append(value)


def _remove(values: list[str], value: str) -> None:
    while value in values:
        values.remove(value)


class InMemoryUserDatabase(UserDatabase):
    def __init__(self) -> None:
        self.users: dict[str, User] = {}

    async def create_user(self, user: User) -> User:
        self.users[user.id] = user.model_copy(deep=True)
        return user

    async def get_user_by_id(self, user_id: str) -> User | None:
        user = self.users.get(user_id)
        return user.model_copy(deep=True) if user else None

    async def update_display_name(self, user_id: str, display_name: str) -> bool:
        user = self.users.get(user_id)
        if user is None:
            return False
        user.display_name = display_name
        return True

    async def add_channel(self, user_id: str, channel_id: str) -> bool:
        user = self.users.get(user_id)
        if user is None:
            return False
        _union(user.channels, channel_id)
        return True

    async def remove_channel(self, user_id: str, channel_id: str) -> bool:
        user = self.users.get(user_id)
        if user is None:
            return False
        _remove(user.channels, channel_id)
        return True

    async def add_token(self, user_id: str, token: str) -> bool:
        user = self.users.get(user_id)
        if user is None:
            return False
        _union(user.tokens, token)
        return True

    async def remove_token(self, user_id: str, token: str) -> bool:
        user = self.users.get(user_id)
        if user is None:
            return False
        _remove(user.tokens, token)
        return True

    async def get_users_by_token(self, token: str) -> list[User]:
        return [user.model_copy(deep=True) for user in self.users.values() if token in user.tokens]


class InMemoryChannelDatabase(ChannelDatabase):
    def __init__(self) -> None:
        self.channels: dict[str, Channel] = {}

    async def create_channel(self, channel: Channel) -> Channel:
        self.channels[channel.id] = channel.model_copy(deep=True)
        return channel

    async def get_channel_by_id(self, channel_id: str) -> Channel | None:
        channel = self.channels.get(channel_id)
        return channel.model_copy(deep=True) if channel else None

    async def update_channel(self, channel_id: str, update: ChannelUpdate) -> bool:
        channel = self.channels.get(channel_id)
        if channel is None:
            return False
        for field, value in update.model_dump(exclude_none=True).items():
            setattr(channel, field, value)
        return True

    async def add_member_ref(self, channel_id: str, user_id: str) -> bool:
        channel = self.channels.get(channel_id)
        if channel is None:
            return False
        _union(channel.members, user_id)
        return True

    async def remove_member_ref(self, channel_id: str, user_id: str) -> bool:
        channel = self.channels.get(channel_id)
        if channel is None:
            return False
        _remove(channel.members, user_id)
        return True


class InMemoryMemberDatabase(MemberDatabase):
    def __init__(self) -> None:
        self.members: dict[tuple[str, str], Member] = {}

    async def set_member(self, member: Member) -> Member:
        self.members[(member.channel_id, member.user_id)] = member.model_copy(deep=True)
        return member

    async def get_member(self, channel_id: str, user_id: str) -> Member | None:
        member = self.members.get((channel_id, user_id))
        return member.model_copy(deep=True) if member else None

    async def update_member(self, channel_id: str, user_id: str, update: MemberUpdate) -> bool:
        member = self.members.get((channel_id, user_id))
        if member is None:
            return False
        for field, value in update.model_dump(exclude_none=True).items():
            setattr(member, field, value)
        return True

    async def delete_member(self, channel_id: str, user_id: str) -> bool:
        return self.members.pop((channel_id, user_id), None) is not None

    async def get_members_by_channel_id(self, channel_id: str) -> list[Member]:
        return [
            member.model_copy(deep=True)
            for (member_channel_id, _), member in self.members.items()
            if member_channel_id == channel_id
        ]


class InMemoryMessageDatabase(MessageDatabase):
    """
    Message store with server-assigned, strictly increasing timestamps per channel.

    Attributes:
        clock: Source of server time in epoch milliseconds. When two messages
            land in the same millisecond the later one is bumped by one, so no
            two messages of a channel ever share a timestamp.
    """

    def __init__(self, clock: Callable[[], int] = get_current_timestamp) -> None:
        self.clock = clock
        self.messages: dict[str, dict[str, Message]] = {}
        self.threads: dict[tuple[str, str, str], Thread] = {}
        self.thread_messages: dict[tuple[str, str, str], list[ThreadMessage]] = {}
        self._last_timestamp: dict[str, int] = {}

    def _next_timestamp(self, channel_id: str) -> int:
        timestamp = max(self.clock(), self._last_timestamp.get(channel_id, 0) + 1)
        self._last_timestamp[channel_id] = timestamp
        return timestamp

    async def create_message(self, message: Message) -> Message:
        stored = message.model_copy(update={"timestamp": self._next_timestamp(message.channel_id)}, deep=True)
        self.messages.setdefault(message.channel_id, {})[stored.id] = stored
        return stored.model_copy(deep=True)

    async def get_message_by_id(self, channel_id: str, message_id: str) -> Message | None:
        message = self.messages.get(channel_id, {}).get(message_id)
        return message.model_copy(deep=True) if message else None

    async def delete_message(self, channel_id: str, message_id: str) -> bool:
        return self.messages.get(channel_id, {}).pop(message_id, None) is not None

    async def get_latest_message(self, channel_id: str) -> Message | None:
        messages = self.messages.get(channel_id, {}).values()
        if not messages:
            return None
        latest = max(messages, key=lambda m: m.timestamp or 0)
        return latest.model_copy(deep=True)

    async def count_messages_after(self, channel_id: str, timestamp: int | None) -> int:
        messages = self.messages.get(channel_id, {}).values()
        if timestamp is None:
            return len(messages)
        return sum(1 for message in messages if (message.timestamp or 0) > timestamp)

    async def set_thread(self, thread: Thread) -> Thread:
        self.threads[(thread.channel_id, thread.message_id, thread.id)] = thread.model_copy(deep=True)
        return thread

    async def create_thread_message(self, message: ThreadMessage) -> ThreadMessage:
        stored = message.model_copy(update={"timestamp": self._next_timestamp(message.channel_id)}, deep=True)
        key = (message.channel_id, message.parent_message_id, message.thread_id)
        self.thread_messages.setdefault(key, []).append(stored)
        return stored.model_copy(deep=True)

    async def get_thread_messages(self, channel_id: str, message_id: str, thread_id: str) -> list[ThreadMessage]:
        return [m.model_copy(deep=True) for m in self.thread_messages.get((channel_id, message_id, thread_id), [])]
