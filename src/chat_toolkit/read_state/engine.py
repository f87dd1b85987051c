"""
Read-state and badge-count engine.

The engine owns the per-member read cursor ('Member.last_seen') and everything
derived from it. The cursor is a server timestamp: a message is unread when
its timestamp is strictly greater than the cursor, so the message the cursor
points at is itself read. Cursors only ever move forward.

'badge_count' aggregates unread counts over every channel listed on the user
document. A failure while reading one channel is logged and that channel is
skipped; the partial total is still returned ('badge_breakdown' exposes which
channels were skipped).
"""

from collections.abc import Callable

from loguru import logger
from pydantic import BaseModel, Field

from chat_toolkit.chat_database.data_models.member import Member, MemberDatabase, MemberUpdate
from chat_toolkit.chat_database.data_models.message import MessageDatabase
from chat_toolkit.chat_database.data_models.user import UserDatabase
from chat_toolkit.utils.time import get_current_timestamp


class BadgeBreakdown(BaseModel):
    """Unread counts of one user, per channel, plus the channels that could not be read."""

    user_id: str
    per_channel: dict[str, int] = Field(default_factory=dict)
    skipped_channels: list[str] = Field(default_factory=list)

    @property
    def total(self) -> int:
        return sum(self.per_channel.values())


class ReadStateEngine:
    def __init__(
        self,
        user_db: UserDatabase,
        member_db: MemberDatabase,
        message_db: MessageDatabase,
        clock: Callable[[], int] = get_current_timestamp,
    ):
        self.clock = clock
        self.user_db = user_db
        self.member_db = member_db
        self.message_db = message_db

    async def mark_read(self, channel_id: str, user_id: str) -> Member | None:
        """Move the cursor to the newest message of the channel.

        Returns the member after the update, or None when the member does not exist.
        """
        member = await self.member_db.get_member(channel_id, user_id)
        if member is None:
            logger.debug(f"mark_read: no member {user_id} in channel {channel_id}, nothing to do")
            return None

        latest = await self.message_db.get_latest_message(channel_id)
        if latest is None or latest.timestamp is None:
            return member
        return await self._advance_cursor(member, latest.timestamp)

    async def mark_read_up_to(self, channel_id: str, user_id: str, message_id: str) -> Member | None:
        member = await self.member_db.get_member(channel_id, user_id)
        if member is None:
            logger.debug(f"mark_read_up_to: no member {user_id} in channel {channel_id}, nothing to do")
            return None

        message = await self.message_db.get_message_by_id(channel_id, message_id)
        if message is None or message.timestamp is None:
            logger.debug(f"mark_read_up_to: message {message_id} not found in channel {channel_id}")
            return member
        return await self._advance_cursor(member, message.timestamp)

    async def _advance_cursor(self, member: Member, timestamp: int) -> Member:
        if member.last_seen is not None and member.last_seen >= timestamp:
            return member
        updated = await self.member_db.update_member(
            member.channel_id, member.user_id, MemberUpdate(last_seen=timestamp)
        )
        if not updated:
            # member removed between the read and the write
            return member
        return member.model_copy(update={"last_seen": timestamp})

    async def initial_cursor(self, channel_id: str) -> int | None:
        """Cursor for a member joining now: everything already posted counts as read."""
        latest = await self.message_db.get_latest_message(channel_id)
        return latest.timestamp if latest else None

    async def unread_count(self, channel_id: str, user_id: str) -> int:
        member = await self.member_db.get_member(channel_id, user_id)
        cursor = member.last_seen if member else None
        return await self.message_db.count_messages_after(channel_id, cursor)

    async def badge_breakdown(self, user_id: str) -> BadgeBreakdown:
        breakdown = BadgeBreakdown(user_id=user_id)
        user = await self.user_db.get_user_by_id(user_id)
        if user is None:
            return breakdown

        for channel_id in user.channels:
            try:
                breakdown.per_channel[channel_id] = await self.unread_count(channel_id, user_id)
            except Exception:
                logger.exception(f"Skipping channel {channel_id} in badge count for user {user_id}")
                breakdown.skipped_channels.append(channel_id)
        return breakdown

    async def badge_count(self, user_id: str) -> int:
        return (await self.badge_breakdown(user_id)).total

    async def set_typing(self, channel_id: str, user_id: str) -> bool:
        return await self.member_db.update_member(
            channel_id, user_id, MemberUpdate(last_typing=self.clock())
        )
