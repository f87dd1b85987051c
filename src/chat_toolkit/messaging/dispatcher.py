"""
Message dispatch.

Sending a message is a fixed sequence:

    1. persist the message (the store stamps the server timestamp),
    2. stamp 'last_modified' / 'last_message_id' on the channel,
    3. advance the author's own read cursor past the new message,
    4. hand a 'FanOutJob' to the scheduler without waiting for delivery.

Steps 1-3 raise on failure; the controller decides how that reaches the
caller. Step 4 is isolated: whatever happens during fan-out, the send has
already succeeded.
"""

from loguru import logger

from chat_toolkit.chat_database.data_models.channel import Channel, ChannelDatabase, ChannelUpdate
from chat_toolkit.chat_database.data_models.message import (
    Attachment,
    Message,
    MessageDatabase,
    MessageType,
    Thread,
    ThreadMessage,
)
from chat_toolkit.errors import ChannelNotFoundError, ChannelReadOnlyError
from chat_toolkit.notifications.fanout import FanOutJob, FanOutScheduler
from chat_toolkit.read_state.engine import ReadStateEngine
from chat_toolkit.utils.database import generate_uid


class MessageDispatcher:
    def __init__(
        self,
        channel_db: ChannelDatabase,
        message_db: MessageDatabase,
        read_state: ReadStateEngine,
        scheduler: FanOutScheduler,
    ):
        self.channel_db = channel_db
        self.message_db = message_db
        self.read_state = read_state
        self.scheduler = scheduler

    async def _writable_channel(self, channel_id: str) -> Channel:
        channel = await self.channel_db.get_channel_by_id(channel_id)
        if channel is None:
            raise ChannelNotFoundError(channel_id)
        if channel.read_only:
            raise ChannelReadOnlyError(channel_id)
        return channel

    async def send_message(
        self,
        channel_id: str,
        content: str,
        type: MessageType,
        author_id: str,
        message_id: str | None = None,
        attachments: list[Attachment] | None = None,
        mentions: list[str] | None = None,
    ) -> Message:
        await self._writable_channel(channel_id)
        message = await self.message_db.create_message(
            Message(
                id=message_id or generate_uid(),
                channel_id=channel_id,
                content=content,
                type=type,
                user_id=author_id,
                attachments=attachments or [],
                mentions=mentions or [],
            )
        )
        await self._touch_channel(channel_id, message)
        await self.read_state.mark_read_up_to(channel_id, author_id, message.id)
        await self._schedule_fan_out(channel_id, author_id, content, message.id)
        return message

    async def send_thread_message(
        self,
        channel_id: str,
        message_id: str,
        thread_id: str,
        content: str,
        type: MessageType,
        author_id: str,
    ) -> ThreadMessage:
        await self._writable_channel(channel_id)
        await self.message_db.set_thread(Thread(id=thread_id, channel_id=channel_id, message_id=message_id))
        message = await self.message_db.create_thread_message(
            ThreadMessage(
                id=generate_uid(),
                channel_id=channel_id,
                thread_id=thread_id,
                parent_message_id=message_id,
                content=content,
                type=type,
                user_id=author_id,
            )
        )
        await self._touch_channel(channel_id, message)
        # replying implies the author has read the parent, not newer top-level messages
        await self.read_state.mark_read_up_to(channel_id, author_id, message_id)
        await self._schedule_fan_out(channel_id, author_id, content, message.id)
        return message

    async def delete_message(self, channel_id: str, message_id: str) -> bool:
        # thread sub-documents are left in place
        deleted = await self.message_db.delete_message(channel_id, message_id)
        if deleted:
            logger.info(f"Deleted message {message_id} from channel {channel_id}")
        return deleted

    async def _touch_channel(self, channel_id: str, message: Message) -> None:
        await self.channel_db.update_channel(
            channel_id, ChannelUpdate(last_modified=message.timestamp, last_message_id=message.id)
        )

    async def _schedule_fan_out(self, channel_id: str, author_id: str, content: str, message_id: str) -> None:
        try:
            accepted = await self.scheduler.submit(
                FanOutJob(channel_id=channel_id, sender_id=author_id, content=content, message_id=message_id)
            )
        except Exception:
            logger.exception(f"Could not schedule fan-out for message {message_id}")
            return
        if not accepted:
            logger.warning(f"Fan-out for message {message_id} was not scheduled")
