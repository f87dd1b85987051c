"""
Message data models and storage interface.

Top-level messages live directly under a channel. A message may own threads,
each a named sequence of 'ThreadMessage' records with the same shape. Only
top-level messages take part in unread counting.

'timestamp' is assigned by the store when the message is created and is
strictly increasing within a channel, so ordering by timestamp is total and the
exclusive read-cursor boundary is well defined.

Concrete implementation: 'InMemoryMessageDatabase'.
"""

from abc import ABC, abstractmethod
from enum import StrEnum

from pydantic import BaseModel, Field


class MessageType(StrEnum):
    TEXT = "text"
    IMAGE = "image"
    VIDEO = "video"


class Attachment(BaseModel):
    url: str
    mime_type: str = ""
    name: str | None = None


class Message(BaseModel):
    """A single top-level message in a channel. 'user_id' is the author."""

    id: str
    channel_id: str
    content: str
    type: MessageType = MessageType.TEXT
    user_id: str
    timestamp: int | None = None
    attachments: list[Attachment] = Field(default_factory=list)
    mentions: list[str] = Field(default_factory=list)


class Thread(BaseModel):
    id: str
    channel_id: str
    message_id: str


class ThreadMessage(Message):
    thread_id: str
    parent_message_id: str


class MessageDatabase(ABC):
    """Abstract repository for 'Message', 'Thread' and 'ThreadMessage' records."""

    @abstractmethod
    async def create_message(self, message: Message) -> Message:
        """Persist 'message' and return it with the server-assigned 'timestamp'."""
        pass

    @abstractmethod
    async def get_message_by_id(self, channel_id: str, message_id: str) -> Message | None:
        pass

    @abstractmethod
    async def delete_message(self, channel_id: str, message_id: str) -> bool:
        pass

    @abstractmethod
    async def get_latest_message(self, channel_id: str) -> Message | None:
        """Return the message with the greatest timestamp, or None for an empty channel."""
        pass

    @abstractmethod
    async def count_messages_after(self, channel_id: str, timestamp: int | None) -> int:
        """Count messages with a timestamp strictly greater than 'timestamp' (all of them for None)."""
        pass

    @abstractmethod
    async def set_thread(self, thread: Thread) -> Thread:
        """Create the thread identity document. Repeating the call is safe."""
        pass

    @abstractmethod
    async def create_thread_message(self, message: ThreadMessage) -> ThreadMessage:
        pass

    @abstractmethod
    async def get_thread_messages(self, channel_id: str, message_id: str, thread_id: str) -> list[ThreadMessage]:
        pass
