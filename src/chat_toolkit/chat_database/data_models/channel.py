"""
Channel data model and storage interface.

Channels are never physically deleted; deactivation flips 'read_only'.
'members' is the channel side of the denormalized membership index and is
kept in step with 'User.channels' and the per-member documents by
'MembershipManager' (best effort, see 'MembershipManager.reconcile_channel').

Concrete implementation: 'InMemoryChannelDatabase'.
"""

from abc import ABC, abstractmethod
from enum import StrEnum

from pydantic import BaseModel, Field


class ChannelType(StrEnum):
    DIRECT = "direct"
    GROUP = "group"


class Channel(BaseModel):
    id: str
    name: str
    type: ChannelType = ChannelType.GROUP
    private: bool = False
    read_only: bool = False
    members: list[str] = Field(default_factory=list)
    created_on: int | None = None
    last_modified: int | None = None
    last_message_id: str | None = None


class ChannelUpdate(BaseModel):
    """Partial update applied atomically to one channel document. 'None' fields are left untouched."""

    name: str | None = None
    read_only: bool | None = None
    last_modified: int | None = None
    last_message_id: str | None = None


class ChannelDatabase(ABC):
    """Abstract repository for 'Channel' records."""

    @abstractmethod
    async def create_channel(self, channel: Channel) -> Channel:
        pass

    @abstractmethod
    async def get_channel_by_id(self, channel_id: str) -> Channel | None:
        pass

    @abstractmethod
    async def update_channel(self, channel_id: str, update: ChannelUpdate) -> bool:
        """Apply 'update'. Updating an absent channel is a no-op that returns False."""
        pass

    @abstractmethod
    async def add_member_ref(self, channel_id: str, user_id: str) -> bool:
        pass

    @abstractmethod
    async def remove_member_ref(self, channel_id: str, user_id: str) -> bool:
        pass
