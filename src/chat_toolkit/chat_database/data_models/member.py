"""
Member data model and storage interface.

A member document holds the per-user state of one channel. 'last_seen' is the
read cursor: the server timestamp (epoch ms) of the newest message the user
has read. Messages with a timestamp strictly greater than the cursor are
unread; 'None' means the user has never read the channel.

Concrete implementation: 'InMemoryMemberDatabase'.
"""

from abc import ABC, abstractmethod

from pydantic import BaseModel


class Member(BaseModel):
    channel_id: str
    user_id: str
    last_seen: int | None = None
    active: bool = True
    type: str = "user"
    last_typing: int | None = None


class MemberUpdate(BaseModel):
    last_seen: int | None = None
    active: bool | None = None
    last_typing: int | None = None


class MemberDatabase(ABC):
    """Abstract repository for 'Member' records, keyed by '(channel_id, user_id)'."""

    @abstractmethod
    async def set_member(self, member: Member) -> Member:
        """Create or fully overwrite the member document."""
        pass

    @abstractmethod
    async def get_member(self, channel_id: str, user_id: str) -> Member | None:
        pass

    @abstractmethod
    async def update_member(self, channel_id: str, user_id: str, update: MemberUpdate) -> bool:
        """Apply 'update' in one atomic write. Returns False (no-op) when the member is absent."""
        pass

    @abstractmethod
    async def delete_member(self, channel_id: str, user_id: str) -> bool:
        pass

    @abstractmethod
    async def get_members_by_channel_id(self, channel_id: str) -> list[Member]:
        pass
