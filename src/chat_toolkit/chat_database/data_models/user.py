"""
User data model and storage interface.

A user document is the owner side of two denormalized arrays: 'channels' (the
channels the user belongs to) and 'tokens' (registered push device tokens).
Both arrays are mutated with union / remove semantics, so repeating a write is
a no-op and a retry after a partial failure is always safe.

Concrete implementation: 'InMemoryUserDatabase'.
"""

from abc import ABC, abstractmethod

from pydantic import BaseModel, Field


class User(BaseModel):
    """A chat user, keyed by the uid issued by the identity provider."""

    id: str
    display_name: str = ""
    type: str = "user"
    tokens: list[str] = Field(default_factory=list)
    channels: list[str] = Field(default_factory=list)
    created_on: int | None = None


class UserDatabase(ABC):
    """Abstract repository for 'User' records."""

    @abstractmethod
    async def create_user(self, user: User) -> User:
        """Persist 'user', overwriting any previous document with the same id."""
        pass

    @abstractmethod
    async def get_user_by_id(self, user_id: str) -> User | None:
        pass

    @abstractmethod
    async def update_display_name(self, user_id: str, display_name: str) -> bool:
        """Return False when the user does not exist (nothing is written)."""
        pass

    @abstractmethod
    async def add_channel(self, user_id: str, channel_id: str) -> bool:
        pass

    @abstractmethod
    async def remove_channel(self, user_id: str, channel_id: str) -> bool:
        pass

    @abstractmethod
    async def add_token(self, user_id: str, token: str) -> bool:
        pass

    @abstractmethod
    async def remove_token(self, user_id: str, token: str) -> bool:
        pass

    @abstractmethod
    async def get_users_by_token(self, token: str) -> list[User]:
        """Return every user whose 'tokens' array contains 'token'."""
        pass
