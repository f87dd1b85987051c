"""
Device token registry and user profile edits.

A push token identifies one physical device and therefore belongs to at most
one user. Registering a token first removes it from every other user that
still holds it (e.g. after a logout / login with another account on the same
phone), then adds it to the caller.
"""

from collections.abc import Callable

from loguru import logger

from chat_toolkit.chat_database.data_models.user import User, UserDatabase
from chat_toolkit.utils.time import get_current_timestamp


class DeviceRegistry:
    def __init__(self, user_db: UserDatabase, clock: Callable[[], int] = get_current_timestamp):
        self.user_db = user_db
        self.clock = clock

    async def register_device(self, user_id: str, token: str, display_name: str = "") -> User:
        user = await self.user_db.get_user_by_id(user_id)
        if user is None:
            user = await self.user_db.create_user(User(id=user_id, display_name=display_name, created_on=self.clock()))

        for holder in await self.user_db.get_users_by_token(token):
            if holder.id != user_id:
                await self.user_db.remove_token(holder.id, token)
                logger.info(f"Moved device token from user {holder.id} to {user_id}")

        await self.user_db.add_token(user_id, token)
        if token in user.tokens:
            return user
        return user.model_copy(update={"tokens": [*user.tokens, token]})

    async def unregister_device(self, user_id: str, token: str) -> bool:
        return await self.user_db.remove_token(user_id, token)

    async def edit_user(self, user_id: str, display_name: str) -> User:
        """Rename 'user_id', creating the user document when it does not exist yet."""
        user = await self.user_db.get_user_by_id(user_id)
        if user is None:
            return await self.user_db.create_user(User(id=user_id, display_name=display_name, created_on=self.clock()))
        await self.user_db.update_display_name(user_id, display_name)
        return user.model_copy(update={"display_name": display_name})
