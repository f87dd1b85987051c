"""
Channel and membership management.

Membership is stored three times: the per-user 'Member' document under the
channel, the channel id in 'User.channels' and the user id in
'Channel.members'. The store offers no transaction spanning those documents,
so every add / remove is a sequence of independent, idempotent writes. A
failing step is logged and reported in 'MembershipChange.failed_steps'
instead of aborting the remaining steps; re-running the same operation, or
'reconcile_channel', repairs what was left behind. When every step fails
nothing was written and 'MembershipWriteError' is raised instead.

New members start with their cursor on the latest message already in the
channel, so joining never produces a backlog of unread messages.
"""

from collections.abc import Awaitable, Callable

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from chat_toolkit.chat_database.data_models.channel import Channel, ChannelDatabase, ChannelType, ChannelUpdate
from chat_toolkit.chat_database.data_models.member import Member, MemberDatabase
from chat_toolkit.chat_database.data_models.user import User, UserDatabase
from chat_toolkit.errors import ChannelNotFoundError, MembershipWriteError
from chat_toolkit.read_state.engine import ReadStateEngine
from chat_toolkit.utils.database import generate_uid
from chat_toolkit.utils.time import get_current_timestamp


class MemberInput(BaseModel):
    """A user to add to a channel, as sent by clients ('{uid, displayName, type}')."""

    model_config = ConfigDict(populate_by_name=True)

    uid: str
    display_name: str = Field(default="", alias="displayName")
    type: str = "user"


class MembershipChange(BaseModel):
    channel_id: str
    user_id: str
    failed_steps: list[str] = Field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.failed_steps


class ReconcileReport(BaseModel):
    channel_id: str
    added_member_refs: list[str] = Field(default_factory=list)
    removed_member_refs: list[str] = Field(default_factory=list)
    added_user_channels: list[str] = Field(default_factory=list)
    removed_user_channels: list[str] = Field(default_factory=list)


class MembershipManager:
    def __init__(
        self,
        channel_db: ChannelDatabase,
        member_db: MemberDatabase,
        user_db: UserDatabase,
        read_state: ReadStateEngine,
        clock: Callable[[], int] = get_current_timestamp,
    ):
        self.channel_db = channel_db
        self.member_db = member_db
        self.user_db = user_db
        self.read_state = read_state
        self.clock = clock

    async def create_channel(
        self,
        name: str,
        type: ChannelType = ChannelType.GROUP,
        private: bool = False,
        initial_members: list[MemberInput] | None = None,
        channel_id: str | None = None,
    ) -> tuple[Channel, list[MembershipChange]]:
        now = self.clock()
        channel = await self.channel_db.create_channel(
            Channel(
                id=channel_id or generate_uid(),
                name=name,
                type=type,
                private=private,
                read_only=False,
                created_on=now,
                last_modified=now,
            )
        )
        logger.info(f"Created {type} channel {channel.id} ({name!r})")
        changes = await self.add_members(channel.id, initial_members or [])
        return channel, changes

    async def ensure_channel(
        self,
        channel_id: str,
        name: str,
        type: ChannelType = ChannelType.GROUP,
        private: bool = False,
    ) -> Channel:
        """Return the channel with 'channel_id', creating it on first use."""
        channel = await self.channel_db.get_channel_by_id(channel_id)
        if channel is not None:
            return channel
        channel, _ = await self.create_channel(name, type, private, channel_id=channel_id)
        return channel

    async def rename_channel(self, channel_id: str, name: str) -> bool:
        return await self.channel_db.update_channel(channel_id, ChannelUpdate(name=name))

    async def deactivate_channel(self, channel_id: str) -> bool:
        return await self.channel_db.update_channel(channel_id, ChannelUpdate(read_only=True))

    async def add_members(self, channel_id: str, users: list[MemberInput]) -> list[MembershipChange]:
        return [await self.add_member(channel_id, user) for user in users]

    async def add_member(self, channel_id: str, user: MemberInput) -> MembershipChange:
        if await self.channel_db.get_channel_by_id(channel_id) is None:
            raise ChannelNotFoundError(channel_id)

        change = MembershipChange(channel_id=channel_id, user_id=user.uid)
        await self._run_steps(
            change,
            [
                ("upsert_user", lambda: self._upsert_user(user)),
                ("user_channels", lambda: self.user_db.add_channel(user.uid, channel_id)),
                ("channel_members", lambda: self.channel_db.add_member_ref(channel_id, user.uid)),
                ("member_document", lambda: self._create_member(channel_id, user)),
            ],
        )

        if change.complete:
            logger.info(f"Added {user.uid} to channel {channel_id}")
        return change

    async def remove_member(self, channel_id: str, user_id: str) -> MembershipChange:
        change = MembershipChange(channel_id=channel_id, user_id=user_id)
        await self._run_steps(
            change,
            [
                ("member_document", lambda: self.member_db.delete_member(channel_id, user_id)),
                ("channel_members", lambda: self.channel_db.remove_member_ref(channel_id, user_id)),
                ("user_channels", lambda: self.user_db.remove_channel(user_id, channel_id)),
            ],
        )

        if change.complete:
            logger.info(f"Removed {user_id} from channel {channel_id}")
        return change

    async def reconcile_channel(self, channel_id: str) -> ReconcileReport:
        """Bring 'Channel.members' and 'User.channels' in line with the member documents."""
        channel = await self.channel_db.get_channel_by_id(channel_id)
        if channel is None:
            raise ChannelNotFoundError(channel_id)

        report = ReconcileReport(channel_id=channel_id)
        member_ids = {member.user_id for member in await self.member_db.get_members_by_channel_id(channel_id)}
        listed_ids = set(channel.members)

        for user_id in sorted(member_ids - listed_ids):
            await self.channel_db.add_member_ref(channel_id, user_id)
            report.added_member_refs.append(user_id)

        for user_id in sorted(listed_ids - member_ids):
            await self.channel_db.remove_member_ref(channel_id, user_id)
            report.removed_member_refs.append(user_id)
            user = await self.user_db.get_user_by_id(user_id)
            if user is not None and channel_id in user.channels:
                await self.user_db.remove_channel(user_id, channel_id)
                report.removed_user_channels.append(user_id)

        for user_id in sorted(member_ids):
            user = await self.user_db.get_user_by_id(user_id)
            if user is not None and channel_id not in user.channels:
                await self.user_db.add_channel(user_id, channel_id)
                report.added_user_channels.append(user_id)

        if any(report.model_dump(exclude={"channel_id"}).values()):
            logger.warning(f"Reconciled drifted membership of channel {channel_id}: {report.model_dump()}")
        return report

    async def _upsert_user(self, user: MemberInput) -> bool:
        if await self.user_db.get_user_by_id(user.uid) is not None:
            return True
        await self.user_db.create_user(
            User(id=user.uid, display_name=user.display_name, type="user", created_on=self.clock())
        )
        return True

    async def _create_member(self, channel_id: str, user: MemberInput) -> bool:
        await self.member_db.set_member(
            Member(
                channel_id=channel_id,
                user_id=user.uid,
                last_seen=await self.read_state.initial_cursor(channel_id),
                active=True,
                type=user.type,
            )
        )
        return True

    async def _run_steps(
        self, change: MembershipChange, steps: list[tuple[str, Callable[[], Awaitable[bool]]]]
    ) -> None:
        for name, action in steps:
            await self._step(change, name, action)
        if len(change.failed_steps) == len(steps):
            raise MembershipWriteError(
                f"No membership record of {change.user_id} in channel {change.channel_id} could be written"
            )

    @staticmethod
    async def _step(change: MembershipChange, name: str, action: Callable[[], Awaitable[bool]]) -> None:
        try:
            done = await action()
        except Exception:
            logger.exception(f"Membership step {name!r} failed for {change.user_id} in channel {change.channel_id}")
            change.failed_steps.append(name)
            return
        if not done:
            logger.debug(f"Membership step {name!r} for {change.user_id} in {change.channel_id} was a no-op")
