"""
Chat toolkit controller (Facade).

'ChatController' is the single entry point for all application logic. Every
public coroutine corresponds to one remote procedure of the chat backend
('createChannel', 'sendMessage', 'setAllMessagesAsRead', ...). Each call:

    1. checks the verified caller identity and raises 'UnauthenticatedError'
       before any business logic runs when it is missing,
    2. delegates to the engine that owns the behaviour ('MembershipManager',
       'MessageDispatcher', 'ReadStateEngine', 'NotificationFanOut',
       'DeviceRegistry'),
    3. converts the outcome into an 'OperationResult'. Caught exceptions are
       logged and become tagged failures, or empty successes when the
       controller runs with 'ErrorPolicy.SWALLOW'.

The '*Input' models accept the camelCase field names used by mobile clients
('chatId', 'displayName', ...) as well as their snake_case equivalents.
"""

from collections.abc import Awaitable, Callable
from typing import Any

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from chat_toolkit.chat_database.data_models.channel import Channel, ChannelDatabase, ChannelType
from chat_toolkit.chat_database.data_models.member import MemberDatabase
from chat_toolkit.chat_database.data_models.message import Attachment, MessageDatabase, MessageType
from chat_toolkit.chat_database.data_models.user import User, UserDatabase
from chat_toolkit.devices.registry import DeviceRegistry
from chat_toolkit.errors import UPSTREAM_FAILURE, ChatToolkitError, DeliveryError, UnauthenticatedError
from chat_toolkit.membership.manager import MemberInput, MembershipChange, MembershipManager
from chat_toolkit.messaging.dispatcher import MessageDispatcher
from chat_toolkit.notifications.base import NotificationSender
from chat_toolkit.notifications.fanout import FanOutQueue, FanOutScheduler, NotificationFanOut
from chat_toolkit.read_state.engine import ReadStateEngine
from chat_toolkit.results import ErrorPolicy, OperationResult
from chat_toolkit.utils.time import get_current_timestamp


class RpcInput(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class CreateChannelInput(RpcInput):
    name: str
    type: ChannelType = ChannelType.GROUP
    private: bool = False
    users: list[MemberInput] | None = None


class ChannelRefInput(RpcInput):
    chat_id: str = Field(alias="chatId")


class RenameChannelInput(ChannelRefInput):
    name: str


class AddMemberInput(ChannelRefInput):
    user: MemberInput


class AddMembersInput(ChannelRefInput):
    users: list[MemberInput]


class RemoveMemberInput(ChannelRefInput):
    user_id: str = Field(alias="userId")


class MessageRefInput(ChannelRefInput):
    message_id: str = Field(alias="messageId")


class SendMessageInput(ChannelRefInput):
    content: str
    type: MessageType = MessageType.TEXT
    message_id: str | None = Field(default=None, alias="messageId")
    attachments: list[Attachment] | None = None
    mentions: list[str] | None = None


class SendThreadMessageInput(MessageRefInput):
    thread_id: str = Field(alias="threadId")
    content: str
    type: MessageType = MessageType.TEXT


class DeviceTokenInput(RpcInput):
    token: str


class RegisterDeviceInput(DeviceTokenInput):
    display_name: str = Field(default="", alias="displayName")


class EditUserInput(RpcInput):
    uuid: str
    display_name: str = Field(alias="displayName")


class UserNotificationInput(RpcInput):
    to_user: str = Field(alias="toUser")
    title: str
    content: str = ""
    tag: str | None = None
    data: dict[str, str] | None = None


def membership_warnings(changes: list[MembershipChange]) -> list[str]:
    return [
        f"membership of {change.user_id} in {change.channel_id}: step {step} failed"
        for change in changes
        for step in change.failed_steps
    ]


class ChatController:
    def __init__(
        self,
        channel_db: ChannelDatabase,
        member_db: MemberDatabase,
        message_db: MessageDatabase,
        user_db: UserDatabase,
        sender: NotificationSender,
        scheduler_factory: Callable[[NotificationFanOut], FanOutScheduler] = FanOutQueue,
        error_policy: ErrorPolicy = ErrorPolicy.REPORT,
        clock: Callable[[], int] = get_current_timestamp,
    ):
        self.channel_db = channel_db
        self.member_db = member_db
        self.message_db = message_db
        self.user_db = user_db
        self.error_policy = error_policy

        self.read_state = ReadStateEngine(user_db, member_db, message_db, clock=clock)
        self.fan_out = NotificationFanOut(channel_db, member_db, user_db, self.read_state, sender)
        self.scheduler = scheduler_factory(self.fan_out)
        self.membership = MembershipManager(channel_db, member_db, user_db, self.read_state, clock=clock)
        self.dispatcher = MessageDispatcher(channel_db, message_db, self.read_state, self.scheduler)
        self.devices = DeviceRegistry(user_db, clock=clock)

    async def _run(
        self,
        operation: str,
        caller_id: str | None,
        action: Callable[[str], Awaitable[OperationResult[Any]]],
    ) -> OperationResult[Any]:
        if not caller_id:
            logger.warning(f"Rejected unauthenticated call to {operation}")
            raise UnauthenticatedError()
        try:
            result = await action(caller_id)
        except ChatToolkitError as exc:
            logger.exception(f"{operation} failed for {caller_id}: {exc}")
            result = OperationResult.failure(exc.code, str(exc))
        except Exception as exc:
            logger.exception(f"{operation} failed for {caller_id}")
            result = OperationResult.failure(UPSTREAM_FAILURE, str(exc) or type(exc).__name__)
        return result.apply_policy(self.error_policy)

    async def create_channel(self, caller_id: str | None, request: CreateChannelInput) -> OperationResult[str]:
        async def action(_: str) -> OperationResult[str]:
            channel, changes = await self.membership.create_channel(
                request.name, request.type, request.private, request.users
            )
            return OperationResult.success(channel.id, membership_warnings(changes))

        return await self._run("createChannel", caller_id, action)

    async def rename_channel(self, caller_id: str | None, request: RenameChannelInput) -> OperationResult[None]:
        async def action(_: str) -> OperationResult[None]:
            await self.membership.rename_channel(request.chat_id, request.name)
            return OperationResult.success()

        return await self._run("renameChannel", caller_id, action)

    async def deactivate_channel(self, caller_id: str | None, request: ChannelRefInput) -> OperationResult[None]:
        async def action(_: str) -> OperationResult[None]:
            await self.membership.deactivate_channel(request.chat_id)
            return OperationResult.success()

        return await self._run("deactivateChannel", caller_id, action)

    async def add_member(self, caller_id: str | None, request: AddMemberInput) -> OperationResult[None]:
        async def action(_: str) -> OperationResult[None]:
            change = await self.membership.add_member(request.chat_id, request.user)
            return OperationResult.success(None, membership_warnings([change]))

        return await self._run("addMember", caller_id, action)

    async def add_members(self, caller_id: str | None, request: AddMembersInput) -> OperationResult[None]:
        async def action(_: str) -> OperationResult[None]:
            changes = await self.membership.add_members(request.chat_id, request.users)
            return OperationResult.success(None, membership_warnings(changes))

        return await self._run("addMembers", caller_id, action)

    async def remove_member(self, caller_id: str | None, request: RemoveMemberInput) -> OperationResult[None]:
        async def action(_: str) -> OperationResult[None]:
            change = await self.membership.remove_member(request.chat_id, request.user_id)
            return OperationResult.success(None, membership_warnings([change]))

        return await self._run("removeMember", caller_id, action)

    async def register_device(self, caller_id: str | None, request: RegisterDeviceInput) -> OperationResult[User]:
        async def action(uid: str) -> OperationResult[User]:
            return OperationResult.success(await self.devices.register_device(uid, request.token, request.display_name))

        return await self._run("registerDevice", caller_id, action)

    async def edit_user(self, caller_id: str | None, request: EditUserInput) -> OperationResult[None]:
        async def action(_: str) -> OperationResult[None]:
            await self.devices.edit_user(request.uuid, request.display_name)
            return OperationResult.success()

        return await self._run("editUser", caller_id, action)

    async def unregister_device(self, caller_id: str | None, request: DeviceTokenInput) -> OperationResult[None]:
        async def action(uid: str) -> OperationResult[None]:
            await self.devices.unregister_device(uid, request.token)
            return OperationResult.success()

        return await self._run("unregisterDevice", caller_id, action)

    async def send_message(self, caller_id: str | None, request: SendMessageInput) -> OperationResult[str]:
        async def action(uid: str) -> OperationResult[str]:
            message = await self.dispatcher.send_message(
                request.chat_id,
                request.content,
                request.type,
                uid,
                message_id=request.message_id,
                attachments=request.attachments,
                mentions=request.mentions,
            )
            return OperationResult.success(message.id)

        return await self._run("sendMessage", caller_id, action)

    async def send_thread_message(
        self, caller_id: str | None, request: SendThreadMessageInput
    ) -> OperationResult[str]:
        async def action(uid: str) -> OperationResult[str]:
            message = await self.dispatcher.send_thread_message(
                request.chat_id, request.message_id, request.thread_id, request.content, request.type, uid
            )
            return OperationResult.success(message.id)

        return await self._run("sendThreadMessage", caller_id, action)

    async def delete_message(self, caller_id: str | None, request: MessageRefInput) -> OperationResult[None]:
        async def action(_: str) -> OperationResult[None]:
            await self.dispatcher.delete_message(request.chat_id, request.message_id)
            return OperationResult.success()

        return await self._run("deleteMessage", caller_id, action)

    async def set_all_messages_as_read(self, caller_id: str | None, request: ChannelRefInput) -> OperationResult[None]:
        async def action(uid: str) -> OperationResult[None]:
            await self.read_state.mark_read(request.chat_id, uid)
            return OperationResult.success()

        return await self._run("setAllMessagesAsRead", caller_id, action)

    async def mark_read_message_for_member(
        self, caller_id: str | None, request: MessageRefInput
    ) -> OperationResult[None]:
        async def action(uid: str) -> OperationResult[None]:
            await self.read_state.mark_read_up_to(request.chat_id, uid, request.message_id)
            return OperationResult.success()

        return await self._run("markReadMessageForMember", caller_id, action)

    async def set_typing(self, caller_id: str | None, request: ChannelRefInput) -> OperationResult[None]:
        async def action(uid: str) -> OperationResult[None]:
            await self.read_state.set_typing(request.chat_id, uid)
            return OperationResult.success()

        return await self._run("setTyping", caller_id, action)

    async def send_notification_to_user(
        self, caller_id: str | None, request: UserNotificationInput
    ) -> OperationResult[None]:
        async def action(_: str) -> OperationResult[None]:
            delivery = await self.fan_out.send_to_user(
                to_user=request.to_user,
                title=request.title,
                content=request.content,
                tag=request.tag,
                data=request.data,
            )
            warnings = []
            if delivery is not None and delivery.results and not delivery.sent:
                raise DeliveryError(f"No device of {request.to_user} accepted the push")
            if delivery is not None and delivery.failed:
                warnings.append(f"{delivery.failed} of {len(delivery.results)} devices rejected the push")
            return OperationResult.success(None, warnings)

        return await self._run("sendNotificationToUser", caller_id, action)

    async def get_badge_count(self, caller_id: str | None) -> OperationResult[int]:
        async def action(uid: str) -> OperationResult[int]:
            breakdown = await self.read_state.badge_breakdown(uid)
            warnings = [f"channel {channel_id} skipped" for channel_id in breakdown.skipped_channels]
            return OperationResult.success(breakdown.total, warnings)

        return await self._run("getBadgeCount", caller_id, action)

    async def ensure_default_channel(self, name: str) -> Channel:
        """Create the well-known channel 'name' (id == name) if it does not exist yet."""
        return await self.membership.ensure_channel(name, name)

    async def close(self) -> None:
        await self.scheduler.close()
