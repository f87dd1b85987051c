import pytest

from chat_toolkit.chat_database.controller import (
    AddMemberInput,
    ChannelRefInput,
    ChatController,
    CreateChannelInput,
    EditUserInput,
    MessageRefInput,
    RegisterDeviceInput,
    RemoveMemberInput,
    RenameChannelInput,
    SendMessageInput,
    UserNotificationInput,
)
from chat_toolkit.chat_database.data_models.member import Member
from chat_toolkit.chat_database.in_memory import InMemoryMemberDatabase
from chat_toolkit.errors import UPSTREAM_FAILURE, UnauthenticatedError
from chat_toolkit.notifications.fanout import InlineFanOutScheduler
from chat_toolkit.results import ErrorPolicy, ResultStatus


async def general_with_alice_and_bob(controller: ChatController) -> str:
    created = await controller.create_channel("alice", CreateChannelInput(name="general"))
    chat_id = created.value
    await controller.add_member("alice", AddMemberInput(chatId=chat_id, user={"uid": "alice", "displayName": "Alice"}))
    await controller.add_member("alice", AddMemberInput(chatId=chat_id, user={"uid": "bob", "displayName": "Bob"}))
    await controller.register_device("alice", RegisterDeviceInput(token="alice-phone", displayName="Alice"))
    await controller.register_device("bob", RegisterDeviceInput(token="bob-phone", displayName="Bob"))
    return chat_id


@pytest.mark.asyncio
async def test_first_message_notifies_the_other_member(controller, sender, channel_db, member_db, message_db):
    chat_id = await general_with_alice_and_bob(controller)

    result = await controller.send_message("alice", SendMessageInput(chatId=chat_id, content="hi"))

    assert result.status == ResultStatus.SUCCESS
    message = await message_db.get_message_by_id(chat_id, result.value)
    assert message.content == "hi"
    channel = await channel_db.get_channel_by_id(chat_id)
    assert channel.last_modified == message.timestamp
    assert (await member_db.get_member(chat_id, "alice")).last_seen == message.timestamp

    assert len(sender.sent) == 1
    tokens, notification = sender.sent[0]
    assert tokens == ["bob-phone"]
    assert notification.badge == 1
    assert (await controller.get_badge_count("bob")).value == 1
    assert (await controller.get_badge_count("alice")).value == 0


@pytest.mark.asyncio
async def test_mark_read_then_new_messages(controller):
    chat_id = await general_with_alice_and_bob(controller)
    await controller.send_message("alice", SendMessageInput(chatId=chat_id, content="hi"))

    await controller.set_all_messages_as_read("bob", ChannelRefInput(chatId=chat_id))
    assert (await controller.get_badge_count("bob")).value == 0

    await controller.send_message("alice", SendMessageInput(chatId=chat_id, content="one"))
    await controller.send_message("alice", SendMessageInput(chatId=chat_id, content="two"))
    assert (await controller.get_badge_count("bob")).value == 2


@pytest.mark.asyncio
async def test_mark_read_message_for_member(controller):
    chat_id = await general_with_alice_and_bob(controller)
    first = await controller.send_message("alice", SendMessageInput(chatId=chat_id, content="one"))
    await controller.send_message("alice", SendMessageInput(chatId=chat_id, content="two"))

    await controller.mark_read_message_for_member("bob", MessageRefInput(chatId=chat_id, messageId=first.value))

    assert (await controller.get_badge_count("bob")).value == 1


@pytest.mark.asyncio
async def test_device_token_moves_between_users(controller, user_db):
    await controller.register_device("alice", RegisterDeviceInput(token="T1"))
    await controller.register_device("carol", RegisterDeviceInput(token="T1"))

    assert "T1" not in (await user_db.get_user_by_id("alice")).tokens
    assert "T1" in (await user_db.get_user_by_id("carol")).tokens


@pytest.mark.asyncio
@pytest.mark.parametrize("caller_id", [None, ""])
async def test_unauthenticated_calls_are_rejected(controller, channel_db, caller_id):
    with pytest.raises(UnauthenticatedError):
        await controller.create_channel(caller_id, CreateChannelInput(name="general"))
    with pytest.raises(UnauthenticatedError):
        await controller.get_badge_count(caller_id)
    assert channel_db.channels == {}


@pytest.mark.asyncio
async def test_domain_failure_is_reported(controller):
    result = await controller.send_message("alice", SendMessageInput(chatId="nope", content="hi"))

    assert result.status == ResultStatus.FAILURE
    assert result.error_code == "CHANNEL_NOT_FOUND"
    assert not result.ok


@pytest.mark.asyncio
async def test_read_only_channel_rejects_messages(controller):
    chat_id = await general_with_alice_and_bob(controller)
    await controller.deactivate_channel("alice", ChannelRefInput(chatId=chat_id))

    result = await controller.send_message("alice", SendMessageInput(chatId=chat_id, content="hi"))

    assert result.error_code == "CHANNEL_READ_ONLY"


class BrokenMemberDatabase(InMemoryMemberDatabase):
    async def set_member(self, member):
        raise RuntimeError("store unavailable")

    async def update_member(self, channel_id, user_id, update):
        raise RuntimeError("store unavailable")


@pytest.fixture
def broken_controller(channel_db, message_db, user_db, sender, clock):
    def build(policy: ErrorPolicy) -> ChatController:
        return ChatController(
            channel_db=channel_db,
            member_db=BrokenMemberDatabase(),
            message_db=message_db,
            user_db=user_db,
            sender=sender,
            scheduler_factory=InlineFanOutScheduler,
            error_policy=policy,
            clock=clock,
        )

    return build


@pytest.mark.asyncio
async def test_partial_membership_write_is_reported_as_partial(broken_controller):
    controller = broken_controller(ErrorPolicy.REPORT)
    chat_id = (await controller.create_channel("alice", CreateChannelInput(name="general"))).value

    result = await controller.add_member("alice", AddMemberInput(chatId=chat_id, user={"uid": "bob"}))

    assert result.status == ResultStatus.PARTIAL
    assert result.warnings == [f"membership of bob in {chat_id}: step member_document failed"]


@pytest.mark.asyncio
async def test_store_failure_is_reported_under_report_policy(broken_controller):
    controller = broken_controller(ErrorPolicy.REPORT)
    chat_id = (await controller.create_channel("alice", CreateChannelInput(name="general"))).value
    controller.member_db.members[(chat_id, "alice")] = Member(channel_id=chat_id, user_id="alice")

    result = await controller.set_all_messages_as_read("alice", ChannelRefInput(chatId=chat_id))
    assert result.status == ResultStatus.SUCCESS  # empty channel, nothing to write

    await controller.send_message("bob", SendMessageInput(chatId=chat_id, content="hi"))
    result = await controller.set_all_messages_as_read("alice", ChannelRefInput(chatId=chat_id))

    assert result.status == ResultStatus.FAILURE
    assert result.error_code == UPSTREAM_FAILURE
    assert result.error == "store unavailable"


@pytest.mark.asyncio
async def test_store_failure_is_swallowed_under_swallow_policy(broken_controller):
    controller = broken_controller(ErrorPolicy.SWALLOW)
    chat_id = (await controller.create_channel("alice", CreateChannelInput(name="general"))).value
    controller.member_db.members[(chat_id, "alice")] = Member(channel_id=chat_id, user_id="alice")
    await controller.send_message("bob", SendMessageInput(chatId=chat_id, content="hi"))

    result = await controller.set_all_messages_as_read("alice", ChannelRefInput(chatId=chat_id))

    assert result.status == ResultStatus.SUCCESS
    assert result.value is None
    assert result.warnings == [f"{UPSTREAM_FAILURE}: store unavailable"]



@pytest.mark.asyncio
async def test_unauthenticated_is_never_swallowed(broken_controller):
    controller = broken_controller(ErrorPolicy.SWALLOW)
    with pytest.raises(UnauthenticatedError):
        await controller.set_typing(None, ChannelRefInput(chatId="general"))


@pytest.mark.asyncio
async def test_remove_member_and_rename(controller, channel_db, user_db):
    chat_id = await general_with_alice_and_bob(controller)

    await controller.remove_member("alice", RemoveMemberInput(chatId=chat_id, userId="bob"))
    await controller.rename_channel("alice", RenameChannelInput(chatId=chat_id, name="lobby"))

    channel = await channel_db.get_channel_by_id(chat_id)
    assert channel.members == ["alice"]
    assert channel.name == "lobby"
    assert (await user_db.get_user_by_id("bob")).channels == []



@pytest.mark.asyncio
async def test_edit_user_and_direct_notification(controller, sender, user_db):
    await controller.register_device("bob", RegisterDeviceInput(token="bob-phone"))

    await controller.edit_user("alice", EditUserInput(uuid="bob", displayName="Robert"))
    result = await controller.send_notification_to_user(
        "alice", UserNotificationInput(toUser="bob", title="Ping", content="are you there?", tag="ping")
    )

    assert (await user_db.get_user_by_id("bob")).display_name == "Robert"
    assert result.status == ResultStatus.SUCCESS
    _, notification = sender.sent[-1]
    assert (notification.title, notification.body, notification.tag) == ("Ping", "are you there?", "ping")


@pytest.mark.asyncio
async def test_ensure_default_channel_is_idempotent(controller, channel_db):
    await controller.ensure_default_channel("general")
    await controller.ensure_default_channel("general")

    assert list(channel_db.channels) == ["general"]


@pytest.mark.asyncio
async def test_direct_notification_rejected_by_every_device_fails(controller, sender):
    await controller.register_device("bob", RegisterDeviceInput(token="bob-phone"))
    sender.failing_tokens = {"bob-phone"}

    result = await controller.send_notification_to_user("alice", UserNotificationInput(toUser="bob", title="Ping"))

    assert result.status == ResultStatus.FAILURE
    assert result.error_code == "DELIVERY_FAILED"


@pytest.mark.asyncio
async def test_direct_notification_partially_delivered(controller, sender):
    await controller.register_device("bob", RegisterDeviceInput(token="bob-phone"))
    await controller.register_device("bob", RegisterDeviceInput(token="bob-tablet"))
    sender.failing_tokens = {"bob-tablet"}

    result = await controller.send_notification_to_user("alice", UserNotificationInput(toUser="bob", title="Ping"))

    assert result.status == ResultStatus.PARTIAL
    assert result.warnings == ["1 of 2 devices rejected the push"]
