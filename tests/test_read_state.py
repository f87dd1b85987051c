import pytest

from chat_toolkit.chat_database.data_models.member import Member
from chat_toolkit.chat_database.data_models.message import Message
from chat_toolkit.chat_database.data_models.user import User
from chat_toolkit.chat_database.in_memory import InMemoryMessageDatabase
from chat_toolkit.read_state.engine import ReadStateEngine
from chat_toolkit.utils.database import generate_uid


@pytest.fixture
def engine(user_db, member_db, message_db, clock):
    return ReadStateEngine(user_db, member_db, message_db, clock=clock)


async def post(message_db, channel_id: str, author: str = "author", count: int = 1) -> list[Message]:
    posted = []
    for _ in range(count):
        message = Message(id=generate_uid(), channel_id=channel_id, content="hello", user_id=author)
        posted.append(await message_db.create_message(message))
    return posted


async def join(user_db, member_db, channel_id: str, user_id: str, last_seen: int | None = None) -> None:
    if await user_db.get_user_by_id(user_id) is None:
        await user_db.create_user(User(id=user_id))
    await user_db.add_channel(user_id, channel_id)
    await member_db.set_member(Member(channel_id=channel_id, user_id=user_id, last_seen=last_seen))


@pytest.mark.asyncio
async def test_store_assigns_strictly_increasing_timestamps():
    message_db = InMemoryMessageDatabase(clock=lambda: 5)
    first, second, third = await post(message_db, "c1", count=3)
    assert first.timestamp < second.timestamp < third.timestamp


@pytest.mark.asyncio
async def test_unread_count_without_cursor_counts_everything(engine, user_db, member_db, message_db):
    await join(user_db, member_db, "c1", "bob")
    await post(message_db, "c1", count=3)

    assert await engine.unread_count("c1", "bob") == 3


@pytest.mark.asyncio
async def test_cursor_boundary_is_exclusive(engine, user_db, member_db, message_db):
    messages = await post(message_db, "c1", count=3)
    await join(user_db, member_db, "c1", "bob", last_seen=messages[1].timestamp)

    assert await engine.unread_count("c1", "bob") == 1


@pytest.mark.asyncio
async def test_mark_read_clears_channel_and_is_idempotent(engine, user_db, member_db, message_db):
    await join(user_db, member_db, "c1", "bob")
    messages = await post(message_db, "c1", count=4)

    member = await engine.mark_read("c1", "bob")
    assert member.last_seen == messages[-1].timestamp
    assert await engine.unread_count("c1", "bob") == 0

    again = await engine.mark_read("c1", "bob")
    assert again.last_seen == member.last_seen
    assert await engine.unread_count("c1", "bob") == 0


@pytest.mark.asyncio
async def test_only_messages_after_mark_read_are_unread(engine, user_db, member_db, message_db):
    await join(user_db, member_db, "c1", "bob")
    await post(message_db, "c1", count=5)
    await engine.mark_read("c1", "bob")
    await post(message_db, "c1", count=2)

    assert await engine.unread_count("c1", "bob") == 2


@pytest.mark.asyncio
async def test_mark_read_for_missing_member_does_nothing(engine, member_db, message_db):
    await post(message_db, "c1")

    assert await engine.mark_read("c1", "ghost") is None
    assert member_db.members == {}


@pytest.mark.asyncio
async def test_mark_read_on_empty_channel_keeps_cursor(engine, user_db, member_db):
    await join(user_db, member_db, "c1", "bob")

    member = await engine.mark_read("c1", "bob")
    assert member.last_seen is None


@pytest.mark.asyncio
async def test_cursor_never_moves_backwards(engine, user_db, member_db, message_db):
    await join(user_db, member_db, "c1", "bob")
    first, _, last = await post(message_db, "c1", count=3)
    await engine.mark_read("c1", "bob")

    member = await engine.mark_read_up_to("c1", "bob", first.id)
    assert member.last_seen == last.timestamp
    assert await engine.unread_count("c1", "bob") == 0


@pytest.mark.asyncio
async def test_mark_read_up_to_specific_message(engine, user_db, member_db, message_db):
    await join(user_db, member_db, "c1", "bob")
    first, _, _ = await post(message_db, "c1", count=3)

    await engine.mark_read_up_to("c1", "bob", first.id)
    assert await engine.unread_count("c1", "bob") == 2


@pytest.mark.asyncio
async def test_mark_read_up_to_unknown_message_leaves_cursor(engine, user_db, member_db, message_db):
    await join(user_db, member_db, "c1", "bob")
    await post(message_db, "c1", count=2)

    member = await engine.mark_read_up_to("c1", "bob", "missing")
    assert member.last_seen is None


@pytest.mark.asyncio
async def test_initial_cursor_points_at_latest_message(engine, message_db):
    assert await engine.initial_cursor("c1") is None
    messages = await post(message_db, "c1", count=2)
    assert await engine.initial_cursor("c1") == messages[-1].timestamp


@pytest.mark.asyncio
async def test_badge_count_sums_channels(engine, user_db, member_db, message_db):
    await join(user_db, member_db, "c1", "bob")
    await join(user_db, member_db, "c2", "bob")
    await post(message_db, "c1", count=2)
    await post(message_db, "c2", count=3)

    assert await engine.badge_count("bob") == 5
    await engine.mark_read("c2", "bob")
    assert await engine.badge_count("bob") == 2


@pytest.mark.asyncio
async def test_badge_count_for_unknown_user_is_zero(engine):
    assert await engine.badge_count("nobody") == 0


class FlakyMessageDatabase(InMemoryMessageDatabase):
    def __init__(self, broken_channel: str, **kwargs):
        super().__init__(**kwargs)
        self.broken_channel = broken_channel

    async def count_messages_after(self, channel_id, timestamp):
        if channel_id == self.broken_channel:
            raise RuntimeError("store unavailable")
        return await super().count_messages_after(channel_id, timestamp)


@pytest.mark.asyncio
async def test_badge_count_skips_failing_channel(user_db, member_db, clock):
    message_db = FlakyMessageDatabase("broken", clock=clock)
    engine = ReadStateEngine(user_db, member_db, message_db, clock=clock)
    await join(user_db, member_db, "ok", "bob")
    await join(user_db, member_db, "broken", "bob")
    await post(message_db, "ok", count=2)
    await post(message_db, "broken", count=7)

    breakdown = await engine.badge_breakdown("bob")
    assert breakdown.total == 2
    assert breakdown.skipped_channels == ["broken"]
    assert await engine.badge_count("bob") == 2


@pytest.mark.asyncio
async def test_set_typing_stamps_member(engine, user_db, member_db, clock):
    await join(user_db, member_db, "c1", "bob")

    assert await engine.set_typing("c1", "bob") is True
    member = await member_db.get_member("c1", "bob")
    assert member.last_typing == clock.now
    assert await engine.set_typing("c1", "ghost") is False
