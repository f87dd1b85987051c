"""
Notification fan-out for new channel messages.

'NotificationFanOut' turns one new message into one push per channel member
(the author excluded), each carrying that member's current badge count.
Delivery is best-effort for everyone: a failure for one member is logged and
recorded in the 'FanOutReport' and the loop moves on to the next member.

Message sending never waits for fan-out. The dispatcher hands a 'FanOutJob' to
a 'FanOutScheduler':

    'FanOutQueue'            - bounded asyncio queue drained by a fixed pool of
                               worker tasks. 'submit' never blocks; when the
                               queue is full the job is dropped and counted.
    'InlineFanOutScheduler'  - runs the job right away inside 'submit' and
                               contains its errors. Useful where no long-lived
                               event loop exists (scripts, test clients).
"""

import asyncio
from abc import ABC, abstractmethod

from loguru import logger
from pydantic import BaseModel, Field

from chat_toolkit.chat_database.data_models.channel import ChannelDatabase
from chat_toolkit.chat_database.data_models.member import MemberDatabase
from chat_toolkit.chat_database.data_models.user import UserDatabase
from chat_toolkit.notifications.base import DeliveryReport, Notification, NotificationSender
from chat_toolkit.read_state.engine import ReadStateEngine


class FanOutJob(BaseModel):
    channel_id: str
    sender_id: str
    content: str
    message_id: str


class FanOutReport(BaseModel):
    """
    Outcome of one fan-out run.

    Attributes:
        notified: Members for whom at least one device accepted the push.
        skipped: Members without registered device tokens.
        failed: Members whose delivery raised or failed on every token.
        deliveries: Per-member delivery reports, keyed by user id.
    """

    channel_id: str
    notified: list[str] = Field(default_factory=list)
    skipped: list[str] = Field(default_factory=list)
    failed: list[str] = Field(default_factory=list)
    deliveries: dict[str, DeliveryReport] = Field(default_factory=dict)


def chat_notification_data(sender_id: str, channel_id: str) -> dict[str, str]:
    return {"userId": sender_id, "chatId": channel_id, "type": "chat"}


class NotificationFanOut:
    def __init__(
        self,
        channel_db: ChannelDatabase,
        member_db: MemberDatabase,
        user_db: UserDatabase,
        read_state: ReadStateEngine,
        sender: NotificationSender,
    ):
        self.channel_db = channel_db
        self.member_db = member_db
        self.user_db = user_db
        self.read_state = read_state
        self.sender = sender

    async def fan_out(self, channel_id: str, sender_id: str, content: str, message_id: str) -> FanOutReport:
        report = FanOutReport(channel_id=channel_id)
        channel = await self.channel_db.get_channel_by_id(channel_id)
        if channel is None:
            logger.warning(f"Fan-out for message {message_id}: channel {channel_id} not found")
            return report

        author = await self.user_db.get_user_by_id(sender_id)
        display_name = author.display_name if author and author.display_name else sender_id
        title = f"{display_name} has sent a message on {channel.name}"

        members = await self.member_db.get_members_by_channel_id(channel_id)
        for member in members:
            if member.user_id == sender_id:
                continue
            try:
                delivery = await self.send_to_user(
                    to_user=member.user_id,
                    title=title,
                    content=content,
                    tag=message_id,
                    data=chat_notification_data(sender_id, channel_id),
                    collapse_key=channel_id,
                )
            except Exception:
                logger.exception(f"Fan-out to member {member.user_id} of channel {channel_id} failed")
                report.failed.append(member.user_id)
                continue

            if delivery is None:
                report.skipped.append(member.user_id)
                continue
            report.deliveries[member.user_id] = delivery
            if delivery.sent > 0:
                report.notified.append(member.user_id)
            else:
                logger.warning(f"No device of member {member.user_id} accepted the push for message {message_id}")
                report.failed.append(member.user_id)

        logger.info(
            f"Fan-out for message {message_id} in {channel_id}: "
            f"{len(report.notified)} notified, {len(report.skipped)} skipped, {len(report.failed)} failed"
        )
        return report

    async def send_to_user(
        self,
        to_user: str,
        title: str,
        content: str = "",
        tag: str | None = None,
        data: dict[str, str] | None = None,
        collapse_key: str | None = None,
    ) -> DeliveryReport | None:
        """Push to every device of 'to_user' with their current badge count.

        Returns None when the user is unknown or has no registered tokens.
        """
        user = await self.user_db.get_user_by_id(to_user)
        if user is None or not user.tokens:
            logger.debug(f"User {to_user} has no registered devices, not sending")
            return None

        notification = Notification(
            title=title,
            body=content,
            badge=await self.read_state.badge_count(to_user),
            collapse_key=collapse_key,
            tag=tag,
            data=data or {},
        )
        return await self.sender.send(list(user.tokens), notification)


class FanOutScheduler(ABC):
    """Hand-off point between a request and the fan-out it triggers."""

    @abstractmethod
    async def submit(self, job: FanOutJob) -> bool:
        """Accept 'job' for processing without waiting for the fan-out itself.

        Returns False when the job was not accepted.
        """
        pass

    async def close(self) -> None:
        """Release background resources. Nothing to do for synchronous schedulers."""
        return None


class InlineFanOutScheduler(FanOutScheduler):
    def __init__(self, fan_out: NotificationFanOut):
        self.fan_out = fan_out

    async def submit(self, job: FanOutJob) -> bool:
        try:
            await self.fan_out.fan_out(job.channel_id, job.sender_id, job.content, job.message_id)
        except Exception:
            logger.exception(f"Fan-out for message {job.message_id} failed")
        return True


class FanOutQueue(FanOutScheduler):
    """
    Bounded background worker pool for fan-out jobs.

    Workers are started lazily on the first 'submit', inside the running event
    loop. 'join' waits until every accepted job has been processed; 'close'
    drains the queue and stops the workers.

    Attributes:
        workers: Number of concurrent worker tasks.
        queue_size: Maximum number of pending jobs before new ones are dropped.
        dropped: Jobs rejected because the queue was full.
        processed: Jobs completed, successfully or not.
        errors: Jobs whose fan-out raised.
    """

    def __init__(self, fan_out: NotificationFanOut, workers: int = 4, queue_size: int = 1000):
        self.fan_out = fan_out
        self.workers = workers
        self.queue_size = queue_size
        self.dropped = 0
        self.processed = 0
        self.errors = 0
        self._queue: asyncio.Queue[FanOutJob] | None = None
        self._tasks: list[asyncio.Task[None]] = []

    def _ensure_started(self) -> asyncio.Queue[FanOutJob]:
        if self._queue is None:
            self._queue = asyncio.Queue(maxsize=self.queue_size)
            self._tasks = [asyncio.create_task(self._worker(i, self._queue)) for i in range(self.workers)]
        return self._queue

    async def submit(self, job: FanOutJob) -> bool:
        queue = self._ensure_started()
        try:
            queue.put_nowait(job)
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning(f"Fan-out queue full ({self.queue_size}), dropping job for message {job.message_id}")
            return False
        return True

    async def _worker(self, worker_id: int, queue: asyncio.Queue[FanOutJob]) -> None:
        while True:
            job = await queue.get()
            try:
                await self.fan_out.fan_out(job.channel_id, job.sender_id, job.content, job.message_id)
            except Exception:
                self.errors += 1
                logger.exception(f"Fan-out worker {worker_id} failed on message {job.message_id}")
            finally:
                self.processed += 1
                queue.task_done()

    async def join(self) -> None:
        if self._queue is not None:
            await self._queue.join()

    async def close(self) -> None:
        await self.join()
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        self._queue = None
