"""
Notification scheduling and delivery.

A match starts pending (delivered=False) and becomes delivered exactly once,
through the repository's compare-and-set. Two paths lead there: a per-match
task enqueued with a random delay, and the periodic sweep that batches every
pending match of an owner into one message. Whichever runs first wins; the
other becomes a no-op.
"""
import asyncio
import random
from typing import List, Optional

from app.models.response import QueueStats
from app.models.schemas import DeliveryTask
from app.models.settings import NotificationSettings
from app.services.delivery import render_batch_message, render_match_message
from app.utils.logging_config import get_logger

logger = get_logger(__name__)

NOTIFY_NEW_JOBS = "notify-new-jobs"
CHECK_NEW_JOBS = "check-new-jobs"


def compute_notification_delay(settings: NotificationSettings, rng: random.Random = None) -> float:
    """Uniform delay in [min, max) seconds, drawn at millisecond resolution."""
    rng = rng or random
    ms = rng.randrange(settings.min_delay_seconds * 1000, settings.max_delay_seconds * 1000)
    return ms / 1000


class NotificationService:
    """Producer side: enqueues delivery tasks, never waits for them."""

    def __init__(self, repository, queue, settings: NotificationSettings = None, rng: random.Random = None):
        self.repository = repository
        self.queue = queue
        self.settings = settings or NotificationSettings()
        self.rng = rng

    def _task(self, name: str, owner_id: str, match_id: str = None, delay: float = 0.0) -> DeliveryTask:
        return DeliveryTask(
            name=name,
            owner_id=owner_id,
            match_id=match_id,
            delay_seconds=delay,
            attempts=self.settings.attempts,
            backoff_delay_seconds=self.settings.backoff_delay_seconds,
        )

    async def schedule_job_notification(self, owner_id: str, match_id: str) -> DeliveryTask:
        delay = compute_notification_delay(self.settings, self.rng)
        task = await self.queue.enqueue(self._task(NOTIFY_NEW_JOBS, owner_id, match_id, delay))
        logger.info(
            f"Scheduled notification for match {match_id} in {delay / 60:.1f} minutes",
            extra={"owner_id": owner_id, "match_id": match_id, "task_id": task.task_id}
        )
        return task

    async def schedule_multiple_notifications(self, owner_id: str, match_ids: List[str]) -> List[DeliveryTask]:
        return [await self.schedule_job_notification(owner_id, mid) for mid in match_ids]

    async def trigger_notification_check(self, owner_id: str) -> DeliveryTask:
        task = await self.queue.enqueue(self._task(CHECK_NEW_JOBS, owner_id))
        logger.info(f"Triggered notification check for owner {owner_id}", extra={"owner_id": owner_id})
        return task

    async def check_for_new_jobs(self) -> int:
        """Periodic sweep. Enqueues one batch check per owner with pending matches.

        Failures are logged and the sweep reports how many owners it queued.
        """
        try:
            owners = await self.repository.owners_with_pending_matches()
        except Exception as e:
            logger.error(f"Notification sweep could not list pending owners: {e}", exc_info=True)
            return 0

        queued = 0
        for owner_id in owners:
            try:
                await self.queue.enqueue(self._task(CHECK_NEW_JOBS, owner_id))
                queued += 1
            except Exception as e:
                logger.error(f"Notification sweep failed to enqueue owner {owner_id}: {e}", extra={"owner_id": owner_id})

        logger.info(f"Notification sweep queued checks for {queued} of {len(owners)} owners")
        return queued

    async def get_queue_stats(self) -> QueueStats:
        return await self.queue.stats()


class DeliveryWorker:
    """Consumer side: the handlers the task queue runs."""

    def __init__(self, repository, sink, settings: NotificationSettings = None):
        self.repository = repository
        self.sink = sink
        self.settings = settings or NotificationSettings()

    def register(self, queue) -> None:
        queue.register(NOTIFY_NEW_JOBS, self.handle_job_notification)
        queue.register(CHECK_NEW_JOBS, self.handle_check_new_jobs)

    async def _recipient(self, owner_id: str) -> Optional[str]:
        latest = await self.repository.find_latest_resume(owner_id)
        if latest is None or not latest.profile.email:
            logger.warning(f"No profile email for owner {owner_id}, leaving matches pending", extra={"owner_id": owner_id})
            return None
        return latest.profile.email

    async def handle_job_notification(self, task: DeliveryTask) -> None:
        match = await self.repository.get_match(task.match_id)
        if match is None or match.delivered:
            logger.debug(f"Match {task.match_id} missing or already delivered, skipping")
            return

        recipient = await self._recipient(task.owner_id)
        if recipient is None:
            return

        # sink errors propagate so the queue retries
        await asyncio.to_thread(self.sink.send, render_match_message(recipient, match))
        if await self.repository.mark_match_delivered(match.match_id):
            logger.info(f"Delivered match {match.match_id} to {recipient}", extra={"owner_id": task.owner_id})

    async def handle_check_new_jobs(self, task: DeliveryTask) -> None:
        pending = await self.repository.find_matches(task.owner_id, delivered=False)
        if not pending:
            return

        recipient = await self._recipient(task.owner_id)
        if recipient is None:
            return

        message = render_batch_message(recipient, pending, shown=self.settings.batch_size)
        await asyncio.to_thread(self.sink.send, message)

        delivered = 0
        for m in pending:
            if await self.repository.mark_match_delivered(m.match_id):
                delivered += 1
        logger.info(
            f"Delivered batch of {delivered} matches to {recipient}",
            extra={"owner_id": task.owner_id, "match_count": delivered}
        )
