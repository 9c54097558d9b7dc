"""
Delayed task queues for notification delivery.

Supports both:
- In-memory asyncio tasks (default, for dev and tests)
- Celery with a Redis broker (production, set USE_CELERY=true)

Both give at-least-once execution with bounded attempts and exponential
backoff between them. Handlers must therefore be idempotent.
"""
import asyncio
from typing import Awaitable, Callable, Dict, Set

from app.models.response import QueueStats
from app.models.schemas import DeliveryTask
from app.models.settings import QueueSettings
from app.utils.exceptions import ConfigurationError
from app.utils.logging_config import get_logger

logger = get_logger(__name__)

TaskHandler = Callable[[DeliveryTask], Awaitable[None]]


class InMemoryTaskQueue:

    def __init__(self, sleep: Callable[[float], Awaitable[None]] = asyncio.sleep):
        self._sleep = sleep
        self._handlers: Dict[str, TaskHandler] = {}
        self._running: Set[asyncio.Task] = set()
        self._counts = {"waiting": 0, "active": 0, "completed": 0, "failed": 0, "delayed": 0}

    def register(self, name: str, handler: TaskHandler) -> None:
        self._handlers[name] = handler

    async def enqueue(self, task: DeliveryTask) -> DeliveryTask:
        if task.name not in self._handlers:
            raise ConfigurationError(f"No handler registered for task '{task.name}'", config_key="task_name")
        job = asyncio.create_task(self._run(task), name=f"{task.name}:{task.task_id}")
        self._running.add(job)
        job.add_done_callback(self._running.discard)
        logger.debug(f"Enqueued {task.name} {task.task_id} with delay {task.delay_seconds:.1f}s")
        return task

    async def _run(self, task: DeliveryTask) -> None:
        state = "delayed" if task.delay_seconds > 0 else "waiting"
        self._counts[state] += 1
        try:
            if task.delay_seconds > 0:
                await self._sleep(task.delay_seconds)
        finally:
            self._counts[state] -= 1

        handler = self._handlers[task.name]
        for attempt in range(1, task.attempts + 1):
            self._counts["active"] += 1
            try:
                await handler(task)
            except Exception as e:
                logger.warning(
                    f"Task {task.name} {task.task_id} attempt {attempt}/{task.attempts} failed: {e}",
                    extra={"task_id": task.task_id, "owner_id": task.owner_id}
                )
            else:
                self._counts["completed"] += 1
                return
            finally:
                self._counts["active"] -= 1

            if attempt < task.attempts:
                await self._sleep(task.backoff_for(attempt))

        self._counts["failed"] += 1
        logger.error(
            f"Task {task.name} {task.task_id} exhausted {task.attempts} attempts",
            extra={"task_id": task.task_id, "owner_id": task.owner_id, "match_id": task.match_id}
        )

    async def stats(self) -> QueueStats:
        return QueueStats(**self._counts)

    async def join(self) -> None:
        """Wait until every enqueued task has finished (tests and shutdown)."""
        while self._running:
            await asyncio.gather(*list(self._running), return_exceptions=True)

    async def stop(self) -> None:
        # pending deliveries stay undelivered in the database; the sweep picks them up
        for job in list(self._running):
            job.cancel()
        await asyncio.gather(*list(self._running), return_exceptions=True)
        self._running.clear()


class CeleryTaskQueue:
    """Dispatches tasks to Celery workers; see app.services.celery_tasks."""

    def __init__(self, celery_app, queue_name: str):
        self.celery_app = celery_app
        self.queue_name = queue_name

    def register(self, name: str, handler: TaskHandler) -> None:
        # handlers run inside the worker process
        logger.debug(f"Task '{name}' is handled by Celery workers")

    async def enqueue(self, task: DeliveryTask) -> DeliveryTask:
        await asyncio.to_thread(
            self.celery_app.send_task,
            task.name,
            kwargs=task.dict(exclude={"enqueued_at"}),
            countdown=task.delay_seconds,
            queue=self.queue_name,
            task_id=task.task_id,
        )
        logger.debug(f"Sent {task.name} {task.task_id} to Celery with countdown {task.delay_seconds:.1f}s")
        return task

    def _inspect_counts(self) -> QueueStats:
        inspect = self.celery_app.control.inspect()

        def _count(reply) -> int:
            return sum(len(tasks) for tasks in (reply or {}).values())

        return QueueStats(
            waiting=_count(inspect.reserved()),
            active=_count(inspect.active()),
            delayed=_count(inspect.scheduled()),
        )

    async def stats(self) -> QueueStats:
        # inspect broadcasts block until workers reply or time out
        return await asyncio.to_thread(self._inspect_counts)

    async def stop(self) -> None:
        pass


def build_task_queue(settings: QueueSettings):
    if settings.use_celery:
        from app.services.celery_tasks import celery_app
        logger.info(f"Using Celery task queue on {settings.broker_url}")
        return CeleryTaskQueue(celery_app, settings.queue_name)
    logger.info("Using in-memory task queue")
    return InMemoryTaskQueue()
