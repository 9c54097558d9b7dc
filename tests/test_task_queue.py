import asyncio
import threading
import pytest
from unittest.mock import AsyncMock, MagicMock

from app.models.schemas import DeliveryTask, StructuredProfile
from app.models.settings import QueueSettings
from app.services.notifications import DeliveryWorker, NotificationService
from app.services.scheduler import PeriodicScheduler
from app.services.task_queue import CeleryTaskQueue, InMemoryTaskQueue, build_task_queue
from app.utils.exceptions import ConfigurationError
from conftest import FakeSink, make_match, make_resume


class RecordingSleep:
    def __init__(self):
        self.calls = []

    async def __call__(self, seconds):
        self.calls.append(seconds)
        await asyncio.sleep(0)


def failing_handler(failures):
    state = {"calls": 0}

    async def handler(task):
        state["calls"] += 1
        if state["calls"] <= failures:
            raise RuntimeError("boom")

    return handler, state


class TestInMemoryTaskQueue:
    """Test cases for the asyncio task queue"""

    @pytest.mark.asyncio
    async def test_retries_with_exponential_backoff(self):
        sleep = RecordingSleep()
        queue = InMemoryTaskQueue(sleep=sleep)
        handler, state = failing_handler(failures=2)
        queue.register("job", handler)

        await queue.enqueue(DeliveryTask(name="job", owner_id="o", delay_seconds=300, attempts=3, backoff_delay_seconds=2))
        await queue.join()

        assert state["calls"] == 3
        assert sleep.calls == [300, 2.0, 4.0]
        assert (await queue.stats()).completed == 1
        assert (await queue.stats()).failed == 0

    @pytest.mark.asyncio
    async def test_exhausted_attempts_count_as_failed(self):
        sleep = RecordingSleep()
        queue = InMemoryTaskQueue(sleep=sleep)
        handler, state = failing_handler(failures=10)
        queue.register("job", handler)

        await queue.enqueue(DeliveryTask(name="job", owner_id="o", attempts=3))
        await queue.join()

        assert state["calls"] == 3
        assert sleep.calls == [2.0, 4.0]
        stats = await queue.stats()
        assert (stats.failed, stats.completed, stats.active) == (1, 0, 0)

    @pytest.mark.asyncio
    async def test_unknown_task_name(self):
        with pytest.raises(ConfigurationError):
            await InMemoryTaskQueue().enqueue(DeliveryTask(name="nope", owner_id="o"))

    @pytest.mark.asyncio
    async def test_stop_cancels_delayed_tasks(self):
        queue = InMemoryTaskQueue()
        handler, state = failing_handler(failures=0)
        queue.register("job", handler)

        await queue.enqueue(DeliveryTask(name="job", owner_id="o", delay_seconds=3600))
        await asyncio.sleep(0)
        assert (await queue.stats()).delayed == 1

        await queue.stop()

        assert (await queue.stats()).delayed == 0
        assert state["calls"] == 0

    @pytest.mark.asyncio
    async def test_end_to_end_delivery_with_retry(self, repository):
        await repository.create_resume(make_resume("owner-1", StructuredProfile(name="Jane Doe", email="jane@example.com")))
        match = await repository.create_match(make_match("owner-1"))
        queue = InMemoryTaskQueue(sleep=RecordingSleep())
        sink = FakeSink(failures=1)
        DeliveryWorker(repository, sink).register(queue)

        await NotificationService(repository, queue).schedule_job_notification("owner-1", match.match_id)
        await queue.join()

        assert len(sink.sent) == 1
        assert repository.matches[match.match_id].delivered is True
        assert (await queue.stats()).completed == 1


class TestCeleryTaskQueue:

    @pytest.mark.asyncio
    async def test_enqueue_sends_task_with_countdown(self):
        celery_app = MagicMock()
        queue = CeleryTaskQueue(celery_app, "job-notifications")
        task = DeliveryTask(name="notify-new-jobs", owner_id="o", match_id="m", delay_seconds=600)

        await queue.enqueue(task)

        args, kwargs = celery_app.send_task.call_args
        assert args == ("notify-new-jobs",)
        assert kwargs["countdown"] == 600
        assert kwargs["queue"] == "job-notifications"
        assert kwargs["task_id"] == task.task_id
        assert kwargs["kwargs"]["match_id"] == "m"
        assert "enqueued_at" not in kwargs["kwargs"]

    @pytest.mark.asyncio
    async def test_stats_from_inspect_off_the_event_loop(self):
        loop_thread = threading.get_ident()
        inspect_threads = []
        celery_app = MagicMock()
        inspect = celery_app.control.inspect.return_value
        inspect.reserved.side_effect = lambda: inspect_threads.append(threading.get_ident()) or {"w1": [1, 2]}
        inspect.active.return_value = {"w1": [1]}
        inspect.scheduled.return_value = None

        stats = await CeleryTaskQueue(celery_app, "q").stats()

        assert (stats.waiting, stats.active, stats.delayed) == (2, 1, 0)
        assert inspect_threads and loop_thread not in inspect_threads

    def test_build_defaults_to_in_memory(self):
        assert isinstance(build_task_queue(QueueSettings()), InMemoryTaskQueue)


class TestPeriodicScheduler:

    @pytest.mark.asyncio
    async def test_runs_until_stopped_and_survives_failures(self):
        calls = []

        async def job():
            calls.append(1)
            if len(calls) == 1:
                raise RuntimeError("first run fails")

        sleep = RecordingSleep()
        scheduler = PeriodicScheduler(21600, job, sleep=sleep)
        scheduler.start()
        for _ in range(10):
            await asyncio.sleep(0)
        await scheduler.stop()

        assert len(calls) >= 2
        assert set(sleep.calls) == {21600}
        assert scheduler.running is False

    @pytest.mark.asyncio
    async def test_start_is_idempotent(self):
        scheduler = PeriodicScheduler(3600, AsyncMock())
        scheduler.start()
        first = scheduler._task
        scheduler.start()
        assert scheduler._task is first
        await scheduler.stop()