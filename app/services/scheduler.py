import asyncio
from typing import Awaitable, Callable, Optional

from app.utils.logging_config import get_logger

logger = get_logger(__name__)


class PeriodicScheduler:
    """Runs an async job every `interval_seconds` until stopped.

    The first run happens one interval after start(). A failing run is logged
    and does not stop the schedule.
    """

    def __init__(
        self,
        interval_seconds: float,
        job: Callable[[], Awaitable[object]],
        name: str = "periodic",
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.interval_seconds = interval_seconds
        self.job = job
        self.name = name
        self._sleep = sleep
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._loop(), name=self.name)
        logger.info(f"Started scheduler '{self.name}' every {self.interval_seconds}s")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info(f"Stopped scheduler '{self.name}'")

    async def _loop(self) -> None:
        while True:
            await self._sleep(self.interval_seconds)
            try:
                await self.job()
            except Exception as e:
                logger.error(f"Scheduled job '{self.name}' failed: {e}", exc_info=True)
