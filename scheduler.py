import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from config import get_settings
from sync import SyncCoordinator

logger = logging.getLogger(__name__)


class SchedulerManager:
    """Periodic full resync, in case a change notification was missed."""

    def __init__(self, coordinator: SyncCoordinator) -> None:
        settings = get_settings()
        self.coordinator = coordinator
        self.interval_minutes = settings.resync_minutes
        self.scheduler = AsyncIOScheduler(timezone=settings.timezone)

    async def _run_job(self, source: str = "manual") -> None:
        logger.info(f"scheduler_run: source={source}")
        await self.coordinator.resubscribe_missing()
        self.coordinator.request_refresh_all()

    def start(self) -> None:
        if self.interval_minutes <= 0:
            logger.info("Scheduler disabled: resync interval is 0")
            return

        trigger = IntervalTrigger(minutes=self.interval_minutes)
        self.scheduler.add_job(
            self._run_job,
            trigger,
            args=["resync_safety_net"],
            id="resync_safety_net",
            replace_existing=True,
            misfire_grace_time=300,
            coalesce=True,
        )

        self.scheduler.start()
        logger.info(
            f"Scheduler started with resync every {self.interval_minutes} minutes"
        )

    def stop(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Scheduler stopped")
