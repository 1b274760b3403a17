import logging
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from config import get_settings
from database import session_scope
from services import SubscriptionService


logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class SchedulerManager:
    def __init__(self) -> None:
        settings = get_settings()
        self.scheduler = BackgroundScheduler(timezone=settings.timezone)

    def _run_job(self, source: str = "manual") -> None:
        logger.info(f"scheduler_run: source={source}")
        with session_scope() as session:
            service = SubscriptionService(session)
            count = service.refresh_renewals()
            logger.info(f"scheduler_run: source={source} renewals_rolled={count}")

    def start(self) -> None:
        self._run_job("startup")

        trigger = CronTrigger(hour=0, minute=5)
        self.scheduler.add_job(
            self._run_job,
            trigger,
            args=["daily_00:05"],
            id="subscription_renewals_daily",
            replace_existing=True,
            misfire_grace_time=3600,
        )

        self.scheduler.start()
        logger.info("Scheduler started with daily 00:05 renewal refresh")

    def stop(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Scheduler stopped")
