"""Service for managing the background task scheduler.

Wraps an APScheduler BackgroundScheduler that runs the price refresh job.
"""

import logging
from typing import Optional

from apscheduler.executors.pool import ThreadPoolExecutor
from apscheduler.jobstores.sqlalchemy import SQLAlchemyJobStore
from apscheduler.schedulers.background import BackgroundScheduler

from src.server.config import settings
from src.server.services.price_refresh import REFRESH_JOB_ID

logger = logging.getLogger(__name__)


class SchedulerService:
    """Lifecycle wrapper around BackgroundScheduler.

    Attributes:
        scheduler: APScheduler BackgroundScheduler instance
        is_running: Whether scheduler is currently running
    """

    def __init__(self, db_url: Optional[str] = None, persist_jobs: bool = True):
        """Initialize scheduler service.

        Args:
            db_url: Database URL for job persistence (defaults to settings)
            persist_jobs: Store jobs in the database instead of memory
        """
        self.scheduler: Optional[BackgroundScheduler] = None
        self.is_running = False
        self._db_url = db_url or settings.database_url
        self._persist_jobs = persist_jobs

    def initialize(self) -> None:
        """Create the scheduler with its jobstore and thread pool."""
        if self.scheduler is not None:
            logger.warning("Scheduler already initialized")
            return

        jobstores = {}
        if self._persist_jobs:
            jobstores["default"] = SQLAlchemyJobStore(
                url=self._db_url, tablename="apscheduler_jobs"
            )

        self.scheduler = BackgroundScheduler(
            jobstores=jobstores,
            executors={"default": ThreadPoolExecutor(max_workers=2)},
            job_defaults={
                "coalesce": True,  # Combine missed runs into one
                "max_instances": 1,
                "misfire_grace_time": 60,
            },
            timezone="UTC",
        )
        logger.info("Scheduler initialized successfully")

    def schedule_price_refresh(self, minutes: Optional[int] = None):
        """Register the interval price refresh job.

        Args:
            minutes: Interval in minutes (defaults to settings)

        Returns:
            The scheduled job
        """
        if self.scheduler is None:
            raise RuntimeError("Scheduler not initialized")

        minutes = minutes or settings.price_refresh_minutes
        job = self.scheduler.add_job(
            "src.server.services.price_refresh:refresh_prices",
            "interval",
            id=REFRESH_JOB_ID,
            name="Refresh share prices",
            replace_existing=True,
            minutes=minutes,
        )
        logger.info(f"Scheduled price refresh every {minutes} minute(s)")
        return job

    def start(self) -> None:
        """Start the scheduler, initializing it first if needed.

        Raises:
            RuntimeError: If scheduler fails to start
        """
        if self.is_running:
            logger.warning("Scheduler already running")
            return

        if self.scheduler is None:
            self.initialize()

        try:
            self.scheduler.start()
        except Exception as e:
            logger.error(f"Failed to start scheduler: {e}")
            raise RuntimeError(f"Failed to start scheduler: {e}") from e
        self.is_running = True
        logger.info("Scheduler started successfully")

    def shutdown(self, wait: bool = True) -> None:
        """Shutdown the scheduler.

        Args:
            wait: Whether to wait for running jobs to complete
        """
        if not self.is_running or self.scheduler is None:
            logger.warning("Scheduler not running")
            return

        self.scheduler.shutdown(wait=wait)
        self.is_running = False
        logger.info("Scheduler shutdown successfully")

    def get_jobs(self):
        if self.scheduler is None:
            raise RuntimeError("Scheduler not initialized")
        return self.scheduler.get_jobs()

    def get_status(self) -> dict:
        """Scheduler status for diagnostics."""
        if self.scheduler is None:
            return {
                "initialized": False,
                "running": False,
                "jobs_count": 0,
            }
        return {
            "initialized": True,
            "running": self.is_running,
            "jobs_count": len(self.get_jobs()),
            "timezone": str(self.scheduler.timezone),
        }


# Global scheduler service instance
_scheduler_service: Optional[SchedulerService] = None


def get_scheduler_service() -> SchedulerService:
    """Get the global scheduler service instance."""
    global _scheduler_service
    if _scheduler_service is None:
        _scheduler_service = SchedulerService()
    return _scheduler_service
