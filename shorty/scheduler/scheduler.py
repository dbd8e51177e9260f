"""Scheduler implementation for the link shortener.

This module provides a scheduler service that runs the periodic
maintenance jobs (expired link removal, analytics retention and the
previous day's rollup) using APScheduler.
"""

import logging
from typing import Any, Dict, List, Optional

from apscheduler.jobstores.sqlalchemy import SQLAlchemyJobStore
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from shorty.core.config import settings
from shorty.db.session import SessionManager
from shorty.db.types import utc_now
from shorty.repositories import (
    AccessLogRepository,
    DailyStatsRepository,
    LinkRepository,
    LinkSettingsRepository,
    SystemConfigRepository,
)
from shorty.services.aggregation import Aggregator
from shorty.services.links import LinkService

logger = logging.getLogger(__name__)


def _error_result(e: Exception) -> Dict[str, Any]:
    return {
        "status": "error",
        "error": str(e),
        "timestamp": utc_now().isoformat(),
    }


async def cleanup_expired_links_job() -> Dict[str, Any]:
    """
    Job deleting expired links.

    Opens its own session; failures are logged and reported in the result.
    """
    logger.info("Starting scheduled cleanup of expired links")
    try:
        async with SessionManager.transaction_context() as session:
            service = LinkService(
                LinkRepository(),
                LinkSettingsRepository(),
                SystemConfigRepository(),
                config=settings.link_service_config(),
                slug_config=settings.slug_config(),
            )
            deleted = await service.cleanup_expired_links(db=session)
        logger.info(f"Scheduled link cleanup completed: deleted={deleted}")
        return {"status": "ok", "deleted": deleted}
    except Exception as e:
        logger.error(f"Error in scheduled link cleanup job: {e}", exc_info=True)
        return _error_result(e)


async def analytics_maintenance_job() -> Dict[str, Any]:
    """
    Job applying analytics retention and aggregating yesterday.
    """
    logger.info("Starting scheduled analytics maintenance")
    try:
        async with SessionManager.transaction_context() as session:
            aggregator = Aggregator(AccessLogRepository(), DailyStatsRepository(), SystemConfigRepository())
            report = await aggregator.run_cleanup(db=session)
        logger.info(
            f"Scheduled analytics maintenance completed: logs={report.access_logs_deleted}, "
            f"stats={report.daily_stats_deleted}, aggregated={report.links_aggregated}"
        )
        return {
            "status": "ok",
            "access_logs_deleted": report.access_logs_deleted,
            "daily_stats_deleted": report.daily_stats_deleted,
            "links_aggregated": report.links_aggregated,
        }
    except Exception as e:
        logger.error(f"Error in scheduled analytics maintenance job: {e}", exc_info=True)
        return _error_result(e)


JOBS = [
    ("cleanup_expired_links", "Cleanup Expired Links", cleanup_expired_links_job),
    ("analytics_maintenance", "Analytics Retention And Rollup", analytics_maintenance_job),
]


class SchedulerService:
    """
    Scheduler service for the maintenance jobs.

    Wraps an APScheduler ``AsyncIOScheduler`` backed by a SQLAlchemy job
    store so schedules survive restarts.
    """

    def __init__(self):
        self.scheduler: Optional[AsyncIOScheduler] = None
        self.is_running = False
        self.jobs: List[Dict[str, Any]] = []

    def initialize(self) -> None:
        """Create the scheduler without starting it."""
        if self.scheduler:
            logger.warning("Scheduler already initialized")
            return

        try:
            self.scheduler = AsyncIOScheduler(
                jobstores={"default": SQLAlchemyJobStore(url=settings.SCHEDULER_JOBSTORE_URL)},
                job_defaults={
                    "coalesce": settings.SCHEDULER_JOB_COALESCE,
                    "max_instances": settings.SCHEDULER_JOB_MAX_INSTANCES,
                    "misfire_grace_time": settings.SCHEDULER_MISFIRE_GRACE_TIME,
                },
            )
            logger.info("Scheduler initialized")
        except Exception as e:
            logger.error(f"Error initializing scheduler: {e}", exc_info=True)
            self.scheduler = None
            raise

    def start(self) -> None:
        """Register the interval jobs and start the scheduler."""
        if not self.scheduler:
            self.initialize()

        if self.is_running:
            logger.warning("Scheduler already running")
            return

        interval = settings.CLEANUP_INTERVAL_HOURS
        try:
            self.jobs = []
            for job_id, name, func in JOBS:
                self.scheduler.add_job(
                    func,
                    trigger=IntervalTrigger(hours=interval, timezone="UTC"),
                    id=job_id,
                    name=name,
                    replace_existing=True,
                )
                self.jobs.append({
                    "id": job_id,
                    "name": name,
                    "interval": f"{interval} hours",
                    "function": func.__name__,
                })

            self.scheduler.start()
            self.is_running = True
            logger.info(f"Scheduler started with {len(self.jobs)} jobs")

            if settings.CLEANUP_START_ON_STARTUP:
                logger.info("Running maintenance jobs on startup")
                for job_id, name, func in JOBS:
                    self.scheduler.add_job(
                        func,
                        id=f"{job_id}_startup",
                        name=f"{name} (startup)",
                        replace_existing=True,
                    )
        except Exception as e:
            logger.error(f"Error starting scheduler: {e}", exc_info=True)
            self.is_running = False
            raise

    def shutdown(self) -> None:
        """Stop the scheduler, waiting for running jobs."""
        if not self.scheduler or not self.is_running:
            logger.warning("Scheduler not running, nothing to shut down")
            return

        try:
            self.scheduler.shutdown(wait=True)
            self.is_running = False
            self.scheduler = None
            logger.info("Scheduler shut down successfully")
        except Exception as e:
            logger.error(f"Error shutting down scheduler: {e}", exc_info=True)
            raise

    def get_status(self) -> Dict[str, Any]:
        """Running flag, registered jobs and their next run times."""
        job_details = []
        if self.scheduler and self.is_running:
            for job in self.scheduler.get_jobs():
                job_details.append({
                    "job_id": job.id,
                    "name": job.name,
                    "next_run_time": job.next_run_time.isoformat() if job.next_run_time else None,
                })

        return {
            "running": self.is_running,
            "jobs": self.jobs,
            "scheduler_jobs_status": job_details,
        }


scheduler_service = SchedulerService()
