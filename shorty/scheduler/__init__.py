"""Scheduled maintenance jobs for the link shortener."""

from shorty.scheduler.scheduler import (
    SchedulerService,
    analytics_maintenance_job,
    cleanup_expired_links_job,
    scheduler_service,
)

__all__ = [
    "SchedulerService",
    "analytics_maintenance_job",
    "cleanup_expired_links_job",
    "scheduler_service",
]
