"""Tests for the scheduled maintenance jobs."""

from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from shorty.scheduler import scheduler as scheduler_module
from shorty.scheduler.scheduler import (
    SchedulerService,
    analytics_maintenance_job,
    cleanup_expired_links_job,
)
from tests.utils import create_access_log, create_test_link


@pytest.fixture
def job_sessions(monkeypatch, session_scope):
    """Point the jobs at the test database."""
    monkeypatch.setattr(scheduler_module, "SessionManager", SimpleNamespace(transaction_context=session_scope))


@pytest.fixture
def broken_sessions(monkeypatch):
    @asynccontextmanager
    async def unavailable():
        raise ConnectionError("database unavailable")
        yield

    monkeypatch.setattr(scheduler_module, "SessionManager", SimpleNamespace(transaction_context=unavailable))


@pytest.mark.service
class TestMaintenanceJobs:

    @pytest.mark.asyncio
    async def test_cleanup_expired_links_job(self, test_db, link_repository, job_sessions):
        now = datetime.now(timezone.utc)
        await create_test_link(test_db, expires_at=now - timedelta(hours=1))
        kept = await create_test_link(test_db, expires_at=now + timedelta(days=1))

        result = await cleanup_expired_links_job()

        assert result == {"status": "ok", "deleted": 1}
        remaining, total = await link_repository.list_links(test_db, limit=10, offset=0)
        assert total == 1
        assert remaining[0].id == kept.id

    @pytest.mark.asyncio
    async def test_analytics_maintenance_job(self, test_db, daily_stats_repository, job_sessions):
        yesterday = datetime.now(timezone.utc) - timedelta(days=1)
        link = await create_test_link(test_db)
        await create_access_log(test_db, link, yesterday)
        await create_access_log(test_db, link, datetime.now(timezone.utc) - timedelta(days=400))

        result = await analytics_maintenance_job()

        assert result["status"] == "ok"
        assert result["access_logs_deleted"] == 1
        assert result["links_aggregated"] == 1
        stats = await daily_stats_repository.get_for_day(test_db, link.id, yesterday.date())
        assert stats.total_visits == 1

    @pytest.mark.asyncio
    async def test_jobs_report_errors(self, broken_sessions):
        for job in (cleanup_expired_links_job, analytics_maintenance_job):
            result = await job()
            assert result["status"] == "error"
            assert "database unavailable" in result["error"]


@pytest.mark.service
class TestSchedulerService:

    @pytest.mark.asyncio
    async def test_start_and_shutdown(self):
        service = SchedulerService()
        service.start()
        try:
            status = service.get_status()
            assert status["running"] is True
            assert {job["id"] for job in status["jobs"]} == {"cleanup_expired_links", "analytics_maintenance"}
            assert all(job["interval"] == "24 hours" for job in status["jobs"])
            assert len(status["scheduler_jobs_status"]) == 2
        finally:
            service.shutdown()

        assert service.get_status()["running"] is False
        assert service.get_status()["scheduler_jobs_status"] == []

    def test_shutdown_when_stopped_is_noop(self):
        service = SchedulerService()
        service.shutdown()
        assert service.is_running is False
