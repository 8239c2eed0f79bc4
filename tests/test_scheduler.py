"""
Tests for the scheduler service and the admin scheduler endpoints
"""
import asyncio
from datetime import datetime
from unittest.mock import AsyncMock
from zoneinfo import ZoneInfo

import pytest

from donation_portal.core.errors import ValidationError
from donation_portal.services.progress_report import STATUS_COMPLETED, ReportRunResult
from donation_portal.services.schedule import ScheduleConfig
from donation_portal.services.scheduler import SchedulerService

IST = ZoneInfo("Asia/Kolkata")
NOW = datetime(2025, 6, 4, 12, 0, tzinfo=IST)


@pytest.fixture
def job():
    job = AsyncMock()
    job.run.return_value = ReportRunResult(status=STATUS_COMPLETED, message="ok", sent_count=3, total_donors=3)
    return job


@pytest.fixture
def scheduler(job):
    return SchedulerService(job, timezone="Asia/Kolkata", clock=lambda: NOW)


# ============================================================================
# RUN TRACKING TESTS
# ============================================================================

class TestSchedulerRuns:
    """Scheduled and manual runs"""

    @pytest.mark.asyncio
    async def test_scheduled_run_records_outcome(self, scheduler, job):
        result = await scheduler.run_scheduled()

        assert result.status == STATUS_COMPLETED
        assert scheduler.last_run_time == NOW
        assert scheduler.last_run_status == STATUS_COMPLETED
        assert scheduler.total_emails_sent == 3
        job.run.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_sent_count_accumulates(self, scheduler):
        await scheduler.run_scheduled()
        await scheduler.trigger()

        assert scheduler.total_emails_sent == 6

    @pytest.mark.asyncio
    async def test_disabled_scheduler_skips_timer_runs(self, scheduler, job):
        scheduler.disable()

        assert await scheduler.run_scheduled() is None
        job.run.assert_not_awaited()
        assert scheduler.last_run_time is None

    @pytest.mark.asyncio
    async def test_manual_trigger_ignores_disabled_flag(self, scheduler, job):
        scheduler.disable()

        result = await scheduler.trigger()

        assert result.status == STATUS_COMPLETED
        job.run.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_interval_run_remembered(self, scheduler):
        await scheduler.update_config({"type": "interval", "interval_days": 2})

        await scheduler.run_scheduled()

        assert scheduler.last_interval_run == NOW
        assert scheduler.next_run_estimate() == datetime(2025, 6, 6, 9, 0, tzinfo=IST)

    @pytest.mark.asyncio
    async def test_weekly_run_does_not_touch_interval_anchor(self, scheduler):
        await scheduler.run_scheduled()

        assert scheduler.last_interval_run is None

    @pytest.mark.asyncio
    async def test_crashing_job_recorded_as_error(self, scheduler, job):
        job.run.side_effect = RuntimeError("database unavailable")

        result = await scheduler.trigger()

        assert not result.success
        assert scheduler.last_run_status == "error"


# ============================================================================
# CONFIGURATION TESTS
# ============================================================================

class TestSchedulerConfig:
    """Config updates and timer rebuilds"""

    @pytest.mark.asyncio
    async def test_update_returns_status(self, scheduler):
        status = await scheduler.update_config({"day_of_week": 1, "hour": 18})

        assert status.schedule == "Every Monday at 18:00"
        assert status.cron_expression == "0 18 * * 1"
        assert status.next_run_estimate == datetime(2025, 6, 9, 18, 0, tzinfo=IST)

    @pytest.mark.asyncio
    async def test_invalid_update_keeps_previous_config(self, scheduler):
        await scheduler.update_config({"hour": 7})

        with pytest.raises(ValidationError):
            await scheduler.update_config({"hour": 8, "interval_days": 0})

        assert scheduler.config == ScheduleConfig(hour=7)

    @pytest.mark.asyncio
    async def test_rebuild_replaces_timer(self, scheduler):
        await scheduler.start()
        first = scheduler._task

        await scheduler.update_config({"hour": 10})
        second = scheduler._task

        assert first is not second
        assert first.cancelled()
        assert scheduler.running

        await scheduler.stop()
        assert not scheduler.running
        assert second.cancelled()

    @pytest.mark.asyncio
    async def test_config_change_before_start_creates_no_timer(self, scheduler):
        await scheduler.update_config({"hour": 10})

        assert not scheduler.running

    @pytest.mark.asyncio
    async def test_timer_fires_job(self, job):
        fired = asyncio.Event()

        async def run():
            fired.set()
            return ReportRunResult(status=STATUS_COMPLETED, message="ok")

        job.run.side_effect = run
        service = SchedulerService(
            job,
            config=ScheduleConfig(type="weekly", day_of_week=3, hour=9),
            timezone="Asia/Kolkata",
            # 10ms before the Wednesday 09:00 slot
            clock=lambda: datetime(2025, 6, 4, 8, 59, 59, 990000, tzinfo=IST),
        )

        await service.start()
        await asyncio.wait_for(fired.wait(), timeout=2)
        await service.stop()

        job.run.assert_awaited()

    @pytest.mark.asyncio
    async def test_config_change_does_not_cancel_running_batch(self, job):
        started = asyncio.Event()
        release = asyncio.Event()
        finished = []

        async def run():
            started.set()
            await release.wait()
            finished.append(True)
            return ReportRunResult(status=STATUS_COMPLETED, message="ok", sent_count=2)

        job.run.side_effect = run
        service = SchedulerService(
            job,
            config=ScheduleConfig(type="weekly", day_of_week=3, hour=9),
            timezone="Asia/Kolkata",
            clock=lambda: datetime(2025, 6, 4, 8, 59, 59, 990000, tzinfo=IST),
        )

        await service.start()
        await asyncio.wait_for(started.wait(), timeout=2)
        await service.update_config({"hour": 10})
        release.set()
        await service.stop()

        assert finished == [True]
        assert service.last_run_status == STATUS_COMPLETED
        assert service.total_emails_sent == 2
        job.run.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_first_interval_run_fires_at_todays_slot(self, job):
        fired = asyncio.Event()

        async def run():
            fired.set()
            return ReportRunResult(status=STATUS_COMPLETED, message="ok")

        job.run.side_effect = run
        # 10ms before 09:00 on the day the interval schedule was set up
        moment = datetime(2025, 6, 4, 8, 59, 59, 990000, tzinfo=IST)
        service = SchedulerService(
            job,
            config=ScheduleConfig(type="interval", hour=9, interval_days=3),
            timezone="Asia/Kolkata",
            clock=lambda: moment,
        )

        await service.start()
        await asyncio.wait_for(fired.wait(), timeout=2)
        await service.stop()

        assert service.last_interval_run == moment

    def test_options(self):
        options = SchedulerService.options()

        assert [t.value for t in options.types] == ["weekly", "interval"]
        assert options.days[0].label == "Sunday"
        assert len(options.hours) == 24
        assert (options.interval_days.min, options.interval_days.max) == (1, 365)


# ============================================================================
# ADMIN API TESTS
# ============================================================================

class TestSchedulerEndpoints:
    """/api/admin/scheduler/*"""

    @pytest.mark.asyncio
    async def test_status(self, client, admin_headers):
        response = await client.get("/api/admin/scheduler/status", headers=admin_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["enabled"] is True
        assert data["schedule"] == "Every Sunday at 09:00"
        assert data["scheduleConfig"] == {"type": "weekly", "dayOfWeek": 0, "hour": 9, "intervalDays": 7}
        assert data["totalEmailsSent"] == 0
        assert data["lastRunTime"] is None

    @pytest.mark.asyncio
    async def test_update_config(self, client, admin_headers):
        response = await client.put(
            "/api/admin/scheduler/config",
            json={"type": "interval", "intervalDays": 3, "hour": 18, "minute": 15},
            headers=admin_headers,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["message"] == "Schedule updated: Every 3 day(s) at 18:00"
        assert data["status"]["scheduleConfig"]["intervalDays"] == 3

    @pytest.mark.asyncio
    async def test_invalid_config_rejected_with_fields(self, client, admin_headers):
        response = await client.put(
            "/api/admin/scheduler/config",
            json={"dayOfWeek": 7, "hour": 24},
            headers=admin_headers,
        )
        status = await client.get("/api/admin/scheduler/status", headers=admin_headers)

        assert response.status_code == 400
        fields = {item["field"] for item in response.json()["error"]["fields"]}
        assert fields == {"dayOfWeek", "hour"}
        assert status.json()["scheduleConfig"]["hour"] == 9

    @pytest.mark.asyncio
    async def test_valid_fields_not_applied_beside_invalid_one(self, client, admin_headers):
        response = await client.put(
            "/api/admin/scheduler/config",
            json={"hour": 18, "dayOfWeek": 7},
            headers=admin_headers,
        )
        status = await client.get("/api/admin/scheduler/status", headers=admin_headers)

        assert response.status_code == 400
        assert [item["field"] for item in response.json()["error"]["fields"]] == ["dayOfWeek"]
        assert status.json()["scheduleConfig"]["hour"] == 9
        assert status.json()["schedule"] == "Every Sunday at 09:00"

    @pytest.mark.asyncio
    async def test_enable_disable(self, client, admin_headers):
        disabled = await client.post("/api/admin/scheduler/disable", headers=admin_headers)
        enabled = await client.post("/api/admin/scheduler/enable", headers=admin_headers)

        assert disabled.json()["status"]["enabled"] is False
        assert disabled.json()["message"] == "Email scheduler disabled"
        assert enabled.json()["status"]["enabled"] is True

    @pytest.mark.asyncio
    async def test_options(self, client, admin_headers):
        response = await client.get("/api/admin/scheduler/options", headers=admin_headers)

        assert response.status_code == 200
        assert response.json()["intervalDays"] == {"min": 1, "max": 365}

    @pytest.mark.asyncio
    async def test_trigger_without_programs_is_skipped(self, client, admin_headers):
        response = await client.post("/api/admin/scheduler/trigger", headers=admin_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["status"] == "skipped"
        assert data["message"] == "No active programs found"

    @pytest.mark.asyncio
    async def test_donor_forbidden(self, client, donor_headers):
        response = await client.post("/api/admin/scheduler/trigger", headers=donor_headers)

        assert response.status_code == 403
