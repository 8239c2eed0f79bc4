"""
In-process scheduler for the progress-report job.

One SchedulerService is created at startup and owns the schedule config, the
asyncio timer task and the run-tracking fields. The timer sleeps until
next_fire_time(); every config change rebuilds it, and the old task is
cancelled and awaited before the new one starts so two timers never overlap.
Each fire runs the job in its own task, so a rebuild only interrupts the
sleep and never a report batch that is already sending.
"""
from datetime import datetime
from typing import Any, Callable, Dict, Optional, Set
from zoneinfo import ZoneInfo
import asyncio

import structlog

from donation_portal.schemas.scheduler import (
    DayOption,
    IntervalRange,
    ScheduleConfigOut,
    ScheduleOption,
    SchedulerOptions,
    SchedulerStatus,
)
from donation_portal.services.progress_report import STATUS_ERROR, ProgressReportJob, ReportRunResult
from donation_portal.services.schedule import (
    DAY_NAMES,
    INTERVAL,
    MAX_INTERVAL_DAYS,
    MIN_INTERVAL_DAYS,
    ScheduleConfig,
    apply_schedule_update,
    cron_expression,
    describe,
    next_daily_slot,
    next_fire_time,
)

logger = structlog.get_logger(__name__)


class SchedulerService:
    """Owns the report schedule, its timer and the last-run bookkeeping"""

    def __init__(
        self,
        job: ProgressReportJob,
        config: Optional[ScheduleConfig] = None,
        enabled: bool = True,
        timezone: str = "UTC",
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.job = job
        self.config = config or ScheduleConfig()
        self.enabled = enabled
        self.tz = ZoneInfo(timezone)
        self._clock = clock or (lambda: datetime.now(self.tz))

        self.last_run_time: Optional[datetime] = None
        self.last_run_status: Optional[str] = None
        self.total_emails_sent = 0
        self.last_interval_run: Optional[datetime] = None

        self._task: Optional[asyncio.Task] = None
        self._started = False
        self._last_slot: Optional[datetime] = None
        self._run_lock = asyncio.Lock()
        self._runs: Set[asyncio.Task] = set()

    # ========================================================================
    # Timer lifecycle
    # ========================================================================

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def now(self) -> datetime:
        return self._clock()

    async def start(self):
        self._started = True
        await self.rebuild()
        logger.info("Report scheduler started", schedule=describe(self.config), enabled=self.enabled)

    async def stop(self):
        self._started = False
        await self._cancel_timer()
        if self._runs:
            await asyncio.wait(self._runs)
        logger.info("Report scheduler stopped")

    async def rebuild(self):
        """Replace the timer so it follows the current config"""
        await self._cancel_timer()
        if not self._started:
            return
        self._last_slot = None
        self._task = asyncio.create_task(self._timer_loop(), name="progress-report-timer")
        logger.info(
            "Report scheduler timer rebuilt",
            cron=cron_expression(self.config),
            next_run=self.next_run_estimate().isoformat(),
        )

    async def _cancel_timer(self):
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _timer_loop(self):
        while True:
            now = self.now()
            after = max(now, self._last_slot) if self._last_slot else now
            fire_at = self._next_timer_slot(after)
            await asyncio.sleep(max((fire_at - now).total_seconds(), 0))
            self._last_slot = fire_at
            run = asyncio.create_task(self.run_scheduled(), name="progress-report-run")
            self._runs.add(run)
            run.add_done_callback(self._runs.discard)
            # cancelling the timer leaves the run itself alone
            await asyncio.shield(run)

    def _next_timer_slot(self, after: datetime) -> datetime:
        # an interval schedule that has never run fires at its next daily slot, which may be today
        if self.config.type == INTERVAL and self.last_interval_run is None:
            return next_daily_slot(after, self.config.hour)
        return next_fire_time(self.config, after, self.last_interval_run)

    # ========================================================================
    # Runs
    # ========================================================================

    async def run_scheduled(self) -> Optional[ReportRunResult]:
        """Timer callback: honours the enabled flag and records interval runs"""
        if not self.enabled:
            logger.info("Scheduled progress report skipped: scheduler disabled")
            return None

        if self.config.type == INTERVAL:
            self.last_interval_run = self.now()

        return await self._execute(trigger="scheduled")

    async def trigger(self) -> ReportRunResult:
        """Manual run: ignores the enabled flag and interval gating"""
        return await self._execute(trigger="manual")

    async def _execute(self, trigger: str) -> ReportRunResult:
        async with self._run_lock:
            logger.info("Running progress report job", trigger=trigger)
            try:
                result = await self.job.run()
            except Exception as e:
                logger.error("Progress report job crashed", trigger=trigger, error=str(e))
                result = ReportRunResult(status=STATUS_ERROR, message="Progress report job crashed", error=str(e))

            self.last_run_time = self.now()
            self.last_run_status = result.status
            self.total_emails_sent += result.sent_count
            return result

    # ========================================================================
    # Configuration
    # ========================================================================

    def enable(self):
        self.enabled = True
        logger.info("Report scheduler enabled")

    def disable(self):
        self.enabled = False
        logger.info("Report scheduler disabled")

    async def update_config(self, update: Dict[str, Any]) -> SchedulerStatus:
        """Validate and merge a partial config, then rebuild the timer"""
        self.config = apply_schedule_update(self.config, update)
        logger.info("Report schedule updated", config=self.config.to_dict(), schedule=describe(self.config))
        await self.rebuild()
        return self.status()

    def next_run_estimate(self) -> datetime:
        return next_fire_time(self.config, self.now(), self.last_interval_run)

    def status(self) -> SchedulerStatus:
        return SchedulerStatus(
            enabled=self.enabled,
            schedule=describe(self.config),
            cron_expression=cron_expression(self.config),
            schedule_config=ScheduleConfigOut(
                type=self.config.type,
                day_of_week=self.config.day_of_week,
                hour=self.config.hour,
                interval_days=self.config.interval_days,
            ),
            last_run_time=self.last_run_time,
            last_run_status=self.last_run_status,
            total_emails_sent=self.total_emails_sent,
            next_run_estimate=self.next_run_estimate(),
        )

    @staticmethod
    def options() -> SchedulerOptions:
        """Choices offered by the admin schedule editor"""
        return SchedulerOptions(
            types=[
                ScheduleOption(value="weekly", label="Weekly (specific day)"),
                ScheduleOption(value="interval", label="Every N days"),
            ],
            days=[DayOption(value=index, label=name) for index, name in enumerate(DAY_NAMES)],
            hours=[DayOption(value=hour, label=f"{hour:02d}:00") for hour in range(24)],
            interval_days=IntervalRange(min=MIN_INTERVAL_DAYS, max=MAX_INTERVAL_DAYS),
        )
