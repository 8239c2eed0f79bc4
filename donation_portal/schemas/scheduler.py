from datetime import datetime
from typing import List, Optional

from donation_portal.schemas.common import APIModel


class ScheduleConfigUpdate(APIModel):
    """Partial schedule update; ranges are checked by the scheduler service"""
    type: Optional[str] = None
    day_of_week: Optional[int] = None
    hour: Optional[int] = None
    minute: Optional[int] = None
    interval_days: Optional[int] = None


class ScheduleConfigOut(APIModel):
    type: str
    day_of_week: int
    hour: int
    interval_days: int


class SchedulerStatus(APIModel):
    enabled: bool
    schedule: str
    cron_expression: str
    schedule_config: ScheduleConfigOut
    last_run_time: Optional[datetime]
    last_run_status: Optional[str]
    total_emails_sent: int
    next_run_estimate: Optional[datetime]


class ScheduleOption(APIModel):
    value: str
    label: str


class DayOption(APIModel):
    value: int
    label: str


class IntervalRange(APIModel):
    min: int
    max: int


class SchedulerOptions(APIModel):
    types: List[ScheduleOption]
    days: List[DayOption]
    hours: List[DayOption]
    interval_days: IntervalRange


class DonorReportResult(APIModel):
    user_id: str
    email: Optional[str]
    status: str
    error: Optional[str] = None


class ReportRunResponse(APIModel):
    success: bool
    status: str
    message: str
    sent_count: int
    failed_count: int
    total_donors: int
    active_programs: int
    results: List[DonorReportResult]
    error: Optional[str] = None


class SchedulerControlResponse(APIModel):
    message: str
    status: SchedulerStatus
