"""
Schedule policy for the progress-report job.

Everything here is pure: the scheduler service owns the mutable state and asks
these functions when to fire next.

Days of the week are numbered 0-6 starting at Sunday, matching cron.
"""
from dataclasses import asdict, dataclass, replace
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from donation_portal.core.errors import ValidationError

DAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]

WEEKLY = "weekly"
INTERVAL = "interval"
SCHEDULE_TYPES = (WEEKLY, INTERVAL)

MIN_INTERVAL_DAYS = 1
MAX_INTERVAL_DAYS = 365


@dataclass(frozen=True)
class ScheduleConfig:
    type: str = WEEKLY
    day_of_week: int = 0
    hour: int = 9
    interval_days: int = 7

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def validate_schedule_update(update: Dict[str, Any]) -> List[Dict[str, str]]:
    """Check each supplied field on its own; returns one {field, message} per problem"""
    errors = []

    if update.get("type") is not None and update["type"] not in SCHEDULE_TYPES:
        errors.append({"field": "type", "message": 'Invalid schedule type. Must be "weekly" or "interval"'})

    day = update.get("day_of_week")
    if day is not None and not (_is_int(day) and 0 <= day <= 6):
        errors.append({"field": "dayOfWeek", "message": "dayOfWeek must be 0-6 (0=Sunday)"})

    hour = update.get("hour")
    if hour is not None and not (_is_int(hour) and 0 <= hour <= 23):
        errors.append({"field": "hour", "message": "hour must be 0-23"})

    interval = update.get("interval_days")
    if interval is not None and not (_is_int(interval) and MIN_INTERVAL_DAYS <= interval <= MAX_INTERVAL_DAYS):
        errors.append({"field": "intervalDays", "message": "intervalDays must be 1-365"})

    return errors


def apply_schedule_update(config: ScheduleConfig, update: Dict[str, Any]) -> ScheduleConfig:
    """
    Return a new config with the supplied fields merged in.

    Raises ValidationError listing every invalid field; the input config is
    never modified. `minute` is accepted and ignored because runs are
    scheduled on the hour.
    """
    errors = validate_schedule_update(update)
    if errors:
        raise ValidationError("Invalid schedule configuration", fields=errors)

    changes = {
        field: update[field]
        for field in ("type", "day_of_week", "hour", "interval_days")
        if update.get(field) is not None
    }
    return replace(config, **changes)


def cron_expression(config: ScheduleConfig) -> str:
    """Cron equivalent, for display; interval mode is a daily slot gated by the interval"""
    if config.type == WEEKLY:
        return f"0 {config.hour} * * {config.day_of_week}"
    return f"0 {config.hour} * * *"


def describe(config: ScheduleConfig) -> str:
    time_str = f"{config.hour:02d}:00"
    if config.type == WEEKLY:
        return f"Every {DAY_NAMES[config.day_of_week]} at {time_str}"
    return f"Every {config.interval_days} day(s) at {time_str}"


def cron_weekday(moment: datetime) -> int:
    """Python weekday (Monday=0) to cron weekday (Sunday=0)"""
    return (moment.weekday() + 1) % 7


def _at_hour(moment: datetime, hour: int) -> datetime:
    return moment.replace(hour=hour, minute=0, second=0, microsecond=0)


def next_daily_slot(now: datetime, hour: int) -> datetime:
    candidate = _at_hour(now, hour)
    if candidate <= now:
        candidate = _at_hour(now + timedelta(days=1), hour)
    return candidate


def next_fire_time(
    config: ScheduleConfig,
    now: datetime,
    last_interval_run: Optional[datetime] = None,
) -> datetime:
    """
    Next time the report job should run, strictly after `now`.

    weekly:   the configured weekday at the configured hour, this week if the
              slot is still ahead, otherwise next week.
    interval: the configured hour on the day `interval_days` after the last
              interval run. Anchoring to the hour of that day absorbs any
              sub-day drift in when the previous run actually happened. An
              overdue slot collapses to the next daily slot. Without a
              previous run: tomorrow at the configured hour.
    """
    if config.type == WEEKLY:
        days_ahead = (config.day_of_week - cron_weekday(now)) % 7
        candidate = _at_hour(now + timedelta(days=days_ahead), config.hour)
        if candidate <= now:
            candidate = _at_hour(now + timedelta(days=days_ahead + 7), config.hour)
        return candidate

    if last_interval_run is None:
        return _at_hour(now + timedelta(days=1), config.hour)

    if last_interval_run.tzinfo is not None and now.tzinfo is not None:
        last_interval_run = last_interval_run.astimezone(now.tzinfo)
    candidate = _at_hour(last_interval_run + timedelta(days=config.interval_days), config.hour)
    if candidate <= now:
        candidate = next_daily_slot(now, config.hour)
    return candidate
