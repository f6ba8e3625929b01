"""
Recurrence engine.

Computes the next run instant of a cadence. Every function here is pure and
returns an instant strictly later than ``now``. The result keeps the timezone
of ``now``; calendar cadences are evaluated on wall-clock time.
"""

from datetime import datetime, timedelta

from croniter import croniter

from outbox_scheduler.domain.cadence import (
    BaseCadence,
    DailyCadence,
    HourlyCadence,
    IntervalCadence,
    WeeklyCadence,
)

# croniter day-of-week field; 1 is Monday
WEEKLY_CRON_WEEKDAY = 1


def _cron_next(expression: str, base: datetime) -> datetime:
    return croniter(expression, base).get_next(datetime)


def next_interval_run(cadence: IntervalCadence, now: datetime) -> datetime:
    return now + timedelta(minutes=cadence.minutes)


def next_hourly_run(cadence: HourlyCadence, now: datetime) -> datetime:
    return _cron_next(f"{cadence.minute} * * * *", now)


def next_daily_run(cadence: DailyCadence, now: datetime) -> datetime:
    return _cron_next(f"{cadence.minute} {cadence.hour} * * *", now)


def next_weekly_run(cadence: WeeklyCadence, now: datetime) -> datetime:
    """
    Next Monday at ``hour:minute``, never today.

    Searching from the last second of the current day skips any occurrence
    left today, so a Monday always rolls over to the following week.
    """
    end_of_today = now.replace(hour=23, minute=59, second=59, microsecond=0)
    return _cron_next(f"{cadence.minute} {cadence.hour} * * {WEEKLY_CRON_WEEKDAY}", end_of_today)


def next_run(cadence: BaseCadence, now: datetime) -> datetime:
    """
    Compute when a job with the given cadence should run next.

    Args:
        cadence: Any of the supported cadence kinds.
        now: The instant to compute from, usually the current time.

    Returns:
        datetime: The next run instant, strictly after ``now``.

    Raises:
        ValueError: If the cadence kind is not supported.
    """
    if isinstance(cadence, IntervalCadence):
        return next_interval_run(cadence, now)
    if isinstance(cadence, HourlyCadence):
        return next_hourly_run(cadence, now)
    if isinstance(cadence, DailyCadence):
        return next_daily_run(cadence, now)
    if isinstance(cadence, WeeklyCadence):
        return next_weekly_run(cadence, now)
    raise ValueError(f"Unsupported cadence type: {type(cadence).__name__}")
