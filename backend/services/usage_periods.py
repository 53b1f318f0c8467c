"""
Usage period windows.

Counters are kept per window: a daily window starts at local midnight in
the configured reset timezone, a monthly window at local midnight on the
configured reset day of the month.  All returned datetimes are UTC.
"""

from datetime import UTC, datetime, timedelta
from zoneinfo import ZoneInfo

from core.domain.usage import UsagePeriod


def _as_utc(now: datetime) -> datetime:
    if now.tzinfo is None:
        return now.replace(tzinfo=UTC)
    return now.astimezone(UTC)


def _local_midnight(year: int, month: int, day: int, tz: ZoneInfo) -> datetime:
    return datetime(year, month, day, tzinfo=tz).astimezone(UTC)


def period_start(
    period: UsagePeriod,
    now: datetime,
    tz: ZoneInfo = ZoneInfo("UTC"),
    monthly_reset_day: int = 1,
) -> datetime:
    """
    Start of the window containing *now*.

    Args:
        period: Daily or monthly
        now: Reference time; naive values are taken as UTC
        tz: Timezone whose midnight is the boundary
        monthly_reset_day: Day of month (1-28) on which monthly windows begin

    Returns:
        Window start as an aware UTC datetime
    """
    period = UsagePeriod(period)
    local = _as_utc(now).astimezone(tz)

    if period is UsagePeriod.DAILY:
        return _local_midnight(local.year, local.month, local.day, tz)

    if local.day >= monthly_reset_day:
        return _local_midnight(local.year, local.month, monthly_reset_day, tz)
    if local.month == 1:
        return _local_midnight(local.year - 1, 12, monthly_reset_day, tz)
    return _local_midnight(local.year, local.month - 1, monthly_reset_day, tz)


def next_reset(
    period: UsagePeriod,
    now: datetime,
    tz: ZoneInfo = ZoneInfo("UTC"),
    monthly_reset_day: int = 1,
) -> datetime:
    """Start of the window after the one containing *now* (UTC)."""
    period = UsagePeriod(period)
    start = period_start(period, now, tz, monthly_reset_day).astimezone(tz)

    if period is UsagePeriod.DAILY:
        # Step past the day in local time so DST changes don't shift the boundary
        following = (start + timedelta(days=1, hours=12)).date()
        return _local_midnight(following.year, following.month, following.day, tz)

    if start.month == 12:
        return _local_midnight(start.year + 1, 1, monthly_reset_day, tz)
    return _local_midnight(start.year, start.month + 1, monthly_reset_day, tz)
