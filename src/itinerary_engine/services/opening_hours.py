"""
Evaluation of weekly-recurring venue opening hours.

Periods use the maps-provider convention (day 0 = Sunday). All checks are done in the
trip's local civil time; a period is projected onto concrete calendar days and compared
as an open-inclusive, close-exclusive interval. Malformed periods are treated as closed.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta
from typing import Iterator, Optional
from zoneinfo import ZoneInfo

from ..config import settings
from ..models.domain import OpeningHours, OpeningHoursPeriod

MINUTES_PER_DAY = 24 * 60


def zone(tz: str | ZoneInfo) -> ZoneInfo:
    return tz if isinstance(tz, ZoneInfo) else ZoneInfo(tz)


def to_local(instant: datetime, tz: str | ZoneInfo) -> datetime:
    """Convert an instant to local civil time. Naive datetimes are taken as already local."""
    tzinfo = zone(tz)
    if instant.tzinfo is None:
        return instant.replace(tzinfo=tzinfo)
    return instant.astimezone(tzinfo)


def maps_weekday(day: date) -> int:
    """Day of week with Sunday as 0."""
    return (day.weekday() + 1) % 7


def _is_usable(period: OpeningHoursPeriod) -> bool:
    if period.open is None or not period.open.is_usable:
        return False
    return period.close is None or period.close.is_usable


def _span_days(period: OpeningHoursPeriod) -> int:
    """Number of calendar days between the open and the close point."""
    days = (period.close.day - period.open.day) % 7
    open_minute = period.open.hour * 60 + period.open.minute
    close_minute = period.close.hour * 60 + period.close.minute
    if days == 0 and close_minute <= open_minute:
        # close must be strictly after open on the week-long timeline
        days = 7
    return days


def _at(day: date, hour: int, minute: int, tzinfo: ZoneInfo) -> datetime:
    return datetime.combine(day, time(0, 0), tzinfo=tzinfo) + timedelta(hours=hour, minutes=minute)


def period_bounds(period: OpeningHoursPeriod, anchor: date, tzinfo: ZoneInfo) -> tuple[datetime, datetime]:
    """Absolute open/close instants of a closed period opening on `anchor`."""
    opens = _at(anchor, period.open.hour, period.open.minute, tzinfo)
    closes = _at(anchor + timedelta(days=_span_days(period)), period.close.hour, period.close.minute, tzinfo)
    return opens, closes


def _periods_covering(hours: OpeningHours, local: datetime) -> Iterator[tuple[OpeningHoursPeriod, date]]:
    """Yield (period, open date) for every closed period that can contain the local day.

    A period matches on its open day, and an overnight period also matches on the days it
    extends into (the tail of last night's period).
    """
    weekday = maps_weekday(local.date())
    for period in hours.periods:
        if not _is_usable(period) or period.close is None:
            continue
        for offset in range(_span_days(period) + 1):
            if (period.open.day + offset) % 7 == weekday:
                yield period, local.date() - timedelta(days=offset)


def is_open_at(hours: Optional[OpeningHours], instant: datetime, tz: str | ZoneInfo) -> bool:
    """Return True if the venue is open at `instant`."""
    if hours is None or not hours.periods:
        return False
    if hours.is_always_open:
        return True

    tzinfo = zone(tz)
    local = to_local(instant, tzinfo)
    for period, anchor in _periods_covering(hours, local):
        opens, closes = period_bounds(period, anchor, tzinfo)
        if opens <= local < closes:
            return True
    return False


def covers_entire_window(
    hours: Optional[OpeningHours],
    window_start: datetime,
    window_end: datetime,
    tz: str | ZoneInfo,
) -> bool:
    """Return True if one single period contains the whole [window_start, window_end) span."""
    if hours is None or not hours.periods or window_end < window_start:
        return False
    if hours.is_always_open:
        return True

    tzinfo = zone(tz)
    local_start = to_local(window_start, tzinfo)
    local_end = to_local(window_end, tzinfo)
    for period, anchor in _periods_covering(hours, local_start):
        opens, closes = period_bounds(period, anchor, tzinfo)
        if opens <= local_start < closes and local_end <= closes:
            return True
    return False


def next_opening_after(
    hours: Optional[OpeningHours],
    instant: datetime,
    tz: str | ZoneInfo,
    horizon_days: int | None = None,
) -> Optional[datetime]:
    """Earliest open instant strictly after `instant` within the horizon, or None."""
    if hours is None or not hours.periods:
        return None

    tzinfo = zone(tz)
    local = to_local(instant, tzinfo)
    if hours.is_always_open:
        return local

    horizon = horizon_days if horizon_days is not None else settings.next_opening_horizon_days
    found: Optional[datetime] = None
    for offset in range(horizon + 1):
        day = local.date() + timedelta(days=offset)
        weekday = maps_weekday(day)
        for period in hours.periods:
            if not _is_usable(period) or period.open.day != weekday:
                continue
            opens = _at(day, period.open.hour, period.open.minute, tzinfo)
            if opens > local and (found is None or opens < found):
                found = opens
        if found is not None:
            break
    return found
