"""Helpers over the placements of a single local day."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta
from typing import Iterable, Optional, Sequence
from zoneinfo import ZoneInfo

from ...config import settings
from ...models.domain import ActivityCandidate, ScheduledActivity, SlotKind, TimeSlot
from ..opening_hours import to_local
from .estimator import estimate_minutes

DAY_PART_KINDS = (SlotKind.MORNING, SlotKind.AFTERNOON, SlotKind.EVENING)


def local_day_start(day: date, tzinfo: ZoneInfo) -> datetime:
    return datetime.combine(day, time(0, 0), tzinfo=tzinfo)


def day_slots(day: date, tzinfo: ZoneInfo, boundaries: Sequence[int] | None = None) -> list[TimeSlot]:
    """Morning/afternoon/evening windows of a local day."""
    hours = tuple(boundaries or settings.day_part_hours)
    midnight = local_day_start(day, tzinfo)
    return [
        TimeSlot(
            start=midnight + timedelta(hours=hours[index]),
            end=midnight + timedelta(hours=hours[index + 1]),
            kind=kind,
        )
        for index, kind in enumerate(DAY_PART_KINDS)
    ]


def activities_on_day(records: Iterable[ScheduledActivity], day: date, tzinfo: ZoneInfo) -> list[ScheduledActivity]:
    """Placed records starting on the local day, ordered by start time."""
    placed = [
        record
        for record in records
        if record.is_placed and to_local(record.start_time, tzinfo).date() == day
    ]
    return sorted(placed, key=lambda record: record.start_time)


def latest_ending_by(day_activities: Sequence[ScheduledActivity], instant: datetime) -> Optional[ScheduledActivity]:
    """Latest placement ending on or before `instant`."""
    previous: Optional[ScheduledActivity] = None
    for record in day_activities:
        if record.end_time <= instant and (previous is None or record.end_time > previous.end_time):
            previous = record
    return previous


def conflicts_with_day(
    activity: ActivityCandidate,
    start: datetime,
    end: datetime,
    day_activities: Sequence[ScheduledActivity],
) -> bool:
    """True if [start, end) overlaps a placement or violates a transit buffer around it."""
    for other in day_activities:
        if other.activity.id == activity.id:
            continue
        if start < other.end_time and end > other.start_time:
            return True
        if other.end_time <= start:
            buffer = estimate_minutes(other.activity.location, activity.location)
            if other.end_time + timedelta(minutes=buffer) > start:
                return True
        elif other.start_time >= end:
            buffer = estimate_minutes(activity.location, other.activity.location)
            if end + timedelta(minutes=buffer) > other.start_time:
                return True
    return False


def sort_by_start(records: Iterable[ScheduledActivity]) -> list[ScheduledActivity]:
    """Ascending by start time; unplaced records last in input order."""
    return sorted(
        records,
        key=lambda record: (record.start_time is None, record.start_time.timestamp() if record.start_time else 0.0),
    )


def refresh_transit_times(records: Sequence[ScheduledActivity], tzinfo: ZoneInfo) -> None:
    """Recompute transit from the preceding placement of the same day; first of day gets 0."""
    days: dict[date, list[ScheduledActivity]] = {}
    for record in records:
        if record.is_placed:
            days.setdefault(to_local(record.start_time, tzinfo).date(), []).append(record)
        else:
            record.transit_time_from_previous = 0
    for day_records in days.values():
        day_records.sort(key=lambda record: record.start_time)
        day_records[0].transit_time_from_previous = 0
        for previous, current in zip(day_records, day_records[1:]):
            current.transit_time_from_previous = estimate_minutes(
                previous.activity.location, current.activity.location
            )
