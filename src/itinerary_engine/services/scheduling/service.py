"""Rebalance orchestration and single-activity insertion."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Optional, Sequence

from ...errors import TransitLookupError
from ...models.domain import ActivityStatus, ScheduledActivity, ScheduleResult, TripWindow
from ...schemas.scheduling import (
    ScheduleRequest,
    ScheduleResponse,
    payload_to_record,
    result_to_response,
    trip_window_from_request,
)
from ..opening_hours import is_open_at, next_opening_after, to_local
from .estimator import estimate_minutes
from .meals import schedule_meals
from .placer import place_activities, placement_priority
from .timeline import activities_on_day, latest_ending_by, refresh_transit_times, sort_by_start

logger = logging.getLogger(__name__)

ACTIVITY_HOURS_PER_DAY = 10
DEFAULT_TRANSIT_MINUTES = 30
BUFFER_MINUTES = 15

GENERIC_CLOSED_WARNING = (
    "This activity might be closed during the scheduled time. Please verify the opening hours."
)


def format_duration(minutes: int) -> str:
    """Human-readable duration, e.g. "1 day and 2 hours and 30 minutes"."""
    days, remainder = divmod(max(int(minutes), 0), 24 * 60)
    hours, mins = divmod(remainder, 60)
    parts = []
    if days:
        parts.append(f"{days} day{'s' if days != 1 else ''}")
    if hours:
        parts.append(f"{hours} hour{'s' if hours != 1 else ''}")
    if mins or not parts:
        parts.append(f"{mins} minute{'s' if mins != 1 else ''}")
    return " and ".join(parts)


def closed_warning(next_opening: Optional[datetime]) -> str:
    if next_opening is None:
        return GENERIC_CLOSED_WARNING
    return f"Closed at the scheduled time; next opens at {next_opening:%H:%M} on {next_opening:%A, %b %d}."


def unplaced_warning(record: ScheduledActivity) -> str:
    return (
        f"Could not find a time slot for this activity "
        f"({format_duration(record.activity.duration_minutes)}) within the trip dates and opening hours."
    )


def available_minutes(trip: TripWindow) -> int:
    return trip.day_count * ACTIVITY_HOURS_PER_DAY * 60


def needed_minutes(records: Sequence[ScheduledActivity]) -> int:
    return sum(
        record.activity.duration_minutes
        + (record.transit_time_from_previous or DEFAULT_TRANSIT_MINUTES)
        + BUFFER_MINUTES
        for record in records
    )


def _check_opening_hours(record: ScheduledActivity, trip: TripWindow) -> None:
    hours = record.activity.opening_hours
    if is_open_at(hours, record.start_time, trip.tz):
        record.warning = None
        return
    record.warning = closed_warning(next_opening_after(hours, record.start_time, trip.tz))


def rebalance_schedule(records: Sequence[ScheduledActivity], trip: TripWindow) -> ScheduleResult:
    """Re-run the full placement pass over the trip's planned activities.

    Only records with status `planned` take part; they are reset, placed (meals first, then
    the rest), re-checked against opening hours and returned sorted by start time, with
    unplaced records last in their input order.
    """
    planned = [record for record in records if record.status == ActivityStatus.PLANNED]
    for record in planned:
        record.reset()

    ordered = placement_priority(planned)
    meals = schedule_meals(ordered, trip)
    activities = place_activities(ordered, trip)
    refresh_transit_times(planned, trip.tz)

    for record in planned:
        if record.is_placed:
            _check_opening_hours(record, trip)
        else:
            record.warning = unplaced_warning(record)

    final = sort_by_start(planned)
    scheduled = [record for record in final if record.is_placed]
    unscheduled = [record for record in final if not record.is_placed]
    metadata = {
        "days": trip.day_count,
        "timezone": trip.timezone,
        "meals_placed": meals,
        "activities_placed": activities,
        "scheduled": len(scheduled),
        "unscheduled": len(unscheduled),
        "ignored": len(records) - len(planned),
        "available_minutes": available_minutes(trip),
        "needed_minutes": needed_minutes(planned),
    }
    logger.info(
        f"Rebalanced {len(planned)} activities over {trip.day_count} day(s): "
        f"{len(scheduled)} scheduled, {len(unscheduled)} unscheduled"
    )
    return ScheduleResult(scheduled=scheduled, unscheduled=unscheduled, metadata=metadata)


def rebalance_from_request(payload: ScheduleRequest) -> ScheduleResponse:
    trip = trip_window_from_request(payload)
    records = [payload_to_record(activity) for activity in payload.activities]
    return result_to_response(rebalance_schedule(records, trip))


async def schedule_single_activity(
    record: ScheduledActivity,
    start_time: datetime,
    trip: TripWindow,
    day_records: Sequence[ScheduledActivity],
    resolver,
) -> ScheduledActivity:
    """Pin `record` at `start_time` and annotate it with precise transit and warnings.

    Transit comes from `resolver.get_transit_time` for the latest activity that ends before
    the pinned start on the same day; a failed lookup falls back to the walking estimate.
    """
    tzinfo = trip.tz
    start = to_local(start_time, tzinfo)
    end = start + timedelta(minutes=record.activity.duration_minutes)
    others = activities_on_day((other for other in day_records if other is not record), start.date(), tzinfo)
    previous = latest_ending_by(others, start)

    transit = 0
    if previous is not None:
        try:
            transit = await resolver.get_transit_time(
                previous.activity.location, record.activity.location, previous.end_time
            )
        except TransitLookupError as exc:
            transit = estimate_minutes(previous.activity.location, record.activity.location)
            logger.warning(f"Transit lookup failed for {previous.id} -> {record.id}, using estimate: {exc}")

    record.place(start, end, transit)

    warnings: list[str] = []
    if not trip.start_date <= start.date() <= trip.end_date:
        warnings.append("Scheduled outside the trip dates.")
    if not is_open_at(record.activity.opening_hours, start, tzinfo):
        warnings.append(closed_warning(next_opening_after(record.activity.opening_hours, start, tzinfo)))
    if previous is not None:
        gap = int((start - to_local(previous.end_time, tzinfo)).total_seconds() // 60)
        if gap < transit:
            warnings.append(
                f"Only {gap} minutes after {previous.activity.name}, "
                f"but getting there takes about {transit} minutes."
            )
    record.warning = " ".join(warnings) or None
    return record
