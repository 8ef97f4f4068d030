"""Greedy day-by-day, activity-by-activity placement of non-meal activities."""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from typing import Optional, Sequence
from zoneinfo import ZoneInfo

from ...config import settings
from ...models.domain import PlacementScore, ScheduledActivity, TripWindow
from ..opening_hours import covers_entire_window
from .estimator import estimate_minutes, round_up_to_granularity
from .scoring import score_placement
from .timeline import activities_on_day, conflicts_with_day, day_slots, latest_ending_by

logger = logging.getLogger(__name__)


def placement_priority(records: Sequence[ScheduledActivity]) -> list[ScheduledActivity]:
    """Must-see first, then higher rating, then input order."""
    return sorted(
        records,
        key=lambda record: (
            not record.activity.is_must_see,
            -(record.activity.rating if record.activity.rating is not None else 0.0),
        ),
    )


def find_best_placement(
    record: ScheduledActivity,
    day: date,
    tzinfo: ZoneInfo,
    day_activities: Sequence[ScheduledActivity],
    granularity_minutes: int | None = None,
) -> Optional[PlacementScore]:
    """Search every day-part at fixed granularity and return the best feasible placement."""
    step = timedelta(minutes=granularity_minutes or settings.slot_granularity_minutes)
    activity = record.activity
    duration = timedelta(minutes=activity.duration_minutes)
    best: Optional[PlacementScore] = None

    for slot in day_slots(day, tzinfo):
        candidate = slot.start
        while candidate < slot.end:
            previous = latest_ending_by(day_activities, candidate)
            transit = estimate_minutes(previous.activity.location, activity.location) if previous else 0
            start = round_up_to_granularity(candidate + timedelta(minutes=transit), granularity_minutes)
            end = start + duration

            if (
                end <= slot.end
                and not conflicts_with_day(activity, start, end, day_activities)
                and covers_entire_window(activity.opening_hours, start, end, tzinfo)
            ):
                window_start = previous.end_time if previous else candidate
                score = score_placement(activity, start, end, transit, day_activities, window_start)
                if score.is_feasible and (best is None or score.score > best.score):
                    best = score
            candidate += step

    return best


def place_activities(records: Sequence[ScheduledActivity], trip: TripWindow) -> int:
    """Place every unplaced non-restaurant record, retrying unplaced ones on later days.

    `records` must already be in placement priority order; it is mutated in place.
    Returns the number of activities placed.
    """
    tzinfo = trip.tz
    placed = 0
    for day in trip.days():
        for record in records:
            if record.is_placed or record.activity.is_restaurant:
                continue
            day_activities = activities_on_day(records, day, tzinfo)
            best = find_best_placement(record, day, tzinfo, day_activities)
            if best is None:
                logger.debug(f"No feasible slot for {record.id} on {day}")
                continue
            record.place(best.start, best.end, best.transit_minutes)
            placed += 1
            logger.debug(f"Placed {record.id} at {best.start:%Y-%m-%d %H:%M} (score {best.score:.3f})")

    remaining = sum(1 for record in records if not record.is_placed and not record.activity.is_restaurant)
    logger.info(f"Placed {placed} activities; {remaining} could not be placed")
    return placed
