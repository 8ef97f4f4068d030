"""Placement of restaurant activities into breakfast/lunch/dinner windows."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional, Sequence

from ...models.domain import ScheduledActivity, SlotKind, TimeSlot, TripWindow
from ..opening_hours import covers_entire_window
from .estimator import estimate_minutes, round_up_to_granularity
from .timeline import activities_on_day, conflicts_with_day, local_day_start

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class MealWindow:
    name: str
    start_minute: int
    end_minute: int
    duration_minutes: int


MEAL_WINDOWS: tuple[MealWindow, ...] = (
    MealWindow("breakfast", 8 * 60, 11 * 60 + 30, 60),
    MealWindow("lunch", 11 * 60 + 30, 16 * 60, 60),
    MealWindow("dinner", 17 * 60, 22 * 60, 60),
)


def meal_slot(window: MealWindow, day, tzinfo) -> TimeSlot:
    midnight = local_day_start(day, tzinfo)
    return TimeSlot(
        start=midnight + timedelta(minutes=window.start_minute),
        end=midnight + timedelta(minutes=window.end_minute),
        kind=SlotKind.MEAL,
    )


def schedule_meals(
    records: Sequence[ScheduledActivity],
    trip: TripWindow,
    windows: Sequence[MealWindow] = MEAL_WINDOWS,
) -> int:
    """Fill each day's meal windows with the nearest eligible unplaced restaurant.

    `records` must already be in placement priority order; it is mutated in place.
    Returns the number of meals placed.
    """
    tzinfo = trip.tz
    placed = 0
    for day in trip.days():
        previous: Optional[ScheduledActivity] = None
        day_records = activities_on_day(records, day, tzinfo)
        if day_records:
            previous = day_records[-1]

        for window in windows:
            slot = meal_slot(window, day, tzinfo)
            nominal_end = slot.start + timedelta(minutes=window.duration_minutes)

            day_records = activities_on_day(records, day, tzinfo)
            best: Optional[ScheduledActivity] = None
            best_transit = 0
            for record in records:
                if record.is_placed or not record.activity.is_restaurant:
                    continue
                hours = record.activity.opening_hours
                if not covers_entire_window(hours, slot.start, nominal_end, tzinfo):
                    continue
                transit = estimate_minutes(previous.activity.location, record.activity.location) if previous else 0
                start = round_up_to_granularity(slot.start + timedelta(minutes=transit))
                end = start + timedelta(minutes=record.activity.duration_minutes)
                if end > slot.end:
                    logger.debug(f"Skipping {record.id} for {window.name} on {day}: ends after the window")
                    continue
                if not covers_entire_window(hours, start, end, tzinfo):
                    logger.debug(f"Skipping {record.id} for {window.name} on {day}: closes before {end:%H:%M}")
                    continue
                if conflicts_with_day(record.activity, start, end, day_records):
                    logger.debug(f"Skipping {record.id} for {window.name} on {day}: overlaps another placement")
                    continue
                if best is None or transit < best_transit:
                    best, best_transit = record, transit

            if best is None:
                logger.debug(f"No eligible restaurant for {window.name} on {day}")
                continue

            start = round_up_to_granularity(slot.start + timedelta(minutes=best_transit))
            best.place(start, start + timedelta(minutes=best.activity.duration_minutes), best_transit)
            previous = best
            placed += 1

    logger.info(f"Placed {placed} meals across {trip.day_count} day(s)")
    return placed
