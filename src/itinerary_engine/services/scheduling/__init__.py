"""Itinerary scheduling: meal windows, greedy activity placement and rebalancing."""

from .meals import MEAL_WINDOWS, MealWindow, schedule_meals
from .placer import find_best_placement, place_activities, placement_priority
from .service import (
    format_duration,
    rebalance_from_request,
    rebalance_schedule,
    schedule_single_activity,
)

__all__ = [
    "MEAL_WINDOWS",
    "MealWindow",
    "find_best_placement",
    "format_duration",
    "place_activities",
    "placement_priority",
    "rebalance_from_request",
    "rebalance_schedule",
    "schedule_meals",
    "schedule_single_activity",
]
