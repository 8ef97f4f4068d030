"""Zero-latency walking-time estimate used inside the placement search."""

from __future__ import annotations

import math
from datetime import datetime, timedelta

from ...config import settings
from ...models.domain import Coordinate
from ..geospatial import distance_km


def estimate_minutes(origin: Coordinate, destination: Coordinate, speed_kmh: float | None = None) -> int:
    """Great-circle walking time in whole minutes (rounded to nearest)."""
    speed = speed_kmh or settings.walking_speed_kmh
    minutes = distance_km(origin, destination) / speed * 60.0
    return int(math.floor(minutes + 0.5))


def round_up_to_granularity(instant: datetime, granularity_minutes: int | None = None) -> datetime:
    """Round up to the next boundary of the granularity, counted from local midnight."""
    step = granularity_minutes or settings.slot_granularity_minutes
    midnight = instant.replace(hour=0, minute=0, second=0, microsecond=0)
    elapsed = (instant - midnight).total_seconds() / 60.0
    return midnight + timedelta(minutes=math.ceil(elapsed / step) * step)
