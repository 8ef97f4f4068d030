"""Domain models for activities, opening hours and placements."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from ..errors import InvalidTripWindowError

RESTAURANT_TYPES = frozenset({"restaurant", "cafe", "bakery", "food", "meal_takeaway"})


class ActivityStatus(str, Enum):
    INTERESTED = "interested"
    PLANNED = "planned"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class SlotKind(str, Enum):
    MORNING = "morning"
    AFTERNOON = "afternoon"
    EVENING = "evening"
    MEAL = "meal"


@dataclass(slots=True, frozen=True)
class Coordinate:
    latitude: float
    longitude: float


@dataclass(slots=True, frozen=True)
class OpeningPoint:
    """One end of a weekly period. Day follows the maps convention: 0 = Sunday."""

    day: Optional[int]
    hour: Optional[int]
    minute: Optional[int]

    @property
    def is_usable(self) -> bool:
        return (
            self.day is not None
            and self.hour is not None
            and self.minute is not None
            and 0 <= self.day <= 6
            and 0 <= self.hour <= 24
            and 0 <= self.minute <= 59
        )

    @property
    def minute_of_week(self) -> int:
        return self.day * 24 * 60 + self.hour * 60 + self.minute


@dataclass(slots=True, frozen=True)
class OpeningHoursPeriod:
    open: Optional[OpeningPoint]
    close: Optional[OpeningPoint] = None

    @property
    def is_overnight(self) -> bool:
        return (
            self.open is not None
            and self.close is not None
            and self.open.day is not None
            and self.close.day is not None
            and self.open.day != self.close.day
        )


@dataclass(slots=True, frozen=True)
class OpeningHours:
    periods: tuple[OpeningHoursPeriod, ...] = ()

    @property
    def is_always_open(self) -> bool:
        """A sole period with an open point and no close point means 24/7."""
        if len(self.periods) != 1:
            return False
        period = self.periods[0]
        return period.open is not None and period.open.is_usable and period.close is None


@dataclass(slots=True, frozen=True)
class ActivityCandidate:
    """Immutable input record for one scheduling pass."""

    id: str
    name: str
    location: Coordinate
    duration_minutes: int
    place_types: tuple[str, ...] = ()
    opening_hours: Optional[OpeningHours] = None
    rating: Optional[float] = None
    review_count: Optional[int] = None
    is_must_see: bool = False

    def __post_init__(self) -> None:
        if self.duration_minutes < 0:
            raise ValueError(f"Activity '{self.id}' has a negative duration ({self.duration_minutes}).")

    @property
    def is_restaurant(self) -> bool:
        return any(place_type in RESTAURANT_TYPES for place_type in self.place_types)


@dataclass(slots=True)
class ScheduledActivity:
    """A candidate plus its (mutable) placement."""

    activity: ActivityCandidate
    status: ActivityStatus = ActivityStatus.PLANNED
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    transit_time_from_previous: int = 0
    warning: Optional[str] = None

    @property
    def id(self) -> str:
        return self.activity.id

    @property
    def is_placed(self) -> bool:
        return self.start_time is not None and self.end_time is not None

    def place(self, start: datetime, end: datetime, transit_minutes: int) -> None:
        self.start_time = start
        self.end_time = end
        self.transit_time_from_previous = transit_minutes

    def reset(self) -> None:
        self.start_time = None
        self.end_time = None
        self.transit_time_from_previous = 0


@dataclass(slots=True, frozen=True)
class TimeSlot:
    start: datetime
    end: datetime
    kind: SlotKind

    @property
    def minutes(self) -> int:
        return int((self.end - self.start).total_seconds() // 60)


@dataclass(slots=True, frozen=True)
class PlacementScore:
    score: float
    start: datetime
    end: datetime
    transit_minutes: int
    transit: float = 0.0
    time_of_day: float = 0.0
    popularity: float = 0.0
    clustering: float = 0.0
    slot_usage: float = 0.0

    @property
    def is_feasible(self) -> bool:
        return self.score >= 0


@dataclass(slots=True, frozen=True)
class TripWindow:
    """Inclusive local date range of a trip plus its IANA timezone."""

    start_date: date
    end_date: date
    timezone: str

    def __post_init__(self) -> None:
        if self.end_date < self.start_date:
            raise InvalidTripWindowError(
                f"Trip ends ({self.end_date}) before it starts ({self.start_date})."
            )
        try:
            ZoneInfo(self.timezone)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise InvalidTripWindowError(f"Unknown timezone '{self.timezone}'.") from exc

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    @property
    def day_count(self) -> int:
        return (self.end_date - self.start_date).days + 1

    def days(self) -> list[date]:
        return [self.start_date + timedelta(days=offset) for offset in range(self.day_count)]


@dataclass(slots=True)
class ScheduleResult:
    scheduled: list[ScheduledActivity]
    unscheduled: list[ScheduledActivity]
    metadata: dict = field(default_factory=dict)
