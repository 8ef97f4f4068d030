import asyncio
from datetime import date, datetime, timedelta

import pytest
from pydantic import ValidationError

from itinerary_engine.errors import InvalidTripWindowError, TransitLookupError
from itinerary_engine.models.domain import (
    ActivityCandidate,
    ActivityStatus,
    Coordinate,
    OpeningHours,
    OpeningHoursPeriod,
    OpeningPoint,
    ScheduledActivity,
    TripWindow,
)
from itinerary_engine.schemas.scheduling import ScheduleRequest
from itinerary_engine.services.opening_hours import covers_entire_window
from itinerary_engine.services.scheduling import service as scheduling_service
from itinerary_engine.services.scheduling.estimator import estimate_minutes
from itinerary_engine.services.scheduling.service import (
    GENERIC_CLOSED_WARNING,
    closed_warning,
    format_duration,
    rebalance_from_request,
    rebalance_schedule,
    schedule_single_activity,
)

MONDAY = date(2024, 6, 3)
TRIP = TripWindow(start_date=MONDAY, end_date=MONDAY + timedelta(days=1), timezone="Europe/Paris")
ALWAYS_OPEN = OpeningHours(periods=(OpeningHoursPeriod(open=OpeningPoint(0, 0, 0)),))
HOME = Coordinate(48.8566, 2.3522)


def _hours(open_hour: int, close_hour: int) -> OpeningHours:
    return OpeningHours(
        periods=tuple(
            OpeningHoursPeriod(open=OpeningPoint(day, open_hour, 0), close=OpeningPoint(day, close_hour, 0))
            for day in range(7)
        )
    )


def _record(
    aid: str,
    duration: int = 60,
    location: Coordinate = HOME,
    hours: OpeningHours = ALWAYS_OPEN,
    types=(),
    status: ActivityStatus = ActivityStatus.PLANNED,
    **kwargs,
) -> ScheduledActivity:
    return ScheduledActivity(
        activity=ActivityCandidate(
            id=aid,
            name=f"Activity {aid}",
            location=location,
            duration_minutes=duration,
            place_types=tuple(types),
            opening_hours=hours,
        ),
        status=status,
        **kwargs,
    )


def _trip_records() -> list[ScheduledActivity]:
    return [
        _record("louvre", duration=180, types=("museum",), hours=_hours(9, 18)),
        _record("cafe", types=("cafe",), hours=_hours(7, 22), location=Coordinate(48.86, 2.34)),
        _record("bistro", types=("restaurant",), hours=_hours(11, 23), location=Coordinate(48.855, 2.35)),
        _record("garden", duration=90, types=("park",), location=Coordinate(48.846, 2.337)),
        _record("tower", duration=120, types=("tourist_attraction",), location=Coordinate(48.858, 2.294)),
        _record("jazz", duration=120, types=("bar",), hours=_hours(19, 23), location=Coordinate(48.853, 2.347)),
        _record("ship", duration=300, types=("tourist_attraction",), hours=_hours(10, 12)),
    ]


def _placements(records):
    return [(record.id, record.start_time, record.end_time) for record in records]


def test_format_duration():
    assert format_duration(0) == "0 minutes"
    assert format_duration(45) == "45 minutes"
    assert format_duration(90) == "1 hour and 30 minutes"
    assert format_duration(1500) == "1 day and 1 hour"
    assert format_duration(2 * 1440 + 120 + 5) == "2 days and 2 hours and 5 minutes"


def test_closed_warning_text():
    next_opening = datetime(2024, 6, 10, 9, 0, tzinfo=TRIP.tz)

    assert closed_warning(next_opening) == "Closed at the scheduled time; next opens at 09:00 on Monday, Jun 10."
    assert closed_warning(None) == GENERIC_CLOSED_WARNING


def test_rebalance_places_and_partitions():
    records = _trip_records()

    result = rebalance_schedule(records, TRIP)

    assert {record.id for record in result.scheduled} >= {"louvre", "cafe", "bistro", "garden", "tower", "jazz"}
    assert [record.id for record in result.unscheduled] == ["ship"]
    assert result.unscheduled[0].warning is not None
    assert "5 hours" in result.unscheduled[0].warning


def test_rebalance_output_is_sorted_and_consistent():
    result = rebalance_schedule(_trip_records(), TRIP)
    starts = [record.start_time for record in result.scheduled]

    assert starts == sorted(starts)
    for record in result.scheduled:
        assert covers_entire_window(record.activity.opening_hours, record.start_time, record.end_time, TRIP.tz)
        assert record.warning is None

    for day in TRIP.days():
        day_records = [record for record in result.scheduled if record.start_time.date() == day]
        if not day_records:
            continue
        assert day_records[0].transit_time_from_previous == 0
        for previous, current in zip(day_records, day_records[1:]):
            buffer = estimate_minutes(previous.activity.location, current.activity.location)
            assert previous.end_time + timedelta(minutes=buffer) <= current.start_time
            assert current.transit_time_from_previous == buffer


def test_rebalance_is_idempotent():
    records = _trip_records()

    first = _placements(rebalance_schedule(records, TRIP).scheduled)
    second = _placements(rebalance_schedule(records, TRIP).scheduled)

    assert first == second


def test_only_planned_records_are_scheduled():
    interested = _record("maybe", status=ActivityStatus.INTERESTED)
    planned = _record("yes")

    result = rebalance_schedule([interested, planned], TRIP)

    assert [record.id for record in result.scheduled] == ["yes"]
    assert result.unscheduled == []
    assert interested.start_time is None
    assert result.metadata["ignored"] == 1


def test_stale_warning_is_cleared_and_previous_placement_reset():
    stale = _record(
        "stale",
        start_time=datetime(2024, 6, 4, 20, 0, tzinfo=TRIP.tz),
        end_time=datetime(2024, 6, 4, 21, 0, tzinfo=TRIP.tz),
        warning="old warning",
    )

    rebalance_schedule([stale], TRIP)

    assert stale.start_time == datetime(2024, 6, 3, 8, 0, tzinfo=TRIP.tz)
    assert stale.warning is None


def test_closed_placement_gets_next_opening_warning(monkeypatch):
    record = _record("odd", hours=_hours(9, 17))
    monkeypatch.setattr(scheduling_service, "is_open_at", lambda hours, instant, tz: False)

    result = rebalance_schedule([record], TRIP)

    assert result.scheduled[0].warning.startswith("Closed at the scheduled time; next opens at 09:00")


def test_capacity_metadata():
    records = [_record("a", duration=60), _record("b", duration=120)]

    result = rebalance_schedule(records, TRIP)

    assert result.metadata["days"] == 2
    assert result.metadata["available_minutes"] == 2 * 10 * 60
    # zero transit counts as the 30 minute default
    assert result.metadata["needed_minutes"] == (60 + 30 + 15) + (120 + 30 + 15)
    assert result.metadata["scheduled"] == 2


def test_invalid_inputs_raise():
    with pytest.raises(InvalidTripWindowError):
        TripWindow(start_date=MONDAY, end_date=MONDAY - timedelta(days=1), timezone="Europe/Paris")
    with pytest.raises(InvalidTripWindowError):
        TripWindow(start_date=MONDAY, end_date=MONDAY, timezone="Mars/Olympus")
    with pytest.raises(ValueError):
        _record("negative", duration=-5)


def test_rebalance_from_request_handles_malformed_hours():
    request = ScheduleRequest(
        start_date=MONDAY,
        end_date=MONDAY,
        timezone="Europe/Paris",
        activities=[
            {
                "id": "ok",
                "name": "Open museum",
                "location": {"latitude": 48.86, "longitude": 2.33},
                "duration": 60,
                "place_types": ["museum"],
                "opening_hours": {
                    "periods": [{"open": {"day": day, "hour": 9, "minute": 0}, "close": {"day": day, "hour": 18, "minute": 0}} for day in range(7)]
                },
            },
            {
                "id": "broken",
                "name": "Broken hours",
                "location": {"latitude": 48.86, "longitude": 2.34},
                "duration": 60,
                "opening_hours": {"periods": [None, {"open": {"day": 1, "minute": 0}}]},
            },
        ],
    )

    response = rebalance_from_request(request)

    assert [item.id for item in response.scheduled] == ["ok"]
    assert response.scheduled[0].start_time.hour == 9
    assert [item.id for item in response.unscheduled] == ["broken"]
    assert "1 hour" in response.unscheduled[0].warning


def test_schedule_request_validation():
    with pytest.raises(ValidationError):
        ScheduleRequest(activities=[], start_date=MONDAY, end_date=MONDAY, timezone="Nowhere/Town")
    with pytest.raises(ValidationError):
        ScheduleRequest(activities=[], start_date=MONDAY, end_date=MONDAY - timedelta(days=1), timezone="UTC")


class DummyResolver:
    def __init__(self, minutes=None, error=None):
        self.minutes = minutes
        self.error = error
        self.calls = []

    async def get_transit_time(self, origin, destination, departure):
        self.calls.append((origin, destination, departure))
        if self.error is not None:
            raise self.error
        return self.minutes


def _breakfast_and_museum():
    breakfast = _record(
        "breakfast",
        types=("cafe",),
        start_time=datetime(2024, 6, 3, 9, 0, tzinfo=TRIP.tz),
        end_time=datetime(2024, 6, 3, 10, 0, tzinfo=TRIP.tz),
    )
    museum = _record("museum", types=("museum",), location=Coordinate(48.87, 2.36))
    return breakfast, museum


def test_single_activity_uses_resolver_and_flags_tight_buffer():
    breakfast, museum = _breakfast_and_museum()
    resolver = DummyResolver(minutes=20)
    start = datetime(2024, 6, 3, 10, 10, tzinfo=TRIP.tz)

    result = asyncio.run(schedule_single_activity(museum, start, TRIP, [breakfast, museum], resolver))

    assert result.start_time == start
    assert result.end_time == start + timedelta(minutes=60)
    assert result.transit_time_from_previous == 20
    assert resolver.calls == [(breakfast.activity.location, museum.activity.location, breakfast.end_time)]
    assert result.warning == "Only 10 minutes after Activity breakfast, but getting there takes about 20 minutes."


def test_single_activity_falls_back_to_estimate_on_lookup_failure():
    breakfast, museum = _breakfast_and_museum()
    resolver = DummyResolver(error=TransitLookupError("provider down"))
    start = datetime(2024, 6, 3, 12, 0, tzinfo=TRIP.tz)

    result = asyncio.run(schedule_single_activity(museum, start, TRIP, [breakfast], resolver))

    assert result.transit_time_from_previous == estimate_minutes(breakfast.activity.location, museum.activity.location)
    assert result.warning is None


def test_single_activity_warns_when_closed_or_outside_trip():
    evening_closed = _record("shop", hours=_hours(9, 17))
    resolver = DummyResolver(minutes=5)
    start = datetime(2024, 6, 10, 18, 0, tzinfo=TRIP.tz)

    result = asyncio.run(schedule_single_activity(evening_closed, start, TRIP, [], resolver))

    assert resolver.calls == []
    assert result.transit_time_from_previous == 0
    assert "Scheduled outside the trip dates." in result.warning
    assert "next opens at 09:00 on Tuesday, Jun 11" in result.warning
