from datetime import date, datetime, timedelta

from itinerary_engine.models.domain import (
    ActivityCandidate,
    Coordinate,
    OpeningHours,
    OpeningHoursPeriod,
    OpeningPoint,
    ScheduledActivity,
    TripWindow,
)
from itinerary_engine.services.opening_hours import covers_entire_window
from itinerary_engine.services.scheduling.estimator import estimate_minutes
from itinerary_engine.services.scheduling.placer import (
    find_best_placement,
    place_activities,
    placement_priority,
)
from itinerary_engine.services.scheduling.timeline import activities_on_day

MONDAY = date(2024, 6, 3)
TRIP = TripWindow(start_date=MONDAY, end_date=MONDAY, timezone="Europe/Paris")
ALWAYS_OPEN = OpeningHours(periods=(OpeningHoursPeriod(open=OpeningPoint(0, 0, 0)),))
HOME = Coordinate(48.8566, 2.3522)
ONE_KM_NORTH = Coordinate(48.8566 + 0.009, 2.3522)


def _hours(open_hour: int, close_hour: int, days=range(7)) -> OpeningHours:
    return OpeningHours(
        periods=tuple(
            OpeningHoursPeriod(open=OpeningPoint(day, open_hour, 0), close=OpeningPoint(day, close_hour, 0))
            for day in days
        )
    )


def _record(
    aid: str,
    duration: int = 60,
    location: Coordinate = HOME,
    hours: OpeningHours = ALWAYS_OPEN,
    types=(),
    rating=None,
    must_see: bool = False,
) -> ScheduledActivity:
    return ScheduledActivity(
        activity=ActivityCandidate(
            id=aid,
            name=f"Activity {aid}",
            location=location,
            duration_minutes=duration,
            place_types=tuple(types),
            opening_hours=hours,
            rating=rating,
            is_must_see=must_see,
        )
    )


def _local(day: date, hour: int, minute: int = 0) -> datetime:
    return datetime(day.year, day.month, day.day, hour, minute, tzinfo=TRIP.tz)


def test_priority_is_must_see_then_rating_then_input_order():
    records = [
        _record("low", rating=3.0),
        _record("unrated"),
        _record("must", rating=2.0, must_see=True),
        _record("high", rating=4.8),
        _record("also_low", rating=3.0),
    ]

    ordered = [record.id for record in placement_priority(records)]

    assert ordered == ["must", "high", "low", "also_low", "unrated"]


def test_single_activity_takes_first_best_slot():
    record = _record("a")

    assert place_activities([record], TRIP) == 1
    assert record.start_time == _local(MONDAY, 8)
    assert record.end_time == _local(MONDAY, 9)
    assert record.transit_time_from_previous == 0


def test_second_activity_follows_the_first_without_overlap():
    first = _record("first", must_see=True)
    second = _record("second")

    place_activities([first, second], TRIP)

    assert first.start_time == _local(MONDAY, 8)
    assert second.start_time == _local(MONDAY, 9)


def test_transit_buffer_pushes_next_start_to_the_grid():
    first = _record("first", must_see=True)
    second = _record("second", location=ONE_KM_NORTH)

    place_activities([first, second], TRIP)

    assert second.start_time == _local(MONDAY, 9, 30)
    assert second.transit_time_from_previous == 15


def test_placement_respects_opening_hours():
    afternoon_only = _record("afternoon", duration=90, hours=_hours(14, 16))

    place_activities([afternoon_only], TRIP)

    assert afternoon_only.start_time == _local(MONDAY, 14)
    assert covers_entire_window(
        afternoon_only.activity.opening_hours, afternoon_only.start_time, afternoon_only.end_time, TRIP.tz
    )


def test_unplaced_activity_is_retried_on_later_days():
    trip = TripWindow(start_date=MONDAY, end_date=MONDAY + timedelta(days=1), timezone="Europe/Paris")
    tuesday_only = _record("tuesday", hours=_hours(10, 18, days=(2,)))

    place_activities([tuesday_only], trip)

    assert tuesday_only.start_time == _local(MONDAY + timedelta(days=1), 10)


def test_activity_longer_than_any_day_part_stays_unplaced():
    trip = TripWindow(start_date=MONDAY, end_date=MONDAY + timedelta(days=1), timezone="Europe/Paris")
    marathon = _record("marathon", duration=600)

    assert place_activities([marathon], trip) == 0
    assert marathon.start_time is None
    assert marathon.end_time is None


def test_restaurants_are_not_placed_as_activities():
    restaurant = _record("r", types=("restaurant",))

    assert place_activities([restaurant], TRIP) == 0
    assert not restaurant.is_placed


def test_find_best_placement_returns_none_when_closed_all_day():
    closed = _record("closed", hours=OpeningHours())

    assert find_best_placement(closed, MONDAY, TRIP.tz, []) is None


def test_placements_never_overlap_and_stay_inside_opening_hours():
    trip = TripWindow(start_date=MONDAY, end_date=MONDAY + timedelta(days=1), timezone="Europe/Paris")
    records = [
        _record(f"a{index}", duration=45 + 15 * (index % 4), location=Coordinate(48.85 + 0.004 * index, 2.35),
                hours=_hours(9 + index % 3, 18 + index % 4), rating=3.0 + (index % 5) * 0.4,
                types=("museum",) if index % 2 else ("park",))
        for index in range(12)
    ]

    place_activities(placement_priority(records), trip)

    for record in records:
        if record.is_placed:
            assert covers_entire_window(record.activity.opening_hours, record.start_time, record.end_time, trip.tz)

    for day in trip.days():
        day_records = activities_on_day(records, day, trip.tz)
        for previous, current in zip(day_records, day_records[1:]):
            buffer = estimate_minutes(previous.activity.location, current.activity.location)
            assert previous.end_time + timedelta(minutes=buffer) <= current.start_time
