from datetime import datetime
from zoneinfo import ZoneInfo

from itinerary_engine.models.domain import Coordinate
from itinerary_engine.services.geospatial import distance_km, haversine_km
from itinerary_engine.services.scheduling.estimator import estimate_minutes, round_up_to_granularity

PARIS = ZoneInfo("Europe/Paris")


def test_haversine_zero_and_symmetric():
    assert haversine_km(48.85, 2.35, 48.85, 2.35) == 0
    forward = distance_km(Coordinate(48.85, 2.35), Coordinate(48.86, 2.36))
    backward = distance_km(Coordinate(48.86, 2.36), Coordinate(48.85, 2.35))
    assert forward == backward


def test_estimate_minutes_uses_walking_speed():
    origin = Coordinate(0.0, 0.0)
    one_km_north = Coordinate(0.009, 0.0)

    assert estimate_minutes(origin, origin) == 0
    assert estimate_minutes(origin, one_km_north) == 15
    assert estimate_minutes(origin, one_km_north, speed_kmh=2.0) == 30


def test_round_up_to_granularity():
    assert round_up_to_granularity(datetime(2024, 6, 3, 9, 1, tzinfo=PARIS)) == datetime(2024, 6, 3, 9, 30, tzinfo=PARIS)
    assert round_up_to_granularity(datetime(2024, 6, 3, 9, 30, tzinfo=PARIS)) == datetime(2024, 6, 3, 9, 30, tzinfo=PARIS)
    assert round_up_to_granularity(datetime(2024, 6, 3, 9, 0, 30, tzinfo=PARIS)) == datetime(2024, 6, 3, 9, 30, tzinfo=PARIS)
    assert round_up_to_granularity(datetime(2024, 6, 3, 9, 1, tzinfo=PARIS), 15) == datetime(2024, 6, 3, 9, 15, tzinfo=PARIS)
    assert round_up_to_granularity(datetime(2024, 6, 3, 23, 45, tzinfo=PARIS)) == datetime(2024, 6, 4, 0, 0, tzinfo=PARIS)
