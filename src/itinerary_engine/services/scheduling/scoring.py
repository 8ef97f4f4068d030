"""Multi-factor desirability score for one candidate placement."""

from __future__ import annotations

from datetime import datetime
from typing import Callable, Optional, Sequence

from ...models.domain import RESTAURANT_TYPES, ActivityCandidate, PlacementScore, ScheduledActivity
from .timeline import conflicts_with_day

TRANSIT_WEIGHT = 0.30
TIME_OF_DAY_WEIGHT = 0.20
POPULARITY_WEIGHT = 0.10
CLUSTERING_WEIGHT = 0.15
SLOT_USAGE_WEIGHT = 0.25

TRANSIT_CEILING_MINUTES = 60
CLUSTER_WINDOW_MINUTES = 180
NEUTRAL_CLUSTER_SCORE = 0.5
INFEASIBLE_SCORE = -1.0

MUSEUM_TYPES = frozenset({"museum", "art_gallery"})
NIGHTLIFE_TYPES = frozenset({"bar", "night_club", "nightclub", "pub", "casino"})
HISTORIC_TYPES = frozenset({"historic_site", "historical_landmark", "monument", "church", "castle"})
ATTRACTION_TYPES = frozenset({"tourist_attraction", "landmark", "zoo", "aquarium", "amusement_park"})


def _has_any(types: frozenset[str]) -> Callable[[ActivityCandidate], bool]:
    return lambda activity: any(place_type in types for place_type in activity.place_types)


# Evaluated in order; first match wins.
CATEGORY_RULES: tuple[tuple[Callable[[ActivityCandidate], bool], str], ...] = (
    (_has_any(MUSEUM_TYPES), "museum"),
    (_has_any(frozenset({"park"})), "park"),
    (_has_any(frozenset({"beach"})), "beach"),
    (_has_any(RESTAURANT_TYPES), "restaurant"),
    (_has_any(NIGHTLIFE_TYPES), "nightlife"),
    (_has_any(frozenset({"spa"})), "spa"),
    (_has_any(HISTORIC_TYPES), "historic"),
    (_has_any(ATTRACTION_TYPES), "attraction"),
)

# (morning, afternoon, evening)
TIME_OF_DAY_PREFERENCES: dict[str, tuple[float, float, float]] = {
    "museum": (1.0, 0.8, 0.3),
    "park": (0.9, 0.8, 0.4),
    "beach": (0.7, 1.0, 0.5),
    "restaurant": (0.6, 0.8, 1.0),
    "nightlife": (0.3, 0.8, 1.0),
    "historic": (0.9, 0.8, 0.4),
    "attraction": (0.8, 0.9, 0.6),
    "spa": (0.7, 1.0, 0.6),
    "default": (0.7, 0.7, 0.7),
}


def infer_category(activity: ActivityCandidate) -> str:
    for matches, category in CATEGORY_RULES:
        if matches(activity):
            return category
    return "default"


def time_of_day_bucket(start: datetime) -> int:
    """0 = morning (<12:00), 1 = afternoon (<17:00), 2 = evening."""
    if start.hour < 12:
        return 0
    if start.hour < 17:
        return 1
    return 2


def transit_score(transit_minutes: int) -> float:
    return 1.0 - min(transit_minutes / TRANSIT_CEILING_MINUTES, 1.0)


def time_of_day_score(activity: ActivityCandidate, start: datetime) -> float:
    return TIME_OF_DAY_PREFERENCES[infer_category(activity)][time_of_day_bucket(start)]


def popularity_score(activity: ActivityCandidate) -> float:
    rating = activity.rating if activity.rating is not None else 3.0
    rating_part = min(max((rating - 3.0) / 2.0, 0.0), 1.0)
    review_part = min((activity.review_count or 0) / 1000.0, 1.0)
    return (rating_part + review_part) / 2.0


def _tag_overlap(left: Sequence[str], right: Sequence[str]) -> float:
    left_set, right_set = set(left), set(right)
    union = left_set | right_set
    if not union:
        return 0.0
    return len(left_set & right_set) / len(union)


def clustering_score(activity: ActivityCandidate, start: datetime, day_activities: Sequence[ScheduledActivity]) -> float:
    similarities: list[float] = []
    for other in day_activities:
        if other.activity.id == activity.id:
            continue
        gap = abs((other.start_time - start).total_seconds()) / 60.0
        if gap > CLUSTER_WINDOW_MINUTES:
            continue
        decay = 1.0 - gap / CLUSTER_WINDOW_MINUTES
        similarities.append((_tag_overlap(activity.place_types, other.activity.place_types) + decay) / 2.0)
    if not similarities:
        return NEUTRAL_CLUSTER_SCORE
    return sum(similarities) / len(similarities)


def slot_usage_score(duration_minutes: int, window_start: datetime, end: datetime) -> float:
    window_minutes = (end - window_start).total_seconds() / 60.0
    if window_minutes <= 0:
        return 1.0
    return min(duration_minutes / window_minutes, 1.0)


def score_placement(
    activity: ActivityCandidate,
    start: datetime,
    end: datetime,
    transit_minutes: int,
    day_activities: Sequence[ScheduledActivity],
    window_start: Optional[datetime] = None,
) -> PlacementScore:
    """Score a validated placement; returns the -1 sentinel if it conflicts after all.

    `window_start` is where the reserved window begins (the previous activity's end, or the
    search position when nothing precedes it); it defaults to `start`.
    """
    if conflicts_with_day(activity, start, end, day_activities):
        return PlacementScore(score=INFEASIBLE_SCORE, start=start, end=end, transit_minutes=transit_minutes)

    transit = transit_score(transit_minutes)
    time_of_day = time_of_day_score(activity, start)
    popularity = popularity_score(activity)
    clustering = clustering_score(activity, start, day_activities)
    slot_usage = slot_usage_score(activity.duration_minutes, window_start or start, end)
    total = (
        TRANSIT_WEIGHT * transit
        + TIME_OF_DAY_WEIGHT * time_of_day
        + POPULARITY_WEIGHT * popularity
        + CLUSTERING_WEIGHT * clustering
        + SLOT_USAGE_WEIGHT * slot_usage
    )
    return PlacementScore(
        score=total,
        start=start,
        end=end,
        transit_minutes=transit_minutes,
        transit=transit,
        time_of_day=time_of_day,
        popularity=popularity,
        clustering=clustering,
        slot_usage=slot_usage,
    )
