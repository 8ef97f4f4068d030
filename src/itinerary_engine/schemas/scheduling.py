"""Scheduling request/response schemas."""

from __future__ import annotations

from datetime import date, datetime
from typing import Dict, List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field, field_validator, model_validator

from ..models.domain import (
    ActivityCandidate,
    ActivityStatus,
    Coordinate,
    OpeningHours,
    OpeningHoursPeriod,
    OpeningPoint,
    ScheduledActivity,
    ScheduleResult,
    TripWindow,
)


class OpeningPointModel(BaseModel):
    """Provider-shaped open/close point. Any field may be missing in upstream data."""
    day: Optional[int] = None
    hour: Optional[int] = None
    minute: Optional[int] = None


class OpeningPeriodModel(BaseModel):
    open: Optional[OpeningPointModel] = None
    close: Optional[OpeningPointModel] = None


class OpeningHoursModel(BaseModel):
    periods: List[Optional[OpeningPeriodModel]] = Field(default_factory=list)


class LocationModel(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class ActivityPayload(BaseModel):
    id: str
    name: str
    location: LocationModel
    duration: int = Field(..., ge=0, description="Duration in minutes.")
    place_types: List[str] = Field(default_factory=list)
    opening_hours: Optional[OpeningHoursModel] = None
    rating: Optional[float] = Field(default=None, ge=0, le=5)
    review_count: Optional[int] = Field(default=None, ge=0)
    is_must_see: bool = False
    status: ActivityStatus = ActivityStatus.PLANNED
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    transit_time_from_previous: int = 0
    warning: Optional[str] = None


class ScheduleRequest(BaseModel):
    activities: List[ActivityPayload]
    start_date: date
    end_date: date
    timezone: str = Field(..., description="IANA timezone of the destination, e.g. 'Europe/Paris'.")

    @field_validator("timezone")
    @classmethod
    def _known_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown timezone '{value}'.") from exc
        return value

    @model_validator(mode="after")
    def _ordered_dates(self) -> "ScheduleRequest":
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date.")
        return self


class ScheduledActivityModel(BaseModel):
    id: str
    name: str
    status: ActivityStatus
    start_time: Optional[datetime]
    end_time: Optional[datetime]
    duration: int
    transit_time_from_previous: int
    warning: Optional[str]
    place_types: List[str]


class ScheduleResponse(BaseModel):
    scheduled: List[ScheduledActivityModel]
    unscheduled: List[ScheduledActivityModel]
    metadata: Dict[str, object] = Field(default_factory=dict)


def _point(model: Optional[OpeningPointModel]) -> Optional[OpeningPoint]:
    if model is None:
        return None
    return OpeningPoint(day=model.day, hour=model.hour, minute=model.minute)


def opening_hours_from_model(model: Optional[OpeningHoursModel]) -> Optional[OpeningHours]:
    if model is None:
        return None
    periods = tuple(
        OpeningHoursPeriod(open=_point(period.open), close=_point(period.close))
        for period in model.periods
        if period is not None
    )
    return OpeningHours(periods=periods)


def payload_to_record(payload: ActivityPayload) -> ScheduledActivity:
    candidate = ActivityCandidate(
        id=payload.id,
        name=payload.name,
        location=Coordinate(payload.location.latitude, payload.location.longitude),
        duration_minutes=payload.duration,
        place_types=tuple(payload.place_types),
        opening_hours=opening_hours_from_model(payload.opening_hours),
        rating=payload.rating,
        review_count=payload.review_count,
        is_must_see=payload.is_must_see,
    )
    return ScheduledActivity(
        activity=candidate,
        status=payload.status,
        start_time=payload.start_time,
        end_time=payload.end_time,
        transit_time_from_previous=payload.transit_time_from_previous,
        warning=payload.warning,
    )


def trip_window_from_request(request: ScheduleRequest) -> TripWindow:
    return TripWindow(start_date=request.start_date, end_date=request.end_date, timezone=request.timezone)


def record_to_model(record: ScheduledActivity) -> ScheduledActivityModel:
    return ScheduledActivityModel(
        id=record.id,
        name=record.activity.name,
        status=record.status,
        start_time=record.start_time,
        end_time=record.end_time,
        duration=record.activity.duration_minutes,
        transit_time_from_previous=record.transit_time_from_previous,
        warning=record.warning,
        place_types=list(record.activity.place_types),
    )


def result_to_response(result: ScheduleResult) -> ScheduleResponse:
    return ScheduleResponse(
        scheduled=[record_to_model(record) for record in result.scheduled],
        unscheduled=[record_to_model(record) for record in result.unscheduled],
        metadata=dict(result.metadata),
    )
