"""Serializers for schedule outputs."""

from __future__ import annotations

import csv
import io

from ...models.domain import ScheduleResult
from ...schemas.scheduling import ScheduleResponse


def schedule_response_to_json(response: ScheduleResponse) -> dict:
    return response.model_dump(mode="json")


def schedule_to_csv(result: ScheduleResult) -> str:
    buffer = io.StringIO()
    fieldnames = [
        "activity_id",
        "name",
        "day",
        "start_time",
        "end_time",
        "duration_min",
        "transit_from_prev_min",
        "scheduled",
        "warning",
    ]
    writer = csv.DictWriter(buffer, fieldnames=fieldnames)
    writer.writeheader()
    for record in [*result.scheduled, *result.unscheduled]:
        writer.writerow(
            {
                "activity_id": record.id,
                "name": record.activity.name,
                "day": record.start_time.date().isoformat() if record.start_time else "",
                "start_time": record.start_time.isoformat() if record.start_time else "",
                "end_time": record.end_time.isoformat() if record.end_time else "",
                "duration_min": record.activity.duration_minutes,
                "transit_from_prev_min": record.transit_time_from_previous,
                "scheduled": record.is_placed,
                "warning": record.warning or "",
            }
        )
    return buffer.getvalue()
