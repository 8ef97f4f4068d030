"""Application configuration and settings management."""

from typing import Annotated, Any, Optional

import json
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables or defaults."""

    model_config = SettingsConfigDict(
        env_prefix="ITINERARY_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    app_name: str = "Itinerary Scheduling Engine"
    default_timezone: str = Field(
        default="UTC",
        description="IANA timezone used when a trip does not carry its own.",
    )
    walking_speed_kmh: float = Field(
        default=4.0,
        gt=0.0,
        description="Assumed walking speed for the synchronous transit estimate.",
    )
    slot_granularity_minutes: int = Field(default=30, ge=1)
    next_opening_horizon_days: int = Field(default=7, ge=1)
    day_part_hours: Annotated[tuple[int, ...], NoDecode] = Field(
        default=(8, 12, 17, 23),
        description="Boundaries of the morning/afternoon/evening day-parts as local hours.",
    )

    # Transit-time resolver
    transit_cache_ttl_hours: float = Field(default=24.0, gt=0.0)
    transit_batch_size: int = Field(default=10, ge=1)
    transit_batch_wait_seconds: float = Field(
        default=0.5,
        ge=0.0,
        description="Debounce window between the first enqueue and the batch dispatch.",
    )
    transit_provider_timeout_seconds: float = Field(default=10.0, gt=0.0)

    # OSRM provider
    osrm_base_url: Optional[str] = Field(
        default=None,
        description="Base URL for the OSRM routing service (e.g., http://localhost:5000).",
    )
    osrm_profile: str = Field(
        default="foot",
        description="OSRM profile to use when computing travel times.",
    )
    osrm_max_retries: int = Field(default=2, ge=0)
    osrm_backoff_seconds: float = Field(default=0.5, ge=0.0)

    @field_validator("day_part_hours", mode="before")
    @classmethod
    def _parse_int_tuple_from_env(cls, value: Any) -> tuple[int, ...]:
        """Parse integer tuple from environment variable (comma-separated or JSON array)."""
        if isinstance(value, tuple):
            return value
        if isinstance(value, list):
            return tuple(int(item) for item in value)
        if isinstance(value, str):
            # Try JSON first
            try:
                parsed = json.loads(value)
                if isinstance(parsed, list):
                    return tuple(int(item) for item in parsed)
            except (json.JSONDecodeError, TypeError, ValueError):
                pass
            if "," in value:
                return tuple(int(item.strip()) for item in value.split(",") if item.strip())
            if value.strip():
                return (int(value.strip()),)
        return tuple()

    @field_validator("day_part_hours")
    @classmethod
    def _check_day_parts(cls, value: tuple[int, ...]) -> tuple[int, ...]:
        if len(value) != 4:
            raise ValueError("day_part_hours needs four boundaries (morning, afternoon, evening, end).")
        if list(value) != sorted(value) or len(set(value)) != 4 or value[0] < 0 or value[-1] > 24:
            raise ValueError("day_part_hours must be strictly increasing hours within 0-24.")
        return value


settings = Settings()
