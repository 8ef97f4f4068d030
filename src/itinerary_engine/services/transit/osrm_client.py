"""Async OSRM table client used as the precise transit-time provider."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Optional, Sequence

import httpx

from ...config import settings
from ...errors import ProviderUnavailableError, TransitLookupError
from ...models.domain import Coordinate

logger = logging.getLogger(__name__)


class OSRMTransitProvider:
    """Duration matrix provider over the OSRM `table` service.

    Origins and destinations are sent as one coordinate list with `sources`/`destinations`
    index sequences, so a single request answers every origin/destination combination.
    OSRM has no notion of departure time; `departure` is accepted for interface parity.
    """

    def __init__(
        self,
        base_url: str | None = None,
        profile: str | None = None,
        timeout: float = 10.0,
        max_retries: int | None = None,
        backoff_seconds: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = (base_url or settings.osrm_base_url or "").rstrip("/")
        if not self.base_url:
            raise ValueError("OSRM base URL is not configured.")
        self.profile = profile or settings.osrm_profile
        self.max_retries = max_retries if max_retries is not None else settings.osrm_max_retries
        self.backoff_seconds = backoff_seconds if backoff_seconds is not None else settings.osrm_backoff_seconds
        self.timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout, connect=min(self.timeout, 5.0)),
            transport=self._transport,
        )

    def _table_request(
        self, origins: Sequence[Coordinate], destinations: Sequence[Coordinate]
    ) -> tuple[str, dict[str, str]]:
        coordinates = [*origins, *destinations]
        coordinate_str = ";".join(f"{point.longitude},{point.latitude}" for point in coordinates)
        params = {
            "annotations": "duration",
            "sources": ";".join(str(index) for index in range(len(origins))),
            "destinations": ";".join(str(index) for index in range(len(origins), len(coordinates))),
        }
        return f"{self.base_url}/table/v1/{self.profile}/{coordinate_str}", params

    async def duration_matrix(
        self,
        origins: Sequence[Coordinate],
        destinations: Sequence[Coordinate],
        departure: Optional[datetime] = None,
    ) -> list[list[Optional[float]]]:
        """Return travel seconds as `[origin][destination]`; unroutable pairs are None."""
        if not origins or not destinations:
            raise ValueError("At least one origin and one destination are required for OSRM table.")

        url, params = self._table_request(origins, destinations)
        async with self._client() as client:
            attempt = 0
            while True:
                try:
                    response = await client.get(url, params=params)
                    response.raise_for_status()
                    data = response.json()
                    break
                except httpx.HTTPStatusError as exc:
                    if exc.response.status_code < 500:
                        raise TransitLookupError(
                            f"OSRM table request rejected ({exc.response.status_code})."
                        ) from exc
                    attempt += 1
                    if attempt > self.max_retries:
                        raise ProviderUnavailableError(
                            f"OSRM table request failed after {self.max_retries} retries: {exc}"
                        ) from exc
                    await asyncio.sleep(self.backoff_seconds * attempt)
                except (httpx.TimeoutException, httpx.NetworkError) as exc:
                    attempt += 1
                    if attempt > self.max_retries:
                        logger.warning(f"OSRM table request failed after {self.max_retries} attempts: {exc}")
                        raise ProviderUnavailableError(
                            f"Failed to reach OSRM service at {self.base_url}: {exc}"
                        ) from exc
                    wait_time = self.backoff_seconds * (2 ** (attempt - 1))
                    logger.debug(
                        f"OSRM network error, retrying in {wait_time:.1f}s (attempt {attempt}/{self.max_retries}): {exc}"
                    )
                    await asyncio.sleep(wait_time)
                except ValueError as exc:
                    raise TransitLookupError(f"OSRM returned a non-JSON response: {exc}") from exc

        if data.get("code") != "Ok":
            raise TransitLookupError(f"OSRM table request failed: {data.get('message', data.get('code'))}")
        durations = data.get("durations")
        if not isinstance(durations, list) or len(durations) != len(origins):
            raise TransitLookupError("OSRM response missing durations.")
        return [
            [float(value) if value is not None else None for value in row]
            for row in durations
        ]
