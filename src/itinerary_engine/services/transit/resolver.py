"""
Cached, batched precise transit-time lookups.

Each (origin, destination, departure day) key moves through Uncached -> Queued ->
Resolved/Failed. Callers await `get_transit_time`; misses are queued and a debounce timer
dispatches up to `batch_size` of them at once. A dispatched batch is split by departure day
and each day group costs one provider call covering every distinct origin and destination.
"""

from __future__ import annotations

import asyncio
import logging
import math
import time
from collections import deque
from dataclasses import dataclass
from datetime import date, datetime
from typing import Callable, Optional, Protocol, Sequence

from ...config import settings
from ...errors import ProviderUnavailableError, TransitLookupError
from ...models.domain import Coordinate
from .osrm_client import OSRMTransitProvider

logger = logging.getLogger(__name__)

CacheKey = tuple[Coordinate, Coordinate, date]


class TransitProvider(Protocol):
    async def duration_matrix(
        self,
        origins: Sequence[Coordinate],
        destinations: Sequence[Coordinate],
        departure: Optional[datetime] = None,
    ) -> list[list[Optional[float]]]:
        """Travel seconds as `[origin][destination]`; None marks an unavailable pair."""


@dataclass(slots=True)
class CachedTransitTime:
    minutes: int
    day: date
    stored_at: float


@dataclass(slots=True)
class BatchedTransitRequest:
    origin: Coordinate
    destination: Coordinate
    departure: datetime
    future: asyncio.Future


def cache_key(origin: Coordinate, destination: Coordinate, departure: datetime) -> CacheKey:
    """Key on the coordinates and the calendar day of the departure, in its own timezone."""
    return origin, destination, departure.date()


def _cell(matrix: Sequence[Sequence[Optional[float]]], row: int, column: int) -> Optional[float]:
    try:
        return matrix[row][column]
    except (IndexError, TypeError):
        return None


class TransitTimeResolver:
    def __init__(
        self,
        provider: TransitProvider,
        *,
        cache_ttl_seconds: float | None = None,
        batch_size: int | None = None,
        batch_wait_seconds: float | None = None,
        provider_timeout_seconds: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.provider = provider
        self.cache_ttl_seconds = (
            cache_ttl_seconds if cache_ttl_seconds is not None else settings.transit_cache_ttl_hours * 3600
        )
        self.batch_size = batch_size or settings.transit_batch_size
        self.batch_wait_seconds = (
            batch_wait_seconds if batch_wait_seconds is not None else settings.transit_batch_wait_seconds
        )
        self.provider_timeout_seconds = provider_timeout_seconds or settings.transit_provider_timeout_seconds
        self._clock = clock
        self._cache: dict[CacheKey, CachedTransitTime] = {}
        self._queue: deque[BatchedTransitRequest] = deque()
        self._timer: Optional[asyncio.TimerHandle] = None
        self._dispatching = False
        self._tasks: set[asyncio.Task] = set()

    @property
    def cache_size(self) -> int:
        return len(self._cache)

    @property
    def pending(self) -> int:
        return len(self._queue)

    def peek(self, origin: Coordinate, destination: Coordinate, departure: datetime) -> Optional[int]:
        """Cached minutes for the pair on the departure's day, or None if absent or stale."""
        key = cache_key(origin, destination, departure)
        entry = self._cache.get(key)
        if entry is None:
            return None
        if self._clock() - entry.stored_at >= self.cache_ttl_seconds or entry.day != departure.date():
            del self._cache[key]
            return None
        return entry.minutes

    def clear_cache(self) -> None:
        """Drop every cache entry. Queued requests are unaffected."""
        self._cache.clear()

    async def get_transit_time(self, origin: Coordinate, destination: Coordinate, departure: datetime) -> int:
        """Minutes from origin to destination departing at `departure`.

        Raises TransitLookupError (or ProviderUnavailableError) when the lookup fails.
        """
        cached = self.peek(origin, destination, departure)
        if cached is not None:
            return cached

        loop = asyncio.get_running_loop()
        future = loop.create_future()
        self._queue.append(BatchedTransitRequest(origin, destination, departure, future))
        self._arm(loop)
        return await future

    def _arm(self, loop: asyncio.AbstractEventLoop) -> None:
        if self._timer is not None or self._dispatching:
            return
        self._timer = loop.call_later(self.batch_wait_seconds, self._start_dispatch, loop)

    def _start_dispatch(self, loop: asyncio.AbstractEventLoop) -> None:
        self._timer = None
        task = loop.create_task(self._dispatch())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _dispatch(self) -> None:
        self._dispatching = True
        try:
            batch: list[BatchedTransitRequest] = []
            while self._queue and len(batch) < self.batch_size:
                request = self._queue.popleft()
                if not request.future.done():
                    batch.append(request)

            groups: dict[date, list[BatchedTransitRequest]] = {}
            for request in batch:
                groups.setdefault(request.departure.date(), []).append(request)

            logger.info(f"Dispatching {len(batch)} transit request(s) in {len(groups)} day group(s)")
            for requests in groups.values():
                try:
                    await self._dispatch_group(requests)
                except Exception as exc:
                    logger.exception(f"Transit dispatch failed for a group of {len(requests)} request(s)")
                    self._reject_all(requests, TransitLookupError(f"Transit dispatch failed: {exc}"))
        finally:
            self._dispatching = False
            if self._queue:
                self._arm(asyncio.get_running_loop())

    async def _dispatch_group(self, requests: list[BatchedTransitRequest]) -> None:
        open_requests = []
        for request in requests:
            if request.future.done():
                continue
            cached = self.peek(request.origin, request.destination, request.departure)
            if cached is not None:
                request.future.set_result(cached)
            else:
                open_requests.append(request)
        if not open_requests:
            return

        origins = list(dict.fromkeys(request.origin for request in open_requests))
        destinations = list(dict.fromkeys(request.destination for request in open_requests))
        departure = min(request.departure for request in open_requests)

        try:
            matrix = await asyncio.wait_for(
                self.provider.duration_matrix(origins, destinations, departure),
                timeout=self.provider_timeout_seconds,
            )
        except asyncio.TimeoutError:
            self._reject_all(
                open_requests,
                ProviderUnavailableError(
                    f"Transit provider did not answer within {self.provider_timeout_seconds:.1f}s."
                ),
            )
            return
        except TransitLookupError as exc:
            self._reject_all(open_requests, exc)
            return
        except Exception as exc:
            self._reject_all(open_requests, TransitLookupError(f"Transit provider failed: {exc}"))
            return

        resolved: dict[tuple[Coordinate, Coordinate], int] = {}
        stored_at = self._clock()
        for row, origin in enumerate(origins):
            for column, destination in enumerate(destinations):
                seconds = _cell(matrix, row, column)
                if seconds is None:
                    continue
                minutes = math.ceil(seconds / 60)
                resolved[(origin, destination)] = minutes
                self._cache[cache_key(origin, destination, departure)] = CachedTransitTime(
                    minutes=minutes, day=departure.date(), stored_at=stored_at
                )

        if not resolved:
            self._reject_all(open_requests, TransitLookupError("Transit provider returned no usable durations."))
            return

        for request in open_requests:
            if request.future.done():
                continue
            minutes = resolved.get((request.origin, request.destination))
            if minutes is None:
                logger.warning(f"No transit duration for {request.origin} -> {request.destination}")
                request.future.set_exception(
                    TransitLookupError(
                        "Transit time unavailable for this route.",
                        origin=request.origin,
                        destination=request.destination,
                    )
                )
            else:
                request.future.set_result(minutes)

    @staticmethod
    def _reject_all(requests: Sequence[BatchedTransitRequest], error: TransitLookupError) -> None:
        logger.warning(f"Rejecting {len(requests)} transit request(s): {error}")
        for request in requests:
            if not request.future.done():
                request.future.set_exception(error)


_shared_resolver: Optional[TransitTimeResolver] = None


def get_transit_resolver() -> TransitTimeResolver:
    """Process-wide resolver backed by the configured OSRM service."""
    global _shared_resolver
    if _shared_resolver is None:
        _shared_resolver = TransitTimeResolver(
            OSRMTransitProvider(timeout=settings.transit_provider_timeout_seconds)
        )
    return _shared_resolver
