"""Exception types raised by the scheduling engine and the transit resolver."""

from __future__ import annotations


class SchedulingError(ValueError):
    """Programmer-facing failure of a scheduling call (bad input, not an infeasible slot)."""


class InvalidTripWindowError(SchedulingError):
    """Trip date range or timezone cannot be scheduled against."""


class TransitLookupError(RuntimeError):
    """A precise transit lookup could not be answered."""

    def __init__(self, message: str, *, origin=None, destination=None) -> None:
        super().__init__(message)
        self.origin = origin
        self.destination = destination


class ProviderUnavailableError(TransitLookupError):
    """The distance provider did not respond (network failure or timeout)."""
