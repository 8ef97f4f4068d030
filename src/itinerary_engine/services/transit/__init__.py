"""Precise transit-time lookups: OSRM provider plus the cached, batched resolver."""

from .osrm_client import OSRMTransitProvider
from .resolver import TransitProvider, TransitTimeResolver, get_transit_resolver

__all__ = [
    "OSRMTransitProvider",
    "TransitProvider",
    "TransitTimeResolver",
    "get_transit_resolver",
]
