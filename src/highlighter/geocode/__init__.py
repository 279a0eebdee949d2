"""Geocoding: Nominatim gateway, cancellable tasks, re-fetch queue."""

from highlighter.geocode.gateway import (
    GeocodeGateway,
    LookupResult,
    NominatimGateway,
    SearchCandidate,
    parse_lookup_id,
)
from highlighter.geocode.refetch import RefetchJob, RefetchQueue, RefetchReport
from highlighter.geocode.tasks import CancellationToken, TaskRegistry

__all__ = [
    "CancellationToken",
    "GeocodeGateway",
    "LookupResult",
    "NominatimGateway",
    "RefetchJob",
    "RefetchQueue",
    "RefetchReport",
    "SearchCandidate",
    "TaskRegistry",
    "parse_lookup_id",
]
