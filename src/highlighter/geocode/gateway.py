"""Nominatim (OpenStreetMap) geocoding gateway.

Two calls are used:

- ``/search?format=jsonv2`` to turn free text into candidate OSM elements
- ``/lookup?format=geojson`` to fetch the geometry of one element by its
  ``N``/``W``/``R``-prefixed id

Nominatim requires a User-Agent header and allows 1 request/second; the
rate limit is enforced by the refetch queue, not here.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Protocol

import httpx
from loguru import logger

from highlighter.errors import NetworkError, NotFoundError
from highlighter.layers.identity import osm_lookup_id

_LOOKUP_ID_RE = re.compile(r"^([NWR])(\d+)$", re.IGNORECASE)

_SHORT_TYPES = {"N": "node", "W": "way", "R": "relation"}


@dataclass(frozen=True)
class SearchCandidate:
    """One hit of a free-text search."""
    osm_type: str
    osm_id: int
    display_name: str
    type: str = ""

    def to_dict(self) -> dict:
        return {
            "osm_type": self.osm_type,
            "osm_id": self.osm_id,
            "display_name": self.display_name,
            "type": self.type,
        }


@dataclass(frozen=True)
class LookupResult:
    """Geometry and properties of one OSM element."""
    geometry: dict
    properties: dict = field(default_factory=dict)

    @property
    def osm_type(self) -> str | None:
        return self.properties.get("osm_type")

    @property
    def osm_id(self) -> int | None:
        return self.properties.get("osm_id")


class GeocodeGateway(Protocol):
    async def search(self, query: str, limit: int = 10) -> list[SearchCandidate]: ...

    async def lookup(self, osm_type: str, osm_id: int | str, want_polygon: bool = True) -> LookupResult: ...

    async def resolve(self, query: str, want_polygon: bool = True) -> LookupResult: ...


def parse_lookup_id(text: str) -> tuple[str, int] | None:
    """``"R62422"`` -> ``("relation", 62422)``; anything else -> None."""
    match = _LOOKUP_ID_RE.match(text.strip())
    if match is None:
        return None
    return _SHORT_TYPES[match.group(1).upper()], int(match.group(2))


class NominatimGateway:
    """Async client for the Nominatim search and lookup endpoints.

    Args:
        base_url: Nominatim root, without a trailing endpoint.
        user_agent: Sent with every request (required by the usage policy).
        timeout: Per-request timeout in seconds.
        client: Shared client; when omitted each call opens its own.
    """

    def __init__(
        self,
        base_url: str = "https://nominatim.openstreetmap.org",
        user_agent: str = "map-highlighter/0.1.0",
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.user_agent = user_agent
        self.timeout = timeout
        self._client = client

    async def _get(self, endpoint: str, params: dict) -> object:
        url = f"{self.base_url}/{endpoint}"
        headers = {"User-Agent": self.user_agent}
        try:
            if self._client is not None:
                resp = await self._client.get(url, params=params, headers=headers, timeout=self.timeout)
                resp.raise_for_status()
            else:
                async with httpx.AsyncClient() as client:
                    resp = await client.get(url, params=params, headers=headers, timeout=self.timeout)
                    resp.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning(f"Nominatim {endpoint} failed: {e}")
            raise NetworkError(f"Nominatim {endpoint} failed: {e}") from e
        try:
            return resp.json()
        except ValueError as e:
            raise NetworkError(f"Nominatim {endpoint} returned invalid JSON") from e

    async def search(self, query: str, limit: int = 10) -> list[SearchCandidate]:
        """Free-text search. Hits without an OSM element are skipped."""
        data = await self._get("search", {"q": query, "format": "jsonv2", "limit": limit})
        if not isinstance(data, list):
            return []
        results = []
        for hit in data:
            if not hit.get("osm_type") or hit.get("osm_id") is None:
                continue
            results.append(SearchCandidate(
                osm_type=hit["osm_type"],
                osm_id=int(hit["osm_id"]),
                display_name=hit.get("display_name", ""),
                type=hit.get("type", ""),
            ))
        return results

    async def lookup(self, osm_type: str, osm_id: int | str, want_polygon: bool = True) -> LookupResult:
        """Fetch the geometry of one element.

        Raises:
            NotFoundError: The element is unknown or has no geometry.
            NetworkError: The request failed.
        """
        lookup_id = osm_lookup_id(osm_type, osm_id)
        data = await self._get("lookup", {
            "osm_ids": lookup_id,
            "format": "geojson",
            "polygon_geojson": 1 if want_polygon else 0,
        })
        features = data.get("features") if isinstance(data, dict) else None
        if not features or not features[0].get("geometry"):
            raise NotFoundError(f"No geometry for {lookup_id}")
        feature = features[0]
        properties = dict(feature.get("properties") or {})
        properties.setdefault("osm_type", osm_type)
        properties.setdefault("osm_id", osm_id)
        return LookupResult(geometry=feature["geometry"], properties=properties)

    async def resolve(self, query: str, want_polygon: bool = True) -> LookupResult:
        """Geometry for free text or a lookup id such as ``"R62422"``.

        Raises:
            NotFoundError: Search found nothing, or the first hit has no geometry.
            NetworkError: A request failed.
        """
        parsed = parse_lookup_id(query)
        if parsed is not None:
            return await self.lookup(*parsed, want_polygon=want_polygon)
        candidates = await self.search(query, limit=1)
        if not candidates:
            raise NotFoundError(f"No results for {query!r}")
        best = candidates[0]
        result = await self.lookup(best.osm_type, best.osm_id, want_polygon=want_polygon)
        properties = dict(result.properties)
        properties.setdefault("display_name", best.display_name)
        return LookupResult(geometry=result.geometry, properties=properties)
