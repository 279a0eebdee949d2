"""Geocode search passthrough to Nominatim (OpenStreetMap)."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query, Request

from highlighter.api.deps import get_workspace
from highlighter.errors import NetworkError

router = APIRouter(prefix="/api/geocode", tags=["geocode"])


@router.get("/search")
async def search(request: Request, q: str = Query(..., min_length=1), limit: int = Query(10, ge=1, le=50)):
    """Candidate OSM elements for free text, for the entity picker."""
    workspace = get_workspace(request)
    if workspace.gateway is None:
        raise HTTPException(503, "Geocoding not configured")
    query = q.strip()
    if not query:
        raise HTTPException(400, "Query is required")
    try:
        candidates = await workspace.gateway.search(query, limit=limit)
    except NetworkError:
        raise HTTPException(status_code=502, detail="Geocoding service unavailable")
    return [c.to_dict() for c in candidates]
