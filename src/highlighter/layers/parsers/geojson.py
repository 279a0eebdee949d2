"""Parse GeoJSON (RFC 7946) into a normalized FeatureCollection using stdlib json.

Accepts a FeatureCollection, a single Feature or a bare geometry.
Coordinates are already in [lng, lat] order.
"""

from __future__ import annotations

import json

from loguru import logger

_GEOMETRY_TYPES = frozenset({
    "Point",
    "MultiPoint",
    "LineString",
    "MultiLineString",
    "Polygon",
    "MultiPolygon",
    "GeometryCollection",
})


def parse_geojson(geojson_string: str) -> dict:
    """Parse a GeoJSON string into a FeatureCollection dict.

    Features without a usable geometry are dropped. Returns an empty
    collection on parse errors.
    """
    try:
        data = json.loads(geojson_string)
    except (json.JSONDecodeError, TypeError) as e:
        logger.warning(f"GeoJSON parse error: {e}")
        return {"type": "FeatureCollection", "features": []}

    if not isinstance(data, dict):
        return {"type": "FeatureCollection", "features": []}

    if data.get("type") == "FeatureCollection":
        raw_features = data.get("features") or []
    elif data.get("type") == "Feature":
        raw_features = [data]
    elif data.get("type") in _GEOMETRY_TYPES:
        raw_features = [{"type": "Feature", "geometry": data, "properties": {}}]
    else:
        raw_features = []

    features = [f for f in (_parse_feature(raw) for raw in raw_features) if f is not None]
    collection = {"type": "FeatureCollection", "features": features}
    if data.get("name"):
        collection["name"] = data["name"]
    return collection


def _parse_feature(raw: dict) -> dict | None:
    if not isinstance(raw, dict):
        return None

    geometry = raw.get("geometry")
    if not isinstance(geometry, dict) or geometry.get("type") not in _GEOMETRY_TYPES:
        return None
    if geometry["type"] != "GeometryCollection" and geometry.get("coordinates") is None:
        return None

    properties = raw.get("properties") or {}
    if not isinstance(properties, dict):
        properties = {}

    feature = {"type": "Feature", "geometry": geometry, "properties": dict(properties)}
    if raw.get("id") is not None:
        feature["id"] = str(raw["id"])
    return feature
