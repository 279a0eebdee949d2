"""Adaptive geometry simplification.

Reduces the vertex count of lines and polygon rings with Douglas-Peucker
at a tolerance picked from the feature's size, then optionally rounds the
coordinates. A radial-distance pass runs before Douglas-Peucker to drop
clustered points cheaply.

Everything here is pure and deterministic: the input geometry is never
mutated and the same geometry + config always yields an equal result.
Tolerances are in degrees.
"""

from __future__ import annotations

import copy
from collections.abc import Iterator

from highlighter.layers.layer import SimplificationConfig

BASE_TOLERANCES = {
    "veryLarge": 0.02,  # countries
    "large": 0.01,      # regions
    "medium": 0.005,    # counties/districts
    "small": 0.002,     # cities/towns
}

# Bounding-box area thresholds in square degrees, largest first
AREA_THRESHOLDS = (
    ("veryLarge", 100.0),
    ("large", 10.0),
    ("medium", 1.0),
)

# Polygon rings retry with a 1% smaller tolerance until they stay valid
_RING_RETRY_FACTOR = 0.99
_RING_MAX_RETRIES = 500


def iter_positions(geometry: dict | None) -> Iterator[list[float]]:
    """Yield every position of a GeoJSON geometry."""
    if not geometry:
        return
    if geometry.get("type") == "GeometryCollection":
        for member in geometry.get("geometries") or []:
            yield from iter_positions(member)
        return

    def walk(coords):
        if not coords:
            return
        if isinstance(coords[0], (int, float)):
            yield coords
        else:
            for c in coords:
                yield from walk(c)

    yield from walk(geometry.get("coordinates"))


def bbox(geometry: dict | None) -> tuple[float, float, float, float] | None:
    """(min_lon, min_lat, max_lon, max_lat), or None for an empty geometry."""
    positions = list(iter_positions(geometry))
    if not positions:
        return None
    lons = [p[0] for p in positions]
    lats = [p[1] for p in positions]
    return min(lons), min(lats), max(lons), max(lats)


def bbox_area(geometry: dict | None) -> float:
    """Planar bounding-box area in square degrees (a crude size proxy)."""
    box = bbox(geometry)
    if box is None:
        return 0.0
    min_lon, min_lat, max_lon, max_lat = box
    return (max_lon - min_lon) * (max_lat - min_lat)


def base_tolerance_for_area(area: float) -> float:
    for size, threshold in AREA_THRESHOLDS:
        if area > threshold:
            return BASE_TOLERANCES[size]
    return BASE_TOLERANCES["small"]


def tolerance_for(geometry: dict | None, config: SimplificationConfig) -> float:
    """Simplification tolerance for ``geometry`` under ``config``."""
    if not config.use_adaptive:
        return BASE_TOLERANCES["medium"] * config.multiplier
    return base_tolerance_for_area(bbox_area(geometry)) * config.multiplier


def simplify(geometry: dict | None, config: SimplificationConfig) -> dict | None:
    """Simplify a GeoJSON geometry according to ``config``.

    Coordinates are rounded before and after each pass, and passes repeat
    until the geometry stops changing, so simplifying an already simplified
    geometry returns it unchanged. Every pass after the first either
    removes a position or returns its input, which bounds the loop.

    Args:
        geometry: GeoJSON geometry dict, or None.
        config: Layer simplification settings.

    Returns:
        A new geometry dict (None passes through).
    """
    if geometry is None:
        return None
    result = _simplify_pass(geometry, config)
    while True:
        again = _simplify_pass(result, config)
        if again == result:
            return result
        result = again


def _simplify_pass(geometry: dict, config: SimplificationConfig) -> dict:
    if config.round_coordinates:
        geometry = round_geometry(geometry, config.rounding_decimals)
    result = _simplify_geometry(geometry, tolerance_for(geometry, config))
    if config.round_coordinates:
        result = round_geometry(result, config.rounding_decimals)
    return result


def _simplify_geometry(geometry: dict, tolerance: float) -> dict:
    geom_type = geometry.get("type")
    result = {k: copy.deepcopy(v) for k, v in geometry.items() if k not in ("coordinates", "bbox")}

    if geom_type == "GeometryCollection":
        result["geometries"] = [
            _simplify_geometry(member, tolerance)
            for member in geometry.get("geometries") or []
        ]
        return result

    coords = geometry.get("coordinates")
    if coords is None:
        return result

    if geom_type == "LineString":
        result["coordinates"] = simplify_line(coords, tolerance)
    elif geom_type == "MultiLineString":
        result["coordinates"] = [simplify_line(line, tolerance) for line in coords]
    elif geom_type == "Polygon":
        result["coordinates"] = [simplify_ring(ring, tolerance) for ring in coords]
    elif geom_type == "MultiPolygon":
        result["coordinates"] = [
            [simplify_ring(ring, tolerance) for ring in polygon]
            for polygon in coords
        ]
    else:
        # Point / MultiPoint have nothing to simplify
        result["coordinates"] = copy.deepcopy(coords)
    return result


def simplify_line(points: list, tolerance: float) -> list:
    """Simplify a list of positions; endpoints are always kept."""
    points = [list(p) for p in points]
    if len(points) <= 2:
        return points
    sq_tolerance = tolerance * tolerance
    points = _simplify_radial(points, sq_tolerance)
    return _simplify_douglas_peucker(points, sq_tolerance)


def simplify_ring(ring: list, tolerance: float) -> list:
    """Simplify a polygon ring, keeping it closed with at least 4 positions.

    If the ring collapses, the tolerance is lowered by 1% and the ring is
    simplified again from the original positions. Rings that are already
    degenerate are returned unchanged.
    """
    if len(ring) < 4:
        return [list(p) for p in ring]

    simple = simplify_line(ring, tolerance)
    retries = 0
    while not _is_valid_ring(simple):
        retries += 1
        if retries > _RING_MAX_RETRIES:
            return [list(p) for p in ring]
        tolerance *= _RING_RETRY_FACTOR
        simple = simplify_line(ring, tolerance)

    if simple[-1][:2] != simple[0][:2]:
        simple.append(list(simple[0]))
    return simple


def _is_valid_ring(ring: list) -> bool:
    if len(ring) < 3:
        return False
    return not (len(ring) == 3 and ring[2][:2] == ring[0][:2])


def _sq_dist(p1: list, p2: list) -> float:
    dx = p1[0] - p2[0]
    dy = p1[1] - p2[1]
    return dx * dx + dy * dy


def _sq_seg_dist(p: list, p1: list, p2: list) -> float:
    """Squared distance from ``p`` to the segment ``p1``-``p2``."""
    x, y = p1[0], p1[1]
    dx = p2[0] - x
    dy = p2[1] - y

    if dx != 0 or dy != 0:
        t = ((p[0] - x) * dx + (p[1] - y) * dy) / (dx * dx + dy * dy)
        if t > 1:
            x, y = p2[0], p2[1]
        elif t > 0:
            x += dx * t
            y += dy * t

    dx = p[0] - x
    dy = p[1] - y
    return dx * dx + dy * dy


def _simplify_radial(points: list, sq_tolerance: float) -> list:
    """Drop points closer than the tolerance to the previously kept point."""
    prev = points[0]
    kept = [prev]
    for point in points[1:]:
        if _sq_dist(point, prev) > sq_tolerance:
            kept.append(point)
            prev = point
    if prev is not points[-1]:
        kept.append(points[-1])
    return kept


def _simplify_douglas_peucker(points: list, sq_tolerance: float) -> list:
    last = len(points) - 1
    keep = [False] * len(points)
    keep[0] = keep[last] = True

    stack = [(0, last)]
    while stack:
        first, end = stack.pop()
        max_sq_dist = sq_tolerance
        index = -1
        for i in range(first + 1, end):
            sq_dist = _sq_seg_dist(points[i], points[first], points[end])
            if sq_dist > max_sq_dist:
                index = i
                max_sq_dist = sq_dist
        if index >= 0:
            keep[index] = True
            if index - first > 1:
                stack.append((first, index))
            if end - index > 1:
                stack.append((index, end))

    return [p for p, k in zip(points, keep) if k]


def round_geometry(geometry: dict | None, decimals: int) -> dict | None:
    """Round every coordinate component to ``decimals`` places."""
    if geometry is None:
        return None
    result = dict(geometry)
    if geometry.get("type") == "GeometryCollection":
        result["geometries"] = [round_geometry(g, decimals) for g in geometry.get("geometries") or []]
        return result
    if geometry.get("coordinates") is not None:
        result["coordinates"] = _round_coords(geometry["coordinates"], decimals)
    return result


def _round_coords(coords, decimals: int):
    if coords and isinstance(coords[0], (int, float)):
        return [round(c, decimals) for c in coords]
    return [_round_coords(c, decimals) for c in coords]
