"""GPX 1.0/1.1 import.

Waypoints become Points, routes become LineStrings, and tracks become a
LineString (one segment) or a MultiLineString. GPX puts latitude first in
attributes; output positions are ``[lng, lat]`` or ``[lng, lat, ele]``.
GPX elements carry no ids, so features are emitted without one and get a
geometry hash on insertion.
"""

from __future__ import annotations

import xml.etree.ElementTree as ET

from loguru import logger


def parse_gpx(gpx_string: str) -> dict:
    """Parse a GPX XML string into a FeatureCollection dict.

    Returns an empty collection on parse errors.
    """
    try:
        root = ET.fromstring(gpx_string)
    except ET.ParseError as e:
        logger.warning(f"GPX parse error: {e}")
        return {"type": "FeatureCollection", "features": []}

    ns = root.tag.split("}")[0] + "}" if root.tag.startswith("{") else ""
    parsers = (("wpt", _waypoint), ("trk", _track), ("rte", _route))

    features: list[dict] = []
    for tag, parse in parsers:
        for elem in root.findall(ns + tag):
            feature = parse(elem, ns)
            if feature is not None:
                features.append(feature)

    collection = {"type": "FeatureCollection", "features": features}
    metadata = root.find(ns + "metadata")
    name = _text(metadata if metadata is not None else root, ns, "name")
    if name:
        collection["name"] = name
    return collection


def _text(parent: ET.Element, ns: str, tag: str) -> str:
    elem = parent.find(ns + tag)
    return elem.text.strip() if elem is not None and elem.text else ""


def _position(point: ET.Element, ns: str) -> list[float] | None:
    try:
        position = [float(point.get("lon")), float(point.get("lat"))]
    except (TypeError, ValueError):
        return None
    ele = _text(point, ns, "ele")
    if ele:
        try:
            position.append(float(ele))
        except ValueError:
            pass
    return position


def _positions(points: list[ET.Element], ns: str) -> list[list[float]]:
    return [p for p in (_position(pt, ns) for pt in points) if p is not None]


def _named(elem: ET.Element, ns: str, geometry: dict, **extra: str) -> dict:
    properties = {k: v for k, v in extra.items() if v}
    name = _text(elem, ns, "name")
    if name:
        properties = {"name": name, **properties}
    return {"type": "Feature", "geometry": geometry, "properties": properties}


def _waypoint(wpt: ET.Element, ns: str) -> dict | None:
    position = _position(wpt, ns)
    if position is None:
        return None
    return _named(
        wpt, ns, {"type": "Point", "coordinates": position},
        description=_text(wpt, ns, "desc"),
        time=_text(wpt, ns, "time"),
    )


def _track(trk: ET.Element, ns: str) -> dict | None:
    segments = [
        coords for coords in (_positions(seg.findall(ns + "trkpt"), ns) for seg in trk.findall(ns + "trkseg"))
        if len(coords) >= 2
    ]
    if not segments:
        return None
    if len(segments) == 1:
        geometry = {"type": "LineString", "coordinates": segments[0]}
    else:
        geometry = {"type": "MultiLineString", "coordinates": segments}
    return _named(trk, ns, geometry)


def _route(rte: ET.Element, ns: str) -> dict | None:
    coords = _positions(rte.findall(ns + "rtept"), ns)
    if len(coords) < 2:
        return None
    return _named(rte, ns, {"type": "LineString", "coordinates": coords})
