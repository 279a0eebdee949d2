"""Parse KML 2.2/2.3 XML to a GeoJSON FeatureCollection using xml.etree.ElementTree.

Handles Placemark/Point, Placemark/LineString, Placemark/Polygon and
MultiGeometry. Extracts name and description; a Placemark ``id``
attribute becomes the feature id.
KML coordinate format: "lng,lat,alt lng,lat,alt" (longitude first, latitude second).
"""

from __future__ import annotations

import xml.etree.ElementTree as ET

from loguru import logger


def parse_kml(kml_string: str) -> dict:
    """Parse a KML XML string into a FeatureCollection dict.

    Args:
        kml_string: Raw KML XML content.

    Returns:
        FeatureCollection dict. Empty collection on parse errors.
    """
    try:
        root = ET.fromstring(kml_string)
    except ET.ParseError as e:
        logger.warning(f"KML parse error: {e}")
        return {"type": "FeatureCollection", "features": []}

    ns = _detect_namespace(root)

    doc_name = ""
    doc = root.find(f"{ns}Document")
    if doc is not None:
        doc_name = _get_direct_text(doc, "name", ns)

    features: list[dict] = []
    for pm in root.iter(f"{ns}Placemark"):
        feature = _parse_placemark(pm, ns)
        if feature is not None:
            features.append(feature)

    collection = {"type": "FeatureCollection", "features": features}
    if doc_name:
        collection["name"] = doc_name
    return collection


def _detect_namespace(root: ET.Element) -> str:
    """Detect KML namespace from root element tag."""
    tag = root.tag
    if "{" in tag:
        return tag.split("}")[0] + "}"
    return ""


def _get_direct_text(parent: ET.Element, tag: str, ns: str) -> str:
    elem = parent.find(f"{ns}{tag}")
    if elem is not None and elem.text:
        return elem.text.strip()
    return ""


def _parse_placemark(pm: ET.Element, ns: str) -> dict | None:
    """Parse a single Placemark element into a feature dict."""
    geometries = [g for g in (_parse_geometry(child, ns) for child in pm) if g is not None]
    if not geometries:
        return None
    geometry = geometries[0]

    properties: dict = {}
    name = _get_direct_text(pm, "name", ns)
    description = _get_direct_text(pm, "description", ns)
    if name:
        properties["name"] = name
    if description:
        properties["description"] = description

    feature = {"type": "Feature", "geometry": geometry, "properties": properties}
    if pm.get("id"):
        feature["id"] = pm.get("id")
    return feature


def _parse_geometry(elem: ET.Element, ns: str) -> dict | None:
    tag = elem.tag[len(ns):] if ns and elem.tag.startswith(ns) else elem.tag

    if tag == "Point":
        coords = _coordinates_of(elem, ns)
        return {"type": "Point", "coordinates": coords[0]} if coords else None

    if tag == "LineString":
        coords = _coordinates_of(elem, ns)
        return {"type": "LineString", "coordinates": coords} if len(coords) >= 2 else None

    if tag == "Polygon":
        rings = _parse_polygon_rings(elem, ns)
        return {"type": "Polygon", "coordinates": rings} if rings else None

    if tag == "MultiGeometry":
        parts = [g for g in (_parse_geometry(child, ns) for child in elem) if g is not None]
        if not parts:
            return None
        kinds = {p["type"] for p in parts}
        if kinds == {"Polygon"}:
            return {"type": "MultiPolygon", "coordinates": [p["coordinates"] for p in parts]}
        if kinds == {"LineString"}:
            return {"type": "MultiLineString", "coordinates": [p["coordinates"] for p in parts]}
        if kinds == {"Point"}:
            return {"type": "MultiPoint", "coordinates": [p["coordinates"] for p in parts]}
        return {"type": "GeometryCollection", "geometries": parts}

    return None


def _parse_coordinate_string(coord_str: str) -> list[list[float]]:
    """Parse KML coordinate string: 'lng,lat,alt lng,lat,alt ...'

    Returns list of [lng, lat] or [lng, lat, alt] arrays.
    """
    coords = []
    for token in coord_str.strip().split():
        parts = token.strip().split(",")
        if len(parts) >= 2:
            try:
                position = [float(parts[0]), float(parts[1])]
                if len(parts) >= 3 and parts[2]:
                    position.append(float(parts[2]))
                coords.append(position)
            except ValueError:
                continue
    return coords


def _coordinates_of(geom_elem: ET.Element, ns: str) -> list[list[float]]:
    coord_elem = geom_elem.find(f".//{ns}coordinates")
    if coord_elem is None or not coord_elem.text:
        return []
    return _parse_coordinate_string(coord_elem.text)


def _parse_polygon_rings(polygon_elem: ET.Element, ns: str) -> list[list[list[float]]]:
    """Parse polygon rings (outer boundary + optional inner boundaries)."""
    rings = []

    outer = polygon_elem.find(f"{ns}outerBoundaryIs/{ns}LinearRing")
    if outer is not None:
        coords = _coordinates_of(outer, ns)
        if coords:
            rings.append(coords)
    if not rings:
        return []

    for inner in polygon_elem.findall(f"{ns}innerBoundaryIs/{ns}LinearRing"):
        coords = _coordinates_of(inner, ns)
        if coords:
            rings.append(coords)

    return rings
