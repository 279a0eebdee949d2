"""File-format parsers producing a generic GeoJSON FeatureCollection.

All parsers use only Python stdlib (xml.etree.ElementTree, json).
"""

from __future__ import annotations

import os

from highlighter.layers.parsers.geojson import parse_geojson
from highlighter.layers.parsers.gpx import parse_gpx
from highlighter.layers.parsers.kml import parse_kml

_FORMAT_MAP = {
    ".kml": "kml",
    ".gpx": "gpx",
    ".geojson": "geojson",
    ".json": "geojson",
}


def detect_format(filename: str) -> str:
    """Guess the format from a file extension.

    Raises:
        ValueError: If the extension is not recognized.
    """
    ext = os.path.splitext(filename)[1].lower()
    try:
        return _FORMAT_MAP[ext]
    except KeyError:
        raise ValueError(f"Unsupported import file type: {filename}") from None


def parse_content(content: str, format: str) -> dict:
    """Parse content string into a FeatureCollection using the matching parser."""
    if format == "kml":
        return parse_kml(content)
    elif format == "gpx":
        return parse_gpx(content)
    elif format == "geojson":
        return parse_geojson(content)
    else:
        raise ValueError(f"Unsupported import format: {format}")


__all__ = ["detect_format", "parse_content", "parse_geojson", "parse_gpx", "parse_kml"]
