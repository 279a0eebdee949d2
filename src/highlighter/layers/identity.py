"""Feature identity rules.

The id of a feature depends on where it came from:

- ``osm``: ``"{osm_type}/{osm_id}"`` so re-fetching the same place is idempotent
- ``import``: the id carried by the file, else a hash of the geometry so
  re-importing the same file does not duplicate features
- ``manual``: a fresh random UUID
"""

from __future__ import annotations

import hashlib
import json
import uuid
from enum import Enum


class FeatureSource(str, Enum):
    """Where a feature's geometry comes from."""
    OSM = "osm"
    IMPORT = "import"
    MANUAL = "manual"


def osm_feature_id(osm_type: str, osm_id: int | str) -> str:
    return f"{osm_type}/{osm_id}"


def osm_lookup_id(osm_type: str, osm_id: int | str) -> str:
    """Nominatim lookup key: single-letter N/W/R prefix plus the numeric id.

    Accepts either the long form (``"relation"``) or the short one (``"R"``).
    """
    if not osm_type:
        raise ValueError("osm_type is required")
    return f"{osm_type[0].upper()}{osm_id}"


def geometry_hash(geometry: dict | None) -> str:
    """Content hash of a geometry, stable across key order and whitespace."""
    canonical = json.dumps(geometry, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:16]


def import_feature_id(candidate_id: str | None, geometry: dict | None) -> str:
    if candidate_id:
        return str(candidate_id)
    return f"import-{geometry_hash(geometry)}"


def manual_feature_id() -> str:
    return str(uuid.uuid4())
