"""EntityStore — per-layer ordered feature collection.

Every function takes a Layer and returns a Layer. When nothing changes
(unknown entity id, duplicate add, out-of-range index) the very same Layer
object is returned, so callers can detect no-ops with ``is``.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum

from highlighter.layers.identity import (
    FeatureSource,
    import_feature_id,
    manual_feature_id,
    osm_feature_id,
)
from highlighter.layers.layer import Feature, Layer


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


@dataclass(frozen=True)
class EntityCandidate:
    """Something the user wants to add to a layer.

    Attributes:
        source: Determines how the feature id is derived.
        name: Display name.
        geometry: GeoJSON geometry, or None if it still has to be geocoded.
        id: Id carried by an imported file, if any.
        osm_type: OSM element type ("node"/"way"/"relation" or N/W/R).
        osm_id: OSM element id.
        notes: Free-form user notes.
        properties: Extra properties copied onto the feature.
    """

    source: FeatureSource
    name: str = ""
    geometry: dict | None = None
    id: str | None = None
    osm_type: str | None = None
    osm_id: int | str | None = None
    notes: str = ""
    properties: dict = field(default_factory=dict)

    @classmethod
    def from_geojson(cls, data: dict, source: FeatureSource = FeatureSource.IMPORT) -> EntityCandidate:
        """Candidate from a parsed GeoJSON feature (GPX/KML import)."""
        properties = dict(data.get("properties") or {})
        name = properties.pop("name", "") or ""
        notes = properties.pop("description", "") or properties.pop("notes", "") or ""
        return cls(
            source=source,
            name=name,
            geometry=data.get("geometry"),
            id=data.get("id"),
            notes=notes,
            properties=properties,
        )


def candidate_feature_id(candidate: EntityCandidate) -> str:
    if candidate.source == FeatureSource.OSM:
        if not candidate.osm_type or candidate.osm_id is None:
            raise ValueError("OSM candidates need osm_type and osm_id")
        return osm_feature_id(candidate.osm_type, candidate.osm_id)
    if candidate.source == FeatureSource.IMPORT:
        return import_feature_id(candidate.id, candidate.geometry)
    return manual_feature_id()


def build_feature(candidate: EntityCandidate) -> Feature:
    properties = dict(candidate.properties)
    properties.update({
        "name": candidate.name,
        "notes": candidate.notes,
        "source": candidate.source.value,
    })
    if candidate.source == FeatureSource.OSM:
        properties["osm_type"] = candidate.osm_type
        properties["osm_id"] = candidate.osm_id
    return Feature(id=candidate_feature_id(candidate), geometry=candidate.geometry, properties=properties)


def add_feature(layer: Layer, feature: Feature) -> Layer:
    """Append ``feature`` unless its id is already present in the layer."""
    if layer.get_feature(feature.id) is not None:
        return layer
    return replace(layer, features=layer.features + (feature,))


def add_entity(layer: Layer, candidate: EntityCandidate) -> Layer:
    return add_feature(layer, build_feature(candidate))


def remove_entity(layer: Layer, entity_id: str) -> Layer:
    if layer.get_feature(entity_id) is None:
        return layer
    return replace(layer, features=tuple(f for f in layer.features if f.id != entity_id))


def clear_entities(layer: Layer) -> Layer:
    if not layer.features:
        return layer
    return replace(layer, features=())


def reorder_entities(layer: Layer, from_index: int, to_index: int) -> Layer:
    """Move the feature at ``from_index`` so it ends up at ``to_index``."""
    count = len(layer.features)
    if not (0 <= from_index < count and 0 <= to_index < count) or from_index == to_index:
        return layer
    features = list(layer.features)
    moved = features.pop(from_index)
    features.insert(to_index, moved)
    return replace(layer, features=tuple(features))


def sort_entities(layer: Layer, order: SortOrder | str = SortOrder.ASC) -> Layer:
    """Stable sort by ``properties.name``; equal names keep their order."""
    order = SortOrder(order)
    features = sorted(layer.features, key=lambda f: f.name, reverse=order == SortOrder.DESC)
    if features == list(layer.features):
        return layer
    return replace(layer, features=tuple(features))


def update_entity(
    layer: Layer,
    entity_id: str,
    *,
    name: str | None = None,
    notes: str | None = None,
) -> Layer:
    idx = layer.feature_index(entity_id)
    if idx < 0:
        return layer
    feature = layer.features[idx]
    properties = dict(feature.properties)
    if name is not None:
        properties["name"] = name
    if notes is not None:
        properties["notes"] = notes
    return _swap(layer, idx, replace(feature, properties=properties))


def set_entity_geometry(
    layer: Layer,
    entity_id: str,
    geometry: dict | None,
    properties: dict | None = None,
) -> Layer:
    """Write resolved geometry (and optionally merged properties) back."""
    idx = layer.feature_index(entity_id)
    if idx < 0:
        return layer
    feature = layer.features[idx]
    merged = dict(feature.properties)
    if properties:
        merged.update(properties)
    return _swap(layer, idx, replace(feature, geometry=geometry, properties=merged))


def _swap(layer: Layer, idx: int, feature: Feature) -> Layer:
    features = list(layer.features)
    features[idx] = feature
    return replace(layer, features=tuple(features))
