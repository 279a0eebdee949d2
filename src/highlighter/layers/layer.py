"""Layer, Feature and styling dataclasses.

All coordinates are stored in GeoJSON convention: [lng, lat] or [lng, lat, alt].
Instances are frozen; edits go through ``dataclasses.replace`` so every
snapshot handed out stays valid.

The ``to_dict``/``from_dict`` pairs use the persisted/exported key names
(``featureCollection``, ``polygonsVisible``, ...).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from highlighter.layers.identity import (
    FeatureSource,
    import_feature_id,
    manual_feature_id,
    osm_feature_id,
)

DEFAULT_MARKER_ICON = "bi bi-geo-alt-fill"


class BorderStyle(str, Enum):
    """Outline dash pattern."""
    SOLID = "solid"
    DASHED = "dashed"
    DOTTED = "dotted"


@dataclass(frozen=True)
class Color:
    """Picker color: hex string plus RGBA channels."""

    hex: str = "#000000"
    r: int = 0
    g: int = 0
    b: int = 0
    a: float = 1.0

    @classmethod
    def from_hex(cls, hex_value: str, alpha: float = 1.0) -> Color:
        value = hex_value.lstrip("#")
        if len(value) == 3:
            value = "".join(c * 2 for c in value)
        if len(value) != 6:
            raise ValueError(f"Invalid hex color: {hex_value!r}")
        num = int(value, 16)
        return cls(
            hex=f"#{value.lower()}",
            r=(num >> 16) & 255,
            g=(num >> 8) & 255,
            b=num & 255,
            a=alpha,
        )

    @classmethod
    def from_dict(cls, data: dict | str | None, default_alpha: float = 1.0) -> Color:
        if data is None:
            return cls(a=default_alpha)
        if isinstance(data, str):
            return cls.from_hex(data, default_alpha)
        rgb = data.get("rgb") or {}
        return cls(
            hex=data.get("hex", "#000000"),
            r=int(rgb.get("r", 0)),
            g=int(rgb.get("g", 0)),
            b=int(rgb.get("b", 0)),
            a=float(rgb.get("a", default_alpha)),
        )

    def to_dict(self) -> dict:
        return {"rgb": {"r": self.r, "g": self.g, "b": self.b, "a": self.a}, "hex": self.hex}


@dataclass(frozen=True)
class SimplificationConfig:
    """Per-layer simplification settings.

    Attributes:
        multiplier: Scales the base tolerance (higher = more simplification).
        use_adaptive: Pick the base tolerance from the feature's bbox area.
        round_coordinates: Round every coordinate before and after simplifying.
        rounding_decimals: Decimal places kept when rounding (5 ~ 1.1 m).
    """

    multiplier: float = 1.0
    use_adaptive: bool = True
    round_coordinates: bool = True
    rounding_decimals: int = 5

    def __post_init__(self) -> None:
        if not self.multiplier > 0:
            raise ValueError(f"multiplier must be > 0, got {self.multiplier}")
        if int(self.rounding_decimals) != self.rounding_decimals or self.rounding_decimals < 0:
            raise ValueError(f"rounding_decimals must be an integer >= 0, got {self.rounding_decimals}")

    @classmethod
    def from_dict(cls, data: dict | None) -> SimplificationConfig:
        data = data or {}
        return cls(
            multiplier=float(data.get("multiplier", 1.0)),
            use_adaptive=bool(data.get("useAdaptive", True)),
            round_coordinates=bool(data.get("roundCoordinates", True)),
            rounding_decimals=int(data.get("roundingDecimals", 5)),
        )

    def to_dict(self) -> dict:
        return {
            "multiplier": self.multiplier,
            "useAdaptive": self.use_adaptive,
            "roundCoordinates": self.round_coordinates,
            "roundingDecimals": self.rounding_decimals,
        }


@dataclass(frozen=True)
class Feature:
    """A single geographic entity within a layer.

    ``geometry`` is a GeoJSON geometry dict, or ``None`` while the feature
    waits for geocode resolution. ``properties`` holds ``name``, ``notes``,
    ``source`` and, for OSM features, ``osm_type``/``osm_id``.
    """

    id: str
    geometry: dict | None
    properties: dict = field(default_factory=dict)

    @property
    def name(self) -> str:
        return self.properties.get("name") or ""

    @property
    def source(self) -> FeatureSource:
        return FeatureSource(self.properties.get("source", FeatureSource.MANUAL.value))

    @property
    def is_resolved(self) -> bool:
        return self.geometry is not None

    @classmethod
    def from_dict(cls, data: dict) -> Feature:
        """Build a Feature from its GeoJSON form.

        Older records kept ``source`` next to ``properties`` and may lack an
        id; both are normalized here.
        """
        properties = dict(data.get("properties") or {})
        source = properties.get("source") or data.get("source")
        if source not in {s.value for s in FeatureSource}:
            source = FeatureSource.OSM.value if properties.get("osm_id") else FeatureSource.IMPORT.value
        properties["source"] = source
        properties.setdefault("name", properties.get("display_name", ""))
        properties.setdefault("notes", "")
        geometry = data.get("geometry")

        feature_id = data.get("id")
        if not feature_id:
            if source == FeatureSource.OSM.value and properties.get("osm_type"):
                feature_id = osm_feature_id(properties["osm_type"], properties["osm_id"])
            elif source == FeatureSource.MANUAL.value:
                feature_id = manual_feature_id()
            else:
                feature_id = import_feature_id(None, geometry)
        return cls(id=str(feature_id), geometry=geometry, properties=properties)

    def to_dict(self) -> dict:
        return {
            "type": "Feature",
            "id": self.id,
            "geometry": self.geometry,
            "properties": dict(self.properties),
        }


@dataclass(frozen=True)
class Layer:
    """A named, styled, ordered collection of features.

    Attributes:
        id: Unique layer identifier (numeric timestamp or string).
        name: Human-readable display name.
        path: Path of the group this layer belongs to (``""`` = root).
        features: Ordered features; ids are unique within the layer.
        polygons_visible: Render non-point geometries.
        markers_visible: Render point markers.
        fill_color: Polygon fill.
        border_color: Outline and marker color.
        border_width: Outline width in pixels.
        border_style: Outline dash pattern.
        marker_icon: Icon class used for markers.
        simplification: Geometry simplification settings.
    """

    id: int | str
    name: str
    path: str = ""
    features: tuple[Feature, ...] = ()
    polygons_visible: bool = True
    markers_visible: bool = True
    fill_color: Color = field(default_factory=lambda: Color(a=0.2))
    border_color: Color = field(default_factory=lambda: Color(a=0.8))
    border_width: float = 2
    border_style: BorderStyle = BorderStyle.SOLID
    marker_icon: str = DEFAULT_MARKER_ICON
    simplification: SimplificationConfig = field(default_factory=SimplificationConfig)

    def get_feature(self, feature_id: str) -> Feature | None:
        for feature in self.features:
            if feature.id == feature_id:
                return feature
        return None

    def feature_index(self, feature_id: str) -> int:
        for idx, feature in enumerate(self.features):
            if feature.id == feature_id:
                return idx
        return -1

    @property
    def feature_ids(self) -> list[str]:
        return [f.id for f in self.features]

    @classmethod
    def from_dict(cls, data: dict) -> Layer:
        """Build a Layer from its persisted form.

        Accepts the legacy shape too: ``entities`` (a list of place names)
        instead of ``featureCollection`` and a single ``visible`` flag.
        """
        features: list[Feature] = []
        collection = data.get("featureCollection") or {}
        for raw in collection.get("features") or []:
            features.append(Feature.from_dict(raw))
        for entity in data.get("entities") or []:
            name = entity if isinstance(entity, str) else str(entity.get("name") or entity.get("id", ""))
            features.append(Feature(
                id=manual_feature_id(),
                geometry=None,
                properties={"name": name, "notes": "", "source": FeatureSource.MANUAL.value},
            ))

        unique: dict[str, Feature] = {}
        for feature in features:
            unique.setdefault(feature.id, feature)

        visible = data.get("visible", True)
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            path=data.get("path") or "",
            features=tuple(unique.values()),
            polygons_visible=bool(data.get("polygonsVisible", visible)),
            markers_visible=bool(data.get("markersVisible", visible)),
            fill_color=Color.from_dict(data.get("fillColor"), default_alpha=0.2),
            border_color=Color.from_dict(data.get("borderColor"), default_alpha=0.8),
            border_width=data.get("borderWidth", 2),
            border_style=BorderStyle(data.get("borderStyle") or BorderStyle.SOLID.value),
            marker_icon=data.get("markerIcon") or DEFAULT_MARKER_ICON,
            simplification=SimplificationConfig.from_dict(data.get("simplification")),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "path": self.path,
            "featureCollection": {
                "type": "FeatureCollection",
                "features": [f.to_dict() for f in self.features],
            },
            "polygonsVisible": self.polygons_visible,
            "markersVisible": self.markers_visible,
            "fillColor": self.fill_color.to_dict(),
            "borderColor": self.border_color.to_dict(),
            "borderWidth": self.border_width,
            "borderStyle": self.border_style.value,
            "markerIcon": self.marker_icon,
            "simplification": self.simplification.to_dict(),
        }
