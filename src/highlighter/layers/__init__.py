"""Layer system — styled feature collections addressed into the group tree."""

from highlighter.layers.entities import EntityCandidate, SortOrder
from highlighter.layers.identity import FeatureSource
from highlighter.layers.layer import BorderStyle, Color, Feature, Layer, SimplificationConfig
from highlighter.layers.store import LayerStore

__all__ = [
    "BorderStyle",
    "Color",
    "EntityCandidate",
    "Feature",
    "FeatureSource",
    "Layer",
    "LayerStore",
    "SimplificationConfig",
    "SortOrder",
]
