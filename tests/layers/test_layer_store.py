"""Tests for Layer serialization and the immutable LayerStore."""

import pytest

from highlighter.layers import BorderStyle, Color, Layer, LayerStore, SimplificationConfig


@pytest.mark.unit
class TestColor:
    def test_from_hex(self):
        c = Color.from_hex("#FF8000", alpha=0.5)
        assert (c.r, c.g, c.b, c.a) == (255, 128, 0, 0.5)
        assert c.hex == "#ff8000"

    def test_short_hex(self):
        assert Color.from_hex("#fff").hex == "#ffffff"

    def test_invalid_hex(self):
        with pytest.raises(ValueError):
            Color.from_hex("#12")

    def test_picker_format(self):
        data = {"hex": "#3388ff", "rgb": {"r": 51, "g": 136, "b": 255, "a": 0.4}}
        assert Color.from_dict(data).to_dict() == data


@pytest.mark.unit
class TestSimplificationConfig:
    def test_defaults(self):
        config = SimplificationConfig()
        assert config.to_dict() == {
            "multiplier": 1.0,
            "useAdaptive": True,
            "roundCoordinates": True,
            "roundingDecimals": 5,
        }

    @pytest.mark.parametrize("kwargs", [
        {"multiplier": 0},
        {"multiplier": -1.0},
        {"rounding_decimals": -1},
    ])
    def test_invalid_values(self, kwargs):
        with pytest.raises(ValueError):
            SimplificationConfig(**kwargs)


@pytest.mark.unit
class TestLayer:
    def test_defaults(self):
        layer = Layer(id=1, name="New")
        assert layer.path == ""
        assert layer.fill_color.a == 0.2
        assert layer.border_color.a == 0.8
        assert layer.border_width == 2
        assert layer.border_style == BorderStyle.SOLID
        assert layer.marker_icon == "bi bi-geo-alt-fill"
        assert layer.polygons_visible and layer.markers_visible

    def test_round_trip(self):
        layer = Layer(id=5, name="Borders", path="A/B", border_style=BorderStyle.DOTTED)
        assert Layer.from_dict(layer.to_dict()) == layer

    def test_legacy_entities_and_visible(self):
        """Old records carry a place-name list and a single visibility flag."""
        layer = Layer.from_dict({"id": 3, "name": "Old", "entities": ["France", {"name": "Spain"}], "visible": False})
        assert [f.name for f in layer.features] == ["France", "Spain"]
        assert all(f.geometry is None for f in layer.features)
        assert all(f.properties["source"] == "manual" for f in layer.features)
        assert layer.polygons_visible is False
        assert layer.markers_visible is False

    def test_feature_source_moved_into_properties(self):
        layer = Layer.from_dict({
            "id": 1,
            "name": "x",
            "featureCollection": {"type": "FeatureCollection", "features": [{
                "type": "Feature",
                "source": "osm",
                "geometry": {"type": "Point", "coordinates": [0, 0]},
                "properties": {"osm_type": "node", "osm_id": 42, "display_name": "Somewhere"},
            }]},
        })
        feature = layer.features[0]
        assert feature.id == "node/42"
        assert feature.properties["source"] == "osm"
        assert feature.name == "Somewhere"

    def test_duplicate_feature_ids_collapsed(self):
        feature = {"type": "Feature", "id": "a", "geometry": None, "properties": {"name": "A"}}
        layer = Layer.from_dict({
            "id": 1, "name": "x",
            "featureCollection": {"type": "FeatureCollection", "features": [feature, feature]},
        })
        assert layer.feature_ids == ["a"]


@pytest.mark.unit
class TestLayerStore:
    def test_add_layer_generates_unique_ids(self):
        store = LayerStore()
        store, first = store.add_layer("One")
        store, second = store.add_layer("Two")
        assert first.id != second.id
        assert [layer.name for layer in store] == ["One", "Two"]

    def test_add_layer_duplicate_id(self):
        store, _ = LayerStore().add_layer("One", layer_id=1)
        with pytest.raises(ValueError):
            store.add_layer("Again", layer_id=1)

    def test_add_layer_with_style(self):
        store, layer = LayerStore().add_layer("Styled", fill_color="#ff0000", border_style="dashed")
        assert layer.fill_color.hex == "#ff0000"
        assert layer.border_style == BorderStyle.DASHED

    def test_remove_layer(self):
        store, _ = LayerStore().add_layer("One", layer_id=1)
        assert len(store.remove_layer(1)) == 0

    def test_unknown_layer_is_noop(self):
        store, _ = LayerStore().add_layer("One", layer_id=1)
        assert store.remove_layer(2) is store
        assert store.update_layer(2, name="x") is store

    def test_update_layer(self):
        store, _ = LayerStore().add_layer("One", layer_id=1)
        store = store.update_layer(1, name="Renamed", polygons_visible=False, border_width=4)
        layer = store.get_layer(1)
        assert layer.name == "Renamed"
        assert layer.polygons_visible is False
        assert layer.border_width == 4

    def test_update_unchanged_is_noop(self):
        store, _ = LayerStore().add_layer("One", layer_id=1)
        assert store.update_layer(1, name="One") is store

    def test_update_rejects_structural_fields(self):
        store, _ = LayerStore().add_layer("One", layer_id=1)
        with pytest.raises(TypeError):
            store.update_layer(1, path="elsewhere")

    def test_rewrite_paths(self):
        store = LayerStore.from_list([
            {"id": 1, "name": "a", "path": "A"},
            {"id": 2, "name": "b", "path": "A/B"},
            {"id": 3, "name": "c", "path": "AB"},
        ])
        store = store.rewrite_paths("A", "Z")
        assert [layer.path for layer in store] == ["Z", "Z/B", "AB"]

    def test_rewrite_root_prefix_is_noop(self):
        store = LayerStore.from_list([{"id": 1, "name": "a", "path": "A"}])
        assert store.rewrite_paths("", "X") is store

    def test_from_list_skips_duplicate_ids(self):
        store = LayerStore.from_list([{"id": 1, "name": "a"}, {"id": 1, "name": "b"}])
        assert [layer.name for layer in store] == ["a"]

    def test_to_list_round_trip(self):
        store, _ = LayerStore().add_layer("One", "A", layer_id=1)
        assert LayerStore.from_list(store.to_list()) == store
