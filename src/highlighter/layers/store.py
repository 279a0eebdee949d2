"""LayerStore — ordered, immutable collection of layers.

Manages the lifecycle of Layer objects: add, remove, get, list, move and
style/visibility updates. Each mutator returns a new store; an unknown
layer id returns the same store unchanged rather than raising, since
edits may race with deletions coming from asynchronous callbacks.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Iterable, Iterator
from dataclasses import replace

from loguru import logger

from highlighter.groups.node import is_within, replace_prefix
from highlighter.layers.layer import BorderStyle, Color, Layer, SimplificationConfig

_UPDATABLE = frozenset({
    "name",
    "polygons_visible",
    "markers_visible",
    "fill_color",
    "border_color",
    "border_width",
    "border_style",
    "marker_icon",
    "simplification",
})


class LayerStore:
    """Ordered registry of layers; list order is render order."""

    __slots__ = ("_layers",)

    def __init__(self, layers: Iterable[Layer] = ()) -> None:
        self._layers: tuple[Layer, ...] = tuple(layers)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def layers(self) -> tuple[Layer, ...]:
        return self._layers

    def get_layer(self, layer_id: int | str) -> Layer | None:
        """Get a layer by ID, or None if it doesn't exist."""
        for layer in self._layers:
            if layer.id == layer_id:
                return layer
        return None

    def index_of(self, layer_id: int | str) -> int:
        for idx, layer in enumerate(self._layers):
            if layer.id == layer_id:
                return idx
        return -1

    def list_layers(self) -> list[Layer]:
        return list(self._layers)

    def layers_at(self, path: str) -> list[Layer]:
        """Layers whose path is exactly ``path``, in list order."""
        return [layer for layer in self._layers if layer.path == path]

    def paths(self) -> list[str]:
        """Distinct layer paths in first-seen order."""
        return list(dict.fromkeys(layer.path for layer in self._layers))

    def __iter__(self) -> Iterator[Layer]:
        return iter(self._layers)

    def __len__(self) -> int:
        return len(self._layers)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, LayerStore):
            return NotImplemented
        return self._layers == other._layers

    def __repr__(self) -> str:
        return f"LayerStore({len(self._layers)} layers)"

    # ------------------------------------------------------------------
    # Mutators (each returns a new store)
    # ------------------------------------------------------------------

    def next_layer_id(self) -> int:
        """Millisecond timestamp, bumped until it is unused."""
        candidate = time.time_ns() // 1_000_000
        taken = {layer.id for layer in self._layers}
        while candidate in taken:
            candidate += 1
        return candidate

    def add_layer(
        self,
        name: str,
        path: str = "",
        layer_id: int | str | None = None,
        **style,
    ) -> tuple[LayerStore, Layer]:
        """Append a new empty layer under ``path``.

        Returns:
            The new store and the created Layer.

        Raises:
            ValueError: If ``layer_id`` is already used.
        """
        if layer_id is None:
            layer_id = self.next_layer_id()
        elif self.get_layer(layer_id) is not None:
            raise ValueError(f"Layer id already exists: {layer_id}")
        layer = _apply_changes(Layer(id=layer_id, name=name, path=path), style)
        logger.debug(f"Layer added: {name!r} ({layer_id}) at {path!r}")
        return LayerStore(self._layers + (layer,)), layer

    def insert_layer(self, layer: Layer) -> LayerStore:
        """Append an existing Layer object; a duplicate id is ignored."""
        if self.get_layer(layer.id) is not None:
            return self
        return LayerStore(self._layers + (layer,))

    def remove_layer(self, layer_id: int | str) -> LayerStore:
        """Drop a layer together with all its features."""
        if self.get_layer(layer_id) is None:
            return self
        return LayerStore(layer for layer in self._layers if layer.id != layer_id)

    def map_layer(self, layer_id: int | str, fn: Callable[[Layer], Layer]) -> LayerStore:
        """Replace the layer with ``fn(layer)``; no-op if unknown or unchanged."""
        idx = self.index_of(layer_id)
        if idx < 0:
            return self
        updated = fn(self._layers[idx])
        if updated is self._layers[idx]:
            return self
        layers = list(self._layers)
        layers[idx] = updated
        return LayerStore(layers)

    def update_layer(self, layer_id: int | str, **changes) -> LayerStore:
        """Change name, visibility, colors, border or icon of a layer.

        Raises:
            TypeError: If a field other than the style fields is given.
        """
        unknown = set(changes) - _UPDATABLE
        if unknown:
            raise TypeError(f"Cannot update layer fields: {sorted(unknown)}")
        return self.map_layer(layer_id, lambda layer: _apply_changes(layer, changes))

    def move_layer(self, layer_id: int | str, dest_path: str, dest_index: int) -> LayerStore:
        """Move a layer into ``dest_path`` at ``dest_index`` among that group's layers.

        The index counts only layers already at ``dest_path``: the layer is
        inserted before the ``dest_index``-th of them, after the last one if
        the index is past the end, or at the end of the whole list if the
        group has no layers yet.
        """
        idx = self.index_of(layer_id)
        if idx < 0:
            return self
        moved = replace(self._layers[idx], path=dest_path)
        rest = [layer for i, layer in enumerate(self._layers) if i != idx]
        positions = [i for i, layer in enumerate(rest) if layer.path == dest_path]

        dest_index = max(0, dest_index)
        if not positions:
            rest.append(moved)
        elif dest_index < len(positions):
            rest.insert(positions[dest_index], moved)
        else:
            rest.insert(positions[-1] + 1, moved)
        return LayerStore(rest)

    def rewrite_paths(self, old_prefix: str, new_prefix: str) -> LayerStore:
        """Rewrite every layer path at or under ``old_prefix`` to ``new_prefix``."""
        if not old_prefix or old_prefix == new_prefix:
            return self
        changed = False
        layers = []
        for layer in self._layers:
            if is_within(layer.path, old_prefix):
                layer = replace(layer, path=replace_prefix(layer.path, old_prefix, new_prefix))
                changed = True
            layers.append(layer)
        return LayerStore(layers) if changed else self

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    @classmethod
    def from_list(cls, data: list[dict] | None) -> LayerStore:
        layers: list[Layer] = []
        seen: set = set()
        for raw in data or []:
            layer = Layer.from_dict(raw)
            if layer.id in seen:
                logger.warning(f"Skipping duplicate layer id {layer.id!r}")
                continue
            seen.add(layer.id)
            layers.append(layer)
        return cls(layers)

    def to_list(self) -> list[dict]:
        return [layer.to_dict() for layer in self._layers]


def _apply_changes(layer: Layer, changes: dict) -> Layer:
    if not changes:
        return layer
    changes = dict(changes)
    for key in ("fill_color", "border_color"):
        if key in changes and not isinstance(changes[key], Color):
            changes[key] = Color.from_dict(changes[key])
    if "border_style" in changes:
        changes["border_style"] = BorderStyle(changes["border_style"])
    if "simplification" in changes and not isinstance(changes["simplification"], SimplificationConfig):
        changes["simplification"] = SimplificationConfig.from_dict(changes["simplification"])
    updated = replace(layer, **changes)
    return layer if updated == layer else updated
