"""WorkspaceState — one immutable snapshot of layers plus group tree."""

from __future__ import annotations

from dataclasses import dataclass, field

from highlighter.groups import ROOT_PATH, PathTree, reconcile
from highlighter.layers import Layer, LayerStore


@dataclass(frozen=True)
class WorkspaceState:
    """Layers and groups as seen by one render.

    Layers refer to groups by path only; ``reconciled()`` repairs any path
    that does not resolve.
    """

    layers: LayerStore = field(default_factory=LayerStore)
    tree: PathTree = field(default_factory=PathTree.empty)

    @classmethod
    def from_dicts(cls, layers: list[dict] | None, groups: list[dict] | None) -> WorkspaceState:
        """Build a reconciled state from persisted ``layers``/``groups`` records.

        With no group records a bare ``Root`` group is synthesized.
        """
        store = LayerStore.from_list(layers)
        tree = PathTree.from_forest(groups) if groups else PathTree.empty()
        return cls(store, reconcile(store, tree))

    def to_dicts(self) -> dict:
        return {"layers": self.layers.to_list(), "groups": self.tree.to_forest()}

    def reconciled(self) -> WorkspaceState:
        tree = reconcile(self.layers, self.tree)
        return self if tree is self.tree else WorkspaceState(self.layers, tree)

    def effective_path(self, layer: Layer) -> str:
        """The layer's path, or the root path if its group no longer exists."""
        return layer.path if layer.path in self.tree else ROOT_PATH

    def layers_in_group(self, path: str) -> list[Layer]:
        """Layers displayed under the group at ``path``; orphans go under root."""
        return [layer for layer in self.layers if self.effective_path(layer) == path]

    def orphans(self) -> list[Layer]:
        return [layer for layer in self.layers if layer.path not in self.tree]
