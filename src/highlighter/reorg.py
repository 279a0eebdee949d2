"""ReorgController — structural edits that span the group tree and the layers.

Renaming or moving a group changes the path prefix of its whole subtree,
so every layer addressed at or under the old path is rewritten in the same
step. Removing a group deliberately leaves its layers in place with their
now dangling path; they show up under root until reconciliation recreates
the group chain.

Drag-and-drop is resolved against the snapshot taken at drop time.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from loguru import logger

from highlighter.groups import reconcile
from highlighter.groups.node import join_path, parent_path, split_path
from highlighter.state import WorkspaceState


def add_group(state: WorkspaceState, parent: str, name: str) -> WorkspaceState:
    tree, _ = state.tree.add_group(parent, name)
    return WorkspaceState(state.layers, tree)


def rename_group(state: WorkspaceState, path: str, new_name: str) -> WorkspaceState:
    """Rename a group and rewrite the paths of all layers under it.

    Raises:
        ConflictError: If a sibling already uses ``new_name``.
        InvalidNameError: If ``new_name`` is not a valid group name.
    """
    tree = state.tree.rename_group(path, new_name)
    if tree is state.tree:
        return state
    layers = state.layers
    if path:
        new_path = join_path(parent_path(path), new_name)
        layers = layers.rewrite_paths(path, new_path)
        logger.info(f"Group renamed: {path!r} -> {new_path!r}")
    return WorkspaceState(layers, reconcile(layers, tree))


def remove_group(state: WorkspaceState, path: str) -> WorkspaceState:
    """Remove a group subtree; its layers are kept as orphans."""
    tree = state.tree.remove_group(path)
    if tree is state.tree:
        return state
    orphaned = sum(1 for layer in state.layers if layer.path not in tree)
    logger.info(f"Group removed: {path!r} ({orphaned} orphan layers kept)")
    return WorkspaceState(state.layers, tree)


def move_group(state: WorkspaceState, source_path: str, dest_parent_path: str) -> WorkspaceState:
    """Move a group subtree under another group and rewrite layer paths.

    Raises:
        InvalidMoveError: If the destination is inside the moved subtree.
        ConflictError: If the destination already has a group of that name.
    """
    tree = state.tree.move_group(source_path, dest_parent_path)
    if tree is state.tree:
        return state
    new_path = join_path(dest_parent_path, split_path(source_path)[-1])
    layers = state.layers.rewrite_paths(source_path, new_path)
    logger.info(f"Group moved: {source_path!r} -> {new_path!r}")
    return WorkspaceState(layers, reconcile(layers, tree))


def move_layer(state: WorkspaceState, layer_id: int | str, dest_path: str, dest_index: int) -> WorkspaceState:
    layers = state.layers.move_layer(layer_id, dest_path, dest_index)
    if layers is state.layers:
        return state
    return WorkspaceState(layers, reconcile(layers, state.tree))


class DragKind(str, Enum):
    GROUP = "group"
    LAYER = "layer"


@dataclass(frozen=True)
class DropRequest:
    """A drag-and-drop gesture.

    Attributes:
        kind: What was dragged.
        source: Group path (GROUP) or layer id (LAYER).
        target_path: Path of the group it was dropped on.
        index: Position among the target group's layers (LAYER only);
            ``None`` appends after the group's last layer.
    """

    kind: DragKind
    source: int | str
    target_path: str
    index: int | None = None


def drop(state: WorkspaceState, request: DropRequest) -> WorkspaceState:
    """Apply a drag-and-drop gesture to ``state``."""
    if request.kind == DragKind.GROUP:
        return move_group(state, str(request.source), request.target_path)

    index = request.index
    if index is None:
        index = len(state.layers.layers_at(request.target_path))
    return move_layer(state, request.source, request.target_path, index)
