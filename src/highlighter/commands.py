"""Reducer commands: ``apply(state, command) -> state'``.

Each command is a small frozen dataclass; ``apply`` dispatches it to a pure
transition function. A command that changes nothing returns the very same
state object.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field

from highlighter import reorg
from highlighter.layers import entities
from highlighter.layers.entities import EntityCandidate, SortOrder
from highlighter.layers.layer import Feature, SimplificationConfig
from highlighter.state import WorkspaceState

# ---------------------------------------------------------------------------
# Group commands
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AddGroup:
    parent_path: str
    name: str


@dataclass(frozen=True)
class RenameGroup:
    path: str
    new_name: str


@dataclass(frozen=True)
class RemoveGroup:
    path: str


@dataclass(frozen=True)
class MoveGroup:
    source_path: str
    dest_parent_path: str


@dataclass(frozen=True)
class Drop:
    request: reorg.DropRequest


@dataclass(frozen=True)
class Reconcile:
    pass


# ---------------------------------------------------------------------------
# Layer commands
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AddLayer:
    name: str
    path: str = ""
    layer_id: int | str | None = None
    style: dict = field(default_factory=dict)


@dataclass(frozen=True)
class RemoveLayer:
    layer_id: int | str


@dataclass(frozen=True)
class UpdateLayer:
    layer_id: int | str
    changes: dict


@dataclass(frozen=True)
class MoveLayer:
    layer_id: int | str
    dest_path: str
    dest_index: int


@dataclass(frozen=True)
class SetSimplification:
    layer_id: int | str
    config: SimplificationConfig


# ---------------------------------------------------------------------------
# Entity commands
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AddEntity:
    layer_id: int | str
    candidate: EntityCandidate


@dataclass(frozen=True)
class AddFeature:
    layer_id: int | str
    feature: Feature


@dataclass(frozen=True)
class RemoveEntity:
    layer_id: int | str
    entity_id: str


@dataclass(frozen=True)
class ReorderEntities:
    layer_id: int | str
    from_index: int
    to_index: int


@dataclass(frozen=True)
class SortEntities:
    layer_id: int | str
    order: SortOrder = SortOrder.ASC


@dataclass(frozen=True)
class UpdateEntity:
    layer_id: int | str
    entity_id: str
    name: str | None = None
    notes: str | None = None


@dataclass(frozen=True)
class SetEntityGeometry:
    layer_id: int | str
    entity_id: str
    geometry: dict | None
    properties: dict | None = None


@dataclass(frozen=True)
class ClearEntities:
    layer_id: int | str


@dataclass(frozen=True)
class ReplaceState:
    """Swap in a whole new snapshot (load, import)."""
    state: WorkspaceState


# ---------------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------------


def _with_layers(state: WorkspaceState, layers) -> WorkspaceState:
    if layers is state.layers:
        return state
    return WorkspaceState(layers, state.tree)


def _map_layer(state: WorkspaceState, layer_id, fn) -> WorkspaceState:
    return _with_layers(state, state.layers.map_layer(layer_id, fn))


def _add_layer(state: WorkspaceState, cmd: AddLayer) -> WorkspaceState:
    layers, _ = state.layers.add_layer(cmd.name, cmd.path, cmd.layer_id, **cmd.style)
    return WorkspaceState(layers, state.tree).reconciled()


def _set_simplification(state: WorkspaceState, cmd: SetSimplification) -> WorkspaceState:
    return _with_layers(state, state.layers.update_layer(cmd.layer_id, simplification=cmd.config))


_HANDLERS: dict[type, Callable[[WorkspaceState, object], WorkspaceState]] = {
    AddGroup: lambda s, c: reorg.add_group(s, c.parent_path, c.name),
    RenameGroup: lambda s, c: reorg.rename_group(s, c.path, c.new_name),
    RemoveGroup: lambda s, c: reorg.remove_group(s, c.path),
    MoveGroup: lambda s, c: reorg.move_group(s, c.source_path, c.dest_parent_path),
    Drop: lambda s, c: reorg.drop(s, c.request),
    Reconcile: lambda s, c: s.reconciled(),
    AddLayer: _add_layer,
    RemoveLayer: lambda s, c: _with_layers(s, s.layers.remove_layer(c.layer_id)),
    UpdateLayer: lambda s, c: _with_layers(s, s.layers.update_layer(c.layer_id, **c.changes)),
    MoveLayer: lambda s, c: reorg.move_layer(s, c.layer_id, c.dest_path, c.dest_index),
    SetSimplification: _set_simplification,
    AddEntity: lambda s, c: _map_layer(s, c.layer_id, lambda layer: entities.add_entity(layer, c.candidate)),
    AddFeature: lambda s, c: _map_layer(s, c.layer_id, lambda layer: entities.add_feature(layer, c.feature)),
    RemoveEntity: lambda s, c: _map_layer(s, c.layer_id, lambda layer: entities.remove_entity(layer, c.entity_id)),
    ReorderEntities: lambda s, c: _map_layer(
        s, c.layer_id, lambda layer: entities.reorder_entities(layer, c.from_index, c.to_index)
    ),
    SortEntities: lambda s, c: _map_layer(s, c.layer_id, lambda layer: entities.sort_entities(layer, c.order)),
    UpdateEntity: lambda s, c: _map_layer(
        s, c.layer_id, lambda layer: entities.update_entity(layer, c.entity_id, name=c.name, notes=c.notes)
    ),
    SetEntityGeometry: lambda s, c: _map_layer(
        s, c.layer_id, lambda layer: entities.set_entity_geometry(layer, c.entity_id, c.geometry, c.properties)
    ),
    ClearEntities: lambda s, c: _map_layer(s, c.layer_id, entities.clear_entities),
    ReplaceState: lambda s, c: c.state,
}


def apply(state: WorkspaceState, command: object) -> WorkspaceState:
    """Return the state that results from applying ``command`` to ``state``.

    Raises:
        TypeError: For an unknown command type.
        ConflictError, InvalidMoveError, InvalidNameError: From group edits;
            ``state`` itself is never modified.
    """
    handler = _HANDLERS.get(type(command))
    if handler is None:
        raise TypeError(f"Unknown command: {type(command).__name__}")
    return handler(state, command)
