"""Layer and entity API — CRUD, styling, ordering, geocoded entities, file import."""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field

from highlighter import commands
from highlighter.api.deps import get_layer, get_workspace, http_error
from highlighter.errors import HighlighterError
from highlighter.layers.entities import SortOrder
from highlighter.layers.layer import BorderStyle, SimplificationConfig

router = APIRouter(prefix="/api/layers", tags=["layers"])


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------

class CreateLayer(BaseModel):
    name: str
    path: str = ""


class UpdateLayer(BaseModel):
    """Partial update; omitted fields are left unchanged."""
    name: Optional[str] = None
    polygons_visible: Optional[bool] = None
    markers_visible: Optional[bool] = None
    fill_color: Optional[Any] = None  # {"hex", "rgb": {r,g,b,a}} or "#rrggbb"
    border_color: Optional[Any] = None
    border_width: Optional[float] = Field(default=None, ge=0)
    border_style: Optional[BorderStyle] = None
    marker_icon: Optional[str] = None


class MoveLayer(BaseModel):
    dest_path: str = ""
    dest_index: int = Field(ge=0)


class Simplification(BaseModel):
    multiplier: float = Field(default=1.0, gt=0)
    use_adaptive: bool = True
    round_coordinates: bool = True
    rounding_decimals: int = Field(default=5, ge=0)


class AddEntity(BaseModel):
    """Either a free-text ``query`` or an ``osm_type``/``osm_id`` pair."""
    query: Optional[str] = None
    osm_type: Optional[str] = None
    osm_id: Optional[int] = None
    name: Optional[str] = None
    notes: str = ""


class UpdateEntity(BaseModel):
    name: Optional[str] = None
    notes: Optional[str] = None


class Reorder(BaseModel):
    from_index: int
    to_index: int


class ImportFile(BaseModel):
    filename: str
    content: str


def _layer_response(workspace, layer) -> dict:
    data = layer.to_dict()
    data["effectivePath"] = workspace.state.effective_path(layer)
    return data


def _current(workspace, layer_id):
    return _layer_response(workspace, workspace.layer(layer_id))


# ---------------------------------------------------------------------------
# Layers
# ---------------------------------------------------------------------------

@router.get("")
async def list_layers(request: Request):
    """All layers in render order."""
    workspace = get_workspace(request)
    return [_layer_response(workspace, layer) for layer in workspace.state.layers]


@router.post("")
async def create_layer(body: CreateLayer, request: Request):
    workspace = get_workspace(request)
    try:
        layer = workspace.add_layer(body.name, body.path)
    except (HighlighterError, ValueError) as e:
        raise http_error(e)
    return _layer_response(workspace, layer)


@router.get("/{layer_id}")
async def get_layer_detail(layer_id: str, request: Request):
    workspace = get_workspace(request)
    return _layer_response(workspace, get_layer(workspace, layer_id))


@router.patch("/{layer_id}")
async def update_layer(layer_id: str, body: UpdateLayer, request: Request):
    """Rename, toggle visibility, or restyle a layer."""
    workspace = get_workspace(request)
    layer = get_layer(workspace, layer_id)
    changes = body.model_dump(exclude_none=True)
    try:
        workspace.dispatch(commands.UpdateLayer(layer.id, changes))
    except (HighlighterError, ValueError, TypeError) as e:
        raise http_error(ValueError(str(e)))
    return _current(workspace, layer.id)


@router.delete("/{layer_id}")
async def delete_layer(layer_id: str, request: Request):
    workspace = get_workspace(request)
    layer = get_layer(workspace, layer_id)
    workspace.remove_layer(layer.id)
    return {"status": "deleted", "id": layer.id}


@router.post("/{layer_id}/move")
async def move_layer(layer_id: str, body: MoveLayer, request: Request):
    """Move a layer to a group, before the ``dest_index``-th layer already there."""
    workspace = get_workspace(request)
    layer = get_layer(workspace, layer_id)
    try:
        workspace.dispatch(commands.MoveLayer(layer.id, body.dest_path, body.dest_index))
    except (HighlighterError, ValueError) as e:
        raise http_error(e)
    return _current(workspace, layer.id)


@router.put("/{layer_id}/simplification")
async def set_simplification(layer_id: str, body: Simplification, request: Request):
    """Store simplification settings; a new multiplier re-fetches OSM features."""
    workspace = get_workspace(request)
    layer = get_layer(workspace, layer_id)
    config = SimplificationConfig(
        multiplier=body.multiplier,
        use_adaptive=body.use_adaptive,
        round_coordinates=body.round_coordinates,
        rounding_decimals=body.rounding_decimals,
    )
    queued = workspace.set_simplification(layer.id, config)
    return {"layer": _current(workspace, layer.id), "refetch_queued": queued}


@router.post("/{layer_id}/render")
async def force_render(layer_id: str, request: Request):
    """Clear the layer and replay its features after the replay delay."""
    workspace = get_workspace(request)
    layer = get_layer(workspace, layer_id)
    count = len(layer.features)
    workspace.spawn(workspace.force_render(layer.id))
    return {"status": "replaying", "features": count, "delay": workspace.replay_delay}


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------

@router.post("/{layer_id}/entities")
async def add_entity(layer_id: str, body: AddEntity, request: Request):
    """Add an entity by OSM element or by free text (geocoded)."""
    workspace = get_workspace(request)
    layer = get_layer(workspace, layer_id)
    if body.osm_type and body.osm_id is not None:
        entity_id = await workspace.add_osm_entity(layer.id, body.osm_type, body.osm_id, name=body.name)
    elif body.query and body.query.strip():
        entity_id = await workspace.add_manual_entity(layer.id, body.query.strip(), name=body.name, notes=body.notes)
    else:
        raise HTTPException(400, "Either query or osm_type and osm_id are required")
    return {
        "entity_id": entity_id,
        "layer": _current(workspace, layer.id),
        "warnings": [w.to_dict() for w in workspace.warnings],
    }


@router.delete("/{layer_id}/entities/{entity_id:path}")
async def remove_entity(layer_id: str, entity_id: str, request: Request):
    workspace = get_workspace(request)
    layer = get_layer(workspace, layer_id)
    if layer.get_feature(entity_id) is None:
        raise HTTPException(404, f"Entity not found: {entity_id}")
    await workspace.remove_entity(layer.id, entity_id)
    return _current(workspace, layer.id)


@router.patch("/{layer_id}/entities/{entity_id:path}")
async def update_entity(layer_id: str, entity_id: str, body: UpdateEntity, request: Request):
    """Rename an entity or edit its notes."""
    workspace = get_workspace(request)
    layer = get_layer(workspace, layer_id)
    if layer.get_feature(entity_id) is None:
        raise HTTPException(404, f"Entity not found: {entity_id}")
    workspace.dispatch(commands.UpdateEntity(layer.id, entity_id, name=body.name, notes=body.notes))
    return _current(workspace, layer.id)


@router.post("/{layer_id}/reorder")
async def reorder_entities(layer_id: str, body: Reorder, request: Request):
    workspace = get_workspace(request)
    layer = get_layer(workspace, layer_id)
    workspace.dispatch(commands.ReorderEntities(layer.id, body.from_index, body.to_index))
    return _current(workspace, layer.id)


@router.post("/{layer_id}/sort")
async def sort_entities(layer_id: str, request: Request, order: SortOrder = SortOrder.ASC):
    workspace = get_workspace(request)
    layer = get_layer(workspace, layer_id)
    workspace.dispatch(commands.SortEntities(layer.id, order))
    return _current(workspace, layer.id)


@router.delete("/{layer_id}/entities")
async def clear_entities(layer_id: str, request: Request):
    workspace = get_workspace(request)
    layer = get_layer(workspace, layer_id)
    workspace.dispatch(commands.ClearEntities(layer.id))
    return _current(workspace, layer.id)


@router.post("/{layer_id}/import")
async def import_file(layer_id: str, body: ImportFile, request: Request):
    """Import a GPX, KML or GeoJSON document into the layer."""
    workspace = get_workspace(request)
    layer = get_layer(workspace, layer_id)
    try:
        added = workspace.import_file(layer.id, body.filename, body.content)
    except ValueError as e:
        raise HTTPException(400, str(e))
    return {"added": added, "layer": _current(workspace, layer.id)}
