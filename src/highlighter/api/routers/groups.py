"""Group tree API — add, rename, move, remove groups and drag-and-drop."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel

from highlighter import commands
from highlighter.api.deps import get_workspace, http_error
from highlighter.errors import HighlighterError
from highlighter.reorg import DragKind, DropRequest

router = APIRouter(prefix="/api/groups", tags=["groups"])


class CreateGroup(BaseModel):
    parent_path: str = ""
    name: str


class RenameGroup(BaseModel):
    path: str
    new_name: str


class MoveGroup(BaseModel):
    source_path: str
    dest_parent_path: str


class DropBody(BaseModel):
    kind: DragKind
    source: str
    target_path: str
    index: Optional[int] = None


def _tree_response(workspace) -> dict:
    state = workspace.state
    return {
        "groups": state.tree.to_forest(),
        "orphans": [layer.id for layer in state.orphans()],
    }


def _run(workspace, command) -> dict:
    try:
        workspace.dispatch(command)
    except (HighlighterError, ValueError) as e:
        raise http_error(e)
    return _tree_response(workspace)


@router.get("")
async def list_groups(request: Request):
    """The group tree as a nested forest rooted at the root group."""
    return _tree_response(get_workspace(request))


@router.get("/layers")
async def layers_in_group(request: Request, path: str = ""):
    """Layers displayed under ``path``; orphaned layers are listed under root."""
    workspace = get_workspace(request)
    if path not in workspace.state.tree:
        raise HTTPException(404, f"Group not found: {path}")
    return {"path": path, "layers": [layer.id for layer in workspace.state.layers_in_group(path)]}


@router.post("")
async def create_group(body: CreateGroup, request: Request):
    return _run(get_workspace(request), commands.AddGroup(body.parent_path, body.name))


@router.post("/rename")
async def rename_group(body: RenameGroup, request: Request):
    return _run(get_workspace(request), commands.RenameGroup(body.path, body.new_name))


@router.post("/move")
async def move_group(body: MoveGroup, request: Request):
    return _run(get_workspace(request), commands.MoveGroup(body.source_path, body.dest_parent_path))


@router.delete("")
async def remove_group(request: Request, path: str):
    """Remove a group and its subgroups. Its layers keep their paths."""
    return _run(get_workspace(request), commands.RemoveGroup(path))


@router.post("/drop")
async def drop(body: DropBody, request: Request):
    """Resolve a drag-and-drop of a group or a layer onto a group."""
    workspace = get_workspace(request)
    source: int | str = body.source
    if body.kind == DragKind.LAYER:
        match = next((layer for layer in workspace.state.layers if str(layer.id) == body.source), None)
        if match is None:
            raise HTTPException(404, f"Layer not found: {body.source}")
        source = match.id
    gesture = DropRequest(body.kind, source, body.target_path, body.index)
    return _run(workspace, commands.Drop(gesture))
