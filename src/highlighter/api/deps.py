"""Shared helpers for the API routers."""

from __future__ import annotations

from fastapi import HTTPException, Request

from highlighter.errors import ConflictError, HighlighterError, InvalidMoveError
from highlighter.layers.layer import Layer
from highlighter.workspace import Workspace


def get_workspace(request: Request) -> Workspace:
    """Retrieve the Workspace from app state."""
    workspace = getattr(request.app.state, "workspace", None)
    if workspace is None:
        raise HTTPException(503, "Workspace not available")
    return workspace


def get_layer(workspace: Workspace, layer_id: str) -> Layer:
    """Find a layer by the string form of its id (ids may be int or str)."""
    for layer in workspace.state.layers:
        if str(layer.id) == layer_id:
            return layer
    raise HTTPException(404, f"Layer not found: {layer_id}")


def http_error(e: Exception) -> HTTPException:
    """Map a workspace error onto an HTTP status."""
    if isinstance(e, ConflictError):
        return HTTPException(409, str(e))
    if isinstance(e, (InvalidMoveError, ValueError)):
        return HTTPException(400, str(e))
    if isinstance(e, HighlighterError):
        return HTTPException(400, str(e))
    return HTTPException(500, str(e))
