"""Workspace API — full snapshot, JSON export/import, warnings."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import Response

from highlighter.api.deps import get_workspace

router = APIRouter(prefix="/api/workspace", tags=["workspace"])


@router.get("")
async def get_state(request: Request):
    """Layers, groups and outstanding warnings."""
    workspace = get_workspace(request)
    data = workspace.state.to_dicts()
    data["warnings"] = [w.to_dict() for w in workspace.warnings]
    return data


@router.get("/export")
async def export_workspace(request: Request):
    """Download the workspace as ``{layers, groups}`` JSON."""
    workspace = get_workspace(request)
    return Response(
        content=workspace.export_json(),
        media_type="application/json",
        headers={"Content-Disposition": 'attachment; filename="layers.json"'},
    )


@router.post("/import")
async def import_workspace(request: Request):
    """Replace the workspace with an exported document.

    Accepts the ``{layers, groups}`` envelope or a bare list of layers.
    """
    workspace = get_workspace(request)
    body = await request.body()
    try:
        state = workspace.import_json(body.decode("utf-8"))
    except (ValueError, UnicodeDecodeError) as e:
        raise HTTPException(400, f"Invalid import: {e}")
    return {"layers": len(state.layers), "groups": len(state.tree) - 1}


@router.delete("/warnings/{warning_id}")
async def dismiss_warning(warning_id: int, request: Request):
    workspace = get_workspace(request)
    if not workspace.dismiss_warning(warning_id):
        raise HTTPException(404, f"Warning not found: {warning_id}")
    return {"status": "dismissed", "id": warning_id}


@router.post("/save")
async def save_now(request: Request):
    """Persist the current state without waiting for the debounce."""
    workspace = get_workspace(request)
    if workspace.sync is None:
        raise HTTPException(503, "Persistence not configured")
    outcome = await workspace.sync.save_now(workspace.state)
    return {"outcome": outcome.value}
