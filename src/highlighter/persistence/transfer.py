"""JSON export/import of a whole workspace.

The file format is ``{"layers": [...], "groups": [...]}``. A bare list of
layers (the older export format) is accepted too; its groups are rebuilt
from the layer paths.
"""

from __future__ import annotations

import json
from typing import Any

from highlighter.state import WorkspaceState


def split_payload(data: Any) -> tuple[list | None, list | None]:
    """Return ``(layers, groups)`` from an envelope or a bare layer list.

    Raises:
        ValueError: If ``data`` is neither form.
    """
    if isinstance(data, list):
        return data, None
    if isinstance(data, dict) and ("layers" in data or "groups" in data):
        layers = data.get("layers")
        groups = data.get("groups")
        if layers is not None and not isinstance(layers, list):
            raise ValueError("'layers' must be a list")
        if groups is not None and not isinstance(groups, list):
            raise ValueError("'groups' must be a list")
        return layers, groups
    raise ValueError("Expected a list of layers or a {layers, groups} object")


def export_state(state: WorkspaceState) -> dict:
    return state.to_dicts()


def dumps_state(state: WorkspaceState, indent: int | None = 2) -> str:
    return json.dumps(export_state(state), indent=indent)


def load_state(data: Any) -> WorkspaceState:
    """Build a reconciled WorkspaceState from exported data."""
    layers, groups = split_payload(data)
    try:
        return WorkspaceState.from_dicts(layers, groups)
    except (KeyError, TypeError, AttributeError) as e:
        raise ValueError(f"Malformed workspace data: {e!r}") from e


def loads_state(text: str) -> WorkspaceState:
    """Parse exported JSON text.

    Raises:
        ValueError: On invalid JSON or an unexpected shape.
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON: {e}") from e
    return load_state(data)
