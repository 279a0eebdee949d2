"""API routers for the map highlighter."""

from highlighter.api.routers.geocode import router as geocode_router
from highlighter.api.routers.groups import router as groups_router
from highlighter.api.routers.layers import router as layers_router
from highlighter.api.routers.workspace import router as workspace_router

__all__ = ["geocode_router", "groups_router", "layers_router", "workspace_router"]
