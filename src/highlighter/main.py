"""Map Highlighter — FastAPI application.

Builds the stores, persistence sync, geocode gateway and workspace at
startup, loads the stored workspace, and flushes pending saves on shutdown.
"""

import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from highlighter import __version__
from highlighter.api.routers import geocode_router, groups_router, layers_router, workspace_router
from highlighter.config import Settings, settings
from highlighter.errors import StorageError
from highlighter.geocode import NominatimGateway
from highlighter.persistence import JsonFileStore, PersistenceSync, SqlRecordStore
from highlighter.workspace import Workspace


def build_workspace(config: Settings) -> tuple[Workspace, SqlRecordStore]:
    """Wire stores, sync and gateway from settings."""
    primary = SqlRecordStore(config.database_url)
    sync = PersistenceSync(
        primary,
        legacy=JsonFileStore(config.legacy_store_path),
        fallback=JsonFileStore(config.fallback_store_path),
        default_dataset=config.default_dataset_path,
        debounce=config.save_debounce,
    )
    gateway = NominatimGateway(
        base_url=config.nominatim_url,
        user_agent=config.user_agent,
        timeout=config.geocode_timeout,
    )
    workspace = Workspace(
        sync,
        gateway,
        refetch_delay=config.refetch_delay,
        replay_delay=config.replay_delay,
    )
    return workspace, primary


def create_app(config: Settings = settings) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan handler."""
        logger.info(f"{config.app_name} v{__version__} starting")
        workspace, primary = build_workspace(config)
        try:
            await primary.init()
            logger.info(f"Primary store ready: {config.database_url}")
        except StorageError as e:
            logger.warning(f"Primary store unavailable, saves will use the fallback: {e}")
        await workspace.load()
        state = workspace.state
        logger.info(f"Workspace loaded: {len(state.layers)} layers, {len(state.tree) - 1} groups")
        app.state.workspace = workspace

        yield

        logger.info("Shutting down, flushing pending saves...")
        await workspace.close()
        await primary.dispose()

    app = FastAPI(
        title=config.app_name,
        description="Organize geographic entities into layers and groups",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(workspace_router)
    app.include_router(groups_router)
    app.include_router(layers_router)
    app.include_router(geocode_router)

    @app.get("/health")
    async def health():
        """Health check endpoint."""
        return {"status": "operational", "version": __version__}

    return app


app = create_app()


def run() -> None:
    """Console entry point: ``map-highlighter``."""
    import uvicorn

    logger.remove()
    logger.add(sys.stderr, level=settings.log_level.upper())
    uvicorn.run(
        "highlighter.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )


if __name__ == "__main__":
    run()
