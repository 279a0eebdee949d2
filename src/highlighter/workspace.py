"""Workspace — the single holder of the current WorkspaceState.

Every edit goes through ``dispatch(command)``: the reducer produces a new
snapshot, subscribers are notified, and PersistenceSync schedules a save.
Geocode work runs outside the reducer and writes its results back through
commands, so a result for a layer or entity that has since been removed is
dropped by the usual no-op rules.
"""

from __future__ import annotations

import asyncio
import itertools
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from loguru import logger

from highlighter import commands
from highlighter.commands import apply
from highlighter.errors import HighlighterError, NetworkError, NotFoundError
from highlighter.geocode import GeocodeGateway, LookupResult, RefetchJob, RefetchQueue, TaskRegistry
from highlighter.layers.entities import EntityCandidate, build_feature, candidate_feature_id
from highlighter.layers.identity import FeatureSource
from highlighter.layers.layer import Layer, SimplificationConfig
from highlighter.layers.parsers import detect_format, parse_content
from highlighter.persistence.sync import PersistenceSync
from highlighter.persistence.transfer import dumps_state, loads_state
from highlighter.simplify import simplify
from highlighter.state import WorkspaceState

Subscriber = Callable[[WorkspaceState], None]


@dataclass(frozen=True)
class WorkspaceWarning:
    """A recoverable failure shown to the user until dismissed."""
    id: int
    message: str
    layer_id: int | str | None = None
    entity_id: str | None = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "message": self.message,
            "layer_id": self.layer_id,
            "entity_id": self.entity_id,
        }


class Workspace:
    """Explicit immutable store plus the async flows that feed it.

    Args:
        sync: Persistence; when None the workspace is in-memory only.
        gateway: Geocoder used to resolve and re-fetch entities.
        refetch_delay: Pause between re-fetch jobs.
        replay_delay: Pause before features are replayed by ``force_render``.
        sleep: Awaitable sleep, replaceable in tests.
    """

    def __init__(
        self,
        sync: PersistenceSync | None = None,
        gateway: GeocodeGateway | None = None,
        *,
        state: WorkspaceState | None = None,
        refetch_delay: float = 1.0,
        replay_delay: float = 5.0,
        stop_refetch_on_error: bool = False,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._state = state or WorkspaceState()
        self._subscribers: list[Subscriber] = []
        self._warnings: list[WorkspaceWarning] = []
        self._warning_ids = itertools.count(1)
        self._sleep = sleep
        self._background: set[asyncio.Task] = set()

        self.sync = sync
        self.gateway = gateway
        self.replay_delay = replay_delay
        self.tasks = TaskRegistry()
        self.refetch_queue = RefetchQueue(
            self._refetch_one,
            refetch_delay,
            stop_on_error=stop_refetch_on_error,
            sleep=sleep,
        )
        if sync is not None:
            self.subscribe(sync.notify)

    # ------------------------------------------------------------------
    # Store
    # ------------------------------------------------------------------

    @property
    def state(self) -> WorkspaceState:
        return self._state

    def subscribe(self, fn: Subscriber) -> Callable[[], None]:
        """Register ``fn`` for every new snapshot. Returns an unsubscribe callable."""
        self._subscribers.append(fn)

        def unsubscribe() -> None:
            if fn in self._subscribers:
                self._subscribers.remove(fn)

        return unsubscribe

    def dispatch(self, command: object) -> WorkspaceState:
        """Apply ``command``; subscribers only hear about real changes.

        Structural errors (ConflictError, InvalidMoveError, InvalidNameError)
        propagate and leave the state untouched.
        """
        new_state = apply(self._state, command)
        if new_state is self._state:
            logger.debug(f"No-op command: {type(command).__name__}")
            return new_state
        self._replace(new_state)
        return new_state

    def _replace(self, state: WorkspaceState) -> None:
        self._state = state
        for fn in list(self._subscribers):
            fn(state)

    async def load(self) -> WorkspaceState:
        """Load the stored workspace and publish it."""
        if self.sync is None:
            return self._state
        state = await self.sync.load()
        self._replace(state)
        return state

    def spawn(self, coro: Awaitable) -> asyncio.Task:
        """Run ``coro`` in the background; it is cancelled by ``close()``."""
        task = asyncio.ensure_future(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    async def close(self) -> None:
        background = list(self._background)
        for task in background:
            task.cancel()
        # Let cancelled tasks run their cleanup before the final flush
        await asyncio.gather(*background, return_exceptions=True)
        self.tasks.cancel_all()
        await self.refetch_queue.stop()
        if self.sync is not None:
            await self.sync.flush()

    # ------------------------------------------------------------------
    # Warnings
    # ------------------------------------------------------------------

    @property
    def warnings(self) -> list[WorkspaceWarning]:
        return list(self._warnings)

    def warn(self, message: str, layer_id: int | str | None = None, entity_id: str | None = None) -> WorkspaceWarning:
        warning = WorkspaceWarning(next(self._warning_ids), message, layer_id, entity_id)
        self._warnings.append(warning)
        logger.warning(message)
        return warning

    def dismiss_warning(self, warning_id: int) -> bool:
        for idx, warning in enumerate(self._warnings):
            if warning.id == warning_id:
                del self._warnings[idx]
                return True
        return False

    # ------------------------------------------------------------------
    # Layers and groups
    # ------------------------------------------------------------------

    def layer(self, layer_id: int | str) -> Layer | None:
        return self._state.layers.get_layer(layer_id)

    def add_layer(self, name: str, path: str = "", layer_id: int | str | None = None, **style) -> Layer:
        """Create a layer and return it."""
        if layer_id is None:
            layer_id = self._state.layers.next_layer_id()
        self.dispatch(commands.AddLayer(name, path, layer_id, style))
        return self.layer(layer_id)

    def add_group(self, parent_path: str, name: str) -> WorkspaceState:
        return self.dispatch(commands.AddGroup(parent_path, name))

    def remove_layer(self, layer_id: int | str) -> WorkspaceState:
        self.tasks.cancel_matching(lambda key: key[0] == layer_id)
        return self.dispatch(commands.RemoveLayer(layer_id))

    def set_simplification(self, layer_id: int | str, config: SimplificationConfig) -> int:
        """Store a layer's simplification settings.

        When the multiplier changes, every OSM-backed feature of the layer is
        queued for re-fetch. Returns the number of queued features.
        """
        layer = self.layer(layer_id)
        if layer is None:
            return 0
        old = layer.simplification
        self.dispatch(commands.SetSimplification(layer_id, config))
        if old.multiplier == config.multiplier or self.gateway is None:
            return 0
        jobs = [
            RefetchJob(
                layer_id=layer_id,
                feature_id=f.id,
                osm_type=f.properties["osm_type"],
                osm_id=f.properties["osm_id"],
                want_polygon=(f.geometry or {}).get("type") != "Point",
            )
            for f in layer.features
            if f.properties.get("osm_type") and f.properties.get("osm_id") is not None
        ]
        if not jobs:
            return 0
        return self.refetch_queue.submit(jobs)

    async def force_render(self, layer_id: int | str) -> int:
        """Clear a layer, wait ``replay_delay``, then put its features back.

        Returns the number of features replayed.
        """
        layer = self.layer(layer_id)
        if layer is None or not layer.features:
            return 0
        features = layer.features
        self.dispatch(commands.ClearEntities(layer_id))
        try:
            await self._sleep(self.replay_delay)
        finally:
            # Also runs when cancelled during the delay
            for feature in features:
                self.dispatch(commands.AddFeature(layer_id, feature))
        logger.info(f"Replayed {len(features)} features in layer {layer_id}")
        return len(features)

    # ------------------------------------------------------------------
    # Entities
    # ------------------------------------------------------------------

    async def remove_entity(self, layer_id: int | str, entity_id: str) -> WorkspaceState:
        """Remove an entity and persist immediately."""
        before = self._state
        state = self.dispatch(commands.RemoveEntity(layer_id, entity_id))
        if self.sync is not None and state is not before:
            await self.sync.save_now(state)
        return state

    def _simplified(self, layer_id: int | str, geometry: dict | None) -> dict | None:
        layer = self.layer(layer_id)
        config = layer.simplification if layer is not None else SimplificationConfig()
        return simplify(geometry, config)

    async def add_manual_entity(
        self,
        layer_id: int | str,
        query: str,
        name: str | None = None,
        notes: str = "",
    ) -> str | None:
        """Add an entity by free text and resolve it through the geocoder.

        The entity appears immediately with no geometry. Returns its id, or
        None if the layer does not exist.
        """
        if self.layer(layer_id) is None:
            return None
        feature = build_feature(EntityCandidate(
            source=FeatureSource.MANUAL,
            name=name or query,
            notes=notes,
            properties={"query": query},
        ))
        self.dispatch(commands.AddFeature(layer_id, feature))
        await self.resolve_entity(layer_id, feature.id, query)
        return feature.id

    async def resolve_entity(self, layer_id: int | str, entity_id: str, query: str) -> bool:
        """Geocode ``query`` and write the geometry onto the entity.

        Lookups are keyed by ``(layer_id, query, entity_id)``: a newer lookup
        for the same entity supersedes an older one, while two entities with
        the same query resolve separately.

        NotFoundError removes the entity; NetworkError leaves it unresolved.
        Both record a warning. Returns True if geometry was written.
        """
        if self.gateway is None:
            return False
        try:
            result = await self.tasks.run((layer_id, query, entity_id), lambda token: self.gateway.resolve(query))
        except NotFoundError as e:
            self.warn(f"No location found for {query!r}: {e}", layer_id, entity_id)
            await self.remove_entity(layer_id, entity_id)
            return False
        except NetworkError as e:
            self.warn(f"Could not resolve {query!r}: {e}", layer_id, entity_id)
            return False
        if result is None:
            return False
        return self._write_result(layer_id, entity_id, result)

    def _write_result(self, layer_id: int | str, entity_id: str, result: LookupResult) -> bool:
        properties = {"osm_type": result.osm_type, "osm_id": result.osm_id}
        if result.properties.get("display_name"):
            properties["display_name"] = result.properties["display_name"]
        before = self._state
        after = self.dispatch(commands.SetEntityGeometry(
            layer_id, entity_id, self._simplified(layer_id, result.geometry), properties,
        ))
        return after is not before

    async def add_osm_entity(
        self,
        layer_id: int | str,
        osm_type: str,
        osm_id: int | str,
        name: str | None = None,
        want_polygon: bool = True,
    ) -> str | None:
        """Look up an OSM element and add it to the layer.

        Returns the feature id, or None if the layer is missing or the lookup
        failed (a warning is recorded).
        """
        if self.layer(layer_id) is None or self.gateway is None:
            return None
        key = (layer_id, f"{osm_type}/{osm_id}")
        try:
            result = await self.tasks.run(key, lambda token: self.gateway.lookup(osm_type, osm_id, want_polygon))
        except (NotFoundError, NetworkError) as e:
            self.warn(f"Could not add {osm_type}/{osm_id}: {e}", layer_id)
            return None
        if result is None:
            return None
        candidate = EntityCandidate(
            source=FeatureSource.OSM,
            name=name or result.properties.get("name") or result.properties.get("display_name") or "",
            geometry=self._simplified(layer_id, result.geometry),
            osm_type=osm_type,
            osm_id=osm_id,
        )
        self.dispatch(commands.AddEntity(layer_id, candidate))
        return candidate_feature_id(candidate)

    def add_import_entity(self, layer_id: int | str, candidate: EntityCandidate) -> str | None:
        if self.layer(layer_id) is None:
            return None
        self.dispatch(commands.AddEntity(layer_id, candidate))
        return candidate_feature_id(candidate)

    def import_file(self, layer_id: int | str, filename: str, content: str) -> int:
        """Parse a GPX/KML/GeoJSON file into the layer.

        Returns the number of features added; features already present (same
        id) are skipped.

        Raises:
            ValueError: Unsupported file type.
        """
        if self.layer(layer_id) is None:
            return 0
        collection = parse_content(content, detect_format(filename))
        before = len(self.layer(layer_id).features)
        for raw in collection.get("features", []):
            self.add_import_entity(layer_id, EntityCandidate.from_geojson(raw))
        added = len(self.layer(layer_id).features) - before
        logger.info(f"Imported {added} features from {filename} into layer {layer_id}")
        return added

    async def _refetch_one(self, job: RefetchJob) -> None:
        layer = self.layer(job.layer_id)
        if layer is None or layer.get_feature(job.feature_id) is None:
            return
        try:
            result = await self.gateway.lookup(job.osm_type, job.osm_id, job.want_polygon)
        except HighlighterError as e:
            self.warn(f"Re-fetch of {job.feature_id} failed: {e}", job.layer_id, job.feature_id)
            raise
        self._write_result(job.layer_id, job.feature_id, result)

    # ------------------------------------------------------------------
    # Export / import
    # ------------------------------------------------------------------

    def export_json(self, indent: int | None = 2) -> str:
        return dumps_state(self._state, indent=indent)

    def import_json(self, text: str) -> WorkspaceState:
        """Replace the whole workspace with exported JSON.

        Raises:
            ValueError: Invalid JSON or unexpected shape; state unchanged.
        """
        state = loads_state(text)
        self.tasks.cancel_all()
        self.dispatch(commands.ReplaceState(state))
        logger.info(f"Imported workspace: {len(state.layers)} layers, {len(state.tree) - 1} groups")
        return state
