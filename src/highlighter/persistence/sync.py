"""PersistenceSync — keeps the workspace durable across sessions.

Load order (the first source holding a non-empty ``layers`` or ``groups``
record wins):

1. the fallback store; it only holds data written while the primary store
   was failing, which is newer than anything in the primary store
2. the primary structured store
3. the legacy flat store
4. the bundled default dataset, which is persisted right away so the next
   boot reads it from the primary store

Fallback and legacy contents are copied into the primary store and then
erased, so each is promoted at most once.

Saving writes both records to the primary store. If that fails, a flat
JSON copy goes to the fallback store; if that fails too, the error is
logged and dropped. The first successful primary write after a fallback
write erases the fallback copy. Persistence never blocks or breaks an edit.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Awaitable, Callable
from enum import Enum
from pathlib import Path
from typing import Any

from loguru import logger

from highlighter.errors import StorageError
from highlighter.persistence.stores import KeyValueStore
from highlighter.persistence.transfer import load_state, split_payload
from highlighter.state import WorkspaceState

LAYERS_KEY = "layers"
GROUPS_KEY = "groups"


class LoadSource(str, Enum):
    FALLBACK = "fallback"
    PRIMARY = "primary"
    LEGACY = "legacy"
    DEFAULT = "default"
    EMPTY = "empty"


class SaveOutcome(str, Enum):
    PRIMARY = "primary"
    FALLBACK = "fallback"
    FAILED = "failed"


def _is_nonempty(value: Any) -> bool:
    return isinstance(value, list) and len(value) > 0


class PersistenceSync:
    """Bidirectional sync between WorkspaceState and durable stores."""

    def __init__(
        self,
        primary: KeyValueStore,
        legacy: KeyValueStore | None = None,
        fallback: KeyValueStore | None = None,
        default_dataset: Path | str | None = None,
        *,
        debounce: float = 0.5,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.primary = primary
        self.legacy = legacy
        self.fallback = fallback
        self.default_dataset = Path(default_dataset) if default_dataset else None
        self.debounce = debounce
        self._sleep = sleep

        self.last_source: LoadSource | None = None
        self.last_outcome: SaveOutcome | None = None
        self._skip_next = False
        self._fallback_dirty = False
        self._pending: WorkspaceState | None = None
        self._task: asyncio.Task | None = None

    # ------------------------------------------------------------------
    # Load
    # ------------------------------------------------------------------

    async def load(self) -> WorkspaceState:
        """Load the workspace from the first non-empty source.

        The next state-change notification after this call is ignored, so
        publishing the freshly loaded snapshot does not write it back.
        """
        self._skip_next = True

        if self.fallback is not None:
            layers, groups = await self._read(self.fallback)
            if _is_nonempty(layers) or _is_nonempty(groups):
                self.last_source = LoadSource.FALLBACK
                state = load_state({"layers": layers or [], "groups": groups})
                self._fallback_dirty = not await self._promote(self.fallback, state)
                return state

        layers, groups = await self._read(self.primary)
        if _is_nonempty(layers) or _is_nonempty(groups):
            self.last_source = LoadSource.PRIMARY
            state = load_state({"layers": layers or [], "groups": groups})
            logger.info(f"Loaded {len(state.layers)} layers from primary store")
            return state

        if self.legacy is not None:
            layers, groups = await self._read(self.legacy)
            if _is_nonempty(layers) or _is_nonempty(groups):
                self.last_source = LoadSource.LEGACY
                state = load_state({"layers": layers or [], "groups": groups})
                await self._promote(self.legacy, state)
                return state

        if self.default_dataset is not None:
            state = self._read_default()
            if state is not None:
                self.last_source = LoadSource.DEFAULT
                logger.info(f"Loaded {len(state.layers)} layers from default dataset")
                await self.save(state)
                return state

        self.last_source = LoadSource.EMPTY
        logger.info("No stored workspace found, starting empty")
        return WorkspaceState()

    async def _read(self, store: KeyValueStore) -> tuple[Any, Any]:
        try:
            return await store.get(LAYERS_KEY), await store.get(GROUPS_KEY)
        except StorageError as e:
            logger.warning(f"Reading {store.name} store failed: {e}")
            return None, None

    async def _promote(self, store: KeyValueStore, state: WorkspaceState) -> bool:
        """Copy ``state`` read from ``store`` into the primary store, then erase ``store``."""
        logger.info(f"Migrating {len(state.layers)} layers from {store.name} store")
        try:
            await self._write(self.primary, state)
        except StorageError as e:
            logger.warning(f"Migration from {store.name} store deferred, primary write failed: {e}")
            return False
        return await self._erase(store)

    async def _erase(self, store: KeyValueStore) -> bool:
        try:
            await store.delete(LAYERS_KEY)
            await store.delete(GROUPS_KEY)
        except StorageError as e:
            logger.warning(f"Could not erase {store.name} store: {e}")
            return False
        return True

    def _read_default(self) -> WorkspaceState | None:
        try:
            with open(self.default_dataset, encoding="utf-8") as f:
                data = json.load(f)
            layers, groups = split_payload(data)
            if not (_is_nonempty(layers) or _is_nonempty(groups)):
                return None
            return load_state({"layers": layers or [], "groups": groups})
        except (OSError, ValueError) as e:
            logger.warning(f"Default dataset unavailable ({self.default_dataset}): {e}")
            return None

    # ------------------------------------------------------------------
    # Save
    # ------------------------------------------------------------------

    async def _write(self, store: KeyValueStore, state: WorkspaceState) -> None:
        data = state.to_dicts()
        await store.set(LAYERS_KEY, data["layers"])
        await store.set(GROUPS_KEY, data["groups"])

    async def save(self, state: WorkspaceState) -> SaveOutcome:
        """Write ``state`` now, falling back to the simpler store on failure."""
        try:
            await self._write(self.primary, state)
        except StorageError as e:
            logger.warning(f"Primary store write failed, using fallback: {e}")
        else:
            if self._fallback_dirty and await self._erase(self.fallback):
                self._fallback_dirty = False
            self.last_outcome = SaveOutcome.PRIMARY
            return self.last_outcome

        if self.fallback is not None:
            try:
                await self._write(self.fallback, state)
                self._fallback_dirty = True
                self.last_outcome = SaveOutcome.FALLBACK
                return self.last_outcome
            except StorageError as e:
                logger.error(f"Fallback store write failed, changes not persisted: {e}")

        self.last_outcome = SaveOutcome.FAILED
        return self.last_outcome

    def notify(self, state: WorkspaceState) -> None:
        """State-change subscriber: schedule a debounced save of ``state``.

        Without a running event loop the state is only remembered; call
        ``flush()`` to write it.
        """
        if self._skip_next:
            self._skip_next = False
            logger.debug("Skipping save for initial render after load")
            return
        self._pending = state
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        if self._task is None or self._task.done():
            self._task = loop.create_task(self._debounced_save())

    async def _debounced_save(self) -> None:
        await self._sleep(self.debounce)
        state, self._pending = self._pending, None
        if state is not None:
            await self.save(state)

    async def save_now(self, state: WorkspaceState) -> SaveOutcome:
        """Write immediately, superseding any pending debounced save."""
        self._pending = None
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None
        return await self.save(state)

    async def flush(self) -> SaveOutcome | None:
        """Wait for or perform any pending save."""
        if self._task is not None and not self._task.done():
            await self._task
        self._task = None
        if self._pending is not None:
            state, self._pending = self._pending, None
            return await self.save(state)
        return None

    @property
    def has_pending(self) -> bool:
        return self._pending is not None
