"""Durable key-value stores.

- ``SqlRecordStore``: primary structured store (SQLAlchemy async, one row per key)
- ``JsonFileStore``: flat key-value file, each value a JSON string; used for
  the legacy store and as the write fallback
- ``MemoryStore``: in-process dict

All raise ``StorageError`` on failure; a missing key reads as ``None``.
"""

from __future__ import annotations

import json
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from loguru import logger
from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from highlighter.errors import StorageError
from highlighter.persistence.models import Base, Record


class KeyValueStore(ABC):
    """Async keyed store of JSON-serializable values."""

    name: str = "store"

    @abstractmethod
    async def get(self, key: str) -> Any | None:
        """Return the value for ``key``, or None if absent."""

    @abstractmethod
    async def set(self, key: str, value: Any) -> None:
        """Store ``value`` under ``key`` (last writer wins)."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove ``key``; missing keys are ignored."""


class MemoryStore(KeyValueStore):
    """In-memory store. Values are JSON round-tripped like the real stores."""

    name = "memory"

    def __init__(self, data: dict[str, Any] | None = None) -> None:
        self._data: dict[str, str] = {k: json.dumps(v) for k, v in (data or {}).items()}

    async def get(self, key: str) -> Any | None:
        raw = self._data.get(key)
        return json.loads(raw) if raw is not None else None

    async def set(self, key: str, value: Any) -> None:
        self._data[key] = json.dumps(value)

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._data)


class JsonFileStore(KeyValueStore):
    """Flat key-value file: ``{"key": "<json string>", ...}``."""

    name = "json-file"

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)

    def _read_all(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise StorageError(f"Cannot read {self.path}: {e}") from e
        if not isinstance(data, dict):
            raise StorageError(f"Unexpected content in {self.path}")
        return data

    def _write_all(self, data: dict[str, str]) -> None:
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp, "w", encoding="utf-8") as f:
                json.dump(data, f)
            os.replace(tmp, self.path)
        except OSError as e:
            raise StorageError(f"Cannot write {self.path}: {e}") from e

    async def get(self, key: str) -> Any | None:
        raw = self._read_all().get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw) if isinstance(raw, str) else raw
        except json.JSONDecodeError as e:
            raise StorageError(f"Corrupt value for {key!r} in {self.path}") from e

    async def set(self, key: str, value: Any) -> None:
        data = self._read_all()
        data[key] = json.dumps(value)
        self._write_all(data)

    async def delete(self, key: str) -> None:
        data = self._read_all()
        if key in data:
            del data[key]
            self._write_all(data)


class SqlRecordStore(KeyValueStore):
    """Primary store backed by the ``records`` table."""

    name = "sql"

    def __init__(self, database_url: str | None = None, engine: AsyncEngine | None = None) -> None:
        if engine is None:
            if database_url is None:
                raise ValueError("database_url or engine is required")
            engine = create_async_engine(database_url, future=True)
        self.engine = engine
        self._session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async def init(self) -> None:
        """Create the records table if needed."""
        try:
            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        except SQLAlchemyError as e:
            raise StorageError(f"Cannot initialize primary store: {e}") from e

    async def dispose(self) -> None:
        await self.engine.dispose()

    async def get(self, key: str) -> Any | None:
        try:
            async with self._session() as session:
                result = await session.execute(select(Record.value).where(Record.key == key))
                raw = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise StorageError(f"Primary store read failed for {key!r}: {e}") from e
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            raise StorageError(f"Corrupt record {key!r}") from e

    async def set(self, key: str, value: Any) -> None:
        payload = json.dumps(value)
        try:
            async with self._session() as session:
                await session.merge(Record(key=key, value=payload))
                await session.commit()
        except SQLAlchemyError as e:
            raise StorageError(f"Primary store write failed for {key!r}: {e}") from e
        logger.debug(f"Primary store wrote {key!r} ({len(payload)} bytes)")

    async def delete(self, key: str) -> None:
        try:
            async with self._session() as session:
                await session.execute(delete(Record).where(Record.key == key))
                await session.commit()
        except SQLAlchemyError as e:
            raise StorageError(f"Primary store delete failed for {key!r}: {e}") from e
