"""Durable storage, legacy migration and JSON export/import."""

from highlighter.persistence.stores import JsonFileStore, KeyValueStore, MemoryStore, SqlRecordStore
from highlighter.persistence.sync import LoadSource, PersistenceSync, SaveOutcome
from highlighter.persistence.transfer import dumps_state, export_state, load_state, loads_state

__all__ = [
    "JsonFileStore",
    "KeyValueStore",
    "LoadSource",
    "MemoryStore",
    "PersistenceSync",
    "SaveOutcome",
    "SqlRecordStore",
    "dumps_state",
    "export_state",
    "load_state",
    "loads_state",
]
