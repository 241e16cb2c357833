from __future__ import annotations

from agentrelay.config import Settings
from agentrelay.store.base import DuplicateSlugError, RecordStore
from agentrelay.store.memory import MemoryStore
from agentrelay.store.sql import SqlStore

__all__ = ["DuplicateSlugError", "MemoryStore", "RecordStore", "SqlStore", "build_store"]


def build_store(settings: Settings) -> RecordStore:
    if settings.store_backend == "memory":
        return MemoryStore()
    from agentrelay.db import make_engine

    return SqlStore(make_engine(settings.db_url))
