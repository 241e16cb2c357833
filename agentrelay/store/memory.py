from __future__ import annotations

import threading
from typing import Any, Dict, List, Optional, Tuple, TypeVar

from sqlmodel import SQLModel

from agentrelay.models import Agent, ApiKeyStatus, ChatThread, new_id, utcnow
from agentrelay.store.base import (
    AGENT_READONLY_FIELDS,
    API_KEY_READONLY_FIELDS,
    THREAD_READONLY_FIELDS,
    DuplicateSlugError,
    RecordStore,
    strip_fields,
)

RowT = TypeVar("RowT", bound=SQLModel)


def _clone(row: RowT) -> RowT:
    # model_dump rebuilds list/dict fields, so the copy shares no containers.
    return type(row)(**row.model_dump())


class MemoryStore(RecordStore):
    """Non-durable, single-process store backed by dicts."""

    backend = "memory"

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._agents: Dict[str, Agent] = {}
        self._slug_index: Dict[str, str] = {}
        self._threads: Dict[str, ChatThread] = {}
        self._session_index: Dict[Tuple[str, str], str] = {}
        self._api_key: Optional[ApiKeyStatus] = None

    def create_agent(self, agent: Agent) -> Agent:
        with self._lock:
            if agent.slug in self._slug_index:
                raise DuplicateSlugError("Slug already exists")
            row = _clone(agent)
            row.id = new_id()
            row.last_updated = utcnow()
            self._agents[row.id] = row
            self._slug_index[row.slug] = row.id
            return _clone(row)

    def get_agent(self, agent_id: str) -> Optional[Agent]:
        with self._lock:
            row = self._agents.get(agent_id)
            return _clone(row) if row else None

    def get_agent_by_slug(self, slug: str) -> Optional[Agent]:
        with self._lock:
            agent_id = self._slug_index.get(slug)
            return self.get_agent(agent_id) if agent_id else None

    def list_agents(self) -> List[Agent]:
        with self._lock:
            rows = sorted(self._agents.values(), key=lambda a: a.last_updated, reverse=True)
            return [_clone(a) for a in rows]

    def update_agent(self, agent_id: str, patch: dict[str, Any]) -> Optional[Agent]:
        patch = strip_fields(patch, AGENT_READONLY_FIELDS)
        with self._lock:
            row = self._agents.get(agent_id)
            if not row:
                return None
            new_slug = patch.get("slug")
            if new_slug is not None and new_slug != row.slug:
                if new_slug in self._slug_index:
                    raise DuplicateSlugError("Slug already exists")
                del self._slug_index[row.slug]
                self._slug_index[new_slug] = row.id
            for k, v in patch.items():
                setattr(row, k, list(v) if isinstance(v, list) else v)
            row.last_updated = utcnow()
            return _clone(row)

    def append_agent_files(self, agent_id: str, names: List[str]) -> Optional[Agent]:
        with self._lock:
            row = self._agents.get(agent_id)
            if not row:
                return None
            row.files = list(row.files or []) + list(names)
            row.last_updated = utcnow()
            return _clone(row)

    def delete_agent(self, agent_id: str) -> bool:
        with self._lock:
            row = self._agents.pop(agent_id, None)
            if not row:
                return False
            self._slug_index.pop(row.slug, None)
            return True

    def create_thread(self, *, agent_slug: str, session_id: str, openai_thread_id: Optional[str]) -> ChatThread:
        key = (agent_slug, session_id)
        with self._lock:
            existing_id = self._session_index.get(key)
            if existing_id:
                return _clone(self._threads[existing_id])
            now = utcnow()
            row = ChatThread(
                agent_slug=agent_slug,
                session_id=session_id,
                openai_thread_id=openai_thread_id,
                messages=[],
                created_at=now,
                last_message_at=now,
            )
            self._threads[row.id] = row
            self._session_index[key] = row.id
            return _clone(row)

    def get_thread(self, thread_id: str) -> Optional[ChatThread]:
        with self._lock:
            row = self._threads.get(thread_id)
            return _clone(row) if row else None

    def get_thread_by_session(self, agent_slug: str, session_id: str) -> Optional[ChatThread]:
        with self._lock:
            thread_id = self._session_index.get((agent_slug, session_id))
            return self.get_thread(thread_id) if thread_id else None

    def update_thread(self, thread_id: str, patch: dict[str, Any]) -> Optional[ChatThread]:
        patch = strip_fields(patch, THREAD_READONLY_FIELDS)
        with self._lock:
            row = self._threads.get(thread_id)
            if not row:
                return None
            for k, v in patch.items():
                setattr(row, k, [dict(m) for m in v] if k == "messages" else v)
            row.last_message_at = utcnow()
            return _clone(row)

    def set_api_key(self, *, openai_api_key: str, is_valid: bool) -> ApiKeyStatus:
        with self._lock:
            self._api_key = ApiKeyStatus(
                openai_api_key=openai_api_key,
                is_valid=bool(is_valid),
                last_validated=utcnow(),
            )
            return _clone(self._api_key)

    def get_api_key(self) -> Optional[ApiKeyStatus]:
        with self._lock:
            return _clone(self._api_key) if self._api_key else None

    def update_api_key(self, key_id: str, patch: dict[str, Any]) -> Optional[ApiKeyStatus]:
        patch = strip_fields(patch, API_KEY_READONLY_FIELDS)
        with self._lock:
            row = self._api_key
            if not row or row.id != key_id:
                return None
            for k, v in patch.items():
                setattr(row, k, v)
            row.last_validated = utcnow()
            return _clone(row)
