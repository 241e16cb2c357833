from __future__ import annotations

import abc
from typing import Any, List, Optional

from agentrelay.models import Agent, ApiKeyStatus, ChatThread


class DuplicateSlugError(ValueError):
    pass


# Fields the store stamps itself; callers cannot set them through create/update.
AGENT_READONLY_FIELDS = frozenset({"id", "last_updated"})
THREAD_READONLY_FIELDS = frozenset({"id", "agent_slug", "session_id", "created_at", "last_message_at"})
API_KEY_READONLY_FIELDS = frozenset({"id", "last_validated"})


def strip_fields(patch: dict[str, Any], readonly: frozenset[str]) -> dict[str, Any]:
    return {k: v for k, v in (patch or {}).items() if k not in readonly}


class RecordStore(abc.ABC):
    """Persistence contract for agents, chat threads and the provider key.

    Lookups return ``None`` when nothing matches. Every mutation stamps its own
    timestamp (``Agent.last_updated``, ``ChatThread.last_message_at``,
    ``ApiKeyStatus.last_validated``); values supplied by callers for those
    fields are ignored. Returned records are detached snapshots: mutating them
    does not change stored state.
    """

    backend: str = ""

    # Agents

    @abc.abstractmethod
    def create_agent(self, agent: Agent) -> Agent:
        """Insert a new agent with a fresh id. Raises DuplicateSlugError."""

    @abc.abstractmethod
    def get_agent(self, agent_id: str) -> Optional[Agent]: ...

    @abc.abstractmethod
    def get_agent_by_slug(self, slug: str) -> Optional[Agent]: ...

    @abc.abstractmethod
    def list_agents(self) -> List[Agent]: ...

    @abc.abstractmethod
    def update_agent(self, agent_id: str, patch: dict[str, Any]) -> Optional[Agent]:
        """Apply a partial update. Raises DuplicateSlugError on a slug clash."""

    @abc.abstractmethod
    def append_agent_files(self, agent_id: str, names: List[str]) -> Optional[Agent]:
        """Append filenames to the agent's file list in one atomic step."""

    @abc.abstractmethod
    def delete_agent(self, agent_id: str) -> bool: ...

    # Chat threads

    @abc.abstractmethod
    def create_thread(self, *, agent_slug: str, session_id: str, openai_thread_id: Optional[str]) -> ChatThread:
        """Create the thread for (agent_slug, session_id).

        If one already exists for the pair it is returned unchanged, so at most
        one thread per session is ever stored.
        """

    @abc.abstractmethod
    def get_thread(self, thread_id: str) -> Optional[ChatThread]: ...

    @abc.abstractmethod
    def get_thread_by_session(self, agent_slug: str, session_id: str) -> Optional[ChatThread]: ...

    @abc.abstractmethod
    def update_thread(self, thread_id: str, patch: dict[str, Any]) -> Optional[ChatThread]: ...

    # Provider key (singleton)

    @abc.abstractmethod
    def set_api_key(self, *, openai_api_key: str, is_valid: bool) -> ApiKeyStatus:
        """Store a key (validated now), superseding any previous one."""

    @abc.abstractmethod
    def get_api_key(self) -> Optional[ApiKeyStatus]: ...

    @abc.abstractmethod
    def update_api_key(self, key_id: str, patch: dict[str, Any]) -> Optional[ApiKeyStatus]: ...
