from __future__ import annotations

import logging
from typing import Any, List, Optional

from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, delete, select

from agentrelay.db import get_session, init_db
from agentrelay.models import Agent, ApiKeyStatus, ChatThread, new_id, utcnow
from agentrelay.store.base import (
    AGENT_READONLY_FIELDS,
    API_KEY_READONLY_FIELDS,
    THREAD_READONLY_FIELDS,
    DuplicateSlugError,
    RecordStore,
    strip_fields,
)

logger = logging.getLogger(__name__)


class SqlStore(RecordStore):
    """Durable store on three SQLModel tables (agents, chat_threads, api_keys).

    Slug uniqueness and the one-thread-per-session rule are enforced by table
    constraints, so concurrent writers cannot create duplicates.
    """

    backend = "sql"

    def __init__(self, engine: Engine) -> None:
        self._engine = engine
        init_db(engine)

    def _session(self) -> Session:
        # Rows stay readable after commit so they can be handed out detached.
        return get_session(self._engine)

    def create_agent(self, agent: Agent) -> Agent:
        row = Agent(**agent.model_dump())
        row.id = new_id()
        row.last_updated = utcnow()
        with self._session() as session:
            if session.exec(select(Agent.id).where(Agent.slug == row.slug)).first():
                raise DuplicateSlugError("Slug already exists")
            session.add(row)
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise DuplicateSlugError("Slug already exists") from exc
            session.refresh(row)
            return row

    def get_agent(self, agent_id: str) -> Optional[Agent]:
        with self._session() as session:
            return session.get(Agent, agent_id)

    def get_agent_by_slug(self, slug: str) -> Optional[Agent]:
        with self._session() as session:
            return session.exec(select(Agent).where(Agent.slug == slug)).first()

    def list_agents(self) -> List[Agent]:
        with self._session() as session:
            stmt = select(Agent).order_by(Agent.last_updated.desc())
            return list(session.exec(stmt))

    def update_agent(self, agent_id: str, patch: dict[str, Any]) -> Optional[Agent]:
        patch = strip_fields(patch, AGENT_READONLY_FIELDS)
        with self._session() as session:
            row = session.get(Agent, agent_id)
            if not row:
                return None
            for k, v in patch.items():
                setattr(row, k, list(v) if isinstance(v, list) else v)
            row.last_updated = utcnow()
            session.add(row)
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise DuplicateSlugError("Slug already exists") from exc
            session.refresh(row)
            return row

    def append_agent_files(self, agent_id: str, names: List[str]) -> Optional[Agent]:
        with self._session() as session:
            # Row lock where the backend supports it; SQLite serialises writers itself.
            row = session.exec(select(Agent).where(Agent.id == agent_id).with_for_update()).first()
            if not row:
                return None
            row.files = list(row.files or []) + list(names)
            row.last_updated = utcnow()
            session.add(row)
            session.commit()
            session.refresh(row)
            return row

    def delete_agent(self, agent_id: str) -> bool:
        with self._session() as session:
            row = session.get(Agent, agent_id)
            if not row:
                return False
            session.delete(row)
            session.commit()
            return True

    def create_thread(self, *, agent_slug: str, session_id: str, openai_thread_id: Optional[str]) -> ChatThread:
        now = utcnow()
        row = ChatThread(
            agent_slug=agent_slug,
            session_id=session_id,
            openai_thread_id=openai_thread_id,
            messages=[],
            created_at=now,
            last_message_at=now,
        )
        with self._session() as session:
            session.add(row)
            try:
                session.commit()
            except IntegrityError:
                # Another writer created the thread for this session first.
                session.rollback()
                logger.info("Thread for %s/%s already exists; reusing it", agent_slug, session_id)
                existing = self.get_thread_by_session(agent_slug, session_id)
                if existing is None:
                    raise
                return existing
            session.refresh(row)
            return row

    def get_thread(self, thread_id: str) -> Optional[ChatThread]:
        with self._session() as session:
            return session.get(ChatThread, thread_id)

    def get_thread_by_session(self, agent_slug: str, session_id: str) -> Optional[ChatThread]:
        with self._session() as session:
            stmt = select(ChatThread).where(
                ChatThread.agent_slug == agent_slug,
                ChatThread.session_id == session_id,
            )
            return session.exec(stmt).first()

    def update_thread(self, thread_id: str, patch: dict[str, Any]) -> Optional[ChatThread]:
        patch = strip_fields(patch, THREAD_READONLY_FIELDS)
        with self._session() as session:
            row = session.get(ChatThread, thread_id)
            if not row:
                return None
            for k, v in patch.items():
                # JSON columns only persist on reassignment, never on in-place mutation.
                setattr(row, k, [dict(m) for m in v] if k == "messages" else v)
            row.last_message_at = utcnow()
            session.add(row)
            session.commit()
            session.refresh(row)
            return row

    def set_api_key(self, *, openai_api_key: str, is_valid: bool) -> ApiKeyStatus:
        row = ApiKeyStatus(openai_api_key=openai_api_key, is_valid=bool(is_valid), last_validated=utcnow())
        with self._session() as session:
            # Replace the singleton in one transaction.
            session.exec(delete(ApiKeyStatus))
            session.add(row)
            session.commit()
            session.refresh(row)
            return row

    def get_api_key(self) -> Optional[ApiKeyStatus]:
        with self._session() as session:
            stmt = select(ApiKeyStatus).order_by(ApiKeyStatus.last_validated.desc()).limit(1)
            return session.exec(stmt).first()

    def update_api_key(self, key_id: str, patch: dict[str, Any]) -> Optional[ApiKeyStatus]:
        patch = strip_fields(patch, API_KEY_READONLY_FIELDS)
        with self._session() as session:
            row = session.get(ApiKeyStatus, key_id)
            if not row:
                return None
            for k, v in patch.items():
                setattr(row, k, v)
            row.last_validated = utcnow()
            session.add(row)
            session.commit()
            session.refresh(row)
            return row
