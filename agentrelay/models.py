from __future__ import annotations

import datetime as dt
from typing import Any, Literal, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict
from pydantic import Field as PydanticField
from sqlalchemy import JSON, Column, UniqueConstraint
from sqlmodel import Field, SQLModel


MessageRole = Literal["user", "assistant"]


def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def new_id() -> str:
    return str(uuid4())


class Agent(SQLModel, table=True):
    __tablename__ = "agents"

    id: str = Field(default_factory=new_id, primary_key=True)
    name: str
    description: Optional[str] = None

    # Assistant
    model: str = "gpt-4o"
    instructions: Optional[str] = None
    openai_assistant_id: Optional[str] = None

    # Widget address and conversation partition key
    slug: str = Field(index=True, unique=True)

    is_active: bool = True
    # Uploaded filenames only; content is not stored.
    files: list[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    last_updated: dt.datetime = Field(default_factory=utcnow)


class ChatThread(SQLModel, table=True):
    __tablename__ = "chat_threads"
    __table_args__ = (UniqueConstraint("agent_slug", "session_id", name="uq_chat_threads_session"),)

    id: str = Field(default_factory=new_id, primary_key=True)
    agent_slug: str = Field(index=True)
    session_id: str = Field(index=True)
    openai_thread_id: Optional[str] = None
    # ThreadMessage records (see ThreadMessage.to_record), oldest first.
    messages: list[dict] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    created_at: dt.datetime = Field(default_factory=utcnow)
    last_message_at: dt.datetime = Field(default_factory=utcnow)

    def message_list(self) -> list["ThreadMessage"]:
        return [ThreadMessage.model_validate(m) for m in (self.messages or [])]


class ApiKeyStatus(SQLModel, table=True):
    __tablename__ = "api_keys"

    id: str = Field(default_factory=new_id, primary_key=True)
    # Stored in clear text.
    openai_api_key: str
    is_valid: bool = False
    last_validated: Optional[dt.datetime] = None


class ThreadMessage(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str = PydanticField(default_factory=new_id)
    role: MessageRole
    content: str
    timestamp: str = PydanticField(default_factory=lambda: utcnow().isoformat())
    audio_url: Optional[str] = PydanticField(default=None, alias="audioUrl")

    def to_record(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)
