from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class _WireModel(BaseModel):
    # Clients send camelCase; snake_case is accepted too.
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ApiKeySetRequest(_WireModel):
    openai_api_key: str = Field(min_length=1)


class AgentCreateRequest(_WireModel):
    name: str = Field(min_length=1)
    description: Optional[str] = None
    model: Optional[str] = None
    instructions: Optional[str] = None
    slug: Optional[str] = None
    openai_assistant_id: Optional[str] = None
    is_active: bool = True
    files: list[str] = []


class AgentUpdateRequest(_WireModel):
    name: Optional[str] = None
    description: Optional[str] = None
    model: Optional[str] = None
    instructions: Optional[str] = None
    slug: Optional[str] = None
    openai_assistant_id: Optional[str] = None
    is_active: Optional[bool] = None
    files: Optional[list[str]] = None


class ChatMessageRequest(_WireModel):
    content: str = ""
    agent_slug: str = Field(min_length=1)
    session_id: str = Field(min_length=1)
    audio_data: Optional[str] = None

    @model_validator(mode="after")
    def _require_text_or_audio(self) -> "ChatMessageRequest":
        if not (self.content or "").strip() and not (self.audio_data or "").strip():
            raise ValueError("Message cannot be empty")
        return self
