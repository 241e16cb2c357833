from __future__ import annotations

import datetime as dt
from typing import Optional

from agentrelay.llm.assistants import AssistantInfo
from agentrelay.models import Agent, ApiKeyStatus, ChatThread, ThreadMessage
from agentrelay.utils.masking import build_hint


def iso(value: Optional[dt.datetime]) -> Optional[str]:
    if value is None:
        return None
    # SQLite hands datetimes back without tzinfo; they were written as UTC.
    if value.tzinfo is None:
        value = value.replace(tzinfo=dt.timezone.utc)
    return value.isoformat()


def agent_to_dict(agent: Agent) -> dict:
    return {
        "id": agent.id,
        "name": agent.name,
        "description": agent.description,
        "model": agent.model,
        "instructions": agent.instructions,
        "openaiAssistantId": agent.openai_assistant_id,
        "slug": agent.slug,
        "isActive": bool(agent.is_active),
        "files": list(agent.files or []),
        "lastUpdated": iso(agent.last_updated),
    }


def message_to_dict(message: ThreadMessage) -> dict:
    return message.to_record()


def thread_to_dict(thread: ChatThread) -> dict:
    return {
        "id": thread.id,
        "agentSlug": thread.agent_slug,
        "sessionId": thread.session_id,
        "openaiThreadId": thread.openai_thread_id,
        "messages": [message_to_dict(m) for m in thread.message_list()],
        "createdAt": iso(thread.created_at),
        "lastMessageAt": iso(thread.last_message_at),
    }


def api_key_to_dict(key: ApiKeyStatus) -> dict:
    return {
        "id": key.id,
        "openaiApiKey": key.openai_api_key,
        "hint": build_hint(key.openai_api_key),
        "isValid": bool(key.is_valid),
        "lastValidated": iso(key.last_validated),
    }


def assistant_to_dict(info: AssistantInfo) -> dict:
    return {
        "id": info.id,
        "name": info.name,
        "model": info.model,
        "instructions": info.instructions,
        "createdAt": info.created_at,
    }
