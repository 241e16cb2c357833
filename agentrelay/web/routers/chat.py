from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, HTTPException

from agentrelay.dialog.relay import AgentNotFoundError, RelayRequest

from ..helpers.payloads import message_to_dict, thread_to_dict
from ..schemas import ChatMessageRequest


def register(app, ctx) -> None:
    router = APIRouter()

    @router.post("/api/chat/message")
    async def api_chat_message(payload: ChatMessageRequest) -> dict:
        request = RelayRequest(
            content=payload.content or "",
            agent_slug=payload.agent_slug,
            session_id=payload.session_id,
            audio_data=payload.audio_data or None,
        )
        try:
            result = await ctx.relay.handle(request)
        except AgentNotFoundError:
            raise HTTPException(status_code=404, detail="Agent not found")
        return {"message": message_to_dict(result.message), "thread": thread_to_dict(result.thread)}

    @router.get("/api/chat/thread/{agent_slug}/{session_id}")
    def api_get_thread(agent_slug: str, session_id: str) -> Optional[dict]:
        thread = ctx.store.get_thread_by_session(agent_slug, session_id)
        return thread_to_dict(thread) if thread else None

    app.include_router(router)
