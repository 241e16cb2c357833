from __future__ import annotations

import asyncio
import base64
import binascii
import logging
import weakref
from dataclasses import dataclass
from typing import Optional

from agentrelay.constants import REPLY_NOT_CONFIGURED, REPLY_RUN_FAILED
from agentrelay.llm.assistants import AssistantsGateway, reply_text
from agentrelay.models import Agent, ChatThread, ThreadMessage
from agentrelay.store.base import RecordStore

logger = logging.getLogger(__name__)


class AgentNotFoundError(LookupError):
    pass


@dataclass(frozen=True)
class RelayRequest:
    content: str
    agent_slug: str
    session_id: str
    audio_data: Optional[str] = None  # base64, optionally a data: URL


@dataclass(frozen=True)
class RelayResult:
    message: ThreadMessage
    thread: ChatThread


def decode_audio(audio_data: str) -> Optional[bytes]:
    raw = (audio_data or "").strip()
    if raw.startswith("data:") and "," in raw:
        raw = raw.split(",", 1)[1]
    if not raw:
        return None
    try:
        return base64.b64decode(raw, validate=True)
    except (binascii.Error, ValueError):
        return None


class ConversationRelay:
    """Relays one visitor message to the agent's assistant and records both turns.

    Turns for the same (agent slug, session id) are serialized with an
    in-process lock, so concurrent posts from one session append in the order
    they acquire it. Different sessions never wait on each other.
    """

    def __init__(
        self,
        *,
        store: RecordStore,
        gateway: AssistantsGateway,
        run_failed_reply: str = REPLY_RUN_FAILED,
        not_configured_reply: str = REPLY_NOT_CONFIGURED,
    ) -> None:
        self._store = store
        self._gateway = gateway
        self._run_failed_reply = run_failed_reply
        self._not_configured_reply = not_configured_reply
        self._locks: "weakref.WeakValueDictionary[tuple[str, str], asyncio.Lock]" = weakref.WeakValueDictionary()

    def _session_lock(self, agent_slug: str, session_id: str) -> asyncio.Lock:
        key = (agent_slug, session_id)
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    async def handle(self, request: RelayRequest) -> RelayResult:
        agent = self._store.get_agent_by_slug(request.agent_slug)
        if agent is None:
            raise AgentNotFoundError(request.agent_slug)

        async with self._session_lock(request.agent_slug, request.session_id):
            thread = await self._resolve_thread(request.agent_slug, request.session_id)
            text = await self._effective_text(request)

            messages = thread.message_list()
            messages.append(ThreadMessage(role="user", content=text))
            reply = await self._assistant_reply(agent, thread, text)
            assistant_msg = ThreadMessage(role="assistant", content=reply)
            messages.append(assistant_msg)

            updated = self._store.update_thread(thread.id, {"messages": [m.to_record() for m in messages]})
            if updated is None:
                raise RuntimeError(f"Chat thread {thread.id} disappeared during relay")
            return RelayResult(message=assistant_msg, thread=updated)

    async def _resolve_thread(self, agent_slug: str, session_id: str) -> ChatThread:
        thread = self._store.get_thread_by_session(agent_slug, session_id)
        if thread is not None:
            return thread
        remote_id = await self._gateway.create_thread()
        if remote_id is None:
            logger.info("No remote thread for %s/%s; replies will use the fallback", agent_slug, session_id)
        return self._store.create_thread(agent_slug=agent_slug, session_id=session_id, openai_thread_id=remote_id)

    async def _effective_text(self, request: RelayRequest) -> str:
        if not request.audio_data:
            return request.content
        audio = decode_audio(request.audio_data)
        if audio is None:
            logger.warning("Ignoring undecodable audio for session %s", request.session_id)
            return request.content
        transcription = await self._gateway.transcribe(audio)
        return transcription or request.content

    async def _assistant_reply(self, agent: Agent, thread: ChatThread, text: str) -> str:
        if not thread.openai_thread_id or not agent.openai_assistant_id:
            return self._not_configured_reply
        await self._gateway.post_message(thread.openai_thread_id, text)
        outcome = await self._gateway.run_and_await_reply(thread.openai_thread_id, agent.openai_assistant_id)
        reply = reply_text(outcome)
        if reply is None:
            logger.info("Agent %s produced no reply: %r", agent.slug, outcome)
            return self._run_failed_reply
        return reply
