import asyncio
import base64

import pytest

from agentrelay.constants import REPLY_NOT_CONFIGURED, REPLY_RUN_FAILED
from agentrelay.dialog.relay import AgentNotFoundError, ConversationRelay, RelayRequest, decode_audio
from agentrelay.llm.assistants import AssistantsGateway
from agentrelay.models import Agent, ApiKeyStatus


def _relay(store, gateway) -> ConversationRelay:
    return ConversationRelay(store=store, gateway=gateway)


def _send(relay: ConversationRelay, content: str, *, slug: str = "support", session: str = "s1", audio=None):
    return asyncio.run(relay.handle(RelayRequest(content=content, agent_slug=slug, session_id=session, audio_data=audio)))


def test_two_messages_build_one_thread_in_order(store, configured_gateway, fake_client) -> None:
    store.create_agent(Agent(name="Support", slug="support", openai_assistant_id="asst_1"))
    relay = _relay(store, configured_gateway)

    first = _send(relay, "hi")
    second = _send(relay, "how are you?")

    assert first.message.role == "assistant"
    assert first.message.content == "Hello from the assistant"
    assert second.thread.id == first.thread.id
    messages = second.thread.message_list()
    assert [m.role for m in messages] == ["user", "assistant", "user", "assistant"]
    assert [m.content for m in messages][0::2] == ["hi", "how are you?"]
    assert second.thread.last_message_at >= first.thread.last_message_at
    assert fake_client.call_names().count("threads.create") == 1
    assert ("messages.create", first.thread.openai_thread_id, "user", "how are you?") in fake_client.calls


def test_unknown_agent_creates_no_thread(store, configured_gateway, fake_client) -> None:
    relay = _relay(store, configured_gateway)
    with pytest.raises(AgentNotFoundError):
        _send(relay, "hi", slug="ghost")
    assert store.get_thread_by_session("ghost", "s1") is None
    assert fake_client.calls == []


def test_missing_remote_ids_use_not_configured_reply(store, gateway) -> None:
    store.create_agent(Agent(name="Support", slug="support"))
    result = _send(_relay(store, gateway), "hi")

    assert result.message.content == REPLY_NOT_CONFIGURED
    assert result.thread.openai_thread_id is None
    stored = store.get_thread_by_session("support", "s1")
    assert [(m.role, m.content) for m in stored.message_list()] == [
        ("user", "hi"),
        ("assistant", REPLY_NOT_CONFIGURED),
    ]


def test_agent_without_assistant_skips_remote_calls(store, configured_gateway, fake_client) -> None:
    store.create_agent(Agent(name="Support", slug="support"))
    result = _send(_relay(store, configured_gateway), "hi")
    assert result.message.content == REPLY_NOT_CONFIGURED
    assert fake_client.call_names() == ["threads.create"]


def test_failed_run_uses_fallback_reply(store, configured_gateway, fake_client) -> None:
    fake_client.run_statuses = ["failed"]
    store.create_agent(Agent(name="Support", slug="support", openai_assistant_id="asst_1"))
    result = _send(_relay(store, configured_gateway), "hi")
    assert result.message.content == REPLY_RUN_FAILED
    assert len(result.thread.messages) == 2


def test_audio_transcription_replaces_content(store, configured_gateway, fake_client) -> None:
    store.create_agent(Agent(name="Support", slug="support", openai_assistant_id="asst_1"))
    clip = base64.b64encode(b"OggS" + b"\x00" * 32).decode("ascii")
    result = _send(_relay(store, configured_gateway), "", audio=clip)
    assert result.thread.message_list()[0].content == "transcribed words"
    assert ("transcribe", "whisper-1", "audio.ogg") in fake_client.calls


def test_undecodable_audio_falls_back_to_content(store, configured_gateway, fake_client) -> None:
    store.create_agent(Agent(name="Support", slug="support", openai_assistant_id="asst_1"))
    result = _send(_relay(store, configured_gateway), "typed text", audio="%%% not base64 %%%")
    assert result.thread.message_list()[0].content == "typed text"
    assert "transcribe" not in fake_client.call_names()


def test_decode_audio_accepts_data_urls() -> None:
    payload = base64.b64encode(b"RIFF").decode("ascii")
    assert decode_audio(payload) == b"RIFF"
    assert decode_audio(f"data:audio/webm;base64,{payload}") == b"RIFF"
    assert decode_audio("") is None
    assert decode_audio("not*base64") is None


def test_concurrent_messages_for_one_session_are_serialized(store, configured_gateway) -> None:
    store.create_agent(Agent(name="Support", slug="support", openai_assistant_id="asst_1"))
    relay = _relay(store, configured_gateway)

    async def burst():
        return await asyncio.gather(
            *(relay.handle(RelayRequest(content=f"m{i}", agent_slug="support", session_id="s1")) for i in range(4))
        )

    asyncio.run(burst())
    thread = store.get_thread_by_session("support", "s1")
    messages = thread.message_list()
    assert len(messages) == 8
    assert sorted(m.content for m in messages if m.role == "user") == ["m0", "m1", "m2", "m3"]
    assert [m.role for m in messages] == ["user", "assistant"] * 4


def test_failed_remote_thread_uses_not_configured_reply(store, make_client) -> None:
    client = make_client(fail_threads=True)
    gateway = AssistantsGateway(poll_interval_s=0, client_factory=lambda _key: client)
    gateway.rebuild(ApiKeyStatus(openai_api_key="sk-test-0123456789abcd", is_valid=True))
    store.create_agent(Agent(name="Support", slug="support", openai_assistant_id="asst_1"))

    result = _send(_relay(store, gateway), "hi")

    assert result.message.content == REPLY_NOT_CONFIGURED
    assert result.thread.openai_thread_id is None
    assert client.call_names() == ["threads.create"]
    stored = store.get_thread_by_session("support", "s1")
    assert [(m.role, m.content) for m in stored.message_list()] == [
        ("user", "hi"),
        ("assistant", REPLY_NOT_CONFIGURED),
    ]
