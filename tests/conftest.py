from __future__ import annotations

from types import SimpleNamespace
from typing import Any, Optional

import pytest

from agentrelay.config import Settings
from agentrelay.db import make_engine
from agentrelay.llm.assistants import AssistantsGateway
from agentrelay.models import ApiKeyStatus
from agentrelay.store import MemoryStore, SqlStore


class FakeOpenAI:
    """Stand-in for the ``openai.OpenAI`` client surface the gateway touches."""

    def __init__(
        self,
        *,
        run_statuses: Optional[list[str]] = None,
        reply: str = "Hello from the assistant",
        transcription: str = "transcribed words",
        reject_key: bool = False,
        fail_threads: bool = False,
    ) -> None:
        self.run_statuses = list(run_statuses or ["queued", "in_progress", "completed"])
        self.reply = reply
        self.transcription = transcription
        self.reject_key = reject_key
        self.fail_threads = fail_threads
        self.calls: list[tuple[Any, ...]] = []
        self._n = 0

        self.models = SimpleNamespace(list=self._models_list)
        self.audio = SimpleNamespace(transcriptions=SimpleNamespace(create=self._transcribe))
        self.beta = SimpleNamespace(
            assistants=SimpleNamespace(
                list=self._assistants_list,
                create=self._assistants_create,
                update=self._assistants_update,
            ),
            threads=SimpleNamespace(
                create=self._threads_create,
                messages=SimpleNamespace(create=self._messages_create, list=self._messages_list),
                runs=SimpleNamespace(create=self._runs_create, retrieve=self._runs_retrieve, cancel=self._runs_cancel),
            ),
        )

    def _next_id(self, prefix: str) -> str:
        self._n += 1
        return f"{prefix}_{self._n}"

    def _models_list(self):
        self.calls.append(("models.list",))
        if self.reject_key:
            raise RuntimeError("401 invalid api key")
        return SimpleNamespace(data=[])

    def _transcribe(self, *, model: str, file):
        self.calls.append(("transcribe", model, file.name))
        return SimpleNamespace(text=self.transcription)

    def _assistants_list(self):
        self.calls.append(("assistants.list",))
        return SimpleNamespace(
            data=[SimpleNamespace(id="asst_remote", name="Remote", model="gpt-4o", instructions="Hi", created_at=1700000000)]
        )

    def _assistants_create(self, *, name: str, instructions: str, model: str):
        self.calls.append(("assistants.create", name, instructions, model))
        return SimpleNamespace(id=self._next_id("asst"))

    def _assistants_update(self, assistant_id: str, *, name: str, instructions: str):
        self.calls.append(("assistants.update", assistant_id, name, instructions))
        return SimpleNamespace(id=assistant_id)

    def _threads_create(self):
        self.calls.append(("threads.create",))
        if self.fail_threads:
            raise RuntimeError("connection reset")
        return SimpleNamespace(id=self._next_id("thread"))

    def _messages_create(self, thread_id: str, *, role: str, content: str):
        self.calls.append(("messages.create", thread_id, role, content))
        return SimpleNamespace(id=self._next_id("msg"))

    def _messages_list(self, thread_id: str, *, order: str, limit: int):
        self.calls.append(("messages.list", thread_id, order, limit))
        return SimpleNamespace(data=[{"role": "assistant", "content": [{"type": "text", "text": {"value": self.reply}}]}])

    def _runs_create(self, *, thread_id: str, assistant_id: str):
        self.calls.append(("runs.create", thread_id, assistant_id))
        return SimpleNamespace(id="run_1", status="queued")

    def _runs_retrieve(self, run_id: str, *, thread_id: str):
        self.calls.append(("runs.retrieve", run_id, thread_id))
        status = self.run_statuses.pop(0) if len(self.run_statuses) > 1 else self.run_statuses[0]
        last_error = SimpleNamespace(message="model overloaded") if status == "failed" else None
        return SimpleNamespace(id=run_id, status=status, last_error=last_error)

    def _runs_cancel(self, run_id: str, *, thread_id: str):
        self.calls.append(("runs.cancel", run_id, thread_id))
        return SimpleNamespace(id=run_id, status="cancelling")

    def call_names(self) -> list[str]:
        return [c[0] for c in self.calls]


@pytest.fixture
def fake_client() -> FakeOpenAI:
    return FakeOpenAI()


@pytest.fixture
def gateway(fake_client: FakeOpenAI) -> AssistantsGateway:
    """Gateway whose client factory hands out ``fake_client``; not yet configured."""
    return AssistantsGateway(poll_interval_s=0, run_timeout_s=5, client_factory=lambda _key: fake_client)


@pytest.fixture
def configured_gateway(gateway: AssistantsGateway) -> AssistantsGateway:
    gateway.rebuild(ApiKeyStatus(openai_api_key="sk-test-0123456789abcd", is_valid=True))
    return gateway


@pytest.fixture
def memory_store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def sql_store(tmp_path) -> SqlStore:
    return SqlStore(make_engine(f"sqlite:///{tmp_path / 'relay.db'}"))


@pytest.fixture(params=["memory", "sql"])
def store(request, tmp_path):
    if request.param == "memory":
        return MemoryStore()
    return SqlStore(make_engine(f"sqlite:///{tmp_path / 'relay.db'}"))


@pytest.fixture
def settings(tmp_path, monkeypatch) -> Settings:
    monkeypatch.delenv("AGENTRELAY_OPENAI_API_KEY", raising=False)
    return Settings(data_dir=str(tmp_path), store_backend="memory", run_poll_interval_s=0, run_timeout_s=5)


@pytest.fixture
def make_client():
    return FakeOpenAI
