from __future__ import annotations

import asyncio
import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Optional, TypeVar, Union

from agentrelay.asr.openai_asr import OpenAIASR
from agentrelay.models import ApiKeyStatus
from agentrelay.utils.masking import build_hint

logger = logging.getLogger(__name__)

T = TypeVar("T")

RUN_PENDING_STATUSES = ("queued", "in_progress")


@dataclass(frozen=True)
class RunCompleted:
    text: str


@dataclass(frozen=True)
class RunCompletedWithoutText:
    run_id: str


@dataclass(frozen=True)
class RunFailed:
    status: str
    error: Optional[str] = None


@dataclass(frozen=True)
class RunCancelled:
    run_id: str


@dataclass(frozen=True)
class RunTimedOut:
    run_id: str
    waited_s: float


RunOutcome = Union[RunCompleted, RunCompletedWithoutText, RunFailed, RunCancelled, RunTimedOut]


def reply_text(outcome: RunOutcome) -> Optional[str]:
    if isinstance(outcome, RunCompleted):
        return outcome.text
    return None


@dataclass(frozen=True)
class AssistantInfo:
    id: str
    name: Optional[str]
    model: Optional[str]
    instructions: Optional[str]
    created_at: Optional[int]


def _get(obj: Any, key: str, default=None):
    if isinstance(obj, dict):
        return obj.get(key, default)
    return getattr(obj, key, default)


def _first_text(message: Any) -> str:
    for block in _get(message, "content") or []:
        if _get(block, "type") != "text":
            continue
        value = _get(_get(block, "text"), "value")
        if isinstance(value, str) and value.strip():
            return value
    return ""


def _default_client_factory(api_key: str) -> Any:
    try:
        from openai import OpenAI  # type: ignore
    except Exception as exc:  # pragma: no cover
        raise RuntimeError("openai sdk not installed; pip install openai") from exc
    return OpenAI(api_key=api_key, timeout=30.0)


class AssistantsGateway:
    """Every call to the hosted assistants API goes through here.

    Operations never raise: failures are logged and collapse to ``None``,
    ``False``, ``[]`` or a non-completed :data:`RunOutcome`. The SDK client is
    built from the stored key by :meth:`rebuild`, which callers invoke at
    startup and whenever the key changes. Without a valid key every operation
    except :meth:`validate_key` is a no-op.

    SDK calls are blocking and run in worker threads, so a long run poll only
    suspends the request that is waiting on it.
    """

    def __init__(
        self,
        *,
        asr_model: str = "whisper-1",
        poll_interval_s: float = 1.0,
        run_timeout_s: float = 60.0,
        client_factory: Optional[Callable[[str], Any]] = None,
    ) -> None:
        self._asr_model = asr_model
        self._poll_interval_s = max(0.0, float(poll_interval_s))
        self._run_timeout_s = max(0.0, float(run_timeout_s))
        self._client_factory = client_factory or _default_client_factory
        self._client: Any = None
        self._lock = threading.Lock()

    @property
    def configured(self) -> bool:
        return self._current() is not None

    def _current(self) -> Any:
        with self._lock:
            return self._client

    def rebuild(self, key: Optional[ApiKeyStatus]) -> bool:
        client = None
        if key is not None and key.is_valid and (key.openai_api_key or "").strip():
            try:
                client = self._client_factory(key.openai_api_key.strip())
            except Exception as exc:
                logger.warning("Could not build provider client for %s: %s", build_hint(key.openai_api_key), exc)
                client = None
        with self._lock:
            self._client = client
        if client is None:
            logger.info("Provider client cleared (no valid key)")
        else:
            logger.info("Provider client rebuilt for key %s", build_hint(key.openai_api_key))
        return client is not None

    async def _call(self, op: str, fn: Callable[[Any], T]) -> Optional[T]:
        client = self._current()
        if client is None:
            logger.debug("%s skipped: no provider client configured", op)
            return None
        try:
            return await asyncio.to_thread(fn, client)
        except Exception as exc:
            logger.warning("%s failed: %s", op, exc)
            return None

    async def validate_key(self, api_key: str) -> bool:
        key = (api_key or "").strip()
        if not key:
            return False
        try:
            client = self._client_factory(key)
            await asyncio.to_thread(client.models.list)
            return True
        except Exception as exc:
            logger.warning("Key %s failed validation: %s", build_hint(key), exc)
            return False

    async def list_assistants(self) -> list[AssistantInfo]:
        def op(client: Any) -> list[AssistantInfo]:
            page = client.beta.assistants.list()
            return [
                AssistantInfo(
                    id=str(_get(a, "id")),
                    name=_get(a, "name"),
                    model=_get(a, "model"),
                    instructions=_get(a, "instructions"),
                    created_at=_get(a, "created_at"),
                )
                for a in (_get(page, "data") or [])
            ]

        return await self._call("list_assistants", op) or []

    async def create_assistant(self, name: str, instructions: str, model: str) -> Optional[str]:
        def op(client: Any) -> Optional[str]:
            resp = client.beta.assistants.create(name=name, instructions=instructions, model=model)
            return _get(resp, "id")

        return await self._call("create_assistant", op)

    async def update_assistant(self, assistant_id: str, name: str, instructions: str) -> bool:
        def op(client: Any) -> bool:
            client.beta.assistants.update(assistant_id, name=name, instructions=instructions)
            return True

        return bool(await self._call("update_assistant", op))

    async def create_thread(self) -> Optional[str]:
        return await self._call("create_thread", lambda client: _get(client.beta.threads.create(), "id"))

    async def post_message(self, thread_id: str, text: str) -> Optional[str]:
        def op(client: Any) -> Optional[str]:
            resp = client.beta.threads.messages.create(thread_id, role="user", content=text)
            return _get(resp, "id") or "ok"

        return await self._call("post_message", op)

    async def run_and_await_reply(self, thread_id: str, assistant_id: str) -> RunOutcome:
        client = self._current()
        if client is None:
            return RunFailed(status="unavailable", error="no provider client configured")
        runs = client.beta.threads.runs
        loop = asyncio.get_running_loop()
        run_id = ""
        try:
            run = await asyncio.to_thread(runs.create, thread_id=thread_id, assistant_id=assistant_id)
            run_id = str(_get(run, "id"))
            started = loop.time()
            run = await asyncio.to_thread(runs.retrieve, run_id, thread_id=thread_id)
            while _get(run, "status") in RUN_PENDING_STATUSES:
                waited = loop.time() - started
                if waited >= self._run_timeout_s:
                    logger.warning("Run %s still %s after %.1fs; cancelling", run_id, _get(run, "status"), waited)
                    await self._cancel_run(client, thread_id, run_id)
                    return RunTimedOut(run_id=run_id, waited_s=waited)
                await asyncio.sleep(self._poll_interval_s)
                run = await asyncio.to_thread(runs.retrieve, run_id, thread_id=thread_id)

            status = str(_get(run, "status") or "")
            if status == "completed":
                page = await asyncio.to_thread(client.beta.threads.messages.list, thread_id, order="desc", limit=1)
                data = _get(page, "data") or []
                text = _first_text(data[0]) if data else ""
                if text:
                    return RunCompleted(text=text)
                return RunCompletedWithoutText(run_id=run_id)
            if status in ("cancelled", "cancelling"):
                return RunCancelled(run_id=run_id)
            last_error = _get(run, "last_error")
            error = _get(last_error, "message") if last_error is not None else None
            logger.warning("Run %s ended with status %s: %s", run_id, status, error or "-")
            return RunFailed(status=status, error=error)
        except Exception as exc:
            logger.warning("run_and_await_reply failed (run %s): %s", run_id or "-", exc)
            return RunFailed(status="error", error=str(exc))

    async def _cancel_run(self, client: Any, thread_id: str, run_id: str) -> None:
        try:
            await asyncio.to_thread(client.beta.threads.runs.cancel, run_id, thread_id=thread_id)
        except Exception as exc:
            logger.warning("Cancelling run %s failed: %s", run_id, exc)

    async def transcribe(self, audio: bytes) -> Optional[str]:
        def op(client: Any) -> Optional[str]:
            asr = OpenAIASR(client=client, model=self._asr_model)
            return asr.transcribe_bytes(audio).text or None

        return await self._call("transcribe", op)
