from __future__ import annotations

import asyncio
import weakref
from typing import Optional

from fastapi import APIRouter, File, HTTPException, Query, Request, UploadFile

from agentrelay.constants import DEFAULT_MODEL
from agentrelay.models import Agent
from agentrelay.store import DuplicateSlugError
from agentrelay.utils.text import is_valid_slug, slugify

from ..helpers.payloads import agent_to_dict
from ..helpers.widget import WidgetOptions, embed_snippets, widget_url
from ..schemas import AgentCreateRequest, AgentUpdateRequest

_INVALID_SLUG = "Slug may only contain lowercase letters, numbers and hyphens"


def register(app, ctx) -> None:
    router = APIRouter()
    slug_locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    def _slug_lock(slug: str) -> asyncio.Lock:
        lock = slug_locks.get(slug)
        if lock is None:
            lock = asyncio.Lock()
            slug_locks[slug] = lock
        return lock

    def _require_agent(agent_id: str) -> Agent:
        agent = ctx.store.get_agent(agent_id)
        if not agent:
            raise HTTPException(status_code=404, detail="Agent not found")
        return agent

    @router.get("/api/agents")
    def api_list_agents() -> list[dict]:
        return [agent_to_dict(a) for a in ctx.store.list_agents()]

    @router.get("/api/agents/{agent_id}")
    def api_get_agent(agent_id: str) -> dict:
        return agent_to_dict(_require_agent(agent_id))

    @router.post("/api/agents", status_code=201)
    async def api_create_agent(payload: AgentCreateRequest) -> dict:
        name = payload.name.strip()
        if not name:
            raise HTTPException(status_code=400, detail="Name is required")
        slug = (payload.slug or "").strip() or slugify(name)
        if not is_valid_slug(slug):
            raise HTTPException(status_code=400, detail=_INVALID_SLUG)

        # Held across the remote create so a losing duplicate never creates an assistant.
        async with _slug_lock(slug):
            if ctx.store.get_agent_by_slug(slug):
                raise HTTPException(status_code=400, detail="Slug already exists")

            model = (payload.model or "").strip() or ctx.settings.default_model or DEFAULT_MODEL
            assistant_id = (payload.openai_assistant_id or "").strip() or None
            if not assistant_id and payload.instructions:
                assistant_id = await ctx.gateway.create_assistant(name, payload.instructions, model)
                if not assistant_id:
                    ctx.logger.warning("agent %s created without a remote assistant", slug)

            agent = Agent(
                name=name,
                description=payload.description,
                model=model,
                instructions=payload.instructions,
                openai_assistant_id=assistant_id,
                slug=slug,
                is_active=payload.is_active,
                files=list(payload.files or []),
            )
            try:
                agent = ctx.store.create_agent(agent)
            except DuplicateSlugError:
                raise HTTPException(status_code=400, detail="Slug already exists")
        return agent_to_dict(agent)

    @router.put("/api/agents/{agent_id}")
    async def api_update_agent(agent_id: str, payload: AgentUpdateRequest) -> dict:
        current = _require_agent(agent_id)
        patch = payload.model_dump(exclude_unset=True)
        if "name" in patch:
            patch["name"] = (patch["name"] or "").strip()
            if not patch["name"]:
                raise HTTPException(status_code=400, detail="Name is required")
        if "slug" in patch and patch["slug"] != current.slug:
            slug = (patch["slug"] or "").strip()
            if not is_valid_slug(slug):
                raise HTTPException(status_code=400, detail=_INVALID_SLUG)
            if ctx.store.get_agent_by_slug(slug):
                raise HTTPException(status_code=400, detail="Slug already exists")
            patch["slug"] = slug
        if "files" in patch and patch["files"] is None:
            patch["files"] = []
        for k in ("model", "is_active"):
            if k in patch and patch[k] is None:
                del patch[k]

        instructions = patch.get("instructions")
        assistant_id = patch.get("openai_assistant_id", current.openai_assistant_id)
        if instructions and instructions != current.instructions and assistant_id:
            ok = await ctx.gateway.update_assistant(assistant_id, patch.get("name") or current.name, instructions)
            if not ok:
                ctx.logger.warning("remote assistant %s was not updated", assistant_id)

        try:
            agent = ctx.store.update_agent(agent_id, patch)
        except DuplicateSlugError:
            raise HTTPException(status_code=400, detail="Slug already exists")
        if not agent:
            raise HTTPException(status_code=404, detail="Agent not found")
        return agent_to_dict(agent)

    @router.delete("/api/agents/{agent_id}")
    def api_delete_agent(agent_id: str) -> dict:
        if not ctx.store.delete_agent(agent_id):
            raise HTTPException(status_code=404, detail="Agent not found")
        return {"success": True}

    @router.post("/api/agents/{agent_id}/files")
    async def api_upload_files(agent_id: str, files: list[UploadFile] = File(...)) -> dict:
        _require_agent(agent_id)
        names = [f.filename for f in files if f.filename]
        for f in files:
            await f.close()
        if not names:
            raise HTTPException(status_code=400, detail="No files uploaded")
        updated = ctx.store.append_agent_files(agent_id, names)
        if not updated:
            raise HTTPException(status_code=404, detail="Agent not found")
        return {"files": names}

    @router.get("/api/agents/{agent_id}/embed")
    def api_embed_code(
        agent_id: str,
        request: Request,
        theme: Optional[str] = None,
        enable_audio: Optional[str] = Query(default=None, alias="enableAudio"),
        primary_color: Optional[str] = Query(default=None, alias="primaryColor"),
        position: Optional[str] = None,
        welcome_message: Optional[str] = Query(default=None, alias="welcomeMessage"),
    ) -> dict:
        agent = _require_agent(agent_id)
        options = WidgetOptions.from_query(
            theme=theme,
            enable_audio=enable_audio,
            primary_color=primary_color,
            position=position,
            welcome_message=welcome_message,
        )
        base_url = ctx.settings.public_base_url or str(request.base_url)
        return embed_snippets(agent=agent, url=widget_url(base_url, agent.slug, options))

    app.include_router(router)
