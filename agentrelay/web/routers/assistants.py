from __future__ import annotations

from fastapi import APIRouter

from ..helpers.payloads import assistant_to_dict


def register(app, ctx) -> None:
    router = APIRouter()

    @router.get("/api/openai/assistants")
    async def api_list_assistants() -> list[dict]:
        return [assistant_to_dict(a) for a in await ctx.gateway.list_assistants()]

    app.include_router(router)
