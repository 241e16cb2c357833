from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, HTTPException

from ..helpers.payloads import api_key_to_dict
from ..schemas import ApiKeySetRequest


def register(app, ctx) -> None:
    router = APIRouter()

    @router.post("/api/api-key")
    async def api_set_key(payload: ApiKeySetRequest) -> dict:
        secret = payload.openai_api_key.strip()
        if not secret:
            raise HTTPException(status_code=400, detail="Missing API key")
        is_valid = await ctx.gateway.validate_key(secret)
        key = ctx.store.set_api_key(openai_api_key=secret, is_valid=is_valid)
        ctx.gateway.rebuild(key)
        return api_key_to_dict(key)

    @router.get("/api/api-key")
    def api_get_key() -> Optional[dict]:
        key = ctx.store.get_api_key()
        return api_key_to_dict(key) if key else None

    @router.post("/api/api-key/validate")
    async def api_revalidate_key() -> dict:
        key = ctx.store.get_api_key()
        if not key:
            raise HTTPException(status_code=404, detail="API key not found")
        is_valid = await ctx.gateway.validate_key(key.openai_api_key)
        updated = ctx.store.update_api_key(key.id, {"is_valid": is_valid})
        if not updated:
            raise HTTPException(status_code=404, detail="API key not found")
        ctx.gateway.rebuild(updated)
        return api_key_to_dict(updated)

    app.include_router(router)
