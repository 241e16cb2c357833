from __future__ import annotations

from fastapi import APIRouter


def register(app, ctx) -> None:
    router = APIRouter()

    @router.get("/api/health")
    def api_health() -> dict:
        return {
            "status": "ok",
            "store": ctx.store.backend,
            "providerConfigured": ctx.gateway.configured,
        }

    app.include_router(router)
