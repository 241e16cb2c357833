from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from agentrelay.config import Settings
from agentrelay.dialog.relay import ConversationRelay
from agentrelay.llm.assistants import AssistantsGateway
from agentrelay.store import RecordStore, build_store

from .routers import register_all
from .state import AppState

logger = logging.getLogger("agentrelay.web")


def _validation_errors(exc: RequestValidationError) -> list[dict]:
    out = []
    for err in exc.errors():
        out.append({"loc": list(err.get("loc") or ()), "msg": str(err.get("msg") or ""), "type": err.get("type")})
    return out


async def _bootstrap_key(ctx: AppState) -> None:
    secret = (ctx.settings.openai_api_key or "").strip()
    if not secret or ctx.store.get_api_key() is not None:
        return
    is_valid = await ctx.gateway.validate_key(secret)
    key = ctx.store.set_api_key(openai_api_key=secret, is_valid=is_valid)
    ctx.gateway.rebuild(key)
    ctx.logger.info("Stored provider key from environment (valid=%s)", is_valid)


def create_app(
    settings: Optional[Settings] = None,
    *,
    store: Optional[RecordStore] = None,
    gateway: Optional[AssistantsGateway] = None,
) -> FastAPI:
    settings = settings or Settings()
    store = store or build_store(settings)
    if gateway is None:
        gateway = AssistantsGateway(
            asr_model=settings.asr_model,
            poll_interval_s=settings.run_poll_interval_s,
            run_timeout_s=settings.run_timeout_s,
        )
    gateway.rebuild(store.get_api_key())

    ctx = AppState(
        settings=settings,
        store=store,
        gateway=gateway,
        relay=ConversationRelay(store=store, gateway=gateway),
        logger=logger,
    )

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        await _bootstrap_key(ctx)
        yield

    app = FastAPI(title="Agent Relay", lifespan=lifespan)

    cors_origins = settings.cors_origin_list()
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins or ["*"],
        allow_credentials=bool(cors_origins),
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RequestValidationError)
    async def _on_validation_error(_request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content={"detail": "Invalid request data", "errors": _validation_errors(exc)},
        )

    @app.exception_handler(Exception)
    async def _on_unhandled(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})

    app.state.relay_state = ctx
    register_all(app, ctx)
    return app
