from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, HTTPException, Query
from fastapi.responses import HTMLResponse

from ..helpers.widget import WidgetOptions, render_widget_html


def register(app, ctx) -> None:
    router = APIRouter()

    @router.get("/api/widget/{slug}", response_class=HTMLResponse)
    def public_widget(
        slug: str,
        theme: Optional[str] = None,
        enable_audio: Optional[str] = Query(default=None, alias="enableAudio"),
        primary_color: Optional[str] = Query(default=None, alias="primaryColor"),
        position: Optional[str] = None,
        welcome_message: Optional[str] = Query(default=None, alias="welcomeMessage"),
    ) -> HTMLResponse:
        agent = ctx.store.get_agent_by_slug(slug)
        if not agent:
            raise HTTPException(status_code=404, detail="Agent not found")
        options = WidgetOptions.from_query(
            theme=theme,
            enable_audio=enable_audio,
            primary_color=primary_color,
            position=position,
            welcome_message=welcome_message,
        )
        body = render_widget_html(
            agent=agent,
            options=options,
            relay_url=ctx.public_url("/api/chat/message"),
        )
        return HTMLResponse(content=body, headers={"Cache-Control": "no-store"})

    app.include_router(router)
