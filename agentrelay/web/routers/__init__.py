from __future__ import annotations

from . import agents, assistants, chat, core, keys, public_widget


def register_all(app, ctx) -> None:
    core.register(app, ctx)
    keys.register(app, ctx)
    agents.register(app, ctx)
    assistants.register(app, ctx)
    chat.register(app, ctx)
    public_widget.register(app, ctx)
