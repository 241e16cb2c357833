from __future__ import annotations

import logging

import typer

from agentrelay.config import Settings
from agentrelay.logging_utils import configure_logging

app = typer.Typer(add_completion=False, help="Agent Relay: embeddable chat widgets backed by hosted assistants.")


@app.command()
def doctor() -> None:
    """
    Print the resolved configuration (secrets are never shown).
    """
    configure_logging(level=logging.INFO)
    Settings().print_diagnostics()


@app.command()
def web(
    host: str = typer.Option("127.0.0.1", "--host"),
    port: int = typer.Option(8000, "--port"),
    reload: bool = typer.Option(False, "--reload", help="Auto-reload on file changes (dev only)."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """
    Run the admin API, chat relay and widget server.
    """
    configure_logging(level=logging.DEBUG if verbose else logging.INFO)
    import uvicorn

    uvicorn.run("agentrelay.web.app:create_app", host=host, port=port, reload=reload, factory=True)


if __name__ == "__main__":
    app()
