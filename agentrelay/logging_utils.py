from __future__ import annotations

import logging

from rich.logging import RichHandler


def configure_logging(level: int = logging.INFO) -> None:
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True)],
    )
    # Request-level logs from the provider SDK are noisy even in debug mode.
    for name in ("httpx", "httpcore", "openai", "openai._base_client"):
        logging.getLogger(name).setLevel(logging.WARNING)
