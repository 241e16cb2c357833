from __future__ import annotations

import logging
from dataclasses import dataclass

from agentrelay.config import Settings
from agentrelay.dialog.relay import ConversationRelay
from agentrelay.llm.assistants import AssistantsGateway
from agentrelay.store.base import RecordStore


@dataclass
class AppState:
    settings: Settings
    store: RecordStore
    gateway: AssistantsGateway
    relay: ConversationRelay
    logger: logging.Logger

    def public_url(self, path: str) -> str:
        return f"{self.settings.public_base_url}{path}"
