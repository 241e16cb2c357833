from __future__ import annotations

from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


STORE_BACKENDS = ("sql", "memory")


def _default_data_dir() -> str:
    return str(Path.home() / ".agentrelay")


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="AGENTRELAY_", env_file=".env", extra="ignore")

    # App data (default: ~/.agentrelay)
    data_dir: str = Field(default_factory=_default_data_dir)

    # Storage
    store_backend: str = "sql"
    db_url: str = ""

    # Provider
    openai_api_key: Optional[str] = None  # bootstrap key, stored on first start
    default_model: str = "gpt-4o"
    asr_model: str = "whisper-1"
    run_poll_interval_s: float = 1.0
    run_timeout_s: float = 60.0

    # Web
    # Absolute origin for embed snippets and the widget relay URL (empty: root-relative).
    public_base_url: str = ""
    cors_origins: str = ""

    @field_validator("data_dir", mode="before")
    @classmethod
    def _normalize_data_dir(cls, v):
        raw = str(v or "").strip()
        return str(Path(raw).expanduser()) if raw else _default_data_dir()

    @field_validator("store_backend", mode="before")
    @classmethod
    def _normalize_backend(cls, v):
        raw = str(v or "").strip().lower() or "sql"
        if raw not in STORE_BACKENDS:
            raise ValueError(f"store_backend must be one of {', '.join(STORE_BACKENDS)}")
        return raw

    @field_validator("db_url", mode="before")
    @classmethod
    def _default_db_url(cls, v, info):
        raw = str(v or "").strip()
        if raw:
            return raw
        data_dir = Path(str(info.data.get("data_dir") or _default_data_dir())).expanduser()
        return f"sqlite:///{data_dir / 'agentrelay.db'}"

    @field_validator("openai_api_key", mode="before")
    @classmethod
    def _empty_str_to_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("public_base_url", mode="before")
    @classmethod
    def _strip_trailing_slash(cls, v):
        return str(v or "").strip().rstrip("/")

    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in (self.cors_origins or "").split(",") if o.strip()]

    def print_diagnostics(self) -> None:
        print("store_backend:", self.store_backend)
        print("db_url:", self.db_url if self.store_backend == "sql" else "(unused)")
        print("data_dir:", self.data_dir)
        print("default_model:", self.default_model)
        print("asr_model:", self.asr_model)
        print("run_poll_interval_s:", self.run_poll_interval_s)
        print("run_timeout_s:", self.run_timeout_s)
        print("public_base_url:", self.public_base_url or "(root-relative)")
        print("AGENTRELAY_OPENAI_API_KEY set:", bool(self.openai_api_key))
