from __future__ import annotations

from pathlib import Path
from typing import Optional

from sqlalchemy.engine import Engine
from sqlalchemy.engine import make_url
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

# Table classes must be imported before create_all.
from agentrelay import models  # noqa: F401


def make_engine(db_url: str) -> Engine:
    url = make_url(db_url)
    if url.get_backend_name() != "sqlite":
        return create_engine(db_url, echo=False, pool_pre_ping=True)
    connect_args = {"check_same_thread": False}
    database = url.database or ""
    if database in ("", ":memory:"):
        # One shared connection, otherwise every checkout sees an empty database.
        return create_engine(db_url, echo=False, connect_args=connect_args, poolclass=StaticPool)
    Path(database).expanduser().parent.mkdir(parents=True, exist_ok=True)
    return create_engine(db_url, echo=False, connect_args=connect_args)


def init_db(engine: Engine) -> None:
    SQLModel.metadata.create_all(engine)


def get_session(engine: Engine, *, expire_on_commit: Optional[bool] = False) -> Session:
    return Session(engine, expire_on_commit=bool(expire_on_commit))
