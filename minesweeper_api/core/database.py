"""Database configuration and session helpers."""

from __future__ import annotations

from typing import Any, Iterator

from fastapi import Request
from sqlalchemy.engine import Engine
from sqlmodel import Session, create_engine

from .config import DATA_DIR, DATABASE_URL


def build_engine(url: str = DATABASE_URL) -> Engine:
    """Create the engine for ``url``; SQLite files get their directory created."""

    if url.startswith("sqlite"):
        DATA_DIR.mkdir(parents=True, exist_ok=True)
        return create_engine(url, connect_args={"check_same_thread": False})
    return create_engine(url, pool_pre_ping=True)


def get_session(request: Request) -> Iterator[Session]:
    """FastAPI dependency that yields a database session bound to the app engine."""

    with Session(request.app.state.services.engine) as session:
        yield session


def dialect_insert(session: Session, model: Any):
    """Return an INSERT construct supporting ON CONFLICT for the session's dialect."""

    dialect = session.get_bind().dialect.name
    if dialect == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    elif dialect == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    else:
        raise RuntimeError(f"Conditional upserts are not supported on {dialect}")
    return insert(model)


__all__ = ["build_engine", "dialect_insert", "get_session"]
