"""Database engine, session factory and dialect-aware upsert helpers."""

from __future__ import annotations

from typing import Any, Generator

from sqlalchemy import create_engine
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from token_catalog.core.config import settings


def build_engine(database_url: str) -> Engine:
    """Create an engine whose calls are bounded by the configured store timeout."""
    if database_url.startswith("sqlite"):
        kwargs: dict[str, Any] = {
            "connect_args": {"check_same_thread": False, "timeout": settings.STORE_TIMEOUT_SECONDS},
        }
        # In-memory databases only live as long as their single connection
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        return create_engine(database_url, **kwargs)

    statement_timeout_ms = int(settings.STORE_TIMEOUT_SECONDS * 1000)
    return create_engine(
        database_url,
        pool_pre_ping=True,
        pool_timeout=settings.DB_POOL_TIMEOUT_SECONDS,
        connect_args={"options": f"-c statement_timeout={statement_timeout_ms}"},
    )


engine = build_engine(settings.DATABASE_URL)
SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def get_db() -> Generator[Session, None, None]:
    """Database dependency"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def dialect_name(db: Session) -> str:
    return db.get_bind().dialect.name


def upsert_insert(db: Session, model: Any):
    """Return an ``INSERT`` construct that supports ``ON CONFLICT`` for the bound dialect."""
    name = dialect_name(db)
    if name == "postgresql":
        return postgresql.insert(model)
    if name == "sqlite":
        return sqlite.insert(model)
    raise RuntimeError(f"Unsupported database dialect for upserts: {name}")
