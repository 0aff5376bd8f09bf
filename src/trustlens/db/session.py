"""Engine, sessions and dialect helpers for the verification store."""

from __future__ import annotations

from collections.abc import Callable, Generator
from typing import Any, Final

from sqlalchemy import create_engine
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from trustlens.core.settings import settings


class Base(DeclarativeBase):
    """Declarative base shared by all ORM models."""


# Ensure model modules are imported so that metadata is populated when create_all runs.
import trustlens.models  # noqa: E402,F401

# Atomic claims and idempotent upserts need ON CONFLICT support.
_DIALECT_INSERTS: Final[dict[str, Callable[..., Any]]] = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


def build_engine(url: str, *, echo: bool = False) -> Engine:
    """Create an engine for ``url``; SQLite connections may cross threads."""
    connect_args: dict[str, Any] = {}
    if url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    return create_engine(url, pool_pre_ping=True, echo=echo, connect_args=connect_args)


engine = build_engine(settings.effective_database_url, echo=settings.sql_debug)

# Reports are read back after commit, so committed rows must stay loaded.
SessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


def get_db() -> Generator[Session, None, None]:
    """Yield a database session for dependency injection."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def dialect_insert(db: Session) -> Callable[..., Any]:
    """Return the ``insert`` construct of the session's dialect.

    Raises:
        NotImplementedError: If the dialect has no ``ON CONFLICT`` support here.
    """
    dialect = db.get_bind().dialect.name
    try:
        return _DIALECT_INSERTS[dialect]
    except KeyError as err:
        raise NotImplementedError(f"Database dialect {dialect!r} is not supported") from err


def create_tables() -> None:
    """Create all database tables."""
    Base.metadata.create_all(bind=engine)


def drop_tables() -> None:
    """Drop all database tables."""
    Base.metadata.drop_all(bind=engine)
