"""Helpers for configuring SQLAlchemy engine and session factories."""

from __future__ import annotations

from functools import lru_cache

from sqlalchemy import Engine, create_engine, event
from sqlalchemy.orm import Session, sessionmaker

from ..config import get_settings
from . import Base


def as_sqlalchemy_url(db_url: str) -> str:
    """Ensure PostgreSQL URLs use the ``psycopg`` driver."""

    if db_url.startswith("postgresql+psycopg://"):
        return db_url
    if db_url.startswith("postgresql://"):
        return db_url.replace("postgresql://", "postgresql+psycopg://", 1)
    return db_url


def get_engine(
    database_url: str | None = None,
    *,
    statement_timeout: float | None = None,
    **kwargs: object,
) -> Engine:
    """Create a SQLAlchemy engine.

    Args:
        database_url: Optional database URL. When ``None`` the ``DATABASE_URL``
            setting is used.
        statement_timeout: Upper bound in seconds for a single statement. Only
            applied on PostgreSQL, where a hung statement is cancelled by the
            server and surfaces as an ``OperationalError`` to the caller.
        **kwargs: Additional keyword arguments forwarded to
            :func:`sqlalchemy.create_engine`.

    Returns:
        Configured SQLAlchemy :class:`~sqlalchemy.engine.Engine` instance.
    """

    url = database_url or get_settings().database_url
    if not url:
        raise RuntimeError("DATABASE_URL is not configured.")
    url = as_sqlalchemy_url(url)

    if statement_timeout and url.startswith("postgresql"):
        connect_args = dict(kwargs.pop("connect_args", None) or {})  # type: ignore[arg-type]
        connect_args.setdefault(
            "options", f"-c statement_timeout={int(statement_timeout * 1000)}"
        )
        kwargs["connect_args"] = connect_args

    engine = create_engine(url, **kwargs)

    if engine.dialect.name == "sqlite":

        @event.listens_for(engine, "connect")
        def _configure_sqlite(dbapi_connection, _connection_record):  # pragma: no cover - dialect hook
            dbapi_connection.execute("PRAGMA foreign_keys=ON")

    return engine


def get_sessionmaker(database_url: str | None = None, **kwargs: object) -> sessionmaker[Session]:
    """Return a session factory bound to the configured engine."""

    engine = get_engine(database_url=database_url, **kwargs)
    return sessionmaker(bind=engine, expire_on_commit=False, future=True)


@lru_cache(maxsize=1)
def get_default_sessionmaker() -> sessionmaker[Session]:
    """Process-wide session factory built from the cached settings."""

    settings = get_settings()
    return get_sessionmaker(
        settings.database_url,
        statement_timeout=settings.store_timeout_seconds,
        pool_pre_ping=True,
    )


def create_schema(factory: sessionmaker[Session]) -> None:
    """Create every table known to :class:`Base` on the factory's engine."""

    Base.metadata.create_all(factory.kw["bind"])


__all__ = [
    "Base",
    "as_sqlalchemy_url",
    "create_schema",
    "get_default_sessionmaker",
    "get_engine",
    "get_sessionmaker",
]
