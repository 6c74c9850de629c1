# app/database.py
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, create_engine, Session

from app.core.config import get_settings

settings = get_settings()


def _with_sslmode(db_url: str) -> str:
    """Append sslmode=require to a Postgres URL if it is not already present."""
    if "sslmode=" in db_url:
        return db_url
    if "?" in db_url:
        return db_url + "&sslmode=require"
    return db_url + "?sslmode=require"


def build_engine(db_url: str, echo: bool = False):
    """
    Create the SQLAlchemy engine for the configured database.

    - SQLite      : allow use from FastAPI's threadpool; an in-memory
                    database is pinned to one connection (StaticPool) so
                    every session sees the same data.
    - Postgres    : small pool with pre-ping, optional sslmode=require.
    """
    if db_url.startswith("sqlite"):
        kwargs: dict = {"connect_args": {"check_same_thread": False}}
        if db_url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        return create_engine(db_url, echo=echo, **kwargs)

    if settings.DATABASE_SSL_REQUIRED:
        db_url = _with_sslmode(db_url)

    return create_engine(
        db_url,
        echo=echo,
        pool_pre_ping=True,
        pool_size=5,
        max_overflow=5,
    )


engine = build_engine(settings.DATABASE_URL, echo=settings.DATABASE_ECHO)


def create_db_and_tables() -> None:
    """
    Create all tables defined in SQLModel metadata if they do not exist.

    This is called once on application startup.
    """
    SQLModel.metadata.create_all(engine)


def get_session():
    """
    FastAPI dependency that yields a SQLModel Session.

    Usage:

        from fastapi import Depends

        @router.get("/example")
        def example_endpoint(session: Session = Depends(get_session)):
            ...
    """
    with Session(engine) as session:
        yield session


@contextmanager
def transaction(session: Session) -> Iterator[Session]:
    """
    Scoped unit of work on an existing session.

    Commits when the block exits normally; rolls back and re-raises on
    any exception, so a failed mutation leaves the store in its pre-call
    state.

        with transaction(session):
            repo.try_decrement(session, product_id, 2)
            repo.create_order(session, order)
    """
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
