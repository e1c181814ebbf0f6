from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, scoped_session, sessionmaker
from sqlalchemy.pool import StaticPool

from .config import load_settings
from .models import Base


def _build_engine(database_url: str) -> Engine:
    options = {"future": True, "echo": False, "pool_pre_ping": True}
    if database_url.startswith("sqlite"):
        # The scheduler runs store calls on worker threads.
        options["connect_args"] = {"check_same_thread": False}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            options["poolclass"] = StaticPool
    return create_engine(database_url, **options)


settings = load_settings()

engine = _build_engine(settings.database_url)
SessionLocal = scoped_session(sessionmaker(bind=engine, autoflush=False, future=True))


def get_engine() -> Engine:
    return engine


def configure_engine(database_url: str) -> Engine:
    """Point the session factory at a different database."""
    global engine
    SessionLocal.remove()
    engine.dispose()
    engine = _build_engine(database_url)
    SessionLocal.configure(bind=engine)
    return engine


def init_db() -> None:
    Base.metadata.create_all(engine)


@contextmanager
def session_scope() -> Iterator[Session]:
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
