# yoga_scheduler/db.py
from contextlib import contextmanager
from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
import logging

from .models import Base

log = logging.getLogger(__name__)


# ── Engine / session factory ─────────────────────
def make_engine(database_url: str):
    """
    Build an engine for DATABASE_URL. In-memory SQLite gets a single shared
    connection so every session sees the same tables.
    """
    kwargs = {"pool_pre_ping": True, "future": True}
    if database_url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if ":memory:" in database_url or database_url == "sqlite://":
            kwargs["poolclass"] = StaticPool
    return create_engine(database_url, **kwargs)


def make_session_factory(engine):
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=engine,
        expire_on_commit=False,
        future=True,
    )


def init_db(engine):
    """Create tables if missing and ping the database."""
    Base.metadata.create_all(bind=engine)
    with engine.connect() as c:
        c.execute(text("SELECT 1"))
    log.info("[DB] Tables created / verified")


# ── Context managers ─────────────────────────────
@contextmanager
def session_scope(session_factory):
    """Provide a transactional scope around a series of operations."""
    session = session_factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
