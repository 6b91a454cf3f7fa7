"""
SQLAlchemy engine and sessions for registered clients and audit rows.
Pending authorizations and tokens are not stored here.
"""
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from connect_server.config import DATABASE_URL
from connect_server.models import Base


def _make_engine(url: str) -> Engine:
    if not url.startswith("sqlite"):
        return create_engine(url)
    # Request handlers run in a threadpool
    connect_args = {"check_same_thread": False}
    if ":memory:" in url:
        # One shared connection, otherwise every session sees its own empty database
        return create_engine(url, connect_args=connect_args, poolclass=StaticPool)
    return create_engine(url, connect_args=connect_args)


engine = _make_engine(DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db() -> None:
    Base.metadata.create_all(bind=engine)


@contextmanager
def session_scope() -> Iterator[Session]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_db() -> Iterator[Session]:
    """Dependency: one session per request."""
    with session_scope() as db:
        yield db
