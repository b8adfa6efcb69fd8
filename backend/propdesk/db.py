# backend/propdesk/db.py
from __future__ import annotations

from sqlalchemy import create_engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker


class Base(DeclarativeBase):
    pass


def make_session_factory(database_url: str) -> sessionmaker:
    """
    Builds an engine + session factory for the durable store.

    The engine is created per factory rather than at import time so tests and
    the worker can point at different databases without touching globals.
    """
    engine = create_engine(
        database_url,
        pool_pre_ping=True,
        future=True,
    )
    Base.metadata.create_all(engine)
    return sessionmaker(
        bind=engine,
        autoflush=False,
        autocommit=False,
        future=True,
    )
