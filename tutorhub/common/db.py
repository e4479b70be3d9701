"""Database bootstrap helpers shared by all services.

Services never reach for a process-global engine; each app builds (or is
handed) a session factory and passes it to its service objects.
"""

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker


def make_engine(dsn: str) -> Engine:
    """Create one SQLAlchemy engine for the lifetime of a service process."""

    return create_engine(dsn, pool_pre_ping=True)


def make_session_factory(engine: Engine) -> sessionmaker:
    # `expire_on_commit=False` keeps ORM objects readable after commit in handlers.
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)


class Base(DeclarativeBase):
    """Declarative base for SQLAlchemy models."""

    pass
