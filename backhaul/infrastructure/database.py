"""
Async database engine, session factory and declarative base.

PostgreSQL runs on ``asyncpg``.  Bid decisions hold row locks for a few
statements only, so the pool stays small; its size comes from settings.
"""

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from backhaul.config import settings


def build_engine(url: str, **kwargs) -> AsyncEngine:
    # SQLite has no connection pool to size.
    if make_url(url).get_backend_name() != "sqlite":
        kwargs.setdefault("pool_size", settings.db_pool_size)
        kwargs.setdefault("max_overflow", settings.db_max_overflow)
        kwargs.setdefault("pool_pre_ping", True)
    return create_async_engine(url, **kwargs)


engine = build_engine(settings.database_url)

async_session_factory = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)


class Base(DeclarativeBase):
    pass
