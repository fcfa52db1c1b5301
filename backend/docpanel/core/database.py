"""
DocPanel - Local Tracking Database
==================================
Async SQLAlchemy engine for the view log tables. Content records live in
the record store, never here. Schema changes go through Alembic; the
development shortcut below only creates missing tables.
"""

from __future__ import annotations

from sqlalchemy import MetaData
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from docpanel.core.config import get_settings
from docpanel.core.logging import get_logger

settings = get_settings()
logger = get_logger("core.database")

NAMING_CONVENTION = {
    "ix": "ix_%(table_name)s_%(column_0_N_name)s",
    "pk": "pk_%(table_name)s",
}


class Base(DeclarativeBase):
    metadata = MetaData(naming_convention=NAMING_CONVENTION)


def build_engine(url: str | None = None) -> AsyncEngine:
    # View writes are short single-row statements; a small pool is enough.
    return create_async_engine(
        url or settings.database_url,
        pool_size=5,
        max_overflow=5,
        pool_pre_ping=True,
        pool_recycle=1800,
    )


engine = build_engine()
async_session = async_sessionmaker(engine, expire_on_commit=False)


async def init_db() -> None:
    if settings.app_env.lower() != "development":
        return
    from docpanel.models import tracking  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("tracking_tables_ready", tables=sorted(Base.metadata.tables))
