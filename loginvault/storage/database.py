"""Async database configuration with PostgreSQL/SQLite support.

Uses asyncpg for PostgreSQL or aiosqlite for SQLite.
SQLModel provides the ORM layer on top of SQLAlchemy.
"""

import os
from pathlib import Path

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel import SQLModel


def normalize_url(url: str) -> str:
    """Select the async driver for a database URL.

    Hosting providers hand out postgres:// URLs, SQLAlchemy needs the
    driver spelled out.
    """
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+asyncpg://", 1)
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return url


def make_engine(url: str) -> AsyncEngine:
    """Create an async engine with per-backend settings."""
    engine_kwargs = {"echo": False, "future": True}
    if "sqlite" in url:
        engine_kwargs["connect_args"] = {"check_same_thread": False}
        database = make_url(url).database
        if database and database != ":memory:":
            Path(database).parent.mkdir(parents=True, exist_ok=True)
    return create_async_engine(url, **engine_kwargs)


DATABASE_URL = normalize_url(
    os.environ.get("DATABASE_URL", "sqlite+aiosqlite:///./data/loginvault.db")
)

engine = make_engine(DATABASE_URL)

# Async session factory; tests swap this module attribute for their own
async_session = sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def init_db() -> None:
    """Create all tables that don't exist yet.

    Called on application startup. Safe to call multiple times.
    """
    # Import models to ensure they're registered with SQLModel.metadata
    from loginvault.storage import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
