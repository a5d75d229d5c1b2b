from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from synced_resources.config import settings


def _normalize_postgres(url: str) -> str:
    # Force psycopg3 for both runtime and migrations; it serves sync and async.
    if url.startswith("postgres://"):
        url = "postgresql://" + url[len("postgres://") :]
    if url.startswith("postgresql://"):
        return "postgresql+psycopg://" + url[len("postgresql://") :]
    if url.startswith("postgresql+psycopg2://"):
        return url.replace("postgresql+psycopg2://", "postgresql+psycopg://", 1)
    return url


def normalize_database_url_for_async(database_url: str) -> str:
    """Runtime URL: sqlite -> sqlite+aiosqlite, postgres -> postgresql+psycopg."""
    url = (database_url or "").strip()
    if not url:
        return url
    if url.startswith("sqlite://") and "+aiosqlite" not in url:
        return url.replace("sqlite://", "sqlite+aiosqlite://", 1)
    return _normalize_postgres(url)


def normalize_database_url_for_alembic(database_url: str) -> str:
    """Alembic runs on a sync engine, so strip async-only drivers."""
    url = (database_url or "").strip()
    if not url:
        return url
    if url.startswith("sqlite+aiosqlite://"):
        return url.replace("sqlite+aiosqlite://", "sqlite://", 1)
    return _normalize_postgres(url)


def _create_async_engine(database_url: str) -> AsyncEngine:
    url = normalize_database_url_for_async(database_url)
    return create_async_engine(url, echo=False, pool_pre_ping=True)


# Keyed by URL so tests can repoint settings.database_url at a temp file.
_engines: dict[str, AsyncEngine] = {}


def get_engine() -> AsyncEngine:
    url = settings.database_url
    engine = _engines.get(url)
    if engine is None:
        engine = _create_async_engine(url)
        _engines[url] = engine
    return engine


def reset_engine_cache() -> None:
    # Forget cached engines without closing them (sync callers, e.g. alembic helpers).
    _engines.clear()


async def dispose_engine_cache() -> None:
    # Ensure sqlite/aiosqlite worker threads don't keep the process alive.
    while _engines:
        _url, engine = _engines.popitem()
        await engine.dispose()


async def init_db() -> None:
    # Local/test fallback only; deployments migrate with Alembic.
    async with get_engine().begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)


@asynccontextmanager
async def session_scope() -> AsyncIterator[AsyncSession]:
    session_maker = async_sessionmaker(get_engine(), class_=AsyncSession, expire_on_commit=False)
    async with session_maker() as session:
        yield session


async def get_session() -> AsyncIterator[AsyncSession]:
    session_maker = async_sessionmaker(get_engine(), class_=AsyncSession, expire_on_commit=False)
    async with session_maker() as session:
        yield session
