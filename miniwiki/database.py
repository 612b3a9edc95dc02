from typing import AsyncIterator

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker, declarative_base

Base = declarative_base()

# async driver -> sync driver, for Alembic
SYNC_DRIVERS = {
    "postgresql+asyncpg": "postgresql+psycopg2",
    "sqlite+aiosqlite": "sqlite",
}


def build_engine(database_url: str) -> AsyncEngine:
    return create_async_engine(database_url, echo=False, future=True)


def build_session_maker(engine: AsyncEngine) -> sessionmaker:
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


def sync_database_url(url: str) -> str:
    driver, sep, rest = url.partition("://")
    return SYNC_DRIVERS.get(driver, driver) + sep + rest


async def get_db(request: Request) -> AsyncIterator[AsyncSession]:
    async with request.app.state.session_maker() as session:
        yield session


async def init_db(engine: AsyncEngine, create_all: bool) -> None:
    # Only run create_all in dev, never in prod with Alembic
    if create_all:
        from . import models  # noqa: F401  registers tables on Base

        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
