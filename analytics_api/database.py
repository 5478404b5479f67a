"""
Fyrk Analytics — Async SQLAlchemy setup for the SQL-backed counter store.
"""

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase


POOL_SIZE = 5


class Base(DeclarativeBase):
    pass


def make_engine(database_url: str) -> AsyncEngine:
    """Create an async engine; pool settings only apply to server databases."""
    return create_async_engine(
        database_url,
        echo=False,
        **(
            {}
            if "sqlite" in database_url
            else {
                "pool_size": POOL_SIZE,
                "max_overflow": 10,
                "pool_pre_ping": True,       # test connections before use (survives sleep/wake)
                "pool_recycle": 300,
            }
        ),
    )


def session_limit(database_url: str) -> int:
    """Sessions the counter store may hold open at once; SQLite gets one."""
    return 1 if "sqlite" in database_url else POOL_SIZE


def make_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def init_db(engine: AsyncEngine) -> None:
    """Create all tables (used when the store opens and in tests)."""
    # Register models on Base.metadata before create_all
    import analytics_api.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db(engine: AsyncEngine) -> None:
    await engine.dispose()
