"""Async SQLAlchemy database session configuration."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from civicflow.config import settings

# Build connection args
connect_args = {}

# Transaction poolers (pgbouncer and friends) cannot hold prepared statements
if "asyncpg" in settings.database_url and "pooler" in settings.database_url:
    connect_args["prepared_statement_cache_size"] = 0

# Create async engine
engine = create_async_engine(
    settings.database_url,
    echo=settings.log_level == "DEBUG",
    poolclass=NullPool,
    connect_args=connect_args,
)

# Session factory
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency for FastAPI routes.

    Usage:
        @app.get("/items")
        async def get_items(db: AsyncSession = Depends(get_db)):
            ...
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


@asynccontextmanager
async def get_db_context() -> AsyncGenerator[AsyncSession, None]:
    """
    Context manager for use outside of FastAPI routes (e.g., in scheduler jobs).

    Usage:
        async with get_db_context() as db:
            tenders = await db.execute(select(Tender))
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


@asynccontextmanager
async def atomic(db: AsyncSession) -> AsyncGenerator[AsyncSession, None]:
    """
    Run a block as one unit of work on an existing session.

    Everything flushed inside the block is committed together, or rolled
    back together if anything raises.

    Usage:
        async with atomic(db):
            bid.status = BidStatus.ACCEPTED
            await dispatcher.dispatch(db, event)
    """
    try:
        yield db
        await db.commit()
    except Exception:
        await db.rollback()
        raise
