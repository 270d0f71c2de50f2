from typing import AsyncIterator
from fastapi import HTTPException, Request
from sqlmodel import SQLModel
from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from app.core.config import Settings
import structlog

logger = structlog.get_logger()


def create_engine_from_settings(settings: Settings) -> AsyncEngine:
    """Build the process-wide connection pool for the configured database."""
    engine_kwargs = {"echo": settings.log_level.upper() == "DEBUG"}
    if not settings.is_sqlite:
        engine_kwargs["pool_size"] = settings.db_pool_size
        engine_kwargs["max_overflow"] = settings.db_max_overflow

    engine = create_async_engine(settings.database_url, **engine_kwargs)

    if engine.dialect.name == "postgresql":
        # Set search_path to the schema from settings after connecting
        @event.listens_for(engine.sync_engine, "connect")
        def set_search_path(dbapi_connection, connection_record):
            logger.info("Setting search path", schema=settings.db_schema)
            cursor = dbapi_connection.cursor()
            cursor.execute(f"SET search_path TO {settings.db_schema}")
            cursor.close()

    return engine


def create_session_maker(engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def get_async_session(request: Request) -> AsyncIterator[AsyncSession]:
    """FastAPI dependency yielding a session from the application's pool"""
    session_maker: async_sessionmaker = request.app.state.session_maker
    async with session_maker() as session:
        try:
            yield session
        except HTTPException:
            await session.rollback()
            raise
        except Exception as e:
            await session.rollback()
            logger.error("Database session error", error_type=type(e).__name__, error=str(e))
            raise
        finally:
            await session.close()


async def create_db_and_tables(engine: AsyncEngine):
    # Registers the products table on SQLModel.metadata
    import app.models  # noqa: F401

    logger.info("Creating database tables", url=engine.url.render_as_string(hide_password=True))
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)


async def ping(session: AsyncSession) -> bool:
    result = await session.execute(text("SELECT 1 AS ok"))
    return result.scalar_one() == 1


async def close_db(engine: AsyncEngine):
    await engine.dispose()
