# activation_api/services/database.py

import logging

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from activation_api.core.config import Settings

logger = logging.getLogger(__name__)


class DatabaseNotConfigured(RuntimeError):
    pass


def create_engine(settings: Settings) -> AsyncEngine:
    if not settings.database_url:
        raise DatabaseNotConfigured("POSTGRES_URL or DATABASE_URL is not set. Please check .env file.")

    kwargs = {"echo": settings.echo, "pool_pre_ping": True}
    if settings.database_url.startswith("postgresql+asyncpg"):
        # Serverless Postgres: keep the pool tiny and fail fast
        kwargs.update(
            pool_size=settings.pool_size,
            max_overflow=0,
            pool_timeout=settings.pool_timeout,
            pool_recycle=settings.pool_recycle,
            connect_args={
                "timeout": settings.pool_timeout,
                "command_timeout": settings.statement_timeout,
            },
        )

    engine = create_async_engine(settings.database_url, **kwargs)
    logger.info("Database engine created for %s", engine.url.render_as_string(hide_password=True))
    return engine


def create_session_factory(engine: AsyncEngine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine, class_=AsyncSession, expire_on_commit=False)


def unconfigured_session_factory():
    # Stands in for a session factory when no database URL is set
    raise DatabaseNotConfigured("POSTGRES_URL or DATABASE_URL is not set. Please check .env file.")
