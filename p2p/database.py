
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
import structlog

from p2p.config import Settings

logger = structlog.get_logger()


class Base(DeclarativeBase):
    pass


def _get_db_url(url: str) -> str:
    """Strip sslmode from URL since asyncpg uses connect_args for SSL."""
    return url.replace("?sslmode=require", "").replace("&sslmode=require", "")


def create_engine_from_settings(settings: Settings) -> AsyncEngine:
    if not settings.DATABASE_URL:
        raise RuntimeError("DATABASE_URL must be set when STORE_BACKEND=sql")
    connect_args = {"ssl": "require"} if "sslmode=require" in settings.DATABASE_URL else {}
    engine = create_async_engine(
        _get_db_url(settings.DATABASE_URL),
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_timeout=30,
        pool_recycle=settings.DB_POOL_RECYCLE,
        pool_pre_ping=True,
        echo=settings.DEBUG,
        connect_args=connect_args,
    )
    logger.info("db_engine_created", pool_size=settings.DB_POOL_SIZE)
    return engine


def create_session_factory(engine: AsyncEngine):
    return async_sessionmaker(engine, expire_on_commit=False)
