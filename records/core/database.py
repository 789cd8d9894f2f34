from typing import Any, AsyncGenerator, Optional

from sqlalchemy import BigInteger, Integer
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncEngine, AsyncSession, AsyncAttrs
from sqlalchemy.orm import DeclarativeBase

from records.core.config import settings
from records.core.logger import logger

engine = create_async_engine(
    url=settings.DATABASE_URL,
    echo=False,
    pool_size=settings.DB_POOL_SIZE,
    max_overflow=settings.DB_MAX_OVERFLOW,
)
AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)

class Base(AsyncAttrs, DeclarativeBase):
    pass

async def get_db() -> AsyncGenerator[AsyncSession | Any, Any]:
    async with AsyncSessionLocal() as session:
        logger.debug("Database session opened")
        try:
            yield session
        finally:
            logger.debug("Database session closed")


def create_worker_engine(database_url: Optional[str] = None) -> AsyncEngine:
    """
    Создание отдельного движка для воркера расчёта ведомости.

    Движок привязан к циклу событий потока воркера и не разделяется
    с основным приложением, поэтому воркер обязан закрыть его сам.

    Args:
        database_url: Адрес базы данных, по умолчанию из настроек

    Returns:
        AsyncEngine: Новый движок с минимальным пулом соединений
    """
    return create_async_engine(
        url=database_url or settings.DATABASE_URL,
        echo=False,
        pool_size=1,
        max_overflow=0,
    )


def create_session_factory(bind: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(
        bind=bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


# SQLite выдаёт автоинкремент только для INTEGER PRIMARY KEY
IdType = BigInteger().with_variant(Integer, "sqlite")
