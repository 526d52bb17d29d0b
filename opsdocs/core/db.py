from functools import lru_cache

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from opsdocs.core.config import settings

# Базовый класс для моделей
Base = declarative_base()


@lru_cache(maxsize=1)
def get_engine() -> AsyncEngine:
    """Асинхронный движок (создается при первом обращении)"""
    return create_async_engine(settings.database_url, future=True, echo=settings.db_echo)


@lru_cache(maxsize=1)
def get_sessionmaker() -> async_sessionmaker:
    return async_sessionmaker(bind=get_engine(), class_=AsyncSession, expire_on_commit=False)


# Функция для dependency injection в FastAPI
async def get_db():
    async with get_sessionmaker()() as session:
        yield session


async def init_models(engine: AsyncEngine = None) -> None:
    """Создание таблиц по метаданным моделей"""
    import opsdocs.db.models  # noqa: F401  регистрирует модели в Base.metadata

    engine = engine or get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
