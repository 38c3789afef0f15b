from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from storefront.infrastructure.db_schema import metadata


def create_engine(database_url: str, **kwargs) -> AsyncEngine:
    return create_async_engine(database_url, **kwargs)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False)


async def create_tables(engine: AsyncEngine) -> None:
    """Создает таблицы (для локального запуска и тестов, в проде через alembic)"""
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)
