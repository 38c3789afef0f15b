from contextlib import asynccontextmanager
from functools import cached_property
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from storefront.infrastructure.repositories import (
    SQLAlchemyOrderRepository,
    SQLAlchemyProductRepository,
    SQLAlchemyCartRepository,
    SQLAlchemyOutboxRepository
)


class UnitOfWork:
    """Одна транзакция на сценарий: все репозитории делят сессию.

    Без явного commit изменения откатываются, в том числе при исключении
    внутри блока. Репозитории создаются при первом обращении.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    @asynccontextmanager
    async def __call__(self):
        async with self._session_factory() as session:
            scope = _TransactionScope(session)
            try:
                yield scope
            finally:
                if not scope.committed:
                    await session.rollback()


class _TransactionScope:
    def __init__(self, session: AsyncSession):
        self._session = session
        self.committed = False

    @cached_property
    def orders(self) -> SQLAlchemyOrderRepository:
        return SQLAlchemyOrderRepository(self._session)

    @cached_property
    def products(self) -> SQLAlchemyProductRepository:
        return SQLAlchemyProductRepository(self._session)

    @cached_property
    def carts(self) -> SQLAlchemyCartRepository:
        return SQLAlchemyCartRepository(self._session)

    @cached_property
    def outbox(self) -> SQLAlchemyOutboxRepository:
        return SQLAlchemyOutboxRepository(self._session)

    async def commit(self):
        await self._session.commit()
        self.committed = True

    async def rollback(self):
        # После отката сессия снова открыта для чтения и записи
        await self._session.rollback()
        self.committed = False
