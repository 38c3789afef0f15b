import logging
from datetime import datetime, timezone

from storefront.domain.models import Order, OrderStatus
from storefront.domain.exceptions import OrderNotFoundError, InvalidOrderTransitionError
from storefront.application.cache_keys import invalidate_order

logger = logging.getLogger(__name__)


class CancelCheckoutUseCase:
    """Отмена неоплаченного заказа (возврат покупателя со страницы шлюза)"""

    def __init__(self, unit_of_work, caches=None):
        self._uow = unit_of_work
        self._caches = caches

    async def __call__(self, order_id: str) -> Order:
        async with self._uow() as uow:
            order = await uow.orders.get_by_id(order_id)
            if not order:
                raise OrderNotFoundError(f"Заказ {order_id} не найден")
            if order.status == OrderStatus.CANCELLED:
                return order

            order.cancel(datetime.now(timezone.utc))
            if not await uow.orders.transition(order, expected=OrderStatus.PENDING):
                await uow.rollback()
                current = await uow.orders.get_by_id(order_id)
                raise InvalidOrderTransitionError(order_id, current.status, OrderStatus.CANCELLED)
            await uow.commit()

        logger.info(f"Заказ {order_id} отменен")
        invalidate_order(self._caches, order.user_id, order.id)
        return order
