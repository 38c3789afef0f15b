from storefront.domain.models import Order
from storefront.domain.exceptions import OrderNotFoundError
from storefront.application.cache_keys import order_detail_key


class GetOrderUseCase:
    def __init__(self, unit_of_work, caches=None):
        self._uow = unit_of_work
        self._caches = caches

    async def __call__(self, order_id: str) -> Order:
        key = order_detail_key(order_id)
        if self._caches is not None:
            cached = self._caches.orders.get(key)
            if cached is not None:
                return cached

        async with self._uow() as uow:
            order = await uow.orders.get_by_id(order_id)
            if not order:
                raise OrderNotFoundError(f"Заказ {order_id} не найден")

        if self._caches is not None:
            self._caches.orders.set(key, order)
        return order
