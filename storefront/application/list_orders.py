import logging
from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from pydantic import BaseModel, Field

from storefront.domain.models import Order, OrderStatus, Pagination
from storefront.domain.exceptions import ValidationError
from storefront.application.cache_keys import order_list_key

logger = logging.getLogger(__name__)


class ListOrdersDTO(BaseModel):
    user_id: str = Field(min_length=1)
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=10, ge=1, le=100)
    status: Optional[str] = None


class OrderSummary(BaseModel):
    """Краткая карточка заказа для списка"""
    id: str
    status: OrderStatus
    payment_status: str
    payment_method: str
    total_amount: Decimal
    created_at: datetime
    item_count: int
    first_item: Optional[str] = None

    @classmethod
    def from_domain(cls, order: Order) -> "OrderSummary":
        return cls(
            id=order.id,
            status=order.status,
            payment_status=order.payment_status,
            payment_method=order.payment_method,
            total_amount=order.total_amount,
            created_at=order.created_at,
            item_count=len(order.items),
            first_item=order.items[0].title if order.items else None
        )


class OrderPage(BaseModel):
    orders: List[OrderSummary]
    pagination: Pagination


class ListOrdersUseCase:
    def __init__(self, unit_of_work, caches=None):
        self._uow = unit_of_work
        self._caches = caches

    async def __call__(self, dto: ListOrdersDTO) -> OrderPage:
        status = self._parse_status(dto.status)
        key = order_list_key(dto.user_id, dto.page, dto.limit, status.value if status else None)
        if self._caches is not None:
            cached = self._caches.orders.get(key)
            if cached is not None:
                return cached

        async with self._uow() as uow:
            orders, total = await uow.orders.list_by_user(dto.user_id, dto.page, dto.limit, status)

        result = OrderPage(
            orders=[OrderSummary.from_domain(order) for order in orders],
            pagination=Pagination.build(dto.page, dto.limit, total)
        )
        if self._caches is not None:
            self._caches.orders.set(key, result)
        return result

    @staticmethod
    def _parse_status(status: Optional[str]) -> Optional[OrderStatus]:
        if not status or status == "all":
            return None
        try:
            return OrderStatus(status.lower())
        except ValueError:
            raise ValidationError(f"Неизвестный статус заказа: {status}")
