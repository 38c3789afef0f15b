import asyncio
import logging
from datetime import datetime, timezone
from typing import Optional
from pydantic import BaseModel, Field

from storefront.domain.models import Order, OrderStatus
from storefront.domain.exceptions import (
    OrderNotFoundError, PaymentMismatchError, InsufficientStockError,
    InvalidOrderTransitionError, PaymentCaptureError
)
from storefront.application.interfaces import PaymentGateway
from storefront.application.cache_keys import invalidate_order, cart_key

logger = logging.getLogger(__name__)


class CaptureCheckoutDTO(BaseModel):
    payment_id: str = Field(min_length=1)
    payer_id: str = Field(min_length=1)
    order_id: str = Field(min_length=1)


class CaptureCheckoutUseCase:
    """Подтверждение оплаты заказа.

    Перевод в PAID, списание остатков, подтверждение платежа в шлюзе,
    удаление корзины и событие order.paid выполняются в одной транзакции:
    любая ошибка откатывает все шаги, заказ остается PENDING.
    """

    def __init__(self, unit_of_work, payment_gateway: PaymentGateway, caches=None, timeout: Optional[float] = None):
        self._uow = unit_of_work
        self._gateway = payment_gateway
        self._caches = caches
        self._timeout = timeout

    async def __call__(self, dto: CaptureCheckoutDTO) -> Order:
        logger.info(f"Подтверждение оплаты заказа {dto.order_id}, платеж {dto.payment_id}")

        async with self._uow() as uow:
            order = await uow.orders.get_by_id(dto.order_id)
            if not order:
                raise OrderNotFoundError(f"Заказ {dto.order_id} не найден")

            if order.payment_id and order.payment_id != dto.payment_id:
                raise PaymentMismatchError(f"Платеж {dto.payment_id} не относится к заказу {order.id}")

            # Идемпотентность: повторный capture не списывает остатки
            if order.status == OrderStatus.PAID:
                logger.info(f"Заказ {order.id} уже оплачен")
                return order

            order.mark_paid(dto.payment_id, dto.payer_id, datetime.now(timezone.utc))
            if not await uow.orders.transition(order, expected=OrderStatus.PENDING):
                return await self._resolve_race(uow, order.id)

            try:
                # Единый порядок блокировки строк товаров между параллельными capture
                for item in sorted(order.items, key=lambda i: i.product_id):
                    await uow.products.decrement_stock(item.product_id, item.quantity)
            except InsufficientStockError as e:
                logger.warning(f"Заказ {order.id}: {e}, транзакция отменена")
                raise

            await self._confirm(dto)

            if order.cart_id:
                await uow.carts.delete(order.cart_id)

            await uow.outbox.create(
                event_type="order.paid",
                event_data={
                    "order_id": order.id,
                    "user_id": order.user_id,
                    "items": [
                        {"product_id": item.product_id, "quantity": item.quantity}
                        for item in order.items
                    ],
                    "total_amount": str(order.total_amount),
                    "payment_id": order.payment_id,
                    "idempotency_key": f"order_paid_{order.id}"
                },
                order_id=order.id
            )
            await uow.commit()

        logger.info(f"Заказ {order.id} оплачен")
        self._invalidate(order)
        return order

    async def _confirm(self, dto: CaptureCheckoutDTO) -> None:
        try:
            await asyncio.wait_for(
                self._gateway.confirm_capture(dto.payment_id, dto.payer_id),
                timeout=self._timeout
            )
        except asyncio.TimeoutError:
            logger.error(f"Таймаут подтверждения платежа {dto.payment_id}")
            raise PaymentCaptureError("Таймаут платежного шлюза")
        except PaymentCaptureError as e:
            logger.error(f"Ошибка подтверждения платежа {dto.payment_id}: {e}")
            raise

    async def _resolve_race(self, uow, order_id: str) -> Order:
        """Параллельный запрос успел изменить статус раньше"""
        await uow.rollback()
        current = await uow.orders.get_by_id(order_id)
        if current is not None and current.status == OrderStatus.PAID:
            logger.info(f"Заказ {order_id} оплачен параллельным запросом")
            return current
        status = current.status if current else OrderStatus.PENDING
        raise InvalidOrderTransitionError(order_id, status, OrderStatus.PAID)

    def _invalidate(self, order: Order) -> None:
        if self._caches is None:
            return
        invalidate_order(self._caches, order.user_id, order.id)
        self._caches.carts.delete(cart_key(order.user_id))
        # Остатки изменились, витрина перечитывается из базы
        self._caches.products.clear()
