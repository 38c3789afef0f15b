import asyncio
import logging
import uuid
from collections import OrderedDict
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional
from pydantic import BaseModel, Field

from storefront.domain.models import Order, OrderItem, OrderStatus, AddressInfo, to_money
from storefront.domain.exceptions import (
    ProductNotFoundError, InsufficientStockError, TotalMismatchError, PaymentInitiationError
)
from storefront.application.interfaces import PaymentGateway
from storefront.application.cache_keys import invalidate_order

logger = logging.getLogger(__name__)


class CheckoutItemDTO(BaseModel):
    product_id: str = Field(min_length=1)
    title: str = ""
    quantity: int = Field(gt=0)


class InitiateCheckoutDTO(BaseModel):
    user_id: str = Field(min_length=1)
    cart_items: List[CheckoutItemDTO] = Field(min_length=1)
    address_info: AddressInfo
    total_amount: Decimal = Field(gt=0)


class CheckoutStarted(BaseModel):
    order_id: str
    approval_url: str


class InitiateCheckoutUseCase:
    def __init__(
        self,
        unit_of_work,
        payment_gateway: PaymentGateway,
        return_url: str,
        cancel_url: str,
        caches=None,
        timeout: Optional[float] = None
    ):
        self._uow = unit_of_work
        self._gateway = payment_gateway
        self._return_url = return_url
        self._cancel_url = cancel_url
        self._caches = caches
        self._timeout = timeout

    async def __call__(self, dto: InitiateCheckoutDTO) -> CheckoutStarted:
        logger.info(f"Начало оформления заказа для пользователя {dto.user_id}, позиций: {len(dto.cart_items)}")

        requested = self._merge_lines(dto.cart_items)

        # 1. Предварительная проверка остатков (по базе, не по кэшу)
        async with self._uow() as uow:
            products = await uow.products.get_many(list(requested))
            cart = await uow.carts.get_by_user(dto.user_id)

        items = []
        for product_id, quantity in requested.items():
            product = products.get(product_id)
            if product is None:
                raise ProductNotFoundError(product_id)
            if product.total_stock < quantity:
                logger.warning(f"Недостаточно товара {product_id}: {product.total_stock} < {quantity}")
                raise InsufficientStockError(product.id, product.title, product.total_stock, quantity)
            items.append(OrderItem(
                product_id=product.id,
                title=product.title,
                image=product.image,
                price=to_money(product.effective_price),
                quantity=quantity
            ))

        # 2. Снимок цен и сверка суммы
        total = Order.compute_total(items)
        if total != to_money(dto.total_amount):
            raise TotalMismatchError(total, to_money(dto.total_amount))

        # 3. Платежное намерение; при ошибке заказ не создается
        try:
            intent = await asyncio.wait_for(
                self._gateway.create_payment_intent(items, total, self._return_url, self._cancel_url),
                timeout=self._timeout
            )
        except asyncio.TimeoutError:
            logger.error(f"Таймаут создания платежа для пользователя {dto.user_id}")
            raise PaymentInitiationError("Таймаут платежного шлюза")
        except PaymentInitiationError as e:
            logger.error(f"Ошибка создания платежа: {e}")
            raise

        # 4. Заказ в статусе PENDING
        now = datetime.now(timezone.utc)
        order = Order(
            id=str(uuid.uuid4()),
            user_id=dto.user_id,
            cart_id=cart.id if cart else None,
            items=items,
            address=dto.address_info,
            total_amount=total,
            status=OrderStatus.PENDING,
            payment_id=intent.payment_id,
            created_at=now,
            updated_at=now
        )
        async with self._uow() as uow:
            await uow.orders.create(order)
            await uow.commit()
        logger.info(f"Заказ создан: {order.id}, платеж {intent.payment_id}")

        invalidate_order(self._caches, order.user_id)
        return CheckoutStarted(order_id=order.id, approval_url=intent.approval_url)

    @staticmethod
    def _merge_lines(lines: List[CheckoutItemDTO]) -> "OrderedDict[str, int]":
        merged: "OrderedDict[str, int]" = OrderedDict()
        for line in lines:
            merged[line.product_id] = merged.get(line.product_id, 0) + line.quantity
        return merged
