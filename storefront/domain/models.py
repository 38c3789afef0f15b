from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field

from storefront.domain.exceptions import InvalidOrderTransitionError

CENT = Decimal("0.01")
LOW_STOCK_THRESHOLD = 10


def to_money(value) -> Decimal:
    """Округление до центов"""
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


class OrderStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    CANCELLED = "cancelled"

    def can_transition_to(self, target: "OrderStatus") -> bool:
        return target in _TRANSITIONS[self]


_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.PAID, OrderStatus.CANCELLED},
    OrderStatus.PAID: set(),
    OrderStatus.CANCELLED: set(),
}


class OrderItem(BaseModel):
    """Value Object — позиция заказа со снимком цены"""
    product_id: str
    title: str
    image: Optional[str] = None
    price: Decimal
    quantity: int = Field(gt=0)

    @property
    def line_total(self) -> Decimal:
        return self.price * self.quantity


class AddressInfo(BaseModel):
    """Value Object — снимок адреса доставки"""
    address: str
    city: str
    pincode: str
    phone: str
    notes: str = ""


class Order(BaseModel):
    """Domain Entity — заказ"""
    id: str
    user_id: str
    cart_id: Optional[str] = None
    items: list[OrderItem]
    address: AddressInfo
    total_amount: Decimal
    status: OrderStatus
    payment_method: str = "paypal"
    payment_id: Optional[str] = None
    payer_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    @staticmethod
    def compute_total(items: list[OrderItem]) -> Decimal:
        return to_money(sum((item.line_total for item in items), Decimal("0")))

    @property
    def payment_status(self) -> str:
        return "paid" if self.status == OrderStatus.PAID else "unpaid"

    def can_be_paid(self) -> bool:
        """Бизнес-правило: оплатить можно только PENDING заказ"""
        return self.status.can_transition_to(OrderStatus.PAID)

    def can_be_cancelled(self) -> bool:
        """Бизнес-правило: отменить можно только неоплаченный заказ"""
        return self.status.can_transition_to(OrderStatus.CANCELLED)

    def mark_paid(self, payment_id: str, payer_id: str, now: datetime) -> None:
        self._transition(OrderStatus.PAID, now)
        self.payment_id = payment_id
        self.payer_id = payer_id

    def cancel(self, now: datetime) -> None:
        self._transition(OrderStatus.CANCELLED, now)

    def _transition(self, target: OrderStatus, now: datetime) -> None:
        if not self.status.can_transition_to(target):
            raise InvalidOrderTransitionError(self.id, self.status, target)
        self.status = target
        self.updated_at = now


class Product(BaseModel):
    """Domain Entity — товар каталога"""
    id: str
    title: str
    description: str = ""
    category: str = ""
    brand: str = ""
    price: Decimal
    sale_price: Optional[Decimal] = None
    total_stock: int = Field(ge=0)
    image: Optional[str] = None
    average_review: float = 0.0
    created_at: datetime

    @property
    def effective_price(self) -> Decimal:
        if self.sale_price is not None and self.sale_price > 0:
            return self.sale_price
        return self.price

    @property
    def stock_status(self) -> str:
        if self.total_stock == 0:
            return "out_of_stock"
        if self.total_stock < LOW_STOCK_THRESHOLD:
            return "low_stock"
        return "in_stock"

    @property
    def discount(self) -> int:
        if self.sale_price is None or self.sale_price <= 0 or self.price <= 0:
            return 0
        return int(((self.price - self.sale_price) / self.price * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class CartLine(BaseModel):
    product_id: str
    quantity: int = Field(gt=0)


class Cart(BaseModel):
    """Domain Entity — корзина пользователя"""
    id: str
    user_id: str
    items: list[CartLine] = []
    version: int = 1
    created_at: datetime
    updated_at: datetime

    def find_line(self, product_id: str) -> Optional[CartLine]:
        for line in self.items:
            if line.product_id == product_id:
                return line
        return None

    def remove_line(self, product_id: str) -> bool:
        before = len(self.items)
        self.items = [line for line in self.items if line.product_id != product_id]
        return len(self.items) != before


class CartViewItem(BaseModel):
    """Позиция корзины, дополненная живыми данными каталога"""
    product_id: str
    title: str
    image: Optional[str] = None
    price: Decimal
    sale_price: Optional[Decimal] = None
    effective_price: Decimal
    quantity: int
    total_stock: int
    item_total: Decimal


class CartView(BaseModel):
    cart_id: Optional[str] = None
    user_id: str
    items: list[CartViewItem] = []
    cart_total: Decimal = Decimal("0.00")
    item_count: int = 0
    total_quantity: int = 0


class Pagination(BaseModel):
    current_page: int
    total_pages: int
    total_count: int
    has_next: bool
    has_prev: bool

    @classmethod
    def build(cls, page: int, page_size: int, total_count: int) -> "Pagination":
        total_pages = (total_count + page_size - 1) // page_size
        return cls(
            current_page=page,
            total_pages=total_pages,
            total_count=total_count,
            has_next=page < total_pages,
            has_prev=page > 1,
        )
