from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Optional, List, Dict, Tuple
from pydantic import BaseModel

from storefront.domain.models import Order, OrderItem, OrderStatus, Product, Cart


class PaymentIntent(BaseModel):
    payment_id: str
    approval_url: str


class ProductQuery(BaseModel):
    """Параметры фильтрации каталога"""
    categories: List[str] = []
    brands: List[str] = []
    price_ranges: List[str] = []
    best_sellers: bool = False
    sort_by: str = "price-lowtohigh"
    page: int = 1
    limit: int = 20


class OrderRepository(ABC):
    @abstractmethod
    async def get_by_id(self, order_id: str) -> Optional[Order]:
        pass

    @abstractmethod
    async def create(self, order: Order) -> str:
        pass

    @abstractmethod
    async def update(self, order: Order) -> None:
        """Полная перезапись записи заказа без проверки статуса"""
        pass

    @abstractmethod
    async def transition(self, order: Order, expected: OrderStatus) -> bool:
        """Условный переход статуса. False, если заказ уже не в статусе expected"""
        pass

    @abstractmethod
    async def list_by_user(
        self, user_id: str, page: int, page_size: int, status: Optional[OrderStatus] = None
    ) -> Tuple[List[Order], int]:
        pass


class ProductRepository(ABC):
    @abstractmethod
    async def get_by_id(self, product_id: str) -> Optional[Product]:
        pass

    @abstractmethod
    async def get_many(self, product_ids: List[str]) -> Dict[str, Product]:
        pass

    @abstractmethod
    async def get_stock(self, product_id: str) -> int:
        pass

    @abstractmethod
    async def decrement_stock(self, product_id: str, quantity: int) -> None:
        pass

    @abstractmethod
    async def create(self, product: Product) -> None:
        pass

    @abstractmethod
    async def list_filtered(self, query: ProductQuery) -> Tuple[List[Product], int]:
        pass

    @abstractmethod
    async def search(self, keyword: str, page: int, limit: int) -> Tuple[List[Product], int]:
        pass


class CartRepository(ABC):
    @abstractmethod
    async def get_by_user(self, user_id: str) -> Optional[Cart]:
        pass

    @abstractmethod
    async def create(self, cart: Cart) -> None:
        pass

    @abstractmethod
    async def save(self, cart: Cart) -> None:
        """Сохраняет позиции с проверкой версии, при гонке CartConflictError"""
        pass

    @abstractmethod
    async def delete(self, cart_id: str) -> bool:
        pass


class OutboxRepository(ABC):
    @abstractmethod
    async def create(self, event_type: str, event_data: dict, order_id: str) -> str:
        pass

    @abstractmethod
    async def get_pending(self, limit: int = 10) -> List[dict]:
        pass

    @abstractmethod
    async def mark_published(self, event_ids: List[str]) -> int:
        pass


class UnitOfWork(ABC):
    @property
    @abstractmethod
    def orders(self) -> OrderRepository:
        pass

    @property
    @abstractmethod
    def products(self) -> ProductRepository:
        pass

    @property
    @abstractmethod
    def carts(self) -> CartRepository:
        pass

    @property
    @abstractmethod
    def outbox(self) -> OutboxRepository:
        pass

    @abstractmethod
    async def __call__(self):
        pass

    @abstractmethod
    async def commit(self):
        pass

    @abstractmethod
    async def rollback(self):
        pass


class PaymentGateway(ABC):
    @abstractmethod
    async def create_payment_intent(
        self, items: List[OrderItem], total: Decimal, return_url: str, cancel_url: str
    ) -> PaymentIntent:
        pass

    @abstractmethod
    async def confirm_capture(self, payment_id: str, payer_id: str) -> None:
        pass


class EventProducer(ABC):
    @abstractmethod
    async def publish(self, event_type: str, key: str, payload: dict) -> bool:
        pass
