import uuid
from typing import Optional, List, Dict, Tuple
from datetime import datetime, timezone
from sqlalchemy import select, insert, update, delete, func, and_, or_, case
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.domain.models import Order, OrderStatus, Product, Cart
from storefront.domain.exceptions import ProductNotFoundError, InsufficientStockError, CartConflictError
from storefront.infrastructure.db_schema import products_tbl, carts_tbl, orders_tbl, outbox_events_tbl
from storefront.application.interfaces import (
    OrderRepository, ProductRepository, CartRepository, OutboxRepository, ProductQuery
)

BEST_SELLER_MIN_REVIEW = 4

# Диапазоны цен по эффективной цене: (нижняя граница, верхняя граница), None означает без границы
PRICE_RANGES = {
    "under_1000": (None, 1000),
    "1000_to_2000": (1000, 2000),
    "2000_to_5000": (2000, 5000),
    "5000_to_10000": (5000, 10000),
    "over_10000": (10000, None),
}


class SQLAlchemyOrderRepository(OrderRepository):
    def __init__(self, session: AsyncSession):
        self._session = session

    async def get_by_id(self, order_id: str) -> Optional[Order]:
        result = await self._session.execute(
            select(orders_tbl).where(orders_tbl.c.id == order_id)
        )
        row = result.fetchone()
        return self._to_domain(row) if row else None

    async def create(self, order: Order) -> str:
        stmt = insert(orders_tbl).values(**self._to_row(order))
        await self._session.execute(stmt)
        return order.id

    async def update(self, order: Order) -> None:
        values = self._to_row(order)
        values.pop("id")
        values.pop("created_at")
        stmt = update(orders_tbl).where(orders_tbl.c.id == order.id).values(**values)
        await self._session.execute(stmt)

    async def transition(self, order: Order, expected: OrderStatus) -> bool:
        stmt = (
            update(orders_tbl)
            .where(orders_tbl.c.id == order.id, orders_tbl.c.status == expected)
            .values(
                status=order.status,
                payment_id=order.payment_id,
                payer_id=order.payer_id,
                updated_at=order.updated_at
            )
        )
        result = await self._session.execute(stmt)
        return result.rowcount == 1

    async def list_by_user(
        self, user_id: str, page: int, page_size: int, status: Optional[OrderStatus] = None
    ) -> Tuple[List[Order], int]:
        conditions = [orders_tbl.c.user_id == user_id]
        if status is not None:
            conditions.append(orders_tbl.c.status == status)

        total = await self._session.scalar(
            select(func.count()).select_from(orders_tbl).where(*conditions)
        )
        result = await self._session.execute(
            select(orders_tbl)
            .where(*conditions)
            .order_by(orders_tbl.c.created_at.desc(), orders_tbl.c.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        return [self._to_domain(row) for row in result.fetchall()], total or 0

    def _to_row(self, order: Order) -> dict:
        return {
            "id": order.id,
            "user_id": order.user_id,
            "cart_id": order.cart_id,
            # JSON колонка: Decimal -> str через pydantic
            "items": [item.model_dump(mode="json") for item in order.items],
            "address": order.address.model_dump(mode="json"),
            "total_amount": order.total_amount,
            "status": order.status,
            "payment_method": order.payment_method,
            "payment_id": order.payment_id,
            "payer_id": order.payer_id,
            "created_at": order.created_at,
            "updated_at": order.updated_at,
        }

    def _to_domain(self, row) -> Order:
        """Трансформация DB → Domain"""
        return Order(
            id=row.id,
            user_id=row.user_id,
            cart_id=row.cart_id,
            items=row.items,
            address=row.address,
            total_amount=row.total_amount,
            status=OrderStatus(row.status),
            payment_method=row.payment_method,
            payment_id=row.payment_id,
            payer_id=row.payer_id,
            created_at=row.created_at,
            updated_at=row.updated_at
        )


class SQLAlchemyProductRepository(ProductRepository):
    def __init__(self, session: AsyncSession):
        self._session = session

    async def get_by_id(self, product_id: str) -> Optional[Product]:
        result = await self._session.execute(
            select(products_tbl).where(products_tbl.c.id == product_id)
        )
        row = result.fetchone()
        return self._to_domain(row) if row else None

    async def get_many(self, product_ids: List[str]) -> Dict[str, Product]:
        if not product_ids:
            return {}
        result = await self._session.execute(
            select(products_tbl).where(products_tbl.c.id.in_(set(product_ids)))
        )
        return {row.id: self._to_domain(row) for row in result.fetchall()}

    async def get_stock(self, product_id: str) -> int:
        stock = await self._session.scalar(
            select(products_tbl.c.total_stock).where(products_tbl.c.id == product_id)
        )
        if stock is None:
            raise ProductNotFoundError(product_id)
        return stock

    async def decrement_stock(self, product_id: str, quantity: int) -> None:
        # Проверка и списание одним условным UPDATE
        stmt = (
            update(products_tbl)
            .where(products_tbl.c.id == product_id, products_tbl.c.total_stock >= quantity)
            .values(total_stock=products_tbl.c.total_stock - quantity)
        )
        result = await self._session.execute(stmt)
        if result.rowcount == 1:
            return

        row = (await self._session.execute(
            select(products_tbl.c.title, products_tbl.c.total_stock).where(products_tbl.c.id == product_id)
        )).fetchone()
        if row is None:
            raise ProductNotFoundError(product_id)
        raise InsufficientStockError(product_id, row.title, row.total_stock, quantity)

    async def create(self, product: Product) -> None:
        stmt = insert(products_tbl).values(
            id=product.id,
            title=product.title,
            description=product.description,
            category=product.category,
            brand=product.brand,
            price=product.price,
            sale_price=product.sale_price,
            total_stock=product.total_stock,
            image=product.image,
            average_review=product.average_review,
            created_at=product.created_at
        )
        await self._session.execute(stmt)

    async def list_filtered(self, query: ProductQuery) -> Tuple[List[Product], int]:
        conditions = []

        if query.best_sellers:
            popular = products_tbl.c.average_review >= BEST_SELLER_MIN_REVIEW
            if query.categories:
                conditions.append(or_(products_tbl.c.category.in_(query.categories), popular))
            else:
                conditions.append(popular)
        elif query.categories:
            conditions.append(products_tbl.c.category.in_(query.categories))

        if query.brands:
            conditions.append(products_tbl.c.brand.in_(query.brands))

        price_conditions = [
            self._price_condition(*PRICE_RANGES[name])
            for name in query.price_ranges
            if name in PRICE_RANGES
        ]
        if price_conditions:
            conditions.append(or_(*price_conditions))

        return await self._paginate(conditions, self._order_by(query.sort_by), query.page, query.limit)

    async def search(self, keyword: str, page: int, limit: int) -> Tuple[List[Product], int]:
        escaped = keyword.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        pattern = f"%{escaped}%"
        condition = or_(
            products_tbl.c.title.ilike(pattern, escape="\\"),
            products_tbl.c.description.ilike(pattern, escape="\\"),
            products_tbl.c.category.ilike(pattern, escape="\\"),
            products_tbl.c.brand.ilike(pattern, escape="\\"),
        )
        order_by = [products_tbl.c.average_review.desc(), products_tbl.c.title.asc()]
        return await self._paginate([condition], order_by, page, limit)

    async def _paginate(self, conditions, order_by, page: int, limit: int) -> Tuple[List[Product], int]:
        total = await self._session.scalar(
            select(func.count()).select_from(products_tbl).where(*conditions)
        )
        result = await self._session.execute(
            select(products_tbl)
            .where(*conditions)
            .order_by(*order_by, products_tbl.c.id.asc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return [self._to_domain(row) for row in result.fetchall()], total or 0

    @staticmethod
    def _effective_price():
        return case(
            (and_(products_tbl.c.sale_price.is_not(None), products_tbl.c.sale_price > 0), products_tbl.c.sale_price),
            else_=products_tbl.c.price
        )

    def _price_condition(self, low, high):
        price = self._effective_price()
        if low is None:
            return price < high
        if high is None:
            return price > low
        return and_(price >= low, price <= high)

    def _order_by(self, sort_by: str) -> list:
        if sort_by == "price-hightolow":
            return [self._effective_price().desc()]
        if sort_by == "title-atoz":
            return [products_tbl.c.title.asc()]
        if sort_by == "title-ztoa":
            return [products_tbl.c.title.desc()]
        return [self._effective_price().asc()]

    def _to_domain(self, row) -> Product:
        return Product(
            id=row.id,
            title=row.title,
            description=row.description or "",
            category=row.category or "",
            brand=row.brand or "",
            price=row.price,
            sale_price=row.sale_price,
            total_stock=row.total_stock,
            image=row.image,
            average_review=row.average_review or 0.0,
            created_at=row.created_at
        )


class SQLAlchemyCartRepository(CartRepository):
    def __init__(self, session: AsyncSession):
        self._session = session

    async def get_by_user(self, user_id: str) -> Optional[Cart]:
        result = await self._session.execute(
            select(carts_tbl).where(carts_tbl.c.user_id == user_id)
        )
        row = result.fetchone()
        return self._to_domain(row) if row else None

    async def create(self, cart: Cart) -> None:
        stmt = insert(carts_tbl).values(
            id=cart.id,
            user_id=cart.user_id,
            items=[line.model_dump(mode="json") for line in cart.items],
            version=cart.version,
            created_at=cart.created_at,
            updated_at=cart.updated_at
        )
        try:
            await self._session.execute(stmt)
        except IntegrityError:
            raise CartConflictError(f"Корзина пользователя {cart.user_id} уже создана параллельным запросом")

    async def save(self, cart: Cart) -> None:
        now = datetime.now(timezone.utc)
        stmt = (
            update(carts_tbl)
            .where(carts_tbl.c.id == cart.id, carts_tbl.c.version == cart.version)
            .values(
                items=[line.model_dump(mode="json") for line in cart.items],
                version=cart.version + 1,
                updated_at=now
            )
        )
        result = await self._session.execute(stmt)
        if result.rowcount != 1:
            raise CartConflictError(f"Корзина {cart.id} изменена параллельным запросом")
        cart.version += 1
        cart.updated_at = now

    async def delete(self, cart_id: str) -> bool:
        result = await self._session.execute(
            delete(carts_tbl).where(carts_tbl.c.id == cart_id)
        )
        return result.rowcount > 0

    def _to_domain(self, row) -> Cart:
        return Cart(
            id=row.id,
            user_id=row.user_id,
            items=row.items,
            version=row.version,
            created_at=row.created_at,
            updated_at=row.updated_at
        )


class SQLAlchemyOutboxRepository(OutboxRepository):
    """События заказов, ожидающие публикации в Kafka"""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def create(self, event_type: str, event_data: dict, order_id: str) -> str:
        event_id = str(uuid.uuid4())
        await self._session.execute(
            insert(outbox_events_tbl).values(
                id=event_id,
                event_type=event_type,
                event_data=event_data,
                order_id=order_id,
                status="pending",
                created_at=datetime.now(timezone.utc)
            )
        )
        return event_id

    async def get_pending(self, limit: int = 10) -> List[dict]:
        # Параллельные воркеры не берут одни и те же строки (PostgreSQL)
        result = await self._session.execute(
            select(
                outbox_events_tbl.c.id,
                outbox_events_tbl.c.event_type,
                outbox_events_tbl.c.event_data,
                outbox_events_tbl.c.order_id
            )
            .where(outbox_events_tbl.c.status == "pending")
            .order_by(outbox_events_tbl.c.created_at.asc(), outbox_events_tbl.c.id.asc())
            .limit(limit)
            .with_for_update(skip_locked=True)
        )
        return [dict(row._mapping) for row in result.fetchall()]

    async def mark_published(self, event_ids: List[str]) -> int:
        if not event_ids:
            return 0
        result = await self._session.execute(
            update(outbox_events_tbl)
            .where(outbox_events_tbl.c.id.in_(event_ids), outbox_events_tbl.c.status == "pending")
            .values(status="published")
        )
        return result.rowcount
