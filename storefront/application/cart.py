import logging
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from pydantic import BaseModel, Field

from storefront.domain.models import Cart, CartLine, CartView, CartViewItem, to_money
from storefront.domain.exceptions import (
    ProductNotFoundError, StockExceededError, ItemNotInCartError, ItemNotFoundError
)
from storefront.application.interfaces import ProductRepository
from storefront.application.cache_keys import cart_key

logger = logging.getLogger(__name__)


class CartItemDTO(BaseModel):
    user_id: str = Field(min_length=1)
    product_id: str = Field(min_length=1)
    quantity: int = Field(gt=0)


async def build_cart_view(products: ProductRepository, user_id: str, cart: Cart | None) -> CartView:
    """Корзина с живыми ценами и остатками; итоги считаются при чтении"""
    if cart is None or not cart.items:
        return CartView(cart_id=cart.id if cart else None, user_id=user_id)

    catalog = await products.get_many([line.product_id for line in cart.items])
    items = []
    for line in cart.items:
        product = catalog.get(line.product_id)
        if product is None:
            # Товар удален из каталога, позиция молча пропадает
            continue
        items.append(CartViewItem(
            product_id=product.id,
            title=product.title,
            image=product.image,
            price=product.price,
            sale_price=product.sale_price,
            effective_price=product.effective_price,
            quantity=line.quantity,
            total_stock=product.total_stock,
            item_total=product.effective_price * line.quantity
        ))

    return CartView(
        cart_id=cart.id,
        user_id=user_id,
        items=items,
        cart_total=to_money(sum((item.item_total for item in items), Decimal("0"))),
        item_count=len(items),
        total_quantity=sum(item.quantity for item in items)
    )


class _CartUseCase:
    def __init__(self, unit_of_work, caches=None):
        self._uow = unit_of_work
        self._caches = caches

    def _invalidate(self, user_id: str) -> None:
        # Вызывается до записи и после commit
        if self._caches is not None:
            self._caches.carts.delete(cart_key(user_id))


class GetCartUseCase(_CartUseCase):
    async def __call__(self, user_id: str) -> CartView:
        key = cart_key(user_id)
        if self._caches is not None:
            cached = self._caches.carts.get(key)
            if cached is not None:
                return cached

        async with self._uow() as uow:
            cart = await uow.carts.get_by_user(user_id)
            view = await build_cart_view(uow.products, user_id, cart)

        if self._caches is not None:
            self._caches.carts.set(key, view)
        return view


class AddToCartUseCase(_CartUseCase):
    async def __call__(self, dto: CartItemDTO) -> CartView:
        self._invalidate(dto.user_id)
        async with self._uow() as uow:
            product = await uow.products.get_by_id(dto.product_id)
            if product is None:
                raise ProductNotFoundError(dto.product_id)

            cart = await uow.carts.get_by_user(dto.user_id)
            is_new = cart is None
            if is_new:
                now = datetime.now(timezone.utc)
                cart = Cart(id=str(uuid.uuid4()), user_id=dto.user_id, items=[], created_at=now, updated_at=now)

            line = cart.find_line(dto.product_id)
            new_quantity = (line.quantity if line else 0) + dto.quantity
            if new_quantity > product.total_stock:
                logger.warning(f"Корзина {dto.user_id}: {new_quantity} > {product.total_stock} для {dto.product_id}")
                raise StockExceededError(dto.product_id, product.total_stock, new_quantity)

            if line:
                line.quantity = new_quantity
            else:
                cart.items.append(CartLine(product_id=dto.product_id, quantity=dto.quantity))

            if is_new:
                await uow.carts.create(cart)
            else:
                await uow.carts.save(cart)
            await uow.commit()

            view = await build_cart_view(uow.products, dto.user_id, cart)
        self._invalidate(dto.user_id)
        logger.info(f"Товар {dto.product_id} добавлен в корзину {dto.user_id}, количество {new_quantity}")
        return view


class UpdateCartItemUseCase(_CartUseCase):
    async def __call__(self, dto: CartItemDTO) -> CartView:
        self._invalidate(dto.user_id)
        async with self._uow() as uow:
            product = await uow.products.get_by_id(dto.product_id)
            if product is None:
                raise ProductNotFoundError(dto.product_id)
            if dto.quantity > product.total_stock:
                raise StockExceededError(dto.product_id, product.total_stock, dto.quantity)

            cart = await uow.carts.get_by_user(dto.user_id)
            line = cart.find_line(dto.product_id) if cart else None
            if line is None:
                raise ItemNotInCartError(f"Товара {dto.product_id} нет в корзине")

            line.quantity = dto.quantity
            await uow.carts.save(cart)
            await uow.commit()

            view = await build_cart_view(uow.products, dto.user_id, cart)
        self._invalidate(dto.user_id)
        return view


class RemoveCartItemUseCase(_CartUseCase):
    async def __call__(self, user_id: str, product_id: str) -> CartView:
        self._invalidate(user_id)
        async with self._uow() as uow:
            cart = await uow.carts.get_by_user(user_id)
            if cart is None or not cart.remove_line(product_id):
                raise ItemNotFoundError(f"Товар {product_id} не найден в корзине")

            await uow.carts.save(cart)
            await uow.commit()

            view = await build_cart_view(uow.products, user_id, cart)
        self._invalidate(user_id)
        return view


class ClearCartUseCase(_CartUseCase):
    async def __call__(self, user_id: str) -> CartView:
        self._invalidate(user_id)
        async with self._uow() as uow:
            cart = await uow.carts.get_by_user(user_id)
            if cart is not None and cart.items:
                cart.items = []
                await uow.carts.save(cart)
                await uow.commit()
        self._invalidate(user_id)
        return CartView(cart_id=cart.id if cart else None, user_id=user_id)
