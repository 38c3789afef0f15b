"""Tests for cart use cases."""

from decimal import Decimal

import pytest
from sqlalchemy import update

from storefront.application.cache_keys import cart_key
from storefront.application.cart import (
    AddToCartUseCase, CartItemDTO, ClearCartUseCase, GetCartUseCase,
    RemoveCartItemUseCase, UpdateCartItemUseCase
)
from storefront.domain.exceptions import (
    CartConflictError, ItemNotFoundError, ItemNotInCartError, ProductNotFoundError, StockExceededError
)
from storefront.infrastructure.db_schema import products_tbl
from storefront.infrastructure.repositories import SQLAlchemyCartRepository


def item(product_id, quantity, user_id="u1"):
    return CartItemDTO(user_id=user_id, product_id=product_id, quantity=quantity)


class TestGetCart:
    async def test_no_cart_is_empty_view(self, uow):
        view = await GetCartUseCase(uow)("nobody")

        assert view.items == []
        assert view.cart_total == Decimal("0")
        assert view.item_count == 0
        assert view.cart_id is None

    async def test_totals_use_effective_price(self, uow, make_product):
        kurta = await make_product(price="100.00", sale_price="80.00", stock=10)
        scarf = await make_product(price="15.50", stock=10, title="Scarf")
        add = AddToCartUseCase(uow)
        await add(item(kurta.id, 2))
        await add(item(scarf.id, 1))

        view = await GetCartUseCase(uow)("u1")

        assert view.cart_total == Decimal("175.50")
        assert view.item_count == 2
        assert view.total_quantity == 3
        assert view.items[0].effective_price == Decimal("80.00")
        assert view.items[0].item_total == Decimal("160.00")

    async def test_totals_follow_live_prices(self, uow, session_factory, make_product):
        product = await make_product(price="10.00", stock=10)
        await AddToCartUseCase(uow)(item(product.id, 3))

        async with session_factory() as session:
            await session.execute(
                update(products_tbl).where(products_tbl.c.id == product.id).values(price=Decimal("12.00"))
            )
            await session.commit()

        view = await GetCartUseCase(uow)("u1")
        assert view.cart_total == Decimal("36.00")

    async def test_deleted_product_is_silently_dropped(self, uow, make_product):
        product = await make_product(stock=10)
        await AddToCartUseCase(uow)(item(product.id, 1))
        async with uow() as u:
            cart = await u.carts.get_by_user("u1")
            cart.items.append(cart.items[0].model_copy(update={"product_id": "gone"}))
            await u.carts.save(cart)
            await u.commit()

        view = await GetCartUseCase(uow)("u1")

        assert [line.product_id for line in view.items] == [product.id]


class TestAddToCart:
    async def test_merges_quantities(self, uow, make_product):
        product = await make_product(stock=10)
        add = AddToCartUseCase(uow)
        await add(item(product.id, 2))
        view = await add(item(product.id, 3))

        assert len(view.items) == 1
        assert view.items[0].quantity == 5

    async def test_merge_exceeding_stock_is_rejected_entirely(self, uow, make_product):
        product = await make_product(stock=3)
        add = AddToCartUseCase(uow)
        view = await add(item(product.id, 2))
        assert view.items[0].quantity == 2

        with pytest.raises(StockExceededError) as exc_info:
            await add(item(product.id, 2))
        assert exc_info.value.available == 3

        view = await GetCartUseCase(uow)("u1")
        assert view.items[0].quantity == 2

    async def test_unknown_product(self, uow):
        with pytest.raises(ProductNotFoundError):
            await AddToCartUseCase(uow)(item("missing", 1))

    async def test_invalidates_cached_view(self, uow, caches, make_product):
        product = await make_product(stock=10)
        get_cart = GetCartUseCase(uow, caches)
        await get_cart("u1")
        assert caches.carts.get(cart_key("u1")) is not None

        await AddToCartUseCase(uow, caches)(item(product.id, 1))

        assert caches.carts.get(cart_key("u1")) is None
        assert (await get_cart("u1")).total_quantity == 1


class TestUpdateCartItem:
    async def test_sets_quantity(self, uow, make_product):
        product = await make_product(stock=10)
        await AddToCartUseCase(uow)(item(product.id, 1))

        view = await UpdateCartItemUseCase(uow)(item(product.id, 4))

        assert view.items[0].quantity == 4

    async def test_above_stock(self, uow, make_product):
        product = await make_product(stock=3)
        await AddToCartUseCase(uow)(item(product.id, 1))

        with pytest.raises(StockExceededError):
            await UpdateCartItemUseCase(uow)(item(product.id, 4))

    async def test_item_not_in_cart(self, uow, make_product):
        product = await make_product(stock=3)
        other = await make_product(stock=3)
        await AddToCartUseCase(uow)(item(product.id, 1))

        with pytest.raises(ItemNotInCartError):
            await UpdateCartItemUseCase(uow)(item(other.id, 1))

    async def test_no_cart(self, uow, make_product):
        product = await make_product(stock=3)
        with pytest.raises(ItemNotInCartError):
            await UpdateCartItemUseCase(uow)(item(product.id, 1))


class TestRemoveAndClear:
    async def test_remove(self, uow, make_product):
        product = await make_product(stock=3)
        await AddToCartUseCase(uow)(item(product.id, 1))

        view = await RemoveCartItemUseCase(uow)("u1", product.id)

        assert view.items == []

    async def test_remove_absent(self, uow, make_product):
        product = await make_product(stock=3)
        await AddToCartUseCase(uow)(item(product.id, 1))

        with pytest.raises(ItemNotFoundError):
            await RemoveCartItemUseCase(uow)("u1", "missing")

    async def test_clear_is_idempotent(self, uow, make_product):
        product = await make_product(stock=3)
        await AddToCartUseCase(uow)(item(product.id, 1))
        clear = ClearCartUseCase(uow)

        await clear("u1")
        await clear("u1")
        await clear("nobody")

        assert (await GetCartUseCase(uow)("u1")).items == []


class TestCartVersioning:
    async def test_stale_write_is_rejected(self, uow, make_product):
        product = await make_product(stock=10)
        await AddToCartUseCase(uow)(item(product.id, 1))

        async with uow() as u:
            first = await u.carts.get_by_user("u1")
        async with uow() as u:
            second = await u.carts.get_by_user("u1")

        first.items[0].quantity = 2
        async with uow() as u:
            await u.carts.save(first)
            await u.commit()

        second.items[0].quantity = 3
        with pytest.raises(CartConflictError):
            async with uow() as u:
                await u.carts.save(second)


class TestCartCacheConsistency:
    async def test_read_during_write_does_not_leave_stale_view(self, uow, caches, make_product, monkeypatch):
        product = await make_product(stock=10)
        add = AddToCartUseCase(uow, caches)
        get_cart = GetCartUseCase(uow, caches)
        await add(item(product.id, 1))

        original_save = SQLAlchemyCartRepository.save

        async def save_after_concurrent_read(repo, cart):
            # Параллельный GET читает старую корзину и кладет ее в кэш
            await get_cart("u1")
            await original_save(repo, cart)

        monkeypatch.setattr(SQLAlchemyCartRepository, "save", save_after_concurrent_read)
        await add(item(product.id, 2))

        view = await get_cart("u1")
        assert view.items[0].quantity == 3

    async def test_read_during_clear_does_not_leave_stale_view(self, uow, caches, make_product, monkeypatch):
        product = await make_product(stock=10)
        get_cart = GetCartUseCase(uow, caches)
        await AddToCartUseCase(uow, caches)(item(product.id, 2))

        original_save = SQLAlchemyCartRepository.save

        async def save_after_concurrent_read(repo, cart):
            await get_cart("u1")
            await original_save(repo, cart)

        monkeypatch.setattr(SQLAlchemyCartRepository, "save", save_after_concurrent_read)
        await ClearCartUseCase(uow, caches)("u1")

        assert (await get_cart("u1")).items == []
