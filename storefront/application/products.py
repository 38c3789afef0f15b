import logging
from typing import List
from pydantic import BaseModel

from storefront.domain.models import Product, Pagination
from storefront.domain.exceptions import ProductNotFoundError, ValidationError
from storefront.application.interfaces import ProductQuery

logger = logging.getLogger(__name__)

BEST_SELLERS = "best sellers"
SORT_OPTIONS = ("price-lowtohigh", "price-hightolow", "title-atoz", "title-ztoa")
MIN_KEYWORD_LENGTH = 2


class ProductPage(BaseModel):
    products: List[Product]
    pagination: Pagination


def split_param(value) -> List[str]:
    """'a, b' или ['a', 'b'] -> ['a', 'b'] без пустых значений"""
    if not value:
        return []
    if isinstance(value, str):
        value = [value]
    return [piece.strip() for part in value for piece in str(part).split(",") if piece.strip()]


def build_product_query(category=None, brand=None, price=None, sort_by=None, page: int = 1, limit: int = 20) -> ProductQuery:
    categories = split_param(category)
    best_sellers = BEST_SELLERS in categories
    return ProductQuery(
        # Сортируем, чтобы ключ кэша не зависел от порядка параметров
        categories=sorted(c for c in categories if c != BEST_SELLERS),
        brands=sorted(split_param(brand)),
        price_ranges=sorted(split_param(price)),
        best_sellers=best_sellers,
        sort_by=sort_by if sort_by in SORT_OPTIONS else "price-lowtohigh",
        page=max(page, 1),
        limit=max(limit, 1)
    )


class ListProductsUseCase:
    def __init__(self, unit_of_work, caches=None):
        self._uow = unit_of_work
        self._caches = caches

    async def __call__(self, query: ProductQuery) -> ProductPage:
        key = f"products:{query.model_dump_json()}"
        if self._caches is not None:
            cached = self._caches.products.get(key)
            if cached is not None:
                return cached

        async with self._uow() as uow:
            products, total = await uow.products.list_filtered(query)

        result = ProductPage(products=products, pagination=Pagination.build(query.page, query.limit, total))
        if self._caches is not None:
            self._caches.products.set(key, result)
        return result


class GetProductUseCase:
    def __init__(self, unit_of_work, caches=None):
        self._uow = unit_of_work
        self._caches = caches

    async def __call__(self, product_id: str) -> Product:
        key = f"product:{product_id}"
        if self._caches is not None:
            cached = self._caches.products.get(key)
            if cached is not None:
                return cached

        async with self._uow() as uow:
            product = await uow.products.get_by_id(product_id)
        if product is None:
            raise ProductNotFoundError(product_id)

        if self._caches is not None:
            self._caches.products.set(key, product)
        return product


class SearchProductsUseCase:
    def __init__(self, unit_of_work, caches=None):
        self._uow = unit_of_work
        self._caches = caches

    async def __call__(self, keyword: str, page: int = 1, limit: int = 20) -> ProductPage:
        keyword = (keyword or "").strip()
        if len(keyword) < MIN_KEYWORD_LENGTH:
            raise ValidationError(f"Поисковый запрос должен быть не короче {MIN_KEYWORD_LENGTH} символов")
        page, limit = max(page, 1), max(limit, 1)

        key = f"search:{keyword.lower()}:{page}:{limit}"
        if self._caches is not None:
            cached = self._caches.products.get(key)
            if cached is not None:
                return cached

        async with self._uow() as uow:
            products, total = await uow.products.search(keyword, page, limit)
        logger.info(f"Поиск '{keyword}': найдено {total}")

        result = ProductPage(products=products, pagination=Pagination.build(page, limit, total))
        if self._caches is not None:
            self._caches.products.set(key, result)
        return result
