from typing import List, Optional
from fastapi import APIRouter, Depends, Query

from storefront.presentation.schemas import (
    ProductResponse, ProductListResponse, ProductData, PaginationResponse, ErrorResponse
)
from storefront.presentation.dependencies import get_uow, get_caches, to_http_exception
from storefront.application.products import (
    ListProductsUseCase, GetProductUseCase, SearchProductsUseCase, build_product_query
)
from storefront.domain.exceptions import DomainException

router = APIRouter(prefix="/shop", tags=["products"])


def get_list_products_use_case(uow=Depends(get_uow), caches=Depends(get_caches)):
    return ListProductsUseCase(uow, caches)


def get_product_use_case(uow=Depends(get_uow), caches=Depends(get_caches)):
    return GetProductUseCase(uow, caches)


def get_search_products_use_case(uow=Depends(get_uow), caches=Depends(get_caches)):
    return SearchProductsUseCase(uow, caches)


@router.get("/products/get", response_model=ProductListResponse)
async def get_filtered_products(
    category: Optional[List[str]] = Query(None),
    brand: Optional[List[str]] = Query(None),
    price: Optional[List[str]] = Query(None, alias="Price"),
    sort_by: str = Query("price-lowtohigh", alias="sortBy"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    use_case: ListProductsUseCase = Depends(get_list_products_use_case)
):
    """Каталог с фильтрами; значения можно передавать списком или через запятую"""
    query = build_product_query(category, brand, price, sort_by, page, limit)
    result = await use_case(query)
    return ProductListResponse(
        data=[ProductData.from_domain(product) for product in result.products],
        pagination=PaginationResponse.from_domain(result.pagination)
    )


@router.get("/products/get/{product_id}", response_model=ProductResponse, responses={404: {"model": ErrorResponse}})
async def get_product_details(product_id: str, use_case: GetProductUseCase = Depends(get_product_use_case)):
    try:
        product = await use_case(product_id)
        return ProductResponse(data=ProductData.from_domain(product))
    except DomainException as e:
        raise to_http_exception(e)


@router.get("/search/{keyword}", response_model=ProductListResponse, responses={400: {"model": ErrorResponse}})
async def search_products(
    keyword: str,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    use_case: SearchProductsUseCase = Depends(get_search_products_use_case)
):
    try:
        result = await use_case(keyword, page, limit)
        return ProductListResponse(
            data=[ProductData.from_domain(product) for product in result.products],
            pagination=PaginationResponse.from_domain(result.pagination)
        )
    except DomainException as e:
        raise to_http_exception(e)
