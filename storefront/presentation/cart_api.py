from fastapi import APIRouter, Depends

from storefront.presentation.schemas import CartItemRequest, CartResponse, ErrorResponse
from storefront.presentation.dependencies import get_uow, get_caches, to_http_exception
from storefront.application.cart import (
    CartItemDTO, GetCartUseCase, AddToCartUseCase, UpdateCartItemUseCase,
    RemoveCartItemUseCase, ClearCartUseCase
)
from storefront.domain.exceptions import DomainException

router = APIRouter(prefix="/shop/cart", tags=["cart"])

ERROR_RESPONSES = {400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}}


def get_cart_use_case(uow=Depends(get_uow), caches=Depends(get_caches)):
    return GetCartUseCase(uow, caches)


def get_add_to_cart_use_case(uow=Depends(get_uow), caches=Depends(get_caches)):
    return AddToCartUseCase(uow, caches)


def get_update_cart_use_case(uow=Depends(get_uow), caches=Depends(get_caches)):
    return UpdateCartItemUseCase(uow, caches)


def get_remove_cart_item_use_case(uow=Depends(get_uow), caches=Depends(get_caches)):
    return RemoveCartItemUseCase(uow, caches)


def get_clear_cart_use_case(uow=Depends(get_uow), caches=Depends(get_caches)):
    return ClearCartUseCase(uow, caches)


@router.post("/add", response_model=CartResponse, responses=ERROR_RESPONSES)
async def add_to_cart(request: CartItemRequest, use_case: AddToCartUseCase = Depends(get_add_to_cart_use_case)):
    try:
        cart = await use_case(CartItemDTO(**request.model_dump()))
        return CartResponse(data=cart, message="Товар добавлен в корзину")
    except DomainException as e:
        raise to_http_exception(e)


@router.get("/get/{user_id}", response_model=CartResponse)
async def fetch_cart_items(user_id: str, use_case: GetCartUseCase = Depends(get_cart_use_case)):
    cart = await use_case(user_id)
    return CartResponse(data=cart)


@router.put("/update-cart", response_model=CartResponse, responses=ERROR_RESPONSES)
async def update_cart_item_qty(request: CartItemRequest, use_case: UpdateCartItemUseCase = Depends(get_update_cart_use_case)):
    try:
        cart = await use_case(CartItemDTO(**request.model_dump()))
        return CartResponse(data=cart)
    except DomainException as e:
        raise to_http_exception(e)


@router.delete("/{user_id}/{product_id}", response_model=CartResponse, responses=ERROR_RESPONSES)
async def delete_cart_item(
    user_id: str,
    product_id: str,
    use_case: RemoveCartItemUseCase = Depends(get_remove_cart_item_use_case)
):
    try:
        cart = await use_case(user_id, product_id)
        return CartResponse(data=cart, message="Товар удален из корзины")
    except DomainException as e:
        raise to_http_exception(e)


@router.delete("/{user_id}", response_model=CartResponse, responses=ERROR_RESPONSES)
async def clear_cart(user_id: str, use_case: ClearCartUseCase = Depends(get_clear_cart_use_case)):
    try:
        cart = await use_case(user_id)
        return CartResponse(data=cart, message="Корзина очищена")
    except DomainException as e:
        raise to_http_exception(e)
