from typing import Optional
from fastapi import APIRouter, Depends, Query, status

from storefront.presentation.schemas import (
    CreateOrderRequest, CapturePaymentRequest, CheckoutStartedResponse, OrderResponse, OrderData,
    OrderListResponse, OrderSummaryData, PaginationResponse, ErrorResponse
)
from storefront.presentation.dependencies import get_uow, get_caches, get_payment_gateway, to_http_exception
from storefront.application.initiate_checkout import InitiateCheckoutUseCase, InitiateCheckoutDTO, CheckoutItemDTO
from storefront.application.capture_checkout import CaptureCheckoutUseCase, CaptureCheckoutDTO
from storefront.application.cancel_checkout import CancelCheckoutUseCase
from storefront.application.get_order import GetOrderUseCase
from storefront.application.list_orders import ListOrdersUseCase, ListOrdersDTO
from storefront.domain.exceptions import DomainException
from storefront.config import settings

router = APIRouter(prefix="/shop/order", tags=["orders"])

ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
    502: {"model": ErrorResponse},
}


# Фабрики для создания use cases
def get_initiate_checkout_use_case(uow=Depends(get_uow), gateway=Depends(get_payment_gateway), caches=Depends(get_caches)):
    return InitiateCheckoutUseCase(
        uow, gateway,
        return_url=settings.PAYMENT_RETURN_URL,
        cancel_url=settings.PAYMENT_CANCEL_URL,
        caches=caches,
        timeout=settings.PAYMENT_TIMEOUT
    )


def get_capture_checkout_use_case(uow=Depends(get_uow), gateway=Depends(get_payment_gateway), caches=Depends(get_caches)):
    return CaptureCheckoutUseCase(uow, gateway, caches=caches, timeout=settings.PAYMENT_TIMEOUT)


def get_cancel_checkout_use_case(uow=Depends(get_uow), caches=Depends(get_caches)):
    return CancelCheckoutUseCase(uow, caches)


def get_get_order_use_case(uow=Depends(get_uow), caches=Depends(get_caches)):
    return GetOrderUseCase(uow, caches)


def get_list_orders_use_case(uow=Depends(get_uow), caches=Depends(get_caches)):
    return ListOrdersUseCase(uow, caches)


@router.post(
    "/create",
    response_model=CheckoutStartedResponse,
    responses=ERROR_RESPONSES,
    status_code=status.HTTP_201_CREATED
)
async def create_order(
    request: CreateOrderRequest,
    use_case: InitiateCheckoutUseCase = Depends(get_initiate_checkout_use_case)
):
    """Начать оформление: проверка остатков, платеж, заказ PENDING"""
    try:
        dto = InitiateCheckoutDTO(
            user_id=request.user_id,
            cart_items=[
                CheckoutItemDTO(product_id=item.product_id, title=item.title, quantity=item.quantity)
                for item in request.cart_items
            ],
            address_info=request.address_info,
            total_amount=request.total_amount
        )
        started = await use_case(dto)
        return CheckoutStartedResponse(
            approval_url=started.approval_url,
            order_id=started.order_id,
            message="Заказ создан"
        )
    except DomainException as e:
        raise to_http_exception(e)


@router.post("/capture", response_model=OrderResponse, responses=ERROR_RESPONSES)
async def capture_payment(
    request: CapturePaymentRequest,
    use_case: CaptureCheckoutUseCase = Depends(get_capture_checkout_use_case)
):
    """Подтверждение оплаты после возврата со страницы шлюза"""
    try:
        dto = CaptureCheckoutDTO(
            payment_id=request.payment_id,
            payer_id=request.payer_id,
            order_id=request.order_id
        )
        order = await use_case(dto)
        return OrderResponse(data=OrderData.from_domain(order), message="Оплата подтверждена")
    except DomainException as e:
        raise to_http_exception(e)


@router.post("/{order_id}/cancel", response_model=OrderResponse, responses=ERROR_RESPONSES)
async def cancel_order(
    order_id: str,
    use_case: CancelCheckoutUseCase = Depends(get_cancel_checkout_use_case)
):
    """Отмена неоплаченного заказа"""
    try:
        order = await use_case(order_id)
        return OrderResponse(data=OrderData.from_domain(order), message="Заказ отменен")
    except DomainException as e:
        raise to_http_exception(e)


@router.get("/list/{user_id}", response_model=OrderListResponse, responses=ERROR_RESPONSES)
async def list_orders(
    user_id: str,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    order_status: Optional[str] = Query(None, alias="status"),
    use_case: ListOrdersUseCase = Depends(get_list_orders_use_case)
):
    """Заказы пользователя, новые первыми"""
    try:
        result = await use_case(ListOrdersDTO(user_id=user_id, page=page, limit=limit, status=order_status))
        return OrderListResponse(
            data=[OrderSummaryData(**summary.model_dump()) for summary in result.orders],
            pagination=PaginationResponse.from_domain(result.pagination)
        )
    except DomainException as e:
        raise to_http_exception(e)


@router.get("/details/{order_id}", response_model=OrderResponse, responses=ERROR_RESPONSES)
async def get_order(
    order_id: str,
    use_case: GetOrderUseCase = Depends(get_get_order_use_case)
):
    """Получить заказ по ID"""
    try:
        order = await use_case(order_id)
        return OrderResponse(data=OrderData.from_domain(order))
    except DomainException as e:
        raise to_http_exception(e)
