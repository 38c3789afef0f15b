from fastapi import HTTPException, Request, status

from storefront.domain.exceptions import (
    DomainException, ValidationError, InsufficientStockError, StockExceededError,
    ProductNotFoundError, OrderNotFoundError, ItemNotInCartError, ItemNotFoundError,
    InvalidOrderTransitionError, CartConflictError, PaymentGatewayError
)
from storefront.infrastructure.unit_of_work import UnitOfWork

PAYMENT_FAILED_MESSAGE = "Не удалось провести платеж. Попробуйте еще раз."

_STATUS_BY_ERROR = [
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (InsufficientStockError, status.HTTP_400_BAD_REQUEST),
    (StockExceededError, status.HTTP_400_BAD_REQUEST),
    (ProductNotFoundError, status.HTTP_404_NOT_FOUND),
    (OrderNotFoundError, status.HTTP_404_NOT_FOUND),
    (ItemNotInCartError, status.HTTP_404_NOT_FOUND),
    (ItemNotFoundError, status.HTTP_404_NOT_FOUND),
    (InvalidOrderTransitionError, status.HTTP_409_CONFLICT),
    (CartConflictError, status.HTTP_409_CONFLICT),
]


def to_http_exception(error: DomainException) -> HTTPException:
    """Доменная ошибка -> HTTP ответ"""
    if isinstance(error, PaymentGatewayError):
        # Детали шлюза наружу не отдаем
        return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=PAYMENT_FAILED_MESSAGE)
    for error_cls, status_code in _STATUS_BY_ERROR:
        if isinstance(error, error_cls):
            return HTTPException(status_code=status_code, detail=str(error))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(error))


def get_uow(request: Request) -> UnitOfWork:
    return UnitOfWork(request.app.state.session_factory)


def get_caches(request: Request):
    return request.app.state.caches


def get_payment_gateway(request: Request):
    return request.app.state.payment_gateway
