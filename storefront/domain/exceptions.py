class DomainException(Exception):
    pass


class ValidationError(DomainException):
    pass


class TotalMismatchError(ValidationError):
    def __init__(self, expected, submitted):
        self.expected = expected
        self.submitted = submitted
        super().__init__(f"Сумма заказа не совпадает. Ожидается: {expected}, передано: {submitted}")


class PaymentMismatchError(ValidationError):
    pass


class PaymentGatewayError(DomainException):
    pass


class PaymentInitiationError(PaymentGatewayError):
    pass


class PaymentCaptureError(PaymentGatewayError):
    pass


class ProductNotFoundError(DomainException):
    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__(f"Товар {product_id} не найден")


class InsufficientStockError(DomainException):
    def __init__(self, product_id: str, title: str, available: int, required: int):
        self.product_id = product_id
        self.title = title
        self.available = available
        self.required = required
        super().__init__(
            f"Недостаточно товара {title}. Доступно: {available}, требуется: {required}"
        )


class StockExceededError(DomainException):
    def __init__(self, product_id: str, available: int, requested: int):
        self.product_id = product_id
        self.available = available
        self.requested = requested
        super().__init__(f"Доступно только {available} шт. товара, запрошено: {requested}")


class ItemNotInCartError(DomainException):
    pass


class ItemNotFoundError(DomainException):
    pass


class CartConflictError(DomainException):
    pass


class OrderNotFoundError(DomainException):
    pass


class InvalidOrderTransitionError(DomainException):
    def __init__(self, order_id: str, current, target):
        self.order_id = order_id
        self.current = current
        self.target = target
        super().__init__(f"Заказ {order_id}: переход {current.value} -> {target.value} запрещен")
