from pydantic import BaseModel, Field
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from storefront.domain.models import OrderStatus, OrderItem, AddressInfo, CartView, Pagination


class CheckoutItemRequest(BaseModel):
    product_id: str = Field(min_length=1)
    title: str = ""
    quantity: int = Field(gt=0)


class CreateOrderRequest(BaseModel):
    user_id: str = Field(min_length=1)
    cart_items: List[CheckoutItemRequest] = Field(min_length=1)
    address_info: AddressInfo
    total_amount: Decimal = Field(gt=0)


class CapturePaymentRequest(BaseModel):
    payment_id: str = Field(min_length=1)
    payer_id: str = Field(min_length=1)
    order_id: str = Field(min_length=1)


class CartItemRequest(BaseModel):
    user_id: str = Field(min_length=1)
    product_id: str = Field(min_length=1)
    quantity: int = Field(gt=0)


class ApiResponse(BaseModel):
    success: bool = True
    message: Optional[str] = None


class ErrorResponse(BaseModel):
    success: bool = False
    message: str


class PaginationResponse(BaseModel):
    currentPage: int
    totalPages: int
    totalCount: int
    hasNext: bool
    hasPrev: bool

    @classmethod
    def from_domain(cls, pagination: Pagination):
        return cls(
            currentPage=pagination.current_page,
            totalPages=pagination.total_pages,
            totalCount=pagination.total_count,
            hasNext=pagination.has_next,
            hasPrev=pagination.has_prev
        )


class CheckoutStartedResponse(ApiResponse):
    approval_url: str
    order_id: str


class OrderData(BaseModel):
    id: str
    user_id: str
    cart_id: Optional[str] = None
    items: List[OrderItem]
    address: AddressInfo
    total_amount: Decimal
    status: OrderStatus
    payment_status: str
    payment_method: str
    payment_id: Optional[str] = None
    payer_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_domain(cls, order):
        return cls(
            id=order.id,
            user_id=order.user_id,
            cart_id=order.cart_id,
            items=order.items,
            address=order.address,
            total_amount=order.total_amount,
            status=order.status,
            payment_status=order.payment_status,
            payment_method=order.payment_method,
            payment_id=order.payment_id,
            payer_id=order.payer_id,
            created_at=order.created_at,
            updated_at=order.updated_at
        )


class OrderResponse(ApiResponse):
    data: OrderData


class OrderSummaryData(BaseModel):
    id: str
    status: OrderStatus
    payment_status: str
    payment_method: str
    total_amount: Decimal
    created_at: datetime
    item_count: int
    first_item: Optional[str] = None


class OrderListResponse(ApiResponse):
    data: List[OrderSummaryData]
    pagination: PaginationResponse


class CartResponse(ApiResponse):
    data: CartView


class ProductData(BaseModel):
    id: str
    title: str
    description: str
    category: str
    brand: str
    price: Decimal
    sale_price: Optional[Decimal] = None
    effective_price: Decimal
    total_stock: int
    stock_status: str
    discount: int
    image: Optional[str] = None
    average_review: float

    @classmethod
    def from_domain(cls, product):
        return cls(
            id=product.id,
            title=product.title,
            description=product.description,
            category=product.category,
            brand=product.brand,
            price=product.price,
            sale_price=product.sale_price,
            effective_price=product.effective_price,
            total_stock=product.total_stock,
            stock_status=product.stock_status,
            discount=product.discount,
            image=product.image,
            average_review=product.average_review
        )


class ProductResponse(ApiResponse):
    data: ProductData


class ProductListResponse(ApiResponse):
    data: List[ProductData]
    pagination: PaginationResponse
