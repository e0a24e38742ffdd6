"""Pydantic schemas for request/response validation."""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from models import OrderStatus


class ErrorResponse(BaseModel):
    """Schema for domain error responses."""
    detail: str
    code: str


# --- Cart ---

class AddToCartRequest(BaseModel):
    """Schema for add to cart request."""
    product_id: int = Field(..., ge=1)
    quantity: int = Field(1, ge=1)


class AddToCartResponse(BaseModel):
    """Schema for add to cart response."""
    message: str
    cart_item_id: int
    product_name: str
    quantity: int


class CartItemResponse(BaseModel):
    """Schema for cart item in response."""
    id: int
    product_id: int
    product_name: str
    price: int
    quantity: int
    subtotal: int


class CartResponse(BaseModel):
    """Schema for cart response."""
    cart_id: int
    user_id: int
    items: List[CartItemResponse]
    total: int


# --- Orders: requests ---

class OrderItemRequest(BaseModel):
    """Product and quantity for a direct purchase."""
    product_id: int = Field(..., ge=1)
    quantity: int = Field(..., ge=1)


class CreateOrderRequest(BaseModel):
    """Schema for order creation.

    A non-empty ``items`` list buys those products directly; otherwise the
    order is built from the caller's cart.
    """
    items: Optional[List[OrderItemRequest]] = None
    recipient_name: str = Field(..., min_length=1)
    recipient_phone: str = Field(..., min_length=1)
    zip_code: str = Field(..., min_length=1)
    address1: str = Field(..., min_length=1)
    address2: str = Field(..., min_length=1)
    gate_password: Optional[str] = None
    delivery_request: Optional[str] = None


class ConfirmPaymentRequest(BaseModel):
    """Schema for payment confirmation.

    ``order_id`` is the order number handed to the payment widget.
    """
    payment_key: str = Field(..., min_length=1)
    order_id: str = Field(..., min_length=1)
    amount: int


class UpdateOrderStatusRequest(BaseModel):
    """Customer status change (cancellation or return request)."""
    status: OrderStatus
    reason: Optional[str] = None


class AdminUpdateOrderRequest(BaseModel):
    """Administrative status change with optional shipment tracking."""
    status: OrderStatus
    tracking_number: Optional[str] = None
    carrier: Optional[str] = None


class PaginationParams(BaseModel):
    """Validated page window."""
    page: int = 1
    limit: int = 10

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


# --- Orders: responses ---

class ProductSummaryResponse(BaseModel):
    """Product reference embedded in order items."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    image: Optional[str] = None


class OrderItemResponse(BaseModel):
    """Schema for order item in response."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    product_id: int
    quantity: int
    price: int
    product: Optional[ProductSummaryResponse] = None


class PaymentResponse(BaseModel):
    """Schema for payment in response."""
    model_config = ConfigDict(from_attributes=True)

    method: Optional[str] = None
    amount: int
    status: str
    approved_at: Optional[datetime] = None


class OrderResponse(BaseModel):
    """Schema for order response."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    order_no: str
    user_id: int
    recipient_name: str
    recipient_phone: str
    zip_code: str
    address1: str
    address2: str
    gate_password: Optional[str] = None
    delivery_request: Optional[str] = None
    total_price: int
    status: OrderStatus
    status_reason: Optional[str] = None
    tracking_number: Optional[str] = None
    carrier: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None


class OrderDetailResponse(OrderResponse):
    """Order with its items and payment."""
    items: List[OrderItemResponse]
    payment: Optional[PaymentResponse] = None


class CreateOrderResponse(BaseModel):
    """Schema for order creation response."""
    message: str
    data: OrderDetailResponse


class OrderDataResponse(BaseModel):
    """Schema for order detail envelope."""
    data: OrderDetailResponse


class OrderUpdateResponse(BaseModel):
    """Schema for status change response."""
    message: str
    data: OrderResponse


class ConfirmPaymentResponse(BaseModel):
    """Schema for payment confirmation response."""
    message: str
    order_id: int
    order_no: str


class OrderSummaryResponse(BaseModel):
    """Schema for order in the customer's order list."""
    id: int
    order_no: str
    total_price: int
    status: OrderStatus
    created_at: datetime
    item_count: int
    representative_product_name: str


class AdminOrderSummaryResponse(BaseModel):
    """Schema for order in the administrative order list."""
    id: int
    order_no: str
    user_id: int
    recipient_name: str
    total_price: int
    status: OrderStatus
    created_at: datetime
    items_summary: str


class PaginationResponse(BaseModel):
    """Schema for pagination metadata."""
    total_items: int
    total_pages: int
    current_page: int
    limit: int


class OrdersListResponse(BaseModel):
    """Schema for orders list response."""
    data: List[OrderSummaryResponse]
    pagination: PaginationResponse


class AdminOrdersListResponse(BaseModel):
    """Schema for administrative orders list response."""
    data: List[AdminOrderSummaryResponse]
    pagination: PaginationResponse
