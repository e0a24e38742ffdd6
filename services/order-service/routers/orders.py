"""Orders API router."""
from fastapi import APIRouter, Depends, Path
from sqlalchemy.orm import Session

from database import get_db
from schemas import (
    CreateOrderRequest,
    CreateOrderResponse,
    ConfirmPaymentRequest,
    ConfirmPaymentResponse,
    OrdersListResponse,
    OrderDataResponse,
    OrderDetailResponse,
    OrderResponse,
    OrderUpdateResponse,
    UpdateOrderStatusRequest,
    PaginationParams,
    ErrorResponse,
)
from auth import Identity, get_identity
from dependencies import get_order_service, get_pagination
from services.order_service import OrderService

router = APIRouter(
    prefix="/orders",
    tags=["orders"],
    responses={
        400: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
    }
)


@router.post("", response_model=CreateOrderResponse, status_code=201)
async def create_order(
    request: CreateOrderRequest,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_identity),
    order_service: OrderService = Depends(get_order_service)
):
    """Create a pending order from the given items, or from the cart when none are given."""
    order = order_service.create_order(db, identity.user_id, request)
    return {
        "message": "Order created, please proceed to payment",
        "data": OrderDetailResponse.model_validate(order)
    }


@router.post(
    "/confirm",
    response_model=ConfirmPaymentResponse,
    responses={500: {"model": ErrorResponse}, 503: {"model": ErrorResponse}}
)
async def confirm_payment(
    request: ConfirmPaymentRequest,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_identity),
    order_service: OrderService = Depends(get_order_service)
):
    """Confirm the payment with the gateway and complete the order."""
    return await order_service.confirm_payment(db, identity.user_id, request)


@router.get("", response_model=OrdersListResponse)
async def get_orders(
    pagination: PaginationParams = Depends(get_pagination),
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_identity),
    order_service: OrderService = Depends(get_order_service)
):
    """Get the caller's orders, newest first."""
    return order_service.list_orders(db, identity.user_id, pagination)


@router.get("/{order_id}", response_model=OrderDataResponse)
async def get_order(
    order_id: int = Path(..., ge=1),
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_identity),
    order_service: OrderService = Depends(get_order_service)
):
    """Get one of the caller's orders with items and payment."""
    order = order_service.get_order(db, identity.user_id, order_id)
    return {"data": OrderDetailResponse.model_validate(order)}


@router.patch("/{order_id}/status", response_model=OrderUpdateResponse)
async def update_order_status(
    request: UpdateOrderStatusRequest,
    order_id: int = Path(..., ge=1),
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_identity),
    order_service: OrderService = Depends(get_order_service)
):
    """Cancel an order or request its return."""
    order = order_service.update_status(db, identity.user_id, order_id, request)
    return {
        "message": "Order status updated",
        "data": OrderResponse.model_validate(order)
    }
