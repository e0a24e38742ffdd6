"""Administrative orders API router."""
from typing import Optional
from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.orm import Session

from database import get_db
from models import OrderStatus
from schemas import (
    AdminOrdersListResponse,
    AdminUpdateOrderRequest,
    OrderDataResponse,
    OrderDetailResponse,
    OrderResponse,
    OrderUpdateResponse,
    PaginationParams,
    ErrorResponse,
)
from auth import require_admin
from dependencies import get_admin_order_service, get_pagination
from services.admin_order_service import AdminOrderService

router = APIRouter(
    prefix="/admin/orders",
    tags=["admin"],
    dependencies=[Depends(require_admin)],
    responses={404: {"model": ErrorResponse}}
)


@router.get("", response_model=AdminOrdersListResponse)
async def get_orders(
    pagination: PaginationParams = Depends(get_pagination),
    status: Optional[OrderStatus] = Query(None),
    search: Optional[str] = Query(None, description="Recipient name or order number"),
    db: Session = Depends(get_db),
    admin_service: AdminOrderService = Depends(get_admin_order_service)
):
    """Get all orders, optionally filtered by status or search text."""
    return admin_service.list_orders(db, pagination, status=status, search=search)


@router.get("/{order_id}", response_model=OrderDataResponse)
async def get_order(
    order_id: int = Path(..., ge=1),
    db: Session = Depends(get_db),
    admin_service: AdminOrderService = Depends(get_admin_order_service)
):
    """Get any order with items and payment."""
    order = admin_service.get_order(db, order_id)
    return {"data": OrderDetailResponse.model_validate(order)}


@router.patch("/{order_id}/status", response_model=OrderUpdateResponse)
async def update_order_status(
    request: AdminUpdateOrderRequest,
    order_id: int = Path(..., ge=1),
    db: Session = Depends(get_db),
    admin_service: AdminOrderService = Depends(get_admin_order_service)
):
    """Set an order's status, with tracking details when shipping."""
    order = admin_service.update_status(db, order_id, request)
    return {
        "message": "Order status updated",
        "data": OrderResponse.model_validate(order)
    }
