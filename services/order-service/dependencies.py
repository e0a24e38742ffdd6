"""Dependency injection for services."""
from typing import Any
import redis
from fastapi import Depends, Query, Request

from config import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from schemas import PaginationParams
from services.catalog_service import CatalogService
from services.cart_service import CartService
from services.order_service import OrderService
from services.order_status import OrderStatusMachine
from services.admin_order_service import AdminOrderService
from services.payment_gateway import PaymentGatewayClient
from services.reconciliation import ReconciliationQueue


def get_redis(request: Request) -> redis.Redis:
    """Get Redis client from app state."""
    return request.app.state.redis_client


def get_http_client(request: Request) -> Any:
    """Get HTTP client from app state."""
    return request.app.state.http_client


def get_pagination(
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE)
) -> PaginationParams:
    """Validated page window from query parameters."""
    return PaginationParams(page=page, limit=limit)


def get_catalog_service() -> CatalogService:
    """Get catalog service instance."""
    return CatalogService()


def get_cart_service(
    catalog_service: CatalogService = Depends(get_catalog_service)
) -> CartService:
    """Get cart service instance."""
    return CartService(catalog_service)


def get_payment_gateway(http_client: Any = Depends(get_http_client)) -> PaymentGatewayClient:
    """Get payment gateway client."""
    return PaymentGatewayClient(http_client)


def get_reconciliation_queue(
    redis_client: redis.Redis = Depends(get_redis)
) -> ReconciliationQueue:
    """Get payment reconciliation queue."""
    return ReconciliationQueue(redis_client)


def get_status_machine() -> OrderStatusMachine:
    """Get order status machine."""
    return OrderStatusMachine()


def get_order_service(
    catalog_service: CatalogService = Depends(get_catalog_service),
    cart_service: CartService = Depends(get_cart_service),
    payment_gateway: PaymentGatewayClient = Depends(get_payment_gateway),
    reconciliation_queue: ReconciliationQueue = Depends(get_reconciliation_queue),
    status_machine: OrderStatusMachine = Depends(get_status_machine)
) -> OrderService:
    """Get order service instance."""
    return OrderService(
        catalog_service,
        cart_service,
        payment_gateway,
        reconciliation_queue,
        status_machine
    )


def get_admin_order_service(
    status_machine: OrderStatusMachine = Depends(get_status_machine)
) -> AdminOrderService:
    """Get admin order service instance."""
    return AdminOrderService(status_machine)
