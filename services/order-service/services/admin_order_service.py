"""Administrative order management."""
import logging
from typing import Dict, Any, Optional
from sqlalchemy import or_
from sqlalchemy.orm import Session, joinedload, selectinload
from opentelemetry import trace

from models import Order, OrderItem, OrderStatus
from schemas import AdminUpdateOrderRequest, PaginationParams
from exceptions import NotFoundError
from services.order_status import OrderStatusMachine
from services.order_service import summarize_items, paginate

logger = logging.getLogger(__name__)


class AdminOrderService:
    """Order listing and fulfillment updates for administrators."""

    def __init__(self, status_machine: OrderStatusMachine):
        self.status_machine = status_machine
        self.tracer = trace.get_tracer(__name__)

    def list_orders(
        self,
        db: Session,
        pagination: PaginationParams,
        status: Optional[OrderStatus] = None,
        search: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Get a page of all orders, newest first.

        Args:
            db: Database session
            pagination: Page window
            status: Only orders with this status
            search: Recipient name substring, or an order number

        Returns:
            Order summaries with purchaser ids and pagination metadata
        """
        with self.tracer.start_as_current_span("db.query.get_all_orders") as db_span:
            db_span.set_attribute("db.operation", "SELECT")
            db_span.set_attribute("db.table", "orders")

            query = db.query(Order)
            if status is not None:
                query = query.filter(Order.status == status)
            if search:
                conditions = [Order.recipient_name.contains(search)]
                if search.isdigit():
                    conditions.append(Order.id == int(search))
                query = query.filter(or_(*conditions))

            total_items = query.count()
            orders = (
                query.options(selectinload(Order.items).joinedload(OrderItem.product))
                .order_by(Order.created_at.desc(), Order.id.desc())
                .offset(pagination.offset)
                .limit(pagination.limit)
                .all()
            )

            db_span.set_attribute("db.rows_returned", len(orders))

        return {
            "data": [
                {
                    "id": order.id,
                    "order_no": order.order_no,
                    "user_id": order.user_id,
                    "recipient_name": order.recipient_name,
                    "total_price": order.total_price,
                    "status": order.status,
                    "created_at": order.created_at,
                    "items_summary": summarize_items(order, missing_name="Deleted product")
                }
                for order in orders
            ],
            "pagination": paginate(total_items, pagination)
        }

    def get_order(self, db: Session, order_id: int) -> Order:
        """
        Get any order with items and payment.

        Raises:
            NotFoundError: If the order does not exist
        """
        order = (
            db.query(Order)
            .options(
                selectinload(Order.items).joinedload(OrderItem.product),
                joinedload(Order.payment)
            )
            .filter(Order.id == order_id)
            .first()
        )
        if order is None:
            raise NotFoundError("Order not found")
        return order

    def update_status(
        self,
        db: Session,
        order_id: int,
        request: AdminUpdateOrderRequest
    ) -> Order:
        """
        Set an order's status and shipment tracking.

        Raises:
            NotFoundError: If the order does not exist
        """
        order = db.query(Order).filter(Order.id == order_id).first()
        if order is None:
            raise NotFoundError("Order not found")
        return self.status_machine.apply_admin_update(
            db,
            order,
            request.status,
            tracking_number=request.tracking_number,
            carrier=request.carrier
        )
