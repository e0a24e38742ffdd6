"""Order status rules and transitions."""
import logging
from typing import Optional
from sqlalchemy import update
from sqlalchemy.orm import Session
from opentelemetry import trace

from models import Order, OrderStatus
from exceptions import InvalidInputError, OrderConflictError
from monitoring import order_status_transitions_counter

logger = logging.getLogger(__name__)

# target status -> statuses a customer may request it from
CUSTOMER_TRANSITIONS = {
    OrderStatus.CANCELED: frozenset({OrderStatus.PENDING, OrderStatus.PAID}),
    OrderStatus.RETURN_REQUESTED: frozenset({OrderStatus.DELIVERED}),
}

TERMINAL_STATES = frozenset({OrderStatus.CANCELED, OrderStatus.RETURN_REQUESTED})

LIFECYCLE_RANK = {
    OrderStatus.PENDING: 0,
    OrderStatus.PAID: 1,
    OrderStatus.SHIPPED: 2,
    OrderStatus.DELIVERED: 3,
    OrderStatus.RETURN_REQUESTED: 4,
}


def validate_customer_transition(current: OrderStatus, target: OrderStatus) -> None:
    """
    Check that a customer may move an order from ``current`` to ``target``.

    Raises:
        InvalidInputError: If the transition is not allowed
    """
    allowed_from = CUSTOMER_TRANSITIONS.get(target)
    if allowed_from is None:
        raise InvalidInputError(f"Customers cannot change an order to {target.value}")
    if current not in allowed_from:
        if target == OrderStatus.CANCELED:
            raise InvalidInputError("Orders being prepared or already shipped cannot be canceled")
        raise InvalidInputError("Returns can only be requested for delivered orders")


def is_backward(current: OrderStatus, target: OrderStatus) -> bool:
    """True when ``target`` goes back in the lifecycle or leaves a closed order."""
    if current == target:
        return False
    if current in TERMINAL_STATES:
        return True
    if target == OrderStatus.CANCELED:
        return False
    return LIFECYCLE_RANK[target] < LIFECYCLE_RANK[current]


class OrderStatusMachine:
    """Applies customer and administrator status changes."""

    def __init__(self):
        self.tracer = trace.get_tracer(__name__)

    def apply_customer_transition(
        self,
        db: Session,
        order: Order,
        target: OrderStatus,
        reason: Optional[str] = None
    ) -> Order:
        """
        Cancel an order or request its return on behalf of its owner.

        The update only applies if the order still has the status it was
        validated against.

        Args:
            db: Database session
            order: Order owned by the caller
            target: CANCELED or RETURN_REQUESTED
            reason: Optional reason given by the customer

        Returns:
            The updated order

        Raises:
            InvalidInputError: If the transition is not allowed
            OrderConflictError: If the order changed concurrently
        """
        current = order.status
        validate_customer_transition(current, target)

        with self.tracer.start_as_current_span("db.query.update_order_status") as db_span:
            db_span.set_attribute("db.operation", "UPDATE")
            db_span.set_attribute("db.table", "orders")
            db_span.set_attribute("order.id", order.id)
            db_span.set_attribute("order.status.before", current.value)
            db_span.set_attribute("order.status.after", target.value)

            result = db.execute(
                update(Order)
                .where(Order.id == order.id, Order.status == current)
                .values(status=target, status_reason=reason)
                .execution_options(synchronize_session=False)
            )
            db_span.set_attribute("db.rows_affected", result.rowcount)

            if result.rowcount == 0:
                db.rollback()
                raise OrderConflictError("Order status changed, please reload the order")
            db.commit()

        db.refresh(order)
        order_status_transitions_counter.add(1, {"actor": "customer", "status": target.value})
        logger.info("Order status changed by customer", extra={
            "order_id": order.id,
            "user_id": order.user_id,
            "from_status": current.value,
            "to_status": target.value,
            "reason": reason
        })
        return order

    def apply_admin_update(
        self,
        db: Session,
        order: Order,
        status: OrderStatus,
        tracking_number: Optional[str] = None,
        carrier: Optional[str] = None
    ) -> Order:
        """
        Set any status on an order, optionally with shipment tracking.

        Administrators are not restricted to forward moves; a backward move
        is applied and logged for review. Tracking number and carrier keep
        their previous values when not given.

        Args:
            db: Database session
            order: Order to update
            status: New status
            tracking_number: Shipment tracking number
            carrier: Shipping carrier

        Returns:
            The updated order
        """
        current = order.status

        if is_backward(current, status):
            logger.warning("Administrative status change moves order backwards", extra={
                "order_id": order.id,
                "from_status": current.value,
                "to_status": status.value
            })

        order.status = status
        order.tracking_number = tracking_number or order.tracking_number
        order.carrier = carrier or order.carrier
        db.commit()
        db.refresh(order)

        order_status_transitions_counter.add(1, {"actor": "admin", "status": status.value})
        logger.info("Order status changed by admin", extra={
            "order_id": order.id,
            "from_status": current.value,
            "to_status": status.value,
            "tracking_number": order.tracking_number,
            "carrier": order.carrier
        })
        return order
