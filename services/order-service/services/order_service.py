"""Order management service."""
import logging
import math
from datetime import datetime, timezone
from typing import Dict, Any, List, Optional, Tuple
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, joinedload, selectinload
from opentelemetry import trace

from models import Order, OrderItem, OrderStatus, Payment
from schemas import (
    CreateOrderRequest,
    ConfirmPaymentRequest,
    UpdateOrderStatusRequest,
    PaginationParams,
)
from exceptions import (
    OrderServiceError,
    NotFoundError,
    ForbiddenError,
    InvalidInputError,
    OrderConflictError,
    PaymentNotRecordedError,
    UnreadableReceiptError,
)
from services.catalog_service import CatalogService
from services.cart_service import CartService
from services.payment_gateway import PaymentGatewayClient, PaymentReceipt
from services.reconciliation import ReconciliationQueue
from services.order_status import OrderStatusMachine
from monitoring import (
    orders_created_counter,
    order_amount_histogram,
    payment_confirmations_counter,
)

logger = logging.getLogger(__name__)


def summarize_items(order: Order, missing_name: str = "Unknown product") -> str:
    """Name of the first product, plus how many other lines the order has."""
    if not order.items:
        return missing_name
    first = order.items[0].product
    first_name = first.name if first is not None else missing_name
    other_count = len(order.items) - 1
    if other_count > 0:
        return f"{first_name} and {other_count} more"
    return first_name


def paginate(total_items: int, pagination: PaginationParams) -> Dict[str, int]:
    """Pagination metadata for a page window."""
    return {
        "total_items": total_items,
        "total_pages": math.ceil(total_items / pagination.limit),
        "current_page": pagination.page,
        "limit": pagination.limit
    }


def _as_utc_naive(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class OrderService:
    """Service for creating, paying and tracking orders."""

    def __init__(
        self,
        catalog_service: CatalogService,
        cart_service: CartService,
        payment_gateway: PaymentGatewayClient,
        reconciliation_queue: ReconciliationQueue,
        status_machine: OrderStatusMachine
    ):
        """
        Initialize order service.

        Args:
            catalog_service: Product lookups
            cart_service: Cart store
            payment_gateway: Payment gateway client
            reconciliation_queue: Sink for payments that could not be recorded
            status_machine: Status transition rules
        """
        self.catalog_service = catalog_service
        self.cart_service = cart_service
        self.payment_gateway = payment_gateway
        self.reconciliation_queue = reconciliation_queue
        self.status_machine = status_machine
        self.tracer = trace.get_tracer(__name__)

    def create_order(
        self,
        db: Session,
        user_id: int,
        request: CreateOrderRequest
    ) -> Order:
        """
        Create a pending order from explicit items or from the user's cart.

        Prices are snapshotted from the catalog onto the order items. The
        cart is left untouched until the payment is confirmed.

        Args:
            db: Database session
            user_id: User identifier
            request: Items (optional) and delivery details

        Returns:
            The persisted order with its items

        Raises:
            InvalidInputError: If a product does not exist or the cart is empty
        """
        if request.items:
            source = "direct"
            lines = self._direct_purchase_lines(db, request)
        else:
            source = "cart"
            lines = self._cart_purchase_lines(db, user_id)

        total_price = sum(quantity * price for _, quantity, price in lines)

        span = trace.get_current_span()
        span.set_attribute("order.source", source)
        span.set_attribute("order.total_price", total_price)

        with self.tracer.start_as_current_span("db.transaction.create_order") as db_span:
            db_span.set_attribute("db.operation", "INSERT")
            db_span.set_attribute("db.table", "orders")
            db_span.set_attribute("user.id", user_id)

            order = Order(
                user_id=user_id,
                recipient_name=request.recipient_name,
                recipient_phone=request.recipient_phone,
                zip_code=request.zip_code,
                address1=request.address1,
                address2=request.address2,
                gate_password=request.gate_password,
                delivery_request=request.delivery_request,
                total_price=total_price,
                status=OrderStatus.PENDING,
                items=[
                    OrderItem(product_id=product_id, quantity=quantity, price=price)
                    for product_id, quantity, price in lines
                ]
            )
            try:
                db.add(order)
                db.commit()
            except SQLAlchemyError as e:
                db.rollback()
                logger.error("Failed to create order", extra={
                    "user_id": user_id,
                    "total_price": total_price,
                    "source": source,
                    "error": str(e)
                })
                raise
            db.refresh(order)
            db_span.set_attribute("order.id", order.id)

        orders_created_counter.add(1, {"source": source})
        order_amount_histogram.record(total_price, {"source": source})

        logger.info("Order created", extra={
            "user_id": user_id,
            "order_id": order.id,
            "total_price": total_price,
            "source": source,
            "item_count": len(lines)
        })
        return order

    def _direct_purchase_lines(
        self,
        db: Session,
        request: CreateOrderRequest
    ) -> List[Tuple[int, int, int]]:
        requested_ids = [item.product_id for item in request.items]
        if len(set(requested_ids)) != len(requested_ids):
            raise InvalidInputError("Each product may appear only once in the order items")

        products = self.catalog_service.find_by_ids(db, requested_ids)
        if len(products) != len(requested_ids):
            raise InvalidInputError("Order contains products that do not exist")

        prices = {product.id: product.price for product in products}
        return [
            (item.product_id, item.quantity, prices[item.product_id])
            for item in request.items
        ]

    def _cart_purchase_lines(self, db: Session, user_id: int) -> List[Tuple[int, int, int]]:
        cart = self.cart_service.find_cart(db, user_id)
        cart_items = self.cart_service.list_items(db, cart.id) if cart else []
        if not cart_items:
            raise InvalidInputError("Cart is empty, cannot create an order")

        return [
            (item.product_id, item.quantity, item.product.price)
            for item in cart_items
        ]

    async def confirm_payment(
        self,
        db: Session,
        user_id: int,
        request: ConfirmPaymentRequest
    ) -> Dict[str, Any]:
        """
        Confirm a payment with the gateway and record it.

        The payment key is unique across payments, so the same payment is
        never recorded twice.

        Args:
            db: Database session
            user_id: User identifier
            request: Payment key, order number and amount

        Returns:
            Acknowledgement with the order id

        Raises:
            NotFoundError: If the order does not exist
            ForbiddenError: If the order belongs to another user
            InvalidInputError: If the amount does not match
            OrderConflictError: If the order is not pending
            UpstreamRejectedError: If the gateway declines the payment
            GatewayUnavailableError: If the gateway cannot be reached
            PaymentNotRecordedError: If the gateway settled but the payment could not
                be recorded as paid
        """
        order_id = self._parse_order_ref(request.order_id)

        span = trace.get_current_span()
        span.set_attribute("order.id", order_id)
        span.set_attribute("payment.amount", request.amount)

        order = self._load_owned_order(db, user_id, order_id)

        if order.total_price != request.amount:
            payment_confirmations_counter.add(1, {"outcome": "amount_mismatch"})
            raise InvalidInputError("Payment amount does not match the order total")

        if order.status != OrderStatus.PENDING:
            payment_confirmations_counter.add(1, {"outcome": "conflict"})
            raise OrderConflictError("Order has already been processed")

        if db.query(Payment).filter(Payment.payment_key == request.payment_key).first() is not None:
            payment_confirmations_counter.add(1, {"outcome": "duplicate_key"})
            raise InvalidInputError("Payment key was already used for another order")

        product_ids = [item.product_id for item in order.items]

        # End the read transaction so no connection is held during the gateway call
        db.rollback()

        try:
            receipt = await self.payment_gateway.confirm(
                payment_key=request.payment_key,
                order_no=str(order_id),
                amount=request.amount
            )
        except UnreadableReceiptError as e:
            payment_confirmations_counter.add(1, {"outcome": "receipt_invalid"})
            self.reconciliation_queue.record(order_id, request.payment_key, e.receipt, "receipt_invalid")
            raise PaymentNotRecordedError(
                "Payment was approved but its receipt could not be read; it has been queued for reconciliation"
            ) from e
        except OrderServiceError as e:
            payment_confirmations_counter.add(1, {"outcome": "gateway_error"})
            logger.warning("Payment confirmation failed at gateway", extra={
                "order_id": order_id,
                "user_id": user_id,
                "amount": request.amount,
                "error": e.message
            })
            raise

        if receipt.amount != request.amount:
            payment_confirmations_counter.add(1, {"outcome": "settled_amount_mismatch"})
            logger.error("Gateway settled a different amount than the order total", extra={
                "order_id": order_id,
                "requested_amount": request.amount,
                "settled_amount": receipt.amount
            })
            self.reconciliation_queue.record(order_id, request.payment_key, receipt, "amount_mismatch")
            raise PaymentNotRecordedError(
                "Payment was settled for a different amount; it has been queued for reconciliation"
            )

        self._commit_payment(db, user_id, order_id, product_ids, request.payment_key, receipt)

        payment_confirmations_counter.add(1, {"outcome": "success"})
        logger.info("Payment confirmed", extra={
            "order_id": order_id,
            "user_id": user_id,
            "amount": receipt.amount,
            "method": receipt.method
        })
        return self._acknowledge(order_id)

    def _commit_payment(
        self,
        db: Session,
        user_id: int,
        order_id: int,
        product_ids: List[int],
        payment_key: str,
        receipt: PaymentReceipt
    ) -> None:
        """Record the payment, mark the order paid and prune the cart, all or nothing."""
        with self.tracer.start_as_current_span("db.transaction.confirm_payment") as db_span:
            db_span.set_attribute("db.operation", "INSERT")
            db_span.set_attribute("db.table", "payments")
            db_span.set_attribute("order.id", order_id)
            db_span.set_attribute("user.id", user_id)

            try:
                db.add(Payment(
                    order_id=order_id,
                    payment_key=payment_key,
                    method=receipt.method,
                    amount=receipt.amount,
                    status="PAID",
                    approved_at=_as_utc_naive(receipt.approved_at)
                ))
                db.flush()

                result = db.execute(
                    update(Order)
                    .where(Order.id == order_id, Order.status == OrderStatus.PENDING)
                    .values(status=OrderStatus.PAID)
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount == 0:
                    raise OrderConflictError("Order has already been processed")

                removed = 0
                cart = self.cart_service.find_cart(db, user_id)
                if cart is not None:
                    removed = self.cart_service.delete_items(db, cart.id, product_ids)
                db_span.set_attribute("cart.items_removed", removed)

                db.commit()
            except OrderConflictError:
                db.rollback()
                self.reconciliation_queue.record(order_id, payment_key, receipt, "order_not_pending")
                raise
            except IntegrityError as e:
                db.rollback()
                if self._payment_recorded(db, order_id, payment_key):
                    # A concurrent confirm with the same key committed first
                    logger.info("Payment already recorded by a concurrent confirmation", extra={
                        "order_id": order_id
                    })
                else:
                    self.reconciliation_queue.record(order_id, payment_key, receipt, "duplicate_payment")
                raise OrderConflictError("Order has already been processed") from e
            except SQLAlchemyError as e:
                db.rollback()
                self.reconciliation_queue.record(order_id, payment_key, receipt, "commit_failed")
                raise PaymentNotRecordedError(
                    "Payment was approved but could not be recorded; it has been queued for reconciliation"
                ) from e

    def _payment_recorded(self, db: Session, order_id: int, payment_key: str) -> bool:
        return db.query(Payment).filter(
            Payment.order_id == order_id,
            Payment.payment_key == payment_key
        ).first() is not None

    @staticmethod
    def _acknowledge(order_id: int) -> Dict[str, Any]:
        return {
            "message": "Order completed",
            "order_id": order_id,
            "order_no": str(order_id)
        }

    @staticmethod
    def _parse_order_ref(order_ref: str) -> int:
        if not order_ref.isdigit():
            raise InvalidInputError("Invalid order reference")
        return int(order_ref)

    def _load_owned_order(self, db: Session, user_id: int, order_id: int) -> Order:
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
        if order.user_id != user_id:
            raise ForbiddenError("You do not have access to this order")
        return order

    def list_orders(
        self,
        db: Session,
        user_id: int,
        pagination: PaginationParams
    ) -> Dict[str, Any]:
        """
        Get a page of the user's orders, newest first.

        Args:
            db: Database session
            user_id: User identifier
            pagination: Page window

        Returns:
            Order summaries and pagination metadata
        """
        with self.tracer.start_as_current_span("db.query.get_user_orders") as db_span:
            db_span.set_attribute("db.operation", "SELECT")
            db_span.set_attribute("db.table", "orders")
            db_span.set_attribute("user.id", user_id)

            query = db.query(Order).filter(Order.user_id == user_id)
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
                    "total_price": order.total_price,
                    "status": order.status,
                    "created_at": order.created_at,
                    "item_count": len(order.items),
                    "representative_product_name": summarize_items(order)
                }
                for order in orders
            ],
            "pagination": paginate(total_items, pagination)
        }

    def get_order(self, db: Session, user_id: int, order_id: int) -> Order:
        """
        Get one of the user's orders with items and payment.

        Raises:
            NotFoundError: If the order does not exist
            ForbiddenError: If the order belongs to another user
        """
        return self._load_owned_order(db, user_id, order_id)

    def update_status(
        self,
        db: Session,
        user_id: int,
        order_id: int,
        request: UpdateOrderStatusRequest
    ) -> Order:
        """
        Cancel an order or request a return on behalf of its owner.

        Raises:
            NotFoundError: If the order does not exist
            ForbiddenError: If the order belongs to another user
            InvalidInputError: If the transition is not allowed
        """
        order = self._load_owned_order(db, user_id, order_id)
        return self.status_machine.apply_customer_transition(
            db, order, request.status, request.reason
        )
