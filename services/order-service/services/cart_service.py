"""Cart management service."""
import logging
from typing import Iterable, List, Dict, Any, Optional
from sqlalchemy.orm import Session, joinedload
from opentelemetry import trace

from models import Cart, CartItem
from exceptions import NotFoundError
from services.catalog_service import CatalogService

logger = logging.getLogger(__name__)


class CartService:
    """Service for managing shopping carts."""

    def __init__(self, catalog_service: CatalogService):
        """
        Initialize cart service.

        Args:
            catalog_service: Catalog lookups for product validation
        """
        self.catalog_service = catalog_service
        self.tracer = trace.get_tracer(__name__)

    def find_cart(self, db: Session, user_id: int) -> Optional[Cart]:
        """Get the user's cart without creating one."""
        with self.tracer.start_as_current_span("db.query.get_cart") as db_span:
            db_span.set_attribute("db.operation", "SELECT")
            db_span.set_attribute("db.table", "carts")
            db_span.set_attribute("user.id", user_id)

            return db.query(Cart).filter(Cart.user_id == user_id).first()

    def get_or_create(self, db: Session, user_id: int) -> Cart:
        """
        Get the user's cart, creating it on first use.

        Args:
            db: Database session
            user_id: User identifier

        Returns:
            The user's cart
        """
        cart = self.find_cart(db, user_id)
        if cart is None:
            cart = Cart(user_id=user_id)
            db.add(cart)
            db.commit()
            logger.info("Created cart", extra={"user_id": user_id, "cart_id": cart.id})
        return cart

    def list_items(self, db: Session, cart_id: int) -> List[CartItem]:
        """
        Get cart items with their current products.

        Args:
            db: Database session
            cart_id: Cart identifier

        Returns:
            Cart items, oldest first
        """
        with self.tracer.start_as_current_span("db.query.get_cart_items") as db_span:
            db_span.set_attribute("db.operation", "SELECT")
            db_span.set_attribute("db.table", "cart_items")
            db_span.set_attribute("cart.id", cart_id)

            cart_items = (
                db.query(CartItem)
                .options(joinedload(CartItem.product))
                .filter(CartItem.cart_id == cart_id)
                .order_by(CartItem.id)
                .all()
            )

            db_span.set_attribute("db.rows_returned", len(cart_items))
            return cart_items

    def delete_items(self, db: Session, cart_id: int, product_ids: Iterable[int]) -> int:
        """
        Delete the cart items for the given products.

        Does not commit: callers run this inside their own transaction.

        Args:
            db: Database session
            cart_id: Cart identifier
            product_ids: Products whose cart entries are removed

        Returns:
            Number of deleted cart items
        """
        ids = list(set(product_ids))
        with self.tracer.start_as_current_span("db.query.delete_cart_items") as db_span:
            db_span.set_attribute("db.operation", "DELETE")
            db_span.set_attribute("db.table", "cart_items")
            db_span.set_attribute("cart.id", cart_id)

            if not ids:
                return 0
            deleted_count = (
                db.query(CartItem)
                .filter(CartItem.cart_id == cart_id, CartItem.product_id.in_(ids))
                .delete(synchronize_session=False)
            )

            db_span.set_attribute("db.rows_affected", deleted_count)
            return deleted_count

    def add_to_cart(
        self,
        db: Session,
        user_id: int,
        product_id: int,
        quantity: int
    ) -> Dict[str, Any]:
        """
        Add a product to the user's cart.

        Adding a product already in the cart increases its quantity.

        Args:
            db: Database session
            user_id: User identifier
            product_id: Product identifier
            quantity: Quantity to add

        Returns:
            Result with cart item details

        Raises:
            NotFoundError: If product not found
        """
        product = self.catalog_service.find_by_id(db, product_id)
        if product is None:
            raise NotFoundError("Product not found")

        cart = self.get_or_create(db, user_id)

        cart_item = db.query(CartItem).filter(
            CartItem.cart_id == cart.id,
            CartItem.product_id == product_id
        ).first()

        with self.tracer.start_as_current_span("db.query.upsert_cart_item") as db_span:
            db_span.set_attribute("db.table", "cart_items")
            db_span.set_attribute("user.id", user_id)
            db_span.set_attribute("product.id", product_id)

            if cart_item:
                db_span.set_attribute("db.operation", "UPDATE")
                cart_item.quantity += quantity
            else:
                db_span.set_attribute("db.operation", "INSERT")
                cart_item = CartItem(cart_id=cart.id, product_id=product_id, quantity=quantity)
                db.add(cart_item)
            db.commit()

            db_span.set_attribute("cart_item.id", cart_item.id)

        logger.info("Added product to cart", extra={
            "user_id": user_id,
            "product_id": product_id,
            "product_name": product.name,
            "quantity": cart_item.quantity
        })

        return {
            "cart_item_id": cart_item.id,
            "product_name": product.name,
            "quantity": cart_item.quantity
        }

    def get_cart(self, db: Session, user_id: int) -> Dict[str, Any]:
        """
        Get user's cart contents with current prices.

        Args:
            db: Database session
            user_id: User identifier

        Returns:
            Cart contents with items and total
        """
        cart = self.get_or_create(db, user_id)

        items = []
        total = 0
        for item in self.list_items(db, cart.id):
            subtotal = item.product.price * item.quantity
            total += subtotal
            items.append({
                "id": item.id,
                "product_id": item.product_id,
                "product_name": item.product.name,
                "price": item.product.price,
                "quantity": item.quantity,
                "subtotal": subtotal
            })

        return {
            "cart_id": cart.id,
            "user_id": user_id,
            "items": items,
            "total": total
        }
