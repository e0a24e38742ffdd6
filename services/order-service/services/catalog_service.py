"""Read-only product catalog lookups."""
import logging
from typing import Iterable, List, Optional
from sqlalchemy.orm import Session
from opentelemetry import trace

from models import Product

logger = logging.getLogger(__name__)


class CatalogService:
    """Resolves product ids to current name and price."""

    def __init__(self):
        self.tracer = trace.get_tracer(__name__)

    def find_by_id(self, db: Session, product_id: int) -> Optional[Product]:
        """
        Get a single product.

        Args:
            db: Database session
            product_id: Product identifier

        Returns:
            Product, or None if it does not exist
        """
        with self.tracer.start_as_current_span("db.query.get_product") as db_span:
            db_span.set_attribute("db.operation", "SELECT")
            db_span.set_attribute("db.table", "products")
            db_span.set_attribute("product.id", product_id)

            product = db.query(Product).filter(Product.id == product_id).first()

            db_span.set_attribute("db.rows_returned", 1 if product else 0)
            return product

    def find_by_ids(self, db: Session, product_ids: Iterable[int]) -> List[Product]:
        """
        Get products in one batch.

        Unknown ids are simply absent from the result; callers compare counts.

        Args:
            db: Database session
            product_ids: Product identifiers

        Returns:
            Products that exist
        """
        ids = list(product_ids)
        with self.tracer.start_as_current_span("db.query.get_products") as db_span:
            db_span.set_attribute("db.operation", "SELECT")
            db_span.set_attribute("db.table", "products")
            db_span.set_attribute("product.count_requested", len(ids))

            if not ids:
                return []
            products = db.query(Product).filter(Product.id.in_(ids)).all()

            db_span.set_attribute("db.rows_returned", len(products))
            return products
