"""Database connection and session management."""
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from typing import Generator
import logging

from config import DATABASE_URL
from models import Base, Product

logger = logging.getLogger(__name__)

# Create engine with connection pool settings
engine = create_engine(
    DATABASE_URL,
    pool_size=10,
    max_overflow=20,
    pool_pre_ping=True,  # Verify connections before use
    pool_recycle=3600,
    pool_timeout=30
)

# Create session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Generator[Session, None, None]:
    """
    Dependency for getting a request-scoped database session.

    Yields:
        Database session
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db() -> None:
    """Initialize database tables and seed the catalog."""
    Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        if db.query(Product).count() == 0:
            products = [
                Product(name="Linen Shirt", price=35000, image="/images/linen-shirt.jpg"),
                Product(name="Denim Jacket", price=89000, image="/images/denim-jacket.jpg"),
                Product(name="Canvas Tote", price=19000, image="/images/canvas-tote.jpg"),
                Product(name="Wool Scarf", price=42000, image="/images/wool-scarf.jpg"),
                Product(name="Leather Belt", price=27000, image="/images/leather-belt.jpg"),
            ]
            db.add_all(products)
            db.commit()
            logger.info("Seeded database with sample products")
    finally:
        db.close()
