"""Cart API router."""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from database import get_db
from schemas import AddToCartRequest, AddToCartResponse, CartResponse, ErrorResponse
from auth import Identity, get_identity
from dependencies import get_cart_service
from services.cart_service import CartService

router = APIRouter(prefix="/cart", tags=["cart"])


@router.post("/items", response_model=AddToCartResponse, responses={404: {"model": ErrorResponse}})
async def add_to_cart(
    request: AddToCartRequest,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_identity),
    cart_service: CartService = Depends(get_cart_service)
):
    """Add item to cart - requires authentication."""
    result = cart_service.add_to_cart(
        db=db,
        user_id=identity.user_id,
        product_id=request.product_id,
        quantity=request.quantity
    )
    return {"message": "Item added to cart", **result}


@router.get("", response_model=CartResponse)
async def get_cart(
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_identity),
    cart_service: CartService = Depends(get_cart_service)
):
    """Get user's cart - requires authentication."""
    return cart_service.get_cart(db, identity.user_id)
