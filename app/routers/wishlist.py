# app/routers/wishlist.py
import uuid

from fastapi import APIRouter, Depends
from sqlmodel import Session

from app.core.auth import require_auth
from app.database import get_session
from app.models.user import User
from app.repositories.product_repo import ProductRepository
from app.repositories.wishlist_repo import WishlistRepository
from app.schemas.wishlist import (
    MoveToCartRequest,
    MoveToCartResult,
    WishlistAlerts,
    WishlistItemCreate,
    WishlistRead,
)
from app.services.wishlist_service import WishlistService

router = APIRouter(prefix="/wishlist", tags=["Wishlist"])

service = WishlistService(WishlistRepository(), ProductRepository())


@router.get("", response_model=WishlistRead)
def get_my_wishlist(
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
):
    """
    Saved products of the current user, most recently saved first.
    """
    return service.get_wishlist(session, current_user.id)


@router.post("", response_model=WishlistRead)
def add_to_wishlist(
    payload: WishlistItemCreate,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
):
    return service.add(session, current_user.id, payload)


@router.get("/notifications/check", response_model=WishlistAlerts)
def check_wishlist_alerts(
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
):
    """
    Restock and price-drop alerts for saved products.
    """
    return service.check_alerts(session, current_user.id)


@router.post("/{product_id}/move-to-cart", response_model=MoveToCartResult)
def move_to_cart(
    product_id: uuid.UUID,
    payload: MoveToCartRequest | None = None,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
):
    """
    Remove the product from the wishlist and return the cart line for the
    client-side cart. Body is optional (quantity defaults to 1).
    """
    return service.move_to_cart(
        session, current_user.id, product_id, payload or MoveToCartRequest()
    )


@router.delete("/{product_id}", response_model=WishlistRead)
def remove_from_wishlist(
    product_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
):
    return service.remove(session, current_user.id, product_id)


@router.delete("", response_model=WishlistRead)
def clear_wishlist(
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
):
    return service.clear(session, current_user.id)
