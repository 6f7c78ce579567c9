# app/services/wishlist_service.py
import logging
import uuid
from datetime import datetime, timezone

from fastapi import HTTPException, status
from sqlmodel import Session

from app.core.exceptions import InsufficientStock, ProductNotFound
from app.models.product import Product
from app.models.wishlist import WishlistItem
from app.repositories.product_repo import ProductRepository
from app.repositories.wishlist_repo import WishlistRepository
from app.schemas.wishlist import (
    MoveToCartRequest,
    MoveToCartResult,
    WishlistAlert,
    WishlistAlerts,
    WishlistItemCreate,
    WishlistItemRead,
    WishlistRead,
)

logger = logging.getLogger(__name__)


class WishlistService:
    """
    Business logic for the wishlist.

    Responsibilities:
      - validate product existence and active flag
      - one entry per product; saving again updates size/color
      - hand a saved product over to the client-side cart
      - restock / price-drop alerts from the snapshots taken when saving
    """

    def __init__(self, wishlist_repo: WishlistRepository, product_repo: ProductRepository):
        self.wishlist_repo = wishlist_repo
        self.product_repo = product_repo

    # ---- internal helpers ----

    def _get_valid_product(self, session: Session, product_id: uuid.UUID) -> Product:
        product = self.product_repo.get_by_id(session, product_id)
        if product is None or not product.is_active:
            raise ProductNotFound(f"Product {product_id} not found", product_id=str(product_id))
        return product

    def _get_item(self, session: Session, user_id: uuid.UUID, product_id: uuid.UUID) -> WishlistItem:
        item = self.wishlist_repo.get_item(session, user_id, product_id)
        if item is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Item not found in wishlist",
            )
        return item

    @staticmethod
    def _item_read(item: WishlistItem, product: Product) -> WishlistItemRead:
        return WishlistItemRead(
            product_id=product.id,
            name=product.name,
            slug=product.slug,
            price=product.price,
            discounted_price=product.discounted_price,
            category=product.category,
            stock=product.stock,
            in_stock=product.is_active and product.stock > 0,
            image_url=product.image_url,
            size=item.size,
            color=item.color,
            added_at=item.added_at,
        )

    # ---- public operations ----

    def get_wishlist(self, session: Session, user_id: uuid.UUID) -> WishlistRead:
        rows = self.wishlist_repo.list_for_user(session, user_id)
        items = [self._item_read(item, product) for item, product in rows]
        return WishlistRead(items=items, count=len(items))

    def add(
        self,
        session: Session,
        user_id: uuid.UUID,
        payload: WishlistItemCreate,
    ) -> WishlistRead:
        """
        Save a product. An already saved product keeps its price/stock
        snapshot; only size, color and added_at change.
        """
        product = self._get_valid_product(session, payload.product_id)
        item = self.wishlist_repo.get_item(session, user_id, product.id)

        if item is None:
            item = WishlistItem(
                user_id=user_id,
                product_id=product.id,
                price_when_added=product.discounted_price,
                in_stock_when_added=product.stock > 0,
            )
        if payload.size is not None:
            item.size = payload.size.strip()
        if payload.color is not None:
            item.color = payload.color.strip()
        item.added_at = datetime.now(timezone.utc)

        self.wishlist_repo.save(session, item)
        return self.get_wishlist(session, user_id)

    def remove(self, session: Session, user_id: uuid.UUID, product_id: uuid.UUID) -> WishlistRead:
        self.wishlist_repo.delete(session, self._get_item(session, user_id, product_id))
        return self.get_wishlist(session, user_id)

    def clear(self, session: Session, user_id: uuid.UUID) -> WishlistRead:
        self.wishlist_repo.clear_user_wishlist(session, user_id)
        return WishlistRead(items=[], count=0)

    def move_to_cart(
        self,
        session: Session,
        user_id: uuid.UUID,
        product_id: uuid.UUID,
        payload: MoveToCartRequest,
    ) -> MoveToCartResult:
        """
        Take a saved product off the wishlist and return the cart line for
        it. Stock is only checked here, not reserved; checkout reserves.
        """
        item = self._get_item(session, user_id, product_id)
        product = self._get_valid_product(session, product_id)
        if product.stock < payload.quantity:
            raise InsufficientStock(product.id, product.name, product.stock, payload.quantity)

        line = MoveToCartResult(
            product_id=product.id,
            name=product.name,
            price=product.discounted_price,
            image_url=product.image_url,
            size=item.size,
            color=item.color,
            quantity=payload.quantity,
        )
        self.wishlist_repo.delete(session, item)
        logger.info("User %s moved product %s from wishlist to cart", user_id, product_id)
        return line

    def check_alerts(self, session: Session, user_id: uuid.UUID) -> WishlistAlerts:
        """
        Saved products that came back in stock or got cheaper since saving.
        """
        alerts: list[WishlistAlert] = []
        for item, product in self.wishlist_repo.list_for_user(session, user_id):
            if not product.is_active:
                continue
            if not item.in_stock_when_added and product.stock > 0:
                alerts.append(
                    WishlistAlert(
                        type="wishlist_restock",
                        product_id=product.id,
                        product_name=product.name,
                        title="Back in Stock!",
                        message=f"{product.name} is back in stock",
                    )
                )
            if product.discounted_price < item.price_when_added:
                alerts.append(
                    WishlistAlert(
                        type="wishlist_price_drop",
                        product_id=product.id,
                        product_name=product.name,
                        title="Price Drop!",
                        message=(
                            f"{product.name} is now {product.discounted_price:,.2f} "
                            f"(was {item.price_when_added:,.2f})"
                        ),
                    )
                )
        return WishlistAlerts(has_notifications=bool(alerts), notifications=alerts)
