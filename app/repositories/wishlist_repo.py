# app/repositories/wishlist_repo.py
import uuid

from sqlmodel import Session, select

from app.models.product import Product
from app.models.wishlist import WishlistItem


class WishlistRepository:

    # Items with their product, most recently saved first
    def list_for_user(
        self, session: Session, user_id: uuid.UUID
    ) -> list[tuple[WishlistItem, Product]]:
        stmt = (
            select(WishlistItem, Product)
            .join(Product, Product.id == WishlistItem.product_id)
            .where(WishlistItem.user_id == user_id)
            .order_by(WishlistItem.added_at.desc())
        )
        return session.exec(stmt).all()

    def get_item(
        self, session: Session, user_id: uuid.UUID, product_id: uuid.UUID
    ) -> WishlistItem | None:
        stmt = select(WishlistItem).where(
            WishlistItem.user_id == user_id, WishlistItem.product_id == product_id
        )
        return session.exec(stmt).first()

    # CRUD
    def save(self, session: Session, item: WishlistItem) -> WishlistItem:
        session.add(item)
        session.commit()
        session.refresh(item)
        return item

    def delete(self, session: Session, item: WishlistItem) -> None:
        session.delete(item)
        session.commit()

    def clear_user_wishlist(self, session: Session, user_id: uuid.UUID) -> None:
        for row in session.exec(
            select(WishlistItem).where(WishlistItem.user_id == user_id)
        ).all():
            session.delete(row)
        session.commit()
