# app/repositories/product_repo.py
import logging
import uuid

from sqlalchemy import func, or_, update
from sqlmodel import Session, select

from app.core.exceptions import InsufficientStock, ProductNotFound
from app.models.product import Product
from app.models.wishlist import WishlistItem

logger = logging.getLogger(__name__)


class ProductRepository:
    """
    Data access layer for Product.

    - Pure DB operations (CRUD + queries).
    - No FastAPI, no business logic.
    - Stock is only mutated through reserve_stock/release_stock, which
      never commit: they join the caller's transaction.
    """

    # ----- Products -----

    def get_by_id(self, session: Session, product_id: uuid.UUID) -> Product | None:
        return session.get(Product, product_id)

    def get_by_slug(self, session: Session, slug: str) -> Product | None:
        stmt = select(Product).where(Product.slug == slug)
        return session.exec(stmt).first()

    def list_products(
        self,
        session: Session,
        skip: int = 0,
        limit: int = 50,
        only_active: bool = True,
        category: str | None = None,
        search: str | None = None,
        featured: bool | None = None,
    ) -> list[Product]:
        stmt = select(Product)
        if only_active:
            stmt = stmt.where(Product.is_active == True)  # noqa: E712
        if category:
            stmt = stmt.where(Product.category == category)
        if featured is not None:
            stmt = stmt.where(Product.featured == featured)
        if search:
            pattern = f"%{search.lower()}%"
            stmt = stmt.where(
                or_(
                    func.lower(Product.name).like(pattern),
                    func.lower(Product.description).like(pattern),
                )
            )
        stmt = stmt.order_by(Product.created_at.desc()).offset(skip).limit(limit)
        return session.exec(stmt).all()

    def create(self, session: Session, product: Product) -> Product:
        session.add(product)
        session.commit()
        session.refresh(product)
        return product

    def update(self, session: Session, product: Product) -> Product:
        session.add(product)
        session.commit()
        session.refresh(product)
        return product

    def delete(self, session: Session, product: Product) -> None:
        """Delete a product and drop it from every wishlist."""
        for saved in session.exec(
            select(WishlistItem).where(WishlistItem.product_id == product.id)
        ).all():
            session.delete(saved)
        session.delete(product)
        session.commit()

    # ----- Stock ledger -----

    def reserve_stock(
        self,
        session: Session,
        product_id: uuid.UUID,
        quantity: int,
    ) -> None:
        """
        Decrement stock by `quantity` if, and only if, enough is available.

        A single conditional UPDATE; the row is never read-then-written from
        Python, so two checkouts racing for the last unit cannot both win.

        Raises:
            ProductNotFound: no such product.
            InsufficientStock: stock < quantity (stock left unchanged).
        """
        stmt = (
            update(Product)
            .where(Product.id == product_id, Product.stock >= quantity)
            .values(stock=Product.stock - quantity)
            .execution_options(synchronize_session=False)
        )
        result = session.exec(stmt)
        if result.rowcount == 1:
            self._expire_cached(session, product_id)
            return

        product = session.get(Product, product_id, populate_existing=True)
        if product is None:
            raise ProductNotFound(f"Product {product_id} not found")

        logger.warning(
            "Stock reservation refused for product %s: requested %s, available %s",
            product_id,
            quantity,
            product.stock,
        )
        raise InsufficientStock(product.id, product.name, product.stock, quantity)

    def release_stock(
        self,
        session: Session,
        product_id: uuid.UUID,
        quantity: int,
    ) -> bool:
        """
        Increment stock by `quantity` (order cancellation).

        Returns False if the product no longer exists.
        """
        stmt = (
            update(Product)
            .where(Product.id == product_id)
            .values(stock=Product.stock + quantity)
            .execution_options(synchronize_session=False)
        )
        result = session.exec(stmt)
        if result.rowcount != 1:
            logger.warning(
                "Stock release skipped: product %s no longer exists (qty %s)",
                product_id,
                quantity,
            )
            return False

        self._expire_cached(session, product_id)
        return True

    @staticmethod
    def _expire_cached(session: Session, product_id: uuid.UUID) -> None:
        # The UPDATE bypassed the identity map; drop any stale copy.
        cached = session.identity_map.get(session.identity_key(Product, product_id))
        if cached is not None:
            session.expire(cached)
