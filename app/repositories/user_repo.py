# app/repositories/user_repo.py
import uuid

from sqlmodel import Session, select

from app.models.notification import Notification
from app.models.order import Order
from app.models.user import User
from app.models.wishlist import WishlistItem


class UserRepository:
    """
    Data access layer for User.

    Responsibilities:
      - Pure DB operations (CRUD + queries)
      - No FastAPI, no HTTP, no business logic
    """

    # ----- Basic CRUD -----

    def get_by_id(self, session: Session, user_id: uuid.UUID) -> User | None:
        """Return a User by primary key, or None if not found."""
        return session.get(User, user_id)

    def list(self, session: Session, skip: int = 0, limit: int = 50) -> list[User]:
        """
        Paginated user listing, newest first.

        Args:
            skip: offset rows (for paging)
            limit: max number of rows returned
        """
        stmt = select(User).order_by(User.created_at.desc()).offset(skip).limit(limit)
        return session.exec(stmt).all()

    def has_orders(self, session: Session, user_id: uuid.UUID) -> bool:
        stmt = select(Order.id).where(Order.user_id == user_id).limit(1)
        return session.exec(stmt).first() is not None

    def update(self, session: Session, user: User) -> User:
        """Persist changes to an existing User."""
        session.add(user)
        session.commit()
        session.refresh(user)
        return user

    def delete(self, session: Session, user: User) -> None:
        """Delete a User with their notifications and wishlist."""
        for model in (Notification, WishlistItem):
            for row in session.exec(select(model).where(model.user_id == user.id)).all():
                session.delete(row)
        session.delete(user)
        session.commit()
