# app/services/user_service.py
import logging
import uuid

from fastapi import HTTPException, status
from sqlmodel import Session

from app.models.user import User
from app.repositories.user_repo import UserRepository
from app.schemas.user import UserRoleUpdate, UserUpdate

logger = logging.getLogger(__name__)


def _bad_request(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class UserService:
    """
    Shopper profiles and staff user management.

    Identity (email, password) belongs to Supabase; only names and the
    application role are edited here.
    """

    def __init__(self, repo: UserRepository):
        self.repo = repo

    def update_profile(self, session: Session, user: User, payload: UserUpdate) -> User:
        changes = payload.model_dump(exclude_unset=True, exclude_none=True)
        for field, value in changes.items():
            setattr(user, field, value)
        return self.repo.update(session, user)

    def list_users(self, session: Session, skip: int, limit: int) -> list[User]:
        return self.repo.list(session, skip=skip, limit=limit)

    def get_user(self, session: Session, user_id: uuid.UUID) -> User:
        user = self.repo.get_by_id(session, user_id)
        if user is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="User not found",
            )
        return user

    def set_role(
        self,
        session: Session,
        acting_admin: User,
        user_id: uuid.UUID,
        payload: UserRoleUpdate,
    ) -> User:
        """
        Promote a shopper to staff or back. An admin cannot demote
        themselves, so the store always keeps at least the acting admin.
        """
        user = self.get_user(session, user_id)
        if user.id == acting_admin.id and payload.role != "admin":
            raise _bad_request("You cannot remove your own admin role")

        user.role = payload.role
        user = self.repo.update(session, user)
        logger.info("User %s role set to %s by %s", user.id, user.role, acting_admin.id)
        return user

    def remove_user(self, session: Session, acting_admin: User, user_id: uuid.UUID) -> None:
        """
        Delete an account that never ordered. Accounts with orders are kept
        so order history stays attributable.
        """
        user = self.get_user(session, user_id)
        if user.id == acting_admin.id:
            raise _bad_request("You cannot delete your own account")
        if self.repo.has_orders(session, user.id):
            raise _bad_request("User has orders and cannot be deleted")

        self.repo.delete(session, user)
        logger.info("User %s deleted by %s", user_id, acting_admin.id)
