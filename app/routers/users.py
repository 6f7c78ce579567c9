# app/routers/users.py
import uuid

from fastapi import APIRouter, Depends, status
from sqlmodel import Session

from app.core.auth import require_admin, require_auth
from app.database import get_session
from app.models.user import User
from app.repositories.user_repo import UserRepository
from app.schemas.user import UserRead, UserRoleUpdate, UserUpdate
from app.services.user_service import UserService

router = APIRouter(prefix="/users", tags=["Users"])

service = UserService(UserRepository())


@router.get("/me", response_model=UserRead)
def read_profile(current_user: User = Depends(require_auth)):
    return current_user


@router.patch("/me", response_model=UserRead)
def update_profile(
    payload: UserUpdate,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
):
    """
    Edit first/last name. Email is managed by Supabase.
    """
    return service.update_profile(session, current_user, payload)


# -------- Staff --------


@router.get("", response_model=list[UserRead], dependencies=[Depends(require_admin)])
def list_users(
    session: Session = Depends(get_session),
    skip: int = 0,
    limit: int = 50,
):
    return service.list_users(session, skip, limit)


@router.get("/{user_id}", response_model=UserRead, dependencies=[Depends(require_admin)])
def get_user(user_id: uuid.UUID, session: Session = Depends(get_session)):
    return service.get_user(session, user_id)


@router.patch("/{user_id}/role", response_model=UserRead)
def set_role(
    user_id: uuid.UUID,
    payload: UserRoleUpdate,
    session: Session = Depends(get_session),
    admin: User = Depends(require_admin),
):
    return service.set_role(session, admin, user_id, payload)


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_user(
    user_id: uuid.UUID,
    session: Session = Depends(get_session),
    admin: User = Depends(require_admin),
):
    """
    Delete an account without orders.
    """
    service.remove_user(session, admin, user_id)
