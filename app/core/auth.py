# app/core/auth.py
import uuid
from typing import Any

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlmodel import Session

from app.core.config import get_settings
from app.database import get_session
from app.models.user import User

settings = get_settings()

# auto_error=False: a missing Authorization header means "guest", which
# public routes (catalog, payment verification) accept.
bearer_scheme = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


def decode_access_token(token: str) -> dict[str, Any]:
    """
    Verify a Supabase access token and return its claims.

    Signature and `exp` are checked; `aud` is not (Supabase sets it per
    project and it carries no extra guarantee here).
    """
    try:
        return jwt.decode(
            token,
            settings.SUPABASE_JWT_SECRET,
            algorithms=[settings.SUPABASE_JWT_ALG],
            options={"verify_aud": False},
        )
    except JWTError:
        raise _unauthorized("Invalid or expired token")


def _claims_identity(claims: dict[str, Any]) -> tuple[uuid.UUID, str]:
    sub = claims.get("sub")
    email = claims.get("email")
    if not sub or not email:
        raise _unauthorized("Token missing sub/email")
    try:
        return uuid.UUID(sub), email
    except ValueError:
        raise _unauthorized("Invalid sub in token")


def _provision_profile(session: Session, user_id: uuid.UUID, email: str, claims: dict) -> User:
    """
    First request of a freshly signed-up shopper: mirror the identity into
    `users`. The sign-up form sends first/last name as user_metadata; older
    accounts only have an email, whose local part becomes the first name.
    """
    metadata = claims.get("user_metadata") or {}
    first_name = (metadata.get("first_name") or "").strip() or email.split("@", 1)[0]
    user = User(
        id=user_id,
        email=email,
        first_name=first_name[:50],
        last_name=(metadata.get("last_name") or "").strip()[:50],
        role="user",
    )
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    session: Session = Depends(get_session),
) -> User | None:
    """
    The shopper behind the bearer token, or None for guests.

    Raises HTTPException(401) for a token that is present but unusable.
    """
    if credentials is None:
        return None

    claims = decode_access_token(credentials.credentials)
    user_id, email = _claims_identity(claims)

    user = session.get(User, user_id)
    if user is None:
        user = _provision_profile(session, user_id, email, claims)
    return user


def require_auth(user: User | None = Depends(get_current_user)) -> User:
    if user is None:
        raise _unauthorized("Authentication required")
    return user


def require_admin(user: User = Depends(require_auth)) -> User:
    """Store staff only (role='admin')."""
    if not user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return user


def require_user(user: User = Depends(require_auth)) -> User:
    """
    Shoppers only (role='user').

    Used for checkout: staff accounts browse and manage orders but do not
    place them.
    """
    if user.role != "user":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Customer access required",
        )
    return user
