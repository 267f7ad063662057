"""
Auth dependency — resolves the bearer token to the user whose ratings a
request may touch.

Usage in any route:
    from app.deps.auth import get_current_user

    @router.get("/ratings/me")
    def mine(user: User = Depends(get_current_user)):
        ...
"""
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from app.core.security import decode_access_token
from app.db.models import User
from app.db.session import get_db

# Tokens come from the identity service; tokenUrl is only for the docs UI.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> User:
    """
    Decode the bearer JWT and return the matching active User.

    Raises 401 for a bad token, an unknown user, or a deactivated account.
    """
    sub = decode_access_token(token)
    try:
        user_id = UUID(sub) if sub is not None else None
    except (ValueError, AttributeError, TypeError):
        user_id = None
    if user_id is None:
        raise _unauthorized("Invalid or expired token")

    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        raise _unauthorized("Invalid or expired token")
    if not user.is_active:
        raise _unauthorized("Account is deactivated")

    return user
