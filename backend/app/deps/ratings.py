"""
Rating dependencies — the store and session registry for the current user.

Override either in tests via app.dependency_overrides.
"""
from fastapi import Depends
from sqlalchemy.orm import Session

from app.db.models import User
from app.db.session import get_db
from app.deps.auth import get_current_user
from app.services.rating_session import SessionRegistry, session_registry
from app.services.rating_store import SqlRatingStore


def get_rating_store(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> SqlRatingStore:
    """A store scoped to the authenticated user's ratings."""
    return SqlRatingStore(db, current_user.id)


def get_session_registry() -> SessionRegistry:
    return session_registry
