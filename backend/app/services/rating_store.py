"""
Rating store — the engine's only view of persistence.

RatingSession talks to the narrow async RatingStore contract; SqlRatingStore
implements it on top of a SQLAlchemy session scoped to one user.
"""
from typing import Protocol
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.db.models import UserRating
from app.services.rating_types import RatedItem


class RatingStoreError(Exception):
    """Raised when the backing store cannot be read or written."""


class RatingStore(Protocol):
    async def fetch_all_rated(self, exclude_item_id: str | None = None) -> list[RatedItem]:
        """Snapshot of every rated item, minus the one being rated."""
        ...

    async def write_rating(
        self,
        item_id: str,
        value: float,
        *,
        category: str | None = None,
    ) -> None:
        """Persist one rating (and the chosen category, if given). Raises RatingStoreError."""
        ...


class SqlRatingStore:
    """
    RatingStore backed by the user_ratings table.

    Every write commits on its own, so one failed row never rolls back the
    others written in the same normalization pass.
    """

    def __init__(self, db: Session, user_id: UUID) -> None:
        self.db = db
        self.user_id = user_id

    async def fetch_all_rated(self, exclude_item_id: str | None = None) -> list[RatedItem]:
        query = self.db.query(UserRating.item_id, UserRating.rating).filter(
            UserRating.user_id == self.user_id,
            UserRating.rating.isnot(None),
        )
        if exclude_item_id is not None:
            query = query.filter(UserRating.item_id != exclude_item_id)

        try:
            rows = query.all()
        except SQLAlchemyError as exc:
            raise RatingStoreError(f"Could not read ratings: {exc}") from exc
        return [RatedItem(item_id, float(rating)) for item_id, rating in rows]

    async def write_rating(
        self,
        item_id: str,
        value: float,
        *,
        category: str | None = None,
    ) -> None:
        try:
            row = (
                self.db.query(UserRating)
                .filter(UserRating.user_id == self.user_id, UserRating.item_id == item_id)
                .first()
            )
            if row is None:
                row = UserRating(user_id=self.user_id, item_id=item_id)
                self.db.add(row)
            row.rating = value
            if category is not None:
                row.category = category
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise RatingStoreError(f"Could not write rating for {item_id}: {exc}") from exc

    def list_ratings(self) -> list[UserRating]:
        """The user's rated items, best first."""
        return (
            self.db.query(UserRating)
            .filter(UserRating.user_id == self.user_id, UserRating.rating.isnot(None))
            .order_by(UserRating.rating.desc(), UserRating.item_id.asc())
            .all()
        )

    def count_rated(self) -> int:
        return (
            self.db.query(UserRating)
            .filter(UserRating.user_id == self.user_id, UserRating.rating.isnot(None))
            .count()
        )
