"""
SQLAlchemy ORM models.

Column names and constraints mirror migration 0001 exactly.

Users are owned by the external identity system; this service only reads
them to scope requests. Catalog entities (cities, places) live elsewhere;
a rating references its item by an opaque text id.
"""
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import DeclarativeBase, relationship


# ── Base ──────────────────────────────────────────────────────────────────────

class Base(DeclarativeBase):
    pass


# ── Timestamp helper ──────────────────────────────────────────────────────────

def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ── Models ────────────────────────────────────────────────────────────────────

class User(Base):
    """Application user. Identity fields only; credentials live upstream."""
    __tablename__ = "users"

    id = Column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        comment="Primary key — UUID v4, matches the JWT sub claim",
    )
    username = Column(String(32), unique=True, nullable=False, index=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        default=_utcnow,
        onupdate=_utcnow,
        nullable=False,
    )

    ratings = relationship(
        "UserRating",
        back_populates="user",
        cascade="all, delete-orphan",
        lazy="dynamic",
    )

    def __repr__(self) -> str:
        return f"<User {self.username}>"


class UserRating(Base):
    """
    A single user's rating of a single item.

    rating    — 0 < rating <= 10.0, or NULL when the item is tracked but not
                yet rated. Written by the rating session and by
                normalization passes; the top-rated item reads 10.0.

    category  — the bucket chosen when the item was last rated (display only;
                normalization may move the rating out of its range).
    """
    __tablename__ = "user_ratings"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    item_id = Column(Text, nullable=False)
    rating = Column(Float, nullable=True)
    category = Column(String(20), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        default=_utcnow,
        onupdate=_utcnow,
        nullable=False,
    )

    __table_args__ = (
        # A user rates each item once; re-rating overwrites
        UniqueConstraint("user_id", "item_id", name="uq_user_item"),
        # Covering index: a user's full sorted collection in one index scan
        Index("idx_user_ratings_user_rating", "user_id", "rating"),
        CheckConstraint(
            "rating IS NULL OR (rating > 0.0 AND rating <= 10.0)",
            name="chk_rating_0_10",
        ),
        CheckConstraint(
            "category IS NULL OR category IN "
            "('disliked', 'disappointed', 'decent', 'enjoyed', 'loved')",
            name="chk_rating_category",
        ),
    )

    user = relationship("User", back_populates="ratings")

    def __repr__(self) -> str:
        return f"<UserRating user={self.user_id} item={self.item_id} rating={self.rating}>"
