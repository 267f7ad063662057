"""Initial schema — users, user_ratings

Revision ID: 0001
Revises: —
Create Date: 2025-07-20 00:00:00
"""
from typing import Sequence, Union

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from alembic import op

revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # ── Extensions ────────────────────────────────────────────────────────────
    op.execute("CREATE EXTENSION IF NOT EXISTS pgcrypto")
    op.execute("CREATE EXTENSION IF NOT EXISTS citext")

    # ── Trigger function (auto-update updated_at) ─────────────────────────────
    op.execute("""
        CREATE OR REPLACE FUNCTION set_updated_at()
        RETURNS trigger
        LANGUAGE plpgsql
        AS $$
        BEGIN
          NEW.updated_at = now();
          RETURN NEW;
        END;
        $$
    """)

    # ── users ─────────────────────────────────────────────────────────────────
    # Mirror of the identity service's users; id matches the JWT sub claim.
    op.create_table(
        "users",
        sa.Column("id", UUID(as_uuid=True), primary_key=True,
                  server_default=sa.text("gen_random_uuid()")),
        sa.Column("username", sa.Text, nullable=False),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default="true"),
        sa.Column("created_at", sa.DateTime(timezone=True),
                  nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True),
                  nullable=False, server_default=sa.text("now()")),
        sa.UniqueConstraint("username", name="uq_users_username"),
    )
    # citext: case-insensitive unique — 'Alice' and 'alice' are the same
    op.execute("ALTER TABLE users ALTER COLUMN username TYPE citext")

    op.execute("""
        CREATE TRIGGER trg_users_updated_at
        BEFORE UPDATE ON users
        FOR EACH ROW EXECUTE FUNCTION set_updated_at()
    """)

    # ── user_ratings ──────────────────────────────────────────────────────────
    op.create_table(
        "user_ratings",
        sa.Column("id", UUID(as_uuid=True), primary_key=True,
                  server_default=sa.text("gen_random_uuid()")),
        sa.Column(
            "user_id",
            UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("item_id", sa.Text, nullable=False),
        sa.Column("rating", sa.Float, nullable=True),
        sa.Column("category", sa.String(20), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True),
                  nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True),
                  nullable=False, server_default=sa.text("now()")),
        sa.UniqueConstraint("user_id", "item_id", name="uq_user_item"),
        sa.CheckConstraint(
            "rating IS NULL OR (rating > 0.0 AND rating <= 10.0)",
            name="chk_rating_0_10",
        ),
        sa.CheckConstraint(
            "category IS NULL OR category IN "
            "('disliked', 'disappointed', 'decent', 'enjoyed', 'loved')",
            name="chk_rating_category",
        ),
    )
    op.create_index("ix_user_ratings_user_id", "user_ratings", ["user_id"])
    op.create_index("idx_user_ratings_user_rating", "user_ratings", ["user_id", "rating"])

    op.execute("""
        CREATE TRIGGER trg_user_ratings_updated_at
        BEFORE UPDATE ON user_ratings
        FOR EACH ROW EXECUTE FUNCTION set_updated_at()
    """)


def downgrade() -> None:
    # Drop in reverse dependency order
    op.drop_table("user_ratings")
    op.drop_table("users")
    op.execute("DROP FUNCTION IF EXISTS set_updated_at()")
    op.execute("DROP EXTENSION IF EXISTS citext")
    op.execute("DROP EXTENSION IF EXISTS pgcrypto")
