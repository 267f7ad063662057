"""
Rating business logic — start, compare, commit, cancel; list and progress.

Thin glue between the HTTP layer, the session registry and the store.
The algorithms themselves live in comparison_engine / bootstrap_engine /
normalization and know nothing about users or databases.
"""
import random
from uuid import UUID

from app.core.config import settings
from app.services.rating_categories import DEFAULT_CATEGORY_TABLE, RatingCategory
from app.services.rating_session import RatingSession, SessionRegistry
from app.services.rating_store import RatingStore, SqlRatingStore
from app.services.rating_types import NextStep, Outcome


# ── Session lifecycle ────────────────────────────────────────────────────────


async def start_session(
    store: RatingStore,
    registry: SessionRegistry,
    user_id: UUID,
    item_id: str,
    category: RatingCategory,
    *,
    rng: random.Random | None = None,
) -> RatingSession:
    """
    Open a rating session for *item_id*.

    Raises:
        SessionConflictError: The user already has a session open.
        RatingStoreError: The rated-item snapshot could not be read.
    """
    registry.ensure_free(user_id)
    snapshot = await store.fetch_all_rated(exclude_item_id=item_id)

    session = RatingSession(
        user_id,
        item_id,
        category,
        snapshot,
        table=DEFAULT_CATEGORY_TABLE,
        bootstrap_min_items=settings.RATING_BOOTSTRAP_MIN_ITEMS,
        max_bootstrap_opponents=settings.RATING_BOOTSTRAP_MAX_OPPONENTS,
        rng=rng,
    )
    return registry.open(session)


def record_comparison(
    registry: SessionRegistry,
    user_id: UUID,
    session_id: UUID,
    opponent_id: str,
    outcome: Outcome,
) -> NextStep:
    """
    Raises:
        SessionNotFoundError, SessionStateError, ComparisonError
    """
    session = registry.get(session_id, user_id)
    return session.record_comparison(opponent_id, outcome)


async def commit_session(
    store: RatingStore,
    registry: SessionRegistry,
    user_id: UUID,
    session_id: UUID,
) -> RatingSession:
    """
    Normalize and persist. The session is closed only once commit succeeds.

    Raises:
        SessionNotFoundError, SessionStateError, RatingStoreError
    """
    session = registry.get(session_id, user_id)
    await session.commit(store)
    registry.close(session)
    return session


def cancel_session(registry: SessionRegistry, user_id: UUID, session_id: UUID) -> None:
    """Abandon a session. Nothing has been written, so nothing is undone."""
    session = registry.get(session_id, user_id)
    session.cancel()
    registry.close(session)


# ── Read operations ──────────────────────────────────────────────────────────


def list_categories() -> list[dict]:
    return [
        {
            "category": cat.key,
            "order": cat.order,
            "label": cat.label,
            "description": cat.description,
            "lower_bound": cat.lower_bound,
            "upper_bound": cat.upper_bound,
            "seed": cat.seed,
        }
        for cat in DEFAULT_CATEGORY_TABLE
    ]


def list_my_ratings(store: SqlRatingStore) -> list[dict]:
    """The user's rated items, best first, with the category each rating falls in now."""
    return [
        {
            "item_id": row.item_id,
            "rating": float(row.rating),
            "category": DEFAULT_CATEGORY_TABLE.category_for_rating(row.rating).key,
            "updated_at": row.updated_at,
        }
        for row in store.list_ratings()
    ]


def rating_progress(store: SqlRatingStore) -> dict:
    """How far the user is through the bootstrap set."""
    required = settings.RATING_BOOTSTRAP_MIN_ITEMS
    rated = store.count_rated()
    return {
        "rated_count": rated,
        "required_count": required,
        "calibrated": rated >= required,
    }
