"""
Rating Session
──────────────
One user rating one item, from category choice to commit.

    COMPARING ──(last answer / tie)──▶ RESOLVED ──commit()──▶ COMMITTED
        │                                  │
        └──────────── cancel() ────────────┴──────────────▶ CANCELLED

The session works on a snapshot of the user's rated items taken when it
starts. Nothing is written until commit(); a cancelled session leaves the
store untouched.

Small collections (< BOOTSTRAP_MIN_ITEMS rated) go through BootstrapEngine
and skip normalization, except for the insertion that completes the
bootstrap set, which normalizes (the "reveal") the whole collection.
"""
import asyncio
import logging
import random
from enum import Enum
from typing import Hashable, Sequence
from uuid import UUID, uuid4

from app.services.bootstrap_engine import MAX_BOOTSTRAP_OPPONENTS, BootstrapEngine
from app.services.comparison_engine import ComparisonEngine
from app.services.normalization import NormalizationResult, normalize_ratings
from app.services.rating_categories import (
    DEFAULT_CATEGORY_TABLE,
    CategoryTable,
    RatingCategory,
)
from app.services.rating_store import RatingStore
from app.services.rating_types import ComparisonOutcome, NextStep, Outcome, RatedItem

logger = logging.getLogger(__name__)

BOOTSTRAP_MIN_ITEMS = 5


class SessionState(str, Enum):
    COMPARING = "comparing"
    RESOLVED = "resolved"
    COMMITTED = "committed"
    CANCELLED = "cancelled"


class SessionStateError(Exception):
    """Raised when an operation does not fit the session's current state."""


class SessionNotFoundError(Exception):
    """Raised when a session id is unknown or belongs to another user."""


class SessionConflictError(Exception):
    """Raised when a user already has a rating session open."""


class RatingSession:
    def __init__(
        self,
        user_id: Hashable,
        item_id: Hashable,
        category: RatingCategory | str,
        snapshot: Sequence[RatedItem],
        *,
        table: CategoryTable = DEFAULT_CATEGORY_TABLE,
        bootstrap_min_items: int = BOOTSTRAP_MIN_ITEMS,
        max_bootstrap_opponents: int = MAX_BOOTSTRAP_OPPONENTS,
        rng: random.Random | None = None,
    ) -> None:
        self.id: UUID = uuid4()
        self.user_id = user_id
        self.item_id = item_id
        self.category = table.get(category)
        self.snapshot = [
            item for item in snapshot
            if item.rating is not None and item.id != item_id
        ]
        self.bootstrap_min_items = bootstrap_min_items

        bounds = self.category.bounds
        if len(self.snapshot) < bootstrap_min_items:
            self.engine = BootstrapEngine(
                bounds,
                self.snapshot,
                max_opponents=max_bootstrap_opponents,
                rng=rng,
            )
        else:
            self.engine = ComparisonEngine(bounds, self.snapshot)

        self.committed_rating: float | None = None
        self.updated_item_ids: list[Hashable] = []
        self.failed_item_ids: list[Hashable] = []

        self.next_step = self.engine.start()
        self.state = SessionState.RESOLVED if self.next_step.resolved else SessionState.COMPARING

    def __repr__(self) -> str:
        return f"<RatingSession {self.id} item={self.item_id!r} state={self.state.value}>"

    # ── Read-only views ──────────────────────────────────────────────────────

    @property
    def mode(self) -> str:
        return self.engine.mode

    @property
    def history(self) -> list[ComparisonOutcome]:
        return self.engine.history

    @property
    def final_rating(self) -> float | None:
        """Committed rating once committed, else the engine's pre-normalization rating."""
        if self.committed_rating is not None:
            return self.committed_rating
        return self.engine.final_rating

    @property
    def reveals(self) -> bool:
        """
        True when this insertion completes the bootstrap set.

        Re-rating one of exactly five items leaves four in the snapshot, so
        that item goes through bootstrap and the reveal again.
        """
        return self.mode == BootstrapEngine.mode and len(self.snapshot) + 1 == self.bootstrap_min_items

    @property
    def is_open(self) -> bool:
        return self.state in (SessionState.COMPARING, SessionState.RESOLVED)

    # ── Transitions ──────────────────────────────────────────────────────────

    def record_comparison(self, opponent_id: Hashable, outcome: Outcome | str) -> NextStep:
        if self.state is not SessionState.COMPARING:
            raise SessionStateError(f"Session is {self.state.value}; no comparison pending")

        self.next_step = self.engine.record(opponent_id, Outcome(outcome))
        if self.next_step.resolved:
            self.state = SessionState.RESOLVED
        return self.next_step

    def cancel(self) -> None:
        if not self.is_open:
            raise SessionStateError(f"Session is already {self.state.value}")
        self.state = SessionState.CANCELLED

    def normalization(self) -> NormalizationResult | None:
        """
        Compute what commit() would persist, without writing anything.

        Returns None for bootstrap insertions that do not complete the set.
        """
        if self.state is not SessionState.RESOLVED:
            raise SessionStateError(f"Session is {self.state.value}; nothing to normalize")
        if self.mode == BootstrapEngine.mode and not self.reveals:
            return None

        new_item = RatedItem(self.item_id, self.engine.final_rating)
        result = normalize_ratings(self.snapshot, new_item, exempt_id=self.engine.exempt_id)
        if not self.reveals:
            return result

        # First reveal: also sweep the whole collection so every gap holds.
        swept = normalize_ratings([RatedItem(i, r) for i, r in result.ratings.items()])
        before = {item.id: item.rating for item in self.snapshot}
        return NormalizationResult(
            ratings=swept.ratings,
            changed={
                item_id: rating
                for item_id, rating in swept.ratings.items()
                if item_id != self.item_id and rating != before.get(item_id)
            },
            final_rating=swept.ratings[self.item_id],
            min_gap=result.min_gap,
            scale=result.scale * swept.scale,
        )

    async def commit(self, store: RatingStore) -> float:
        """
        Normalize, persist, and return the committed rating.

        The new item's own write must succeed (RatingStoreError propagates and
        the session stays RESOLVED, so commit can be retried). Neighbour writes
        are dispatched together; a failed one is logged and reported in
        failed_item_ids, never raised.
        """
        result = self.normalization()
        if result is None:
            final_rating = self.engine.final_rating
            changed: dict[Hashable, float] = {}
        else:
            final_rating = result.final_rating
            changed = result.changed

        await store.write_rating(self.item_id, final_rating, category=self.category.key.value)

        item_ids = list(changed)
        outcomes = await asyncio.gather(
            *(store.write_rating(item_id, changed[item_id]) for item_id in item_ids),
            return_exceptions=True,
        )
        for item_id, outcome in zip(item_ids, outcomes):
            if isinstance(outcome, Exception):
                logger.warning("Could not write normalized rating for %r: %s", item_id, outcome)
                self.failed_item_ids.append(item_id)
            else:
                self.updated_item_ids.append(item_id)

        self.committed_rating = final_rating
        self.state = SessionState.COMMITTED
        logger.info(
            "Committed %r at %.4f (%s, %d comparisons, %d neighbours updated, %d failed)",
            self.item_id,
            final_rating,
            self.mode,
            len(self.history),
            len(self.updated_item_ids),
            len(self.failed_item_ids),
        )
        return final_rating


class SessionRegistry:
    """
    Open sessions, at most one per user.

    Sessions live here between the HTTP round trips of a rating flow and are
    dropped on commit or cancel.
    """

    def __init__(self) -> None:
        self._by_user: dict[Hashable, RatingSession] = {}

    def __len__(self) -> int:
        return len(self._by_user)

    def active_for(self, user_id: Hashable) -> RatingSession | None:
        return self._by_user.get(user_id)

    def ensure_free(self, user_id: Hashable) -> None:
        active = self.active_for(user_id)
        if active is not None:
            raise SessionConflictError(
                f"Session {active.id} for item {active.item_id!r} is still open"
            )

    def open(self, session: RatingSession) -> RatingSession:
        self.ensure_free(session.user_id)
        self._by_user[session.user_id] = session
        return session

    def get(self, session_id: UUID, user_id: Hashable) -> RatingSession:
        session = self._by_user.get(user_id)
        if session is None or session.id != session_id:
            raise SessionNotFoundError(f"Rating session {session_id} not found")
        return session

    def close(self, session: RatingSession) -> None:
        if self._by_user.get(session.user_id) is session:
            del self._by_user[session.user_id]

    def clear(self) -> None:
        self._by_user.clear()


session_registry = SessionRegistry()
