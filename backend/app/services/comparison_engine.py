"""
Comparison Engine
─────────────────
Places a new item into an already-rated collection by bisection.

Flow:
  1. SEEDING    — first opponent is the rated item inside the category range
                  closest to the category seed. None in range → seed wins.
  2. COMPARING  — each answer narrows InsertionBounds; the next opponent is
                  the median-by-rank of items strictly inside the bounds.
  3. RESOLVED   — no candidate left → midpoint of the bounds.
                  A tie resolves at once to the opponent's rating.

Each round removes at least the presented opponent from the candidate set,
so the loop always terminates.
"""
import logging
from enum import Enum
from typing import Hashable, Sequence

from app.services.rating_categories import CategoryBounds
from app.services.rating_types import (
    ComparisonError,
    ComparisonOutcome,
    NextStep,
    Outcome,
    RatedItem,
)

logger = logging.getLogger(__name__)


class EngineState(str, Enum):
    SEEDING = "seeding"
    COMPARING = "comparing"
    RESOLVED = "resolved"


class InsertionBounds:
    """[lower, upper] window the new rating is known to fall in. Only ever shrinks."""

    __slots__ = ("lower", "upper")

    def __init__(self, lower: float, upper: float) -> None:
        self.lower = lower
        self.upper = upper

    def raise_lower(self, value: float) -> None:
        self.lower = max(self.lower, value)

    def drop_upper(self, value: float) -> None:
        self.upper = min(self.upper, value)

    @property
    def midpoint(self) -> float:
        return (self.lower + self.upper) / 2

    def strictly_contains(self, value: float) -> bool:
        return self.lower < value < self.upper

    def __repr__(self) -> str:
        return f"<InsertionBounds [{self.lower}, {self.upper}]>"


class ComparisonEngine:
    """
    Bisection state machine for one insertion.

    Call start() once, then record() with each of the user's answers until
    the returned NextStep is resolved.
    """

    mode = "bisection"

    def __init__(self, category: CategoryBounds, rated_items: Sequence[RatedItem]) -> None:
        self.category = category
        self.items = [item for item in rated_items if item.rating is not None]
        self.bounds = InsertionBounds(category.lower, category.upper)
        self.history: list[ComparisonOutcome] = []
        self.state = EngineState.SEEDING
        self.current: RatedItem | None = None
        self.final_rating: float | None = None
        # Opponent the new item tied with; kept out of this round's writes.
        self.exempt_id: Hashable | None = None

    def start(self) -> NextStep:
        if self.state is not EngineState.SEEDING:
            raise ComparisonError("Comparison already started")

        lower, upper, seed = self.category
        in_range = [item for item in self.items if lower <= item.rating <= upper]
        if not in_range:
            logger.debug("No rated item in [%s, %s]; using seed %s", lower, upper, seed)
            return self._resolve(seed)

        opponent = min(in_range, key=lambda item: abs(item.rating - seed))
        return self._present(opponent)

    def record(self, opponent_id: Hashable, outcome: Outcome) -> NextStep:
        """Apply the user's answer about the current opponent."""
        if self.state is not EngineState.COMPARING or self.current is None:
            raise ComparisonError(f"No comparison pending (state={self.state.value})")
        if opponent_id != self.current.id:
            raise ComparisonError(
                f"Expected an answer about {self.current.id!r}, got {opponent_id!r}"
            )

        outcome = Outcome(outcome)
        opponent = self.current
        self.history.append(ComparisonOutcome(opponent.id, opponent.rating, outcome))

        if outcome is Outcome.TIE:
            self.exempt_id = opponent.id
            return self._resolve(opponent.rating)
        if outcome is Outcome.WIN:
            self.bounds.raise_lower(opponent.rating)
        else:
            self.bounds.drop_upper(opponent.rating)

        return self._next_opponent()

    def _next_opponent(self) -> NextStep:
        candidates = sorted(
            (item for item in self.items if self.bounds.strictly_contains(item.rating)),
            key=lambda item: item.rating,
        )
        if not candidates:
            return self._resolve(self.bounds.midpoint)
        return self._present(candidates[len(candidates) // 2])

    def _present(self, opponent: RatedItem) -> NextStep:
        self.state = EngineState.COMPARING
        self.current = opponent
        logger.debug("Next opponent %r (%.4f), bounds %r", opponent.id, opponent.rating, self.bounds)
        return NextStep.compare_with(opponent)

    def _resolve(self, rating: float) -> NextStep:
        self.state = EngineState.RESOLVED
        self.current = None
        self.final_rating = rating
        logger.debug("Resolved at %.4f after %d comparisons", rating, len(self.history))
        return NextStep.done(rating)
