"""
Bootstrap Engine
────────────────
Rates the first few items, before there are enough ratings to bisect.

The new item is compared against a small random sample (preferring items in
the chosen category's range) and scored from its win rate and the average
strength of the opponents it faced. Bounds are never narrowed here.
"""
import logging
import random
from typing import Hashable, Sequence

from app.services.rating_categories import RATING_MAX, RATING_MIN, CategoryBounds
from app.services.rating_types import (
    ComparisonError,
    ComparisonOutcome,
    NextStep,
    Outcome,
    RatedItem,
    clamp,
)

logger = logging.getLogger(__name__)

MAX_BOOTSTRAP_OPPONENTS = 5
WIN_RATE_WEIGHT = 2.0
OPPONENT_WEIGHT = 0.3

UNIQUENESS_STEP = 0.1
UNIQUENESS_ATTEMPTS = 20

# Credit for a "can't decide" answer while bootstrapping.
TIE_CREDIT = 0.5


def score_from_outcomes(seed: float, outcomes: Sequence[ComparisonOutcome]) -> float:
    """
    seed + (win_rate - 0.5) * 2.0 + (avg_opponent - seed) * 0.3, clamped to
    the rating scale. No outcomes → seed.
    """
    if not outcomes:
        return seed

    wins = sum(
        1.0 if o.outcome is Outcome.WIN else TIE_CREDIT if o.outcome is Outcome.TIE else 0.0
        for o in outcomes
    )
    win_rate = wins / len(outcomes)
    avg_opponent = sum(o.opponent_rating for o in outcomes) / len(outcomes)

    raw = (
        seed
        + (win_rate - 0.5) * WIN_RATE_WEIGHT
        + (avg_opponent - seed) * OPPONENT_WEIGHT
    )
    return clamp(raw, RATING_MIN, RATING_MAX)


def unique_rating(rating: float, taken: set[float]) -> float:
    """
    Nudge *rating* off any existing rating.

    Tries +0.1, -0.1, +0.2, -0.2, … and returns the first free value on the
    scale. When every attempt is taken or off-scale, falls back to
    rating + 0.1 even though that may still collide.
    """
    if rating not in taken:
        return rating

    for attempt in range(UNIQUENESS_ATTEMPTS):
        step = (attempt // 2 + 1) * UNIQUENESS_STEP
        candidate = round(rating + step if attempt % 2 == 0 else rating - step, 10)
        if RATING_MIN <= candidate <= RATING_MAX and candidate not in taken:
            return candidate

    logger.info("No free rating near %.4f; falling back to +%s", rating, UNIQUENESS_STEP)
    return clamp(rating + UNIQUENESS_STEP, RATING_MIN, RATING_MAX)


class BootstrapEngine:
    """Win-rate scoring against a random sample. Same start()/record() contract as ComparisonEngine."""

    mode = "bootstrap"

    def __init__(
        self,
        category: CategoryBounds,
        rated_items: Sequence[RatedItem],
        *,
        max_opponents: int = MAX_BOOTSTRAP_OPPONENTS,
        rng: random.Random | None = None,
    ) -> None:
        self.category = category
        self.items = [item for item in rated_items if item.rating is not None]
        self.max_opponents = max_opponents
        self.rng = rng or random.Random()
        self.opponents: list[RatedItem] = []
        self.history: list[ComparisonOutcome] = []
        self.final_rating: float | None = None
        self.exempt_id: Hashable | None = None
        self._started = False

    @property
    def current(self) -> RatedItem | None:
        if self.final_rating is not None or len(self.history) >= len(self.opponents):
            return None
        return self.opponents[len(self.history)]

    def start(self) -> NextStep:
        if self._started:
            raise ComparisonError("Comparison already started")
        self._started = True

        if not self.items:
            return self._resolve(self.category.seed)

        lower, upper, _ = self.category
        pool = [item for item in self.items if lower <= item.rating <= upper] or self.items
        sample_size = min(len(self.items), self.max_opponents, len(pool))
        self.opponents = self.rng.sample(pool, sample_size)
        logger.debug("Bootstrap sample: %r", [item.id for item in self.opponents])

        return self._step()

    def record(self, opponent_id: Hashable, outcome: Outcome) -> NextStep:
        opponent = self.current
        if opponent is None:
            raise ComparisonError("No comparison pending")
        if opponent_id != opponent.id:
            raise ComparisonError(
                f"Expected an answer about {opponent.id!r}, got {opponent_id!r}"
            )

        self.history.append(ComparisonOutcome(opponent.id, opponent.rating, Outcome(outcome)))
        return self._step()

    def _step(self) -> NextStep:
        opponent = self.current
        if opponent is not None:
            return NextStep.compare_with(opponent)

        rating = score_from_outcomes(self.category.seed, self.history)
        rating = unique_rating(rating, {item.rating for item in self.items})
        return self._resolve(rating)

    def _resolve(self, rating: float) -> NextStep:
        self.final_rating = rating
        logger.debug("Bootstrap resolved at %.4f after %d comparisons", rating, len(self.history))
        return NextStep.done(rating)
