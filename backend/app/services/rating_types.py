"""
Rating value types
──────────────────
Plain value objects shared by the rating engines and the session.
Never import DB models here — keep this layer pure.
"""
from enum import Enum
from typing import Hashable, NamedTuple


class Outcome(str, Enum):
    """A user's answer to "which do you prefer?"."""

    WIN = "win"    # the new item is preferred
    LOSE = "lose"  # the opponent is preferred
    TIE = "tie"


class RatedItem(NamedTuple):
    """An item id with its current rating (None when not rated yet)."""

    id: Hashable
    rating: float | None


class ComparisonOutcome(NamedTuple):
    opponent_id: Hashable
    opponent_rating: float
    outcome: Outcome

    @property
    def new_item_wins(self) -> bool:
        return self.outcome is Outcome.WIN


class NextStep(NamedTuple):
    """
    What the caller should do next.

    Either an opponent to present (opponent_id + opponent_rating) or the
    resolved final_rating. Exactly one of the two halves is set.
    """

    opponent_id: Hashable | None = None
    opponent_rating: float | None = None
    final_rating: float | None = None

    @property
    def resolved(self) -> bool:
        return self.final_rating is not None

    @classmethod
    def compare_with(cls, item: RatedItem) -> "NextStep":
        return cls(opponent_id=item.id, opponent_rating=item.rating)

    @classmethod
    def done(cls, final_rating: float) -> "NextStep":
        return cls(final_rating=final_rating)


class ComparisonError(ValueError):
    """Raised when a comparison is recorded out of turn or against the wrong opponent."""


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))
