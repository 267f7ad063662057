"""
Rating Normalization
────────────────────
Runs after a new rating is resolved, over the whole rated collection:

  1. Sort ascending and find the new item.
  2. Enforce a minimum gap outward from the new item: push lower neighbours
     down and higher neighbours up, cascading only as far as needed. If the
     upward cascade runs past 10.0, the top is pinned at 10.0 and the
     overflow is folded back down the list. After a tie the fold stops at
     the new item, which keeps its opponent's rating.
  3. Rescale so the best item reads exactly 10.0.

The minimum gap shrinks as the collection grows:
    min_gap = clamp(10 / (n + 1), 0.001, 0.2)

Relative order is preserved throughout. Running the pass again on its own
output (no new item) changes nothing.
"""
from typing import Hashable, NamedTuple, Sequence

from app.services.rating_categories import RATING_MAX
from app.services.rating_types import RatedItem, clamp

MIN_GAP_FLOOR = 0.001
MIN_GAP_CEILING = 0.2
RATING_FLOOR = 0.0001

# Float slack when checking gaps, so a re-run never "fixes" rounding noise.
GAP_TOLERANCE = 1e-9


class NormalizationResult(NamedTuple):
    ratings: dict[Hashable, float]  # every item, after normalization
    changed: dict[Hashable, float]  # items to write back (excludes new + exempt)
    final_rating: float | None      # the new item's normalized rating
    min_gap: float
    scale: float


def min_gap_for(n: int) -> float:
    """Minimum spacing between neighbours in a collection of *n* items."""
    return clamp(RATING_MAX / (n + 1), MIN_GAP_FLOOR, MIN_GAP_CEILING)


def normalize_ratings(
    existing: Sequence[RatedItem],
    new_item: RatedItem | None = None,
    *,
    exempt_id: Hashable | None = None,
) -> NormalizationResult:
    """
    Normalize *existing* plus an optional freshly rated *new_item*.

    Args:
        existing: Items already rated (None ratings are ignored).
        new_item: The item just placed. When omitted, the pass sweeps upward
                  from the lowest item across the whole collection.
        exempt_id: An item the new one deliberately tied with. It stays out
                   of the gap passes and is never reported as changed.

    Returns:
        NormalizationResult. ``changed`` only lists items whose rating moved.
    """
    new_id = new_item.id if new_item is not None else None
    before = {
        item.id: item.rating
        for item in existing
        if item.rating is not None and (new_item is None or item.id != new_id)
    }
    n = len(before) + (1 if new_item is not None else 0)
    min_gap = min_gap_for(n)

    # Stable sort: the new item lands after any existing equal rating.
    entries = [[item_id, rating] for item_id, rating in before.items() if item_id != exempt_id]
    if new_item is not None:
        entries.append([new_id, new_item.rating])
    entries.sort(key=lambda entry: entry[1])

    if new_item is not None:
        k = next(i for i, entry in enumerate(entries) if entry[0] == new_id)
    else:
        k = 0

    for i in range(k - 1, -1, -1):
        ceiling = entries[i + 1][1] - min_gap
        if entries[i][1] > ceiling + GAP_TOLERANCE:
            entries[i][1] = max(RATING_FLOOR, ceiling)

    for i in range(k + 1, len(entries)):
        floor = entries[i - 1][1] + min_gap
        if entries[i][1] < floor - GAP_TOLERANCE:
            entries[i][1] = floor

    # Pushed past the ceiling: pin the top at 10.0 and compact downward.
    # n * min_gap < 10 always, so there is room without ties.
    if entries and entries[-1][1] > RATING_MAX:
        step, stop = min_gap, -1
        if exempt_id is not None and exempt_id in before and k < len(entries) - 1:
            # A tie pins the new item to its opponent's rating. Only the items
            # above it move, packed tighter than min_gap if they must be.
            step = min(min_gap, (RATING_MAX - entries[k][1]) / (len(entries) - 1 - k))
            stop = k
        entries[-1][1] = RATING_MAX
        for i in range(len(entries) - 2, stop, -1):
            ceiling = entries[i + 1][1] - step
            if entries[i][1] <= ceiling + GAP_TOLERANCE:
                break
            entries[i][1] = max(RATING_FLOOR, ceiling)

    ratings = {item_id: rating for item_id, rating in entries}
    if exempt_id is not None and exempt_id in before:
        ratings[exempt_id] = before[exempt_id]

    scale = 1.0
    max_rating = max(ratings.values(), default=0.0)
    if 0 < max_rating < RATING_MAX:
        scale = RATING_MAX / max_rating
        ratings = {
            item_id: RATING_MAX if rating == max_rating else min(RATING_MAX, rating * scale)
            for item_id, rating in ratings.items()
        }

    skip = {exempt_id, new_id}
    changed = {
        item_id: rating
        for item_id, rating in ratings.items()
        if item_id not in skip and rating != before.get(item_id)
    }

    return NormalizationResult(
        ratings=ratings,
        changed=changed,
        final_rating=ratings[new_id] if new_item is not None else None,
        min_gap=min_gap,
        scale=scale,
    )
