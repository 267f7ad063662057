"""
Rating Categories
─────────────────
The coarse "how did you feel about it?" buckets a new item is first placed in.

Each category owns a contiguous slice of the 1.0–10.0 scale and a seed rating
inside that slice. Together the categories must partition the whole scale;
the table checks this once when it is built and refuses to exist otherwise.
"""
from enum import Enum
from typing import Iterable, NamedTuple

RATING_MIN = 1.0
RATING_MAX = 10.0


class RatingCategory(str, Enum):
    DISLIKED = "disliked"
    DISAPPOINTED = "disappointed"
    DECENT = "decent"
    ENJOYED = "enjoyed"
    LOVED = "loved"


class CategoryBounds(NamedTuple):
    lower: float
    upper: float
    seed: float


class Category(NamedTuple):
    key: RatingCategory
    order: int
    lower_bound: float
    upper_bound: float
    seed: float
    label: str = ""
    description: str = ""

    @property
    def bounds(self) -> CategoryBounds:
        return CategoryBounds(self.lower_bound, self.upper_bound, self.seed)


class CategoryConfigError(Exception):
    """Raised when a category table does not partition the rating scale."""


class CategoryTable:
    """
    Immutable category → bounds lookup.

    Categories are kept sorted by ``order``; ascending order must mean
    ascending rating ranges.
    """

    def __init__(self, categories: Iterable[Category]) -> None:
        self._categories = tuple(sorted(categories, key=lambda c: c.order))
        self._by_key = {c.key: c for c in self._categories}
        self._validate()

    def _validate(self) -> None:
        cats = self._categories
        if not cats:
            raise CategoryConfigError("Category table is empty")
        if len(self._by_key) != len(cats):
            raise CategoryConfigError("Category keys must be unique")
        if len({c.order for c in cats}) != len(cats):
            raise CategoryConfigError("Category orders must be unique")

        for cat in cats:
            if not cat.lower_bound < cat.upper_bound:
                raise CategoryConfigError(
                    f"{cat.key.value}: lower bound {cat.lower_bound} "
                    f"must be below upper bound {cat.upper_bound}"
                )
            if not cat.lower_bound <= cat.seed <= cat.upper_bound:
                raise CategoryConfigError(
                    f"{cat.key.value}: seed {cat.seed} outside "
                    f"[{cat.lower_bound}, {cat.upper_bound}]"
                )

        if cats[0].lower_bound != RATING_MIN:
            raise CategoryConfigError(
                f"Lowest category must start at {RATING_MIN}, got {cats[0].lower_bound}"
            )
        if cats[-1].upper_bound != RATING_MAX:
            raise CategoryConfigError(
                f"Highest category must end at {RATING_MAX}, got {cats[-1].upper_bound}"
            )
        for below, above in zip(cats, cats[1:]):
            if below.upper_bound < above.lower_bound:
                raise CategoryConfigError(
                    f"Gap between {below.key.value} and {above.key.value}: "
                    f"({below.upper_bound}, {above.lower_bound})"
                )
            if below.upper_bound > above.lower_bound:
                raise CategoryConfigError(
                    f"{below.key.value} overlaps {above.key.value}"
                )

    def __iter__(self):
        return iter(self._categories)

    def __len__(self) -> int:
        return len(self._categories)

    def get(self, category: RatingCategory | str) -> Category:
        try:
            return self._by_key[RatingCategory(category)]
        except (KeyError, ValueError):
            raise KeyError(f"Unknown category: {category!r}") from None

    def bounds_for(self, category: RatingCategory | str) -> CategoryBounds:
        """Return (lower, upper, seed) for *category*."""
        return self.get(category).bounds

    def category_for_rating(self, rating: float) -> Category:
        """
        Return the category whose range holds *rating*.

        Ranges are lower-inclusive; the top category also holds the scale
        maximum. Anything below the scale falls into the lowest category.
        """
        for cat in reversed(self._categories):
            if rating >= cat.lower_bound:
                return cat
        return self._categories[0]


DEFAULT_CATEGORIES: tuple[Category, ...] = (
    Category(
        RatingCategory.DISLIKED, 1, 1.0, 2.5, 1.25,
        "Didn't Like It", "Wouldn't recommend or return",
    ),
    Category(
        RatingCategory.DISAPPOINTED, 2, 2.5, 5.0, 3.25,
        "A Bit Disappointed", "Expected more from it",
    ),
    Category(
        RatingCategory.DECENT, 3, 5.0, 7.5, 6.25,
        "It Was Decent", "Nice enough, nothing special",
    ),
    Category(
        RatingCategory.ENJOYED, 4, 7.5, 9.0, 8.25,
        "Really Enjoyed It", "Had a great time overall",
    ),
    Category(
        RatingCategory.LOVED, 5, 9.0, 10.0, 9.5,
        "Absolutely Loved It", "One of your favorite places",
    ),
)

# Built at import so a broken table fails the process on startup.
DEFAULT_CATEGORY_TABLE = CategoryTable(DEFAULT_CATEGORIES)
