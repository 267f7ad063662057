"""In-memory RatingStore used by the session, service and API tests."""
from app.services.rating_store import RatingStoreError
from app.services.rating_types import RatedItem


class FakeRatingStore:
    def __init__(self, ratings=None, *, fail_writes_for=(), fail_reads=False) -> None:
        self.ratings = dict(ratings or {})
        self.categories: dict[str, str] = {}
        self.fail_writes_for = set(fail_writes_for)
        self.fail_reads = fail_reads
        self.writes: list[tuple[str, float]] = []

    async def fetch_all_rated(self, exclude_item_id=None) -> list[RatedItem]:
        if self.fail_reads:
            raise RatingStoreError("store offline")
        return [
            RatedItem(item_id, rating)
            for item_id, rating in self.ratings.items()
            if item_id != exclude_item_id and rating is not None
        ]

    async def write_rating(self, item_id, value, *, category=None) -> None:
        if item_id in self.fail_writes_for:
            raise RatingStoreError(f"write rejected for {item_id}")
        self.writes.append((item_id, value))
        self.ratings[item_id] = value
        if category is not None:
            self.categories[item_id] = category

    @property
    def written_ids(self) -> list[str]:
        return [item_id for item_id, _ in self.writes]
