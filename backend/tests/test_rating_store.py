import unittest
from unittest.mock import patch
from uuid import uuid4

from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker

from app.db.models import Base, User, UserRating
from app.services.rating_store import RatingStoreError, SqlRatingStore


class TestSqlRatingStore(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self.engine = create_engine("sqlite://")
        Base.metadata.create_all(self.engine)
        self.db = sessionmaker(bind=self.engine)()

        self.user = User(id=uuid4(), username="ana")
        self.other = User(id=uuid4(), username="omar")
        self.db.add_all([self.user, self.other])
        self.db.commit()
        self.store = SqlRatingStore(self.db, self.user.id)

    def tearDown(self) -> None:
        self.db.close()
        self.engine.dispose()

    def _row(self, item_id: str) -> UserRating | None:
        return (
            self.db.query(UserRating)
            .filter(UserRating.user_id == self.user.id, UserRating.item_id == item_id)
            .first()
        )

    async def test_write_creates_then_updates_one_row(self) -> None:
        await self.store.write_rating("lisbon", 6.25, category="decent")
        row = self._row("lisbon")
        self.assertEqual(row.rating, 6.25)
        self.assertEqual(row.category, "decent")

        await self.store.write_rating("lisbon", 7.0)
        self.assertEqual(self.db.query(UserRating).count(), 1)
        row = self._row("lisbon")
        self.assertEqual(row.rating, 7.0)
        self.assertEqual(row.category, "decent")

    async def test_fetch_skips_excluded_unrated_and_other_users(self) -> None:
        self.db.add_all([
            UserRating(user_id=self.user.id, item_id="lisbon", rating=6.0),
            UserRating(user_id=self.user.id, item_id="porto", rating=8.0),
            UserRating(user_id=self.user.id, item_id="quito", rating=None),
            UserRating(user_id=self.other.id, item_id="rome", rating=9.0),
        ])
        self.db.commit()

        rated = await self.store.fetch_all_rated(exclude_item_id="porto")
        self.assertEqual([(item.id, item.rating) for item in rated], [("lisbon", 6.0)])
        self.assertEqual(len(await self.store.fetch_all_rated()), 2)

    async def test_failed_commit_rolls_back_and_raises_store_error(self) -> None:
        await self.store.write_rating("lisbon", 5.0)

        failure = OperationalError("UPDATE user_ratings", {}, Exception("disk I/O error"))
        with patch.object(self.db, "commit", side_effect=failure):
            with self.assertRaises(RatingStoreError):
                await self.store.write_rating("lisbon", 9.0)

        self.assertEqual(self._row("lisbon").rating, 5.0)

    async def test_read_failure_raises_store_error(self) -> None:
        UserRating.__table__.drop(self.engine)
        with self.assertRaises(RatingStoreError):
            await self.store.fetch_all_rated()

    def test_list_and_count_cover_only_rated_items(self) -> None:
        self.db.add_all([
            UserRating(user_id=self.user.id, item_id="oslo", rating=4.0),
            UserRating(user_id=self.user.id, item_id="kyoto", rating=10.0),
            UserRating(user_id=self.user.id, item_id="quito", rating=None),
        ])
        self.db.commit()

        self.assertEqual([row.item_id for row in self.store.list_ratings()], ["kyoto", "oslo"])
        self.assertEqual(self.store.count_rated(), 2)
