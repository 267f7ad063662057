import unittest
from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import patch
from uuid import uuid4

from fastapi.testclient import TestClient

from app.db.session import get_db
from app.deps.auth import get_current_user
from app.deps.ratings import get_rating_store, get_session_registry
from app.main import app
from app.services.rating_session import SessionRegistry

from fakes import FakeRatingStore

FIVE_CITIES = {"a": 2.0, "b": 4.0, "c": 6.0, "d": 8.0, "e": 9.0}


class TestRatingsApi(unittest.TestCase):
    def setUp(self) -> None:
        self.client = TestClient(app)
        self.user_id = uuid4()
        self.store = FakeRatingStore()
        self.registry = SessionRegistry()
        app.dependency_overrides[get_db] = lambda: iter([object()])
        app.dependency_overrides[get_current_user] = lambda: SimpleNamespace(id=self.user_id)
        app.dependency_overrides[get_rating_store] = lambda: self.store
        app.dependency_overrides[get_session_registry] = lambda: self.registry

    def tearDown(self) -> None:
        app.dependency_overrides.clear()

    def _start(self, item_id: str = "porto", category: str = "enjoyed"):
        return self.client.post(
            "/ratings/sessions",
            json={"item_id": item_id, "category": category},
        )

    def test_health(self) -> None:
        response = self.client.get("/health")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "ok")

    def test_categories_listed_lowest_first(self) -> None:
        response = self.client.get("/ratings/categories")
        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual([c["category"] for c in payload],
                         ["disliked", "disappointed", "decent", "enjoyed", "loved"])
        self.assertEqual(payload[-1]["upper_bound"], 10.0)
        self.assertEqual(payload[-1]["label"], "Absolutely Loved It")

    def test_first_rating_resolves_at_seed(self) -> None:
        response = self._start("lisbon", "decent")
        self.assertEqual(response.status_code, 201)
        payload = response.json()
        self.assertEqual(payload["mode"], "bootstrap")
        self.assertEqual(payload["state"], "resolved")
        self.assertTrue(payload["next_step"]["resolved"])
        self.assertEqual(payload["next_step"]["final_rating"], 6.25)

        commit = self.client.post(f"/ratings/sessions/{payload['session_id']}/commit")
        self.assertEqual(commit.status_code, 200)
        self.assertEqual(commit.json()["final_rating"], 6.25)
        self.assertEqual(commit.json()["updated_count"], 0)
        self.assertEqual(self.store.ratings["lisbon"], 6.25)
        self.assertIsNone(self.registry.active_for(self.user_id))

    def test_bisection_flow_end_to_end(self) -> None:
        self.store.ratings.update(FIVE_CITIES)

        start = self._start()
        self.assertEqual(start.status_code, 201)
        payload = start.json()
        self.assertEqual(payload["mode"], "bisection")
        self.assertEqual(payload["next_step"]["opponent_id"], "d")
        self.assertEqual(payload["next_step"]["opponent_rating"], 8.0)
        session_id = payload["session_id"]

        step = self.client.post(
            f"/ratings/sessions/{session_id}/comparisons",
            json={"opponent_id": "d", "outcome": "win"},
        )
        self.assertEqual(step.status_code, 200)
        self.assertTrue(step.json()["resolved"])
        self.assertEqual(step.json()["final_rating"], 8.5)

        commit = self.client.post(f"/ratings/sessions/{session_id}/commit")
        self.assertEqual(commit.status_code, 200)
        body = commit.json()
        self.assertAlmostEqual(body["final_rating"], 8.5 * 10.0 / 9.0)
        self.assertEqual(body["updated_count"], 5)
        self.assertEqual(body["failed_item_ids"], [])
        self.assertEqual(self.store.ratings["e"], 10.0)

    def test_second_session_conflicts(self) -> None:
        self.store.ratings.update(FIVE_CITIES)
        self.assertEqual(self._start("porto").status_code, 201)
        response = self._start("rome")
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()["detail"]["error"]["code"], "SESSION_IN_PROGRESS")

    def test_wrong_opponent_is_400(self) -> None:
        self.store.ratings.update(FIVE_CITIES)
        session_id = self._start().json()["session_id"]
        response = self.client.post(
            f"/ratings/sessions/{session_id}/comparisons",
            json={"opponent_id": "a", "outcome": "win"},
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["detail"]["error"]["code"], "COMPARISON_INVALID")

    def test_unknown_outcome_is_422(self) -> None:
        self.store.ratings.update(FIVE_CITIES)
        session_id = self._start().json()["session_id"]
        response = self.client.post(
            f"/ratings/sessions/{session_id}/comparisons",
            json={"opponent_id": "d", "outcome": "maybe"},
        )
        self.assertEqual(response.status_code, 422)

    def test_unknown_session_is_404(self) -> None:
        missing = uuid4()
        self.assertEqual(self.client.post(f"/ratings/sessions/{missing}/commit").status_code, 404)
        self.assertEqual(self.client.delete(f"/ratings/sessions/{missing}").status_code, 404)
        response = self.client.post(
            f"/ratings/sessions/{missing}/comparisons",
            json={"opponent_id": "d", "outcome": "win"},
        )
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["detail"]["error"]["code"], "SESSION_NOT_FOUND")

    def test_commit_before_resolution_is_409(self) -> None:
        self.store.ratings.update(FIVE_CITIES)
        session_id = self._start().json()["session_id"]
        response = self.client.post(f"/ratings/sessions/{session_id}/commit")
        self.assertEqual(response.status_code, 409)
        self.assertEqual(self.store.writes, [])

    def test_cancel_discards_session(self) -> None:
        self.store.ratings.update(FIVE_CITIES)
        session_id = self._start().json()["session_id"]

        response = self.client.delete(f"/ratings/sessions/{session_id}")
        self.assertEqual(response.status_code, 204)
        self.assertIsNone(self.registry.active_for(self.user_id))
        self.assertEqual(self.store.writes, [])
        self.assertEqual(self.client.post(f"/ratings/sessions/{session_id}/commit").status_code, 404)

    def test_store_read_failure_is_503(self) -> None:
        self.store.fail_reads = True
        response = self._start()
        self.assertEqual(response.status_code, 503)
        self.assertEqual(response.json()["detail"]["error"]["code"], "RATING_STORE_UNAVAILABLE")
        self.assertIsNone(self.registry.active_for(self.user_id))

    def test_failed_commit_keeps_session_open(self) -> None:
        self.store.fail_writes_for.add("lisbon")
        session_id = self._start("lisbon", "loved").json()["session_id"]

        response = self.client.post(f"/ratings/sessions/{session_id}/commit")
        self.assertEqual(response.status_code, 503)
        self.assertIsNotNone(self.registry.active_for(self.user_id))

    def test_neighbour_failures_are_reported(self) -> None:
        self.store.ratings.update(FIVE_CITIES)
        self.store.fail_writes_for.add("a")
        session_id = self._start().json()["session_id"]
        self.client.post(
            f"/ratings/sessions/{session_id}/comparisons",
            json={"opponent_id": "d", "outcome": "lose"},
        )
        response = self.client.post(f"/ratings/sessions/{session_id}/commit")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["failed_item_ids"], ["a"])

    def test_invalid_payloads_are_422(self) -> None:
        self.assertEqual(self._start("porto", "meh").status_code, 422)
        self.assertEqual(self._start("   ", "loved").status_code, 422)

    def test_start_requires_auth(self) -> None:
        del app.dependency_overrides[get_current_user]
        response = self._start()
        self.assertEqual(response.status_code, 401)

    def test_my_ratings_response_shape(self) -> None:
        now = datetime.now(timezone.utc)
        with patch(
            "app.api.ratings.list_my_ratings",
            return_value=[
                {"item_id": "kyoto", "rating": 10.0, "category": "loved", "updated_at": now},
                {"item_id": "oslo", "rating": 6.1, "category": "decent", "updated_at": now},
            ],
        ):
            response = self.client.get("/ratings/me")

        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual([row["item_id"] for row in payload], ["kyoto", "oslo"])
        self.assertEqual(payload[0]["category"], "loved")

    def test_progress_response_shape(self) -> None:
        with patch(
            "app.api.ratings.rating_progress",
            return_value={"rated_count": 3, "required_count": 5, "calibrated": False},
        ):
            response = self.client.get("/ratings/progress")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"rated_count": 3, "required_count": 5, "calibrated": False})
