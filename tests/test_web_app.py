# tests/test_web_app.py
import unittest
from datetime import datetime, timezone
from unittest.mock import patch

import web_app
from accounts import ensure_user
from badge_catalog import BadgeCatalog, seed_badges
from errors import TransientConflict
from local_storage import LocalDocumentStore


class WebAppTestCase(unittest.TestCase):
    def setUp(self):
        # Use the Flask app defined in web_app.py over an in-memory store
        self.app = web_app.app
        self.app.config["TESTING"] = True
        self.client = self.app.test_client()

        self.store = LocalDocumentStore(None)
        seed_badges(self.store)
        ensure_user(self.store, "u1", "alice")
        ensure_user(self.store, "u2", "bob")
        for name, value in (("store", self.store), ("catalog", BadgeCatalog(self.store))):
            patcher = patch.object(web_app, name, value)
            patcher.start()
            self.addCleanup(patcher.stop)

        self.login("u1")

    def login(self, uid):
        with self.client.session_transaction() as sess:
            sess["user_uid"] = uid

    def create_habit(self, name="Read"):
        resp = self.client.post("/api/habits", json={"name": name})
        self.assertEqual(resp.status_code, 200)
        return resp.get_json()["habitId"]

    # ---------------- Auth ---------------- #
    def test_requires_login(self):
        with self.client.session_transaction() as sess:
            sess.clear()
        self.assertEqual(self.client.get("/api/habits").status_code, 401)
        self.assertEqual(self.client.post("/habit/h1/complete").status_code, 401)

    @patch("web_app.auth.verify_id_token")
    def test_verify_token_creates_user(self, mock_verify):
        mock_verify.return_value = {"uid": "new-uid", "email": "nina@example.com", "name": "Nina"}
        resp = self.client.post("/verify-token", json={"idToken": "token"})

        self.assertEqual(resp.status_code, 200)
        self.assertTrue(resp.get_json()["created"])
        self.assertEqual(self.store.get_user("new-uid")["username"], "Nina")
        with self.client.session_transaction() as sess:
            self.assertEqual(sess["user_uid"], "new-uid")

    @patch("web_app.auth.verify_id_token", side_effect=ValueError("expired"))
    def test_verify_token_rejects_bad_token(self, _mock_verify):
        resp = self.client.post("/verify-token", json={"idToken": "token"})
        self.assertEqual(resp.status_code, 401)

    def test_verify_token_needs_token(self):
        self.assertEqual(self.client.post("/verify-token", json={}).status_code, 400)

    # ---------------- Habits ---------------- #
    def test_create_and_list_habits(self):
        habit_id = self.create_habit()
        resp = self.client.get("/api/habits")
        habits = resp.get_json()["habits"]
        self.assertEqual([h["id"] for h in habits], [habit_id])
        self.assertIsInstance(habits[0]["lastUpdated"], str)

    def test_create_habit_validation(self):
        resp = self.client.post("/api/habits", json={"name": ""})
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.get_json()["error"], "Please enter a habit name")

    def test_complete_habit_twice(self):
        habit_id = self.create_habit()

        resp = self.client.post(f"/habit/{habit_id}/complete")
        self.assertEqual(resp.status_code, 200)
        data = resp.get_json()
        self.assertTrue(data["completed"])
        self.assertEqual((data["newStreak"], data["reward"], data["currency"]), (1, 10, 10))

        resp = self.client.post(f"/habit/{habit_id}/complete")
        self.assertEqual(resp.status_code, 200)
        self.assertFalse(resp.get_json()["completed"])
        self.assertEqual(resp.get_json()["message"], "Habit already completed today")
        self.assertEqual(self.store.get_user("u1")["currency"], 10)

    def test_complete_missing_habit(self):
        self.assertEqual(self.client.post("/habit/missing/complete").status_code, 404)

    def test_delete_habit(self):
        habit_id = self.create_habit()
        self.assertEqual(self.client.delete(f"/api/habits/{habit_id}").status_code, 200)
        self.assertEqual(self.client.delete(f"/api/habits/{habit_id}").status_code, 404)

    def test_conflict_maps_to_409(self):
        with patch.object(web_app.HabitService, "complete_habit", side_effect=TransientConflict("busy")):
            self.assertEqual(self.client.post("/habit/h1/complete").status_code, 409)

    def test_unexpected_error_maps_to_500(self):
        with patch.object(web_app.HabitService, "complete_habit", side_effect=RuntimeError("boom")):
            resp = self.client.post("/habit/h1/complete")
        self.assertEqual(resp.status_code, 500)
        self.assertEqual(resp.get_json()["error"], "Something went wrong")

    # ---------------- Profile ---------------- #
    def test_profile_and_settings(self):
        resp = self.client.put("/api/settings", json={"field": "petName", "value": "Rex"})
        self.assertEqual(resp.status_code, 200)

        profile = self.client.get("/api/profile").get_json()["profile"]
        self.assertEqual(profile["petName"], "Rex")
        self.assertEqual(profile["petMood"], "Happy")

        resp = self.client.put("/api/settings", json={"field": "petName", "value": "not ok"})
        self.assertEqual(resp.status_code, 400)

    def test_badges(self):
        badges = self.client.get("/api/badges").get_json()["badges"]
        self.assertEqual([b["id"] for b in badges], ["habitStreak", "wealthBuilder", "collector"])

    # ---------------- Friends & chat ---------------- #
    def test_friend_request_accept_and_chat(self):
        resp = self.client.post("/api/friends/add", json={"username": "bob"})
        self.assertEqual(resp.status_code, 200)

        self.login("u2")
        resp = self.client.post("/api/friends/accept", json={"requesterUid": "u1"})
        self.assertEqual(resp.status_code, 200)
        chat_id = resp.get_json()["chatId"]

        resp = self.client.post(f"/api/chats/{chat_id}/messages", json={"text": "hello"})
        self.assertEqual(resp.status_code, 200)

        self.login("u1")
        messages = self.client.get(f"/api/chats/{chat_id}/messages").get_json()["messages"]
        self.assertEqual([m["text"] for m in messages], ["hello"])
        friends = self.client.get("/api/friends").get_json()["friends"]
        self.assertEqual([f["uid"] for f in friends], ["u2"])

        self.assertEqual(self.client.delete("/api/friends/u2").status_code, 200)
        self.assertEqual(self.client.get(f"/api/chats/{chat_id}/messages").status_code, 404)

    def test_add_unknown_friend(self):
        resp = self.client.post("/api/friends/add", json={"username": "nobody"})
        self.assertEqual(resp.status_code, 404)

    # ---------------- Shop & leaderboard ---------------- #
    def test_buy_without_enough_coins(self):
        self.store.set_shop_item("hat-top", {"name": "tophat", "type": "hat", "cost": 50})
        resp = self.client.post("/api/shop/hat-top/buy")
        self.assertEqual(resp.status_code, 400)
        self.assertIn("Insufficient funds", resp.get_json()["error"])

    def test_buy_and_equip(self):
        self.store.update_user("u1", {"currency": 80})
        self.store.set_shop_item("hat-top", {"name": "tophat", "type": "hat", "cost": 50})

        resp = self.client.post("/api/shop/hat-top/buy")
        self.assertEqual(resp.get_json()["currency"], 30)
        resp = self.client.post("/api/shop/hat-top/equip")
        self.assertEqual(resp.get_json()["equippedItems"]["hat"], "tophat")
        self.assertIn("hat", self.client.get("/api/shop").get_json()["items"])

    def test_leaderboard(self):
        resp = self.client.get("/api/leaderboard?stat=totalCurrencyEarned")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.get_json()["ranking"][0]["uid"], "u1")
        self.assertEqual(self.client.get("/api/leaderboard?stat=bogus").status_code, 400)

    # ---------------- CLI ---------------- #
    def test_nightly_reset_command(self):
        self.create_habit()
        runner = self.app.test_cli_runner()
        result = runner.invoke(args=["nightly-reset", "--as-of", "2030-01-01T00:00:00+00:00"])
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("2029-12-31", result.output)
        self.assertEqual(self.store.get_user("u1")["happinessMeter"], 90)

    @patch("web_app.utc_now")
    def test_nightly_reset_command_defaults_to_last_cutoff(self, mock_now):
        mock_now.return_value = datetime(2030, 1, 1, 12, 0, tzinfo=timezone.utc)
        self.create_habit()
        runner = self.app.test_cli_runner()

        first = runner.invoke(args=["nightly-reset"])
        second = runner.invoke(args=["nightly-reset"])

        self.assertEqual(first.exit_code, 0, first.output)
        self.assertIn("2029-12-31", first.output)
        self.assertIn("0 reset", second.output)
        self.assertEqual(self.store.get_user("u1")["happinessMeter"], 90)


if __name__ == "__main__":
    unittest.main()
