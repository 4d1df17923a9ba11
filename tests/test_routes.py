import asyncio
import unittest
from unittest.mock import patch

import database
from tests.base import ApiTestCase


class SessionRouteTests(ApiTestCase):
    def test_create_and_list_sessions(self) -> None:
        res = self.client.post("/api/create-session", json={"title": "Week 3", "type": "qb"})
        self.assertEqual(res.status_code, 200)
        body = res.json()
        self.assertTrue(body["session_id"].startswith("sess_"))
        self.assertEqual(body["owner"], "user_a")
        self.assertEqual(body["sport"], "football")

        res = self.client.get("/api/sessions")
        self.assertEqual(res.json(), [{"id": body["session_id"], "title": "Week 3", "type": "qb"}])

        self.assertEqual(self.client.get("/api/sessions", params={"type": "team"}).json(), [])

    def test_create_session_defaults(self) -> None:
        body = self.client.post("/api/create-session", json={}).json()
        self.assertEqual(body["title"], "New Session")
        self.assertEqual(body["type"], "team")
        self.assertEqual(body["history"], [])
        self.assertEqual(body["roster"], [])

    def test_sessions_are_owner_scoped(self) -> None:
        self.insert_session("sess_1", "user_b", history=[{"role": "user", "text": "secret"}])
        self.assertEqual(self.client.get("/api/sessions").json(), [])
        self.assertEqual(self.client.get("/api/session/sess_1").json(), {"history": [], "roster": []})

        self.as_user("user_b")
        history = self.client.get("/api/session/sess_1").json()["history"]
        self.assertEqual(history, [{"role": "user", "text": "secret"}])

    def test_delete_session_cascades_to_clips_and_videos(self) -> None:
        self.insert_session("sess_1", "user_a")
        self.insert_clip("sess_1", "user_a", public_id="vantage_vision/a")
        self.insert_clip("sess_1", "user_a", public_id="vantage_vision/b")
        self.insert_clip("sess_1", "user_a")
        self.insert_clip("sess_2", "user_a", public_id="vantage_vision/other")

        with patch("storage.delete_video") as delete_video:
            res = self.client.post("/api/delete-session", json={"session_id": "sess_1"})

        self.assertEqual(res.json(), {"success": True})
        self.assertCountEqual(
            [c.args[0] for c in delete_video.call_args_list],
            ["vantage_vision/a", "vantage_vision/b"],
        )
        self.assertIsNone(database.db["session"].find_one({"session_id": "sess_1"}))
        self.assertEqual(database.db["clip"].count_documents({"session_id": "sess_1"}), 0)
        self.assertEqual(database.db["clip"].count_documents({"session_id": "sess_2"}), 1)

    def test_delete_session_leaves_other_owner_alone(self) -> None:
        self.insert_session("sess_1", "user_b")
        self.insert_clip("sess_1", "user_b", public_id="vantage_vision/b")
        with patch("storage.delete_video") as delete_video:
            self.client.post("/api/delete-session", json={"session_id": "sess_1"})
        delete_video.assert_not_called()
        self.assertEqual(database.db["clip"].count_documents({}), 1)
        self.assertIsNotNone(database.db["session"].find_one({"session_id": "sess_1"}))

    def test_delete_session_storage_failure(self) -> None:
        self.insert_session("sess_1", "user_a")
        self.insert_clip("sess_1", "user_a", public_id="vantage_vision/a")
        with patch("storage.delete_video", side_effect=RuntimeError("cdn down")):
            res = self.client.post("/api/delete-session", json={"session_id": "sess_1"})
        self.assertEqual(res.status_code, 500)
        self.assertEqual(res.json(), {"error": "Delete failed"})
        self.assertIsNotNone(database.db["session"].find_one({"session_id": "sess_1"}))
        self.assertEqual(database.db["clip"].count_documents({"session_id": "sess_1"}), 1)

    def test_video_deletes_run_off_the_event_loop(self) -> None:
        self.insert_session("sess_1", "user_a")
        self.insert_clip("sess_1", "user_a", public_id="vantage_vision/a")
        clip = self.insert_clip("sess_2", "user_a", public_id="vantage_vision/b")
        loop_threads = []

        def destroy(public_id):
            try:
                asyncio.get_running_loop()
                loop_threads.append(public_id)
            except RuntimeError:
                pass

        with patch("storage.delete_video", side_effect=destroy) as delete_video:
            self.client.post("/api/delete-session", json={"session_id": "sess_1"})
            self.client.post("/api/delete-clip", json={"id": str(clip["_id"])})

        self.assertEqual(delete_video.call_count, 2)
        self.assertEqual(loop_threads, [])


class ClipRouteTests(ApiTestCase):
    def test_search_requires_session_id(self) -> None:
        self.assertEqual(self.client.get("/api/search").json(), [])

    def test_search_sorts_and_scopes(self) -> None:
        self.insert_clip("sess_1", "user_a", title="b", section="Red Zone")
        self.insert_clip("sess_1", "user_a", title="a", section="Inbox")
        self.insert_clip("sess_1", "user_b", title="hidden")
        clips = self.client.get("/api/search", params={"session_id": "sess_1"}).json()
        self.assertEqual([c["title"] for c in clips], ["a", "b"])
        self.assertIsInstance(clips[0]["_id"], str)

    def test_update_section(self) -> None:
        clip = self.insert_clip("sess_1", "user_a")
        res = self.client.post("/api/update-clip", json={"id": str(clip["_id"]), "section": "3rd Down"})
        self.assertEqual(res.json(), {"success": True})
        self.assertEqual(database.db["clip"].find_one({"_id": clip["_id"]})["section"], "3rd Down")

    def test_update_section_ignores_other_owner(self) -> None:
        clip = self.insert_clip("sess_1", "user_b")
        self.client.post("/api/update-clip", json={"id": str(clip["_id"]), "section": "Mine now"})
        self.assertEqual(database.db["clip"].find_one({"_id": clip["_id"]})["section"], "Inbox")

    def test_update_clip_data_mirrors_into_full_data(self) -> None:
        clip = self.insert_clip("sess_1", "user_a", full_data={
            "title": "Old",
            "data": {"o_formation": "I", "d_formation": "4-3"},
            "scouting_report": {"summary": "old summary"},
        })
        res = self.client.post("/api/update-clip-data", json={
            "clip_id": str(clip["_id"]),
            "title": "Mesh vs Cover 1",
            "summary": "Rub beat man coverage",
            "o_formation": "Trips",
            "d_formation": "Cover 1",
        })
        self.assertEqual(res.json(), {"success": True})
        stored = database.db["clip"].find_one({"_id": clip["_id"]})
        self.assertEqual(stored["formation"], "Trips vs Cover 1")
        self.assertEqual(stored["full_data"]["title"], "Mesh vs Cover 1")
        self.assertEqual(stored["full_data"]["data"]["d_formation"], "Cover 1")
        self.assertEqual(stored["full_data"]["scouting_report"]["summary"], "Rub beat man coverage")

    def test_update_clip_data_not_found_for_other_owner(self) -> None:
        clip = self.insert_clip("sess_1", "user_b")
        res = self.client.post("/api/update-clip-data", json={"clip_id": str(clip["_id"]), "title": "x"})
        self.assertEqual(res.status_code, 404)
        res = self.client.post("/api/update-clip-data", json={"clip_id": "not-an-id", "title": "x"})
        self.assertEqual(res.status_code, 404)

    def test_delete_clip_removes_video(self) -> None:
        clip = self.insert_clip("sess_1", "user_a", public_id="vantage_vision/a")
        with patch("storage.delete_video") as delete_video:
            res = self.client.post("/api/delete-clip", json={"id": str(clip["_id"])})
        self.assertEqual(res.json(), {"success": True})
        delete_video.assert_called_once_with("vantage_vision/a")
        self.assertEqual(database.db["clip"].count_documents({}), 0)

    def test_delete_clip_of_other_owner_is_noop(self) -> None:
        clip = self.insert_clip("sess_1", "user_b", public_id="vantage_vision/b")
        with patch("storage.delete_video") as delete_video:
            res = self.client.post("/api/delete-clip", json={"id": str(clip["_id"])})
        self.assertEqual(res.json(), {"success": True})
        delete_video.assert_not_called()
        self.assertEqual(database.db["clip"].count_documents({}), 1)

    def test_save_snapshot_appends(self) -> None:
        clip = self.insert_clip("sess_1", "user_a")
        for image in ("data:image/png;base64,AAA", "data:image/png;base64,BBB"):
            self.client.post("/api/save-snapshot", json={"clip_id": str(clip["_id"]), "image_data": image})
        stored = database.db["clip"].find_one({"_id": clip["_id"]})
        self.assertEqual(stored["snapshots"], ["data:image/png;base64,AAA", "data:image/png;base64,BBB"])


class PublicRouteTests(ApiTestCase):
    def test_static_pages(self) -> None:
        for path in ("/", "/privacy.html", "/terms.html"):
            res = self.client.get(path)
            self.assertEqual(res.status_code, 200)
            self.assertIn("text/html", res.headers["content-type"])

    def test_health(self) -> None:
        self.assertEqual(self.client.get("/health").json()["status"], "ok")

    def test_api_requires_identity(self) -> None:
        self.client.app.dependency_overrides.clear()
        res = self.client.get("/api/sessions")
        self.assertEqual(res.status_code, 401)


if __name__ == "__main__":
    unittest.main()
