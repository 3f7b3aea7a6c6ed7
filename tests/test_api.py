import os
import sqlite3
import sys
import unittest
from unittest import mock
from fastapi.testclient import TestClient

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from rest_api import TrackerAPI


class APITestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.db_path = "test_training.db"
        if os.path.exists(self.db_path):
            os.remove(self.db_path)
        self.api = TrackerAPI(db_path=self.db_path)
        self.client = TestClient(self.api.app)

    def tearDown(self) -> None:
        if os.path.exists(self.db_path):
            os.remove(self.db_path)

    def _seed(self) -> dict:
        response = self.client.post("/training_data/initialize")
        self.assertEqual(response.status_code, 200)
        return response.json()

    def test_health(self) -> None:
        response = self.client.get("/health")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "ok")
        self.assertIn("timestamp", response.json())

    def test_catalog_workflow(self) -> None:
        created = self._seed()
        self.assertEqual(len(created["training_sessions"]), 8)
        self.assertEqual(len(created["exercises"]), 24)
        self.assertEqual(len(created["series"]), 80)

        response = self.client.get("/training_sessions")
        self.assertEqual(response.status_code, 200)
        sessions = response.json()
        self.assertEqual([s["name"] for s in sessions][:2], ["Pull Day A", "Pull Day B"])
        self.assertEqual(sessions[0]["type"], "pull")

        response = self.client.get("/training_sessions/1/exercises")
        self.assertEqual(response.status_code, 200)
        exercises = response.json()
        self.assertEqual(
            [e["name"] for e in exercises],
            ["Pull-ups", "Barbell Rows", "Bicep Curls"],
        )
        self.assertTrue(all(e["training_session_id"] == 1 for e in exercises))

        response = self.client.get("/training_sessions/999/exercises")
        self.assertEqual(response.json(), [])

        response = self.client.get("/exercises/7")
        self.assertEqual(response.status_code, 200)
        bench = response.json()
        self.assertEqual(bench["name"], "Bench Press")
        self.assertEqual(bench["target_series"], 4)
        self.assertEqual(
            sorted(s["series_number"] for s in bench["series"]), [1, 2, 3, 4]
        )
        self.assertTrue(all(s["target_repetitions"] == 5 for s in bench["series"]))
        self.assertTrue(all(s["target_weight"] == 0.0 for s in bench["series"]))

    def test_unknown_exercise_not_found(self) -> None:
        response = self.client.get("/exercises/42")
        self.assertEqual(response.status_code, 404)
        self.assertIn("42", response.json()["detail"])

    def test_log_unknown_exercise(self) -> None:
        response = self.client.post(
            "/logs",
            json={
                "user_id": "u1",
                "exercise_id": 99,
                "series_number": 1,
                "repetitions": 10,
                "weight": 50.0,
            },
        )
        self.assertEqual(response.status_code, 404)
        self.assertIn("99", response.json()["detail"])
        response = self.client.get("/logs", params={"user_id": "u1"})
        self.assertEqual(response.json(), [])

    def test_log_validation(self) -> None:
        self._seed()
        response = self.client.post(
            "/logs",
            json={
                "user_id": "u1",
                "exercise_id": 1,
                "series_number": 5,
                "repetitions": 10,
                "weight": 50.0,
            },
        )
        self.assertEqual(response.status_code, 422)
        fields = [err["loc"][-1] for err in response.json()["detail"]]
        self.assertIn("series_number", fields)

        response = self.client.post(
            "/logs",
            json={
                "user_id": "u1",
                "exercise_id": 1,
                "series_number": 1,
                "repetitions": 0,
                "weight": -1,
            },
        )
        self.assertEqual(response.status_code, 422)
        fields = {err["loc"][-1] for err in response.json()["detail"]}
        self.assertEqual(fields, {"repetitions", "weight"})

        response = self.client.get("/logs", params={"user_id": "u1", "limit": 0})
        self.assertEqual(response.status_code, 422)

    def test_logs_and_last_performance(self) -> None:
        self._seed()
        earlier = "2024-03-01T10:00:00"
        later = "2024-03-05T10:00:00"
        for completed_at, reps in [(earlier, 8), (later, 10)]:
            for number in (2, 1):
                response = self.client.post(
                    "/logs",
                    json={
                        "user_id": "u1",
                        "exercise_id": 1,
                        "series_number": number,
                        "repetitions": reps,
                        "weight": 0,
                        "completed_at": completed_at,
                    },
                )
                self.assertEqual(response.status_code, 200)
        response = self.client.post(
            "/logs",
            json={
                "user_id": "u1",
                "exercise_id": 2,
                "series_number": 1,
                "repetitions": 8,
                "weight": 60.5,
            },
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["weight"], 60.5)

        response = self.client.get("/users/u1/exercises/1/last_performance")
        self.assertEqual(response.status_code, 200)
        rows = response.json()
        self.assertEqual([r["series_number"] for r in rows], [1, 2])
        self.assertTrue(all(r["repetitions"] == 10 for r in rows))
        self.assertTrue(all(r["completed_at"].startswith("2024-03-05") for r in rows))

        response = self.client.get("/users/u2/exercises/1/last_performance")
        self.assertEqual(response.json(), [])

        response = self.client.get("/logs", params={"user_id": "u1", "exercise_id": 1})
        logs = response.json()
        self.assertEqual(len(logs), 4)
        self.assertEqual(
            [r["completed_at"] for r in logs],
            sorted((r["completed_at"] for r in logs), reverse=True),
        )

        response = self.client.get("/logs", params={"user_id": "u1", "limit": 2, "offset": 1})
        self.assertEqual(len(response.json()), 2)

        response = self.client.get("/users/u1/logs/export_csv")
        self.assertEqual(response.status_code, 200)
        lines = response.text.strip().splitlines()
        self.assertEqual(lines[0], "Exercise,Series,Reps,Weight,Completed")
        self.assertEqual(len(lines), 6)
        self.assertIn("Pull-ups", lines[1])

        response = self.client.get("/users/u1/logs/export_json")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(response.json()), 5)

    def test_settings_defaults_and_update(self) -> None:
        first = self.client.get("/users/new-user/settings").json()
        second = self.client.get("/users/new-user/settings").json()
        self.assertEqual(first["id"], second["id"])
        self.assertEqual(first["timer_duration"], 120)
        self.assertIs(first["dark_mode"], True)
        self.assertIs(first["body_metric_reminder_enabled"], True)

        response = self.client.put(
            "/users/u1/settings",
            json={
                "timer_duration": 90,
                "dark_mode": False,
                "body_metric_reminder_enabled": False,
            },
        )
        self.assertEqual(response.status_code, 200)
        response = self.client.put(
            "/users/u1/settings", json={"body_metric_reminder_enabled": True}
        )
        data = response.json()
        self.assertEqual(data["timer_duration"], 90)
        self.assertIs(data["dark_mode"], False)
        self.assertIs(data["body_metric_reminder_enabled"], True)

        response = self.client.put("/users/u1/settings", json={"timer_duration": 0})
        self.assertEqual(response.status_code, 422)

    def test_update_settings_creates_with_defaults(self) -> None:
        response = self.client.put("/users/fresh/settings", json={"dark_mode": False})
        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertEqual(data["timer_duration"], 120)
        self.assertIs(data["dark_mode"], False)
        self.assertIs(data["body_metric_reminder_enabled"], True)
        again = self.client.get("/users/fresh/settings").json()
        self.assertEqual(again["id"], data["id"])

    def test_body_metrics_pagination(self) -> None:
        for day in range(1, 6):
            response = self.client.post(
                "/body_metrics",
                json={
                    "user_id": "u1",
                    "metric_type": "weight",
                    "value": 80 + day,
                    "unit": "kg",
                    "recorded_at": f"2024-01-0{day}T08:00:00",
                },
            )
            self.assertEqual(response.status_code, 200)
        self.client.post(
            "/body_metrics",
            json={"user_id": "u1", "metric_type": "arms", "value": 38, "unit": "cm"},
        )

        first = self.client.get(
            "/body_metrics",
            params={"user_id": "u1", "metric_type": "weight", "limit": 2, "offset": 0},
        ).json()
        second = self.client.get(
            "/body_metrics",
            params={"user_id": "u1", "metric_type": "weight", "limit": 2, "offset": 2},
        ).json()
        self.assertEqual(len(first), 2)
        self.assertEqual(len(second), 2)
        self.assertFalse({m["id"] for m in first} & {m["id"] for m in second})
        self.assertEqual([m["value"] for m in first], [85.0, 84.0])
        self.assertEqual([m["value"] for m in second], [83.0, 82.0])

        everything = self.client.get("/body_metrics", params={"user_id": "u1"}).json()
        self.assertEqual(len(everything), 6)

    def test_body_metric_validation(self) -> None:
        response = self.client.post(
            "/body_metrics",
            json={"user_id": "u1", "metric_type": "neck", "value": 38, "unit": "cm"},
        )
        self.assertEqual(response.status_code, 422)
        response = self.client.post(
            "/body_metrics",
            json={"user_id": "u1", "metric_type": "waist", "value": 0, "unit": "cm"},
        )
        self.assertEqual(response.status_code, 422)
        response = self.client.get(
            "/body_metrics", params={"user_id": "u1", "metric_type": "neck"}
        )
        self.assertEqual(response.status_code, 422)

    def test_oversized_ids_rejected(self) -> None:
        self._seed()
        huge = 10**20
        for path in (
            f"/exercises/{huge}",
            f"/training_sessions/{huge}/exercises",
            f"/users/u1/exercises/{huge}/last_performance",
        ):
            response = self.client.get(path)
            self.assertEqual(response.status_code, 422, path)

        response = self.client.get("/logs", params={"user_id": "u1", "exercise_id": huge})
        self.assertEqual(response.status_code, 422)
        response = self.client.get("/body_metrics", params={"user_id": "u1", "offset": huge})
        self.assertEqual(response.status_code, 422)

        response = self.client.post(
            "/logs",
            json={
                "user_id": "u1",
                "exercise_id": huge,
                "series_number": 1,
                "repetitions": 10,
                "weight": 50.0,
            },
        )
        self.assertEqual(response.status_code, 422)
        fields = [err["loc"][-1] for err in response.json()["detail"]]
        self.assertIn("exercise_id", fields)
        self.assertEqual(self.client.get("/logs", params={"user_id": "u1"}).json(), [])

    def test_empty_user_id_rejected(self) -> None:
        self._seed()
        response = self.client.post(
            "/logs",
            json={
                "user_id": "",
                "exercise_id": 1,
                "series_number": 1,
                "repetitions": 10,
                "weight": 50.0,
            },
        )
        self.assertEqual(response.status_code, 422)
        fields = [err["loc"][-1] for err in response.json()["detail"]]
        self.assertIn("user_id", fields)

        response = self.client.post(
            "/body_metrics",
            json={"user_id": "", "metric_type": "arms", "value": 38, "unit": "cm"},
        )
        self.assertEqual(response.status_code, 422)

        for path in ("/logs", "/body_metrics"):
            response = self.client.get(path, params={"user_id": ""})
            self.assertEqual(response.status_code, 422, path)

        self.assertEqual(self.client.get("/users/u1/logs/export_json").json(), [])

    def test_storage_failure_returns_500(self) -> None:
        with mock.patch.object(
            self.api.sessions,
            "fetch_all_sessions",
            side_effect=sqlite3.OperationalError("disk I/O error"),
        ):
            with self.assertLogs("rest_api", "ERROR") as captured:
                response = self.client.get("/training_sessions")
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json(), {"detail": "storage failure"})
        self.assertIn("/training_sessions", captured.output[0])

    def test_unexpected_error_returns_500(self) -> None:
        client = TestClient(self.api.app, raise_server_exceptions=False)
        with mock.patch.object(
            self.api.user_settings,
            "get_or_create",
            side_effect=RuntimeError("boom"),
        ):
            with self.assertLogs("rest_api", "ERROR") as captured:
                response = client.get("/users/u1/settings")
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json(), {"detail": "internal server error"})
        self.assertIn("/users/u1/settings", captured.output[0])


if __name__ == "__main__":
    unittest.main()
