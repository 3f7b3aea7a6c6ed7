import datetime
import requests
from typing import Optional

class TrackerClient:
    """Simple REST client for the training tracker API."""

    def __init__(self, base_url: str = "http://localhost:8000") -> None:
        self.base_url = base_url.rstrip("/")

    @staticmethod
    def _params(**params) -> dict:
        return {k: v for k, v in params.items() if v is not None}

    @staticmethod
    def _timestamp(value: Optional[datetime.datetime]) -> Optional[str]:
        return value.isoformat() if value is not None else None

    def _get(self, path: str, **params):
        resp = requests.get(f"{self.base_url}{path}", params=self._params(**params))
        resp.raise_for_status()
        return resp.json()

    def get_training_sessions(self) -> list:
        return self._get("/training_sessions")

    def get_exercises_by_session(self, session_id: int) -> list:
        return self._get(f"/training_sessions/{session_id}/exercises")

    def get_exercise_with_series(self, exercise_id: int) -> Optional[dict]:
        resp = requests.get(f"{self.base_url}/exercises/{exercise_id}")
        if resp.status_code == 404:
            return None
        resp.raise_for_status()
        return resp.json()

    def create_user_exercise_log(
        self,
        user_id: str,
        exercise_id: int,
        series_number: int,
        repetitions: int,
        weight: float,
        completed_at: Optional[datetime.datetime] = None,
    ) -> dict:
        body = self._params(
            user_id=user_id,
            exercise_id=exercise_id,
            series_number=series_number,
            repetitions=repetitions,
            weight=weight,
            completed_at=self._timestamp(completed_at),
        )
        resp = requests.post(f"{self.base_url}/logs", json=body)
        resp.raise_for_status()
        return resp.json()

    def get_user_exercise_logs(
        self,
        user_id: str,
        exercise_id: Optional[int] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> list:
        return self._get(
            "/logs", user_id=user_id, exercise_id=exercise_id, limit=limit, offset=offset
        )

    def get_last_exercise_performance(self, user_id: str, exercise_id: int) -> list:
        return self._get(f"/users/{user_id}/exercises/{exercise_id}/last_performance")

    def create_body_metric(
        self,
        user_id: str,
        metric_type: str,
        value: float,
        unit: str,
        recorded_at: Optional[datetime.datetime] = None,
    ) -> dict:
        body = self._params(
            user_id=user_id,
            metric_type=metric_type,
            value=value,
            unit=unit,
            recorded_at=self._timestamp(recorded_at),
        )
        resp = requests.post(f"{self.base_url}/body_metrics", json=body)
        resp.raise_for_status()
        return resp.json()

    def get_body_metrics(
        self,
        user_id: str,
        metric_type: Optional[str] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> list:
        return self._get(
            "/body_metrics", user_id=user_id, metric_type=metric_type, limit=limit, offset=offset
        )

    def get_user_settings(self, user_id: str) -> dict:
        return self._get(f"/users/{user_id}/settings")

    def update_user_settings(self, user_id: str, **changes) -> dict:
        resp = requests.put(
            f"{self.base_url}/users/{user_id}/settings", json=self._params(**changes)
        )
        resp.raise_for_status()
        return resp.json()

    def initialize_training_data(self) -> dict:
        resp = requests.post(f"{self.base_url}/training_data/initialize")
        resp.raise_for_status()
        return resp.json()
