import datetime
import logging
import sqlite3
from typing import Optional
from fastapi import (
    FastAPI,
    HTTPException,
    Response,
    Request,
    Query,
    Path,
)
from fastapi.responses import JSONResponse
from db import (
    TrainingSessionRepository,
    ExerciseRepository,
    CatalogRepository,
    UserExerciseLogRepository,
    BodyMetricRepository,
    UserSettingsRepository,
    NotFoundError,
)
from config import APP_VERSION, load_config
from schemas import (
    MAX_ID,
    BodyMetricType,
    CreateUserExerciseLog,
    CreateBodyMetric,
    UpdateUserSettings,
)
from seed_training_data import initialize_training_data


log = logging.getLogger(__name__)


class TrackerAPI:
    """Provides REST endpoints for the training tracker."""

    def __init__(self, db_path: str = "training.db", page_size: int = 50) -> None:
        self.db_path = db_path
        self.page_size = page_size
        self.sessions = TrainingSessionRepository(db_path)
        self.exercises = ExerciseRepository(db_path)
        self.catalog = CatalogRepository(db_path)
        self.logs = UserExerciseLogRepository(db_path)
        self.body_metrics = BodyMetricRepository(db_path)
        self.user_settings = UserSettingsRepository(db_path)
        self.app = FastAPI(
            title="Training Tracker API",
            description="REST API for training sessions, set logs and body metrics",
            version=APP_VERSION,
        )
        self._setup_routes()

    def _setup_routes(self) -> None:
        @self.app.exception_handler(sqlite3.Error)
        async def storage_error(request: Request, exc: sqlite3.Error):
            log.error(
                "storage failure on %s %s",
                request.method,
                request.url.path,
                exc_info=exc,
            )
            return JSONResponse(status_code=500, content={"detail": "storage failure"})

        @self.app.exception_handler(Exception)
        async def unexpected_error(request: Request, exc: Exception):
            log.error(
                "unhandled error on %s %s",
                request.method,
                request.url.path,
                exc_info=exc,
            )
            return JSONResponse(
                status_code=500, content={"detail": "internal server error"}
            )

        @self.app.get(
            "/health",
            summary="Health check",
            description="Verify API and database connectivity.",
        )
        def health():
            """Return API and database connection status."""
            self.sessions.fetch_all("SELECT 1;")
            return {
                "status": "ok",
                "timestamp": datetime.datetime.now(datetime.timezone.utc).isoformat(),
            }

        @self.app.get("/training_sessions")
        def list_training_sessions():
            return self.sessions.fetch_all_sessions()

        @self.app.get("/training_sessions/{session_id}/exercises")
        def list_session_exercises(session_id: int = Path(..., le=MAX_ID)):
            return self.exercises.fetch_for_session(session_id)

        @self.app.get("/exercises/{exercise_id}")
        def get_exercise_with_series(exercise_id: int = Path(..., le=MAX_ID)):
            exercise = self.exercises.fetch_with_series(exercise_id)
            if exercise is None:
                raise HTTPException(
                    status_code=404,
                    detail=f"Exercise with id {exercise_id} does not exist",
                )
            return exercise

        @self.app.post("/logs")
        def create_user_exercise_log(entry: CreateUserExerciseLog):
            try:
                return self.logs.add(
                    entry.user_id,
                    entry.exercise_id,
                    entry.series_number,
                    entry.repetitions,
                    entry.weight,
                    entry.completed_at,
                )
            except NotFoundError as e:
                raise HTTPException(status_code=404, detail=str(e))
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))

        @self.app.get("/logs")
        def list_user_exercise_logs(
            user_id: str = Query(..., min_length=1),
            exercise_id: Optional[int] = Query(None, le=MAX_ID),
            limit: int = Query(self.page_size, ge=1, le=MAX_ID),
            offset: int = Query(0, ge=0, le=MAX_ID),
        ):
            return self.logs.fetch_for_user(user_id, exercise_id, limit, offset)

        @self.app.get("/users/{user_id}/exercises/{exercise_id}/last_performance")
        def last_exercise_performance(
            user_id: str = Path(..., min_length=1),
            exercise_id: int = Path(..., le=MAX_ID),
        ):
            return self.logs.last_performance(user_id, exercise_id)

        @self.app.get("/users/{user_id}/logs/export_csv")
        def export_logs_csv(user_id: str = Path(..., min_length=1)):
            data = self.logs.export_csv(user_id)
            return Response(
                content=data,
                media_type="text/csv",
                headers={
                    "Content-Disposition": f"attachment; filename=logs_{user_id}.csv"
                },
            )

        @self.app.get("/users/{user_id}/logs/export_json")
        def export_logs_json(user_id: str = Path(..., min_length=1)):
            data = self.logs.export_json(user_id)
            return Response(
                content=data,
                media_type="application/json",
                headers={
                    "Content-Disposition": f"attachment; filename=logs_{user_id}.json"
                },
            )

        @self.app.post("/body_metrics")
        def create_body_metric(metric: CreateBodyMetric):
            try:
                return self.body_metrics.add(
                    metric.user_id,
                    metric.metric_type,
                    metric.value,
                    metric.unit,
                    metric.recorded_at,
                )
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))

        @self.app.get("/body_metrics")
        def list_body_metrics(
            user_id: str = Query(..., min_length=1),
            metric_type: Optional[BodyMetricType] = None,
            limit: int = Query(self.page_size, ge=1, le=MAX_ID),
            offset: int = Query(0, ge=0, le=MAX_ID),
        ):
            return self.body_metrics.fetch_for_user(user_id, metric_type, limit, offset)

        @self.app.get("/users/{user_id}/settings")
        def get_user_settings(user_id: str = Path(..., min_length=1)):
            return self.user_settings.get_or_create(user_id)

        @self.app.put("/users/{user_id}/settings")
        def update_user_settings(
            changes: UpdateUserSettings,
            user_id: str = Path(..., min_length=1),
        ):
            try:
                return self.user_settings.upsert(
                    user_id,
                    timer_duration=changes.timer_duration,
                    dark_mode=changes.dark_mode,
                    body_metric_reminder_enabled=changes.body_metric_reminder_enabled,
                )
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))

        @self.app.post("/training_data/initialize")
        def initialize_catalog():
            return initialize_training_data(self.catalog)


_config = load_config()
api = TrackerAPI(db_path=_config.db_path, page_size=_config.default_page_size)
app = api.app

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=_config.host, port=_config.port)
