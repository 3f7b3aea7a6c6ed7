import sqlite3
import csv
import io
import json
import datetime
import logging
from contextlib import contextmanager
from typing import List, Tuple, Optional, Iterable


log = logging.getLogger(__name__)

DEFAULT_TIMER_DURATION = 120
DEFAULT_DARK_MODE = True
DEFAULT_BODY_METRIC_REMINDER_ENABLED = True

TRAINING_TYPES = ("pull", "push", "legs", "other")
BODY_METRIC_TYPES = ("arms", "legs", "core", "chest", "shoulders", "waist", "weight")


class NotFoundError(ValueError):
    """Raised when a referenced row does not exist."""


def format_timestamp(value: datetime.datetime | None = None) -> str:
    """Return ``value`` (or now) as naive UTC ISO text with microseconds."""
    if value is None:
        value = datetime.datetime.now(datetime.timezone.utc)
    if value.tzinfo is not None:
        value = value.astimezone(datetime.timezone.utc).replace(tzinfo=None)
    return value.isoformat(timespec="microseconds")


class Database:
    """Provides SQLite connection management and schema initialization."""

    _TABLE_DEFINITIONS = {
        "training_sessions": (
            """CREATE TABLE training_sessions (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL,
                    type TEXT NOT NULL CHECK (type IN ('pull', 'push', 'legs', 'other')),
                    description TEXT,
                    created_at TEXT NOT NULL
                );""",
            ["id", "name", "type", "description", "created_at"],
        ),
        "exercises": (
            """CREATE TABLE exercises (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    training_session_id INTEGER NOT NULL,
                    name TEXT NOT NULL,
                    description TEXT,
                    target_series INTEGER NOT NULL CHECK (target_series BETWEEN 2 AND 4),
                    created_at TEXT NOT NULL,
                    FOREIGN KEY(training_session_id) REFERENCES training_sessions(id)
                );""",
            [
                "id",
                "training_session_id",
                "name",
                "description",
                "target_series",
                "created_at",
            ],
        ),
        "series": (
            """CREATE TABLE series (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    exercise_id INTEGER NOT NULL,
                    series_number INTEGER NOT NULL CHECK (series_number BETWEEN 1 AND 4),
                    target_repetitions INTEGER NOT NULL CHECK (target_repetitions > 0),
                    target_weight REAL NOT NULL CHECK (target_weight >= 0),
                    created_at TEXT NOT NULL,
                    UNIQUE (exercise_id, series_number),
                    FOREIGN KEY(exercise_id) REFERENCES exercises(id)
                );""",
            [
                "id",
                "exercise_id",
                "series_number",
                "target_repetitions",
                "target_weight",
                "created_at",
            ],
        ),
        "user_exercise_logs": (
            """CREATE TABLE user_exercise_logs (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id TEXT NOT NULL,
                    exercise_id INTEGER NOT NULL,
                    series_number INTEGER NOT NULL CHECK (series_number BETWEEN 1 AND 4),
                    repetitions INTEGER NOT NULL CHECK (repetitions > 0),
                    weight REAL NOT NULL CHECK (weight >= 0),
                    completed_at TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    FOREIGN KEY(exercise_id) REFERENCES exercises(id)
                );""",
            [
                "id",
                "user_id",
                "exercise_id",
                "series_number",
                "repetitions",
                "weight",
                "completed_at",
                "created_at",
            ],
        ),
        "body_metrics": (
            """CREATE TABLE body_metrics (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id TEXT NOT NULL,
                    metric_type TEXT NOT NULL CHECK (metric_type IN ('arms', 'legs', 'core', 'chest', 'shoulders', 'waist', 'weight')),
                    value REAL NOT NULL CHECK (value > 0),
                    unit TEXT NOT NULL,
                    recorded_at TEXT NOT NULL,
                    created_at TEXT NOT NULL
                );""",
            [
                "id",
                "user_id",
                "metric_type",
                "value",
                "unit",
                "recorded_at",
                "created_at",
            ],
        ),
        "user_settings": (
            """CREATE TABLE user_settings (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id TEXT NOT NULL UNIQUE,
                    timer_duration INTEGER NOT NULL DEFAULT 120,
                    dark_mode INTEGER NOT NULL DEFAULT 1,
                    body_metric_reminder_enabled INTEGER NOT NULL DEFAULT 1,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );""",
            [
                "id",
                "user_id",
                "timer_duration",
                "dark_mode",
                "body_metric_reminder_enabled",
                "created_at",
                "updated_at",
            ],
        ),
    }

    _INDEXES = (
        "CREATE INDEX IF NOT EXISTS idx_exercises_session ON exercises(training_session_id);",
        "CREATE INDEX IF NOT EXISTS idx_logs_user_exercise ON user_exercise_logs(user_id, exercise_id, completed_at);",
        "CREATE INDEX IF NOT EXISTS idx_body_metrics_user ON body_metrics(user_id, recorded_at);",
    )

    def __init__(self, db_path: str = "training.db") -> None:
        self._db_path = db_path
        self._ensure_schema()

    @contextmanager
    def _connection(self):
        connection = sqlite3.connect(self._db_path)
        try:
            yield connection
            connection.commit()
        finally:
            connection.close()

    def _ensure_schema(self) -> None:
        with self._connection() as conn:
            for table, (sql, columns) in self._TABLE_DEFINITIONS.items():
                self._ensure_table(conn, table, sql, columns)
            for sql in self._INDEXES:
                conn.execute(sql)

    def _ensure_table(
        self, conn: sqlite3.Connection, table: str, sql: str, columns: List[str]
    ) -> None:
        cur = conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name=?;", (table,)
        )
        if cur.fetchone() is None:
            conn.execute(sql)
            return

        cur = conn.execute(f"PRAGMA table_info({table});")
        existing_cols = [row[1] for row in cur.fetchall()]
        if existing_cols == columns:
            return

        log.info("rebuilding table %s for new columns", table)
        conn.execute(f"ALTER TABLE {table} RENAME TO {table}_old;")
        conn.execute(sql)

        common = [c for c in existing_cols if c in columns]
        if common:
            cols = ", ".join(common)
            missing = [c for c in columns if c not in existing_cols]
            if missing:
                def default_val(col: str) -> str:
                    if col in ("created_at", "updated_at", "completed_at", "recorded_at"):
                        return f"'{format_timestamp()}'"
                    if col == "timer_duration":
                        return str(DEFAULT_TIMER_DURATION)
                    if col == "dark_mode":
                        return str(int(DEFAULT_DARK_MODE))
                    if col == "body_metric_reminder_enabled":
                        return str(int(DEFAULT_BODY_METRIC_REMINDER_ENABLED))
                    if col == "target_weight":
                        return "0"
                    return "NULL"

                defaults = ", ".join(default_val(c) for c in missing)
                conn.execute(
                    f"INSERT INTO {table} ({cols}, {', '.join(missing)}) SELECT {cols}, {defaults} FROM {table}_old;"
                )
            else:
                conn.execute(
                    f"INSERT INTO {table} ({cols}) SELECT {cols} FROM {table}_old;"
                )
        conn.execute(f"DROP TABLE {table}_old;")

    def vacuum(self) -> None:
        """Run SQLite VACUUM to reduce database size."""
        with self._connection() as conn:
            conn.execute("VACUUM;")


class BaseRepository(Database):
    """Base repository providing helper methods."""

    _TABLE = ""

    def execute(self, query: str, params: Tuple = ()) -> int:
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return cursor.lastrowid

    def fetch_all(self, query: str, params: Tuple = ()) -> List[Tuple]:
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return cursor.fetchall()

    @classmethod
    def _columns(cls) -> List[str]:
        return cls._TABLE_DEFINITIONS[cls._TABLE][1]

    @classmethod
    def _select(cls) -> str:
        return f"SELECT {', '.join(cls._columns())} FROM {cls._TABLE}"

    @classmethod
    def _to_dict(cls, row: Tuple) -> dict:
        return dict(zip(cls._columns(), row))

    def fetch_by_id(self, row_id: int) -> Optional[dict]:
        rows = self.fetch_all(f"{self._select()} WHERE id = ?;", (row_id,))
        if not rows:
            return None
        return self._to_dict(rows[0])


class TrainingSessionRepository(BaseRepository):
    """Repository for training session table operations."""

    _TABLE = "training_sessions"

    def add(self, name: str, session_type: str, description: str | None = None) -> int:
        if session_type not in TRAINING_TYPES:
            raise ValueError(f"invalid training type: {session_type}")
        return self.execute(
            "INSERT INTO training_sessions (name, type, description, created_at) VALUES (?, ?, ?, ?);",
            (name, session_type, description, format_timestamp()),
        )

    def fetch_all_sessions(self) -> List[dict]:
        rows = self.fetch_all(f"{self._select()} ORDER BY id;")
        return [self._to_dict(r) for r in rows]


class ExerciseRepository(BaseRepository):
    """Repository for exercise table operations."""

    _TABLE = "exercises"

    def add(
        self,
        training_session_id: int,
        name: str,
        target_series: int,
        description: str | None = None,
    ) -> int:
        if target_series < 2 or target_series > 4:
            raise ValueError("target_series must be between 2 and 4")
        return self.execute(
            "INSERT INTO exercises (training_session_id, name, description, target_series, created_at) VALUES (?, ?, ?, ?, ?);",
            (training_session_id, name, description, target_series, format_timestamp()),
        )

    def fetch_for_session(self, training_session_id: int) -> List[dict]:
        rows = self.fetch_all(
            f"{self._select()} WHERE training_session_id = ? ORDER BY id;",
            (training_session_id,),
        )
        return [self._to_dict(r) for r in rows]

    def exists(self, exercise_id: int) -> bool:
        rows = self.fetch_all("SELECT 1 FROM exercises WHERE id = ?;", (exercise_id,))
        return bool(rows)

    def fetch_with_series(self, exercise_id: int) -> Optional[dict]:
        """Return the exercise merged with its series, or ``None`` if unknown."""
        exercise = self.fetch_by_id(exercise_id)
        if exercise is None:
            return None
        rows = self.fetch_all(
            f"{SeriesRepository._select()} WHERE exercise_id = ? ORDER BY id;",
            (exercise_id,),
        )
        exercise["series"] = [SeriesRepository._to_dict(r) for r in rows]
        return exercise


class SeriesRepository(BaseRepository):
    """Repository for the predefined target series of an exercise."""

    _TABLE = "series"

    @classmethod
    def _to_dict(cls, row: Tuple) -> dict:
        data = super()._to_dict(row)
        data["target_weight"] = float(data["target_weight"])
        return data

    def add(
        self,
        exercise_id: int,
        series_number: int,
        target_repetitions: int,
        target_weight: float = 0.0,
    ) -> int:
        if series_number < 1 or series_number > 4:
            raise ValueError("series_number must be between 1 and 4")
        if target_repetitions <= 0:
            raise ValueError("target_repetitions must be positive")
        if target_weight < 0:
            raise ValueError("target_weight must be non-negative")
        return self.execute(
            "INSERT INTO series (exercise_id, series_number, target_repetitions, target_weight, created_at) VALUES (?, ?, ?, ?, ?);",
            (exercise_id, series_number, target_repetitions, target_weight, format_timestamp()),
        )

    def fetch_for_exercise(self, exercise_id: int) -> List[dict]:
        rows = self.fetch_all(
            f"{self._select()} WHERE exercise_id = ? ORDER BY series_number;",
            (exercise_id,),
        )
        return [self._to_dict(r) for r in rows]


class CatalogRepository(BaseRepository):
    """Writes a whole session/exercise/series hierarchy in one transaction."""

    def create_catalog(self, sessions: Iterable[dict]) -> dict:
        """Insert ``sessions`` with their nested ``exercises`` and ``series``.

        Each session dict carries ``name``, ``type``, ``description`` and an
        ``exercises`` list; each exercise carries ``name``, ``description``,
        ``target_series`` and a ``series`` list of
        ``(series_number, target_repetitions, target_weight)`` tuples.
        Nothing is committed unless every insert succeeds.
        """
        created: dict[str, list[dict]] = {
            "training_sessions": [],
            "exercises": [],
            "series": [],
        }
        with self._connection() as conn:
            cur = conn.cursor()
            for session in sessions:
                now = format_timestamp()
                cur.execute(
                    "INSERT INTO training_sessions (name, type, description, created_at) VALUES (?, ?, ?, ?);",
                    (session["name"], session["type"], session["description"], now),
                )
                session_id = cur.lastrowid
                created["training_sessions"].append(
                    {
                        "id": session_id,
                        "name": session["name"],
                        "type": session["type"],
                        "description": session["description"],
                        "created_at": now,
                    }
                )
                for exercise in session["exercises"]:
                    cur.execute(
                        "INSERT INTO exercises (training_session_id, name, description, target_series, created_at) VALUES (?, ?, ?, ?, ?);",
                        (
                            session_id,
                            exercise["name"],
                            exercise["description"],
                            exercise["target_series"],
                            now,
                        ),
                    )
                    exercise_id = cur.lastrowid
                    created["exercises"].append(
                        {
                            "id": exercise_id,
                            "training_session_id": session_id,
                            "name": exercise["name"],
                            "description": exercise["description"],
                            "target_series": exercise["target_series"],
                            "created_at": now,
                        }
                    )
                    for number, reps, weight in exercise["series"]:
                        cur.execute(
                            "INSERT INTO series (exercise_id, series_number, target_repetitions, target_weight, created_at) VALUES (?, ?, ?, ?, ?);",
                            (exercise_id, number, reps, weight, now),
                        )
                        created["series"].append(
                            {
                                "id": cur.lastrowid,
                                "exercise_id": exercise_id,
                                "series_number": number,
                                "target_repetitions": reps,
                                "target_weight": float(weight),
                                "created_at": now,
                            }
                        )
        return created


class UserExerciseLogRepository(BaseRepository):
    """Repository for completed sets logged by users."""

    _TABLE = "user_exercise_logs"

    def __init__(self, db_path: str = "training.db") -> None:
        super().__init__(db_path)
        self.exercises = ExerciseRepository(db_path)

    @classmethod
    def _to_dict(cls, row: Tuple) -> dict:
        data = super()._to_dict(row)
        data["weight"] = float(data["weight"])
        return data

    def add(
        self,
        user_id: str,
        exercise_id: int,
        series_number: int,
        repetitions: int,
        weight: float,
        completed_at: datetime.datetime | None = None,
    ) -> dict:
        if series_number < 1 or series_number > 4:
            raise ValueError("series_number must be between 1 and 4")
        if repetitions <= 0:
            raise ValueError("repetitions must be positive")
        if weight < 0:
            raise ValueError("weight must be non-negative")
        if not self.exercises.exists(exercise_id):
            raise NotFoundError(f"Exercise with id {exercise_id} does not exist")
        log_id = self.execute(
            "INSERT INTO user_exercise_logs (user_id, exercise_id, series_number, repetitions, weight, completed_at, created_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?);",
            (
                user_id,
                exercise_id,
                series_number,
                repetitions,
                weight,
                format_timestamp(completed_at),
                format_timestamp(),
            ),
        )
        log.debug("logged set %s for user %s on exercise %s", series_number, user_id, exercise_id)
        return self.fetch_by_id(log_id)

    def fetch_for_user(
        self,
        user_id: str,
        exercise_id: Optional[int] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[dict]:
        query = f"{self._select()} WHERE user_id = ?"
        params: list[str | int] = [user_id]
        if exercise_id is not None:
            query += " AND exercise_id = ?"
            params.append(exercise_id)
        query += " ORDER BY completed_at DESC, id DESC LIMIT ? OFFSET ?;"
        params.extend([limit, offset])
        rows = self.fetch_all(query, tuple(params))
        return [self._to_dict(r) for r in rows]

    def last_performance(self, user_id: str, exercise_id: int) -> List[dict]:
        """Return every log sharing the latest completion time, by series."""
        rows = self.fetch_all(
            "SELECT MAX(completed_at) FROM user_exercise_logs WHERE user_id = ? AND exercise_id = ?;",
            (user_id, exercise_id),
        )
        latest = rows[0][0] if rows else None
        if latest is None:
            return []
        rows = self.fetch_all(
            f"{self._select()} WHERE user_id = ? AND exercise_id = ? AND completed_at = ? "
            "ORDER BY series_number ASC;",
            (user_id, exercise_id, latest),
        )
        return [self._to_dict(r) for r in rows]

    def _fetch_export_rows(self, user_id: str) -> List[Tuple]:
        return self.fetch_all(
            "SELECT e.name, l.series_number, l.repetitions, l.weight, l.completed_at "
            "FROM user_exercise_logs l JOIN exercises e ON e.id = l.exercise_id "
            "WHERE l.user_id = ? ORDER BY l.completed_at, l.series_number;",
            (user_id,),
        )

    def export_csv(self, user_id: str) -> str:
        rows = self._fetch_export_rows(user_id)
        output = io.StringIO()
        writer = csv.writer(output)
        writer.writerow(["Exercise", "Series", "Reps", "Weight", "Completed"])
        for name, number, reps, weight, completed in rows:
            writer.writerow([name, number, reps, weight, completed])
        return output.getvalue()

    def export_json(self, user_id: str) -> str:
        """Return a user's logs as a JSON string."""
        rows = self._fetch_export_rows(user_id)
        data = [
            {
                "exercise": name,
                "series_number": int(number),
                "repetitions": int(reps),
                "weight": float(weight),
                "completed_at": completed,
            }
            for name, number, reps, weight, completed in rows
        ]
        return json.dumps(data)


class BodyMetricRepository(BaseRepository):
    """Repository for body measurement history."""

    _TABLE = "body_metrics"

    @classmethod
    def _to_dict(cls, row: Tuple) -> dict:
        data = super()._to_dict(row)
        data["value"] = float(data["value"])
        return data

    def add(
        self,
        user_id: str,
        metric_type: str,
        value: float,
        unit: str,
        recorded_at: datetime.datetime | None = None,
    ) -> dict:
        if metric_type not in BODY_METRIC_TYPES:
            raise ValueError(f"invalid metric type: {metric_type}")
        if value <= 0:
            raise ValueError("value must be positive")
        metric_id = self.execute(
            "INSERT INTO body_metrics (user_id, metric_type, value, unit, recorded_at, created_at) VALUES (?, ?, ?, ?, ?, ?);",
            (
                user_id,
                metric_type,
                value,
                unit,
                format_timestamp(recorded_at),
                format_timestamp(),
            ),
        )
        return self.fetch_by_id(metric_id)

    def fetch_for_user(
        self,
        user_id: str,
        metric_type: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[dict]:
        query = f"{self._select()} WHERE user_id = ?"
        params: list[str | int] = [user_id]
        if metric_type:
            query += " AND metric_type = ?"
            params.append(metric_type)
        query += " ORDER BY recorded_at DESC, id DESC LIMIT ? OFFSET ?;"
        params.extend([limit, offset])
        rows = self.fetch_all(query, tuple(params))
        return [self._to_dict(r) for r in rows]


class UserSettingsRepository(BaseRepository):
    """Repository for per-user preferences, one row per user."""

    _TABLE = "user_settings"
    _FIELDS = ("timer_duration", "dark_mode", "body_metric_reminder_enabled")

    @classmethod
    def _to_dict(cls, row: Tuple) -> dict:
        data = super()._to_dict(row)
        data["dark_mode"] = bool(data["dark_mode"])
        data["body_metric_reminder_enabled"] = bool(data["body_metric_reminder_enabled"])
        return data

    def _fetch_for_user(self, conn: sqlite3.Connection, user_id: str) -> dict:
        row = conn.execute(
            f"{self._select()} WHERE user_id = ?;", (user_id,)
        ).fetchone()
        return self._to_dict(row)

    def get_or_create(self, user_id: str) -> dict:
        now = format_timestamp()
        with self._connection() as conn:
            conn.execute(
                "INSERT INTO user_settings (user_id, timer_duration, dark_mode, body_metric_reminder_enabled, created_at, updated_at) "
                "VALUES (?, ?, ?, ?, ?, ?) ON CONFLICT(user_id) DO NOTHING;",
                (
                    user_id,
                    DEFAULT_TIMER_DURATION,
                    int(DEFAULT_DARK_MODE),
                    int(DEFAULT_BODY_METRIC_REMINDER_ENABLED),
                    now,
                    now,
                ),
            )
            return self._fetch_for_user(conn, user_id)

    def upsert(
        self,
        user_id: str,
        timer_duration: Optional[int] = None,
        dark_mode: Optional[bool] = None,
        body_metric_reminder_enabled: Optional[bool] = None,
    ) -> dict:
        """Update the given fields, creating the row with defaults if absent."""
        if timer_duration is not None and timer_duration <= 0:
            raise ValueError("timer_duration must be positive")
        provided = {
            "timer_duration": timer_duration,
            "dark_mode": None if dark_mode is None else int(dark_mode),
            "body_metric_reminder_enabled": (
                None
                if body_metric_reminder_enabled is None
                else int(body_metric_reminder_enabled)
            ),
        }
        defaults = {
            "timer_duration": DEFAULT_TIMER_DURATION,
            "dark_mode": int(DEFAULT_DARK_MODE),
            "body_metric_reminder_enabled": int(DEFAULT_BODY_METRIC_REMINDER_ENABLED),
        }
        values = [
            provided[f] if provided[f] is not None else defaults[f] for f in self._FIELDS
        ]
        updates = ["updated_at = excluded.updated_at"]
        updates.extend(
            f"{f} = excluded.{f}" for f in self._FIELDS if provided[f] is not None
        )
        now = format_timestamp()
        with self._connection() as conn:
            conn.execute(
                "INSERT INTO user_settings (user_id, timer_duration, dark_mode, body_metric_reminder_enabled, created_at, updated_at) "
                f"VALUES (?, ?, ?, ?, ?, ?) ON CONFLICT(user_id) DO UPDATE SET {', '.join(updates)};",
                (user_id, *values, now, now),
            )
            return self._fetch_for_user(conn, user_id)
