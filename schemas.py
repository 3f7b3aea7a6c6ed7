import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

BodyMetricType = Literal["arms", "legs", "core", "chest", "shoulders", "waist", "weight"]

# largest integer SQLite can bind
MAX_ID = 2**63 - 1


class CreateUserExerciseLog(BaseModel):
    user_id: str = Field(..., min_length=1)
    exercise_id: int = Field(..., le=MAX_ID)
    series_number: int = Field(..., ge=1, le=4)
    repetitions: int = Field(..., gt=0)
    weight: float = Field(..., ge=0)
    completed_at: Optional[datetime.datetime] = None


class CreateBodyMetric(BaseModel):
    user_id: str = Field(..., min_length=1)
    metric_type: BodyMetricType
    value: float = Field(..., gt=0)
    unit: str
    recorded_at: Optional[datetime.datetime] = None


class UpdateUserSettings(BaseModel):
    """Partial settings update; omitted fields are left untouched."""

    timer_duration: Optional[int] = Field(None, gt=0)
    dark_mode: Optional[bool] = None
    body_metric_reminder_enabled: Optional[bool] = None
