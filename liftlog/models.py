from datetime import datetime, timezone
from enum import Enum

from pydantic import field_validator
from sqlmodel import Field, SQLModel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MuscleGroup(str, Enum):
    CHEST = "chest"
    BACK = "back"
    SHOULDERS = "shoulders"
    BICEPS = "biceps"
    TRICEPS = "triceps"
    FOREARMS = "forearms"
    CORE = "core"
    QUADS = "quads"
    HAMSTRINGS = "hamstrings"
    GLUTES = "glutes"
    CALVES = "calves"
    FULL_BODY = "full_body"
    CARDIO = "cardio"


class ExerciseTemplate(SQLModel, table=True):
    id: str = Field(primary_key=True)
    name: str = Field(index=True)
    muscle_group: MuscleGroup
    equipment: str = ""
    is_custom: bool = False
    created_at: datetime = Field(default_factory=utcnow)


class WorkoutSession(SQLModel, table=True):
    id: str = Field(primary_key=True)
    name: str = ""
    started_at: datetime = Field(index=True)
    finished_at: datetime | None = None  # None while active
    duration_seconds: int = 0
    total_volume_kg: float = 0.0
    notes: str = ""


class WorkoutExercise(SQLModel, table=True):
    id: str = Field(primary_key=True)
    session_id: str = Field(foreign_key="workoutsession.id", index=True)
    exercise_template_id: str = Field(foreign_key="exercisetemplate.id")
    order_index: int = 0
    notes: str = ""


class WorkoutSet(SQLModel, table=True):
    id: str = Field(primary_key=True)
    exercise_id: str = Field(foreign_key="workoutexercise.id", index=True)
    set_number: int
    weight_kg: float | None = None
    reps: int | None = None
    duration_seconds: int | None = None
    rpe: int | None = None
    is_warmup: bool = False
    is_completed: bool = False
    completed_at: datetime | None = None


class SetUpdate(SQLModel):
    """Partial update of a set; only explicitly provided fields are applied."""

    weight_kg: float | None = Field(default=None, ge=0)
    reps: int | None = Field(default=None, ge=0)
    duration_seconds: int | None = Field(default=None, ge=0)
    rpe: int | None = Field(default=None, ge=1, le=10)
    is_warmup: bool | None = None

    @field_validator("is_warmup")
    @classmethod
    def warmup_not_null(cls, value: bool | None) -> bool:
        # The column is NOT NULL; leave the field out to keep the current flag
        if value is None:
            raise ValueError("is_warmup cannot be null")
        return value

    def changes(self) -> dict:
        return self.model_dump(exclude_unset=True)
