from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlmodel import Session, SQLModel

from liftlog.database import get_session
from liftlog.services.repository import SqlSessionHistoryReader

router = APIRouter()

SessionDep = Annotated[Session, Depends(get_session)]


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class SetRead(SQLModel):
    id: str
    set_number: int
    weight_kg: float | None
    reps: int | None
    duration_seconds: int | None
    rpe: int | None
    is_warmup: bool
    is_completed: bool
    completed_at: datetime | None


class WorkoutExerciseRead(SQLModel):
    id: str
    exercise_template_id: str
    exercise_name: str
    order_index: int
    notes: str
    sets: list[SetRead]


class WorkoutSummary(SQLModel):
    id: str
    name: str
    started_at: datetime
    finished_at: datetime | None
    duration_seconds: int
    total_volume_kg: float


class WorkoutRead(WorkoutSummary):
    notes: str
    exercises: list[WorkoutExerciseRead]


class WeeklyStatsRead(SQLModel):
    workout_count: int
    total_volume_kg: float


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@router.get("/", response_model=list[WorkoutSummary])
def list_workouts(
    session: SessionDep,
    limit: Annotated[int, Query(ge=1, le=500)] = 100,
    offset: Annotated[int, Query(ge=0)] = 0,
):
    return SqlSessionHistoryReader(session).list_finished_sessions(limit=limit, offset=offset)


@router.get("/weekly-stats", response_model=WeeklyStatsRead)
def get_weekly_stats(start: datetime, end: datetime, session: SessionDep):
    stats = SqlSessionHistoryReader(session).get_weekly_stats(start, end)
    return WeeklyStatsRead(workout_count=stats.workout_count, total_volume_kg=stats.total_volume_kg)


@router.get("/{session_id}", response_model=WorkoutRead)
def get_workout(session_id: str, session: SessionDep):
    detail = SqlSessionHistoryReader(session).get_session_detail(session_id)
    workout = detail.session
    return WorkoutRead(
        id=workout.id,
        name=workout.name,
        started_at=workout.started_at,
        finished_at=workout.finished_at,
        duration_seconds=workout.duration_seconds,
        total_volume_kg=workout.total_volume_kg,
        notes=workout.notes,
        exercises=[
            WorkoutExerciseRead(
                id=e.exercise.id,
                exercise_template_id=e.exercise.exercise_template_id,
                exercise_name=e.template_name,
                order_index=e.exercise.order_index,
                notes=e.exercise.notes,
                sets=[SetRead.model_validate(s, from_attributes=True) for s in e.sets],
            )
            for e in detail.exercises
        ],
    )
