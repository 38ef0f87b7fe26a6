from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlmodel import SQLModel

from liftlog.errors import NoActiveWorkoutError
from liftlog.models import MuscleGroup, SetUpdate
from liftlog.services.active_workout import (
    ActiveExercise,
    ActiveSet,
    ActiveWorkout,
    WorkoutSessionManager,
)

router = APIRouter()


def get_workout_manager(request: Request) -> WorkoutSessionManager:
    """The process-wide manager created at startup (one active workout per device)."""
    return request.app.state.workout_manager


ManagerDep = Annotated[WorkoutSessionManager, Depends(get_workout_manager)]


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


class ExerciseRead(SQLModel):
    id: str
    exercise_template_id: str
    exercise_name: str
    muscle_group: MuscleGroup
    order_index: int
    notes: str
    sets: list[SetRead]


class ActiveWorkoutRead(SQLModel):
    session_id: str
    name: str
    started_at: datetime
    exercises: list[ExerciseRead]


class FinishedWorkoutRead(SQLModel):
    session_id: str


class SummaryRead(SQLModel):
    total_sets: int
    total_reps: int
    total_volume_kg: float
    exercise_count: int


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class StartWorkoutBody(SQLModel):
    name: str = ""


class RenameWorkoutBody(SQLModel):
    name: str


class AddExerciseBody(SQLModel):
    exercise_template_id: str


class ExerciseNotesBody(SQLModel):
    notes: str


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _set_read(s: ActiveSet) -> SetRead:
    return SetRead(
        id=s.id,
        set_number=s.set_number,
        weight_kg=s.weight_kg,
        reps=s.reps,
        duration_seconds=s.duration_seconds,
        rpe=s.rpe,
        is_warmup=s.is_warmup,
        is_completed=s.is_completed,
        completed_at=s.completed_at,
    )


def _exercise_read(e: ActiveExercise) -> ExerciseRead:
    return ExerciseRead(
        id=e.id,
        exercise_template_id=e.template.id,
        exercise_name=e.template.name,
        muscle_group=e.template.muscle_group,
        order_index=e.order_index,
        notes=e.notes,
        sets=[_set_read(s) for s in e.sets],
    )


def _workout_read(workout: ActiveWorkout) -> ActiveWorkoutRead:
    return ActiveWorkoutRead(
        session_id=workout.session_id,
        name=workout.name,
        started_at=workout.started_at,
        exercises=[_exercise_read(e) for e in workout.exercises],
    )


# ---------------------------------------------------------------------------
# Workout lifecycle
# ---------------------------------------------------------------------------


@router.get("/", response_model=ActiveWorkoutRead)
def get_active_workout(manager: ManagerDep):
    if manager.active is None:
        raise HTTPException(status_code=404, detail="No active workout")
    return _workout_read(manager.active)


@router.post("/", response_model=ActiveWorkoutRead, status_code=201)
def start_workout(body: StartWorkoutBody, manager: ManagerDep):
    manager.start(body.name)
    return _workout_read(manager.require_active())


@router.patch("/", response_model=ActiveWorkoutRead)
def rename_workout(body: RenameWorkoutBody, manager: ManagerDep):
    manager.rename_workout(body.name)
    return _workout_read(manager.require_active())


@router.post("/finish", response_model=FinishedWorkoutRead)
def finish_workout(manager: ManagerDep):
    session_id = manager.finish()
    if session_id is None:
        raise NoActiveWorkoutError()
    return FinishedWorkoutRead(session_id=session_id)


@router.delete("/", status_code=204)
def discard_workout(manager: ManagerDep):
    manager.discard()


@router.get("/summary", response_model=SummaryRead)
def get_summary(manager: ManagerDep):
    stats = manager.summary()
    return SummaryRead(
        total_sets=stats.total_sets,
        total_reps=stats.total_reps,
        total_volume_kg=stats.total_volume_kg,
        exercise_count=stats.exercise_count,
    )


# ---------------------------------------------------------------------------
# Exercises
# ---------------------------------------------------------------------------


@router.post("/exercises", response_model=ExerciseRead, status_code=201)
def add_exercise(body: AddExerciseBody, manager: ManagerDep):
    exercise_id = manager.add_exercise_by_id(body.exercise_template_id)
    return _exercise_read(manager.require_active().exercise(exercise_id))


@router.patch("/exercises/{exercise_id}", response_model=ExerciseRead)
def update_exercise_notes(exercise_id: str, body: ExerciseNotesBody, manager: ManagerDep):
    manager.update_exercise_notes(exercise_id, body.notes)
    return _exercise_read(manager.require_active().exercise(exercise_id))


@router.delete("/exercises/{exercise_id}", status_code=204)
def remove_exercise(exercise_id: str, manager: ManagerDep):
    manager.remove_exercise(exercise_id)


# ---------------------------------------------------------------------------
# Sets
# ---------------------------------------------------------------------------


@router.post("/exercises/{exercise_id}/sets", response_model=SetRead, status_code=201)
def add_set(exercise_id: str, manager: ManagerDep):
    set_id = manager.add_set(exercise_id)
    return _set_read(manager.require_active().set(exercise_id, set_id))


@router.patch("/exercises/{exercise_id}/sets/{set_id}", response_model=SetRead)
def update_set(exercise_id: str, set_id: str, body: SetUpdate, manager: ManagerDep):
    manager.update_set(exercise_id, set_id, body)
    return _set_read(manager.require_active().set(exercise_id, set_id))


@router.post("/exercises/{exercise_id}/sets/{set_id}/complete", response_model=SetRead)
def complete_set(exercise_id: str, set_id: str, manager: ManagerDep):
    manager.complete_set(exercise_id, set_id)
    return _set_read(manager.require_active().set(exercise_id, set_id))


@router.post("/exercises/{exercise_id}/sets/{set_id}/uncomplete", response_model=SetRead)
def uncomplete_set(exercise_id: str, set_id: str, manager: ManagerDep):
    manager.uncomplete_set(exercise_id, set_id)
    return _set_read(manager.require_active().set(exercise_id, set_id))


@router.delete("/exercises/{exercise_id}/sets/{set_id}", status_code=204)
def remove_set(exercise_id: str, set_id: str, manager: ManagerDep):
    manager.remove_set(exercise_id, set_id)
