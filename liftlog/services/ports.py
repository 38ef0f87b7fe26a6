"""
Interfaces the workout engine and the progression analyzer depend on.

The SQLModel-backed implementations live in liftlog.services.repository;
tests substitute in-memory fakes.
"""

from contextlib import AbstractContextManager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol

from liftlog.models import ExerciseTemplate, WorkoutExercise, WorkoutSession, WorkoutSet


@dataclass
class HistorySet:
    """A completed set from a finished session."""

    id: str
    set_number: int
    weight_kg: float | None
    reps: int | None
    rpe: int | None = None
    is_warmup: bool = False
    is_completed: bool = True


@dataclass
class SessionSets:
    session_id: str
    date: datetime
    name: str
    sets: list[HistorySet] = field(default_factory=list)


class WorkoutRepository(Protocol):
    """
    Durable storage for sessions, exercises and sets.

    Every method either applies its change completely or raises
    PersistenceError. Calls made inside transaction() are applied together.
    """

    def transaction(self) -> AbstractContextManager[None]: ...

    def create_session(self, session: WorkoutSession) -> None: ...

    def update_session(self, session_id: str, changes: dict[str, Any]) -> None: ...

    def delete_session(self, session_id: str) -> None:
        """Delete the session together with its exercises and sets."""
        ...

    def create_exercise(self, exercise: WorkoutExercise) -> None: ...

    def update_exercise(self, exercise_id: str, changes: dict[str, Any]) -> None: ...

    def delete_exercise(self, exercise_id: str) -> None:
        """Delete the exercise together with its sets."""
        ...

    def create_set(self, workout_set: WorkoutSet) -> None: ...

    def update_set(self, set_id: str, changes: dict[str, Any]) -> None: ...

    def delete_set(self, set_id: str) -> None: ...

    def find_unfinished_session(self) -> WorkoutSession | None: ...

    def list_exercises(self, session_id: str) -> list[WorkoutExercise]:
        """Exercises of a session ordered by order_index."""
        ...

    def list_sets(self, exercise_id: str) -> list[WorkoutSet]:
        """Sets of an exercise ordered by set_number."""
        ...


class ExerciseCatalog(Protocol):
    def get_template(self, template_id: str) -> ExerciseTemplate:
        """Return the template or raise NotFoundError."""
        ...


class SessionHistoryReader(Protocol):
    def get_recent_finished_sessions_for_exercise(
        self, template_id: str, limit: int
    ) -> list[SessionSets]:
        """The `limit` most recent finished sessions containing the exercise, newest first."""
        ...


class WorkoutSignals(Protocol):
    """Outbound notifications for the UI collaborator."""

    def on_set_completed(self, exercise_id: str, set_id: str) -> None: ...

    def on_workout_finished(self, session_id: str) -> None: ...


class NullSignals:
    def on_set_completed(self, exercise_id: str, set_id: str) -> None:
        pass

    def on_workout_finished(self, session_id: str) -> None:
        pass
