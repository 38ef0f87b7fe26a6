"""The active workout session: the single in-progress workout and its edits.

Every operation validates first, writes through the repository second, and
only then touches the in-memory aggregate, so a storage failure never leaves
the aggregate ahead of what is durably stored.
"""

import logging
import threading
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone

from liftlog.errors import (
    AlreadyActiveError,
    InvalidStateError,
    NoActiveWorkoutError,
    NotFoundError,
)
from liftlog.models import ExerciseTemplate, SetUpdate, WorkoutExercise, WorkoutSession, WorkoutSet, utcnow
from liftlog.services.numeric import WorkoutSummaryStats, summarize, total_volume
from liftlog.services.ports import ExerciseCatalog, NullSignals, WorkoutRepository, WorkoutSignals

logger = logging.getLogger(__name__)

# Fields that are frozen while a set is completed
FROZEN_WHEN_COMPLETED = frozenset({"weight_kg", "reps"})


@dataclass
class ActiveSet:
    id: str
    exercise_id: str
    set_number: int
    weight_kg: float | None = None
    reps: int | None = None
    duration_seconds: int | None = None
    rpe: int | None = None
    is_warmup: bool = False
    is_completed: bool = False
    completed_at: datetime | None = None


@dataclass
class ActiveExercise:
    id: str
    template: ExerciseTemplate
    order_index: int = 0
    notes: str = ""
    sets: list[ActiveSet] = field(default_factory=list)


@dataclass
class ActiveWorkout:
    session_id: str
    name: str
    started_at: datetime
    exercises: list[ActiveExercise] = field(default_factory=list)

    def exercise(self, exercise_id: str) -> ActiveExercise:
        for e in self.exercises:
            if e.id == exercise_id:
                return e
        raise NotFoundError(f"Exercise {exercise_id} not found in the active workout")

    def set(self, exercise_id: str, set_id: str) -> ActiveSet:
        for s in self.exercise(exercise_id).sets:
            if s.id == set_id:
                return s
        raise NotFoundError(f"Set {set_id} not found in exercise {exercise_id}")


def _new_id() -> str:
    return str(uuid.uuid4())


def _as_utc(value: datetime | None) -> datetime | None:
    # SQLite hands datetimes back without tzinfo
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class WorkoutSessionManager:
    """Owns at most one ActiveWorkout and keeps it in step with the repository.

    Operations are serialized with a re-entrant lock; the engine is meant for
    one caller issuing operations one after another, and the lock keeps rapid
    repeats (a double-tapped "add set") from interleaving.
    """

    def __init__(
        self,
        repository: WorkoutRepository,
        catalog: ExerciseCatalog,
        signals: WorkoutSignals | None = None,
        clock: Callable[[], datetime] = utcnow,
        id_factory: Callable[[], str] = _new_id,
        default_name: str = "Workout",
    ):
        self.repository = repository
        self.catalog = catalog
        self.signals = signals or NullSignals()
        self.clock = clock
        self.id_factory = id_factory
        self.default_name = default_name
        self._active: ActiveWorkout | None = None
        self._lock = threading.RLock()

    @property
    def active(self) -> ActiveWorkout | None:
        return self._active

    @property
    def is_active(self) -> bool:
        return self._active is not None

    def require_active(self) -> ActiveWorkout:
        if self._active is None:
            raise NoActiveWorkoutError()
        return self._active

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self, name: str = "") -> str:
        with self._lock:
            if self._active is not None:
                raise AlreadyActiveError()

            session_id = self.id_factory()
            name = name.strip() or self.default_name
            started_at = self.clock()
            self.repository.create_session(
                WorkoutSession(
                    id=session_id,
                    name=name,
                    started_at=started_at,
                    finished_at=None,
                    duration_seconds=0,
                    total_volume_kg=0.0,
                )
            )
            self._active = ActiveWorkout(session_id=session_id, name=name, started_at=started_at)
            logger.info("Started workout %s (%s)", session_id, name)
            return session_id

    def finish(self) -> str | None:
        """Close the workout, storing its duration and volume. None when idle."""
        with self._lock:
            workout = self._active
            if workout is None:
                return None

            now = self.clock()
            duration_seconds = round((now - workout.started_at).total_seconds())
            volume = total_volume(s for e in workout.exercises for s in e.sets)

            self.repository.update_session(
                workout.session_id,
                {
                    "finished_at": now,
                    "duration_seconds": duration_seconds,
                    "total_volume_kg": volume,
                    "name": workout.name,
                },
            )
            self._active = None
            logger.info(
                "Finished workout %s after %ss, %.1f kg total volume",
                workout.session_id,
                duration_seconds,
                volume,
            )

        try:
            self.signals.on_workout_finished(workout.session_id)
        except Exception:
            logger.exception("Post-finish signal failed for workout %s", workout.session_id)
        return workout.session_id

    def discard(self) -> None:
        with self._lock:
            workout = self.require_active()
            self.repository.delete_session(workout.session_id)
            self._active = None
            logger.info("Discarded workout %s", workout.session_id)

    def rename_workout(self, name: str) -> None:
        with self._lock:
            workout = self.require_active()
            name = name.strip() or self.default_name
            self.repository.update_session(workout.session_id, {"name": name})
            workout.name = name

    def restore(self) -> str | None:
        """Reload an unfinished session from storage, e.g. after a crash.

        Returns the restored session id, or None when nothing was unfinished.
        """
        with self._lock:
            if self._active is not None:
                raise AlreadyActiveError()

            stored = self.repository.find_unfinished_session()
            if stored is None:
                return None

            exercises: list[ActiveExercise] = []
            for row in self.repository.list_exercises(stored.id):
                sets = [
                    ActiveSet(
                        id=s.id,
                        exercise_id=row.id,
                        set_number=s.set_number,
                        weight_kg=s.weight_kg,
                        reps=s.reps,
                        duration_seconds=s.duration_seconds,
                        rpe=s.rpe,
                        is_warmup=s.is_warmup,
                        is_completed=s.is_completed,
                        completed_at=_as_utc(s.completed_at),
                    )
                    for s in self.repository.list_sets(row.id)
                ]
                exercises.append(
                    ActiveExercise(
                        id=row.id,
                        template=self.catalog.get_template(row.exercise_template_id),
                        order_index=row.order_index,
                        notes=row.notes,
                        sets=sets,
                    )
                )

            self._active = ActiveWorkout(
                session_id=stored.id,
                name=stored.name,
                started_at=_as_utc(stored.started_at),
                exercises=exercises,
            )
            logger.info("Restored unfinished workout %s", stored.id)
            return stored.id

    # ------------------------------------------------------------------
    # Exercises
    # ------------------------------------------------------------------

    def add_exercise(self, template: ExerciseTemplate) -> str:
        with self._lock:
            workout = self.require_active()
            exercise = ActiveExercise(
                id=self.id_factory(), template=template, order_index=len(workout.exercises)
            )
            self.repository.create_exercise(
                WorkoutExercise(
                    id=exercise.id,
                    session_id=workout.session_id,
                    exercise_template_id=template.id,
                    order_index=exercise.order_index,
                )
            )
            workout.exercises.append(exercise)
            return exercise.id

    def add_exercise_by_id(self, template_id: str) -> str:
        """Look the template up in the catalog and add it, all under the lock."""
        with self._lock:
            self.require_active()
            return self.add_exercise(self.catalog.get_template(template_id))

    def remove_exercise(self, exercise_id: str) -> None:
        """Delete the exercise and its sets; the remaining order_index values are compacted."""
        with self._lock:
            workout = self.require_active()
            workout.exercise(exercise_id)
            remaining = [e for e in workout.exercises if e.id != exercise_id]

            with self.repository.transaction():
                self.repository.delete_exercise(exercise_id)
                for index, e in enumerate(remaining):
                    if e.order_index != index:
                        self.repository.update_exercise(e.id, {"order_index": index})

            for index, e in enumerate(remaining):
                e.order_index = index
            workout.exercises = remaining

    def update_exercise_notes(self, exercise_id: str, notes: str) -> None:
        with self._lock:
            exercise = self.require_active().exercise(exercise_id)
            self.repository.update_exercise(exercise_id, {"notes": notes})
            exercise.notes = notes

    # ------------------------------------------------------------------
    # Sets
    # ------------------------------------------------------------------

    def add_set(self, exercise_id: str) -> str:
        """Append a set, carrying weight and reps forward from the previous one."""
        with self._lock:
            exercise = self.require_active().exercise(exercise_id)
            previous = exercise.sets[-1] if exercise.sets else None
            new_set = ActiveSet(
                id=self.id_factory(),
                exercise_id=exercise_id,
                set_number=len(exercise.sets) + 1,
                weight_kg=previous.weight_kg if previous else None,
                reps=previous.reps if previous else None,
            )
            self.repository.create_set(
                WorkoutSet(
                    id=new_set.id,
                    exercise_id=exercise_id,
                    set_number=new_set.set_number,
                    weight_kg=new_set.weight_kg,
                    reps=new_set.reps,
                )
            )
            exercise.sets.append(new_set)
            return new_set.id

    def update_set(self, exercise_id: str, set_id: str, update: SetUpdate) -> None:
        with self._lock:
            target = self.require_active().set(exercise_id, set_id)
            changes = update.changes()
            if target.is_completed and FROZEN_WHEN_COMPLETED & changes.keys():
                raise InvalidStateError("Uncomplete the set before changing its weight or reps")
            if not changes:
                return

            self.repository.update_set(set_id, changes)
            for key, value in changes.items():
                setattr(target, key, value)

    def complete_set(self, exercise_id: str, set_id: str) -> None:
        with self._lock:
            target = self.require_active().set(exercise_id, set_id)
            if target.is_completed:
                return

            completed_at = self.clock()
            self.repository.update_set(set_id, {"is_completed": True, "completed_at": completed_at})
            target.is_completed = True
            target.completed_at = completed_at

        # Rest timers are the UI's business; we only say when it should start
        try:
            self.signals.on_set_completed(exercise_id, set_id)
        except Exception:
            logger.exception("Set-completed signal failed for set %s", set_id)

    def uncomplete_set(self, exercise_id: str, set_id: str) -> None:
        with self._lock:
            target = self.require_active().set(exercise_id, set_id)
            if not target.is_completed:
                return

            self.repository.update_set(set_id, {"is_completed": False, "completed_at": None})
            target.is_completed = False
            target.completed_at = None

    def remove_set(self, exercise_id: str, set_id: str) -> None:
        """Delete a set and renumber the survivors 1..count in their current order."""
        with self._lock:
            workout = self.require_active()
            exercise = workout.exercise(exercise_id)
            workout.set(exercise_id, set_id)
            survivors = [s for s in exercise.sets if s.id != set_id]

            with self.repository.transaction():
                self.repository.delete_set(set_id)
                for number, s in enumerate(survivors, start=1):
                    if s.set_number != number:
                        self.repository.update_set(s.id, {"set_number": number})

            for number, s in enumerate(survivors, start=1):
                s.set_number = number
            exercise.sets = survivors

    # ------------------------------------------------------------------
    # Read helpers
    # ------------------------------------------------------------------

    def summary(self) -> WorkoutSummaryStats:
        with self._lock:
            workout = self.require_active()
            return summarize([e.sets for e in workout.exercises])
