import logging
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, SQLModel, func, select

from liftlog.errors import InvalidStateError, NotFoundError, PersistenceError
from liftlog.models import (
    ExerciseTemplate,
    MuscleGroup,
    WorkoutExercise,
    WorkoutSession,
    WorkoutSet,
)
from liftlog.services.ports import HistorySet, SessionSets

logger = logging.getLogger(__name__)

# Rows returned as "previous performance" hints for an exercise
LAST_SET_DATA_LIMIT = 5


@contextmanager
def _storage_errors(action: str, rollback: Session | None = None) -> Iterator[None]:
    try:
        yield
    except SQLAlchemyError as exc:
        logger.exception("Storage failure while trying to %s", action)
        if rollback is not None:
            rollback.rollback()
        raise PersistenceError(f"Could not {action}") from exc


# ---------------------------------------------------------------------------
# Persistence port
# ---------------------------------------------------------------------------


class SqlWorkoutRepository:
    """WorkoutRepository backed by a SQLModel session.

    Each write commits on its own unless it runs inside transaction(), in which
    case it is only flushed and the whole block commits (or rolls back) at once.
    """

    def __init__(self, session: Session):
        self.session = session
        self._in_transaction = False

    @contextmanager
    def transaction(self) -> Iterator[None]:
        if self._in_transaction:
            yield
            return
        self._in_transaction = True
        try:
            yield
            with _storage_errors("commit transaction"):
                self.session.commit()
        except Exception:
            self.session.rollback()
            raise
        finally:
            self._in_transaction = False

    @contextmanager
    def _write(self, action: str) -> Iterator[None]:
        try:
            with _storage_errors(action):
                yield
                if self._in_transaction:
                    self.session.flush()
                else:
                    self.session.commit()
        except PersistenceError:
            if not self._in_transaction:
                self.session.rollback()
            raise

    def _get(self, model: type[SQLModel], row_id: str) -> Any:
        row = self.session.get(model, row_id)
        if row is None:
            raise PersistenceError(f"{model.__name__} {row_id} is not in storage")
        return row

    def _apply(self, model: type[SQLModel], row_id: str, changes: dict[str, Any]) -> None:
        row = self._get(model, row_id)
        for key, value in changes.items():
            setattr(row, key, value)
        self.session.add(row)

    def _delete_sets_of(self, exercise_ids: list[str]) -> None:
        if not exercise_ids:
            return
        sets = self.session.exec(select(WorkoutSet).where(WorkoutSet.exercise_id.in_(exercise_ids))).all()
        for s in sets:
            self.session.delete(s)
        self.session.flush()

    # Sessions

    def create_session(self, session: WorkoutSession) -> None:
        with self._write("create workout session"):
            self.session.add(session)

    def update_session(self, session_id: str, changes: dict[str, Any]) -> None:
        with self._write("update workout session"):
            self._apply(WorkoutSession, session_id, changes)

    def delete_session(self, session_id: str) -> None:
        """Delete WorkoutSets -> WorkoutExercises -> WorkoutSession (SQLite has no auto-cascade)."""
        with self._write("delete workout session"):
            workout_session = self._get(WorkoutSession, session_id)
            exercises = self.session.exec(
                select(WorkoutExercise).where(WorkoutExercise.session_id == session_id)
            ).all()
            self._delete_sets_of([e.id for e in exercises])
            for e in exercises:
                self.session.delete(e)
            self.session.flush()
            self.session.delete(workout_session)

    # Exercises

    def create_exercise(self, exercise: WorkoutExercise) -> None:
        with self._write("create workout exercise"):
            self.session.add(exercise)

    def update_exercise(self, exercise_id: str, changes: dict[str, Any]) -> None:
        with self._write("update workout exercise"):
            self._apply(WorkoutExercise, exercise_id, changes)

    def delete_exercise(self, exercise_id: str) -> None:
        with self._write("delete workout exercise"):
            exercise = self._get(WorkoutExercise, exercise_id)
            self._delete_sets_of([exercise.id])
            self.session.delete(exercise)

    # Sets

    def create_set(self, workout_set: WorkoutSet) -> None:
        with self._write("create workout set"):
            self.session.add(workout_set)

    def update_set(self, set_id: str, changes: dict[str, Any]) -> None:
        with self._write("update workout set"):
            self._apply(WorkoutSet, set_id, changes)

    def delete_set(self, set_id: str) -> None:
        with self._write("delete workout set"):
            self.session.delete(self._get(WorkoutSet, set_id))

    # Restore

    def find_unfinished_session(self) -> WorkoutSession | None:
        with _storage_errors("load unfinished session"):
            return self.session.exec(
                select(WorkoutSession)
                .where(WorkoutSession.finished_at.is_(None))
                .order_by(WorkoutSession.started_at.desc())
            ).first()

    def list_exercises(self, session_id: str) -> list[WorkoutExercise]:
        with _storage_errors("load workout exercises"):
            return list(
                self.session.exec(
                    select(WorkoutExercise)
                    .where(WorkoutExercise.session_id == session_id)
                    .order_by(WorkoutExercise.order_index)
                ).all()
            )

    def list_sets(self, exercise_id: str) -> list[WorkoutSet]:
        with _storage_errors("load workout sets"):
            return list(
                self.session.exec(
                    select(WorkoutSet)
                    .where(WorkoutSet.exercise_id == exercise_id)
                    .order_by(WorkoutSet.set_number)
                ).all()
            )


# ---------------------------------------------------------------------------
# Exercise catalog
# ---------------------------------------------------------------------------


class SqlExerciseCatalog:
    def __init__(self, session: Session):
        self.session = session

    def get_template(self, template_id: str) -> ExerciseTemplate:
        template = self.session.get(ExerciseTemplate, template_id)
        if template is None:
            raise NotFoundError(f"Exercise template {template_id} not found")
        return template

    def list_templates(
        self, query: str | None = None, muscle_group: MuscleGroup | None = None
    ) -> list[ExerciseTemplate]:
        statement = select(ExerciseTemplate)
        if query:
            statement = statement.where(ExerciseTemplate.name.ilike(f"%{query}%"))
        if muscle_group is not None:
            statement = statement.where(ExerciseTemplate.muscle_group == muscle_group)
        # Custom exercises first when searching, like the exercise picker shows them
        if query:
            statement = statement.order_by(ExerciseTemplate.is_custom.desc(), ExerciseTemplate.name)
        else:
            statement = statement.order_by(ExerciseTemplate.name)
        return list(self.session.exec(statement).all())

    def create_custom(
        self, name: str, muscle_group: MuscleGroup, equipment: str = ""
    ) -> ExerciseTemplate:
        template = ExerciseTemplate(
            id=str(uuid.uuid4()),
            name=name,
            muscle_group=muscle_group,
            equipment=equipment,
            is_custom=True,
        )
        with _storage_errors("create custom exercise", rollback=self.session):
            self.session.add(template)
            self.session.commit()
            self.session.refresh(template)
        return template

    def delete_custom(self, template_id: str) -> None:
        template = self.get_template(template_id)
        if not template.is_custom:
            raise InvalidStateError("Built-in exercises cannot be deleted")
        in_use = self.session.exec(
            select(WorkoutExercise.id).where(WorkoutExercise.exercise_template_id == template_id).limit(1)
        ).first()
        if in_use is not None:
            raise InvalidStateError("Exercise is used by a logged workout and cannot be deleted")
        with _storage_errors("delete custom exercise", rollback=self.session):
            self.session.delete(template)
            self.session.commit()


# ---------------------------------------------------------------------------
# Session history
# ---------------------------------------------------------------------------


@dataclass
class ExerciseDetail:
    exercise: WorkoutExercise
    template_name: str
    sets: list[WorkoutSet] = field(default_factory=list)


@dataclass
class SessionDetail:
    session: WorkoutSession
    exercises: list[ExerciseDetail] = field(default_factory=list)


@dataclass
class WeeklyStats:
    workout_count: int
    total_volume_kg: float


def _history_set(s: WorkoutSet) -> HistorySet:
    return HistorySet(
        id=s.id,
        set_number=s.set_number,
        weight_kg=s.weight_kg,
        reps=s.reps,
        rpe=s.rpe,
        is_warmup=s.is_warmup,
    )


class SqlSessionHistoryReader:
    """Read-only queries over finished sessions. Only completed sets are reported."""

    def __init__(self, session: Session):
        self.session = session

    def _completed_sets(self, session_id: str, template_id: str) -> list[WorkoutSet]:
        return list(
            self.session.exec(
                select(WorkoutSet)
                .join(WorkoutExercise, WorkoutSet.exercise_id == WorkoutExercise.id)
                .where(
                    WorkoutExercise.session_id == session_id,
                    WorkoutExercise.exercise_template_id == template_id,
                    WorkoutSet.is_completed == True,  # noqa: E712
                )
                .order_by(WorkoutExercise.order_index, WorkoutSet.set_number)
            ).all()
        )

    def _finished_sessions_with(
        self, template_id: str, exclude_session_id: str | None = None
    ):
        statement = (
            select(WorkoutSession)
            .join(WorkoutExercise, WorkoutExercise.session_id == WorkoutSession.id)
            .where(
                WorkoutExercise.exercise_template_id == template_id,
                WorkoutSession.finished_at.is_not(None),
            )
        )
        if exclude_session_id is not None:
            statement = statement.where(WorkoutSession.id != exclude_session_id)
        return statement.distinct().order_by(WorkoutSession.started_at.desc())

    def get_recent_finished_sessions_for_exercise(
        self, template_id: str, limit: int
    ) -> list[SessionSets]:
        with _storage_errors("read exercise history"):
            sessions = self.session.exec(self._finished_sessions_with(template_id).limit(limit)).all()
            return [
                SessionSets(
                    session_id=s.id,
                    date=s.started_at,
                    name=s.name,
                    sets=[_history_set(ws) for ws in self._completed_sets(s.id, template_id)],
                )
                for s in sessions
            ]

    def get_last_set_data_for_exercise(
        self, template_id: str, exclude_session_id: str | None = None
    ) -> list[HistorySet]:
        """Completed sets from the most recent finished sessions with this exercise."""
        with _storage_errors("read previous sets"):
            result: list[HistorySet] = []
            for s in self.session.exec(self._finished_sessions_with(template_id, exclude_session_id)):
                for ws in self._completed_sets(s.id, template_id):
                    result.append(_history_set(ws))
                    if len(result) == LAST_SET_DATA_LIMIT:
                        return result
            return result

    def list_finished_sessions(self, limit: int = 100, offset: int = 0) -> list[WorkoutSession]:
        with _storage_errors("list workout sessions"):
            return list(
                self.session.exec(
                    select(WorkoutSession)
                    .where(WorkoutSession.finished_at.is_not(None))
                    .order_by(WorkoutSession.started_at.desc())
                    .offset(offset)
                    .limit(limit)
                ).all()
            )

    def get_session_detail(self, session_id: str) -> SessionDetail:
        workout_session = self.session.get(WorkoutSession, session_id)
        if workout_session is None:
            raise NotFoundError(f"Workout session {session_id} not found")

        exercises = self.session.exec(
            select(WorkoutExercise)
            .where(WorkoutExercise.session_id == session_id)
            .order_by(WorkoutExercise.order_index)
        ).all()

        details: list[ExerciseDetail] = []
        for e in exercises:
            template = self.session.get(ExerciseTemplate, e.exercise_template_id)
            sets = self.session.exec(
                select(WorkoutSet).where(WorkoutSet.exercise_id == e.id).order_by(WorkoutSet.set_number)
            ).all()
            details.append(
                ExerciseDetail(
                    exercise=e,
                    template_name=template.name if template else "",
                    sets=list(sets),
                )
            )
        return SessionDetail(session=workout_session, exercises=details)

    def get_weekly_stats(self, start: datetime, end: datetime) -> WeeklyStats:
        """Workout count and summed volume of finished sessions started in [start, end]."""
        with _storage_errors("read weekly stats"):
            count, volume = self.session.exec(
                select(func.count(WorkoutSession.id), func.coalesce(func.sum(WorkoutSession.total_volume_kg), 0.0))
                .where(
                    WorkoutSession.started_at >= start,
                    WorkoutSession.started_at <= end,
                    WorkoutSession.finished_at.is_not(None),
                )
            ).one()
        return WeeklyStats(workout_count=count, total_volume_kg=float(volume))
