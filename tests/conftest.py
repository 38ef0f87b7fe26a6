import copy
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from liftlog.errors import NotFoundError, PersistenceError
from liftlog.models import ExerciseTemplate, MuscleGroup, WorkoutExercise, WorkoutSession, WorkoutSet


@pytest.fixture(name="session")
def session_fixture():
    # StaticPool ensures the in-memory DB is shared across all connections,
    # including those spawned by TestClient's anyio thread pool.
    import liftlog.models as _models  # noqa: F401

    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    with Session(engine) as session:
        yield session


# ---------------------------------------------------------------------------
# In-memory collaborators
# ---------------------------------------------------------------------------


class FakeClock:
    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2026, 3, 2, 18, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakeWorkoutRepository:
    """
    In-memory WorkoutRepository keeping rows as plain dicts.

    Method names listed in `fail_on` raise PersistenceError before touching
    anything; `calls` records every write in order.
    """

    def __init__(self):
        self.sessions: dict[str, dict] = {}
        self.exercises: dict[str, dict] = {}
        self.sets: dict[str, dict] = {}
        self.fail_on: set[str] = set()
        self.calls: list[str] = []

    def _check(self, method: str) -> None:
        self.calls.append(method)
        if method in self.fail_on:
            raise PersistenceError(f"{method} failed")

    @contextmanager
    def transaction(self):
        snapshot = copy.deepcopy((self.sessions, self.exercises, self.sets))
        try:
            yield
        except Exception:
            self.sessions, self.exercises, self.sets = snapshot
            raise

    def create_session(self, session):
        self._check("create_session")
        self.sessions[session.id] = session.model_dump()

    def update_session(self, session_id, changes):
        self._check("update_session")
        self.sessions[session_id].update(changes)

    def delete_session(self, session_id):
        self._check("delete_session")
        for exercise_id in [e["id"] for e in self.exercises.values() if e["session_id"] == session_id]:
            self._drop_exercise(exercise_id)
        del self.sessions[session_id]

    def create_exercise(self, exercise):
        self._check("create_exercise")
        self.exercises[exercise.id] = exercise.model_dump()

    def update_exercise(self, exercise_id, changes):
        self._check("update_exercise")
        self.exercises[exercise_id].update(changes)

    def delete_exercise(self, exercise_id):
        self._check("delete_exercise")
        self._drop_exercise(exercise_id)

    def _drop_exercise(self, exercise_id):
        for set_id in [s["id"] for s in self.sets.values() if s["exercise_id"] == exercise_id]:
            del self.sets[set_id]
        del self.exercises[exercise_id]

    def create_set(self, workout_set):
        self._check("create_set")
        self.sets[workout_set.id] = workout_set.model_dump()

    def update_set(self, set_id, changes):
        self._check("update_set")
        self.sets[set_id].update(changes)

    def delete_set(self, set_id):
        self._check("delete_set")
        del self.sets[set_id]

    def find_unfinished_session(self) -> WorkoutSession | None:
        for row in self.sessions.values():
            if row["finished_at"] is None:
                return WorkoutSession(**row)
        return None

    def list_exercises(self, session_id):
        rows = [e for e in self.exercises.values() if e["session_id"] == session_id]
        return [WorkoutExercise(**e) for e in sorted(rows, key=lambda e: e["order_index"])]

    def list_sets(self, exercise_id):
        rows = [s for s in self.sets.values() if s["exercise_id"] == exercise_id]
        return [WorkoutSet(**s) for s in sorted(rows, key=lambda s: s["set_number"])]

    def set_numbers(self, exercise_id) -> list[int]:
        return [s.set_number for s in self.list_sets(exercise_id)]


class FakeCatalog:
    def __init__(self, *templates: ExerciseTemplate):
        self.templates = {t.id: t for t in templates}

    def get_template(self, template_id):
        if template_id not in self.templates:
            raise NotFoundError(f"Exercise template {template_id} not found")
        return self.templates[template_id]


class RecordingSignals:
    def __init__(self):
        self.completed: list[tuple[str, str]] = []
        self.finished: list[str] = []

    def on_set_completed(self, exercise_id, set_id):
        self.completed.append((exercise_id, set_id))

    def on_workout_finished(self, session_id):
        self.finished.append(session_id)


BENCH = ExerciseTemplate(
    id="bench", name="Barbell Bench Press", muscle_group=MuscleGroup.CHEST, equipment="Barbell"
)
SQUAT = ExerciseTemplate(
    id="squat", name="Barbell Back Squat", muscle_group=MuscleGroup.QUADS, equipment="Barbell"
)
ROW = ExerciseTemplate(id="row", name="Barbell Row", muscle_group=MuscleGroup.BACK, equipment="Barbell")


@pytest.fixture(name="clock")
def clock_fixture() -> FakeClock:
    return FakeClock()


@pytest.fixture(name="repository")
def repository_fixture() -> FakeWorkoutRepository:
    return FakeWorkoutRepository()


@pytest.fixture(name="signals")
def signals_fixture() -> RecordingSignals:
    return RecordingSignals()


@pytest.fixture(name="manager")
def manager_fixture(repository, signals, clock):
    from liftlog.services.active_workout import WorkoutSessionManager

    return WorkoutSessionManager(
        repository,
        FakeCatalog(BENCH, SQUAT, ROW),
        signals=signals,
        clock=clock,
    )
