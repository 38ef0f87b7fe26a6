"""
Built-in exercise catalog, plus a demo history generator.

`seed_exercise_templates` runs at startup and only inserts templates that are
missing. Running this module directly additionally logs 20 fake workouts
through the workout engine.

WARNING: running the module drops all existing workouts before inserting.
"""

import logging
import random
import re
from datetime import datetime, timedelta, timezone

from sqlmodel import Session, SQLModel, select

from liftlog.config import get_settings
from liftlog.database import build_engine
from liftlog.models import ExerciseTemplate, MuscleGroup, SetUpdate, WorkoutExercise, WorkoutSession, WorkoutSet
from liftlog.services.active_workout import WorkoutSessionManager
from liftlog.services.repository import SqlExerciseCatalog, SqlWorkoutRepository

logger = logging.getLogger(__name__)

# Reproducible data
RANDOM_SEED = 42

# ---------------------------------------------------------------------------
# Exercise catalogue: (name, equipment) per muscle group
# ---------------------------------------------------------------------------

BUILT_IN_EXERCISES: dict[MuscleGroup, list[tuple[str, str]]] = {
    MuscleGroup.CHEST: [
        ("Barbell Bench Press", "Barbell"),
        ("Incline Barbell Bench Press", "Barbell"),
        ("Dumbbell Bench Press", "Dumbbell"),
        ("Incline Dumbbell Press", "Dumbbell"),
        ("Cable Crossover", "Cable"),
        ("Push-Up", "Bodyweight"),
        ("Dips", "Bodyweight"),
    ],
    MuscleGroup.BACK: [
        ("Barbell Deadlift", "Barbell"),
        ("Barbell Row", "Barbell"),
        ("Dumbbell Row", "Dumbbell"),
        ("Seated Cable Row", "Cable"),
        ("Lat Pulldown", "Cable"),
        ("Pull-Up", "Bodyweight"),
        ("Chin-Up", "Bodyweight"),
    ],
    MuscleGroup.SHOULDERS: [
        ("Barbell Overhead Press", "Barbell"),
        ("Dumbbell Shoulder Press", "Dumbbell"),
        ("Dumbbell Lateral Raise", "Dumbbell"),
        ("Face Pull", "Cable"),
        ("Arnold Press", "Dumbbell"),
        ("Shrug", "Barbell"),
    ],
    MuscleGroup.BICEPS: [
        ("Barbell Curl", "Barbell"),
        ("Dumbbell Curl", "Dumbbell"),
        ("Hammer Curl", "Dumbbell"),
        ("Preacher Curl", "Barbell"),
        ("Cable Curl", "Cable"),
    ],
    MuscleGroup.TRICEPS: [
        ("Close-Grip Bench Press", "Barbell"),
        ("Skull Crusher", "Barbell"),
        ("Tricep Pushdown", "Cable"),
        ("Overhead Tricep Extension", "Cable"),
        ("Tricep Dip", "Bodyweight"),
    ],
    MuscleGroup.FOREARMS: [
        ("Wrist Curl", "Barbell"),
        ("Reverse Curl", "Barbell"),
        ("Farmer Walk", "Dumbbell"),
    ],
    MuscleGroup.CORE: [
        ("Plank", "Bodyweight"),
        ("Hanging Leg Raise", "Bodyweight"),
        ("Ab Wheel Rollout", "Other"),
        ("Cable Crunch", "Cable"),
        ("Dead Bug", "Bodyweight"),
    ],
    MuscleGroup.QUADS: [
        ("Barbell Back Squat", "Barbell"),
        ("Barbell Front Squat", "Barbell"),
        ("Leg Press", "Machine"),
        ("Leg Extension", "Machine"),
        ("Bulgarian Split Squat", "Dumbbell"),
        ("Goblet Squat", "Dumbbell"),
    ],
    MuscleGroup.HAMSTRINGS: [
        ("Barbell Romanian Deadlift", "Barbell"),
        ("Lying Leg Curl", "Machine"),
        ("Seated Leg Curl", "Machine"),
        ("Nordic Curl", "Bodyweight"),
    ],
    MuscleGroup.GLUTES: [
        ("Barbell Hip Thrust", "Barbell"),
        ("Glute Bridge", "Bodyweight"),
        ("Cable Kickback", "Cable"),
    ],
    MuscleGroup.CALVES: [
        ("Standing Calf Raise", "Machine"),
        ("Seated Calf Raise", "Machine"),
    ],
    MuscleGroup.FULL_BODY: [
        ("Barbell Clean", "Barbell"),
        ("Thruster", "Barbell"),
        ("Kettlebell Swing", "Other"),
    ],
    MuscleGroup.CARDIO: [
        ("Treadmill Running", "Machine"),
        ("Rowing Machine", "Machine"),
        ("Jump Rope", "Other"),
    ],
}

# Demo history: each workout is a list of (exercise name, base weight in kg)
WORKOUT_TEMPLATES: list[tuple[str, list[tuple[str, float]]]] = [
    ("Push Day", [("Barbell Bench Press", 80.0), ("Barbell Overhead Press", 50.0), ("Tricep Pushdown", 35.0)]),
    ("Pull Day", [("Barbell Deadlift", 120.0), ("Barbell Row", 70.0), ("Barbell Curl", 30.0)]),
    ("Leg Day", [("Barbell Back Squat", 100.0), ("Barbell Romanian Deadlift", 80.0), ("Standing Calf Raise", 60.0)]),
]
DEMO_WORKOUT_COUNT = 20


def template_id(name: str) -> str:
    """Stable id for a built-in exercise, e.g. "builtin-barbell-bench-press"."""
    return "builtin-" + re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")


def seed_exercise_templates(session: Session) -> int:
    """Insert missing built-in templates; returns how many were added."""
    existing = set(session.exec(select(ExerciseTemplate.id)).all())
    added = 0
    for muscle_group, exercises in BUILT_IN_EXERCISES.items():
        for name, equipment in exercises:
            tid = template_id(name)
            if tid in existing:
                continue
            session.add(
                ExerciseTemplate(id=tid, name=name, muscle_group=muscle_group, equipment=equipment)
            )
            added += 1
    session.commit()
    if added:
        logger.info("Seeded %d built-in exercise templates", added)
    return added


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _progression_weight(base: float, workout_idx: int, rng: random.Random) -> float:
    """Progressive overload with realistic noise. Rounds to nearest 2.5 kg."""
    factor = 1.0 + 0.025 * workout_idx + rng.uniform(-0.05, 0.05)
    return round(base * factor / 2.5) * 2.5


class _DemoClock:
    """Clock the demo moves forward by hand, one workout every other day."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------


def seed() -> None:
    rng = random.Random(RANDOM_SEED)
    settings = get_settings()

    engine = build_engine(settings.database_url)
    SQLModel.metadata.create_all(engine)

    with Session(engine) as session:
        # Wipe existing workouts (order matters for FK constraints)
        for model in [WorkoutSet, WorkoutExercise, WorkoutSession]:
            for row in session.exec(select(model)).all():
                session.delete(row)
            session.flush()
        session.commit()
        print("Cleared existing workouts.")

        seed_exercise_templates(session)

        catalog = SqlExerciseCatalog(session)
        clock = _DemoClock(datetime.now(timezone.utc) - timedelta(days=2 * DEMO_WORKOUT_COUNT))
        manager = WorkoutSessionManager(SqlWorkoutRepository(session), catalog, clock=clock)

        for workout_idx in range(DEMO_WORKOUT_COUNT):
            name, exercises = WORKOUT_TEMPLATES[workout_idx % len(WORKOUT_TEMPLATES)]
            manager.start(name)
            for exercise_name, base_weight in exercises:
                exercise_id = manager.add_exercise_by_id(template_id(exercise_name))

                warmup_id = manager.add_set(exercise_id)
                manager.update_set(
                    exercise_id,
                    warmup_id,
                    SetUpdate(weight_kg=round(base_weight * 0.5 / 2.5) * 2.5, reps=10, is_warmup=True),
                )
                manager.complete_set(exercise_id, warmup_id)

                weight = _progression_weight(base_weight, workout_idx // len(WORKOUT_TEMPLATES), rng)
                for _ in range(3):
                    set_id = manager.add_set(exercise_id)
                    manager.update_set(
                        exercise_id,
                        set_id,
                        SetUpdate(weight_kg=weight, reps=rng.randint(5, 8), is_warmup=False),
                    )
                    manager.complete_set(exercise_id, set_id)

            clock.now += timedelta(minutes=rng.randint(45, 75))
            manager.finish()
            clock.now += timedelta(days=2)

        print(f"Logged {DEMO_WORKOUT_COUNT} demo workouts.")


if __name__ == "__main__":
    seed()
