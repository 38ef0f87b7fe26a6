import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from sqlmodel import Session

import liftlog.models as _models  # noqa: F401 (registers tables with SQLModel metadata)
from liftlog.config import get_settings
from liftlog.database import create_db_and_tables, engine
from liftlog.errors import register_error_handlers
from liftlog.routers import analytics, exercises, workout, workouts
from liftlog.seed import seed_exercise_templates
from liftlog.services.active_workout import WorkoutSessionManager
from liftlog.services.repository import SqlExerciseCatalog, SqlWorkoutRepository

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


class LoggingSignals:
    """Signals for the UI layer; the app itself only records them."""

    def on_set_completed(self, exercise_id: str, set_id: str) -> None:
        logger.info("Set %s of exercise %s completed, rest timer may start", set_id, exercise_id)

    def on_workout_finished(self, session_id: str) -> None:
        logger.info("Workout %s finished", session_id)


@asynccontextmanager
async def lifespan(app: FastAPI):
    create_db_and_tables()
    # The engine keeps its own session for the lifetime of the app
    with Session(engine) as session:
        if settings.seed_catalog:
            seed_exercise_templates(session)
        manager = WorkoutSessionManager(
            SqlWorkoutRepository(session),
            SqlExerciseCatalog(session),
            signals=LoggingSignals(),
            default_name=settings.default_workout_name,
        )
        manager.restore()
        app.state.workout_manager = manager
        yield


app = FastAPI(title=settings.app_name, lifespan=lifespan)
register_error_handlers(app)

app.include_router(workout.router, prefix="/api/workout", tags=["workout"])
app.include_router(workouts.router, prefix="/api/workouts", tags=["workouts"])
app.include_router(exercises.router, prefix="/api/exercises", tags=["exercises"])
app.include_router(analytics.router, prefix="/api/analytics", tags=["analytics"])
