"""Errors raised by the workout engine and its persistence adapters.

Validation errors (everything except PersistenceError) are raised before any
write or in-memory mutation happens. Each error carries the HTTP status the
API layer answers with.
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse


class WorkoutError(Exception):
    status_code = 400

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class AlreadyActiveError(WorkoutError):
    """start() was called while a workout is already in progress."""

    status_code = 409

    def __init__(self, detail: str = "A workout is already active"):
        super().__init__(detail)


class NoActiveWorkoutError(WorkoutError):
    """A workout operation was called while no workout is in progress."""

    status_code = 409

    def __init__(self, detail: str = "No active workout"):
        super().__init__(detail)


class NotFoundError(WorkoutError):
    status_code = 404


class InvalidStateError(WorkoutError):
    """E.g. editing weight/reps of a completed set without uncompleting it first."""

    status_code = 409


class PersistenceError(WorkoutError):
    """The underlying storage failed; the operation was not applied."""

    status_code = 503


async def _workout_error_handler(_: Request, exc: WorkoutError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(WorkoutError, _workout_error_handler)
