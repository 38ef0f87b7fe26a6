from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends
from sqlmodel import Session, SQLModel

from liftlog.database import get_session
from liftlog.models import MuscleGroup
from liftlog.services.repository import SqlExerciseCatalog, SqlSessionHistoryReader

router = APIRouter()

SessionDep = Annotated[Session, Depends(get_session)]


class TemplateRead(SQLModel):
    id: str
    name: str
    muscle_group: MuscleGroup
    equipment: str
    is_custom: bool
    created_at: datetime


class CustomExerciseCreate(SQLModel):
    name: str
    muscle_group: MuscleGroup
    equipment: str = ""


class PreviousSetRead(SQLModel):
    set_number: int
    weight_kg: float | None
    reps: int | None


@router.get("/", response_model=list[TemplateRead])
def list_exercises(session: SessionDep, q: str | None = None, muscle_group: MuscleGroup | None = None):
    return SqlExerciseCatalog(session).list_templates(query=q, muscle_group=muscle_group)


@router.get("/{template_id}", response_model=TemplateRead)
def get_exercise(template_id: str, session: SessionDep):
    return SqlExerciseCatalog(session).get_template(template_id)


@router.post("/", response_model=TemplateRead, status_code=201)
def create_custom_exercise(body: CustomExerciseCreate, session: SessionDep):
    return SqlExerciseCatalog(session).create_custom(
        name=body.name, muscle_group=body.muscle_group, equipment=body.equipment
    )


@router.delete("/{template_id}", status_code=204)
def delete_custom_exercise(template_id: str, session: SessionDep):
    SqlExerciseCatalog(session).delete_custom(template_id)


@router.get("/{template_id}/last-sets", response_model=list[PreviousSetRead])
def get_last_sets(template_id: str, session: SessionDep, exclude_session_id: str | None = None):
    """Completed sets from the most recent finished workouts containing this exercise."""
    SqlExerciseCatalog(session).get_template(template_id)
    sets = SqlSessionHistoryReader(session).get_last_set_data_for_exercise(template_id, exclude_session_id)
    return [PreviousSetRead(set_number=s.set_number, weight_kg=s.weight_kg, reps=s.reps) for s in sets]
