from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlmodel import Session, SQLModel

from liftlog.config import get_settings
from liftlog.database import get_session
from liftlog.services.progression import ProgressionAnalyzer, TrendDirection
from liftlog.services.repository import SqlExerciseCatalog, SqlSessionHistoryReader

router = APIRouter()

SessionDep = Annotated[Session, Depends(get_session)]


class SetEstimateRead(SQLModel):
    set_id: str
    set_number: int
    weight_kg: float
    reps: int
    rpe: int | None
    is_warmup: bool
    estimated_1rm: float | None


class SessionHistoryRead(SQLModel):
    session_id: str
    session_date: datetime
    session_name: str
    sets: list[SetEstimateRead]
    max_weight_kg: float
    best_1rm: float | None
    total_volume_kg: float


class RepRecordRead(SQLModel):
    rep_target: int
    label: str
    value: float | None
    session_date: datetime | None


class ProgressionRead(SQLModel):
    exercise_template_id: str
    exercise_name: str
    trend: TrendDirection
    advice: str
    rep_records: list[RepRecordRead]
    sessions: list[SessionHistoryRead]


@router.get("/exercises/{template_id}/progression", response_model=ProgressionRead)
def get_exercise_progression(
    template_id: str,
    session: SessionDep,
    limit: Annotated[int | None, Query(ge=1, le=100)] = None,
):
    template = SqlExerciseCatalog(session).get_template(template_id)
    analyzer = ProgressionAnalyzer(
        SqlSessionHistoryReader(session), session_limit=get_settings().history_session_limit
    )
    result = analyzer.analyze(template_id, limit)
    return ProgressionRead(
        exercise_template_id=template_id,
        exercise_name=template.name,
        trend=result.trend,
        advice=result.advice,
        rep_records=[RepRecordRead.model_validate(r, from_attributes=True) for r in result.rep_records],
        sessions=[
            SessionHistoryRead(
                session_id=s.session_id,
                session_date=s.session_date,
                session_name=s.session_name,
                sets=[SetEstimateRead.model_validate(x, from_attributes=True) for x in s.sets],
                max_weight_kg=s.max_weight_kg,
                best_1rm=s.best_1rm,
                total_volume_kg=s.total_volume_kg,
            )
            for s in result.sessions
        ],
    )
