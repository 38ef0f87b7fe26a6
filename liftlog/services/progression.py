"""Progression analytics over finished sessions of one exercise.

Everything here is read-only: sessions come from a SessionHistoryReader and
only completed sets of finished workouts are considered. Warmup sets are
left out of every per-exercise aggregate and record.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from liftlog.services.numeric import epley_1rm
from liftlog.services.ports import SessionHistoryReader, SessionSets

# Relative change between recent and prior averages that counts as a trend
TREND_THRESHOLD = 0.03
TREND_WINDOW = 3
TREND_MIN_VALUES = 4

# Session count from which advice assumes an established training history
ESTABLISHED_SESSION_COUNT = 6


class TrendDirection(str, Enum):
    PROGRESSING = "progressing"
    STALLING = "stalling"
    DECLINING = "declining"
    INSUFFICIENT_DATA = "insufficient_data"


@dataclass
class SetWithEstimate:
    set_id: str
    set_number: int
    weight_kg: float
    reps: int
    rpe: int | None
    is_warmup: bool
    estimated_1rm: float | None


@dataclass
class SessionSetHistory:
    session_id: str
    session_date: datetime
    session_name: str
    sets: list[SetWithEstimate]
    max_weight_kg: float
    best_1rm: float | None
    total_volume_kg: float


@dataclass
class RepRecord:
    rep_target: int
    label: str
    value: float | None
    session_date: datetime | None


@dataclass
class ExerciseProgression:
    exercise_template_id: str
    sessions: list[SessionSetHistory]
    trend: TrendDirection
    rep_records: list[RepRecord]
    advice: str
    trend_values: list[float] = field(default_factory=list)


REP_TARGETS: list[tuple[int, str]] = [
    (1, "1RM Est."),
    (3, "3RM"),
    (5, "5RM"),
    (10, "10RM"),
    (20, "20RM"),
]

_PLATEAU_ADVICE = (
    "Plateau detected. Try varying your rep range (switch from 3×5 to 4×8), add a top-down set, "
    "or use a microloading plate (1.25kg). A strategic deload week can also break through plateaus."
)
_RECOVERY_ADVICE = (
    "Performance is dipping. Check your recovery: aim for 7–9 hours sleep, ensure a calorie "
    "surplus or at maintenance, and reduce session frequency temporarily. "
    "Consider an active deload week."
)
_MORE_DATA_ADVICE = "Log at least 4 sessions to unlock trend analysis and personalised coaching insights."

# Keyed by (trend, "established" | "early"); only progressing advice differs by history length
PROGRESSION_ADVICE: dict[tuple[TrendDirection, str], str] = {
    (TrendDirection.PROGRESSING, "established"): (
        "Great momentum! Add 2.5–5kg when you complete all sets with good form. "
        "Consider periodisation: every 4–6 weeks, deload at 60% to lock in gains."
    ),
    (TrendDirection.PROGRESSING, "early"): (
        "Strong start! Focus on consistent form and progressive overload. "
        "Add small weight increments (2.5kg) each session when all reps are completed cleanly."
    ),
    (TrendDirection.STALLING, "established"): _PLATEAU_ADVICE,
    (TrendDirection.STALLING, "early"): _PLATEAU_ADVICE,
    (TrendDirection.DECLINING, "established"): _RECOVERY_ADVICE,
    (TrendDirection.DECLINING, "early"): _RECOVERY_ADVICE,
    (TrendDirection.INSUFFICIENT_DATA, "established"): _MORE_DATA_ADVICE,
    (TrendDirection.INSUFFICIENT_DATA, "early"): _MORE_DATA_ADVICE,
}


def _average(values: list[float]) -> float:
    return sum(values) / len(values)


def analyze_trend(values: list[float]) -> TrendDirection:
    """Compare the average of the 3 most recent values against the 3 before them.

    `values` is ordered most recent first.
    """
    if len(values) < TREND_MIN_VALUES:
        return TrendDirection.INSUFFICIENT_DATA
    recent = values[:TREND_WINDOW]
    prior = values[TREND_WINDOW : 2 * TREND_WINDOW]
    if not prior:
        return TrendDirection.INSUFFICIENT_DATA
    prior_avg = _average(prior)
    if prior_avg == 0:
        return TrendDirection.INSUFFICIENT_DATA

    change_pct = (_average(recent) - prior_avg) / prior_avg
    if change_pct > TREND_THRESHOLD:
        return TrendDirection.PROGRESSING
    if change_pct < -TREND_THRESHOLD:
        return TrendDirection.DECLINING
    return TrendDirection.STALLING


def get_progression_advice(trend: TrendDirection, session_count: int) -> str:
    bucket = "established" if session_count >= ESTABLISHED_SESSION_COUNT else "early"
    return PROGRESSION_ADVICE[(trend, bucket)]


def build_session_history(session: SessionSets) -> SessionSetHistory:
    """Attach 1RM estimates to a session's sets and aggregate its working sets."""
    sets = [
        SetWithEstimate(
            set_id=s.id,
            set_number=s.set_number,
            weight_kg=s.weight_kg,
            reps=s.reps,
            rpe=s.rpe,
            is_warmup=s.is_warmup,
            estimated_1rm=epley_1rm(s.weight_kg, s.reps),
        )
        for s in session.sets
        if s.weight_kg is not None and s.reps is not None
    ]
    working = [s for s in sets if not s.is_warmup]
    estimates = [s.estimated_1rm for s in working if s.estimated_1rm is not None]

    return SessionSetHistory(
        session_id=session.session_id,
        session_date=session.date,
        session_name=session.name,
        sets=sets,
        max_weight_kg=max((s.weight_kg for s in working), default=0.0),
        best_1rm=max(estimates) if estimates else None,
        total_volume_kg=sum(s.weight_kg * s.reps for s in working),
    )


def calc_rep_records(sessions: list[SessionSetHistory]) -> list[RepRecord]:
    """Best lift per rep target: estimated 1RM for target 1, else heaviest set within ±1 rep."""
    records: list[RepRecord] = []
    for rep_target, label in REP_TARGETS:
        best_weight: float | None = None
        best_date: datetime | None = None

        for session in sessions:
            for s in session.sets:
                if s.is_warmup or s.weight_kg <= 0:
                    continue

                if rep_target == 1:
                    weight = s.estimated_1rm
                elif abs(s.reps - rep_target) <= 1:
                    weight = s.weight_kg
                else:
                    weight = None

                if weight is not None and (best_weight is None or weight > best_weight):
                    best_weight = weight
                    best_date = session.session_date

        records.append(
            RepRecord(rep_target=rep_target, label=label, value=best_weight, session_date=best_date)
        )
    return records


def trend_values(sessions: list[SessionSetHistory]) -> list[float]:
    """Per-session strength figure: best estimated 1RM, or max weight when none is computable."""
    return [s.best_1rm if s.best_1rm is not None else s.max_weight_kg for s in sessions]


class ProgressionAnalyzer:
    def __init__(self, history: SessionHistoryReader, session_limit: int = 10):
        self.history = history
        self.session_limit = session_limit

    def session_histories(self, template_id: str, limit: int | None = None) -> list[SessionSetHistory]:
        sessions = self.history.get_recent_finished_sessions_for_exercise(
            template_id, limit or self.session_limit
        )
        return [build_session_history(s) for s in sessions]

    def analyze(self, template_id: str, limit: int | None = None) -> ExerciseProgression:
        sessions = self.session_histories(template_id, limit)
        values = trend_values(sessions)
        trend = analyze_trend(values)
        return ExerciseProgression(
            exercise_template_id=template_id,
            sessions=sessions,
            trend=trend,
            rep_records=calc_rep_records(sessions),
            advice=get_progression_advice(trend, len(sessions)),
            trend_values=values,
        )
