from collections.abc import Iterable
from dataclasses import dataclass
from typing import Protocol

# Epley becomes unreliable past this many reps
EPLEY_MAX_REPS = 15


class _SetLike(Protocol):
    weight_kg: float | None
    reps: int | None
    is_warmup: bool
    is_completed: bool


@dataclass
class WorkoutSummaryStats:
    total_sets: int
    total_reps: int
    total_volume_kg: float
    exercise_count: int


def epley_1rm(weight_kg: float, reps: int) -> float | None:
    """Estimate a one-rep max from a sub-maximal set, or None when unreliable."""
    if weight_kg <= 0 or reps <= 0 or reps > EPLEY_MAX_REPS:
        return None
    if reps == 1:
        return weight_kg
    return round(weight_kg * (1 + reps / 30), 1)


def set_volume(s: _SetLike) -> float:
    """weight x reps, or 0 when either is missing."""
    if s.weight_kg is None or s.reps is None:
        return 0.0
    return s.weight_kg * s.reps


def total_volume(sets: Iterable[_SetLike], include_warmups: bool = True) -> float:
    """Sum of weight x reps over completed sets.

    Session totals count warmups; per-exercise history aggregates do not.
    """
    return sum(
        set_volume(s)
        for s in sets
        if s.is_completed and (include_warmups or not s.is_warmup)
    )


def summarize(exercise_sets: list[list[_SetLike]]) -> WorkoutSummaryStats:
    """Counts over completed sets of a workout, one inner list per exercise."""
    completed = [s for sets in exercise_sets for s in sets if s.is_completed]
    return WorkoutSummaryStats(
        total_sets=len(completed),
        total_reps=sum(s.reps for s in completed if s.reps is not None),
        total_volume_kg=total_volume(completed),
        exercise_count=len(exercise_sets),
    )
