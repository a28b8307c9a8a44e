"""Conversion between the Routine aggregate and its relational rows.

A routine is stored as one ``routines`` row, one ``routine_exercises`` row per
exercise and one ``routine_days`` row per distinct day. Assembly restores the
aggregate, ordering exercises by their ``orderIndex`` and filling defaults for
columns that older databases may not have populated.
"""

import math
from typing import Iterable, List, Mapping, NamedTuple

from models import Routine, RoutineExercise, WeightUnit

DEFAULT_RESERVE_REPS = 0
DEFAULT_NOTES = ""
DEFAULT_WEIGHT_UNIT = WeightUnit.LB.value


class RoutineRows(NamedTuple):
    routine: dict
    exercises: List[dict]
    days: List[dict]


def coerce_number(value, default: float = 0) -> float:
    """Return ``value`` as a float, or ``default`` when it is not a number."""
    if isinstance(value, bool):
        return float(value)
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(number):
        return default
    return number


def unique_days(days: Iterable[str] | None) -> List[str]:
    return list(dict.fromkeys(days or []))


def _timestamp(value) -> str:
    return value.isoformat() if hasattr(value, "isoformat") else str(value)


def normalize_exercise(item: RoutineExercise) -> RoutineExercise:
    return item.model_copy(
        update={
            "weight": coerce_number(item.weight),
            "target_sets": int(coerce_number(item.target_sets)),
            "target_reps": int(coerce_number(item.target_reps)),
            "reserve_reps": int(coerce_number(item.reserve_reps, DEFAULT_RESERVE_REPS)),
            "notes": item.notes or DEFAULT_NOTES,
            "weight_unit": item.weight_unit or DEFAULT_WEIGHT_UNIT,
        }
    )


def normalize_routine(routine: Routine) -> Routine:
    """Return ``routine`` in the shape a relational round trip produces."""
    exercises = sorted(
        (normalize_exercise(item) for item in routine.exercises),
        key=lambda item: item.order,
    )
    return routine.model_copy(
        update={
            "exercises": exercises,
            "days": unique_days(routine.days),
            "program_name": routine.program_name or None,
        }
    )


def decompose_routine(routine: Routine) -> RoutineRows:
    routine_row = {
        "id": routine.id,
        "name": routine.name,
        "description": routine.description,
        "frequency": routine.frequency,
        "isActive": 1 if routine.is_active else 0,
        "createdAt": _timestamp(routine.created_at),
        "updatedAt": _timestamp(routine.updated_at),
        "programName": routine.program_name or None,
    }
    exercise_rows = []
    for item in routine.exercises:
        item = normalize_exercise(item)
        exercise_rows.append(
            {
                "routineId": routine.id,
                "exerciseId": item.exercise_id,
                "targetSets": item.target_sets,
                "targetReps": item.target_reps,
                "orderIndex": item.order,
                "weight": item.weight,
                "weightUnit": item.weight_unit,
                "reserveReps": item.reserve_reps,
                "notes": item.notes,
            }
        )
    day_rows = [{"routineId": routine.id, "day": day} for day in unique_days(routine.days)]
    return RoutineRows(routine_row, exercise_rows, day_rows)


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def assemble_exercise(row: Mapping) -> RoutineExercise:
    weight = row.get("weight")
    reserve_reps = row.get("reserveReps")
    return RoutineExercise(
        exercise_id=row["exerciseId"],
        exercise_name=row.get("exerciseName") or "",
        weight=coerce_number(weight) if _is_number(weight) else 0.0,
        weight_unit=row.get("weightUnit") or row.get("defaultWeightUnit") or DEFAULT_WEIGHT_UNIT,
        target_sets=int(coerce_number(row.get("targetSets"))),
        target_reps=int(coerce_number(row.get("targetReps"))),
        reserve_reps=int(reserve_reps) if _is_number(reserve_reps) else DEFAULT_RESERVE_REPS,
        notes=row.get("notes") or DEFAULT_NOTES,
        order=int(coerce_number(row.get("orderIndex"))),
    )


def assemble_routine(
    routine_row: Mapping,
    exercise_rows: Iterable[Mapping],
    day_rows: Iterable[Mapping],
) -> Routine:
    exercises = sorted(
        (assemble_exercise(row) for row in exercise_rows),
        key=lambda item: item.order,
    )
    return Routine(
        id=routine_row["id"],
        name=routine_row["name"],
        description=routine_row.get("description"),
        program_name=routine_row.get("programName") or None,
        exercises=exercises,
        frequency=routine_row["frequency"],
        days=unique_days(row["day"] for row in day_rows),
        is_active=bool(routine_row.get("isActive")),
        created_at=routine_row["createdAt"],
        updated_at=routine_row["updatedAt"],
    )
