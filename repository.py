"""Storage contract shared by the SQLite and preference backends.

The application talks to exactly one ``StorageRepository`` implementation,
selected at startup. Both implementations return the same pydantic models so
callers never need to know which backend is active.
"""

import logging
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from models import (
    EquipmentType,
    Exercise,
    ExerciseFields,
    ExerciseLog,
    MuscleGroup,
    Routine,
)

logger = logging.getLogger(__name__)


class StorageNotInitializedError(RuntimeError):
    """Raised when a database operation runs before initialization."""


def normalize_program_name(name: Optional[str]) -> str:
    return (name or "").strip().lower()


class StorageRepository(ABC):
    """Abstract base class for the workout storage backends."""

    name = "abstract"

    @abstractmethod
    async def initialize(self) -> None:
        """Prepare the backend for use; safe to call more than once."""

    async def close(self) -> None:
        return None

    @abstractmethod
    async def get_exercises(self) -> List[Exercise]:
        """Return all exercises sorted by name."""

    @abstractmethod
    async def get_exercise_by_id(self, exercise_id: str) -> Optional[Exercise]:
        ...

    @abstractmethod
    async def create_exercise(self, fields: ExerciseFields) -> Exercise:
        """Store a new custom exercise and return it."""

    @abstractmethod
    async def log_exercise(self, log: ExerciseLog) -> ExerciseLog:
        """Store ``log`` and its sets, returning it with id and created_at."""

    @abstractmethod
    async def get_exercise_logs(self) -> List[ExerciseLog]:
        """Return logs, most recent date first."""

    @abstractmethod
    async def save_routine(self, routine: Routine) -> None:
        ...

    @abstractmethod
    async def get_routines(self) -> List[Routine]:
        ...

    @abstractmethod
    async def delete_routine(self, routine_id: str) -> None:
        ...

    @abstractmethod
    async def clear_program(self, program_name: str) -> None:
        """Unset ``program_name`` on every routine tagged with it.

        Names are compared after trimming and lowercasing.
        """

    @abstractmethod
    async def save_routines_order(self, routines: List[Routine]) -> None:
        ...

    async def _resolve_exercises(self, routine: Routine) -> Routine:
        """Point every routine exercise at an existing exercise record.

        Unknown exercise ids get a new custom exercise. Exercise names are
        refreshed from the stored exercise so the routine never carries a
        stale name.
        """
        resolved: Dict[str, Exercise] = {}
        exercises = []
        for item in routine.exercises:
            master = resolved.get(item.exercise_id)
            if master is None:
                master = await self.get_exercise_by_id(item.exercise_id)
                if master is None:
                    master = await self.create_exercise(
                        ExerciseFields(
                            name=item.exercise_name or item.exercise_id,
                            muscle_group=MuscleGroup.FULL_BODY,
                            equipment=EquipmentType.OTHER,
                            description="",
                            default_weight_unit=item.weight_unit,
                        )
                    )
                    logger.info(
                        "Created exercise %s for unknown id %s in routine %s",
                        master.id,
                        item.exercise_id,
                        routine.id,
                    )
                resolved[item.exercise_id] = master
            exercises.append(
                item.model_copy(
                    update={"exercise_id": master.id, "exercise_name": master.name}
                )
            )
        return routine.model_copy(update={"exercises": exercises})
