import json
import logging
from typing import Any, List, Optional, Type, TypeVar

import yaml
from pydantic import BaseModel, ValidationError

from config import YamlConfig
from models import (
    Exercise,
    ExerciseFields,
    ExerciseLog,
    Routine,
    TrainingState,
    default_exercises,
    new_id,
    utc_now,
)
from repository import StorageRepository, normalize_program_name
from routine_assembler import normalize_routine

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

ROUTINES_KEY = "routines"
EXERCISES_KEY = "exercises"
EXERCISE_LOGS_KEY = "exercise_logs"
PROGRAMS_KEY = "programs"
TRAINING_STATE_KEY = "training_state"
ONBOARDING_KEY = "onboarding_completed"
LANGUAGE_KEY = "language"

SUPPORTED_LANGUAGES = ("en", "es")
DEFAULT_LANGUAGE = "en"


class PreferenceStore:
    """String key/value store persisted to a YAML file.

    Values are plain strings; structured values are stored as JSON text.
    Every call reads the file so separate store instances on the same path
    stay consistent.
    """

    def __init__(self, path: str = "preferences.yaml") -> None:
        self._config = YamlConfig(path)

    @property
    def path(self) -> str:
        return self._config.path

    def _load(self) -> dict:
        try:
            return self._config.load()
        except (yaml.YAMLError, ValueError) as exc:
            logger.warning("Ignoring unreadable preferences file %s: %s", self.path, exc)
            return {}

    def get(self, key: str) -> Optional[str]:
        value = self._load().get(key)
        return None if value is None else str(value)

    def set(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = value
        self._config.save(data)

    def remove(self, key: str) -> None:
        data = self._load()
        if data.pop(key, None) is not None:
            self._config.save(data)

    def keys(self) -> List[str]:
        return sorted(self._load())

    def get_json(self, key: str, default: Any = None) -> Any:
        raw = self.get(key)
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except ValueError as exc:
            logger.warning("Ignoring malformed value for %s: %s", key, exc)
            return default

    def set_json(self, key: str, value: Any) -> None:
        self.set(key, json.dumps(value))

    def get_models(self, key: str, model: Type[M]) -> List[M]:
        """Return the list stored under ``key`` parsed as ``model`` items."""
        data = self.get_json(key, [])
        if not isinstance(data, list):
            logger.warning("Expected a list under %s, found %s", key, type(data).__name__)
            return []
        items = []
        for index, item in enumerate(data):
            try:
                items.append(model.model_validate(item))
            except ValidationError as exc:
                logger.warning("Skipping invalid %s record %d: %s", key, index, exc)
        return items

    def set_models(self, key: str, items: List[BaseModel]) -> None:
        self.set_json(key, [item.model_dump(mode="json", by_alias=True) for item in items])


class PreferenceRepository(StorageRepository):
    """Workout storage kept as whole collections in the preference store.

    Each mutation reads the full collection, changes it and writes it back.
    """

    name = "web"

    def __init__(self, store: PreferenceStore) -> None:
        self.store = store

    async def initialize(self) -> None:
        logger.debug("Using preference storage at %s", self.store.path)

    async def get_exercises(self) -> List[Exercise]:
        custom = self.store.get_models(EXERCISES_KEY, Exercise)
        custom_ids = {exercise.id for exercise in custom}
        builtin = [e for e in default_exercises() if e.id not in custom_ids]
        return sorted(builtin + custom, key=lambda exercise: exercise.name)

    async def get_exercise_by_id(self, exercise_id: str) -> Optional[Exercise]:
        for exercise in await self.get_exercises():
            if exercise.id == exercise_id:
                return exercise
        return None

    async def create_exercise(self, fields: ExerciseFields) -> Exercise:
        now = utc_now()
        exercise = Exercise(
            **fields.model_dump(),
            id=new_id(),
            is_custom=True,
            created_at=now,
            updated_at=now,
        )
        custom = self.store.get_models(EXERCISES_KEY, Exercise)
        custom.append(exercise)
        self.store.set_models(EXERCISES_KEY, custom)
        return exercise

    async def log_exercise(self, log: ExerciseLog) -> ExerciseLog:
        stored = log.model_copy(update={"id": new_id(), "created_at": utc_now()})
        logs = self.store.get_models(EXERCISE_LOGS_KEY, ExerciseLog)
        logs.append(stored)
        self.store.set_models(EXERCISE_LOGS_KEY, logs)
        return stored

    async def get_exercise_logs(self) -> List[ExerciseLog]:
        logs = self.store.get_models(EXERCISE_LOGS_KEY, ExerciseLog)
        return sorted(logs, key=lambda log: log.date, reverse=True)

    async def save_routine(self, routine: Routine) -> None:
        routine = normalize_routine(await self._resolve_exercises(routine))
        routines = await self.get_routines()
        for index, existing in enumerate(routines):
            if existing.id == routine.id:
                routines[index] = routine
                break
        else:
            routines.append(routine)
        self.store.set_models(ROUTINES_KEY, routines)

    async def get_routines(self) -> List[Routine]:
        return self.store.get_models(ROUTINES_KEY, Routine)

    async def delete_routine(self, routine_id: str) -> None:
        routines = [r for r in await self.get_routines() if r.id != routine_id]
        self.store.set_models(ROUTINES_KEY, routines)

    async def clear_program(self, program_name: str) -> None:
        target = normalize_program_name(program_name)
        routines = [
            r.model_copy(update={"program_name": None})
            if normalize_program_name(r.program_name) == target
            else r
            for r in await self.get_routines()
        ]
        self.store.set_models(ROUTINES_KEY, routines)

    async def save_routines_order(self, routines: List[Routine]) -> None:
        self.store.set_models(ROUTINES_KEY, [normalize_routine(r) for r in routines])


class SessionPreferences:
    """Session and UI settings that always live in the preference store."""

    def __init__(self, store: PreferenceStore) -> None:
        self.store = store

    async def set_training_state(self, state: TrainingState) -> None:
        self.store.set_json(TRAINING_STATE_KEY, state.to_dict())

    async def get_training_state(self) -> Optional[TrainingState]:
        data = self.store.get_json(TRAINING_STATE_KEY)
        if data is None:
            return None
        try:
            return TrainingState.model_validate(data)
        except ValidationError as exc:
            logger.warning("Ignoring invalid training state: %s", exc)
            return None

    async def clear_training_state(self) -> None:
        self.store.remove(TRAINING_STATE_KEY)

    async def get_onboarding_completed(self) -> bool:
        return self.store.get(ONBOARDING_KEY) == "true"

    async def set_onboarding_completed(self, completed: bool) -> None:
        self.store.set(ONBOARDING_KEY, "true" if completed else "false")

    async def get_language(self) -> str:
        value = self.store.get(LANGUAGE_KEY)
        return value if value in SUPPORTED_LANGUAGES else DEFAULT_LANGUAGE

    async def set_language(self, language: str) -> None:
        if language not in SUPPORTED_LANGUAGES:
            raise ValueError(f"Unsupported language: {language}")
        self.store.set(LANGUAGE_KEY, language)

    def _id_list(self, key: str) -> List[str]:
        data = self.store.get_json(key, [])
        if not isinstance(data, list):
            return []
        return [str(item) for item in data]

    async def get_completed_routines(self, date_label: str) -> List[str]:
        return self._id_list(f"completed_routines_{date_label}")

    async def set_completed_routines(self, date_label: str, routine_ids: List[str]) -> None:
        self.store.set_json(f"completed_routines_{date_label}", list(dict.fromkeys(routine_ids)))

    async def mark_routine_completed(self, date_label: str, routine_id: str) -> None:
        completed = await self.get_completed_routines(date_label)
        if routine_id not in completed:
            completed.append(routine_id)
            await self.set_completed_routines(date_label, completed)

    async def get_training_selection(self, date_label: str) -> List[str]:
        return self._id_list(f"training_selection_{date_label}")

    async def set_training_selection(self, date_label: str, routine_ids: List[str]) -> None:
        self.store.set_json(f"training_selection_{date_label}", list(dict.fromkeys(routine_ids)))

    async def clear_training_selection(self, date_label: str) -> None:
        self.store.remove(f"training_selection_{date_label}")
